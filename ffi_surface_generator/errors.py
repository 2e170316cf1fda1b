#!/usr/bin/env python3
"""
Exceptions raised by the FFI surface generator.

Run-level failures (PolicyFailure, NamingExhausted, EmptyOutput) abort the
whole generation; no partial output is returned. UnrepresentableType only
concerns a single method and is handled by skipping it.
"""

from __future__ import annotations

from typing import Sequence, Tuple


class FfiGenerationError(RuntimeError):
    """Base class for all generator errors."""


class PolicyFailure(FfiGenerationError):
    """An eligibility filter predicate raised instead of answering."""

    def __init__(self, method_text: str) -> None:
        super().__init__(f"Eligibility filter failed for method: {method_text}")
        self.method_text = method_text


class UnrepresentableType(FfiGenerationError):
    """A type used by a method has no FFI mapping."""

    def __init__(self, type_spelling: str, reason: str) -> None:
        super().__init__(f"Type '{type_spelling}' cannot be represented in FFI: {reason}")
        self.type_spelling = type_spelling
        self.reason = reason


class NamingExhausted(FfiGenerationError):
    """No caption strategy produced unique names for a collision group."""

    def __init__(self, base_name: str, signatures: Sequence[str]) -> None:
        listing = "\n".join(f"  {s}" for s in signatures)
        super().__init__(f"All caption strategies failed for '{base_name}'. Involved functions:\n{listing}")
        self.base_name = base_name
        self.signatures: Tuple[str, ...] = tuple(signatures)


class EmptyOutput(FfiGenerationError):
    """The run produced no non-empty header."""


class DatabaseFormatError(FfiGenerationError):
    """The type database snapshot is malformed."""


__all__ = [
    "FfiGenerationError",
    "PolicyFailure",
    "UnrepresentableType",
    "NamingExhausted",
    "EmptyOutput",
    "DatabaseFormatError",
]
