#!/usr/bin/env python3
"""
Exported symbol naming: turns translated methods into uniquely named FFI methods.

C linkage has no overload resolution, so methods that share a base name
(e.g. every overload of `A::foo` maps to `mylib_A_foo`) need a caption that
tells them apart. Captions are tried from least to most verbose and the
first strategy that separates the whole group wins:

    DIFFERING_ARGUMENTS       foo(int, bool) / foo(double, bool) -> _int / _double
    CONST_ONLY                data() / data() const              -> "" / _const
    ARGUMENTS                 all argument types, short captions
    CONST_AND_ARGUMENTS       const marker plus ARGUMENTS
    ARGUMENTS_FULL            all argument types with const and indirection
    CONST_AND_ARGUMENTS_FULL  const marker plus ARGUMENTS_FULL

Resolution is an explicit two-phase fold: `group_by_base_name` builds an
immutable mapping, then groups are resolved in ascending base-name order.
The result never depends on the order in which candidates were collected.
"""

from __future__ import annotations

from enum import Enum, auto
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Sequence, Set, Tuple
import logging

from .errors import NamingExhausted
from .models import FfiCandidate, NamedFfiMethod, NativeType
from .type_mapping import TypeCaptionStrategy, type_caption
from .utils import join_identifier

logger = logging.getLogger(__name__)


class MethodCaptionStrategy(Enum):
    DIFFERING_ARGUMENTS = auto()
    CONST_ONLY = auto()
    ARGUMENTS = auto()
    CONST_AND_ARGUMENTS = auto()
    ARGUMENTS_FULL = auto()
    CONST_AND_ARGUMENTS_FULL = auto()


# Least verbose first
STRATEGY_ORDER: Tuple[MethodCaptionStrategy, ...] = (
    MethodCaptionStrategy.DIFFERING_ARGUMENTS,
    MethodCaptionStrategy.CONST_ONLY,
    MethodCaptionStrategy.ARGUMENTS,
    MethodCaptionStrategy.CONST_AND_ARGUMENTS,
    MethodCaptionStrategy.ARGUMENTS_FULL,
    MethodCaptionStrategy.CONST_AND_ARGUMENTS_FULL,
)

_CONST_STRATEGIES = frozenset({
    MethodCaptionStrategy.CONST_ONLY,
    MethodCaptionStrategy.CONST_AND_ARGUMENTS,
    MethodCaptionStrategy.CONST_AND_ARGUMENTS_FULL,
})

_FULL_STRATEGIES = frozenset({
    MethodCaptionStrategy.ARGUMENTS_FULL,
    MethodCaptionStrategy.CONST_AND_ARGUMENTS_FULL,
})


# --------------------------
# Captions
# --------------------------

def _argument_types(candidate: FfiCandidate) -> List[NativeType]:
    return [a.argument_type.original_type for a in candidate.signature.native_arguments]


def _is_const_member(candidate: FfiCandidate) -> bool:
    membership = candidate.method.class_membership
    return membership is not None and membership.is_const


def differing_positions(group: Sequence[FfiCandidate]) -> Tuple[int, ...]:
    """
    Argument positions whose short caption is not the same for every member.
    A position missing from a shorter argument list counts as differing.
    """
    arg_lists = [[type_caption(t) for t in _argument_types(c)] for c in group]
    longest = max((len(a) for a in arg_lists), default=0)
    positions = []
    for pos in range(longest):
        seen = {args[pos] if pos < len(args) else None for args in arg_lists}
        if len(seen) > 1:
            positions.append(pos)
    return tuple(positions)


def method_caption(
    candidate: FfiCandidate,
    strategy: MethodCaptionStrategy,
    positions: Sequence[int] = (),
) -> str:
    """
    Caption of one candidate under a strategy. May be empty.
    `positions` is only used by DIFFERING_ARGUMENTS.
    """
    types = _argument_types(candidate)
    if strategy == MethodCaptionStrategy.DIFFERING_ARGUMENTS:
        parts = [type_caption(types[p]) for p in positions if p < len(types)]
    elif strategy == MethodCaptionStrategy.CONST_ONLY:
        parts = []
    else:
        type_strategy = TypeCaptionStrategy.FULL if strategy in _FULL_STRATEGIES else TypeCaptionStrategy.SHORT
        parts = [type_caption(t, type_strategy) for t in types]
    if strategy in _CONST_STRATEGIES and _is_const_member(candidate):
        parts.insert(0, "const")
    return join_identifier(*parts)


# --------------------------
# Resolver
# --------------------------

def group_by_base_name(candidates: Iterable[FfiCandidate]) -> Mapping[str, Tuple[FfiCandidate, ...]]:
    """
    Phase 1: immutable base name -> candidates mapping. Members are ordered by
    their human-readable signature so diagnostics are reproducible.
    """
    acc: Dict[str, List[FfiCandidate]] = {}
    for c in candidates:
        acc.setdefault(c.base_name, []).append(c)
    frozen = {
        key: tuple(sorted(values, key=lambda c: (c.method.short_text(), c.include_file_base_name)))
        for key, values in acc.items()
    }
    return MappingProxyType(frozen)


class NameCollisionResolver:
    """
    Assigns every candidate of a run a pairwise-unique exported name.

    Usage:
        named = NameCollisionResolver().resolve(candidates)
    """

    def __init__(self, strategies: Sequence[MethodCaptionStrategy] = STRATEGY_ORDER) -> None:
        self.strategies = tuple(strategies)

    def resolve(self, candidates: Iterable[FfiCandidate]) -> Tuple[NamedFfiMethod, ...]:
        groups = group_by_base_name(candidates)
        reserved: Set[str] = set(groups)
        committed: Set[str] = set()
        named: List[NamedFfiMethod] = []

        # Phase 2
        for key in sorted(groups):
            members = groups[key]
            if len(members) == 1:
                names: Sequence[str] = (key,)
            else:
                names = self._resolve_group(key, members, reserved, committed)
            for member, name in zip(members, names):
                named.append(NamedFfiMethod(
                    method=member.method,
                    signature=member.signature,
                    c_name=name,
                    include_file_base_name=member.include_file_base_name,
                ))
            committed.update(names)

        named.sort(key=lambda m: m.c_name)
        return tuple(named)

    def _resolve_group(
        self,
        key: str,
        members: Sequence[FfiCandidate],
        reserved: Set[str],
        committed: Set[str],
    ) -> List[str]:
        positions = differing_positions(members)
        for strategy in self.strategies:
            names = [
                join_identifier(key, method_caption(m, strategy, positions))
                for m in members
            ]
            if len(set(names)) != len(names):
                continue
            # must not steal another group's base name or an already assigned name
            if any((n != key and n in reserved) or n in committed for n in names):
                continue
            logger.debug("Resolved %d overloads of %s with %s", len(members), key, strategy.name)
            return names

        logger.error("All type caption strategies have failed! Involved functions:")
        signatures = [m.method.short_text() for m in members]
        for s in signatures:
            logger.error("  %s", s)
        raise NamingExhausted(key, signatures)


__all__ = [
    "MethodCaptionStrategy",
    "STRATEGY_ORDER",
    "differing_positions",
    "method_caption",
    "group_by_base_name",
    "NameCollisionResolver",
]
