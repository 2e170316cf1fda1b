#!/usr/bin/env python3
"""
Header assembly: the driver of one generation run.

Runs the pipeline over every compilation unit of the type database
(ascending order), then over the synthesized slot wrappers, names all
candidates in a single resolver pass and groups the result back into
per-unit header descriptors. Empty units are dropped; a run without any
non-empty unit fails with EmptyOutput.

A database include file whose base name equals the configured slots unit
name shares one header with the slot wrappers (a warning is logged).
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple
import logging

from .errors import EmptyOutput, UnrepresentableType
from .filtering import MethodEligibilityFilter
from .models import (
    AllocationPlace,
    FfiCandidate,
    FfiGeneratorConfig,
    HeaderDescriptor,
    NamedFfiMethod,
    NativeMethod,
    TypeDatabase,
)
from .naming import NameCollisionResolver
from .slot_wrappers import SyntheticSlotWrapperSynthesizer
from .type_mapping import FfiSignatureTranslator, base_name

logger = logging.getLogger(__name__)


def include_file_base_name(include_file: str) -> str:
    """
    'qwidget.h' -> 'qwidget'
    """
    index = include_file.find(".")
    return include_file[:index] if index >= 0 else include_file


class HeaderAssembler:
    def __init__(self, database: TypeDatabase, config: FfiGeneratorConfig) -> None:
        self.database = database
        self.config = config
        self.eligibility = MethodEligibilityFilter(database, config)
        self.resolver = NameCollisionResolver()

    def run(self) -> Tuple[HeaderDescriptor, ...]:
        candidates: List[FfiCandidate] = []
        units: List[str] = []

        translator = FfiSignatureTranslator(self.database, self.config)
        for include_file in self.database.all_include_files():
            unit = include_file_base_name(include_file)
            methods = [m for m in self.database.methods if m.include_file == include_file]
            candidates.extend(self.process_methods(unit, translator, methods))
            if unit not in units:
                units.append(unit)

        synthesis = SyntheticSlotWrapperSynthesizer(self.database, self.config).synthesize()
        slots_unit = self.config.slots_unit_name
        if synthesis.methods:
            slot_translator = FfiSignatureTranslator(
                self.database,
                self.config,
                extra_classes=synthesis.class_names + (self.config.event_base_class_name,),
            )
            candidates.extend(self.process_methods(slots_unit, slot_translator, synthesis.methods, AllocationPlace.HEAP))
            if slots_unit in units:
                logger.warning(
                    "Database unit %r shares its name with the slot wrapper unit; their methods are merged into one header",
                    slots_unit,
                )
            else:
                units.append(slots_unit)

        named = self.resolver.resolve(candidates)

        by_unit: Dict[str, List[NamedFfiMethod]] = {u: [] for u in units}
        for m in named:
            by_unit[m.include_file_base_name].append(m)

        headers: List[HeaderDescriptor] = []
        for unit, methods in by_unit.items():
            if not methods:
                logger.debug("Skipping empty include file %s", unit)
                continue
            wrappers = ()
            if unit == slots_unit:
                present = {m.method.class_name for m in methods}
                wrappers = tuple(d for d in synthesis.descriptors if d.class_name in present)
            headers.append(HeaderDescriptor(
                include_file_base_name=unit,
                methods=tuple(methods),
                slot_wrappers=wrappers,
            ))

        if not headers:
            raise EmptyOutput("No FFI headers generated")
        logger.info("Generated %d FFI header(s) with %d method(s)", len(headers), len(named))
        return tuple(headers)

    def process_methods(
        self,
        unit: str,
        translator: FfiSignatureTranslator,
        methods: Iterable[NativeMethod],
        allocation_override: Optional[AllocationPlace] = None,
    ) -> List[FfiCandidate]:
        """
        Filter and translate the methods of one unit into naming candidates.
        """
        logger.info("Generating FFI methods for header: %s", unit)
        out: List[FfiCandidate] = []
        for method in methods:
            if not self.eligibility.is_eligible(method):
                continue
            try:
                signature = translator.translate(method, allocation_override)
                name = base_name(self.config.library_name, method, signature, unit)
            except UnrepresentableType as e:
                logger.debug("Unable to produce C function for method:\n%s\nError: %s", method.short_text(), e)
                continue
            out.append(FfiCandidate(
                method=method,
                signature=signature,
                base_name=name,
                include_file_base_name=unit,
            ))
        return out


def generate_ffi_headers(database: TypeDatabase, config: FfiGeneratorConfig) -> Tuple[HeaderDescriptor, ...]:
    """
    Run the whole transform. Raises PolicyFailure, NamingExhausted or EmptyOutput.
    """
    return HeaderAssembler(database, config).run()


__all__ = [
    "HeaderAssembler",
    "generate_ffi_headers",
    "include_file_base_name",
]
