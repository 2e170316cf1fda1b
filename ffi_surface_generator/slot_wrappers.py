#!/usr/bin/env python3
"""
Slot wrapper synthesis.

Signals of the event runtime can only be connected to slots of runtime
objects, which foreign code cannot define. For every distinct signal
argument tuple this module synthesizes a small bridge class that owns a
plain C callback (function pointer + opaque context) and exposes a slot
forwarding to it:

    class mylib_SlotWrapper_int : public QObject {
        mylib_SlotWrapper_int();
        ~mylib_SlotWrapper_int();
        void set(void (*func)(void*, int), void* data);
        void custom_slot(int arg0);           // slot, calls func(data, arg0)
    };
    QObject* static_cast<QObject*>(mylib_SlotWrapper_int* ptr);

The synthesized methods are plain NativeMethod values: the assembler sends
them through the same filter, translation and naming pipeline as real
methods, with allocation forced to the heap.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple
import logging

from .errors import UnrepresentableType
from .models import (
    ClassBase,
    ClassMembership,
    FfiGeneratorConfig,
    FfiType,
    FunctionArgument,
    FunctionPointerBase,
    Indirection,
    MethodKind,
    NativeMethod,
    NativeType,
    SlotWrapperDescriptor,
    TypeDatabase,
    Visibility,
)
from .type_mapping import FfiSignatureTranslator, TypeCaptionStrategy, type_caption
from .utils import join_identifier

logger = logging.getLogger(__name__)

SLOT_METHOD_NAME = "custom_slot"
CAST_FUNCTION_NAME = "static_cast"


@dataclass(frozen=True)
class SlotWrapperSynthesis:
    methods: Tuple[NativeMethod, ...] = ()
    descriptors: Tuple[SlotWrapperDescriptor, ...] = ()

    @property
    def class_names(self) -> Tuple[str, ...]:
        return tuple(d.class_name for d in self.descriptors)


def collect_signal_argument_types(methods: Iterable[NativeMethod]) -> Tuple[Tuple[NativeType, ...], ...]:
    """
    Distinct argument tuples a slot may receive from the given signals. A signal
    with trailing default arguments can also be emitted with fewer arguments,
    so each such shorter tuple is included too.
    """
    seen: Dict[Tuple[NativeType, ...], None] = {}
    for m in methods:
        if m.class_membership is None or not m.class_membership.is_signal:
            continue
        types = tuple(a.argument_type for a in m.arguments)
        seen.setdefault(types, None)
        count = len(m.arguments)
        while count > 0 and m.arguments[count - 1].has_default_value:
            count -= 1
            seen.setdefault(types[:count], None)
    return tuple(seen)


class SyntheticSlotWrapperSynthesizer:
    def __init__(self, database: TypeDatabase, config: FfiGeneratorConfig) -> None:
        self.database = database
        self.config = config
        self._translator = FfiSignatureTranslator(database, config)

    def wrapper_class_name(self, types: Sequence[NativeType]) -> str:
        captions = [type_caption(t, TypeCaptionStrategy.FULL) for t in types]
        args_caption = join_identifier(*captions) or "no_args"
        return join_identifier(self.config.library_name, "SlotWrapper", args_caption)

    def synthesize(self) -> SlotWrapperSynthesis:
        """
        Build bridge classes for all observed signal argument tuples.
        Contributes nothing when no tuple was observed.
        """
        by_class: Dict[str, Tuple[NativeType, ...]] = {}
        for types in dict.fromkeys(self.database.signal_argument_types):
            class_name = self.wrapper_class_name(types)
            previous = by_class.get(class_name)
            if previous is not None and previous != types:
                # keep the lexicographically first spelling for reproducibility
                keep = min(previous, types, key=lambda ts: [t.cpp_code() for t in ts])
                logger.warning("Signal argument tuples share slot wrapper name %s; keeping (%s)",
                               class_name, ", ".join(t.cpp_code() for t in keep))
                types = keep
            by_class[class_name] = types

        methods: List[NativeMethod] = []
        descriptors: List[SlotWrapperDescriptor] = []
        for class_name in sorted(by_class):
            types = by_class[class_name]
            try:
                ffi_types = tuple(self._translator.translate_type(t, is_return=False) for t in types)
            except UnrepresentableType as e:
                logger.debug("Skipping slot wrapper %s: %s", class_name, e)
                continue
            wrapper_methods, descriptor = self._synthesize_wrapper(class_name, types, ffi_types)
            methods.extend(wrapper_methods)
            descriptors.append(descriptor)

        if descriptors:
            logger.info("Synthesized %d slot wrapper class(es)", len(descriptors))
        return SlotWrapperSynthesis(methods=tuple(methods), descriptors=tuple(descriptors))

    # ---- Internals ----

    def _synthesize_wrapper(
        self,
        class_name: str,
        types: Tuple[NativeType, ...],
        ffi_types: Tuple[FfiType, ...],
    ) -> Tuple[List[NativeMethod], SlotWrapperDescriptor]:
        class_type = ClassBase(class_name)
        void_ptr = NativeType.void_ptr()
        function_type = FunctionPointerBase(
            return_type=NativeType.void(),
            arguments=(void_ptr,) + tuple(t.ffi_type for t in ffi_types),
        )

        constructor = self._member(class_type, MethodKind.CONSTRUCTOR, class_name)
        destructor = self._member(class_type, MethodKind.DESTRUCTOR, f"~{class_name}")
        setter = self._member(
            class_type,
            MethodKind.REGULAR,
            "set",
            arguments=(
                FunctionArgument("func", NativeType(base=function_type)),
                FunctionArgument("data", void_ptr),
            ),
        )
        slot = self._member(
            class_type,
            MethodKind.REGULAR,
            SLOT_METHOD_NAME,
            is_slot=True,
            arguments=tuple(FunctionArgument(f"arg{i}", t) for i, t in enumerate(types)),
        )
        event_base = NativeType.class_type(self.config.event_base_class_name, Indirection.PTR)
        upcast = NativeMethod(
            name=CAST_FUNCTION_NAME,
            return_type=event_base,
            arguments=(FunctionArgument("ptr", NativeType(base=class_type, indirection=Indirection.PTR)),),
            template_arguments_values=(event_base,),
            is_ffi_whitelisted=True,
            include_file=self.config.slots_unit_name,
        )
        descriptor = SlotWrapperDescriptor(
            class_name=class_name,
            arguments=ffi_types,
            function_type=function_type,
            receiver_id=slot.receiver_id(),
        )
        return [constructor, destructor, setter, slot, upcast], descriptor

    def _member(
        self,
        class_type: ClassBase,
        kind: MethodKind,
        name: str,
        is_slot: bool = False,
        arguments: Tuple[FunctionArgument, ...] = (),
    ) -> NativeMethod:
        return NativeMethod(
            name=name,
            return_type=NativeType.void(),
            arguments=arguments,
            class_membership=ClassMembership(
                class_type=class_type,
                kind=kind,
                visibility=Visibility.PUBLIC,
                is_virtual=True,
                is_slot=is_slot,
            ),
            include_file=self.config.slots_unit_name,
        )


__all__ = [
    "SLOT_METHOD_NAME",
    "CAST_FUNCTION_NAME",
    "SlotWrapperSynthesis",
    "SyntheticSlotWrapperSynthesizer",
    "collect_signal_argument_types",
]
