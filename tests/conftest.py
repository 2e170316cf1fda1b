import json
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any, Optional

import pytest

from ffi_surface_generator.models import (
    AllocationPlace,
    ClassBase,
    ClassInfo,
    ClassMembership,
    FfiGeneratorConfig,
    FunctionArgument,
    Indirection,
    MethodKind,
    NativeMethod,
    NativeType,
    TypeDatabase,
    Visibility,
)
from ffi_surface_generator.slot_wrappers import SlotWrapperSynthesis, collect_signal_argument_types

INT = NativeType.primitive("int")
DOUBLE = NativeType.primitive("double")
BOOL = NativeType.primitive("bool")


def arg(name: str, t: NativeType, has_default_value: bool = False) -> FunctionArgument:
    return FunctionArgument(name, t, has_default_value)


def member(
    class_name: str,
    name: str,
    *arguments: FunctionArgument,
    return_type: NativeType = NativeType.void(),
    kind: MethodKind = MethodKind.REGULAR,
    include_file: Optional[str] = None,
    **membership: Any,
) -> NativeMethod:
    return NativeMethod(
        name=name,
        return_type=return_type,
        arguments=tuple(arguments),
        class_membership=ClassMembership(class_type=ClassBase(class_name), kind=kind, **membership),
        include_file=include_file if include_file is not None else f"{class_name.lower()}.h",
    )


def free_function(
    name: str,
    *arguments: FunctionArgument,
    return_type: NativeType = NativeType.void(),
    include_file: str = "globals.h",
) -> NativeMethod:
    return NativeMethod(name=name, return_type=return_type, arguments=tuple(arguments), include_file=include_file)


def make_database(
    methods: Sequence[NativeMethod],
    classes: Sequence[str] = (),
    stack_classes: Sequence[str] = (),
    pure_virtual_classes: Sequence[str] = (),
) -> TypeDatabase:
    infos = {name: ClassInfo(name) for name in classes}
    for name in stack_classes:
        infos[name] = ClassInfo(name, allocation_place=AllocationPlace.STACK)
    return TypeDatabase(
        methods=list(methods),
        classes=infos,
        pure_virtual_classes=frozenset(pure_virtual_classes),
        signal_argument_types=collect_signal_argument_types(methods),
    )


def wrapper_members(synthesis: SlotWrapperSynthesis, class_name: str) -> list:
    """
    Synthesized methods of one bridge class, its upcast function included.
    """
    out = []
    for m in synthesis.methods:
        if m.class_name == class_name:
            out.append(m)
        elif m.class_membership is None and m.arguments:
            base = m.arguments[0].argument_type.base
            if isinstance(base, ClassBase) and base.name == class_name:
                out.append(m)
    return out


@pytest.fixture
def config() -> FfiGeneratorConfig:
    return FfiGeneratorConfig(library_name="mylib")


@pytest.fixture
def class_ref() -> Callable[..., NativeType]:
    def _class_ref(name: str, indirection: Indirection = Indirection.REF, is_const: bool = True) -> NativeType:
        return NativeType.class_type(name, indirection, is_const)

    return _class_ref


@pytest.fixture
def write_database(tmp_path: Path) -> Callable[[dict], Path]:
    def _write_database(document: dict) -> Path:
        path = tmp_path / "db.json"
        path.write_text(json.dumps(document), encoding="utf-8")
        return path

    return _write_database


@pytest.fixture
def widget_document() -> dict:
    """
    Small database: one class with overloads, a signal, and a free function.
    """
    int_t = {"kind": "primitive", "name": "int"}
    double_t = {"kind": "primitive", "name": "double"}
    return {
        "classes": {
            "Widget": {"include_file": "widget.h"},
            "QObject": {"include_file": "qobject.h"},
        },
        "methods": [
            {
                "name": "Widget",
                "include_file": "widget.h",
                "class_membership": {"class_type": "Widget", "kind": "constructor"},
            },
            {
                "name": "resize",
                "include_file": "widget.h",
                "arguments": [{"name": "w", "type": int_t}],
                "class_membership": {"class_type": "Widget"},
            },
            {
                "name": "resize",
                "include_file": "widget.h",
                "arguments": [{"name": "w", "type": double_t}],
                "class_membership": {"class_type": "Widget"},
            },
            {
                "name": "valueChanged",
                "include_file": "widget.h",
                "arguments": [{"name": "value", "type": int_t}],
                "class_membership": {"class_type": "Widget", "is_signal": True},
            },
            {
                "name": "version",
                "include_file": "globals.h",
                "return_type": int_t,
            },
        ],
    }
