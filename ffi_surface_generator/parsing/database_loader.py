#!/usr/bin/env python3
"""
Loading of the type database snapshot.

The upstream header parser writes the native API description as JSON. This
module turns that document into the immutable models of `models.py`:

- `classes`: class name -> {"allocation_place": "stack"|"heap", "include_file": ...}
  (a plain list of names is accepted too)
- `methods`: free functions and class members, each with its include file
- `pure_virtual_classes` (optional): derived from pure virtual members if absent
- `signal_argument_types` (optional): derived from signal members if absent
- `include_files` (optional): extra compilation units

Types are objects tagged by "kind":

    {"kind": "primitive", "name": "int"}
    {"kind": "class", "name": "QVector", "template_arguments": [...]}
    {"kind": "function_pointer", "return_type": {...}, "arguments": [...]}
    {"kind": "void"}
    {"kind": "template_parameter", "nested_level": 0, "index": 0, "name": "T"}

each with optional "indirection" ("none" | "ptr" | "ref") and "const".

Malformed documents raise DatabaseFormatError naming the offending entry.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
import logging

from ..errors import DatabaseFormatError
from ..models import (
    AllocationPlace,
    ClassBase,
    ClassInfo,
    ClassMembership,
    FunctionArgument,
    FunctionPointerBase,
    Indirection,
    MethodKind,
    NativeMethod,
    NativeType,
    PrimitiveBase,
    TemplateParameterBase,
    TypeDatabase,
    Visibility,
    VoidBase,
)
from ..slot_wrappers import collect_signal_argument_types

logger = logging.getLogger(__name__)


# --------------------------
# Helpers
# --------------------------

def _require(data: Mapping[str, Any], key: str, where: str) -> Any:
    if not isinstance(data, Mapping):
        raise DatabaseFormatError(f"{where}: expected an object, got {type(data).__name__}")
    if key not in data:
        raise DatabaseFormatError(f"{where}: missing '{key}'")
    return data[key]


def _enum_value(enum_cls: Any, value: Any, where: str) -> Any:
    try:
        return enum_cls[str(value).upper()]
    except KeyError:
        choices = ", ".join(m.name.lower() for m in enum_cls)
        raise DatabaseFormatError(f"{where}: invalid value {value!r} (expected one of: {choices})") from None


def _list(data: Mapping[str, Any], key: str, where: str) -> List[Any]:
    """
    Optional list field; missing and null both read as empty.
    """
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise DatabaseFormatError(f"{where}.{key}: expected a list, got {type(value).__name__}")
    return value


def _int(data: Mapping[str, Any], key: str, where: str) -> int:
    value = data.get(key, 0)
    if isinstance(value, bool) or not isinstance(value, int):
        raise DatabaseFormatError(f"{where}.{key}: expected an integer, got {value!r}")
    return value


def _optional_types(data: Optional[List[Any]], where: str) -> Optional[Tuple[NativeType, ...]]:
    if data is None:
        return None
    if not isinstance(data, list):
        raise DatabaseFormatError(f"{where}: expected a list, got {type(data).__name__}")
    return tuple(parse_type(t, f"{where}[{i}]") for i, t in enumerate(data))


# --------------------------
# Types
# --------------------------

def _parse_class_base(data: Union[str, Mapping[str, Any]], where: str) -> ClassBase:
    if isinstance(data, str):
        return ClassBase(data)
    name = _require(data, "name", where)
    targs = _optional_types(data.get("template_arguments"), f"{where}.template_arguments")
    return ClassBase(str(name), targs)


def parse_type(data: Mapping[str, Any], where: str = "type") -> NativeType:
    kind = _require(data, "kind", where)
    if kind == "primitive":
        base: Any = PrimitiveBase(str(_require(data, "name", where)))
    elif kind == "class":
        base = _parse_class_base(data, where)
    elif kind == "function_pointer":
        base = FunctionPointerBase(
            return_type=parse_type(_require(data, "return_type", where), f"{where}.return_type"),
            arguments=_optional_types(_list(data, "arguments", where), f"{where}.arguments") or (),
            allows_variadic_arguments=bool(data.get("allows_variadic_arguments", False)),
        )
    elif kind == "void":
        base = VoidBase()
    elif kind == "template_parameter":
        base = TemplateParameterBase(
            nested_level=_int(data, "nested_level", where),
            index=_int(data, "index", where),
            name=str(data.get("name", "")),
        )
    else:
        raise DatabaseFormatError(f"{where}: unknown type kind {kind!r}")
    return NativeType(
        base=base,
        indirection=_enum_value(Indirection, data.get("indirection", "none"), f"{where}.indirection"),
        is_const=bool(data.get("const", False)),
    )


# --------------------------
# Methods
# --------------------------

def _parse_membership(data: Mapping[str, Any], where: str) -> ClassMembership:
    return ClassMembership(
        class_type=_parse_class_base(_require(data, "class_type", where), f"{where}.class_type"),
        kind=_enum_value(MethodKind, data.get("kind", "regular"), f"{where}.kind"),
        visibility=_enum_value(Visibility, data.get("visibility", "public"), f"{where}.visibility"),
        is_virtual=bool(data.get("is_virtual", False)),
        is_pure_virtual=bool(data.get("is_pure_virtual", False)),
        is_static=bool(data.get("is_static", False)),
        is_const=bool(data.get("is_const", False)),
        is_signal=bool(data.get("is_signal", False)),
        is_slot=bool(data.get("is_slot", False)),
    )


def parse_method(data: Mapping[str, Any], where: str = "method") -> NativeMethod:
    name = str(_require(data, "name", where))
    where = f"{where} ({name})"
    membership_data = data.get("class_membership")
    arguments = []
    for i, a in enumerate(_list(data, "arguments", where)):
        arg_where = f"{where}.arguments[{i}]"
        arguments.append(FunctionArgument(
            name=str(a.get("name", "")) if isinstance(a, Mapping) else "",
            argument_type=parse_type(_require(a, "type", arg_where), f"{arg_where}.type"),
            has_default_value=bool(a.get("has_default_value", False)),
        ))
    return_data = data.get("return_type")
    return NativeMethod(
        name=name,
        return_type=parse_type(return_data, f"{where}.return_type") if return_data is not None else NativeType.void(),
        arguments=tuple(arguments),
        class_membership=_parse_membership(membership_data, f"{where}.class_membership") if membership_data else None,
        template_arguments=_optional_types(data.get("template_arguments"), f"{where}.template_arguments"),
        template_arguments_values=_optional_types(data.get("template_arguments_values"), f"{where}.template_arguments_values"),
        is_ffi_whitelisted=bool(data.get("is_ffi_whitelisted", False)),
        is_fake_inherited_method=bool(data.get("is_fake_inherited_method", False)),
        include_file=str(data.get("include_file", "")),
    )


# --------------------------
# Database
# --------------------------

def _parse_classes(data: Any) -> Dict[str, ClassInfo]:
    classes: Dict[str, ClassInfo] = {}
    if isinstance(data, list):
        for name in data:
            classes[str(name)] = ClassInfo(name=str(name))
        return classes
    if not isinstance(data, Mapping):
        raise DatabaseFormatError("classes: expected an object or a list of names")
    for name, info in data.items():
        info = info or {}
        if not isinstance(info, Mapping):
            raise DatabaseFormatError(f"classes.{name}: expected an object")
        place = info.get("allocation_place")
        classes[str(name)] = ClassInfo(
            name=str(name),
            include_file=str(info.get("include_file", "")),
            allocation_place=_enum_value(AllocationPlace, place, f"classes.{name}.allocation_place") if place else None,
        )
    return classes


def type_database_from_dict(data: Mapping[str, Any]) -> TypeDatabase:
    """
    Build a TypeDatabase from the decoded JSON document.
    """
    if not isinstance(data, Mapping):
        raise DatabaseFormatError("database: expected a JSON object at top level")

    methods = [parse_method(m, f"methods[{i}]") for i, m in enumerate(_list(data, "methods", "database"))]

    pure_virtual: Any = _list(data, "pure_virtual_classes", "database") if data.get("pure_virtual_classes") is not None else None
    if pure_virtual is None:
        pure_virtual = {
            m.class_name for m in methods
            if m.class_membership is not None and m.class_membership.is_pure_virtual
        }

    signal_data = data.get("signal_argument_types")
    if signal_data is None:
        signal_types = collect_signal_argument_types(methods)
    else:
        signal_types = tuple(
            _optional_types(ts, f"signal_argument_types[{i}]") or ()
            for i, ts in enumerate(_list(data, "signal_argument_types", "database"))
        )

    database = TypeDatabase(
        methods=methods,
        classes=_parse_classes(data.get("classes") or {}),
        pure_virtual_classes=frozenset(str(c) for c in pure_virtual),
        signal_argument_types=signal_types,
        include_files=tuple(str(f) for f in _list(data, "include_files", "database")),
    )
    logger.info(
        "Loaded type database: %d method(s), %d class(es), %d signal argument tuple(s)",
        len(database.methods), len(database.classes), len(database.signal_argument_types),
    )
    return database


def load_type_database(path: Union[str, Path]) -> TypeDatabase:
    """
    Read a JSON type database snapshot from disk.
    """
    p = Path(path)
    try:
        with open(p, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise DatabaseFormatError(f"{p}: invalid JSON: {e}") from e
    except UnicodeDecodeError as e:
        raise DatabaseFormatError(f"{p}: not valid UTF-8: {e}") from e
    return type_database_from_dict(data)


__all__ = [
    "parse_type",
    "parse_method",
    "type_database_from_dict",
    "load_type_database",
]
