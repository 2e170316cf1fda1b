#!/usr/bin/env python3
"""
Data models for the FFI surface generator.

This module provides immutable, serializable data structures to describe:
- Native C++ types (closed set of type bases plus indirection/const)
- Methods (free functions and class members of every kind)
- The type database handed over by the upstream header parser
- FFI signatures and the final, uniquely named FFI methods
- Slot wrapper descriptors and per-compilation-unit header descriptors
- Generation configuration and I/O context

The models are consumed by:
- The eligibility filter, signature translator and name resolver (core pipeline)
- The manifest writer and the Jinja2 surface report (via `to_dict()`)

Everything produced during a run is frozen: once a name is assigned to a
method it never changes, and no stage mutates its input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple, Union

from .utils import stable_signature_hash

# --------------------------
# Native type model
# --------------------------

class Indirection(Enum):
    NONE = auto()
    PTR = auto()
    REF = auto()


@dataclass(frozen=True)
class PrimitiveBase:
    """
    Built-in numeric, bool or enum-like scalar. `name` is the C++ spelling
    (e.g. "unsigned int", "qint64").
    """
    name: str

    def cpp_code(self) -> str:
        return self.name


@dataclass(frozen=True)
class ClassBase:
    name: str  # e.g. "QVector" or "ns::Widget"
    template_arguments: Optional[Tuple[NativeType, ...]] = None

    def cpp_code(self) -> str:
        if self.template_arguments:
            args = ", ".join(t.cpp_code() for t in self.template_arguments)
            return f"{self.name}< {args} >"
        return self.name

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "template_arguments": (
                [t.to_dict() for t in self.template_arguments]
                if self.template_arguments is not None
                else None
            ),
        }


@dataclass(frozen=True)
class FunctionPointerBase:
    return_type: NativeType
    arguments: Tuple[NativeType, ...] = ()
    allows_variadic_arguments: bool = False

    def cpp_code(self, name: str = "") -> str:
        args = ", ".join(t.cpp_code() for t in self.arguments)
        if self.allows_variadic_arguments:
            args = f"{args}, ..." if args else "..."
        return f"{self.return_type.cpp_code()} (*{name})({args})"


@dataclass(frozen=True)
class VoidBase:
    def cpp_code(self) -> str:
        return "void"


@dataclass(frozen=True)
class TemplateParameterBase:
    """
    Template parameter that is still unresolved, e.g. `T` in `QList<T>`.
    """
    nested_level: int = 0
    index: int = 0
    name: str = ""

    def cpp_code(self) -> str:
        return self.name or f"T{self.nested_level}_{self.index}"


TypeBase = Union[PrimitiveBase, ClassBase, FunctionPointerBase, VoidBase, TemplateParameterBase]


@dataclass(frozen=True)
class NativeType:
    base: TypeBase
    indirection: Indirection = Indirection.NONE
    is_const: bool = False

    @staticmethod
    def void() -> NativeType:
        return NativeType(base=VoidBase())

    @staticmethod
    def void_ptr() -> NativeType:
        return NativeType(base=VoidBase(), indirection=Indirection.PTR)

    @staticmethod
    def primitive(name: str, indirection: Indirection = Indirection.NONE, is_const: bool = False) -> NativeType:
        return NativeType(base=PrimitiveBase(name), indirection=indirection, is_const=is_const)

    @staticmethod
    def class_type(
        name: str,
        indirection: Indirection = Indirection.NONE,
        is_const: bool = False,
        template_arguments: Optional[Sequence[NativeType]] = None,
    ) -> NativeType:
        targs = tuple(template_arguments) if template_arguments is not None else None
        return NativeType(base=ClassBase(name, targs), indirection=indirection, is_const=is_const)

    @property
    def is_void(self) -> bool:
        return isinstance(self.base, VoidBase) and self.indirection == Indirection.NONE

    @property
    def is_class_by_value(self) -> bool:
        return isinstance(self.base, ClassBase) and self.indirection == Indirection.NONE

    def contains_template_parameter(self) -> bool:
        """
        True if this type, its template arguments or its function pointer
        signature refer to an unresolved template parameter.
        """
        base = self.base
        if isinstance(base, TemplateParameterBase):
            return True
        if isinstance(base, ClassBase):
            return any(t.contains_template_parameter() for t in base.template_arguments or ())
        if isinstance(base, FunctionPointerBase):
            if base.return_type.contains_template_parameter():
                return True
            return any(t.contains_template_parameter() for t in base.arguments)
        if isinstance(base, (PrimitiveBase, VoidBase)):
            return False
        raise TypeError(f"Unknown type base: {base!r}")

    def cpp_code(self, name: str = "") -> str:
        """
        C++ spelling of the type. When `name` is given, produce a declaration
        (needed for function pointers, where the name sits inside the type).
        """
        if isinstance(self.base, FunctionPointerBase):
            # function pointers never carry indirection in FFI-ready form
            return self.base.cpp_code(name)
        code = self.base.cpp_code()
        if self.is_const:
            code = f"const {code}"
        if self.indirection == Indirection.PTR:
            code = f"{code}*"
        elif self.indirection == Indirection.REF:
            code = f"{code}&"
        return f"{code} {name}" if name else code

    def to_dict(self) -> Dict:
        base = self.base
        if isinstance(base, PrimitiveBase):
            base_dict: Dict = {"kind": "primitive", "name": base.name}
        elif isinstance(base, ClassBase):
            base_dict = {"kind": "class", **base.to_dict()}
        elif isinstance(base, FunctionPointerBase):
            base_dict = {
                "kind": "function_pointer",
                "return_type": base.return_type.to_dict(),
                "arguments": [t.to_dict() for t in base.arguments],
                "allows_variadic_arguments": base.allows_variadic_arguments,
            }
        elif isinstance(base, VoidBase):
            base_dict = {"kind": "void"}
        elif isinstance(base, TemplateParameterBase):
            base_dict = {
                "kind": "template_parameter",
                "nested_level": base.nested_level,
                "index": base.index,
                "name": base.name,
            }
        else:
            raise TypeError(f"Unknown type base: {base!r}")
        base_dict["indirection"] = self.indirection.name.lower()
        base_dict["const"] = self.is_const
        base_dict["cpp_code"] = self.cpp_code()
        return base_dict


# --------------------------
# Method models
# --------------------------

class MethodKind(Enum):
    CONSTRUCTOR = auto()
    DESTRUCTOR = auto()
    REGULAR = auto()
    OPERATOR = auto()


class Visibility(Enum):
    PUBLIC = auto()
    PROTECTED = auto()
    PRIVATE = auto()


@dataclass(frozen=True)
class ClassMembership:
    class_type: ClassBase
    kind: MethodKind = MethodKind.REGULAR
    visibility: Visibility = Visibility.PUBLIC
    is_virtual: bool = False
    is_pure_virtual: bool = False
    is_static: bool = False
    is_const: bool = False
    is_signal: bool = False
    is_slot: bool = False


@dataclass(frozen=True)
class FunctionArgument:
    name: str
    argument_type: NativeType
    has_default_value: bool = False

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "argument_type": self.argument_type.to_dict(),
            "has_default_value": self.has_default_value,
        }


@dataclass(frozen=True)
class NativeMethod:
    """
    A free function or class member as described by the type database.
    Overloads are separate instances.
    """
    name: str
    return_type: NativeType
    arguments: Tuple[FunctionArgument, ...] = ()
    class_membership: Optional[ClassMembership] = None
    template_arguments: Optional[Tuple[NativeType, ...]] = None  # own unresolved parameters
    template_arguments_values: Optional[Tuple[NativeType, ...]] = None  # instantiation
    is_ffi_whitelisted: bool = False
    is_fake_inherited_method: bool = False
    include_file: str = ""

    @property
    def class_name(self) -> Optional[str]:
        if self.class_membership is None:
            return None
        return self.class_membership.class_type.name

    @property
    def kind(self) -> MethodKind:
        if self.class_membership is not None:
            return self.class_membership.kind
        if re.match(r"operator\b", self.name):
            return MethodKind.OPERATOR
        return MethodKind.REGULAR

    @property
    def is_constructor(self) -> bool:
        return self.kind == MethodKind.CONSTRUCTOR

    @property
    def is_destructor(self) -> bool:
        return self.kind == MethodKind.DESTRUCTOR

    @property
    def qualified_name(self) -> str:
        if self.class_membership is not None:
            return f"{self.class_membership.class_type.cpp_code()}::{self.name}"
        return self.name

    def all_involved_types(self) -> List[NativeType]:
        types = [a.argument_type for a in self.arguments]
        types.append(self.return_type)
        if self.class_membership is not None:
            types.append(NativeType(base=self.class_membership.class_type))
        types.extend(self.template_arguments_values or ())
        return types

    def short_text(self) -> str:
        """
        Human-friendly C++ signature, used for diagnostics and stable ordering.
        """
        parts: List[str] = []
        membership = self.class_membership
        if membership is not None:
            if membership.is_static:
                parts.append("static")
            if membership.is_virtual:
                parts.append("virtual")
            if membership.is_signal:
                parts.append("[signal]")
            if membership.is_slot:
                parts.append("[slot]")
        if not (self.is_constructor or self.is_destructor):
            parts.append(self.return_type.cpp_code())
        name = self.qualified_name
        if self.template_arguments_values:
            name += "<{}>".format(", ".join(t.cpp_code() for t in self.template_arguments_values))
        elif self.template_arguments:
            name += "<{}>".format(", ".join(t.cpp_code() for t in self.template_arguments))
        args = []
        for a in self.arguments:
            decl = a.argument_type.cpp_code(a.name)
            args.append(f"{decl} = ?" if a.has_default_value else decl)
        text = "{}({})".format(name, ", ".join(args))
        if membership is not None and membership.is_const:
            text += " const"
        if membership is not None and membership.is_pure_virtual:
            text += " = 0"
        parts.append(text)
        return " ".join(parts)

    def receiver_id(self) -> str:
        """
        Identifier the event runtime uses to route a connection to this method:
        "1" for slots, "2" for signals, then the normalized signature.
        """
        membership = self.class_membership
        if membership is None or not (membership.is_slot or membership.is_signal):
            raise ValueError(f"receiver_id requires a signal or slot: {self.short_text()}")
        prefix = "1" if membership.is_slot else "2"
        args = ",".join(a.argument_type.cpp_code() for a in self.arguments)
        return f"{prefix}{self.name}({args})"

    def to_dict(self) -> Dict:
        membership = self.class_membership
        return {
            "name": self.name,
            "qualified_name": self.qualified_name,
            "class_name": self.class_name,
            "kind": self.kind.name,
            "visibility": membership.visibility.name if membership else None,
            "is_static": bool(membership and membership.is_static),
            "is_const": bool(membership and membership.is_const),
            "is_virtual": bool(membership and membership.is_virtual),
            "is_slot": bool(membership and membership.is_slot),
            "return_type": self.return_type.to_dict(),
            "arguments": [a.to_dict() for a in self.arguments],
            "include_file": self.include_file,
            "short_text": self.short_text(),
        }


# --------------------------
# FFI models
# --------------------------

class AllocationPlace(Enum):
    STACK = auto()
    HEAP = auto()


class ArgumentMeaning(Enum):
    THIS = auto()
    ARGUMENT = auto()
    RETURN_VALUE = auto()


class TypeConversion(Enum):
    NO_CHANGE = auto()
    VALUE_TO_POINTER = auto()
    REFERENCE_TO_POINTER = auto()
    FLAGS_TO_UINT = auto()


@dataclass(frozen=True)
class FfiType:
    original_type: NativeType
    ffi_type: NativeType
    conversion: TypeConversion = TypeConversion.NO_CHANGE

    def to_dict(self) -> Dict:
        return {
            "original_type": self.original_type.cpp_code(),
            "ffi_type": self.ffi_type.cpp_code(),
            "conversion": self.conversion.name,
        }


@dataclass(frozen=True)
class FfiArgument:
    name: str
    argument_type: FfiType
    meaning: ArgumentMeaning = ArgumentMeaning.ARGUMENT
    index: Optional[int] = None  # position in the native argument list

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "meaning": self.meaning.name,
            "index": self.index,
            **self.argument_type.to_dict(),
        }


@dataclass(frozen=True)
class FfiSignature:
    arguments: Tuple[FfiArgument, ...]
    return_type: FfiType
    allocation_place: Optional[AllocationPlace] = None

    @property
    def native_arguments(self) -> Tuple[FfiArgument, ...]:
        return tuple(a for a in self.arguments if a.meaning == ArgumentMeaning.ARGUMENT)

    def c_prototype(self, c_name: str) -> str:
        args = ", ".join(a.argument_type.ffi_type.cpp_code(a.name) for a in self.arguments)
        return f"{self.return_type.ffi_type.cpp_code()} {c_name}({args or 'void'})"

    def to_dict(self) -> Dict:
        return {
            "arguments": [a.to_dict() for a in self.arguments],
            "return_type": self.return_type.to_dict(),
            "allocation_place": self.allocation_place.name if self.allocation_place else None,
        }


@dataclass(frozen=True)
class FfiCandidate:
    """
    A translated method waiting for its final name.
    """
    method: NativeMethod
    signature: FfiSignature
    base_name: str
    include_file_base_name: str


@dataclass(frozen=True)
class NamedFfiMethod:
    method: NativeMethod
    signature: FfiSignature
    c_name: str
    include_file_base_name: str = ""

    @property
    def signature_hash(self) -> str:
        return stable_signature_hash(self.signature.c_prototype(self.c_name))

    def to_dict(self) -> Dict:
        return {
            "c_name": self.c_name,
            "c_prototype": self.signature.c_prototype(self.c_name),
            "signature_hash": self.signature_hash,
            "method": self.method.to_dict(),
            "signature": self.signature.to_dict(),
        }


@dataclass(frozen=True)
class SlotWrapperDescriptor:
    class_name: str
    arguments: Tuple[FfiType, ...]
    function_type: FunctionPointerBase
    receiver_id: str

    def to_dict(self) -> Dict:
        return {
            "class_name": self.class_name,
            "arguments": [a.to_dict() for a in self.arguments],
            "function_type": self.function_type.cpp_code(),
            "receiver_id": self.receiver_id,
        }


@dataclass(frozen=True)
class HeaderDescriptor:
    include_file_base_name: str
    methods: Tuple[NamedFfiMethod, ...]
    slot_wrappers: Tuple[SlotWrapperDescriptor, ...] = ()

    def to_dict(self) -> Dict:
        return {
            "include_file_base_name": self.include_file_base_name,
            "methods": [m.to_dict() for m in self.methods],
            "slot_wrappers": [w.to_dict() for w in self.slot_wrappers],
        }


# --------------------------
# Type database
# --------------------------

@dataclass(frozen=True)
class ClassInfo:
    name: str
    include_file: str = ""
    allocation_place: Optional[AllocationPlace] = None  # None: use configured default


@dataclass
class TypeDatabase:
    """
    Structured description of the native API, built once by the upstream
    parser and treated as read-only by the generator.
    """
    methods: List[NativeMethod] = field(default_factory=list)
    classes: Dict[str, ClassInfo] = field(default_factory=dict)
    pure_virtual_classes: FrozenSet[str] = frozenset()
    signal_argument_types: Tuple[Tuple[NativeType, ...], ...] = ()
    include_files: Tuple[str, ...] = ()

    def is_known_class(self, name: str) -> bool:
        return name in self.classes

    def has_pure_virtual_methods(self, class_name: str) -> bool:
        return class_name in self.pure_virtual_classes

    def allocation_place(self, class_name: str, default: AllocationPlace) -> AllocationPlace:
        info = self.classes.get(class_name)
        if info is None or info.allocation_place is None:
            return default
        return info.allocation_place

    def all_include_files(self) -> List[str]:
        names = set(self.include_files)
        names.update(m.include_file for m in self.methods if m.include_file)
        return sorted(names)


# --------------------------
# Configuration / context
# --------------------------

FilterFn = Callable[[NativeMethod], bool]

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class FfiGeneratorConfig:
    """
    Parameters of the core transform.

    `filters` are pure predicates called once per method; returning False
    excludes the method, raising aborts the run.
    """
    library_name: str
    filters: Tuple[FilterFn, ...] = ()
    flags_class_name: str = "QFlags"
    event_base_class_name: str = "QObject"
    slots_unit_name: str = "slots"
    default_allocation_place: AllocationPlace = AllocationPlace.HEAP

    def __post_init__(self) -> None:
        if not _IDENTIFIER_RE.match(self.library_name or ""):
            raise ValueError(f"Library name must be a C identifier: {self.library_name!r}")
        if not _IDENTIFIER_RE.match(self.slots_unit_name or ""):
            raise ValueError(f"Slots unit name must be a C identifier: {self.slots_unit_name!r}")
        object.__setattr__(self, "filters", tuple(self.filters))


@dataclass
class GenerationContext:
    """
    Output parameters for a single CLI run. Paths are absolute.
    """
    output_dir: Path
    templates_dir: Optional[Path]
    library_name: str
    dry_run: bool = False


__all__ = [
    "Indirection",
    "PrimitiveBase",
    "ClassBase",
    "FunctionPointerBase",
    "VoidBase",
    "TemplateParameterBase",
    "TypeBase",
    "NativeType",
    "MethodKind",
    "Visibility",
    "ClassMembership",
    "FunctionArgument",
    "NativeMethod",
    "AllocationPlace",
    "ArgumentMeaning",
    "TypeConversion",
    "FfiType",
    "FfiArgument",
    "FfiSignature",
    "FfiCandidate",
    "NamedFfiMethod",
    "SlotWrapperDescriptor",
    "HeaderDescriptor",
    "ClassInfo",
    "TypeDatabase",
    "FilterFn",
    "FfiGeneratorConfig",
    "GenerationContext",
]
