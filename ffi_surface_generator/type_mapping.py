#!/usr/bin/env python3
"""
Type mapping from native C++ signatures to FFI (C-linkage) signatures.

This module analyzes methods from the type database (see `models.py`) and
computes how to expose them through flat C functions. It provides:

- Type captions (short and full) used to build and disambiguate symbol names
- Per-type translation rules (primitives, classes, function pointers, void)
- Per-method FFI signatures, including the implicit `this` argument and the
  `output` argument of stack-allocated return values
- The collision-grouping base name of each method

Typical usage (high level):

    from .type_mapping import FfiSignatureTranslator, base_name

    translator = FfiSignatureTranslator(database, config)
    for method in database.methods:
        try:
            signature = translator.translate(method)
        except UnrepresentableType:
            continue  # skip this method only
        name = base_name(config.library_name, method, signature, "qwidget")

Design notes:
- Translation never mutates the method; it only derives new frozen values.
- By-value classes cross the boundary as pointers. Where the pointee lives
  is decided by the allocation place: per-class policy from the database,
  the configured default, or an explicit override (used for synthesized
  slot wrappers, which are always heap-allocated).
- Function pointer types are only accepted when none of their parts needs
  a conversion, because the callback is invoked with the native arguments
  as-is.
"""

from __future__ import annotations

from enum import Enum, auto
from typing import Dict, FrozenSet, Iterable, List, Optional, Union
import logging

from .errors import UnrepresentableType
from .models import (
    AllocationPlace,
    ArgumentMeaning,
    ClassBase,
    FfiArgument,
    FfiGeneratorConfig,
    FfiSignature,
    FfiType,
    FunctionPointerBase,
    Indirection,
    MethodKind,
    NativeMethod,
    NativeType,
    PrimitiveBase,
    TemplateParameterBase,
    TypeBase,
    TypeConversion,
    TypeDatabase,
    VoidBase,
)
from .utils import join_identifier, sanitize_identifier

logger = logging.getLogger(__name__)


# --------------------------
# Captions
# --------------------------

class TypeCaptionStrategy(Enum):
    SHORT = auto()  # base type only: "QString"
    FULL = auto()   # with const and indirection: "const_QString_ref"


def base_caption(base: TypeBase) -> str:
    if isinstance(base, PrimitiveBase):
        return sanitize_identifier(base.name)
    if isinstance(base, ClassBase):
        targs = [type_caption(t) for t in base.template_arguments or ()]
        return join_identifier(sanitize_identifier(base.name), *targs)
    if isinstance(base, FunctionPointerBase):
        return "func"
    if isinstance(base, VoidBase):
        return "void"
    if isinstance(base, TemplateParameterBase):
        return sanitize_identifier(base.name) or f"T_{base.nested_level}_{base.index}"
    raise TypeError(f"Unknown type base: {base!r}")


def type_caption(t: NativeType, strategy: TypeCaptionStrategy = TypeCaptionStrategy.SHORT) -> str:
    """
    Identifier-safe caption of a type.
      SHORT: 'const QString&' -> 'QString'
      FULL:  'const QString&' -> 'const_QString_ref'
    """
    caption = base_caption(t.base)
    if strategy == TypeCaptionStrategy.FULL:
        if t.indirection == Indirection.PTR:
            caption = f"{caption}_ptr"
        elif t.indirection == Indirection.REF:
            caption = f"{caption}_ref"
        if t.is_const:
            caption = f"const_{caption}"
    return caption


# --------------------------
# Operators
# --------------------------

# symbol -> token, or {operand count: token} where the arity matters
_OPERATOR_TOKENS: Dict[str, Union[str, Dict[int, str]]] = {
    "=": "assign",
    "+": {1: "unary_plus", 2: "add"},
    "-": {1: "neg", 2: "sub"},
    "*": {1: "deref", 2: "mul"},
    "/": "div",
    "%": "rem",
    "++": {1: "inc", 2: "inc_postfix"},
    "--": {1: "dec", 2: "dec_postfix"},
    "==": "eq",
    "!=": "neq",
    "<": "lt",
    "<=": "le",
    ">": "gt",
    ">=": "ge",
    "!": "not",
    "&&": "and",
    "||": "or",
    "~": "bit_not",
    "&": {1: "address_of", 2: "bit_and"},
    "|": "bit_or",
    "^": "bit_xor",
    "<<": "shl",
    ">>": "shr",
    "+=": "add_assign",
    "-=": "sub_assign",
    "*=": "mul_assign",
    "/=": "div_assign",
    "%=": "rem_assign",
    "&=": "bit_and_assign",
    "|=": "bit_or_assign",
    "^=": "bit_xor_assign",
    "<<=": "shl_assign",
    ">>=": "shr_assign",
    "[]": "index",
    "()": "call",
    "->": "arrow",
}


def operator_c_name(method: NativeMethod) -> str:
    """
    Demangled operator token, e.g. 'operator+' with two operands -> 'operator_add'.
    Conversion operators ('operator int') become 'convert_to_<return caption>'.
    """
    symbol = method.name[len("operator"):].strip().replace(" ", "")
    operands = len(method.arguments)
    if method.class_membership is not None and not method.class_membership.is_static:
        operands += 1
    token = _OPERATOR_TOKENS.get(symbol)
    if isinstance(token, dict):
        token = token.get(operands)
    if token:
        return f"operator_{token}"
    if symbol and (symbol[0].isalpha() or symbol[0] == "_") and symbol not in ("new", "delete", "new[]", "delete[]"):
        return f"convert_to_{type_caption(method.return_type, TypeCaptionStrategy.FULL)}"
    raise UnrepresentableType(method.name, f"operator with {operands} operand(s) has no C name")


# --------------------------
# Translator
# --------------------------

class FfiSignatureTranslator:
    """
    Translates native method signatures into FFI signatures.

    Build with the database and configuration; `extra_classes` names classes
    that exist only in this run (e.g. synthesized slot wrappers).
    """

    def __init__(
        self,
        database: TypeDatabase,
        config: FfiGeneratorConfig,
        extra_classes: Iterable[str] = (),
    ) -> None:
        self.database = database
        self.config = config
        self.extra_classes: FrozenSet[str] = frozenset(extra_classes)

    # ---- Public API ----

    def is_known_class(self, name: str) -> bool:
        return name in self.extra_classes or self.database.is_known_class(name)

    def translate(
        self,
        method: NativeMethod,
        allocation_override: Optional[AllocationPlace] = None,
    ) -> FfiSignature:
        """
        Compute the FFI signature of a method. Raises UnrepresentableType if
        any involved type has no valid mapping.
        """
        place = self.allocation_place(method, allocation_override)
        membership = method.class_membership
        arguments: List[FfiArgument] = []

        if membership is not None:
            self._check_class(membership.class_type)
            if not membership.is_static and not method.is_constructor:
                this_type = NativeType(base=membership.class_type, indirection=Indirection.PTR, is_const=membership.is_const)
                arguments.append(FfiArgument(name="this_ptr", argument_type=FfiType(this_type, this_type), meaning=ArgumentMeaning.THIS))

        for index, arg in enumerate(method.arguments):
            ffi_type = self.translate_type(arg.argument_type, is_return=False)
            name = sanitize_identifier(arg.name) or f"arg{index}"
            arguments.append(FfiArgument(name=name, argument_type=ffi_type, meaning=ArgumentMeaning.ARGUMENT, index=index))

        if membership is not None and membership.kind == MethodKind.CONSTRUCTOR:
            value = NativeType(base=membership.class_type)
            return_value = FfiType(value, NativeType(base=membership.class_type, indirection=Indirection.PTR), TypeConversion.VALUE_TO_POINTER)
        elif method.is_destructor:
            return_value = FfiType(NativeType.void(), NativeType.void())
        else:
            return_value = self.translate_type(method.return_type, is_return=True)

        allocates_return = method.is_constructor or self._needs_allocation(method.return_type)
        if allocates_return and place == AllocationPlace.STACK:
            # caller provides the storage; the wrapper constructs into it
            arguments.append(FfiArgument(name="output", argument_type=return_value, meaning=ArgumentMeaning.RETURN_VALUE))
            return_value = FfiType(NativeType.void(), NativeType.void())

        return FfiSignature(arguments=tuple(arguments), return_type=return_value, allocation_place=place)

    def allocation_place(
        self,
        method: NativeMethod,
        allocation_override: Optional[AllocationPlace] = None,
    ) -> Optional[AllocationPlace]:
        """
        Where by-value objects created by this method live, or None if the
        method creates/destroys no object.
        """
        membership = method.class_membership
        returned = method.return_type.base
        if membership is not None and membership.kind in (MethodKind.CONSTRUCTOR, MethodKind.DESTRUCTOR):
            class_name = membership.class_type.name
        elif isinstance(returned, ClassBase) and self._needs_allocation(method.return_type):
            class_name = returned.name
        else:
            return None
        if allocation_override is not None:
            return allocation_override
        return self.database.allocation_place(class_name, self.config.default_allocation_place)

    def translate_type(self, t: NativeType, is_return: bool) -> FfiType:
        base = t.base
        if isinstance(base, VoidBase):
            if t.indirection == Indirection.NONE:
                if is_return:
                    return FfiType(t, t)
                raise UnrepresentableType(t.cpp_code(), "void is only valid as a return type")
            if t.indirection == Indirection.REF:
                raise UnrepresentableType(t.cpp_code(), "reference to void")
            return FfiType(t, t)
        if isinstance(base, PrimitiveBase):
            return self._reference_to_pointer(t)
        if isinstance(base, ClassBase):
            if base.name == self.config.flags_class_name and (
                t.indirection == Indirection.NONE or (t.indirection == Indirection.REF and t.is_const)
            ):
                return FfiType(t, NativeType.primitive("unsigned int"), TypeConversion.FLAGS_TO_UINT)
            self._check_class(base)
            if t.indirection == Indirection.NONE:
                ffi = NativeType(base=base, indirection=Indirection.PTR, is_const=not is_return)
                return FfiType(t, ffi, TypeConversion.VALUE_TO_POINTER)
            return self._reference_to_pointer(t)
        if isinstance(base, FunctionPointerBase):
            if t.indirection != Indirection.NONE:
                raise UnrepresentableType(t.cpp_code(), "pointer or reference to a function pointer")
            if base.allows_variadic_arguments:
                raise UnrepresentableType(t.cpp_code(), "variadic function pointer")
            parts = [self.translate_type(base.return_type, is_return=True)]
            parts.extend(self.translate_type(a, is_return=False) for a in base.arguments)
            if any(p.conversion != TypeConversion.NO_CHANGE for p in parts):
                raise UnrepresentableType(t.cpp_code(), "function pointer signature requires conversion")
            return FfiType(t, t)
        if isinstance(base, TemplateParameterBase):
            raise UnrepresentableType(t.cpp_code(), "unresolved template parameter")
        raise TypeError(f"Unknown type base: {base!r}")

    # ---- Internals ----

    def _needs_allocation(self, t: NativeType) -> bool:
        return t.is_class_by_value and getattr(t.base, "name", None) != self.config.flags_class_name

    def _reference_to_pointer(self, t: NativeType) -> FfiType:
        if t.indirection == Indirection.REF:
            ffi = NativeType(base=t.base, indirection=Indirection.PTR, is_const=t.is_const)
            return FfiType(t, ffi, TypeConversion.REFERENCE_TO_POINTER)
        return FfiType(t, t)

    def _check_class(self, base: ClassBase) -> None:
        if not self.is_known_class(base.name):
            raise UnrepresentableType(base.cpp_code(), "class is not known to the type database")
        for targ in base.template_arguments or ():
            if targ.contains_template_parameter():
                raise UnrepresentableType(base.cpp_code(), "template argument is an unresolved template parameter")
            if isinstance(targ.base, FunctionPointerBase):
                raise UnrepresentableType(base.cpp_code(), "function pointer template arguments are not supported")
            if isinstance(targ.base, ClassBase):
                self._check_class(targ.base)


# --------------------------
# Base names
# --------------------------

def base_name(
    library_name: str,
    method: NativeMethod,
    signature: FfiSignature,
    include_file_base_name: str,
) -> str:
    """
    Collision-grouping name of a method:
      members:        {library}_{class caption}_{method part}
      free functions: {library}_{unit}_G_{method part}
    Template instantiations add the full captions of their argument values
    to the method part, e.g. qobject_cast<A*> -> ..._qobject_cast_A_ptr.
    Overloads intentionally share this name; see naming.NameCollisionResolver.
    """
    membership = method.class_membership
    if membership is not None:
        scope = type_caption(NativeType(base=membership.class_type))
    else:
        scope = join_identifier(sanitize_identifier(include_file_base_name), "G")

    place = signature.allocation_place
    if method.kind == MethodKind.CONSTRUCTOR:
        part = "new" if place == AllocationPlace.HEAP else "constructor"
    elif method.kind == MethodKind.DESTRUCTOR:
        part = "delete" if place == AllocationPlace.HEAP else "destructor"
    else:
        if method.kind == MethodKind.OPERATOR:
            part = operator_c_name(method)
        else:
            part = sanitize_identifier(method.name.replace("::", "_"))
        if method.template_arguments_values:
            values = [type_caption(t, TypeCaptionStrategy.FULL) for t in method.template_arguments_values]
            part = join_identifier(part, *values)
        if place == AllocationPlace.HEAP:
            part = f"{part}_as_ptr"
        elif place == AllocationPlace.STACK:
            part = f"{part}_to_output"
    if not part:
        raise UnrepresentableType(method.name, "method name yields an empty C identifier")
    return join_identifier(library_name, scope, part)


__all__ = [
    "TypeCaptionStrategy",
    "base_caption",
    "type_caption",
    "operator_c_name",
    "FfiSignatureTranslator",
    "base_name",
]
