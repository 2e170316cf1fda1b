"""
Generate a flat, C-callable FFI surface for a native class library.

Typical use:

    from ffi_surface_generator import FfiGeneratorConfig, generate_ffi_headers
    from ffi_surface_generator.parsing.database_loader import load_type_database

    headers = generate_ffi_headers(load_type_database("db.json"), FfiGeneratorConfig("mylib"))
"""

from .assembler import generate_ffi_headers
from .errors import (
    DatabaseFormatError,
    EmptyOutput,
    FfiGenerationError,
    NamingExhausted,
    PolicyFailure,
    UnrepresentableType,
)
from .models import FfiGeneratorConfig, HeaderDescriptor, NamedFfiMethod, TypeDatabase

__version__ = "0.1.0"

__all__ = [
    "generate_ffi_headers",
    "FfiGeneratorConfig",
    "HeaderDescriptor",
    "NamedFfiMethod",
    "TypeDatabase",
    "FfiGenerationError",
    "PolicyFailure",
    "UnrepresentableType",
    "NamingExhausted",
    "EmptyOutput",
    "DatabaseFormatError",
    "__version__",
]
