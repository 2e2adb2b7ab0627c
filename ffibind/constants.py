"""Named constants: eliminates magic strings across the codebase."""

from __future__ import annotations

GENERATOR_NAME = "ffibind"
GENERATOR_VERSION = "0.1.0"

BY_REFERENCE_SUFFIX = "ByReference"
SINGLETON_SUFFIX = "Singleton"
ESCAPE_SUFFIX = "_"

ANONYMOUS_PARAM_NAMES: frozenset[str] = frozenset({"", "_"})
ANONYMOUS_PARAM_TEMPLATE = "arg{index}"

IDENTIFIER_PATTERN = r"^[A-Za-z_][A-Za-z0-9_]*$"

UNSUPPORTED_LITERAL_TEMPLATE = "Unsupported literal for constant {name}"
UNSUPPORTED_TYPE_TEMPLATE = "Unsupported type {ty} in {name}"

DEFAULT_POINTER_SIZE = 8
DEFAULT_ENUM_SIZE = 4

JNA_DEFAULT_INTERFACE_NAME = "Bindings"
JNA_MAX_POINTER_DEPTH = 2

CTYPES_DEFAULT_LIBRARY_HANDLE = "_library"
CTYPES_LOADER_NAME = "_load_library"
CTYPES_LIBRARY_NAME_CONSTANT = "_LIBRARY_NAME"
CTYPES_BINDER_NAME = "_bind"
CTYPES_FUNCTION_CACHE_NAME = "_functions"
CTYPES_FROM_HANDLE = "from_handle"

AUTOGEN_VERSION_TEMPLATE = "Generated with {generator}:{version}"

BACKEND_JAVA_JNA = "java_jna"
BACKEND_PYTHON_CTYPES = "python_ctypes"
