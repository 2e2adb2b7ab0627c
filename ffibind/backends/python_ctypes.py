"""Python/ctypes back-end: an importable module binding the library lazily."""

from __future__ import annotations

import keyword
import logging
import math
from collections import defaultdict
from typing import Callable

from ..descriptor import (
    ConstantDef,
    EnumDef,
    FunctionDef,
    ModuleDescriptor,
    OpaqueDef,
    PassingMode,
    Record,
    StructDef,
    TypedefDef,
)
from ..layout import Constructor, StructLayout, StructVariant
from ..naming import Casing, NamingPolicy
from ..policy import BackendPolicy
from ..types import (
    CHAR8,
    Array,
    EnumRef,
    FunctionPointer,
    NativeType,
    OpaqueRef,
    Pointer,
    Primitive,
    PrimitiveKind,
    StructRef,
    UnionRef,
    Void,
    pointer_to,
)
from ..writer import CodeWriter
from .. import constants
from ._base import BaseBackend, TypePosition

logger = logging.getLogger(__name__)

_MODULE_NAMES: frozenset[str] = frozenset(
    {
        "ctypes",
        "enum",
        "warnings",
        "mro",
        "_fields_",
        "_pack_",
        "_anonymous_",
        constants.CTYPES_LOADER_NAME,
        constants.CTYPES_LIBRARY_NAME_CONSTANT,
        constants.CTYPES_BINDER_NAME,
        constants.CTYPES_FUNCTION_CACHE_NAME,
        constants.CTYPES_FROM_HANDLE,
    }
)

_PRIMITIVES: dict[tuple[PrimitiveKind, int | None], str] = {
    (PrimitiveKind.BOOL, 8): "ctypes.c_bool",
    (PrimitiveKind.BOOL, 32): "ctypes.c_int32",
    (PrimitiveKind.CHAR, 8): "ctypes.c_char",
    (PrimitiveKind.CHAR, 16): "ctypes.c_uint16",
    (PrimitiveKind.CHAR, 32): "ctypes.c_uint32",
    (PrimitiveKind.INT, 8): "ctypes.c_int8",
    (PrimitiveKind.INT, 16): "ctypes.c_int16",
    (PrimitiveKind.INT, 32): "ctypes.c_int32",
    (PrimitiveKind.INT, 64): "ctypes.c_int64",
    (PrimitiveKind.UINT, 8): "ctypes.c_uint8",
    (PrimitiveKind.UINT, 16): "ctypes.c_uint16",
    (PrimitiveKind.UINT, 32): "ctypes.c_uint32",
    (PrimitiveKind.UINT, 64): "ctypes.c_uint64",
    (PrimitiveKind.FLOAT, 32): "ctypes.c_float",
    (PrimitiveKind.FLOAT, 64): "ctypes.c_double",
    (PrimitiveKind.SIZE, None): "ctypes.c_size_t",
    (PrimitiveKind.SSIZE, None): "ctypes.c_ssize_t",
}

_CONSTANT_TYPES: dict[PrimitiveKind, str] = {
    PrimitiveKind.BOOL: "bool",
    PrimitiveKind.CHAR: "int",
    PrimitiveKind.INT: "int",
    PrimitiveKind.UINT: "int",
    PrimitiveKind.SIZE: "int",
    PrimitiveKind.SSIZE: "int",
    PrimitiveKind.FLOAT: "float",
}

_ENUM_STORAGE = "ctypes.c_int32"

_C_STRING = pointer_to(CHAR8)

_FROM_HANDLE_BODIES: dict[PassingMode, str] = {
    PassingMode.BY_VALUE: (
        "return cls.from_buffer_copy(ctypes.string_at(handle, ctypes.sizeof(cls)))"
    ),
    PassingMode.BY_REFERENCE: (
        "return cls.from_address(ctypes.cast(handle, ctypes.c_void_p).value)"
    ),
}

_CLASS_SUMMARIES: dict[PassingMode, str] = {
    PassingMode.BY_VALUE: "Owned copy of the native ``{name}`` {kind}.",
    PassingMode.BY_REFERENCE: "View of a native ``{name}`` {kind} in foreign memory.",
}


def _docstring(out: CodeWriter, lines: list[str]) -> None:
    escaped = [line.replace("\\", "\\\\").replace('"""', '\\"\\"\\"') for line in lines]
    if not escaped:
        return
    if len(escaped) == 1:
        out.line(f'"""{escaped[0]}"""')
        return
    out.line(f'"""{escaped[0]}')
    out.line()
    out.lines(escaped[1:])
    out.line('"""')


def _doc_lines(doc: tuple[str, ...], deprecated: str | None) -> list[str]:
    lines = [line.strip() for line in doc]
    if deprecated is not None:
        lines.append(f"Deprecated: {deprecated}" if deprecated else "Deprecated.")
    return lines


def _integer_range(kind: PrimitiveKind, bits: int) -> tuple[int, int]:
    if kind in (PrimitiveKind.INT, PrimitiveKind.SSIZE):
        return -(2 ** (bits - 1)), 2 ** (bits - 1) - 1
    return 0, 2**bits - 1


# ── _fields_ scheduling ──────────────────────────────────────────

Resolver = Callable[[NativeType], NativeType]


def _identity(ty: NativeType) -> NativeType:
    return ty


def _record_dependencies(
    ty: NativeType, resolve: Resolver = _identity, by_value: bool = True
) -> list[tuple[str, bool]]:
    """Record names *ty* mentions, each flagged whether it is embedded by value."""
    ty = resolve(ty)
    if isinstance(ty, (StructRef, UnionRef)):
        return [(ty.name, by_value)]
    if isinstance(ty, Array):
        return _record_dependencies(ty.of, resolve, by_value)
    if isinstance(ty, Pointer):
        return _record_dependencies(ty.to, resolve, False)
    if isinstance(ty, FunctionPointer):
        found: list[tuple[str, bool]] = []
        for inner in (*ty.params, ty.returns):
            found.extend(_record_dependencies(inner, resolve, False))
        return found
    return []


class FieldsSchedule:
    """Decides where each record's ``_fields_`` assignment is written.

    ctypes needs every class named in ``_fields_`` to exist, and every
    record embedded by value to be complete, before the assignment runs.
    Assignments that can run right after their own class statement are
    *inline*; the rest are appended, in dependency order, to the last
    variant block of the first record after which they can run.

    A transparent struct has no class statement: its alias assignment
    only needs the classes it names to exist. *resolve* sees through
    typedefs and transparent structs, so nothing depends on an alias.
    """

    def __init__(
        self,
        records: tuple[Record, ...],
        skipped: frozenset[str] = frozenset(),
        resolve: Resolver = _identity,
    ):
        self._active = [r for r in records if r.name not in skipped]
        self._index = {r.name: i for i, r in enumerate(self._active)}
        self._values: dict[str, list[str]] = {}
        self._classes: dict[str, list[str]] = {}
        for record in self._active:
            deps = [
                dep
                for f in record.fields
                for dep in _record_dependencies(f.ty, resolve)
                if dep[0] in self._index
            ]
            if isinstance(record, StructDef) and record.transparent:
                self._values[record.name] = []
                self._classes[record.name] = [name for name, _ in deps]
                continue
            self._values[record.name] = [name for name, by_value in deps if by_value]
            self._classes[record.name] = [name for name, by_value in deps if not by_value]
        self._slots: dict[str, int] = {}
        for record in self._active:
            self._slot(record.name)
        self.inline: frozenset[str] = frozenset(
            r.name for r in self._active if self._is_inline(r.name)
        )
        self.deferred: dict[str, list[str]] = defaultdict(list)
        for name in self._dependency_order():
            if name not in self.inline:
                host = self._active[self._slots[name]].name
                self.deferred[host].append(name)

    def _slot(self, name: str) -> int:
        cached = self._slots.get(name)
        if cached is not None:
            return cached
        candidates = [self._index[name]]
        candidates.extend(self._index[dep] for dep in self._classes[name])
        candidates.extend(self._slot(dep) for dep in self._values[name])
        self._slots[name] = max(candidates)
        return self._slots[name]

    def _is_inline(self, name: str) -> bool:
        index = self._index[name]
        return (
            self._slots[name] == index
            and name not in self._classes[name]
            and all(self._slots[dep] < index for dep in self._values[name])
        )

    def _dependency_order(self) -> list[str]:
        order: list[str] = []
        seen: set[str] = set()

        def visit(name: str) -> None:
            if name in seen:
                return
            seen.add(name)
            for dep in self._values[name]:
                visit(dep)
            order.append(name)

        for record in self._active:
            visit(record.name)
        return order


class PythonCtypesBackend(BaseBackend):
    NAME = constants.BACKEND_PYTHON_CTYPES
    INDENT = "    "
    MEMBER_LEVEL = 0
    COMMENT_TEMPLATE = "# {text}"
    MAX_POINTER_DEPTH = None
    SHARED_NAMESPACE = True

    PRIMITIVE_TYPES = _PRIMITIVES

    @classmethod
    def default_policy(cls, **overrides) -> BackendPolicy:
        handle = (
            overrides.pop("default_library_name", "")
            or constants.CTYPES_DEFAULT_LIBRARY_HANDLE
        )
        naming = NamingPolicy(
            types=Casing.PASCAL,
            functions=Casing.SNAKE,
            constants=Casing.UPPER_SNAKE,
            fields=Casing.PRESERVE,
            variants=Casing.UPPER_SNAKE,
            params=Casing.SNAKE,
            reserved=frozenset(keyword.kwlist) | _MODULE_NAMES | {handle},
        )
        fields = {
            "language": cls.NAME,
            "naming": naming,
            "default_library_name": handle,
        }
        fields.update(overrides)
        return BackendPolicy(**fields)

    def mark_placeholders(self, skipped: frozenset[str]) -> None:
        super().mark_placeholders(skipped)
        self._schedule = FieldsSchedule(
            self._descriptor.records(), skipped, self.resolve_alias
        )
        logger.debug(
            "_fields_ schedule: inline=%s deferred=%s",
            sorted(self._schedule.inline),
            dict(self._schedule.deferred),
        )

    @property
    def library_handle(self) -> str:
        return self.policy.default_library_name or constants.CTYPES_DEFAULT_LIBRARY_HANDLE

    def associated_constant_name(self, struct: StructDef, const: ConstantDef) -> str:
        return self.naming.constant_name(f"{struct.name}_{const.name}")

    def associated_constant_names(self, struct: StructDef) -> list[tuple[str, str, str]]:
        return [
            (
                "module",
                self.associated_constant_name(struct, const),
                f"constant {struct.name}.{const.name}",
            )
            for const in struct.constants
        ]

    # ── type mapping ─────────────────────────────────────────────

    def _map_type(self, ty: NativeType, position: TypePosition, owner: str) -> str:
        ty = self.resolve_alias(ty)
        if position == TypePosition.CONSTANT:
            return self._constant_type(ty, owner)
        if isinstance(ty, Void):
            return "None"
        if isinstance(ty, Primitive):
            return self.primitive(ty, owner)
        if isinstance(ty, EnumRef):
            return _ENUM_STORAGE
        if isinstance(ty, (StructRef, UnionRef)):
            return self.struct_type_name(ty.name, PassingMode.BY_VALUE)
        if isinstance(ty, OpaqueRef):
            raise self.unsupported(ty, owner, "opaque types travel behind pointers only")
        if isinstance(ty, Array):
            element = self._map_type(ty.of, TypePosition.FIELD, owner)
            if position == TypePosition.PARAM:
                return f"ctypes.POINTER({element})"
            return f"({element} * {ty.length})"
        if isinstance(ty, FunctionPointer):
            signature = [self._map_type(ty.returns, TypePosition.RETURN, owner)]
            signature.extend(
                self._map_type(p, TypePosition.PARAM, owner) for p in ty.params
            )
            return f"ctypes.CFUNCTYPE({', '.join(signature)})"
        target = self.resolve_alias(ty.to)
        if isinstance(target, Void):
            return "ctypes.c_void_p"
        if target == CHAR8:
            return "ctypes.c_char_p"
        if isinstance(target, OpaqueRef):
            return self.naming.type_name(target.name)
        if isinstance(target, (StructRef, UnionRef)):
            return f"ctypes.POINTER({self._pointee_class(target.name)})"
        pointee = self._map_type(target, TypePosition.FIELD, owner)
        return f"ctypes.POINTER({pointee})"

    def _pointee_class(self, name: str) -> str:
        """Reference class of record *name*, or its value class when it has none."""
        record = self._records.get(name)
        if record is not None and not record.supports(PassingMode.BY_REFERENCE):
            return self.struct_type_name(name, PassingMode.BY_VALUE)
        return self.struct_type_name(name, PassingMode.BY_REFERENCE)

    def _constant_type(self, ty: NativeType, owner: str) -> str:
        if ty == _C_STRING:
            return "str"
        if isinstance(ty, EnumRef):
            return "int"
        if isinstance(ty, Primitive):
            self.primitive(ty, owner)
            return _CONSTANT_TYPES[ty.kind]
        raise self.unsupported(ty, owner, "no Python literal form")

    # ── constants ────────────────────────────────────────────────

    def default_is_representable(self, const: ConstantDef) -> bool:
        ty, value = self.resolve_alias(const.ty), const.value
        if isinstance(value, bool):
            return isinstance(ty, Primitive) and ty.kind == PrimitiveKind.BOOL
        if isinstance(value, str):
            return ty == _C_STRING
        if isinstance(ty, EnumRef):
            return isinstance(value, int)
        if not isinstance(ty, Primitive) or (ty.kind, ty.width) not in _PRIMITIVES:
            return False
        if ty.kind == PrimitiveKind.FLOAT:
            if isinstance(value, int):
                return abs(value) <= 2**53
            return math.isfinite(value)
        if not isinstance(value, int) or ty.kind == PrimitiveKind.BOOL:
            return False
        bits = ty.width if ty.width is not None else self.policy.pointer_size * 8
        low, high = _integer_range(ty.kind, bits)
        return low <= value <= high

    def _literal(self, const: ConstantDef) -> str:
        ty, value = self.resolve_alias(const.ty), const.value
        if isinstance(value, (bool, str)):
            return repr(value)
        if isinstance(ty, Primitive) and ty.kind == PrimitiveKind.FLOAT:
            return repr(float(value))
        return str(value)

    def _write_constant(self, out: CodeWriter, const: ConstantDef, name: str) -> None:
        out.lines(f"#: {line.strip()}".rstrip() for line in const.doc)
        annotation = self.map_type(const.ty, TypePosition.CONSTANT, owner=const.name)
        out.line(f"{name}: {annotation} = {self._literal(const)}")

    # ── rendering ────────────────────────────────────────────────

    def render_library_load(self, descriptor: ModuleDescriptor) -> str:
        handle = self.library_handle
        loader = constants.CTYPES_LOADER_NAME
        binder = constants.CTYPES_BINDER_NAME
        cache = constants.CTYPES_FUNCTION_CACHE_NAME
        library_name = constants.CTYPES_LIBRARY_NAME_CONSTANT
        out = self.writer()
        if self.policy.header:
            out.lines(self.policy.header.splitlines())
        doc = [f"Bindings for the native library ``{descriptor.name}``."]
        if self.policy.include_version:
            doc.append(
                constants.AUTOGEN_VERSION_TEMPLATE.format(
                    generator=constants.GENERATOR_NAME,
                    version=constants.GENERATOR_VERSION,
                )
            )
        if self.policy.autogen_warning:
            doc.extend(self.policy.autogen_warning.splitlines())
        _docstring(out, doc)
        out.line()
        out.lines(["import ctypes", "import ctypes.util", "import enum", "import warnings"])
        out.line()
        out.line(f"{library_name} = {descriptor.name!r}")
        out.line(f"{handle} = None")
        out.line(f"{cache} = {{}}")
        out.line()
        out.line()
        out.line(f"def {loader}():")
        with out.indented():
            out.line(f"global {handle}")
            out.line(f"if {handle} is None:")
            with out.indented():
                out.line(f"path = ctypes.util.find_library({library_name}) or {library_name}")
                out.line(f"{handle} = ctypes.CDLL(path)")
            out.line(f"return {handle}")
        out.line()
        out.line()
        out.line(f"def {binder}(symbol, argtypes, restype):")
        with out.indented():
            out.line(f"fn = {cache}.get(symbol)")
            out.line("if fn is None:")
            with out.indented():
                out.line(f"fn = {loader}()[symbol]")
                out.line("fn.argtypes = argtypes")
                out.line("fn.restype = restype")
                out.line(f"{cache}[symbol] = fn")
            out.line("return fn")
        return out.getvalue()

    def render_constant(self, const: ConstantDef) -> str:
        out = self.writer()
        self._write_constant(out, const, self.naming.constant_name(const.name))
        return out.getvalue()

    def render_enum(self, enum: EnumDef) -> str:
        out = self.writer()
        out.line(f"class {self.naming.type_name(enum.name)}(enum.IntEnum):")
        with out.indented():
            doc = _doc_lines(enum.doc, enum.deprecated)
            _docstring(out, doc)
            variants = enum.resolved_variants()
            if doc and variants:
                out.line()
            for variant, value in variants:
                out.line(f"{self.naming.variant_name(variant)} = {value}")
            if not doc and not variants:
                out.line("pass")
        return out.getvalue()

    def render_opaque(self, opaque: OpaqueDef) -> str:
        out = self.writer()
        out.line(f"class {self.naming.type_name(opaque.name)}(ctypes.c_void_p):")
        with out.indented():
            summary = f"Opaque handle to a native ``{opaque.name}``."
            _docstring(out, [summary, *_doc_lines(opaque.doc, opaque.deprecated)])
        return out.getvalue()

    def render_struct(self, layout: StructLayout, variant: StructVariant) -> str:
        record = layout.struct
        name = self.struct_type_name(record.name, variant.mode)
        out = self.writer()
        if isinstance(record, StructDef) and record.transparent:
            inner = record.fields[0].ty
            doc = [f"Transparent wrapper over {inner}."]
            doc.extend(_doc_lines(record.doc, record.deprecated))
            out.lines(f"#: {line}".rstrip() for line in doc)
            if record.name in self._schedule.inline:
                out.line(f"{name} = {self._alias_target(layout)}")
        else:
            kind = "union" if layout.is_union else "struct"
            base = "ctypes.Union" if layout.is_union else "ctypes.Structure"
            out.line(f"class {name}({base}):")
            with out.indented():
                summary = _CLASS_SUMMARIES[variant.mode].format(name=record.name, kind=kind)
                _docstring(out, [summary, *_doc_lines(record.doc, record.deprecated)])
                if Constructor.FROM_HANDLE in variant.constructors:
                    out.line()
                    out.line("@classmethod")
                    out.line(f"def {constants.CTYPES_FROM_HANDLE}(cls, handle):")
                    with out.indented():
                        out.line(_FROM_HANDLE_BODIES[variant.mode])
            if record.name in self._schedule.inline:
                self._write_fields(out, layout, name)
        if variant == layout.variants[-1]:
            for deferred in self._schedule.deferred.get(record.name, ()):
                deferred_layout = self._layouts[deferred]
                for other in deferred_layout.variants:
                    self._write_fields(
                        out,
                        deferred_layout,
                        self.struct_type_name(deferred, other.mode),
                    )
            if isinstance(record, StructDef):
                self._write_associated_constants(out, record)
        return out.getvalue()

    def _alias_target(self, layout: StructLayout) -> str:
        inner = layout.struct.fields[0].ty
        return self.map_type(inner, TypePosition.TRANSPARENT, owner=layout.name)

    def _write_fields(self, out: CodeWriter, layout: StructLayout, class_name: str) -> None:
        out.line()
        out.line()
        record = layout.struct
        if isinstance(record, StructDef) and record.transparent:
            out.line(f"{class_name} = {self._alias_target(layout)}")
            return
        if not layout.fields:
            out.line(f"{class_name}._fields_ = []")
            return
        out.line(f"{class_name}._fields_ = [")
        with out.indented():
            for fl in layout.fields:
                ctype = self.map_type(fl.ty, TypePosition.FIELD, owner=layout.name)
                out.line(f"({self.naming.field_name(fl.name)!r}, {ctype}),")
        out.line("]")

    def _write_associated_constants(self, out: CodeWriter, struct: StructDef) -> None:
        for const in struct.constants:
            out.line()
            out.line()
            name = self.associated_constant_name(struct, const)
            if self.is_representable(const):
                self._write_constant(out, const, name)
            else:
                logger.warning(
                    "Constant %s.%s is not representable in %s; emitting placeholder",
                    struct.name,
                    const.name,
                    self.NAME,
                )
                out.line(
                    self.comment(
                        constants.UNSUPPORTED_LITERAL_TEMPLATE.format(name=name)
                    )
                )

    def render_typedef(self, typedef: TypedefDef) -> str:
        out = self.writer()
        out.lines(
            f"#: {line}".rstrip() for line in _doc_lines(typedef.doc, typedef.deprecated)
        )
        mapped = self.map_type(typedef.aliased, TypePosition.TYPEDEF, owner=typedef.name)
        out.line(f"{self.naming.type_name(typedef.name)} = {mapped}")
        return out.getvalue()

    def render_function(self, func: FunctionDef) -> str:
        name = self.naming.function_name(func.name)
        params = [
            self.naming.param_name(p.name, index) for index, p in enumerate(func.params)
        ]
        argtypes = ", ".join(
            self.map_type(p.ty, TypePosition.PARAM, owner=func.name) for p in func.params
        )
        restype = self.map_type(func.returns, TypePosition.RETURN, owner=func.name)
        call = (
            f"{constants.CTYPES_BINDER_NAME}({func.name!r}, [{argtypes}], {restype})"
            f"({', '.join(params)})"
        )
        out = self.writer()
        out.line(f"def {name}({', '.join(params)}):")
        with out.indented():
            _docstring(out, _doc_lines(func.doc, None))
            if func.deprecated is not None:
                message = f"{func.name} is deprecated"
                if func.deprecated:
                    message += f": {func.deprecated}"
                out.line(f"warnings.warn({message!r}, DeprecationWarning, stacklevel=2)")
            returns_void = isinstance(self.resolve_alias(func.returns), Void)
            out.line(call if returns_void else f"return {call}")
        return out.getvalue()
