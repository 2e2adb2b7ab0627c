"""Java/JNA back-end: one ``interface ... extends Library`` holding every binding."""

from __future__ import annotations

import json
import logging
import math
from enum import Enum
from typing import Callable

from ..descriptor import (
    ConstantDef,
    EnumDef,
    FunctionDef,
    ModuleDescriptor,
    OpaqueDef,
    PassingMode,
    StructDef,
    TypedefDef,
)
from ..layout import Constructor, StructLayout, StructVariant
from ..naming import NamingPolicy
from ..policy import BackendPolicy
from ..types import (
    CHAR8,
    INTEGER_KINDS,
    POINTER_SIZED_KINDS,
    Array,
    EnumRef,
    FunctionPointer,
    NativeType,
    OpaqueRef,
    Pointer,
    Primitive,
    PrimitiveKind,
    StructRef,
    TypedefRef,
    UnionRef,
    Void,
    pointer_to,
)
from ..writer import CodeWriter
from .. import constants
from ._base import BaseBackend, TypePosition

logger = logging.getLogger(__name__)

FIELD_ORDER_ANNOTATION = "@Structure.FieldOrder"

_JAVA_KEYWORDS: frozenset[str] = frozenset(
    {
        "abstract", "assert", "boolean", "break", "byte", "case", "catch",
        "char", "class", "const", "continue", "default", "do", "double",
        "else", "enum", "extends", "final", "finally", "float", "for", "goto",
        "if", "implements", "import", "instanceof", "int", "interface", "long",
        "native", "new", "package", "private", "protected", "public", "return",
        "short", "static", "strictfp", "super", "switch", "synchronized",
        "this", "throw", "throws", "transient", "try", "void", "volatile",
        "while", "var", "yield", "record", "sealed", "permits",
        "true", "false", "null",
    }
)

# Classes the generated file refers to unqualified
_JNA_NAMES: frozenset[str] = frozenset(
    {
        "Object", "String", "Pointer", "Structure", "Union", "Native", "Library",
        "IntegerType", "ByReference", "NativeLong", "Callback", "PointerType",
        "Memory", "PointerByReference", "ByteByReference", "ShortByReference",
        "IntByReference", "LongByReference", "NativeLongByReference",
        "FloatByReference", "DoubleByReference", "INSTANCE",
    }
)

_PRIMITIVES: dict[tuple[PrimitiveKind, int | None], str] = {
    (PrimitiveKind.BOOL, 8): "byte",
    (PrimitiveKind.BOOL, 32): "boolean",
    (PrimitiveKind.CHAR, 8): "byte",
    (PrimitiveKind.CHAR, 32): "int",
    (PrimitiveKind.INT, 8): "byte",
    (PrimitiveKind.INT, 16): "short",
    (PrimitiveKind.INT, 32): "int",
    (PrimitiveKind.INT, 64): "long",
    (PrimitiveKind.UINT, 8): "byte",
    (PrimitiveKind.UINT, 16): "short",
    (PrimitiveKind.UINT, 32): "int",
    (PrimitiveKind.UINT, 64): "long",
    (PrimitiveKind.FLOAT, 32): "float",
    (PrimitiveKind.FLOAT, 64): "double",
    (PrimitiveKind.SIZE, None): "NativeLong",
    (PrimitiveKind.SSIZE, None): "NativeLong",
}

_PRIMITIVE_REFERENCES: dict[str, str] = {
    "byte": "ByteByReference",
    "short": "ShortByReference",
    "int": "IntByReference",
    "boolean": "IntByReference",
    "long": "LongByReference",
    "float": "FloatByReference",
    "double": "DoubleByReference",
    "NativeLong": "NativeLongByReference",
}

_STRUCTURE_INTERFACES: dict[PassingMode, str] = {
    PassingMode.BY_VALUE: "Structure.ByValue",
    PassingMode.BY_REFERENCE: "Structure.ByReference",
}

_JAVA_STRING = pointer_to(CHAR8)

_FLOAT32_MAX = 3.4028234663852886e38

# IntegerType size argument and Pointer accessors, keyed by width in bits
# (None for pointer-sized integers)
_INTEGER_ACCESSORS: dict[int | None, tuple[str, str, str]] = {
    8: ("1", "getByte(0)", "setByte(0, (byte)value.intValue())"),
    16: ("2", "getShort(0)", "setShort(0, (short)value.intValue())"),
    32: ("4", "getInt(0)", "setInt(0, value.intValue())"),
    64: ("8", "getLong(0)", "setLong(0, value.longValue())"),
    None: (
        "Native.SIZE_T_SIZE",
        "getNativeLong(0).longValue()",
        "setNativeLong(0, new NativeLong(value.longValue()))",
    ),
}

_ENUM_ACCESSOR = _INTEGER_ACCESSORS[constants.DEFAULT_ENUM_SIZE * 8]


def _signed_range(bits: int) -> tuple[int, int]:
    return -(2 ** (bits - 1)), 2 ** (bits - 1) - 1


def _integer_accessor(ty: NativeType) -> tuple[str, str, str] | None:
    if isinstance(ty, Primitive) and ty.kind in INTEGER_KINDS:
        return _INTEGER_ACCESSORS.get(ty.width)
    return None


def _doc_comment(out: CodeWriter, lines: tuple[str, ...], deprecated: str | None) -> None:
    body = [line.replace("*/", "* /") for line in lines]
    if deprecated:
        body.append(f"@deprecated {deprecated}")
    if body:
        out.line("/**")
        out.lines(f" * {line}".rstrip() for line in body)
        out.line(" */")
    if deprecated is not None:
        out.line("@Deprecated")


class _AliasForm(str, Enum):
    """How a typedef or a transparent struct is spelled as a Java class."""

    CALLBACK = "Callback"
    INTEGER = "IntegerType"
    POINTER = "PointerType"
    # Extends a Structure or Union class
    RECORD = "record"
    # Extends another emitted IntegerType or alias class
    NAMED = "named"


class JavaJnaBackend(BaseBackend):
    """Emits a single Java source file for JNA.

    The library-load block opens the ``interface`` that every other block
    lives in; the epilogue closes it.
    """

    NAME = constants.BACKEND_JAVA_JNA
    INDENT = "  "
    MEMBER_LEVEL = 1
    COMMENT_TEMPLATE = "/* {text} */"
    MAX_POINTER_DEPTH = constants.JNA_MAX_POINTER_DEPTH
    SHARED_NAMESPACE = False

    PRIMITIVE_TYPES = _PRIMITIVES

    @classmethod
    def default_policy(cls, **overrides) -> BackendPolicy:
        interface_name = (
            overrides.pop("default_library_name", "")
            or constants.JNA_DEFAULT_INTERFACE_NAME
        )
        reserved = (
            _JAVA_KEYWORDS
            | _JNA_NAMES
            | {interface_name, interface_name + constants.SINGLETON_SUFFIX}
        )
        fields = {
            "language": cls.NAME,
            "naming": NamingPolicy(reserved=frozenset(reserved)),
            "default_library_name": interface_name,
        }
        fields.update(overrides)
        return BackendPolicy(**fields)

    @property
    def interface_name(self) -> str:
        return self.policy.default_library_name or constants.JNA_DEFAULT_INTERFACE_NAME

    def enum_type_names(self, enum: EnumDef) -> list[str]:
        return [
            self.naming.type_name(enum.name),
            self.naming.reference_type_name(enum.name),
        ]

    def opaque_type_names(self, opaque: OpaqueDef) -> list[str]:
        return [
            self.naming.type_name(opaque.name),
            self.naming.reference_type_name(opaque.name),
        ]

    def typedef_type_names(self, typedef: TypedefDef) -> list[str]:
        names = [self.naming.type_name(typedef.name)]
        if self._has_reference_class(TypedefRef(name=typedef.name)):
            names.append(self.naming.reference_type_name(typedef.name))
        return names

    # ── type mapping ─────────────────────────────────────────────

    def _map_type(self, ty: NativeType, position: TypePosition, owner: str) -> str:
        if position in (TypePosition.TYPEDEF, TypePosition.TRANSPARENT):
            return self._base_class(ty, position, owner)
        if position == TypePosition.CONSTANT:
            return self._constant_type(ty, owner)
        resolved = self.resolve_alias(ty)
        if isinstance(resolved, Array):
            ty = resolved
        if isinstance(ty, Void):
            return "void"
        if isinstance(ty, Primitive):
            return self.primitive(ty, owner)
        if isinstance(ty, (EnumRef, TypedefRef)):
            return self.naming.type_name(ty.name)
        if isinstance(ty, (StructRef, UnionRef)):
            return self.struct_type_name(ty.name, PassingMode.BY_VALUE)
        if isinstance(ty, OpaqueRef):
            raise self.unsupported(ty, owner, "opaque types travel behind pointers only")
        if isinstance(ty, FunctionPointer):
            return "Callback"
        if isinstance(ty, Array):
            if not isinstance(ty.of, Primitive):
                raise self.unsupported(ty, owner, "JNA arrays need a primitive element")
            return f"{self.primitive(ty.of, owner)}[]"
        return self._map_pointer(ty, owner)

    def _map_pointer(self, ty: Pointer, owner: str) -> str:
        target = ty.to
        if isinstance(target, Pointer):
            return "PointerByReference"
        if isinstance(target, (StructRef, UnionRef)):
            return self.struct_type_name(target.name, PassingMode.BY_REFERENCE)
        if isinstance(target, (EnumRef, OpaqueRef)):
            return self.naming.reference_type_name(target.name)
        if isinstance(target, TypedefRef):
            if self._has_reference_class(target):
                return self.naming.reference_type_name(target.name)
            return "Pointer"
        if isinstance(target, Primitive):
            return _PRIMITIVE_REFERENCES[self.primitive(target, owner)]
        return "Pointer"

    def _alias_form(self, ty: NativeType, owner: str) -> _AliasForm:
        if isinstance(ty, FunctionPointer):
            return _AliasForm.CALLBACK
        if isinstance(ty, (Pointer, Array)):
            return _AliasForm.POINTER
        if _integer_accessor(ty) is not None:
            return _AliasForm.INTEGER
        if isinstance(ty, (StructRef, UnionRef)) and self.transparent_struct(ty) is None:
            return _AliasForm.RECORD
        if isinstance(ty, (StructRef, EnumRef, TypedefRef)):
            return _AliasForm.NAMED
        raise self.unsupported(ty, owner, "no JNA class to extend")

    def _base_class(self, ty: NativeType, position: TypePosition, owner: str) -> str:
        """The class a typedef (or transparent struct) of *ty* extends."""
        form = self._alias_form(ty, owner)
        if form == _AliasForm.CALLBACK:
            for param in ty.params:
                self.map_type(param, TypePosition.PARAM, owner=owner)
            self.map_type(ty.returns, TypePosition.RETURN, owner=owner)
        if position == TypePosition.TRANSPARENT:
            if form == _AliasForm.CALLBACK:
                raise self.unsupported(
                    ty, owner, "a transparent struct cannot be a Callback"
                )
            if form == _AliasForm.NAMED and not self._has_reference_class(ty):
                raise self.unsupported(ty, owner, "no ByReference class to extend")
        if form in (_AliasForm.RECORD, _AliasForm.NAMED):
            return self.naming.type_name(ty.name)
        return form.value

    def _has_reference_class(self, ty: NativeType) -> bool:
        """Whether the class emitted for named type *ty* has a ``ByReference`` twin."""
        if isinstance(ty, (StructRef, UnionRef)):
            record = self._records.get(ty.name)
            return record is not None and record.supports(PassingMode.BY_REFERENCE)
        if isinstance(ty, TypedefRef):
            typedef = self._typedefs.get(ty.name)
            if typedef is None:
                return False
            aliased = typedef.aliased
            if isinstance(aliased, (StructRef, UnionRef, EnumRef, TypedefRef)):
                return self._has_reference_class(aliased)
            return not isinstance(aliased, FunctionPointer)
        return isinstance(ty, (EnumRef, OpaqueRef))

    def _integer_alias(self, ty: NativeType) -> Primitive | None:
        """The integer a typedef or transparent struct directly wraps, if any."""
        if isinstance(ty, TypedefRef) and ty.name in self._typedefs:
            inner = self._typedefs[ty.name].aliased
        else:
            wrapper = self.transparent_struct(ty)
            if wrapper is None:
                return None
            inner = wrapper.fields[0].ty
        return inner if _integer_accessor(inner) is not None else None

    def _constant_type(self, ty: NativeType, owner: str) -> str:
        if ty == _JAVA_STRING:
            return "String"
        if isinstance(ty, EnumRef) or self._integer_alias(ty) is not None:
            return self.naming.type_name(ty.name)
        if isinstance(ty, Primitive):
            if ty.kind == PrimitiveKind.BOOL:
                return "boolean"
            return self.primitive(ty, owner)
        raise self.unsupported(ty, owner, "no Java literal form")

    # ── constants ────────────────────────────────────────────────

    def default_is_representable(self, const: ConstantDef) -> bool:
        ty, value = const.ty, const.value
        if isinstance(value, bool):
            return isinstance(ty, Primitive) and ty.kind == PrimitiveKind.BOOL
        if isinstance(value, str):
            return ty == _JAVA_STRING
        if isinstance(ty, EnumRef) or self._integer_alias(ty) is not None:
            low, high = _signed_range(64)
            return isinstance(value, int) and low <= value <= high
        if not isinstance(ty, Primitive) or (ty.kind, ty.width) not in _PRIMITIVES:
            return False
        if ty.kind == PrimitiveKind.FLOAT:
            if isinstance(value, int) and abs(value) > 2**53:
                return False
            limit = _FLOAT32_MAX if ty.width == 32 else math.inf
            return math.isfinite(value) and abs(value) <= limit
        if not isinstance(value, int) or ty.kind == PrimitiveKind.BOOL:
            return False
        low, high = _signed_range(64 if ty.kind in POINTER_SIZED_KINDS else ty.width)
        if ty.kind in (PrimitiveKind.UINT, PrimitiveKind.SIZE):
            low = 0
        return low <= value <= high

    def _literal(self, const: ConstantDef) -> str:
        ty, value = const.ty, const.value
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, str):
            return json.dumps(value)
        if isinstance(ty, EnumRef) or self._integer_alias(ty) is not None:
            return f"new {self.naming.type_name(ty.name)}({value}L)"
        if ty.kind == PrimitiveKind.FLOAT:
            suffix = "f" if ty.width == 32 else "d"
            return f"{float(value)!r}{suffix}"
        if ty.kind in POINTER_SIZED_KINDS:
            return f"new NativeLong({value}L)"
        if ty.width == 64:
            return f"{value}L"
        return str(value)

    def _write_constant(self, out: CodeWriter, const: ConstantDef) -> None:
        _doc_comment(out, const.doc, None)
        java_type = self.map_type(const.ty, TypePosition.CONSTANT, owner=const.name)
        out.line(
            f"public static final {java_type} "
            f"{self.naming.constant_name(const.name)} = {self._literal(const)};"
        )

    def _write_associated_constants(self, out: CodeWriter, struct: StructDef) -> None:
        for const in struct.constants:
            if self.is_representable(const):
                self._write_constant(out, const)
            else:
                logger.warning(
                    "Constant %s.%s is not representable in %s; emitting placeholder",
                    struct.name,
                    const.name,
                    self.NAME,
                )
                out.line(
                    self.comment(
                        constants.UNSUPPORTED_LITERAL_TEMPLATE.format(name=const.name)
                    )
                )

    # ── class writers ────────────────────────────────────────────

    def _write_integer_class(
        self,
        out: CodeWriter,
        name: str,
        accessor: tuple[str, str, str],
        doc: tuple[str, ...],
        deprecated: str | None,
        members: Callable[[CodeWriter], None] | None = None,
    ) -> None:
        size, get, _ = accessor
        _doc_comment(out, doc, deprecated)
        with out.braced(f"class {name} extends IntegerType"):
            with out.braced(f"public {name}()"):
                out.line(f"super({size});")
            out.line()
            with out.braced(f"public {name}(long value)"):
                out.line(f"super({size}, value);")
            out.line()
            with out.braced(f"public {name}(Pointer p)"):
                out.line(f"this(p.{get});")
            if members is not None:
                out.line()
                members(out)

    def _write_integer_reference(
        self, out: CodeWriter, name: str, reference: str, accessor: tuple[str, str, str]
    ) -> None:
        size, get, set_ = accessor
        with out.braced(f"class {reference} extends ByReference"):
            with out.braced(f"public {reference}()"):
                out.line(f"super({size});")
            out.line()
            with out.braced(f"public {reference}(Pointer p)"):
                out.line(f"super({size});")
                out.line("setPointer(p);")
            out.line()
            with out.braced(f"public {name} getValue()"):
                out.line(f"return new {name}(getPointer().{get});")
            out.line()
            with out.braced(f"public void setValue({name} value)"):
                out.line(f"getPointer().{set_};")

    def _write_subclass(
        self,
        out: CodeWriter,
        name: str,
        superclass: str,
        doc: tuple[str, ...],
        deprecated: str | None,
        empty_super: str = "super();",
        members: Callable[[CodeWriter], None] | None = None,
    ) -> None:
        _doc_comment(out, doc, deprecated)
        with out.braced(f"class {name} extends {superclass}"):
            if members is not None:
                members(out)
                out.line()
            with out.braced(f"public {name}()"):
                out.line(empty_super)
            out.line()
            with out.braced(f"public {name}(Pointer p)"):
                out.line("super(p);")

    def _write_structure(
        self,
        out: CodeWriter,
        layout: StructLayout,
        variant: StructVariant,
        superclass: str,
        fields: bool = True,
    ) -> None:
        record = layout.struct
        name = self.struct_type_name(record.name, variant.mode)
        field_layouts = layout.fields if fields else ()
        _doc_comment(out, record.doc, record.deprecated)
        field_names = [self.naming.field_name(fl.name) for fl in field_layouts]
        if field_names:
            quoted = ", ".join(json.dumps(n) for n in field_names)
            out.line(f"{FIELD_ORDER_ANNOTATION}({{{quoted}}})")
        header = (
            f"class {name} extends {superclass} "
            f"implements {_STRUCTURE_INTERFACES[variant.mode]}"
        )
        with out.braced(header):
            if isinstance(record, StructDef) and record.constants:
                self._write_associated_constants(out, record)
                out.line()
            for constructor in variant.constructors:
                if constructor == Constructor.ZERO_INIT:
                    with out.braced(f"public {name}()"):
                        out.line("super();")
                else:
                    with out.braced(f"public {name}(Pointer p)"):
                        out.line("super(p);")
                out.line()
            for fl, field_name in zip(field_layouts, field_names):
                java_type = self.map_type(fl.ty, TypePosition.FIELD, owner=record.name)
                resolved = self.resolve_alias(fl.ty)
                initializer = ""
                if isinstance(resolved, Array):
                    element = java_type[: -len("[]")]
                    initializer = f" = new {element}[{resolved.length}]"
                out.line(f"public {java_type} {field_name}{initializer};")

    # ── rendering ────────────────────────────────────────────────

    def render_library_load(self, descriptor: ModuleDescriptor) -> str:
        name = self.interface_name
        logger.debug("JNA interface %s loads %s", name, descriptor.name)
        out = self.writer(level=0)
        if self.policy.header:
            out.lines(self.policy.header.splitlines())
        if self.policy.include_version:
            out.line(
                self.comment(
                    constants.AUTOGEN_VERSION_TEMPLATE.format(
                        generator=constants.GENERATOR_NAME,
                        version=constants.GENERATOR_VERSION,
                    )
                )
            )
        if self.policy.autogen_warning:
            out.lines(self.policy.autogen_warning.splitlines())
        if self.policy.package:
            out.line(f"package {self.policy.package};")
            out.line()
        out.line("import com.sun.jna.*;")
        out.line("import com.sun.jna.ptr.*;")
        out.line()
        with out.braced(f"enum {name}{constants.SINGLETON_SUFFIX}"):
            out.line("INSTANCE;")
            out.line(
                f"final {name} lib = Native.load({json.dumps(descriptor.name)}, {name}.class);"
            )
        out.line()
        out.line(f"interface {name} extends Library {{")
        with out.indented():
            out.line(
                f"{name} INSTANCE = {name}{constants.SINGLETON_SUFFIX}.INSTANCE.lib;"
            )
        return out.getvalue()

    def render_constant(self, const: ConstantDef) -> str:
        out = self.writer()
        self._write_constant(out, const)
        return out.getvalue()

    def render_enum(self, enum: EnumDef) -> str:
        name = self.naming.type_name(enum.name)

        def variants(body: CodeWriter) -> None:
            for variant, value in enum.resolved_variants():
                body.line(
                    f"public static final {name} {self.naming.variant_name(variant)} "
                    f"= new {name}({value}L);"
                )

        out = self.writer()
        self._write_integer_class(
            out,
            name,
            _ENUM_ACCESSOR,
            enum.doc,
            enum.deprecated,
            variants if enum.variants else None,
        )
        out.line()
        self._write_integer_reference(
            out, name, self.naming.reference_type_name(enum.name), _ENUM_ACCESSOR
        )
        return out.getvalue()

    def render_opaque(self, opaque: OpaqueDef) -> str:
        name = self.naming.type_name(opaque.name)
        out = self.writer()
        self._write_subclass(
            out, name, "PointerType", opaque.doc, opaque.deprecated, "super(null);"
        )
        out.line()
        self._write_subclass(
            out,
            self.naming.reference_type_name(opaque.name),
            name,
            opaque.doc,
            opaque.deprecated,
            "super(null);",
        )
        return out.getvalue()

    def render_struct(self, layout: StructLayout, variant: StructVariant) -> str:
        record = layout.struct
        out = self.writer()
        if isinstance(record, StructDef) and record.transparent:
            self._write_transparent(out, layout, variant)
        else:
            superclass = "Union" if layout.is_union else "Structure"
            self._write_structure(out, layout, variant, superclass)
        return out.getvalue()

    def _write_transparent(
        self, out: CodeWriter, layout: StructLayout, variant: StructVariant
    ) -> None:
        struct = layout.struct
        inner = struct.fields[0].ty
        name = self.naming.type_name(struct.name)
        reference = self.naming.reference_type_name(struct.name)
        by_value = variant.mode == PassingMode.BY_VALUE
        form = self._alias_form(inner, struct.name)

        def members(body: CodeWriter) -> None:
            self._write_associated_constants(body, struct)

        with_members = members if struct.constants else None
        if form == _AliasForm.RECORD:
            self._write_structure(
                out, layout, variant, self.naming.type_name(inner.name), fields=False
            )
        elif form == _AliasForm.INTEGER:
            accessor = _integer_accessor(inner)
            if by_value:
                self._write_integer_class(
                    out, name, accessor, struct.doc, struct.deprecated, with_members
                )
            else:
                self._write_integer_reference(out, name, reference, accessor)
        elif form == _AliasForm.POINTER:
            if by_value:
                self._write_subclass(
                    out,
                    name,
                    "PointerType",
                    struct.doc,
                    struct.deprecated,
                    "super(null);",
                    with_members,
                )
            else:
                parent = name if struct.supports(PassingMode.BY_VALUE) else "PointerType"
                self._write_subclass(
                    out, reference, parent, struct.doc, struct.deprecated, "super(null);"
                )
        elif by_value:
            self._write_subclass(
                out,
                name,
                self.naming.type_name(inner.name),
                struct.doc,
                struct.deprecated,
                members=with_members,
            )
        else:
            self._write_subclass(
                out,
                reference,
                self.naming.reference_type_name(inner.name),
                struct.doc,
                struct.deprecated,
            )

    def render_typedef(self, typedef: TypedefDef) -> str:
        aliased = typedef.aliased
        name = self.naming.type_name(typedef.name)
        reference = self.naming.reference_type_name(typedef.name)
        form = self._alias_form(aliased, typedef.name)
        out = self.writer()
        if form == _AliasForm.CALLBACK:
            returns = self.map_type(
                aliased.returns, TypePosition.RETURN, owner=typedef.name
            )
            params = ", ".join(
                f"{self.map_type(p, TypePosition.PARAM, owner=typedef.name)} "
                f"{self.naming.param_name('', index)}"
                for index, p in enumerate(aliased.params)
            )
            _doc_comment(out, typedef.doc, typedef.deprecated)
            with out.braced(f"interface {name} extends Callback"):
                out.line(f"{returns} invoke({params});")
        elif form == _AliasForm.INTEGER:
            accessor = _integer_accessor(aliased)
            self._write_integer_class(
                out, name, accessor, typedef.doc, typedef.deprecated
            )
            out.line()
            self._write_integer_reference(out, name, reference, accessor)
        elif form == _AliasForm.POINTER:
            self._write_subclass(
                out, name, "PointerType", typedef.doc, typedef.deprecated, "super(null);"
            )
            out.line()
            self._write_subclass(
                out, reference, name, typedef.doc, typedef.deprecated, "super(null);"
            )
        elif isinstance(self.resolve_alias(aliased), FunctionPointer):
            _doc_comment(out, typedef.doc, typedef.deprecated)
            out.line(
                f"interface {name} extends {self.naming.type_name(aliased.name)} {{}}"
            )
        else:
            self._write_subclass(
                out,
                name,
                self.naming.type_name(aliased.name),
                typedef.doc,
                typedef.deprecated,
            )
            if self._has_reference_class(aliased):
                out.line()
                self._write_subclass(
                    out,
                    reference,
                    self.naming.reference_type_name(aliased.name),
                    typedef.doc,
                    typedef.deprecated,
                )
        return out.getvalue()

    def render_function(self, func: FunctionDef) -> str:
        out = self.writer()
        _doc_comment(out, func.doc, func.deprecated)
        returns = self.map_type(func.returns, TypePosition.RETURN, owner=func.name)
        params = ", ".join(
            f"{self.map_type(p.ty, TypePosition.PARAM, owner=func.name)} "
            f"{self.naming.param_name(p.name, index)}"
            for index, p in enumerate(func.params)
        )
        out.line(f"{returns} {self.naming.function_name(func.name)}({params});")
        return out.getvalue()

    def render_epilogue(self, descriptor: ModuleDescriptor) -> str:
        return "}\n"
