"""BaseBackend: language-agnostic IR to host binding rendering infrastructure."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum

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
    UnionDef,
    ordered_modes,
)
from ..errors import UnsupportedTypeError
from ..layout import StructLayout, StructVariant
from ..policy import BackendPolicy
from ..types import (
    NativeType,
    Primitive,
    PrimitiveKind,
    StructRef,
    TypedefRef,
    pointer_depth,
)
from ..writer import CodeWriter
from .. import constants

logger = logging.getLogger(__name__)


class TypePosition(str, Enum):
    FIELD = "field"
    PARAM = "param"
    RETURN = "return"
    CONSTANT = "constant"
    # What a typedef, or the field of a transparent struct, stands for
    TYPEDEF = "typedef"
    TRANSPARENT = "transparent"


class BaseBackend(ABC):
    """Base class for emission back-ends.

    Subclasses fill ``PRIMITIVE_TYPES`` and override the comment syntax,
    indentation and pointer-depth limit where the host language differs
    from the defaults, then implement the ``render_*`` hooks. Each hook
    returns the complete text of one block.
    """

    # ── overridable constants ────────────────────────────────────

    NAME: str = ""
    INDENT: str = "    "
    MEMBER_LEVEL: int = 0
    COMMENT_TEMPLATE: str = "# {text}"
    MAX_POINTER_DEPTH: int | None = None
    SHARED_NAMESPACE: bool = False

    PRIMITIVE_TYPES: dict[tuple[PrimitiveKind, int | None], str] = {}

    # ── init ─────────────────────────────────────────────────────

    def __init__(self, policy: BackendPolicy):
        self.policy = policy
        self.naming = policy.naming
        self._descriptor: ModuleDescriptor | None = None
        self._layouts: dict[str, StructLayout] = {}
        self._records: dict[str, Record] = {}
        self._typedefs: dict[str, TypedefDef] = {}
        self._skipped: frozenset[str] = frozenset()

    @classmethod
    @abstractmethod
    def default_policy(cls, **overrides) -> BackendPolicy: ...

    def prepare(
        self, descriptor: ModuleDescriptor, layouts: dict[str, StructLayout]
    ) -> None:
        """Receive the whole run's inputs before any type is mapped."""
        self._descriptor = descriptor
        self._layouts = layouts
        self._records = {r.name: r for r in descriptor.records()}
        self._typedefs = descriptor.typedef_map()

    def mark_placeholders(self, skipped: frozenset[str]) -> None:
        """Learn which records and typedefs will be rendered as placeholders."""
        self._skipped = skipped
        if skipped:
            logger.debug(
                "%s: types rendered as placeholders: %s", self.NAME, sorted(skipped)
            )

    # ── helpers ──────────────────────────────────────────────────

    def writer(self, level: int | None = None) -> CodeWriter:
        return CodeWriter(self.INDENT, self.MEMBER_LEVEL if level is None else level)

    def comment(self, text: str) -> str:
        return self.COMMENT_TEMPLATE.format(text=text)

    def comment_block(self, text: str) -> str:
        out = self.writer()
        out.line(self.comment(text))
        return out.getvalue()

    def struct_type_name(self, name: str, mode: PassingMode) -> str:
        if mode == PassingMode.BY_REFERENCE:
            return self.naming.reference_type_name(name)
        return self.naming.type_name(name)

    def unsupported(
        self, ty: NativeType, owner: str, reason: str = ""
    ) -> UnsupportedTypeError:
        detail = f": {reason}" if reason else ""
        return UnsupportedTypeError(
            f"{self.NAME} cannot express {ty} in '{owner}'{detail}",
            name=owner,
            backend=self.NAME,
        )

    def transparent_struct(self, ty: NativeType) -> StructDef | None:
        if isinstance(ty, StructRef):
            record = self._records.get(ty.name)
            if isinstance(record, StructDef) and record.transparent:
                return record
        return None

    def resolve_alias(self, ty: NativeType) -> NativeType:
        """Follow typedefs and transparent structs down to the type they stand for."""
        while True:
            if isinstance(ty, TypedefRef) and ty.name in self._typedefs:
                ty = self._typedefs[ty.name].aliased
                continue
            wrapper = self.transparent_struct(ty)
            if wrapper is None:
                return ty
            ty = wrapper.fields[0].ty

    # ── type mapping ─────────────────────────────────────────────

    def map_type(self, ty: NativeType, position: TypePosition, *, owner: str) -> str:
        """Map *ty* to host syntax, raising ``UnsupportedTypeError`` when impossible."""
        depth, _ = pointer_depth(ty)
        if self.MAX_POINTER_DEPTH is not None and depth > self.MAX_POINTER_DEPTH:
            raise self.unsupported(
                ty, owner, f"pointer depth {depth} exceeds {self.MAX_POINTER_DEPTH}"
            )
        return self._map_type(ty, position, owner)

    @abstractmethod
    def _map_type(self, ty: NativeType, position: TypePosition, owner: str) -> str: ...

    def primitive(self, ty: Primitive, owner: str) -> str:
        mapped = self.PRIMITIVE_TYPES.get((ty.kind, ty.width))
        if mapped is None:
            raise self.unsupported(ty, owner, "no primitive of that kind and width")
        return mapped

    # ── constants ────────────────────────────────────────────────

    def is_representable(self, const: ConstantDef) -> bool:
        if not const.representable:
            return False
        predicate = self.policy.is_representable or self.default_is_representable
        return bool(predicate(const))

    @abstractmethod
    def default_is_representable(self, const: ConstantDef) -> bool: ...

    def render_unrepresentable_constant(self, const: ConstantDef) -> str:
        return self.comment_block(
            constants.UNSUPPORTED_LITERAL_TEMPLATE.format(name=const.name)
        )

    def render_unsupported_type(self, ty: str, name: str) -> str:
        return self.comment_block(
            constants.UNSUPPORTED_TYPE_TEMPLATE.format(ty=ty, name=name)
        )

    # ── names ────────────────────────────────────────────────────

    def declared_names(self, descriptor: ModuleDescriptor) -> list[tuple[str, str, str]]:
        """Every identifier this back-end will emit as ``(scope, emitted, source)``.

        Two entries sharing a scope and an emitted name but naming different
        sources are a collision.
        """
        shared = "module" if self.SHARED_NAMESPACE else ""
        types = shared or "types"
        names: list[tuple[str, str, str]] = []
        for const in descriptor.constants:
            names.append(
                (
                    shared or "constants",
                    self.naming.constant_name(const.name),
                    f"constant {const.name}",
                )
            )
        for enum in descriptor.enums:
            names.extend(
                (types, emitted, f"enum {enum.name}")
                for emitted in self.enum_type_names(enum)
            )
            for variant in enum.variants:
                names.append(
                    (
                        f"enum {enum.name}",
                        self.naming.variant_name(variant.name),
                        f"variant {variant.name}",
                    )
                )
        for opaque in descriptor.opaques:
            names.extend(
                (types, emitted, f"opaque {opaque.name}")
                for emitted in self.opaque_type_names(opaque)
            )
        for record in descriptor.records():
            kind = "union" if isinstance(record, UnionDef) else "struct"
            for mode in ordered_modes(record.modes):
                names.append(
                    (
                        types,
                        self.struct_type_name(record.name, mode),
                        f"{kind} {record.name} ({mode.value})",
                    )
                )
            for f in record.fields:
                names.append(
                    (
                        f"{kind} {record.name}",
                        self.naming.field_name(f.name),
                        f"field {f.name}",
                    )
                )
        for struct in descriptor.structs:
            names.extend(self.associated_constant_names(struct))
        for typedef in descriptor.typedefs:
            names.extend(
                (types, emitted, f"typedef {typedef.name}")
                for emitted in self.typedef_type_names(typedef)
            )
        for func in descriptor.functions:
            names.append(
                (
                    shared or "functions",
                    self.naming.function_name(func.name),
                    f"function {func.name}",
                )
            )
            for index, param in enumerate(func.params):
                names.append(
                    (
                        f"function {func.name}",
                        self.naming.param_name(param.name, index),
                        f"parameter #{index} {param.name}".rstrip(),
                    )
                )
        return names

    def enum_type_names(self, enum: EnumDef) -> list[str]:
        return [self.naming.type_name(enum.name)]

    def opaque_type_names(self, opaque: OpaqueDef) -> list[str]:
        return [self.naming.type_name(opaque.name)]

    def typedef_type_names(self, typedef: TypedefDef) -> list[str]:
        return [self.naming.type_name(typedef.name)]

    def associated_constant_names(self, struct: StructDef) -> list[tuple[str, str, str]]:
        return [
            (
                f"struct {struct.name}",
                self.naming.constant_name(const.name),
                f"constant {const.name}",
            )
            for const in struct.constants
        ]

    # ── rendering hooks ──────────────────────────────────────────

    @abstractmethod
    def render_library_load(self, descriptor: ModuleDescriptor) -> str: ...

    @abstractmethod
    def render_constant(self, const: ConstantDef) -> str: ...

    @abstractmethod
    def render_enum(self, enum: EnumDef) -> str: ...

    @abstractmethod
    def render_opaque(self, opaque: OpaqueDef) -> str: ...

    @abstractmethod
    def render_struct(self, layout: StructLayout, variant: StructVariant) -> str:
        """Render one variant of a struct or, when ``layout.is_union``, a union."""

    @abstractmethod
    def render_typedef(self, typedef: TypedefDef) -> str: ...

    @abstractmethod
    def render_function(self, func: FunctionDef) -> str: ...

    def render_epilogue(self, descriptor: ModuleDescriptor) -> str:
        return ""
