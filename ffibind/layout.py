"""Layout Resolver: field offsets, sizes and passing-mode variants of structs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from .descriptor import (
    ModuleDescriptor,
    PassingMode,
    Record,
    TypedefDef,
    UnionDef,
    ordered_modes,
)
from .errors import MalformedDescriptorError
from .types import (
    POINTER_SIZED_KINDS,
    Array,
    EnumRef,
    FunctionPointer,
    NativeType,
    Pointer,
    Primitive,
    StructRef,
    TypedefRef,
    UnionRef,
)
from . import constants

logger = logging.getLogger(__name__)


class Ownership(str, Enum):
    """Whether an emitted struct type owns its memory or aliases foreign memory."""

    OWNED = "owned"
    ALIASED = "aliased"


class Constructor(str, Enum):
    ZERO_INIT = "zero_init"
    FROM_HANDLE = "from_handle"


_OWNERSHIP: dict[PassingMode, Ownership] = {
    PassingMode.BY_VALUE: Ownership.OWNED,
    PassingMode.BY_REFERENCE: Ownership.ALIASED,
}

WRAPPER_CONSTRUCTORS: tuple[Constructor, ...] = (
    Constructor.ZERO_INIT,
    Constructor.FROM_HANDLE,
)


@dataclass(frozen=True)
class FieldLayout:
    name: str
    ty: NativeType
    offset: int
    size: int
    alignment: int


@dataclass(frozen=True)
class StructVariant:
    """One emitted declaration of a struct: its passing mode and wrapper shape."""

    mode: PassingMode
    ownership: Ownership
    constructors: tuple[Constructor, ...] = WRAPPER_CONSTRUCTORS


@dataclass(frozen=True)
class StructLayout:
    """Resolved layout of a struct or a union (every union field sits at 0)."""

    struct: Record
    fields: tuple[FieldLayout, ...]
    size: int
    alignment: int
    variants: tuple[StructVariant, ...] = field(default_factory=tuple)

    @property
    def name(self) -> str:
        return self.struct.name

    @property
    def is_union(self) -> bool:
        return isinstance(self.struct, UnionDef)


class LayoutResolver:
    """Computes natural C layouts, mirroring declaration order exactly.

    Fields are never reordered: the native side already fixed the memory
    layout and the bindings must reproduce it.
    """

    def __init__(
        self,
        pointer_size: int = constants.DEFAULT_POINTER_SIZE,
        enum_size: int = constants.DEFAULT_ENUM_SIZE,
    ):
        self._pointer_size = pointer_size
        self._enum_size = enum_size
        self._resolved: dict[str, StructLayout] = {}
        self._records: dict[str, Record] = {}
        self._typedefs: dict[str, TypedefDef] = {}

    def resolve_all(self, descriptor: ModuleDescriptor) -> dict[str, StructLayout]:
        """Resolve every struct and union of *descriptor*, keyed by name.

        Structs come first, then unions, each in descriptor order.
        """
        records = descriptor.records()
        self._records = {r.name: r for r in records}
        self._typedefs = descriptor.typedef_map()
        self._resolved = {}
        return {r.name: self._resolve(r) for r in records}

    def resolve(
        self,
        struct: Record,
        structs: dict[str, Record] | None = None,
        typedefs: dict[str, TypedefDef] | None = None,
    ) -> StructLayout:
        self._records = structs if structs is not None else {struct.name: struct}
        self._typedefs = typedefs or {}
        self._resolved = {}
        return self._resolve(struct)

    def _resolve(self, struct: Record) -> StructLayout:
        cached = self._resolved.get(struct.name)
        if cached is not None:
            return cached
        overlapping = isinstance(struct, UnionDef)
        offset = 0
        extent = 0
        alignment = 1
        fields: list[FieldLayout] = []
        for f in struct.fields:
            size, align = self.size_and_alignment(f.ty)
            if not overlapping:
                offset = _round_up(offset, align)
            fields.append(
                FieldLayout(
                    name=f.name, ty=f.ty, offset=offset, size=size, alignment=align
                )
            )
            if overlapping:
                extent = max(extent, size)
            else:
                offset += size
                extent = offset
            alignment = max(alignment, align)
        variants = tuple(
            StructVariant(mode=mode, ownership=_OWNERSHIP[mode])
            for mode in ordered_modes(struct.modes)
        )
        layout = StructLayout(
            struct=struct,
            fields=tuple(fields),
            size=_round_up(extent, alignment),
            alignment=alignment,
            variants=variants,
        )
        logger.debug(
            "Layout of %s: size=%d align=%d fields=%s",
            struct.name,
            layout.size,
            layout.alignment,
            [(fl.name, fl.offset) for fl in layout.fields],
        )
        self._resolved[struct.name] = layout
        return layout

    def size_and_alignment(self, ty: NativeType) -> tuple[int, int]:
        if isinstance(ty, Primitive):
            if ty.kind in POINTER_SIZED_KINDS:
                return self._pointer_size, self._pointer_size
            width = (ty.width or 0) // 8
            return width, width
        if isinstance(ty, (Pointer, FunctionPointer)):
            return self._pointer_size, self._pointer_size
        if isinstance(ty, EnumRef):
            return self._enum_size, self._enum_size
        if isinstance(ty, Array):
            size, align = self.size_and_alignment(ty.of)
            return size * ty.length, align
        if isinstance(ty, TypedefRef):
            typedef = self._typedefs.get(ty.name)
            if typedef is None:
                raise MalformedDescriptorError(
                    f"Cannot lay out undeclared typedef '{ty.name}'", name=ty.name
                )
            return self.size_and_alignment(typedef.aliased)
        if isinstance(ty, (StructRef, UnionRef)):
            nested = self._records.get(ty.name)
            if nested is None:
                raise MalformedDescriptorError(
                    f"Cannot lay out undeclared {ty.tag} '{ty.name}'", name=ty.name
                )
            layout = self._resolve(nested)
            return layout.size, layout.alignment
        raise MalformedDescriptorError(f"Type {ty} has no size")


def _round_up(value: int, alignment: int) -> int:
    return (value + alignment - 1) // alignment * alignment
