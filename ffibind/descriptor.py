"""Interface Descriptor: the IR of one native module's exported surface."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from .types import NativeType, VOID


class PassingMode(str, Enum):
    BY_VALUE = "by_value"
    BY_REFERENCE = "by_reference"


ALL_PASSING_MODES: frozenset[PassingMode] = frozenset(PassingMode)


def ordered_modes(modes: frozenset[PassingMode]) -> list[PassingMode]:
    """Return *modes* in canonical order (by-value first), never set order."""
    return [mode for mode in PassingMode if mode in modes]


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class FieldDef(_FrozenModel):
    name: str
    ty: NativeType


class ParamDef(_FrozenModel):
    name: str
    ty: NativeType


class ConstantDef(_FrozenModel):
    name: str
    ty: NativeType
    value: bool | int | float | str
    representable: bool = True
    doc: tuple[str, ...] = ()


class StructDef(_FrozenModel):
    """A C struct.

    A ``transparent`` struct has exactly one field and the same layout as
    that field's type. ``constants`` are associated constants, written
    alongside the struct's declarations.
    """

    name: str
    fields: tuple[FieldDef, ...] = ()
    modes: frozenset[PassingMode] = ALL_PASSING_MODES
    doc: tuple[str, ...] = ()
    deprecated: str | None = None
    transparent: bool = False
    constants: tuple[ConstantDef, ...] = ()

    def supports(self, mode: PassingMode) -> bool:
        return mode in self.modes


class UnionDef(_FrozenModel):
    name: str
    fields: tuple[FieldDef, ...] = ()
    modes: frozenset[PassingMode] = ALL_PASSING_MODES
    doc: tuple[str, ...] = ()
    deprecated: str | None = None

    def supports(self, mode: PassingMode) -> bool:
        return mode in self.modes


class OpaqueDef(_FrozenModel):
    name: str
    doc: tuple[str, ...] = ()
    deprecated: str | None = None


class TypedefDef(_FrozenModel):
    name: str
    aliased: NativeType
    doc: tuple[str, ...] = ()
    deprecated: str | None = None


class FunctionDef(_FrozenModel):
    name: str
    params: tuple[ParamDef, ...] = ()
    returns: NativeType = VOID
    doc: tuple[str, ...] = ()
    deprecated: str | None = None


class EnumVariant(_FrozenModel):
    name: str
    value: int | None = None


class EnumDef(_FrozenModel):
    name: str
    variants: tuple[EnumVariant, ...] = ()
    doc: tuple[str, ...] = ()
    deprecated: str | None = None

    def resolved_variants(self) -> list[tuple[str, int]]:
        """Variant names paired with their values, filling implicit ones C-style.

        Implicit values start at 0 as in C; cbindgen's Java output numbers
        them from 1 instead.
        """
        resolved: list[tuple[str, int]] = []
        current = -1
        for variant in self.variants:
            current = variant.value if variant.value is not None else current + 1
            resolved.append((variant.name, current))
        return resolved


Record = StructDef | UnionDef


class ModuleDescriptor(_FrozenModel):
    """One native module: ordered functions, types and constants.

    ``name`` is the native library name handed to the host's loader.
    """

    name: str
    functions: tuple[FunctionDef, ...] = ()
    structs: tuple[StructDef, ...] = ()
    constants: tuple[ConstantDef, ...] = ()
    enums: tuple[EnumDef, ...] = ()
    unions: tuple[UnionDef, ...] = ()
    opaques: tuple[OpaqueDef, ...] = ()
    typedefs: tuple[TypedefDef, ...] = ()

    def struct_map(self) -> dict[str, StructDef]:
        return {s.name: s for s in self.structs}

    def enum_map(self) -> dict[str, EnumDef]:
        return {e.name: e for e in self.enums}

    def union_map(self) -> dict[str, UnionDef]:
        return {u.name: u for u in self.unions}

    def typedef_map(self) -> dict[str, TypedefDef]:
        return {t.name: t for t in self.typedefs}

    def records(self) -> tuple[Record, ...]:
        """Structs then unions, the order their declarations are emitted in."""
        return (*self.structs, *self.unions)
