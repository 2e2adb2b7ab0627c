"""Type Model: language-independent native types."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Iterator, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class PrimitiveKind(str, Enum):
    BOOL = "bool"
    CHAR = "char"
    INT = "int"
    UINT = "uint"
    FLOAT = "float"
    # Pointer-sized, width comes from the target platform
    SIZE = "size"
    SSIZE = "ssize"


POINTER_SIZED_KINDS: frozenset[PrimitiveKind] = frozenset(
    {PrimitiveKind.SIZE, PrimitiveKind.SSIZE}
)

INTEGER_KINDS: frozenset[PrimitiveKind] = frozenset(
    {PrimitiveKind.INT, PrimitiveKind.UINT, PrimitiveKind.SIZE, PrimitiveKind.SSIZE}
)

_KIND_SPELLING: dict[PrimitiveKind, str] = {
    PrimitiveKind.BOOL: "bool",
    PrimitiveKind.CHAR: "char",
    PrimitiveKind.INT: "i",
    PrimitiveKind.UINT: "u",
    PrimitiveKind.FLOAT: "f",
    PrimitiveKind.SIZE: "usize",
    PrimitiveKind.SSIZE: "isize",
}


class _FrozenType(BaseModel):
    model_config = ConfigDict(frozen=True)


class Primitive(_FrozenType):
    tag: Literal["primitive"] = "primitive"
    kind: PrimitiveKind
    width: int | None = None  # bits; None for pointer-sized kinds

    def __str__(self) -> str:
        spelling = _KIND_SPELLING[self.kind]
        if self.kind in POINTER_SIZED_KINDS:
            return spelling
        if self.kind == PrimitiveKind.BOOL and self.width == 8:
            return spelling
        return f"{spelling}{self.width}"


class Pointer(_FrozenType):
    tag: Literal["pointer"] = "pointer"
    to: NativeType

    def __str__(self) -> str:
        return f"*{self.to}"


class StructRef(_FrozenType):
    tag: Literal["struct"] = "struct"
    name: str

    def __str__(self) -> str:
        return f"struct {self.name}"


class EnumRef(_FrozenType):
    tag: Literal["enum"] = "enum"
    name: str

    def __str__(self) -> str:
        return f"enum {self.name}"


class UnionRef(_FrozenType):
    tag: Literal["union"] = "union"
    name: str

    def __str__(self) -> str:
        return f"union {self.name}"


class OpaqueRef(_FrozenType):
    """A type known only by name; usable behind a pointer only."""

    tag: Literal["opaque"] = "opaque"
    name: str

    def __str__(self) -> str:
        return f"opaque {self.name}"


class TypedefRef(_FrozenType):
    tag: Literal["typedef"] = "typedef"
    name: str

    def __str__(self) -> str:
        return f"typedef {self.name}"


class Void(_FrozenType):
    tag: Literal["void"] = "void"

    def __str__(self) -> str:
        return "void"


class Array(_FrozenType):
    """Fixed-length array; embedded by value in structs."""

    tag: Literal["array"] = "array"
    of: NativeType
    length: int

    def __str__(self) -> str:
        return f"{self.of}[{self.length}]"


class FunctionPointer(_FrozenType):
    tag: Literal["function_pointer"] = "function_pointer"
    params: tuple[NativeType, ...] = ()
    returns: NativeType = Void()

    def __str__(self) -> str:
        params = ", ".join(str(p) for p in self.params)
        return f"fn({params}) -> {self.returns}"


NativeType = Annotated[
    Union[
        Primitive,
        Pointer,
        StructRef,
        UnionRef,
        EnumRef,
        OpaqueRef,
        TypedefRef,
        Void,
        Array,
        FunctionPointer,
    ],
    Field(discriminator="tag"),
]

Pointer.model_rebuild()
Array.model_rebuild()
FunctionPointer.model_rebuild()


# ── shorthands ───────────────────────────────────────────────────

VOID = Void()
BOOL = Primitive(kind=PrimitiveKind.BOOL, width=8)
CHAR8 = Primitive(kind=PrimitiveKind.CHAR, width=8)
CHAR32 = Primitive(kind=PrimitiveKind.CHAR, width=32)
I8 = Primitive(kind=PrimitiveKind.INT, width=8)
I16 = Primitive(kind=PrimitiveKind.INT, width=16)
I32 = Primitive(kind=PrimitiveKind.INT, width=32)
I64 = Primitive(kind=PrimitiveKind.INT, width=64)
U8 = Primitive(kind=PrimitiveKind.UINT, width=8)
U16 = Primitive(kind=PrimitiveKind.UINT, width=16)
U32 = Primitive(kind=PrimitiveKind.UINT, width=32)
U64 = Primitive(kind=PrimitiveKind.UINT, width=64)
F32 = Primitive(kind=PrimitiveKind.FLOAT, width=32)
F64 = Primitive(kind=PrimitiveKind.FLOAT, width=64)
USIZE = Primitive(kind=PrimitiveKind.SIZE)
ISIZE = Primitive(kind=PrimitiveKind.SSIZE)


def pointer_to(ty: NativeType) -> Pointer:
    return Pointer(to=ty)


def struct_ref(name: str) -> StructRef:
    return StructRef(name=name)


def enum_ref(name: str) -> EnumRef:
    return EnumRef(name=name)


def union_ref(name: str) -> UnionRef:
    return UnionRef(name=name)


def opaque_ref(name: str) -> OpaqueRef:
    return OpaqueRef(name=name)


def typedef_ref(name: str) -> TypedefRef:
    return TypedefRef(name=name)


def array_of(ty: NativeType, length: int) -> Array:
    return Array(of=ty, length=length)


# ── traversal ────────────────────────────────────────────────────


def pointer_depth(ty: NativeType) -> tuple[int, NativeType]:
    """Return how many ``Pointer`` layers wrap *ty* and the innermost target."""
    depth = 0
    while isinstance(ty, Pointer):
        depth += 1
        ty = ty.to
    return depth, ty


def iter_types(ty: NativeType) -> Iterator[NativeType]:
    """Yield *ty* and every type nested inside it, outermost first."""
    yield ty
    if isinstance(ty, Pointer):
        yield from iter_types(ty.to)
    elif isinstance(ty, Array):
        yield from iter_types(ty.of)
    elif isinstance(ty, FunctionPointer):
        for param in ty.params:
            yield from iter_types(param)
        yield from iter_types(ty.returns)
