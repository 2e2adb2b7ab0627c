"""Shared descriptor fixtures for the ffibind unit tests."""

from __future__ import annotations

import pytest

from ffibind.descriptor import (
    ConstantDef,
    EnumDef,
    EnumVariant,
    FieldDef,
    FunctionDef,
    ModuleDescriptor,
    OpaqueDef,
    ParamDef,
    PassingMode,
    StructDef,
    TypedefDef,
    UnionDef,
)
from ffibind.types import (
    BOOL,
    CHAR8,
    F32,
    F64,
    I32,
    I64,
    U8,
    U16,
    U32,
    USIZE,
    VOID,
    FunctionPointer,
    array_of,
    enum_ref,
    opaque_ref,
    pointer_to,
    struct_ref,
    typedef_ref,
    union_ref,
)


@pytest.fixture
def mod_2018() -> ModuleDescriptor:
    """The module from the reference Java expectation ``mod_2018.java``."""
    return ModuleDescriptor(
        name="mod_2018",
        constants=(
            ConstantDef(name="EXPORT_ME_TOO", ty=U8, value=42, representable=False),
        ),
        structs=(
            StructDef(name="ExportMe", fields=(FieldDef(name="val", ty=I64),)),
            StructDef(name="ExportMe2", fields=(FieldDef(name="val", ty=I64),)),
        ),
        functions=(
            FunctionDef(
                name="export_me",
                params=(ParamDef(name="val", ty=pointer_to(struct_ref("ExportMe"))),),
            ),
            FunctionDef(
                name="export_me_2",
                params=(ParamDef(name="_", ty=pointer_to(struct_ref("ExportMe2"))),),
            ),
            FunctionDef(name="from_really_nested_mod"),
        ),
    )


@pytest.fixture
def geometry() -> ModuleDescriptor:
    """A module exercising enums, nesting, arrays, callbacks and docs."""
    return ModuleDescriptor(
        name="geometry",
        constants=(
            ConstantDef(name="MAX_POINTS", ty=I32, value=128, doc=("Upper bound.",)),
            ConstantDef(name="SCALE", ty=F64, value=1.5),
            ConstantDef(name="VERSION", ty=pointer_to(CHAR8), value="1.2"),
            ConstantDef(name="ENABLED", ty=BOOL, value=True),
            ConstantDef(name="DEFAULT_SHAPE", ty=enum_ref("ShapeKind"), value=1),
        ),
        enums=(
            EnumDef(
                name="ShapeKind",
                variants=(
                    EnumVariant(name="Circle"),
                    EnumVariant(name="Polygon"),
                    EnumVariant(name="Custom", value=10),
                    EnumVariant(name="Other"),
                ),
                doc=("Kinds of shape.",),
            ),
        ),
        structs=(
            StructDef(
                name="Point",
                fields=(FieldDef(name="x", ty=F32), FieldDef(name="y", ty=F32)),
            ),
            StructDef(
                name="Shape",
                fields=(
                    FieldDef(name="kind", ty=enum_ref("ShapeKind")),
                    FieldDef(name="origin", ty=struct_ref("Point")),
                    FieldDef(name="flags", ty=array_of(U16, 4)),
                    FieldDef(name="count", ty=USIZE),
                    FieldDef(name="points", ty=pointer_to(struct_ref("Point"))),
                ),
                doc=("A shape.",),
            ),
            StructDef(
                name="Handle",
                fields=(FieldDef(name="raw", ty=pointer_to(VOID)),),
                modes=frozenset({PassingMode.BY_REFERENCE}),
                deprecated="use Shape",
            ),
        ),
        functions=(
            FunctionDef(
                name="shape_area",
                params=(ParamDef(name="shape", ty=pointer_to(struct_ref("Shape"))),),
                returns=F64,
                doc=("Area of a shape.",),
            ),
            FunctionDef(
                name="make_point",
                params=(ParamDef(name="x", ty=F32), ParamDef(name="y", ty=F32)),
                returns=struct_ref("Point"),
            ),
            FunctionDef(
                name="visit_shapes",
                params=(
                    ParamDef(
                        name="callback",
                        ty=FunctionPointer(params=(pointer_to(struct_ref("Shape")),)),
                    ),
                    ParamDef(name="", ty=I32),
                ),
            ),
            FunctionDef(
                name="old_api",
                params=(ParamDef(name="handle", ty=pointer_to(struct_ref("Handle"))),),
                deprecated="use shape_area",
            ),
        ),
    )


@pytest.fixture
def widgets() -> ModuleDescriptor:
    """A module exercising unions, opaque handles, typedefs and transparent structs."""
    return ModuleDescriptor(
        name="widgets",
        opaques=(OpaqueDef(name="Engine", doc=("Owns every widget.",)),),
        unions=(
            UnionDef(
                name="Value",
                fields=(
                    FieldDef(name="i", ty=I64),
                    FieldDef(name="f", ty=F64),
                    FieldDef(name="raw", ty=array_of(U8, 12)),
                ),
            ),
        ),
        typedefs=(
            TypedefDef(name="WidgetId", aliased=U32, doc=("Stable widget id.",)),
            TypedefDef(
                name="EventFn",
                aliased=FunctionPointer(
                    params=(pointer_to(opaque_ref("Engine")), typedef_ref("WidgetId")),
                    returns=BOOL,
                ),
            ),
        ),
        structs=(
            StructDef(
                name="Millis",
                fields=(FieldDef(name="ms", ty=I64),),
                transparent=True,
            ),
            StructDef(
                name="Widget",
                fields=(
                    FieldDef(name="id", ty=typedef_ref("WidgetId")),
                    FieldDef(name="value", ty=union_ref("Value")),
                    FieldDef(name="timeout", ty=struct_ref("Millis")),
                    FieldDef(name="on_event", ty=typedef_ref("EventFn")),
                ),
                constants=(ConstantDef(name="MAX_CHILDREN", ty=I32, value=16),),
            ),
        ),
        functions=(
            FunctionDef(name="engine_new", returns=pointer_to(opaque_ref("Engine"))),
            FunctionDef(
                name="engine_poll",
                params=(
                    ParamDef(name="engine", ty=pointer_to(opaque_ref("Engine"))),
                    ParamDef(name="widget", ty=pointer_to(struct_ref("Widget"))),
                    ParamDef(name="timeout", ty=struct_ref("Millis")),
                ),
                returns=typedef_ref("WidgetId"),
            ),
        ),
    )
