"""Tests for descriptor validation."""

from __future__ import annotations

import pytest

from ffibind.descriptor import (
    ConstantDef,
    EnumDef,
    EnumVariant,
    FieldDef,
    FunctionDef,
    ModuleDescriptor,
    ParamDef,
    OpaqueDef,
    PassingMode,
    StructDef,
    TypedefDef,
    UnionDef,
)
from ffibind.errors import MalformedDescriptorError
from ffibind.types import (
    I32,
    I64,
    USIZE,
    VOID,
    Primitive,
    PrimitiveKind,
    array_of,
    enum_ref,
    opaque_ref,
    pointer_to,
    struct_ref,
    typedef_ref,
    union_ref,
)
from ffibind.validate import is_identifier, validate_descriptor


def _module(**items) -> ModuleDescriptor:
    return ModuleDescriptor(name="m", **items)


def _struct(name: str, *fields: FieldDef, modes=None) -> StructDef:
    if modes is None:
        return StructDef(name=name, fields=fields)
    return StructDef(name=name, fields=fields, modes=frozenset(modes))


class TestValidDescriptors:
    def test_fixtures_are_valid(self, mod_2018, geometry, widgets):
        validate_descriptor(mod_2018)
        validate_descriptor(geometry)
        validate_descriptor(widgets)

    def test_empty_module_is_valid(self):
        validate_descriptor(_module())

    def test_self_reference_through_pointer_is_valid(self):
        node = _struct("Node", FieldDef(name="next", ty=pointer_to(struct_ref("Node"))))
        validate_descriptor(_module(structs=(node,)))

    def test_anonymous_params_may_repeat(self):
        func = FunctionDef(
            name="f", params=(ParamDef(name="_", ty=I32), ParamDef(name="_", ty=I32))
        )
        validate_descriptor(_module(functions=(func,)))


class TestIdentifiers:
    def test_identifier_alphabet(self):
        assert is_identifier("_private9")
        assert not is_identifier("9lives")
        assert not is_identifier("has-dash")
        assert not is_identifier("")

    def test_invalid_module_name(self):
        with pytest.raises(MalformedDescriptorError, match="Module name"):
            validate_descriptor(ModuleDescriptor(name="  "))

    def test_invalid_field_name(self):
        bad = _struct("S", FieldDef(name="a b", ty=I32))
        with pytest.raises(MalformedDescriptorError, match="Invalid field identifier"):
            validate_descriptor(_module(structs=(bad,)))


class TestDuplicates:
    def test_duplicate_struct(self):
        with pytest.raises(MalformedDescriptorError, match="Duplicate struct name 'S'"):
            validate_descriptor(_module(structs=(_struct("S"), _struct("S"))))

    def test_duplicate_function(self):
        funcs = (FunctionDef(name="f"), FunctionDef(name="f"))
        with pytest.raises(MalformedDescriptorError, match="Duplicate function"):
            validate_descriptor(_module(functions=funcs))

    def test_duplicate_constant(self):
        consts = (
            ConstantDef(name="C", ty=I32, value=1),
            ConstantDef(name="C", ty=I32, value=2),
        )
        with pytest.raises(MalformedDescriptorError, match="Duplicate constant"):
            validate_descriptor(_module(constants=consts))

    def test_duplicate_field(self):
        bad = _struct("S", FieldDef(name="a", ty=I32), FieldDef(name="a", ty=I64))
        with pytest.raises(MalformedDescriptorError, match="Duplicate field name 'a' in 'S'"):
            validate_descriptor(_module(structs=(bad,)))

    def test_duplicate_param(self):
        func = FunctionDef(
            name="f", params=(ParamDef(name="a", ty=I32), ParamDef(name="a", ty=I32))
        )
        with pytest.raises(MalformedDescriptorError, match="Duplicate parameter"):
            validate_descriptor(_module(functions=(func,)))

    def test_duplicate_variant(self):
        enum = EnumDef(name="E", variants=(EnumVariant(name="A"), EnumVariant(name="A")))
        with pytest.raises(MalformedDescriptorError, match="Duplicate variant"):
            validate_descriptor(_module(enums=(enum,)))

    def test_struct_and_enum_share_name(self):
        with pytest.raises(MalformedDescriptorError, match="both as struct and enum"):
            validate_descriptor(_module(structs=(_struct("T"),), enums=(EnumDef(name="T"),)))


class TestReferences:
    def test_dangling_struct(self):
        func = FunctionDef(name="f", params=(ParamDef(name="p", ty=pointer_to(struct_ref("Nope"))),))
        with pytest.raises(MalformedDescriptorError, match="undeclared struct 'Nope'") as info:
            validate_descriptor(_module(functions=(func,)))
        assert info.value.name == "f"

    def test_dangling_enum(self):
        bad = _struct("S", FieldDef(name="e", ty=enum_ref("Missing")))
        with pytest.raises(MalformedDescriptorError, match="undeclared enum"):
            validate_descriptor(_module(structs=(bad,)))

    def test_struct_without_modes(self):
        with pytest.raises(MalformedDescriptorError, match="no passing mode"):
            validate_descriptor(_module(structs=(_struct("S", modes=()),)))


class TestPassingModes:
    def test_pointer_needs_reference_mode(self):
        value_only = _struct("V", modes={PassingMode.BY_VALUE})
        func = FunctionDef(name="f", params=(ParamDef(name="v", ty=pointer_to(struct_ref("V"))),))
        with pytest.raises(MalformedDescriptorError, match="by_reference"):
            validate_descriptor(_module(structs=(value_only,), functions=(func,)))

    def test_value_needs_value_mode(self):
        ref_only = _struct("R", modes={PassingMode.BY_REFERENCE})
        func = FunctionDef(name="f", returns=struct_ref("R"))
        with pytest.raises(MalformedDescriptorError, match="by_value"):
            validate_descriptor(_module(structs=(ref_only,), functions=(func,)))

    def test_double_pointer_needs_no_mode(self):
        value_only = _struct("V", modes={PassingMode.BY_VALUE})
        ref_only = _struct("R", modes={PassingMode.BY_REFERENCE})
        func = FunctionDef(
            name="f",
            params=(
                ParamDef(name="v", ty=pointer_to(pointer_to(struct_ref("V")))),
                ParamDef(name="r", ty=pointer_to(pointer_to(struct_ref("R")))),
            ),
        )
        validate_descriptor(_module(structs=(value_only, ref_only), functions=(func,)))

    def test_typedef_passes_through_to_its_record(self):
        ref_only = _struct("R", modes={PassingMode.BY_REFERENCE})
        alias = TypedefDef(name="RAlias", aliased=struct_ref("R"))
        func = FunctionDef(
            name="f", params=(ParamDef(name="r", ty=pointer_to(typedef_ref("RAlias"))),)
        )
        with pytest.raises(MalformedDescriptorError, match="by_value"):
            validate_descriptor(_module(structs=(ref_only,), typedefs=(alias,)))
        value_only = _struct("R", modes={PassingMode.BY_VALUE})
        with pytest.raises(MalformedDescriptorError, match="by_reference"):
            validate_descriptor(
                _module(structs=(value_only,), typedefs=(alias,), functions=(func,))
            )


class TestTypeShapes:
    def test_void_parameter(self):
        func = FunctionDef(name="f", params=(ParamDef(name="v", ty=VOID),))
        with pytest.raises(MalformedDescriptorError, match="void by value"):
            validate_descriptor(_module(functions=(func,)))

    def test_void_pointer_parameter_is_fine(self):
        func = FunctionDef(name="f", params=(ParamDef(name="v", ty=pointer_to(VOID)),))
        validate_descriptor(_module(functions=(func,)))

    def test_array_return(self):
        func = FunctionDef(name="f", returns=array_of(I32, 2))
        with pytest.raises(MalformedDescriptorError, match="returns an array"):
            validate_descriptor(_module(functions=(func,)))

    def test_zero_length_array(self):
        bad = _struct("S", FieldDef(name="a", ty=array_of(I32, 0)))
        with pytest.raises(MalformedDescriptorError, match="length 0"):
            validate_descriptor(_module(structs=(bad,)))

    def test_missing_width(self):
        bad = _struct("S", FieldDef(name="a", ty=Primitive(kind=PrimitiveKind.INT)))
        with pytest.raises(MalformedDescriptorError, match="invalid width None"):
            validate_descriptor(_module(structs=(bad,)))

    def test_odd_width(self):
        bad = _struct("S", FieldDef(name="a", ty=Primitive(kind=PrimitiveKind.INT, width=12)))
        with pytest.raises(MalformedDescriptorError, match="invalid width 12"):
            validate_descriptor(_module(structs=(bad,)))

    def test_pointer_sized_with_width(self):
        sized = Primitive(kind=PrimitiveKind.SIZE, width=64)
        bad = _struct("S", FieldDef(name="a", ty=sized))
        with pytest.raises(MalformedDescriptorError, match="pointer-sized"):
            validate_descriptor(_module(structs=(bad,)))

    def test_pointer_sized_without_width(self):
        validate_descriptor(_module(structs=(_struct("S", FieldDef(name="n", ty=USIZE)),)))


class TestValueCycles:
    def test_direct_self_containment(self):
        bad = _struct("S", FieldDef(name="me", ty=struct_ref("S")))
        with pytest.raises(MalformedDescriptorError, match="contains itself"):
            validate_descriptor(_module(structs=(bad,)))

    def test_transitive_containment_through_array(self):
        a = _struct("A", FieldDef(name="bs", ty=array_of(struct_ref("B"), 2)))
        b = _struct("B", FieldDef(name="a", ty=struct_ref("A")))
        with pytest.raises(MalformedDescriptorError, match="A -> B -> A"):
            validate_descriptor(_module(structs=(a, b)))

    def test_union_containing_itself(self):
        bad = UnionDef(name="U", fields=(FieldDef(name="me", ty=array_of(union_ref("U"), 1)),))
        with pytest.raises(MalformedDescriptorError, match="Union 'U' contains itself"):
            validate_descriptor(_module(unions=(bad,)))

    def test_containment_through_typedef(self):
        a = _struct("A", FieldDef(name="b", ty=typedef_ref("BAlias")))
        b = _struct("B", FieldDef(name="a", ty=struct_ref("A")))
        alias = TypedefDef(name="BAlias", aliased=struct_ref("B"))
        with pytest.raises(MalformedDescriptorError, match="A -> B -> A"):
            validate_descriptor(_module(structs=(a, b), typedefs=(alias,)))


class TestAliases:
    def test_undeclared_typedef(self):
        bad = _struct("S", FieldDef(name="t", ty=typedef_ref("Missing")))
        with pytest.raises(MalformedDescriptorError, match="undeclared typedef 'Missing'"):
            validate_descriptor(_module(structs=(bad,)))

    def test_undeclared_union(self):
        func = FunctionDef(name="f", returns=union_ref("Gone"))
        with pytest.raises(MalformedDescriptorError, match="undeclared union 'Gone'"):
            validate_descriptor(_module(functions=(func,)))

    def test_typedef_cycle(self):
        a = TypedefDef(name="A", aliased=typedef_ref("B"))
        b = TypedefDef(name="B", aliased=pointer_to(typedef_ref("A")))
        with pytest.raises(
            MalformedDescriptorError, match=r"defined in terms of itself \(A -> B -> A\)"
        ):
            validate_descriptor(_module(typedefs=(a, b)))

    def test_transparent_struct_cycle(self):
        wrap = StructDef(
            name="Wrap",
            fields=(FieldDef(name="p", ty=pointer_to(typedef_ref("WrapPtr"))),),
            transparent=True,
        )
        alias = TypedefDef(name="WrapPtr", aliased=struct_ref("Wrap"))
        with pytest.raises(MalformedDescriptorError, match="WrapPtr -> Wrap -> WrapPtr"):
            validate_descriptor(_module(structs=(wrap,), typedefs=(alias,)))

    def test_transparent_struct_needs_one_field(self):
        bad = StructDef(
            name="T",
            fields=(FieldDef(name="a", ty=I32), FieldDef(name="b", ty=I32)),
            transparent=True,
        )
        with pytest.raises(MalformedDescriptorError, match="exactly one field, not 2"):
            validate_descriptor(_module(structs=(bad,)))

    def test_typedef_and_struct_share_name(self):
        alias = TypedefDef(name="T", aliased=I32)
        with pytest.raises(MalformedDescriptorError, match="both as struct and typedef"):
            validate_descriptor(_module(structs=(_struct("T"),), typedefs=(alias,)))

    def test_associated_constants_are_checked(self):
        bad = StructDef(
            name="S",
            constants=(
                ConstantDef(name="A", ty=I32, value=1),
                ConstantDef(name="A", ty=I32, value=2),
            ),
        )
        with pytest.raises(MalformedDescriptorError, match="Duplicate constant name 'A' in 'S'"):
            validate_descriptor(_module(structs=(bad,)))


class TestOpaques:
    def test_opaque_behind_pointer_is_valid(self):
        func = FunctionDef(name="f", returns=pointer_to(opaque_ref("H")))
        validate_descriptor(_module(opaques=(OpaqueDef(name="H"),), functions=(func,)))

    def test_opaque_by_value(self):
        func = FunctionDef(name="f", params=(ParamDef(name="h", ty=opaque_ref("H")),))
        with pytest.raises(MalformedDescriptorError, match="uses opaque type 'H' by value"):
            validate_descriptor(_module(opaques=(OpaqueDef(name="H"),), functions=(func,)))

    def test_undeclared_opaque(self):
        func = FunctionDef(name="f", returns=pointer_to(opaque_ref("H")))
        with pytest.raises(MalformedDescriptorError, match="undeclared opaque type 'H'"):
            validate_descriptor(_module(functions=(func,)))
