"""Tests for the Binding Emitter, run against every back-end."""

from __future__ import annotations

import inspect
import logging
import random
from dataclasses import replace

import pytest

from ffibind.backends import SUPPORTED_BACKENDS, default_policy
from ffibind.descriptor import (
    ConstantDef,
    FieldDef,
    FunctionDef,
    ModuleDescriptor,
    ParamDef,
    PassingMode,
    StructDef,
    TypedefDef,
)
from ffibind.emitter import BindingEmitter, Section, TextBlock, emit, render
from ffibind.errors import MalformedDescriptorError, UnsupportedTypeError
from ffibind.naming import Casing
from ffibind.types import (
    F64,
    I8,
    I32,
    I64,
    U16,
    Primitive,
    PrimitiveKind,
    pointer_to,
    struct_ref,
    typedef_ref,
)

I128 = Primitive(kind=PrimitiveKind.INT, width=128)

_RANK = {
    Section.LIBRARY_LOAD: 0,
    Section.CONSTANT: 1,
    Section.ENUM: 2,
    Section.OPAQUE: 3,
    Section.STRUCT_VALUE: 4,
    Section.STRUCT_REFERENCE: 4,
    Section.UNION_VALUE: 5,
    Section.UNION_REFERENCE: 5,
    Section.TYPEDEF: 6,
    Section.FUNCTION: 7,
    Section.EPILOGUE: 8,
}

_FIELD_LINES = {
    "java_jna": "public long val;",
    "python_ctypes": "('val', ctypes.c_int64),",
}


def _blocks(descriptor: ModuleDescriptor, backend: str, **overrides) -> list[TextBlock]:
    return list(emit(descriptor, default_policy(backend, **overrides)))


def _find_all(blocks: list[TextBlock], section: Section) -> list[TextBlock]:
    return [b for b in blocks if b.section == section]


def _names(blocks: list[TextBlock], section: Section) -> list[str]:
    return [b.name for b in _find_all(blocks, section)]


def _scale_descriptor(seed: int) -> ModuleDescriptor:
    rng = random.Random(seed)
    indices = list(range(50))
    struct_order = rng.sample(indices, 50)
    function_order = rng.sample(indices, 50)
    constant_order = rng.sample(indices, 50)
    widths = [I8, U16, I32, I64, F64]
    structs = tuple(
        StructDef(
            name=f"Struct{i}",
            fields=tuple(
                FieldDef(name=f"f{j}", ty=rng.choice(widths)) for j in range(1 + i % 4)
            ),
        )
        for i in struct_order
    )
    functions = tuple(
        FunctionDef(
            name=f"func{i}",
            params=(ParamDef(name="s", ty=pointer_to(struct_ref(f"Struct{i}"))),),
            returns=I32,
        )
        for i in function_order
    )
    constants = tuple(
        ConstantDef(name=f"CONST{i}", ty=I32, value=i) for i in constant_order
    )
    return ModuleDescriptor(
        name="scale", structs=structs, functions=functions, constants=constants
    )


@pytest.mark.parametrize("backend", SUPPORTED_BACKENDS)
class TestSectionOrder:
    def test_sections_in_fixed_order(self, geometry, backend):
        blocks = _blocks(geometry, backend)
        sections = [b.section for b in blocks]
        assert sections[0] == Section.LIBRARY_LOAD
        ranks = [_RANK[s] for s in sections]
        assert ranks == sorted(ranks)

    def test_new_item_kinds_in_fixed_order(self, widgets, backend):
        sections = [b.section for b in _blocks(widgets, backend)]
        ranks = [_RANK[s] for s in sections]
        assert ranks == sorted(ranks)
        assert {Section.OPAQUE, Section.UNION_VALUE, Section.TYPEDEF} <= set(sections)

    def test_variants_follow_their_struct(self, geometry, backend):
        blocks = _blocks(geometry, backend)
        struct_blocks = [
            (b.name, b.section)
            for b in blocks
            if b.section in (Section.STRUCT_VALUE, Section.STRUCT_REFERENCE)
        ]
        assert struct_blocks == [
            ("Point", Section.STRUCT_VALUE),
            ("Point", Section.STRUCT_REFERENCE),
            ("Shape", Section.STRUCT_VALUE),
            ("Shape", Section.STRUCT_REFERENCE),
            ("Handle", Section.STRUCT_REFERENCE),
        ]

    def test_empty_descriptor(self, backend):
        blocks = _blocks(ModuleDescriptor(name="empty"), backend)
        assert blocks[0].section == Section.LIBRARY_LOAD
        assert {b.section for b in blocks} <= {Section.LIBRARY_LOAD, Section.EPILOGUE}


@pytest.mark.parametrize("backend", SUPPORTED_BACKENDS)
class TestDeterminism:
    def test_identical_inputs_identical_output(self, geometry, backend):
        assert _blocks(geometry, backend) == _blocks(geometry, backend)

    def test_rendered_text_is_byte_identical(self, mod_2018, backend):
        first = render(_blocks(mod_2018, backend))
        second = render(_blocks(mod_2018, backend))
        assert first == second


@pytest.mark.parametrize("backend", SUPPORTED_BACKENDS)
class TestGeneratorContract:
    def test_emit_returns_a_generator(self, mod_2018, backend):
        result = emit(mod_2018, default_policy(backend))
        assert inspect.isgenerator(result)

    def test_generator_is_not_restartable(self, mod_2018, backend):
        result = emit(mod_2018, default_policy(backend))
        assert list(result)
        assert list(result) == []

    def test_fatal_errors_raise_from_emit_itself(self, backend):
        bad = ModuleDescriptor(
            name="m",
            structs=(StructDef(name="Wide", fields=(FieldDef(name="v", ty=I128),)),),
        )
        with pytest.raises(UnsupportedTypeError):
            emit(bad, default_policy(backend))

    def test_malformed_descriptor_raises_before_emission(self, backend):
        bad = ModuleDescriptor(
            name="m",
            functions=(
                FunctionDef(
                    name="f", params=(ParamDef(name="p", ty=pointer_to(struct_ref("X"))),)
                ),
            ),
        )
        with pytest.raises(MalformedDescriptorError, match="undeclared struct"):
            emit(bad, default_policy(backend))


@pytest.mark.parametrize("backend", SUPPORTED_BACKENDS)
class TestUnsupportedConstant:
    def test_placeholder_for_export_me_too(self, mod_2018, backend):
        constants = _find_all(_blocks(mod_2018, backend), Section.CONSTANT)
        assert len(constants) == 1
        block = constants[0]
        assert block.unsupported
        assert "Unsupported literal for constant EXPORT_ME_TOO" in block.text
        assert "42" not in block.text

    def test_other_constants_still_emit(self, backend):
        descriptor = ModuleDescriptor(
            name="m",
            constants=(
                ConstantDef(name="BEFORE", ty=I32, value=1),
                ConstantDef(name="EXPORT_ME_TOO", ty=I32, value=2, representable=False),
                ConstantDef(name="AFTER", ty=I32, value=3),
            ),
        )
        constants = _find_all(_blocks(descriptor, backend), Section.CONSTANT)
        assert [b.name for b in constants] == ["BEFORE", "EXPORT_ME_TOO", "AFTER"]
        assert [b.unsupported for b in constants] == [False, True, False]
        assert "= 1" in constants[0].text
        assert "= 3" in constants[2].text

    def test_unrepresentable_constant_logs_warning(self, mod_2018, backend, caplog):
        with caplog.at_level(logging.WARNING, logger="ffibind.emitter"):
            _blocks(mod_2018, backend)
        assert any("EXPORT_ME_TOO" in r.getMessage() for r in caplog.records)

    def test_custom_predicate_is_honoured(self, backend):
        descriptor = ModuleDescriptor(
            name="m", constants=(ConstantDef(name="SKIP_ME", ty=I32, value=7),)
        )
        blocks = _blocks(
            descriptor, backend, is_representable=lambda const: not const.name.startswith("SKIP")
        )
        (block,) = _find_all(blocks, Section.CONSTANT)
        assert block.unsupported
        assert "SKIP_ME" in block.text

    def test_descriptor_flag_wins_over_predicate(self, backend):
        descriptor = ModuleDescriptor(
            name="m",
            constants=(ConstantDef(name="NO", ty=I32, value=7, representable=False),),
        )
        blocks = _blocks(descriptor, backend, is_representable=lambda const: True)
        (block,) = _find_all(blocks, Section.CONSTANT)
        assert block.unsupported


@pytest.mark.parametrize("backend", SUPPORTED_BACKENDS)
class TestStructModes:
    def test_dual_mode_emits_two_distinct_declarations(self, mod_2018, backend):
        blocks = _blocks(mod_2018, backend)
        value = [b for b in _find_all(blocks, Section.STRUCT_VALUE) if b.name == "ExportMe"]
        reference = [
            b for b in _find_all(blocks, Section.STRUCT_REFERENCE) if b.name == "ExportMe"
        ]
        assert len(value) == 1 and len(reference) == 1
        assert value[0].text != reference[0].text
        assert "ExportMeByReference" in reference[0].text
        assert "ExportMeByReference" not in value[0].text
        field_line = _FIELD_LINES[backend]
        assert field_line in value[0].text
        assert field_line in reference[0].text

    def test_single_field_reference_only_struct(self, backend):
        descriptor = ModuleDescriptor(
            name="m",
            structs=(
                StructDef(
                    name="Single",
                    fields=(FieldDef(name="val", ty=I64),),
                    modes=frozenset({PassingMode.BY_REFERENCE}),
                ),
            ),
            functions=(
                FunctionDef(
                    name="take",
                    params=(ParamDef(name="s", ty=pointer_to(struct_ref("Single"))),),
                ),
            ),
        )
        blocks = _blocks(descriptor, backend)
        structs = [
            b
            for b in blocks
            if b.section in (Section.STRUCT_VALUE, Section.STRUCT_REFERENCE)
        ]
        assert [(b.name, b.section) for b in structs] == [
            ("Single", Section.STRUCT_REFERENCE)
        ]
        (function,) = _find_all(blocks, Section.FUNCTION)
        assert "SingleByReference" in function.text
        assert "SingleByReference" in structs[0].text


@pytest.mark.parametrize("backend", SUPPORTED_BACKENDS)
class TestFieldOrderFidelity:
    def test_fields_keep_declaration_order(self, backend):
        descriptor = ModuleDescriptor(
            name="m",
            structs=(
                StructDef(
                    name="Mixed",
                    fields=(
                        FieldDef(name="c_small", ty=I8),
                        FieldDef(name="a_large", ty=I64),
                        FieldDef(name="b_medium", ty=I32),
                    ),
                ),
            ),
        )
        for block in _blocks(descriptor, backend):
            if block.name != "Mixed":
                continue
            positions = [block.text.rindex(n) for n in ("c_small", "a_large", "b_medium")]
            assert positions == sorted(positions)


@pytest.mark.parametrize("backend", SUPPORTED_BACKENDS)
class TestScale:
    @pytest.mark.parametrize("seed", [0, 1, 2])
    def test_fifty_of_each_preserve_order(self, backend, seed):
        descriptor = _scale_descriptor(seed)
        blocks = _blocks(descriptor, backend)
        assert _names(blocks, Section.CONSTANT) == [c.name for c in descriptor.constants]
        assert _names(blocks, Section.FUNCTION) == [f.name for f in descriptor.functions]
        struct_names = _names(blocks, Section.STRUCT_VALUE)
        assert struct_names == [s.name for s in descriptor.structs]
        assert _names(blocks, Section.STRUCT_REFERENCE) == struct_names


@pytest.mark.parametrize("backend", SUPPORTED_BACKENDS)
class TestUnsupportedTypes:
    def _wide(self) -> ModuleDescriptor:
        return ModuleDescriptor(
            name="m",
            structs=(
                StructDef(name="Wide", fields=(FieldDef(name="v", ty=I128),)),
                StructDef(name="Narrow", fields=(FieldDef(name="v", ty=I32),)),
            ),
            functions=(FunctionDef(name="wide", returns=I128),),
        )

    def test_error_names_item_and_backend(self, backend):
        with pytest.raises(UnsupportedTypeError, match="i128") as info:
            _blocks(self._wide(), backend)
        assert info.value.name == "Wide"
        assert info.value.backend == backend

    def test_placeholders_when_opted_in(self, backend):
        blocks = _blocks(self._wide(), backend, error_on_unsupported_type=False)
        wide = [b for b in blocks if b.name == "Wide"]
        assert [b.section for b in wide] == [Section.STRUCT_VALUE, Section.STRUCT_REFERENCE]
        assert all(b.unsupported for b in wide)
        assert all("Unsupported type i128 in Wide" in b.text for b in wide)
        (function,) = _find_all(blocks, Section.FUNCTION)
        assert function.unsupported
        assert "Unsupported type i128 in wide" in function.text
        narrow = [b for b in blocks if b.name == "Narrow"]
        assert not any(b.unsupported for b in narrow)

    def test_placeholders_cascade_to_dependents(self, backend, caplog):
        descriptor = ModuleDescriptor(
            name="m",
            structs=(
                StructDef(name="Wide", fields=(FieldDef(name="v", ty=I128),)),
                StructDef(
                    name="Outer",
                    fields=(
                        FieldDef(name="w", ty=struct_ref("Wide")),
                        FieldDef(name="n", ty=I32),
                    ),
                ),
            ),
            typedefs=(TypedefDef(name="OuterAlias", aliased=struct_ref("Outer")),),
            functions=(
                FunctionDef(
                    name="take", params=(ParamDef(name="o", ty=typedef_ref("OuterAlias")),)
                ),
            ),
        )
        with caplog.at_level(logging.WARNING, logger="ffibind.emitter"):
            blocks = _blocks(descriptor, backend, error_on_unsupported_type=False)
        placeholders = {b.name: b.text for b in blocks if b.unsupported}
        assert "Unsupported type struct Wide in Outer" in placeholders["Outer"]
        assert "Unsupported type struct Outer in OuterAlias" in placeholders["OuterAlias"]
        assert "Unsupported type typedef OuterAlias in take" in placeholders["take"]
        assert "Outer" not in "".join(b.text for b in blocks if not b.unsupported)
        assert "it names placeholder struct Wide" in caplog.text


class TestNameCollisions:
    def test_reference_suffix_collision(self):
        descriptor = ModuleDescriptor(
            name="m",
            structs=(StructDef(name="Foo"), StructDef(name="FooByReference")),
        )
        with pytest.raises(MalformedDescriptorError, match="FooByReference") as info:
            _blocks(descriptor, "java_jna")
        assert info.value.backend == "java_jna"

    def test_casing_collision_only_for_casing_backend(self):
        descriptor = ModuleDescriptor(
            name="m",
            constants=(
                ConstantDef(name="maxPoints", ty=I32, value=1),
                ConstantDef(name="MAX_POINTS", ty=I32, value=2),
            ),
        )
        assert _blocks(descriptor, "java_jna")
        with pytest.raises(MalformedDescriptorError, match="MAX_POINTS") as info:
            _blocks(descriptor, "python_ctypes")
        assert info.value.backend == "python_ctypes"

    def test_shared_module_namespace(self):
        descriptor = ModuleDescriptor(
            name="m",
            structs=(StructDef(name="point"),),
            functions=(FunctionDef(name="Point"),),
        )
        naming = replace(default_policy("python_ctypes").naming, functions=Casing.PRESERVE)
        with pytest.raises(MalformedDescriptorError, match="'Point'"):
            _blocks(descriptor, "python_ctypes", naming=naming)


class TestRender:
    def test_blocks_joined_with_blank_line(self):
        blocks = [
            TextBlock(section=Section.CONSTANT, name="A", text="a\n"),
            TextBlock(section=Section.CONSTANT, name="B", text="b\n"),
        ]
        assert render(blocks) == "a\n\nb\n"

    def test_emitter_class_matches_function(self, geometry):
        policy = default_policy("java_jna")
        assert list(BindingEmitter(policy).emit(geometry)) == list(emit(geometry, policy))


class TestNewItemCollisions:
    def test_associated_constant_meets_module_constant(self):
        descriptor = ModuleDescriptor(
            name="m",
            constants=(ConstantDef(name="S_LIMIT", ty=I32, value=1),),
            structs=(
                StructDef(
                    name="S", constants=(ConstantDef(name="LIMIT", ty=I32, value=2),)
                ),
            ),
        )
        assert _blocks(descriptor, "java_jna")
        with pytest.raises(MalformedDescriptorError, match="S_LIMIT"):
            _blocks(descriptor, "python_ctypes")

    def test_typedef_reference_class_collision(self):
        descriptor = ModuleDescriptor(
            name="m",
            structs=(StructDef(name="CountByReference"),),
            typedefs=(TypedefDef(name="Count", aliased=I32),),
        )
        with pytest.raises(MalformedDescriptorError, match="CountByReference"):
            _blocks(descriptor, "java_jna")
