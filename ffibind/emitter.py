"""Binding Emitter: turns a ModuleDescriptor into ordered, tagged text blocks."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable, Iterator

from pydantic import BaseModel, ConfigDict

from .backends import BaseBackend, TypePosition, get_backend
from .descriptor import ModuleDescriptor, PassingMode
from .errors import MalformedDescriptorError, UnsupportedTypeError
from .layout import LayoutResolver, StructLayout
from .policy import BackendPolicy
from .types import NativeType, StructRef, TypedefRef, UnionRef, iter_types
from .validate import validate_descriptor

logger = logging.getLogger(__name__)


class Section(str, Enum):
    LIBRARY_LOAD = "library_load"
    CONSTANT = "constant"
    ENUM = "enum"
    OPAQUE = "opaque"
    STRUCT_VALUE = "struct_value"
    STRUCT_REFERENCE = "struct_reference"
    UNION_VALUE = "union_value"
    UNION_REFERENCE = "union_reference"
    TYPEDEF = "typedef"
    FUNCTION = "function"
    EPILOGUE = "epilogue"


# Keyed by (is_union, mode)
_RECORD_SECTIONS: dict[tuple[bool, PassingMode], Section] = {
    (False, PassingMode.BY_VALUE): Section.STRUCT_VALUE,
    (False, PassingMode.BY_REFERENCE): Section.STRUCT_REFERENCE,
    (True, PassingMode.BY_VALUE): Section.UNION_VALUE,
    (True, PassingMode.BY_REFERENCE): Section.UNION_REFERENCE,
}

# Sections whose placeholder items are types other items may name
_TYPE_SECTIONS: frozenset[Section] = frozenset(
    {Section.STRUCT_VALUE, Section.UNION_VALUE, Section.TYPEDEF}
)

_NAMED_TYPES = (StructRef, UnionRef, TypedefRef)

ItemKey = tuple[Section, str]
TypedUses = list[tuple[NativeType, TypePosition]]


class TextBlock(BaseModel):
    """One piece of emitted source; ``unsupported`` marks placeholder text."""

    model_config = ConfigDict(frozen=True)

    section: Section
    name: str
    text: str
    unsupported: bool = False


def check_name_collisions(backend: BaseBackend, descriptor: ModuleDescriptor) -> None:
    """Raise ``MalformedDescriptorError`` if two items share an emitted identifier."""
    seen: dict[tuple[str, str], str] = {}
    for scope, emitted, source in backend.declared_names(descriptor):
        previous = seen.setdefault((scope, emitted), source)
        if previous != source:
            raise MalformedDescriptorError(
                f"{previous} and {source} both become '{emitted}' "
                f"in {scope} for {backend.NAME}",
                name=emitted,
                backend=backend.NAME,
            )


def _placeholder_reference(typed: TypedUses, skipped: set[str]) -> NativeType | None:
    for ty, _ in typed:
        for inner in iter_types(ty):
            if isinstance(inner, _NAMED_TYPES) and inner.name in skipped:
                return inner
    return None


class BindingEmitter:
    """Emits bindings for one back-end.

    ``emit`` performs every fatal check before it returns, so a caller that
    gets a generator back is guaranteed complete output.
    """

    def __init__(self, policy: BackendPolicy):
        self.policy = policy
        self.backend = get_backend(policy)

    def emit(self, descriptor: ModuleDescriptor) -> Iterator[TextBlock]:
        logger.info(
            "Emitting %s bindings for %s (%d constants, %d enums, %d structs, "
            "%d unions, %d typedefs, %d functions)",
            self.backend.NAME,
            descriptor.name,
            len(descriptor.constants),
            len(descriptor.enums),
            len(descriptor.structs),
            len(descriptor.unions),
            len(descriptor.typedefs),
            len(descriptor.functions),
        )
        validate_descriptor(descriptor)
        layouts = LayoutResolver(pointer_size=self.policy.pointer_size).resolve_all(
            descriptor
        )
        self.backend.prepare(descriptor, layouts)
        check_name_collisions(self.backend, descriptor)
        representable = {
            const.name: self.backend.is_representable(const)
            for const in descriptor.constants
        }
        items = self._typed_items(descriptor, representable)
        unsupported = self._check_types(items)
        self._cascade_placeholders(items, unsupported)
        self.backend.mark_placeholders(
            frozenset(name for section, name in unsupported if section in _TYPE_SECTIONS)
        )
        return self._blocks(descriptor, layouts, representable, unsupported)

    # ── eager checks ─────────────────────────────────────────────

    def _typed_items(
        self, descriptor: ModuleDescriptor, representable: dict[str, bool]
    ) -> list[tuple[ItemKey, TypedUses]]:
        """Every placeholder-able item with the types it maps and where.

        Record items are keyed under their by-value section and cover both
        variants.
        """
        items: list[tuple[ItemKey, TypedUses]] = []
        for const in descriptor.constants:
            if representable[const.name]:
                items.append(
                    ((Section.CONSTANT, const.name), [(const.ty, TypePosition.CONSTANT)])
                )
        for struct in descriptor.structs:
            position = (
                TypePosition.TRANSPARENT if struct.transparent else TypePosition.FIELD
            )
            typed = [(f.ty, position) for f in struct.fields]
            typed.extend(
                (const.ty, TypePosition.CONSTANT)
                for const in struct.constants
                if self.backend.is_representable(const)
            )
            items.append(((Section.STRUCT_VALUE, struct.name), typed))
        for union in descriptor.unions:
            items.append(
                (
                    (Section.UNION_VALUE, union.name),
                    [(f.ty, TypePosition.FIELD) for f in union.fields],
                )
            )
        for typedef in descriptor.typedefs:
            items.append(
                (
                    (Section.TYPEDEF, typedef.name),
                    [(typedef.aliased, TypePosition.TYPEDEF)],
                )
            )
        for func in descriptor.functions:
            typed = [(p.ty, TypePosition.PARAM) for p in func.params]
            typed.append((func.returns, TypePosition.RETURN))
            items.append(((Section.FUNCTION, func.name), typed))
        return items

    def _check_types(self, items: list[tuple[ItemKey, TypedUses]]) -> dict[ItemKey, str]:
        """Map every type in every position, collecting placeholder items."""
        unsupported: dict[ItemKey, str] = {}
        for key, typed in items:
            for ty, position in typed:
                try:
                    self.backend.map_type(ty, position, owner=key[1])
                except UnsupportedTypeError as exc:
                    if self.policy.error_on_unsupported_type:
                        raise
                    logger.warning("Placeholder for %s: %s", key[1], exc)
                    unsupported[key] = str(ty)
                    break
        return unsupported

    def _cascade_placeholders(
        self, items: list[tuple[ItemKey, TypedUses]], unsupported: dict[ItemKey, str]
    ) -> None:
        """Turn every item naming a placeholder type into a placeholder too."""
        changed = bool(unsupported)
        while changed:
            changed = False
            skipped = {name for section, name in unsupported if section in _TYPE_SECTIONS}
            for key, typed in items:
                if key in unsupported:
                    continue
                reference = _placeholder_reference(typed, skipped)
                if reference is not None:
                    logger.warning(
                        "Placeholder for %s: it names placeholder %s", key[1], reference
                    )
                    unsupported[key] = str(reference)
                    changed = True

    # ── lazy emission ────────────────────────────────────────────

    def _blocks(
        self,
        descriptor: ModuleDescriptor,
        layouts: dict[str, StructLayout],
        representable: dict[str, bool],
        unsupported: dict[ItemKey, str],
    ) -> Iterator[TextBlock]:
        backend = self.backend

        yield self._block(
            Section.LIBRARY_LOAD, descriptor.name, backend.render_library_load(descriptor)
        )

        for const in descriptor.constants:
            if not representable[const.name]:
                logger.warning(
                    "Constant %s is not representable in %s; emitting placeholder",
                    const.name,
                    backend.NAME,
                )
                yield self._block(
                    Section.CONSTANT,
                    const.name,
                    backend.render_unrepresentable_constant(const),
                    unsupported=True,
                )
            elif (Section.CONSTANT, const.name) in unsupported:
                yield self._placeholder(Section.CONSTANT, const.name, unsupported)
            else:
                yield self._block(
                    Section.CONSTANT, const.name, backend.render_constant(const)
                )

        for enum in descriptor.enums:
            yield self._block(Section.ENUM, enum.name, backend.render_enum(enum))

        for opaque in descriptor.opaques:
            yield self._block(Section.OPAQUE, opaque.name, backend.render_opaque(opaque))

        for record in descriptor.records():
            layout = layouts[record.name]
            key_section = _RECORD_SECTIONS[(layout.is_union, PassingMode.BY_VALUE)]
            for variant in layout.variants:
                section = _RECORD_SECTIONS[(layout.is_union, variant.mode)]
                if (key_section, record.name) in unsupported:
                    yield self._placeholder(
                        section, record.name, unsupported, key_section
                    )
                else:
                    yield self._block(
                        section, record.name, backend.render_struct(layout, variant)
                    )

        for typedef in descriptor.typedefs:
            if (Section.TYPEDEF, typedef.name) in unsupported:
                yield self._placeholder(Section.TYPEDEF, typedef.name, unsupported)
            else:
                yield self._block(
                    Section.TYPEDEF, typedef.name, backend.render_typedef(typedef)
                )

        for func in descriptor.functions:
            if (Section.FUNCTION, func.name) in unsupported:
                yield self._placeholder(Section.FUNCTION, func.name, unsupported)
            else:
                yield self._block(
                    Section.FUNCTION, func.name, backend.render_function(func)
                )

        epilogue = backend.render_epilogue(descriptor)
        if epilogue:
            yield self._block(Section.EPILOGUE, descriptor.name, epilogue)

    def _placeholder(
        self,
        section: Section,
        name: str,
        unsupported: dict[ItemKey, str],
        key_section: Section | None = None,
    ) -> TextBlock:
        ty = unsupported[(key_section or section, name)]
        return self._block(
            section,
            name,
            self.backend.render_unsupported_type(ty, name),
            unsupported=True,
        )

    def _block(
        self, section: Section, name: str, text: str, unsupported: bool = False
    ) -> TextBlock:
        logger.debug("Block %s %s (%d chars)", section.value, name, len(text))
        return TextBlock(section=section, name=name, text=text, unsupported=unsupported)


def emit(descriptor: ModuleDescriptor, policy: BackendPolicy) -> Iterator[TextBlock]:
    """Emit *descriptor* with the back-end selected by *policy*."""
    return BindingEmitter(policy).emit(descriptor)


def render(blocks: Iterable[TextBlock]) -> str:
    """Join block texts into one source file, one blank line between blocks."""
    return "\n".join(block.text for block in blocks)
