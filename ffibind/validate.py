"""Structural validation of a ModuleDescriptor before any emission."""

from __future__ import annotations

import logging
import re
from typing import Iterable

from .descriptor import (
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
)
from .errors import MalformedDescriptorError
from .types import (
    POINTER_SIZED_KINDS,
    Array,
    EnumRef,
    FunctionPointer,
    NativeType,
    OpaqueRef,
    Pointer,
    Primitive,
    StructRef,
    TypedefRef,
    UnionRef,
    Void,
    iter_types,
)
from . import constants

logger = logging.getLogger(__name__)

_IDENTIFIER_RE = re.compile(constants.IDENTIFIER_PATTERN)


def is_identifier(name: str) -> bool:
    return bool(_IDENTIFIER_RE.match(name))


def validate_descriptor(descriptor: ModuleDescriptor) -> None:
    """Reject *descriptor* with ``MalformedDescriptorError`` if it is inconsistent.

    Checks identifiers, duplicate names, dangling type references,
    passing-mode requirements, by-value ``void`` and opaque types, alias
    cycles and by-value record cycles. Returns ``None`` when the
    descriptor is usable.
    """
    if not descriptor.name.strip():
        raise MalformedDescriptorError("Module name must not be empty")

    namespaces = {
        "struct": _index_by_name(descriptor.structs, "struct"),
        "union": _index_by_name(descriptor.unions, "union"),
        "enum": _index_by_name(descriptor.enums, "enum"),
        "opaque": _index_by_name(descriptor.opaques, "opaque"),
        "typedef": _index_by_name(descriptor.typedefs, "typedef"),
    }
    _reject_shared_type_names(namespaces)

    checker = _TypeChecker(
        structs=namespaces["struct"],
        unions=namespaces["union"],
        enums=namespaces["enum"],
        opaques=namespaces["opaque"],
        typedefs=namespaces["typedef"],
    )
    # Alias chains must be finite before any type is resolved through them
    _reject_alias_cycles(descriptor)

    for struct in descriptor.structs:
        _validate_struct(struct, checker)
    for union in descriptor.unions:
        _validate_record(union, checker, "Union")
    for enum in descriptor.enums:
        _validate_enum(enum)
    for typedef in descriptor.typedefs:
        checker.check(typedef.aliased, owner=typedef.name, position="typedef")

    _require_unique((f.name for f in descriptor.functions), "function", "")
    for func in descriptor.functions:
        _validate_function(func, checker)

    _validate_constants(descriptor.constants, checker, "")

    _reject_value_cycles(descriptor.records(), checker)
    logger.debug(
        "Descriptor %s is valid (%d structs, %d unions, %d typedefs, %d functions, "
        "%d constants, %d enums, %d opaques)",
        descriptor.name,
        len(descriptor.structs),
        len(descriptor.unions),
        len(descriptor.typedefs),
        len(descriptor.functions),
        len(descriptor.constants),
        len(descriptor.enums),
        len(descriptor.opaques),
    )


# ── per-item checks ──────────────────────────────────────────────


def _validate_record(record: Record, checker: _TypeChecker, kind: str) -> None:
    if not record.modes:
        raise MalformedDescriptorError(
            f"{kind} '{record.name}' declares no passing mode", name=record.name
        )
    _require_unique((f.name for f in record.fields), "field", record.name)
    for field in record.fields:
        _require_identifier(field.name, "field", record.name)
        checker.check(field.ty, owner=record.name, position="field")


def _validate_struct(struct: StructDef, checker: _TypeChecker) -> None:
    _validate_record(struct, checker, "Struct")
    if struct.transparent and len(struct.fields) != 1:
        raise MalformedDescriptorError(
            f"Transparent struct '{struct.name}' must have exactly one field, "
            f"not {len(struct.fields)}",
            name=struct.name,
        )
    _validate_constants(struct.constants, checker, struct.name)


def _validate_constants(
    consts: tuple[ConstantDef, ...], checker: _TypeChecker, owner: str
) -> None:
    _require_unique((c.name for c in consts), "constant", owner)
    for const in consts:
        _require_identifier(const.name, "constant", owner or const.name)
        checker.check(const.ty, owner=owner or const.name, position="constant")


def _validate_enum(enum: EnumDef) -> None:
    _require_unique((v.name for v in enum.variants), "variant", enum.name)
    for variant in enum.variants:
        _require_identifier(variant.name, "variant", enum.name)


def _validate_function(func: FunctionDef, checker: _TypeChecker) -> None:
    _require_identifier(func.name, "function", func.name)
    named = [
        p.name for p in func.params if p.name not in constants.ANONYMOUS_PARAM_NAMES
    ]
    _require_unique(named, "parameter", func.name)
    for param in func.params:
        if param.name not in constants.ANONYMOUS_PARAM_NAMES:
            _require_identifier(param.name, "parameter", func.name)
        checker.check(param.ty, owner=func.name, position="param")
    checker.check(func.returns, owner=func.name, position="return")


def _index_by_name(items: Iterable, kind: str) -> dict:
    index: dict = {}
    for item in items:
        _require_identifier(item.name, kind, item.name)
        if item.name in index:
            raise MalformedDescriptorError(
                f"Duplicate {kind} name '{item.name}'", name=item.name
            )
        index[item.name] = item
    return index


def _reject_shared_type_names(namespaces: dict[str, dict]) -> None:
    owners: dict[str, str] = {}
    for kind, index in namespaces.items():
        for name in index:
            previous = owners.setdefault(name, kind)
            if previous != kind:
                raise MalformedDescriptorError(
                    f"Type name '{name}' is declared both as {previous} and {kind}",
                    name=name,
                )


def _require_identifier(name: str, kind: str, owner: str) -> None:
    if not is_identifier(name):
        raise MalformedDescriptorError(
            f"Invalid {kind} identifier {name!r} in '{owner}'", name=owner or name
        )


def _require_unique(names: Iterable[str], kind: str, owner: str) -> None:
    seen: set[str] = set()
    for name in names:
        if name in seen:
            where = f" in '{owner}'" if owner else ""
            raise MalformedDescriptorError(
                f"Duplicate {kind} name '{name}'{where}", name=owner or name
            )
        seen.add(name)


# ── types ────────────────────────────────────────────────────────


class _TypeChecker:
    """Walks a type checking references, widths and passing modes.

    ``depth`` counts the pointers wrapped around the type being checked.
    A record named at depth 0 is passed by value and at depth 1 by
    reference; deeper pointers pass only an address and need no mode.
    """

    def __init__(
        self,
        structs: dict[str, StructDef],
        unions: dict[str, UnionDef],
        enums: dict[str, EnumDef],
        opaques: dict[str, OpaqueDef],
        typedefs: dict[str, TypedefDef],
    ):
        self.records: dict[str, Record] = {**structs, **unions}
        self._structs = structs
        self._unions = unions
        self._enums = enums
        self._opaques = opaques
        self.typedefs = typedefs

    def check(self, ty: NativeType, *, owner: str, position: str) -> None:
        self._check(ty, owner=owner, position=position, depth=0)

    def _check(self, ty: NativeType, *, owner: str, position: str, depth: int) -> None:
        if isinstance(ty, Primitive):
            self._check_width(ty, owner)
        elif isinstance(ty, Void):
            if depth == 0 and position != "return":
                raise MalformedDescriptorError(
                    f"'{owner}' uses void by value as a {position}", name=owner
                )
        elif isinstance(ty, Pointer):
            self._check(ty.to, owner=owner, position=position, depth=depth + 1)
        elif isinstance(ty, StructRef):
            self._check_record_ref(self._structs, "struct", ty.name, owner, depth)
        elif isinstance(ty, UnionRef):
            self._check_record_ref(self._unions, "union", ty.name, owner, depth)
        elif isinstance(ty, EnumRef):
            self._require_declared(self._enums, "enum", ty.name, owner)
        elif isinstance(ty, OpaqueRef):
            self._require_declared(self._opaques, "opaque type", ty.name, owner)
            if depth == 0:
                raise MalformedDescriptorError(
                    f"'{owner}' uses opaque type '{ty.name}' by value", name=owner
                )
        elif isinstance(ty, TypedefRef):
            self._require_declared(self.typedefs, "typedef", ty.name, owner)
            self._check(
                self.typedefs[ty.name].aliased,
                owner=owner,
                position=position,
                depth=depth,
            )
        elif isinstance(ty, Array):
            if ty.length < 1:
                raise MalformedDescriptorError(
                    f"'{owner}' declares an array of length {ty.length}", name=owner
                )
            if position == "return" and depth == 0:
                raise MalformedDescriptorError(
                    f"'{owner}' returns an array by value", name=owner
                )
            self._check(ty.of, owner=owner, position="field", depth=0)
        elif isinstance(ty, FunctionPointer):
            for param in ty.params:
                self._check(param, owner=owner, position="param", depth=0)
            self._check(ty.returns, owner=owner, position="return", depth=0)

    def _check_width(self, ty: Primitive, owner: str) -> None:
        if ty.kind in POINTER_SIZED_KINDS:
            if ty.width is not None:
                raise MalformedDescriptorError(
                    f"'{owner}' gives pointer-sized {ty.kind.value} a width",
                    name=owner,
                )
            return
        if ty.width is None or ty.width <= 0 or ty.width % 8:
            raise MalformedDescriptorError(
                f"'{owner}' uses {ty.kind.value} with invalid width {ty.width}",
                name=owner,
            )

    @staticmethod
    def _require_declared(index: dict, kind: str, name: str, owner: str) -> None:
        if name not in index:
            raise MalformedDescriptorError(
                f"'{owner}' references undeclared {kind} '{name}'", name=owner
            )

    def _check_record_ref(
        self, index: dict[str, Record], kind: str, name: str, owner: str, depth: int
    ) -> None:
        self._require_declared(index, kind, name, owner)
        if depth > 1:
            return
        required = PassingMode.BY_REFERENCE if depth == 1 else PassingMode.BY_VALUE
        if not index[name].supports(required):
            raise MalformedDescriptorError(
                f"'{owner}' passes {kind} '{name}' {required.value}, "
                f"which '{name}' does not support",
                name=owner,
            )


# ── cycles ───────────────────────────────────────────────────────


def _find_cycle(order: Iterable[str], edges: dict[str, list[str]]) -> list[str] | None:
    """Return the first cycle reachable in *edges*, closed on its start."""
    done: set[str] = set()

    def visit(name: str, path: list[str]) -> list[str] | None:
        if name in path:
            return path[path.index(name) :] + [name]
        if name in done:
            return None
        path.append(name)
        for target in edges.get(name, ()):
            cycle = visit(target, path)
            if cycle is not None:
                return cycle
        path.pop()
        done.add(name)
        return None

    for name in order:
        cycle = visit(name, [])
        if cycle is not None:
            return cycle
    return None


def _alias_targets(ty: NativeType, transparent: set[str]) -> list[str]:
    return [
        inner.name
        for inner in iter_types(ty)
        if isinstance(inner, TypedefRef)
        or (isinstance(inner, StructRef) and inner.name in transparent)
    ]


def _reject_alias_cycles(descriptor: ModuleDescriptor) -> None:
    """Typedefs and transparent structs must not stand for themselves."""
    transparent = {s.name for s in descriptor.structs if s.transparent}
    edges: dict[str, list[str]] = {}
    for typedef in descriptor.typedefs:
        edges[typedef.name] = _alias_targets(typedef.aliased, transparent)
    for struct in descriptor.structs:
        if struct.transparent:
            edges[struct.name] = [
                target
                for f in struct.fields
                for target in _alias_targets(f.ty, transparent)
            ]
    cycle = _find_cycle(edges, edges)
    if cycle is not None:
        raise MalformedDescriptorError(
            f"'{cycle[0]}' is defined in terms of itself ({' -> '.join(cycle)})",
            name=cycle[0],
        )


def _value_members(ty: NativeType, typedefs: dict[str, TypedefDef]) -> list[str]:
    """Record names embedded by value in *ty* (through arrays and typedefs)."""
    if isinstance(ty, (StructRef, UnionRef)):
        return [ty.name]
    if isinstance(ty, Array):
        return _value_members(ty.of, typedefs)
    if isinstance(ty, TypedefRef):
        return _value_members(typedefs[ty.name].aliased, typedefs)
    return []


def _reject_value_cycles(ordered: tuple[Record, ...], checker: _TypeChecker) -> None:
    edges = {
        record.name: [
            member
            for field in record.fields
            for member in _value_members(field.ty, checker.typedefs)
        ]
        for record in ordered
    }
    cycle = _find_cycle((r.name for r in ordered), edges)
    if cycle is not None:
        name = cycle[0]
        kind = "Union" if isinstance(checker.records[name], UnionDef) else "Struct"
        raise MalformedDescriptorError(
            f"{kind} '{name}' contains itself by value ({' -> '.join(cycle)})",
            name=name,
        )
