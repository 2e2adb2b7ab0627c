"""Naming/Convention Policy: identifier casing and escaping per back-end."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from .constants import (
    ANONYMOUS_PARAM_NAMES,
    ANONYMOUS_PARAM_TEMPLATE,
    BY_REFERENCE_SUFFIX,
    ESCAPE_SUFFIX,
)


class Casing(str, Enum):
    PRESERVE = "preserve"
    PASCAL = "pascal"
    CAMEL = "camel"
    SNAKE = "snake"
    UPPER_SNAKE = "upper_snake"


# Acronym runs, capitalised words, lowercase words; trailing digits stick to
# the word they follow; a digit run keeps a same-case suffix ("2d", "2D").
_WORD_RE = re.compile(
    r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+[0-9]*|[A-Z]+[0-9]*"
    r"|[0-9]+(?:[a-z]+|[A-Z]+(?![a-z]))?"
)


def split_words(name: str) -> list[str]:
    words: list[str] = []
    for chunk in name.split("_"):
        words.extend(_WORD_RE.findall(chunk))
    return words


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:].lower()


def convert_case(name: str, casing: Casing) -> str:
    """Re-case *name*; leading underscores survive, word-less names pass through."""
    if casing == Casing.PRESERVE:
        return name
    stripped = name.lstrip("_")
    prefix = name[: len(name) - len(stripped)]
    words = split_words(stripped)
    if not words:
        return name
    if casing == Casing.PASCAL:
        body = "".join(_capitalize(w) for w in words)
    elif casing == Casing.CAMEL:
        body = words[0].lower() + "".join(_capitalize(w) for w in words[1:])
    elif casing == Casing.SNAKE:
        body = "_".join(w.lower() for w in words)
    else:
        body = "_".join(w.upper() for w in words)
    return prefix + body


@dataclass(frozen=True)
class NamingPolicy:
    """Per-category casing plus reserved-word escaping for one back-end."""

    types: Casing = Casing.PRESERVE
    functions: Casing = Casing.PRESERVE
    constants: Casing = Casing.PRESERVE
    fields: Casing = Casing.PRESERVE
    variants: Casing = Casing.PRESERVE
    params: Casing = Casing.PRESERVE
    reference_suffix: str = BY_REFERENCE_SUFFIX
    reserved: frozenset[str] = frozenset()
    escape_suffix: str = ESCAPE_SUFFIX

    def escape(self, name: str) -> str:
        while name in self.reserved:
            name += self.escape_suffix
        return name

    def type_name(self, name: str) -> str:
        return self.escape(convert_case(name, self.types))

    def reference_type_name(self, name: str) -> str:
        return self.escape(convert_case(name, self.types) + self.reference_suffix)

    def function_name(self, name: str) -> str:
        return self.escape(convert_case(name, self.functions))

    def constant_name(self, name: str) -> str:
        return self.escape(convert_case(name, self.constants))

    def field_name(self, name: str) -> str:
        return self.escape(convert_case(name, self.fields))

    def variant_name(self, name: str) -> str:
        return self.escape(convert_case(name, self.variants))

    def param_name(self, name: str, index: int) -> str:
        if name in ANONYMOUS_PARAM_NAMES:
            return self.escape(ANONYMOUS_PARAM_TEMPLATE.format(index=index))
        return self.escape(convert_case(name, self.params))
