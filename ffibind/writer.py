"""Indentation-aware line buffer used by every back-end."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterable, Iterator


class CodeWriter:
    def __init__(self, indent: str = "    ", level: int = 0):
        self._indent = indent
        self._level = level
        self._lines: list[str] = []

    def line(self, text: str = "") -> None:
        self._lines.append(f"{self._indent * self._level}{text}" if text else "")

    def lines(self, texts: Iterable[str]) -> None:
        for text in texts:
            self.line(text)

    @contextmanager
    def indented(self) -> Iterator[None]:
        self._level += 1
        try:
            yield
        finally:
            self._level -= 1

    @contextmanager
    def braced(self, header: str) -> Iterator[None]:
        """Write ``header {``, an indented body, then ``}``."""
        self.line(f"{header} {{")
        with self.indented():
            yield
        self.line("}")

    def getvalue(self) -> str:
        if not self._lines:
            return ""
        return "\n".join(self._lines) + "\n"
