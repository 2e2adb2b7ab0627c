"""Typed failures of a generation run."""

from __future__ import annotations


class BindgenError(Exception):
    """Base for fatal generator errors.

    ``name`` is the offending descriptor item (struct, function, ...) and
    ``backend`` the back-end that was emitting when the error occurred; either
    may be empty when it does not apply.
    """

    def __init__(self, message: str, *, name: str = "", backend: str = ""):
        super().__init__(message)
        self.name = name
        self.backend = backend


class UnsupportedTypeError(BindgenError):
    """Raised when a back-end has no mapping for a native type."""

    pass


class MalformedDescriptorError(BindgenError):
    """Raised when a module descriptor violates a structural invariant."""

    pass
