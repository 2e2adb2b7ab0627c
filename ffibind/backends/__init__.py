"""Emission back-ends for every supported host language."""

from __future__ import annotations

import importlib

from ..policy import BackendPolicy
from ._base import BaseBackend, TypePosition
from .. import constants

# Lazy imports to avoid loading all back-ends at startup
_BACKEND_CLASSES: dict[str, str] = {
    constants.BACKEND_JAVA_JNA: "java_jna.JavaJnaBackend",
    constants.BACKEND_PYTHON_CTYPES: "python_ctypes.PythonCtypesBackend",
}


def backend_class(language: str) -> type[BaseBackend]:
    """Return the back-end class registered for *language*.

    Raises ``ValueError`` if *language* has no registered back-end.
    """
    spec = _BACKEND_CLASSES.get(language)
    if spec is None:
        raise ValueError(f"Unsupported backend: {language}")
    module_name, class_name = spec.split(".")
    mod = importlib.import_module(f".{module_name}", package=__package__)
    return getattr(mod, class_name)


def default_policy(language: str, **overrides) -> BackendPolicy:
    """Build the default ``BackendPolicy`` for *language*, applying *overrides*."""
    return backend_class(language).default_policy(**overrides)


def get_backend(policy: BackendPolicy | str) -> BaseBackend:
    """Instantiate the back-end for *policy* (or for a language's default policy)."""
    if isinstance(policy, str):
        policy = default_policy(policy)
    return backend_class(policy.language)(policy)


SUPPORTED_BACKENDS: tuple[str, ...] = tuple(_BACKEND_CLASSES.keys())

__all__ = [
    "BaseBackend",
    "TypePosition",
    "backend_class",
    "default_policy",
    "get_backend",
    "SUPPORTED_BACKENDS",
]
