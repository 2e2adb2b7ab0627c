"""Composable API functions for binding generation.

Each function corresponds to a CLI workflow but is callable programmatically
without argparse.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .backends import default_policy
from .descriptor import ModuleDescriptor
from .emitter import TextBlock, emit, render
from .policy import BackendPolicy

logger = logging.getLogger(__name__)

__all__ = [
    "default_policy",
    "generate",
    "generate_source",
    "load_descriptor",
    "parse_descriptor",
]


def parse_descriptor(text: str) -> ModuleDescriptor:
    """Validate a JSON document into a ModuleDescriptor.

    Args:
        text: The JSON serialisation of a ModuleDescriptor.

    Returns:
        The parsed descriptor. Raises pydantic's ``ValidationError`` if the
        document does not match the model.
    """
    return ModuleDescriptor.model_validate_json(text)


def load_descriptor(path: str | Path) -> ModuleDescriptor:
    """Read and parse a JSON descriptor file.

    Args:
        path: Location of the JSON file.

    Returns:
        The parsed descriptor.
    """
    logger.info("Loading descriptor from %s", path)
    return parse_descriptor(Path(path).read_text(encoding="utf-8"))


def generate(
    descriptor: ModuleDescriptor,
    backend: str = "java_jna",
    policy: BackendPolicy | None = None,
    **overrides,
) -> list[TextBlock]:
    """Emit every block for *descriptor*.

    Args:
        descriptor: The module to bind.
        backend: Back-end name, used when *policy* is not given.
        policy: A fully built policy; takes precedence over *backend*.
        **overrides: ``BackendPolicy`` fields applied to the default policy
            of *backend* when *policy* is not given.

    Returns:
        The ordered list of text blocks.
    """
    if policy is None:
        policy = default_policy(backend, **overrides)
    return list(emit(descriptor, policy))


def generate_source(
    descriptor: ModuleDescriptor,
    backend: str = "java_jna",
    policy: BackendPolicy | None = None,
    **overrides,
) -> str:
    """Emit *descriptor* and join the blocks into one source file.

    Args:
        descriptor: The module to bind.
        backend: Back-end name, used when *policy* is not given.
        policy: A fully built policy; takes precedence over *backend*.
        **overrides: ``BackendPolicy`` fields for the default policy.

    Returns:
        The complete generated source text.
    """
    return render(generate(descriptor, backend, policy, **overrides))
