"""Backend policy: everything a back-end needs besides the descriptor itself."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from .descriptor import ConstantDef
from .naming import NamingPolicy
from . import constants

RepresentablePredicate = Callable[[ConstantDef], bool]


@dataclass(frozen=True)
class BackendPolicy:
    """Groups the per-run configuration of one back-end.

    ``is_representable`` overrides the back-end's own rule for deciding
    whether a constant's literal can be written in the host language; the
    descriptor's ``ConstantDef.representable`` flag is always honoured too.
    """

    language: str
    naming: NamingPolicy = field(default_factory=NamingPolicy)
    default_library_name: str = ""
    error_on_unsupported_type: bool = True
    is_representable: Optional[RepresentablePredicate] = None
    pointer_size: int = constants.DEFAULT_POINTER_SIZE
    header: str = ""
    autogen_warning: str = ""
    package: str = ""
    include_version: bool = False
