"""ffibind: FFI binding generator for native module descriptors."""

from .api import (  # noqa: F401
    default_policy,
    generate,
    generate_source,
    load_descriptor,
    parse_descriptor,
)
from .emitter import BindingEmitter, Section, TextBlock, emit, render  # noqa: F401
from .errors import (  # noqa: F401
    BindgenError,
    MalformedDescriptorError,
    UnsupportedTypeError,
)
