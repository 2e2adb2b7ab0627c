"""Command-line entry point: ``ffibind DESCRIPTOR.json --backend java_jna``."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from .api import generate_source, load_descriptor
from .backends import SUPPORTED_BACKENDS
from .errors import BindgenError
from . import constants

logger = logging.getLogger(__name__)

EXIT_BINDGEN_ERROR = 1
EXIT_INVALID_DESCRIPTOR = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=constants.GENERATOR_NAME,
        description="Generate host-language FFI bindings from a module descriptor",
    )
    parser.add_argument("descriptor", help="JSON module descriptor")
    parser.add_argument(
        "--backend",
        "-b",
        default=constants.BACKEND_JAVA_JNA,
        choices=SUPPORTED_BACKENDS,
        help=f"Target back-end (default: {constants.BACKEND_JAVA_JNA})",
    )
    parser.add_argument(
        "--output", "-o", default=None, help="Write to this file instead of stdout"
    )
    parser.add_argument(
        "--interface-name",
        default="",
        help="JNA interface name or ctypes library handle name",
    )
    parser.add_argument("--package", default="", help="Java package declaration")
    parser.add_argument("--header", default="", help="Text placed at the top of the output")
    parser.add_argument(
        "--include-version",
        action="store_true",
        help="Add a generated-with version comment",
    )
    parser.add_argument(
        "--placeholders",
        action="store_true",
        help="Emit placeholder comments for unsupported types instead of failing",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable info logging"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    try:
        descriptor = load_descriptor(args.descriptor)
    except ValidationError as exc:
        print(f"Invalid descriptor {args.descriptor}:\n{exc}", file=sys.stderr)
        return EXIT_INVALID_DESCRIPTOR
    except OSError as exc:
        print(f"Cannot read descriptor {args.descriptor}: {exc}", file=sys.stderr)
        return EXIT_INVALID_DESCRIPTOR

    try:
        source = generate_source(
            descriptor,
            args.backend,
            default_library_name=args.interface_name,
            package=args.package,
            header=args.header,
            include_version=args.include_version,
            error_on_unsupported_type=not args.placeholders,
        )
    except BindgenError as exc:
        print(f"{constants.GENERATOR_NAME}: {exc}", file=sys.stderr)
        return EXIT_BINDGEN_ERROR

    if args.output:
        try:
            Path(args.output).write_text(source, encoding="utf-8")
        except OSError as exc:
            print(f"Cannot write {args.output}: {exc}", file=sys.stderr)
            return EXIT_BINDGEN_ERROR
        logger.info("Wrote %s", args.output)
    else:
        sys.stdout.write(source)
    return 0


if __name__ == "__main__":
    sys.exit(main())
