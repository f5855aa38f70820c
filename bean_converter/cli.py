"""Command-line interface for the bean converter.

WHY: Converting a JSON document into a typed record, or checking which
names a record exposes after tags and embedding, is handy from the
terminal while wiring up models. The CLI wraps both behind one command.

HOW: Uses argparse to accept an input document and a target class given
as ``module:Class``. The document is parsed with the json module,
converted into a fresh instance of the target with the selected
encoding, and written back out as JSON. ``--fields`` prints the
resolved field table of a class instead. Status messages go to stderr;
the converted document goes to stdout or --output.

RULES:
- Positional argument: input JSON file, or "-" for stdin
- Exactly one of --into / --fields
- --encoding: a key of ENCODINGS (default: BEAN_DEFAULT_ENCODING)
- Errors print "Error: ..." to stderr and exit with status 1
- Logging is configured here only, at BEAN_LOG_LEVEL (-v forces DEBUG)
"""

from __future__ import annotations

import argparse
import importlib
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from bean_converter import config
from bean_converter.core.fields import FieldPlan, cached_field_plan
from bean_converter.core.hints import is_record_type, new_record
from bean_converter.core.ref import Ref
from bean_converter.encodings import ENCODINGS, JSON, get_encoding
from bean_converter.errors import ConversionError


def _status(msg: str) -> None:
    """Print a status message to stderr.

    WHY: Status output must not pollute stdout so the CLI can be piped.
    """
    print(msg, file=sys.stderr, flush=True)


def _fail(msg: str) -> None:
    print("Error: {}".format(msg), file=sys.stderr)
    sys.exit(1)


def load_target(path: str) -> type:
    """Import a record class from a ``package.module:Class`` string.

    Nested classes are reached with dots after the colon
    (``module:Outer.Inner``).

    Raises:
        ValueError: Malformed path, missing module or attribute, or the
            attribute is not a dataclass / pydantic model class.
    """
    module_name, sep, qualname = path.partition(":")
    if not sep or not module_name or not qualname:
        raise ValueError("Target must look like 'package.module:Class', got '{}'".format(path))
    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise ValueError("Cannot import module '{}': {}".format(module_name, e)) from e
    for part in qualname.split("."):
        try:
            target = getattr(target, part)
        except AttributeError:
            raise ValueError("'{}' has no attribute '{}'".format(module_name, qualname)) from None
    if not is_record_type(target):
        raise ValueError("'{}' is not a dataclass or pydantic model".format(path))
    return target


def _read_document(path: str) -> Any:
    if path == "-":
        return json.load(sys.stdin)
    source = Path(path)
    if not source.is_file():
        raise ValueError("File not found: {}".format(source.resolve()))
    with source.open(encoding="utf-8") as fh:
        return json.load(fh)


def _format_plan(plan: FieldPlan) -> List[str]:
    lines = ["{} ({} fields)".format(plan.record_type.__qualname__, len(plan))]
    for field in plan:
        marker = "tag" if field.tagged else "   "
        lines.append("  {:<24} {} {:<32} {!r}".format(
            field.name, marker, ".".join(field.path), field.hint
        ))
    return lines


def _convert(args: argparse.Namespace) -> None:
    target = load_target(args.into)
    encoding = get_encoding(args.encoding)
    document = _read_document(args.input_file)

    _status("Converting {} into {} ({} encoding)...".format(
        args.input_file, target.__qualname__, encoding.name
    ))
    dest: Ref = Ref(hint=target)
    encoding.convert(document, dest)
    result = dest.value if dest.value is not None else new_record(target)

    text = JSON.dumps(result, indent=args.indent)
    if args.output:
        out = Path(args.output)
        out.write_text(text + "\n", encoding="utf-8")
        _status("  Saved: {}".format(out))
    else:
        print(text)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() makes the CLI
    testable without running a conversion.
    """
    parser = argparse.ArgumentParser(
        prog="bean_converter",
        description="Convert a JSON document into a typed record, or show "
                    "the field table of a record class.",
    )

    parser.add_argument(
        "input_file",
        nargs="?",
        default="-",
        help="JSON document to convert, or '-' for stdin (default: %(default)s).",
    )

    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument(
        "--into",
        metavar="MODULE:CLASS",
        help="Record class to convert the document into.",
    )
    target.add_argument(
        "--fields",
        metavar="MODULE:CLASS",
        help="Print the resolved field table of a record class and exit.",
    )

    parser.add_argument(
        "--encoding",
        default=config.DEFAULT_ENCODING,
        help="Conversion strategy. Available: {} (default: %(default)s).".format(
            ", ".join(sorted(ENCODINGS))
        ),
    )

    parser.add_argument(
        "--output",
        default=None,
        help="Write the converted document to this file instead of stdout.",
    )

    parser.add_argument(
        "--indent",
        type=int,
        default=2,
        help="JSON indentation of the output (default: %(default)s).",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log at DEBUG level.",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``python -m bean_converter`` and ``bean-convert``.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.LOG_LEVEL,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.fields:
            for line in _format_plan(cached_field_plan(load_target(args.fields))):
                print(line)
        else:
            _convert(args)
    except json.JSONDecodeError as e:
        _fail("Invalid JSON input: {}".format(e))
    except (ValueError, ConversionError, OSError) as e:
        _fail(str(e))


if __name__ == "__main__":
    main()
