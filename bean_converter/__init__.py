"""Bean Converter: direct value transcoding between unrelated types.

WHY: Moving data between two record types that merely share field
names (an API model and a storage model, a pydantic schema and a
dataclass) is usually done by serializing one and parsing into the
other. This package copies the values directly, matching fields by name
under the same tag and embedding rules a JSON round trip would apply.

HOW: Two stages around a flat intermediate tree: encode (walk the source
with a per-type encoder into a pooled arena) and materialize (write the
arena into the destination, guided by its declared annotations). Both
stages use plans computed once per type and shared process-wide.

RULES:
- convert(source, dest) mutates dest in place and returns None
- dest must be writable: a Ref, a mutable record, or a list/dict/set
- Anything that does not fit is skipped silently
"""

from __future__ import annotations

from typing import Any, Optional

from bean_converter import config
from bean_converter.core.fields import FieldPlan, cached_field_plan
from bean_converter.core.ref import Ref
from bean_converter.encodings import ENCODINGS, FAST, JSON, get_encoding
from bean_converter.errors import (
    CastError,
    ConversionError,
    EncodingError,
    InvalidDestinationError,
    UnknownEncodingError,
)
from bean_converter.tags import embed, skip, tag

__version__ = "0.1.0"


def convert(source: Any, dest: Any, encoding: Optional[str] = None) -> None:
    """Copy source into dest, matching fields by name.

    Args:
        source: Any value: a record, mapping, sequence, scalar or Ref.
        dest: A Ref, a mutable record instance, or a list/dict/set.
        encoding: Registered encoding name (default: BEAN_DEFAULT_ENCODING).

    Raises:
        InvalidDestinationError: dest cannot be written through.
        UnknownEncodingError: No encoding is registered under that name.
    """
    get_encoding(encoding or config.DEFAULT_ENCODING).convert(source, dest)


__all__ = [
    "CastError",
    "ConversionError",
    "ENCODINGS",
    "EncodingError",
    "FAST",
    "FieldPlan",
    "InvalidDestinationError",
    "JSON",
    "Ref",
    "UnknownEncodingError",
    "cached_field_plan",
    "convert",
    "embed",
    "get_encoding",
    "skip",
    "tag",
]
