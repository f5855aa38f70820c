"""Encoding registry: conversion strategies by name.

WHY: The package-level convert(), the CLI flag and casting.to() all pick
a strategy by name. A central dict makes that a single lookup and keeps
adding a strategy to one line here.

HOW: ENCODINGS maps string keys to shared encoding *instances*. Sharing
matters: the fast encoding owns the encoder cache and the arena pool,
so every caller going through the registry reuses the same warm plans.
FAST and JSON are the two built-in instances.

RULES:
- Keys are lowercase identifiers (used in CLI flags and BEAN_DEFAULT_ENCODING)
- Values are BaseEncoding instances, safe to use from many threads
- get_encoding() raises UnknownEncodingError for unregistered names
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from bean_converter.encodings.fast import FastEncoding
from bean_converter.encodings.json_encoding import JsonEncoding
from bean_converter.errors import UnknownEncodingError

if TYPE_CHECKING:
    from bean_converter.encodings.base import BaseEncoding

FAST = FastEncoding()
JSON = JsonEncoding(FAST)

ENCODINGS: dict[str, BaseEncoding] = {
    "fast": FAST,
    "json": JSON,
}


def get_encoding(name: str) -> BaseEncoding:
    """Look up a registered encoding by name (case-insensitive)."""
    try:
        return ENCODINGS[name.strip().lower()]
    except KeyError:
        available = ", ".join(sorted(ENCODINGS))
        raise UnknownEncodingError(
            "Unknown encoding '{}'. Available encodings: {}".format(name, available)
        ) from None
