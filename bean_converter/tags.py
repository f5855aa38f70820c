"""Field helpers for declaring struct tags on dataclasses.

WHY: Dataclasses have no tag syntax, but every field accepts a metadata
mapping. These helpers write the tag and embed markers under the
configured metadata keys so model declarations stay readable:

    @dataclass
    class User:
        user_id: int = tag("id")
        secret: str = skip(default="")
        audit: Audit = embed(default_factory=Audit)

RULES:
- tag(name) stores "name" (options after a comma are kept verbatim)
- skip() stores "-", which removes the field from conversions
- embed() marks the field for promotion of its record's fields
- All remaining keyword arguments go to dataclasses.field()
"""

from __future__ import annotations

import dataclasses
from typing import Any, Mapping, Optional

from bean_converter import config


def _with_metadata(extra: Mapping[str, Any], metadata: Optional[Mapping[str, Any]], kwargs: dict) -> Any:
    merged = dict(metadata or {})
    merged.update(extra)
    return dataclasses.field(metadata=merged, **kwargs)


def tag(name: str, *, metadata: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Any:
    """Declare a field with an explicit struct tag, e.g. ``tag("id,omitempty")``."""
    return _with_metadata({config.TAG_KEY: name}, metadata, kwargs)


def skip(*, metadata: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Any:
    """Declare a field that conversions never read or write."""
    return _with_metadata({config.TAG_KEY: "-"}, metadata, kwargs)


def embed(name: Optional[str] = None, *, metadata: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Any:
    """Declare an embedded record field.

    An untagged embedded field promotes the fields of its record type
    into the enclosing record. Giving it a name turns it back into an
    ordinary named field, the same way a tagged anonymous struct field
    behaves in the JSON tagging convention.
    """
    extra: dict = {config.EMBED_KEY: True}
    if name is not None:
        extra[config.TAG_KEY] = name
    return _with_metadata(extra, metadata, kwargs)
