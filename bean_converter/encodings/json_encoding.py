"""JSON round-trip encoding.

WHY: Some callers want the exact semantics of a serialize/parse round
trip: every leaf becomes a JSON-native value (dates turn into ISO
strings, tuples into lists) before it reaches the destination. It is
also the catch-all used by casting.to() for target types that have no
dedicated cast.

HOW: The source is first boxed into plain data by the fast encoding, so
struct tags and embedding are honoured exactly as in a direct
conversion. The plain data goes through json.dumps()/json.loads() and
the parsed document is fast-converted into the destination by a strict
materializer: decode_leaf() turns each parsed leaf back into the
scalar type its destination declares, and a leaf or node that does not
fit raises EncodingError, as a JSON decoder reports a type mismatch.

RULES:
- Destination validation happens before serialization
- Non-JSON leaves: date/time/datetime → ISO 8601 string, Decimal and
  UUID → str, Enum → its value, bytes → base64 text, timedelta → seconds
- Any other leaf the json module rejects raises EncodingError
- Parsed leaves are decoded back into the declared type: base64 text →
  bytes, ISO text → date/time/datetime, text → Decimal/UUID, value →
  Enum, seconds → timedelta
- Any other leaf that is not assignable (a str for an int field) raises
  EncodingError
- Keys without a destination field are ignored
"""

from __future__ import annotations

import base64
import datetime
import decimal
import enum
import functools
import json
import logging
import uuid
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from bean_converter.core.materializer import Materializer
from bean_converter.encodings.base import BaseEncoding, destination_slot, is_empty_source
from bean_converter.encodings.fast import FastEncoding
from bean_converter.errors import EncodingError

logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    """json.dumps hook for the scalar types the fast path keeps as-is."""
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, datetime.timedelta):
        return value.total_seconds()
    if isinstance(value, (decimal.Decimal, uuid.UUID)):
        return str(value)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    raise TypeError("Object of type {} is not JSON serializable".format(type(value).__name__))


# Scalar types _json_default writes as text or numbers; pydantic parses
# them back.
_ADAPTED = (datetime.date, datetime.time, datetime.timedelta, decimal.Decimal, uuid.UUID, enum.Enum)


@functools.lru_cache(maxsize=None)
def _adapter(cls: type) -> TypeAdapter:
    return TypeAdapter(cls)


def decode_leaf(value: Any, cls: type) -> Any:
    """Turn a parsed JSON leaf back into the declared scalar class cls.

    The inverse of _json_default(). Called only for leaves that are not
    already instances of cls.

    Raises:
        EncodingError: The leaf has no reading as cls.
    """
    if not isinstance(cls, type):
        raise EncodingError("cannot store {!r} in a {!r} field".format(value, cls))
    if issubclass(cls, (bytes, bytearray)) and isinstance(value, str):
        try:
            return cls(base64.b64decode(value, validate=True))
        except ValueError as exc:
            raise EncodingError("cannot decode {!r} as base64: {}".format(value, exc)) from exc
    if issubclass(cls, _ADAPTED):
        try:
            return _adapter(cls).validate_python(value)
        except ValidationError as exc:
            raise EncodingError(
                "cannot read {!r} as {}: {}".format(value, cls.__qualname__, exc.errors()[0]["msg"])
            ) from exc
    raise EncodingError(
        "cannot store {} value {!r} in a {} field".format(type(value).__name__, value, cls.__qualname__)
    )


class JsonEncoding(BaseEncoding):
    """Converts through a JSON text round trip."""

    def __init__(self, fast: Optional[FastEncoding] = None) -> None:
        self.fast = fast if fast is not None else FastEncoding()
        # Same plans and arenas, strict materializer for the parsed side.
        self.decoder = FastEncoding(
            planner=self.fast.planner,
            materializer=Materializer(leaf_decoder=decode_leaf),
            pool=self.fast.pool,
        )

    @property
    def name(self) -> str:
        return "json"

    def dumps(self, source: Any, **kwargs: Any) -> str:
        """Serialize a value the way convert() does (tags honoured).

        Args:
            source: Any value accepted by the fast encoding.
            **kwargs: Passed to json.dumps (indent, sort_keys, ...).

        Raises:
            EncodingError: A leaf value has no JSON representation.
        """
        plain = self.fast.to_plain(source)
        try:
            return json.dumps(plain, default=_json_default, **kwargs)
        except (TypeError, ValueError) as exc:
            raise EncodingError(
                "cannot serialize {}: {}".format(type(source).__name__, exc)
            ) from exc

    def convert(self, source: Any, dest: Any) -> None:
        destination_slot(dest)
        if is_empty_source(source):
            return
        text = self.dumps(source)
        logger.debug("JSON round trip of %s: %d characters", type(source).__name__, len(text))
        self.decoder.convert(json.loads(text), dest)
