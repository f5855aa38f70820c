"""Scalar casting helpers.

WHY: Values coming from configuration, query strings or loosely typed
documents often hold the right information in the wrong type ("42" for
an int, 1500 for a duration in milliseconds). The transcoder never
coerces leaves, so these helpers cover the explicit conversions, with
one function per target type and a generic to() dispatcher.

HOW: Each to_*() function checks the input's runtime type and applies
the matching rule. Refs are unwrapped first. to() picks the function for
the requested target and hands every other target to the JSON encoding.

RULES:
- None casts to the zero value of the target (False, 0, 0.0, "", ...)
- bool counts as a number for to_int() and to_float() only
- Strings are parsed, never evaluated: int(s, 0) base detection, the
  literals 1 t T TRUE true True / 0 f F FALSE false False for booleans
- Durations use the units ns, us, μs, ms, s, m, h (default ns) and the
  "1h30m" / "1.5s" string syntax
- Numeric datetimes are Unix timestamps in UTC
- Every failure raises CastError; to_str() never fails
"""

from __future__ import annotations

import datetime
import decimal
import enum
import logging
import math
import re
from typing import Any, Callable, Dict, Optional

from bean_converter import config
from bean_converter.core.hints import is_record_type, zero_value
from bean_converter.core.ref import Ref
from bean_converter.encodings import JSON
from bean_converter.errors import CastError, EncodingError

logger = logging.getLogger(__name__)

_TRUE_STRINGS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_STRINGS = frozenset({"0", "f", "F", "FALSE", "false", "False"})

# Nanoseconds per duration unit. Both micro signs (U+00B5, U+03BC) are
# accepted.
UNIT_NANOS: Dict[str, int] = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60_000_000_000,
    "h": 3_600_000_000_000,
}

_DURATION_PART = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_LEGACY_OCTAL = re.compile(r"[+-]?0[0-7]+")

_EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)

_NUMBERS = (int, float, decimal.Decimal)


def _deref(value: Any) -> Any:
    while isinstance(value, Ref) and value.value is not value:
        value = value.value
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, _NUMBERS) and not isinstance(value, bool)


def _check_unpadded(text: str, target: str) -> None:
    # int() and float() skip surrounding whitespace; numeric literals here do not.
    if text != text.strip():
        raise CastError(text, target, "surrounding whitespace")


def to_bool(value: Any) -> bool:
    """Cast to bool: numbers compare against zero, strings are parsed."""
    value = _deref(value)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if _is_number(value):
        return value != 0
    if isinstance(value, str):
        if value in _TRUE_STRINGS:
            return True
        if value in _FALSE_STRINGS:
            return False
        raise CastError(value, "bool", "not a boolean literal")
    raise CastError(value, "bool")


def to_int(value: Any) -> int:
    """Cast to int: floats truncate, strings use Python's base prefixes.

    A leading zero ("0755") is read as octal, like C and Go literals.
    """
    value = _deref(value)
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, (float, decimal.Decimal)):
        try:
            return int(value)
        except (OverflowError, ValueError) as exc:
            raise CastError(value, "int", str(exc)) from exc
    if isinstance(value, str):
        _check_unpadded(value, "int")
        try:
            if _LEGACY_OCTAL.fullmatch(value):
                return int(value, 8)
            return int(value, 0)
        except ValueError as exc:
            raise CastError(value, "int", str(exc)) from exc
    raise CastError(value, "int")


def to_float(value: Any) -> float:
    value = _deref(value)
    if value is None:
        return 0.0
    if isinstance(value, (bool,) + _NUMBERS):
        try:
            return float(value)
        except OverflowError as exc:
            raise CastError(value, "float", str(exc)) from exc
    if isinstance(value, str):
        _check_unpadded(value, "float")
        try:
            return float(value)
        except ValueError as exc:
            raise CastError(value, "float", str(exc)) from exc
    raise CastError(value, "float")


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    # Shortest round-trip digits, never in exponent notation.
    return format(decimal.Decimal(repr(value)).normalize(), "f")


def to_str(value: Any) -> str:
    """Render any value as text.

    Records, lists and dicts are rendered as JSON; everything else falls
    back to str().
    """
    value = _deref(value)
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, enum.Enum):
        return to_str(value.value)
    if is_record_type(type(value)) or isinstance(value, (list, tuple, dict)):
        try:
            return JSON.dumps(value)
        except EncodingError:
            logger.debug("Falling back to str() for %s", type(value).__name__, exc_info=True)
    return str(value)


def parse_duration(text: str) -> datetime.timedelta:
    """Parse a duration string such as "300ms", "-1.5h" or "2h45m".

    Raises:
        CastError: The text is not a sequence of number+unit pairs.
    """
    rest = text
    sign = 1
    if rest[:1] in ("+", "-"):
        sign = -1 if rest[0] == "-" else 1
        rest = rest[1:]
    if rest == "0":
        return datetime.timedelta(0)
    if not rest:
        raise CastError(text, "timedelta", "invalid duration")

    nanos = decimal.Decimal(0)
    pos = 0
    while pos < len(rest):
        match = _DURATION_PART.match(rest, pos)
        if match is None:
            raise CastError(text, "timedelta", "invalid duration")
        nanos += decimal.Decimal(match.group(1)) * UNIT_NANOS[match.group(2)]
        pos = match.end()
    return _nanos_to_timedelta(sign * nanos, text)


def _nanos_to_timedelta(nanos: Any, original: Any) -> datetime.timedelta:
    try:
        return datetime.timedelta(microseconds=float(nanos) / 1000)
    except (OverflowError, ValueError) as exc:
        raise CastError(original, "timedelta", str(exc)) from exc


def _unit_nanos(unit: Optional[str], value: Any, target: str) -> int:
    if unit is None:
        return 1
    try:
        return UNIT_NANOS[unit]
    except KeyError:
        raise CastError(value, target, "unknown unit {!r}".format(unit)) from None


def to_timedelta(value: Any, unit: Optional[str] = None) -> datetime.timedelta:
    """Cast to timedelta.

    Args:
        value: Number of units, a duration string, or a timedelta.
        unit: Unit for numeric values (default "ns").

    Raises:
        CastError: Unsupported type, bad string, or unknown unit.
    """
    value = _deref(value)
    if value is None:
        return datetime.timedelta(0)
    if isinstance(value, datetime.timedelta):
        return value
    if _is_number(value):
        scale = _unit_nanos(unit, value, "timedelta")
        return _nanos_to_timedelta(decimal.Decimal(value) * scale, value)
    if isinstance(value, str):
        return parse_duration(value)
    raise CastError(value, "timedelta")


def to_datetime(
    value: Any,
    time_format: Optional[str] = None,
    unit: Optional[str] = None,
) -> datetime.datetime:
    """Cast to an aware or naive datetime.

    RULES:
    - Numbers are Unix timestamps counted in ``unit`` (default "ns"), UTC
    - Strings that parse as a duration are an offset from the epoch
    - Other strings go through strptime with ``time_format``
      (default BEAN_TIME_FORMAT)
    - None gives datetime.min
    """
    value = _deref(value)
    if value is None:
        return datetime.datetime.min
    if isinstance(value, datetime.datetime):
        return value
    if _is_number(value):
        return _EPOCH + to_timedelta(value, unit or "ns")
    if isinstance(value, str):
        try:
            return _EPOCH + parse_duration(value)
        except CastError:
            pass
        fmt = time_format or config.DEFAULT_TIME_FORMAT
        try:
            return datetime.datetime.strptime(value, fmt)
        except ValueError as exc:
            raise CastError(value, "datetime", str(exc)) from exc
    raise CastError(value, "datetime")


_CASTS: Dict[type, Callable[[Any], Any]] = {
    bool: to_bool,
    int: to_int,
    float: to_float,
    str: to_str,
    datetime.timedelta: to_timedelta,
}


def to(value: Any, tp: Any, time_format: Optional[str] = None) -> Any:
    """Cast value to the type tp.

    bool, int, float, str, timedelta and datetime use the dedicated
    casts. Any other target (records, containers, Optional[...], Decimal,
    UUID, enums) is filled through the JSON encoding, which decodes
    leaves into the declared types. None gives the zero value of tp.

    Raises:
        CastError: The dedicated cast failed, or the value does not fit tp
            (a str where a list is declared, a str in an int field).
    """
    if tp is datetime.datetime:
        return to_datetime(value, time_format)
    cast = _CASTS.get(tp)
    if cast is not None:
        return cast(value)

    dest: Ref = Ref(hint=tp)
    try:
        JSON.convert(value, dest)
    except EncodingError as exc:
        raise CastError(value, getattr(tp, "__name__", repr(tp)), str(exc)) from exc
    if dest.value is None:
        return zero_value(tp)
    return dest.value
