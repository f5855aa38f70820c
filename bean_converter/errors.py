"""Exception hierarchy for conversions.

WHY: The transcoder is deliberately permissive: most structural
mismatches are absorbed silently. The few conditions that do fail must
be easy to catch as a group, and also as the builtin category they
belong to (a bad destination is a TypeError, a failed cast a ValueError).

RULES:
- Every exception raised by the package derives from ConversionError
- InvalidDestinationError is raised before any mutation of the destination
"""

from __future__ import annotations


class ConversionError(Exception):
    """Base class for all conversion failures."""


class InvalidDestinationError(ConversionError, TypeError):
    """The destination is absent or cannot be written through."""

    def __init__(self, dest: object, reason: str) -> None:
        self.dest = dest
        self.reason = reason
        super().__init__(
            "Invalid conversion destination ({}): {}".format(type(dest).__name__, reason)
        )


class EncodingError(ConversionError, ValueError):
    """The source value could not be encoded."""


class CastError(ConversionError, ValueError):
    """A scalar value could not be coerced to the requested type."""

    def __init__(self, value: object, target: str, detail: str = "") -> None:
        self.value = value
        self.target = target
        message = "unable to cast {!r} of type {} to {}".format(
            value, type(value).__name__, target
        )
        if detail:
            message = "{}: {}".format(message, detail)
        super().__init__(message)


class UnknownEncodingError(ConversionError, KeyError):
    """No encoding is registered under the requested name."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "unknown encoding"
