"""Settable reference box.

WHY: Python has no address-of operator, yet a conversion needs somewhere
to write a destination of any type, including scalars and ``Any``.
Ref is that somewhere: ``convert(source, Ref(hint=Person))`` plays the
part of passing ``&dest``. Inside a value, a Ref behaves like a pointer:
an empty Ref encodes as null and is allocated on demand when written.

RULES:
- value is the referenced object (None = empty)
- hint is the declared annotation of the referenced location
- Two Refs compare equal when their values are equal
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

T = TypeVar("T")


class Ref(Generic[T]):
    """A mutable cell holding one value of a declared type."""

    __slots__ = ("value", "hint")

    def __init__(self, value: Any = None, hint: Any = Any) -> None:
        self.value = value
        self.hint = hint

    def get(self) -> Any:
        return self.value

    def set(self, value: Any) -> None:
        self.value = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Ref):
            return NotImplemented
        if other is self or (other.value is self and self.value is other):
            return True
        return self.value == other.value

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        if self.value is self:
            return "Ref(<self>)"
        return "Ref({!r})".format(self.value)
