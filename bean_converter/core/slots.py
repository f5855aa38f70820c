"""Destination slots: settable locations with a declared annotation.

WHY: The materializer writes into many kinds of places: a Ref handed in
by the caller, an attribute of a record, a temporary that becomes a list
element or mapping value, or the caller's own container. A slot hides
the difference behind get()/set() plus the location's declared hint.

RULES:
- hint is the declared annotation of the location (Any when unknown)
- set() returns False when the location rejected the write
- AttrSlot writes frozen records through object.__setattr__; the
  materializer only hands it frozen records it copied itself
- RootSlot never rebinds the caller's object; a list root is refilled
  in place, a set root is cleared and refilled
"""

from __future__ import annotations

import logging
from typing import Any

from bean_converter.core.hints import is_frozen
from bean_converter.core.ref import Ref

logger = logging.getLogger(__name__)


class Slot:
    """A settable location of a declared type."""

    hint: Any = Any

    def get(self) -> Any:
        raise NotImplementedError

    def set(self, value: Any) -> bool:
        raise NotImplementedError


class RefSlot(Slot):
    def __init__(self, ref: Ref, hint: Any = None) -> None:
        self.ref = ref
        self.hint = ref.hint if hint is None else hint

    def get(self) -> Any:
        return self.ref.value

    def set(self, value: Any) -> bool:
        self.ref.value = value
        return True


class LocalSlot(Slot):
    """A temporary holding a value until it is inserted somewhere."""

    def __init__(self, value: Any, hint: Any) -> None:
        self.value = value
        self.hint = hint

    def get(self) -> Any:
        return self.value

    def set(self, value: Any) -> bool:
        self.value = value
        return True


class AttrSlot(Slot):
    def __init__(self, owner: Any, name: str, hint: Any) -> None:
        self.owner = owner
        self.name = name
        self.hint = hint

    def get(self) -> Any:
        return getattr(self.owner, self.name, None)

    def set(self, value: Any) -> bool:
        try:
            if is_frozen(type(self.owner)):
                object.__setattr__(self.owner, self.name, value)
            else:
                setattr(self.owner, self.name, value)
        except (AttributeError, TypeError, ValueError):
            logger.debug(
                "%s rejected a write to %r", type(self.owner).__qualname__, self.name, exc_info=True
            )
            return False
        return True


class RootSlot(Slot):
    """The caller's own mutable destination object."""

    def __init__(self, target: Any) -> None:
        self.target = target
        self.hint = type(target)

    def get(self) -> Any:
        return self.target

    def set(self, value: Any) -> bool:
        if value is self.target:
            return True
        if isinstance(self.target, list) and isinstance(value, list):
            self.target[:] = value
            return True
        if isinstance(self.target, (set,)) and isinstance(value, (set, frozenset)):
            self.target.clear()
            self.target.update(value)
            return True
        logger.debug("Cannot rebind root destination %s", type(self.target).__qualname__)
        return False
