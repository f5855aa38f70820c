"""Abstract base encoding.

WHY: A conversion can run through the direct value transcoder or through
a textual JSON round trip. Both accept the same (source, destination)
pair and honour the same destination contract, so the package-level
convert(), the CLI and the casting helpers can pick a strategy by name
and use it generically.

HOW: BaseEncoding is an ABC with two requirements: a ``name`` property
and a ``convert()`` method. The shared destination check lives here so
every strategy rejects the same destinations before touching anything.

RULES:
- Subclasses MUST implement ``name`` and ``convert()``
- ``convert()`` mutates the destination and returns None
- InvalidDestinationError is raised before any mutation

To add a new encoding:
1. Create a new module in encodings/
2. Subclass BaseEncoding
3. Implement convert() and name
4. Register it in the ENCODINGS dict in encodings/__init__.py
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from bean_converter.core.hints import TypeKind, analyze, is_frozen, is_record_type
from bean_converter.core.ref import Ref
from bean_converter.core.slots import RefSlot, RootSlot, Slot
from bean_converter.errors import InvalidDestinationError

# Mutable containers accepted as a root destination.
_ROOT_CONTAINERS = (list, dict, set)


def destination_slot(dest: Any) -> Slot:
    """Validate a destination and wrap it in a slot.

    RULES:
    - None, classes and immutable values are rejected
    - A Ref is written through; when its hint is Any and it already holds
      a record or container, the held value's class is the declared type
    - Mutable records and list/dict/set instances are filled in place
    - Frozen records can only be replaced, so they must come inside a Ref
    """
    if dest is None:
        raise InvalidDestinationError(dest, "destination is None")
    if isinstance(dest, type):
        raise InvalidDestinationError(dest, "destination is a class, pass an instance or a Ref")
    if isinstance(dest, Ref):
        hint = dest.hint
        held = dest.value
        if hint is Any and held is not None and not isinstance(held, Ref):
            kind = analyze(type(held)).kind
            if kind in (TypeKind.RECORD, TypeKind.MAPPING, TypeKind.SEQUENCE, TypeKind.SET):
                hint = type(held)
        return RefSlot(dest, hint)
    if is_record_type(type(dest)):
        if is_frozen(type(dest)):
            raise InvalidDestinationError(dest, "frozen record, wrap it in a Ref")
        return RootSlot(dest)
    if isinstance(dest, _ROOT_CONTAINERS):
        return RootSlot(dest)
    raise InvalidDestinationError(dest, "value cannot be written through, wrap it in a Ref")


def is_empty_source(source: Any) -> bool:
    """True for None and for a Ref holding nothing."""
    return source is None or (isinstance(source, Ref) and source.value is None)


class BaseEncoding(ABC):
    """Abstract base for conversion strategies."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry key of the encoding, e.g. 'fast'."""

    @abstractmethod
    def convert(self, source: Any, dest: Any) -> None:
        """Copy source into dest, matching fields by name.

        Args:
            source: Any value (record, mapping, sequence, scalar, Ref).
            dest: A Ref, a mutable record instance, or a list/dict/set.

        Raises:
            InvalidDestinationError: dest cannot be written through.
        """
