"""Annotation analysis, record introspection, and zero values.

WHY: Python values carry their runtime type, but destinations only carry
declared annotations (``Optional[Address]``, ``dict[str, int]``, ``Any``).
Both the planner and the materializer need the same answer to "what kind
of thing is this annotation?", and the materializer needs a fresh zero
value whenever it writes into an empty location.

HOW: analyze() reduces any annotation to a TypeInfo: one of a closed set
of TypeKinds plus the concrete container class and type arguments. The
result is memoized per annotation. record_hints() resolves a record's
field annotations (forward references included); zero_value() and
new_record() build the "empty" value of an annotation.

RULES:
- Records are dataclasses and pydantic BaseModel subclasses
- Optional[T] is OPTIONAL; any other union, Any, object, TypeVars and
  unresolved forward references are DYNAMIC
- Abstract containers map to a concrete class (Sequence → list,
  Mapping → dict, Set → set)
- zero_value() never raises; a value that cannot be built is None
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import datetime
import decimal
import enum
import functools
import inspect
import logging
import types
import typing
import uuid
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Tuple

from pydantic import BaseModel

from bean_converter.core.ref import Ref

logger = logging.getLogger(__name__)

NoneType = type(None)

SCALAR_TYPES: Tuple[type, ...] = (
    bool, int, float, complex, str, bytes, bytearray,
    decimal.Decimal, datetime.date, datetime.time, datetime.timedelta,
    uuid.UUID, enum.Enum,
)
"""Leaf types written to the arena by reference, never walked."""

# Zero values for scalar classes that cannot be built without arguments.
# datetime must precede date (datetime is a date subclass).
_FIXED_ZEROS: Tuple[Tuple[type, Any], ...] = (
    (datetime.datetime, datetime.datetime.min),
    (datetime.date, datetime.date.min),
    (uuid.UUID, uuid.UUID(int=0)),
)

# Annotations that promise int/float but also accept the narrower kinds,
# following the numeric tower of PEP 484.
_NUMERIC_TOWER: Dict[type, Tuple[type, ...]] = {
    float: (int, float),
    complex: (int, float, complex),
}

_STRING_LIKE = (str, bytes, bytearray, memoryview)


class TypeKind(enum.Enum):
    """Closed set of annotation kinds the engine dispatches on."""

    SCALAR = "scalar"
    OPTIONAL = "optional"
    REF = "ref"
    DYNAMIC = "dynamic"
    SEQUENCE = "sequence"
    TUPLE = "tuple"
    SET = "set"
    MAPPING = "mapping"
    RECORD = "record"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class TypeInfo:
    """The analyzed shape of one annotation.

    RULES:
    - origin: concrete class to check/construct (None for DYNAMIC)
    - args: OPTIONAL/REF → (inner,); SEQUENCE/SET → (element,);
      TUPLE → one hint per position; MAPPING → (key, value);
      DYNAMIC → union members (empty for Any)
    """

    kind: TypeKind
    origin: Any = None
    args: Tuple[Any, ...] = ()


DYNAMIC = TypeInfo(TypeKind.DYNAMIC)


def is_record_type(tp: Any) -> bool:
    """True for dataclass classes and pydantic model classes."""
    if not isinstance(tp, type):
        return False
    return dataclasses.is_dataclass(tp) or issubclass(tp, BaseModel)


def is_frozen(cls: type) -> bool:
    """True when instances of the record class reject attribute assignment."""
    if isinstance(cls, type) and issubclass(cls, BaseModel):
        return bool(cls.model_config.get("frozen"))
    params = getattr(cls, "__dataclass_params__", None)
    return bool(params is not None and params.frozen)


def _concrete(cls: type, default: type) -> type:
    # Abstract collection ABCs cannot be instantiated.
    if inspect.isabstract(cls) or cls.__module__ in ("collections.abc", "typing"):
        return default
    return cls


def _analyze(tp: Any) -> TypeInfo:
    if tp is Any or tp is object or tp is None or tp is NoneType or tp is inspect.Parameter.empty:
        return DYNAMIC
    if isinstance(tp, (str, typing.ForwardRef, typing.TypeVar)):
        return DYNAMIC

    origin = typing.get_origin(tp)
    args = typing.get_args(tp)

    if origin is typing.Annotated:
        return _analyze(args[0])
    if origin is typing.Union or origin is types.UnionType:
        members = tuple(a for a in args if a is not NoneType)
        if len(members) == 1 and len(members) < len(args):
            return TypeInfo(TypeKind.OPTIONAL, args=members)
        return TypeInfo(TypeKind.DYNAMIC, args=members)
    if origin in (typing.Final, typing.ClassVar) and args:
        return _analyze(args[0])
    if origin is typing.Literal:
        return DYNAMIC
    if tp is Ref or origin is Ref:
        return TypeInfo(TypeKind.REF, Ref, (args[0] if args else Any,))

    supertype = getattr(tp, "__supertype__", None)
    if supertype is not None:
        # typing.NewType
        return _analyze(supertype)

    target = origin if origin is not None else tp
    if not isinstance(target, type):
        return DYNAMIC

    if issubclass(target, SCALAR_TYPES):
        return TypeInfo(TypeKind.SCALAR, target)
    if is_record_type(target):
        return TypeInfo(TypeKind.RECORD, target)
    if issubclass(target, tuple):
        if not args:
            return TypeInfo(TypeKind.SEQUENCE, tuple, (Any,))
        if len(args) == 2 and args[1] is Ellipsis:
            return TypeInfo(TypeKind.SEQUENCE, tuple, (args[0],))
        if args == ((),):
            return TypeInfo(TypeKind.TUPLE, tuple, ())
        return TypeInfo(TypeKind.TUPLE, tuple, args)
    if issubclass(target, cabc.Set):
        default = frozenset if issubclass(target, frozenset) else set
        return TypeInfo(TypeKind.SET, _concrete(target, default), (args[0] if args else Any,))
    if issubclass(target, cabc.Mapping):
        pair = args if len(args) == 2 else (Any, Any)
        return TypeInfo(TypeKind.MAPPING, _concrete(target, dict), pair)
    if issubclass(target, cabc.Sequence) and not issubclass(target, _STRING_LIKE):
        return TypeInfo(TypeKind.SEQUENCE, _concrete(target, list), (args[0] if args else Any,))
    return TypeInfo(TypeKind.UNSUPPORTED, target)


_analyze_cached = functools.lru_cache(maxsize=None)(_analyze)


def analyze(tp: Any) -> TypeInfo:
    """Classify an annotation (memoized; unhashable annotations are analyzed fresh)."""
    try:
        return _analyze_cached(tp)
    except TypeError:
        return _analyze(tp)


def unwrap_optional(tp: Any) -> Any:
    """Return T for Optional[T], otherwise the annotation itself."""
    info = analyze(tp)
    if info.kind is TypeKind.OPTIONAL:
        return info.args[0]
    return tp


@functools.lru_cache(maxsize=None)
def record_hints(cls: type) -> Dict[str, Any]:
    """Resolve the declared annotation of every field of a record class.

    WHY: With ``from __future__ import annotations`` dataclass field
    types are strings. Self-referential records ("Node" inside Node)
    must resolve to the class itself.

    HOW: pydantic models already carry resolved annotations. Dataclasses
    go through typing.get_type_hints() with the class name in the local
    namespace; if resolution fails, the raw field types are used and
    unresolved strings degrade to DYNAMIC.
    """
    if issubclass(cls, BaseModel):
        return {name: info.annotation for name, info in cls.model_fields.items()}
    try:
        return typing.get_type_hints(cls, localns={cls.__name__: cls})
    except Exception:
        logger.debug("Falling back to raw annotations for %s", cls.__qualname__, exc_info=True)
        return {f.name: f.type for f in dataclasses.fields(cls)}


def is_assignable(value: Any, cls: type) -> bool:
    """True if value may be stored where cls is declared, without coercion."""
    if cls is object:
        return True
    if isinstance(value, bool) and cls in (int, float, complex):
        return False
    return isinstance(value, _NUMERIC_TOWER.get(cls, cls))


def _zero_scalar(cls: type) -> Any:
    if issubclass(cls, enum.Enum):
        return next(iter(cls), None)
    try:
        return cls()
    except TypeError:
        pass
    for base, zero in _FIXED_ZEROS:
        if issubclass(cls, base):
            return zero
    return None


def _construct(cls: type) -> Any:
    try:
        return cls()
    except TypeError:
        logger.debug("Cannot construct an empty %s", cls.__qualname__)
        return None


def zero_value(tp: Any, _building: FrozenSet[type] = frozenset()) -> Any:
    """Build the zero value of an annotation.

    RULES:
    - Scalars: False, 0, 0.0, "", b"", the first Enum member, datetime.min …
    - Containers: a new empty container; fixed tuples hold zero elements
    - Records: new_record()
    - OPTIONAL, REF, DYNAMIC and unsupported kinds: None
    """
    info = analyze(tp)
    kind = info.kind
    if kind is TypeKind.SCALAR:
        return _zero_scalar(info.origin)
    if kind in (TypeKind.SEQUENCE, TypeKind.SET, TypeKind.MAPPING):
        return _construct(info.origin)
    if kind is TypeKind.TUPLE:
        return tuple(zero_value(arg, _building) for arg in info.args)
    if kind is TypeKind.RECORD:
        return new_record(info.origin, _building)
    return None


def new_record(cls: type, _building: FrozenSet[type] = frozenset()) -> Any:
    """Allocate a record whose required fields hold zero values.

    WHY: Writing into an empty ``Optional[Address]`` slot needs an
    Address to write into, and the record's own constructor may demand
    arguments.

    HOW: Fields with a default or default_factory keep it; every other
    init field receives zero_value() of its annotation. pydantic models
    are built with model_construct() (no validation of zero values).

    RULES:
    - A required field whose type is already being built gets None,
      so self-referential records terminate
    - Constructor failures are logged at DEBUG and yield None
    """
    if cls in _building:
        return None
    building = _building | {cls}
    hints = record_hints(cls)
    try:
        if issubclass(cls, BaseModel):
            values = {
                name: zero_value(hints.get(name, Any), building)
                for name, info in cls.model_fields.items()
                if info.is_required()
            }
            return cls.model_construct(**values)
        kwargs = {}
        for f in dataclasses.fields(cls):
            if not f.init:
                continue
            if f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
                kwargs[f.name] = zero_value(hints.get(f.name, Any), building)
        return cls(**kwargs)
    except Exception:
        logger.debug("Cannot allocate a zero %s", cls.__qualname__, exc_info=True)
        return None
