"""Type-encoder planner: per-type functions that walk values into an arena.

WHY: Deciding how to walk a value (is it a record? which fields? which
element type?) is the expensive part of a conversion and depends only
on the type. The planner makes that decision once per type and caches
the resulting encoder, so each conversion only runs the pre-built
closures.

HOW: obtain(tp) analyzes the annotation and builds one closure per kind
(scalar, optional, ref, dynamic, sequence, fixed tuple, set, mapping,
record). Composite encoders capture the encoders of their parts, which
are obtained while the composite is being built. The planner's
PublishOnceCache publishes a placeholder before a build finishes, so a
record reaching itself through Optional[...] captures the placeholder
instead of recursing forever. Each encoder has the signature
``encoder(arena, index, value)`` and fills the node at ``index``.

RULES:
- Scalars are stored by reference, never coerced
- Emptiness (None, empty Ref) is checked per value, at call time
- Composites reserve all direct children before encoding any of them
- Mapping entries with non-str keys are skipped
- A record field behind an empty embedded record becomes a NULL child
  carrying the field name
- A typed encoder receiving a value of another runtime type falls back
  to the encoder of that runtime type
- Unsupported kinds (functions, arbitrary objects) encode as NULL
"""

from __future__ import annotations

import collections
import collections.abc as cabc
import logging
from typing import Any, Callable, List, Optional, Tuple

from bean_converter.core.cache import PublishOnceCache, _Pending
from bean_converter.core.fields import FieldPlan, cached_field_plan
from bean_converter.core.hints import TypeKind, analyze
from bean_converter.core.ir import Arena, NodeKind
from bean_converter.core.ref import Ref

logger = logging.getLogger(__name__)

EncoderFunc = Callable[[Arena, int, Any], None]

# Runtime classes accepted by sequence encoders, whatever the declared
# container class was.
_SEQUENCE_VALUES = (list, tuple, set, frozenset, collections.deque)
_STRING_LIKE = (str, bytes, bytearray, memoryview)


def _is_sequence_value(value: Any) -> bool:
    if isinstance(value, _SEQUENCE_VALUES):
        return True
    return isinstance(value, cabc.Sequence) and not isinstance(value, _STRING_LIKE)


def _plain_key(key: str) -> str:
    # str subclasses (str-valued enums) keep only their string content.
    return key if type(key) is str else str.__str__(key)


def _write_null(arena: Arena, index: int) -> None:
    node = arena.node(index)
    node.kind = NodeKind.NULL


def _encode_unsupported(arena: Arena, index: int, value: Any) -> None:
    _write_null(arena, index)


class EncoderPlanner:
    """Builds and memoizes one encoder per type."""

    def __init__(self, field_plans: Callable[[type], FieldPlan] = cached_field_plan) -> None:
        self._cache = PublishOnceCache("encoder")
        self._field_plans = field_plans

    def __len__(self) -> int:
        return len(self._cache)

    def clear(self) -> None:
        self._cache.clear()

    def obtain(self, tp: Any) -> EncoderFunc:
        """Return the encoder for an annotation, building it on first use."""
        try:
            hash(tp)
        except TypeError:
            return self._build(tp)
        return self._cache.get_or_build(tp, self._build, self._placeholder)

    def encode(self, arena: Arena, index: int, value: Any) -> None:
        """Encode a value of any runtime type into the node at index."""
        cls = type(value)
        if value is None or cls is object:
            _write_null(arena, index)
            return
        self.obtain(cls)(arena, index, value)

    @staticmethod
    def _placeholder(pending: _Pending) -> EncoderFunc:
        def encode_when_ready(arena: Arena, index: int, value: Any) -> None:
            pending.wait()(arena, index, value)

        return encode_when_ready

    def _build(self, tp: Any) -> EncoderFunc:
        info = analyze(tp)
        kind = info.kind
        logger.debug("Building %s encoder for %r", kind.value, tp)

        if kind is TypeKind.SCALAR:
            return self._scalar_encoder(info.origin)
        if kind is TypeKind.DYNAMIC:
            return self.encode
        if kind is TypeKind.OPTIONAL:
            return self._optional_encoder(info.args[0])
        if kind is TypeKind.REF:
            return self._ref_encoder(info.args[0])
        if kind in (TypeKind.SEQUENCE, TypeKind.SET):
            return self._sequence_encoder(info.args[0])
        if kind is TypeKind.TUPLE:
            return self._tuple_encoder(info.args)
        if kind is TypeKind.MAPPING:
            return self._mapping_encoder(info.args[1])
        if kind is TypeKind.RECORD:
            return self._record_encoder(info.origin)
        return _encode_unsupported

    def _scalar_encoder(self, cls: type) -> EncoderFunc:
        fallback = self.encode

        def encode_scalar(arena: Arena, index: int, value: Any) -> None:
            if not isinstance(value, cls):
                fallback(arena, index, value)
                return
            node = arena.node(index)
            node.kind = NodeKind.SCALAR
            node.scalar = value

        return encode_scalar

    def _optional_encoder(self, inner: Any) -> EncoderFunc:
        encode_inner = self.obtain(inner)

        def encode_optional(arena: Arena, index: int, value: Any) -> None:
            if value is None:
                _write_null(arena, index)
                return
            encode_inner(arena, index, value)

        return encode_optional

    def _ref_encoder(self, inner: Any) -> EncoderFunc:
        encode_inner = self.obtain(inner)
        fallback = self.encode

        def encode_ref(arena: Arena, index: int, value: Any) -> None:
            if not isinstance(value, Ref):
                fallback(arena, index, value)
                return
            if value.value is None:
                _write_null(arena, index)
                return
            encode_inner(arena, index, value.value)

        return encode_ref

    def _sequence_encoder(self, element: Any) -> EncoderFunc:
        encode_element = self.obtain(element)
        fallback = self.encode

        def encode_sequence(arena: Arena, index: int, value: Any) -> None:
            if value is None or not _is_sequence_value(value):
                fallback(arena, index, value)
                return
            items = value if isinstance(value, (list, tuple)) else list(value)
            node = arena.node(index)
            node.kind = NodeKind.LIST
            n = len(items)
            if n == 0:
                return
            start = arena.reserve(n)
            node.first = start
            node.count = n
            for offset, item in enumerate(items):
                encode_element(arena, start + offset, item)

        return encode_sequence

    def _tuple_encoder(self, positions: Tuple[Any, ...]) -> EncoderFunc:
        encoders: List[EncoderFunc] = [self.obtain(hint) for hint in positions]
        fallback = self.encode

        def encode_tuple(arena: Arena, index: int, value: Any) -> None:
            if value is None or not _is_sequence_value(value):
                fallback(arena, index, value)
                return
            items = value if isinstance(value, (list, tuple)) else list(value)
            node = arena.node(index)
            node.kind = NodeKind.LIST
            n = len(items)
            if n == 0:
                return
            start = arena.reserve(n)
            node.first = start
            node.count = n
            for offset, item in enumerate(items):
                encoder = encoders[offset] if offset < len(encoders) else fallback
                encoder(arena, start + offset, item)

        return encode_tuple

    def _mapping_encoder(self, value_hint: Any) -> EncoderFunc:
        encode_value = self.obtain(value_hint)
        fallback = self.encode

        def encode_mapping(arena: Arena, index: int, value: Any) -> None:
            if not isinstance(value, cabc.Mapping):
                fallback(arena, index, value)
                return
            entries = [(k, v) for k, v in value.items() if isinstance(k, str)]
            node = arena.node(index)
            node.kind = NodeKind.KEYED
            n = len(entries)
            if n == 0:
                return
            start = arena.reserve(n)
            node.first = start
            node.count = n
            for offset, (key, item) in enumerate(entries):
                encode_value(arena, start + offset, item)
                arena.node(start + offset).key = _plain_key(key)

        return encode_mapping

    def _record_encoder(self, cls: type) -> EncoderFunc:
        plan = self._field_plans(cls)
        bound = [(f.name, f.path[:-1], f.path[-1], self.obtain(f.hint)) for f in plan.fields]
        fallback = self.encode

        def encode_record(arena: Arena, index: int, value: Any) -> None:
            if type(value) is not cls:
                fallback(arena, index, value)
                return
            node = arena.node(index)
            node.kind = NodeKind.KEYED
            n = len(bound)
            if n == 0:
                return
            start = arena.reserve(n)
            node.first = start
            node.count = n
            for offset, (name, hops, attr, encode_field) in enumerate(bound):
                child = start + offset
                holder: Optional[Any] = value
                for hop in hops:
                    holder = getattr(holder, hop, None)
                    if holder is None:
                        break
                if holder is None:
                    _write_null(arena, child)
                else:
                    encode_field(arena, child, getattr(holder, attr, None))
                arena.node(child).key = name

        return encode_record
