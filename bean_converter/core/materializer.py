"""Materializer: writes an arena tree into a destination slot.

WHY: The second half of a conversion. The arena says what the source
looked like (null, scalar, list, keyed); the destination slot says what
the target location is declared as. The materializer reconciles the two
permissively: whatever fits is written and whatever does not is
dropped, because source and destination types are unrelated and only known at
runtime.

HOW: materialize() dispatches on the node kind. Before any write, the
slot is resolved through Ref layers and Optional annotations
(_resolve). Composite destinations are built fresh from zero values
(lists, tuples, sets) or updated in place (dicts, records). Records use
their own FieldPlan to map child keys onto access paths, allocating
empty embedded records on the way down.

RULES:
- NULL never writes and never fails
- Scalars are written as-is when compatible (no coercion); dynamic
  destinations receive the raw value
- Lists replace list-like destinations; fixed tuples keep their width
- Keyed nodes update dicts and records in place; dynamic destinations
  receive a fresh dict of boxed values
- Children without a matching destination field are dropped
- Frozen records are copied, filled, and republished through the slot
- A Ref whose value is itself ends the indirection walk
- With a leaf_decoder the materializer is strict: a scalar that is not
  assignable is passed to the decoder, and a node that does not fit its
  destination raises EncodingError instead of being dropped
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Callable, List, Optional

from bean_converter.core.fields import Field, FieldPlan, cached_field_plan
from bean_converter.core.hints import (
    DYNAMIC,
    TypeInfo,
    TypeKind,
    analyze,
    is_assignable,
    is_frozen,
    new_record,
    unwrap_optional,
    zero_value,
)
from bean_converter.core.ir import Arena, NodeKind, ValueNode
from bean_converter.core.ref import Ref
from bean_converter.core.slots import AttrSlot, LocalSlot, RefSlot, Slot
from bean_converter.errors import EncodingError

logger = logging.getLogger(__name__)

# Destination kinds that can receive each composite node kind, used to
# pick a member of a union annotation.
_LIST_KINDS = (TypeKind.SEQUENCE, TypeKind.TUPLE, TypeKind.SET)
_KEYED_KINDS = (TypeKind.MAPPING, TypeKind.RECORD)


class Materializer:
    """Assigns arena nodes into destination slots.

    Args:
        field_plans: FieldPlan lookup for destination record types.
        leaf_decoder: Optional ``decoder(value, cls)`` that turns a scalar
            into the declared scalar class cls, raising EncodingError when
            it cannot. Passing one makes mismatches fatal.
    """

    def __init__(
        self,
        field_plans: Callable[[type], FieldPlan] = cached_field_plan,
        leaf_decoder: Optional[Callable[[Any, type], Any]] = None,
    ) -> None:
        self._field_plans = field_plans
        self._leaf_decoder = leaf_decoder

    @property
    def strict(self) -> bool:
        return self._leaf_decoder is not None

    def materialize(self, arena: Arena, node: ValueNode, slot: Slot) -> None:
        kind = node.kind
        if kind is NodeKind.NULL:
            return
        slot = self._resolve(slot)
        if kind is NodeKind.SCALAR:
            self._assign_scalar(node.scalar, slot)
        elif kind is NodeKind.LIST:
            self._assign_list(arena, node, slot)
        elif kind is NodeKind.KEYED:
            self._assign_keyed(arena, node, slot)

    # ------------------------------------------------------------------
    # Boxing into plain Python values
    # ------------------------------------------------------------------

    def box(self, arena: Arena, node: ValueNode) -> Any:
        """Build plain None / scalar / list / dict values from a node."""
        kind = node.kind
        if kind is NodeKind.SCALAR:
            return node.scalar
        if kind is NodeKind.LIST:
            return [self.box(arena, child) for child in arena.children(node)]
        if kind is NodeKind.KEYED:
            return {child.key: self.box(arena, child) for child in arena.children(node)}
        return None

    # ------------------------------------------------------------------
    # Destination resolution
    # ------------------------------------------------------------------

    def _resolve(self, slot: Slot) -> Slot:
        """Follow Ref layers until the slot names a plain location.

        WHY: A ``Ref[T]`` field or a dynamic slot holding a Ref is a
        pointer; the write belongs to the referenced location. An empty
        ``Ref[T]`` slot gets a fresh Ref to write through.

        RULES:
        - A dynamic slot holding a Ref is written through that Ref
        - A Ref that (directly or through a loop) refers back to itself
          stops the walk at the last distinct layer
        """
        seen = set()
        while True:
            info = analyze(unwrap_optional(slot.hint))
            current = slot.get()
            if info.kind is TypeKind.REF:
                if not isinstance(current, Ref):
                    current = Ref(None, info.args[0])
                    if not slot.set(current):
                        return slot
                elif current.hint is Any:
                    current.hint = info.args[0]
            elif not (info.kind is TypeKind.DYNAMIC and isinstance(current, Ref)):
                return slot
            if id(current) in seen or current.value is current:
                return slot
            seen.add(id(current))
            slot = RefSlot(current)

    def _effective(self, slot: Slot, node_kind: NodeKind) -> TypeInfo:
        """Analyze the slot hint, unwrapping Optional and narrowing unions."""
        info = analyze(slot.hint)
        if info.kind is TypeKind.OPTIONAL:
            info = analyze(info.args[0])
        if info.kind is TypeKind.DYNAMIC and info.args:
            return self._narrow(info, slot.get(), node_kind)
        return info

    def _narrow(self, info: TypeInfo, current: Any, node_kind: NodeKind) -> TypeInfo:
        wanted = _LIST_KINDS if node_kind is NodeKind.LIST else _KEYED_KINDS
        matching = [m for m in map(analyze, info.args) if m.kind in wanted]
        for member in matching:
            if type(current) is member.origin:
                return member
        if len(matching) == 1:
            return matching[0]
        return DYNAMIC

    # ------------------------------------------------------------------
    # Scalars
    # ------------------------------------------------------------------

    def _assign_scalar(self, value: Any, slot: Slot) -> None:
        info = analyze(slot.hint)
        if info.kind is TypeKind.OPTIONAL:
            info = analyze(info.args[0])
        kind = info.kind
        if kind is TypeKind.DYNAMIC:
            if not info.args or any(self._accepts(analyze(m), value) for m in info.args):
                slot.set(value)
                return
            if self.strict:
                slot.set(self._decode_member(value, info, slot))
                return
        elif kind is TypeKind.SCALAR:
            if is_assignable(value, info.origin):
                slot.set(value)
                return
            if self.strict:
                slot.set(self._leaf_decoder(value, info.origin))
                return
        self._mismatch("{} value".format(type(value).__name__), slot)

    def _decode_member(self, value: Any, info: TypeInfo, slot: Slot) -> Any:
        """First scalar member of a union the decoder accepts value for."""
        for member in map(analyze, info.args):
            if member.kind is not TypeKind.SCALAR:
                continue
            try:
                return self._leaf_decoder(value, member.origin)
            except EncodingError:
                continue
        raise EncodingError(
            "cannot store {} value in {!r}".format(type(value).__name__, slot.hint)
        )

    def _mismatch(self, what: str, slot: Slot) -> None:
        if self.strict:
            raise EncodingError("cannot store {} in {!r}".format(what, slot.hint))
        logger.debug("Dropping %s for destination %r", what, slot.hint)

    @staticmethod
    def _accepts(member: TypeInfo, value: Any) -> bool:
        if member.kind is TypeKind.DYNAMIC:
            return True
        return member.kind is TypeKind.SCALAR and is_assignable(value, member.origin)

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    def _fresh(self, arena: Arena, node: ValueNode, hint: Any, base: Any = None, use_base: bool = False) -> Any:
        """Materialize a node into a new zero value (or base) of hint."""
        slot = LocalSlot(base if use_base else zero_value(hint), hint)
        self.materialize(arena, node, slot)
        return slot.value

    def _assign_list(self, arena: Arena, node: ValueNode, slot: Slot) -> None:
        info = self._effective(slot, NodeKind.LIST)
        children = arena.children(node)
        kind = info.kind

        if kind is TypeKind.DYNAMIC:
            slot.set([self.box(arena, child) for child in children])
        elif kind is TypeKind.SEQUENCE:
            element = info.args[0]
            items = [self._fresh(arena, child, element) for child in children]
            built = items if info.origin is list else self._build(info.origin, items, slot)
            if built is not None:
                slot.set(built)
        elif kind is TypeKind.TUPLE:
            slot.set(self._fixed_tuple(arena, children, info, slot.get()))
        elif kind is TypeKind.SET:
            element = info.args[0]
            built = self._build(info.origin, [self._fresh(arena, child, element) for child in children], slot)
            if built is not None:
                slot.set(built)
        else:
            self._mismatch("list", slot)

    def _fixed_tuple(self, arena: Arena, children: List[ValueNode], info: TypeInfo, current: Any) -> tuple:
        width = len(info.args)
        keep = isinstance(current, tuple) and len(current) == width
        items = []
        for position, hint in enumerate(info.args):
            if position < len(children):
                if keep:
                    items.append(self._fresh(arena, children[position], hint, current[position], True))
                else:
                    items.append(self._fresh(arena, children[position], hint))
            else:
                # Truncated source: trailing positions are zeroed.
                items.append(zero_value(hint))
        return tuple(items)

    @staticmethod
    def _build(container: type, items: List[Any], slot: Slot) -> Any:
        try:
            return container(items)
        except TypeError:
            logger.debug("Cannot build %s for destination %r", container.__qualname__, slot.hint, exc_info=True)
            return None

    # ------------------------------------------------------------------
    # Keyed nodes: dicts, records, dynamic
    # ------------------------------------------------------------------

    def _assign_keyed(self, arena: Arena, node: ValueNode, slot: Slot) -> None:
        info = self._effective(slot, NodeKind.KEYED)
        kind = info.kind
        if kind is TypeKind.DYNAMIC:
            slot.set(self.box(arena, node))
        elif kind is TypeKind.MAPPING:
            self._assign_mapping(arena, node, slot, info)
        elif kind is TypeKind.RECORD:
            self._assign_record(arena, node, slot, info.origin)
        else:
            self._mismatch("keyed value", slot)

    def _assign_mapping(self, arena: Arena, node: ValueNode, slot: Slot, info: TypeInfo) -> None:
        key_info = analyze(info.args[0])
        if not (key_info.kind is TypeKind.DYNAMIC or key_info.origin is str):
            self._mismatch("keyed value (non-str keys)", slot)
            return
        value_hint = info.args[1]
        target = slot.get()
        created = not isinstance(target, info.origin)
        if created:
            target = self._build(info.origin, [], slot)
            if target is None:
                return
        for child in arena.children(node):
            target[child.key] = self._fresh(arena, child, value_hint)
        if created:
            slot.set(target)

    def _assign_record(self, arena: Arena, node: ValueNode, slot: Slot, cls: type) -> None:
        record = slot.get()
        if isinstance(record, cls):
            cls = type(record)
        else:
            record = new_record(cls)
            if record is None:
                return
        if record is slot.get() and is_frozen(cls):
            record = copy.copy(record)
        plan = self._field_plans(cls)
        for child in arena.children(node):
            field = plan.lookup(child.key)
            if field is None or child.kind is NodeKind.NULL:
                continue
            self._assign_field(arena, child, record, field)
        if record is not slot.get():
            slot.set(record)

    def _assign_field(self, arena: Arena, child: ValueNode, record: Any, field: Field) -> None:
        """Walk the field's access path, allocating embedded records on demand."""
        holder = record
        for hop, embedded in zip(field.path[:-1], field.via):
            hop_slot = AttrSlot(holder, hop, Optional[embedded])
            inner = hop_slot.get()
            if not isinstance(inner, embedded):
                inner = new_record(embedded)
                if inner is None or not hop_slot.set(inner):
                    return
            elif is_frozen(embedded):
                inner = copy.copy(inner)
                if not hop_slot.set(inner):
                    return
            holder = inner
        self.materialize(arena, child, AttrSlot(holder, field.path[-1], field.hint))


def box_node(arena: Arena, node: Optional[ValueNode] = None) -> Any:
    """Plain-value view of an arena subtree (root by default)."""
    return Materializer().box(arena, node if node is not None else arena.root)

