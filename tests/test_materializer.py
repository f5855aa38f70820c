"""Tests for the materializer (bean_converter.core.materializer).

WHY: The materializer decides what actually lands in the destination.
It must be permissive (drop what does not fit) without ever corrupting
what does fit, and it must never loop on self-referential destinations.

HOW: Source values are encoded with an isolated planner, then the arena
root is materialized into hand-built slots whose hints exercise each
destination kind. Assertions read the slot's value afterwards.
"""

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Set, Tuple, Union

import pytest

from bean_converter.core.ir import Arena
from bean_converter.core.materializer import Materializer
from bean_converter.core.ref import Ref
from bean_converter.core.slots import AttrSlot, LocalSlot, RefSlot
from bean_converter.errors import EncodingError
from bean_converter.tags import embed


@dataclass
class Point:
    x: int = 0
    y: int = 0


@dataclass(frozen=True)
class FrozenPoint:
    x: int = 0
    y: int = 0


@dataclass
class Audit:
    created: str = ""


@dataclass
class Entry:
    id: int = 0
    audit: Optional[Audit] = embed(default=None)


@dataclass
class Holder:
    point: Optional[Point] = None
    ref: Optional[Ref[int]] = None
    any: Any = None


class ReadOnly:
    @property
    def value(self):
        return 1


@pytest.fixture
def run(planner, materializer):
    """Encode source and materialize it into a slot; return the slot."""

    def _run(source, slot):
        arena = Arena()
        planner.encode(arena, 0, source)
        materializer.materialize(arena, arena.root, slot)
        return slot

    return _run


def _local(hint, value=None):
    return LocalSlot(value, hint)


class TestScalars:
    """Compatibility without coercion."""

    def test_compatible_scalar(self, run):
        assert run(5, _local(int, 0)).value == 5

    def test_incompatible_scalar_dropped(self, run):
        assert run("5", _local(int, 0)).value == 0

    def test_bool_is_not_a_number(self, run):
        assert run(True, _local(int, 0)).value == 0

    def test_int_widens_to_float(self, run):
        assert run(3, _local(float, 0.0)).value == 3

    def test_dynamic_receives_raw_value(self, run):
        assert run("x", _local(Any)).value == "x"

    def test_null_leaves_destination(self, run):
        assert run(None, _local(int, 9)).value == 9

    def test_union_member_match(self, run):
        assert run("s", _local(Union[int, str], 0)).value == "s"
        assert run(1.5, _local(Union[int, str], 0)).value == 0


class TestLists:
    def test_typed_list(self, run):
        assert run([1, 2], _local(List[int])).value == [1, 2]

    def test_elements_that_do_not_fit_become_zero(self, run):
        assert run([1, "x"], _local(List[int])).value == [1, 0]

    def test_dynamic_list_is_boxed(self, run):
        assert run([Point(1, 2)], _local(Any)).value == [{"x": 1, "y": 2}]

    def test_fixed_tuple_zero_fills(self, run):
        assert run([1, 2], _local(Tuple[int, int, int])).value == (1, 2, 0)

    def test_fixed_tuple_truncates(self, run):
        assert run([1, 2, 3, 4], _local(Tuple[int, int])).value == (1, 2)

    def test_set_destination(self, run):
        assert run([1, 1, 2], _local(Set[int])).value == {1, 2}
        assert run([3], _local(FrozenSet[int])).value == frozenset({3})

    def test_unhashable_set_elements_dropped(self, run):
        slot = run([[1]], _local(Set[Any], None))
        assert slot.value is None

    def test_list_into_scalar_dropped(self, run):
        assert run([1], _local(int, 4)).value == 4

    def test_union_narrowed_by_node_kind(self, run):
        assert run([1, 2], _local(Union[int, List[int]], 0)).value == [1, 2]


class TestKeyed:
    """Mappings, records and dynamic destinations."""

    def test_mapping_updated_in_place(self, run):
        target = {"keep": 1}
        slot = run({"a": 2}, _local(Dict[str, int], target))
        assert slot.value is target
        assert target == {"keep": 1, "a": 2}

    def test_mapping_allocated_when_empty(self, run):
        assert run({"a": 2}, _local(Dict[str, int])).value == {"a": 2}

    def test_non_str_keyed_mapping_dropped(self, run):
        assert run({"1": "a"}, _local(Dict[int, str])).value is None

    def test_record_from_mapping(self, run):
        assert run({"x": 1, "z": 9}, _local(Point)).value == Point(1, 0)

    def test_record_updated_in_place(self, run):
        target = Point(5, 6)
        run({"x": 1}, _local(Point, target))
        assert target == Point(1, 6)

    def test_optional_record_allocated(self, run):
        assert run({"y": 3}, _local(Optional[Point])).value == Point(0, 3)

    def test_embedded_record_allocated_on_demand(self, run):
        slot = run({"created": "now", "id": 2}, _local(Entry))
        assert slot.value == Entry(id=2, audit=Audit("now"))

    def test_embedded_record_left_empty_without_data(self, run):
        assert run({"id": 2}, _local(Entry)).value.audit is None

    def test_frozen_record_copied(self, run):
        original = FrozenPoint(1, 2)
        slot = run({"x": 7}, _local(FrozenPoint, original))
        assert slot.value == FrozenPoint(7, 2)
        assert original == FrozenPoint(1, 2)

    def test_dynamic_gets_boxed_dict(self, run):
        assert run(Point(1, 2), _local(Any)).value == {"x": 1, "y": 2}

    def test_keyed_into_list_dropped(self, run):
        assert run({"a": 1}, _local(List[int], [])).value == []


class TestIndirection:
    """Ref layers and self-reference."""

    def test_empty_ref_slot_allocated(self, run):
        holder = Holder()
        run(4, AttrSlot(holder, "ref", Optional[Ref[int]]))
        assert holder.ref == Ref(4)
        assert holder.ref.hint is int

    def test_dynamic_slot_holding_ref_written_through(self, run):
        inner = Ref(0, int)
        holder = Holder(any=inner)
        run(8, AttrSlot(holder, "any", Any))
        assert holder.any is inner
        assert inner.value == 8

    def test_self_referencing_ref_terminates(self, run):
        loop = Ref()
        loop.value = loop
        run(5, RefSlot(loop))
        assert loop.value == 5

    def test_two_ref_loop_terminates(self, run):
        a, b = Ref(), Ref()
        a.value, b.value = b, a
        run(5, RefSlot(a))
        assert a.value == 5

    def test_rejected_attribute_write_dropped(self, run):
        target = ReadOnly()
        run(5, AttrSlot(target, "value", int))
        assert target.value == 1


class TestBox:
    def test_box_nested(self, planner, materializer):
        arena = Arena()
        planner.encode(arena, 0, {"a": [1, {"b": None}]})
        assert materializer.box(arena, arena.root) == {"a": [1, {"b": None}]}


def _digits_only(value, cls):
    if cls is int and isinstance(value, str) and value.isdigit():
        return int(value)
    raise EncodingError("cannot read {!r} as {}".format(value, cls.__name__))


class TestStrictMode:
    """A leaf decoder turns drops into decoding or EncodingError."""

    @pytest.fixture
    def strict(self, planner):
        materializer = Materializer(leaf_decoder=_digits_only)

        def _run(source, slot):
            arena = Arena()
            planner.encode(arena, 0, source)
            materializer.materialize(arena, arena.root, slot)
            return slot

        return _run

    def test_default_is_permissive(self, materializer):
        assert not materializer.strict
        assert Materializer(leaf_decoder=_digits_only).strict

    def test_assignable_scalar_skips_decoder(self, strict):
        assert strict(5, _local(int, 0)).value == 5

    def test_decoder_fills_declared_type(self, strict):
        assert strict("42", _local(int, 0)).value == 42
        assert strict({"x": "3"}, _local(Point)).value == Point(3, 0)

    def test_decoder_rejection_raises(self, strict):
        with pytest.raises(EncodingError):
            strict("x", _local(int, 0))

    def test_union_uses_first_decodable_member(self, strict):
        assert strict("7", _local(Union[List[int], int], None)).value == 7
        with pytest.raises(EncodingError):
            strict("x", _local(Union[List[int], int], None))

    def test_structural_mismatch_raises(self, strict):
        with pytest.raises(EncodingError):
            strict([1], _local(int, 4))
        with pytest.raises(EncodingError):
            strict("abc", _local(List[int]))
        with pytest.raises(EncodingError):
            strict({"a": 1}, _local(List[int]))

    def test_null_and_unknown_keys_still_ignored(self, strict):
        slot = strict({"x": None, "z": "unknown"}, _local(Point, Point(1, 2)))
        assert slot.value == Point(1, 2)
