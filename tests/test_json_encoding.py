"""Tests for the JSON round-trip encoding and the encoding registry.

WHY: The JSON encoding promises the semantics of serializing and parsing
again. It must honour the same tags as the fast path, turn non-JSON
leaves into their text forms, and report values it cannot serialize.
"""

import datetime
import decimal
import enum
import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pytest

from bean_converter import JSON, FAST, ENCODINGS, Ref, get_encoding, tag
from bean_converter.encodings.base import BaseEncoding
from bean_converter.errors import EncodingError, InvalidDestinationError, UnknownEncodingError


class Level(enum.Enum):
    LOW = 1
    HIGH = 2


@dataclass
class Item:
    sku: str = tag("id", default="")
    qty: int = 0


@dataclass
class Order:
    number: int = 0
    items: List[Item] = field(default_factory=list)
    note: Optional[str] = None


@dataclass
class Leaves:
    when: datetime.datetime = datetime.datetime(2024, 2, 29, 8, 30)
    day: datetime.date = datetime.date(2024, 3, 1)
    amount: decimal.Decimal = decimal.Decimal("9.99")
    key: uuid.UUID = uuid.UUID(int=1)
    level: Level = Level.HIGH
    blob: bytes = b"\x00\xff"
    wait: datetime.timedelta = datetime.timedelta(minutes=1, milliseconds=500)


@dataclass
class Texts:
    when: str = ""
    day: str = ""
    amount: str = ""
    key: str = ""
    level: int = 0
    blob: str = ""
    wait: float = 0.0


@dataclass
class Attachment:
    data: bytes = b""
    uploaded: datetime.datetime = datetime.datetime.min
    size: int = 0
    price: decimal.Decimal = decimal.Decimal("0")
    owner: uuid.UUID = uuid.UUID(int=0)
    level: Level = Level.LOW
    expires: Optional[datetime.date] = None
    window: datetime.timedelta = datetime.timedelta(0)


class TestRegistry:
    def test_builtin_encodings(self):
        assert set(ENCODINGS) == {"fast", "json"}
        assert ENCODINGS["fast"] is FAST
        assert get_encoding("json") is JSON

    def test_lookup_is_case_insensitive(self):
        assert get_encoding(" JSON ") is JSON

    def test_unknown_name(self):
        with pytest.raises(UnknownEncodingError) as excinfo:
            get_encoding("yaml")
        assert "Available encodings: fast, json" in str(excinfo.value)
        assert isinstance(excinfo.value, KeyError)

    def test_names_and_base_class(self):
        for name, encoding in ENCODINGS.items():
            assert isinstance(encoding, BaseEncoding)
            assert encoding.name == name


class TestJsonConvert:
    """Round trips through JSON text."""

    def test_record_round_trip(self):
        original = Order(7, [Item("A-1", 2), Item("B-2", 5)], note="fragile")
        dest = Order()
        JSON.convert(original, dest)
        assert dest == original
        assert dest.items[0] is not original.items[0]

    def test_tags_honoured_in_text(self):
        text = JSON.dumps(Item("A-1", 2), sort_keys=True)
        assert json.loads(text) == {"id": "A-1", "qty": 2}

    def test_non_json_leaves_become_text(self):
        dest = Texts()
        JSON.convert(Leaves(), dest)
        assert dest.when == "2024-02-29T08:30:00"
        assert dest.day == "2024-03-01"
        assert dest.amount == "9.99"
        assert dest.key == str(uuid.UUID(int=1))
        assert dest.level == 2
        assert dest.blob == "AP8="
        assert dest.wait == 60.5

    def test_leaves_parsed_back_into_declared_types(self):
        dest = Leaves()
        JSON.convert({"when": "2000-01-01T00:00:00", "wait": 2, "level": 1}, dest)
        assert dest.when == datetime.datetime(2000, 1, 1)
        assert dest.wait == datetime.timedelta(seconds=2)
        assert dest.level is Level.LOW

    def test_tuples_become_lists(self):
        dest: Dict[str, Any] = {}
        JSON.convert({"pair": (1, 2)}, dest)
        assert dest == {"pair": [1, 2]}

    def test_unserializable_leaf(self):
        with pytest.raises(EncodingError):
            JSON.convert({"z": 1j}, {})

    def test_none_source_is_noop(self):
        dest = Order(number=3)
        JSON.convert(None, dest)
        assert dest.number == 3

    def test_destination_checked_first(self):
        with pytest.raises(InvalidDestinationError):
            JSON.convert({"z": 1j}, None)

    def test_into_ref(self):
        dest = Ref(hint=List[Item])
        JSON.convert([{"id": "x", "qty": 1}], dest)
        assert dest.value == [Item("x", 1)]


class TestJsonDecoding:
    """Leaves come back as their declared types; mismatches are reported."""

    def test_round_trip_of_non_json_leaves(self):
        original = Attachment(
            data=b"hi\x00\xff",
            uploaded=datetime.datetime(2024, 1, 2, 3, 4, 5, tzinfo=datetime.timezone.utc),
            size=3,
            price=decimal.Decimal("19.90"),
            owner=uuid.UUID("12345678-1234-5678-1234-567812345678"),
            level=Level.HIGH,
            expires=datetime.date(2025, 6, 30),
            window=datetime.timedelta(hours=1, milliseconds=250),
        )
        dest = Attachment()
        JSON.convert(original, dest)
        assert dest == original
        assert isinstance(dest.data, bytes)
        assert dest.level is Level.HIGH

    def test_str_into_int_field(self):
        dest = Attachment(size=7)
        with pytest.raises(EncodingError):
            JSON.convert({"size": "x"}, dest)

    def test_scalar_into_list(self):
        with pytest.raises(EncodingError):
            JSON.convert("abc", Ref(hint=List[int]))

    def test_bad_base64(self):
        with pytest.raises(EncodingError):
            JSON.convert({"data": "not base64!"}, Attachment())

    def test_bad_iso_text(self):
        with pytest.raises(EncodingError):
            JSON.convert({"uploaded": "yesterday"}, Attachment())

    def test_unknown_enum_value(self):
        with pytest.raises(EncodingError):
            JSON.convert({"level": 9}, Attachment())

    def test_fast_path_stays_permissive(self):
        dest = Attachment(size=7)
        FAST.convert({"size": "x"}, dest)
        assert dest.size == 7
