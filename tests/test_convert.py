"""End-to-end tests for convert() and the fast encoding.

WHY: These are the guarantees callers rely on: a value converted into
its own type comes back equal, renamed and embedded fields travel under
their effective names, unrelated types exchange exactly their common
fields, and bad destinations fail before anything is touched.

HOW: Realistic record types (dataclasses and pydantic models) go through
the package-level convert() and through an isolated FastEncoding.
"""

import datetime
import decimal
import enum
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest
from pydantic import BaseModel, ConfigDict, Field

import bean_converter
from bean_converter import (
    InvalidDestinationError,
    Ref,
    UnknownEncodingError,
    convert,
    embed,
    skip,
    tag,
)
from bean_converter.errors import ConversionError, EncodingError


class Status(enum.Enum):
    ACTIVE = "active"
    BLOCKED = "blocked"


@dataclass
class Address:
    street: str = ""
    city: str = ""


@dataclass
class Audit:
    created: datetime.datetime = datetime.datetime(2000, 1, 1)
    revision: int = 0


@dataclass
class Customer:
    name: str = ""
    age: int = 0
    customer_id: uuid.UUID = tag("id", default=uuid.UUID(int=0))
    balance: decimal.Decimal = decimal.Decimal("0")
    status: Status = Status.ACTIVE
    address: Optional[Address] = None
    previous: List[Address] = field(default_factory=list)
    labels: Dict[str, str] = field(default_factory=dict)
    tags: Set[str] = field(default_factory=set)
    location: Tuple[float, float] = (0.0, 0.0)
    nickname: Optional[Ref[str]] = None
    extra: Any = None
    audit: Optional[Audit] = embed(default=None)
    password: str = skip(default="")


@dataclass
class Person:
    name: str = ""
    age: int = 0


@dataclass
class Resident:
    name: str = ""
    city: str = ""


@dataclass
class Node:
    value: int = 0
    next: Optional["Node"] = None


@dataclass
class Left:
    label: str = ""


@dataclass
class Right:
    label: str = ""


@dataclass
class Clash:
    left: Left = embed(default_factory=Left)
    right: Right = embed(default_factory=Right)
    note: str = ""


@dataclass(frozen=True)
class FrozenPerson:
    name: str = ""
    age: int = 0


class PersonModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    full_name: str = Field("", alias="name")
    age: int = 0
    secret: str = Field("", exclude=True)


def _customer() -> Customer:
    return Customer(
        name="Ada",
        age=36,
        customer_id=uuid.UUID("12345678-1234-5678-1234-567812345678"),
        balance=decimal.Decimal("12.50"),
        status=Status.BLOCKED,
        address=Address("1 Main St", "Springfield"),
        previous=[Address("2 Side St", "Shelbyville")],
        labels={"tier": "gold"},
        tags={"vip", "early"},
        location=(1.5, -2.25),
        nickname=Ref("ada"),
        extra={"nested": [1, 2, {"deep": True}]},
        audit=Audit(datetime.datetime(2020, 5, 17, 12, 0), 3),
        password="hunter2",
    )


class TestRoundTrip:
    """A value converted into its own type comes back equal."""

    def test_round_trip_into_fresh_instance(self, convert_fast):
        original = _customer()
        copy = Customer()
        convert_fast(original, copy)
        expected = _customer()
        expected.password = ""
        assert copy == expected

    def test_round_trip_into_ref(self, convert_fast):
        dest = Ref(hint=Customer)
        convert_fast(_customer(), dest)
        assert isinstance(dest.value, Customer)
        assert dest.value.address == Address("1 Main St", "Springfield")

    def test_idempotent(self, convert_fast):
        first = Customer()
        convert_fast(_customer(), first)
        second = Customer()
        convert_fast(first, second)
        assert second == first

    def test_copy_does_not_share_containers(self, convert_fast):
        original = _customer()
        copy = Customer()
        convert_fast(original, copy)
        assert copy.previous is not original.previous
        assert copy.address is not original.address
        assert copy.extra is not original.extra

    def test_package_level_convert(self):
        dest = Person()
        convert(Person("Grace", 85), dest)
        assert dest == Person("Grace", 85)


class TestNames:
    """Renaming, exclusion and embedding as seen from outside."""

    def test_renamed_field_read_under_tag(self, convert_fast):
        dest: Dict[str, Any] = {}
        convert_fast(_customer(), dest)
        assert "id" in dest
        assert "customer_id" not in dest
        assert "password" not in dest

    def test_embedded_fields_are_promoted(self, convert_fast):
        dest: Dict[str, Any] = {}
        convert_fast(_customer(), dest)
        assert dest["revision"] == 3
        assert "audit" not in dest

    def test_renamed_field_written_under_tag(self, convert_fast):
        dest = Customer()
        key = uuid.uuid4()
        convert_fast({"id": key, "customer_id": uuid.uuid4()}, dest)
        assert dest.customer_id == key

    def test_ambiguous_names_dropped_both_ways(self, convert_fast):
        out: Dict[str, Any] = {}
        convert_fast(Clash(Left("l"), Right("r"), "n"), out)
        assert out == {"note": "n"}
        dest = Clash()
        convert_fast({"label": "x", "note": "y"}, dest)
        assert dest == Clash(Left(""), Right(""), "y")

    def test_pydantic_alias_and_exclude(self, convert_fast):
        dest = Person()
        convert_fast(PersonModel(name="Linus", age=54, secret="s"), dest)
        assert dest == Person("Linus", 54)
        model = PersonModel()
        convert_fast({"name": "Ken", "secret": "leak"}, model)
        assert model.full_name == "Ken"
        assert model.secret == ""


class TestPermissiveMatching:
    """Partial overlap, nil-safety and mismatches."""

    def test_partial_overlap(self, convert_fast):
        dest = Resident(city="Paris")
        convert_fast(Person("Ada", 36), dest)
        assert dest == Resident("Ada", "Paris")

    def test_empty_optional_leaves_zero(self, convert_fast):
        dest = Customer()
        convert_fast(Customer(name="x"), dest)
        assert dest.address is None
        assert dest.audit is None
        assert dest.nickname is None

    def test_mismatched_scalar_leaves_field(self, convert_fast):
        dest = Person(age=3)
        convert_fast({"age": "old"}, dest)
        assert dest.age == 3

    def test_none_source_is_noop(self, convert_fast):
        dest = Person("keep", 1)
        convert_fast(None, dest)
        convert_fast(Ref(), dest)
        assert dest == Person("keep", 1)

    def test_zero_length_aggregates(self, convert_fast):
        dest = Customer(previous=[Address()], labels={"a": "b"})
        convert_fast({"previous": [], "labels": {}, "tags": []}, dest)
        assert dest.previous == []
        assert dest.labels == {"a": "b"}
        assert dest.tags == set()


class TestSelfReference:
    def test_chain_of_three(self, convert_fast):
        dest = Node()
        convert_fast(Node(1, Node(2, Node(3))), dest)
        assert dest == Node(1, Node(2, Node(3)))

    def test_chain_into_dynamic(self, convert_fast):
        dest: Dict[str, Any] = {}
        convert_fast(Node(1, Node(2)), dest)
        assert dest == {"value": 1, "next": {"value": 2, "next": None}}

    def test_cyclic_value_raises_encoding_error(self, convert_fast):
        loop = Node(1)
        loop.next = loop
        with pytest.raises(EncodingError):
            convert_fast(loop, Node())


class TestDestinations:
    """Validation of the destination before any mutation."""

    @pytest.mark.parametrize("dest", [None, 5, "text", (1, 2), frozenset(), Person])
    def test_invalid_destinations(self, convert_fast, dest):
        with pytest.raises(InvalidDestinationError):
            convert_fast(Person("a", 1), dest)

    def test_invalid_destination_is_type_error(self, convert_fast):
        with pytest.raises(TypeError):
            convert_fast({}, None)

    def test_frozen_root_rejected_but_ref_accepted(self, convert_fast):
        with pytest.raises(ConversionError):
            convert_fast(Person("a", 1), FrozenPerson())
        dest = Ref(FrozenPerson("old", 0))
        convert_fast(Person("a", 1), dest)
        assert dest.value == FrozenPerson("a", 1)

    def test_root_list_refilled_in_place(self, convert_fast):
        dest = ["stale"]
        convert_fast((1, Person("a", 2)), dest)
        assert dest == [1, {"name": "a", "age": 2}]

    def test_ref_to_scalar(self, convert_fast):
        dest = Ref(hint=int)
        convert_fast(7, dest)
        assert dest.value == 7

    def test_untyped_ref_takes_raw_value(self, convert_fast):
        dest = Ref()
        convert_fast(Person("a", 1), dest)
        assert dest.value == {"name": "a", "age": 1}

    def test_unknown_encoding(self):
        with pytest.raises(UnknownEncodingError):
            convert({}, {}, encoding="xml")

    def test_version(self):
        assert bean_converter.__version__
