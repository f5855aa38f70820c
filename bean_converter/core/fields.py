"""Field resolution: the canonical visible-field table of a record type.

WHY: Source and destination records are matched purely by field name,
so both sides must agree on which names a record exposes. Renaming
tags, exclusion tags, private attributes and embedded (promoted) records
all change that set, and embedding can make two fields compete for one
name. The rules below are those of the common JSON tagging convention,
so a record converts under the same names it would serialize under.

HOW: resolve_fields() walks the record and its embedded records
breadth-first, one embedding depth per round, collecting candidate
fields. Candidates are sorted by (name, depth, tagged-first, index) and
each name group is reduced to its dominant field. cached_field_plan()
memoizes the result per class in a process-wide PublishOnceCache.

RULES:
- Private attributes (leading underscore) are invisible unless they
  embed a record, whose public fields are then promoted
- Tag "-" removes a field; a valid tag name renames it; an invalid or
  empty name falls back to the attribute name (untagged)
- An embedded field with a tag name is an ordinary named field
- Shallower fields shadow deeper ones of the same name
- At equal depth a tagged field beats untagged ones; two tagged or two
  untagged fields cancel out and the name disappears
- Each embedded type is explored once, at the shallowest depth it
  appears; a type embedded twice at one depth annihilates its fields
- The published plan lists fields sorted by name
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, NamedTuple, Optional, Tuple

from pydantic import BaseModel

from bean_converter import config
from bean_converter.core.cache import PublishOnceCache
from bean_converter.core.hints import is_record_type, record_hints, unwrap_optional

logger = logging.getLogger(__name__)

# Punctuation allowed in a tag name besides letters and digits.
# Backslash, quotes and the comma separator are reserved.
_TAG_PUNCTUATION = frozenset("!#$%&()*+-./:;<=>?@[]^_{|}~ ")


@dataclass(frozen=True)
class Field:
    """One visible field of a record type.

    RULES:
    - name: effective (possibly renamed) field name
    - path: attribute names from the record down to the field, one per
      embedding hop plus the field's own attribute
    - index: declaration positions along the path (ordering only)
    - tagged: True when the name came from a tag
    - hint: declared annotation of the final attribute
    - via: record classes of the embedded hops (len(path) - 1 entries)
    """

    name: str
    path: Tuple[str, ...]
    index: Tuple[int, ...]
    tagged: bool
    hint: Any
    via: Tuple[type, ...] = ()

    @property
    def depth(self) -> int:
        return len(self.index)


@dataclass(frozen=True)
class FieldPlan:
    """Resolved field table for one record type."""

    record_type: type
    fields: Tuple[Field, ...]
    by_name: Mapping[str, Field]

    def __len__(self) -> int:
        return len(self.fields)

    def __iter__(self) -> Iterator[Field]:
        return iter(self.fields)

    def lookup(self, name: Optional[str]) -> Optional[Field]:
        if name is None:
            return None
        return self.by_name.get(name)

    @property
    def names(self) -> List[str]:
        return [f.name for f in self.fields]


class _Declared(NamedTuple):
    name: str
    position: int
    tag: Optional[str]
    embedded: bool


class _Probe(NamedTuple):
    record: type
    index: Tuple[int, ...]
    path: Tuple[str, ...]
    via: Tuple[type, ...]


def parse_tag(tag: Optional[str]) -> str:
    """Return the name part of a ``name,option,...`` tag."""
    if not tag:
        return ""
    return tag.split(",", 1)[0]


def is_valid_tag(name: str) -> bool:
    if not name:
        return False
    return all(c in _TAG_PUNCTUATION or c.isalpha() or c.isdigit() for c in name)


def _declared_fields(cls: type) -> List[_Declared]:
    if issubclass(cls, BaseModel):
        declared = []
        for position, (name, info) in enumerate(cls.model_fields.items()):
            if info.exclude is True:
                tag: Optional[str] = "-"
            else:
                tag = info.alias
            declared.append(_Declared(name, position, tag, False))
        return declared
    declared = []
    for position, f in enumerate(dataclasses.fields(cls)):
        tag = f.metadata.get(config.TAG_KEY)
        declared.append(_Declared(f.name, position, tag, bool(f.metadata.get(config.EMBED_KEY))))
    return declared


def _sort_key(f: Field) -> Tuple[Any, ...]:
    return (f.name, f.depth, not f.tagged, f.index)


def _dominant(group: List[Field]) -> Optional[Field]:
    # Sorted by depth, then tagged first: the head dominates unless the
    # runner-up ties it on both depth and taggedness.
    if len(group) > 1 and group[0].depth == group[1].depth and group[0].tagged == group[1].tagged:
        return None
    return group[0]


def resolve_fields(cls: type) -> FieldPlan:
    """Compute the visible-field table of a record class (uncached).

    Args:
        cls: A dataclass or pydantic model class.

    Returns:
        FieldPlan listing the visible fields sorted by effective name.
    """
    if not is_record_type(cls):
        raise TypeError("{!r} is not a record type".format(cls))

    current: List[_Probe] = []
    upcoming: List[_Probe] = [_Probe(cls, (), (), ())]
    count: Dict[type, int] = {}
    next_count: Dict[type, int] = {}
    visited = set()
    candidates: List[Field] = []

    while upcoming:
        current, upcoming = upcoming, []
        count, next_count = next_count, {}

        for probe in current:
            if probe.record in visited:
                continue
            visited.add(probe.record)
            hints = record_hints(probe.record)

            for declared in _declared_fields(probe.record):
                hint = hints.get(declared.name, Any)
                target = unwrap_optional(hint)
                public = not declared.name.startswith("_")
                if declared.embedded:
                    if not public and not is_record_type(target):
                        continue
                elif not public:
                    continue
                if declared.tag == "-":
                    continue
                name = parse_tag(declared.tag)
                if not is_valid_tag(name):
                    name = ""
                index = probe.index + (declared.position,)
                path = probe.path + (declared.name,)

                if name or not declared.embedded or not is_record_type(target):
                    field = Field(
                        name=name or declared.name,
                        path=path,
                        index=index,
                        tagged=bool(name),
                        hint=hint,
                        via=probe.via,
                    )
                    candidates.append(field)
                    if count.get(probe.record, 0) > 1:
                        # The embedding type appeared twice at this depth;
                        # a second copy makes the name ambiguous below.
                        candidates.append(field)
                    continue

                next_count[target] = next_count.get(target, 0) + 1
                if next_count[target] == 1:
                    upcoming.append(_Probe(target, index, path, probe.via + (target,)))

    candidates.sort(key=_sort_key)

    fields: List[Field] = []
    i = 0
    while i < len(candidates):
        j = i + 1
        while j < len(candidates) and candidates[j].name == candidates[i].name:
            j += 1
        dominant = _dominant(candidates[i:j])
        if dominant is not None:
            fields.append(dominant)
        else:
            logger.debug("%s: dropping ambiguous field name %r", cls.__qualname__, candidates[i].name)
        i = j

    return FieldPlan(
        record_type=cls,
        fields=tuple(fields),
        by_name={f.name: f for f in fields},
    )


_plans = PublishOnceCache("field plan")


def cached_field_plan(cls: type) -> FieldPlan:
    """resolve_fields() memoized for the process lifetime."""
    return _plans.get_or_build(cls, resolve_fields)


def clear_field_plans() -> None:
    _plans.clear()
