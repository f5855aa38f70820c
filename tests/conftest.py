"""Shared test fixtures for the bean_converter test suite.

WHY: Most tests need a conversion engine whose caches start empty, so a
test that counts plan builds or inspects the arena is not affected by
conversions other tests already ran through the shared FAST instance.

HOW: Pytest fixtures provide a fresh EncoderPlanner, Materializer,
ArenaPool, and a FastEncoding wired from them. ``convert_fast`` is a
shortcut for the isolated encoding's convert().

RULES:
- Field plans stay process-wide (they are pure and cheap to share);
  tests that count field-plan builds clear them explicitly
- Fixtures never touch bean_converter.encodings.FAST
"""

from typing import Any, Callable

import pytest

from bean_converter.core.ir import Arena, ArenaPool
from bean_converter.core.materializer import Materializer
from bean_converter.core.planner import EncoderPlanner
from bean_converter.encodings.fast import FastEncoding


@pytest.fixture
def planner() -> EncoderPlanner:
    """Encoder planner with an empty, private encoder cache."""
    return EncoderPlanner()


@pytest.fixture
def materializer() -> Materializer:
    return Materializer()


@pytest.fixture
def pool() -> ArenaPool:
    """Small pool so tests can observe the idle limit."""
    return ArenaPool(max_size=2, capacity=4)


@pytest.fixture
def arena() -> Arena:
    return Arena(capacity=4)


@pytest.fixture
def fast(planner, materializer, pool) -> FastEncoding:
    """FastEncoding wired from the isolated planner, materializer and pool."""
    return FastEncoding(planner=planner, materializer=materializer, pool=pool)


@pytest.fixture
def convert_fast(fast) -> Callable[[Any, Any], None]:
    return fast.convert
