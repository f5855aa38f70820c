"""Flattened intermediate representation: value nodes, arena, and pool.

WHY: A source value and its destination are structurally unrelated, so
the engine needs a neutral middle form. Building a nested tree of fresh
objects per conversion is wasteful; instead every conversion writes its
nodes into a flat, reusable buffer (the arena) where composites point at
a contiguous run of child nodes.

HOW: Three pieces:
  ValueNode: one arena slot: kind, key, scalar, and a (first, count)
              child range
  Arena:     the node buffer; index 0 is the root. reserve(n) hands
              out n consecutive cleared nodes at the end of the buffer
  ArenaPool: thread-safe free list of arenas with a checkout()
              context manager that always resets and returns the arena

RULES:
- A composite reserves all of its direct children before filling any
  of them (breadth-reserve, depth-fill), so child ranges never overlap
- Node objects are reused across conversions; reset() clears every used
  node so no value from a previous conversion stays reachable
- An arena is owned by exactly one conversion between checkout and return
"""

from __future__ import annotations

import enum
import threading
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional

from bean_converter import config


class NodeKind(enum.IntEnum):
    """Closed set of node kinds written by encoders."""

    NULL = 0
    SCALAR = 1
    LIST = 2
    KEYED = 3


class ValueNode:
    """One entry of the flattened value tree.

    RULES:
    - kind: NodeKind of the entry
    - key: field or mapping key; set on children of a KEYED node
    - scalar: the leaf value (SCALAR only), stored by reference
    - first / count: child range inside the same arena (LIST / KEYED)
    """

    __slots__ = ("kind", "key", "scalar", "first", "count")

    def __init__(self) -> None:
        self.clear()

    def clear(self) -> None:
        self.kind = NodeKind.NULL
        self.key: Optional[str] = None
        self.scalar: Any = None
        self.first = 0
        self.count = 0

    def __repr__(self) -> str:
        return "ValueNode(kind={}, key={!r}, scalar={!r}, first={}, count={})".format(
            self.kind.name, self.key, self.scalar, self.first, self.count
        )


class Arena:
    """Growable buffer of ValueNodes addressed by index."""

    def __init__(self, capacity: Optional[int] = None) -> None:
        capacity = capacity or config.ARENA_INITIAL_CAPACITY
        self._nodes: List[ValueNode] = [ValueNode() for _ in range(max(capacity, 1))]
        self._size = 1

    def __len__(self) -> int:
        return self._size

    @property
    def capacity(self) -> int:
        return len(self._nodes)

    @property
    def root(self) -> ValueNode:
        return self._nodes[0]

    def node(self, index: int) -> ValueNode:
        if not 0 <= index < self._size:
            raise IndexError("arena index {} out of range (size {})".format(index, self._size))
        return self._nodes[index]

    def reserve(self, count: int) -> int:
        """Append count cleared nodes and return the index of the first one."""
        start = self._size
        end = start + count
        missing = end - len(self._nodes)
        if missing > 0:
            self._nodes.extend(ValueNode() for _ in range(missing))
        for index in range(start, end):
            self._nodes[index].clear()
        self._size = end
        return start

    def children(self, node: ValueNode) -> List[ValueNode]:
        """The direct children of a LIST or KEYED node, in order."""
        if node.count == 0:
            return []
        return self._nodes[node.first:node.first + node.count]

    def reset(self) -> None:
        """Drop every node but an empty root, clearing stored references."""
        for index in range(self._size):
            self._nodes[index].clear()
        self._size = 1


class ArenaPool:
    """Concurrency-safe free list of arenas.

    WHY: Arenas keep their node objects between conversions; pooling them
    makes repeated conversions allocation-free once warm.

    HOW: acquire() pops an idle arena (or builds one), release() resets
    it and keeps it if the pool is below max_size. checkout() wraps both
    in a context manager so the arena returns even when the conversion
    raises.
    """

    def __init__(self, max_size: Optional[int] = None, capacity: Optional[int] = None) -> None:
        self.max_size = max_size if max_size is not None else config.ARENA_POOL_SIZE
        self._capacity = capacity
        self._idle: List[Arena] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._idle)

    def acquire(self) -> Arena:
        with self._lock:
            if self._idle:
                return self._idle.pop()
        return Arena(self._capacity)

    def release(self, arena: Arena) -> None:
        arena.reset()
        with self._lock:
            if len(self._idle) < self.max_size:
                self._idle.append(arena)

    @contextmanager
    def checkout(self) -> Iterator[Arena]:
        arena = self.acquire()
        try:
            yield arena
        finally:
            self.release(arena)
