"""Direct value transcoder.

WHY: Converting between two unrelated record types is usually done by
serializing one and parsing into the other. The fast encoding skips the
text: it walks the source into a pooled arena and writes the arena
straight into the destination, using per-type plans cached for the
life of the process.

HOW: convert() validates the destination, checks an arena out of the
pool, encodes the source into it with the EncoderPlanner and hands the
root node to the Materializer. The arena returns to the pool when the
conversion ends, whether it succeeded or not.

RULES:
- Destination validation happens before the arena is touched
- A None source (or an empty Ref) leaves the destination unchanged
- Structural mismatches are dropped silently
- A source value that contains itself raises EncodingError
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from bean_converter.core.ir import Arena, ArenaPool
from bean_converter.core.materializer import Materializer
from bean_converter.core.planner import EncoderPlanner
from bean_converter.encodings.base import BaseEncoding, destination_slot, is_empty_source
from bean_converter.errors import EncodingError

logger = logging.getLogger(__name__)


class FastEncoding(BaseEncoding):
    """Arena-based transcoder between arbitrary values."""

    def __init__(
        self,
        planner: Optional[EncoderPlanner] = None,
        materializer: Optional[Materializer] = None,
        pool: Optional[ArenaPool] = None,
    ) -> None:
        self.planner = planner if planner is not None else EncoderPlanner()
        self.materializer = materializer if materializer is not None else Materializer()
        self.pool = pool if pool is not None else ArenaPool()

    def _encode(self, arena: Arena, source: Any) -> None:
        try:
            self.planner.encode(arena, 0, source)
        except RecursionError:
            raise EncodingError(
                "{} value refers back to itself".format(type(source).__name__)
            ) from None

    @property
    def name(self) -> str:
        return "fast"

    def convert(self, source: Any, dest: Any) -> None:
        slot = destination_slot(dest)
        if is_empty_source(source):
            return
        with self.pool.checkout() as arena:
            self._encode(arena, source)
            logger.debug("Encoded %s into %d nodes", type(source).__name__, len(arena))
            self.materializer.materialize(arena, arena.root, slot)

    def to_plain(self, source: Any) -> Any:
        """Box a value into plain None/scalar/list/dict data (tags honoured)."""
        if is_empty_source(source):
            return None
        with self.pool.checkout() as arena:
            self._encode(arena, source)
            return self.materializer.box(arena, arena.root)
