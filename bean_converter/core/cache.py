"""Process-wide publish-once memo.

WHY: Encoders and field plans are pure functions of a type, so they are
computed once per process and shared by every conversion. Many threads
may ask for the same cold type at the same moment; exactly one of them
should do the work. Recursive types (a Node with an Optional[Node]
field) ask for their own encoder while it is still being built.

HOW: Published values live in a plain dict, read without locking. The
first caller for a key stores a _Pending marker under the lock and
computes outside it. Later callers either wait on the marker's event or,
when the caller supplies a placeholder factory, receive a stand-in built
around the marker immediately. The placeholder path is what lets a
thread re-enter its own in-flight build without deadlocking.

RULES:
- build() runs at most once per key (unless it raised)
- A failed build is removed from the cache and re-raised to every waiter
- Published values are never replaced (clear() is for tests only)
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Hashable, Optional

logger = logging.getLogger(__name__)


class _Pending:
    """Marker for a value whose build is in flight."""

    __slots__ = ("_event", "_value", "_error")

    def __init__(self) -> None:
        self._event = threading.Event()
        self._value: Any = None
        self._error: Optional[BaseException] = None

    def publish(self, value: Any) -> None:
        self._value = value
        self._event.set()

    def fail(self, error: BaseException) -> None:
        self._error = error
        self._event.set()

    def wait(self) -> Any:
        self._event.wait()
        if self._error is not None:
            raise self._error
        return self._value


class PublishOnceCache:
    """Thread-safe memo that computes each key's value exactly once."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._entries: Dict[Hashable, Any] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return sum(1 for v in list(self._entries.values()) if not isinstance(v, _Pending))

    def __contains__(self, key: Hashable) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not isinstance(entry, _Pending)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get_or_build(
        self,
        key: Hashable,
        build: Callable[[Hashable], Any],
        placeholder: Optional[Callable[[_Pending], Any]] = None,
    ) -> Any:
        """Return the published value for key, building it on first use.

        Args:
            key: Hashable cache key (a type or annotation).
            build: Computes the value; called at most once per key.
            placeholder: Optional factory turning an in-flight marker
                into a usable stand-in. Without it, callers that hit an
                in-flight key block until it is published.

        Returns:
            The published value, or a placeholder for an in-flight key.
        """
        entry = self._entries.get(key)
        if entry is not None and not isinstance(entry, _Pending):
            return entry

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                pending = _Pending()
                self._entries[key] = pending

        if entry is not None:
            if not isinstance(entry, _Pending):
                return entry
            if placeholder is not None:
                return placeholder(entry)
            return entry.wait()

        try:
            value = build(key)
        except BaseException as exc:
            with self._lock:
                if self._entries.get(key) is pending:
                    del self._entries[key]
            pending.fail(exc)
            raise

        with self._lock:
            self._entries[key] = value
        pending.publish(value)
        logger.debug("%s cache: published %r", self.name, key)
        return value
