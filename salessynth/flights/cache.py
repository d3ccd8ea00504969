"""
TTL cache for flight status payloads.

Entries expire lazily: a read of an entry older than the TTL removes it
and reports a miss. The cache is also bounded: once ``max_entries`` is
reached, the least recently used entry is evicted.

The cache is a plain object owned by whoever wires up the flight service;
sharing it between services (or not) is the caller's decision.
"""

import time
from collections import OrderedDict
from typing import Callable, Generic, Hashable, Optional, Tuple, TypeVar

V = TypeVar("V")


class TTLCache(Generic[V]):
    """Bounded LRU cache whose entries expire after ``ttl_seconds``.

    Args:
        ttl_seconds: Maximum entry age.
        max_entries: Capacity before LRU eviction.
        clock: Monotonic time source in seconds (tests inject a fake).
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        if max_entries <= 0:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[Hashable, Tuple[V, float]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def is_expired(self, key: Hashable) -> bool:
        """``True`` when *key* is absent or older than the TTL."""
        entry = self._entries.get(key)
        if entry is None:
            return True
        return self._clock() - entry[1] >= self.ttl_seconds

    def get(self, key: Hashable) -> Optional[V]:
        """Return the fresh value for *key*, or ``None``.

        A stale entry is dropped on read.
        """
        if key not in self._entries:
            return None
        if self.is_expired(key):
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return self._entries[key][0]

    def set(self, key: Hashable, value: V) -> None:
        """Store *value* under *key* with the current capture time."""
        self._entries[key] = (value, self._clock())
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
