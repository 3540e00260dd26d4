"""
In-process TTL store with optional LRU bound.
"""

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass
class CacheEntry:
    """Stored value plus its absolute expiry on the store's clock (seconds)."""

    value: Any
    expiry: float

    def is_expired(self, now: float) -> bool:
        return now > self.expiry


class BoundedTTLStore:
    """
    Map with per-entry TTL and optional capacity bound.

    Expired entries are removed lazily on read. When ``max_entries`` is set,
    inserting past the bound evicts the least recently used entries; both
    reads and writes refresh recency. The clock is injectable so expiry is
    deterministic under test.
    """

    def __init__(self, max_entries: Optional[int] = None, clock: Callable[[], float] = time.monotonic):
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be positive or None")
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

    def get(self, key: str) -> Optional[Any]:
        """Return the live value for ``key`` or None."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.is_expired(self._clock()):
            self.delete(key)
            return None

        self._entries.move_to_end(key)
        return entry.value

    def set(self, key: str, value: Any, ttl_ms: int) -> None:
        """Store ``value`` for ``ttl_ms`` milliseconds.

        A non-positive TTL means "do not cache": any existing entry is dropped
        so the next read misses.
        """
        if ttl_ms <= 0:
            self.delete(key)
            return

        self._entries[key] = CacheEntry(value=value, expiry=self._clock() + ttl_ms / 1000.0)
        self._entries.move_to_end(key)

        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and not entry.is_expired(self._clock())

    def __len__(self) -> int:
        return len(self._entries)
