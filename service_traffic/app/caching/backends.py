"""
Storage backends behind the tiered cache facade.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from .ttl_store import BoundedTTLStore


class CacheBackend(ABC):
    """Async key/value store with per-entry TTL in milliseconds.

    Implementations never raise on I/O: failed reads report absence and
    failed writes are no-ops.
    """

    name: str = "abstract"

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_ms: int) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def clear(self) -> None:
        ...

    async def close(self) -> None:
        """Release client resources (no-op by default)."""


class InProcessBackend(CacheBackend):
    """Adapts ``BoundedTTLStore`` to the async backend interface."""

    name = "memory"

    def __init__(self, store: Optional[BoundedTTLStore] = None):
        self.store = store if store is not None else BoundedTTLStore()

    async def get(self, key: str) -> Optional[Any]:
        return self.store.get(key)

    async def set(self, key: str, value: Any, ttl_ms: int) -> None:
        self.store.set(key, value, ttl_ms)

    async def delete(self, key: str) -> None:
        self.store.delete(key)

    async def clear(self) -> None:
        self.store.clear()
