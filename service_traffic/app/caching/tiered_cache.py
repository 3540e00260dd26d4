"""
Tiered cache facade.

A ``TieredCache`` owns one backend (a distributed store when one could be
selected at construction, the in-process ``BoundedTTLStore`` otherwise), an
invalidation set and hit/miss/set/invalidation counters. The backend choice is
made once by ``TieredCache.create`` and never revisited.
"""

from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, Optional, Set, TYPE_CHECKING

from shared.config import TrafficCacheSettings
from shared.logging import get_logger
from .backends import CacheBackend, InProcessBackend
from .distributed import BackendSelection, build_distributed_backend
from .ttl_store import BoundedTTLStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEFAULT_TTL_MS = 60_000


@dataclass
class CacheMetrics:
    """Monotonic counters for one cache instance."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    invalidations: int = 0

    def snapshot(self) -> Dict[str, int]:
        return asdict(self)


class TieredCache:
    """Single public cache facade over the selected backend."""

    def __init__(
        self,
        namespace: str,
        backend: Optional[CacheBackend] = None,
        default_ttl_ms: int = DEFAULT_TTL_MS,
        *,
        metrics_collector: Optional["MetricsCollector"] = None,
        selection: Optional[BackendSelection] = None,
    ):
        self.namespace = namespace
        self.default_ttl_ms = default_ttl_ms
        self._backend = backend if backend is not None else InProcessBackend()
        self._invalidated: Set[str] = set()
        self._metrics = CacheMetrics()
        self._collector = metrics_collector
        self.selection = selection
        self.logger = get_logger("traffic.cache")

    @classmethod
    async def create(
        cls,
        namespace: str,
        settings: TrafficCacheSettings,
        *,
        default_ttl_ms: Optional[int] = None,
        max_entries: Optional[int] = None,
        metrics_collector: Optional["MetricsCollector"] = None,
        clock: Optional[Callable[[], float]] = None,
        **factories: Any,
    ) -> "TieredCache":
        """Select a backend for ``namespace`` and return a ready cache.

        ``factories`` are forwarded to ``build_distributed_backend`` so tests
        can substitute client constructors.
        """
        selection = await build_distributed_backend(settings, namespace, **factories)
        if selection.available:
            backend = selection.backend
        else:
            store_kwargs: Dict[str, Any] = {
                "max_entries": max_entries if max_entries is not None else settings.cache_max_entries,
            }
            if clock is not None:
                store_kwargs["clock"] = clock
            backend = InProcessBackend(BoundedTTLStore(**store_kwargs))

        cache = cls(
            namespace,
            backend,
            default_ttl_ms if default_ttl_ms is not None else settings.default_ttl_ms,
            metrics_collector=metrics_collector,
            selection=selection,
        )
        cache.logger.info(
            "Cache created",
            namespace=namespace,
            backend=backend.name,
            reason=selection.unavailable_reason,
        )
        return cache

    @property
    def backend_name(self) -> str:
        return self._backend.name

    async def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on miss or invalidation."""
        if key in self._invalidated:
            self._count("misses", "miss")
            self.logger.debug("Cache MISS (invalidated)", namespace=self.namespace, key=key)
            return None

        value = await self._backend.get(key)
        if value is not None:
            self._count("hits", "hit")
            self.logger.debug("Cache HIT", namespace=self.namespace, key=key, backend=self.backend_name)
            return value

        self._count("misses", "miss")
        self.logger.debug("Cache MISS", namespace=self.namespace, key=key, backend=self.backend_name)
        return None

    async def set(self, key: str, value: Any, ttl_ms: Optional[int] = None) -> None:
        """Store ``value``; a fresh set clears any pending invalidation of ``key``."""
        ttl = self.default_ttl_ms if ttl_ms is None else ttl_ms
        self._invalidated.discard(key)
        self._count("sets", "set")
        await self._backend.set(key, value, ttl)
        self.logger.debug("Cache SET", namespace=self.namespace, key=key, ttl_ms=ttl, backend=self.backend_name)

    def invalidate(self, key: str) -> None:
        """Mark ``key`` stale immediately; the backend entry is left to expire."""
        self._invalidated.add(key)
        self._count("invalidations", "invalidation")

    async def clear(self) -> None:
        self._invalidated.clear()
        self._count("invalidations", "invalidation")
        await self._backend.clear()
        self.logger.info("Cache cleared", namespace=self.namespace, backend=self.backend_name)

    def metrics(self) -> Dict[str, int]:
        return self._metrics.snapshot()

    async def close(self) -> None:
        await self._backend.close()

    def _count(self, field: str, operation: str) -> None:
        setattr(self._metrics, field, getattr(self._metrics, field) + 1)
        if self._collector is not None:
            self._collector.record_cache_operation(self.namespace, operation)
