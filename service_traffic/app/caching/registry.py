"""
Per-namespace cache registry.

One registry is built at process start and handed to the consumers that need
caches; there is no module-level lookup table.
"""

import asyncio
from typing import Any, Dict, Optional, TYPE_CHECKING

from shared.config import TrafficCacheSettings
from shared.logging import get_logger
from .tiered_cache import TieredCache

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class CacheRegistry:
    """Creates and holds one ``TieredCache`` per namespace."""

    def __init__(
        self,
        settings: TrafficCacheSettings,
        metrics_collector: Optional["MetricsCollector"] = None,
        **factories: Any,
    ):
        self.settings = settings
        self.metrics_collector = metrics_collector
        self._factories = factories
        self._caches: Dict[str, TieredCache] = {}
        self._lock = asyncio.Lock()
        self.logger = get_logger("traffic.cache.registry")

    async def get_or_create(
        self,
        namespace: str,
        *,
        default_ttl_ms: Optional[int] = None,
        max_entries: Optional[int] = None,
    ) -> TieredCache:
        """Return the cache for ``namespace``, building it on first use.

        Options only apply when the cache is first created.
        """
        cache = self._caches.get(namespace)
        if cache is not None:
            return cache

        async with self._lock:
            cache = self._caches.get(namespace)
            if cache is None:
                cache = await TieredCache.create(
                    namespace,
                    self.settings,
                    default_ttl_ms=default_ttl_ms,
                    max_entries=max_entries,
                    metrics_collector=self.metrics_collector,
                    **self._factories,
                )
                self._caches[namespace] = cache
            return cache

    def get(self, namespace: str) -> Optional[TieredCache]:
        return self._caches.get(namespace)

    def namespaces(self):
        return sorted(self._caches)

    def all_metrics(self) -> Dict[str, Dict[str, int]]:
        """Metrics snapshot for every registered namespace."""
        return {name: cache.metrics() for name, cache in self._caches.items()}

    async def close(self) -> None:
        for name, cache in self._caches.items():
            await cache.close()
            self.logger.debug("Closed cache", namespace=name)
        self._caches.clear()
