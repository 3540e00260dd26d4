"""
Composition root for the traffic service.

Builds the settings, logging, metrics, cache registry and traffic lookup once
at process start. Request handlers receive the ``TrafficApplication`` (or its
members) by reference instead of reaching for module globals.
"""

import asyncio
from typing import Optional

from shared.config import TrafficCacheSettings, get_settings
from shared.logging import configure_logging, get_logger, set_request_id
from shared.metrics import MetricsCollector, get_metrics_collector
from .adapters.traffic import TRAFFIC_NAMESPACE, TrafficService
from .caching.registry import CacheRegistry


SERVICE_NAME = "traffic"


class TrafficApplication:
    """Owns the long-lived collaborators of the traffic service."""

    def __init__(
        self,
        settings: Optional[TrafficCacheSettings] = None,
        *,
        registry: Optional[CacheRegistry] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.settings = settings or get_settings()
        self.metrics = metrics or get_metrics_collector(SERVICE_NAME)
        self.registry = registry or CacheRegistry(self.settings, metrics_collector=self.metrics)
        self.traffic: Optional[TrafficService] = None
        self._start_lock = asyncio.Lock()
        self._metrics_server_started = False
        self.logger = get_logger("traffic.main")

    async def start(self) -> "TrafficApplication":
        """Resolve cache backends and wire the traffic lookup."""
        if self.traffic is not None:
            return self

        async with self._start_lock:
            # a concurrent caller may have finished starting while we waited
            if self.traffic is not None:
                return self

            cache = await self.registry.get_or_create(
                TRAFFIC_NAMESPACE,
                default_ttl_ms=self.settings.traffic_cache_ttl_ms,
            )

            if self.settings.metrics_port and not self._metrics_server_started:
                self.metrics.start_metrics_server(self.settings.metrics_port)
                self._metrics_server_started = True

            self.traffic = TrafficService(cache, self.settings, metrics_collector=self.metrics)

        self.logger.info(
            "Traffic service started",
            env=self.settings.env,
            provider=self.traffic.provider,
            cache_backend=cache.backend_name,
        )
        return self

    async def stop(self) -> None:
        await self.registry.close()
        self.traffic = None
        self.logger.info("Traffic service stopped")

    async def fetch_with_fallback(self, lat: float, lng: float, request_id: Optional[str] = None):
        set_request_id(request_id)
        if self.traffic is None:
            await self.start()
        return await self.traffic.fetch_with_fallback(lat, lng)


async def create_traffic_service(settings: Optional[TrafficCacheSettings] = None) -> TrafficApplication:
    """Configure logging and return a started ``TrafficApplication``."""
    settings = settings or get_settings()
    configure_logging(SERVICE_NAME, settings.log_level)
    app = TrafficApplication(settings)
    return await app.start()
