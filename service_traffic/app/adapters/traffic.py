"""
Traffic congestion lookup with cache, bounded retry and synthesized fallback.
"""

import random
from contextlib import nullcontext
from typing import Any, Dict, Optional, TYPE_CHECKING

from shared.config import TrafficCacheSettings
from shared.errors import DaylightError
from shared.logging import get_logger, set_cache_namespace
from shared.retry import ResilientCall, RetryConfig, RetryError
from ..caching.keys import generate_cache_key
from ..caching.tiered_cache import TieredCache
from ..models import FallbackResult, Provenance, TrafficResult
from .credentials import CredentialResolver
from .here_client import PROVIDER_NAME as HERE_PROVIDER, HereTrafficClient, parse_congestion

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


TRAFFIC_NAMESPACE = "traffic"
MOCK_PROVIDER = "mock"
FALLBACK_PROVIDER = "mock-fallback"
MOCK_CONGESTION_RANGE = (10, 50)
UPSTREAM_DURATION_METRIC = "upstream_request_duration_seconds"


class TrafficService:
    """
    Congestion lookups that always return a structurally valid result.

    Outcomes:

    - CACHED: the derived key was live in the cache; nothing else happens.
    - FETCHED: the upstream answered within the retry budget; the normalized
      result is cached.
    - FALLBACK: credentials were missing or every attempt failed; a random
      placeholder tagged with the failure reason is returned and is never
      cached, so the next call tries the upstream again.

    With the ``mock`` provider no upstream is consulted at all.
    """

    def __init__(
        self,
        cache: TieredCache,
        settings: TrafficCacheSettings,
        *,
        client: Optional[HereTrafficClient] = None,
        credentials: Optional[CredentialResolver] = None,
        resilient_call: Optional[ResilientCall] = None,
        metrics_collector: Optional["MetricsCollector"] = None,
        rng: Optional[random.Random] = None,
    ):
        self.cache = cache
        self.settings = settings
        self.client = client or HereTrafficClient(
            base_url=settings.upstream_base_url,
            timeout=settings.upstream_timeout_seconds,
        )
        self.credentials = credentials or CredentialResolver(settings)
        self.resilient_call = resilient_call or ResilientCall(
            RetryConfig(
                max_attempts=settings.upstream_attempts,
                base_delay=settings.upstream_retry_delay_seconds,
                timeout=settings.upstream_timeout_seconds,
            ),
            name="traffic-upstream",
        )
        self.metrics = metrics_collector
        self._rng = rng or random.Random()
        self.logger = get_logger("traffic.service")

    @property
    def provider(self) -> str:
        return (self.settings.upstream_provider or MOCK_PROVIDER).strip().lower()

    def cache_key(self, lat: float, lng: float, provider: Optional[str] = None) -> str:
        precision = self.settings.coordinate_precision
        return generate_cache_key(
            TRAFFIC_NAMESPACE,
            {
                "lat": round(float(lat), precision),
                "lng": round(float(lng), precision),
                "provider": provider or self.provider,
            },
        )

    async def fetch_with_fallback(self, lat: float, lng: float) -> Dict[str, Any]:
        """Return ``{provider, congestion, fromFallback?, error?}`` for a coordinate."""
        outcome = await self.fetch(lat, lng)
        return outcome.value.to_response()

    async def fetch(self, lat: float, lng: float) -> FallbackResult[TrafficResult]:
        """Look up congestion, tagging the result with where it came from."""
        provider = self.provider

        if provider == MOCK_PROVIDER:
            self._record(MOCK_PROVIDER, "mock")
            return FallbackResult(
                TrafficResult(provider=MOCK_PROVIDER, congestion=self._random_congestion()),
                Provenance.FALLBACK,
            )

        if provider != HERE_PROVIDER:
            return self._fallback(provider, f"unsupported traffic provider '{provider}'")

        set_cache_namespace(self.cache.namespace)
        key = self.cache_key(lat, lng, provider)
        cached = await self.cache.get(key)
        if cached is not None:
            try:
                return FallbackResult(TrafficResult.from_cached(cached), Provenance.CACHED)
            except ValueError as e:
                self.logger.warning("Discarding malformed cached traffic entry", key=key, error=str(e))

        try:
            with self._timed(provider):
                api_key = await self.credentials.resolve(provider)
                payload = await self.resilient_call.invoke(
                    lambda: self.client.get_flow(lat, lng, api_key),
                    timeout=self.settings.upstream_timeout_seconds,
                    attempts=self.settings.upstream_attempts,
                    delay=self.settings.upstream_retry_delay_seconds,
                )
                result = TrafficResult(provider=provider, congestion=parse_congestion(payload))
        except RetryError as e:
            return self._fallback(provider, _reason(e.last_exception))
        except DaylightError as e:
            return self._fallback(provider, _reason(e))

        outcome = FallbackResult(result, Provenance.FETCHED)
        if outcome.cacheable:
            await self.cache.set(key, outcome.value.to_cache(), self.settings.traffic_cache_ttl_ms)
        self._record(provider, "fetched")
        return outcome

    def _fallback(self, provider: str, reason: str) -> FallbackResult[TrafficResult]:
        self.logger.warning("Traffic service failed, returning mock data", provider=provider, error=reason)
        self._record(provider, "fallback")
        value = TrafficResult(
            provider=FALLBACK_PROVIDER,
            congestion=self._random_congestion(),
            from_fallback=True,
            error=reason,
        )
        return FallbackResult(value, Provenance.FALLBACK, reason)

    def _random_congestion(self) -> int:
        low, high = MOCK_CONGESTION_RANGE
        return self._rng.randint(low, high)

    def _timed(self, provider: str):
        """Time the upstream lookup, failures included, when metrics are enabled."""
        if self.metrics is None:
            return nullcontext()
        return self.metrics.time_operation(UPSTREAM_DURATION_METRIC, provider=provider)

    def _record(self, provider: str, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.record_upstream_request(provider, outcome)


def _reason(error: Optional[BaseException]) -> str:
    if error is None:
        return "unknown error"
    if isinstance(error, DaylightError):
        return error.message
    return str(error) or type(error).__name__
