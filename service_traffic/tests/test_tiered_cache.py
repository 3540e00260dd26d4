"""
Unit tests for the tiered cache facade.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

from prometheus_client import CollectorRegistry

from service_traffic.app.caching.backends import CacheBackend, InProcessBackend
from service_traffic.app.caching.ttl_store import BoundedTTLStore
from service_traffic.app.caching.tiered_cache import TieredCache
from shared.config import TrafficCacheSettings
from shared.metrics import MetricsCollector


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 50.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class TestTieredCache:
    """Test cases for TieredCache over the in-process backend."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def cache(self, clock):
        backend = InProcessBackend(BoundedTTLStore(clock=clock))
        return TieredCache("test", backend, default_ttl_ms=60_000)

    @pytest.mark.asyncio
    async def test_get_before_set_is_miss(self, cache):
        """A key never set is absent and counts one miss."""
        assert await cache.get("k") is None
        assert cache.metrics() == {"hits": 0, "misses": 1, "sets": 0, "invalidations": 0}

    @pytest.mark.asyncio
    async def test_set_then_get_is_hit(self, cache):
        """set followed by get returns the value and counts a hit."""
        await cache.set("k", {"foo": "bar"}, 5000)

        assert await cache.get("k") == {"foo": "bar"}
        assert cache.metrics()["hits"] == 1
        assert cache.metrics()["sets"] == 1

    @pytest.mark.asyncio
    async def test_default_ttl_applies(self, cache, clock):
        """Omitting the TTL uses the cache default."""
        await cache.set("k", "v")
        clock.advance(59.0)
        assert await cache.get("k") == "v"

        clock.advance(2.0)
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_expiry(self, cache, clock):
        """Entries past their TTL are misses."""
        await cache.set("k", "v", 10)
        clock.advance(0.02)

        assert await cache.get("k") is None
        assert cache.metrics()["misses"] == 1

    @pytest.mark.asyncio
    async def test_zero_ttl_is_never_served(self, cache):
        """A zero TTL behaves as 'do not cache'."""
        await cache.set("k", "v", 0)

        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_falsy_values_are_hits(self, cache):
        """Falsy but non-None values are still cache hits."""
        await cache.set("zero", 0, 5000)
        await cache.set("empty", {}, 5000)

        assert await cache.get("zero") == 0
        assert await cache.get("empty") == {}
        assert cache.metrics()["hits"] == 2

    @pytest.mark.asyncio
    async def test_invalidate_then_set(self, cache):
        """Invalidation masks a live entry until the next set."""
        await cache.set("k", "v1", 60_000)
        cache.invalidate("k")

        assert await cache.get("k") is None

        await cache.set("k", "v2", 60_000)
        assert await cache.get("k") == "v2"
        assert cache.metrics() == {"hits": 1, "misses": 1, "sets": 2, "invalidations": 1}

    @pytest.mark.asyncio
    async def test_invalidated_get_skips_backend(self):
        """An invalidated key is a miss without querying the backend."""
        backend = MagicMock(spec=CacheBackend)
        backend.name = "mock"
        backend.get = AsyncMock(return_value="stale")
        cache = TieredCache("test", backend)

        cache.invalidate("k")
        assert await cache.get("k") is None
        backend.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_clear_empties_all_keys(self, cache):
        """clear drops every key and pending invalidation; counts one invalidation."""
        keys = [f"k{i}" for i in range(4)]
        for key in keys:
            await cache.set(key, key, 60_000)
        cache.invalidate("k0")

        await cache.clear()

        for key in keys:
            assert await cache.get(key) is None
        assert cache.metrics()["invalidations"] == 2

    @pytest.mark.asyncio
    async def test_hits_plus_misses_equals_gets(self, cache):
        """Every get is counted exactly once as a hit or a miss."""
        await cache.set("a", 1, 60_000)
        await cache.set("b", 2, 0)
        cache.invalidate("c")
        lookups = ["a", "b", "c", "d", "a", "a", "b"]

        for key in lookups:
            await cache.get(key)

        metrics = cache.metrics()
        assert metrics["hits"] + metrics["misses"] == len(lookups)
        assert metrics["hits"] == 3

    @pytest.mark.asyncio
    async def test_metrics_snapshot_is_a_copy(self, cache):
        """Mutating a snapshot does not affect the cache counters."""
        snapshot = cache.metrics()
        snapshot["hits"] = 99

        assert cache.metrics()["hits"] == 0

    @pytest.mark.asyncio
    async def test_namespaces_are_independent(self):
        """Two caches share neither entries nor counters."""
        first = TieredCache("a")
        second = TieredCache("b")

        await first.set("k", "v", 60_000)
        first.invalidate("other")

        assert await second.get("k") is None
        assert first.metrics()["sets"] == 1
        assert second.metrics() == {"hits": 0, "misses": 1, "sets": 0, "invalidations": 0}

    @pytest.mark.asyncio
    async def test_prometheus_mirroring(self):
        """Counter increments are mirrored to the metrics collector."""
        collector = MetricsCollector("test", registry=CollectorRegistry())
        cache = TieredCache("traffic", metrics_collector=collector)

        await cache.set("k", "v", 60_000)
        await cache.get("k")
        await cache.get("missing")
        cache.invalidate("k")

        labels = {"namespace": "traffic"}
        assert collector.sample("cache_operations_total", operation="hit", **labels) == 1
        assert collector.sample("cache_operations_total", operation="miss", **labels) == 1
        assert collector.sample("cache_operations_total", operation="set", **labels) == 1
        assert collector.sample("cache_operations_total", operation="invalidation", **labels) == 1


class TestTieredCacheCreate:
    """Test cases for backend selection at construction."""

    @pytest.mark.asyncio
    async def test_no_configuration_selects_memory(self):
        """Without a distributed store URL the in-process store is used."""
        settings = TrafficCacheSettings(distributed_store_url=None, cache_max_entries=3)

        cache = await TieredCache.create("traffic", settings)

        assert cache.backend_name == "memory"
        assert cache.selection.unavailable_reason == "Distributed store not configured"
        assert cache.default_ttl_ms == settings.default_ttl_ms

    @pytest.mark.asyncio
    async def test_failed_handshake_falls_back_to_memory(self):
        """A Redis that cannot be pinged leaves the cache on the in-process store."""
        client = AsyncMock()
        client.ping.side_effect = ConnectionError("connection refused")
        settings = TrafficCacheSettings(distributed_store_url="redis://localhost:6390/0")

        cache = await TieredCache.create(
            "traffic",
            settings,
            redis_factory=lambda url, timeout: client,
        )

        assert cache.backend_name == "memory"
        assert "connection refused" in cache.selection.unavailable_reason
        await cache.set("k", "v", 1000)
        assert await cache.get("k") == "v"

    @pytest.mark.asyncio
    async def test_reachable_redis_is_selected(self):
        """A responsive Redis becomes the cache backend."""
        client = AsyncMock()
        client.ping.return_value = True
        client.get.return_value = '{"congestion": 30}'
        settings = TrafficCacheSettings(distributed_store_url="redis://cache:6379/0")

        cache = await TieredCache.create(
            "traffic",
            settings,
            default_ttl_ms=20_000,
            redis_factory=lambda url, timeout: client,
        )

        assert cache.backend_name == "redis"
        assert await cache.get("k") == {"congestion": 30}
        client.get.assert_awaited_once_with("traffic:k")

        await cache.set("k", {"congestion": 31})
        client.set.assert_awaited_once_with("traffic:k", '{"congestion": 31}', px=20_000)

    @pytest.mark.asyncio
    async def test_backend_errors_never_propagate(self):
        """Per-call backend failures look like misses and no-ops."""
        client = AsyncMock()
        client.ping.return_value = True
        client.get.side_effect = ConnectionError("reset by peer")
        client.set.side_effect = ConnectionError("reset by peer")
        settings = TrafficCacheSettings(distributed_store_url="redis://cache:6379/0")
        cache = await TieredCache.create("traffic", settings, redis_factory=lambda url, timeout: client)

        await cache.set("k", "v", 1000)
        assert await cache.get("k") is None
        assert cache.metrics() == {"hits": 0, "misses": 1, "sets": 1, "invalidations": 0}

        # the backend stays selected for later calls
        client.get.side_effect = None
        client.get.return_value = '"v"'
        assert await cache.get("k") == "v"

    @pytest.mark.asyncio
    async def test_slow_handshake_times_out(self):
        """A handshake slower than the connect timeout selects the in-process store."""

        async def slow_ping():
            await asyncio.sleep(1)

        client = MagicMock()
        client.ping = slow_ping
        client.aclose = AsyncMock()
        settings = TrafficCacheSettings(
            distributed_store_url="redis://cache:6379/0",
            distributed_store_connect_timeout=0.01,
        )

        cache = await TieredCache.create("traffic", settings, redis_factory=lambda url, timeout: client)

        assert cache.backend_name == "memory"
        client.aclose.assert_awaited_once()
