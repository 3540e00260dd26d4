"""
Unit tests for settings loading.
"""

import pytest

from shared.config import HERE_FLOW_URL, TrafficCacheSettings, get_settings


ENV_NAMES = [
    "DISTRIBUTED_STORE_URL",
    "DISTRIBUTED_STORE_CONNECT_TIMEOUT",
    "DEFAULT_TTL_MS",
    "CACHE_MAX_ENTRIES",
    "TRAFFIC_CACHE_TTL_MS",
    "UPSTREAM_PROVIDER",
    "UPSTREAM_API_KEY",
    "UPSTREAM_SECRET_REF",
    "UPSTREAM_BASE_URL",
    "UPSTREAM_TIMEOUT_SECONDS",
    "UPSTREAM_ATTEMPTS",
    "UPSTREAM_RETRY_DELAY_SECONDS",
    "COORDINATE_PRECISION",
    "SECRETS_FILE",
    "SECRETS_MASTER_KEY",
    "METRICS_PORT",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestTrafficCacheSettings:
    """Test cases for TrafficCacheSettings."""

    def test_defaults(self, clean_env):
        settings = TrafficCacheSettings()

        assert settings.distributed_store_url is None
        assert not settings.distributed_store_enabled
        assert settings.distributed_store_connect_timeout == 2.0
        assert settings.default_ttl_ms == 60_000
        assert settings.cache_max_entries == 100
        assert settings.traffic_cache_ttl_ms == 20_000
        assert settings.upstream_provider == "mock"
        assert settings.upstream_base_url == HERE_FLOW_URL
        assert settings.upstream_timeout_seconds == 3.0
        assert settings.upstream_attempts == 2
        assert settings.upstream_retry_delay_seconds == 0.2
        assert settings.coordinate_precision == 4
        assert settings.metrics_port is None

    def test_environment_variables(self, clean_env):
        clean_env.setenv("DISTRIBUTED_STORE_URL", "redis://cache:6379/2")
        clean_env.setenv("TRAFFIC_CACHE_TTL_MS", "5000")
        clean_env.setenv("UPSTREAM_PROVIDER", "here")
        clean_env.setenv("UPSTREAM_API_KEY", "env-key")
        clean_env.setenv("UPSTREAM_ATTEMPTS", "4")
        clean_env.setenv("UPSTREAM_TIMEOUT_SECONDS", "1.5")

        settings = TrafficCacheSettings()

        assert settings.distributed_store_enabled
        assert settings.distributed_store_url == "redis://cache:6379/2"
        assert settings.traffic_cache_ttl_ms == 5000
        assert settings.upstream_provider == "here"
        assert settings.upstream_api_key == "env-key"
        assert settings.upstream_attempts == 4
        assert settings.upstream_timeout_seconds == 1.5

    def test_environment_names_are_case_insensitive(self, clean_env):
        clean_env.setenv("upstream_provider", "here")

        assert TrafficCacheSettings().upstream_provider == "here"

    def test_overrides_win_over_environment(self, clean_env):
        clean_env.setenv("DEFAULT_TTL_MS", "1000")

        settings = get_settings(default_ttl_ms=2500)

        assert settings.default_ttl_ms == 2500

    def test_invalid_number_rejected(self, clean_env):
        clean_env.setenv("UPSTREAM_ATTEMPTS", "many")

        with pytest.raises(ValueError):
            TrafficCacheSettings()
