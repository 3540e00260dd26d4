"""
Shared configuration management for the Daylight traffic cache layer.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


HERE_FLOW_URL = "https://traffic.ls.hereapi.com/traffic/6.2/flow.json"


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local", validation_alias="ENV")
    log_level: str = Field(default="info", validation_alias="LOG_LEVEL")

    # Observability
    metrics_port: Optional[int] = Field(default=None, validation_alias="METRICS_PORT")


class TrafficCacheSettings(BaseConfig):
    """Settings for the cache layer and the traffic upstream."""

    # Distributed store (absent -> in-process cache only)
    distributed_store_url: Optional[str] = Field(default=None, validation_alias="DISTRIBUTED_STORE_URL")
    distributed_store_connect_timeout: float = Field(
        default=2.0, validation_alias="DISTRIBUTED_STORE_CONNECT_TIMEOUT"
    )

    # Cache
    default_ttl_ms: int = Field(default=60_000, validation_alias="DEFAULT_TTL_MS")
    cache_max_entries: Optional[int] = Field(default=100, validation_alias="CACHE_MAX_ENTRIES")
    traffic_cache_ttl_ms: int = Field(default=20_000, validation_alias="TRAFFIC_CACHE_TTL_MS")
    coordinate_precision: int = Field(default=4, validation_alias="COORDINATE_PRECISION")

    # Upstream provider
    upstream_provider: str = Field(default="mock", validation_alias="UPSTREAM_PROVIDER")
    upstream_api_key: Optional[str] = Field(default=None, validation_alias="UPSTREAM_API_KEY")
    upstream_secret_ref: Optional[str] = Field(default=None, validation_alias="UPSTREAM_SECRET_REF")
    upstream_base_url: str = Field(default=HERE_FLOW_URL, validation_alias="UPSTREAM_BASE_URL")
    upstream_timeout_seconds: float = Field(default=3.0, validation_alias="UPSTREAM_TIMEOUT_SECONDS")
    upstream_attempts: int = Field(default=2, validation_alias="UPSTREAM_ATTEMPTS")
    upstream_retry_delay_seconds: float = Field(default=0.2, validation_alias="UPSTREAM_RETRY_DELAY_SECONDS")

    # Secrets
    secrets_file: Optional[str] = Field(default=None, validation_alias="SECRETS_FILE")
    secrets_master_key: Optional[str] = Field(default=None, validation_alias="SECRETS_MASTER_KEY")

    @property
    def distributed_store_enabled(self) -> bool:
        """True when a distributed store URL has been configured."""
        return bool(self.distributed_store_url)


def get_settings(**overrides) -> TrafficCacheSettings:
    """Build settings from the environment, applying explicit overrides."""
    return TrafficCacheSettings(**overrides)
