"""
Distributed backing stores for the tiered cache.

Two variants share the ``CacheBackend`` interface:

- ``RedisBackend``: values stored as JSON text, expiry via the native
  millisecond TTL (``SET ... PX``).
- ``TableBackend``: DynamoDB-style table, one item per key shaped
  ``{pk, data, ttl, createdAt}`` where ``ttl`` is an epoch-seconds attribute
  the table's reaper acts on eventually; reads re-check it.

Backend selection happens once, in ``build_distributed_backend``. It never
raises: missing configuration, an unknown URL scheme, a missing client
library or a failed handshake all produce an unavailable ``BackendSelection``
and the caller falls back to the in-process store.
"""

import asyncio
import json
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, urlparse

import redis.asyncio as redis

from shared.config import TrafficCacheSettings
from shared.errors import BackendIOError, BackendUnavailableError, ConfigurationAbsentError
from shared.logging import get_logger
from .backends import CacheBackend


REDIS_SCHEMES = ("redis", "rediss", "unix")
TABLE_SCHEMES = ("dynamodb",)


class RedisBackend(CacheBackend):
    """Redis-backed store using native millisecond expiry."""

    name = "redis"

    def __init__(self, client: redis.Redis, namespace: str):
        self.client = client
        self.namespace = namespace
        self.logger = get_logger("traffic.cache.redis")

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self.client.get(self._key(key))
        except Exception as e:
            self._report(BackendIOError(self.name, f"get failed: {e}"), key)
            return None

        if raw is None:
            return None
        return _decode(raw, self.logger, key)

    async def set(self, key: str, value: Any, ttl_ms: int) -> None:
        if ttl_ms <= 0:
            await self.delete(key)
            return

        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            self.logger.warning("Value is not JSON serializable; not cached", key=key, error=str(e))
            return

        try:
            await self.client.set(self._key(key), payload, px=int(ttl_ms))
        except Exception as e:
            self._report(BackendIOError(self.name, f"set failed: {e}"), key)

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(self._key(key))
        except Exception as e:
            self._report(BackendIOError(self.name, f"delete failed: {e}"), key)

    async def clear(self) -> None:
        """Remove every key under this backend's namespace."""
        pattern = f"{self.namespace}:*"
        try:
            keys = await self.client.keys(pattern)
            if keys:
                await self.client.delete(*keys)
            self.logger.info("Cleared cache namespace", pattern=pattern, keys_count=len(keys))
        except Exception as e:
            self._report(BackendIOError(self.name, f"clear failed: {e}"), pattern)

    async def close(self) -> None:
        try:
            await self.client.aclose()
        except Exception as e:
            self.logger.warning("Failed to close Redis client", error=str(e))

    def _report(self, error: BackendIOError, key: str) -> None:
        self.logger.warning(error.message, code=error.code, key=key)


class TableBackend(CacheBackend):
    """DynamoDB-style table store using an epoch-seconds TTL attribute.

    ``table`` is a boto3 ``Table`` resource (or anything exposing
    ``get_item``/``put_item``/``delete_item``). boto3 is synchronous, so each
    call runs in a worker thread.
    """

    name = "table"

    def __init__(self, table: Any, namespace: str, clock: Callable[[], float] = time.time):
        self.table = table
        self.namespace = namespace
        self._clock = clock
        self.logger = get_logger("traffic.cache.table")

    def _pk(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        pk = self._pk(key)
        try:
            response = await asyncio.to_thread(self.table.get_item, Key={"pk": pk})
        except Exception as e:
            self._report(BackendIOError(self.name, f"get failed: {e}"), pk)
            return None

        item = response.get("Item") if response else None
        if not item:
            return None

        expires = item.get("ttl")
        if expires is not None and self._clock() > float(expires):
            # the table reaper has not removed it yet
            self.logger.debug("Cache EXPIRED (table)", pk=pk)
            return None

        return _decode(item.get("data"), self.logger, pk)

    async def set(self, key: str, value: Any, ttl_ms: int) -> None:
        if ttl_ms <= 0:
            await self.delete(key)
            return

        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            self.logger.warning("Value is not JSON serializable; not cached", key=key, error=str(e))
            return

        item = {
            "pk": self._pk(key),
            "data": payload,
            # rounded up: the attribute is whole epoch seconds
            "ttl": math.ceil(self._clock() + ttl_ms / 1000.0),
            "createdAt": datetime.now(timezone.utc).isoformat(),
        }
        try:
            await asyncio.to_thread(self.table.put_item, Item=item)
        except Exception as e:
            self._report(BackendIOError(self.name, f"put failed: {e}"), item["pk"])

    async def delete(self, key: str) -> None:
        pk = self._pk(key)
        try:
            await asyncio.to_thread(self.table.delete_item, Key={"pk": pk})
        except Exception as e:
            self._report(BackendIOError(self.name, f"delete failed: {e}"), pk)

    async def clear(self) -> None:
        """No bulk clear for tables; entries age out through their TTL attribute."""
        self.logger.warning("Table backend has no bulk clear; entries expire via TTL", namespace=self.namespace)

    def _report(self, error: BackendIOError, pk: str) -> None:
        self.logger.warning(error.message, code=error.code, pk=pk)


def _decode(raw: Any, logger, key: str) -> Optional[Any]:
    """Deserialize a stored JSON payload, treating garbage as absent."""
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning("Failed to deserialize cached payload", key=key, error=str(e))
        return None


@dataclass(frozen=True)
class BackendSelection:
    """Outcome of distributed backend selection: a backend or the reason there is none."""

    backend: Optional[CacheBackend] = None
    unavailable_reason: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.backend is not None

    @classmethod
    def unavailable(cls, error: Exception) -> "BackendSelection":
        code = getattr(error, "code", None)
        message = getattr(error, "message", str(error))
        return cls(backend=None, unavailable_reason=message, error_code=code)


def default_redis_factory(url: str, connect_timeout: float) -> redis.Redis:
    return redis.from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=connect_timeout,
        socket_timeout=connect_timeout,
    )


def default_table_factory(table_name: str, region: Optional[str], endpoint_url: Optional[str]) -> Any:
    try:
        import boto3
    except ImportError as e:
        raise ImportError("boto3 not installed. Install with: pip install boto3") from e

    resource = boto3.resource("dynamodb", region_name=region, endpoint_url=endpoint_url)
    return resource.Table(table_name)


async def build_distributed_backend(
    settings: TrafficCacheSettings,
    namespace: str,
    *,
    redis_factory: Callable[[str, float], Any] = default_redis_factory,
    table_factory: Callable[[str, Optional[str], Optional[str]], Any] = default_table_factory,
) -> BackendSelection:
    """Resolve the distributed backend for ``namespace`` once, without raising."""
    logger = get_logger("traffic.cache.selection")

    url = settings.distributed_store_url
    if not url:
        logger.debug("Distributed store not configured", namespace=namespace)
        return BackendSelection.unavailable(ConfigurationAbsentError())

    parsed = urlparse(url)
    scheme = parsed.scheme.lower()

    try:
        if scheme in REDIS_SCHEMES:
            client = redis_factory(url, settings.distributed_store_connect_timeout)
            try:
                await asyncio.wait_for(client.ping(), timeout=settings.distributed_store_connect_timeout)
            except BaseException:
                await _close_quietly(client)
                raise
            backend: CacheBackend = RedisBackend(client, namespace)

        elif scheme in TABLE_SCHEMES:
            table_name = parsed.netloc or parsed.path.lstrip("/")
            if not table_name:
                raise ValueError("dynamodb URL must name a table, e.g. dynamodb://daylight-cache")
            query = parse_qs(parsed.query)
            region = query.get("region", [None])[0]
            endpoint_url = query.get("endpoint_url", [None])[0]
            table = table_factory(table_name, region, endpoint_url)
            await asyncio.wait_for(
                asyncio.to_thread(table.load),
                timeout=settings.distributed_store_connect_timeout,
            )
            backend = TableBackend(table, namespace)

        else:
            raise ValueError(f"unsupported distributed store scheme '{scheme}'")

    except Exception as e:
        error = BackendUnavailableError(scheme or "unknown", str(e) or type(e).__name__)
        logger.warning(
            "Distributed store unavailable; using in-process cache",
            namespace=namespace,
            code=error.code,
            error=error.message,
        )
        return BackendSelection.unavailable(error)

    logger.info("Distributed store selected", namespace=namespace, backend=backend.name)
    return BackendSelection(backend=backend)


async def _close_quietly(client: Any) -> None:
    close = getattr(client, "aclose", None)
    if close is None:
        return
    try:
        await close()
    except Exception as e:
        get_logger("traffic.cache.selection").debug("Failed to close rejected client", error=str(e))
