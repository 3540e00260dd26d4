"""
Decorator for caching the results of async functions.
"""

import functools
from typing import Any, Awaitable, Callable, Optional

from .keys import generate_cache_key
from .tiered_cache import TieredCache


def cached(
    cache: TieredCache,
    namespace: Optional[str] = None,
    key_params: Optional[Callable[..., Any]] = None,
    ttl_ms: Optional[int] = None,
) -> Callable:
    """
    Serve calls from ``cache`` and store fresh results on a miss.

    ``namespace`` prefixes the derived keys. It defaults to the function's
    module and qualified name, so same-named functions sharing a cache do
    not collide. ``key_params`` maps the call arguments to the parameter set
    hashed into the key; by default positional and keyword arguments are
    used as-is. ``None`` results are returned but never stored.
    """

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        prefix = namespace or f"{func.__module__}.{func.__qualname__}"

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            params = key_params(*args, **kwargs) if key_params else {"args": list(args), "kwargs": kwargs}
            key = generate_cache_key(prefix, params)

            hit = await cache.get(key)
            if hit is not None:
                return hit

            result = await func(*args, **kwargs)
            if result is not None:
                await cache.set(key, result, ttl_ms)
            return result

        return wrapper

    return decorator
