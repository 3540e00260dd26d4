"""
Cache key derivation and HTTP cache header helpers.
"""

import base64
import hashlib
import json
from typing import Any

KEY_DIGEST_LENGTH = 32


def canonical_params(params: Any) -> str:
    """Stable serialization: strings pass through, everything else is sorted compact JSON."""
    if isinstance(params, str):
        return params
    return json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)


def generate_cache_key(namespace: str, params: Any) -> str:
    """
    Derive ``"<namespace>:<digest>"`` from a parameter set.

    The digest is the SHA-256 of the canonical parameters, URL-safe base64
    encoded and truncated to 32 characters (192 bits), so keys have a fixed
    length regardless of input size.
    """
    digest = hashlib.sha256(canonical_params(params).encode("utf-8")).digest()
    encoded = base64.urlsafe_b64encode(digest).decode("ascii")
    return f"{namespace}:{encoded[:KEY_DIGEST_LENGTH]}"


def cache_control_header(ttl_seconds: int = 3600, private: bool = False) -> str:
    """Build a Cache-Control header value matching a cache TTL."""
    visibility = "private" if private else "public"
    return f"{visibility}, max-age={ttl_seconds}, s-maxage={ttl_seconds}"
