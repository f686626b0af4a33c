from __future__ import annotations

from typing import Any


CACHE_PREFIX = "cache:"
USAGE_STATS_KEY = "usage_stats"


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_stringify(v) for v in value)
    return str(value)


def make_cache_key(url: str, params: dict[str, Any] | None = None) -> str:
    """
    Build a normalized cache key from a request URL and its parameters.

    Parameters are sorted by name and None values dropped, so the same
    logical request always maps to the same key:
    make_cache_key("/v2/x", {"b": 2, "a": 1}) -> "/v2/x?a=1&b=2"
    """
    items = sorted((k, v) for k, v in (params or {}).items() if v is not None)
    if not items:
        return url
    query = "&".join(f"{k}={_stringify(v)}" for k, v in items)
    return f"{url}?{query}"


def endpoint_of(key: str) -> str:
    """Endpoint (path) part of a cache key, used for usage accounting."""
    return key.split("?", 1)[0]
