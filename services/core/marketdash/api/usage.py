"""API usage and cache maintenance routes."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from ..cache.service import ResponseCache
from ..cache.usage import UsageTracker

router = APIRouter(prefix="/v1", tags=["usage"])

# Set by main.py
_cache: ResponseCache | None = None
_usage: UsageTracker | None = None


def set_services(cache: ResponseCache, usage: UsageTracker) -> None:
    global _cache, _usage
    _cache = cache
    _usage = usage


def _require() -> tuple[ResponseCache, UsageTracker]:
    if _cache is None or _usage is None:
        raise HTTPException(status_code=500, detail="Cache not initialized")
    return _cache, _usage


@router.get("/usage")
async def get_usage() -> dict:
    """Today's request counts against the configured daily budget."""
    _, usage = _require()
    stats = await usage.get_stats()
    return {
        **stats.to_dict(),
        "daily_budget": usage.daily_budget,
        "warning_threshold": usage.warning_threshold,
    }


@router.delete("/usage")
async def reset_usage() -> dict:
    _, usage = _require()
    stats = await usage.reset()
    return stats.to_dict()


@router.delete("/cache")
async def clear_cache() -> dict:
    cache, _ = _require()
    cleared = await cache.clear()
    return {"cleared": cleared}


@router.post("/cache/evict")
async def evict_old_cache() -> dict:
    """Drop entries older than twice their TTL."""
    cache, _ = _require()
    cleared = await cache.evict_old()
    return {"cleared": cleared}
