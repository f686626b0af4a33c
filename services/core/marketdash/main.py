from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI

from .api import market as market_api
from .api import technicals as technicals_api
from .api import usage as usage_api
from .cache.service import ResponseCache
from .cache.ttl import build_ttl_table
from .cache.usage import UsageTracker
from .config import get_settings
from .market.service import MarketDataService
from .providers.polygon_rest import PolygonRESTClient
from .providers.throttle import RequestThrottler
from .storage.sqlite import SQLiteStore
from .technicals.pipeline import TechnicalsPipeline
from .technicals.types import IndicatorKind


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

settings = get_settings()
store = SQLiteStore(settings.sqlite_path, max_bytes=settings.cache_max_bytes)
throttler: RequestThrottler | None = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for startup/shutdown."""
    global throttler

    # Startup: storage, cache services and the analytics pipeline
    await store.init()

    usage = UsageTracker(
        store,
        daily_budget=settings.daily_request_budget,
        warning_ratio=settings.usage_warning_ratio,
    )
    cache = ResponseCache(store, usage)
    throttler = RequestThrottler(
        spacing_seconds=settings.throttle_spacing_seconds,
        max_concurrent=settings.throttle_max_concurrent,
    )
    client = PolygonRESTClient(
        api_key=settings.polygon_api_key,
        base_url=settings.polygon_base_url,
        timeout_seconds=settings.request_timeout_seconds,
        throttler=throttler,
    )
    market = MarketDataService(
        client,
        cache,
        ttls=build_ttl_table(settings.get_cache_ttl_overrides()),
    )
    pipeline = TechnicalsPipeline(
        market,
        max_points=settings.max_chart_points,
        bucket_count=settings.volume_profile_buckets,
        threshold=settings.significant_level_threshold,
    )

    default_kinds = IndicatorKind.parse_many(settings.get_default_indicators())
    technicals_api.set_pipeline(
        pipeline, [kind.value for kind in IndicatorKind if kind in default_kinds]
    )
    market_api.set_market(market)
    usage_api.set_services(cache, usage)

    yield

    # Shutdown: fail anything still queued
    if throttler:
        throttler.clear()


app = FastAPI(
    title="Market Dashboard Core API",
    version="0.1.0",
    lifespan=lifespan,
)
app.include_router(technicals_api.router)
app.include_router(market_api.router)
app.include_router(usage_api.router)


@app.get("/health")
async def health() -> dict[str, Any]:
    return {
        "ok": True,
        "ts": int(time.time()),
        "api_key_configured": bool(settings.polygon_api_key),
        "queued_requests": throttler.queue_length if throttler else 0,
    }
