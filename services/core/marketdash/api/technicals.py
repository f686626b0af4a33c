"""Technical analysis API routes."""

from __future__ import annotations

from fastapi import APIRouter, Header, HTTPException, Query

from ..errors import MarketDataError
from ..market.config import DEFAULT_PERIOD
from ..technicals.pipeline import TechnicalsPipeline
from ..technicals.types import IndicatorKind
from .errors import to_http_exception

router = APIRouter(prefix="/v1", tags=["technicals"])

# Pipeline instance (set by main.py)
_pipeline: TechnicalsPipeline | None = None
_default_indicators: list[str] = [kind.value for kind in IndicatorKind]


def set_pipeline(pipeline: TechnicalsPipeline, default_indicators: list[str] | None = None) -> None:
    """Set the pipeline reference (called from main.py)."""
    global _pipeline, _default_indicators
    _pipeline = pipeline
    if default_indicators is not None:
        _default_indicators = default_indicators


def get_pipeline() -> TechnicalsPipeline:
    if _pipeline is None:
        raise HTTPException(status_code=500, detail="Pipeline not initialized")
    return _pipeline


def _slot(view: str, client_id: str | None) -> str | None:
    return f"{view}:{client_id}" if client_id else None


@router.get("/technicals/{symbol}")
async def get_technicals(
    symbol: str,
    period: str = Query(DEFAULT_PERIOD, description="1D, 1W, 1M, 3M, 6M or 1Y"),
    indicators: str | None = Query(None, description="Comma-separated, e.g. sma,rsi,macd"),
    max_points: int | None = Query(None, ge=0, le=10000, description="0 = size-based"),
    x_client_id: str | None = Header(None, description="Drop this client's superseded requests"),
) -> dict:
    """
    Indicator-annotated bars plus volume profile for a symbol.

    Returns:
    - bars: OHLCV bars with sma/ema/bollinger/rsi/macd where defined
    - volume_profile, significant_levels, point_of_control
    - raw_count / optimized_count when the series was downsampled

    With an X-Client-Id header, a request overtaken by a newer one from the
    same client returns 409. Requests from different clients are independent.
    """
    pipeline = get_pipeline()
    names = indicators.split(",") if indicators is not None else _default_indicators
    try:
        kinds = IndicatorKind.parse_many(n for n in names if n.strip())
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        result = await pipeline.run(
            symbol, period, kinds, max_points=max_points, slot=_slot("technicals", x_client_id)
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except MarketDataError as e:
        raise to_http_exception(e)

    if result is None:
        raise HTTPException(status_code=409, detail="Request superseded by a newer one")
    return result.to_dict()


@router.get("/volume/{symbol}")
async def get_volume_profile(
    symbol: str,
    period: str = Query(DEFAULT_PERIOD, description="1D, 1W, 1M, 3M, 6M or 1Y"),
    buckets: int | None = Query(None, ge=1, le=500),
    threshold: float | None = Query(None, ge=0.0, le=1.0),
    x_client_id: str | None = Header(None, description="Drop this client's superseded requests"),
) -> dict:
    """Volume-by-price buckets and candidate support/resistance levels."""
    pipeline = get_pipeline()
    try:
        result = await pipeline.volume_profile(
            symbol, period, buckets, threshold, slot=_slot("volume", x_client_id)
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except MarketDataError as e:
        raise to_http_exception(e)

    if result is None:
        raise HTTPException(status_code=409, detail="Request superseded by a newer one")
    return result.to_dict()
