"""
Market overview API endpoints.

These degrade to placeholder values instead of failing, so dashboard
widgets always have something to show.
"""

from fastapi import APIRouter, HTTPException, Query
from typing import Any, Dict, List

from ..market.service import MarketDataService

router = APIRouter(prefix="/v1", tags=["market"])

# Service instance (set by main.py)
_market: MarketDataService | None = None


def set_market(market: MarketDataService):
    """Set the market service instance."""
    global _market
    _market = market


def get_market() -> MarketDataService:
    """Get the market service instance."""
    if _market is None:
        raise HTTPException(status_code=500, detail="Market service not initialized")
    return _market


@router.get("/market/status")
async def get_market_status() -> Dict[str, Any]:
    status = await get_market().get_market_status()
    return status.to_dict()


@router.get("/market/indices")
async def get_market_indices() -> List[Dict[str, Any]]:
    indices = await get_market().get_market_indices()
    return [i.to_dict() for i in indices]


@router.get("/market/sectors")
async def get_sector_performance() -> List[Dict[str, Any]]:
    sectors = await get_market().get_sector_performance()
    return [s.to_dict() for s in sectors]


@router.get("/watchlist")
async def get_watchlist(
    symbols: str = Query("", description="Comma-separated tickers; empty for the default list"),
) -> List[Dict[str, Any]]:
    """
    Quotes for a list of tickers.

    Example:
        GET /v1/watchlist?symbols=AAPL,MSFT
        [{"symbol": "AAPL", "name": "Apple Inc.", "price": 190.1, ...}, ...]
    """
    parsed = [s.strip().upper() for s in symbols.split(",") if s.strip()]
    items = await get_market().get_watchlist_quotes(parsed or None)
    return [i.to_dict() for i in items]
