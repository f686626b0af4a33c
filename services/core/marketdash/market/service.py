"""Cached market data access: bars, quotes and market overview."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable

from ..cache.keys import make_cache_key
from ..cache.service import ResponseCache
from ..cache.ttl import DEFAULT_CACHE_TTL, EndpointCategory, category_for_endpoint
from ..errors import MarketDataError
from ..providers.base import Quote
from ..providers.polygon_rest import (
    MARKET_STATUS_PATH,
    SNAPSHOT_PATH,
    PolygonRESTClient,
    aggregates_params,
    aggregates_path,
    parse_aggregates,
    parse_snapshot,
    snapshot_params,
)
from ..providers.throttle import Priority
from ..technicals.series import BarSeries
from .config import (
    DEFAULT_PERIOD,
    DEFAULT_WATCHLIST,
    INDEX_TICKERS,
    SECTOR_ETFS,
    STOCK_NAMES,
    period_window,
)
from .types import MarketIndex, MarketStatus, SectorPerformance, WatchlistItem


logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _epoch_to_iso(value: int | None) -> str:
    """Snapshot 'updated' fields are nanoseconds; accept ms/seconds too."""
    if not value:
        return _now_iso()
    if value > 1e17:
        seconds = value / 1e9
    elif value > 1e11:
        seconds = value / 1e3
    else:
        seconds = float(value)
    return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()


class MarketDataService:
    """
    Routes every market data request through the response cache.

    Bars come back as a chronological BarSeries; overview endpoints degrade
    to neutral placeholder values when the API fails and nothing is cached.
    """

    def __init__(
        self,
        client: PolygonRESTClient,
        cache: ResponseCache,
        ttls: dict[EndpointCategory, float] | None = None,
        today: Callable[[], date] = date.today,
    ):
        self.client = client
        self.cache = cache
        self.ttls = ttls or dict(DEFAULT_CACHE_TTL)
        self._today = today

    async def _cached(
        self,
        path: str,
        params: dict[str, Any] | None,
        hint: str = "",
        priority: int = Priority.MEDIUM,
    ) -> dict[str, Any]:
        """Fetch path through the cache with the TTL of its endpoint category."""
        key = make_cache_key(path, params)
        category = category_for_endpoint(path, hint)
        return await self.cache.fetch_through(
            key,
            self.ttls[category],
            lambda: self.client.request(path, params, priority),
        )

    async def get_bars(
        self,
        symbol: str,
        multiplier: int,
        timespan: str,
        from_date: str,
        to_date: str,
        priority: int = Priority.HIGH,
    ) -> BarSeries:
        """
        Fetch aggregate bars as a chronological series.

        Raises:
            MarketDataError: When the API fails and no cached response exists
        """
        raw = await self._cached(
            aggregates_path(symbol, multiplier, timespan, from_date, to_date),
            aggregates_params(),
            priority=priority,
        )
        return BarSeries.from_source(parse_aggregates(raw))

    async def get_bars_for_period(self, symbol: str, period: str = DEFAULT_PERIOD) -> BarSeries:
        """Fetch bars for a period selector (1D, 1W, 1M, 3M, 6M, 1Y) ending today."""
        multiplier, timespan, days = period_window(period)
        to_date = self._today()
        from_date = to_date - timedelta(days=days)
        logger.info(f"Fetching aggregate data for {symbol} over {period}")
        return await self.get_bars(
            symbol, multiplier, timespan, from_date.isoformat(), to_date.isoformat()
        )

    async def get_snapshot(
        self,
        tickers: list[str],
        hint: str = "watchlist",
    ) -> dict[str, Quote]:
        """
        Quotes for tickers from the snapshot endpoint.

        Args:
            hint: Caller name picking the TTL, since indices, sectors and
                watchlists share one endpoint
        """
        raw = await self._cached(SNAPSHOT_PATH, snapshot_params(tickers), hint)
        return parse_snapshot(raw)

    async def get_market_status(self) -> MarketStatus:
        try:
            raw = await self._cached(MARKET_STATUS_PATH, None)
            return MarketStatus(
                market=str(raw.get("market", "unknown")),
                server_time=str(raw.get("serverTime") or _now_iso()),
                exchanges=raw.get("exchanges") or {},
                currencies=raw.get("currencies") or {},
            )
        except MarketDataError as e:
            logger.error(f"Failed to fetch market status: {e}")
            return MarketStatus(market="unknown", server_time=_now_iso())

    async def get_market_indices(self) -> list[MarketIndex]:
        tickers = [ticker for ticker, _ in INDEX_TICKERS]
        try:
            quotes = await self.get_snapshot(tickers, "indices")
        except MarketDataError as e:
            logger.error(f"Failed to fetch market indices: {e}")
            quotes = {}

        indices = []
        for ticker, name in INDEX_TICKERS:
            quote = quotes.get(ticker)
            if quote is None:
                indices.append(MarketIndex(ticker, name, 0.0, 0.0, 0.0, _now_iso()))
                continue
            indices.append(MarketIndex(
                ticker=ticker,
                name=name,
                value=quote.price,
                change=quote.change,
                change_percent=quote.change_percent,
                last_updated=_epoch_to_iso(quote.updated),
            ))
        return indices

    async def get_sector_performance(self) -> list[SectorPerformance]:
        tickers = [ticker for ticker, _ in SECTOR_ETFS]
        try:
            quotes = await self.get_snapshot(tickers, "sectors")
        except MarketDataError as e:
            logger.error(f"Failed to fetch sector performance: {e}")
            quotes = {}

        sectors = []
        for ticker, sector in SECTOR_ETFS:
            quote = quotes.get(ticker)
            sectors.append(SectorPerformance(
                sector=sector,
                ticker=ticker,
                performance=quote.change_percent if quote else 0.0,
                change=quote.change if quote else 0.0,
            ))
        return sectors

    async def get_watchlist_quotes(self, symbols: list[str] | None = None) -> list[WatchlistItem]:
        symbols = [s.upper() for s in symbols] if symbols else list(DEFAULT_WATCHLIST)
        try:
            quotes = await self.get_snapshot(symbols, "watchlist")
        except MarketDataError as e:
            logger.error(f"Failed to fetch watchlist data: {e}")
            quotes = {}

        items = []
        for symbol in symbols:
            quote = quotes.get(symbol)
            items.append(WatchlistItem(
                symbol=symbol,
                name=STOCK_NAMES.get(symbol, symbol),
                price=quote.price if quote else 0.0,
                change=quote.change if quote else 0.0,
                change_percent=quote.change_percent if quote else 0.0,
            ))
        return items
