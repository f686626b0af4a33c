"""Polygon.io-style REST client for aggregates, snapshots and market status."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from ..errors import AuthError, DataError, NetworkError, RateLimitError
from .base import Bar, Quote
from .throttle import Priority, RequestThrottler


logger = logging.getLogger(__name__)


MARKET_STATUS_PATH = "/v1/marketstatus/now"
SNAPSHOT_PATH = "/v2/snapshot/locale/us/markets/stocks/tickers"


def aggregates_path(symbol: str, multiplier: int, timespan: str, from_date: str, to_date: str) -> str:
    return f"/v2/aggs/ticker/{symbol.upper()}/range/{multiplier}/{timespan}/{from_date}/{to_date}"


class PolygonRESTClient:
    """Async HTTP client mapping API failures onto the marketdash error taxonomy."""

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.polygon.io",
        timeout_seconds: float = 15.0,
        throttler: RequestThrottler | None = None,
        session: aiohttp.ClientSession | None = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: API key sent as the apiKey query parameter
            base_url: API root
            timeout_seconds: Total timeout per request
            throttler: Optional queue spacing outbound requests
            session: Optional shared aiohttp session (one per request otherwise)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.throttler = throttler
        self._session = session

    async def request(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        priority: int = Priority.MEDIUM,
    ) -> dict[str, Any]:
        """
        GET a JSON object from the API.

        Raises:
            AuthError: No API key configured, or HTTP 401/403
            RateLimitError: HTTP 429
            NetworkError: Timeout, connection failure or other non-200 status
            DataError: Body is empty, not JSON, or reports an error status
        """
        if not self.api_key:
            raise AuthError("API key not configured")

        if self.throttler is not None:
            return await self.throttler.submit(lambda: self._get(path, params), priority)
        return await self._get(path, params)

    async def _get(self, path: str, params: dict[str, Any] | None) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        query = {**(params or {}), "apiKey": self.api_key}
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        logger.info(f"API request: {path} params={params or {}}")

        try:
            if self._session is not None:
                return await self._send(self._session, url, query, timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                return await self._send(session, url, query, timeout)
        except asyncio.TimeoutError as e:
            raise NetworkError(f"Request to {path} timed out after {self.timeout_seconds}s") from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"Network error requesting {path}: {e}") from e

    async def _send(
        self,
        session: aiohttp.ClientSession,
        url: str,
        query: dict[str, Any],
        timeout: aiohttp.ClientTimeout,
    ) -> dict[str, Any]:
        async with session.get(url, params=query, timeout=timeout) as response:
            if response.status in (401, 403):
                raise AuthError(
                    "API key is invalid or has expired", status=response.status
                )
            if response.status == 429:
                raise RateLimitError("Rate limit exceeded", status=response.status)
            if response.status != 200:
                text = await response.text()
                raise NetworkError(
                    f"API error {response.status}: {text[:200]}", status=response.status
                )

            try:
                data = await response.json(content_type=None)
            except ValueError as e:
                raise DataError(f"Response body is not valid JSON: {e}") from e

        if not isinstance(data, dict) or not data:
            raise DataError("Empty or non-object response body")
        if str(data.get("status", "")).upper() == "ERROR":
            raise DataError(f"API reported an error: {data.get('error') or data.get('message')}")
        return data

    async def fetch_bars(
        self,
        symbol: str,
        multiplier: int,
        timespan: str,
        from_date: str,
        to_date: str,
    ) -> list[Bar]:
        raw = await self.request(
            aggregates_path(symbol, multiplier, timespan, from_date, to_date),
            aggregates_params(),
        )
        return parse_aggregates(raw)

    async def fetch_snapshot(self, tickers: list[str]) -> dict[str, Quote]:
        raw = await self.request(SNAPSHOT_PATH, snapshot_params(tickers))
        return parse_snapshot(raw)

    async def fetch_market_status(self) -> dict[str, Any]:
        return await self.request(MARKET_STATUS_PATH)


def aggregates_params() -> dict[str, Any]:
    return {"adjusted": "true", "limit": 50000}


def snapshot_params(tickers: list[str]) -> dict[str, Any]:
    return {"tickers": ",".join(t.upper() for t in tickers)}


def parse_aggregates(raw: dict[str, Any]) -> list[Bar]:
    """
    Convert an aggregates response into Bars (in the order received).

    Aggregate format: {"results": [{"o", "h", "l", "c", "v", "t"}, ...]}
    A missing or empty results list means no bars in the range.

    Raises:
        DataError: If results is not a list or a row is malformed
    """
    results = raw.get("results")
    if results is None:
        return []
    if not isinstance(results, list):
        raise DataError(f"Aggregates 'results' is {type(results).__name__}, expected list")

    bars = []
    for row in results:
        try:
            bars.append(Bar(
                open=float(row["o"]),
                high=float(row["h"]),
                low=float(row["l"]),
                close=float(row["c"]),
                volume=float(row.get("v", 0.0)),
                timestamp=int(row["t"]),
            ))
        except (KeyError, TypeError, ValueError) as e:
            raise DataError(f"Malformed aggregate bar {row!r}: {e}") from e
    return bars


def _quote_from_ticker(data: dict[str, Any]) -> Quote:
    day = data.get("day") or {}
    prev_day = data.get("prevDay") or {}
    last_trade = data.get("lastTrade") or {}
    return Quote(
        ticker=str(data["ticker"]),
        price=float(last_trade.get("p") or day.get("c") or 0.0),
        change=float(data.get("todaysChange") or 0.0),
        change_percent=float(data.get("todaysChangePerc") or 0.0),
        open=float(day.get("o") or 0.0),
        high=float(day.get("h") or 0.0),
        low=float(day.get("l") or 0.0),
        previous_close=float(prev_day.get("c") or 0.0),
        volume=float(day.get("v") or 0.0),
        updated=int(data["updated"]) if data.get("updated") else None,
    )


def parse_snapshot(raw: dict[str, Any]) -> dict[str, Quote]:
    """
    Convert a tickers snapshot response into {ticker: Quote}.

    Raises:
        DataError: If tickers is not a list or an entry is malformed
    """
    tickers = raw.get("tickers") or []
    if not isinstance(tickers, list):
        raise DataError(f"Snapshot 'tickers' is {type(tickers).__name__}, expected list")

    quotes = {}
    for data in tickers:
        try:
            quote = _quote_from_ticker(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise DataError(f"Malformed snapshot entry {data!r}: {e}") from e
        quotes[quote.ticker] = quote
    return quotes
