"""Tests for the REST client: error mapping and response parsing."""

import asyncio

import aiohttp
import pytest

from marketdash.errors import AuthError, DataError, NetworkError, RateLimitError
from marketdash.providers.polygon_rest import (
    MARKET_STATUS_PATH,
    PolygonRESTClient,
    aggregates_path,
    parse_aggregates,
    parse_snapshot,
)
from marketdash.providers.throttle import RequestThrottler


class FakeResponse:
    """Minimal stand-in for aiohttp.ClientResponse as an async context manager."""

    def __init__(self, status=200, body=None, text="", json_error=None):
        self.status = status
        self._body = body
        self._text = text
        self._json_error = json_error

    async def json(self, content_type="application/json"):
        if self._json_error is not None:
            raise self._json_error
        return self._body

    async def text(self):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """Records GET calls and replies with a canned response (or raises)."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params))
        if self.error is not None:
            raise self.error
        return self.response


def make_client(session, api_key="test-key", throttler=None):
    return PolygonRESTClient(
        api_key=api_key,
        base_url="https://api.example.test/",
        session=session,
        throttler=throttler,
    )


class TestRequest:
    """Tests for PolygonRESTClient.request error mapping."""

    @pytest.mark.asyncio
    async def test_success_adds_api_key(self):
        session = FakeSession(FakeResponse(body={"status": "OK", "market": "open"}))
        client = make_client(session)

        data = await client.request(MARKET_STATUS_PATH, {"a": 1})

        assert data["market"] == "open"
        url, params = session.calls[0]
        assert url == "https://api.example.test/v1/marketstatus/now"
        assert params == {"a": 1, "apiKey": "test-key"}

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        session = FakeSession(FakeResponse(body={"ok": 1}))
        with pytest.raises(AuthError):
            await make_client(session, api_key=None).request(MARKET_STATUS_PATH)
        assert session.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_statuses(self, status):
        client = make_client(FakeSession(FakeResponse(status=status)))
        with pytest.raises(AuthError) as exc_info:
            await client.request(MARKET_STATUS_PATH)
        assert exc_info.value.status == status

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        client = make_client(FakeSession(FakeResponse(status=429)))
        with pytest.raises(RateLimitError):
            await client.request(MARKET_STATUS_PATH)

    @pytest.mark.asyncio
    async def test_other_status_is_network_error(self):
        client = make_client(FakeSession(FakeResponse(status=502, text="bad gateway")))
        with pytest.raises(NetworkError, match="502") as exc_info:
            await client.request(MARKET_STATUS_PATH)
        assert exc_info.value.status == 502

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client = make_client(FakeSession(FakeResponse(json_error=ValueError("bad json"))))
        with pytest.raises(DataError):
            await client.request(MARKET_STATUS_PATH)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{}, [], None])
    async def test_empty_body(self, body):
        client = make_client(FakeSession(FakeResponse(body=body)))
        with pytest.raises(DataError):
            await client.request(MARKET_STATUS_PATH)

    @pytest.mark.asyncio
    async def test_error_status_in_body(self):
        body = {"status": "ERROR", "error": "Unknown ticker"}
        client = make_client(FakeSession(FakeResponse(body=body)))
        with pytest.raises(DataError, match="Unknown ticker"):
            await client.request(MARKET_STATUS_PATH)

    @pytest.mark.asyncio
    async def test_connection_error(self):
        client = make_client(FakeSession(error=aiohttp.ClientConnectionError("refused")))
        with pytest.raises(NetworkError):
            await client.request(MARKET_STATUS_PATH)

    @pytest.mark.asyncio
    async def test_timeout(self):
        client = make_client(FakeSession(error=asyncio.TimeoutError()))
        with pytest.raises(NetworkError, match="timed out"):
            await client.request(MARKET_STATUS_PATH)

    @pytest.mark.asyncio
    async def test_goes_through_throttler(self):
        throttler = RequestThrottler(spacing_seconds=0)
        session = FakeSession(FakeResponse(body={"status": "OK"}))
        client = make_client(session, throttler=throttler)

        assert await client.request(MARKET_STATUS_PATH) == {"status": "OK"}
        assert len(session.calls) == 1

    @pytest.mark.asyncio
    async def test_fetch_bars(self):
        body = {"status": "OK", "results": [{"o": 1, "h": 2, "l": 0.5, "c": 1.5, "v": 10, "t": 1000}]}
        session = FakeSession(FakeResponse(body=body))
        bars = await make_client(session).fetch_bars("aapl", 1, "day", "2024-01-01", "2024-01-31")

        assert len(bars) == 1
        assert bars[0].close == 1.5
        url, params = session.calls[0]
        assert url.endswith("/v2/aggs/ticker/AAPL/range/1/day/2024-01-01/2024-01-31")
        assert params["adjusted"] == "true"


class TestParsing:
    """Tests for response parsing helpers."""

    def test_aggregates_path(self):
        assert aggregates_path("msft", 5, "minute", "a", "b") == "/v2/aggs/ticker/MSFT/range/5/minute/a/b"

    def test_parse_aggregates(self):
        raw = {"results": [
            {"o": 10, "h": 12, "l": 9, "c": 11, "v": 500, "t": 1700000000000},
            {"o": 11, "h": 13, "l": 10, "c": 12, "t": 1700000060000},
        ]}
        bars = parse_aggregates(raw)
        assert [b.close for b in bars] == [11.0, 12.0]
        assert bars[0].timestamp == 1700000000000
        assert bars[1].volume == 0.0

    def test_parse_aggregates_no_results(self):
        assert parse_aggregates({"status": "OK", "resultsCount": 0}) == []
        assert parse_aggregates({"results": []}) == []

    def test_parse_aggregates_malformed(self):
        with pytest.raises(DataError):
            parse_aggregates({"results": [{"o": 1}]})
        with pytest.raises(DataError):
            parse_aggregates({"results": {"o": 1}})

    def test_parse_snapshot_price_fallbacks(self):
        raw = {"tickers": [
            {
                "ticker": "SPY",
                "todaysChange": 1.5,
                "todaysChangePerc": 0.3,
                "lastTrade": {"p": 501.2},
                "day": {"o": 499, "h": 502, "l": 498, "c": 500.9, "v": 1000},
                "prevDay": {"c": 499.7},
                "updated": 1700000000000000000,
            },
            {"ticker": "QQQ", "day": {"c": 420.0}},
            {"ticker": "IWM"},
        ]}
        quotes = parse_snapshot(raw)

        assert quotes["SPY"].price == 501.2
        assert quotes["SPY"].previous_close == 499.7
        assert quotes["SPY"].updated == 1700000000000000000
        assert quotes["QQQ"].price == 420.0
        assert quotes["QQQ"].change == 0.0
        assert quotes["IWM"].price == 0.0

    def test_parse_snapshot_malformed(self):
        with pytest.raises(DataError):
            parse_snapshot({"tickers": [{"day": {}}]})
        with pytest.raises(DataError):
            parse_snapshot({"tickers": "SPY"})
