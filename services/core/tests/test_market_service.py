"""Tests for the cached market data service."""

import json
from datetime import date

import pytest

from marketdash.cache.keys import CACHE_PREFIX
from marketdash.cache.service import ResponseCache
from marketdash.cache.ttl import build_ttl_table
from marketdash.errors import DataError, NetworkError
from marketdash.market.service import MarketDataService, _epoch_to_iso
from marketdash.providers.polygon_rest import MARKET_STATUS_PATH, SNAPSHOT_PATH
from marketdash.storage.memory import MemoryStore


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class FakeClient:
    """Replies per path prefix; raises `error` when set."""

    def __init__(self, replies=None, error=None):
        self.replies = replies or {}
        self.error = error
        self.calls = []

    async def request(self, path, params=None, priority=None):
        self.calls.append((path, params, priority))
        if self.error is not None:
            raise self.error
        for prefix, reply in self.replies.items():
            if path.startswith(prefix):
                return reply
        raise DataError(f"no reply for {path}")


def aggregates(timestamps):
    return {
        "status": "OK",
        "results": [
            {"o": 10, "h": 11, "l": 9, "c": 10 + i, "v": 100, "t": t}
            for i, t in enumerate(timestamps)
        ],
    }


def snapshot(*tickers):
    return {"status": "OK", "tickers": [
        {"ticker": t, "todaysChange": 1.0, "todaysChangePerc": 0.5,
         "lastTrade": {"p": 100.0}, "updated": 1700000000000000000}
        for t in tickers
    ]}


def make_service(client, clock=None, today=date(2024, 3, 31)):
    cache = ResponseCache(MemoryStore(), clock=clock or FakeClock())
    return MarketDataService(client, cache, today=lambda: today)


async def stored_ttls(service):
    store = service.cache.store
    return [json.loads(await store.get(k))["ttl"] for k in await store.keys(CACHE_PREFIX)]


class TestBars:
    """Tests for bar retrieval."""

    @pytest.mark.asyncio
    async def test_newest_first_bars_become_chronological(self):
        client = FakeClient({"/v2/aggs": aggregates([3000, 2000, 1000])})
        series = await make_service(client).get_bars("aapl", 1, "day", "a", "b")

        assert [b.timestamp for b in series] == [1000, 2000, 3000]
        assert series.source_newest_first is True

    @pytest.mark.asyncio
    async def test_bars_are_cached(self):
        client = FakeClient({"/v2/aggs": aggregates([1000, 2000])})
        service = make_service(client)

        await service.get_bars("AAPL", 1, "day", "a", "b")
        await service.get_bars("AAPL", 1, "day", "a", "b")

        assert len(client.calls) == 1

    @pytest.mark.asyncio
    async def test_period_window(self):
        client = FakeClient({"/v2/aggs": aggregates([1000])})
        await make_service(client).get_bars_for_period("msft", "1M")

        path, params, _ = client.calls[0]
        assert path == "/v2/aggs/ticker/MSFT/range/1/hour/2024-03-01/2024-03-31"
        assert params == {"adjusted": "true", "limit": 50000}

    @pytest.mark.asyncio
    async def test_unknown_period(self):
        with pytest.raises(ValueError, match="Unsupported period"):
            await make_service(FakeClient()).get_bars_for_period("AAPL", "5Y")

    @pytest.mark.asyncio
    async def test_error_without_cache_propagates(self):
        client = FakeClient(error=NetworkError("offline"))
        with pytest.raises(NetworkError):
            await make_service(client).get_bars("AAPL", 1, "day", "a", "b")

    @pytest.mark.asyncio
    async def test_stale_bars_served_on_error(self):
        clock = FakeClock()
        client = FakeClient({"/v2/aggs": aggregates([1000, 2000])})
        service = make_service(client, clock=clock)
        await service.get_bars("AAPL", 1, "day", "a", "b")

        clock.now += 10_000
        client.error = NetworkError("offline")
        series = await service.get_bars("AAPL", 1, "day", "a", "b")

        assert len(series) == 2
        assert len(client.calls) == 2


class TestOverview:
    """Tests for overview endpoints and their placeholders."""

    @pytest.mark.asyncio
    async def test_market_status(self):
        client = FakeClient({MARKET_STATUS_PATH: {
            "market": "open", "serverTime": "2024-03-31T10:00:00-04:00", "exchanges": {"nyse": "open"},
        }})
        status = await make_service(client).get_market_status()
        assert status.market == "open"
        assert status.exchanges == {"nyse": "open"}

    @pytest.mark.asyncio
    async def test_market_status_placeholder(self):
        status = await make_service(FakeClient(error=NetworkError("offline"))).get_market_status()
        assert status.market == "unknown"
        assert status.server_time

    @pytest.mark.asyncio
    async def test_indices(self):
        client = FakeClient({SNAPSHOT_PATH: snapshot("SPY", "QQQ")})
        indices = await make_service(client).get_market_indices()

        by_ticker = {i.ticker: i for i in indices}
        assert [i.ticker for i in indices] == ["SPY", "DIA", "QQQ", "IWM"]
        assert by_ticker["SPY"].value == 100.0
        assert by_ticker["SPY"].last_updated.startswith("2023-11-14")
        assert by_ticker["DIA"].value == 0.0

    @pytest.mark.asyncio
    async def test_indices_placeholder(self):
        indices = await make_service(FakeClient(error=NetworkError("offline"))).get_market_indices()
        assert len(indices) == 4
        assert all(i.value == 0.0 and i.change == 0.0 for i in indices)

    @pytest.mark.asyncio
    async def test_sectors(self):
        client = FakeClient({SNAPSHOT_PATH: snapshot("XLK")})
        sectors = await make_service(client).get_sector_performance()

        assert len(sectors) == 11
        assert sectors[0].sector == "Technology"
        assert sectors[0].performance == 0.5
        assert sectors[1].performance == 0.0

    @pytest.mark.asyncio
    async def test_watchlist_defaults_and_names(self):
        client = FakeClient({SNAPSHOT_PATH: snapshot("AAPL")})
        items = await make_service(client).get_watchlist_quotes()

        assert [i.symbol for i in items] == ["AAPL", "MSFT", "GOOGL", "AMZN", "NVDA"]
        assert items[0].name == "Apple Inc."
        assert items[0].price == 100.0
        assert items[1].price == 0.0

    @pytest.mark.asyncio
    async def test_watchlist_custom_symbols(self):
        client = FakeClient({SNAPSHOT_PATH: snapshot("ZZZ")})
        items = await make_service(client).get_watchlist_quotes(["zzz"])

        assert items[0].symbol == "ZZZ"
        assert items[0].name == "ZZZ"
        _, params, _ = client.calls[0]
        assert params == {"tickers": "ZZZ"}

    @pytest.mark.asyncio
    async def test_snapshot_is_cached(self):
        client = FakeClient({SNAPSHOT_PATH: snapshot("SPY")})
        service = make_service(client)

        await service.get_snapshot(["SPY"], "indices")
        await service.get_snapshot(["SPY"], "indices")
        assert len(client.calls) == 1


def test_epoch_to_iso_units():
    expected = "2023-11-14T22:13:20+00:00"
    assert _epoch_to_iso(1700000000) == expected
    assert _epoch_to_iso(1700000000000) == expected
    assert _epoch_to_iso(1700000000000000000) == expected


class TestCacheCategories:
    """Tests for TTLs picked from the request path and caller."""

    @pytest.mark.asyncio
    async def test_status_ttl(self):
        service = make_service(FakeClient({MARKET_STATUS_PATH: {"market": "open"}}))
        await service.get_market_status()
        assert await stored_ttls(service) == [300]

    @pytest.mark.asyncio
    async def test_aggregates_ttl(self):
        service = make_service(FakeClient({"/v2/aggs": aggregates([1000])}))
        await service.get_bars("AAPL", 1, "day", "a", "b")
        assert await stored_ttls(service) == [600]

    @pytest.mark.asyncio
    async def test_snapshot_ttl_follows_caller(self):
        watchlist = make_service(FakeClient({SNAPSHOT_PATH: snapshot("AAPL")}))
        await watchlist.get_watchlist_quotes(["AAPL"])
        assert await stored_ttls(watchlist) == [60]

        indices = make_service(FakeClient({SNAPSHOT_PATH: snapshot("SPY")}))
        await indices.get_market_indices()
        assert await stored_ttls(indices) == [120]

        sectors = make_service(FakeClient({SNAPSHOT_PATH: snapshot("XLK")}))
        await sectors.get_sector_performance()
        assert await stored_ttls(sectors) == [900]

    @pytest.mark.asyncio
    async def test_configured_ttl_is_used(self):
        cache = ResponseCache(MemoryStore(), clock=FakeClock())
        client = FakeClient({SNAPSHOT_PATH: snapshot("SPY")})
        service = MarketDataService(client, cache, ttls=build_ttl_table({"indices": 30}))
        await service.get_snapshot(["SPY"], "indices")
        assert await stored_ttls(service) == [30.0]
