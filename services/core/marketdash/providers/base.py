"""Base types and protocols for market data providers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Union


Timestamp = Union[int, str]  # epoch milliseconds or ISO-8601 string


@dataclass(frozen=True)
class Bar:
    """Unified OHLCV bar representation."""
    open: float
    high: float
    low: float
    close: float
    volume: float
    timestamp: Timestamp

    def to_dict(self) -> dict:
        return {
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class Quote:
    """Snapshot quote fields for a single ticker."""
    ticker: str
    price: float
    change: float
    change_percent: float
    open: float = 0.0
    high: float = 0.0
    low: float = 0.0
    previous_close: float = 0.0
    volume: float = 0.0
    updated: int | None = None  # epoch nanoseconds as reported by the API


class BarSource(Protocol):
    """Protocol for HTTP collaborators that supply bars and quotes."""

    async def fetch_bars(
        self,
        symbol: str,
        multiplier: int,
        timespan: str,
        from_date: str,
        to_date: str,
    ) -> list[Bar]:
        """
        Fetch aggregate bars for a symbol/timeframe.

        Order is whatever the API returns; callers normalise it with
        BarSeries.from_source before computing anything.
        """
        ...

    async def fetch_snapshot(self, tickers: list[str]) -> dict[str, Quote]:
        """Fetch current quote fields keyed by ticker."""
        ...
