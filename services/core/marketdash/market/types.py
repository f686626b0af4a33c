"""Market overview response types."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass
class MarketStatus:
    market: str  # "open", "closed", "extended-hours" or "unknown"
    server_time: str
    exchanges: dict[str, Any] = field(default_factory=dict)
    currencies: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class MarketIndex:
    ticker: str
    name: str
    value: float
    change: float
    change_percent: float
    last_updated: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SectorPerformance:
    sector: str
    ticker: str
    performance: float  # Today's change in percent
    change: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class WatchlistItem:
    symbol: str
    name: str
    price: float
    change: float
    change_percent: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
