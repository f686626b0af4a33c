"""Canonical types for the indicator engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from ..providers.base import Bar
from .config import (
    BOLLINGER_K,
    BOLLINGER_PERIOD,
    EMA_PERIOD,
    MACD_FAST,
    MACD_SIGNAL,
    MACD_SLOW,
    RSI_PERIOD,
    SMA_PERIOD,
)


class IndicatorKind(Enum):
    """Closed set of supported indicators."""
    SMA = "sma"
    EMA = "ema"
    BOLLINGER = "bollinger"
    RSI = "rsi"
    MACD = "macd"

    @classmethod
    def parse_many(cls, names: Iterable[str]) -> frozenset[IndicatorKind]:
        """
        Parse indicator names (case-insensitive) into a set of kinds.

        Raises:
            ValueError: If a name is not a supported indicator
        """
        kinds = set()
        for name in names:
            try:
                kinds.add(cls(name.strip().lower()))
            except ValueError:
                raise ValueError(
                    f"Unsupported indicator '{name}'. "
                    f"Use any of: {', '.join(k.value for k in cls)}"
                ) from None
        return frozenset(kinds)


@dataclass(frozen=True)
class IndicatorParams:
    """Periods and multipliers used by each indicator."""
    sma_period: int = SMA_PERIOD
    ema_period: int = EMA_PERIOD
    bollinger_period: int = BOLLINGER_PERIOD
    bollinger_k: float = BOLLINGER_K
    rsi_period: int = RSI_PERIOD
    macd_fast: int = MACD_FAST
    macd_slow: int = MACD_SLOW
    macd_signal: int = MACD_SIGNAL


@dataclass(frozen=True)
class BollingerBands:
    upper: float
    middle: float
    lower: float


@dataclass(frozen=True)
class MACDValue:
    macd: float
    signal: float | None  # None during the signal line's warm-up
    histogram: float | None


@dataclass(frozen=True)
class AnnotatedBar:
    """
    A bar plus derived indicator values.

    Indicator fields are None inside the indicator's warm-up window (or when
    the indicator was not requested), never zero.
    """
    bar: Bar
    sma: float | None = None
    ema: float | None = None
    bollinger: BollingerBands | None = None
    rsi: float | None = None
    macd: MACDValue | None = None

    def to_dict(self) -> dict[str, Any]:
        """Flatten to a JSON-ready dict, omitting absent indicator fields."""
        out = self.bar.to_dict()
        if self.sma is not None:
            out["sma"] = self.sma
        if self.ema is not None:
            out["ema"] = self.ema
        if self.bollinger is not None:
            out["bollinger"] = {
                "upper": self.bollinger.upper,
                "middle": self.bollinger.middle,
                "lower": self.bollinger.lower,
            }
        if self.rsi is not None:
            out["rsi"] = self.rsi
        if self.macd is not None:
            macd = {"macd": self.macd.macd}
            if self.macd.signal is not None:
                macd["signal"] = self.macd.signal
                macd["histogram"] = self.macd.histogram
            out["macd"] = macd
        return out
