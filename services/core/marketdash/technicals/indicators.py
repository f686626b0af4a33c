"""
Technical indicator engine.

Pure-Python implementations over close prices. Every series returned here
has the same length as its input, with None for indices inside the
indicator's warm-up window.
"""

from __future__ import annotations

import math
from typing import Callable, Iterable, Sequence

from .series import BarSeries
from .types import AnnotatedBar, BollingerBands, IndicatorKind, IndicatorParams, MACDValue


def sma(values: Sequence[float], period: int) -> list[float | None]:
    """
    Simple moving average over a trailing window.

    Uses a running sum, so the pass is linear in len(values).
    Defined for i >= period - 1.
    """
    result: list[float | None] = [None] * len(values)
    if period < 1 or len(values) < period:
        return result

    window_sum = 0.0
    for i, value in enumerate(values):
        window_sum += value
        if i >= period:
            window_sum -= values[i - period]
        if i >= period - 1:
            result[i] = window_sum / period
    return result


def ema(values: Sequence[float | None], period: int) -> list[float | None]:
    """
    Exponential moving average with k = 2 / (period + 1).

    The first value is the SMA of the first `period` defined inputs; None
    inputs are treated as not yet available and restart the seeding.
    """
    result: list[float | None] = [None] * len(values)
    if period < 1:
        return result

    k = 2.0 / (period + 1)
    prev: float | None = None
    seed_sum = 0.0
    seed_count = 0

    for i, value in enumerate(values):
        if value is None:
            prev, seed_sum, seed_count = None, 0.0, 0
            continue

        if prev is None:
            seed_sum += value
            seed_count += 1
            if seed_count == period:
                prev = seed_sum / period
                result[i] = prev
            continue

        prev = value * k + prev * (1 - k)
        result[i] = prev

    return result


def bollinger_bands(
    values: Sequence[float],
    period: int,
    k: float = 2.0,
) -> list[BollingerBands | None]:
    """Bollinger Bands: SMA middle, +/- k population standard deviations."""
    middles = sma(values, period)
    result: list[BollingerBands | None] = [None] * len(values)

    for i, middle in enumerate(middles):
        if middle is None:
            continue
        window = values[i - period + 1 : i + 1]
        variance = sum((v - middle) ** 2 for v in window) / period
        width = abs(k) * math.sqrt(variance)
        result[i] = BollingerBands(upper=middle + width, middle=middle, lower=middle - width)

    return result


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


def rsi(values: Sequence[float], period: int = 14) -> list[float | None]:
    """
    Relative Strength Index using Wilder's smoothing.

    The first value (index `period`) uses simple means of the first
    `period` one-bar gains/losses; later values use
    avg = (avg * (period - 1) + x) / period.
    """
    result: list[float | None] = [None] * len(values)
    if period < 1 or len(values) <= period:
        return result

    gains = 0.0
    losses = 0.0
    for i in range(1, period + 1):
        change = values[i] - values[i - 1]
        if change > 0:
            gains += change
        else:
            losses -= change

    avg_gain = gains / period
    avg_loss = losses / period
    result[period] = _rsi_value(avg_gain, avg_loss)

    for i in range(period + 1, len(values)):
        change = values[i] - values[i - 1]
        gain = change if change > 0 else 0.0
        loss = -change if change < 0 else 0.0
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period
        result[i] = _rsi_value(avg_gain, avg_loss)

    return result


def macd(
    values: Sequence[float],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> list[MACDValue | None]:
    """
    MACD line, signal line and histogram.

    The MACD line exists once both EMAs do; the signal line is an EMA of the
    defined MACD values only, so signal/histogram stay None during its own
    warm-up.
    """
    fast = ema(values, fast_period)
    slow = ema(values, slow_period)
    line = [
        f - s if f is not None and s is not None else None
        for f, s in zip(fast, slow)
    ]
    signal = ema(line, signal_period)

    result: list[MACDValue | None] = []
    for m, s in zip(line, signal):
        if m is None:
            result.append(None)
        elif s is None:
            result.append(MACDValue(macd=m, signal=None, histogram=None))
        else:
            result.append(MACDValue(macd=m, signal=s, histogram=m - s))
    return result


# Strategy per indicator kind: (AnnotatedBar field, series function)
_Strategy = Callable[[list[float], IndicatorParams], list]

STRATEGIES: dict[IndicatorKind, tuple[str, _Strategy]] = {
    IndicatorKind.SMA: ("sma", lambda closes, p: sma(closes, p.sma_period)),
    IndicatorKind.EMA: ("ema", lambda closes, p: ema(closes, p.ema_period)),
    IndicatorKind.BOLLINGER: (
        "bollinger",
        lambda closes, p: bollinger_bands(closes, p.bollinger_period, p.bollinger_k),
    ),
    IndicatorKind.RSI: ("rsi", lambda closes, p: rsi(closes, p.rsi_period)),
    IndicatorKind.MACD: (
        "macd",
        lambda closes, p: macd(closes, p.macd_fast, p.macd_slow, p.macd_signal),
    ),
}


def compute_indicators(
    series: BarSeries,
    indicators: Iterable[IndicatorKind],
    params: IndicatorParams | None = None,
) -> list[AnnotatedBar]:
    """
    Annotate every bar of a chronological series with the requested indicators.

    Args:
        series: Bars oldest first (see BarSeries.from_source)
        indicators: Indicator kinds to compute
        params: Periods/multipliers (defaults to IndicatorParams())

    Returns:
        One AnnotatedBar per input bar, same order. Empty input gives [].
    """
    if not isinstance(series, BarSeries):
        raise TypeError(
            f"compute_indicators expects a BarSeries, got {type(series).__name__}; "
            "wrap API bars with BarSeries.from_source()"
        )
    if len(series) == 0:
        return []

    params = params or IndicatorParams()
    requested = set(indicators)
    closes = series.closes

    columns: dict[str, list] = {}
    for kind in IndicatorKind:
        if kind in requested:
            field_name, strategy = STRATEGIES[kind]
            columns[field_name] = strategy(closes, params)

    return [
        AnnotatedBar(bar=bar, **{name: column[i] for name, column in columns.items()})
        for i, bar in enumerate(series)
    ]
