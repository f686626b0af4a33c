"""Volume-by-price profile and significant level detection."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

from ..providers.base import Bar


DEFAULT_BUCKET_COUNT = 20
DEFAULT_THRESHOLD = 0.7
RANGE_BUFFER_PCT = 0.05  # Padding added above and below the traded range


@dataclass
class PriceLevel:
    """One bucket of the volume profile."""
    price: float  # Bucket midpoint
    volume: float

    def to_dict(self) -> dict:
        return {"price": self.price, "volume": self.volume}


def build_volume_profile(
    bars: Sequence[Bar],
    bucket_count: int = DEFAULT_BUCKET_COUNT,
) -> list[PriceLevel]:
    """
    Distribute traded volume over equal-width price buckets.

    Each bar's volume is split evenly across every bucket its [low, high]
    range touches (uniform intrabar distribution). The total volume across
    buckets equals the total input volume.

    Args:
        bars: Bars in any order
        bucket_count: Number of price buckets

    Returns:
        bucket_count levels in ascending price order, or [] for no bars
    """
    if not bars or bucket_count < 1:
        return []

    low = min(b.low for b in bars)
    high = max(b.high for b in bars)

    buffer = (high - low) * RANGE_BUFFER_PCT
    if buffer == 0:
        # Every bar traded at one price: give buckets a non-zero width
        buffer = abs(low) * RANGE_BUFFER_PCT or 1.0

    min_price = low - buffer
    max_price = high + buffer
    step = (max_price - min_price) / bucket_count

    levels = [
        PriceLevel(price=min_price + step * (i + 0.5), volume=0.0)
        for i in range(bucket_count)
    ]

    for bar in bars:
        low_index = min(bucket_count - 1, max(0, math.floor((bar.low - min_price) / step)))
        high_index = min(bucket_count - 1, max(0, math.floor((bar.high - min_price) / step)))
        if high_index < low_index:
            # Inverted bar (high < low): book it where its low sits
            high_index = low_index

        per_level = bar.volume / (high_index - low_index + 1)
        for i in range(low_index, high_index + 1):
            levels[i].volume += per_level

    return levels


def find_significant_levels(
    levels: Sequence[PriceLevel],
    threshold: float = DEFAULT_THRESHOLD,
) -> list[float]:
    """
    Prices of buckets whose volume exceeds threshold * max bucket volume.

    Returned in bucket order (ascending price), not by volume rank.
    """
    if not levels:
        return []

    max_volume = max(level.volume for level in levels)
    cutoff = max_volume * threshold
    return [level.price for level in levels if level.volume > cutoff]


def point_of_control(levels: Sequence[PriceLevel]) -> float | None:
    """Price of the highest-volume bucket (lowest price wins ties)."""
    if not levels:
        return None
    best = max(levels, key=lambda level: level.volume)
    if best.volume <= 0:
        return None
    return best.price
