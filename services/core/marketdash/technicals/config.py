"""Indicator and chart-density configuration constants."""

from __future__ import annotations


# Default indicator periods
SMA_PERIOD = 20
EMA_PERIOD = 9
BOLLINGER_PERIOD = 20
BOLLINGER_K = 2.0  # Band width in standard deviations
RSI_PERIOD = 14
MACD_FAST = 12
MACD_SLOW = 26
MACD_SIGNAL = 9

# Density optimizer
DEFAULT_MAX_POINTS = 500

# Payload size (KB) -> max points, checked largest first
OPTIMIZATION_LEVELS = [
    (1000, 250),   # Very large dataset (>1MB): aggressive
    (500, 500),    # Large: medium
    (200, 1000),   # Medium: light
]
