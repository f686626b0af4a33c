"""Market overview configuration: tracked tickers and period windows."""

from __future__ import annotations


# ETFs that track major indices
INDEX_TICKERS = [
    ("SPY", "S&P 500"),
    ("DIA", "Dow Jones Industrial Average"),
    ("QQQ", "Nasdaq Composite"),
    ("IWM", "Russell 2000"),
]

# Sector ETFs
SECTOR_ETFS = [
    ("XLK", "Technology"),
    ("XLV", "Healthcare"),
    ("XLF", "Financials"),
    ("XLY", "Consumer Discretionary"),
    ("XLC", "Communication Services"),
    ("XLI", "Industrials"),
    ("XLP", "Consumer Staples"),
    ("XLE", "Energy"),
    ("XLU", "Utilities"),
    ("XLRE", "Real Estate"),
    ("XLB", "Materials"),
]

DEFAULT_WATCHLIST = ["AAPL", "MSFT", "GOOGL", "AMZN", "NVDA"]

STOCK_NAMES = {
    "AAPL": "Apple Inc.",
    "MSFT": "Microsoft Corporation",
    "GOOGL": "Alphabet Inc.",
    "AMZN": "Amazon.com Inc.",
    "NVDA": "NVIDIA Corporation",
    "META": "Meta Platforms Inc.",
    "TSLA": "Tesla, Inc.",
    "NFLX": "Netflix, Inc.",
    "DIS": "The Walt Disney Company",
    "BA": "Boeing Company",
}

# Period selector -> (multiplier, timespan, look-back days)
PERIODS = {
    "1D": (5, "minute", 1),
    "1W": (30, "minute", 7),
    "1M": (1, "hour", 30),
    "3M": (4, "hour", 91),
    "6M": (1, "day", 182),
    "1Y": (1, "day", 365),
}
DEFAULT_PERIOD = "1M"


def period_window(period: str) -> tuple[int, str, int]:
    """Resolve a period like 1M/3M/1Y into (multiplier, timespan, days)."""
    key = period.strip().upper()
    if key not in PERIODS:
        raise ValueError(f"Unsupported period '{period}'. Use one of: {', '.join(PERIODS)}.")
    return PERIODS[key]
