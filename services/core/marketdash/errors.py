"""Error taxonomy for market data access and local persistence."""

from __future__ import annotations


class MarketDataError(Exception):
    """Base class for failures while talking to the market data API."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class NetworkError(MarketDataError):
    """Timeout, connection failure or an unexpected HTTP status."""
    pass


class AuthError(MarketDataError):
    """Missing or rejected API credentials (HTTP 401/403)."""
    pass


class RateLimitError(MarketDataError):
    """The API refused the request because of rate limiting (HTTP 429)."""
    pass


class DataError(MarketDataError):
    """The response body was empty, undecodable or had an unexpected shape."""
    pass


class StorageError(Exception):
    """The persistence backend failed: quota exceeded, locked or unreadable."""
    pass
