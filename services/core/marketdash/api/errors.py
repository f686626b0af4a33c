"""Translate market data errors into HTTP errors for API consumers."""

from __future__ import annotations

from fastapi import HTTPException

from ..errors import AuthError, DataError, MarketDataError, NetworkError, RateLimitError


def to_http_exception(error: MarketDataError) -> HTTPException:
    if isinstance(error, AuthError):
        return HTTPException(
            status_code=401,
            detail="API Key Error: your API key is missing, invalid or has expired.",
        )
    if isinstance(error, RateLimitError):
        return HTTPException(status_code=429, detail="Rate limit exceeded. Please try again later.")
    if isinstance(error, DataError):
        return HTTPException(status_code=502, detail=f"Unexpected API response: {error}")
    if isinstance(error, NetworkError):
        return HTTPException(status_code=503, detail=f"Market data API unavailable: {error}")
    return HTTPException(status_code=500, detail=f"API Error: {error}")
