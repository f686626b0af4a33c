"""Cache TTL configuration per logical endpoint category."""

from __future__ import annotations

from enum import Enum


class EndpointCategory(str, Enum):
    """Logical endpoint groups sharing an update cadence."""
    STATUS = "status"
    INDICES = "indices"
    SECTORS = "sectors"
    WATCHLIST = "watchlist"
    AGGREGATES = "aggregates"
    TECHNICALS = "technicals"
    SCREENER = "screener"
    BREADTH = "breadth"


# Seconds. Short for live quotes, long for reference/screener data.
DEFAULT_CACHE_TTL: dict[EndpointCategory, float] = {
    EndpointCategory.STATUS: 5 * 60,
    EndpointCategory.INDICES: 2 * 60,
    EndpointCategory.SECTORS: 15 * 60,
    EndpointCategory.WATCHLIST: 1 * 60,
    EndpointCategory.AGGREGATES: 10 * 60,
    EndpointCategory.TECHNICALS: 30 * 60,
    EndpointCategory.SCREENER: 60 * 60,
    EndpointCategory.BREADTH: 20 * 60,
}


def build_ttl_table(overrides: dict[str, float] | None = None) -> dict[EndpointCategory, float]:
    """
    Merge configured overrides into the default TTL table.

    Args:
        overrides: {category name: seconds}, e.g. from Settings.get_cache_ttl_overrides()

    Returns:
        Complete table with an entry for every category
    """
    table = dict(DEFAULT_CACHE_TTL)
    for name, seconds in (overrides or {}).items():
        try:
            category = EndpointCategory(name)
        except ValueError:
            raise ValueError(
                f"Unknown cache category '{name}'. "
                f"Use one of: {', '.join(c.value for c in EndpointCategory)}"
            ) from None
        if seconds <= 0:
            raise ValueError(f"Cache TTL for '{name}' must be positive, got {seconds}")
        table[category] = float(seconds)
    return table


def category_for_endpoint(url: str, hint: str = "") -> EndpointCategory:
    """
    Map a request path (plus an optional caller hint) to its TTL category.

    URL patterns win; the hint distinguishes callers that share an endpoint,
    e.g. the snapshot endpoint serves both indices and watchlists.
    """
    if "/v1/marketstatus" in url:
        return EndpointCategory.STATUS
    if "/v2/aggs" in url:
        return EndpointCategory.AGGREGATES

    hint = hint.lower()
    for category in (
        EndpointCategory.TECHNICALS,
        EndpointCategory.SCREENER,
        EndpointCategory.WATCHLIST,
        EndpointCategory.SECTORS,
        EndpointCategory.BREADTH,
    ):
        if category.value in hint:
            return category

    return EndpointCategory.INDICES
