"""Technicals pipeline: cached bars -> optimizer -> indicators + volume profile."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Hashable, Iterable

from ..market.config import DEFAULT_PERIOD
from ..market.service import MarketDataService
from ..volume.profile import (
    DEFAULT_BUCKET_COUNT,
    DEFAULT_THRESHOLD,
    PriceLevel,
    build_volume_profile,
    find_significant_levels,
    point_of_control,
)
from .config import DEFAULT_MAX_POINTS
from .indicators import compute_indicators
from .optimizer import optimization_level, optimize
from .series import BarSeries
from .types import AnnotatedBar, IndicatorKind, IndicatorParams


logger = logging.getLogger(__name__)


class RequestGuard:
    """
    Tracks the latest request per slot so superseded responses can be dropped.

    A slot is one consumer of results (e.g. one client's technicals view);
    starting a new request for a slot makes every older ticket for it stale.
    Requests in different slots never affect each other.
    """

    def __init__(self):
        self._generations: dict[str, int] = {}

    def begin(self, slot: str, context: Hashable) -> RequestTicket:
        generation = self._generations.get(slot, 0) + 1
        self._generations[slot] = generation
        return RequestTicket(self, slot, context, generation)

    def is_current(self, ticket: RequestTicket) -> bool:
        return self._generations.get(ticket.slot) == ticket.generation


@dataclass(frozen=True)
class RequestTicket:
    """Tag carried by an in-flight request: its slot, context and generation."""
    guard: RequestGuard
    slot: str
    context: Hashable
    generation: int

    def is_current(self) -> bool:
        return self.guard.is_current(self)


@dataclass
class TechnicalsResult:
    """Indicator-annotated bars plus the volume profile of the raw series."""
    symbol: str
    period: str
    indicators: list[str]
    bars: list[AnnotatedBar]  # In source order
    volume_profile: list[PriceLevel]
    significant_levels: list[float]
    point_of_control: float | None
    raw_count: int
    optimized_count: int
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "period": self.period,
            "indicators": self.indicators,
            "bars": [b.to_dict() for b in self.bars],
            "volume_profile": [level.to_dict() for level in self.volume_profile],
            "significant_levels": self.significant_levels,
            "point_of_control": self.point_of_control,
            "raw_count": self.raw_count,
            "optimized_count": self.optimized_count,
            "notes": self.notes,
        }


@dataclass
class VolumeProfileResult:
    symbol: str
    period: str
    levels: list[PriceLevel]
    significant_levels: list[float]
    point_of_control: float | None
    total_volume: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "period": self.period,
            "levels": [level.to_dict() for level in self.levels],
            "significant_levels": self.significant_levels,
            "point_of_control": self.point_of_control,
            "total_volume": self.total_volume,
        }


def analyze(
    series: BarSeries,
    indicators: Iterable[IndicatorKind],
    symbol: str = "",
    period: str = "",
    params: IndicatorParams | None = None,
    max_points: int = DEFAULT_MAX_POINTS,
    bucket_count: int = DEFAULT_BUCKET_COUNT,
    threshold: float = DEFAULT_THRESHOLD,
) -> TechnicalsResult:
    """
    Run the synchronous part of the pipeline on a chronological series.

    Downsampling happens before indicator computation, so indicator periods
    count optimized points. The volume profile uses every raw bar.

    Args:
        series: Bars oldest first
        indicators: Indicator kinds to compute
        max_points: Optimizer bound; 0 picks one from the payload size
        bucket_count: Volume profile buckets
        threshold: Significant level cutoff as a fraction of the max bucket
    """
    kinds = set(indicators)
    notes = []

    points = max_points or optimization_level(series)
    optimized = series.with_bars(optimize(series, points))
    if len(optimized) < len(series):
        notes.append(f"Downsampled {len(series)} bars to {len(optimized)} points")

    annotated = compute_indicators(optimized, kinds, params)
    profile = build_volume_profile(series, bucket_count)

    if not series:
        notes.append("No bars returned for this range")

    return TechnicalsResult(
        symbol=symbol,
        period=period,
        indicators=[kind.value for kind in IndicatorKind if kind in kinds],
        bars=optimized.in_source_order(annotated),
        volume_profile=profile,
        significant_levels=find_significant_levels(profile, threshold),
        point_of_control=point_of_control(profile),
        raw_count=len(series),
        optimized_count=len(optimized),
        notes=notes,
    )


class TechnicalsPipeline:
    """Fetches bars through the cache and runs analytics, dropping superseded requests per slot."""

    def __init__(
        self,
        market: MarketDataService,
        params: IndicatorParams | None = None,
        max_points: int = DEFAULT_MAX_POINTS,
        bucket_count: int = DEFAULT_BUCKET_COUNT,
        threshold: float = DEFAULT_THRESHOLD,
        guard: RequestGuard | None = None,
    ):
        self.market = market
        self.params = params or IndicatorParams()
        self.max_points = max_points
        self.bucket_count = bucket_count
        self.threshold = threshold
        self.guard = guard or RequestGuard()

    async def run(
        self,
        symbol: str,
        period: str = DEFAULT_PERIOD,
        indicators: Iterable[IndicatorKind] = tuple(IndicatorKind),
        max_points: int | None = None,
        slot: str | None = None,
    ) -> TechnicalsResult | None:
        """
        Fetch and analyze bars for symbol/period.

        Returns:
            The result, or None when a newer request for the same slot
            started while this one was fetching. Without a slot the request
            is unguarded and always returns its result.

        Raises:
            MarketDataError: When the API fails and nothing is cached
        """
        symbol = symbol.upper()
        kinds = frozenset(indicators)
        ticket = self.guard.begin(slot, (symbol, period, kinds)) if slot else None

        series = await self.market.get_bars_for_period(symbol, period)

        if ticket is not None and not ticket.is_current():
            logger.debug(f"Discarding superseded {slot} response for {symbol} {period}")
            return None

        return analyze(
            series,
            kinds,
            symbol=symbol,
            period=period,
            params=self.params,
            max_points=self.max_points if max_points is None else max_points,
            bucket_count=self.bucket_count,
            threshold=self.threshold,
        )

    async def volume_profile(
        self,
        symbol: str,
        period: str = DEFAULT_PERIOD,
        bucket_count: int | None = None,
        threshold: float | None = None,
        slot: str | None = None,
    ) -> VolumeProfileResult | None:
        """Volume-by-price profile for symbol/period (None if superseded)."""
        symbol = symbol.upper()
        ticket = self.guard.begin(slot, (symbol, period)) if slot else None

        series = await self.market.get_bars_for_period(symbol, period)

        if ticket is not None and not ticket.is_current():
            logger.debug(f"Discarding superseded {slot} response for {symbol} {period}")
            return None

        levels = build_volume_profile(series, bucket_count or self.bucket_count)
        return VolumeProfileResult(
            symbol=symbol,
            period=period,
            levels=levels,
            significant_levels=find_significant_levels(
                levels, self.threshold if threshold is None else threshold
            ),
            point_of_control=point_of_control(levels),
            total_volume=sum(series.volumes),
        )
