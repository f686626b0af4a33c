"""Daily API usage accounting."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Callable

from ..errors import StorageError
from ..storage.base import KeyValueStore
from .keys import USAGE_STATS_KEY


logger = logging.getLogger(__name__)


@dataclass
class UsageStats:
    """Request counts for the current local calendar day."""
    daily_requests: int
    last_reset_date: str  # ISO date, local time
    requests_by_endpoint: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


class UsageTracker:
    """
    Counts network requests per day and per endpoint.

    Stats live in the key-value store under a single well-known key and roll
    over to zero whenever the stored date is not today.
    """

    def __init__(
        self,
        store: KeyValueStore,
        daily_budget: int = 100,
        warning_ratio: float = 0.8,
        on_warning: Callable[[UsageStats], None] | None = None,
        today: Callable[[], date] = date.today,
    ):
        """
        Args:
            store: Backend shared with the response cache
            daily_budget: Requests per day the API plan allows
            warning_ratio: Fraction of the budget at which to warn
            on_warning: Optional consumer notification hook
            today: Clock returning the local calendar date
        """
        self.store = store
        self.daily_budget = daily_budget
        self.warning_ratio = warning_ratio
        self.on_warning = on_warning
        self._today = today
        # Held across the stats read-modify-write in record() and reset()
        self._lock = asyncio.Lock()

    @property
    def warning_threshold(self) -> float:
        return self.daily_budget * self.warning_ratio

    def _fresh_stats(self) -> UsageStats:
        return UsageStats(daily_requests=0, last_reset_date=self._today().isoformat())

    async def get_stats(self) -> UsageStats:
        """Current stats, reset to zero if the stored day is not today."""
        try:
            raw = await self.store.get(USAGE_STATS_KEY)
        except StorageError as e:
            logger.error(f"Could not read usage stats: {e}")
            return self._fresh_stats()
        if raw is None:
            return self._fresh_stats()

        try:
            stored = json.loads(raw)
            stats = UsageStats(
                daily_requests=int(stored["daily_requests"]),
                last_reset_date=str(stored["last_reset_date"]),
                requests_by_endpoint={
                    str(k): int(v) for k, v in stored.get("requests_by_endpoint", {}).items()
                },
            )
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Discarding unreadable usage stats: {e}")
            return self._fresh_stats()

        if stats.last_reset_date != self._today().isoformat():
            return self._fresh_stats()
        return stats

    async def record(self, endpoint: str) -> UsageStats:
        """
        Count one network request against today's budget.

        Fires the usage warning once, on the request that crosses the
        warning threshold.
        """
        async with self._lock:
            stats = await self.get_stats()
            previous = stats.daily_requests
            stats.daily_requests += 1
            stats.requests_by_endpoint[endpoint] = (
                stats.requests_by_endpoint.get(endpoint, 0) + 1
            )
            await self._save(stats)

        if previous < self.warning_threshold <= stats.daily_requests:
            logger.warning(
                f"API usage: {stats.daily_requests}/{self.daily_budget} daily requests used"
            )
            if self.on_warning:
                self.on_warning(stats)

        return stats

    async def reset(self) -> UsageStats:
        stats = self._fresh_stats()
        async with self._lock:
            await self._save(stats)
        return stats

    async def _save(self, stats: UsageStats) -> None:
        try:
            await self.store.set(USAGE_STATS_KEY, json.dumps(stats.to_dict()))
        except StorageError as e:
            logger.error(f"Could not persist usage stats: {e}")
