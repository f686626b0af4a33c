"""Response cache with TTL freshness and stale-on-error fallback."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar

from ..errors import StorageError
from ..storage.base import KeyValueStore
from .keys import CACHE_PREFIX, endpoint_of
from .usage import UsageTracker


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A cached response and when it was written."""
    data: T
    timestamp: float  # epoch seconds
    ttl: float  # seconds

    def age(self, now: float) -> float:
        return now - self.timestamp

    def is_fresh(self, now: float) -> bool:
        return self.age(now) < self.ttl


class ResponseCache:
    """
    Key-value response cache in front of the market data API.

    Per key the lifecycle is Empty -> Fresh -> Stale -> Fresh: entries are
    overwritten on every successful fetch and kept past their TTL so they
    can serve as a fallback when the network fails. Writes replace whole
    records, so concurrent requests for one key resolve as last-writer-wins.
    """

    def __init__(
        self,
        store: KeyValueStore,
        usage: UsageTracker | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.usage = usage
        self._clock = clock

    @staticmethod
    def _storage_key(key: str) -> str:
        return f"{CACHE_PREFIX}{key}"

    async def get(self, key: str) -> CacheEntry[Any] | None:
        """
        Return the stored entry regardless of age, or None if never written.

        Callers decide freshness with CacheEntry.is_fresh(). A backend read
        failure is logged and treated as a miss.
        """
        try:
            raw = await self.store.get(self._storage_key(key))
        except StorageError as e:
            logger.error(f"Cache read for {key} failed: {e}")
            return None
        if raw is None:
            return None
        try:
            stored = json.loads(raw)
            return CacheEntry(
                data=stored["data"],
                timestamp=float(stored["timestamp"]),
                ttl=float(stored["ttl"]),
            )
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Cache retrieval error for {key}: {e}")
            return None

    async def set(self, key: str, data: Any, ttl: float) -> None:
        """
        Store data under key, replacing any previous entry.

        On a storage failure old entries are evicted and the write retried
        once; a second failure is logged and dropped, never raised.
        """
        try:
            serialized = json.dumps({"data": data, "timestamp": self._clock(), "ttl": ttl})
        except (TypeError, ValueError) as e:
            logger.error(f"Cache entry for {key} is not serializable: {e}")
            return

        storage_key = self._storage_key(key)
        try:
            await self.store.set(storage_key, serialized)
            return
        except StorageError as e:
            logger.warning(f"Cache storage error for {key}: {e}. Evicting old entries.")

        try:
            await self.evict_old()
            await self.store.set(storage_key, serialized)
        except StorageError as e:
            logger.error(f"Cache write for {key} failed after eviction: {e}")

    async def evict_old(self) -> int:
        """
        Remove entries older than twice their own TTL, plus unreadable ones.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        cleared = 0
        for storage_key in await self.store.keys(CACHE_PREFIX):
            raw = await self.store.get(storage_key)
            if raw is None:
                continue
            try:
                stored = json.loads(raw)
                expired = now - float(stored["timestamp"]) > float(stored["ttl"]) * 2
            except (ValueError, KeyError, TypeError):
                expired = True
            if expired:
                await self.store.delete(storage_key)
                cleared += 1

        logger.info(f"Cleared {cleared} old cache entries")
        return cleared

    async def clear(self) -> int:
        """Remove every cache entry. Usage stats are kept."""
        storage_keys = await self.store.keys(CACHE_PREFIX)
        for storage_key in storage_keys:
            await self.store.delete(storage_key)
        logger.info(f"API cache cleared ({len(storage_keys)} entries)")
        return len(storage_keys)

    async def fetch_through(
        self,
        key: str,
        ttl: float,
        network_fn: Callable[[], Awaitable[T]],
        endpoint: str | None = None,
    ) -> T:
        """
        Serve key from cache while fresh, otherwise from the network.

        Args:
            key: Normalized cache key (see make_cache_key)
            ttl: Freshness window in seconds
            network_fn: Zero-argument coroutine function performing the request
            endpoint: Name counted in usage stats (defaults to the key's path)

        Returns:
            Fresh cached data, new network data, or stale cached data if the
            network call failed

        Raises:
            Whatever network_fn raised, when there is no entry to fall back to
        """
        entry = await self.get(key)
        if entry is not None and entry.is_fresh(self._clock()):
            logger.debug(f"Cache hit for {key}")
            return entry.data

        try:
            result = await network_fn()
        except Exception as e:
            if entry is None:
                raise
            logger.warning(
                f"Request for {key} failed ({type(e).__name__}: {e}); "
                f"serving cached data {entry.age(self._clock()):.0f}s old"
            )
            return entry.data

        if self.usage is not None:
            await self.usage.record(endpoint or endpoint_of(key))
        await self.set(key, result, ttl)
        return result
