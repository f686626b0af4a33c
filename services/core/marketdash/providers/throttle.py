"""Priority request throttling for outbound API calls."""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from enum import IntEnum
from typing import Any, Awaitable, Callable, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


class Priority(IntEnum):
    """Higher values run first."""
    HIGH = 10    # User-initiated actions
    MEDIUM = 5   # Visible data
    LOW = 1      # Background prefetching


class ThrottleCleared(Exception):
    """Raised to callers whose queued request was dropped by clear()."""
    pass


class RequestThrottler:
    """
    Runs queued request coroutines by priority, spaced and concurrency-capped.

    Each call waits spacing_seconds before starting; at most max_concurrent
    calls are in flight. Equal priorities run in submission order.
    """

    def __init__(self, spacing_seconds: float = 0.2, max_concurrent: int = 1):
        self.spacing_seconds = max(0.0, spacing_seconds)
        self.max_concurrent = max(1, max_concurrent)
        self._queue: list[tuple[int, int, Callable[[], Awaitable[Any]], asyncio.Future]] = []
        self._seq = itertools.count()
        self._active = 0
        self._paused = False
        self._tasks: set[asyncio.Task] = set()

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    @property
    def paused(self) -> bool:
        return self._paused

    async def submit(
        self,
        fn: Callable[[], Awaitable[T]],
        priority: int = Priority.MEDIUM,
    ) -> T:
        """Queue fn and wait for its result (or exception)."""
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        heapq.heappush(self._queue, (-int(priority), next(self._seq), fn, future))
        self._schedule()
        return await future

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False
        self._schedule()

    def clear(self) -> int:
        """Drop every queued (not yet started) request."""
        dropped = self._queue
        self._queue = []
        for _, _, _, future in dropped:
            if not future.done():
                future.set_exception(ThrottleCleared("Queue was cleared"))
        if dropped:
            logger.info(f"Cleared {len(dropped)} queued request(s)")
        return len(dropped)

    def _schedule(self) -> None:
        while not self._paused and self._queue and self._active < self.max_concurrent:
            _, _, fn, future = heapq.heappop(self._queue)
            if future.done():
                continue  # Caller gave up while queued
            self._active += 1
            task = asyncio.create_task(self._execute(fn, future))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _execute(self, fn: Callable[[], Awaitable[Any]], future: asyncio.Future) -> None:
        try:
            await asyncio.sleep(self.spacing_seconds)
            result = await fn()
        except asyncio.CancelledError:
            if not future.done():
                future.cancel()
            raise
        except Exception as e:
            if not future.done():
                future.set_exception(e)
        else:
            if not future.done():
                future.set_result(result)
        finally:
            self._active -= 1
            self._schedule()
