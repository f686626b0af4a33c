"""Chronologically ordered bar sequences."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Iterable, TypeVar, overload

from ..errors import DataError
from ..providers.base import Bar, Timestamp


logger = logging.getLogger(__name__)

T = TypeVar("T")


def timestamp_key(ts: Timestamp) -> float:
    """
    Convert a bar timestamp to epoch milliseconds for ordering.

    Accepts epoch numbers and ISO-8601 strings; naive ISO strings are UTC.

    Raises:
        DataError: If the timestamp cannot be interpreted
    """
    if isinstance(ts, (int, float)) and not isinstance(ts, bool):
        return float(ts)
    if isinstance(ts, str):
        text = ts.strip()
        try:
            return float(text)
        except ValueError:
            pass
        try:
            dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise DataError(f"Unparseable bar timestamp: {ts!r}") from None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.timestamp() * 1000.0
    raise DataError(f"Unsupported bar timestamp type: {type(ts).__name__}")


class BarSeries(Sequence):
    """
    Immutable sequence of bars, oldest first.

    The indicator engine only accepts this type, so chronological order is
    checked once at construction instead of trusted at every call site.
    Use from_source() for API responses of unknown order; it remembers
    whether the source was newest-first so derived output can be put back
    into display order with in_source_order().
    """

    __slots__ = ("_bars", "source_newest_first")

    def __init__(self, bars: Iterable[Bar] = (), source_newest_first: bool = False):
        self._bars: tuple[Bar, ...] = tuple(bars)
        self.source_newest_first = source_newest_first

        keys = [timestamp_key(b.timestamp) for b in self._bars]
        for i in range(1, len(keys)):
            if keys[i] < keys[i - 1]:
                raise ValueError(
                    f"Bars are not in chronological order at index {i}; "
                    "use BarSeries.from_source() for unordered input"
                )

    @classmethod
    def from_source(cls, bars: Iterable[Bar]) -> BarSeries:
        """
        Normalize bars as delivered by an API into chronological order.

        Newest-first input is reversed (and flagged); any other disorder is
        fixed with a stable sort by timestamp.
        """
        bars = list(bars)
        if len(bars) < 2:
            return cls(bars)

        keys = [timestamp_key(b.timestamp) for b in bars]
        ascending = all(keys[i] <= keys[i + 1] for i in range(len(keys) - 1))
        if ascending:
            return cls(bars)

        descending = all(keys[i] >= keys[i + 1] for i in range(len(keys) - 1))
        if descending:
            return cls(reversed(bars), source_newest_first=True)

        logger.warning(f"Received {len(bars)} bars out of order; sorting by timestamp")
        order = sorted(range(len(bars)), key=lambda i: keys[i])
        return cls([bars[i] for i in order])

    def with_bars(self, bars: Iterable[Bar]) -> BarSeries:
        """New series over a chronological subset, keeping the source-order flag."""
        return BarSeries(bars, source_newest_first=self.source_newest_first)

    def in_source_order(self, items: Sequence[T]) -> list[T]:
        """Reorder per-bar output (oldest first) to match the source order."""
        if self.source_newest_first:
            return list(reversed(items))
        return list(items)

    @overload
    def __getitem__(self, index: int) -> Bar: ...

    @overload
    def __getitem__(self, index: slice) -> BarSeries: ...

    def __getitem__(self, index):
        if isinstance(index, slice):
            return self.with_bars(self._bars[index])
        return self._bars[index]

    def __len__(self) -> int:
        return len(self._bars)

    def __repr__(self) -> str:
        return f"BarSeries({len(self._bars)} bars, source_newest_first={self.source_newest_first})"

    @property
    def bars(self) -> tuple[Bar, ...]:
        return self._bars

    @property
    def closes(self) -> list[float]:
        return [b.close for b in self._bars]

    @property
    def highs(self) -> list[float]:
        return [b.high for b in self._bars]

    @property
    def lows(self) -> list[float]:
        return [b.low for b in self._bars]

    @property
    def volumes(self) -> list[float]:
        return [b.volume for b in self._bars]
