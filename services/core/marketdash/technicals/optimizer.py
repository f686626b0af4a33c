"""Density optimizer: bound the number of points fed to indicators and charts."""

from __future__ import annotations

import dataclasses
import json
import math
from typing import Any, Sequence, TypeVar

from .config import DEFAULT_MAX_POINTS, OPTIMIZATION_LEVELS


T = TypeVar("T")


def optimize(items: Sequence[T], max_points: int = DEFAULT_MAX_POINTS) -> list[T]:
    """
    Downsample a sequence to roughly max_points by taking every n-th item.

    The stride is ceil(len / max_points), starting at index 0. The last
    item is always kept, so the output has at most max_points + 1 items.

    Args:
        items: Bars (or annotated bars) oldest first
        max_points: Target upper bound on output length

    Returns:
        A new list; the input itself when already small enough (as a list)
    """
    if max_points < 1:
        raise ValueError(f"max_points must be >= 1, got {max_points}")

    if len(items) <= max_points:
        return list(items)

    stride = math.ceil(len(items) / max_points)
    sampled = list(items[::stride])

    # Keep the most recent point for continuity
    if (len(items) - 1) % stride != 0:
        sampled.append(items[-1])

    return sampled


def _jsonable(obj: Any) -> Any:
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if dataclasses.is_dataclass(obj):
        return dataclasses.asdict(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def data_size_kb(items: Any) -> float:
    """Size of the JSON encoding of items, in kilobytes."""
    return len(json.dumps(items, default=_jsonable)) / 1024


def optimization_level(items: Sequence[Any]) -> int:
    """
    Pick max_points from the payload size of items.

    Small payloads are not optimized (returns len(items)).
    """
    size = data_size_kb(list(items))
    for threshold_kb, max_points in OPTIMIZATION_LEVELS:
        if size > threshold_kb:
            return max_points
    return max(1, len(items))
