"""Timing statistics for transform propagation and spatial hashing."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, fields
from datetime import timedelta
from typing import Callable, Generic, TypeVar

__all__ = ["PropagationStats", "GridHashStats", "SmoothedStat"]

_ZERO = timedelta(0)
_WINDOW = 64


@dataclass
class PropagationStats:
    """Aggregate durations of the propagation stages in one update."""

    grid_recentering: timedelta = _ZERO
    local_origin_propagation: timedelta = _ZERO
    high_precision_propagation: timedelta = _ZERO
    low_precision_root_tagging: timedelta = _ZERO
    low_precision_propagation: timedelta = _ZERO
    total: timedelta = _ZERO

    def update_total(self) -> None:
        """Set ``total`` to the sum of the individual stages."""
        self.total = (
            self.grid_recentering
            + self.high_precision_propagation
            + self.local_origin_propagation
            + self.low_precision_propagation
            + self.low_precision_root_tagging
        )

    def __add__(self, other: PropagationStats) -> PropagationStats:
        if not isinstance(other, PropagationStats):
            return NotImplemented
        return PropagationStats(
            **{f.name: getattr(self, f.name) + getattr(other, f.name) for f in fields(self)}
        )

    def __radd__(self, other):
        if other == 0:
            return self
        return NotImplemented

    def __truediv__(self, divisor: int) -> PropagationStats:
        if not isinstance(divisor, int):
            return NotImplemented
        return PropagationStats(
            **{f.name: getattr(self, f.name) // divisor for f in fields(self)}
        )


@dataclass
class GridHashStats:
    """Aggregate runtime statistics of spatial hashing in one update."""

    moved_entities: int = 0
    hash_update_duration: timedelta = _ZERO
    map_update_duration: timedelta = _ZERO
    update_partition: timedelta = _ZERO
    total: timedelta = _ZERO

    def update_total(self) -> None:
        """Set ``total`` to the sum of the hashing stages."""
        self.total = (
            self.hash_update_duration + self.map_update_duration + self.update_partition
        )

    def __add__(self, other: GridHashStats) -> GridHashStats:
        if not isinstance(other, GridHashStats):
            return NotImplemented
        return GridHashStats(
            **{f.name: getattr(self, f.name) + getattr(other, f.name) for f in fields(self)}
        )

    def __radd__(self, other):
        if other == 0:
            return self
        return NotImplemented

    def __truediv__(self, divisor: int) -> GridHashStats:
        if not isinstance(divisor, int):
            return NotImplemented
        return GridHashStats(
            **{f.name: getattr(self, f.name) // divisor for f in fields(self)}
        )


T = TypeVar("T")


class SmoothedStat(Generic[T]):
    """A moving average over the most recent samples of a statistic."""

    def __init__(self, factory: Callable[[], T]) -> None:
        self._factory = factory
        self._queue: deque[T] = deque()
        self._avg: T = factory()

    def __len__(self) -> int:
        return len(self._queue)

    def push(self, value: T) -> SmoothedStat[T]:
        """Add a sample, dropping the oldest once the window is full."""
        while len(self._queue) >= _WINDOW:
            self._queue.pop()
        self._queue.appendleft(value)
        return self

    def compute_avg(self) -> SmoothedStat[T]:
        """Recompute the average of the samples in the window."""
        total = sum(self._queue, self._factory())
        self._avg = total / len(self._queue)
        return self

    def avg(self) -> T:
        """The last computed average."""
        return self._avg