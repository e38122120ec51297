"""
Sorted per-resource interval storage with overlap queries.

Intervals are kept in parallel lists ordered by start. Because committed
intervals for one resource never overlap, their service end times are
ordered as well, which lets a window query bisect both bounds and return
the k matches in O(log n + k). If overlapping data is ever loaded the
index notices and answers with a prefix scan instead.
"""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from datetime import datetime, timedelta
from typing import Callable, Iterable, Iterator, List, Optional

from ..schemas.availability import ResourceInterval

NO_BUFFER = timedelta(0)


def windows_conflict(
    start: datetime,
    end: datetime,
    other_start: datetime,
    other_end: datetime,
    buffer: timedelta = NO_BUFFER,
) -> bool:
    """[start, end) and [other_start, other_end) conflict once padded by ``buffer``."""
    return start < other_end + buffer and other_start < end + buffer


class IntervalIndex:
    """Intervals of a single resource, sorted by start time."""

    def __init__(self, intervals: Iterable[ResourceInterval] = ()) -> None:
        self._starts: List[datetime] = []
        self._ends: List[datetime] = []
        self._items: List[ResourceInterval] = []
        self._ends_sorted = True
        for interval in intervals:
            self.add(interval)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[ResourceInterval]:
        return iter(list(self._items))

    @property
    def is_disjoint(self) -> bool:
        return self._ends_sorted

    def add(self, interval: ResourceInterval) -> None:
        position = bisect_right(self._starts, interval.start_at)
        self._starts.insert(position, interval.start_at)
        self._ends.insert(position, interval.service_end_at)
        self._items.insert(position, interval)
        if self._ends_sorted:
            before_ok = position == 0 or self._ends[position - 1] <= interval.service_end_at
            after_ok = (
                position == len(self._ends) - 1
                or interval.service_end_at <= self._ends[position + 1]
            )
            self._ends_sorted = before_ok and after_ok

    def remove_booking(self, booking_id: str) -> List[ResourceInterval]:
        """Drop every interval owned by ``booking_id``; returns what was removed."""
        return self._remove_where(lambda item: item.booking_id == booking_id)

    def remove_interval(self, interval_id: str) -> Optional[ResourceInterval]:
        removed = self._remove_where(lambda item: item.id == interval_id)
        return removed[0] if removed else None

    def _remove_where(
        self, predicate: Callable[[ResourceInterval], bool]
    ) -> List[ResourceInterval]:
        removed = [item for item in self._items if predicate(item)]
        if not removed:
            return []
        kept = [item for item in self._items if not predicate(item)]
        self._starts = [item.start_at for item in kept]
        self._ends = [item.service_end_at for item in kept]
        self._items = kept
        if not self._ends_sorted:
            self._ends_sorted = all(
                earlier <= later for earlier, later in zip(self._ends, self._ends[1:])
            )
        return removed

    def overlapping(
        self,
        start: datetime,
        end: datetime,
        buffer: timedelta = NO_BUFFER,
        exclude_booking_id: Optional[str] = None,
    ) -> List[ResourceInterval]:
        """
        Intervals that conflict with the proposed window [start, end).

        A stored interval [s', e') conflicts when ``start < e' + buffer`` and
        ``s' < end + buffer``. Windows that merely touch do not conflict when
        the buffer is zero.
        """
        # Only intervals starting before end + buffer can conflict.
        upper = bisect_left(self._starts, end + buffer)
        if self._ends_sorted:
            lower = bisect_right(self._ends, start - buffer, 0, upper)
            candidates = self._items[lower:upper]
        else:
            candidates = [
                item for item in self._items[:upper] if start < item.service_end_at + buffer
            ]
        return [
            item
            for item in candidates
            if exclude_booking_id is None or item.booking_id != exclude_booking_id
        ]


__all__ = ["IntervalIndex", "windows_conflict"]
