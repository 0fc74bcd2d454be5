"""
Step-function therapy schedules (basal rate, ISF, carb ratio, target range).

A :class:`Schedule` is an absolute timeline: each entry holds its value from its
``start_date`` until the next entry begins. Lookups use a binary search over the
sorted start dates. :class:`DailyValueSchedule` describes a repeating 24 hour
profile and can be expanded into a :class:`Schedule` over any window.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Generic, Iterable, Iterator, List, Optional, Sequence, Tuple, TypeVar

from bgcast.core.errors import IncompleteSchedulesError

T = TypeVar("T")


@dataclass(frozen=True)
class ScheduleEntry(Generic[T]):
    start_date: datetime
    value: T


class Schedule(Generic[T]):
    """Immutable step function over absolute dates."""

    def __init__(self, entries: Iterable[Tuple[datetime, T]] = (), name: str = "schedule") -> None:
        items = [
            entry if isinstance(entry, ScheduleEntry) else ScheduleEntry(entry[0], entry[1])
            for entry in entries
        ]
        items.sort(key=lambda entry: entry.start_date)
        self._entries: Tuple[ScheduleEntry[T], ...] = tuple(items)
        self._start_dates: List[datetime] = [entry.start_date for entry in items]
        self.name = name

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ScheduleEntry[T]]:
        return iter(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __repr__(self) -> str:
        return f"Schedule(name={self.name!r}, entries={len(self._entries)})"

    @property
    def entries(self) -> Sequence[ScheduleEntry[T]]:
        return self._entries

    @property
    def first(self) -> Optional[ScheduleEntry[T]]:
        return self._entries[0] if self._entries else None

    def closest_prior(self, date: datetime) -> Optional[ScheduleEntry[T]]:
        """Return the entry with the greatest start date <= ``date``, or ``None``."""
        index = bisect.bisect_right(self._start_dates, date) - 1
        if index < 0:
            return None
        return self._entries[index]

    def value_at(self, date: datetime) -> T:
        entry = self.closest_prior(date)
        if entry is None:
            raise IncompleteSchedulesError(self.name, date)
        return entry.value

    def between(self, start: datetime, end: datetime) -> List[Tuple[datetime, datetime, T]]:
        """
        Return ``(segment_start, segment_end, value)`` for each value in effect
        over ``[start, end]``. The interval is clipped to the schedule's coverage.
        """
        if not self._entries or end < start:
            return []
        first_index = max(bisect.bisect_right(self._start_dates, start) - 1, 0)
        last_index = bisect.bisect_right(self._start_dates, end) - 1
        segments = []
        for index in range(first_index, last_index + 1):
            entry = self._entries[index]
            segment_start = max(entry.start_date, start)
            if index + 1 < len(self._entries):
                segment_end = min(self._entries[index + 1].start_date, end)
            else:
                segment_end = end
            if segment_end < segment_start:
                continue
            segments.append((segment_start, segment_end, entry.value))
        return segments


class DailyValueSchedule(Generic[T]):
    """
    A repeating daily profile given as ``(time_of_day, value)`` items.

    The first item should start at midnight; if it does not, the last item of
    the previous day stays in effect until the first item of the day.
    """

    def __init__(self, items: Iterable[Tuple[time, T]], name: str = "schedule") -> None:
        self.items: List[Tuple[time, T]] = sorted(items, key=lambda item: item[0])
        if not self.items:
            raise ValueError("A daily schedule needs at least one item.")
        self.name = name

    def value_at(self, date: datetime) -> T:
        times = [item[0] for item in self.items]
        index = bisect.bisect_right(times, date.time()) - 1
        return self.items[index][1]

    def timeline(self, start: datetime, end: datetime) -> Schedule[T]:
        """Expand into an absolute :class:`Schedule` covering ``[start, end]``."""
        entries: List[Tuple[datetime, T]] = [(start, self.value_at(start))]
        day = datetime.combine(start.date(), time(0), tzinfo=start.tzinfo)
        while day <= end:
            for start_time, value in self.items:
                boundary = datetime.combine(day.date(), start_time, tzinfo=start.tzinfo)
                if start < boundary <= end and value != entries[-1][1]:
                    entries.append((boundary, value))
            day += timedelta(days=1)
        return Schedule(entries, name=self.name)
