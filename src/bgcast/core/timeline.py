"""Date-grid helpers shared by the effect calculators."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterator, List, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")

_NAIVE_REFERENCE = datetime(2001, 1, 1)
_AWARE_REFERENCE = datetime(2001, 1, 1, tzinfo=timezone.utc)


def _reference_for(date: datetime) -> datetime:
    return _AWARE_REFERENCE if date.tzinfo is not None else _NAIVE_REFERENCE


def floor_date(date: datetime, interval: timedelta) -> datetime:
    """Floor ``date`` onto a grid of ``interval`` steps."""
    reference = _reference_for(date)
    floored = reference + ((date - reference) // interval) * interval
    if date.tzinfo is not None:
        floored = floored.astimezone(date.tzinfo)
    return floored


def ceil_date(date: datetime, interval: timedelta) -> datetime:
    """Ceil ``date`` onto a grid of ``interval`` steps."""
    floored = floor_date(date, interval)
    if floored < date:
        return floored + interval
    return floored


def date_grid(start: datetime, end: datetime, delta: timedelta) -> Iterator[datetime]:
    """Yield ``start, start + delta, ...`` up to and including ``end``."""
    date = start
    while date <= end:
        yield date
        date += delta


def simulation_date_range(
    start_dates: Sequence[datetime],
    end_dates: Sequence[datetime],
    duration: timedelta,
    delta: timedelta,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Optional[Tuple[datetime, datetime]]:
    """
    Compute the grid-aligned simulation window for a set of samples.

    The window runs from the earliest sample (or ``start``) to the latest sample
    end plus ``duration`` (or ``end``). Returns ``None`` when there are no samples.
    """
    if not start_dates:
        return None
    if start is not None and end is not None:
        return floor_date(start, delta), ceil_date(end, delta)
    min_date = min(start_dates)
    max_date = max(end_dates) if end_dates else max(start_dates)
    resolved_start = start if start is not None else min_date
    resolved_end = end if end is not None else max_date + duration
    return floor_date(resolved_start, delta), ceil_date(resolved_end, delta)


def filter_date_range(
    samples: Sequence[T],
    start: Optional[datetime],
    end: Optional[datetime],
    start_attr: str = "start_date",
    end_attr: str = "start_date",
) -> List[T]:
    """Keep samples whose ``[start_attr, end_attr]`` interval overlaps ``[start, end]``."""
    result = []
    for sample in samples:
        if start is not None and getattr(sample, end_attr) < start:
            continue
        if end is not None and getattr(sample, start_attr) > end:
            continue
        result.append(sample)
    return result


def minutes(value: timedelta) -> float:
    return value.total_seconds() / 60.0


def timestamp(date: datetime) -> float:
    """Seconds since a fixed reference; comparable across dates of the same awareness."""
    return (date - _reference_for(date)).total_seconds()
