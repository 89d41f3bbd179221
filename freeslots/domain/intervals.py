"""
Pure interval algebra on ``TimeRange`` values.

Overlap is strict: ranges that merely touch (one ends exactly when the other
starts) do not overlap, so an adjacent busy block never erases a free slot.
"""

from datetime import timedelta
from typing import Iterable, List

from .models import TimeRange


def overlaps(a: TimeRange, b: TimeRange) -> bool:
    return a.start < b.end and b.start < a.end


def subtract(free: TimeRange, busy: TimeRange) -> List[TimeRange]:
    """
    Remove ``busy`` from ``free``.

    Returns ``[free]`` when they do not overlap, otherwise the pieces of
    ``free`` before and after ``busy`` (zero, one or two of them).

    Example:
    Free: 09:00 - 18:00
    Busy: 12:00 - 13:00
    Result: [09:00-12:00, 13:00-18:00]
    """
    if not overlaps(free, busy):
        return [free]

    pieces: List[TimeRange] = []
    if free.start < busy.start:
        pieces.append(TimeRange(start=free.start, end=busy.start))
    if busy.end < free.end:
        pieces.append(TimeRange(start=busy.end, end=free.end))
    return pieces


def subtract_all(free: TimeRange, busy_ranges: Iterable[TimeRange]) -> List[TimeRange]:
    """
    Subtract every busy range from ``free``, one after another.

    Each busy range is applied to all pieces left by the previous ones, so
    the busy list may be unsorted and may contain overlapping entries.
    """
    result = [free]

    for busy in busy_ranges:
        result = [piece for current in result for piece in subtract(current, busy)]
        if not result:
            break

    return result


def filter_min_duration(ranges: Iterable[TimeRange], min_duration: timedelta) -> List[TimeRange]:
    """Drop ranges shorter than ``min_duration``; empty ranges are always dropped."""
    return [
        tr for tr in ranges
        if not tr.is_empty() and tr.duration >= min_duration
    ]
