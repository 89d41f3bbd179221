"""
Domain layer - Pure business logic without external dependencies.
"""

from .buffers import BufferParser
from .clock import TimeZoneClock
from .engine import DEFAULT_MIN_DURATION_MINUTES, AvailabilityEngine
from .models import (
    BufferSpec,
    BusyEvent,
    CalendarInfo,
    CivilTime,
    DateRange,
    FreeSlot,
    TimeRange,
    WorkingHours,
)

__all__ = [
    "AvailabilityEngine",
    "BufferParser",
    "BufferSpec",
    "BusyEvent",
    "CalendarInfo",
    "CivilTime",
    "DateRange",
    "DEFAULT_MIN_DURATION_MINUTES",
    "FreeSlot",
    "TimeRange",
    "TimeZoneClock",
    "WorkingHours",
]
