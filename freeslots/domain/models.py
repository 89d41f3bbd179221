"""
Domain models for intervals, working hours and busy events.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Iterator, Union

import pendulum
from pendulum import Date, DateTime, Duration

from .exceptions import InvalidRangeError, InvalidWorkingHoursError

_HHMM_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable interval between two instants.

    Invariant: start must not be after end. Zero-length ranges are allowed
    to exist but are never reported as free time.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"Start time {self.start} must not be after end time {self.end}")

    @property
    def duration(self) -> Duration:
        return self.end - self.start

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def is_empty(self) -> bool:
        return self.start == self.end

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another. Touching ranges do not overlap."""
        return self.start < other.end and other.start < self.end

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class CivilTime:
    """A wall-clock reading, meaningless without the zone it was taken in."""
    year: int
    month: int
    day: int
    hour: int
    minute: int

    @classmethod
    def from_datetime(cls, value: datetime) -> "CivilTime":
        return cls(value.year, value.month, value.day, value.hour, value.minute)

    def date(self) -> Date:
        return pendulum.date(self.year, self.month, self.day)

    def time_of_day(self) -> time:
        return time(hour=self.hour, minute=self.minute)


def parse_time_of_day(value: str) -> time:
    """
    Parse an ``HH:MM`` string into a time object.

    Raises:
        InvalidWorkingHoursError: If the value is not a valid time of day
    """
    match = _HHMM_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise InvalidWorkingHoursError(f"Expected a time in HH:MM format, got {value!r}")

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise InvalidWorkingHoursError(f"Time of day out of range: {value!r}")

    return time(hour=hour, minute=minute)


@dataclass(frozen=True)
class WorkingHours:
    """
    Daily working window, applied identically to every day of a request.

    Invariant: start < end (no overnight spans).
    """
    start: str = "09:00"
    end: str = "18:00"

    def __post_init__(self):
        if self.start_time >= self.end_time:
            raise InvalidWorkingHoursError(
                f"Working hours must open before they close, got {self.start}-{self.end}"
            )

    @property
    def start_time(self) -> time:
        return parse_time_of_day(self.start)

    @property
    def end_time(self) -> time:
        return parse_time_of_day(self.end)

    @classmethod
    def parse(cls, value: str) -> "WorkingHours":
        """Build working hours from a ``HH:MM-HH:MM`` string."""
        start, sep, end = value.partition("-")
        if not sep:
            raise InvalidWorkingHoursError(f"Expected HH:MM-HH:MM, got {value!r}")
        return cls(start=start.strip(), end=end.strip())

    def __str__(self) -> str:
        return f"{self.start_time:%H:%M}-{self.end_time:%H:%M}"


@dataclass(frozen=True)
class BufferSpec:
    """Padding applied around a busy event before it is subtracted."""
    before: Duration
    after: Duration

    @classmethod
    def zero(cls) -> "BufferSpec":
        return cls(before=pendulum.duration(), after=pendulum.duration())

    def is_zero(self) -> bool:
        return not self.before and not self.after


@dataclass(frozen=True)
class BusyEvent:
    """
    A busy entry as delivered by a calendar provider.

    ``start``/``end`` are timezone-aware instants for timed events, or plain
    dates for all-day events. For all-day events the end date is exclusive.
    """
    start: Union[DateTime, Date]
    end: Union[DateTime, Date]
    title: str = ""

    def __post_init__(self):
        if isinstance(self.start, datetime) != isinstance(self.end, datetime):
            raise ValueError("Busy event must use either dates or datetimes for both ends")
        if self.is_all_day:
            return
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("Busy event datetimes must be timezone-aware")
        if self.start > self.end:
            raise ValueError(f"Busy event starts at {self.start} after it ends at {self.end}")

    @property
    def is_all_day(self) -> bool:
        return not isinstance(self.start, datetime)


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of civil dates."""
    start_date: date
    end_date: date

    @classmethod
    def parse(cls, start: str, end: str) -> "DateRange":
        """
        Parse two ``YYYY-MM-DD`` strings into a date range.

        Raises:
            InvalidRangeError: If either date cannot be parsed or the range is reversed
        """
        date_range = cls(start_date=_parse_date(start), end_date=_parse_date(end))
        date_range.validate()
        return date_range

    def validate(self) -> None:
        if self.start_date > self.end_date:
            raise InvalidRangeError(
                f"End date {self.end_date} is before start date {self.start_date}"
            )

    def days(self) -> Iterator[Date]:
        """Yield every civil date in the range, both ends included."""
        current = pendulum.date(self.start_date.year, self.start_date.month, self.start_date.day)

        while current <= self.end_date:
            yield current
            current = current.add(days=1)


def _parse_date(value: str) -> Date:
    try:
        return pendulum.from_format(str(value).strip(), "YYYY-MM-DD").date()
    except ValueError as exc:
        raise InvalidRangeError(f"Invalid date {value!r}, expected YYYY-MM-DD") from exc


@dataclass(frozen=True)
class FreeSlot:
    """
    A free interval rendered in the zone of the request.
    """
    time_range: TimeRange
    timezone: str

    @property
    def start(self) -> DateTime:
        return self.time_range.start

    @property
    def end(self) -> DateTime:
        return self.time_range.end

    def to_dict(self) -> dict:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, YYYY-MM-DD | HH:MM - HH:MM (N min)
        """
        date_str = self.start.format("dddd, YYYY-MM-DD")
        time_str = f"{self.start.format('HH:mm')} - {self.end.format('HH:mm')}"
        return f"{date_str} | {time_str} ({self.time_range.duration_minutes()} min)"



@dataclass(frozen=True)
class CalendarInfo:
    """A calendar exposed by a provider."""
    id: str
    name: str
    primary: bool = False

    def matches(self, identifier: str) -> bool:
        key = identifier.lower()
        return self.id.lower() == key or self.name.lower() == key
