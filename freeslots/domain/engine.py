"""
Core business logic for computing free time within working hours.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O). Everything the
computation depends on is passed in per call, so one engine instance can
serve any number of concurrent requests.
"""

import logging
from typing import Iterable, List, Sequence

import pendulum

from .buffers import BufferParser
from .clock import TimeZoneClock
from .intervals import filter_min_duration, subtract_all
from .models import BusyEvent, DateRange, FreeSlot, TimeRange, WorkingHours

logger = logging.getLogger(__name__)

DEFAULT_MIN_DURATION_MINUTES = 30


class AvailabilityEngine:
    """
    Calculates free slots from working hours and busy events.

    Algorithm:
    1. Validate the zone and the date range
    2. Turn every busy event into an absolute interval, widened by its buffer
    3. For each civil day, build the working window in the target zone
    4. Subtract all busy intervals from the window
    5. Filter by minimum duration and render in the target zone
    """

    def __init__(
        self,
        clock: TimeZoneClock | None = None,
        buffer_parser: BufferParser | None = None,
    ):
        self.clock = clock or TimeZoneClock()
        self.buffer_parser = buffer_parser or BufferParser()

    def validate(self, date_range: DateRange, zone: str) -> None:
        """
        Check request inputs without computing anything.

        Raises:
            InvalidZoneError: If the zone is unknown
            InvalidRangeError: If the range ends before it starts
        """
        self.clock.validate_zone(zone)
        date_range.validate()

    def compute_free_slots(
        self,
        date_range: DateRange,
        working_hours: WorkingHours,
        zone: str,
        busy_events: Sequence[BusyEvent],
        min_duration_minutes: int = DEFAULT_MIN_DURATION_MINUTES,
        exclude_weekdays: Iterable[int] = (),
    ) -> List[FreeSlot]:
        """
        Find all free slots in the date range.

        Args:
            date_range: Inclusive civil date range in ``zone``
            working_hours: Daily window, applied to every day
            zone: IANA timezone identifier
            busy_events: Merged busy events from all sources
            min_duration_minutes: Shortest slot worth reporting
            exclude_weekdays: Weekdays to skip entirely (0=Monday, 6=Sunday)

        Returns:
            List of FreeSlot objects, chronological within each day
        """
        self.validate(date_range, zone)

        busy_ranges = [self.effective_range(event, zone) for event in busy_events]
        skipped = set(exclude_weekdays)

        free_ranges: List[TimeRange] = []
        for day in date_range.days():
            if day.weekday() in skipped:
                continue

            window = self.working_window(day, working_hours, zone)
            free_ranges.extend(subtract_all(window, busy_ranges))

        valid_ranges = filter_min_duration(
            free_ranges,
            pendulum.duration(minutes=min_duration_minutes),
        )

        logger.debug(
            "Computed %d free slot(s) from %d busy event(s) for %s..%s in %s",
            len(valid_ranges),
            len(busy_ranges),
            date_range.start_date,
            date_range.end_date,
            zone,
        )

        return [self._render(tr, zone) for tr in valid_ranges]

    def working_window(self, day, working_hours: WorkingHours, zone: str) -> TimeRange:
        """
        Working hours of one civil day, as absolute instants.

        A start inside a DST gap is shifted forward and may pass the end; the
        window is then empty for that day.
        """
        start = self.clock.to_instant(day, working_hours.start_time, zone)
        end = self.clock.to_instant(day, working_hours.end_time, zone)
        return TimeRange(start=start, end=max(start, end))

    def effective_range(self, event: BusyEvent, zone: str) -> TimeRange:
        """
        Absolute interval blocked by an event, including its buffer.

        All-day events cover whole days in ``zone``; their end date is
        exclusive, and an end date not after the start date means one day.
        """
        if event.is_all_day:
            first_day = pendulum.date(event.start.year, event.start.month, event.start.day)
            end_day = event.end if event.end > first_day else first_day.add(days=1)
            start = self.clock.start_of_day(first_day, zone)
            end = self.clock.start_of_day(end_day, zone)
        else:
            start = pendulum.instance(event.start).in_timezone("UTC")
            end = pendulum.instance(event.end).in_timezone("UTC")

        buffer = self.buffer_parser.parse(event.title)
        try:
            return TimeRange(start=start - buffer.before, end=end + buffer.after)
        except (OverflowError, ValueError):
            logger.debug("Buffer of %r leaves the datetime range, ignoring it", event.title)
            return TimeRange(start=start, end=end)

    def _render(self, time_range: TimeRange, zone: str) -> FreeSlot:
        return FreeSlot(
            time_range=TimeRange(
                start=self.clock.render(time_range.start, zone),
                end=self.clock.render(time_range.end, zone),
            ),
            timezone=zone,
        )
