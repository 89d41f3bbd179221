"""
Calendar client backed by a local JSON file, for offline use and testing.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

import pendulum
from pendulum import Date, DateTime

from ..domain.exceptions import CalendarAPIError
from ..domain.models import BusyEvent, CalendarInfo

logger = logging.getLogger(__name__)

DEFAULT_CALENDAR_ID = "main"


class FileCalendarClient:
    """
    Serves busy events from a JSON document instead of a live provider.

    The file holds a list of events::

        [
            {"calendarId": "main", "title": "Lunch -B15A10",
             "start": "2024-02-20T12:00:00+09:00", "end": "2024-02-20T13:00:00+09:00"},
            {"calendarId": "block", "title": "Holiday",
             "start": "2024-02-23", "end": "2024-02-24"}
        ]

    Date-only values denote all-day events; datetimes without an offset are
    read in the timezone of the request.
    """

    def __init__(self, events_file: Path):
        self.events_file = events_file
        self.raw_events = self._load(events_file)

    @staticmethod
    def _load(events_file: Path) -> List[Dict[str, Any]]:
        if not events_file.exists():
            raise FileNotFoundError(f"Events file not found: {events_file}")

        try:
            with open(events_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise CalendarAPIError(f"Invalid JSON in {events_file}: {exc}") from exc

        if not isinstance(data, list):
            raise CalendarAPIError("Events file must contain a list of events.")

        return data

    def list_calendars(self) -> List[CalendarInfo]:
        """Derive the calendars from the ids used by the events."""
        seen: List[str] = []
        for event in self.raw_events:
            calendar_id = event.get("calendarId", DEFAULT_CALENDAR_ID)
            if calendar_id not in seen:
                seen.append(calendar_id)

        return [
            CalendarInfo(id=calendar_id, name=calendar_id, primary=index == 0)
            for index, calendar_id in enumerate(seen)
        ]

    def list_events(
        self,
        calendar_id: str,
        start: DateTime,
        end: DateTime,
        timezone: str,
    ) -> List[BusyEvent]:
        """Return the events of ``calendar_id`` that touch the time window."""
        events: List[BusyEvent] = []

        for raw in self.raw_events:
            if raw.get("calendarId", DEFAULT_CALENDAR_ID) != calendar_id:
                continue

            try:
                event = BusyEvent(
                    start=self._parse_value(raw["start"], timezone),
                    end=self._parse_value(raw["end"], timezone),
                    title=raw.get("title", ""),
                )
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping invalid event %r: %s", raw.get("title"), exc)
                continue

            if self._within_window(event, start, end, timezone):
                events.append(event)

        return events

    @staticmethod
    def _parse_value(value: str, timezone: str) -> DateTime | Date:
        parsed = pendulum.parse(value, tz=timezone, exact=True)
        if isinstance(parsed, (DateTime, Date)):
            return parsed
        raise ValueError(f"Unsupported date value: {value!r}")

    @staticmethod
    def _within_window(event: BusyEvent, start: DateTime, end: DateTime, timezone: str) -> bool:
        if event.is_all_day:
            event_start = pendulum.datetime(
                event.start.year, event.start.month, event.start.day, tz=timezone
            )
            # End date is exclusive; a non-advancing end still covers one day
            end_date = event.end if event.end > event.start else event.start.add(days=1)
            event_end = pendulum.datetime(end_date.year, end_date.month, end_date.day, tz=timezone)
        else:
            event_start, event_end = event.start, event.end

        return event_start < end and event_end > start
