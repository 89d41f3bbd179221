"""
Application service for answering free-slot requests.

The service resolves a request against the configured defaults, fetches busy
events from every selected calendar concurrently, and delegates the actual
computation to the domain-level ``AvailabilityEngine``. The calendar
dependency is a simple protocol so the Graph adapter, the file adapter or a
test stub can be plugged in.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

import pendulum
from pendulum import DateTime
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..config import AppConfig
from ..domain.engine import AvailabilityEngine
from ..domain.exceptions import (
    AvailabilityError,
    CalendarNotFoundError,
    CalendarTimeoutError,
    InvalidRangeError,
    InvalidWorkingHoursError,
    InvalidZoneError,
)
from ..domain.models import BusyEvent, CalendarInfo, DateRange, FreeSlot, WorkingHours

logger = logging.getLogger(__name__)

# Extra time fetched on both sides of the request, so events just outside it
# whose buffers reach into a working window are still seen
FETCH_MARGIN = pendulum.duration(days=1)


class CalendarClientProtocol(Protocol):
    """Protocol describing the calendar client behaviour needed by the service."""

    def list_calendars(self) -> List[CalendarInfo]:
        """Return the calendars available to the user."""

    def list_events(
        self,
        calendar_id: str,
        start: DateTime,
        end: DateTime,
        timezone: str,
    ) -> List[BusyEvent]:
        """Return the busy events of one calendar within a window."""


class WorkingHoursInput(BaseModel):
    start: str
    end: str


class AvailabilityQuery(BaseModel):
    """Free-slot request as received from the outer layer."""
    model_config = ConfigDict(populate_by_name=True)

    start_date: str = Field(alias="startDate")
    end_date: str = Field(alias="endDate")
    working_hours: Optional[WorkingHoursInput] = Field(default=None, alias="workingHours")
    timezone: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "AvailabilityQuery":
        """
        Validate a raw request body.

        Raises:
            InvalidRangeError: If the dates are missing
            InvalidWorkingHoursError: If working hours are malformed
        """
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            fields = {str(error["loc"][0]) for error in exc.errors() if error["loc"]}
            if fields & {"workingHours", "working_hours"}:
                raise InvalidWorkingHoursError("workingHours needs string start and end values") from exc
            raise InvalidRangeError("startDate and endDate are required") from exc


@dataclass(frozen=True)
class AvailabilityRequest:
    """A query with every default filled in and every field parsed."""
    date_range: DateRange
    working_hours: WorkingHours
    timezone: str


@dataclass
class FetchResult:
    events: List[BusyEvent] = field(default_factory=list)
    skipped_calendars: List[str] = field(default_factory=list)


@dataclass
class AvailabilityResult:
    request: AvailabilityRequest
    free_slots: List[FreeSlot]
    calendars: List[CalendarInfo] = field(default_factory=list)
    skipped_calendars: List[str] = field(default_factory=list)

    def to_response(self) -> Dict[str, Any]:
        date_range = self.request.date_range
        return {
            "success": True,
            "timeRange": {
                "start": date_range.start_date.isoformat(),
                "end": date_range.end_date.isoformat(),
            },
            "timezone": self.request.timezone,
            "freeSlots": [slot.to_dict() for slot in self.free_slots],
        }


def resolve_query(
    query: AvailabilityQuery,
    config: AppConfig,
    engine: AvailabilityEngine | None = None,
) -> AvailabilityRequest:
    """
    Fill defaults from configuration and validate the request.

    Needs no calendar access, so callers can reject bad input before
    signing in or contacting a provider.

    Raises:
        InvalidRangeError, InvalidWorkingHoursError, InvalidZoneError
    """
    engine = engine or AvailabilityEngine()
    timezone = query.timezone or config.timezone
    if query.working_hours is not None:
        working_hours = WorkingHours(start=query.working_hours.start, end=query.working_hours.end)
    else:
        working_hours = config.working_hours.to_domain()

    date_range = DateRange.parse(query.start_date, query.end_date)
    engine.validate(date_range, timezone)

    return AvailabilityRequest(
        date_range=date_range,
        working_hours=working_hours,
        timezone=timezone,
    )


def http_status_for(exc: Exception) -> int:
    """HTTP status an outer web layer should use for ``exc``."""
    if isinstance(exc, (InvalidZoneError, InvalidRangeError, InvalidWorkingHoursError)):
        return 400
    if isinstance(exc, CalendarNotFoundError):
        return 404
    if isinstance(exc, CalendarTimeoutError):
        return 504
    return 500


def error_response(exc: Exception, status: int | None = None) -> Dict[str, Any]:
    """Error body for ``exc``; ``status`` overrides the mapped status code."""
    status = http_status_for(exc) if status is None else status
    message = str(exc) if isinstance(exc, AvailabilityError) or status < 500 else "Internal error"
    return {"success": False, "status": status, "error": message}


class AvailabilityService:
    """
    Orchestrates busy-event retrieval and free-slot calculation.

    Fetching is the only part that waits on I/O. Each calendar is fetched in
    its own worker thread of a pool owned by the call; the pool is abandoned
    at the deadline, so a hung provider never holds up the caller. A calendar
    that fails or misses the deadline simply contributes no busy events.
    """

    def __init__(
        self,
        calendar_client: CalendarClientProtocol,
        config: AppConfig | None = None,
        engine: AvailabilityEngine | None = None,
    ) -> None:
        self._calendar_client = calendar_client
        self._config = config or AppConfig()
        self._engine = engine or AvailabilityEngine()

    def resolve(self, query: AvailabilityQuery) -> AvailabilityRequest:
        return resolve_query(query, self._config, self._engine)

    async def find_free_slots(self, query: AvailabilityQuery) -> AvailabilityResult:
        """
        Validate the query, fetch busy data and compute the free slots.
        """
        request = self.resolve(query)

        calendars = await self.select_calendars()
        window_start = self._engine.clock.start_of_day(request.date_range.start_date, request.timezone)
        window_end = self._engine.clock.start_of_day(
            request.date_range.end_date.add(days=1), request.timezone
        )

        fetched = await self.fetch_busy_events(
            calendar_ids=[calendar.id for calendar in calendars],
            start=window_start - FETCH_MARGIN,
            end=window_end + FETCH_MARGIN,
            timezone=request.timezone,
        )

        free_slots = self._engine.compute_free_slots(
            date_range=request.date_range,
            working_hours=request.working_hours,
            zone=request.timezone,
            busy_events=fetched.events,
            min_duration_minutes=self._config.min_duration_minutes,
            exclude_weekdays=self._config.exclude_days,
        )

        return AvailabilityResult(
            request=request,
            free_slots=free_slots,
            calendars=calendars,
            skipped_calendars=fetched.skipped_calendars,
        )

    async def select_calendars(self) -> List[CalendarInfo]:
        """
        List calendars and keep the configured ones (all, if none configured).

        Raises:
            CalendarTimeoutError: If listing takes longer than the fetch timeout
            CalendarNotFoundError: If a filter is configured and nothing matches
        """
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="freeslots-list")
        try:
            calendars = await asyncio.wait_for(
                self._run_in_executor(executor, self._calendar_client.list_calendars),
                timeout=self._config.fetch_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise CalendarTimeoutError("Timed out while listing calendars") from exc
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        wanted = self._config.calendars
        if not wanted:
            return list(calendars)

        selected = [
            calendar for calendar in calendars
            if any(calendar.matches(identifier) for identifier in wanted)
        ]
        if not selected:
            raise CalendarNotFoundError(f"No calendars found matching {', '.join(wanted)}")
        return selected

    async def fetch_busy_events(
        self,
        *,
        calendar_ids: Sequence[str],
        start: DateTime,
        end: DateTime,
        timezone: str,
    ) -> FetchResult:
        """
        Fetch busy events of all calendars concurrently under one deadline.

        Results are merged in calendar order. A calendar whose fetch raises or
        is still running at the deadline is reported in ``skipped_calendars``.
        """
        result = FetchResult()
        if not calendar_ids:
            return result

        executor = ThreadPoolExecutor(
            max_workers=len(calendar_ids), thread_name_prefix="freeslots-fetch"
        )
        try:
            tasks = [
                self._run_in_executor(
                    executor, self._calendar_client.list_events, calendar_id, start, end, timezone
                )
                for calendar_id in calendar_ids
            ]
            _, pending = await asyncio.wait(tasks, timeout=self._config.fetch_timeout_seconds)
        finally:
            # Late workers finish in the background; nobody waits for them
            executor.shutdown(wait=False, cancel_futures=True)

        for task in pending:
            task.cancel()

        for calendar_id, task in zip(calendar_ids, tasks):
            if task in pending:
                logger.warning(
                    "Calendar %s did not respond within %.1fs, treating it as free",
                    calendar_id,
                    self._config.fetch_timeout_seconds,
                )
                result.skipped_calendars.append(calendar_id)
                continue

            error = task.exception()
            if error is not None:
                logger.warning("Could not fetch events of calendar %s: %s", calendar_id, error)
                result.skipped_calendars.append(calendar_id)
                continue

            result.events.extend(task.result())

        return result

    @staticmethod
    def _run_in_executor(executor: ThreadPoolExecutor, func: Callable[..., Any], *args: Any) -> asyncio.Future:
        """Run a blocking client call on ``executor`` instead of the loop's default pool."""
        loop = asyncio.get_running_loop()
        return loop.run_in_executor(executor, func, *args)
