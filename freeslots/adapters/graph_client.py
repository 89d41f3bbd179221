"""
Microsoft Graph API client for fetching calendar events.
"""

import logging
from typing import Any, Dict, List, Optional

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import CalendarAPIError
from ..domain.models import BusyEvent, CalendarInfo

logger = logging.getLogger(__name__)


class GraphCalendarClient:
    """
    Client for Microsoft Graph calendar operations.

    Uses the ``/me/calendars`` and ``calendarView`` endpoints; calendarView
    expands recurring events into their individual occurrences.
    """

    GRAPH_API_ENDPOINT = "https://graph.microsoft.com/v1.0"
    PAGE_SIZE = 100

    def __init__(self, access_token: str, timeout: float = 30, session: requests.Session | None = None):
        """
        Initialize the Graph API client.

        Args:
            access_token: Valid Microsoft Graph access token
            timeout: Per-request timeout in seconds
            session: Optional requests session (mainly for tests)
        """
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
            "Prefer": 'outlook.timezone="UTC"',
        }

    def list_calendars(self) -> List[CalendarInfo]:
        """Return every calendar visible to the signed-in user."""
        url = f"{self.GRAPH_API_ENDPOINT}/me/calendars"
        params = {"$select": "id,name,isDefaultCalendar"}

        return [
            CalendarInfo(
                id=item["id"],
                name=item.get("name", ""),
                primary=bool(item.get("isDefaultCalendar")),
            )
            for item in self._get_all(url, params)
            if "id" in item
        ]

    def list_events(
        self,
        calendar_id: str,
        start: DateTime,
        end: DateTime,
        timezone: str,
    ) -> List[BusyEvent]:
        """
        Get the busy events of one calendar within a time window.

        Args:
            calendar_id: Graph calendar id
            start: Start of the time window
            end: End of the time window
            timezone: IANA timezone of the request, used for log output only

        Returns:
            List of BusyEvent objects

        Raises:
            CalendarAPIError: If the API call fails
        """
        url = f"{self.GRAPH_API_ENDPOINT}/me/calendars/{calendar_id}/calendarView"
        params = {
            "startDateTime": pendulum.instance(start).in_timezone("UTC").to_iso8601_string(),
            "endDateTime": pendulum.instance(end).in_timezone("UTC").to_iso8601_string(),
            "$select": "subject,start,end,isAllDay,showAs,isCancelled",
            "$top": str(self.PAGE_SIZE),
        }

        events: List[BusyEvent] = []
        for item in self._get_all(url, params):
            event = self._parse_event(item)
            if event is not None:
                events.append(event)

        logger.debug(
            "Fetched %d busy event(s) from calendar %s for %s",
            len(events),
            calendar_id,
            timezone,
        )
        return events

    def _parse_event(self, item: Dict[str, Any]) -> Optional[BusyEvent]:
        """
        Parse one calendarView item into our domain model.

        Item format:
        {
            "subject": "Lunch -B15A10",
            "isAllDay": false,
            "showAs": "busy",
            "start": {"dateTime": "2024-02-20T03:00:00.0000000", "timeZone": "UTC"},
            "end": {"dateTime": "2024-02-20T04:00:00.0000000", "timeZone": "UTC"}
        }
        """
        if item.get("isCancelled") or str(item.get("showAs", "")).lower() == "free":
            return None

        try:
            title = item.get("subject") or ""
            start_raw = item["start"]["dateTime"]
            end_raw = item["end"]["dateTime"]

            if item.get("isAllDay"):
                return BusyEvent(
                    start=pendulum.parse(start_raw[:10], exact=True),
                    end=pendulum.parse(end_raw[:10], exact=True),
                    title=title,
                )

            return BusyEvent(
                start=self._parse_datetime(start_raw, item["start"].get("timeZone", "UTC")),
                end=self._parse_datetime(end_raw, item["end"].get("timeZone", "UTC")),
                title=title,
            )

        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Could not parse calendar item %r: %s", item.get("subject"), e)
            return None

    def _parse_datetime(self, datetime_str: str, timezone: str) -> DateTime:
        """
        Parse a Graph datetime (naive, in ``timezone``) to an aware DateTime.
        """
        dt = pendulum.parse(datetime_str, tz=timezone)

        if isinstance(dt, DateTime):
            return dt

        raise ValueError(f"Could not parse datetime: {datetime_str}")

    def _get_all(self, url: str, params: Dict[str, str] | None) -> List[Dict[str, Any]]:
        """Follow ``@odata.nextLink`` until every page has been read."""
        items: List[Dict[str, Any]] = []
        next_url: str | None = url

        while next_url:
            data = self._get(next_url, params)
            items.extend(data.get("value", []))
            next_url = data.get("@odata.nextLink")
            # nextLink already carries the query string
            params = None

        return items

    def _get(self, url: str, params: Dict[str, str] | None) -> Dict[str, Any]:
        try:
            response = self.session.get(
                url,
                headers=self.headers,
                params=params,
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()

        except requests.exceptions.RequestException as e:
            raise CalendarAPIError(f"Microsoft Graph request failed: {e}") from e
        except ValueError as e:
            raise CalendarAPIError(f"Microsoft Graph returned invalid JSON: {e}") from e

    def test_connection(self) -> Dict[str, Any]:
        """
        Test the connection and authentication by fetching the user profile.

        Raises:
            CalendarAPIError: If connection test fails
        """
        return self._get(f"{self.GRAPH_API_ENDPOINT}/me", None)
