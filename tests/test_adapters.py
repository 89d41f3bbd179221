"""
Tests for the calendar adapters.
"""

import json
from pathlib import Path

import pendulum
import pytest
import requests
from keyring.errors import KeyringError

from freeslots.adapters.file_calendar_client import FileCalendarClient
from freeslots.adapters.graph_authenticator import TokenCacheStore
from freeslots.adapters.graph_client import GraphCalendarClient
from freeslots.domain.exceptions import CalendarAPIError


class FakeResponse:
    def __init__(self, payload):
        self._payload = payload

    def raise_for_status(self):
        return None

    def json(self):
        return self._payload


class FakeSession:
    """Replays canned Graph pages and records requests."""

    def __init__(self, pages=None, error=None):
        self._pages = list(pages or [])
        self._error = error
        self.requests = []

    def get(self, url, headers=None, params=None, timeout=None):
        self.requests.append({"url": url, "params": params, "headers": headers})
        if self._error is not None:
            raise self._error
        return FakeResponse(self._pages.pop(0))


def _graph_item(subject, start, end, **extra):
    item = {
        "subject": subject,
        "start": {"dateTime": start, "timeZone": "UTC"},
        "end": {"dateTime": end, "timeZone": "UTC"},
        "isAllDay": False,
        "showAs": "busy",
    }
    item.update(extra)
    return item


class TestGraphCalendarClient:
    """Tests for GraphCalendarClient."""

    def test_list_events_follows_pagination(self):
        session = FakeSession(pages=[
            {
                "value": [_graph_item("Lunch -B15A10", "2024-02-20T03:00:00.0000000", "2024-02-20T04:00:00.0000000")],
                "@odata.nextLink": "https://graph.microsoft.com/v1.0/next-page",
            },
            {
                "value": [_graph_item("Review", "2024-02-20T07:00:00.0000000", "2024-02-20T08:00:00.0000000")],
            },
        ])
        client = GraphCalendarClient(access_token="token", session=session)

        events = client.list_events(
            "cal-1",
            pendulum.datetime(2024, 2, 19, 15, tz="UTC"),
            pendulum.datetime(2024, 2, 20, 15, tz="UTC"),
            "Asia/Tokyo",
        )

        assert [event.title for event in events] == ["Lunch -B15A10", "Review"]
        assert events[0].start == pendulum.datetime(2024, 2, 20, 3, 0, tz="UTC")
        assert events[0].end == pendulum.datetime(2024, 2, 20, 4, 0, tz="UTC")
        assert session.requests[0]["url"].endswith("/me/calendars/cal-1/calendarView")
        assert session.requests[0]["params"]["startDateTime"].startswith("2024-02-19T15:00:00")
        assert session.requests[0]["headers"]["Prefer"] == 'outlook.timezone="UTC"'
        assert session.requests[1]["params"] is None

    def test_all_day_free_and_cancelled_items(self):
        session = FakeSession(pages=[{
            "value": [
                _graph_item("Holiday", "2024-02-21T00:00:00.0000000", "2024-02-22T00:00:00.0000000", isAllDay=True),
                _graph_item("Focus", "2024-02-20T01:00:00.0000000", "2024-02-20T02:00:00.0000000", showAs="free"),
                _graph_item("Gone", "2024-02-20T01:00:00.0000000", "2024-02-20T02:00:00.0000000", isCancelled=True),
                {"subject": "Broken"},
            ],
        }])
        client = GraphCalendarClient(access_token="token", session=session)

        events = client.list_events(
            "cal-1",
            pendulum.datetime(2024, 2, 19, tz="UTC"),
            pendulum.datetime(2024, 2, 23, tz="UTC"),
            "Asia/Tokyo",
        )

        assert len(events) == 1
        assert events[0].is_all_day
        assert events[0].start == pendulum.date(2024, 2, 21)
        assert events[0].end == pendulum.date(2024, 2, 22)

    def test_list_calendars(self):
        session = FakeSession(pages=[{
            "value": [
                {"id": "AAA", "name": "Calendar", "isDefaultCalendar": True},
                {"id": "BBB", "name": "Block"},
            ],
        }])
        client = GraphCalendarClient(access_token="token", session=session)

        calendars = client.list_calendars()

        assert [(c.id, c.name, c.primary) for c in calendars] == [
            ("AAA", "Calendar", True),
            ("BBB", "Block", False),
        ]

    def test_request_failure_raises_calendar_error(self):
        session = FakeSession(error=requests.exceptions.ConnectionError("offline"))
        client = GraphCalendarClient(access_token="token", session=session)

        with pytest.raises(CalendarAPIError, match="offline"):
            client.list_calendars()


class TestFileCalendarClient:
    """Tests for FileCalendarClient."""

    def _client(self, tmp_path: Path, events) -> FileCalendarClient:
        path = tmp_path / "events.json"
        path.write_text(json.dumps(events), encoding="utf-8")
        return FileCalendarClient(path)

    def test_list_calendars_in_order_of_appearance(self, tmp_path):
        client = self._client(tmp_path, [
            {"calendarId": "main", "title": "a", "start": "2024-02-20T10:00:00+09:00", "end": "2024-02-20T11:00:00+09:00"},
            {"calendarId": "block", "title": "b", "start": "2024-02-20T12:00:00+09:00", "end": "2024-02-20T13:00:00+09:00"},
            {"calendarId": "main", "title": "c", "start": "2024-02-21T10:00:00+09:00", "end": "2024-02-21T11:00:00+09:00"},
        ])

        assert [calendar.id for calendar in client.list_calendars()] == ["main", "block"]

    def test_list_events_filters_calendar_and_window(self, tmp_path):
        client = self._client(tmp_path, [
            {"calendarId": "main", "title": "in", "start": "2024-02-20T10:00:00+09:00", "end": "2024-02-20T11:00:00+09:00"},
            {"calendarId": "main", "title": "naive", "start": "2024-02-20T14:00", "end": "2024-02-20T15:00"},
            {"calendarId": "main", "title": "later", "start": "2024-03-01T10:00:00+09:00", "end": "2024-03-01T11:00:00+09:00"},
            {"calendarId": "main", "title": "holiday", "start": "2024-02-20", "end": "2024-02-21"},
            {"calendarId": "main", "title": "broken", "start": "yesterday", "end": "today"},
            {"calendarId": "block", "title": "other", "start": "2024-02-20T10:00:00+09:00", "end": "2024-02-20T11:00:00+09:00"},
        ])

        events = client.list_events(
            "main",
            pendulum.datetime(2024, 2, 20, tz="Asia/Tokyo"),
            pendulum.datetime(2024, 2, 21, tz="Asia/Tokyo"),
            "Asia/Tokyo",
        )

        assert [event.title for event in events] == ["in", "naive", "holiday"]
        assert events[1].start == pendulum.datetime(2024, 2, 20, 14, tz="Asia/Tokyo")
        assert events[2].is_all_day

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            FileCalendarClient(tmp_path / "missing.json")

    def test_file_must_hold_a_list(self, tmp_path):
        with pytest.raises(CalendarAPIError):
            self._client(tmp_path, {"events": []})


class TestTokenCacheStore:
    """Tests for the keyring-first token cache."""

    def test_keyring_is_used_when_available(self, tmp_path, monkeypatch):
        stored = {}
        monkeypatch.setattr("keyring.set_password", lambda service, key, value: stored.update({key: value}))
        monkeypatch.setattr("keyring.get_password", lambda service, key: stored.get(key))
        store = TokenCacheStore(key="client:tenant", cache_file=tmp_path / "cache.json")

        store.save('{"AccessToken": {}}')

        assert store.load() == '{"AccessToken": {}}'
        assert store.backend == "keyring"
        assert not (tmp_path / "cache.json").exists()

    def test_falls_back_to_private_file(self, tmp_path, monkeypatch):
        def broken(*args):
            raise KeyringError("no backend")

        monkeypatch.setattr("keyring.set_password", broken)
        monkeypatch.setattr("keyring.get_password", broken)
        cache_file = tmp_path / "cache.json"
        store = TokenCacheStore(key="client:tenant", cache_file=cache_file)

        store.save('{"RefreshToken": {}}')

        assert store.backend == "file"
        assert cache_file.read_text(encoding="utf-8") == '{"RefreshToken": {}}'
        assert cache_file.stat().st_mode & 0o777 == 0o600
        assert store.load() == '{"RefreshToken": {}}'

    def test_clear_removes_file(self, tmp_path, monkeypatch):
        def broken(*args):
            raise KeyringError("no backend")

        monkeypatch.setattr("keyring.delete_password", broken)
        cache_file = tmp_path / "cache.json"
        cache_file.write_text("{}", encoding="utf-8")
        store = TokenCacheStore(key="client:tenant", cache_file=cache_file)

        store.clear()

        assert not cache_file.exists()
