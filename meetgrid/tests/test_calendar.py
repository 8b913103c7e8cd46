"""Tests for iCal parsing, busy-time helpers and the calendar sources."""

from unittest.mock import MagicMock, patch
from zoneinfo import ZoneInfo

import pytest
import requests

from meetgrid.calendar import (
    GoogleFreeBusySource,
    ICalBusySource,
    busy_slots,
    busy_times_for_date,
    conflicting_busy_times,
    format_busy_times,
    is_range_busy,
    is_time_busy,
    parse_ical_events,
)
from meetgrid.config import CalendarSettings
from meetgrid.errors import ExternalServiceError

TOKYO = ZoneInfo("Asia/Tokyo")

ICAL = "\r\n".join(
    [
        "BEGIN:VCALENDAR",
        "BEGIN:VEVENT",
        "SUMMARY:Standup",
        "DTSTART;TZID=Asia/Tokyo:20260115T100000",
        "DTEND;TZID=Asia/Tokyo:20260115T103000",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "SUMMARY:Lunch (UTC)",
        "DTSTART:20260115T030000Z",
        "DURATION:PT1H",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "SUMMARY:Holiday",
        "DTSTART;VALUE=DATE:20260115",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "SUMMARY:Other day",
        "DTSTART:20260116T100000",
        "DTEND:20260116T110000",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "SUMMARY:No end",
        "DTSTART:20260115T150000",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
)

BUSY = [
    {"start": "2026-01-15T10:00:00+09:00", "end": "2026-01-15T10:30:00+09:00"},
    {"start": "2026-01-15T12:00:00+09:00", "end": "2026-01-15T13:00:00+09:00"},
]


def settings(**overrides):
    return CalendarSettings(**{"timezone": "Asia/Tokyo", **overrides})


class TestParseIcal:
    def test_parses_timed_and_all_day_events(self):
        events = parse_ical_events(ICAL, TOKYO)
        assert len(events) == 4
        assert sum(e.all_day for e in events) == 1

    def test_duration_fallback(self):
        lunch = parse_ical_events(ICAL, TOKYO)[1]
        assert (lunch.end - lunch.start).total_seconds() == 3600

    def test_busy_times_for_date_excludes_all_day_and_other_days(self):
        busy = busy_times_for_date(parse_ical_events(ICAL, TOKYO), "2026-01-15", TOKYO)
        assert format_busy_times(busy, TOKYO) == ["10:00-10:30", "12:00-13:00"]

    def test_garbage_is_empty(self):
        assert parse_ical_events("", TOKYO) == []
        assert parse_ical_events("BEGIN:VEVENT\nDTSTART:nope\nEND:VEVENT", TOKYO) == []


class TestBusyHelpers:
    def test_is_time_busy(self):
        assert is_time_busy("2026-01-15", "10:00", BUSY, TOKYO)
        assert not is_time_busy("2026-01-15", "10:30", BUSY, TOKYO)

    def test_is_range_busy(self):
        assert is_range_busy("2026-01-15", "09:30", "10:30", BUSY, TOKYO)
        assert not is_range_busy("2026-01-15", "10:30", "12:00", BUSY, TOKYO)

    def test_conflicting_busy_times_skips_unparseable(self):
        busy = [{"start": "bad", "end": "bad"}, *BUSY]
        assert conflicting_busy_times("2026-01-15", "12:30", "14:00", busy, TOKYO) == [BUSY[1]]

    def test_busy_slots_account_for_duration(self):
        assert busy_slots("2026-01-15", "09:00", "12:00", 60, BUSY, TOKYO) == ["09:30", "10:00", "11:30"]


class TestICalBusySource:
    @pytest.mark.asyncio
    async def test_no_url_returns_empty(self):
        with patch("meetgrid.calendar.requests.get") as mock_get:
            assert await ICalBusySource(settings()).fetch("2026-01-15") == []
            mock_get.assert_not_called()

    @pytest.mark.asyncio
    async def test_fetch_parses_feed(self):
        response = MagicMock(text=ICAL)
        with patch("meetgrid.calendar.requests.get", return_value=response) as mock_get:
            busy = await ICalBusySource(settings(ical_url="https://cal.test/feed.ics")).fetch("2026-01-15")
        assert len(busy) == 2
        assert mock_get.call_args.kwargs["headers"]["User-Agent"] == "meetgrid/1.0"

    @pytest.mark.asyncio
    async def test_network_failure_degrades_to_empty(self):
        with patch("meetgrid.calendar.requests.get", side_effect=requests.ConnectionError("down")):
            assert await ICalBusySource(settings(ical_url="https://cal.test/feed.ics")).fetch("2026-01-15") == []

    @pytest.mark.asyncio
    async def test_strict_mode_raises_on_http_error(self):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("404")
        with patch("meetgrid.calendar.requests.get", return_value=response):
            source = ICalBusySource(settings(ical_url="https://cal.test/feed.ics"))
            assert await source.fetch("2026-01-15") == []
            with pytest.raises(ExternalServiceError):
                await source.fetch("2026-01-15", strict=True)


class TestGoogleFreeBusySource:
    @pytest.mark.asyncio
    async def test_fetch_returns_busy_intervals(self):
        response = MagicMock(ok=True)
        response.json.return_value = {"calendars": {"primary": {"busy": BUSY + [{"start": "x"}]}}}
        with patch("meetgrid.calendar.requests.post", return_value=response) as mock_post:
            busy = await GoogleFreeBusySource(settings()).fetch("2026-01-15", "token-1")
        assert busy == BUSY
        kwargs = mock_post.call_args.kwargs
        assert kwargs["headers"]["Authorization"] == "Bearer token-1"
        assert kwargs["json"]["timeMin"] == "2026-01-15T00:00:00+09:00"

    @pytest.mark.asyncio
    async def test_error_status_degrades_to_empty(self):
        with patch("meetgrid.calendar.requests.post", return_value=MagicMock(ok=False, status_code=401)):
            assert await GoogleFreeBusySource(settings()).fetch("2026-01-15", "expired") == []

    @pytest.mark.asyncio
    async def test_strict_mode_raises(self):
        with patch("meetgrid.calendar.requests.post", side_effect=requests.Timeout("slow")):
            with pytest.raises(ExternalServiceError):
                await GoogleFreeBusySource(settings()).fetch("2026-01-15", "token", strict=True)

    @pytest.mark.asyncio
    async def test_non_json_body_degrades_to_empty(self):
        response = MagicMock(ok=True)
        response.json.side_effect = ValueError("Expecting value")
        with patch("meetgrid.calendar.requests.post", return_value=response):
            source = GoogleFreeBusySource(settings())
            assert await source.fetch("2026-01-15", "token") == []
            with pytest.raises(ExternalServiceError):
                await source.fetch("2026-01-15", "token", strict=True)
