"""Busy-time lookup for the leader's own calendar.

Two sources: a public iCal feed (``CALENDAR_ICAL_URL``) and the Google
Calendar FreeBusy API with a caller-supplied OAuth access token. Both answer
"which intervals on this local date are busy" and degrade to an empty list
when the source is unreachable, so picking windows never blocks on them.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import TypedDict
from zoneinfo import ZoneInfo

import requests

from meetgrid.config import CalendarSettings, get_settings
from meetgrid.core.slots import generate_slots, slot_end_time
from meetgrid.errors import ExternalServiceError

logger = logging.getLogger("meetgrid.calendar")

FREEBUSY_URL = "https://www.googleapis.com/calendar/v3/freeBusy"

_VEVENT_RE = re.compile(r"BEGIN:VEVENT.*?END:VEVENT", re.DOTALL)
_DTSTART_RE = re.compile(r"^DTSTART[^:\r\n]*:(\d{8}T\d{6}Z?|\d{8})", re.MULTILINE)
_DTEND_RE = re.compile(r"^DTEND[^:\r\n]*:(\d{8}T\d{6}Z?|\d{8})", re.MULTILINE)
_DURATION_RE = re.compile(r"^DURATION:PT(?:(\d+)H)?(?:(\d+)M)?", re.MULTILINE)

ONE_DAY = timedelta(days=1)


class BusyTime(TypedDict):
    start: str
    end: str


@dataclass(frozen=True)
class CalendarEvent:
    start: datetime
    end: datetime
    all_day: bool


def parse_ical_datetime(value: str, tz: ZoneInfo) -> datetime:
    """``20260115``, ``20260115T100000`` (local) or ``20260115T100000Z`` (UTC)."""
    if len(value) == 8:
        return datetime.strptime(value, "%Y%m%d").replace(tzinfo=tz)
    if value.endswith("Z"):
        return datetime.strptime(value, "%Y%m%dT%H%M%SZ").replace(tzinfo=ZoneInfo("UTC"))
    return datetime.strptime(value, "%Y%m%dT%H%M%S").replace(tzinfo=tz)


def parse_ical_events(text: str, tz: ZoneInfo) -> list[CalendarEvent]:
    events: list[CalendarEvent] = []
    for block in _VEVENT_RE.findall(text or ""):
        start_match = _DTSTART_RE.search(block)
        if not start_match:
            continue
        try:
            start = parse_ical_datetime(start_match.group(1), tz)
            end_match = _DTEND_RE.search(block)
            end = parse_ical_datetime(end_match.group(1), tz) if end_match else None
        except ValueError:
            logger.debug("Skipping VEVENT with unparseable dates")
            continue
        date_only = len(start_match.group(1)) == 8
        if end is None:
            duration = _DURATION_RE.search(block)
            if duration and (duration.group(1) or duration.group(2)):
                end = start + timedelta(hours=int(duration.group(1) or 0), minutes=int(duration.group(2) or 0))
            elif date_only:
                end = start + ONE_DAY
            else:
                continue
        all_day = date_only or end - start >= ONE_DAY
        events.append(CalendarEvent(start=start, end=end, all_day=all_day))
    return events


def local_day_bounds(day: str, tz: ZoneInfo) -> tuple[datetime, datetime]:
    d = date.fromisoformat(day)
    start = datetime.combine(d, time(0, 0), tzinfo=tz)
    return start, start + ONE_DAY


def busy_times_for_date(events: list[CalendarEvent], day: str, tz: ZoneInfo) -> list[BusyTime]:
    """Timed events overlapping the local ``day``, earliest first.

    All-day events are left out; they rarely mean the person is unavailable.
    """
    day_start, day_end = local_day_bounds(day, tz)
    overlapping = sorted(
        (e for e in events if not e.all_day and e.start < day_end and e.end > day_start),
        key=lambda e: e.start,
    )
    return [{"start": e.start.isoformat(), "end": e.end.isoformat()} for e in overlapping]


def _at(day: str, hhmm: str, tz: ZoneInfo) -> datetime:
    return datetime.combine(date.fromisoformat(day), time.fromisoformat(hhmm), tzinfo=tz)


def _interval(b: BusyTime) -> tuple[datetime, datetime] | None:
    try:
        return datetime.fromisoformat(b["start"]), datetime.fromisoformat(b["end"])
    except (KeyError, TypeError, ValueError):
        return None


def _intervals(busy: list[BusyTime]) -> list[tuple[datetime, datetime]]:
    return [i for i in map(_interval, busy) if i is not None]


def is_time_busy(day: str, hhmm: str, busy: list[BusyTime], tz: ZoneInfo) -> bool:
    point = _at(day, hhmm, tz)
    return any(start <= point < end for start, end in _intervals(busy))


def conflicting_busy_times(day: str, start: str, end: str, busy: list[BusyTime], tz: ZoneInfo) -> list[BusyTime]:
    range_start, range_end = _at(day, start, tz), _at(day, end, tz)
    if range_end <= range_start:
        range_end += ONE_DAY
    conflicts = []
    for b in busy:
        interval = _interval(b)
        if interval and range_start < interval[1] and range_end > interval[0]:
            conflicts.append(b)
    return conflicts


def is_range_busy(day: str, start: str, end: str, busy: list[BusyTime], tz: ZoneInfo) -> bool:
    return bool(conflicting_busy_times(day, start, end, busy, tz))


def busy_slots(day: str, start: str, end: str, duration: int, busy: list[BusyTime], tz: ZoneInfo) -> list[str]:
    """Slots of a window whose meeting would overlap a busy interval."""
    return [
        slot
        for slot in generate_slots(start, end)
        if is_range_busy(day, slot, slot_end_time(slot, duration), busy, tz)
    ]


def format_busy_times(busy: list[BusyTime], tz: ZoneInfo) -> list[str]:
    return [
        f"{s.astimezone(tz):%H:%M}-{e.astimezone(tz):%H:%M}" for s, e in _intervals(busy)
    ]


class ICalBusySource:
    def __init__(self, settings: CalendarSettings | None = None) -> None:
        self.settings = settings or get_settings().calendar
        self.tz = ZoneInfo(self.settings.timezone)

    def _download(self) -> str:
        resp = requests.get(
            self.settings.ical_url,
            headers={"User-Agent": self.settings.user_agent},
            timeout=self.settings.request_timeout_sec,
        )
        resp.raise_for_status()
        return resp.text

    async def fetch(self, day: str, strict: bool = False) -> list[BusyTime]:
        if not self.settings.ical_url:
            return []
        try:
            text = await asyncio.to_thread(self._download)
        except requests.RequestException as e:
            logger.warning("iCal feed fetch failed: %s", e)
            if strict:
                raise ExternalServiceError(detail="iCal feed fetch failed") from e
            return []
        return busy_times_for_date(parse_ical_events(text, self.tz), day, self.tz)


class GoogleFreeBusySource:
    def __init__(self, settings: CalendarSettings | None = None) -> None:
        self.settings = settings or get_settings().calendar
        self.tz = ZoneInfo(self.settings.timezone)

    def _query(self, day: str, access_token: str) -> requests.Response:
        day_start, day_end = local_day_bounds(day, self.tz)
        return requests.post(
            FREEBUSY_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            json={
                "timeMin": day_start.isoformat(),
                "timeMax": day_end.isoformat(),
                "items": [{"id": self.settings.google_calendar_id}],
                "timeZone": self.settings.timezone,
            },
            timeout=self.settings.request_timeout_sec,
        )

    async def fetch(self, day: str, access_token: str, strict: bool = False) -> list[BusyTime]:
        """Busy intervals from FreeBusy.

        With ``strict`` a failed call raises :class:`ExternalServiceError`
        instead of returning an empty list.
        """
        try:
            resp = await asyncio.to_thread(self._query, day, access_token)
        except requests.RequestException as e:
            logger.warning("FreeBusy request failed: %s", e)
            if strict:
                raise ExternalServiceError(detail="FreeBusy request failed") from e
            return []
        if not resp.ok:
            logger.warning("FreeBusy non-OK response: %s", resp.status_code)
            if strict:
                raise ExternalServiceError(detail=f"FreeBusy returned {resp.status_code}", status=resp.status_code)
            return []
        try:
            data = resp.json()
        except ValueError as e:
            logger.warning("FreeBusy returned a non-JSON body")
            if strict:
                raise ExternalServiceError(detail="FreeBusy returned an unreadable body") from e
            return []
        if not isinstance(data, dict):
            return []
        busy = data.get("calendars", {}).get(self.settings.google_calendar_id, {}).get("busy", [])
        return [{"start": b["start"], "end": b["end"]} for b in busy if "start" in b and "end" in b]
