"""Slot grid generation.

Slots are ``HH:MM`` strings on a fixed 30-minute grid. Malformed or empty
ranges produce no slots rather than errors.
"""

import re
from collections.abc import Iterable
from typing import Protocol

SLOT_MINUTES = 30
MINUTES_PER_DAY = 24 * 60

TIME_RE = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$")


class TimeRange(Protocol):
    start_time: str
    end_time: str


def parse_time(value: str) -> int | None:
    """Minutes since midnight for an ``HH:MM`` string, or None if malformed."""
    if not isinstance(value, str) or not TIME_RE.match(value):
        return None
    hour, minute = value.split(":")
    return int(hour) * 60 + int(minute)


def format_time(minutes: int) -> str:
    minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def generate_slots(start: str, end: str) -> list[str]:
    """Slot starts from ``start`` in 30-minute steps.

    Only whole slots are returned: each one ends at or before ``end``, so a
    range shorter than one step yields nothing.
    """
    start_min = parse_time(start)
    end_min = parse_time(end)
    if start_min is None or end_min is None:
        return []
    return [format_time(m) for m in range(start_min, end_min - SLOT_MINUTES + 1, SLOT_MINUTES)]


def slot_end_time(slot: str, duration_minutes: int) -> str:
    """Time of day a meeting starting at ``slot`` ends.

    Wraps past midnight ("23:30" + 60 -> "00:30"); the date is not tracked.
    A malformed slot is returned unchanged.
    """
    start_min = parse_time(slot)
    if start_min is None:
        return slot
    return format_time(start_min + int(duration_minutes))


def envelope(windows: Iterable[TimeRange]) -> tuple[str, str] | None:
    """Earliest start and latest end across ``windows``."""
    starts = [w.start_time for w in windows if parse_time(w.start_time) is not None]
    ends = [w.end_time for w in windows if parse_time(w.end_time) is not None]
    if not starts or not ends:
        return None
    # zero-padded HH:MM sorts lexicographically
    return min(starts), max(ends)


def union_slot_grid(windows: Iterable[TimeRange]) -> list[str]:
    """Row axis for a heatmap spanning every window.

    May contain slots that no single window covers, e.g. the gap between a
    morning and an afternoon window; use :func:`window_covers` per column.
    """
    span = envelope(list(windows))
    if span is None:
        return []
    return generate_slots(*span)


def window_covers(window: TimeRange, slot: str) -> bool:
    return slot in generate_slots(window.start_time, window.end_time)
