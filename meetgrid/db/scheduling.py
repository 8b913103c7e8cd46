import secrets
import string
import uuid
from datetime import UTC, date, datetime, time
from typing import Any

from psycopg import errors as pg_errors
from psycopg.types.json import Json

from meetgrid.db.core import _get_connection

_EVENT_COLUMNS = "id, title, description, duration, creator_token, created_at"
_WINDOW_COLUMNS = "id, event_id, date, start_time, end_time, created_at"
_OBJECTION_COLUMNS = "id, window_id, participant_name, ng_slots, created_at, updated_at"


def _generate_event_id(length: int = 10) -> str:
    chars = string.ascii_lowercase + string.digits
    return "".join(secrets.choice(chars) for _ in range(length))


def _iso(ts: datetime | None) -> str | None:
    return ts.astimezone(UTC).isoformat() if ts else None


def _hhmm(t: time) -> str:
    return t.strftime("%H:%M")


def _event_row(row) -> dict[str, Any]:
    return {
        "id": row[0],
        "title": row[1],
        "description": row[2],
        "duration": row[3],
        "creator_token": row[4],
        "created_at": _iso(row[5]),
    }


def _window_row(row) -> dict[str, Any]:
    return {
        "id": row[0],
        "event_id": row[1],
        "date": row[2].isoformat(),
        "start_time": _hhmm(row[3]),
        "end_time": _hhmm(row[4]),
        "created_at": _iso(row[5]),
    }


def _objection_row(row) -> dict[str, Any]:
    return {
        "id": row[0],
        "window_id": row[1],
        "participant_name": row[2],
        "ng_slots": list(row[3] or []),
        "created_at": _iso(row[4]),
        "updated_at": _iso(row[5]),
    }


async def sched_create_event(
    title: str,
    duration: int,
    description: str | None = None,
) -> dict[str, Any]:
    now = datetime.now(UTC)
    creator_token = str(uuid.uuid4())
    async with _get_connection() as conn:
        for _ in range(10):
            event_id = _generate_event_id()
            try:
                await conn.execute(
                    f"INSERT INTO sched_events ({_EVENT_COLUMNS}) VALUES (%s, %s, %s, %s, %s, %s)",
                    (event_id, title, description, duration, creator_token, now),
                )
            except pg_errors.UniqueViolation:
                continue
            return {
                "id": event_id,
                "title": title,
                "description": description,
                "duration": duration,
                "creator_token": creator_token,
                "created_at": now.isoformat(),
            }
        raise RuntimeError("Failed to generate unique event ID")


async def sched_get_event(event_id: str) -> dict[str, Any] | None:
    async with _get_connection() as conn:
        cur = await conn.execute(f"SELECT {_EVENT_COLUMNS} FROM sched_events WHERE id = %s", (event_id,))
        row = await cur.fetchone()
        return _event_row(row) if row else None


async def sched_delete_event(event_id: str) -> bool:
    async with _get_connection() as conn:
        cur = await conn.execute("DELETE FROM sched_events WHERE id = %s", (event_id,))
        return cur.rowcount > 0


async def sched_list_recent_events(since: datetime) -> list[dict[str, Any]]:
    async with _get_connection() as conn:
        rows = await conn.execute(
            f"SELECT {_EVENT_COLUMNS} FROM sched_events WHERE created_at >= %s ORDER BY created_at DESC",
            (since,),
        )
        return [_event_row(row) async for row in rows]


async def sched_list_windows(event_id: str) -> list[dict[str, Any]]:
    async with _get_connection() as conn:
        rows = await conn.execute(
            f"SELECT {_WINDOW_COLUMNS} FROM sched_windows WHERE event_id = %s ORDER BY date, start_time",
            (event_id,),
        )
        return [_window_row(row) async for row in rows]


def _window_params(event_id: str, window: dict[str, str], now: datetime) -> tuple:
    return (
        str(uuid.uuid4()),
        event_id,
        date.fromisoformat(window["date"]),
        time.fromisoformat(window["start_time"]),
        time.fromisoformat(window["end_time"]),
        now,
    )


async def sched_add_window(event_id: str, window: dict[str, str]) -> dict[str, Any]:
    now = datetime.now(UTC)
    async with _get_connection() as conn:
        cur = await conn.execute(
            f"INSERT INTO sched_windows ({_WINDOW_COLUMNS}) VALUES (%s, %s, %s, %s, %s, %s) RETURNING {_WINDOW_COLUMNS}",
            _window_params(event_id, window, now),
        )
        return _window_row(await cur.fetchone())


async def sched_replace_windows(event_id: str, windows: list[dict[str, str]]) -> list[dict[str, Any]]:
    """Delete every window of the event (objections cascade) and insert ``windows``."""
    now = datetime.now(UTC)
    created: list[dict[str, Any]] = []
    async with _get_connection() as conn:
        async with conn.transaction():
            await conn.execute("DELETE FROM sched_windows WHERE event_id = %s", (event_id,))
            for window in windows:
                cur = await conn.execute(
                    f"INSERT INTO sched_windows ({_WINDOW_COLUMNS}) VALUES (%s, %s, %s, %s, %s, %s) RETURNING {_WINDOW_COLUMNS}",
                    _window_params(event_id, window, now),
                )
                created.append(_window_row(await cur.fetchone()))
    created.sort(key=lambda w: (w["date"], w["start_time"]))
    return created


async def sched_list_objections(window_ids: list[str]) -> list[dict[str, Any]]:
    if not window_ids:
        return []
    async with _get_connection() as conn:
        rows = await conn.execute(
            f"SELECT {_OBJECTION_COLUMNS} FROM sched_objections WHERE window_id = ANY(%s) ORDER BY created_at",
            (list(window_ids),),
        )
        return [_objection_row(row) async for row in rows]


async def _update_objection(conn, window_id: str, participant_name: str, ng_slots: list[str], now: datetime):
    cur = await conn.execute(
        f"""UPDATE sched_objections SET ng_slots = %s, updated_at = %s
            WHERE window_id = %s AND participant_name = %s
            RETURNING {_OBJECTION_COLUMNS}""",
        (Json(ng_slots), now, window_id, participant_name),
    )
    return await cur.fetchone()


async def sched_upsert_objection(
    window_id: str,
    participant_name: str,
    ng_slots: list[str],
) -> tuple[dict[str, Any], bool]:
    """Insert or replace one participant's NG slots for a window.

    Updates the existing row if there is one, else inserts. Two first
    writes racing for the same participant meet the
    (window_id, participant_name) unique constraint; the loser falls back
    to an update.

    Returns:
        The stored objection and whether it was newly created.
    """
    now = datetime.now(UTC)
    async with _get_connection() as conn:
        row = await _update_objection(conn, window_id, participant_name, ng_slots, now)
        if row:
            return _objection_row(row), False
        try:
            cur = await conn.execute(
                f"""INSERT INTO sched_objections ({_OBJECTION_COLUMNS})
                    VALUES (%s, %s, %s, %s, %s, NULL)
                    RETURNING {_OBJECTION_COLUMNS}""",
                (str(uuid.uuid4()), window_id, participant_name, Json(ng_slots), now),
            )
            return _objection_row(await cur.fetchone()), True
        except pg_errors.UniqueViolation:
            row = await _update_objection(conn, window_id, participant_name, ng_slots, now)
            return _objection_row(row), False
