from typing import Any, Literal, TypedDict

ChangeTable = Literal["objections", "windows"]
ChangeType = Literal["insert", "update", "delete"]


class ChangeEvent(TypedDict):
    """One row change on an event's windows or objections."""

    event_id: str
    table: ChangeTable
    type: ChangeType
    record: dict[str, Any]


def make_change(event_id: str, table: ChangeTable, change_type: ChangeType, record: dict[str, Any]) -> ChangeEvent:
    return {"event_id": event_id, "table": table, "type": change_type, "record": record}
