"""Response shaping shared by the HTTP and WebSocket controllers.

Runs the aggregation core over stored rows and maps its dataclasses onto
the pydantic response models.
"""

from collections.abc import Iterable, Sequence

from meetgrid.core import build_heatmap, find_best_slots, group_by_window, slot_end_time
from meetgrid.models.scheduling import (
    BestSlot,
    CellResponse,
    HeatmapResponse,
    HeatmapRowResponse,
    Objection,
    ParticipantResponsesResponse,
    Window,
)


def heatmap_response(
    event_id: str,
    duration: int,
    windows: Sequence[Window],
    objections: Iterable[Objection],
    participants: Sequence[str],
) -> HeatmapResponse:
    heatmap = build_heatmap(windows, group_by_window(objections), participants, duration)
    rows = [
        HeatmapRowResponse(
            slot=row.slot,
            end_time=row.end_time,
            on_the_hour=row.on_the_hour,
            cells=[
                CellResponse(
                    window_id=cell.window_id,
                    applicable=cell.applicable,
                    ng_count=cell.availability.ng_count,
                    ok_count=cell.availability.ok_count,
                    respondent_count=cell.availability.respondent_count,
                    ng_participants=cell.availability.ng_participants,
                    ok_participants=cell.availability.ok_participants,
                    bucket=cell.bucket.value,
                    all_clear=cell.all_clear,
                )
                for cell in row.cells
            ],
        )
        for row in heatmap.rows
    ]
    return HeatmapResponse(
        event_id=event_id,
        duration=duration,
        windows=list(heatmap.windows),
        participants=heatmap.participants,
        rows=rows,
    )


def best_slots(
    duration: int,
    windows: Sequence[Window],
    objections_by_window: dict[str, list[Objection]],
    participants: Sequence[str],
    limit: int | None = None,
) -> list[BestSlot]:
    dates = {w.id: w.date for w in windows}
    return [
        BestSlot(
            window_id=r.window_id,
            date=dates[r.window_id],
            slot=r.slot,
            end_time=slot_end_time(r.slot, duration),
            ok_count=r.ok_count,
            ng_count=r.ng_count,
        )
        for r in find_best_slots(windows, objections_by_window, participants, limit)
    ]


def participant_responses(
    name: str, windows: Sequence[Window], objections: Iterable[Objection]
) -> ParticipantResponsesResponse:
    """One participant's NG slots per window they answered."""
    own = {o.window_id: o for o in objections if o.participant_name == name}
    ng_slots = {w.id: sorted(own[w.id].ng_slots) for w in windows if w.id in own}
    not_responded = [w.id for w in windows if w.id not in own]
    return ParticipantResponsesResponse(participant_name=name, ng_slots=ng_slots, not_responded=not_responded)
