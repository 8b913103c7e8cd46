"""Availability aggregation over negative (NG) slot selections.

An objection lists the slots a participant *cannot* attend in one window.
A participant without an objection for a window has not responded and is
left out of that window's counts; an objection with no slots means the
participant is fine with every slot.

Nothing here raises on bad data: stray slots, unknown windows and
participants outside the canonical list are ignored or counted as described
on each function.
"""

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from meetgrid.core.slots import generate_slots, slot_end_time, union_slot_grid


class WindowLike(Protocol):
    id: str
    date: str
    start_time: str
    end_time: str


class ObjectionLike(Protocol):
    window_id: str
    participant_name: str
    ng_slots: Iterable[str]


@dataclass(frozen=True)
class NotResponded:
    pass


@dataclass(frozen=True)
class Responded:
    ng_slots: frozenset[str] = frozenset()

    def objects_to(self, slot: str) -> bool:
        return slot in self.ng_slots


ResponseState = NotResponded | Responded

NOT_RESPONDED = NotResponded()


def response_state(objection: ObjectionLike | None) -> ResponseState:
    if objection is None:
        return NOT_RESPONDED
    slots = objection.ng_slots or ()
    return Responded(frozenset(s for s in slots if isinstance(s, str)))


@dataclass(frozen=True)
class CellAvailability:
    ng_count: int = 0
    ng_participants: list[str] = field(default_factory=list)
    ok_participants: list[str] = field(default_factory=list)

    @property
    def ok_count(self) -> int:
        return len(self.ok_participants)

    @property
    def respondent_count(self) -> int:
        return self.ng_count + self.ok_count


@dataclass(frozen=True)
class RankedSlot:
    window_id: str
    slot: str
    ok_count: int
    ng_count: int


class HeatmapBucket(str, Enum):
    NO_DATA = "no_data"
    ALL_OK = "all_ok"
    MOSTLY_OK = "mostly_ok"
    MANY_OK = "many_ok"
    HALF = "half"
    FEW_OK = "few_ok"
    MOSTLY_NG = "mostly_ng"
    ALL_NG = "all_ng"


def participants_of(objections: Iterable[ObjectionLike]) -> list[str]:
    """Distinct participant names, sorted for a stable display order."""
    return sorted({o.participant_name for o in objections if o.participant_name})


def group_by_window(objections: Iterable[ObjectionLike]) -> dict[str, list[ObjectionLike]]:
    grouped: dict[str, list[ObjectionLike]] = defaultdict(list)
    for o in objections:
        grouped[o.window_id].append(o)
    return dict(grouped)


def _states_for_window(
    window: WindowLike, objections: Iterable[ObjectionLike]
) -> dict[str, ResponseState]:
    # later rows win if storage ever hands us duplicates
    states: dict[str, ResponseState] = {}
    for o in objections:
        if o.window_id != window.id or not o.participant_name:
            continue
        states[o.participant_name] = response_state(o)
    return states


def _respondent_order(states: Mapping[str, ResponseState], participants: Sequence[str]) -> list[str]:
    known = set(participants)
    listed = [p for p in dict.fromkeys(participants) if p in states]
    extra = sorted(p for p in states if p not in known)
    return listed + extra


def _cell(states: Mapping[str, ResponseState], order: Sequence[str], slot: str) -> CellAvailability:
    ng: list[str] = []
    ok: list[str] = []
    for name in order:
        state = states[name]
        if not isinstance(state, Responded):
            continue
        if state.objects_to(slot):
            ng.append(name)
        else:
            ok.append(name)
    return CellAvailability(ng_count=len(ng), ng_participants=ng, ok_participants=ok)


def cell_availability(
    window: WindowLike,
    slot: str,
    objections: Iterable[ObjectionLike],
    participants: Sequence[str],
) -> CellAvailability:
    """Who can and cannot make ``slot`` in ``window``.

    Every participant with an objection recorded against the window is
    counted, listed or not; names follow ``participants`` order with unlisted
    respondents appended alphabetically. A slot outside the window's own
    coverage has no respondents.
    """
    if slot not in generate_slots(window.start_time, window.end_time):
        return CellAvailability()
    states = _states_for_window(window, objections)
    return _cell(states, _respondent_order(states, participants), slot)


def heatmap_bucket(ng_count: int, respondent_count: int) -> HeatmapBucket:
    """Map an OK ratio to its heatmap bucket.

    Thresholds are inclusive lower bounds on the OK ratio, checked from the
    top. Integer arithmetic keeps 0.8/0.6/... exact.
    """
    if respondent_count <= 0:
        return HeatmapBucket.NO_DATA
    ng = min(max(ng_count, 0), respondent_count)
    ok = respondent_count - ng
    if ok == respondent_count:
        return HeatmapBucket.ALL_OK
    if ok * 5 >= respondent_count * 4:
        return HeatmapBucket.MOSTLY_OK
    if ok * 5 >= respondent_count * 3:
        return HeatmapBucket.MANY_OK
    if ok * 5 >= respondent_count * 2:
        return HeatmapBucket.HALF
    if ok * 5 >= respondent_count:
        return HeatmapBucket.FEW_OK
    if ok > 0:
        return HeatmapBucket.MOSTLY_NG
    return HeatmapBucket.ALL_NG


def find_best_slots(
    windows: Iterable[WindowLike],
    objections_by_window: Mapping[str, Iterable[ObjectionLike]],
    participants: Sequence[str],
    limit: int | None = None,
) -> list[RankedSlot]:
    """Slots nobody objects to, most respondents first.

    Silence is not an objection: a slot qualifies while some participants
    have not answered its window, but at least one must have. Ties are broken
    by window id, then slot.
    """
    ranked: list[RankedSlot] = []
    for window in windows:
        states = _states_for_window(window, objections_by_window.get(window.id, ()))
        if not states:
            continue
        order = _respondent_order(states, participants)
        for slot in generate_slots(window.start_time, window.end_time):
            cell = _cell(states, order, slot)
            if cell.ng_count == 0 and cell.ok_count > 0:
                ranked.append(RankedSlot(window.id, slot, cell.ok_count, cell.ng_count))
    ranked.sort(key=lambda r: (-r.ok_count, r.window_id, r.slot))
    if limit is not None:
        return ranked[: max(limit, 0)]
    return ranked


@dataclass(frozen=True)
class HeatmapCell:
    window_id: str
    applicable: bool
    availability: CellAvailability = field(default_factory=CellAvailability)
    bucket: HeatmapBucket = HeatmapBucket.NO_DATA

    @property
    def all_clear(self) -> bool:
        return self.applicable and self.availability.ng_count == 0 and self.availability.ok_count > 0


@dataclass(frozen=True)
class HeatmapRow:
    slot: str
    end_time: str
    on_the_hour: bool
    cells: list[HeatmapCell]


@dataclass(frozen=True)
class Heatmap:
    windows: list[WindowLike]
    participants: list[str]
    rows: list[HeatmapRow]


def sort_windows(windows: Iterable[WindowLike]) -> list[WindowLike]:
    return sorted(windows, key=lambda w: (w.date, w.start_time))


def build_heatmap(
    windows: Iterable[WindowLike],
    objections_by_window: Mapping[str, Iterable[ObjectionLike]],
    participants: Sequence[str],
    duration: int,
) -> Heatmap:
    """Union-grid rows by date-ordered window columns.

    Cells for slots a window does not cover are marked not applicable.
    """
    columns = sort_windows(windows)
    coverage = {w.id: set(generate_slots(w.start_time, w.end_time)) for w in columns}
    states = {w.id: _states_for_window(w, objections_by_window.get(w.id, ())) for w in columns}
    orders = {w.id: _respondent_order(states[w.id], participants) for w in columns}

    rows: list[HeatmapRow] = []
    for slot in union_slot_grid(columns):
        cells: list[HeatmapCell] = []
        for w in columns:
            if slot not in coverage[w.id]:
                cells.append(HeatmapCell(window_id=w.id, applicable=False))
                continue
            cell = _cell(states[w.id], orders[w.id], slot)
            cells.append(
                HeatmapCell(
                    window_id=w.id,
                    applicable=True,
                    availability=cell,
                    bucket=heatmap_bucket(cell.ng_count, cell.respondent_count),
                )
            )
        rows.append(
            HeatmapRow(
                slot=slot,
                end_time=slot_end_time(slot, duration),
                on_the_hour=slot.endswith(":00"),
                cells=cells,
            )
        )
    return Heatmap(windows=columns, participants=list(participants), rows=rows)
