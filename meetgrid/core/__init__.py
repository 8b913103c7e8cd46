"""Pure slot-grid and availability aggregation functions."""

from meetgrid.core.aggregation import (
    NOT_RESPONDED,
    CellAvailability,
    Heatmap,
    HeatmapBucket,
    HeatmapCell,
    HeatmapRow,
    NotResponded,
    RankedSlot,
    Responded,
    ResponseState,
    build_heatmap,
    cell_availability,
    find_best_slots,
    group_by_window,
    heatmap_bucket,
    participants_of,
    response_state,
    sort_windows,
)
from meetgrid.core.slots import (
    SLOT_MINUTES,
    generate_slots,
    slot_end_time,
    union_slot_grid,
    window_covers,
)

__all__ = [
    "NOT_RESPONDED",
    "SLOT_MINUTES",
    "CellAvailability",
    "Heatmap",
    "HeatmapBucket",
    "HeatmapCell",
    "HeatmapRow",
    "NotResponded",
    "RankedSlot",
    "Responded",
    "ResponseState",
    "build_heatmap",
    "cell_availability",
    "find_best_slots",
    "generate_slots",
    "group_by_window",
    "heatmap_bucket",
    "participants_of",
    "response_state",
    "slot_end_time",
    "sort_windows",
    "union_slot_grid",
    "window_covers",
]
