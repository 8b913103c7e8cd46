from meetgrid.db.core import close_pool, get_pool_stats, init_pool
from meetgrid.db.scheduling import (
    sched_add_window,
    sched_create_event,
    sched_delete_event,
    sched_get_event,
    sched_list_objections,
    sched_list_recent_events,
    sched_list_windows,
    sched_replace_windows,
    sched_upsert_objection,
)

__all__ = [
    "close_pool",
    "get_pool_stats",
    "init_pool",
    "sched_add_window",
    "sched_create_event",
    "sched_delete_event",
    "sched_get_event",
    "sched_list_objections",
    "sched_list_recent_events",
    "sched_list_windows",
    "sched_replace_windows",
    "sched_upsert_objection",
]
