import logging
from collections.abc import Iterable

from meetgrid.bus import EventBus
from meetgrid.events import ChangeEvent

logger = logging.getLogger("meetgrid.producers")


async def publish_changes(event_bus: EventBus | None, changes: Iterable[ChangeEvent]) -> int:
    """Publish ``changes`` if a bus is available.

    Writes are already stored when this runs, so a publish failure is logged
    and polling subscribers still see the change.
    """
    if event_bus is None:
        return 0
    published = 0
    for change in changes:
        try:
            await event_bus.publish_change(change)
            published += 1
        except Exception as e:
            logger.warning("Failed to publish %s %s for %s: %s", change["table"], change["type"], change["event_id"], e)
    return published
