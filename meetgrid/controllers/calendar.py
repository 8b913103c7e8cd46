import logging
from typing import Annotated
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends

from meetgrid.calendar import (
    GoogleFreeBusySource,
    ICalBusySource,
    busy_slots,
    format_busy_times,
)
from meetgrid.config import get_settings
from meetgrid.errors import BadRequestError
from meetgrid.models.scheduling import BusyRequest, BusyResponse

logger = logging.getLogger("meetgrid.calendar")
router = APIRouter()


def get_ical_source() -> ICalBusySource:
    return ICalBusySource(get_settings().calendar)


def get_freebusy_source() -> GoogleFreeBusySource:
    return GoogleFreeBusySource(get_settings().calendar)


@router.post("/calendar/busy")
async def lookup_busy(
    req: BusyRequest,
    ical: Annotated[ICalBusySource, Depends(get_ical_source)],
    freebusy: Annotated[GoogleFreeBusySource, Depends(get_freebusy_source)],
) -> BusyResponse:
    """Busy intervals on ``req.date``.

    Google FreeBusy is used when an access token is given, the iCal feed
    otherwise. With a window range the slots it would block are listed too.
    A failing source answers 502 when ``strict`` is set and counts as no busy
    time otherwise.
    """
    if req.access_token:
        source = "google"
        busy = await freebusy.fetch(req.date, req.access_token, strict=req.strict)
    else:
        source = "ical"
        busy = await ical.fetch(req.date, strict=req.strict)
    logger.info("Busy lookup date=%s source=%s intervals=%d", req.date, source, len(busy))

    tz = ZoneInfo(get_settings().calendar.timezone)
    blocked: list[str] = []
    if req.start_time and req.end_time:
        if req.end_time <= req.start_time:
            raise BadRequestError(detail="end_time must be after start_time")
        duration = req.duration or get_settings().scheduling.default_duration
        blocked = busy_slots(req.date, req.start_time, req.end_time, duration, busy, tz)

    return BusyResponse(
        date=req.date,
        source=source,
        busy=busy,
        formatted=format_busy_times(busy, tz),
        busy_slots=blocked,
    )
