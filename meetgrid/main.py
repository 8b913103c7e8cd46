import logging

logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
)
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from meetgrid.config import get_settings
from meetgrid.controllers.calendar import router as calendar_router
from meetgrid.controllers.google_auth import router as google_auth_router
from meetgrid.controllers.health import router as health_router
from meetgrid.controllers.identity import router as identity_router
from meetgrid.controllers.scheduling import router as scheduling_router
from meetgrid.controllers.ws_events import router as ws_events_router
from meetgrid.errors import register_exception_handlers
from meetgrid.lifespan import cleanup_resources, setup_resources
from meetgrid.middleware import HTTPLogMiddleware

settings = get_settings()

app = FastAPI(title="meetgrid", version="1.0.0")
register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors.origins,
    allow_origin_regex=settings.cors.origins_regex or None,
    allow_credentials=settings.cors.allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.debug.request:
    logging.getLogger("meetgrid.http").setLevel(logging.DEBUG)
    app.add_middleware(HTTPLogMiddleware)

if settings.debug.websocket:
    logging.getLogger("meetgrid.ws").setLevel(logging.DEBUG)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    resources = await setup_resources()
    try:
        yield
    finally:
        await cleanup_resources(resources)

app.router.lifespan_context = lifespan

app.include_router(health_router)
app.include_router(scheduling_router, prefix="/sched")
app.include_router(identity_router, prefix="/sched")
app.include_router(calendar_router, prefix="/sched")
app.include_router(google_auth_router, prefix="/sched")
app.include_router(ws_events_router)
