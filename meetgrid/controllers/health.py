from fastapi import APIRouter

from meetgrid import db, state
from meetgrid.stores import PostgresStore

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, object]:
    redis_status = "disconnected"
    if state.redis_client:
        try:
            await state.redis_client.ping()
            redis_status = "healthy"
        except Exception:
            redis_status = "unhealthy"

    if state.store is None:
        store_status = "uninitialized"
    elif isinstance(state.store, PostgresStore):
        store_status = "postgres"
    else:
        store_status = "memory"

    return {
        "status": "ok",
        "redis": redis_status,
        "store": store_status,
        "db_pool": db.get_pool_stats(),
    }
