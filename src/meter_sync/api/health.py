"""Health check API endpoints.

/health is liveness only. The per-store endpoints answer 200 when a
round-trip query succeeds and 503 otherwise; they never raise.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from meter_sync.api.deps import get_gateway
from meter_sync.db.gateway import Store, StoreGateway
from meter_sync.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])

# Name each store is reported under
_DATABASE_LABELS = {Store.LOCAL: "sync", Store.REMOTE: "remote"}


@router.get("/health")
async def liveness() -> dict:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/api/health/sync-db")
async def sync_db_health(gateway: StoreGateway = Depends(get_gateway)) -> JSONResponse:
    """Local store round-trip check."""
    return await _store_health(gateway, Store.LOCAL)


@router.get("/api/health/remote-db")
async def remote_db_health(gateway: StoreGateway = Depends(get_gateway)) -> JSONResponse:
    """Remote store round-trip check."""
    return await _store_health(gateway, Store.REMOTE)


async def _store_health(gateway: StoreGateway, store: Store) -> JSONResponse:
    database = _DATABASE_LABELS[store]
    health = await gateway.health_check(store)

    if health.ok:
        timestamp = health.timestamp
        if isinstance(timestamp, datetime):
            timestamp = timestamp.isoformat()
        return JSONResponse({"status": "ok", "database": database, "timestamp": timestamp})

    logger.warning("store_health_check_failed", database=database, error=health.error)
    return JSONResponse(
        status_code=503,
        content={"status": "error", "database": database, "error": health.error},
    )
