"""Local store API endpoints: tenant mirror, read-only projections, sync status.

All endpoints serve the loopback listener only.
"""

from dataclasses import asdict
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy import select

from meter_sync.api.deps import get_gateway
from meter_sync.api.schemas import (
    MeterResponse,
    ReadingResponse,
    SyncResult,
    SyncStatusResponse,
    TenantData,
    TenantSyncRequest,
    TenantSyncResponse,
)
from meter_sync.db.gateway import StoreGateway
from meter_sync.db.models import Meter, MeterReading
from meter_sync.errors import (
    MissingTenantIdError,
    PersistenceError,
    RemoteStoreUnavailableError,
    StoreUnavailableError,
    TenantNotFoundError,
)
from meter_sync.logging import get_logger, log_api_error
from meter_sync.sync.status import get_status
from meter_sync.sync.tenant import get_local_tenant, sync_tenant

logger = get_logger(__name__)

router = APIRouter(prefix="/api/local", tags=["local"])

MAX_READINGS = 1000


@router.get("/tenant", response_model=TenantData)
async def read_tenant(
    tenant_id: int | None = Query(None),
    gateway: StoreGateway = Depends(get_gateway),
) -> TenantData:
    """Return the mirrored tenant row (404 until the first sync)."""
    tenant = await get_local_tenant(gateway, tenant_id)
    if tenant is None:
        logger.info("local_tenant_not_found", tenant_id=tenant_id)
        raise HTTPException(status_code=404, detail="No tenant found")
    return TenantData(**tenant)


@router.post("/tenant-sync", response_model=TenantSyncResponse)
async def trigger_tenant_sync(
    body: TenantSyncRequest | None = None,
    gateway: StoreGateway = Depends(get_gateway),
):
    """Pull the tenant from the remote store and upsert it locally.

    Safe to call repeatedly; a repeat call reports the row as updated.
    """
    tenant_id = body.tenant_id if body else None
    log = logger.bind(tenant_id=tenant_id)

    try:
        result = await sync_tenant(gateway, tenant_id)
    except MissingTenantIdError as e:
        log.warning("tenant_sync_rejected", reason="missing_tenant_id")
        return _failure(400, str(e))
    except TenantNotFoundError as e:
        return _failure(404, str(e))
    except RemoteStoreUnavailableError:
        return _failure(503, "Remote database pool not available")
    except StoreUnavailableError:
        return _failure(503, "Local database not available")
    except PersistenceError as e:
        log_api_error(log, "/api/local/tenant-sync", "persistence", str(e))
        return _failure(
            500,
            "Tenant sync failed",
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    return TenantSyncResponse(
        sync_result=SyncResult(
            inserted=1 if result.inserted else 0,
            updated=1 if result.updated else 0,
            timestamp=result.timestamp,
        ),
        tenant_data=TenantData(**result.public_tenant()),
    )


@router.get("/meters", response_model=list[MeterResponse])
async def list_meters(gateway: StoreGateway = Depends(get_gateway)) -> list[MeterResponse]:
    """Active meters, ordered by id."""
    async with gateway.local_session() as session:
        meters = (
            await session.execute(
                select(Meter).where(Meter.active.is_(True)).order_by(Meter.meter_id)
            )
        ).scalars()
        return [MeterResponse.model_validate(meter) for meter in meters]


@router.get("/readings", response_model=list[ReadingResponse])
async def list_readings(
    hours: int = Query(24, ge=1),
    gateway: StoreGateway = Depends(get_gateway),
) -> list[ReadingResponse]:
    """Readings captured in the last N hours, newest first."""
    cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)

    async with gateway.local_session() as session:
        readings = (
            await session.execute(
                select(MeterReading)
                .where(MeterReading.created_at >= cutoff)
                .order_by(MeterReading.created_at.desc())
                .limit(MAX_READINGS)
            )
        ).scalars()
        return [
            ReadingResponse(
                meter_reading_id=reading.meter_reading_id,
                meter_id=reading.meter_id,
                timestamp=reading.created_at,
                sync_status=reading.sync_status,
                is_synchronized=reading.is_synchronized,
                retry_count=reading.retry_count,
            )
            for reading in readings
        ]


@router.get("/sync-status", response_model=SyncStatusResponse)
async def sync_status(gateway: StoreGateway = Depends(get_gateway)) -> SyncStatusResponse:
    """Queue depth, last successful sync, recent errors and remote reachability."""
    status = await get_status(gateway)
    logger.info(
        "sync_status_computed",
        queue_size=status.queue_size,
        is_connected=status.is_connected,
    )
    return SyncStatusResponse(**asdict(status))


def _failure(status_code: int, error: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, **extra},
    )
