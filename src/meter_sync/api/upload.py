"""Meter reading upload API endpoints: status, log and manual trigger."""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query

from meter_sync.api.deps import get_delivery, get_gateway, get_uploader
from meter_sync.api.schemas import (
    UploadLogEntryResponse,
    UploadStatusResponse,
    UploadTriggerRequest,
    UploadTriggerResponse,
)
from meter_sync.db.gateway import StoreGateway
from meter_sync.errors import UploadInProgressError
from meter_sync.logging import get_logger
from meter_sync.sync.delivery import ReadingDeliveryClient
from meter_sync.sync.status import get_upload_log, get_upload_status
from meter_sync.sync.upload import ReadingUploader

logger = get_logger(__name__)

router = APIRouter(prefix="/api/sync/meter-reading-upload", tags=["upload"])


@router.get("/status", response_model=UploadStatusResponse)
async def upload_status(
    gateway: StoreGateway = Depends(get_gateway),
    delivery: ReadingDeliveryClient = Depends(get_delivery),
    uploader: ReadingUploader = Depends(get_uploader),
) -> UploadStatusResponse:
    """Last upload outcome, queue size and remote service reachability."""
    status = await get_upload_status(gateway, delivery, is_running=uploader.is_running())
    return UploadStatusResponse(**asdict(status))


@router.get("/log", response_model=list[UploadLogEntryResponse])
async def upload_log(
    limit: int = Query(20, ge=1, le=100),
    gateway: StoreGateway = Depends(get_gateway),
) -> list[UploadLogEntryResponse]:
    """Most recent upload batches, newest first."""
    entries = await get_upload_log(gateway, limit=limit)
    return [UploadLogEntryResponse(**asdict(entry)) for entry in entries]


@router.post("/trigger", response_model=UploadTriggerResponse)
async def trigger_upload(
    body: UploadTriggerRequest | None = None,
    uploader: ReadingUploader = Depends(get_uploader),
) -> UploadTriggerResponse:
    """Run one upload cycle for a tenant now.

    Rejected with 409 while a cycle for the same tenant is in flight.
    """
    tenant_id = body.tenant_id if body else None
    if not tenant_id:
        raise HTTPException(status_code=400, detail="tenant_id is required")

    try:
        result = await uploader.run_cycle(tenant_id)
    except UploadInProgressError as e:
        logger.info("upload_trigger_rejected", tenant_id=tenant_id, reason="in_progress")
        raise HTTPException(status_code=409, detail=str(e))

    return UploadTriggerResponse(
        success=result.success,
        tenant_id=tenant_id,
        readings_count=result.attempted,
        delivered=len(result.delivered),
        failed=len(result.failed),
        sync_operation_id=result.sync_log_id,
        error_message=result.error_message,
    )
