"""Sync log and status aggregation.

Each status response is composed of several independent point-in-time
reads; under concurrent upload activity the queue size and log recency
may briefly disagree.
"""

from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func, select

from meter_sync.db.gateway import Store, StoreGateway
from meter_sync.db.models import MeterReading, ReadingStatus, SyncLog, SyncOperation
from meter_sync.sync.delivery import ReadingDeliveryClient

RECENT_LOG_LIMIT = 10
UPLOAD_LOG_DEFAULT_LIMIT = 20


@dataclass
class SyncErrorEntry:
    sync_log_id: int
    batch_size: int
    error_message: str
    synced_at: datetime


@dataclass
class SyncStatus:
    """General sync health snapshot."""

    is_connected: bool
    last_sync_at: datetime | None
    queue_size: int
    sync_errors: list[SyncErrorEntry] = field(default_factory=list)


@dataclass
class UploadStatus:
    """Snapshot scoped to reading uploads."""

    is_running: bool
    last_upload_time: datetime | None
    last_upload_success: bool | None
    last_upload_error: str | None
    queue_size: int
    total_uploaded: int
    total_failed: int
    is_client_connected: bool


@dataclass
class UploadLogEntry:
    sync_operation_id: int
    operation_type: str
    readings_count: int
    success: bool
    error_message: str | None
    created_at: datetime


async def get_status(gateway: StoreGateway) -> SyncStatus:
    """Queue depth, last success, recent failures and remote store reachability."""
    async with gateway.local_session() as session:
        queue_size = await _count_unsynchronized(session)
        recent = list(
            (
                await session.execute(
                    select(SyncLog)
                    .order_by(SyncLog.synced_at.desc(), SyncLog.id.desc())
                    .limit(RECENT_LOG_LIMIT)
                )
            )
            .scalars()
            .all()
        )

    last_sync_at = next((entry.synced_at for entry in recent if entry.success), None)
    errors = [
        SyncErrorEntry(
            sync_log_id=entry.id,
            batch_size=entry.batch_size,
            error_message=entry.error_message or "Unknown error",
            synced_at=entry.synced_at,
        )
        for entry in recent
        if not entry.success
    ][:RECENT_LOG_LIMIT]

    remote = await gateway.health_check(Store.REMOTE)

    return SyncStatus(
        is_connected=remote.ok,
        last_sync_at=last_sync_at,
        queue_size=queue_size,
        sync_errors=errors,
    )


async def get_upload_status(
    gateway: StoreGateway,
    delivery: ReadingDeliveryClient,
    is_running: bool = False,
) -> UploadStatus:
    """Upload-scoped status.

    This module never runs uploads itself, so is_running must be supplied
    by whatever drives the upload cycles.
    """
    async with gateway.local_session() as session:
        queue_size = await _count_unsynchronized(session)
        last_upload = (
            await session.execute(
                select(SyncLog)
                .where(SyncLog.operation_type == SyncOperation.UPLOAD.value)
                .order_by(SyncLog.synced_at.desc(), SyncLog.id.desc())
                .limit(1)
            )
        ).scalar_one_or_none()
        total_uploaded = (
            await session.execute(
                select(func.count())
                .select_from(MeterReading)
                .where(MeterReading.is_synchronized.is_(True))
            )
        ).scalar_one()
        total_failed = (
            await session.execute(
                select(func.count())
                .select_from(MeterReading)
                .where(
                    MeterReading.is_synchronized.is_(False),
                    MeterReading.sync_status == ReadingStatus.FAILED.value,
                )
            )
        ).scalar_one()

    is_client_connected = await delivery.check_service()

    return UploadStatus(
        is_running=is_running,
        last_upload_time=last_upload.synced_at if last_upload else None,
        last_upload_success=last_upload.success if last_upload else None,
        last_upload_error=last_upload.error_message if last_upload else None,
        queue_size=queue_size,
        total_uploaded=total_uploaded,
        total_failed=total_failed,
        is_client_connected=is_client_connected,
    )


async def get_upload_log(
    gateway: StoreGateway, limit: int = UPLOAD_LOG_DEFAULT_LIMIT
) -> list[UploadLogEntry]:
    """Most recent upload entries, newest first."""
    async with gateway.local_session() as session:
        entries = (
            await session.execute(
                select(SyncLog)
                .where(SyncLog.operation_type == SyncOperation.UPLOAD.value)
                .order_by(SyncLog.synced_at.desc(), SyncLog.id.desc())
                .limit(limit)
            )
        ).scalars()
        return [
            UploadLogEntry(
                sync_operation_id=entry.id,
                operation_type=entry.operation_type,
                readings_count=entry.batch_size,
                success=entry.success,
                error_message=entry.error_message,
                created_at=entry.synced_at,
            )
            for entry in entries
        ]


async def _count_unsynchronized(session) -> int:
    return (
        await session.execute(
            select(func.count())
            .select_from(MeterReading)
            .where(MeterReading.is_synchronized.is_(False))
        )
    ).scalar_one()
