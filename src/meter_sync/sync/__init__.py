"""Sync module: tenant reconciliation, reading upload queue and status."""

from meter_sync.sync.delivery import DeliveryResult, ReadingDeliveryClient
from meter_sync.sync.status import (
    SyncStatus,
    UploadStatus,
    get_status,
    get_upload_log,
    get_upload_status,
)
from meter_sync.sync.tenant import TenantSyncResult, get_local_tenant, sync_tenant
from meter_sync.sync.upload import ReadingUploader, UploadCycleResult

__all__ = [
    "DeliveryResult",
    "ReadingDeliveryClient",
    "ReadingUploader",
    "SyncStatus",
    "TenantSyncResult",
    "UploadCycleResult",
    "UploadStatus",
    "get_local_tenant",
    "get_status",
    "get_upload_log",
    "get_upload_status",
    "sync_tenant",
]
