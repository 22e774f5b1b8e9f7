"""Request and response schemas for the sync API."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class TenantData(BaseModel):
    """Mirrored tenant as exposed over the API (no credential)."""

    tenant_id: int
    name: str
    url: str | None = None
    street: str | None = None
    street2: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    country: str | None = None
    active: bool


class TenantSyncRequest(BaseModel):
    tenant_id: int | None = None


class SyncResult(BaseModel):
    inserted: int
    updated: int
    timestamp: datetime


class TenantSyncResponse(BaseModel):
    success: bool = True
    message: str = "Tenant sync completed successfully"
    sync_result: SyncResult
    tenant_data: TenantData


class MeterResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    meter_id: int
    device_id: str | None
    name: str
    active: bool
    ip: str | None
    port: int | None
    meter_element_id: int | None
    element: str | None


class ReadingResponse(BaseModel):
    meter_reading_id: int
    meter_id: int
    timestamp: datetime
    sync_status: str
    is_synchronized: bool
    retry_count: int


class SyncErrorResponse(BaseModel):
    sync_log_id: int
    batch_size: int
    error_message: str
    synced_at: datetime


class SyncStatusResponse(BaseModel):
    is_connected: bool
    last_sync_at: datetime | None
    queue_size: int
    sync_errors: list[SyncErrorResponse]


class UploadStatusResponse(BaseModel):
    is_running: bool
    last_upload_time: datetime | None
    last_upload_success: bool | None
    last_upload_error: str | None
    queue_size: int
    total_uploaded: int
    total_failed: int
    is_client_connected: bool


class UploadLogEntryResponse(BaseModel):
    sync_operation_id: int
    operation_type: str
    readings_count: int
    success: bool
    error_message: str | None
    created_at: datetime


class UploadTriggerRequest(BaseModel):
    tenant_id: int | None = None


class UploadTriggerResponse(BaseModel):
    success: bool
    tenant_id: int
    readings_count: int
    delivered: int
    failed: int
    sync_operation_id: int | None
    error_message: str | None


class EndpointStatusResponse(BaseModel):
    label: str
    state: str
    tooltip: str
    checked_at: datetime | None


class ConnectivityResponse(BaseModel):
    endpoints: dict[str, EndpointStatusResponse]
    all_connected: bool
    remote_system_connected: bool
