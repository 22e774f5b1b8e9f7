"""Database module exports."""

from meter_sync.db.base import LocalBase, RemoteBase
from meter_sync.db.gateway import HealthResult, Store, StoreGateway
from meter_sync.db.models import (
    Meter,
    MeterReading,
    ReadingStatus,
    RemoteTenant,
    SyncLog,
    SyncOperation,
    Tenant,
)

__all__ = [
    "HealthResult",
    "LocalBase",
    "Meter",
    "MeterReading",
    "ReadingStatus",
    "RemoteBase",
    "RemoteTenant",
    "Store",
    "StoreGateway",
    "SyncLog",
    "SyncOperation",
    "Tenant",
]
