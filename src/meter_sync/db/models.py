"""SQLAlchemy 2.0 ORM models for the local and remote stores."""

import enum
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from meter_sync.db.base import LocalBase, RemoteBase


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReadingStatus(str, enum.Enum):
    """Upload state tag carried by every reading."""

    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    DELIVERED = "delivered"
    FAILED = "failed"


class SyncOperation(str, enum.Enum):
    TENANT_SYNC = "tenant-sync"
    UPLOAD = "upload"


# =============================================================================
# Local store
# =============================================================================


class Tenant(LocalBase):
    """Cached projection of the remote tenant record.

    Kept current by tenant reconciliation; every mirrored field is
    overwritten on each sync. The row is never deleted locally.
    """

    __tablename__ = "tenant"

    tenant_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    street: Mapped[str | None] = mapped_column(String(255), nullable=True)
    street2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    zip: Mapped[str | None] = mapped_column(String(20), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Credential used when delivering readings to the remote service API
    api_key: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Local bookkeeping: 1 after the first sync, incremented by every upsert
    sync_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Tenant(tenant_id={self.tenant_id}, name={self.name!r})>"


class Meter(LocalBase):
    """A metering device assigned to the tenant. Read-only for this service."""

    __tablename__ = "meter"

    meter_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(Integer, nullable=False)
    device_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    port: Mapped[int | None] = mapped_column(Integer, nullable=True)
    meter_element_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    element: Mapped[str | None] = mapped_column(String(50), nullable=True)

    __table_args__ = (Index("ix_meter_tenant_id", "tenant_id"),)


class MeterReading(LocalBase):
    """One captured measurement event, always written locally first.

    Inserted by the capture path with is_synchronized=False and
    retry_count=0; mutated afterwards only by the upload cycle.
    """

    __tablename__ = "meter_reading"

    meter_reading_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(Integer, nullable=False)
    meter_id: Mapped[int] = mapped_column(Integer, nullable=False)
    meter_element_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Captured-at timestamp
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    # Measurements
    active_energy: Mapped[float | None] = mapped_column(Float, nullable=True)
    active_energy_export: Mapped[float | None] = mapped_column(Float, nullable=True)
    reactive_energy: Mapped[float | None] = mapped_column(Float, nullable=True)
    power: Mapped[float | None] = mapped_column(Float, nullable=True)
    current: Mapped[float | None] = mapped_column(Float, nullable=True)
    voltage_p_n: Mapped[float | None] = mapped_column(Float, nullable=True)
    power_factor: Mapped[float | None] = mapped_column(Float, nullable=True)
    frequency: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Upload queue state
    is_synchronized: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sync_status: Mapped[str] = mapped_column(
        String(20), default=ReadingStatus.IDLE.value, nullable=False
    )
    # Set when an upload cycle claims the reading, cleared when it records the outcome
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_meter_reading_queue", "is_synchronized", "created_at"),
        Index("ix_meter_reading_tenant_id", "tenant_id"),
    )

    def to_payload(self) -> dict:
        """Serialize for delivery to the remote service API."""
        return {
            "meter_reading_id": self.meter_reading_id,
            "tenant_id": self.tenant_id,
            "meter_id": self.meter_id,
            "meter_element_id": self.meter_element_id,
            "created_at": self.created_at.isoformat(),
            "active_energy": self.active_energy,
            "active_energy_export": self.active_energy_export,
            "reactive_energy": self.reactive_energy,
            "power": self.power,
            "current": self.current,
            "voltage_p_n": self.voltage_p_n,
            "power_factor": self.power_factor,
            "frequency": self.frequency,
        }


class SyncLog(LocalBase):
    """Append-only audit record of one tenant sync or upload batch."""

    __tablename__ = "sync_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    operation_type: Mapped[str] = mapped_column(String(20), nullable=False)
    tenant_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    batch_size: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Completion timestamp
    synced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_sync_log_synced_at", "synced_at"),
        Index("ix_sync_log_operation_synced_at", "operation_type", "synced_at"),
    )


# =============================================================================
# Remote store
# =============================================================================


class RemoteTenant(RemoteBase):
    """Authoritative tenant record in the central store."""

    __tablename__ = "tenant"

    tenant_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    street: Mapped[str | None] = mapped_column(String(255), nullable=True)
    street2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    zip: Mapped[str | None] = mapped_column(String(20), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    api_key: Mapped[str | None] = mapped_column(String(255), nullable=True)


# Fields copied verbatim from the remote record on every reconciliation
MIRRORED_TENANT_FIELDS = (
    "name",
    "url",
    "street",
    "street2",
    "city",
    "state",
    "zip",
    "country",
    "active",
    "api_key",
)
