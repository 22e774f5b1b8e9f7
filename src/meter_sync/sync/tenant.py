"""Tenant reconciliation: pull one tenant from the remote store, upsert locally.

The remote store is authoritative. Every mirrored field is overwritten on
each sync (last remote write wins, no merge). Whether the local row was
inserted or updated comes from the upsert's own RETURNING clause, never
from a separate existence check.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite

from meter_sync.db.gateway import Store, StoreGateway
from meter_sync.db.models import (
    MIRRORED_TENANT_FIELDS,
    RemoteTenant,
    SyncLog,
    SyncOperation,
    Tenant,
    utcnow,
)
from meter_sync.errors import (
    LocalStoreUnavailableError,
    MissingTenantIdError,
    PersistenceError,
    RemoteStoreUnavailableError,
    SyncError,
    TenantNotFoundError,
)
from meter_sync.logging import get_logger, log_tenant_synced

logger = get_logger(__name__)

# Fields safe to hand back to callers (no credential, no bookkeeping)
PUBLIC_TENANT_FIELDS = ("tenant_id",) + tuple(f for f in MIRRORED_TENANT_FIELDS if f != "api_key")

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass
class TenantSyncResult:
    """Outcome of one successful reconciliation."""

    tenant: dict[str, Any]
    inserted: bool
    timestamp: datetime

    @property
    def updated(self) -> bool:
        return not self.inserted

    def public_tenant(self) -> dict[str, Any]:
        return public_tenant(self.tenant)


def public_tenant(row: dict[str, Any]) -> dict[str, Any]:
    return {field: row.get(field) for field in PUBLIC_TENANT_FIELDS}


async def sync_tenant(gateway: StoreGateway, tenant_id: int | None) -> TenantSyncResult:
    """Mirror one tenant from the remote store into the local store.

    Exactly one attempt per call; retrying is left to the caller.

    Raises:
        MissingTenantIdError: tenant_id not supplied
        RemoteStoreUnavailableError: remote store cannot be reached
        TenantNotFoundError: the remote store has no such tenant
        LocalStoreUnavailableError / PersistenceError: the local upsert failed
    """
    if not tenant_id:
        raise MissingTenantIdError()

    log = logger.bind(tenant_id=tenant_id)
    log.info("tenant_sync_started")

    try:
        async with gateway.remote_session() as remote:
            result = await remote.execute(
                select(RemoteTenant).where(RemoteTenant.tenant_id == tenant_id)
            )
            remote_tenant = result.scalar_one_or_none()
    except RemoteStoreUnavailableError as e:
        log.warning("tenant_sync_remote_unavailable", error=str(e))
        await _record_failure(gateway, tenant_id, batch_size=0, error=str(e))
        raise

    if remote_tenant is None:
        log.info("tenant_not_found_remotely")
        raise TenantNotFoundError(tenant_id)

    values = {field: getattr(remote_tenant, field) for field in MIRRORED_TENANT_FIELDS}
    now = utcnow()

    try:
        async with gateway.local_session() as local:
            insert = _insert_for(gateway.dialect_name(Store.LOCAL))
            table = Tenant.__table__
            stmt = insert(table).values(
                tenant_id=remote_tenant.tenant_id,
                sync_count=1,
                last_synced_at=now,
                **values,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.tenant_id],
                set_={
                    **{field: stmt.excluded[field] for field in MIRRORED_TENANT_FIELDS},
                    "sync_count": table.c.sync_count + 1,
                    "last_synced_at": stmt.excluded.last_synced_at,
                },
            ).returning(*table.c)

            row = dict((await local.execute(stmt)).mappings().one())
            local.add(
                SyncLog(
                    operation_type=SyncOperation.TENANT_SYNC.value,
                    tenant_id=tenant_id,
                    batch_size=1,
                    success=True,
                    synced_at=now,
                )
            )
            await local.commit()
    except (LocalStoreUnavailableError, PersistenceError) as e:
        log.error("tenant_sync_local_write_failed", error=str(e))
        await _record_failure(gateway, tenant_id, batch_size=1, error=str(e))
        raise

    inserted = row["sync_count"] == 1
    log_tenant_synced(log, tenant_id, inserted)
    return TenantSyncResult(tenant=row, inserted=inserted, timestamp=now)


async def get_local_tenant(
    gateway: StoreGateway, tenant_id: int | None = None
) -> dict[str, Any] | None:
    """Return the mirrored tenant row (the first one when no id is given)."""
    query = select(Tenant)
    if tenant_id is not None:
        query = query.where(Tenant.tenant_id == tenant_id)
    query = query.order_by(Tenant.tenant_id).limit(1)

    async with gateway.local_session() as local:
        tenant = (await local.execute(query)).scalar_one_or_none()

    if tenant is None:
        return None
    return {field: getattr(tenant, field) for field in PUBLIC_TENANT_FIELDS}


def _insert_for(dialect_name: str):
    try:
        return _INSERT_BY_DIALECT[dialect_name]
    except KeyError:
        raise PersistenceError(f"Upsert not supported for dialect {dialect_name}") from None


async def _record_failure(
    gateway: StoreGateway, tenant_id: int, batch_size: int, error: str
) -> None:
    """Append a failed tenant-sync entry; a local outage is only logged."""
    try:
        async with gateway.local_session() as local:
            local.add(
                SyncLog(
                    operation_type=SyncOperation.TENANT_SYNC.value,
                    tenant_id=tenant_id,
                    batch_size=batch_size,
                    success=False,
                    error_message=error,
                    synced_at=utcnow(),
                )
            )
            await local.commit()
    except SyncError as e:
        logger.error("sync_log_write_failed", tenant_id=tenant_id, error=str(e))
