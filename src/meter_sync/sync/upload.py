"""Reading upload queue: drain unsynchronized readings to the remote service.

Readings are captured locally with is_synchronized=False. One upload cycle
atomically claims a bounded batch (oldest first), attempts delivery of each
reading, then records every outcome and exactly one SyncLog entry in a single local
transaction. Readings are never deleted, whatever their retry count.
"""

from dataclasses import dataclass, field
from datetime import timedelta

from sqlalchemy import and_, or_, select, update

from meter_sync.db.gateway import StoreGateway
from meter_sync.db.models import (
    MeterReading,
    ReadingStatus,
    SyncLog,
    SyncOperation,
    Tenant,
    utcnow,
)
from meter_sync.errors import UploadInProgressError
from meter_sync.logging import get_logger, log_upload_cycle
from meter_sync.sync.delivery import DeliveryResult, ReadingDeliveryClient

logger = get_logger(__name__)

# Individual failures listed in the aggregate batch error message
MAX_ERRORS_IN_MESSAGE = 10


@dataclass
class UploadCycleResult:
    """Outcome of one upload cycle."""

    tenant_id: int
    delivered: list[int] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)
    sync_log_id: int | None = None

    @property
    def attempted(self) -> int:
        return len(self.delivered) + len(self.failed)

    @property
    def success(self) -> bool:
        return not self.failed

    @property
    def error_message(self) -> str | None:
        if not self.failed:
            return None
        details = "; ".join(
            f"reading {reading_id}: {error}"
            for reading_id, error in list(self.failed.items())[:MAX_ERRORS_IN_MESSAGE]
        )
        if len(self.failed) > MAX_ERRORS_IN_MESSAGE:
            details += "; ..."
        return f"{len(self.failed)} of {self.attempted} readings failed to upload: {details}"


class ReadingUploader:
    """Runs upload cycles, at most one in flight per tenant.

    A second trigger for a tenant whose cycle is still running in this
    process is rejected with UploadInProgressError rather than queued.
    Cycles in other processes are kept apart by the store-level claim.
    """

    def __init__(
        self,
        gateway: StoreGateway,
        delivery: ReadingDeliveryClient,
        batch_size: int = 100,
        max_retries: int | None = None,
        claim_timeout: float = 300.0,
    ) -> None:
        """Initialize the uploader.

        Args:
            gateway: Store gateway (local store holds the queue)
            delivery: Client for the remote service API
            batch_size: Maximum readings attempted per cycle
            max_retries: Retry ceiling; readings at or above it are no longer
                selected (but kept). None means retry forever.
            claim_timeout: Seconds after which an in-flight claim is treated as
                abandoned and the reading becomes claimable again
        """
        self.gateway = gateway
        self.delivery = delivery
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.claim_timeout = claim_timeout
        self._running: set[int] = set()

    def is_running(self, tenant_id: int | None = None) -> bool:
        """Whether a cycle is in flight for the tenant (or for any tenant)."""
        if tenant_id is None:
            return bool(self._running)
        return tenant_id in self._running

    async def run_cycle(self, tenant_id: int) -> UploadCycleResult:
        """Run one upload cycle for a tenant.

        Raises:
            UploadInProgressError: a cycle for this tenant is already running
            LocalStoreUnavailableError / PersistenceError: queue access failed
        """
        if tenant_id in self._running:
            raise UploadInProgressError(tenant_id)

        self._running.add(tenant_id)
        try:
            return await self._run_cycle(tenant_id)
        finally:
            self._running.discard(tenant_id)

    async def _run_cycle(self, tenant_id: int) -> UploadCycleResult:
        log = logger.bind(tenant_id=tenant_id)
        result = UploadCycleResult(tenant_id=tenant_id)

        readings, api_key = await self._claim_batch(tenant_id)
        if not readings:
            log.debug("upload_queue_empty")
            return result

        log.info("upload_cycle_started", batch_size=len(readings))

        for reading in readings:
            try:
                outcome = await self.delivery.deliver(reading, api_key=api_key)
            except Exception as e:
                log.exception("reading_delivery_crashed", meter_reading_id=reading.meter_reading_id)
                outcome = DeliveryResult(
                    False, reading.meter_reading_id, error=f"Unexpected error: {e}"
                )
            if outcome.success:
                result.delivered.append(reading.meter_reading_id)
            else:
                result.failed[reading.meter_reading_id] = outcome.error or "Unknown error"
                log.warning(
                    "reading_upload_failed",
                    meter_reading_id=reading.meter_reading_id,
                    error=outcome.error,
                    retry_count=reading.retry_count + 1,
                )

        result.sync_log_id = await self._record_outcome(result)
        log_upload_cycle(
            log,
            tenant_id,
            attempted=result.attempted,
            delivered=len(result.delivered),
            failed=len(result.failed),
        )
        return result

    async def _claim_batch(self, tenant_id: int) -> tuple[list[MeterReading], str | None]:
        """Atomically tag the oldest claimable readings in-flight and return them.

        The claim is one conditional UPDATE ... RETURNING, so two cycles for
        the same tenant (in this process or another) never receive the same
        reading. A reading left in-flight by a cycle that died is claimable
        again once its claim is older than claim_timeout.
        """
        now = utcnow()
        table = MeterReading.__table__
        claimable = and_(
            table.c.tenant_id == tenant_id,
            table.c.is_synchronized.is_(False),
            or_(
                table.c.sync_status != ReadingStatus.IN_FLIGHT.value,
                table.c.claimed_at.is_(None),
                table.c.claimed_at < now - timedelta(seconds=self.claim_timeout),
            ),
        )
        if self.max_retries is not None:
            claimable = and_(claimable, table.c.retry_count < self.max_retries)

        oldest = (
            select(table.c.meter_reading_id)
            .where(claimable)
            .order_by(table.c.created_at.asc(), table.c.meter_reading_id.asc())
            .limit(self.batch_size)
            .correlate(None)
        )
        claim = (
            update(table)
            .where(table.c.meter_reading_id.in_(oldest), claimable)
            .values(sync_status=ReadingStatus.IN_FLIGHT.value, claimed_at=now)
            .returning(table.c.meter_reading_id)
        )

        async with self.gateway.local_session() as session:
            claimed = list((await session.execute(claim)).scalars().all())
            if not claimed:
                await session.commit()
                return [], None

            readings = list(
                (
                    await session.execute(
                        select(MeterReading)
                        .where(MeterReading.meter_reading_id.in_(claimed))
                        .order_by(
                            MeterReading.created_at.asc(), MeterReading.meter_reading_id.asc()
                        )
                    )
                )
                .scalars()
                .all()
            )
            api_key = (
                await session.execute(select(Tenant.api_key).where(Tenant.tenant_id == tenant_id))
            ).scalar_one_or_none()
            await session.commit()

        return readings, api_key

    async def _record_outcome(self, result: UploadCycleResult) -> int:
        """Apply per-reading outcomes and append the batch SyncLog entry atomically."""
        async with self.gateway.local_session() as session:
            if result.delivered:
                await session.execute(
                    update(MeterReading)
                    .where(MeterReading.meter_reading_id.in_(result.delivered))
                    .values(
                        is_synchronized=True,
                        sync_status=ReadingStatus.DELIVERED.value,
                        claimed_at=None,
                    )
                )
            if result.failed:
                await session.execute(
                    update(MeterReading)
                    .where(MeterReading.meter_reading_id.in_(list(result.failed)))
                    .values(
                        retry_count=MeterReading.retry_count + 1,
                        sync_status=ReadingStatus.FAILED.value,
                        claimed_at=None,
                    )
                )

            entry = SyncLog(
                operation_type=SyncOperation.UPLOAD.value,
                tenant_id=result.tenant_id,
                batch_size=result.attempted,
                success=result.success,
                error_message=result.error_message,
                synced_at=utcnow(),
            )
            session.add(entry)
            await session.flush()
            await session.commit()
            return entry.id
