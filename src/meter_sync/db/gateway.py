"""Dual store gateway: one bounded async connection pool per store.

Every query against the local or remote store goes through the session
factory of that store's engine. Connection-level failures are translated
into StoreUnavailableError subclasses; other driver failures become
PersistenceError.
"""

from __future__ import annotations

import asyncio
import enum
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import text
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from meter_sync.config import Settings
from meter_sync.db.base import LocalBase, RemoteBase
from meter_sync.errors import (
    LocalStoreUnavailableError,
    PersistenceError,
    RemoteStoreUnavailableError,
    StoreUnavailableError,
    SyncError,
)
from meter_sync.logging import get_logger, mask_url

logger = get_logger(__name__)

_CONNECTION_ERRORS = (
    OperationalError,
    InterfaceError,
    PoolTimeoutError,
    asyncio.TimeoutError,
    OSError,
)


class Store(str, enum.Enum):
    LOCAL = "local"
    REMOTE = "remote"


_UNAVAILABLE = {
    Store.LOCAL: LocalStoreUnavailableError,
    Store.REMOTE: RemoteStoreUnavailableError,
}


@dataclass
class HealthResult:
    """Outcome of a trivial round-trip query against one store."""

    ok: bool
    timestamp: datetime | str | None = None
    error: str | None = None


class StoreGateway:
    """Owns the local and remote engines and their lifecycle.

    The remote store being unreachable at startup is tolerated (degraded
    mode). The local store being unreachable is logged as an error and
    every later local operation fails with LocalStoreUnavailableError.
    """

    def __init__(
        self,
        local_url: str,
        remote_url: str,
        pool_size: int = 5,
        pool_timeout: float = 5.0,
        connect_timeout: float = 5.0,
        pool_recycle: int = 10,
    ) -> None:
        self.urls = {Store.LOCAL: local_url, Store.REMOTE: remote_url}
        self.pool_size = pool_size
        self.pool_timeout = pool_timeout
        self.connect_timeout = connect_timeout
        self.pool_recycle = pool_recycle

        self._engines: dict[Store, AsyncEngine] = {}
        self._sessions: dict[Store, async_sessionmaker[AsyncSession]] = {}
        self.remote_degraded = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "StoreGateway":
        return cls(
            local_url=settings.local_database_url,
            remote_url=settings.remote_database_url,
            pool_size=settings.pool_size,
            pool_timeout=settings.pool_timeout,
            connect_timeout=settings.connect_timeout,
            pool_recycle=settings.pool_recycle,
        )

    @property
    def is_initialized(self) -> bool:
        return bool(self._engines)

    def _create_engine(self, url: str) -> AsyncEngine:
        kwargs: dict = {"echo": False, "pool_pre_ping": True}
        if url.startswith("sqlite"):
            # sqlite3 "timeout" is the busy-wait on a locked database file
            kwargs["connect_args"] = {"timeout": self.connect_timeout}
        else:
            kwargs.update(
                pool_size=self.pool_size,
                max_overflow=0,
                pool_timeout=self.pool_timeout,
                pool_recycle=self.pool_recycle,
                connect_args={"timeout": self.connect_timeout},
            )
        return create_async_engine(url, **kwargs)

    async def initialize(self) -> None:
        """Create both pools and probe each store once.

        Safe to call more than once; later calls are no-ops.
        """
        if self.is_initialized:
            return

        for store in Store:
            url = self.urls[store]
            logger.info("store_pool_initializing", store=store.value, url=mask_url(url))
            engine = self._create_engine(url)
            self._engines[store] = engine
            self._sessions[store] = async_sessionmaker(
                bind=engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )

        local = await self.health_check(Store.LOCAL)
        if local.ok:
            logger.info("local_store_connected", timestamp=str(local.timestamp))
        else:
            logger.error("local_store_unreachable", error=local.error)

        remote = await self.health_check(Store.REMOTE)
        if remote.ok:
            logger.info("remote_store_connected", timestamp=str(remote.timestamp))
        else:
            self.remote_degraded = True
            logger.warning("remote_store_unreachable_degraded_mode", error=remote.error)

    async def shutdown(self) -> None:
        """Drain and close both pools. Idempotent."""
        if not self._engines:
            return
        engines, self._engines = self._engines, {}
        self._sessions = {}
        for store, engine in engines.items():
            await engine.dispose()
            logger.info("store_pool_closed", store=store.value)

    def engine(self, store: Store) -> AsyncEngine:
        try:
            return self._engines[store]
        except KeyError:
            raise _UNAVAILABLE[store](f"{store.value} store pool is not initialized") from None

    def dialect_name(self, store: Store) -> str:
        return self.engine(store).dialect.name

    @asynccontextmanager
    async def session(self, store: Store) -> AsyncIterator[AsyncSession]:
        """Open a session on the store's pool, translating driver failures."""
        factory = self._sessions.get(store)
        if factory is None:
            raise _UNAVAILABLE[store](f"{store.value} store pool is not initialized")

        try:
            async with factory() as session:
                yield session
        except SyncError:
            raise
        except _CONNECTION_ERRORS as e:
            logger.warning("store_connection_failed", store=store.value, error=str(e))
            raise _UNAVAILABLE[store]() from e
        except SQLAlchemyError as e:
            logger.error("store_query_failed", store=store.value, error=str(e))
            raise PersistenceError(f"{store.value} store operation failed") from e

    def local_session(self):
        return self.session(Store.LOCAL)

    def remote_session(self):
        return self.session(Store.REMOTE)

    async def health_check(self, store: Store) -> HealthResult:
        """Issue a trivial round-trip query. Never raises."""
        try:
            async with self.session(store) as session:
                result = await asyncio.wait_for(
                    session.execute(text("SELECT CURRENT_TIMESTAMP")),
                    timeout=self.connect_timeout + self.pool_timeout,
                )
                return HealthResult(ok=True, timestamp=result.scalar())
        except StoreUnavailableError as e:
            cause = e.__cause__ or e
            return HealthResult(ok=False, error=str(cause))
        except Exception as e:
            return HealthResult(ok=False, error=str(e))

    async def create_local_schema(self) -> None:
        """Create local tables directly (development and tests; use Alembic otherwise)."""
        async with self.engine(Store.LOCAL).begin() as conn:
            await conn.run_sync(LocalBase.metadata.create_all)

    async def create_remote_schema(self) -> None:
        async with self.engine(Store.REMOTE).begin() as conn:
            await conn.run_sync(RemoteBase.metadata.create_all)
