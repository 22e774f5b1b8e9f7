"""Shared fixtures: two SQLite-backed stores and a mocked remote service API."""

from datetime import timedelta

import httpx
import pytest

from meter_sync.db.gateway import StoreGateway
from meter_sync.db.models import MeterReading, RemoteTenant, Tenant, utcnow
from meter_sync.sync.delivery import ReadingDeliveryClient

REMOTE_API_URL = "http://remote-api.test"


def sqlite_url(path) -> str:
    return f"sqlite+aiosqlite:///{path}"


@pytest.fixture
async def gateway(tmp_path):
    """Initialized gateway over two independent SQLite files with schemas created."""
    gw = StoreGateway(
        local_url=sqlite_url(tmp_path / "local.db"),
        remote_url=sqlite_url(tmp_path / "remote.db"),
    )
    await gw.initialize()
    await gw.create_local_schema()
    await gw.create_remote_schema()
    yield gw
    await gw.shutdown()


@pytest.fixture
async def degraded_gateway(tmp_path):
    """Gateway whose remote store cannot be opened (missing directory)."""
    gw = StoreGateway(
        local_url=sqlite_url(tmp_path / "local.db"),
        remote_url=sqlite_url(tmp_path / "missing" / "remote.db"),
    )
    await gw.initialize()
    await gw.create_local_schema()
    yield gw
    await gw.shutdown()


@pytest.fixture
def add_remote_tenant(gateway):
    """Insert or replace the authoritative tenant record in the remote store."""

    async def _add(tenant_id: int = 7, **fields) -> None:
        values = {
            "name": "Acme Energy",
            "url": "https://acme.example",
            "street": "1 Grid Road",
            "city": "Springfield",
            "state": "IL",
            "zip": "62701",
            "country": "US",
            "active": True,
            "api_key": "secret-key",
        }
        values.update(fields)
        async with gateway.remote_session() as session:
            existing = await session.get(RemoteTenant, tenant_id)
            if existing is None:
                session.add(RemoteTenant(tenant_id=tenant_id, **values))
            else:
                for key, value in values.items():
                    setattr(existing, key, value)
            await session.commit()

    return _add


@pytest.fixture
def add_local_tenant(gateway):
    async def _add(tenant_id: int = 7, api_key: str | None = "secret-key") -> None:
        async with gateway.local_session() as session:
            session.add(
                Tenant(tenant_id=tenant_id, name="Acme Energy", active=True, api_key=api_key)
            )
            await session.commit()

    return _add


@pytest.fixture
def add_readings(gateway):
    """Queue readings for a tenant, oldest first, one second apart.

    Returns the new reading ids in captured-at order.
    """

    async def _add(count: int, tenant_id: int = 7, meter_id: int = 1, **fields) -> list[int]:
        base = utcnow() - timedelta(minutes=30)
        readings = [
            MeterReading(
                tenant_id=tenant_id,
                meter_id=meter_id,
                created_at=base + timedelta(seconds=i),
                active_energy=100.0 + i,
                power=1.5,
                **fields,
            )
            for i in range(count)
        ]
        async with gateway.local_session() as session:
            session.add_all(readings)
            await session.commit()
            return [r.meter_reading_id for r in readings]

    return _add


@pytest.fixture
async def make_delivery():
    """Build delivery clients backed by an httpx.MockTransport handler."""
    clients: list[ReadingDeliveryClient] = []

    def _make(handler) -> ReadingDeliveryClient:
        client = ReadingDeliveryClient(
            base_url=REMOTE_API_URL,
            transport=httpx.MockTransport(handler),
        )
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.close()


@pytest.fixture
def delivery(make_delivery):
    """Delivery client whose remote service accepts every request."""
    return make_delivery(lambda request: httpx.Response(200, json={"ok": True}))
