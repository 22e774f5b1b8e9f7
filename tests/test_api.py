"""Tests for the REST surface, driven in-process through httpx's ASGI transport."""

from datetime import timedelta

import httpx
import pytest

from meter_sync.config import Settings
from meter_sync.db.models import Meter, MeterReading, utcnow
from meter_sync.main import create_app
from meter_sync.monitor import LOCAL_DB, REMOTE_API, REMOTE_DB, ConnectivityMonitor


@pytest.fixture
async def monitor():
    monitor = ConnectivityMonitor(
        {
            LOCAL_DB: "http://local-db.test/health",
            REMOTE_DB: "http://remote-db.test/health",
            REMOTE_API: "http://remote-api.test/health",
        },
        transport=httpx.MockTransport(lambda request: httpx.Response(200)),
    )
    yield monitor
    await monitor.close()


@pytest.fixture
def make_app(delivery, monitor):
    def _make(gateway):
        return create_app(
            settings=Settings(monitor_enabled=False),
            gateway=gateway,
            delivery=delivery,
            monitor=monitor,
        )

    return _make


@pytest.fixture
def app(make_app, gateway):
    return make_app(gateway)


@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client


@pytest.fixture
async def degraded_client(make_app, degraded_gateway):
    app = make_app(degraded_gateway)
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client


class TestHealthEndpoints:
    async def test_liveness(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert "X-Request-ID" in response.headers

    async def test_store_health_ok(self, client):
        sync_db = await client.get("/api/health/sync-db")
        remote_db = await client.get("/api/health/remote-db")

        assert sync_db.status_code == 200
        assert sync_db.json()["database"] == "sync"
        assert sync_db.json()["timestamp"]
        assert remote_db.status_code == 200
        assert remote_db.json()["database"] == "remote"

    async def test_remote_store_down_is_503(self, degraded_client):
        response = await degraded_client.get("/api/health/remote-db")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "error"
        assert body["database"] == "remote"
        assert body["error"]

    async def test_unknown_route(self, client):
        response = await client.get("/api/nowhere")

        assert response.status_code == 404
        assert response.json() == {"error": "Not found"}


class TestTenantSyncEndpoint:
    """POST /api/local/tenant-sync and GET /api/local/tenant."""

    async def test_insert_then_update(self, client, add_remote_tenant):
        await add_remote_tenant(7)

        first = await client.post("/api/local/tenant-sync", json={"tenant_id": 7})
        second = await client.post("/api/local/tenant-sync", json={"tenant_id": 7})

        assert first.status_code == 200
        body = first.json()
        assert body["success"] is True
        assert body["message"] == "Tenant sync completed successfully"
        assert body["sync_result"]["inserted"] == 1
        assert body["sync_result"]["updated"] == 0
        assert body["tenant_data"]["name"] == "Acme Energy"
        assert "api_key" not in body["tenant_data"]

        assert second.json()["sync_result"]["inserted"] == 0
        assert second.json()["sync_result"]["updated"] == 1
        assert second.json()["tenant_data"] == body["tenant_data"]

    async def test_unknown_tenant_is_404(self, client):
        response = await client.post("/api/local/tenant-sync", json={"tenant_id": 99})

        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "error": "Tenant 99 not found in remote database",
        }

    @pytest.mark.parametrize("payload", [{}, {"tenant_id": None}])
    async def test_missing_tenant_id_is_400(self, client, payload):
        response = await client.post("/api/local/tenant-sync", json=payload)

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert response.json()["error"] == "tenant_id is required"

    async def test_non_integer_tenant_id_is_400(self, client):
        response = await client.post("/api/local/tenant-sync", json={"tenant_id": "abc"})

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert response.json()["error"].startswith("tenant_id:")

    async def test_remote_store_down_is_503(self, degraded_client):
        response = await degraded_client.post("/api/local/tenant-sync", json={"tenant_id": 7})

        assert response.status_code == 503
        assert response.json() == {
            "success": False,
            "error": "Remote database pool not available",
        }

    async def test_read_tenant(self, client, add_remote_tenant):
        missing = await client.get("/api/local/tenant")
        await add_remote_tenant(7)
        await client.post("/api/local/tenant-sync", json={"tenant_id": 7})

        found = await client.get("/api/local/tenant")
        other = await client.get("/api/local/tenant", params={"tenant_id": 8})

        assert missing.status_code == 404
        assert missing.json() == {"error": "No tenant found"}
        assert found.status_code == 200
        assert found.json()["tenant_id"] == 7
        assert "api_key" not in found.json()
        assert other.status_code == 404


class TestLocalProjections:
    async def test_active_meters_only(self, client, gateway):
        async with gateway.local_session() as session:
            session.add_all(
                [
                    Meter(meter_id=2, tenant_id=7, name="Main feed", active=True),
                    Meter(meter_id=1, tenant_id=7, name="Roof PV", active=True),
                    Meter(meter_id=3, tenant_id=7, name="Retired", active=False),
                ]
            )
            await session.commit()

        response = await client.get("/api/local/meters")

        assert response.status_code == 200
        assert [m["meter_id"] for m in response.json()] == [1, 2]

    async def test_recent_readings_newest_first(self, client, gateway, add_readings):
        ids = await add_readings(3)
        async with gateway.local_session() as session:
            session.add(
                MeterReading(tenant_id=7, meter_id=1, created_at=utcnow() - timedelta(days=3))
            )
            await session.commit()

        recent = await client.get("/api/local/readings", params={"hours": 1})
        week = await client.get("/api/local/readings", params={"hours": 24 * 7})

        assert [r["meter_reading_id"] for r in recent.json()] == list(reversed(ids))
        assert recent.json()[0]["sync_status"] == "idle"
        assert len(week.json()) == 4

    async def test_readings_hours_must_be_positive(self, client):
        response = await client.get("/api/local/readings", params={"hours": 0})

        assert response.status_code == 400
        assert response.json()["error"].startswith("hours:")

    async def test_sync_status(self, client, add_readings):
        await add_readings(4)

        response = await client.get("/api/local/sync-status")

        assert response.status_code == 200
        body = response.json()
        assert body["queue_size"] == 4
        assert body["is_connected"] is True
        assert body["last_sync_at"] is None
        assert body["sync_errors"] == []


class TestUploadEndpoints:
    async def test_trigger_runs_cycle(self, client, add_readings):
        await add_readings(3)

        response = await client.post(
            "/api/sync/meter-reading-upload/trigger", json={"tenant_id": 7}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["readings_count"] == 3
        assert body["delivered"] == 3
        assert body["failed"] == 0
        assert body["sync_operation_id"] is not None

    async def test_trigger_requires_tenant(self, client):
        response = await client.post("/api/sync/meter-reading-upload/trigger", json={})

        assert response.status_code == 400
        assert response.json() == {"error": "tenant_id is required"}

    async def test_trigger_while_running_is_409(self, app, client):
        app.state.uploader._running.add(7)

        response = await client.post(
            "/api/sync/meter-reading-upload/trigger", json={"tenant_id": 7}
        )

        assert response.status_code == 409
        assert "already in progress" in response.json()["error"]

    async def test_status_and_log(self, client, add_readings):
        await add_readings(2)
        await client.post("/api/sync/meter-reading-upload/trigger", json={"tenant_id": 7})

        status = await client.get("/api/sync/meter-reading-upload/status")
        log = await client.get("/api/sync/meter-reading-upload/log", params={"limit": 5})

        assert status.status_code == 200
        assert status.json()["is_running"] is False
        assert status.json()["last_upload_success"] is True
        assert status.json()["queue_size"] == 0
        assert status.json()["total_uploaded"] == 2
        assert status.json()["is_client_connected"] is True
        assert len(log.json()) == 1
        assert log.json()[0]["readings_count"] == 2
        assert log.json()[0]["operation_type"] == "upload"

    async def test_log_limit_bounded(self, client):
        response = await client.get("/api/sync/meter-reading-upload/log", params={"limit": 500})

        assert response.status_code == 400
        assert "error" in response.json()


class TestConnectivityEndpoints:
    async def test_snapshot_then_refresh(self, client):
        before = await client.get("/api/connectivity")
        refreshed = await client.post("/api/connectivity/refresh")

        assert before.json()["endpoints"][REMOTE_DB]["state"] == "checking"
        assert before.json()["all_connected"] is False
        assert refreshed.status_code == 200
        assert refreshed.json()["all_connected"] is True
        assert refreshed.json()["remote_system_connected"] is True
        assert refreshed.json()["endpoints"][LOCAL_DB]["label"] == "Local Database"
