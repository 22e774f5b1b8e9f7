"""Tests for settings loading and validation."""

import pytest
from pydantic import ValidationError

from meter_sync.config import Settings, get_settings
from meter_sync.logging import mask_url
from meter_sync.monitor import LOCAL_DB, REMOTE_API, REMOTE_DB, ConnectivityMonitor


class TestSettings:
    def test_defaults(self):
        settings = Settings()

        assert settings.host == "127.0.0.1"
        assert settings.port == 3002
        assert settings.pool_size == 5
        assert settings.upload_batch_size == 100
        assert settings.upload_max_retries is None
        assert settings.monitor_interval == 60.0
        assert settings.monitor_timeout == 5.0

    def test_database_url_built_from_parts(self):
        settings = Settings(
            local_db_host="db.local",
            local_db_port=5433,
            local_db_name="meters",
            local_db_user="edge",
            local_db_password="pw",
        )

        assert settings.local_database_url == "postgresql+asyncpg://edge:pw@db.local:5433/meters"

    def test_url_override_wins(self):
        settings = Settings(remote_db_url="sqlite+aiosqlite:///remote.db")

        assert settings.remote_database_url == "sqlite+aiosqlite:///remote.db"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("METER_SYNC_LOG_LEVEL", "debug")
        monkeypatch.setenv("METER_SYNC_UPLOAD_MAX_RETRIES", "5")

        settings = Settings()

        assert settings.log_level == "DEBUG"
        assert settings.upload_max_retries == 5

    @pytest.mark.parametrize(
        "overrides",
        [
            {"monitor_interval": 0},
            {"monitor_timeout": -1},
            {"upload_batch_size": 0},
            {"upload_max_retries": 0},
            {"log_level": "LOUD"},
        ],
    )
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ValidationError):
            Settings(**overrides)

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()

        assert get_settings() is get_settings()

        get_settings.cache_clear()


class TestMaskUrl:
    def test_password_masked(self):
        assert (
            mask_url("postgresql+asyncpg://edge:secret@db:5432/meters")
            == "postgresql+asyncpg://edge:***@db:5432/meters"
        )

    def test_url_without_credentials_unchanged(self):
        assert mask_url("sqlite+aiosqlite:///local.db") == "sqlite+aiosqlite:///local.db"


class TestMonitorTargets:
    """Connectivity targets follow the configured listener unless overridden."""

    async def test_defaults_follow_listener_port(self):
        monitor = ConnectivityMonitor.from_settings(Settings(port=4000))

        assert monitor.endpoints[LOCAL_DB].url == "http://127.0.0.1:4000/api/health/sync-db"
        assert monitor.endpoints[REMOTE_DB].url == "http://127.0.0.1:4000/api/health/remote-db"
        assert monitor.endpoints[REMOTE_API].url == "http://127.0.0.1:4000/api/local/sync-status"
        await monitor.close()

    async def test_wildcard_host_monitored_on_loopback(self):
        settings = Settings(host="0.0.0.0", port=8080)
        monitor = ConnectivityMonitor.from_settings(settings)

        assert settings.service_url == "http://127.0.0.1:8080"
        assert monitor.endpoints[LOCAL_DB].url.startswith("http://127.0.0.1:8080/")
        await monitor.close()

    async def test_explicit_target_wins(self):
        monitor = ConnectivityMonitor.from_settings(
            Settings(port=4000, monitor_remote_api_url="http://api.example.test/health")
        )

        assert monitor.endpoints[REMOTE_API].url == "http://api.example.test/health"
        assert monitor.endpoints[LOCAL_DB].url.startswith("http://127.0.0.1:4000/")
        await monitor.close()
