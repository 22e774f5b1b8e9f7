"""Tests for the meter-sync command line interface."""

import pytest
from typer.testing import CliRunner

from meter_sync import __version__
from meter_sync.cli import app
from meter_sync.config import get_settings

runner = CliRunner()


@pytest.fixture(autouse=True)
def keep_test_logging(monkeypatch):
    """Leave pytest's log handlers alone; the CLI would bind them to the runner's stdout."""
    monkeypatch.setattr("meter_sync.cli.setup_logging", lambda level: None)


@pytest.fixture
def sqlite_env(tmp_path, monkeypatch):
    """Point both stores at empty SQLite files (no schema)."""
    monkeypatch.setenv("METER_SYNC_LOCAL_DB_URL", f"sqlite+aiosqlite:///{tmp_path / 'local.db'}")
    monkeypatch.setenv("METER_SYNC_REMOTE_DB_URL", f"sqlite+aiosqlite:///{tmp_path / 'remote.db'}")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestCli:
    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_status_without_schema_fails_cleanly(self, sqlite_env):
        """A store error is reported as a one-line message with exit code 1."""
        result = runner.invoke(app, ["status"])

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_tenant_sync_requires_integer_id(self, sqlite_env):
        result = runner.invoke(app, ["tenant-sync", "abc"])

        assert result.exit_code != 0
