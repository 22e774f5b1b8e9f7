"""Tests for the JSON log pipeline."""

import json
import logging

import pytest
import structlog

from meter_sync.logging import get_logger, set_request_id, setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    saved = {
        name: (logging.getLogger(name).handlers[:], logging.getLogger(name).propagate)
        for name in ("uvicorn", "uvicorn.error", "uvicorn.access")
    }
    root_handlers, root_level = root.handlers[:], root.level

    yield

    root.handlers[:] = root_handlers
    root.setLevel(root_level)
    for name, (handlers, propagate) in saved.items():
        logging.getLogger(name).handlers[:] = handlers
        logging.getLogger(name).propagate = propagate
    set_request_id(None)
    structlog.reset_defaults()


def _last_line(capsys) -> dict:
    return json.loads(capsys.readouterr().out.strip().splitlines()[-1])


class TestSetupLogging:
    """structlog and stdlib records end up as one JSON object per line."""

    def test_structlog_event(self, capsys, restore_logging):
        setup_logging("INFO")
        set_request_id("req-1")

        get_logger("meter_sync.test").info("tenant_synced", tenant_id=7)

        record = _last_line(capsys)
        assert record["event"] == "tenant_synced"
        assert record["tenant_id"] == 7
        assert record["request_id"] == "req-1"
        assert record["level"] == "info"
        assert record["logger"] == "meter_sync.test"
        assert record["timestamp"].endswith("Z")

    def test_stdlib_record_shares_format(self, capsys, restore_logging):
        setup_logging("INFO")

        logging.getLogger("uvicorn.error").warning("listener restarted")

        record = _last_line(capsys)
        assert record["event"] == "listener restarted"
        assert record["level"] == "warning"
        assert "request_id" not in record

    def test_level_filters_debug(self, capsys, restore_logging):
        setup_logging("WARNING")

        get_logger("meter_sync.test").info("upload_queue_empty")

        assert capsys.readouterr().out == ""
