"""
Tests for tabspine.core.logging.

Tests verify:
- Credentials are masked before rendering
- Nested LogContext scopes restore outer values
- Settings-driven configuration
"""

import json

import pytest
import structlog
from structlog.contextvars import clear_contextvars, get_contextvars

from tabspine.core.logging import (
    REDACTED,
    LogContext,
    _redact_credentials,
    configure_from_settings,
    configure_logging,
    get_logger,
)
from tabspine.core.settings import TabspineSettings


@pytest.fixture(autouse=True)
def _reset_structlog():
    clear_contextvars()
    yield
    clear_contextvars()
    structlog.reset_defaults()


class TestRedaction:
    def test_secret_keys_masked(self):
        event = {"event": "transport.auth_refresh", "token": "ya29.x", "api_key": "k"}
        assert _redact_credentials(None, "info", event) == {
            "event": "transport.auth_refresh",
            "token": REDACTED,
            "api_key": REDACTED,
        }

    def test_none_left_alone(self):
        event = {"event": "x", "token": None, "table": "Orders"}
        assert _redact_credentials(None, "info", event)["token"] is None

    def test_rendered_json_is_masked(self, capsys):
        configure_logging(level="INFO", json_format=True, add_timestamp=False)
        get_logger("tabspine.test").info("connection.opened", token="secret", table="Orders")
        line = json.loads(capsys.readouterr().err.strip())
        assert line["token"] == REDACTED
        assert line["table"] == "Orders"
        assert line["service"] == "tabspine"
        assert line["logger_name"] == "tabspine.test"


class TestGetLogger:
    def test_module_logger_without_configuration(self, capsys):
        get_logger("tabspine.core.repository").info("repository.created", table="Orders")
        captured = capsys.readouterr()
        assert "repository.created" in captured.out + captured.err


class TestLevels:
    def test_debug_suppressed_at_info(self, capsys):
        configure_logging(level="INFO", json_format=True)
        log = get_logger("tabspine.test")
        log.debug("hidden")
        log.info("shown")
        lines = capsys.readouterr().err.strip().splitlines()
        assert [json.loads(line)["event"] for line in lines] == ["shown"]

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            configure_logging(level="LOUD")


class TestLogContext:
    def test_binds_and_clears(self):
        with LogContext(migration_version=1):
            assert get_contextvars() == {"migration_version": 1}
        assert get_contextvars() == {}

    def test_nested_restores_outer(self):
        with LogContext(table="Orders"):
            with LogContext(table="Items"):
                assert get_contextvars()["table"] == "Items"
            assert get_contextvars()["table"] == "Orders"

    @pytest.mark.asyncio
    async def test_async(self):
        async with LogContext(migration_version=2):
            assert get_contextvars()["migration_version"] == 2
        assert "migration_version" not in get_contextvars()


class TestFromSettings:
    def test_json_format(self, capsys):
        settings = TabspineSettings(_env_file=None, log_level="WARNING", log_format="json")
        configure_from_settings(settings)
        log = get_logger("tabspine.test")
        log.info("quiet")
        log.warning("loud")
        lines = capsys.readouterr().err.strip().splitlines()
        assert [json.loads(line)["event"] for line in lines] == ["loud"]
