"""
Tests for logging setup and retry helpers.
"""

import json
import logging
import sys
import time
from unittest.mock import Mock

import pytest
from google.auth.exceptions import TransportError
from googleapiclient.errors import HttpError

from bttk_mcp.utils.logging_config import JSONFormatter, setup_logging
from bttk_mcp.utils.retry import is_transient_error, retry_on_transient_error


def http_error(status: int) -> HttpError:
    return HttpError(Mock(status=status, reason="error"), b"{}")


def make_record(message: str = "hello %s", args=("world",), **attrs) -> logging.LogRecord:
    record = logging.LogRecord("bttk_mcp.test", logging.WARNING, __file__, 10, message, args, None)
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for the structured log formatter."""

    def test_fields(self):
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "WARNING"
        assert data["logger"] == "bttk_mcp.test"
        assert data["message"] == "hello world"
        assert data["line"] == 10
        assert "timestamp" in data

    def test_extra_data(self):
        record = make_record(extra_data={"tool": "gmail_search"})

        data = json.loads(JSONFormatter().format(record))

        assert data["tool"] == "gmail_search"

    def test_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = make_record(exc_info=sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        assert "ValueError: boom" in data["exception"]


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_console_only(self, restore_root_logger, tmp_path):
        setup_logging("debug", log_dir=tmp_path / "logs")

        assert restore_root_logger.level == logging.DEBUG
        assert len(restore_root_logger.handlers) == 1
        assert not (tmp_path / "logs").exists()

    def test_file_logging(self, restore_root_logger, tmp_path):
        log_dir = tmp_path / "logs"
        setup_logging("INFO", log_dir=log_dir, enable_file_logging=True)

        logging.getLogger("bttk_mcp.test").error("disk full")
        for handler in restore_root_logger.handlers:
            handler.flush()

        app_log = (log_dir / "app.log").read_text(encoding="utf-8")
        errors_log = (log_dir / "errors.log").read_text(encoding="utf-8")
        assert json.loads(app_log.splitlines()[-1])["message"] == "disk full"
        assert "disk full" in errors_log

    def test_discovery_cache_warnings_silenced(self, restore_root_logger):
        setup_logging("INFO")

        assert logging.getLogger("googleapiclient.discovery_cache").level == logging.ERROR


class TestIsTransientError:
    """Tests for is_transient_error."""

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_retryable_status(self, status):
        assert is_transient_error(http_error(status))

    @pytest.mark.parametrize("status", [400, 401, 403, 404])
    def test_client_errors(self, status):
        assert not is_transient_error(http_error(status))

    def test_transport_error(self):
        assert is_transient_error(TransportError("connection reset"))

    def test_other_errors(self):
        assert not is_transient_error(ValueError("bad"))


class TestRetry:
    """Tests for retry_on_transient_error."""

    @pytest.fixture(autouse=True)
    def no_sleep(self, monkeypatch):
        monkeypatch.setattr(time, "sleep", lambda seconds: None)

    def test_retries_until_success(self):
        calls = []

        @retry_on_transient_error(max_attempts=3, initial_wait=0, max_wait=0)
        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise http_error(503)
            return "ok"

        assert flaky() == "ok"
        assert len(calls) == 3

    def test_gives_up_and_reraises(self):
        calls = []

        @retry_on_transient_error(max_attempts=2, initial_wait=0, max_wait=0)
        def always_down():
            calls.append(1)
            raise http_error(500)

        with pytest.raises(HttpError):
            always_down()
        assert len(calls) == 2

    def test_permanent_error_not_retried(self):
        calls = []

        @retry_on_transient_error(max_attempts=3, initial_wait=0, max_wait=0)
        def forbidden():
            calls.append(1)
            raise http_error(403)

        with pytest.raises(HttpError):
            forbidden()
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_async_function(self):
        calls = []

        @retry_on_transient_error(max_attempts=3, initial_wait=0, max_wait=0)
        async def flaky():
            calls.append(1)
            if len(calls) < 2:
                raise TransportError("reset")
            return "ok"

        assert await flaky() == "ok"
        assert len(calls) == 2

    def test_custom_predicate(self):
        calls = []

        @retry_on_transient_error(max_attempts=3, initial_wait=0, max_wait=0,
                                  predicate=lambda e: isinstance(e, KeyError))
        def lookup():
            calls.append(1)
            raise KeyError("missing")

        with pytest.raises(KeyError):
            lookup()
        assert len(calls) == 3
