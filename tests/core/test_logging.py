"""Tests for structured logging configuration and context binding."""

from __future__ import annotations

import io
import json

import pytest
import structlog
import structlog.testing

from syncspine.core.errors import ConfigError
from syncspine.core.logging import LogContext, ServiceMetadata, configure_logging, ecs_field_names, get_logger


class TestLogContext:
    def test_scoped_binding(self):
        with LogContext(fetch_id="f1"):
            assert structlog.contextvars.get_contextvars() == {"fetch_id": "f1"}
        assert structlog.contextvars.get_contextvars() == {}

    def test_nested_scope_restores_outer_value(self):
        with LogContext(fetch_id="f1", table="accounts"):
            with LogContext(table="instances"):
                assert structlog.contextvars.get_contextvars() == {"fetch_id": "f1", "table": "instances"}
            assert structlog.contextvars.get_contextvars()["table"] == "accounts"

    @pytest.mark.asyncio
    async def test_async_scope(self):
        async with LogContext(fetch_id="f3"):
            assert structlog.contextvars.get_contextvars()["fetch_id"] == "f3"
        assert structlog.contextvars.get_contextvars() == {}


class TestProcessors:
    def test_ecs_field_names(self):
        event = ecs_field_names(None, "info", {"timestamp": "t", "level": "info", "logger": "x.y", "event": "e"})

        assert event == {"@timestamp": "t", "log.level": "info", "log.logger": "x.y", "event": "e"}

    def test_service_metadata(self):
        event = ServiceMetadata("syncspine-test", "1.2.3")(None, "info", {})

        assert event == {"service.name": "syncspine-test", "service.version": "1.2.3"}

    def test_service_metadata_does_not_override(self):
        event = ServiceMetadata("syncspine")(None, "info", {"service.name": "custom"})

        assert event == {"service.name": "custom"}


class TestConfigure:
    def test_json_lines_written_to_stream(self):
        stream = io.StringIO()
        configure_logging(level="INFO", json_format=True, service="syncspine-test", stream=stream)

        with LogContext(fetch_id="f9"):
            get_logger("tests.logging").info("fetch.start", tables=["users"])

        record = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert record["event"] == "fetch.start"
        assert record["tables"] == ["users"]
        assert record["fetch_id"] == "f9"
        assert record["log.level"] == "info"
        assert record["service.name"] == "syncspine-test"
        assert "@timestamp" in record

    def test_level_filters(self):
        configure_logging(level="ERROR", json_format=True, stream=io.StringIO())

        with structlog.testing.capture_logs() as logs:
            get_logger("tests").info("quiet")
            get_logger("tests").error("loud")

        assert [e["event"] for e in logs] == ["loud"]

    def test_unknown_level(self):
        with pytest.raises(ConfigError, match="unknown log level"):
            configure_logging(level="chatty")
