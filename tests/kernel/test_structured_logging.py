"""Tests for the structured logging system (royalty_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from royalty_kernel.exceptions import MissingColumnsError
from royalty_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, restoring the suite default after."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestStructuredFormatter:
    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        (entry,) = _parse_all_logs(stream)
        assert entry["message"] == "hello"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "royalty_kernel.test"
        assert "ts" in entry

    def test_extra_fields_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        run_id = uuid4()
        get_logger("test").info(
            "batch_settled",
            extra={"run": run_id, "total_net": Decimal("80.00"), "rows": 3},
        )

        (entry,) = _parse_all_logs(stream)
        assert entry["run"] == str(run_id)
        assert entry["total_net"] == "80.00"
        assert entry["rows"] == 3

    def test_exception_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise MissingColumnsError(["gross"], ["Title"])
        except MissingColumnsError:
            get_logger("test").exception("run_failed")

        (entry,) = _parse_all_logs(stream)
        assert entry["exc_type"] == "MissingColumnsError"
        assert entry["exc_code"] == "MISSING_COLUMNS"
        assert entry["exc_missing"] == ["gross"]
        assert "traceback" in entry

    def test_level_filtering(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.WARNING, handler=handler)
        logger = get_logger("test")
        logger.info("hidden")
        logger.warning("shown")

        assert [e["message"] for e in _parse_all_logs(stream)] == ["shown"]

    def test_configure_is_idempotent(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)
        get_logger("test").info("once")

        assert len(_parse_all_logs(stream)) == 1


class TestLogContext:
    def test_context_fields_appear_in_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(run_id="run-1", artist_id="artist-1")
        get_logger("test").info("with_context")

        (entry,) = _parse_all_logs(stream)
        assert entry["run_id"] == "run-1"
        assert entry["artist_id"] == "artist-1"
        assert "batch_index" not in entry

    def test_bind_restores_previous_values(self):
        LogContext.set(run_id="outer")
        with LogContext.bind(run_id="inner", batch_index=4):
            assert LogContext.get_all() == {"run_id": "inner", "batch_index": "4"}
        assert LogContext.get_all() == {"run_id": "outer"}

    def test_clear(self):
        LogContext.set(correlation_id="c", run_id="r")
        LogContext.clear()
        assert LogContext.get_all() == {}
