"""Tests for structured logging."""

import json
import logging
import sys

import pytest

from cratepilot.infrastructure.observability.logging import (
    CompactExceptionFormatter,
    CorrelationIdFilter,
    CustomJsonFormatter,
    configure_logging,
    correlation_scope,
    get_correlation_id,
    set_correlation_id,
)


class TestCorrelationId:
    """Test correlation ID functionality."""

    def test_set_and_get_correlation_id(self):
        """Test setting and getting correlation ID."""
        result = set_correlation_id("import-123")
        assert result == "import-123"
        assert get_correlation_id() == "import-123"

    def test_set_correlation_id_generates_uuid_when_none(self):
        """Test that setting None generates a UUID."""
        result = set_correlation_id(None)
        assert len(result) == 36
        assert get_correlation_id() == result

    def test_scope_restores_previous_id(self):
        """Test the caller's ID is back after the block, even when it raised."""
        set_correlation_id("outer")

        with correlation_scope() as inner:
            assert get_correlation_id() == inner
            assert inner != "outer"
        assert get_correlation_id() == "outer"

        with pytest.raises(RuntimeError), correlation_scope("failing"):
            raise RuntimeError("boom")
        assert get_correlation_id() == "outer"

    def test_filter_adds_correlation_id(self):
        set_correlation_id("import-456")
        record = logging.LogRecord("test", logging.INFO, __file__, 1, "hello", None, None)

        assert CorrelationIdFilter().filter(record) is True
        assert record.correlation_id == "import-456"


class TestFormatters:
    """Test log formatters."""

    def test_json_formatter_fields(self):
        set_correlation_id("import-789")
        record = logging.LogRecord(
            "cratepilot.test", logging.WARNING, __file__, 42, "Track already exists", None, None
        )
        CorrelationIdFilter().filter(record)

        output = json.loads(CustomJsonFormatter("%(message)s").format(record))

        assert output["message"] == "Track already exists"
        assert output["level"] == "WARNING"
        assert output["logger"] == "cratepilot.test"
        assert output["correlation_id"] == "import-789"

    def test_compact_formatter_shows_chain(self):
        try:
            try:
                raise ConnectionError("socket closed")
            except ConnectionError as e:
                raise RuntimeError("request failed") from e
        except RuntimeError:
            exc_info = sys.exc_info()

        text = CompactExceptionFormatter().formatException(exc_info)
        lines = text.splitlines()

        # root cause first
        assert lines[0] == "╰─► ConnectionError: socket closed"
        assert "╰─► RuntimeError: request failed" in lines


class TestLoggingConfiguration:
    """Test logging configuration."""

    def test_configure_logging_debug_level(self):
        """Test configuring logging with DEBUG level."""
        configure_logging(log_level="DEBUG", json_format=False, app_name="test-app")
        assert logging.getLogger("test").getEffectiveLevel() <= logging.DEBUG

    def test_configure_logging_json_format(self):
        """Test configuring logging with JSON format."""
        configure_logging(log_level="INFO", json_format=True, app_name="test-app")
        root_logger = logging.getLogger()
        assert any(isinstance(h.formatter, CustomJsonFormatter) for h in root_logger.handlers)

    def test_third_party_loggers_quieted(self):
        configure_logging(log_level="DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING
