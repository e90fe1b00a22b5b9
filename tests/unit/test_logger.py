"""Unit tests for logging infrastructure."""

import json
import logging
import sys

import pytest

from src.utils.logger import JSONFormatter, RichTextFormatter, get_logger, logger


def make_record(msg="Test message", level=logging.INFO, name="test_logger", exc_info=None):
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestJSONFormatter:
    """Test JSONFormatter produces valid JSON output."""

    def test_json_formatter_outputs_valid_json(self):
        output = JSONFormatter().format(make_record())
        parsed = json.loads(output)

        assert parsed["level"] == "INFO"
        assert parsed["logger"] == "test_logger"
        assert parsed["message"] == "Test message"
        assert "timestamp" in parsed

    def test_json_formatter_includes_exception_traceback(self):
        try:
            raise ValueError("Test error")
        except ValueError:
            record = make_record("Error occurred", logging.ERROR, exc_info=sys.exc_info())

        parsed = json.loads(JSONFormatter().format(record))

        assert "exception" in parsed
        assert "ValueError" in parsed["exception"]

    def test_json_formatter_includes_request_context(self):
        """client_ip and user_id passed via extra= appear as top-level fields."""
        record = make_record()
        record.client_ip = "203.0.113.7"
        record.user_id = "user_123"

        parsed = json.loads(JSONFormatter().format(record))

        assert parsed["client_ip"] == "203.0.113.7"
        assert parsed["user_id"] == "user_123"

    def test_json_formatter_omits_missing_context(self):
        parsed = json.loads(JSONFormatter().format(make_record()))
        assert "client_ip" not in parsed
        assert "user_id" not in parsed


class TestRichTextFormatter:
    """Test RichTextFormatter produces colored text output."""

    @pytest.mark.parametrize(
        "level,icon",
        [(logging.DEBUG, "🔍"), (logging.INFO, "ℹ️"), (logging.WARNING, "⚠️"), (logging.ERROR, "❌")],
    )
    def test_rich_text_formatter_includes_icon(self, level, icon):
        assert icon in RichTextFormatter().format(make_record(level=level))

    def test_rich_text_formatter_includes_level_logger_and_message(self):
        output = RichTextFormatter().format(make_record("Custom message", name="my_logger"))
        assert "INFO" in output
        assert "my_logger" in output
        assert "Custom message" in output

    def test_rich_text_formatter_includes_exception_traceback(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = make_record("failed", logging.ERROR, exc_info=sys.exc_info())

        output = RichTextFormatter().format(record)
        assert "RuntimeError" in output


class TestGetLogger:
    """Test logger factory configuration."""

    def test_get_logger_uses_json_formatter(self, monkeypatch):
        monkeypatch.setenv("LOG_TYPE", "json")
        instance = get_logger("test_json_logger_factory")
        assert isinstance(instance.handlers[0].formatter, JSONFormatter)

    def test_get_logger_uses_text_formatter_by_default(self, monkeypatch):
        monkeypatch.delenv("LOG_TYPE", raising=False)
        instance = get_logger("test_text_logger_factory")
        assert isinstance(instance.handlers[0].formatter, RichTextFormatter)

    def test_get_logger_respects_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        instance = get_logger("test_level_logger_factory")
        assert instance.level == logging.WARNING

    def test_get_logger_is_idempotent(self):
        first = get_logger("test_idempotent_logger")
        second = get_logger("test_idempotent_logger")
        assert first is second
        assert len(second.handlers) == 1

    def test_module_logger_name(self):
        assert logger.name == "menu_service"
