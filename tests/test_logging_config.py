"""Tests for schemagate/logging_config.py."""

import json
import logging

import structlog

import schemagate.logging_config


class TestConfigureLogging:
    def setup_method(self):
        """Reset structlog configuration before each test."""
        structlog.reset_defaults()

    def teardown_method(self):
        """Reset structlog configuration after each test."""
        structlog.reset_defaults()

    def test_sets_log_level(self):
        schemagate.logging_config.configure_logging(log_level="DEBUG")
        assert logging.getLogger().level == logging.DEBUG

        schemagate.logging_config.configure_logging(log_level="INFO")

    def test_unknown_level_falls_back_to_info(self):
        schemagate.logging_config.configure_logging(log_level="chatty")
        assert logging.getLogger().level == logging.INFO

    def test_adds_single_handler_with_structlog_formatter(self):
        schemagate.logging_config.configure_logging()
        schemagate.logging_config.configure_logging()

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)

    def test_output_is_json_with_mandatory_fields(self, capsys):
        schemagate.logging_config.configure_logging(log_level="INFO")
        structlog.get_logger("test").info("test_event", key="value")

        parsed = json.loads(capsys.readouterr().out.strip())

        assert parsed["event"] == "test_event"
        assert parsed["key"] == "value"
        assert parsed["level"] == "INFO"
        assert parsed["service_name"] == "schemagate"
        assert "timestamp" in parsed

    def test_bound_correlation_id_is_included(self, capsys):
        schemagate.logging_config.configure_logging(log_level="INFO")
        structlog.contextvars.bind_contextvars(correlation_id="abc-123")
        try:
            structlog.get_logger("test").info("correlated_event")
        finally:
            structlog.contextvars.clear_contextvars()

        parsed = json.loads(capsys.readouterr().out.strip())
        assert parsed["correlation_id"] == "abc-123"

    def test_standard_library_records_share_the_format(self, capsys):
        schemagate.logging_config.configure_logging(log_level="INFO")
        logging.getLogger("uvicorn.error").warning("stdlib message")

        parsed = json.loads(capsys.readouterr().out.strip())
        assert parsed["event"] == "stdlib message"
        assert parsed["level"] == "WARNING"

    def test_console_format_is_not_json(self, capsys):
        schemagate.logging_config.configure_logging(log_level="INFO", log_format="console")
        structlog.get_logger("test").info("console_event")

        output = capsys.readouterr().out
        assert "console_event" in output
        assert not output.strip().startswith("{")

    def test_exceptions_are_rendered_as_structured_tracebacks(self, capsys):
        schemagate.logging_config.configure_logging(log_level="INFO")
        try:
            raise RuntimeError("handler failed")
        except RuntimeError:
            structlog.get_logger("test").exception("unexpected_exception")

        parsed = json.loads(capsys.readouterr().out.strip())
        assert parsed["level"] == "ERROR"
        assert parsed["exception"][0]["exc_type"] == "RuntimeError"
        assert parsed["exception"][0]["exc_value"] == "handler failed"
