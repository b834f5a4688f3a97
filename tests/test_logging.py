"""Unit tests for logging helpers."""

import json
import logging

from sparkgate.core.logging import (
    LOGGER_NAME,
    JsonFormatter,
    configure_logging,
    get_logger,
    redact,
)


class TestLogging:
    def test_configure_does_not_stack_handlers(self):
        configure_logging("DEBUG")
        logger = configure_logging("warning")

        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING
        assert logger.propagate is False

    def test_json_handler(self):
        logger = configure_logging("INFO", json_format=True)
        assert isinstance(logger.handlers[0].formatter, JsonFormatter)

    def test_json_formatter_escapes_message(self):
        record = logging.LogRecord(
            "sparkgate.l402", logging.INFO, __file__, 1, 'got "402" from %s', ("api",), None
        )

        line = json.loads(JsonFormatter().format(record))

        assert line["message"] == 'got "402" from api'
        assert line["level"] == "INFO"
        assert line["name"] == "sparkgate.l402"

    def test_child_logger_names(self):
        assert get_logger().name == LOGGER_NAME
        assert get_logger("l402").name == f"{LOGGER_NAME}.l402"

    def test_redact(self):
        assert redact(None) == ""
        assert redact("short") == "****"
        assert redact("0123456789abcdef") == "01234567..."
