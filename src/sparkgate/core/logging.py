import json
import logging
import sys

LOGGER_NAME = "sparkgate"

_TEXT_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s] %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """One JSON object per line, safe for messages containing quotes."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, _DATE_FORMAT),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(level: int | str = logging.INFO, json_format: bool = False) -> logging.Logger:
    """
    Install a single stdout handler on the ``sparkgate`` logger.

    Calling this again replaces the previous handler, so an engine built
    twice in one process does not print every line twice.

    Args:
        level: Logging level (e.g., logging.INFO, "DEBUG")
        json_format: Emit JSON lines instead of the bracketed text format

    Returns:
        The configured logger instance.
    """
    if isinstance(level, str):
        level = level.upper()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        JsonFormatter() if json_format else logging.Formatter(_TEXT_FORMAT, datefmt=_DATE_FORMAT)
    )
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Child logger under ``sparkgate`` (``get_logger("l402")`` -> ``sparkgate.l402``)."""
    return logging.getLogger(f"{LOGGER_NAME}.{name}" if name else LOGGER_NAME)


def redact(secret: str | None, keep: int = 8) -> str:
    """Shorten a secret (macaroon, preimage, invoice) for log lines."""
    if not secret:
        return ""
    if len(secret) <= keep:
        return "****"
    return secret[:keep] + "..."
