"""Logging configuration for Lodgelock.

Shared secrets and pairing codes grant full access to a room, so every
handler installed here masks them before a record is written.
"""

import logging
import re
from pathlib import Path

from lodgelock.config import Config
from lodgelock.pairing.codec import PAIRING_PREFIX

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_SECRET_PATTERN = re.compile(r"\b[0-9a-f]{64}\b")
_CODE_PATTERN = re.compile(re.escape(PAIRING_PREFIX) + r"[A-Za-z0-9+/=]+")

# Module-level logger cache
_logger: logging.Logger | None = None


def redact(message: str) -> str:
    """Mask shared secrets and pairing codes in a log message."""
    message = _CODE_PATTERN.sub(f"{PAIRING_PREFIX}<redacted>", message)
    return _SECRET_PATTERN.sub(lambda m: m.group(0)[:4] + "...<redacted>", message)


class RedactingFilter(logging.Filter):
    """Rewrites each record's message with secrets masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def _make_handler(handler: logging.Handler) -> logging.Handler:
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(RedactingFilter())
    return handler


def setup_logging(config: Config) -> logging.Logger:
    """Set up the package logger from configuration.

    Idempotent: the first call wins until reset_logging() is called.

    Args:
        config: Configuration object with log settings.

    Returns:
        The "lodgelock" logger.
    """
    global _logger

    if _logger is not None:
        return _logger

    logger = logging.getLogger("lodgelock")
    logger.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))
    logger.handlers.clear()

    if config.log_file:
        log_path = Path(config.log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.addHandler(_make_handler(logging.FileHandler(log_path)))

    logger.addHandler(_make_handler(logging.StreamHandler()))
    logger.propagate = False

    _logger = logger
    return logger


def reset_logging() -> None:
    """Reset logging state. Used for testing."""
    global _logger
    if _logger is not None:
        _logger.handlers.clear()
        _logger.propagate = True
        _logger = None
