"""Tests for logging module."""

import logging
import re

from lodgelock.config import Config
from lodgelock.crypto import generate_shared_secret
from lodgelock.logging import redact, reset_logging, setup_logging
from lodgelock.pairing.codec import encode_pairing_code


class TestSetupLogging:
    """Test logging setup."""

    def test_setup_logging_returns_logger(self):
        logger = setup_logging(Config())

        assert isinstance(logger, logging.Logger)
        assert logger.name == "lodgelock"

    def test_setup_logging_creates_log_file(self, tmp_path):
        log_file = tmp_path / "subdir" / "test.log"
        logger = setup_logging(Config(log_file=str(log_file)))

        logger.info("test message")

        assert "test message" in log_file.read_text()

    def test_log_format(self, tmp_path):
        """Lines look like '2025-01-27 10:30:45 [INFO] message'."""
        log_file = tmp_path / "test.log"
        logger = setup_logging(Config(log_file=str(log_file)))

        logger.warning("formatted")

        line = log_file.read_text().strip()
        assert re.match(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} \[WARNING\] formatted$", line)

    def test_log_levels_respected(self, tmp_path):
        log_file = tmp_path / "test.log"
        logger = setup_logging(Config(log_file=str(log_file), log_level="WARNING"))

        logger.info("hidden")
        logger.warning("shown")

        content = log_file.read_text()
        assert "hidden" not in content
        assert "shown" in content

    def test_module_loggers_use_package_handlers(self, tmp_path):
        """Child loggers like lodgelock.relay.client reach the package log."""
        log_file = tmp_path / "test.log"
        setup_logging(Config(log_file=str(log_file)))

        logging.getLogger("lodgelock.relay.client").info("from child")

        assert "from child" in log_file.read_text()

    def test_setup_is_idempotent(self):
        first = setup_logging(Config())
        second = setup_logging(Config(log_level="DEBUG"))

        assert first is second
        assert len(first.handlers) == 1

    def test_reset_allows_reconfiguration(self):
        setup_logging(Config())
        reset_logging()

        logger = setup_logging(Config(log_level="DEBUG"))

        assert logger.level == logging.DEBUG


class TestRedaction:
    """Secrets never reach log output."""

    def test_redact_secret(self):
        secret = generate_shared_secret()

        result = redact(f"joined with {secret}")

        assert secret not in result
        assert result.startswith(f"joined with {secret[:4]}...")

    def test_redact_pairing_code(self):
        code = encode_pairing_code(generate_shared_secret())

        assert redact(f"code {code}") == "code lodgelock://pair/<redacted>"

    def test_room_ids_untouched(self):
        """32-char room ids are not secrets."""
        message = "room 0123456789abcdef0123456789abcdef"
        assert redact(message) == message

    def test_handlers_redact_formatted_args(self, tmp_path):
        log_file = tmp_path / "test.log"
        logger = setup_logging(Config(log_file=str(log_file)))
        secret = generate_shared_secret()

        logger.info("secret is %s", secret)

        assert secret not in log_file.read_text()
