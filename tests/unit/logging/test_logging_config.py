"""Tests for configure_logging."""

import json
import logging
from logging.handlers import RotatingFileHandler

import pytest

from mts.config.models import LoggingConfig
from mts.logging.config import configure_logging
from mts.logging.context import attempt_context
from mts.logging.handlers import JSONFormatter


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Restore root logger handlers and level after each test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_stderr_only_by_default(self, restore_root_logger):
        configure_logging(LoggingConfig(level="debug"))

        handlers = restore_root_logger.handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.StreamHandler)
        assert not isinstance(handlers[0], RotatingFileHandler)
        assert restore_root_logger.level == logging.DEBUG

    def test_file_handler(self, restore_root_logger, temp_dir):
        log_file = temp_dir / "logs" / "mts.log"
        configure_logging(
            LoggingConfig(file=log_file, max_bytes=1024, backup_count=2)
        )

        handlers = restore_root_logger.handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], RotatingFileHandler)
        assert handlers[0].maxBytes == 1024
        assert handlers[0].backupCount == 2
        assert log_file.parent.is_dir()

    def test_file_and_stderr(self, restore_root_logger, temp_dir):
        configure_logging(
            LoggingConfig(file=temp_dir / "mts.log", include_stderr=True)
        )
        assert len(restore_root_logger.handlers) == 2

    def test_unwritable_file_falls_back_to_stderr(
        self, restore_root_logger, temp_dir, capsys
    ):
        blocker = temp_dir / "not-a-dir"
        blocker.write_text("")
        configure_logging(LoggingConfig(file=blocker / "mts.log"))

        handlers = restore_root_logger.handlers
        assert len(handlers) == 1
        assert not isinstance(handlers[0], RotatingFileHandler)
        assert "Could not open log file" in capsys.readouterr().err

    def test_json_output_with_attempt_context(self, restore_root_logger, temp_dir):
        log_file = temp_dir / "mts.log"
        configure_logging(LoggingConfig(file=log_file, format="json"))
        assert isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)

        with attempt_context("abcd1234", 2):
            logging.getLogger("mts.test").info("attempt %d started", 2)
        restore_root_logger.handlers[0].flush()

        entry = json.loads(log_file.read_text(encoding="utf-8").strip())
        assert entry["message"] == "attempt 2 started"
        assert entry["context"]["request_id"] == "abcd1234"
        assert entry["context"]["attempt"] == 2

    def test_text_output_has_attempt_tag(self, restore_root_logger, temp_dir):
        log_file = temp_dir / "mts.log"
        configure_logging(LoggingConfig(file=log_file))

        with attempt_context("abcd1234", 1):
            logging.getLogger("mts.test").warning("stalled")
        restore_root_logger.handlers[0].flush()

        line = log_file.read_text(encoding="utf-8")
        assert "[Rabcd1234:A1] mts.test - WARNING - stalled" in line

    def test_level_filters_records(self, restore_root_logger, temp_dir):
        log_file = temp_dir / "mts.log"
        configure_logging(LoggingConfig(file=log_file, level="error"))

        logging.getLogger("mts.test").warning("hidden")
        restore_root_logger.handlers[0].flush()

        assert log_file.read_text(encoding="utf-8") == ""
