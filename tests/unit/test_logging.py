"""
Unit Tests for the relay log layout.

Test Coverage:
- Log files created under the log directory
- relay.log keeps only termrelay loggers
- error.log keeps only errors
"""

import logging

import pytest

from termrelay.backend.logging import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def flush_root() -> None:
    for handler in logging.getLogger().handlers:
        handler.flush()


class TestSetupLogging:

    def test_creates_log_files(self, tmp_path, restore_root_logger):
        log_dir = tmp_path / "nested" / "logs"

        setup_logging(log_dir)

        assert sorted(p.name for p in log_dir.iterdir()) == ["error.log", "info.log", "relay.log"]

    def test_relay_log_filters_third_party_loggers(self, tmp_path, restore_root_logger):
        setup_logging(tmp_path)

        logging.getLogger("termrelay.backend.terminal.gateway").debug("relay detail")
        logging.getLogger("uvicorn.error").info("server chatter")
        flush_root()

        relay_log = (tmp_path / "relay.log").read_text()
        info_log = (tmp_path / "info.log").read_text()
        assert "relay detail" in relay_log
        assert "server chatter" not in relay_log
        assert "server chatter" in info_log
        assert "relay detail" not in info_log

    def test_error_log_only_errors(self, tmp_path, restore_root_logger):
        setup_logging(tmp_path)

        logging.getLogger("termrelay.test").warning("just a warning")
        logging.getLogger("termrelay.test").error("real failure")
        flush_root()

        error_log = (tmp_path / "error.log").read_text()
        assert "real failure" in error_log
        assert "just a warning" not in error_log

    def test_repeated_setup_does_not_duplicate_handlers(self, tmp_path, restore_root_logger):
        setup_logging(tmp_path)
        setup_logging(tmp_path)

        assert len(logging.getLogger().handlers) == 4
