# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Tests for the service entry point."""

import logging

import pytest

from sleepguard.config import Settings
from sleepguard.main import SleepGuardApp, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers[len(handlers):]:
        handler.close()
    root.handlers = handlers
    root.setLevel(level)


@pytest.mark.unit
def test_setup_logging_writes_file(tmp_path, restore_root_logger):
    settings = Settings()
    settings.logging.file = str(tmp_path / "logs" / "sleepguard.log")

    setup_logging(settings, debug=True)
    logging.getLogger("sleepguard.test").debug("hello from the test")

    assert restore_root_logger.level == logging.DEBUG
    assert logging.getLogger("aiosqlite").level == logging.WARNING
    for handler in restore_root_logger.handlers:
        handler.flush()
    assert "hello from the test" in (tmp_path / "logs" / "sleepguard.log").read_text()


@pytest.mark.unit
def test_stop_before_start_is_safe():
    app = SleepGuardApp(mock=True, track=True)
    app.stop()
    assert app.settings is None
