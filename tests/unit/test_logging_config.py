import logging

import pytest

from notify_service.core.config import settings
from notify_service.core.logging_config import resolve_level, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_level_follows_log_level_setting(monkeypatch):
    monkeypatch.setattr(settings, "LOG_LEVEL", "warning")
    assert resolve_level() == logging.WARNING
    assert resolve_level("DEBUG") == logging.DEBUG
    assert resolve_level(logging.ERROR) == logging.ERROR


def test_unknown_level_name_falls_back_to_info():
    assert resolve_level("chatty") == logging.INFO
    assert resolve_level("BASIC_FORMAT") == logging.INFO


def test_setup_quiets_libraries_unless_debug(restore_root_logger):
    root = setup_logging("INFO")
    assert root.level == logging.INFO
    assert len(root.handlers) == 1
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    setup_logging("DEBUG")
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.NOTSET
    assert len(logging.getLogger().handlers) == 1
    setup_logging("INFO")
