"""Tests for guild_sync.utils.logging module."""

from __future__ import annotations

import logging

import pytest
from rich.logging import RichHandler

from guild_sync.utils.logging import THIRD_PARTY_LOGGERS, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_installs_rich_handler(self) -> None:
        setup_logging(level=logging.DEBUG)

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert any(isinstance(h, RichHandler) for h in root.handlers)

    def test_quiets_third_party_by_default(self) -> None:
        setup_logging()

        for name in THIRD_PARTY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_debug_third_party(self) -> None:
        setup_logging(debug_third_party=True)

        assert logging.getLogger("httpx").level == logging.DEBUG
        assert logging.getLogger("sqlalchemy.engine").level == logging.INFO

    def test_log_file(self, tmp_path) -> None:
        log_file = tmp_path / "sync.log"
        setup_logging(log_file=log_file)

        logging.getLogger("guild_sync.test").warning("written to file")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "written to file" in log_file.read_text(encoding="utf-8")
