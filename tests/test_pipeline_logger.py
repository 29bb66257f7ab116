"""Tests for guild_sync.utils.pipeline_logger and guild_sync.sync.logger."""

from __future__ import annotations

from io import StringIO
from typing import Any
from unittest.mock import MagicMock

from rich.console import Console

from guild_sync.sync.logger import SyncLogger
from guild_sync.utils.pipeline_logger import BasePipelineLogger, StructuredBlock


class ConcreteLogger(BasePipelineLogger):
    """Concrete implementation for testing the abstract base class."""

    def __init__(self) -> None:
        super().__init__("test_logger")
        # Replace console with a string-capturing one for assertions
        self.console = Console(file=StringIO(), force_terminal=True, width=120)

    def summary(self, **kwargs: Any) -> None:
        self.print_summary("Test", elapsed=0.0, stats={})

    def get_output(self) -> str:
        self.console.file.seek(0)
        return self.console.file.read()


def _capturing_sync_logger() -> SyncLogger:
    logger = SyncLogger()
    logger.console = Console(file=StringIO(), force_terminal=True, width=120)
    return logger


def _output(logger: BasePipelineLogger) -> str:
    logger.console.file.seek(0)
    return logger.console.file.read()


# ---------------------------------------------------------------------------
# TestStructuredBlock
# ---------------------------------------------------------------------------


class TestStructuredBlock:
    """Tests for StructuredBlock output."""

    def test_prints_title_on_enter(self) -> None:
        logger = ConcreteLogger()

        with logger.block("Test Guild"):
            pass

        assert "Test Guild" in logger.get_output()

    def test_field_prints_key_value(self) -> None:
        logger = ConcreteLogger()

        with logger.block("Block") as b:
            b.field("members", 38)

        output = logger.get_output()
        assert "members:" in output
        assert "38" in output

    def test_field_with_color(self) -> None:
        logger = ConcreteLogger()

        with logger.block("Block") as b:
            b.field("region", "eu", color="cyan")

        output = logger.get_output()
        assert "region:" in output
        assert "eu" in output

    def test_result_success(self) -> None:
        logger = ConcreteLogger()

        with logger.block("Block") as b:
            b.result("3 added, 1 removed")

        output = logger.get_output()
        assert "added" in output
        assert "removed" in output

    def test_block_yields_structured_block(self) -> None:
        logger = ConcreteLogger()

        with logger.block("test") as b:
            assert isinstance(b, StructuredBlock)


# ---------------------------------------------------------------------------
# TestBasePipelineLogger
# ---------------------------------------------------------------------------


class TestBasePipelineLogger:
    """Tests for BasePipelineLogger base class."""

    def test_info_delegates_to_python_logger(self) -> None:
        logger = ConcreteLogger()
        logger._logger = MagicMock()

        logger.info("test message")

        logger._logger.info.assert_called_once_with("test message")

    def test_error_passes_exc_info(self) -> None:
        logger = ConcreteLogger()
        logger._logger = MagicMock()

        logger.error("error message", exc_info=True)

        logger._logger.error.assert_called_once_with("error message", exc_info=True)

    def test_success_prints_message(self) -> None:
        logger = ConcreteLogger()

        logger.success("done")

        assert "done" in logger.get_output()

    def test_table_renders_rows(self) -> None:
        logger = ConcreteLogger()

        logger.table("Members", ["Character", "Rank"], [("Thrall", 0), ("Jaina", None)])

        output = logger.get_output()
        assert "Members" in output
        assert "Thrall" in output
        assert "Jaina" in output

    def test_print_summary_outputs_panel(self) -> None:
        logger = ConcreteLogger()

        logger.print_summary(
            "Test Pipeline",
            elapsed=12.3,
            stats={"Guilds": 5, "Characters": 1200},
            extra_sections={"Not synced": {"Failed": 1}},
        )

        output = logger.get_output()
        assert "Test Pipeline Complete" in output
        assert "1,200" in output
        assert "Not synced" in output
        assert "12.3s" in output


# ---------------------------------------------------------------------------
# TestSyncLogger
# ---------------------------------------------------------------------------


class TestSyncLogger:
    """Tests for SyncLogger."""

    def test_rate_limit_logs_warning(self) -> None:
        logger = SyncLogger()
        logger._logger = MagicMock()

        logger.rate_limit("roster-eu-r-g", 0.42)

        msg = logger._logger.warning.call_args[0][0]
        assert "roster-eu-r-g" in msg
        assert "0.42" in msg

    def test_job_logs_at_debug(self) -> None:
        logger = SyncLogger()
        logger._logger = MagicMock()

        logger.job("guild-eu-r-g", "executing", 3)

        logger._logger.debug.assert_called_once()
        logger._logger.warning.assert_not_called()

    def test_item_failed_includes_context(self) -> None:
        logger = SyncLogger()
        logger._logger = MagicMock()

        logger.item_failed("guild", 7, "Test Guild", "members", ValueError("boom"))

        msg = logger._logger.error.call_args[0][0]
        assert "id=7" in msg
        assert "name=Test Guild" in msg
        assert "stage=members" in msg
        assert "ValueError: boom" in msg

    def test_guild_start_prints_rule(self) -> None:
        logger = _capturing_sync_logger()

        logger.guild_start(7, "Test Guild", "Argent Dawn", "eu")

        output = _output(logger)
        assert "Test Guild" in output
        assert "Argent Dawn" in output

    def test_summary_prints_panel(self) -> None:
        logger = _capturing_sync_logger()

        logger.summary(guilds_synced=2, characters_synced=10, characters_failed=1, elapsed=5.5)

        output = _output(logger)
        assert "Sync Complete" in output
        assert "Characters failed" in output
