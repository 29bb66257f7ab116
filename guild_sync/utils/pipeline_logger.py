"""Base pipeline logger with shared components.

Provides reusable building blocks for pipeline-specific loggers:
- StructuredBlock: Context manager for key-value style output
- BasePipelineLogger: Abstract base with common logging methods

Usage:
    with logger.block("Stormwind Guard (argent-dawn)") as block:
        block.field("guild ID", 42)
        block.field("region", "eu", color="cyan")
        # ... sync ...
        block.result("38 members, 3 added, 1 removed")

Output:
    Stormwind Guard (argent-dawn)
        guild ID: 42
        region: eu
        ✓ 38 members, 3 added, 1 removed
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Generator, Sequence

from rich.panel import Panel
from rich.table import Table

from guild_sync.utils.logging import console

if TYPE_CHECKING:
    from rich.console import Console


class StructuredBlock:
    """A titled block of indented key/value lines ending in a result line."""

    def __init__(self, title: str, console: "Console") -> None:
        self.title = title
        self.console = console

    def field(self, key: str, value: Any, color: str | None = None) -> None:
        """Add a key-value field to the block."""
        rendered = f"[{color}]{value}[/{color}]" if color else f"{value}"
        self.console.print(f"    [dim]{key}:[/dim] {rendered}")

    def result(self, message: str, success: bool = True) -> None:
        """Show the final result of the block."""
        icon = "[green]✓[/green]" if success else "[red]✗[/red]"
        self.console.print(f"    {icon} {message}")


class BasePipelineLogger(ABC):
    """Abstract base class for pipeline loggers.

    Standard messages go through the stdlib logger (and so through the
    RichHandler installed by setup_logging); structured blocks, tables and
    summaries are printed straight to the shared console.
    """

    def __init__(self, logger_name: str | None = None) -> None:
        """Initialize the pipeline logger.

        Args:
            logger_name: Name for the Python logger. If None, uses the
                subclass module name.
        """
        self.console: Console = console
        self._logger = logging.getLogger(logger_name or self.__class__.__module__)

    @contextmanager
    def block(self, title: str) -> Generator[StructuredBlock, None, None]:
        """Create a structured block for key-value style output."""
        self.console.print(f"\n[bold]{title}[/bold]")
        yield StructuredBlock(title, self.console)

    # -------------------------------------------------------------------------
    # Standard Logging (goes through Python logging)
    # -------------------------------------------------------------------------

    def info(self, message: str) -> None:
        self._logger.info(message)

    def warning(self, message: str) -> None:
        self._logger.warning(message)

    def error(self, message: str, exc_info: bool = False) -> None:
        """Log an error, optionally with the active exception's traceback."""
        self._logger.error(message, exc_info=exc_info)

    def debug(self, message: str) -> None:
        self._logger.debug(message)

    def success(self, message: str) -> None:
        """Print a success message with green checkmark."""
        self.console.print(f"[green]✓[/green] {message}")

    # -------------------------------------------------------------------------
    # Rich Output
    # -------------------------------------------------------------------------

    def table(
        self,
        title: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
    ) -> None:
        """Print a simple titled table; cells are rendered with str()."""
        table = Table(title=title, title_style="bold")
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*("" if cell is None else str(cell) for cell in row))
        self.console.print(table)

    def print_summary(
        self,
        pipeline_name: str,
        *,
        elapsed: float,
        stats: dict[str, int | str],
        extra_sections: dict[str, dict[str, int]] | None = None,
        style: str = "cyan",
    ) -> None:
        """Print a pipeline summary panel.

        Args:
            pipeline_name: Name of the pipeline
            elapsed: Time elapsed in seconds
            stats: Main statistics as {label: value}
            extra_sections: Optional nested sections, indented under a heading
            style: Border color style
        """
        rows: list[tuple[str, str | int]] = list(stats.items())
        for section_name, section_stats in (extra_sections or {}).items():
            rows.append((f"[dim]{section_name}[/dim]", ""))
            rows.extend((f"  {label}", value) for label, value in section_stats.items())
        rows.append(("Time elapsed", f"{elapsed:.1f}s"))

        grid = Table.grid(padding=(0, 2))
        grid.add_column("Metric", style="bold")
        grid.add_column("Value", justify="right", style="green")
        for label, value in rows:
            grid.add_row(label, f"{value:,}" if isinstance(value, int) else str(value))

        self.console.print()
        self.console.print(
            Panel(
                grid,
                title=f"[bold]{pipeline_name} Complete[/bold]",
                border_style=style,
                padding=(1, 2),
            )
        )

    @abstractmethod
    def summary(self, **kwargs: Any) -> None:
        """Print final summary. Implementation varies by pipeline."""
        ...
