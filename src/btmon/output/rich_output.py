from __future__ import annotations

from typing import TYPE_CHECKING

from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from rich.console import Console

    from btmon.telemetry.poller import MeasurementRecord


def _sort_key(name: str) -> tuple[str, int]:
    category, _, index = name.rpartition("_")
    return (category, int(index)) if index.isdigit() else (name, -1)


class RichOutput:
    """Rich-based terminal output helpers for *btmon*."""

    def __init__(self, console: Console) -> None:
        self._con = console

    # ------------------------------------------------------------------
    # Measurements
    # ------------------------------------------------------------------

    def measurement(self, record: MeasurementRecord) -> None:
        """Print one device's decoded fields as a table."""
        server = record.tags.get("server", "")
        table = Table(title=f"{escape(record.name)} [dim]{escape(server)}[/dim]")
        table.add_column("Field", style="cyan")
        table.add_column("Value", justify="right")

        for name in sorted(record.fields, key=_sort_key):
            value = record.fields[name]
            table.add_row(name, "[dim]-[/dim]" if value is None else escape(str(value)))

        self._con.print(table)

    def device_error(self, server: str, error: Exception) -> None:
        """Print a failed device poll."""
        self._con.print(
            f"[red]FAILED[/red]  {escape(server)}  "
            f"[dim]{type(error).__name__}:[/dim] {escape(str(error))}"
        )

    def error(self, message: str) -> None:
        """Print a bold red error line."""
        self._con.print(f"[bold red]Error:[/bold red] {escape(message)}")

    def info(self, message: str) -> None:
        """Print an informational message (plain)."""
        self._con.print(message)
