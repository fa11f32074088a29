"""Route poll-cycle results and CLI errors to JSON or Rich output."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape

from btmon.output.json_output import format_json_error, format_json_response
from btmon.output.rich_output import RichOutput

if TYPE_CHECKING:
    from collections.abc import Sequence

    from btmon.telemetry.poller import MeasurementRecord

FORMATS = ("rich", "json", "quiet")


class OutputFormatter:
    """Prints poll cycles in one of :data:`FORMATS`.

    Without *force_format*, ``rich`` is used when stdout is a terminal and
    ``json`` otherwise.  ``quiet`` prints only failures, on stderr.
    """

    def __init__(
        self,
        *,
        force_format: str | None = None,
        console: Console | None = None,
    ) -> None:
        if force_format is not None:
            self._format = force_format
        elif sys.stdout.isatty():
            self._format = "rich"
        else:
            self._format = "json"
        self._rich = RichOutput(console or Console(stderr=self._format == "quiet"))

    @property
    def format(self) -> str:  # noqa: A003
        return self._format

    @property
    def rich(self) -> RichOutput:
        return self._rich

    def cycle(
        self,
        records: Sequence[MeasurementRecord],
        errors: Sequence[tuple[str, Exception]],
        *,
        command: str,
    ) -> None:
        """Print one poll cycle: every decoded record, then every failed device.

        In JSON mode the whole cycle is a single envelope whose ``data`` is
        ``{"records": [...], "errors": [{"server": ..., "error": ...}]}``.
        """
        if self._format == "json":
            data = {
                "records": list(records),
                "errors": [{"server": server, "error": err} for server, err in errors],
            }
            print(format_json_response(data=data, command=command))  # noqa: T201
            return

        if self._format != "quiet":
            for record in records:
                self._rich.measurement(record)
        for server, err in errors:
            self._rich.device_error(server, err)

    def error(self, *, code: str, message: str, command: str, hint: str | None = None) -> None:
        """Print a command failure, with an optional remediation *hint*."""
        if self._format == "json":
            text = message if hint is None else f"{message} {hint}"
            print(format_json_error(code=code, message=text, command=command))  # noqa: T201
            return

        self._rich.error(message)
        if hint:
            self._rich.info("")
            self._rich.info(f"[dim]{escape(hint)}[/dim]")
