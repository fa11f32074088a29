"""CLI entry-point: Click command group and dispatch."""

from __future__ import annotations

import dataclasses
import logging
import sys

import click

from btmon.api.errors import AuthError, ConfigError
from btmon.output.formatter import FORMATS, OutputFormatter

# ---------------------------------------------------------------------------
# Application context (stored in ctx.obj)
# ---------------------------------------------------------------------------


@dataclasses.dataclass
class AppContext:
    """Shared state passed to every Click command via ``@click.pass_obj``."""

    output_format: str | None
    quiet: bool
    verbose: bool
    _formatter: OutputFormatter | None = dataclasses.field(default=None, repr=False)

    @property
    def formatter(self) -> OutputFormatter:
        if self._formatter is None:
            force = "quiet" if self.quiet else self.output_format
            self._formatter = OutputFormatter(force_format=force)
        return self._formatter


def _configure_logging() -> None:
    """Send debug logs to stderr so JSON on stdout stays parseable."""
    from rich.console import Console
    from rich.logging import RichHandler

    logging.basicConfig(
        level=logging.DEBUG,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # httpx/httpcore debug output drowns the device logs
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.INFO)


# ---------------------------------------------------------------------------
# Root Click group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(FORMATS),
    default=None,
    help="Output format (default: auto-detect)",
)
@click.option("--quiet", is_flag=True, default=False, help="Suppress normal output")
@click.option("--verbose", is_flag=True, default=False, help="Enable verbose logging")
@click.pass_context
def cli(
    ctx: click.Context,
    output_format: str | None,
    quiet: bool,
    verbose: bool,
) -> None:
    """Poll Broadcast Tools devices and print their monitor values."""
    if verbose:
        _configure_logging()
    ctx.obj = AppContext(output_format=output_format, quiet=quiet, verbose=verbose)


def _register_commands() -> None:
    """Import and attach subcommands to the root CLI."""
    from btmon.cli.poll import gather_cmd, sample_config_cmd, watch_cmd

    cli.add_command(gather_cmd)
    cli.add_command(watch_cmd)
    cli.add_command(sample_config_cmd)


_register_commands()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and dispatch to the appropriate command handler.

    The root context is kept after a failure so the error is reported in
    the ``--format`` the user asked for, under the failing command's name.
    """
    args = sys.argv[1:] if argv is None else list(argv)
    ctx: click.Context | None = None
    try:
        ctx = cli.make_context("btmon", args)
        with ctx:
            cli.invoke(ctx)
    except click.exceptions.Exit as exc:
        raise SystemExit(exc.exit_code) from None
    except click.exceptions.Abort:
        raise SystemExit(1) from None
    except KeyboardInterrupt:
        raise SystemExit(130) from None
    except SystemExit:
        raise
    except click.ClickException as exc:
        exc.show()
        raise SystemExit(exc.exit_code) from None
    except Exception as exc:
        app_ctx = ctx.obj if ctx is not None and isinstance(ctx.obj, AppContext) else None
        formatter = app_ctx.formatter if app_ctx else OutputFormatter()
        cmd_name = (ctx.invoked_subcommand if ctx is not None else None) or "unknown"

        if not _handle_known_error(exc, formatter, cmd_name):
            formatter.error(code=type(exc).__name__, message=str(exc), command=cmd_name)
        raise SystemExit(1) from exc


def _handle_known_error(exc: Exception, formatter: OutputFormatter, cmd_name: str) -> bool:
    """Report well-known errors with a remediation hint.

    Returns ``True`` if the error was reported.
    """
    if isinstance(exc, AuthError):
        formatter.error(
            code="auth_failed",
            message=str(exc) or "Authentication failed.",
            command=cmd_name,
            hint="Check BTMON_USER / BTMON_PASSWORD (or --user / --password).",
        )
        return True
    if isinstance(exc, ConfigError):
        formatter.error(
            code="config_error",
            message=str(exc),
            command=cmd_name,
            hint="Run 'btmon sample-config' for an example configuration.",
        )
        return True
    return False
