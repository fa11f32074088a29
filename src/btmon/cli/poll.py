"""CLI commands that run poll cycles against the configured fleet."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import click

from btmon.api.errors import ConfigError
from btmon.models.config import SAMPLE_CONFIG, AppSettings
from btmon.telemetry.fleet import CollectingSink, FleetCoordinator

if TYPE_CHECKING:
    from btmon.cli.main import AppContext
    from btmon.output.formatter import OutputFormatter


def _connection_options(f: Any) -> Any:
    """Options that override ``BTMON_*`` settings for one invocation."""
    f = click.option("--timeout", type=float, default=None, help="Per-request timeout (s)")(f)
    f = click.option("--password", default=None, help="Device password")(f)
    f = click.option("--user", default=None, help="Device username")(f)
    f = click.option(
        "--server",
        "servers",
        multiple=True,
        help="Device URL (repeatable; default: BTMON_SERVERS)",
    )(f)
    return f


def build_settings(
    servers: tuple[str, ...],
    user: str | None,
    password: str | None,
    timeout: float | None,
) -> AppSettings:
    """Load :class:`AppSettings` and apply command-line overrides."""
    settings = AppSettings()
    overrides: dict[str, Any] = {}
    if servers:
        overrides["servers"] = list(servers)
    if user is not None:
        overrides["user"] = user
    if password is not None:
        overrides["password"] = password
    if timeout is not None:
        overrides["timeout"] = timeout
    if overrides:
        settings = settings.model_copy(update=overrides)
    if not settings.servers:
        raise ConfigError("No servers configured. Pass --server or set BTMON_SERVERS.")
    return settings


def build_fleet(settings: AppSettings) -> FleetCoordinator:
    return FleetCoordinator(settings.endpoints(), timeout=settings.timeout)


async def _gather_once(fleet: FleetCoordinator) -> CollectingSink:
    async with fleet:
        sink = CollectingSink()
        await fleet.gather(sink)
        return sink


async def _watch(
    fleet: FleetCoordinator,
    formatter: OutputFormatter,
    *,
    interval: float,
    count: int | None,
) -> None:
    async with fleet:
        cycle = 0
        while count is None or cycle < count:
            if cycle:
                await asyncio.sleep(interval)
            sink = CollectingSink()
            await fleet.gather(sink)
            formatter.cycle(sink.records, sink.errors, command="watch")
            cycle += 1


@click.command("gather")
@_connection_options
@click.pass_obj
def gather_cmd(
    app_ctx: AppContext,
    servers: tuple[str, ...],
    user: str | None,
    password: str | None,
    timeout: float | None,
) -> None:
    """Run one poll cycle against every device and print the results."""
    settings = build_settings(servers, user, password, timeout)
    sink = asyncio.run(_gather_once(build_fleet(settings)))
    app_ctx.formatter.cycle(sink.records, sink.errors, command="gather")
    if sink.errors:
        raise SystemExit(1)


@click.command("watch")
@_connection_options
@click.option("--interval", type=float, default=None, help="Seconds between poll cycles")
@click.option("--count", type=int, default=None, help="Stop after N cycles")
@click.pass_obj
def watch_cmd(
    app_ctx: AppContext,
    servers: tuple[str, ...],
    user: str | None,
    password: str | None,
    timeout: float | None,
    interval: float | None,
    count: int | None,
) -> None:
    """Poll every device periodically until interrupted."""
    settings = build_settings(servers, user, password, timeout)
    asyncio.run(
        _watch(
            build_fleet(settings),
            app_ctx.formatter,
            interval=interval if interval is not None else settings.interval,
            count=count,
        )
    )


@click.command("sample-config")
def sample_config_cmd() -> None:
    """Print an example .env configuration."""
    click.echo(SAMPLE_CONFIG, nl=False)
