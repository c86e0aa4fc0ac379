"""
Main CLI application using Typer.

Offline commands (``select``, ``layout``, ``validate``) work on a
configuration file; ``run`` starts a headless player against a file or the
publishing service.
"""

from __future__ import annotations

import json
import time
from dataclasses import asdict
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

import typer

from marquee.domain.entities import Configuration, parse_instant
from marquee.infra.exceptions import ConfigurationFetchError, ConfigurationFormatError
from marquee.infra.logging import configure_logging, get_logger
from marquee.infra.settings import settings
from marquee.player import Player
from marquee.presentation.headless import HeadlessSurface
from marquee.providers import FileConfigurationProvider, PublisherConfigurationProvider
from marquee.providers.file import load_document
from marquee.runtime.clock import SystemClock
from marquee.runtime.event_loop import ThreadedEventLoop
from marquee.scheduling.layout_transformer import to_layout
from marquee.scheduling.recurrence import RecurrenceEvaluator
from marquee.scheduling.selector import ScheduleSelector
from marquee.validation.config_validator import validate_document

app = typer.Typer(help="Marquee signage player CLI")


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Cannot serialize {type(value).__name__}")


def _dumps(data: Any) -> str:
    return json.dumps(data, indent=2, default=_json_default)


def _load_configuration(path: Path) -> Configuration:
    try:
        return Configuration.from_dict(load_document(path))
    except (ConfigurationFetchError, ConfigurationFormatError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _resolve_at(at: str | None) -> datetime:
    if not at:
        return SystemClock().now_utc()
    try:
        instant = parse_instant(at)
    except ConfigurationFormatError:
        instant = None
    if instant is None:
        typer.echo(f"Error: invalid --at timestamp {at!r}", err=True)
        raise typer.Exit(2)
    return instant


@app.callback()
def main(
    log_level: str = typer.Option(None, "--log-level", help="Override LOG_LEVEL"),
    console_logs: bool = typer.Option(False, "--console-logs", help="Human-readable logs instead of JSON"),
):
    """Marquee: decides what a display shows and plays it."""
    configure_logging(level=log_level, json_output=False if console_logs else None)


@app.command("select")
def select(
    file: Path = typer.Argument(..., help="Configuration document (JSON or YAML)"),
    at: str = typer.Option(None, "--at", help="Evaluate at this ISO-8601 instant (default: now)"),
    tz: str = typer.Option(None, "--tz", help="Evaluation timezone (default: MARQUEE_TIMEZONE)"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """Show which schedule is active and when every schedule last fired."""
    configuration = _load_configuration(file)
    now = _resolve_at(at)
    selector = ScheduleSelector(RecurrenceEvaluator(tz=tz or settings.timezone))

    fires = selector.rank(configuration, now)
    active = selector.select_active(configuration, now)

    if json_output:
        typer.echo(
            _dumps(
                {
                    "at": now,
                    "active": active.id if active is not None else None,
                    "schedules": [
                        {"id": fire.schedule.id, "name": fire.schedule.name, "fired_at": fire.fired_at}
                        for fire in fires
                    ],
                }
            )
        )
        return

    if active is None:
        typer.echo("No active schedule")
    else:
        typer.echo(f"Active schedule: {active.id} ({active.name})")
    for fire in fires:
        marker = "*" if active is not None and fire.schedule is active else " "
        typer.echo(f" {marker} {fire.schedule.id:<24} last fired {fire.fired_at.isoformat()}")


@app.command("layout")
def layout(
    file: Path = typer.Argument(..., help="Configuration document (JSON or YAML)"),
    at: str = typer.Option(None, "--at", help="Evaluate at this ISO-8601 instant (default: now)"),
    tz: str = typer.Option(None, "--tz", help="Evaluation timezone (default: MARQUEE_TIMEZONE)"),
):
    """Print the layout that would be on screen, as JSON."""
    configuration = _load_configuration(file)
    now = _resolve_at(at)
    selector = ScheduleSelector(RecurrenceEvaluator(tz=tz or settings.timezone))
    active = selector.select_active(configuration, now)
    if active is None:
        typer.echo("Error: no active schedule", err=True)
        raise typer.Exit(1)
    active_layout = to_layout(active)
    data = asdict(active_layout)
    data["media_urls"] = active_layout.media_urls()
    typer.echo(_dumps(data))


@app.command("validate")
def validate(
    file: Path = typer.Argument(..., help="Configuration document (JSON or YAML)"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """Check a configuration document; exits 1 when it has errors."""
    try:
        document = load_document(file)
    except ConfigurationFetchError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    report = validate_document(document)
    if json_output:
        typer.echo(_dumps(report.to_dict()))
    else:
        for error in report.errors:
            typer.echo(f"ERROR   {error}")
        for warning in report.warnings:
            typer.echo(f"WARNING {warning}")
        status = "valid" if report.is_valid else "invalid"
        typer.echo(f"{file}: {status} ({len(report.errors)} errors, {len(report.warnings)} warnings)")

    if not report.is_valid:
        raise typer.Exit(1)


@app.command("run")
def run(
    file: Path = typer.Option(None, "--file", "-f", help="Play a local configuration file"),
    configuration_id: str = typer.Option(
        None, "--id", help="Configuration id to fetch (default: MARQUEE_CONFIGURATION_ID)"
    ),
    seconds: float = typer.Option(0.0, "--seconds", help="Stop after N seconds (0: run until interrupted)"),
):
    """Run a headless player and print its final status as JSON."""
    log = get_logger(__name__)

    if file is not None:
        provider: Any = FileConfigurationProvider(file)
        config_id = configuration_id or file.stem
    else:
        config_id = configuration_id or settings.configuration_id
        if not config_id:
            typer.echo("Error: pass --file or --id (or set MARQUEE_CONFIGURATION_ID)", err=True)
            raise typer.Exit(2)
        provider = PublisherConfigurationProvider(settings.publisher_url, settings.fetch_timeout_s)

    loop = ThreadedEventLoop()
    player = Player.build(
        provider,
        loop,
        SystemClock(),
        HeadlessSurface(loop),
        settings,
        configuration_id=config_id,
    )
    log.info("player_starting", configuration_id=config_id)
    player.start()
    try:
        if seconds > 0:
            time.sleep(seconds)
        else:
            while True:
                time.sleep(1.0)
    except KeyboardInterrupt:
        log.info("player_interrupted")
    status = player.status()
    player.stop()
    typer.echo(_dumps(asdict(status)))


def cli() -> None:
    app()


if __name__ == "__main__":
    cli()
