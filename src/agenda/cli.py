"""CLI for the agenda service: serve the API or print one timeline."""

from __future__ import annotations

import asyncio
import os
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, timedelta
from pathlib import Path

import click

from agenda.api.models import ApiResponse
from agenda.api.models.calendar import TimelineData, timeline_to_data
from agenda.calendar.aggregate import aggregate_timeline
from agenda.calendar.errors import CalendarError
from agenda.calendar.policy import Actor, Role
from agenda.calendar.query import TimelineQuery
from agenda.calendar.store import CalendarStore, PostgresCalendarStore
from agenda.config import AgendaConfig, ConfigError, load_config_or_default
from agenda.core.logging import configure_logging
from agenda.db import Database

_ROLE_CHOICES = [role.value for role in Role if role is not Role.UNKNOWN]


def _load(config_path: Path | None) -> AgendaConfig:
    try:
        return load_config_or_default(config_path)
    except ConfigError as exc:
        click.echo(f"Config error: {exc}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(version="0.1.0")
def cli() -> None:
    """Agenda: unified ERP calendar and role-visibility service."""


@cli.command()
@click.option("--host", default=None, help="Bind address (default: from config, 0.0.0.0)")
@click.option("--port", type=int, default=None, help="Bind port (default: from config, 40300)")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to agenda.toml (default: $AGENDA_CONFIG or ./agenda.toml)",
)
def serve(host: str | None, port: int | None, config_path: Path | None) -> None:
    """Run the agenda HTTP API."""
    import uvicorn

    config = _load(config_path)
    if config_path is not None:
        os.environ["AGENDA_CONFIG"] = str(config_path)
    configure_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_root=Path(config.logging.log_root) if config.logging.log_root else None,
        service_name=config.name,
    )
    host = host or config.host
    port = port or config.port
    click.echo(f"Starting agenda API on {host}:{port}")
    uvicorn.run("agenda.api.app:create_app", host=host, port=port, factory=True)


@asynccontextmanager
async def _open_store(config: AgendaConfig) -> AsyncIterator[CalendarStore]:
    db = Database.from_env(config.db_name, schema=config.db_schema)
    await db.connect()
    try:
        yield PostgresCalendarStore(db)
    finally:
        await db.close()


async def _run_timeline(config: AgendaConfig, actor: Actor, query: TimelineQuery) -> str:
    async with _open_store(config) as store:
        timeline = await aggregate_timeline(
            store,
            actor,
            query,
            tz=config.calendar.tzinfo,
            timeout=config.calendar.fetch_timeout_s,
        )
    response = ApiResponse[TimelineData](data=timeline_to_data(timeline))
    return response.model_dump_json(by_alias=True, indent=2)


@cli.command()
@click.option("--user-id", type=int, required=True, help="Acting user id")
@click.option(
    "--role",
    type=click.Choice(_ROLE_CHOICES, case_sensitive=False),
    required=True,
    help="Acting user's role",
)
@click.option("--service-id", type=int, default=None, help="Acting user's service id")
@click.option("--start", "start_date", default=None, help="First day (YYYY-MM-DD, default today)")
@click.option("--end", "end_date", default=None, help="Last day (YYYY-MM-DD, default start + 6)")
@click.option("--types", default=None, help="Comma-separated event types or source tags")
@click.option("--user-ids", default=None, help="Comma-separated owner ids")
@click.option("--status", default=None, help="Comma-separated statuses")
@click.option("--no-time-offs", is_flag=True, help="Skip time-off requests")
@click.option("--no-interventions", is_flag=True, help="Skip interventions")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to agenda.toml",
)
def timeline(
    user_id: int,
    role: str,
    service_id: int | None,
    start_date: str | None,
    end_date: str | None,
    types: str | None,
    user_ids: str | None,
    status: str | None,
    no_time_offs: bool,
    no_interventions: bool,
    config_path: Path | None,
) -> None:
    """Print the unified timeline of one actor as JSON."""
    config = _load(config_path)
    configure_logging(level="WARNING", fmt=config.logging.format)

    if start_date is None:
        start_date = date.today().isoformat()
    if end_date is None:
        try:
            end_date = (date.fromisoformat(start_date) + timedelta(days=6)).isoformat()
        except ValueError:
            end_date = start_date

    actor = Actor.from_claims(user_id, role, service_id)
    query = TimelineQuery(
        start_date=start_date,
        end_date=end_date,
        types=types,
        user_ids=user_ids,
        status=status,
        include_time_offs=not no_time_offs,
        include_interventions=not no_interventions,
    )
    try:
        output = asyncio.run(_run_timeline(config, actor, query))
    except CalendarError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    click.echo(output)
