"""Service-wide singletons and FastAPI dependency wiring.

Provides:
- the loaded ``AgendaConfig``;
- the ``Database`` pool and the ``PostgresCalendarStore`` built on it;
- ``wire_dependencies()`` which overrides router-level dependency stubs.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fastapi import FastAPI

from agenda.calendar.store import CalendarStore, PostgresCalendarStore
from agenda.config import AgendaConfig, CalendarConfig
from agenda.db import Database

logger = logging.getLogger(__name__)

_config: AgendaConfig | None = None
_database: Database | None = None
_calendar_store: CalendarStore | None = None


def init_config(config: AgendaConfig) -> AgendaConfig:
    """Install the configuration singleton. Called once from the lifespan handler."""
    global _config  # noqa: PLW0603
    _config = config
    return config


def get_config() -> AgendaConfig:
    """FastAPI dependency: provides the AgendaConfig singleton."""
    if _config is None:
        raise RuntimeError("AgendaConfig not initialized; call init_config() first")
    return _config


def get_calendar_config() -> CalendarConfig:
    """FastAPI dependency: the [agenda.calendar] section."""
    return get_config().calendar


async def init_calendar_store(config: AgendaConfig) -> CalendarStore:
    """Connect the database pool and build the Postgres-backed store."""
    global _database, _calendar_store  # noqa: PLW0603

    db = Database.from_env(config.db_name, schema=config.db_schema)
    await db.connect()
    _database = db
    _calendar_store = PostgresCalendarStore(db)
    return _calendar_store


def set_calendar_store(store: CalendarStore | None) -> None:
    """Install an already-built store, or clear it with ``None``."""
    global _calendar_store  # noqa: PLW0603
    _calendar_store = store


async def shutdown_calendar_store() -> None:
    """Close the database pool. Called during app shutdown."""
    global _database, _calendar_store  # noqa: PLW0603
    if _database is not None:
        await _database.close()
        _database = None
    _calendar_store = None


def get_calendar_store() -> CalendarStore:
    """FastAPI dependency: provides the CalendarStore singleton."""
    if _calendar_store is None:
        raise RuntimeError("CalendarStore not initialized; call init_calendar_store() first")
    return _calendar_store


def wire_dependencies(app: FastAPI) -> None:
    """Override the router-level dependency stubs with the singletons."""
    from agenda.api.routers import calendar

    app.dependency_overrides[calendar._get_calendar_store] = get_calendar_store
    app.dependency_overrides[calendar._get_calendar_config] = get_calendar_config
