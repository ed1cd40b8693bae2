"""Shared fixtures and helpers for agenda API tests.

Covers:
- An in-memory store seeded with one record per source
- A test app with trusted headers enabled and the router stubs overridden
- Header builders for the gateway identity headers
"""

from __future__ import annotations

import httpx
import pytest
from fastapi import FastAPI

from agenda.api.app import create_app
from agenda.api.routers.calendar import _get_calendar_config, _get_calendar_store
from agenda.config import AgendaConfig, AuthConfig, CalendarConfig
from agenda.testing import InMemoryCalendarStore
from agenda.testing.factories import (
    at,
    make_calendar_event,
    make_intervention,
    make_person,
    make_time_off,
    make_user_calendar,
)

ALICE = make_person(1, first_name="Alice", service_id=1)
BRUNO = make_person(2, first_name="Bruno", service_id=2)
CHLOE = make_person(3, first_name="Chloe", service_id=2)


def actor_headers(user_id: int = 1, role: str = "ADMIN", service_id: int | None = None) -> dict:
    """Build the gateway identity headers for one caller."""
    headers = {"X-User-Id": str(user_id), "X-User-Role": role}
    if service_id is not None:
        headers["X-Service-Id"] = str(service_id)
    return headers


def seeded_store() -> InMemoryCalendarStore:
    return InMemoryCalendarStore(
        calendar_events=[
            make_calendar_event(1, owner=BRUNO, start_time=at("2024-06-10", 9), title="Standup"),
            make_calendar_event(2, owner=CHLOE, start_time=at("2024-06-11", 15), title="Review"),
        ],
        time_offs=[
            make_time_off(1, owner=CHLOE, start_date=at("2024-06-12"), end_date=at("2024-06-13")),
        ],
        interventions=[
            make_intervention(1, assignee=BRUNO, start_time=at("2024-06-11", 8)),
        ],
        calendars=[
            make_user_calendar(20, owner=BRUNO, name="Bruno"),
            make_user_calendar(30, owner=CHLOE, name="Chloe"),
            make_user_calendar(10, owner=ALICE, name="Alice"),
        ],
    )


def build_app(
    store: InMemoryCalendarStore,
    calendar: CalendarConfig | None = None,
    *,
    trusted_headers: bool = True,
) -> FastAPI:
    """Create the app with the router stubs pointing at *store*."""
    config = AgendaConfig(auth=AuthConfig(trusted_headers=trusted_headers))
    app = create_app(config)
    app.dependency_overrides[_get_calendar_store] = lambda: store
    app.dependency_overrides[_get_calendar_config] = lambda: calendar or CalendarConfig()
    return app


def client_for(app: FastAPI) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


@pytest.fixture
def store() -> InMemoryCalendarStore:
    return seeded_store()


@pytest.fixture
def app(store: InMemoryCalendarStore) -> FastAPI:
    return build_app(store)
