"""Unified calendar endpoints.

Provides:

- ``router``: ``GET /calendar/unified`` and ``GET /calendar/users``

The unified endpoint merges generic calendar events, time-off requests and
field interventions into one time-ordered list, filtered by the caller's
role. The router is also mounted under ``/api/v1`` by the app factory.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from agenda.api.auth import get_actor, require_actor
from agenda.api.models import ApiResponse
from agenda.api.models.calendar import (
    CalendarOwner,
    TimelineData,
    UserCalendar,
    timeline_to_data,
)
from agenda.calendar.aggregate import aggregate_timeline
from agenda.calendar.policy import Actor, calendar_event_visibility
from agenda.calendar.query import INT4_MAX, INT4_MIN, TimelineQuery
from agenda.calendar.records import UserCalendarRecord
from agenda.calendar.store import CalendarStore
from agenda.config import CalendarConfig

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["calendar"])


def _get_calendar_store() -> CalendarStore:
    """Dependency stub, overridden at app startup or in tests."""
    raise RuntimeError("CalendarStore not initialized")


def _get_calendar_config() -> CalendarConfig:
    """Dependency stub, overridden at app startup or in tests."""
    raise RuntimeError("CalendarConfig not initialized")


# ---------------------------------------------------------------------------
# Response builders
# ---------------------------------------------------------------------------


def _calendar_to_model(record: UserCalendarRecord) -> UserCalendar:
    owner = record.owner
    return UserCalendar(
        id=record.id,
        name=record.name,
        user=CalendarOwner(
            id=owner.id,
            first_name=owner.first_name,
            last_name=owner.last_name,
            email=record.email,
            position=record.position,
            department=record.department,
            avatar_url=owner.avatar_url,
        ),
    )


# ---------------------------------------------------------------------------
# GET /calendar/unified
# ---------------------------------------------------------------------------


@router.get("/unified", response_model=ApiResponse[TimelineData])
async def get_unified_calendar(
    start_date: str | None = Query(None, alias="startDate", description="First day (YYYY-MM-DD)"),
    end_date: str | None = Query(
        None, alias="endDate", description="Last day, inclusive (YYYY-MM-DD)"
    ),
    types: str | None = Query(None, description="Comma-separated event types or source tags"),
    user_ids: str | None = Query(
        None, alias="userIds", description="Comma-separated owner ids (explicit override)"
    ),
    status: str | None = Query(None, description="Comma-separated time-off/intervention status"),
    include_time_offs: bool = Query(True, alias="includeTimeOffs"),
    include_interventions: bool = Query(True, alias="includeInterventions"),
    actor: Actor | None = Depends(get_actor),
    store: CalendarStore = Depends(_get_calendar_store),
    config: CalendarConfig = Depends(_get_calendar_config),
) -> ApiResponse[TimelineData]:
    """Return the unified, role-filtered timeline for the requested days.

    The window covers every instant from midnight of ``startDate`` up to,
    but excluding, midnight after ``endDate``.
    """
    query = TimelineQuery(
        start_date=start_date,
        end_date=end_date,
        types=types,
        user_ids=user_ids,
        status=status,
        include_time_offs=include_time_offs,
        include_interventions=include_interventions,
    )
    timeline = await aggregate_timeline(
        store,
        actor,
        query,
        tz=config.tzinfo,
        timeout=config.fetch_timeout_s,
    )
    return ApiResponse[TimelineData](data=timeline_to_data(timeline))


# ---------------------------------------------------------------------------
# GET /calendar/users
# ---------------------------------------------------------------------------


@router.get("/users", response_model=ApiResponse[list[UserCalendar]])
async def list_user_calendars(
    user_id: int | None = Query(
        None, alias="userId", ge=INT4_MIN, le=INT4_MAX, description="Restrict to one user"
    ),
    actor: Actor = Depends(require_actor),
    store: CalendarStore = Depends(_get_calendar_store),
) -> ApiResponse[list[UserCalendar]]:
    """List one calendar per user visible to the caller, ordered by first name."""
    visibility = calendar_event_visibility(actor)
    records = await store.list_user_calendars(visibility, user_id=user_id)
    logger.debug("Listed %d user calendars for actor=%s", len(records), actor.id)
    return ApiResponse[list[UserCalendar]](data=[_calendar_to_model(r) for r in records])
