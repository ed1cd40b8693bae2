"""Response models for the unified calendar endpoints."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from agenda.calendar.aggregate import Timeline
from agenda.calendar.normalize import UnifiedEvent


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WindowInfo(_CamelModel):
    start_date: date
    end_date: date
    start: datetime
    end_exclusive: datetime


class ActorInfo(_CamelModel):
    id: int
    role: str
    service_id: int | None = None


class TimelineMetadata(_CamelModel):
    total: int
    counts_by_source: dict[str, int]
    window: WindowInfo
    actor: ActorInfo


class TimelineData(_CamelModel):
    events: list[UnifiedEvent]
    metadata: TimelineMetadata


class CalendarOwner(_CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str | None = None
    position: str | None = None
    department: str | None = None
    avatar_url: str | None = None


class UserCalendar(_CamelModel):
    id: int
    name: str
    user: CalendarOwner


def timeline_to_data(timeline: Timeline) -> TimelineData:
    """Build the ``data`` payload of ``GET /calendar/unified``."""
    window = timeline.window
    return TimelineData(
        events=timeline.events,
        metadata=TimelineMetadata(
            total=timeline.total,
            counts_by_source=timeline.counts_by_source,
            window=WindowInfo(
                start_date=window.start_date,
                end_date=window.end_date,
                start=window.start,
                end_exclusive=window.end_exclusive,
            ),
            actor=ActorInfo(
                id=timeline.actor.id,
                role=timeline.actor.role,
                service_id=timeline.actor.service_id,
            ),
        ),
    )
