"""Conversion of native source records into ``UnifiedEvent``.

One pure function per source. Ids are namespaced per source by
``unified_event_id`` so they stay unique across the merged timeline.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from agenda.calendar.records import (
    CalendarEventRecord,
    EventType,
    InterventionRecord,
    PersonRef,
    SourceTag,
    TimeOffRecord,
    TimeOffStatus,
    TimeOffType,
)

_ID_PREFIXES: dict[SourceTag, str] = {
    SourceTag.CALENDAR_EVENT: "calendar",
    SourceTag.TIMEOFF: "timeoff",
    SourceTag.INTERVENTION: "intervention",
}

TIME_OFF_LABELS: dict[str, str] = {
    TimeOffType.VACATION: "Congés payés",
    TimeOffType.SICK_LEAVE: "Arrêt maladie",
    TimeOffType.PERSONAL_DAY: "Jour personnel",
    TimeOffType.MATERNITY_LEAVE: "Congé maternité",
    TimeOffType.PATERNITY_LEAVE: "Congé paternité",
    TimeOffType.BEREAVEMENT: "Congé décès",
    TimeOffType.OTHER: "Autre",
}


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EventOwner(_CamelModel):
    id: int
    first_name: str
    last_name: str
    avatar_url: str | None = None
    service_id: int | None = None


class TimeOffDetails(_CamelModel):
    type: str
    type_label: str
    status: str
    reason: str | None = None


class TechnicianInfo(_CamelModel):
    id: int
    first_name: str
    last_name: str
    specialty: str | None = None


class InterventionDetails(_CamelModel):
    mission_id: str
    client_name: str | None = None
    status: str
    technicians: list[TechnicianInfo] = Field(default_factory=list)


class UnifiedEvent(_CamelModel):
    """One entry of the merged timeline.

    ``source_payload`` keeps the full native record for drill-down.
    """

    id: str
    title: str
    description: str | None = None
    start_time: datetime
    end_time: datetime
    type: str
    source_tag: SourceTag
    priority: str
    is_all_day: bool = False
    location: str | None = None
    reminder: datetime | None = None
    calendar_id: int | None = None
    owner_user_id: int
    owner_display: str
    owner: EventOwner
    time_off: TimeOffDetails | None = None
    intervention: InterventionDetails | None = None
    source_payload: dict[str, Any] = Field(default_factory=dict)


def unified_event_id(source: SourceTag, native_id: int | str) -> str:
    """Build the namespaced unified id, e.g. ``timeoff-12``."""
    return f"{_ID_PREFIXES[source]}-{native_id}"


def time_off_label(type_: str) -> str:
    return TIME_OFF_LABELS.get(type_, type_)


def _owner(person: PersonRef) -> EventOwner:
    return EventOwner(
        id=person.id,
        first_name=person.first_name,
        last_name=person.last_name,
        avatar_url=person.avatar_url,
        service_id=person.service_id,
    )


def normalize_calendar_event(record: CalendarEventRecord) -> UnifiedEvent:
    return UnifiedEvent(
        id=unified_event_id(SourceTag.CALENDAR_EVENT, record.id),
        title=record.title,
        description=record.description or None,
        start_time=record.start_time,
        end_time=record.end_time,
        type=record.type,
        source_tag=SourceTag.CALENDAR_EVENT,
        priority=record.priority,
        is_all_day=record.is_all_day,
        location=record.location or None,
        reminder=record.reminder,
        calendar_id=record.calendar_id,
        owner_user_id=record.owner.id,
        owner_display=record.owner.display_name,
        owner=_owner(record.owner),
        source_payload=dataclasses.asdict(record),
    )


def normalize_time_off(record: TimeOffRecord) -> UnifiedEvent:
    """Time-off is all-day; approved requests rank above pending/rejected ones."""
    label = time_off_label(record.type)
    return UnifiedEvent(
        id=unified_event_id(SourceTag.TIMEOFF, record.id),
        title=f"Congé - {label} - {record.owner.display_name}",
        description=record.reason or None,
        start_time=record.start_date,
        end_time=record.end_date,
        type=EventType.TIMEOFF,
        source_tag=SourceTag.TIMEOFF,
        priority="medium" if record.status == TimeOffStatus.APPROVED else "low",
        is_all_day=True,
        calendar_id=record.calendar_id,
        owner_user_id=record.owner.id,
        owner_display=record.owner.display_name,
        owner=_owner(record.owner),
        time_off=TimeOffDetails(
            type=record.type,
            type_label=label,
            status=record.status,
            reason=record.reason or None,
        ),
        source_payload=dataclasses.asdict(record),
    )


def normalize_intervention(record: InterventionRecord) -> UnifiedEvent:
    """Interventions without an end are rendered as a single instant at their start."""
    return UnifiedEvent(
        id=unified_event_id(SourceTag.INTERVENTION, record.id),
        title=f"Intervention - {record.mission.nature}",
        description=record.comment or record.mission.contract_objective or None,
        start_time=record.start_time,
        end_time=record.end_time or record.start_time,
        type=EventType.INTERVENTION,
        source_tag=SourceTag.INTERVENTION,
        priority="high",
        is_all_day=False,
        owner_user_id=record.assignee.id,
        owner_display=record.assignee.display_name,
        owner=_owner(record.assignee),
        intervention=InterventionDetails(
            mission_id=record.mission.id,
            client_name=record.mission.client_name,
            status=record.status,
            technicians=[
                TechnicianInfo(
                    id=t.id,
                    first_name=t.first_name,
                    last_name=t.last_name,
                    specialty=t.specialty,
                )
                for t in record.technicians
            ],
        ),
        source_payload=dataclasses.asdict(record),
    )
