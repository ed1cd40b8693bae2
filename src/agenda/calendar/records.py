"""Native record shapes returned by the storage layer, one per source.

The records carry the relational display context (owner, creator, approver,
mission, technicians) that the normalizer needs, fetched in the same round
trip as the records themselves.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime


class SourceTag(enum.StrEnum):
    """Origin system of a unified event."""

    CALENDAR_EVENT = "CALENDAR_EVENT"
    TIMEOFF = "TIMEOFF"
    INTERVENTION = "INTERVENTION"


class EventType(enum.StrEnum):
    """Type tag carried by generic calendar events and unified events."""

    MEETING = "MEETING"
    INTERVENTION = "INTERVENTION"
    MISSION = "MISSION"
    APPOINTMENT = "APPOINTMENT"
    REMINDER = "REMINDER"
    TASK = "TASK"
    TIMEOFF = "TIMEOFF"
    OTHER = "OTHER"


class TimeOffType(enum.StrEnum):
    VACATION = "VACATION"
    SICK_LEAVE = "SICK_LEAVE"
    PERSONAL_DAY = "PERSONAL_DAY"
    MATERNITY_LEAVE = "MATERNITY_LEAVE"
    PATERNITY_LEAVE = "PATERNITY_LEAVE"
    BEREAVEMENT = "BEREAVEMENT"
    OTHER = "OTHER"


class TimeOffStatus(enum.StrEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class PersonRef:
    """A user as seen from a joined record (owner, creator, approver)."""

    id: int
    first_name: str
    last_name: str
    avatar_url: str | None = None
    service_id: int | None = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class CalendarEventRecord:
    """Source A: a generic event on a user calendar.

    ``owner`` is the calendar's owning user; ``creator`` may differ.
    """

    id: int
    calendar_id: int
    title: str
    start_time: datetime
    end_time: datetime
    owner: PersonRef
    type: str = EventType.OTHER
    priority: str = "medium"
    is_all_day: bool = False
    description: str | None = None
    location: str | None = None
    reminder: datetime | None = None
    creator: PersonRef | None = None


@dataclass(frozen=True)
class TimeOffRecord:
    """Source B: a time-off request attached to a user calendar."""

    id: int
    calendar_id: int
    type: str
    status: str
    start_date: datetime
    end_date: datetime
    owner: PersonRef
    reason: str | None = None
    approver: PersonRef | None = None


@dataclass(frozen=True)
class MissionRef:
    """The field-service mission an intervention belongs to."""

    id: str
    nature: str
    contract_objective: str | None = None
    client_id: int | None = None
    client_name: str | None = None


@dataclass(frozen=True)
class TechnicianRef:
    id: int
    first_name: str
    last_name: str
    specialty: str | None = None


@dataclass(frozen=True)
class InterventionRecord:
    """Source C: a dispatched intervention.

    ``assignee`` is the directly-assigned worker; ``technicians`` come from the
    assignment join table.
    """

    id: int
    mission: MissionRef
    start_time: datetime
    status: str
    assignee: PersonRef
    end_time: datetime | None = None
    comment: str | None = None
    technicians: tuple[TechnicianRef, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class UserCalendarRecord:
    """A user calendar with its owner's directory fields."""

    id: int
    name: str
    owner: PersonRef
    email: str | None = None
    position: str | None = None
    department: str | None = None
