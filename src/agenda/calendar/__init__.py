"""Unified calendar: window resolution, role visibility and timeline aggregation."""

from agenda.calendar.aggregate import Timeline, aggregate_timeline
from agenda.calendar.errors import (
    AggregationTimeout,
    AuthContextMissing,
    CalendarError,
    SourceFetchFailure,
    ValidationError,
)
from agenda.calendar.normalize import UnifiedEvent
from agenda.calendar.policy import Actor, Role
from agenda.calendar.query import TimelineQuery
from agenda.calendar.store import CalendarStore, PostgresCalendarStore
from agenda.calendar.window import TimeWindow, resolve_window

__all__ = [
    "Actor",
    "AggregationTimeout",
    "AuthContextMissing",
    "CalendarError",
    "CalendarStore",
    "PostgresCalendarStore",
    "Role",
    "SourceFetchFailure",
    "TimeWindow",
    "Timeline",
    "TimelineQuery",
    "UnifiedEvent",
    "ValidationError",
    "aggregate_timeline",
    "resolve_window",
]
