"""Parsing of the unified-calendar query parameters.

``TimelineQuery`` holds the raw request values; ``parse_query`` validates
them into a ``TimelinePlan`` (resolved window, explicit target users, which
sources to fetch and the secondary filters pushed down to each source)
before any storage I/O happens.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, tzinfo

from agenda.calendar.errors import ValidationError
from agenda.calendar.records import EventType, SourceTag
from agenda.calendar.window import TimeWindow, resolve_window

_STATUS_PATTERN = re.compile(r"^[A-Za-z0-9_\-]{1,64}$")
_KNOWN_TYPES = frozenset(EventType) | frozenset(SourceTag)

# Ids are Postgres ``integer`` columns.
INT4_MIN = -(2**31)
INT4_MAX = 2**31 - 1


@dataclass(frozen=True)
class TimelineQuery:
    """Raw query parameters of ``GET /calendar/unified``."""

    start_date: str | None
    end_date: str | None
    types: str | None = None
    user_ids: str | None = None
    status: str | None = None
    include_time_offs: bool = True
    include_interventions: bool = True


@dataclass(frozen=True)
class SourceFilters:
    """Secondary filters forwarded to a source's native fields.

    ``None`` means "no filter" for that field.
    """

    event_types: frozenset[str] | None = None
    statuses: frozenset[str] | None = None


@dataclass(frozen=True)
class TimelinePlan:
    window: TimeWindow
    target_user_ids: frozenset[int] | None
    include_time_offs: bool
    include_interventions: bool
    calendar_filters: SourceFilters
    time_off_filters: SourceFilters
    intervention_filters: SourceFilters


def split_csv(value: str | None) -> list[str]:
    """Split a comma-separated parameter, dropping blanks."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def parse_user_ids(value: str | None) -> frozenset[int] | None:
    parts = split_csv(value)
    if not parts:
        return None
    try:
        ids = frozenset(int(part) for part in parts)
    except ValueError as exc:
        raise ValidationError(
            "userIds", "userIds must be a comma-separated list of integers"
        ) from exc
    if any(not INT4_MIN <= user_id <= INT4_MAX for user_id in ids):
        raise ValidationError("userIds", "userIds contains an id outside the integer range")
    return ids


def parse_types(value: str | None) -> frozenset[str] | None:
    parts = [part.upper() for part in split_csv(value)]
    if not parts:
        return None
    if any(part not in _KNOWN_TYPES for part in parts):
        raise ValidationError("types", "types contains an unknown event type")
    return frozenset(parts)


def parse_statuses(value: str | None) -> frozenset[str] | None:
    parts = split_csv(value)
    if not parts:
        return None
    if any(_STATUS_PATTERN.fullmatch(part) is None for part in parts):
        raise ValidationError("status", "status contains an invalid value")
    return frozenset(parts)


def parse_query(query: TimelineQuery, tz: tzinfo = UTC) -> TimelinePlan:
    """Validate *query* and decide what each source fetch looks like.

    ``types`` keeps an event when either its type or its source tag is
    listed. Time-off records always have type ``TIMEOFF`` and interventions
    ``INTERVENTION``, so those sources are fetched only when their tag is
    listed; generic events are filtered on their native type unless
    ``CALENDAR_EVENT`` itself is listed.
    """
    window = resolve_window(query.start_date, query.end_date, tz=tz)
    target_user_ids = parse_user_ids(query.user_ids)
    types = parse_types(query.types)
    statuses = parse_statuses(query.status)

    include_time_offs = query.include_time_offs
    include_interventions = query.include_interventions
    calendar_types: frozenset[str] | None = None
    if types is not None:
        include_time_offs = include_time_offs and SourceTag.TIMEOFF in types
        include_interventions = include_interventions and SourceTag.INTERVENTION in types
        if SourceTag.CALENDAR_EVENT not in types:
            calendar_types = frozenset(t for t in types if t in EventType.__members__)

    return TimelinePlan(
        window=window,
        target_user_ids=target_user_ids,
        include_time_offs=include_time_offs,
        include_interventions=include_interventions,
        calendar_filters=SourceFilters(event_types=calendar_types),
        time_off_filters=SourceFilters(statuses=statuses),
        intervention_filters=SourceFilters(statuses=statuses),
    )
