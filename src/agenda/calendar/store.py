"""Storage boundary for the unified calendar.

``CalendarStore`` is the read-only query capability the aggregation needs:
one "find many matching window + visibility + filters, with display context"
method per source. ``PostgresCalendarStore`` implements it over an asyncpg
pool with one query per source; related display fields (owner, creator,
approver, mission, client, technicians) are joined into the same statement so
no per-record follow-up queries are issued.

Tables read (owned by the ERP's CRUD modules)::

    users(id, first_name, last_name, email, position, department, avatar_url, service_id)
    user_calendars(id, user_id, name)
    calendar_events(id, calendar_id, title, description, start_time, end_time, type,
                    priority, is_all_day, location, reminder, created_by)
    time_off_requests(id, calendar_id, type, status, start_date, end_date, reason, approved_by)
    clients(id, name)
    missions(id, nature, contract_objective, client_id)
    interventions(id, mission_id, user_id, start_time, end_time, status, comment)
    specialties(id, label)
    technicians(id, first_name, last_name, specialty_id)
    intervention_technicians(intervention_id, technician_id)

Time columns may be ``timestamptz`` or ``timestamp`` without time zone (the
ERP's ``timestamp(3)``). Naive values are UTC: the pool pins the session
``TimeZone`` to UTC for the comparison, and rows read back are tagged UTC.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any, Protocol

import asyncpg

from agenda.calendar.policy import VisibilityPredicate
from agenda.calendar.query import SourceFilters
from agenda.calendar.records import (
    CalendarEventRecord,
    InterventionRecord,
    MissionRef,
    PersonRef,
    SourceTag,
    TechnicianRef,
    TimeOffRecord,
    UserCalendarRecord,
)
from agenda.calendar.window import TimeWindow
from agenda.db import Database

logger = logging.getLogger(__name__)


class CalendarStore(Protocol):
    """Read-only query capability over the three calendar sources."""

    async def find_calendar_events(
        self,
        window: TimeWindow,
        visibility: VisibilityPredicate,
        filters: SourceFilters,
    ) -> list[CalendarEventRecord]: ...

    async def find_time_offs(
        self,
        window: TimeWindow,
        visibility: VisibilityPredicate,
        filters: SourceFilters,
    ) -> list[TimeOffRecord]: ...

    async def find_interventions(
        self,
        window: TimeWindow,
        visibility: VisibilityPredicate,
        filters: SourceFilters,
    ) -> list[InterventionRecord]: ...

    async def list_user_calendars(
        self,
        visibility: VisibilityPredicate,
        user_id: int | None = None,
    ) -> list[UserCalendarRecord]: ...


# ---------------------------------------------------------------------------
# SQL rendering
# ---------------------------------------------------------------------------


class _Args:
    """Positional ``$n`` argument collector for asyncpg queries."""

    def __init__(self) -> None:
        self.values: list[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


def overlap_clause(start_col: str, end_col: str, window: TimeWindow, args: _Args) -> str:
    """Render the window-overlap condition shared by every source.

    ``[start, end]`` overlaps ``[window.start, window.end_exclusive)`` when
    ``start < end_exclusive AND end > window.start``. A missing or degenerate
    end makes the record a single instant, kept when ``start >= window.start``.
    """
    end_exclusive = args.add(window.end_exclusive)
    start = args.add(window.start)
    return (
        f"{start_col} < {end_exclusive}::timestamptz "
        f"AND (COALESCE({end_col}, {start_col}) > {start}::timestamptz "
        f"OR {start_col} >= {start}::timestamptz)"
    )


def visibility_clause(
    visibility: VisibilityPredicate,
    owner_col: str,
    service_col: str,
    args: _Args,
) -> str:
    """Render a ``VisibilityPredicate`` against the given owner columns."""
    if visibility.unrestricted:
        return "TRUE"
    conditions: list[str] = []
    if visibility.owner_ids:
        conditions.append(f"{owner_col} = ANY({args.add(sorted(visibility.owner_ids))}::int[])")
    if visibility.service_id is not None:
        conditions.append(f"{service_col} = {args.add(visibility.service_id)}")
    if not conditions:
        return "FALSE"
    return "(" + " OR ".join(conditions) + ")"


def _in_clause(column: str, values: frozenset[str] | None, args: _Args) -> str | None:
    if values is None:
        return None
    return f"{column} = ANY({args.add(sorted(values))}::text[])"


def _check_source(visibility: VisibilityPredicate, expected: SourceTag) -> None:
    if visibility.source is not expected:
        raise ValueError(f"Expected a {expected} predicate, got {visibility.source}")


# ---------------------------------------------------------------------------
# Row mapping
# ---------------------------------------------------------------------------


def _utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _person(row: Any, prefix: str) -> PersonRef | None:
    person_id = row[f"{prefix}_id"]
    if person_id is None:
        return None
    return PersonRef(
        id=person_id,
        first_name=row[f"{prefix}_first_name"] or "",
        last_name=row[f"{prefix}_last_name"] or "",
        avatar_url=row[f"{prefix}_avatar_url"],
        service_id=row[f"{prefix}_service_id"],
    )


def _technicians(raw: Any) -> tuple[TechnicianRef, ...]:
    if raw is None:
        return ()
    items = json.loads(raw) if isinstance(raw, str) else raw
    return tuple(
        TechnicianRef(
            id=item["id"],
            first_name=item.get("first_name") or "",
            last_name=item.get("last_name") or "",
            specialty=item.get("specialty"),
        )
        for item in items
    )


_PERSON_COLUMNS = """
    {alias}.id AS {prefix}_id,
    {alias}.first_name AS {prefix}_first_name,
    {alias}.last_name AS {prefix}_last_name,
    {alias}.avatar_url AS {prefix}_avatar_url,
    {alias}.service_id AS {prefix}_service_id"""


def _person_columns(alias: str, prefix: str) -> str:
    return _PERSON_COLUMNS.format(alias=alias, prefix=prefix)


class PostgresCalendarStore:
    """``CalendarStore`` backed by an asyncpg pool.

    Accepts either a raw pool or an ``agenda.db.Database``; both expose
    ``fetch``. The pool is owned by the caller.
    """

    def __init__(self, pool: asyncpg.Pool | Database) -> None:
        self._pool = pool

    async def find_calendar_events(
        self,
        window: TimeWindow,
        visibility: VisibilityPredicate,
        filters: SourceFilters,
    ) -> list[CalendarEventRecord]:
        _check_source(visibility, SourceTag.CALENDAR_EVENT)
        args = _Args()
        conditions = [
            overlap_clause("e.start_time", "e.end_time", window, args),
            visibility_clause(visibility, "o.id", "o.service_id", args),
        ]
        type_filter = _in_clause("e.type", filters.event_types, args)
        if type_filter:
            conditions.append(type_filter)

        sql = f"""
            SELECT
                e.id, e.calendar_id, e.title, e.description, e.start_time, e.end_time,
                e.type, e.priority, e.is_all_day, e.location, e.reminder,
                {_person_columns("o", "owner")},
                {_person_columns("cr", "creator")}
            FROM calendar_events e
            JOIN user_calendars c ON c.id = e.calendar_id
            JOIN users o ON o.id = c.user_id
            LEFT JOIN users cr ON cr.id = e.created_by
            WHERE {" AND ".join(conditions)}
            ORDER BY e.start_time, e.id
        """
        rows = await self._pool.fetch(sql, *args.values)
        return [
            CalendarEventRecord(
                id=r["id"],
                calendar_id=r["calendar_id"],
                title=r["title"],
                description=r["description"],
                start_time=_utc(r["start_time"]),
                end_time=_utc(r["end_time"]),
                type=r["type"],
                priority=r["priority"],
                is_all_day=r["is_all_day"],
                location=r["location"],
                reminder=_utc(r["reminder"]),
                owner=_person(r, "owner"),
                creator=_person(r, "creator"),
            )
            for r in rows
        ]

    async def find_time_offs(
        self,
        window: TimeWindow,
        visibility: VisibilityPredicate,
        filters: SourceFilters,
    ) -> list[TimeOffRecord]:
        _check_source(visibility, SourceTag.TIMEOFF)
        args = _Args()
        conditions = [
            overlap_clause("t.start_date", "t.end_date", window, args),
            visibility_clause(visibility, "o.id", "o.service_id", args),
        ]
        status_filter = _in_clause("t.status", filters.statuses, args)
        if status_filter:
            conditions.append(status_filter)

        sql = f"""
            SELECT
                t.id, t.calendar_id, t.type, t.status, t.start_date, t.end_date, t.reason,
                {_person_columns("o", "owner")},
                {_person_columns("ap", "approver")}
            FROM time_off_requests t
            JOIN user_calendars c ON c.id = t.calendar_id
            JOIN users o ON o.id = c.user_id
            LEFT JOIN users ap ON ap.id = t.approved_by
            WHERE {" AND ".join(conditions)}
            ORDER BY t.start_date, t.id
        """
        rows = await self._pool.fetch(sql, *args.values)
        return [
            TimeOffRecord(
                id=r["id"],
                calendar_id=r["calendar_id"],
                type=r["type"],
                status=r["status"],
                start_date=_utc(r["start_date"]),
                end_date=_utc(r["end_date"]),
                reason=r["reason"],
                owner=_person(r, "owner"),
                approver=_person(r, "approver"),
            )
            for r in rows
        ]

    async def find_interventions(
        self,
        window: TimeWindow,
        visibility: VisibilityPredicate,
        filters: SourceFilters,
    ) -> list[InterventionRecord]:
        _check_source(visibility, SourceTag.INTERVENTION)
        args = _Args()
        conditions = [
            overlap_clause("i.start_time", "i.end_time", window, args),
            visibility_clause(visibility, "u.id", "u.service_id", args),
        ]
        status_filter = _in_clause("i.status", filters.statuses, args)
        if status_filter:
            conditions.append(status_filter)

        sql = f"""
            SELECT
                i.id, i.start_time, i.end_time, i.status, i.comment,
                m.id AS mission_id, m.nature AS mission_nature,
                m.contract_objective AS mission_contract_objective,
                cl.id AS client_id, cl.name AS client_name,
                {_person_columns("u", "assignee")},
                COALESCE((
                    SELECT json_agg(
                        json_build_object(
                            'id', tc.id,
                            'first_name', tc.first_name,
                            'last_name', tc.last_name,
                            'specialty', sp.label
                        )
                        ORDER BY tc.id
                    )
                    FROM intervention_technicians it
                    JOIN technicians tc ON tc.id = it.technician_id
                    LEFT JOIN specialties sp ON sp.id = tc.specialty_id
                    WHERE it.intervention_id = i.id
                ), '[]'::json) AS technicians
            FROM interventions i
            JOIN missions m ON m.id = i.mission_id
            LEFT JOIN clients cl ON cl.id = m.client_id
            JOIN users u ON u.id = i.user_id
            WHERE {" AND ".join(conditions)}
            ORDER BY i.start_time, i.id
        """
        rows = await self._pool.fetch(sql, *args.values)
        return [
            InterventionRecord(
                id=r["id"],
                mission=MissionRef(
                    id=r["mission_id"],
                    nature=r["mission_nature"] or "",
                    contract_objective=r["mission_contract_objective"],
                    client_id=r["client_id"],
                    client_name=r["client_name"],
                ),
                start_time=_utc(r["start_time"]),
                end_time=_utc(r["end_time"]),
                status=r["status"],
                comment=r["comment"],
                assignee=_person(r, "assignee"),
                technicians=_technicians(r["technicians"]),
            )
            for r in rows
        ]

    async def list_user_calendars(
        self,
        visibility: VisibilityPredicate,
        user_id: int | None = None,
    ) -> list[UserCalendarRecord]:
        """Return one calendar per visible user, ordered by first name."""
        _check_source(visibility, SourceTag.CALENDAR_EVENT)
        args = _Args()
        conditions = [visibility_clause(visibility, "u.id", "u.service_id", args)]
        if user_id is not None:
            conditions.append(f"c.user_id = {args.add(user_id)}")

        sql = f"""
            SELECT * FROM (
                SELECT DISTINCT ON (u.id)
                    c.id, c.name, u.email, u.position, u.department,
                    {_person_columns("u", "owner")}
                FROM user_calendars c
                JOIN users u ON u.id = c.user_id
                WHERE {" AND ".join(conditions)}
                ORDER BY u.id, c.id
            ) AS per_user
            ORDER BY owner_first_name, owner_id
        """
        rows = await self._pool.fetch(sql, *args.values)
        return [
            UserCalendarRecord(
                id=r["id"],
                name=r["name"],
                owner=_person(r, "owner"),
                email=r["email"],
                position=r["position"],
                department=r["department"],
            )
            for r in rows
        ]
