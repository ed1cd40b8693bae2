"""Unified timeline aggregation.

``aggregate_timeline`` is the single entry point used by the HTTP route and
the CLI:

1. fail closed when no actor is attached;
2. resolve the window and parse every filter before any storage I/O;
3. build the three visibility predicates from the same actor snapshot;
4. run the three fetch+normalize pipelines concurrently, optionally bounded
   by a timeout; any failure cancels the pending fetches and aborts the
   whole request;
5. merge the normalized streams into one time-ordered list.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, tzinfo

from agenda.calendar.errors import AggregationTimeout, AuthContextMissing
from agenda.calendar.fetchers import fetch_calendar_events, fetch_interventions, fetch_time_offs
from agenda.calendar.merge import merge_timeline
from agenda.calendar.normalize import (
    UnifiedEvent,
    normalize_calendar_event,
    normalize_intervention,
    normalize_time_off,
)
from agenda.calendar.policy import (
    Actor,
    calendar_event_visibility,
    intervention_visibility,
    time_off_visibility,
)
from agenda.calendar.query import TimelineQuery, parse_query
from agenda.calendar.records import SourceTag
from agenda.calendar.store import CalendarStore
from agenda.calendar.window import TimeWindow
from agenda.core.metrics import calendar_metrics
from agenda.core.telemetry import calendar_span

logger = logging.getLogger(__name__)


@dataclass
class Timeline:
    """Result of one aggregation."""

    events: list[UnifiedEvent]
    window: TimeWindow
    actor: Actor
    counts_by_source: dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.events)


async def _pipeline[R](
    fetch: Awaitable[list[R]],
    normalize: Callable[[R], UnifiedEvent],
) -> list[UnifiedEvent]:
    return [normalize(record) for record in await fetch]


async def _skipped() -> list[UnifiedEvent]:
    return []


async def _gather_all(*pipelines: Awaitable[list[UnifiedEvent]]) -> list[list[UnifiedEvent]]:
    """Run *pipelines* concurrently; cancel the rest as soon as one fails."""
    tasks = [asyncio.ensure_future(p) for p in pipelines]
    try:
        return list(await asyncio.gather(*tasks))
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        # Let cancelled tasks unwind before the error propagates.
        await asyncio.gather(*tasks, return_exceptions=True)


async def aggregate_timeline(
    store: CalendarStore,
    actor: Actor | None,
    query: TimelineQuery,
    *,
    tz: tzinfo = UTC,
    timeout: float | None = None,
) -> Timeline:
    """Build the unified, visibility-filtered timeline for *actor*.

    Parameters
    ----------
    store:
        Storage capability the three sources are read from.
    actor:
        The authenticated caller. ``None`` raises ``AuthContextMissing``.
    query:
        Raw request parameters, validated here.
    tz:
        Zone whose midnight bounds the window.
    timeout:
        Seconds allowed for the concurrent fetches; ``None`` or ``0`` means
        no limit.

    Raises
    ------
    AuthContextMissing
        No actor attached.
    ValidationError
        Invalid window or filter; no storage query is issued.
    SourceFetchFailure
        A source fetch failed; no partial timeline is returned.
    AggregationTimeout
        The fetches did not finish within *timeout*.
    """
    if actor is None:
        logger.error("Unified calendar reached without an actor; failing closed")
        raise AuthContextMissing()

    plan = parse_query(query, tz=tz)
    targets = plan.target_user_ids
    event_scope = calendar_event_visibility(actor, targets)
    time_off_scope = time_off_visibility(actor, targets)
    intervention_scope = intervention_visibility(actor, targets)

    started = time.monotonic()
    with calendar_span("aggregate", role=str(actor.role), actor_id=actor.id) as span:
        pipelines = [
            _pipeline(
                fetch_calendar_events(store, plan.window, event_scope, plan.calendar_filters),
                normalize_calendar_event,
            ),
            _pipeline(
                fetch_time_offs(store, plan.window, time_off_scope, plan.time_off_filters),
                normalize_time_off,
            )
            if plan.include_time_offs
            else _skipped(),
            _pipeline(
                fetch_interventions(
                    store, plan.window, intervention_scope, plan.intervention_filters
                ),
                normalize_intervention,
            )
            if plan.include_interventions
            else _skipped(),
        ]
        try:
            async with asyncio.timeout(timeout or None):
                calendar_events, time_offs, interventions = await _gather_all(*pipelines)
        except TimeoutError as exc:
            logger.error("Unified calendar aggregation timed out after %ss", timeout)
            calendar_metrics.record_fetch_failure("all")
            raise AggregationTimeout(timeout or 0) from exc

        events = merge_timeline(calendar_events, time_offs, interventions)
        span.set_attribute("calendar.total", len(events))

    counts = {
        SourceTag.CALENDAR_EVENT.value: len(calendar_events),
        SourceTag.TIMEOFF.value: len(time_offs),
        SourceTag.INTERVENTION.value: len(interventions),
    }
    duration_ms = (time.monotonic() - started) * 1000
    calendar_metrics.record_aggregation(duration_ms, actor.role)
    calendar_metrics.record_events(counts, actor.role)
    logger.info(
        "Unified calendar: total=%d calendar_events=%d time_offs=%d interventions=%d "
        "actor=%s role=%s",
        len(events),
        counts[SourceTag.CALENDAR_EVENT],
        counts[SourceTag.TIMEOFF],
        counts[SourceTag.INTERVENTION],
        actor.id,
        actor.role,
    )
    return Timeline(events=events, window=plan.window, actor=actor, counts_by_source=counts)
