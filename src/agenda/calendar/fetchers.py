"""Per-source fetchers.

Each fetcher runs one store query inside an ``agenda.calendar.fetch`` span and
converts any storage exception into a ``SourceFetchFailure`` tagged with its
source. The underlying error is logged here and never reaches the client.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable

from agenda.calendar.errors import SourceFetchFailure
from agenda.calendar.policy import VisibilityPredicate
from agenda.calendar.query import SourceFilters
from agenda.calendar.records import (
    CalendarEventRecord,
    InterventionRecord,
    SourceTag,
    TimeOffRecord,
)
from agenda.calendar.store import CalendarStore
from agenda.calendar.window import TimeWindow
from agenda.core.metrics import calendar_metrics
from agenda.core.telemetry import calendar_span

logger = logging.getLogger(__name__)


async def _run[T](source: SourceTag, call: Awaitable[list[T]]) -> list[T]:
    with calendar_span("fetch", source=str(source)) as span:
        try:
            records = await call
        except SourceFetchFailure:
            calendar_metrics.record_fetch_failure(source)
            raise
        except Exception as exc:
            calendar_metrics.record_fetch_failure(source)
            logger.error("Failed to fetch %s records", source, exc_info=True)
            raise SourceFetchFailure(source, cause=exc) from exc
        span.set_attribute("calendar.records", len(records))
    logger.debug("Fetched %d %s records", len(records), source)
    return records


async def fetch_calendar_events(
    store: CalendarStore,
    window: TimeWindow,
    visibility: VisibilityPredicate,
    filters: SourceFilters,
) -> list[CalendarEventRecord]:
    return await _run(
        SourceTag.CALENDAR_EVENT,
        store.find_calendar_events(window, visibility, filters),
    )


async def fetch_time_offs(
    store: CalendarStore,
    window: TimeWindow,
    visibility: VisibilityPredicate,
    filters: SourceFilters,
) -> list[TimeOffRecord]:
    return await _run(SourceTag.TIMEOFF, store.find_time_offs(window, visibility, filters))


async def fetch_interventions(
    store: CalendarStore,
    window: TimeWindow,
    visibility: VisibilityPredicate,
    filters: SourceFilters,
) -> list[InterventionRecord]:
    return await _run(
        SourceTag.INTERVENTION,
        store.find_interventions(window, visibility, filters),
    )
