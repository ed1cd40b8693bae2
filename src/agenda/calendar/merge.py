"""Merging of normalized per-source streams into one timeline."""

from __future__ import annotations

from collections.abc import Iterable

from agenda.calendar.normalize import UnifiedEvent


def merge_timeline(*streams: Iterable[UnifiedEvent]) -> list[UnifiedEvent]:
    """Concatenate *streams* in argument order and sort by start time.

    The sort is stable: events with equal start times keep their source order
    (calendar events, then time-off, then interventions, as passed by the
    aggregator) and their order within a stream.
    """
    merged = [event for stream in streams for event in stream]
    merged.sort(key=lambda event: event.start_time)
    return merged
