"""Date-window resolution for the unified calendar.

A request names an inclusive ``startDate``..``endDate`` pair of calendar days.
It is resolved once into a half-open ``[start, end_exclusive)`` window whose
exclusive end is midnight of the day *after* ``endDate``, so every instant on
the end date itself is covered. All three source fetchers receive the same
``TimeWindow`` object.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta, tzinfo

from agenda.calendar.errors import ValidationError

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class TimeWindow:
    """Half-open instant range ``[start, end_exclusive)``."""

    start: datetime
    end_exclusive: datetime
    start_date: date
    end_date: date

    def contains(self, instant: datetime) -> bool:
        """True when *instant* falls inside the window."""
        return self.start <= instant < self.end_exclusive

    def overlaps(self, start: datetime, end: datetime | None = None) -> bool:
        """True when the record interval ``[start, end]`` overlaps the window.

        Records without an end, or with ``end == start``, are single instants
        and overlap only when the instant itself lies in the window.
        """
        if end is None or end <= start:
            return self.contains(start)
        return start < self.end_exclusive and end > self.start


def _parse_date(value: str | None, field: str) -> date:
    if value is None or not value.strip():
        raise ValidationError(field, f"{field} is required")
    candidate = value.strip()
    if _DATE_PATTERN.fullmatch(candidate) is None:
        raise ValidationError(field, f"{field} must be a date in YYYY-MM-DD format")
    try:
        return date.fromisoformat(candidate)
    except ValueError as exc:
        raise ValidationError(field, f"{field} is not a valid calendar date") from exc


def resolve_window(
    start_date: str | None,
    end_date: str | None,
    tz: tzinfo = UTC,
) -> TimeWindow:
    """Parse a ``startDate``/``endDate`` pair into a ``TimeWindow``.

    Parameters
    ----------
    start_date, end_date:
        Date-only strings (``YYYY-MM-DD``). Both are required.
    tz:
        Zone whose midnight bounds the window. Defaults to UTC.

    Raises
    ------
    ValidationError
        If either value is missing or unparseable, or the range is inverted.
    """
    first = _parse_date(start_date, "startDate")
    last = _parse_date(end_date, "endDate")
    if first > last:
        raise ValidationError("endDate", "startDate must not be after endDate")

    return TimeWindow(
        start=datetime.combine(first, time.min, tzinfo=tz),
        end_exclusive=datetime.combine(last + timedelta(days=1), time.min, tzinfo=tz),
        start_date=first,
        end_date=last,
    )
