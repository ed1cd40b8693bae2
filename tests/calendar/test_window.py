"""Tests for date-window resolution."""

from __future__ import annotations

from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

import pytest

from agenda.calendar.errors import ValidationError
from agenda.calendar.window import resolve_window
from agenda.testing.factories import at

pytestmark = pytest.mark.unit


class TestResolveWindow:
    def test_end_date_is_inclusive(self):
        window = resolve_window("2024-06-10", "2024-06-16")
        assert window.start == datetime(2024, 6, 10, tzinfo=UTC)
        assert window.end_exclusive == datetime(2024, 6, 17, tzinfo=UTC)
        assert window.start_date == date(2024, 6, 10)
        assert window.end_date == date(2024, 6, 16)

    def test_single_day_window(self):
        window = resolve_window("2024-06-10", "2024-06-10")
        assert window.end_exclusive == datetime(2024, 6, 11, tzinfo=UTC)

    def test_month_and_leap_boundaries(self):
        window = resolve_window("2024-02-01", "2024-02-29")
        assert window.end_exclusive == datetime(2024, 3, 1, tzinfo=UTC)

    def test_surrounding_whitespace_is_ignored(self):
        window = resolve_window(" 2024-06-10 ", "2024-06-11")
        assert window.start_date == date(2024, 6, 10)

    def test_timezone_bounds_the_window(self):
        paris = ZoneInfo("Europe/Paris")
        window = resolve_window("2024-06-10", "2024-06-10", tz=paris)
        assert window.start == datetime(2024, 6, 10, tzinfo=paris)
        assert window.start.utcoffset().total_seconds() == 7200

    def test_inverted_range_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            resolve_window("2024-06-16", "2024-06-10")
        assert exc_info.value.field == "endDate"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_missing_start_date(self, value):
        with pytest.raises(ValidationError, match="startDate is required") as exc_info:
            resolve_window(value, "2024-06-10")
        assert exc_info.value.field == "startDate"

    @pytest.mark.parametrize(
        "value",
        ["2024/06/10", "10-06-2024", "2024-6-10", "2024-06-10T00:00:00", "tomorrow"],
    )
    def test_malformed_end_date(self, value):
        with pytest.raises(ValidationError) as exc_info:
            resolve_window("2024-06-10", value)
        assert exc_info.value.field == "endDate"
        assert value not in str(exc_info.value)

    def test_impossible_calendar_date(self):
        with pytest.raises(ValidationError, match="not a valid calendar date"):
            resolve_window("2024-02-30", "2024-03-01")


class TestOverlaps:
    @pytest.fixture
    def window(self):
        return resolve_window("2024-06-10", "2024-06-16")

    def test_event_late_on_end_date_is_included(self, window):
        assert window.overlaps(at("2024-06-16", 23, 30), at("2024-06-16", 23, 59))

    def test_event_starting_at_exclusive_end_is_excluded(self, window):
        assert not window.overlaps(at("2024-06-17"), at("2024-06-17", 1))

    def test_event_ending_exactly_at_window_start_is_excluded(self, window):
        assert not window.overlaps(at("2024-06-09", 22), at("2024-06-10"))

    def test_record_spanning_the_whole_window_is_included(self, window):
        assert window.overlaps(at("2024-06-01"), at("2024-06-30"))

    def test_record_straddling_the_start_is_included(self, window):
        assert window.overlaps(at("2024-06-08"), at("2024-06-10", 8))

    def test_instant_without_end(self, window):
        assert window.overlaps(at("2024-06-10"))
        assert window.overlaps(at("2024-06-16", 23, 59))
        assert not window.overlaps(at("2024-06-17"))
        assert not window.overlaps(at("2024-06-09", 23, 59))

    def test_zero_length_record_at_window_start_is_included(self, window):
        assert window.overlaps(at("2024-06-10"), at("2024-06-10"))

    def test_time_off_whose_last_day_is_stored_as_midnight_is_excluded(self, window):
        # 06-08..06-10 requested inclusively, stored with end 06-10 00:00.
        assert not window.overlaps(at("2024-06-08"), at("2024-06-10"))
        assert window.overlaps(at("2024-06-08"), at("2024-06-10", 23, 59))
