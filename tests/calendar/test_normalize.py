"""Tests for per-source normalization into UnifiedEvent."""

from __future__ import annotations

import pytest

from agenda.calendar.normalize import (
    TIME_OFF_LABELS,
    normalize_calendar_event,
    normalize_intervention,
    normalize_time_off,
    unified_event_id,
)
from agenda.calendar.records import SourceTag, TechnicianRef, TimeOffType
from agenda.testing.factories import (
    at,
    make_calendar_event,
    make_intervention,
    make_person,
    make_time_off,
)

pytestmark = pytest.mark.unit


class TestUnifiedEventId:
    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            (SourceTag.CALENDAR_EVENT, "calendar-12"),
            (SourceTag.TIMEOFF, "timeoff-12"),
            (SourceTag.INTERVENTION, "intervention-12"),
        ],
    )
    def test_prefix_per_source(self, source, expected):
        assert unified_event_id(source, 12) == expected

    def test_same_native_id_in_two_sources_stays_distinct(self):
        assert unified_event_id(SourceTag.TIMEOFF, 1) != unified_event_id(
            SourceTag.INTERVENTION, 1
        )


class TestNormalizeCalendarEvent:
    def test_keeps_native_fields(self):
        owner = make_person(3, first_name="Alice", last_name="Durand")
        record = make_calendar_event(
            9,
            owner=owner,
            title="Budget review",
            type="MEETING",
            priority="high",
            location="Room 2",
            is_all_day=False,
        )
        event = normalize_calendar_event(record)
        assert event.id == "calendar-9"
        assert event.title == "Budget review"
        assert event.type == "MEETING"
        assert event.source_tag is SourceTag.CALENDAR_EVENT
        assert event.priority == "high"
        assert event.location == "Room 2"
        assert event.calendar_id == record.calendar_id
        assert event.owner_user_id == 3
        assert event.owner_display == "Alice Durand"

    def test_source_payload_preserves_record(self):
        record = make_calendar_event(9, description="Q3 numbers")
        event = normalize_calendar_event(record)
        assert event.source_payload["id"] == 9
        assert event.source_payload["description"] == "Q3 numbers"
        assert event.source_payload["owner"]["id"] == record.owner.id

    def test_serializes_camel_case(self):
        event = normalize_calendar_event(make_calendar_event())
        payload = event.model_dump(mode="json", by_alias=True)
        assert {"startTime", "endTime", "sourceTag", "ownerUserId", "isAllDay"} <= set(payload)
        assert payload["sourceTag"] == "CALENDAR_EVENT"


class TestNormalizeTimeOff:
    def test_title_uses_french_label_and_owner_name(self):
        owner = make_person(4, first_name="Bruno", last_name="Petit")
        event = normalize_time_off(make_time_off(2, owner=owner, type=TimeOffType.SICK_LEAVE))
        assert event.id == "timeoff-2"
        assert event.title == "Congé - Arrêt maladie - Bruno Petit"
        assert event.type == "TIMEOFF"
        assert event.is_all_day
        assert event.time_off is not None
        assert event.time_off.type_label == "Arrêt maladie"

    def test_every_type_has_a_label(self):
        assert set(TIME_OFF_LABELS) == set(TimeOffType)

    def test_unknown_type_falls_back_to_raw_value(self):
        event = normalize_time_off(make_time_off(type="SABBATICAL"))
        assert "SABBATICAL" in event.title

    @pytest.mark.parametrize(
        ("status", "priority"),
        [("APPROVED", "medium"), ("PENDING", "low"), ("REJECTED", "low"), ("CANCELLED", "low")],
    )
    def test_priority_follows_status(self, status, priority):
        assert normalize_time_off(make_time_off(status=status)).priority == priority

    def test_reason_becomes_description(self):
        event = normalize_time_off(make_time_off(reason="Family trip"))
        assert event.description == "Family trip"


class TestNormalizeIntervention:
    def test_title_priority_and_owner(self):
        assignee = make_person(6, first_name="Chloé", last_name="Roux")
        event = normalize_intervention(make_intervention(5, assignee=assignee))
        assert event.id == "intervention-5"
        assert event.title == "Intervention - Maintenance"
        assert event.priority == "high"
        assert event.type == "INTERVENTION"
        assert event.owner_user_id == 6
        assert event.calendar_id is None
        assert not event.is_all_day

    def test_missing_end_falls_back_to_start(self):
        start = at("2024-06-11", 14)
        event = normalize_intervention(make_intervention(start_time=start, end_time=None))
        assert event.end_time == start

    def test_comment_wins_over_contract_objective(self):
        assert normalize_intervention(make_intervention(comment="Bring ladder")).description == (
            "Bring ladder"
        )
        assert normalize_intervention(make_intervention()).description == "Annual boiler check"

    def test_technicians_are_carried(self):
        techs = (TechnicianRef(id=1, first_name="Dan", last_name="Leroy", specialty="HVAC"),)
        event = normalize_intervention(make_intervention(technicians=techs))
        assert event.intervention is not None
        assert event.intervention.mission_id == "M-2024-001"
        assert [t.specialty for t in event.intervention.technicians] == ["HVAC"]
