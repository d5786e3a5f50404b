"""Unit tests for the occurrence generator."""

import pytest

from happenings.occurrences import (
    EXPANSION_CAPS,
    ExpansionOptions,
    build_occurrence,
    compute_next_occurrence,
    expand_occurrences_for_event,
)
from happenings.overrides import build_override_map

pytestmark = pytest.mark.unit


class TestExpansionCaps:
    """Tests for default caps."""

    def test_defaults(self):
        assert EXPANSION_CAPS.max_events == 200
        assert EXPANSION_CAPS.max_total_occurrences == 500
        assert EXPANSION_CAPS.max_per_event == 40
        assert EXPANSION_CAPS.default_window_days == 90


class TestExpansionOptions:
    """Tests for ExpansionOptions.resolve_window."""

    def test_defaults_to_today_plus_window(self):
        assert ExpansionOptions().resolve_window("2026-01-10") == ("2026-01-10", "2026-04-10")

    def test_explicit_window(self):
        options = ExpansionOptions(start_key="2026-01-01", end_key="2026-01-31")
        assert options.resolve_window("2026-06-01") == ("2026-01-01", "2026-01-31")

    def test_custom_window_days(self):
        options = ExpansionOptions(start_key="2026-01-01", window_days=7)
        assert options.resolve_window("2026-06-01") == ("2026-01-01", "2026-01-08")

    @pytest.mark.parametrize(
        "start,end", [("2026-13-01", None), ("2026-01-01", "soon"), ("2026-02-01", "2026-01-01")]
    )
    def test_malformed_window_is_none(self, start, end):
        assert ExpansionOptions(start_key=start, end_key=end).resolve_window("2026-01-10") is None

    def test_none_override_map_is_empty(self):
        assert ExpansionOptions(override_map=None).override_map == {}


class TestExpandOccurrencesForEvent:
    """Tests for expand_occurrences_for_event."""

    def test_unknown_event(self, make_event):
        expansion = expand_occurrences_for_event(make_event(), "2026-01-01", "2026-01-31")
        assert expansion.is_unknown
        assert expansion.date_keys == []

    def test_per_event_cap(self, make_event):
        event = make_event(day_of_week="Monday", recurrence_rule="weekly")
        expansion = expand_occurrences_for_event(event, "2026-01-01", "2026-12-31", max_occurrences=5)
        assert len(expansion.date_keys) == 5
        assert expansion.was_capped is True

    def test_cap_disabled(self, make_event):
        event = make_event(day_of_week="Monday", recurrence_rule="weekly")
        expansion = expand_occurrences_for_event(event, "2026-01-01", "2026-12-31", max_occurrences=None)
        assert len(expansion.date_keys) == 52
        assert expansion.was_capped is False

    def test_series_length_reports_capped(self, make_event):
        event = make_event(
            day_of_week="Wednesday", recurrence_rule="weekly", event_date="2026-01-07", max_occurrences=2
        )
        expansion = expand_occurrences_for_event(event, "2026-01-01", "2026-01-31")
        assert expansion.date_keys == ["2026-01-07", "2026-01-14"]
        assert expansion.was_capped is True

    def test_series_length_not_reached(self, make_event):
        event = make_event(
            day_of_week="Wednesday", recurrence_rule="weekly", event_date="2026-01-07", max_occurrences=10
        )
        expansion = expand_occurrences_for_event(event, "2026-01-01", "2026-01-31")
        assert len(expansion.date_keys) == 4
        assert expansion.was_capped is False

    def test_to_occurrences(self, make_event):
        event = make_event("e1", day_of_week="Wednesday", recurrence_rule="weekly")
        override_map = build_override_map(
            [{"event_id": "e1", "date_key": "2026-01-14", "status": "cancelled"}]
        )
        expansion = expand_occurrences_for_event(event, "2026-01-01", "2026-01-31")
        flags = [(occ.date_key, occ.is_cancelled) for occ in expansion.to_occurrences(override_map)]
        assert flags == [
            ("2026-01-07", False),
            ("2026-01-14", True),
            ("2026-01-21", False),
            ("2026-01-28", False),
        ]


class TestComputeNextOccurrence:
    """Tests for compute_next_occurrence."""

    def test_weekly_next(self, make_event):
        # 2026-01-10 is a Saturday
        event = make_event(day_of_week="Monday", recurrence_rule="weekly")
        next_occurrence = compute_next_occurrence(event, "2026-01-10")
        assert next_occurrence.date == "2026-01-12"
        assert next_occurrence.is_confident is True
        assert next_occurrence.is_today is False
        assert next_occurrence.is_tomorrow is False

    def test_today_and_tomorrow_flags(self, make_event):
        saturday = make_event(day_of_week="Saturday", recurrence_rule="weekly")
        sunday = make_event(day_of_week="Sunday", recurrence_rule="weekly")
        assert compute_next_occurrence(saturday, "2026-01-10").is_today is True
        assert compute_next_occurrence(sunday, "2026-01-10").is_tomorrow is True

    def test_unknown(self, make_event):
        next_occurrence = compute_next_occurrence(make_event(), "2026-01-10")
        assert next_occurrence.date is None
        assert next_occurrence.is_confident is False

    def test_past_one_time(self, make_event):
        next_occurrence = compute_next_occurrence(make_event(event_date="2025-12-01"), "2026-01-10")
        assert next_occurrence.date is None
        assert next_occurrence.is_confident is False

    def test_far_future_one_time_within_lookahead(self, make_event):
        event = make_event(event_date="2026-09-01")
        assert compute_next_occurrence(event, "2026-01-10").date == "2026-09-01"

    def test_ended_series(self, make_event):
        event = make_event(
            day_of_week="Monday", recurrence_rule="weekly", recurrence_end_date="2026-01-05"
        )
        assert compute_next_occurrence(event, "2026-01-10").is_confident is False


class TestBuildOccurrence:
    """Tests for build_occurrence."""

    def test_without_override(self, make_event):
        event = make_event("e1", day_of_week="Monday", recurrence_rule="weekly", end_time="21:00:00")
        occurrence = build_occurrence(event, "2026-01-12")
        assert occurrence.date_key == "2026-01-12"
        assert occurrence.start_time == "19:00:00"
        assert occurrence.end_time == "21:00:00"
        assert occurrence.is_cancelled is False
        assert occurrence.override is None
        assert occurrence.event == event

    def test_rescheduled(self, make_event):
        event = make_event("e1", day_of_week="Monday", recurrence_rule="weekly")
        override_map = build_override_map(
            [
                {
                    "event_id": "e1",
                    "date_key": "2026-01-12",
                    "override_patch": {"start_time": "20:00:00", "title": "Holiday Mic"},
                }
            ]
        )
        occurrence = build_occurrence(event, "2026-01-12", override_map)
        assert occurrence.start_time == "20:00:00"
        assert occurrence.event.field_value("title") == "Holiday Mic"
        assert occurrence.override is override_map["e1:2026-01-12"]
        assert event.start_time == "19:00:00"

    def test_occurrences_compare_structurally(self, make_event):
        event = make_event("e1", day_of_week="Monday", recurrence_rule="weekly")
        assert build_occurrence(event, "2026-01-12") == build_occurrence(event, "2026-01-12")
