"""Unit tests for date key helpers."""

import datetime

import pytest

from happenings.core.date_keys import (
    add_days,
    coerce_date_key,
    format_date_group_header,
    is_valid_date_key,
    parse_date_key,
    to_date_key,
    weekday_index,
    weekday_name,
    weekday_of,
)
from happenings.exceptions import HappeningsError, InvalidDateKeyError

pytestmark = pytest.mark.unit


class TestDateKeyValidation:
    """Tests for is_valid_date_key and parse_date_key."""

    @pytest.mark.parametrize("value", ["2026-01-10", "2024-02-29", "0999-12-31"])
    def test_valid_keys(self, value):
        assert is_valid_date_key(value) is True

    @pytest.mark.parametrize(
        "value",
        ["2026-1-10", "2026-02-30", "2025-02-29", "20260110", "2026-01-10T00:00", "", None, 20260110],
    )
    def test_invalid_keys(self, value):
        assert is_valid_date_key(value) is False

    def test_parse_returns_date(self):
        assert parse_date_key("2026-01-10") == datetime.date(2026, 1, 10)

    def test_parse_invalid_raises(self):
        with pytest.raises(InvalidDateKeyError):
            parse_date_key("2026-13-01")

    def test_invalid_date_key_error_is_value_error(self):
        """Callers catching ValueError or HappeningsError both see it."""
        with pytest.raises(ValueError):
            parse_date_key("nope")
        with pytest.raises(HappeningsError):
            parse_date_key("nope")


class TestDateKeyConversion:
    """Tests for to_date_key, coerce_date_key and add_days."""

    def test_to_date_key_zero_pads(self):
        assert to_date_key(datetime.date(2026, 3, 5)) == "2026-03-05"

    def test_to_date_key_from_datetime(self):
        assert to_date_key(datetime.datetime(2026, 3, 5, 23, 59)) == "2026-03-05"

    def test_keys_sort_chronologically(self):
        keys = ["2026-10-01", "2026-09-30", "2025-12-31", "2026-01-01"]
        assert sorted(keys) == ["2025-12-31", "2026-01-01", "2026-09-30", "2026-10-01"]

    def test_coerce_iso_timestamp(self):
        assert coerce_date_key("2026-01-10T19:00:00-07:00") == "2026-01-10"

    def test_coerce_rejects_garbage(self):
        assert coerce_date_key("next tuesday") is None
        assert coerce_date_key(42) is None

    def test_add_days_crosses_month_and_year(self):
        assert add_days("2026-01-31", 1) == "2026-02-01"
        assert add_days("2025-12-31", 1) == "2026-01-01"
        assert add_days("2024-03-01", -1) == "2024-02-29"


class TestWeekdays:
    """Tests for weekday name resolution."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Monday", 0),
            ("  thursday ", 3),
            ("THURS", 3),
            ("tues", 1),
            ("Fridays", 4),
            ("su", 6),
        ],
    )
    def test_weekday_index(self, name, expected):
        assert weekday_index(name) == expected

    @pytest.mark.parametrize("name", ["", "Funday", None, 3])
    def test_weekday_index_unknown(self, name):
        assert weekday_index(name) is None

    def test_weekday_of_and_name(self):
        # 2026-01-10 is a Saturday
        assert weekday_of("2026-01-10") == 5
        assert weekday_name(5) == "Saturday"


class TestFormatDateGroupHeader:
    """Tests for format_date_group_header."""

    def test_today_and_tomorrow(self):
        assert format_date_group_header("2026-01-10", "2026-01-10") == "Today"
        assert format_date_group_header("2026-01-11", "2026-01-10") == "Tomorrow"

    def test_later_date(self):
        assert format_date_group_header("2026-01-16", "2026-01-10") == "Fri, Jan 16"

    def test_past_date_is_not_relative(self):
        assert format_date_group_header("2026-01-09", "2026-01-10") == "Fri, Jan 9"
