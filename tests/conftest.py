"""Shared fixtures for happenings tests."""

from collections.abc import Generator
from typing import Any, Callable

import pytest

from happenings.core.civil_clock import CivilClock
from happenings.models import EventScheduleDescriptor


def pytest_configure(config: Any) -> None:
    """Register test markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "integration: Tests that run the CLI end to end")


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Ensure HAPPENINGS_* variables from the host never leak into tests.

    Some tests set HAPPENINGS_TEST_TIME to freeze the wall clock; clearing it
    (and the config variables) before each test keeps results deterministic.
    """
    for name in (
        "HAPPENINGS_TEST_TIME",
        "HAPPENINGS_CIVIL_TIMEZONE",
        "HAPPENINGS_DEBUG",
        "HAPPENINGS_LOG_LEVEL",
        "HAPPENINGS_WINDOW_DAYS",
        "HAPPENINGS_MAX_EVENTS",
        "HAPPENINGS_MAX_TOTAL_OCCURRENCES",
        "HAPPENINGS_MAX_OCCURRENCES",
    ):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def civil_timezone() -> str:
    """Deterministic civil timezone used across tests."""
    return "America/Denver"


@pytest.fixture
def saturday_clock() -> CivilClock:
    """Clock pinned to Saturday 2026-01-10."""
    return CivilClock.fixed("2026-01-10")


@pytest.fixture
def make_event() -> Callable[..., EventScheduleDescriptor]:
    """Factory for event descriptors with sensible defaults.

    Extra keyword arguments become event columns (title, venue_id, ...).
    """

    def _make(event_id: str = "event-1", **fields: Any) -> EventScheduleDescriptor:
        row: dict[str, Any] = {
            "id": event_id,
            "title": "Open Mic",
            "event_date": None,
            "day_of_week": None,
            "recurrence_rule": None,
            "start_time": "19:00:00",
        }
        row.update(fields)
        return EventScheduleDescriptor.model_validate(row)

    return _make
