"""Integration tests for the happenings command line interface."""

import json

import pytest

from happenings.__main__ import _create_parser, main

pytestmark = pytest.mark.integration


@pytest.fixture
def events_file(tmp_path):
    path = tmp_path / "events.json"
    path.write_text(
        json.dumps(
            [
                {
                    "id": "wed-mic",
                    "title": "Wednesday Open Mic",
                    "day_of_week": "Wednesday",
                    "recurrence_rule": "weekly",
                    "start_time": "19:00:00",
                },
                {"id": "showcase", "title": "Showcase", "event_date": "2026-01-17"},
                {"id": "mystery", "title": "TBD"},
            ]
        )
    )
    return path


@pytest.fixture
def overrides_file(tmp_path):
    path = tmp_path / "overrides.json"
    path.write_text(
        json.dumps(
            [
                {"event_id": "wed-mic", "date_key": "2026-01-14", "status": "cancelled"},
                {
                    "event_id": "wed-mic",
                    "date_key": "2026-01-21",
                    "override_patch": {"start_time": "20:00:00", "recurrence_rule": "2nd"},
                },
            ]
        )
    )
    return path


def _run(capsys, tmp_path, *args):
    exit_code = main([*args, "--env-file", str(tmp_path / ".env")])
    captured = capsys.readouterr()
    return exit_code, captured


class TestHappeningsCLI:
    """Test cases for the happenings command line interface."""

    def test_parser_requires_view_and_events(self):
        parser = _create_parser()
        with pytest.raises(SystemExit):
            parser.parse_args([])
        with pytest.raises(SystemExit):
            parser.parse_args(["calendar", "--events", "x.json"])

    def test_parser_options(self):
        args = _create_parser().parse_args(
            ["series", "--events", "e.json", "--today", "2026-01-10", "--max-events", "5", "--debug"]
        )
        assert args.view == "series"
        assert args.today == "2026-01-10"
        assert args.max_events == 5
        assert args.debug is True

    def test_timeline(self, capsys, tmp_path, events_file, overrides_file):
        exit_code, captured = _run(
            capsys,
            tmp_path,
            "timeline",
            "--events",
            str(events_file),
            "--overrides",
            str(overrides_file),
            "--start",
            "2026-01-01",
            "--end",
            "2026-01-31",
            "--today",
            "2026-01-01",
        )
        assert exit_code == 0
        result = json.loads(captured.out)

        assert list(result["grouped_events"]) == [
            "2026-01-07",
            "2026-01-17",
            "2026-01-21",
            "2026-01-28",
        ]
        assert [occ["date_key"] for occ in result["cancelled_occurrences"]] == ["2026-01-14"]
        rescheduled = result["grouped_events"]["2026-01-21"][0]
        assert rescheduled["start_time"] == "20:00:00"
        assert rescheduled["event"]["recurrence_rule"] == "weekly"
        assert [event["id"] for event in result["unknown_events"]] == ["mystery"]

    def test_series(self, capsys, tmp_path, events_file, overrides_file):
        exit_code, captured = _run(
            capsys,
            tmp_path,
            "series",
            "--events",
            str(events_file),
            "--overrides",
            str(overrides_file),
            "--today",
            "2026-01-10",
        )
        assert exit_code == 0
        result = json.loads(captured.out)

        assert [entry["event"]["id"] for entry in result["series"]] == ["wed-mic", "showcase"]
        weekly = result["series"][0]
        assert weekly["recurrence_summary"] == "Every Wednesday"
        assert weekly["upcoming_occurrences"][0]["date_key"] == "2026-01-14"
        assert weekly["upcoming_occurrences"][0]["is_cancelled"] is True
        assert result["series"][1]["is_one_time"] is True

    def test_max_events(self, capsys, tmp_path, events_file):
        exit_code, captured = _run(
            capsys, tmp_path, "series", "--events", str(events_file), "--today", "2026-01-10", "--max-events", "1"
        )
        assert exit_code == 0
        metrics = json.loads(captured.out)["metrics"]
        assert metrics["was_capped"] is True
        assert metrics["events_skipped"] == 2

    def test_config_file(self, capsys, tmp_path, events_file):
        config_file = tmp_path / "happenings.yaml"
        config_file.write_text("max_events: 1\n")
        exit_code, captured = _run(
            capsys,
            tmp_path,
            "timeline",
            "--events",
            str(events_file),
            "--today",
            "2026-01-01",
            "--config",
            str(config_file),
        )
        assert exit_code == 0
        assert json.loads(captured.out)["metrics"]["events_processed"] == 1

    def test_missing_events_file(self, capsys, tmp_path):
        exit_code, captured = _run(capsys, tmp_path, "timeline", "--events", str(tmp_path / "none.json"))
        assert exit_code == 1
        assert "error:" in captured.err

    def test_events_must_be_array(self, capsys, tmp_path):
        path = tmp_path / "events.json"
        path.write_text('{"id": "x"}')
        exit_code, captured = _run(capsys, tmp_path, "timeline", "--events", str(path))
        assert exit_code == 1
        assert "JSON array" in captured.err

    def test_bad_today(self, capsys, tmp_path, events_file):
        exit_code, captured = _run(
            capsys, tmp_path, "timeline", "--events", str(events_file), "--today", "Jan 10"
        )
        assert exit_code == 2
        assert "error:" in captured.err

    def test_bad_timezone(self, capsys, tmp_path, events_file, monkeypatch):
        config_file = tmp_path / "happenings.yaml"
        config_file.write_text("civil_timezone: Nowhere/Special\n")
        exit_code, captured = _run(
            capsys, tmp_path, "timeline", "--events", str(events_file), "--config", str(config_file)
        )
        assert exit_code == 2
        assert "Nowhere/Special" in captured.err
