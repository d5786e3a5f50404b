"""Command-line entry for happenings.

Runs the timeline or series view over JSON files of event and override rows
and prints the result as JSON. Useful for checking how a schedule expands
without going through the web app.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from . import _init_logging
from .core.civil_clock import CivilClock
from .core.config_manager import ConfigManager
from .domain.series import group_events_as_series_view
from .domain.timeline import expand_and_group_events
from .engine_logging import configure_engine_logging
from .exceptions import HappeningsError
from .overrides import build_override_map

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the happenings CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="happenings",
        description="Expand recurring events into timeline or series views",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m happenings timeline --events events.json --start 2026-01-01 --end 2026-01-31
  python -m happenings series --events events.json --overrides overrides.json --today 2026-01-10
        """,
    )

    parser.add_argument("view", choices=("timeline", "series"), help="Which view to build")
    parser.add_argument(
        "--events",
        required=True,
        metavar="FILE",
        help="JSON file with an array of event rows ('-' reads stdin)",
    )
    parser.add_argument("--overrides", metavar="FILE", help="JSON file with an array of override rows")
    parser.add_argument("--start", metavar="YYYY-MM-DD", help="Window start (default: today)")
    parser.add_argument("--end", metavar="YYYY-MM-DD", help="Window end, inclusive")
    parser.add_argument(
        "--today",
        metavar="YYYY-MM-DD",
        help="Pin today's date instead of reading the clock",
    )
    parser.add_argument("--max-events", type=int, metavar="N", help="Cap on events processed")
    parser.add_argument("--config", type=Path, metavar="FILE", help="YAML engine config file")
    parser.add_argument(
        "--env-file",
        type=Path,
        metavar="FILE",
        help="Path to .env file (default: .env in current directory)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    return parser


def _load_json_rows(source: str) -> list[Any]:
    """Read a JSON array of rows from a file path or '-' for stdin.

    Raises:
        HappeningsError: If the source cannot be read or is not a JSON array
    """
    try:
        if source == "-":
            rows = json.load(sys.stdin)
        else:
            rows = json.loads(Path(source).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise HappeningsError(f"Unable to read {source}: {e}") from e

    if not isinstance(rows, list):
        raise HappeningsError(f"{source} must contain a JSON array of rows")
    return rows


def main(argv: Optional[list[str]] = None) -> int:
    """Run the happenings CLI.

    Returns:
        Process exit code: 0 on success, 1 for unreadable input, 2 for bad arguments
    """
    parser = _create_parser()
    args = parser.parse_args(argv)

    config_manager = ConfigManager(env_file_path=args.env_file, config_file_path=args.config)
    try:
        config = config_manager.load_full_config()
    except HappeningsError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    _init_logging("DEBUG" if args.debug else config.log_level)
    if args.debug:
        configure_engine_logging(force_debug=True)

    try:
        if args.today:
            clock = CivilClock.fixed(args.today, timezone=config.civil_timezone)
        else:
            clock = config.build_clock()
    except HappeningsError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    try:
        events = _load_json_rows(args.events)
        overrides = _load_json_rows(args.overrides) if args.overrides else []
    except HappeningsError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    options = config.to_options(
        start_key=args.start,
        end_key=args.end,
        max_events=args.max_events,
        override_map=build_override_map(overrides),
    )
    logger.debug("Running %s view with %d events, today=%s", args.view, len(events), clock.today())

    if args.view == "timeline":
        result = expand_and_group_events(events, options, clock=clock)
    else:
        result = group_events_as_series_view(events, options, clock=clock)

    print(result.model_dump_json(indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
