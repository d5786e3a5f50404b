"""
Central logging configuration for happenings.

The engine itself only emits records through module loggers; this module sets
the levels those loggers run at so a host application (or the CLI) can turn on
per-event expansion detail without drowning in it by default.
"""

import logging
import os
from typing import Optional

DEBUG_ENV = "HAPPENINGS_DEBUG"
LOG_LEVEL_ENV = "HAPPENINGS_LOG_LEVEL"

_VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

ENGINE_LOGGERS = (
    "happenings",
    "happenings.recurrence",
    "happenings.occurrences",
    "happenings.overrides",
    "happenings.models",
    "happenings.domain.timeline",
    "happenings.domain.series",
    "happenings.core.civil_clock",
    "happenings.core.config_manager",
)


def _env_debug_enabled() -> bool:
    return os.getenv(DEBUG_ENV, "").strip().lower() in ("1", "true", "yes", "on")


def configure_engine_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for the happenings package.

    Args:
        debug_mode: Whether to enable debug logging for happenings modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        HAPPENINGS_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        HAPPENINGS_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_log_level = os.getenv(LOG_LEVEL_ENV, "").strip().upper()

    if force_debug is not None:
        final_debug = force_debug
    elif _env_debug_enabled():
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in _VALID_LEVELS:
        root_level = getattr(logging, env_log_level)

    # Keep existing handlers (colorized console setup from happenings/__init__.py)
    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    engine_level = logging.DEBUG if final_debug else logging.INFO
    for logger_name in ENGINE_LOGGERS:
        logging.getLogger(logger_name).setLevel(engine_level)

    if final_debug:
        root_logger.debug("Debug logging enabled for happenings modules")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ENGINE_LOGGERS:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
