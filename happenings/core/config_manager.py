"""Configuration management for the happenings engine.

Configuration is layered, lowest to highest: dataclass defaults, an optional
YAML config file, a ``.env`` file (never overriding the real environment), and
``HAPPENINGS_*`` environment variables.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from ..exceptions import HappeningsError
from ..occurrences import ExpansionOptions
from .civil_clock import CIVIL_TIMEZONE_ENV, DEFAULT_CIVIL_TIMEZONE, CivilClock

logger = logging.getLogger(__name__)

# Environment variable -> EngineConfig field
ENV_FIELD_MAP: dict[str, str] = {
    CIVIL_TIMEZONE_ENV: "civil_timezone",
    "HAPPENINGS_WINDOW_DAYS": "default_window_days",
    "HAPPENINGS_MAX_EVENTS": "max_events",
    "HAPPENINGS_MAX_TOTAL_OCCURRENCES": "max_total_occurrences",
    "HAPPENINGS_MAX_OCCURRENCES": "max_occurrences_per_event",
    "HAPPENINGS_LOG_LEVEL": "log_level",
}


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Args:
        path: Path to .env file

    Returns:
        Dictionary of key-value pairs from the .env file.
        Empty dict if file doesn't exist or cannot be read.

    Note:
        - Skips empty lines and comments (lines starting with #)
        - Strips quotes (both single and double) from values
        - Accepts an optional leading ``export``
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        logger.debug("Failed to read .env file (continuing): %s", str(path), exc_info=True)
        return result

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        if line.startswith("export "):
            line = line[len("export "):]

        key, val = line.split("=", 1)
        key = key.strip()
        val = val.strip().strip('"').strip("'")
        if key:
            result[key] = val

    return result


def load_config_file(path: Path) -> dict[str, Any]:
    """Load an engine config mapping from a YAML file.

    Raises:
        HappeningsError: If the file cannot be read or is not a YAML mapping
    """
    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise HappeningsError(f"Unable to load config file {path}: {e}") from e

    # safe_load returns None for empty files
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise HappeningsError(f"Config file {path} must contain a mapping at top level")
    return loaded


@dataclass
class EngineConfig:
    """Typed configuration for the expansion engine.

    Fields:
        civil_timezone: IANA zone that defines "today"
        default_window_days: window length when no end date is given
        max_events: cap on events processed per call
        max_total_occurrences: cap on occurrences per call
        max_occurrences_per_event: per-event occurrence cap
        log_level: logging level name
    """

    civil_timezone: str = DEFAULT_CIVIL_TIMEZONE
    default_window_days: int = 90
    max_events: int = 200
    max_total_occurrences: int = 500
    max_occurrences_per_event: int = 40
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> EngineConfig:
        """Create EngineConfig from a plain mapping, applying defaults.

        Numeric values are coerced to positive ints; anything unusable is logged
        and replaced by the default.
        """
        if data is None:
            data = {}
        defaults = cls()

        def _coerce_int(key: str, default: int) -> int:
            raw = data.get(key, default)
            try:
                value = int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default
            if value < 1:
                logger.warning("Config %s=%d must be positive; using default %d", key, value, default)
                return default
            return value

        civil_timezone = data.get("civil_timezone") or defaults.civil_timezone

        log_level = data.get("log_level", defaults.log_level)
        log_level = str(log_level).upper() if log_level is not None else defaults.log_level

        return cls(
            civil_timezone=str(civil_timezone),
            default_window_days=_coerce_int("default_window_days", defaults.default_window_days),
            max_events=_coerce_int("max_events", defaults.max_events),
            max_total_occurrences=_coerce_int(
                "max_total_occurrences", defaults.max_total_occurrences
            ),
            max_occurrences_per_event=_coerce_int(
                "max_occurrences_per_event", defaults.max_occurrences_per_event
            ),
            log_level=log_level,
        )

    def to_options(self, **overrides: Any) -> ExpansionOptions:
        """Build ExpansionOptions carrying these caps.

        Keyword arguments (start_key, end_key, override_map, ...) are passed
        through and win over the configured values; None values are ignored.
        """
        options: dict[str, Any] = {
            "max_occurrences": self.max_occurrences_per_event,
            "max_events": self.max_events,
            "max_total_occurrences": self.max_total_occurrences,
            "window_days": self.default_window_days,
        }
        options.update({key: value for key, value in overrides.items() if value is not None})
        return ExpansionOptions(**options)

    def build_clock(self) -> CivilClock:
        """Civil clock in the configured timezone.

        Raises:
            InvalidTimezoneError: If civil_timezone is not a known IANA zone
        """
        return CivilClock(timezone=self.civil_timezone)


class ConfigManager:
    """Manages engine configuration from config files, .env files and environment."""

    def __init__(self, env_file_path: Path | None = None, config_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
            config_file_path: Optional YAML config file
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"
        self.config_file_path = config_file_path

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []
        for key, val in parse_env_file(self.env_file_path).items():
            if key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))

        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build configuration dictionary from HAPPENINGS_* environment variables.

        Returns:
            Mapping of EngineConfig field names to raw string values
        """
        cfg: dict[str, Any] = {}
        for env_name, field_name in ENV_FIELD_MAP.items():
            value = os.environ.get(env_name)
            if value:
                cfg[field_name] = value
        return cfg

    def load_full_config(self) -> EngineConfig:
        """Load config file, .env file and environment into an EngineConfig.

        This is the main entry point for loading configuration.
        """
        data: dict[str, Any] = {}
        if self.config_file_path is not None:
            data.update(load_config_file(self.config_file_path))

        self.load_env_file()
        data.update(self.build_config_from_env())

        config = EngineConfig.from_dict(data)
        logger.debug("Loaded engine config: %s", config)
        return config
