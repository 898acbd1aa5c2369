"""Configuration loading and validation."""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "task-timer.json"
ENV_PREFIX = "TASK_TIMER_"


class ConfigError(ValueError):
    """Raised for unreadable or invalid configuration."""


@dataclass(frozen=True)
class TimerConfig:
    work_time: float = 1500.0  # seconds
    short_rest_time: float = 600.0
    long_rest_time: float = 1800.0
    long_rest_interval: int = 4  # work phases per long break


@dataclass(frozen=True)
class CalendarConfig:
    urls: list[str] = field(default_factory=list)
    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None


@dataclass(frozen=True)
class Config:
    timer: TimerConfig = field(default_factory=TimerConfig)
    calendar: CalendarConfig = field(default_factory=CalendarConfig)


def _read_file(path: Optional[str]) -> dict[str, Any]:
    """Read the JSON config file, if any.

    An explicit path must exist. Without one, ./task-timer.json is used
    when present and the defaults otherwise.
    """
    if path:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigError(f"Config file not found at {config_path}")
    else:
        config_path = Path(DEFAULT_CONFIG_FILE)
        if not config_path.exists():
            logger.debug("No %s found, using defaults", DEFAULT_CONFIG_FILE)
            return {}

    try:
        with open(config_path) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Invalid config file {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config file {config_path}: expected a JSON object")
    logger.debug("Loaded config from %s", config_path)
    return data


def load_config(
    path: Optional[str] = None,
    overrides: Optional[dict[str, dict[str, Any]]] = None,
    environ: Optional[dict[str, str]] = None,
) -> Config:
    """Load configuration.

    Each value is looked up in the following order:
    1. ``overrides`` (command-line arguments), skipping None values
    2. TASK_TIMER_* environment variables
    3. The JSON config file
    4. The dataclass defaults
    """
    file_config = _read_file(path)
    overrides = overrides or {}
    env = os.environ if environ is None else environ

    def get_val(section: str, key: str, default=None):
        val = overrides.get(section, {}).get(key)
        if val is not None:
            return val
        val = env.get(ENV_PREFIX + key.upper())
        if val is not None:
            return val
        section_config = file_config.get(section, {})
        if isinstance(section_config, dict) and key in section_config:
            return section_config[key]
        return default

    def get_number(section: str, key: str, default, convert):
        raw = get_val(section, key, default)
        try:
            return convert(raw)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid value for {section}.{key}: {raw!r}") from e

    defaults = TimerConfig()
    timer_config = TimerConfig(
        work_time=get_number("timer", "work_time", defaults.work_time, float),
        short_rest_time=get_number("timer", "short_rest_time", defaults.short_rest_time, float),
        long_rest_time=get_number("timer", "long_rest_time", defaults.long_rest_time, float),
        long_rest_interval=get_number("timer", "long_rest_interval", defaults.long_rest_interval, int),
    )
    for key in ("work_time", "short_rest_time", "long_rest_time"):
        if getattr(timer_config, key) <= 0:
            raise ConfigError(f"timer.{key} must be positive")
    if timer_config.long_rest_interval < 1:
        raise ConfigError("timer.long_rest_interval must be at least 1")

    # URLs may come as a list (file, CLI) or a comma-separated string (env)
    urls = get_val("calendar", "urls", [])
    if isinstance(urls, str):
        urls = [u.strip() for u in urls.split(",") if u.strip()]
    elif not isinstance(urls, list):
        raise ConfigError(f"Invalid value for calendar.urls: {urls!r}")

    calendar_config = CalendarConfig(
        urls=[str(u) for u in urls],
        username=get_val("calendar", "username"),
        password=get_val("calendar", "password"),
        token=get_val("calendar", "token"),
    )

    return Config(timer=timer_config, calendar=calendar_config)
