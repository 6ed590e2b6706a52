"""Configuration management for wakatime-profile-status.

This module handles loading configuration from defaults, config files, environment variables,
and CLI arguments. It enforces a strict priority order and validates every numeric value.
Supports XDG_CONFIG_HOME (Linux/macOS), APPDATA (Windows), and ~/.config fallback.

The configuration is aggregated into a :class:`Config` dataclass, which serves as the
single source of truth for application settings. Rendering settings are frozen into a
:class:`RenderConfig` once at startup.

Priority Order:
    1. CLI Arguments
    2. Environment Variables
    3. Config File
    4. Defaults

Supported Environment Variables:
    * ``WAKATIME_API_KEY``: WakaTime API key (required).
    * ``GITHUB_TOKEN``: Token for the profile-status API (required).
    * ``WAKA_STATUS_UPDATE_INTERVAL``: Seconds between update cycles.
    * ``WAKA_STATUS_MAX_STATUS_LENGTH``: Maximum length of the status text.
    * ``WAKA_STATUS_PROGRESS_BAR_LENGTH``: Number of glyphs in the progress bar.
    * ``WAKA_STATUS_RETRY_ATTEMPTS``: Total tries when WakaTime rate-limits.
    * ``WAKA_STATUS_DAILY_GOAL_SECONDS``: Target coding seconds per day.
    * ``WAKA_STATUS_ACTIVITY_WINDOW``: Max heartbeat age (seconds) to count as active.
    * ``WAKA_STATUS_BASE_URL``: WakaTime API base URL.
    * ``WAKA_STATUS_STATUS_URL``: Profile-status endpoint.
    * ``WAKA_STATUS_REQUEST_TIMEOUT``: Per-request timeout in seconds.
    * ``WAKA_STATUS_ANIMATION``: Time icon animation (none, pulse, wave, rotate).
    * ``WAKA_STATUS_TESTING``: Enable testing mode (status is logged, not published).
    * ``WAKA_STATUS_LOG_FILE``: Path to the log file.
    * ``WAKA_STATUS_LOG_LEVEL``: Logging level.

Secrets are never logged; :class:`Config` masks them in its ``repr``.
"""

from __future__ import annotations

import logging
import os
from configparser import ConfigParser, Error as ConfigParserError
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

from wakatime_profile_status.formatting import ANIMATIONS

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = ["Config", "ConfigurationError", "IconSet", "RenderConfig", "load_config"]

CONFIG_SECTION = "wakatime-profile-status"

DEFAULT_BASE_URL = "https://wakatime.com/api/v1"
DEFAULT_STATUS_URL = "https://api.github.com/user/status"

REQUIRED_SECRETS = {
    "WAKATIME_API_KEY": "wakatime_api_key",
    "GITHUB_TOKEN": "github_token",
}


class ConfigurationError(ValueError):
    """Raised when configuration is missing a secret or holds an invalid value."""


@dataclass(frozen=True)
class IconSet:
    """Glyphs and emoji used when rendering a status."""

    progress_filled: str = "⬢"
    progress_empty: str = "⬡"
    time_icon: str = "⏰"
    project_icon: str = "📂"
    active_emoji: str = "🚀"
    idle_emoji: str = "🌟"
    unavailable_emoji: str = "🌟"


@dataclass(frozen=True)
class RenderConfig:
    """Immutable rendering settings, built once at startup.

    Attributes:
        max_message_length (int): Upper bound on the status text length.
        progress_bar_width (int): Number of glyphs in the progress bar.
        daily_goal_seconds (int): Seconds of coding that count as 100%.
        activity_window_seconds (float): Max heartbeat age to count as active.
        icon_set (IconSet): Glyphs and emoji.
        separator (str): Joins the status segments.
        retry_attempts (int): Total fetch tries when rate-limited.
        project_name_length (int): Max length of the shortened project name.
        show_project_language (bool): Append ``(language)`` to the project segment.
        animation (str): Time icon animation style; ``"none"`` keeps output deterministic.
    """

    max_message_length: int = 80
    progress_bar_width: int = 10
    daily_goal_seconds: int = 8 * 3600
    activity_window_seconds: float = 60.0
    icon_set: IconSet = field(default_factory=IconSet)
    separator: str = " ⟫ "
    retry_attempts: int = 3
    project_name_length: int = 30
    show_project_language: bool = True
    animation: str = "none"


@dataclass
class Config:
    """Define the application configuration structure.

    Attributes:
        wakatime_api_key (str): WakaTime API key.
        github_token (str): Bearer token for the profile-status API.
        update_interval (float): Seconds between update cycles. Defaults to 300.
        max_status_length (int): Maximum status text length. Defaults to 80.
        progress_bar_length (int): Progress bar width in glyphs. Defaults to 10.
        retry_attempts (int): Total tries on HTTP 429. Defaults to 3.
        daily_goal_seconds (int): Daily goal in seconds. Defaults to 28800 (8h).
        activity_window (float): Seconds a heartbeat counts as active. Defaults to 60.
        base_url (str): WakaTime API base URL.
        status_url (str): Profile-status endpoint receiving the POST.
        request_timeout (float): Per-request timeout in seconds. Defaults to 30.
        animation (str): Time icon animation style. Defaults to "none".
        testing (bool): Log statuses instead of publishing them. Defaults to False.
        log_file (Optional[str]): Path to the log file. Defaults to None.
        log_level (str): Logging level (e.g., INFO, DEBUG). Defaults to "INFO".
    """

    wakatime_api_key: str = field(repr=False)
    github_token: str = field(repr=False)
    update_interval: float = 300.0
    max_status_length: int = 80
    progress_bar_length: int = 10
    retry_attempts: int = 3
    daily_goal_seconds: int = 8 * 3600
    activity_window: float = 60.0
    base_url: str = DEFAULT_BASE_URL
    status_url: str = DEFAULT_STATUS_URL
    request_timeout: float = 30.0
    animation: str = "none"
    testing: bool = False
    log_file: Optional[str] = None
    log_level: str = "INFO"

    def render_config(self) -> RenderConfig:
        """Freeze the rendering-related settings into a :class:`RenderConfig`."""
        return RenderConfig(
            max_message_length=self.max_status_length,
            progress_bar_width=self.progress_bar_length,
            daily_goal_seconds=self.daily_goal_seconds,
            activity_window_seconds=self.activity_window,
            retry_attempts=self.retry_attempts,
            animation=self.animation,
        )


def _get_config_file_paths() -> List[str]:
    """Return a list of potential config file paths in order of priority.

    Checks the following locations:
    1. Local `config.ini` (current working directory).
    2. `$XDG_CONFIG_HOME/wakatime-profile-status/config.ini` (Linux/macOS).
    3. `%APPDATA%\\wakatime-profile-status\\config.ini` (Windows).
    4. `~/.config/wakatime-profile-status/config.ini` (Fallback).

    Returns:
        List[str]: A list of file paths to check for configuration.
    """
    paths = ["config.ini"]

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        paths.append(
            os.path.join(os.path.expanduser(xdg_config_home), CONFIG_SECTION, "config.ini")
        )
    elif os.name == "nt" and os.environ.get("APPDATA"):
        paths.append(
            os.path.join(os.path.expanduser(os.environ["APPDATA"]), CONFIG_SECTION, "config.ini")
        )
    else:
        paths.append(
            os.path.join(os.path.expanduser("~"), ".config", CONFIG_SECTION, "config.ini")
        )
    return paths


def _cast_int(values: Dict[str, Any], key: str, minimum: int, maximum: Optional[int] = None) -> None:
    try:
        values[key] = int(values[key])
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid integer for {key}: {values[key]}") from e
    if values[key] < minimum or (maximum is not None and values[key] > maximum):
        bound = f"between {minimum} and {maximum}" if maximum is not None else f"at least {minimum}"
        raise ConfigurationError(f"{key} must be {bound}, got {values[key]}")


def _cast_float(values: Dict[str, Any], key: str, allow_zero: bool = False) -> None:
    try:
        values[key] = float(values[key])
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid float for {key}: {values[key]}") from e
    if values[key] < 0 or (values[key] == 0 and not allow_zero):
        qualifier = "non-negative" if allow_zero else "positive"
        raise ConfigurationError(f"{key} must be {qualifier}, got {values[key]}")


def load_config(args: Dict[str, Any]) -> Config:
    """Load and validate configuration with strict priority, returning a Config object.

    Aggregates configuration from multiple sources, resolving conflicts by
    prioritizing command-line arguments, then environment variables, then
    configuration files, and finally hardcoded defaults.

    Args:
        args (Dict[str, Any]): Dictionary of parsed CLI arguments from argparse.
            Keys should match Config attributes (e.g., 'update_interval').
            Values of None are ignored to allow lower-priority sources to take effect.
            Typically obtained via ``vars(parser.parse_args())``.

    Returns:
        Config: The fully resolved and validated configuration object.

    Raises:
        ConfigurationError: If a required secret is missing, or a numeric value
            is invalid or out of range, or the animation style is unknown.

    Examples:
        >>> import os
        >>> os.environ["WAKATIME_API_KEY"] = "waka_123"
        >>> os.environ["GITHUB_TOKEN"] = "ghp_123"
        >>> load_config({"retry_attempts": 5}).retry_attempts
        5
        >>> load_config({}).update_interval
        300.0
    """
    # 1. Defaults
    config_values: Dict[str, Any] = {
        "wakatime_api_key": None,
        "github_token": None,
        "update_interval": 300.0,
        "max_status_length": 80,
        "progress_bar_length": 10,
        "retry_attempts": 3,
        "daily_goal_seconds": 8 * 3600,
        "activity_window": 60.0,
        "base_url": DEFAULT_BASE_URL,
        "status_url": DEFAULT_STATUS_URL,
        "request_timeout": 30.0,
        "animation": "none",
        "testing": False,
        "log_file": None,
        "log_level": "INFO",
    }

    # 2. Config File (simple INI support)
    for path in _get_config_file_paths():
        if os.path.isfile(path):
            logger.debug(f"Loading config from {path}")
            parser = ConfigParser(interpolation=None)
            try:
                parser.read(path, encoding="utf-8-sig")
                if CONFIG_SECTION in parser:
                    for key, value in parser[CONFIG_SECTION].items():
                        if value is not None and value != "":
                            config_values[key] = value
            except (ConfigParserError, UnicodeDecodeError, OSError) as e:
                logger.error(f"Failed to parse config file {path}: {e}")
            break

    # 3. Environment Variables
    env_map = {
        "WAKATIME_API_KEY": "wakatime_api_key",
        "GITHUB_TOKEN": "github_token",
        "WAKA_STATUS_UPDATE_INTERVAL": "update_interval",
        "WAKA_STATUS_MAX_STATUS_LENGTH": "max_status_length",
        "WAKA_STATUS_PROGRESS_BAR_LENGTH": "progress_bar_length",
        "WAKA_STATUS_RETRY_ATTEMPTS": "retry_attempts",
        "WAKA_STATUS_DAILY_GOAL_SECONDS": "daily_goal_seconds",
        "WAKA_STATUS_ACTIVITY_WINDOW": "activity_window",
        "WAKA_STATUS_BASE_URL": "base_url",
        "WAKA_STATUS_STATUS_URL": "status_url",
        "WAKA_STATUS_REQUEST_TIMEOUT": "request_timeout",
        "WAKA_STATUS_ANIMATION": "animation",
        "WAKA_STATUS_TESTING": "testing",
        "WAKA_STATUS_LOG_FILE": "log_file",
        "WAKA_STATUS_LOG_LEVEL": "log_level",
    }
    for env_var, config_key in env_map.items():
        val = os.getenv(env_var)
        if val is not None and val != "":
            config_values[config_key] = val

    # 4. CLI Arguments (override if not None)
    for key, value in args.items():
        if value is not None:
            config_values[key] = value

    missing = [
        env_var for env_var, key in REQUIRED_SECRETS.items() if not config_values.get(key)
    ]
    if missing:
        raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")

    # Type casting for specific fields
    _cast_float(config_values, "update_interval")
    _cast_int(config_values, "max_status_length", 10, 1000)
    _cast_int(config_values, "progress_bar_length", 0, 100)
    _cast_int(config_values, "retry_attempts", 1, 10)
    _cast_int(config_values, "daily_goal_seconds", 1)
    _cast_float(config_values, "activity_window", allow_zero=True)
    _cast_float(config_values, "request_timeout")

    config_values["base_url"] = str(config_values["base_url"]).rstrip("/")

    config_values["animation"] = str(config_values["animation"]).lower()
    if config_values["animation"] not in ANIMATIONS:
        raise ConfigurationError(
            f"Invalid animation: {config_values['animation']} (expected one of {sorted(ANIMATIONS)})"
        )

    # Handle boolean conversion for testing
    if isinstance(config_values["testing"], str):
        config_values["testing"] = config_values["testing"].lower() in ("true", "1", "yes", "on")

    # Handle debug flag
    if args.get("debug"):
        config_values["log_level"] = "DEBUG"

    # Validate log_level
    if config_values["log_level"]:
        config_values["log_level"] = config_values["log_level"].upper()
        level = config_values["log_level"]
        if not isinstance(getattr(logging, level, None), int):
            raise ConfigurationError(f"Invalid log level: {config_values['log_level']}")

    # Filter out keys that are not in Config fields (e.g. 'debug' from CLI)
    config_fields = {f.name for f in fields(Config)}
    filtered_values = {k: v for k, v in config_values.items() if k in config_fields}

    return Config(**filtered_values)
