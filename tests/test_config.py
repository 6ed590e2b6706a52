"""Tests for configuration loading and priority logic."""

from __future__ import annotations

from pathlib import Path

import pytest

from wakatime_profile_status.config import (
    DEFAULT_BASE_URL,
    Config,
    ConfigurationError,
    RenderConfig,
    load_config,
)

SECRETS = {"wakatime_api_key": "waka_cli", "github_token": "ghp_cli"}


@pytest.mark.usefixtures("clean_env")
def test_config_defaults() -> None:
    config = load_config(dict(SECRETS))
    assert config.update_interval == 300.0
    assert config.max_status_length == 80
    assert config.progress_bar_length == 10
    assert config.retry_attempts == 3
    assert config.daily_goal_seconds == 28800
    assert config.activity_window == 60.0
    assert config.base_url == DEFAULT_BASE_URL
    assert config.animation == "none"
    assert config.testing is False
    assert config.log_level == "INFO"


@pytest.mark.usefixtures("clean_env")
def test_missing_secrets_is_fatal() -> None:
    with pytest.raises(ConfigurationError, match="WAKATIME_API_KEY, GITHUB_TOKEN"):
        load_config({})


@pytest.mark.usefixtures("clean_env")
def test_missing_single_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WAKATIME_API_KEY", "waka_env")
    with pytest.raises(ConfigurationError) as excinfo:
        load_config({})
    assert "GITHUB_TOKEN" in str(excinfo.value)
    assert "WAKATIME_API_KEY" not in str(excinfo.value)


@pytest.mark.usefixtures("clean_env")
def test_configuration_error_is_value_error() -> None:
    with pytest.raises(ValueError):
        load_config({})


@pytest.mark.usefixtures("clean_env")
def test_secrets_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WAKATIME_API_KEY", "waka_env")
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_env")
    config = load_config({})
    assert config.wakatime_api_key == "waka_env"
    assert config.github_token == "ghp_env"


@pytest.mark.usefixtures("clean_env")
def test_mixed_configuration_sources(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Configuration can be composed from multiple sources simultaneously."""
    (tmp_path / "config.ini").write_text(
        "[wakatime-profile-status]\nupdate_interval = 600\nretry_attempts = 5\nprogress_bar_length = 8\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("WAKA_STATUS_RETRY_ATTEMPTS", "4")
    monkeypatch.setenv("WAKA_STATUS_TESTING", "true")

    config = load_config({**SECRETS, "progress_bar_length": 12})

    assert config.update_interval == 600.0  # From config file
    assert config.retry_attempts == 4  # From env
    assert config.progress_bar_length == 12  # From CLI
    assert config.testing is True  # From env


@pytest.mark.usefixtures("clean_env")
def test_xdg_config_file(tmp_path: Path) -> None:
    config_dir = tmp_path / "empty_config" / "wakatime-profile-status"
    config_dir.mkdir(parents=True)
    (config_dir / "config.ini").write_text(
        "[wakatime-profile-status]\nwakatime_api_key = waka_file\ngithub_token = ghp_file\n",
        encoding="utf-8",
    )
    config = load_config({})
    assert config.wakatime_api_key == "waka_file"


@pytest.mark.usefixtures("clean_env")
def test_malformed_config_file_is_ignored(tmp_path: Path) -> None:
    (tmp_path / "config.ini").write_text("not an ini file [", encoding="utf-8")
    config = load_config(dict(SECRETS))
    assert config.update_interval == 300.0


@pytest.mark.usefixtures("clean_env")
def test_none_cli_values_do_not_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WAKA_STATUS_UPDATE_INTERVAL", "120")
    config = load_config({**SECRETS, "update_interval": None})
    assert config.update_interval == 120.0


@pytest.mark.usefixtures("clean_env")
@pytest.mark.parametrize(
    "key, value",
    [
        ("update_interval", "soon"),
        ("update_interval", 0),
        ("max_status_length", 5),
        ("progress_bar_length", -1),
        ("retry_attempts", 0),
        ("retry_attempts", "many"),
        ("daily_goal_seconds", 0),
        ("activity_window", -1),
        ("request_timeout", 0),
        ("animation", "sparkle"),
        ("log_level", "LOUD"),
    ],
)
def test_invalid_values(key: str, value: object) -> None:
    with pytest.raises(ConfigurationError):
        load_config({**SECRETS, key: value})


@pytest.mark.usefixtures("clean_env")
def test_debug_flag_overrides_log_level() -> None:
    config = load_config({**SECRETS, "log_level": "warning", "debug": True})
    assert config.log_level == "DEBUG"


@pytest.mark.usefixtures("clean_env")
def test_unknown_cli_keys_are_ignored() -> None:
    config = load_config({**SECRETS, "once": True, "serve": False, "host": "0.0.0.0"})
    assert isinstance(config, Config)


@pytest.mark.usefixtures("clean_env")
def test_base_url_trailing_slash_stripped() -> None:
    config = load_config({**SECRETS, "base_url": "https://waka.example/api/v1/"})
    assert config.base_url == "https://waka.example/api/v1"


def test_secrets_are_masked_in_repr() -> None:
    config = Config(wakatime_api_key="waka_secret", github_token="ghp_secret")
    assert "waka_secret" not in repr(config)
    assert "ghp_secret" not in repr(config)


def test_render_config_from_config() -> None:
    config = Config(
        wakatime_api_key="k",
        github_token="t",
        max_status_length=60,
        progress_bar_length=20,
        daily_goal_seconds=5 * 3600,
        activity_window=300.0,
        retry_attempts=2,
        animation="wave",
    )
    render = config.render_config()
    assert render == RenderConfig(
        max_message_length=60,
        progress_bar_width=20,
        daily_goal_seconds=5 * 3600,
        activity_window_seconds=300.0,
        retry_attempts=2,
        animation="wave",
    )
    with pytest.raises(AttributeError):
        render.max_message_length = 10  # type: ignore[misc]
