from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generator
from unittest.mock import MagicMock

import pytest
import requests

from wakatime_profile_status.client import ActivityClient
from wakatime_profile_status.composer import StatusComposer
from wakatime_profile_status.config import Config, RenderConfig
from wakatime_profile_status.models import ActivitySnapshot

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_response(status_code: int = 200, payload: Any = None, reason: str = "") -> MagicMock:
    """Build a fake ``requests.Response``."""
    response = MagicMock()
    response.status_code = status_code
    response.reason = reason
    response.text = ""
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response


def user_payload(**data: Any) -> Dict[str, Any]:
    return {"data": {"last_project": None, "last_language": None, **data}}


def status_payload(**data: Any) -> Dict[str, Any]:
    base: Dict[str, Any] = {
        "project": None,
        "language": None,
        "heartbeat_at": None,
        "grand_total": {"total_seconds": 0},
        "languages": [],
    }
    base.update(data)
    return {"data": base}


@pytest.fixture
def route_session() -> Callable[..., requests.Session]:
    """Return a factory for a real Session whose ``get`` answers per endpoint."""

    def _factory(
        user: Any = None,
        status: Any = None,
    ) -> requests.Session:
        session = requests.Session()
        user_answer = user if user is not None else make_response(200, user_payload())
        status_answer = status if status is not None else make_response(200, status_payload())

        def _get(url: str, **kwargs: Any) -> Any:
            answer = status_answer if url.endswith("/status_bar/today") else user_answer
            if isinstance(answer, list):
                answer = answer.pop(0) if len(answer) > 1 else answer[0]
            if isinstance(answer, Exception):
                raise answer
            return answer

        session.get = MagicMock(side_effect=_get)  # type: ignore[method-assign]
        return session

    return _factory


@pytest.fixture
def activity_client_factory(route_session: Callable[..., requests.Session]) -> Generator[Callable[..., ActivityClient], None, None]:
    clients = []

    def _factory(user: Any = None, status: Any = None, **kwargs: Any) -> ActivityClient:
        kwargs.setdefault("clock", lambda: FIXED_NOW)
        client = ActivityClient("waka_test_key", session=route_session(user, status), **kwargs)
        clients.append(client)
        return client

    yield _factory
    for client in clients:
        client.close()


@pytest.fixture
def mock_sleep(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    """Mock time.sleep to skip backoff delays."""
    mock = MagicMock()
    monkeypatch.setattr("time.sleep", mock)
    return mock


@pytest.fixture
def render_config() -> RenderConfig:
    return RenderConfig()


@pytest.fixture
def composer(render_config: RenderConfig) -> StatusComposer:
    return StatusComposer(render_config)


@pytest.fixture
def snapshot() -> ActivitySnapshot:
    return ActivitySnapshot(
        current_project="octocat/hello-world",
        current_language="Python",
        total_seconds_today=14400,
        is_active=True,
        most_used_language="Python",
        last_heartbeat_time=FIXED_NOW,
    )


@pytest.fixture
def mock_config() -> Config:
    """Fixture for a default Config object in testing mode."""
    return Config(
        wakatime_api_key="waka_test_key",
        github_token="ghp_test_token",
        update_interval=300.0,
        testing=True,
    )


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Any) -> None:
    """Run with no config file and no relevant environment variables."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "empty_config"))
    for var in ("WAKATIME_API_KEY", "GITHUB_TOKEN"):
        monkeypatch.delenv(var, raising=False)
    for var in list(os.environ):
        if var.startswith("WAKA_STATUS_"):
            monkeypatch.delenv(var, raising=False)


@pytest.fixture(name="make_response")
def make_response_fixture() -> Callable[..., MagicMock]:
    return make_response


@pytest.fixture(name="user_payload")
def user_payload_fixture() -> Callable[..., Dict[str, Any]]:
    return user_payload


@pytest.fixture(name="status_payload")
def status_payload_fixture() -> Callable[..., Dict[str, Any]]:
    return status_payload
