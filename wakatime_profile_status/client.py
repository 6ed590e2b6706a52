"""WakaTime API client that produces normalized activity snapshots."""

from __future__ import annotations

import base64
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Optional, Union, cast

import requests

from wakatime_profile_status.config import DEFAULT_BASE_URL
from wakatime_profile_status.models import (
    ActivitySnapshot,
    FetchFailure,
    FetchResult,
    LastKnownProject,
    RateLimited,
)

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = ["ActivityClient", "most_used_language", "parse_heartbeat_time"]

USER_ENDPOINT = "/users/current"
STATUS_BAR_ENDPOINT = "/users/current/status_bar/today"
EXCLUDED_LANGUAGE = "Other"


def parse_heartbeat_time(value: Any) -> Optional[datetime]:
    """Parse a heartbeat timestamp given as ISO-8601 text or epoch seconds.

    Naive timestamps are assumed to be UTC. Unparseable values yield None.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(float(value), tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            logger.warning("Invalid heartbeat epoch: %s. Ignoring.", value)
            return None
    if not isinstance(value, str):
        logger.warning("Invalid heartbeat type: %s. Ignoring.", type(value))
        return None
    ts_str = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(ts_str)
    except ValueError:
        logger.warning("Invalid heartbeat format: %s. Ignoring.", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def most_used_language(languages: Optional[Iterable[Dict[str, Any]]]) -> Optional[str]:
    """Return the language with the most seconds, ignoring the "Other" bucket.

    Ties keep the first-encountered entry. An empty list yields None.
    """
    best_name: Optional[str] = None
    best_seconds = 0.0
    for entry in languages or []:
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        if not name or name == EXCLUDED_LANGUAGE:
            continue
        try:
            seconds = float(entry.get("total_seconds") or 0)
        except (TypeError, ValueError):
            logger.warning("Invalid total_seconds for language %s. Ignoring.", name)
            continue
        if best_name is None or seconds > best_seconds:
            best_name, best_seconds = name, seconds
    return best_name


class ActivityClient:
    """Read today's coding activity from the WakaTime API.

    The two reads of a fetch run concurrently and are joined before the
    snapshot is built. HTTP 429 answers are retried with exponential backoff
    (``2 ** attempt`` seconds) up to ``retry_attempts`` total tries; any other
    failure is reported at once as a :class:`FetchFailure`.

    The client remembers the most recent non-empty project it has seen
    (:attr:`last_known_project`) and attaches a copy of it to each snapshot.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        retry_attempts: int = 3,
        activity_window: float = 60.0,
        timeout: Optional[float] = 30.0,
        session: Optional[requests.Session] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        if retry_attempts < 1:
            raise ValueError(f"retry_attempts must be at least 1, got {retry_attempts}")
        self.base_url = base_url.rstrip("/")
        self.retry_attempts = retry_attempts
        self.activity_window = activity_window
        self.timeout = timeout
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._last_known_project: Optional[LastKnownProject] = None
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="ActivityClient")
        self._closed = False

        self.session = session or requests.Session()
        token = base64.b64encode(api_key.encode("utf-8")).decode("ascii")
        self.session.headers.update({
            "Authorization": f"Basic {token}",
            "Content-Type": "application/json",
        })

    @property
    def last_known_project(self) -> Optional[LastKnownProject]:
        """The most recent project seen with a non-empty name, if any."""
        return self._last_known_project

    def fetch(self) -> FetchResult:
        """Fetch and normalize today's activity.

        Returns:
            Union[ActivitySnapshot, FetchFailure]: The snapshot on success, otherwise
            a failure describing why. Exhausted rate-limit retries are reported
            as a plain :class:`FetchFailure`.
        """
        for attempt in range(self.retry_attempts):
            logger.debug("Fetching WakaTime data (attempt %d/%d)...", attempt + 1, self.retry_attempts)
            result = self._fetch_once()
            if not isinstance(result, RateLimited):
                if isinstance(result, FetchFailure):
                    logger.warning("WakaTime fetch failed: %s", result)
                return result

            if attempt + 1 < self.retry_attempts:
                backoff = 2 ** attempt
                logger.warning("Rate limit hit, backing off for %ss", backoff)
                time.sleep(backoff)

        logger.warning("WakaTime rate limit persisted after %d attempts.", self.retry_attempts)
        return FetchFailure(
            f"rate limited after {self.retry_attempts} attempts", status_code=429
        )

    def _fetch_once(self) -> Union[ActivitySnapshot, FetchFailure]:
        user_future = self._executor.submit(self._get, USER_ENDPOINT)
        status_future = self._executor.submit(self._get, STATUS_BAR_ENDPOINT)
        # Join both reads; the status bar answer wins if both failed
        user_result = user_future.result()
        status_result = status_future.result()

        for result in (status_result, user_result):
            if isinstance(result, RateLimited):
                return result
        for result in (status_result, user_result):
            if isinstance(result, FetchFailure):
                return result

        return self._build_snapshot(cast(Dict[str, Any], user_result), cast(Dict[str, Any], status_result))

    def _get(self, endpoint: str) -> Union[Dict[str, Any], FetchFailure]:
        """Perform one GET and unwrap the ``data`` envelope."""
        url = f"{self.base_url}{endpoint}"
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.Timeout as e:
            return FetchFailure(f"timeout requesting {endpoint}: {e}")
        except requests.RequestException as e:
            return FetchFailure(f"error requesting {endpoint}: {e}")

        if response.status_code == 429:
            return RateLimited(f"rate limited on {endpoint}")
        if response.status_code >= 400:
            return FetchFailure(f"unexpected response from {endpoint}", status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            return FetchFailure(f"invalid JSON from {endpoint}: {e}", status_code=response.status_code)
        if not isinstance(body, dict):
            return FetchFailure(f"unexpected payload from {endpoint}", status_code=response.status_code)
        data = body.get("data")
        return data if isinstance(data, dict) else {}

    def _build_snapshot(self, user_data: Dict[str, Any], status_data: Dict[str, Any]) -> ActivitySnapshot:
        current_project = _text(status_data.get("project")) or _text(user_data.get("last_project"))
        current_language = _text(status_data.get("language")) or _text(user_data.get("last_language"))

        last_heartbeat = parse_heartbeat_time(status_data.get("heartbeat_at"))
        is_active = False
        if last_heartbeat is not None:
            elapsed = (self._clock() - last_heartbeat).total_seconds()
            is_active = elapsed <= self.activity_window

        grand_total = status_data.get("grand_total")
        if not isinstance(grand_total, dict):
            grand_total = {}
        try:
            total_seconds = max(int(float(grand_total.get("total_seconds") or 0)), 0)
        except (TypeError, ValueError, OverflowError):
            logger.warning("Invalid total_seconds: %s. Using 0.", grand_total.get("total_seconds"))
            total_seconds = 0

        languages = status_data.get("languages") or user_data.get("languages")
        if not isinstance(languages, list):
            languages = None

        if current_project:
            self._last_known_project = LastKnownProject(current_project, current_language)
            logger.debug("Updated last known project: %s", self._last_known_project)

        snapshot = ActivitySnapshot(
            current_project=current_project,
            current_language=current_language,
            total_seconds_today=total_seconds,
            is_active=is_active,
            most_used_language=most_used_language(languages),
            last_heartbeat_time=last_heartbeat,
            last_known_project=self._last_known_project,
        )
        logger.debug("Processed WakaTime data: %s", snapshot)
        return snapshot

    def close(self) -> None:
        """Release the worker threads and the HTTP session."""
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=True)
        self.session.close()

    def __enter__(self) -> ActivityClient:
        return self

    def __exit__(self, exc_type: Any, exc_value: Any, traceback: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<ActivityClient base_url={self.base_url} retry_attempts={self.retry_attempts}>"
