"""Value types shared by the fetch, compose and publish stages."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Union

__all__ = [
    "ActivitySnapshot",
    "FetchFailure",
    "FetchResult",
    "LastKnownProject",
    "RateLimited",
    "StatusMessage",
]


@dataclass(frozen=True)
class LastKnownProject:
    """The most recent project seen with a non-empty name."""

    name: str
    language: Optional[str] = None


@dataclass(frozen=True)
class ActivitySnapshot:
    """One fetch's normalized view of today's coding activity.

    Attributes:
        current_project (Optional[str]): Live project, else the profile's last project.
        current_language (Optional[str]): Live language, else the profile's last language.
        total_seconds_today (int): Seconds coded today, never negative.
        is_active (bool): True when the last heartbeat is inside the activity window.
        most_used_language (Optional[str]): Language with most time today, "Other" excluded.
        last_heartbeat_time (Optional[datetime]): Timestamp of the latest heartbeat.
        last_known_project (Optional[LastKnownProject]): Copy of the client's
            project memory at fetch time.
    """

    current_project: Optional[str] = None
    current_language: Optional[str] = None
    total_seconds_today: int = 0
    is_active: bool = False
    most_used_language: Optional[str] = None
    last_heartbeat_time: Optional[datetime] = None
    last_known_project: Optional[LastKnownProject] = None

    def __post_init__(self) -> None:
        if self.total_seconds_today < 0:
            raise ValueError(f"total_seconds_today must be non-negative, got {self.total_seconds_today}")


@dataclass(frozen=True)
class FetchFailure:
    """The activity source could not be read."""

    reason: str
    status_code: Optional[int] = None

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.reason} (HTTP {self.status_code})"
        return self.reason


@dataclass(frozen=True)
class RateLimited(FetchFailure):
    """The activity source answered HTTP 429; worth retrying after a backoff."""

    status_code: Optional[int] = 429


FetchResult = Union[ActivitySnapshot, FetchFailure]


@dataclass(frozen=True)
class StatusMessage:
    """An emoji plus bounded-length text, ready to publish."""

    emoji: str
    text: str

    def to_payload(self) -> Dict[str, str]:
        return {"emoji": self.emoji, "message": self.text}
