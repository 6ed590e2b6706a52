"""Compose a bounded-length status message from an activity snapshot."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Tuple

from wakatime_profile_status.config import RenderConfig
from wakatime_profile_status.formatting import (
    animated_icon,
    format_duration,
    format_percentage,
    render_progress_bar,
    shorten_project_name,
    truncate,
)
from wakatime_profile_status.models import ActivitySnapshot, FetchFailure, FetchResult, StatusMessage

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = ["UNAVAILABLE_TEXT", "UNKNOWN_LANGUAGE", "StatusComposer"]

UNAVAILABLE_TEXT = "Status temporarily unavailable"
UNKNOWN_LANGUAGE = "Unknown"


class StatusComposer:
    """Render snapshots into :class:`StatusMessage` values.

    Segments, in order and joined by the configured separator:

    1. time spent today
    2. project, with its language in parentheses (omitted when unknown)
    3. progress bar towards the daily goal, with a percentage
    4. most used language (omitted when nothing was recorded today)

    The joined text is truncated to ``max_message_length``. With the default
    ``animation="none"`` the output depends only on the snapshot and the config.
    """

    def __init__(self, config: RenderConfig, clock: Optional[Callable[[], float]] = None) -> None:
        self.config = config
        self._clock = clock or time.time

    def fallback(self) -> StatusMessage:
        """The status published when activity data is unavailable."""
        return StatusMessage(emoji=self.config.icon_set.unavailable_emoji, text=UNAVAILABLE_TEXT)

    def compose(self, result: FetchResult) -> StatusMessage:
        if isinstance(result, FetchFailure):
            return self.fallback()

        icons = self.config.icon_set
        segments = [self._time_segment(result)]

        project = self._project_segment(result)
        if project:
            segments.append(project)

        segments.append(self._progress_segment(result))

        language = self._language_segment(result)
        if language:
            segments.append(language)

        text = truncate(self.config.separator.join(segments), self.config.max_message_length)
        emoji = icons.active_emoji if result.is_active else icons.idle_emoji
        logger.debug("Created status message: %s %s", emoji, text)
        return StatusMessage(emoji=emoji, text=text)

    def _time_segment(self, snapshot: ActivitySnapshot) -> str:
        icon = self.config.icon_set.time_icon
        if snapshot.is_active and self.config.animation != "none":
            icon = animated_icon(icon, self.config.animation, self._clock())
        return f"{icon} {format_duration(snapshot.total_seconds_today)}"

    def _project_segment(self, snapshot: ActivitySnapshot) -> Optional[str]:
        name, language = self._resolve_project(snapshot)
        short_name = truncate(shorten_project_name(name), self.config.project_name_length)
        if not short_name:
            return None
        project = f"{self.config.icon_set.project_icon} {short_name}"
        if self.config.show_project_language and language:
            project += f" ({language})"
        return project

    @staticmethod
    def _resolve_project(snapshot: ActivitySnapshot) -> Tuple[Optional[str], Optional[str]]:
        fallback = snapshot.last_known_project
        if snapshot.current_project:
            language = snapshot.current_language
            if not language and fallback and fallback.name == snapshot.current_project:
                language = fallback.language
            return snapshot.current_project, language
        if fallback:
            return fallback.name, snapshot.current_language or fallback.language
        return None, None

    def _progress_segment(self, snapshot: ActivitySnapshot) -> str:
        fraction = min(snapshot.total_seconds_today / self.config.daily_goal_seconds, 1.0)
        icons = self.config.icon_set
        bar = render_progress_bar(
            fraction, self.config.progress_bar_width, icons.progress_filled, icons.progress_empty
        )
        return f"{bar} {format_percentage(fraction)}"

    @staticmethod
    def _language_segment(snapshot: ActivitySnapshot) -> Optional[str]:
        if snapshot.most_used_language:
            return snapshot.most_used_language
        if snapshot.total_seconds_today > 0:
            return UNKNOWN_LANGUAGE
        return None
