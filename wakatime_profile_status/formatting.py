"""Pure helpers that turn durations and ratios into display strings.

Every function here is side-effect free. Inputs that would otherwise break
formatting (``None``, negative numbers, fractions outside ``[0, 1]``) are
clamped or treated as empty instead of raising.
"""

from __future__ import annotations

import math
from typing import Dict, List, Optional

__all__ = [
    "ANIMATIONS",
    "animated_icon",
    "format_duration",
    "format_percentage",
    "render_progress_bar",
    "shorten_project_name",
    "truncate",
]

ELLIPSIS = "..."

ANIMATIONS: Dict[str, List[str]] = {
    "pulse": ["⎯", "\\", "|", "/"],
    "wave": ["▁", "▂", "▃", "▄", "▅", "▆", "▇", "█"],
    "rotate": ["◜", "◝", "◞", "◟"],
    "none": [""],
}

FRAME_SECONDS = 0.25


def _round_half_up(value: float) -> int:
    # round() is banker's rounding; display values must round .5 upwards
    return int(math.floor(value + 0.5))


def _clamp_fraction(fraction: float) -> float:
    if fraction != fraction:  # NaN
        return 0.0
    return min(max(fraction, 0.0), 1.0)


def format_duration(seconds: Optional[float]) -> str:
    """Format a number of seconds as ``"1h1m"`` or ``"42m"``.

    Args:
        seconds (Optional[float]): Elapsed seconds. ``None``, negative and
            fractional values are floored and clamped to zero.

    Returns:
        str: ``"0m"`` for zero, ``"<h>h<m>m"`` when at least one hour elapsed,
        otherwise ``"<m>m"``.

    Example:
        >>> format_duration(3661)
        '1h1m'
    """
    total = max(int(seconds or 0), 0)
    if total == 0:
        return "0m"
    hours, remainder = divmod(total, 3600)
    minutes = remainder // 60
    if hours > 0:
        return f"{hours}h{minutes}m"
    return f"{minutes}m"


def render_progress_bar(
    fraction: float,
    width: int,
    filled: str = "⬢",
    empty: str = "⬡",
) -> str:
    """Render a fixed-width progress bar.

    Args:
        fraction (float): Progress in ``[0, 1]``; values outside are clamped.
        width (int): Number of glyphs in the bar.
        filled (str): Glyph for completed cells.
        empty (str): Glyph for remaining cells.

    Returns:
        str: ``round(fraction * width)`` filled glyphs followed by empty glyphs,
        always exactly ``width`` glyphs long.
    """
    width = max(int(width), 0)
    filled_count = min(_round_half_up(_clamp_fraction(fraction) * width), width)
    return filled * filled_count + empty * (width - filled_count)


def format_percentage(fraction: float) -> str:
    """Return ``fraction`` as a whole percentage string, e.g. ``"50%"``."""
    return f"{_round_half_up(_clamp_fraction(fraction) * 100)}%"


def truncate(text: Optional[str], max_length: int) -> str:
    """Shorten ``text`` to ``max_length`` characters, ending in ``"..."``.

    ``None`` and empty strings yield ``""``.

    Example:
        >>> truncate("abcdefghij", 5)
        'ab...'
    """
    if not text:
        return ""
    if len(text) <= max_length:
        return text
    if max_length < len(ELLIPSIS):
        return text[:max(max_length, 0)]
    return text[: max_length - len(ELLIPSIS)] + ELLIPSIS


def shorten_project_name(full_name: Optional[str]) -> str:
    """Strip any ``owner/`` prefix and return the last path segment."""
    if not full_name:
        return ""
    return full_name.rstrip("/").split("/")[-1]


def animated_icon(icon: str, style: str, now: float) -> str:
    """Prefix ``icon`` with the animation frame current at ``now``.

    Unknown styles behave like ``"none"``. The frame changes every quarter
    second, so the output depends on the wall clock.
    """
    frames = ANIMATIONS.get(style, ANIMATIONS["none"])
    if style == "none" or frames == ANIMATIONS["none"]:
        return icon
    frame = int(math.floor(now / FRAME_SECONDS)) % len(frames)
    return frames[frame] + icon
