"""Tests for the display formatting helpers."""

from __future__ import annotations

import pytest

from wakatime_profile_status.formatting import (
    ANIMATIONS,
    animated_icon,
    format_duration,
    format_percentage,
    render_progress_bar,
    shorten_project_name,
    truncate,
)


@pytest.mark.parametrize(
    "seconds, expected",
    [
        (0, "0m"),
        (None, "0m"),
        (59, "0m"),
        (60, "1m"),
        (3599, "59m"),
        (3600, "1h0m"),
        (3661, "1h1m"),
        (14400, "4h0m"),
        (90061.9, "25h1m"),
        (-120, "0m"),
    ],
)
def test_format_duration(seconds: float, expected: str) -> None:
    assert format_duration(seconds) == expected


def test_progress_bar_half() -> None:
    bar = render_progress_bar(0.5, 10)
    assert len(bar) == 10
    assert bar.count("⬢") == 5
    assert bar == "⬢⬢⬢⬢⬢⬡⬡⬡⬡⬡"


def test_progress_bar_bounds() -> None:
    assert render_progress_bar(0.0, 10) == "⬡" * 10
    assert render_progress_bar(1.0, 10) == "⬢" * 10
    # Out-of-range fractions are clamped
    assert render_progress_bar(1.7, 4) == "⬢" * 4
    assert render_progress_bar(-0.3, 4) == "⬡" * 4
    assert render_progress_bar(float("nan"), 4) == "⬡" * 4


def test_progress_bar_rounds_half_up() -> None:
    # round(0.25 * 10) is 2.5 -> 3 filled glyphs
    assert render_progress_bar(0.25, 10).count("⬢") == 3
    assert render_progress_bar(0.24, 10).count("⬢") == 2


def test_progress_bar_custom_glyphs() -> None:
    assert render_progress_bar(0.5, 4, filled="█", empty="░") == "██░░"


@pytest.mark.parametrize("width", [0, 1, 7, 20])
def test_progress_bar_length_matches_width(width: int) -> None:
    for fraction in (0.0, 0.33, 0.5, 0.66, 1.0):
        assert len(render_progress_bar(fraction, width)) == width


def test_format_percentage() -> None:
    assert format_percentage(0.5) == "50%"
    assert format_percentage(0.125) == "13%"
    assert format_percentage(2.0) == "100%"
    assert format_percentage(0.0) == "0%"


def test_truncate() -> None:
    assert truncate("abcdefghij", 5) == "ab..."
    assert len(truncate("abcdefghij", 5)) == 5
    assert truncate("abcde", 5) == "abcde"
    assert truncate("short", 30) == "short"


def test_truncate_empty_input() -> None:
    assert truncate("", 5) == ""
    assert truncate(None, 5) == ""


def test_truncate_tiny_limit() -> None:
    assert truncate("abcdef", 2) == "ab"
    assert truncate("abcdef", 0) == ""


@pytest.mark.parametrize(
    "name, expected",
    [
        ("octocat/hello-world", "hello-world"),
        ("org/team/repo", "repo"),
        ("plain", "plain"),
        ("owner/repo/", "repo"),
        ("", ""),
        (None, ""),
    ],
)
def test_shorten_project_name(name: str, expected: str) -> None:
    assert shorten_project_name(name) == expected


def test_animated_icon_none_is_identity() -> None:
    assert animated_icon("⏰", "none", 123.0) == "⏰"
    assert animated_icon("⏰", "unknown-style", 123.0) == "⏰"


def test_animated_icon_frames_follow_clock() -> None:
    frames = ANIMATIONS["pulse"]
    assert animated_icon("⏰", "pulse", 0.0) == frames[0] + "⏰"
    assert animated_icon("⏰", "pulse", 0.25) == frames[1] + "⏰"
    assert animated_icon("⏰", "pulse", 1.0) == frames[0] + "⏰"
