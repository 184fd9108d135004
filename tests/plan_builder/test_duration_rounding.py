"""Tests for duration rounding helpers used by the draft generator."""

import pytest

from coachkit.plan_builder.duration_rounding import (
    clamp_int,
    humanize_week_durations,
    round_half_up,
    round_to_increment_minutes,
)


def test_round_half_up_rounds_halves_up() -> None:
    """Halves round up instead of to even."""
    assert round_half_up(2.5) == 3
    assert round_half_up(0.5) == 1
    assert round_half_up(2.49) == 2


def test_clamp_int_rounds_then_clamps() -> None:
    """Values are rounded before being bounded."""
    assert clamp_int(42.857, 20, 120) == 43
    assert clamp_int(5, 20, 120) == 20
    assert clamp_int(500, 20, 120) == 120


def test_round_to_increment_minutes() -> None:
    """Minutes snap to the nearest increment, never below zero."""
    assert round_to_increment_minutes(47, 5) == 45
    assert round_to_increment_minutes(48, 5) == 50
    assert round_to_increment_minutes(95, 10) == 100
    assert round_to_increment_minutes(-7, 5) == 0


def test_humanize_uses_ten_minute_steps_for_long_day_and_long_sessions() -> None:
    """Long-day sessions and sessions of 90+ minutes use 10-minute steps."""
    result = humanize_week_durations([47, 48, 122], [False, False, True])

    assert result == [45, 50, 120]


def test_humanize_nudges_back_toward_original_total() -> None:
    """Rounding drift is corrected one step at a time, largest session first when shrinking."""
    result = humanize_week_durations([33, 33, 33], [False, False, False])

    # 35+35+35 = 105 overshoots 99; one 5-minute step brings it to 100
    assert result == [30, 35, 35]
    assert all(d % 5 == 0 for d in result)


def test_humanize_clamps_to_session_bounds() -> None:
    """Every humanised duration stays within 20..240 minutes."""
    assert humanize_week_durations([10], [False]) == [20]
    assert humanize_week_durations([300], [True]) == [240]


def test_humanize_keeps_exact_totals_untouched() -> None:
    """Durations already on their steps are returned as-is."""
    assert humanize_week_durations([40, 45, 90], [False, False, True]) == [40, 45, 90]


def test_humanize_rejects_mismatched_flags() -> None:
    """Durations and long-day flags must line up."""
    with pytest.raises(ValueError, match="same length"):
        humanize_week_durations([30, 40], [False])
