"""Duration rounding for generated weeks.

Durations are "humanised" to 5-minute steps (10-minute steps for long-day
sessions and anything at or above 90 minutes), then nudged back so the
weekly total stays as close as the steps allow to what was generated.
"""

import math

SHORT_INCREMENT_MINUTES = 5
LONG_INCREMENT_MINUTES = 10
LONG_SESSION_THRESHOLD_MINUTES = 90

MIN_SESSION_MINUTES = 20
MAX_SESSION_MINUTES = 240

_MAX_ADJUST_ITERATIONS = 500


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return math.floor(value + 0.5)


def clamp_int(value: float, lower: int, upper: int) -> int:
    return max(lower, min(upper, round_half_up(value)))


def round_to_increment_minutes(value: float, increment_minutes: int) -> int:
    """Round minutes to the nearest increment, never below zero."""
    inc = max(1, round_half_up(increment_minutes))
    return max(0, round_half_up(value / inc) * inc)


def duration_step(duration: int, is_long_day: bool) -> int:
    if is_long_day or duration >= LONG_SESSION_THRESHOLD_MINUTES:
        return LONG_INCREMENT_MINUTES
    return SHORT_INCREMENT_MINUTES


def humanize_week_durations(durations: list[int], long_day_flags: list[bool]) -> list[int]:
    """Round a week's durations to friendly steps while preserving its total.

    Args:
        durations: Raw minutes per session, in week order
        long_day_flags: Whether each session sits on the long-session day

    Returns:
        Rounded minutes per session, same order, each within 20..240
    """
    if len(durations) != len(long_day_flags):
        raise ValueError("durations and long_day_flags must have the same length")

    original_total = sum(durations)
    steps = [duration_step(d, flag) for d, flag in zip(durations, long_day_flags, strict=True)]
    rounded = [
        max(MIN_SESSION_MINUTES, min(MAX_SESSION_MINUTES, round_to_increment_minutes(d, step)))
        for d, step in zip(durations, steps, strict=True)
    ]

    diff = original_total - sum(rounded)

    def candidates(direction: str) -> list[int]:
        # Non-long-day sessions first, then finer steps first.
        # Growing favours the shortest session, shrinking the longest.
        sign = 1 if direction == "up" else -1
        return sorted(
            range(len(rounded)),
            key=lambda i: (long_day_flags[i], steps[i], sign * rounded[i], i),
        )

    for _ in range(_MAX_ADJUST_ITERATIONS):
        if diff == 0:
            break
        direction = "up" if diff > 0 else "down"
        adjusted = False
        for i in candidates(direction):
            step = steps[i]
            # Stop when the nudge would overshoot by more than it fixes.
            if abs(diff) * 2 <= step:
                continue
            if direction == "up" and rounded[i] + step <= MAX_SESSION_MINUTES:
                rounded[i] += step
                diff -= step
                adjusted = True
                break
            if direction == "down" and rounded[i] - step >= MIN_SESSION_MINUTES:
                rounded[i] -= step
                diff += step
                adjusted = True
                break
        if not adjusted:
            break

    return rounded
