"""Tests for setup parsing and normalisation."""

from datetime import date

import pytest

from coachkit.plan_builder.enums import RiskTolerance, WeekStart
from coachkit.plan_builder.errors import InvalidDraftSetupError
from coachkit.plan_builder.models import DraftPlanSetup
from coachkit.plan_builder.setup import (
    availability_total_minutes,
    day_sort_key,
    has_constraint_signal,
    is_beginner,
    normalize_draft_setup,
    parse_draft_setup,
    resolve_weeks_to_event,
    weekly_minutes_target,
)


def test_parse_draft_setup_accepts_camel_case_payload() -> None:
    """JSON payloads use camelCase keys."""
    setup = parse_draft_setup(
        {
            "weekStart": "sunday",
            "weeksToEvent": 6,
            "weeklyAvailabilityDays": [1, 3, 5],
            "weeklyAvailabilityMinutes": 240,
            "riskTolerance": "low",
            "maxIntensityDaysPerWeek": 1,
        }
    )

    assert setup.week_start == WeekStart.SUNDAY
    assert setup.weeks_to_event == 6
    assert setup.weekly_availability_days == [1, 3, 5]
    assert setup.risk_tolerance == RiskTolerance.LOW


def test_parse_draft_setup_accepts_minutes_by_weekday() -> None:
    """Availability can be a weekday -> minutes map."""
    setup = parse_draft_setup({"weeklyAvailabilityMinutes": {"mon": 60, "wed": 45, "sat": 120}})

    assert availability_total_minutes(setup) == 225


def test_parse_draft_setup_rejects_unknown_risk_tolerance() -> None:
    """Enum fields are validated."""
    with pytest.raises(InvalidDraftSetupError, match="Invalid draft setup"):
        parse_draft_setup({"riskTolerance": "extreme"})


def test_parse_draft_setup_rejects_non_object() -> None:
    """Only JSON objects are setups."""
    with pytest.raises(InvalidDraftSetupError, match="must be an object"):
        parse_draft_setup([1, 2, 3])  # type: ignore[arg-type]


def test_resolve_weeks_from_dates() -> None:
    """Dates derive the plan length when no override is given."""
    setup = DraftPlanSetup(start_date=date(2026, 1, 5), event_date=date(2026, 3, 1), weeks_to_event=3)

    # 56 inclusive days
    assert resolve_weeks_to_event(setup) == 8


def test_resolve_weeks_override_wins_and_is_clamped() -> None:
    """The coach override beats dates and is clamped to 1..52."""
    setup = DraftPlanSetup(
        start_date=date(2026, 1, 5),
        event_date=date(2026, 3, 1),
        weeks_to_event_override=60,
    )

    assert resolve_weeks_to_event(setup) == 52
    assert resolve_weeks_to_event(DraftPlanSetup(weeks_to_event=0)) == 1
    assert resolve_weeks_to_event(DraftPlanSetup()) == 1


def test_normalize_draft_setup_cleans_days_and_limits() -> None:
    """Days are de-duplicated and sorted, limits clamped, invalid long day dropped."""
    setup = DraftPlanSetup(
        weeks_to_event=4,
        weekly_availability_days=[6, 1, 1, 9, -1, 3],
        max_intensity_days_per_week=5,
        max_doubles_per_week=-1,
        long_session_day=7,
    )

    normalized = normalize_draft_setup(setup)

    assert normalized.weekly_availability_days == [1, 3, 6]
    assert normalized.max_intensity_days_per_week == 3
    assert normalized.max_doubles_per_week == 0
    assert normalized.long_session_day is None
    assert normalized.weeks_to_event == 4
    # Input is left untouched
    assert setup.weekly_availability_days == [6, 1, 1, 9, -1, 3]


def test_is_beginner() -> None:
    """Low risk or beginner wording marks a beginner."""
    assert is_beginner(DraftPlanSetup(risk_tolerance="low"))
    assert is_beginner(DraftPlanSetup(risk_tolerance="med", coach_guidance_text="Novice runner"))
    assert not is_beginner(DraftPlanSetup(risk_tolerance="med", coach_guidance_text="Experienced triathlete"))


def test_has_constraint_signal() -> None:
    """Injury/pain and travel wording are constraint signals."""
    assert has_constraint_signal(DraftPlanSetup(coach_guidance_text="Knee pain last month"))
    assert has_constraint_signal(DraftPlanSetup(coach_guidance_text="Travel for business Mar 3-8"))
    assert not has_constraint_signal(DraftPlanSetup(coach_guidance_text="Build aerobic base"))
    assert not has_constraint_signal(DraftPlanSetup())


def test_weekly_minutes_target_prefers_per_week_override() -> None:
    """Per-week targets win for weeks they cover."""
    setup = DraftPlanSetup(weekly_availability_minutes=300, weekly_minutes_by_week=[250, 320])

    assert weekly_minutes_target(setup, 0) == 250
    assert weekly_minutes_target(setup, 1) == 320
    assert weekly_minutes_target(setup, 2) == 300


def test_day_sort_key_follows_week_start() -> None:
    """Sunday sorts first for sunday weeks and last for monday weeks."""
    assert day_sort_key(0, WeekStart.SUNDAY) == 0
    assert day_sort_key(0, WeekStart.MONDAY) == 6
    assert day_sort_key(1, WeekStart.MONDAY) == 0
