"""Root conftest for all tests.

This file makes shared fixtures available across all test modules.
"""

import pytest

from coachkit.core.settings import get_settings
from coachkit.plan_builder.models import DraftPlan, DraftPlanSetup, DraftSession, DraftWeek
from coachkit.plan_builder.policy_registry import load_policy_registry


@pytest.fixture(autouse=True)
def reset_cached_configuration(monkeypatch: pytest.MonkeyPatch):
    """Give every test fresh settings and policy table, free of ambient env overrides."""
    for name in (
        "COACHKIT_LOG_JSON",
        "COACHKIT_POLICY_OVERRIDES_JSON",
        "COACHKIT_MAX_WEEK_VOLUME_INCREASE_PCT",
        "COACHKIT_MAX_WEEK_VOLUME_DECREASE_PCT",
        "COACHKIT_MAX_SESSION_DURATION_CHANGE_PCT",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    load_policy_registry.cache_clear()
    yield
    get_settings.cache_clear()
    load_policy_registry.cache_clear()


@pytest.fixture
def med_setup() -> DraftPlanSetup:
    """Balanced, medium-risk setup: 6 days, 300 min/week, 8 weeks, long day Saturday."""
    return DraftPlanSetup(
        week_start="monday",
        weeks_to_event=8,
        weekly_availability_days=[0, 1, 2, 3, 4, 6],
        weekly_availability_minutes=300,
        discipline_emphasis="balanced",
        risk_tolerance="med",
        max_intensity_days_per_week=2,
        max_doubles_per_week=0,
        long_session_day=6,
    )


@pytest.fixture
def beginner_setup() -> DraftPlanSetup:
    """Low-risk setup that triggers beginner guardrails."""
    return DraftPlanSetup(
        week_start="monday",
        weeks_to_event=6,
        weekly_availability_days=[1, 3, 5, 6],
        weekly_availability_minutes=400,
        discipline_emphasis="run",
        risk_tolerance="low",
        max_intensity_days_per_week=1,
        max_doubles_per_week=0,
        long_session_day=6,
        coach_guidance_text="Beginner athlete, first season.",
    )


def make_week(week_index: int, sessions: list[tuple[int, str, str, int]], locked: bool = False) -> DraftWeek:
    """Build a week from (day_of_week, discipline, type, duration_minutes) tuples."""
    return DraftWeek(
        week_index=week_index,
        locked=locked,
        sessions=[
            DraftSession(
                week_index=week_index,
                ordinal=ordinal,
                day_of_week=day,
                discipline=discipline,
                type=session_type,
                duration_minutes=minutes,
            )
            for ordinal, (day, discipline, session_type, minutes) in enumerate(sessions)
        ],
    )


@pytest.fixture
def simple_draft(med_setup: DraftPlanSetup) -> DraftPlan:
    """Two-week hand-built draft with one tempo session per week."""
    return DraftPlan(
        setup=med_setup,
        weeks=[
            make_week(
                0,
                [
                    (1, "run", "endurance", 40),
                    (2, "bike", "tempo", 60),
                    (4, "swim", "technique", 40),
                    (6, "bike", "endurance", 120),
                ],
            ),
            make_week(
                1,
                [
                    (1, "run", "endurance", 45),
                    (3, "run", "threshold", 50),
                    (4, "swim", "technique", 40),
                    (6, "run", "endurance", 100),
                ],
            ),
        ],
    )
