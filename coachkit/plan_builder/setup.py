"""Setup parsing and normalisation.

Everything downstream (generator, validator, safety engine) reads a setup
through these helpers so that derived values such as the plan length and
the weekly minutes budget are computed one way only.
"""

import math
import re
from typing import Any

from pydantic import ValidationError

from coachkit.plan_builder.enums import RiskTolerance, WeekStart
from coachkit.plan_builder.errors import InvalidDraftSetupError
from coachkit.plan_builder.models import DraftPlanSetup

MIN_WEEKS = 1
MAX_WEEKS = 52

_BEGINNER_PATTERN = re.compile(r"\bbeginner\b|\bnovice\b|\bcouch\b", re.IGNORECASE)
_INJURY_PATTERN = re.compile(
    r"\binjury\b|\bpain\b|\bsplint\b|\bachilles\b|\bknee\b|\bcalf\b|\bhamstring\b",
    re.IGNORECASE,
)
_TRAVEL_PATTERN = re.compile(r"\btravel\b|\btravell(?:ing)?\b|\bbusiness trip\b|\baway\b", re.IGNORECASE)


def parse_draft_setup(payload: dict[str, Any]) -> DraftPlanSetup:
    """Parse a JSON-shaped setup payload.

    Raises:
        InvalidDraftSetupError: If the payload is not a valid setup
    """
    if not isinstance(payload, dict):
        raise InvalidDraftSetupError(f"Setup payload must be an object, got {type(payload).__name__}")
    try:
        return DraftPlanSetup.model_validate(payload)
    except ValidationError as e:
        raise InvalidDraftSetupError(f"Invalid draft setup: {e}") from e


def stable_day_list(days: list[int]) -> list[int]:
    """Unique weekdays within 0..6, ascending."""
    return sorted({d for d in days if 0 <= d <= 6})


def resolve_weeks_to_event(setup: DraftPlanSetup) -> int:
    """Resolve the plan length in weeks.

    Precedence: coach override, then derived from start and event dates,
    then the explicit value, then 1. Always clamped to 1..52.
    """
    if setup.weeks_to_event_override is not None:
        weeks = setup.weeks_to_event_override
    elif setup.start_date is not None and setup.event_date is not None:
        span_days = (setup.event_date - setup.start_date).days + 1
        weeks = max(1, math.ceil(span_days / 7))
    elif setup.weeks_to_event is not None:
        weeks = setup.weeks_to_event
    else:
        weeks = 1
    return max(MIN_WEEKS, min(MAX_WEEKS, weeks))


def normalize_draft_setup(setup: DraftPlanSetup) -> DraftPlanSetup:
    """Return a setup with stable days, clamped limits and a resolved plan length."""
    long_day = setup.long_session_day
    if long_day is not None and not 0 <= long_day <= 6:
        long_day = None

    return setup.model_copy(
        update={
            "week_start": WeekStart.SUNDAY if setup.week_start == WeekStart.SUNDAY else WeekStart.MONDAY,
            "weeks_to_event": resolve_weeks_to_event(setup),
            "weekly_availability_days": stable_day_list(setup.weekly_availability_days),
            "max_intensity_days_per_week": max(0, min(3, setup.max_intensity_days_per_week)),
            "max_doubles_per_week": max(0, min(3, setup.max_doubles_per_week)),
            "long_session_day": long_day,
        }
    )


def is_beginner(setup: DraftPlanSetup) -> bool:
    if setup.risk_tolerance == RiskTolerance.LOW:
        return True
    return bool(_BEGINNER_PATTERN.search(setup.coach_guidance_text or ""))


def has_constraint_signal(setup: DraftPlanSetup) -> bool:
    """Whether coach guidance mentions injury/pain or travel constraints."""
    guidance = setup.coach_guidance_text or ""
    return bool(_INJURY_PATTERN.search(guidance) or _TRAVEL_PATTERN.search(guidance))


def availability_total_minutes(setup: DraftPlanSetup) -> int:
    availability = setup.weekly_availability_minutes
    if isinstance(availability, int):
        return max(0, availability)
    return sum(max(0, minutes) for minutes in availability.values())


def weekly_minutes_target(setup: DraftPlanSetup, week_index: int) -> int:
    """Weekly minutes budget the validator measures a week against.

    A per-week override wins over the overall availability budget.
    """
    by_week = setup.weekly_minutes_by_week
    if by_week is not None and 0 <= week_index < len(by_week):
        return max(0, by_week[week_index])
    return availability_total_minutes(setup)


def day_sort_key(day_of_week: int, week_start: WeekStart) -> int:
    """Offset of a weekday from the start of the week under a convention."""
    d = day_of_week % 7
    if week_start == WeekStart.SUNDAY:
        return d
    return (d + 6) % 7
