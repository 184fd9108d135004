"""Constraint validator and quality gate for draft plans.

Checks any draft (generated or coach-edited) against its setup and the
resolved policy profile. Violations are returned as data in week order:
per-session checks first, then per-week checks.

Severity is policy-profile dependent:
- Off-day and beginner violations are always hard
- Doubles/intensity above the setup limit but within the profile hard cap
  are soft, above the hard cap hard
- Weekly minutes outside the applicable band but within the severe band
  are soft, outside the severe band hard
"""

import math

from coachkit.plan_builder.enums import Discipline, Severity, ViolationCode
from coachkit.plan_builder.models import DraftPlan, DraftPlanSetup, DraftSession, DraftWeek, QualityGateResult, Violation
from coachkit.plan_builder.observability import EngineStage, log_stage_event
from coachkit.plan_builder.policy_registry import PolicyProfile, resolve_policy_profile_for_setup
from coachkit.plan_builder.session_types import is_brick_session, is_intensity_type
from coachkit.plan_builder.setup import has_constraint_signal, is_beginner, weekly_minutes_target

HARD_VIOLATION_PENALTY = 20
SOFT_WARNING_PENALTY = 5


def _minute_band(
    profile: PolicyProfile,
    setup: DraftPlanSetup,
    week_index: int,
    beginner: bool,
) -> tuple[float, float]:
    bands = profile.week_minute_bands
    if has_constraint_signal(setup):
        return bands.constrained_min_ratio, bands.constrained_max_ratio
    if beginner and week_index < profile.beginner_guardrails.window_weeks:
        return bands.beginner_early_min_ratio, bands.beginner_early_max_ratio
    return bands.base_min_ratio, bands.base_max_ratio


def _limit_severity(count: int, setup_limit: int, hard_cap: int) -> Severity | None:
    allowed = min(setup_limit, hard_cap)
    if count <= allowed:
        return None
    return Severity.HARD if count > hard_cap else Severity.SOFT


def _session_violations(
    week: DraftWeek,
    session: DraftSession,
    allowed_days: set[int],
    profile: PolicyProfile,
    beginner: bool,
) -> list[Violation]:
    violations = []
    week_label = week.week_index + 1

    if session.day_of_week not in allowed_days:
        violations.append(
            Violation(
                code=ViolationCode.OFF_DAY_SESSION,
                severity=Severity.HARD,
                message=f"Week {week_label}: session scheduled on unavailable day ({session.day_of_week}).",
                week_index=week.week_index,
                session_id=session.session_id,
            )
        )

    guardrails = profile.beginner_guardrails
    if beginner and week.week_index < guardrails.window_weeks:
        if session.discipline.lower() == Discipline.RUN and session.duration_minutes > guardrails.run_cap_minutes:
            violations.append(
                Violation(
                    code=ViolationCode.BEGINNER_RUN_CAP_EXCEEDED,
                    severity=Severity.HARD,
                    message=(
                        f"Week {week_label}: beginner run exceeds cap ({guardrails.run_cap_minutes} min) "
                        f"on day {session.day_of_week}."
                    ),
                    week_index=week.week_index,
                    session_id=session.session_id,
                )
            )
        if is_brick_session(session.type, session.notes):
            violations.append(
                Violation(
                    code=ViolationCode.BEGINNER_BRICK_TOO_EARLY,
                    severity=Severity.HARD,
                    message=f"Week {week_label}: beginner brick session appears too early.",
                    week_index=week.week_index,
                    session_id=session.session_id,
                )
            )

    return violations


def _week_violations(
    setup: DraftPlanSetup,
    week: DraftWeek,
    profile: PolicyProfile,
    beginner: bool,
) -> list[Violation]:
    violations = []
    week_label = week.week_index + 1

    per_day: dict[int, int] = {}
    intensity_days: set[int] = set()
    for session in week.sessions:
        per_day[session.day_of_week] = per_day.get(session.day_of_week, 0) + 1
        if is_intensity_type(session.type):
            intensity_days.add(session.day_of_week)

    doubles_used = sum(1 for count in per_day.values() if count > 1)
    severity = _limit_severity(doubles_used, setup.max_doubles_per_week, profile.max_doubles_hard_cap)
    if severity is not None:
        violations.append(
            Violation(
                code=ViolationCode.MAX_DOUBLES_EXCEEDED,
                severity=severity,
                message=(
                    f"Week {week_label}: doubles used {doubles_used}, max allowed "
                    f"{min(setup.max_doubles_per_week, profile.max_doubles_hard_cap)}."
                ),
                week_index=week.week_index,
            )
        )

    severity = _limit_severity(len(intensity_days), setup.max_intensity_days_per_week, profile.max_intensity_days_hard_cap)
    if severity is not None:
        violations.append(
            Violation(
                code=ViolationCode.MAX_INTENSITY_DAYS_EXCEEDED,
                severity=severity,
                message=(
                    f"Week {week_label}: intensity days {len(intensity_days)}, max allowed "
                    f"{min(setup.max_intensity_days_per_week, profile.max_intensity_days_hard_cap)}."
                ),
                week_index=week.week_index,
            )
        )

    expected = weekly_minutes_target(setup, week.week_index)
    if expected > 0:
        total = week.total_minutes
        min_ratio, max_ratio = _minute_band(profile, setup, week.week_index, beginner)
        min_bound = math.floor(expected * min_ratio)
        max_bound = math.ceil(expected * max_ratio)
        if total < min_bound or total > max_bound:
            bands = profile.week_minute_bands
            severe_min = math.floor(expected * bands.severe_min_ratio)
            severe_max = math.ceil(expected * bands.severe_max_ratio)
            severity = Severity.HARD if total < severe_min or total > severe_max else Severity.SOFT
            violations.append(
                Violation(
                    code=ViolationCode.WEEKLY_MINUTES_OUT_OF_BOUNDS,
                    severity=severity,
                    message=(
                        f"Week {week_label}: planned {total} min outside expected band "
                        f"{min_bound}-{max_bound} min (target {expected})."
                    ),
                    week_index=week.week_index,
                )
            )

    return violations


def validate_draft_plan(setup: DraftPlanSetup, draft: DraftPlan) -> list[Violation]:
    """Validate a draft against its setup and resolved policy profile.

    Args:
        setup: Setup the draft must satisfy
        draft: Draft to check

    Returns:
        Violations in week order; empty when the draft is clean
    """
    profile = resolve_policy_profile_for_setup(setup)
    allowed_days = set(setup.weekly_availability_days)
    beginner = is_beginner(setup)

    violations: list[Violation] = []
    for week in draft.weeks:
        for session in week.sessions:
            violations.extend(_session_violations(week, session, allowed_days, profile, beginner))
        violations.extend(_week_violations(setup, week, profile, beginner))

    return violations


def quality_score(hard_count: int, soft_count: int) -> int:
    return max(0, 100 - HARD_VIOLATION_PENALTY * hard_count - SOFT_WARNING_PENALTY * soft_count)


def evaluate_quality_gate(setup: DraftPlanSetup, draft: DraftPlan) -> QualityGateResult:
    """Split a draft's violations by severity and score it.

    The result names the profile used so it is reproducible for the same setup.
    """
    profile = resolve_policy_profile_for_setup(setup)
    violations = validate_draft_plan(setup, draft)

    hard = [v for v in violations if v.severity == Severity.HARD]
    soft = [v for v in violations if v.severity == Severity.SOFT]
    score = quality_score(len(hard), len(soft))

    log_stage_event(
        EngineStage.VALIDATE,
        "success",
        meta={
            "profile_id": profile.id,
            "hard_violations": len(hard),
            "soft_warnings": len(soft),
            "score": score,
        },
    )

    return QualityGateResult(
        profile_id=profile.id,
        profile_version=profile.version,
        hard_violations=hard,
        soft_warnings=soft,
        score=score,
    )
