"""Deterministic constraint-based draft plan generator.

Builds a multi-week schedule from a setup with a rule-ordered constructive
heuristic (no search, no backtracking, no randomness). For each week:

1. Only available weekdays are candidates
2. Doubles go on at most max_doubles_per_week distinct days, two sessions max
3. Intensity sessions are capped, never on the long day or adjacent days
4. Beginner guardrails cap run duration and suppress bricks early on;
   trimmed run minutes move to other disciplines where the week has any
5. The long session sits on the configured long-session day
6. Bricks appear on odd weeks once past the beginner window
7. Sessions are ordered by day offset under the week-start convention

Durations come from a weighted split of the week's minute budget, clamped
per role, then humanised to 5/10-minute steps.

The generator is total: any structurally valid setup yields a draft.
Quality is assessed afterward by the constraint validator.
"""

from dataclasses import dataclass
from enum import StrEnum

from coachkit.plan_builder.duration_rounding import MAX_SESSION_MINUTES, clamp_int, duration_step, humanize_week_durations
from coachkit.plan_builder.enums import Discipline, DisciplineEmphasis, RiskTolerance, SessionType
from coachkit.plan_builder.models import DraftPlan, DraftPlanSetup, DraftSession, DraftWeek
from coachkit.plan_builder.observability import EngineStage, log_stage_event, timing
from coachkit.plan_builder.policy_registry import (
    PolicyProfile,
    apply_policy_profile_to_setup,
    resolve_policy_profile_for_setup,
)
from coachkit.plan_builder.setup import availability_total_minutes, day_sort_key, is_beginner, normalize_draft_setup

MIN_WEEK_MINUTES = 60

BRICK_NOTES = "Brick (add short run off bike)"

# (default, minimum) sessions per week by risk tolerance
_SESSIONS_BY_RISK: dict[RiskTolerance, tuple[int, int]] = {
    RiskTolerance.LOW: (5, 4),
    RiskTolerance.MED: (6, 5),
    RiskTolerance.HIGH: (8, 6),
}

# Week multiplier for the last two weeks before the event: (second-to-last, last)
_TAPER_BY_RISK: dict[RiskTolerance, tuple[float, float]] = {
    RiskTolerance.LOW: (0.85, 0.75),
    RiskTolerance.MED: (0.8, 0.7),
    RiskTolerance.HIGH: (0.75, 0.6),
}


class SlotRole(StrEnum):
    LONG = "long"
    BRICK = "brick"
    SWIM_TECHNIQUE = "swim_technique"
    INTENSITY = "intensity"
    FILL = "fill"


@dataclass(frozen=True)
class RoleShape:
    weight: float
    min_minutes: int
    max_minutes: int


_ROLE_SHAPES: dict[SlotRole, RoleShape] = {
    SlotRole.LONG: RoleShape(weight=2.2, min_minutes=60, max_minutes=180),
    SlotRole.BRICK: RoleShape(weight=1.3, min_minutes=40, max_minutes=120),
    SlotRole.SWIM_TECHNIQUE: RoleShape(weight=0.8, min_minutes=20, max_minutes=60),
    SlotRole.INTENSITY: RoleShape(weight=1.0, min_minutes=20, max_minutes=120),
    SlotRole.FILL: RoleShape(weight=1.0, min_minutes=20, max_minutes=120),
}


@dataclass(frozen=True)
class _PlannedSession:
    created: int
    day: int
    role: SlotRole
    discipline: str
    type: str
    notes: str | None


def sessions_per_week(setup: DraftPlanSetup, max_doubles: int) -> int:
    """Target session count for a week, bounded by the available slots."""
    slots_available = len(setup.weekly_availability_days) + max_doubles
    if slots_available == 0:
        return 0
    if setup.sessions_per_week_override is not None:
        return max(1, min(slots_available, setup.sessions_per_week_override))
    base, minimum = _SESSIONS_BY_RISK[setup.risk_tolerance]
    return max(1, min(slots_available, max(minimum, base)))


def taper_multiplier(setup: DraftPlanSetup, week_index: int) -> float:
    weeks = setup.weeks_to_event or 1
    remaining = weeks - 1 - week_index
    if remaining >= 2:
        return 1.0
    second_to_last, last = _TAPER_BY_RISK[setup.risk_tolerance]
    return second_to_last if remaining == 1 else last


def planned_week_minutes(setup: DraftPlanSetup, week_index: int) -> int:
    """Minutes the generator distributes across a week.

    Applies the taper to the availability budget, lets a per-week override
    replace it, then scales recovery weeks. Never below 60 minutes.
    """
    base = availability_total_minutes(setup)
    minutes = clamp_int(base * taper_multiplier(setup, week_index), MIN_WEEK_MINUTES, max(MIN_WEEK_MINUTES, base))

    by_week = setup.weekly_minutes_by_week
    if by_week is not None and 0 <= week_index < len(by_week):
        minutes = max(MIN_WEEK_MINUTES, by_week[week_index])

    every_n = setup.recovery_every_n_weeks or 0
    if every_n > 1 and (week_index + 1) % every_n == 0:
        multiplier = setup.recovery_week_multiplier if setup.recovery_week_multiplier is not None else 0.8
        minutes = clamp_int(minutes * multiplier, MIN_WEEK_MINUTES, max(MIN_WEEK_MINUTES, minutes))

    return minutes


def _includes_swim(setup: DraftPlanSetup) -> bool:
    return setup.discipline_emphasis in {DisciplineEmphasis.BALANCED, DisciplineEmphasis.SWIM}


def _long_day(setup: DraftPlanSetup) -> int | None:
    day = setup.long_session_day
    if day is not None and day in setup.weekly_availability_days:
        return day
    return None


def _week_slots(days: list[int], target: int, max_doubles: int, long_day: int | None) -> list[int]:
    """Pick the weekdays that host sessions this week, with doubles repeated.

    The long day is always kept. Doubles land on distinct days, non-long
    days first, earliest first.
    """
    if target <= 0 or not days:
        return []

    others = [d for d in days if d != long_day]
    if target < len(days):
        chosen = others[: target - 1] if long_day is not None else others[:target]
        if long_day is not None:
            chosen.append(long_day)
        return sorted(chosen)

    extra = min(target - len(days), max_doubles, len(days))
    double_days = (others + ([long_day] if long_day is not None else []))[:extra]
    return sorted(days + double_days)


def _intensity_discipline(setup: DraftPlanSetup, count: int) -> str:
    emphasis = setup.discipline_emphasis
    if emphasis == DisciplineEmphasis.RUN:
        return Discipline.RUN
    if emphasis == DisciplineEmphasis.BIKE:
        return Discipline.BIKE
    if emphasis == DisciplineEmphasis.SWIM:
        return Discipline.SWIM
    return Discipline.RUN if count % 2 == 0 else Discipline.BIKE


def _fill_discipline(setup: DraftPlanSetup, count: int) -> str:
    emphasis = setup.discipline_emphasis
    if emphasis == DisciplineEmphasis.RUN:
        return Discipline.RUN
    if emphasis == DisciplineEmphasis.BIKE:
        return Discipline.BIKE
    if emphasis == DisciplineEmphasis.SWIM:
        return Discipline.SWIM
    return (Discipline.RUN, Discipline.BIKE, Discipline.SWIM)[count % 3]


def _long_discipline(setup: DraftPlanSetup, week_index: int) -> str:
    if setup.discipline_emphasis == DisciplineEmphasis.RUN:
        return Discipline.RUN
    if setup.discipline_emphasis == DisciplineEmphasis.BIKE:
        return Discipline.BIKE
    return Discipline.BIKE if week_index % 2 == 0 else Discipline.RUN


def _days_apart(day: int, other: int) -> int:
    """Distance between two weekdays, wrapping Saturday to Sunday."""
    return min((day - other) % 7, (other - day) % 7)


def _plan_week_roles(
    setup: DraftPlanSetup,
    profile: PolicyProfile,
    week_index: int,
    slots: list[int],
    long_day: int | None,
) -> list[_PlannedSession]:
    free = list(range(len(slots)))
    planned: list[_PlannedSession] = []

    def take(slot_pos: int, role: SlotRole, discipline: str, session_type: str, notes: str | None) -> None:
        free.remove(slot_pos)
        planned.append(
            _PlannedSession(
                created=len(planned),
                day=slots[slot_pos],
                role=role,
                discipline=discipline,
                type=session_type,
                notes=notes,
            )
        )

    if long_day is not None:
        pos = slots.index(long_day)
        discipline = _long_discipline(setup, week_index)
        take(pos, SlotRole.LONG, discipline, SessionType.ENDURANCE, "Long ride" if discipline == Discipline.BIKE else "Long run")

    window = profile.beginner_guardrails.window_weeks
    if week_index % 2 == 1 and week_index >= window and free:
        take(free[-1], SlotRole.BRICK, Discipline.BIKE, SessionType.ENDURANCE, BRICK_NOTES)

    if _includes_swim(setup) and free:
        take(free[0], SlotRole.SWIM_TECHNIQUE, Discipline.SWIM, SessionType.TECHNIQUE, "Technique focus")

    intensity_type = SessionType.THRESHOLD if setup.risk_tolerance == RiskTolerance.HIGH else SessionType.TEMPO
    intensity_days: list[int] = []
    for pos in list(free):
        if len(intensity_days) >= setup.max_intensity_days_per_week:
            break
        day = slots[pos]
        if day == long_day or day in intensity_days:
            continue
        if any(_days_apart(day, other) <= 1 for other in intensity_days):
            continue
        take(pos, SlotRole.INTENSITY, _intensity_discipline(setup, len(intensity_days)), intensity_type, "Key session")
        intensity_days.append(day)

    fill_count = 0
    for pos in list(free):
        take(pos, SlotRole.FILL, _fill_discipline(setup, fill_count), SessionType.ENDURANCE, None)
        fill_count += 1

    return planned


def _apply_beginner_run_cap(
    ordered: list[_PlannedSession],
    durations: list[int],
    long_flags: list[bool],
    run_cap: int,
) -> list[int]:
    """Cap run durations and hand the trimmed minutes to non-run sessions.

    Minutes go to the shortest non-run session first, in its rounding step,
    up to its role maximum. Run-only weeks keep the shortfall.
    """
    capped = list(durations)
    trimmed = 0
    for i, p in enumerate(ordered):
        if p.discipline == Discipline.RUN and capped[i] > run_cap:
            trimmed += capped[i] - run_cap
            capped[i] = run_cap

    receivers = [i for i, p in enumerate(ordered) if p.discipline != Discipline.RUN]
    while trimmed > 0:
        open_slots = []
        for i in receivers:
            step = duration_step(capped[i], long_flags[i])
            limit = min(_ROLE_SHAPES[ordered[i].role].max_minutes, MAX_SESSION_MINUTES)
            if step <= trimmed and capped[i] + step <= limit:
                open_slots.append((capped[i], i, step))
        if not open_slots:
            break
        _, i, step = min(open_slots)
        capped[i] += step
        trimmed -= step

    return capped


def _build_week(
    setup: DraftPlanSetup,
    profile: PolicyProfile,
    week_index: int,
    slots: list[int],
    long_day: int | None,
    beginner: bool,
) -> DraftWeek:
    planned = _plan_week_roles(setup, profile, week_index, slots, long_day)
    if not planned:
        return DraftWeek(week_index=week_index)

    week_minutes = planned_week_minutes(setup, week_index)
    total_weight = sum(_ROLE_SHAPES[p.role].weight for p in planned)

    ordered = sorted(planned, key=lambda p: (day_sort_key(p.day, setup.week_start), p.created))
    raw = []
    for p in ordered:
        shape = _ROLE_SHAPES[p.role]
        raw.append(clamp_int(week_minutes * shape.weight / total_weight, shape.min_minutes, shape.max_minutes))

    long_flags = [p.day == long_day for p in ordered]
    durations = humanize_week_durations(raw, long_flags)

    if beginner and week_index < profile.beginner_guardrails.window_weeks:
        durations = _apply_beginner_run_cap(ordered, durations, long_flags, profile.beginner_guardrails.run_cap_minutes)

    sessions = []
    for ordinal, (p, minutes) in enumerate(zip(ordered, durations, strict=True)):
        sessions.append(
            DraftSession(
                week_index=week_index,
                ordinal=ordinal,
                day_of_week=p.day,
                discipline=p.discipline,
                type=p.type,
                duration_minutes=minutes,
                notes=p.notes,
            )
        )

    return DraftWeek(week_index=week_index, sessions=sessions)


def generate_draft_plan(setup: DraftPlanSetup) -> DraftPlan:
    """Generate a deterministic draft plan from a setup.

    Args:
        setup: Athlete/coach constraints

    Returns:
        DraftPlan whose setup is the normalised, policy-stamped input
    """
    with timing("engine.generate"):
        log_stage_event(EngineStage.GENERATE, "start")

        normalized = apply_policy_profile_to_setup(normalize_draft_setup(setup))
        profile = resolve_policy_profile_for_setup(normalized)

        beginner = is_beginner(normalized)
        long_day = _long_day(normalized)
        target = sessions_per_week(normalized, normalized.max_doubles_per_week)
        slots = _week_slots(normalized.weekly_availability_days, target, normalized.max_doubles_per_week, long_day)

        weeks = [
            _build_week(normalized, profile, week_index, slots, long_day, beginner)
            for week_index in range(normalized.weeks_to_event or 1)
        ]

        draft = DraftPlan(setup=normalized, weeks=weeks)

        log_stage_event(
            EngineStage.GENERATE,
            "success",
            meta={
                "profile_id": profile.id,
                "weeks": len(weeks),
                "sessions": sum(len(w.sessions) for w in weeks),
                "beginner": beginner,
            },
        )
        return draft
