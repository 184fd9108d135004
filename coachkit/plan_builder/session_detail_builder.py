"""Deterministic session detail builder.

Turns a scheduled session (discipline, type, minutes) into a warmup / main /
cooldown breakdown with targets, variants and coach-facing rationale. The
same inputs always produce the same detail: step wording is picked from
fixed tables by a seed derived from the session's position in the plan.

Fatigue downgrades the session before it is built:
- "cooked": tempo and threshold become recovery
- "fatigued": threshold becomes tempo
"""

from pydantic import Field

from coachkit.plan_builder.duration_rounding import clamp_int, round_half_up
from coachkit.plan_builder.enums import Discipline, SessionType
from coachkit.plan_builder.models import CamelModel, DraftSession
from coachkit.plan_builder.observability import log_event
from coachkit.plan_builder.session_detail import (
    MAX_TOTAL_MINUTES,
    BlockType,
    SessionBlock,
    SessionDetail,
    SessionExplainability,
    SessionIntensity,
    SessionTargets,
    SessionVariant,
    normalize_session_detail_durations_to_total,
)

MIN_VARIANT_MINUTES = 20

WARMUP_SHARE = 0.15
COOLDOWN_SHARE = 0.1

_EASY = SessionIntensity(zone="Z1", rpe=2, notes="Easy")

_INTENSITY_BY_TYPE: dict[str, SessionIntensity] = {
    SessionType.RECOVERY: SessionIntensity(zone="Z1", rpe=2, notes="Very easy / absorb load"),
    SessionType.TECHNIQUE: SessionIntensity(zone="Z2", rpe=4, notes="Technical quality"),
    SessionType.ENDURANCE: SessionIntensity(zone="Z2", rpe=4, notes="Steady aerobic"),
    SessionType.TEMPO: SessionIntensity(zone="Z3", rpe=6, notes="Controlled hard"),
    SessionType.THRESHOLD: SessionIntensity(zone="Z4", rpe=7, notes="Sustainably hard"),
    SessionType.STRENGTH: SessionIntensity(zone="Z2", rpe=5, notes="Controlled strength work"),
}

_STIMULUS_BY_TYPE: dict[str, str] = {
    SessionType.THRESHOLD: "raise sustainable race-adjacent output",
    SessionType.TEMPO: "build durable sub-threshold speed",
    SessionType.TECHNIQUE: "improve movement economy and technical quality",
    SessionType.RECOVERY: "promote adaptation while reducing fatigue",
    SessionType.STRENGTH: "build resilient movement patterns and force control",
}
_DEFAULT_STIMULUS = "build aerobic durability with controlled stress"

_WARMUP_STEPS: dict[str, list[str]] = {
    Discipline.SWIM: [
        "200m easy + 4 x 50m drill/swim by 25m",
        "300m relaxed swim with every 4th length backstroke",
        "8 min easy swim + 6 x 25m form drill",
    ],
    Discipline.BIKE: [
        "8-12 min easy spin, include 3 x 30s high cadence",
        "10 min progressive spin (Z1->Z2)",
        "5 min easy + 3 x 1 min spin-up / 1 min easy",
    ],
    Discipline.RUN: [
        "8-10 min easy jog + mobility + 4 strides",
        "10 min easy run + drills (A-skips/high knees)",
        "12 min easy jog with cadence focus",
    ],
    Discipline.STRENGTH: [
        "5-8 min mobility flow + activation bands",
        "10 min dynamic warm-up: hips, ankles, t-spine",
        "5 min easy cardio + movement prep",
    ],
}

_COOLDOWN_STEPS: dict[str, list[str]] = {
    Discipline.SWIM: [
        "Easy 100-200m choice stroke + 2 min mobility",
        "5-8 min easy swim, long strokes",
        "4 min easy swim + shoulder mobility",
    ],
    Discipline.BIKE: [
        "Easy spin, cadence down each minute; finish with hip flexor stretch",
        "5-10 min very easy spin + light mobility",
        "Spin easy and keep breathing controlled to baseline",
    ],
    Discipline.RUN: [
        "Easy jog/walk to finish + calf/hamstring mobility",
        "5-10 min easy jog, then leg swings and calf work",
        "Walk 3 min then light posterior-chain stretch",
    ],
    Discipline.STRENGTH: [
        "Gentle mobility and breathing reset",
        "Light stretch: calves, hip flexors, glutes",
        "Easy cooldown circuit + controlled breathing",
    ],
}

DRILL_STEPS = "Dedicated drill set: catch-up, fingertip drag, and 6-1-6 balance drill. Keep precision high."

EXPLAINABILITY_WHY_TODAY = (
    "It is placed to build adaptation now while protecting tomorrow's training quality and recovery budget."
)
EXPLAINABILITY_UNLOCKS_NEXT = (
    "Completing this well supports progression into the next quality workout and long-session durability."
)
EXPLAINABILITY_IF_MISSED = (
    "Skip catch-up intensity. Resume the plan at the next session and protect consistency for the week."
)
EXPLAINABILITY_IF_COOKED = (
    "Drop one intensity level, reduce reps, or switch to steady aerobic work while keeping technique clean."
)

SESSION_CUES = ["Smooth form under fatigue", "Fuel/hydrate early for sessions > 60 min", "Stop if sharp pain"]
SAFETY_NOTES = "Avoid maximal efforts if you feel pain, dizziness, or unusual fatigue."


class SessionDetailContext(CamelModel):
    """Optional circumstances that shape a built session detail."""

    available_time_minutes: int | None = None
    equipment: str | None = None
    environment_tags: list[str] = Field(default_factory=list)
    fatigue_state: str | None = Field(default=None, description="fresh, normal, fatigued or cooked")
    week_index: int | None = None
    day_of_week: int | None = None
    session_ordinal: int | None = None


def effective_session_type(session_type: str, fatigue_state: str | None) -> str:
    """Downgrade a session type for the athlete's fatigue state."""
    requested = session_type.strip().lower()
    fatigue = (fatigue_state or "").strip().lower()
    if fatigue == "cooked" and requested in {SessionType.TEMPO, SessionType.THRESHOLD}:
        return SessionType.RECOVERY
    if fatigue == "fatigued" and requested == SessionType.THRESHOLD:
        return SessionType.TEMPO
    return requested


def split_duration(total_minutes: int) -> tuple[int, int, int]:
    """Split minutes into (warmup, main, cooldown) shares that sum to the total."""
    total = max(0, min(MAX_TOTAL_MINUTES, total_minutes))
    if total == 0:
        return 0, 0, 0
    warmup = clamp_int(total * WARMUP_SHARE, 0, total)
    cooldown = clamp_int(total * COOLDOWN_SHARE, 0, total - warmup)
    return warmup, total - warmup - cooldown, cooldown


def _title(word: str) -> str:
    return word[:1].upper() + word[1:]


def _main_steps(discipline: str, session_type: str, main_minutes: int, pick) -> str:
    work = max(10, main_minutes)

    if discipline == Discipline.SWIM and session_type == SessionType.TECHNIQUE:
        reps = max(4, min(12, work // 5))
        pull_meters = max(100, round_half_up(reps * 50 / 4 / 25) * 25)
        return pick(
            [
                f"{reps} x 50m as 25m drill + 25m swim, 20s rest. Keep stroke length and relaxed exhale.",
                f"4 x {pull_meters}m pull buoy, 30s rest, focus on body position.",
                "3 rounds: 200m steady + 4 x 25m build. Rest 30s between rounds.",
            ]
        )

    if discipline == Discipline.BIKE and session_type == SessionType.ENDURANCE:
        intervals = max(2, min(5, round_half_up(work / 15)))
        on = max(8, round_half_up(work / intervals) - 2)
        return pick(
            [
                f"{intervals} x {on} min steady Z2, 2 min easy between. Hold smooth cadence.",
                f"{max(20, work - 10)} min continuous aerobic with cadence changes every 5 min.",
                f"{max(3, intervals)} x {max(6, on - 2)} min seated aerobic climbing effort, 2 min easy spin.",
            ]
        )

    if discipline == Discipline.BIKE and session_type in {SessionType.TEMPO, SessionType.THRESHOLD}:
        threshold = session_type == SessionType.THRESHOLD
        on = 8 if threshold else 10
        reps = max(2, min(5, work // (on + 4)))
        rest = 4 if threshold else 3
        label = "Z4 / RPE 7" if threshold else "Z3 / RPE 6"
        return pick(
            [
                f"{reps} x {on} min @ {label}, {rest} min easy between. Keep power/effort even.",
                f"{max(2, reps - 1)} x {on + 2} min controlled hard, {rest} min easy.",
                f"Pyramid: 6-8-10-{max(8, on)} min at {label}, 3 min easy between steps.",
            ]
        )

    if discipline == Discipline.RUN and session_type == SessionType.ENDURANCE:
        return pick(
            [
                f"{max(25, work - 5)} min conversational run. Last 5 min can progress slightly if legs are fresh.",
                f"{max(20, work - 10)} min easy run + 6 x 20s strides (walk back).",
                f"{max(3, round_half_up(work / 12))} x 8 min steady / 2 min easy jog.",
            ]
        )

    if discipline == Discipline.RUN and session_type in {SessionType.TEMPO, SessionType.THRESHOLD}:
        threshold = session_type == SessionType.THRESHOLD
        on = 6 if threshold else 8
        reps = max(3, min(7, work // (on + 3)))
        effort = "10k effort (RPE 7)" if threshold else "half-marathon effort (RPE 6)"
        return pick(
            [
                f"{reps} x {on} min @ {effort}, 2-3 min easy jog between.",
                f"{max(12, work - 12)} min sustained tempo after building for 8 min.",
                f"Ladder: 4-6-8-6-4 min @ {effort}, equal jog recoveries.",
            ]
        )

    if discipline == Discipline.STRENGTH or session_type == SessionType.STRENGTH:
        rounds = max(2, min(5, round_half_up(work / 10)))
        return pick(
            [
                f"{rounds} rounds: split squat 8/leg, single-leg RDL 8/leg, plank 45s, calf raise 12/leg.",
                f"{rounds} rounds: goblet squat 10, step-up 8/leg, dead bug 10/side, side plank 30s/side.",
                f"{rounds} rounds: hinge pattern + pull + anti-rotation core. "
                "Keep load controlled; stop with 2 reps in reserve.",
            ]
        )

    if session_type == SessionType.RECOVERY:
        return pick(
            [
                f"{max(15, work - 5)} min very easy aerobic work. Keep breathing nasal/relaxed.",
                f"Cadence and form reset: {max(3, round_half_up(work / 8))} x 4 min smooth + 2 min easy.",
                f"{max(20, work - 10)} min easy movement with no hard surges.",
            ]
        )

    return f"{_title(session_type) or 'Session'} work at steady effort. Keep form smooth."


def _variants(
    duration_minutes: int,
    equipment: str,
    environment: list[str],
    fatigue_state: str,
) -> list[SessionVariant]:
    standard = max(MIN_VARIANT_MINUTES, duration_minutes)
    variants = [
        SessionVariant(
            label="short-on-time",
            when_to_use="Use when schedule is compressed but you still want the key stimulus.",
            duration_minutes=max(MIN_VARIANT_MINUTES, min(standard - 10, 45)),
            adjustments=["Keep warmup and cooldown", "Trim main set volume first", "Maintain quality not quantity"],
        ),
        SessionVariant(
            label="standard",
            when_to_use="Default execution for today.",
            duration_minutes=standard,
            adjustments=["Execute as written", "Keep effort controlled", "Stop early if pain escalates"],
        ),
        SessionVariant(
            label="longer-window",
            when_to_use="Use when you have extra time and feel fresh.",
            duration_minutes=max(standard + 15, min(standard + 25, 120)),
            adjustments=["Add easy aerobic volume after core set", "Do not add extra high-intensity reps"],
        ),
    ]

    if "trainer" in equipment:
        variants.append(
            SessionVariant(
                label="trainer",
                when_to_use="Indoor setup or controlled pacing conditions.",
                duration_minutes=standard,
                adjustments=["Use cadence targets", "Prioritize consistent power/effort", "Increase cooling and hydration"],
            )
        )
    elif "road" in equipment:
        variants.append(
            SessionVariant(
                label="road",
                when_to_use="Outdoor route with safe conditions.",
                duration_minutes=standard,
                adjustments=[
                    "Choose terrain that matches session intent",
                    "Keep surges controlled",
                    "Fuel and hydrate early",
                ],
            )
        )

    if "heat" in environment:
        variants.append(
            SessionVariant(
                label="heat-adjusted",
                when_to_use="Hot or humid conditions.",
                duration_minutes=max(MIN_VARIANT_MINUTES, standard - 10),
                adjustments=[
                    "Reduce intensity by one zone/RPE point",
                    "Extend recoveries",
                    "Prioritize hydration and cooling",
                ],
            )
        )
    if "hills" in environment:
        variants.append(
            SessionVariant(
                label="hills-adjusted",
                when_to_use="Hilly terrain affecting effort stability.",
                duration_minutes=standard,
                adjustments=[
                    "Use effort targets over pace",
                    "Keep uphill work sub-threshold unless prescribed",
                    "Descend easy to reset",
                ],
            )
        )
    if fatigue_state in {"fatigued", "cooked"}:
        variants.append(
            SessionVariant(
                label="fatigue-adjusted",
                when_to_use="Elevated fatigue, poor sleep, or heavy legs.",
                duration_minutes=max(MIN_VARIANT_MINUTES, standard - 15),
                adjustments=[
                    "Convert hard reps to aerobic",
                    "Cut total reps by 20-40%",
                    "Finish feeling better than start",
                ],
            )
        )

    return variants


def build_session_detail(
    discipline: str,
    session_type: str,
    duration_minutes: int,
    context: SessionDetailContext | None = None,
) -> SessionDetail:
    """Build a structured session detail for one scheduled session.

    Block durations follow a 15% warmup / 10% cooldown split, then go through
    the same 5-minute normalisation used by reflow, so they sum to the
    session's minutes.

    Args:
        discipline: Session discipline (swim, bike, run, strength, ...)
        session_type: Session type (endurance, tempo, threshold, ...)
        duration_minutes: Scheduled minutes (clamped to 0..10000)
        context: Optional fatigue, time, equipment and position hints

    Returns:
        SessionDetail that satisfies the structure rules
    """
    context = context or SessionDetailContext()
    discipline = discipline.strip().lower()
    fatigue = (context.fatigue_state or "").strip().lower()
    session_type = effective_session_type(session_type, fatigue)

    total = max(0, min(MAX_TOTAL_MINUTES, duration_minutes))
    if context.available_time_minutes is not None and context.available_time_minutes > 0:
        total = max(MIN_VARIANT_MINUTES, min(total, context.available_time_minutes))

    display_discipline = discipline or "workout"
    stimulus = _STIMULUS_BY_TYPE.get(session_type, _DEFAULT_STIMULUS)
    intensity = _INTENSITY_BY_TYPE.get(session_type, _INTENSITY_BY_TYPE[SessionType.ENDURANCE])

    seed = abs(
        ((context.week_index or 0) + 1) * 31
        + ((context.day_of_week or 0) + 1) * 17
        + ((context.session_ordinal or 0) + 1) * 11
        + total
    )

    def pick(options: list[str]) -> str:
        return options[seed % len(options)]

    warmup, main, cooldown = split_duration(total)
    warmup_steps = _WARMUP_STEPS.get(discipline)
    cooldown_steps = _COOLDOWN_STEPS.get(discipline)
    main_steps = _main_steps(discipline, session_type, main, pick)
    primary_block = BlockType.STRENGTH if discipline == Discipline.STRENGTH else BlockType.MAIN

    structure: list[SessionBlock] = []
    if warmup > 0:
        structure.append(
            SessionBlock(
                block_type=BlockType.WARMUP,
                duration_minutes=warmup,
                intensity=_EASY,
                steps=pick(warmup_steps) if warmup_steps else f"Easy {display_discipline} + dynamic warm-up.",
            )
        )

    if discipline == Discipline.SWIM and session_type == SessionType.TECHNIQUE and main >= 20:
        drill = clamp_int(main * 0.3, 8, max(8, main - 10))
        structure.append(
            SessionBlock(
                block_type=BlockType.DRILL,
                duration_minutes=drill,
                intensity=SessionIntensity(zone="Z2", rpe=4, notes="Form first"),
                steps=DRILL_STEPS,
            )
        )
        structure.append(
            SessionBlock(
                block_type=BlockType.MAIN,
                duration_minutes=max(10, main - drill),
                intensity=intensity,
                steps=main_steps,
            )
        )
    elif main > 0:
        structure.append(SessionBlock(block_type=primary_block, duration_minutes=main, intensity=intensity, steps=main_steps))

    if cooldown > 0:
        structure.append(
            SessionBlock(
                block_type=BlockType.COOLDOWN,
                duration_minutes=cooldown,
                intensity=_EASY,
                steps=(
                    pick(cooldown_steps)
                    if cooldown_steps
                    else f"Easy {display_discipline} to finish, then light stretching."
                ),
            )
        )

    if not any(b.block_type in {BlockType.MAIN, BlockType.STRENGTH} for b in structure):
        structure = [SessionBlock(block_type=primary_block, intensity=intensity, steps=main_steps)]

    hard = session_type in {SessionType.TEMPO, SessionType.THRESHOLD}
    detail = SessionDetail(
        objective=f"{_title(session_type) or 'Session'} {display_discipline} session",
        purpose=f"Primary purpose: {stimulus}.",
        structure=structure,
        targets=SessionTargets(
            primary_metric="RPE",
            notes=(
                "Hold effort at prescribed RPE/zone with repeatable pacing; stop if form or control drops."
                if hard
                else "Stay controlled; keep quality high and adjust down if fatigue, pain, or heat rises."
            ),
        ),
        cues=list(SESSION_CUES),
        safety_notes=SAFETY_NOTES,
        explainability=SessionExplainability(
            why_this=f"This session is designed to {stimulus}.",
            why_today=EXPLAINABILITY_WHY_TODAY,
            unlocks_next=EXPLAINABILITY_UNLOCKS_NEXT,
            if_missed=EXPLAINABILITY_IF_MISSED,
            if_cooked=EXPLAINABILITY_IF_COOKED,
        ),
        variants=_variants(
            total,
            (context.equipment or "").lower(),
            [tag.lower() for tag in context.environment_tags],
            fatigue,
        ),
    )

    log_event("session_detail_built", discipline=discipline, session_type=session_type, minutes=total)
    return normalize_session_detail_durations_to_total(detail, total)


def build_detail_for_session(session: DraftSession, context: SessionDetailContext | None = None) -> SessionDetail:
    """Build the detail of a draft session, seeded by its place in the plan."""
    context = (context or SessionDetailContext()).model_copy(
        update={
            "week_index": session.week_index,
            "day_of_week": session.day_of_week,
            "session_ordinal": session.ordinal,
        }
    )
    return build_session_detail(session.discipline, session.type, session.duration_minutes, context)
