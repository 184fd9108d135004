"""Hard-safety engine for automated plan proposals.

A last-line safety net applied to automated proposals in addition to the
quality gate. Any broken rule sets ok=False and appends a human-readable
reason:

- REMOVE_SESSION is never allowed
- ADJUST_WEEK_VOLUME must stay within the configured ceiling and floor
- Under a protective trigger (SORENESS, TOO_HARD, MISSED_KEY) no swap or
  type patch may escalate a session's intensity category
- Ops must target existing sessions and, when a reference date is given,
  must not touch past weeks
- Duration patches must stay within the per-session change cap and 20-240 min
"""

import math
from datetime import date, timedelta
from typing import assert_never

from pydantic import Field

from coachkit.adaptation.diff import (
    AddNoteOp,
    AdjustWeekVolumeOp,
    DiffOp,
    RemoveSessionOp,
    SessionSnapshot,
    SwapSessionTypeOp,
    UpdateSessionOp,
)
from coachkit.core.settings import get_settings
from coachkit.plan_builder.duration_rounding import MAX_SESSION_MINUTES, MIN_SESSION_MINUTES, round_half_up
from coachkit.plan_builder.enums import SessionType, WeekStart
from coachkit.plan_builder.models import CamelModel, DraftPlanSetup
from coachkit.plan_builder.observability import EngineStage, log_stage_event
from coachkit.plan_builder.session_types import is_escalation

PROTECTIVE_TRIGGER_TYPES = frozenset({"SORENESS", "TOO_HARD", "MISSED_KEY"})

REMOVE_BLOCKED_REASON = "Removing sessions is not permitted via automated proposals."


class WeekVolumeAdjustment(CamelModel):
    week_index: int
    pct_delta: float


class ProposalMetrics(CamelModel):
    total_duration_delta_minutes: int = 0
    update_count: int = 0
    swap_count: int = 0
    week_volume_adjustments: list[WeekVolumeAdjustment] = Field(default_factory=list)
    remove_count: int = 0
    note_count: int = 0


class HardSafetyReview(CamelModel):
    ok: bool
    current_week_index: int
    reasons: list[str] = Field(default_factory=list)
    metrics: ProposalMetrics


def is_protective(trigger_types: list[str]) -> bool:
    return any(t in PROTECTIVE_TRIGGER_TYPES for t in trigger_types)


def _start_of_week(day: date, week_start: WeekStart) -> date:
    start_weekday = 6 if week_start == WeekStart.SUNDAY else 0
    return day - timedelta(days=(day.weekday() - start_weekday) % 7)


def current_week_index(setup: DraftPlanSetup, as_of: date | None = None) -> int:
    """Index of the plan week containing as_of; 0 without a reference date or start date."""
    if as_of is None or setup.start_date is None:
        return 0
    today = _start_of_week(as_of, setup.week_start)
    start = _start_of_week(setup.start_date, setup.week_start)
    return max(0, (today - start).days // 7)


def format_pct(pct_delta: float) -> str:
    """Signed whole percentage, e.g. 0.1 -> "+10%", -0.15 -> "-15%"."""
    rounded = round_half_up(pct_delta * 100)
    return f"+{rounded}%" if pct_delta >= 0 else f"{rounded}%"


def evaluate_proposal_hard_safety(
    setup: DraftPlanSetup,
    sessions: list[SessionSnapshot],
    diff: list[DiffOp],
    trigger_types: list[str],
    as_of: date | None = None,
) -> HardSafetyReview:
    """Review an automated proposal against the hard safety rules.

    Args:
        setup: Setup of the draft the proposal targets
        sessions: Current sessions of the draft
        diff: Proposed operations
        trigger_types: Trigger types that motivated the proposal
        as_of: Reference date for past-week checks; skipped when None

    Returns:
        HardSafetyReview with ok flag, reasons and change metrics
    """
    settings = get_settings()
    ceiling = settings.max_week_volume_increase_pct
    floor = settings.max_week_volume_decrease_pct
    session_cap = settings.max_session_duration_change_pct

    by_id = {s.id: s for s in sessions}
    week_now = current_week_index(setup, as_of)
    protective = is_protective(trigger_types)
    reasons: list[str] = []

    total_delta = 0
    update_count = 0
    swap_count = 0
    remove_count = 0
    note_count = 0
    adjustments: list[WeekVolumeAdjustment] = []

    for op in diff:
        if isinstance(op, RemoveSessionOp):
            remove_count += 1
            reasons.append(REMOVE_BLOCKED_REASON)
        elif isinstance(op, AdjustWeekVolumeOp):
            adjustments.append(WeekVolumeAdjustment(week_index=op.week_index, pct_delta=op.pct_delta))
            week_label = op.week_index + 1
            if op.week_index < week_now:
                reasons.append(f"Week {week_label} is in the past and cannot be auto-adjusted.")
            if op.pct_delta > ceiling:
                reasons.append(
                    f"Week {week_label} volume change {format_pct(op.pct_delta)} exceeds the "
                    f"{format_pct(ceiling)} safety ceiling."
                )
            if op.pct_delta < -floor:
                reasons.append(
                    f"Week {week_label} volume change {format_pct(op.pct_delta)} exceeds the "
                    f"{format_pct(-floor)} safety floor."
                )
        elif isinstance(op, AddNoteOp):
            note_count += 1
            if op.target == "week":
                if op.week_index is not None and op.week_index < week_now:
                    reasons.append(f"Week {op.week_index + 1} is in the past and cannot be modified.")
            else:
                session = by_id.get(op.draft_session_id or "")
                if session is None:
                    reasons.append("A note targets a missing session.")
                elif session.week_index < week_now:
                    reasons.append(f"Session {session.id} is in a past week and cannot be modified.")
        elif isinstance(op, SwapSessionTypeOp):
            swap_count += 1
            session = by_id.get(op.draft_session_id)
            if session is None:
                reasons.append("A swap targets a missing session.")
                continue
            if session.week_index < week_now:
                reasons.append(f"Session {session.id} is in a past week and cannot be auto-adjusted.")
            if protective and is_escalation(session.type, op.new_type):
                reasons.append(
                    f"Protective triggers cannot escalate session {session.id} from {session.type} to {op.new_type}."
                )
        elif isinstance(op, UpdateSessionOp):
            update_count += 1
            session = by_id.get(op.draft_session_id)
            if session is None:
                reasons.append("An update targets a missing session.")
                continue
            if session.week_index < week_now:
                reasons.append(f"Session {session.id} is in a past week and cannot be auto-adjusted.")
            if op.patch.type and protective and is_escalation(session.type, op.patch.type):
                reasons.append(
                    f"Protective triggers cannot escalate session {session.id} from {session.type} to {op.patch.type}."
                )
            requested = op.patch.duration_minutes
            if requested is not None:
                delta = requested - session.duration_minutes
                total_delta += delta
                pct = delta / session.duration_minutes if session.duration_minutes > 0 else 0.0
                if abs(pct) > session_cap:
                    reasons.append(
                        f"Session {session.id} exceeds per-session {round_half_up(session_cap * 100)}% duration cap."
                    )
                if requested < MIN_SESSION_MINUTES or requested > MAX_SESSION_MINUTES:
                    reasons.append(
                        f"Session {session.id} duration must stay between "
                        f"{MIN_SESSION_MINUTES} and {MAX_SESSION_MINUTES} minutes."
                    )
        else:
            assert_never(op)

    review = HardSafetyReview(
        ok=not reasons,
        current_week_index=week_now,
        reasons=reasons,
        metrics=ProposalMetrics(
            total_duration_delta_minutes=total_delta,
            update_count=update_count,
            swap_count=swap_count,
            week_volume_adjustments=adjustments,
            remove_count=remove_count,
            note_count=note_count,
        ),
    )

    log_stage_event(
        EngineStage.SAFETY,
        "success",
        meta={"ok": review.ok, "reasons": len(reasons), "ops": len(diff), "protective": protective},
    )
    return review


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def summarize_proposal_action(trigger_types: list[str], metrics: ProposalMetrics) -> str:
    """Render a stable one-line summary of what a proposal changes and why.

    Example:
        "Why: SORENESS. Changed: week volume (W2 -10%), 1 type swap, -15 min total duration."
    """
    why = ", ".join(trigger_types) if trigger_types else "coach review"
    parts = []
    if metrics.week_volume_adjustments:
        weeks = ", ".join(f"W{w.week_index + 1} {format_pct(w.pct_delta)}" for w in metrics.week_volume_adjustments)
        parts.append(f"week volume ({weeks})")
    if metrics.swap_count:
        parts.append(_plural(metrics.swap_count, "type swap"))
    if metrics.update_count:
        parts.append(_plural(metrics.update_count, "session update"))
    if metrics.note_count:
        parts.append(_plural(metrics.note_count, "coaching note"))
    if metrics.remove_count:
        parts.append(_plural(metrics.remove_count, "removal"))
    if metrics.total_duration_delta_minutes:
        minutes = metrics.total_duration_delta_minutes
        signed = f"+{minutes}" if minutes > 0 else str(minutes)
        parts.append(f"{signed} min total duration")

    changed = ", ".join(parts) if parts else "no material edits"
    return f"Why: {why}. Changed: {changed}."


def _clamp_duration_patch(current: int, requested: int, cap: float) -> int | None:
    lower = max(MIN_SESSION_MINUTES, math.ceil(current * (1 - cap)))
    upper = min(MAX_SESSION_MINUTES, math.floor(current * (1 + cap)))
    if lower > upper:
        return None
    return max(lower, min(upper, requested))


def rewrite_proposal_diff_for_safe_apply(
    setup: DraftPlanSetup,
    sessions: list[SessionSnapshot],
    diff: list[DiffOp],
    trigger_types: list[str],
    as_of: date | None = None,
) -> list[DiffOp]:
    """Rewrite a proposal so it passes the hard safety rules.

    Removals, past-week ops and ops on missing sessions are dropped; volume
    deltas and duration patches are clamped; escalating types under a
    protective trigger are replaced with endurance.
    """
    settings = get_settings()
    ceiling = settings.max_week_volume_increase_pct
    floor = settings.max_week_volume_decrease_pct
    session_cap = settings.max_session_duration_change_pct

    by_id = {s.id: s for s in sessions}
    week_now = current_week_index(setup, as_of)
    protective = is_protective(trigger_types)
    rewritten: list[DiffOp] = []

    for op in diff:
        if isinstance(op, RemoveSessionOp):
            continue
        elif isinstance(op, AdjustWeekVolumeOp):
            if op.week_index < week_now:
                continue
            pct = max(-floor, min(ceiling, op.pct_delta))
            if pct != 0:
                rewritten.append(op.model_copy(update={"pct_delta": pct}))
        elif isinstance(op, AddNoteOp):
            if op.target == "week":
                if op.week_index is not None and op.week_index >= week_now:
                    rewritten.append(op)
                continue
            session = by_id.get(op.draft_session_id or "")
            if session is not None and session.week_index >= week_now:
                rewritten.append(op)
        elif isinstance(op, SwapSessionTypeOp):
            session = by_id.get(op.draft_session_id)
            if session is None or session.week_index < week_now:
                continue
            new_type = op.new_type
            if protective and is_escalation(session.type, new_type):
                new_type = SessionType.ENDURANCE.value
            if new_type == session.type:
                continue
            rewritten.append(op.model_copy(update={"new_type": new_type}))
        elif isinstance(op, UpdateSessionOp):
            session = by_id.get(op.draft_session_id)
            if session is None or session.week_index < week_now:
                continue
            patch = op.patch
            fields = set(patch.model_fields_set)
            updates: dict = {}
            if patch.type and protective and is_escalation(session.type, patch.type):
                updates["type"] = SessionType.ENDURANCE.value
            if patch.duration_minutes is not None:
                clamped = _clamp_duration_patch(session.duration_minutes, patch.duration_minutes, session_cap)
                if clamped is None:
                    fields.discard("duration_minutes")
                else:
                    updates["duration_minutes"] = clamped
            values = {f: updates.get(f, getattr(patch, f)) for f in fields}
            if not values:
                continue
            safe_patch = type(patch).model_validate(values)
            rewritten.append(op.model_copy(update={"patch": safe_patch}))
        else:
            assert_never(op)

    log_stage_event(
        EngineStage.SAFETY,
        "success",
        meta={"rewritten": True, "ops_in": len(diff), "ops_out": len(rewritten)},
    )
    return rewritten
