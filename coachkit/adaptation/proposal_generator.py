"""Deterministic proposal diffs for detected triggers.

Maps each trigger type to a small, conservative set of diff operations on
the week after the current one:

- SORENESS: convert the next intensity session to recovery, next week -10%
- TOO_HARD: downgrade the next intensity session (threshold -> tempo -> endurance)
- MISSED_KEY: next week -15%, replace its intensity session with endurance
- HIGH_COMPLIANCE: +10 min on next week's longest session, or +5% volume

Locked weeks and sessions are never targeted; when a lock prevents an
action the rationale says so and respects_locks is False.
"""

from dataclasses import dataclass, field

from loguru import logger

from coachkit.adaptation.diff import AddNoteOp, AdjustWeekVolumeOp, DiffOp, SessionPatch, SwapSessionTypeOp, UpdateSessionOp
from coachkit.adaptation.hard_safety import format_pct
from coachkit.plan_builder.enums import SessionType
from coachkit.plan_builder.models import DraftPlan, DraftSession
from coachkit.plan_builder.session_types import is_intensity_type

HIGH_COMPLIANCE_EXTRA_MINUTES = 10


@dataclass
class ProposalSuggestion:
    diff: list[DiffOp] = field(default_factory=list)
    rationale: list[str] = field(default_factory=list)
    respects_locks: bool = True

    @property
    def rationale_text(self) -> str:
        return "\n".join(self.rationale)

    def blocked(self, reason: str) -> None:
        self.respects_locks = False
        self.rationale.append(f"Blocked by lock: {reason}")


def downgrade_intensity_type(current_type: str) -> str:
    if current_type.strip().lower() == SessionType.THRESHOLD:
        return SessionType.TEMPO.value
    return SessionType.ENDURANCE.value


def suggest_proposal_diffs(
    trigger_types: list[str],
    draft: DraftPlan,
    current_week_index: int = 0,
) -> ProposalSuggestion:
    """Build a deterministic proposal for a set of trigger types.

    Args:
        trigger_types: Detected trigger types, processed in order
        draft: Draft the proposal targets
        current_week_index: Week the athlete is in; earlier weeks are never targeted

    Returns:
        ProposalSuggestion with diff ops and one rationale line per decision
    """
    week_locked = {w.week_index: w.locked for w in draft.weeks}
    next_week = current_week_index + 1
    has_next_week = next_week in week_locked
    next_week_locked = week_locked.get(next_week, False)

    def unlocked(session: DraftSession) -> bool:
        return not session.locked and not week_locked.get(session.week_index, False)

    sessions = sorted(
        (s for s in draft.iter_sessions() if s.week_index >= current_week_index),
        key=lambda s: (s.week_index, s.ordinal, s.day_of_week),
    )
    # Each session is swapped at most once per proposal
    targeted: set[str] = set()

    def next_intensity(week_index: int | None = None) -> DraftSession | None:
        for s in sessions:
            if week_index is not None and s.week_index != week_index:
                continue
            if is_intensity_type(s.type) and unlocked(s) and s.session_id not in targeted:
                return s
        return None

    suggestion = ProposalSuggestion()

    def adjust_next_week(pct_delta: float, because: str) -> None:
        if not has_next_week:
            suggestion.rationale.append(f"{because}: no week {next_week + 1} to adjust.")
            return
        if next_week_locked:
            suggestion.blocked(f"week {next_week + 1} is locked (cannot adjust week volume).")
            return
        suggestion.diff.append(AdjustWeekVolumeOp(week_index=next_week, pct_delta=pct_delta))
        suggestion.diff.append(
            AddNoteOp(target="week", week_index=next_week, text=f"Volume adjustment {format_pct(pct_delta)} ({because}).")
        )
        suggestion.rationale.append(f"{because}: adjust next week volume {format_pct(pct_delta)}.")

    def note(session: DraftSession, text: str) -> None:
        suggestion.diff.append(AddNoteOp(target="session", draft_session_id=session.session_id, text=text))

    def swap(session: DraftSession, new_type: str) -> None:
        targeted.add(session.session_id)
        suggestion.diff.append(
            SwapSessionTypeOp(draft_session_id=session.session_id, old_type=session.type, new_type=new_type)
        )

    for trigger_type in trigger_types:
        if trigger_type == "SORENESS":
            suggestion.rationale.append("Trigger SORENESS: soreness reported recently.")
            target = next_intensity()
            if target is None:
                suggestion.blocked("no unlocked intensity session found to convert for SORENESS.")
            else:
                swap(target, SessionType.RECOVERY.value)
                note(target, "SORENESS: converted to recovery.")
            adjust_next_week(-0.1, "SORENESS")
        elif trigger_type == "TOO_HARD":
            suggestion.rationale.append("Trigger TOO_HARD: multiple sessions felt too hard.")
            target = next_intensity()
            if target is None:
                suggestion.blocked("no unlocked intensity session found to downgrade for TOO_HARD.")
            else:
                new_type = downgrade_intensity_type(target.type)
                swap(target, new_type)
                note(target, f"TOO_HARD: downgraded intensity ({target.type} -> {new_type}).")
        elif trigger_type == "MISSED_KEY":
            suggestion.rationale.append("Trigger MISSED_KEY: multiple key sessions were skipped.")
            adjust_next_week(-0.15, "MISSED_KEY")
            if next_week_locked:
                suggestion.blocked(f"week {next_week + 1} is locked (cannot replace intensity session).")
                continue
            target = next_intensity(next_week)
            if target is None:
                suggestion.blocked("no unlocked intensity session found in next week to replace for MISSED_KEY.")
            else:
                swap(target, SessionType.ENDURANCE.value)
                note(target, "MISSED_KEY: replaced an intensity session with endurance.")
        elif trigger_type == "HIGH_COMPLIANCE":
            suggestion.rationale.append("Trigger HIGH_COMPLIANCE: strong completion with no negative flags.")
            if next_week_locked:
                suggestion.blocked(f"week {next_week + 1} is locked (cannot apply progression).")
                continue
            longest = sorted(
                (s for s in sessions if s.week_index == next_week and unlocked(s)),
                key=lambda s: (-s.duration_minutes, s.ordinal),
            )
            if longest:
                target = longest[0]
                suggestion.diff.append(
                    UpdateSessionOp(
                        draft_session_id=target.session_id,
                        patch=SessionPatch(duration_minutes=target.duration_minutes + HIGH_COMPLIANCE_EXTRA_MINUTES),
                    )
                )
                note(target, f"HIGH_COMPLIANCE: small progression (+{HIGH_COMPLIANCE_EXTRA_MINUTES} minutes).")
                suggestion.rationale.append(
                    f"HIGH_COMPLIANCE: +{HIGH_COMPLIANCE_EXTRA_MINUTES} minutes to the longest session next week."
                )
            else:
                adjust_next_week(0.05, "HIGH_COMPLIANCE")
        else:
            logger.debug(f"No proposal rule for trigger type {trigger_type}")

    return suggestion
