"""Tests for deterministic proposal generation."""

from coachkit.adaptation.diff import (
    AddNoteOp,
    AdjustWeekVolumeOp,
    SessionPatch,
    SwapSessionTypeOp,
    UpdateSessionOp,
    apply_plan_diff,
    session_snapshots,
)
from coachkit.adaptation.hard_safety import evaluate_proposal_hard_safety
from coachkit.adaptation.proposal_generator import downgrade_intensity_type, suggest_proposal_diffs
from coachkit.plan_builder.models import DraftPlan


def _lock_week(draft: DraftPlan, week_index: int) -> DraftPlan:
    weeks = [w.model_copy(update={"locked": True}) if w.week_index == week_index else w for w in draft.weeks]
    return draft.model_copy(update={"weeks": weeks})


def test_downgrade_intensity_type() -> None:
    """Threshold steps down to tempo; everything else to endurance."""
    assert downgrade_intensity_type("threshold") == "tempo"
    assert downgrade_intensity_type("Threshold ") == "tempo"
    assert downgrade_intensity_type("tempo") == "endurance"
    assert downgrade_intensity_type("vo2 intervals") == "endurance"


def test_soreness_converts_intensity_and_deloads(simple_draft: DraftPlan) -> None:
    """Soreness swaps the next intensity session to recovery and cuts next week by 10%."""
    suggestion = suggest_proposal_diffs(["SORENESS"], simple_draft)

    assert suggestion.diff == [
        SwapSessionTypeOp(draft_session_id="0:1", old_type="tempo", new_type="recovery"),
        AddNoteOp(target="session", draft_session_id="0:1", text="SORENESS: converted to recovery."),
        AdjustWeekVolumeOp(week_index=1, pct_delta=-0.1),
        AddNoteOp(target="week", week_index=1, text="Volume adjustment -10% (SORENESS)."),
    ]
    assert suggestion.rationale == [
        "Trigger SORENESS: soreness reported recently.",
        "SORENESS: adjust next week volume -10%.",
    ]
    assert suggestion.respects_locks


def test_too_hard_downgrades_intensity(simple_draft: DraftPlan) -> None:
    """Too-hard feedback downgrades the next intensity session one step."""
    suggestion = suggest_proposal_diffs(["TOO_HARD"], simple_draft)

    assert suggestion.diff == [
        SwapSessionTypeOp(draft_session_id="0:1", old_type="tempo", new_type="endurance"),
        AddNoteOp(target="session", draft_session_id="0:1", text="TOO_HARD: downgraded intensity (tempo -> endurance)."),
    ]


def test_each_session_is_targeted_once(simple_draft: DraftPlan) -> None:
    """A second trigger moves on to the next intensity session."""
    suggestion = suggest_proposal_diffs(["SORENESS", "TOO_HARD"], simple_draft)

    swaps = [op for op in suggestion.diff if isinstance(op, SwapSessionTypeOp)]
    assert [(op.draft_session_id, op.new_type) for op in swaps] == [("0:1", "recovery"), ("1:1", "tempo")]


def test_missed_key_deloads_and_replaces_next_week_intensity(simple_draft: DraftPlan) -> None:
    """Missed key sessions cut next week by 15% and swap its intensity to endurance."""
    suggestion = suggest_proposal_diffs(["MISSED_KEY"], simple_draft)

    assert suggestion.diff == [
        AdjustWeekVolumeOp(week_index=1, pct_delta=-0.15),
        AddNoteOp(target="week", week_index=1, text="Volume adjustment -15% (MISSED_KEY)."),
        SwapSessionTypeOp(draft_session_id="1:1", old_type="threshold", new_type="endurance"),
        AddNoteOp(
            target="session",
            draft_session_id="1:1",
            text="MISSED_KEY: replaced an intensity session with endurance.",
        ),
    ]


def test_high_compliance_extends_longest_session(simple_draft: DraftPlan) -> None:
    """High compliance adds 10 minutes to next week's longest session."""
    suggestion = suggest_proposal_diffs(["HIGH_COMPLIANCE"], simple_draft)

    assert suggestion.diff[0] == UpdateSessionOp(
        draft_session_id="1:3",
        patch=SessionPatch(duration_minutes=110),
    )
    assert suggestion.rationale[-1] == "HIGH_COMPLIANCE: +10 minutes to the longest session next week."


def test_locked_next_week_blocks_volume_change(simple_draft: DraftPlan) -> None:
    """Locks are respected and reported in the rationale."""
    draft = _lock_week(simple_draft, 1)

    suggestion = suggest_proposal_diffs(["SORENESS", "HIGH_COMPLIANCE"], draft)

    assert not suggestion.respects_locks
    assert not any(isinstance(op, (AdjustWeekVolumeOp, UpdateSessionOp)) for op in suggestion.diff)
    assert "Blocked by lock: week 2 is locked (cannot adjust week volume)." in suggestion.rationale
    assert "Blocked by lock: week 2 is locked (cannot apply progression)." in suggestion.rationale


def test_last_week_has_nothing_to_adjust(simple_draft: DraftPlan) -> None:
    """Without a following week the volume change is skipped, not blocked."""
    suggestion = suggest_proposal_diffs(["SORENESS"], simple_draft, current_week_index=1)

    assert suggestion.diff[0] == SwapSessionTypeOp(draft_session_id="1:1", old_type="threshold", new_type="recovery")
    assert "SORENESS: no week 3 to adjust." in suggestion.rationale
    assert suggestion.respects_locks


def test_unknown_trigger_produces_no_ops(simple_draft: DraftPlan) -> None:
    """Unrecognised triggers are ignored."""
    suggestion = suggest_proposal_diffs(["NEW_SIGNAL"], simple_draft)

    assert suggestion.diff == []
    assert suggestion.rationale_text == ""


def test_suggested_diff_is_safe_and_applies(simple_draft: DraftPlan) -> None:
    """Generated proposals pass hard safety and apply cleanly."""
    triggers = ["SORENESS", "TOO_HARD"]
    suggestion = suggest_proposal_diffs(triggers, simple_draft)

    review = evaluate_proposal_hard_safety(simple_draft.setup, session_snapshots(simple_draft), suggestion.diff, triggers)
    applied = apply_plan_diff(simple_draft, suggestion.diff)

    assert review.ok, review.reasons
    assert applied.find_session("0:1").type == "recovery"
    assert applied.find_session("1:1").type == "tempo"
    assert [s.duration_minutes for s in applied.weeks[1].sessions] == [41, 45, 36, 90]
