"""Adaptation engine - diff model, hard safety, explainability and proposals."""

from coachkit.adaptation.change_summary import summarize_plan_changes
from coachkit.adaptation.diff import (
    AddNoteOp,
    AdjustWeekVolumeOp,
    DiffOp,
    RemoveSessionOp,
    SessionPatch,
    SessionSnapshot,
    SwapSessionTypeOp,
    UpdateSessionOp,
    apply_plan_diff,
    parse_plan_diff,
    session_snapshots,
)
from coachkit.adaptation.explainability import (
    AdaptationTrigger,
    TriggerAssessment,
    TriggerQuality,
    assess_trigger_quality,
    build_reason_chain,
)
from coachkit.adaptation.hard_safety import (
    HardSafetyReview,
    ProposalMetrics,
    evaluate_proposal_hard_safety,
    rewrite_proposal_diff_for_safe_apply,
    summarize_proposal_action,
)
from coachkit.adaptation.proposal_generator import ProposalSuggestion, suggest_proposal_diffs

__all__ = [
    "AdaptationTrigger",
    "AddNoteOp",
    "AdjustWeekVolumeOp",
    "DiffOp",
    "HardSafetyReview",
    "ProposalMetrics",
    "ProposalSuggestion",
    "RemoveSessionOp",
    "SessionPatch",
    "SessionSnapshot",
    "SwapSessionTypeOp",
    "TriggerAssessment",
    "TriggerQuality",
    "UpdateSessionOp",
    "apply_plan_diff",
    "assess_trigger_quality",
    "build_reason_chain",
    "evaluate_proposal_hard_safety",
    "parse_plan_diff",
    "rewrite_proposal_diff_for_safe_apply",
    "session_snapshots",
    "suggest_proposal_diffs",
    "summarize_plan_changes",
    "summarize_proposal_action",
]
