"""Draft plan builder - deterministic generation and policy-based validation."""

from coachkit.plan_builder.constraint_validator import evaluate_quality_gate, validate_draft_plan
from coachkit.plan_builder.draft_generator import generate_draft_plan
from coachkit.plan_builder.models import (
    DraftPlan,
    DraftPlanSetup,
    DraftSession,
    DraftWeek,
    QualityGateResult,
    Violation,
)
from coachkit.plan_builder.policy_registry import (
    PolicyProfile,
    apply_policy_profile_to_setup,
    get_policy_profile,
    list_policy_profiles,
    resolve_policy_profile,
)
from coachkit.plan_builder.session_detail import (
    SessionDetail,
    normalize_session_detail_durations_to_total,
    parse_session_detail,
    reflow_session_detail_to_new_total,
)
from coachkit.plan_builder.session_detail_builder import (
    SessionDetailContext,
    build_detail_for_session,
    build_session_detail,
)
from coachkit.plan_builder.setup import normalize_draft_setup, parse_draft_setup, resolve_weeks_to_event

__all__ = [
    "DraftPlan",
    "DraftPlanSetup",
    "DraftSession",
    "DraftWeek",
    "PolicyProfile",
    "QualityGateResult",
    "SessionDetail",
    "SessionDetailContext",
    "Violation",
    "apply_policy_profile_to_setup",
    "build_detail_for_session",
    "build_session_detail",
    "evaluate_quality_gate",
    "generate_draft_plan",
    "get_policy_profile",
    "list_policy_profiles",
    "normalize_draft_setup",
    "normalize_session_detail_durations_to_total",
    "parse_draft_setup",
    "parse_session_detail",
    "reflow_session_detail_to_new_total",
    "resolve_policy_profile",
    "resolve_weeks_to_event",
    "validate_draft_plan",
]
