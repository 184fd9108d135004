"""Trigger quality assessment and reason chains for automated adjustments.

Triggers are detected upstream and arrive with opaque evidence. This module
scores each trigger, ranks them, decides whether the set is worth queuing
for coach review, and renders the four-stage reason chain
(Signal, Trigger, Action, Expected effect) that every automated adjustment
must carry.
"""

import math
from typing import Any, Literal

from pydantic import Field

from coachkit.plan_builder.duration_rounding import round_half_up
from coachkit.plan_builder.models import CamelModel
from coachkit.plan_builder.observability import EngineStage, log_stage_event

Impact = Literal["low", "medium", "high"]

# Suppression thresholds
QUEUE_AVERAGE_CONFIDENCE = 0.55
LOW_SIGNAL_CONFIDENCE = 0.52
MIN_EVIDENCED_TRIGGERS = 2
MIN_TOTAL_SAMPLES = 3

DEFAULT_CONFIDENCE = 0.45

SUPPRESSION_REASON = (
    "Signals are low-confidence and low-impact with thin sample support. "
    "Suppressing noisy recommendation churn."
)
NO_TRIGGERS_REASON = "No trigger signals detected. Suppressing recommendation."


class AdaptationTrigger(CamelModel):
    """A detected athlete-behaviour signal, consumed read-only."""

    id: str
    trigger_type: str
    evidence_json: Any = None


class TriggerQuality(CamelModel):
    trigger_id: str
    trigger_type: str
    confidence: float = Field(..., ge=0, le=1)
    impact: Impact
    sample_size: int = Field(..., ge=0)
    reason: str


class TriggerAssessment(CamelModel):
    ranked: list[TriggerQuality]
    average_confidence: float
    high_impact_count: int
    should_queue: bool
    suppression_reason: str | None = None


def _evidence_number(evidence: Any, key: str) -> float:
    if not isinstance(evidence, dict):
        return 0.0
    value = evidence.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    try:
        number = float(value)
    except OverflowError:
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def _confidence(trigger_type: str, evidence: Any) -> float:
    if trigger_type == "SORENESS":
        return _clamp01(0.45 + min(0.45, _evidence_number(evidence, "sorenessCount") * 0.18))
    if trigger_type == "TOO_HARD":
        return _clamp01(0.4 + min(0.5, _evidence_number(evidence, "tooHardCount") * 0.16))
    if trigger_type == "MISSED_KEY":
        return _clamp01(0.45 + min(0.45, _evidence_number(evidence, "missedKeyCount") * 0.17))
    if trigger_type == "HIGH_COMPLIANCE":
        compliance = _evidence_number(evidence, "compliance")
        total = _evidence_number(evidence, "totalFeedbackCount")
        return _clamp01(0.25 + compliance * 0.4 + min(0.2, total * 0.02))
    return DEFAULT_CONFIDENCE


def _impact(trigger_type: str, confidence: float) -> Impact:
    if trigger_type in {"SORENESS", "MISSED_KEY"}:
        return "high" if confidence >= 0.55 else "medium"
    if trigger_type == "TOO_HARD":
        return "high" if confidence >= 0.6 else "medium"
    return "medium" if confidence >= 0.65 else "low"


def _sample_size(trigger_type: str, evidence: Any) -> int:
    key = {
        "SORENESS": "sorenessCount",
        "TOO_HARD": "tooHardCount",
        "MISSED_KEY": "missedKeyCount",
        "HIGH_COMPLIANCE": "totalFeedbackCount",
    }.get(trigger_type)
    if key is None:
        return 0
    return max(0, int(_evidence_number(evidence, key)))


def _reason(trigger_type: str, evidence: Any) -> str:
    if trigger_type == "SORENESS":
        return f"{int(_evidence_number(evidence, 'sorenessCount'))} soreness flags in recent sessions."
    if trigger_type == "TOO_HARD":
        return f"{int(_evidence_number(evidence, 'tooHardCount'))} sessions reported as too hard."
    if trigger_type == "MISSED_KEY":
        return f"{int(_evidence_number(evidence, 'missedKeyCount'))} key sessions skipped."
    if trigger_type == "HIGH_COMPLIANCE":
        compliance = round_half_up(_evidence_number(evidence, "compliance") * 100)
        return f"Completion {compliance}% with no negative flags."
    return "Trigger signal detected."


def score_trigger(trigger: AdaptationTrigger) -> TriggerQuality:
    confidence = _confidence(trigger.trigger_type, trigger.evidence_json)
    return TriggerQuality(
        trigger_id=trigger.id,
        trigger_type=trigger.trigger_type,
        confidence=confidence,
        impact=_impact(trigger.trigger_type, confidence),
        sample_size=_sample_size(trigger.trigger_type, trigger.evidence_json),
        reason=_reason(trigger.trigger_type, trigger.evidence_json),
    )


def assess_trigger_quality(triggers: list[AdaptationTrigger]) -> TriggerAssessment:
    """Rank triggers by confidence and decide whether to queue them.

    A set is suppressed when it has no high-impact trigger, every signal is
    low confidence and the sample support is thin. Empty sets are suppressed.

    Args:
        triggers: Raw trigger records

    Returns:
        TriggerAssessment; suppression_reason is set when should_queue is False
    """
    ranked = sorted(
        (score_trigger(t) for t in triggers),
        key=lambda q: (-q.confidence, q.trigger_type, q.trigger_id),
    )

    if not ranked:
        return TriggerAssessment(
            ranked=[],
            average_confidence=0.0,
            high_impact_count=0,
            should_queue=False,
            suppression_reason=NO_TRIGGERS_REASON,
        )

    average_confidence = sum(q.confidence for q in ranked) / len(ranked)
    high_impact_count = sum(1 for q in ranked if q.impact == "high")
    all_low = all(q.confidence < LOW_SIGNAL_CONFIDENCE for q in ranked)
    evidenced = sum(1 for q in ranked if q.sample_size >= 1)
    total_samples = sum(q.sample_size for q in ranked)
    thin_support = evidenced < MIN_EVIDENCED_TRIGGERS and total_samples < MIN_TOTAL_SAMPLES

    suppressed = high_impact_count == 0 and average_confidence < QUEUE_AVERAGE_CONFIDENCE and all_low and thin_support

    log_stage_event(
        EngineStage.EXPLAIN,
        "success",
        meta={
            "triggers": len(ranked),
            "high_impact": high_impact_count,
            "average_confidence": round(average_confidence, 4),
            "queued": not suppressed,
        },
    )

    return TriggerAssessment(
        ranked=ranked,
        average_confidence=average_confidence,
        high_impact_count=high_impact_count,
        should_queue=not suppressed,
        suppression_reason=SUPPRESSION_REASON if suppressed else None,
    )


def _expected_effect(trigger_types: list[str]) -> str:
    if any(t in {"SORENESS", "TOO_HARD"} for t in trigger_types):
        return "Reduce acute stress and improve recovery readiness next week."
    if "MISSED_KEY" in trigger_types:
        return "Stabilize consistency and protect completion of key sessions."
    if "HIGH_COMPLIANCE" in trigger_types:
        return "Apply small, safe progression while preserving durability."
    return "Adjust next block to improve adherence and training quality."


def build_reason_chain(ranked: list[TriggerQuality], action_summary: str) -> list[str]:
    """Render the four-line reason chain for an automated adjustment."""
    trigger_types = [q.trigger_type for q in ranked]
    signal = ", ".join(f"{q.trigger_type} ({round_half_up(q.confidence * 100)}%)" for q in ranked[:2])
    return [
        f"Signal: {signal or 'recent athlete feedback/activity'}",
        f"Trigger: {', '.join(trigger_types) if trigger_types else 'none'}",
        f"Action: {action_summary}",
        f"Expected effect: {_expected_effect(trigger_types)}",
    ]
