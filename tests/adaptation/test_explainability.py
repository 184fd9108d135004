"""Tests for trigger quality assessment and reason chains."""

from unittest.mock import patch

import pytest

from coachkit.adaptation.explainability import (
    AdaptationTrigger,
    assess_trigger_quality,
    build_reason_chain,
    score_trigger,
)
from coachkit.plan_builder.observability import EngineStage


def _trigger(trigger_id: str, trigger_type: str, **evidence) -> AdaptationTrigger:
    return AdaptationTrigger(id=trigger_id, trigger_type=trigger_type, evidence_json=evidence)


def test_score_soreness_trigger() -> None:
    """Soreness confidence grows with the number of flags."""
    quality = score_trigger(_trigger("t1", "SORENESS", sorenessCount=2))

    assert quality.confidence == pytest.approx(0.81)
    assert quality.impact == "high"
    assert quality.sample_size == 2
    assert quality.reason == "2 soreness flags in recent sessions."


def test_score_high_compliance_trigger() -> None:
    """High compliance blends completion with feedback volume."""
    quality = score_trigger(_trigger("t1", "HIGH_COMPLIANCE", compliance=0.9, totalFeedbackCount=10))

    assert quality.confidence == pytest.approx(0.81)
    assert quality.impact == "medium"
    assert quality.sample_size == 10
    assert quality.reason == "Completion 90% with no negative flags."


@pytest.mark.parametrize("evidence", [None, "junk", {"sorenessCount": True}, {"sorenessCount": "3"}])
def test_score_ignores_unusable_evidence(evidence) -> None:
    """Non-numeric evidence counts as zero."""
    quality = score_trigger(AdaptationTrigger(id="t1", trigger_type="SORENESS", evidence_json=evidence))

    assert quality.confidence == pytest.approx(0.45)
    assert quality.sample_size == 0


def test_assessment_tolerates_oversized_evidence_counts() -> None:
    """Counts too large for a float are treated like any other unusable evidence."""
    assessment = assess_trigger_quality(
        [AdaptationTrigger(id="t1", trigger_type="SORENESS", evidence_json={"sorenessCount": 10**400})]
    )

    quality = assessment.ranked[0]
    assert quality.confidence == pytest.approx(0.45)
    assert quality.sample_size == 0
    assert quality.reason == "0 soreness flags in recent sessions."
    assert not assessment.should_queue


def test_unknown_trigger_type_gets_default_score() -> None:
    """Unknown trigger types are low-impact with a default confidence."""
    quality = score_trigger(_trigger("t1", "NEW_SIGNAL"))

    assert quality.confidence == pytest.approx(0.45)
    assert quality.impact == "low"
    assert quality.reason == "Trigger signal detected."


def test_assessment_ranks_by_confidence() -> None:
    """Triggers are ranked by confidence, highest first."""
    assessment = assess_trigger_quality(
        [
            _trigger("t1", "TOO_HARD", tooHardCount=1),
            _trigger("t2", "SORENESS", sorenessCount=2),
            _trigger("t3", "MISSED_KEY", missedKeyCount=1),
        ]
    )

    assert [q.trigger_type for q in assessment.ranked] == ["SORENESS", "MISSED_KEY", "TOO_HARD"]
    assert assessment.high_impact_count == 2
    assert assessment.should_queue
    assert assessment.suppression_reason is None


def test_ranking_is_deterministic_on_ties() -> None:
    """Equal confidence falls back to type, then id."""
    assessment = assess_trigger_quality(
        [
            _trigger("b", "SORENESS", sorenessCount=1),
            _trigger("a", "SORENESS", sorenessCount=1),
        ]
    )

    assert [q.trigger_id for q in assessment.ranked] == ["a", "b"]


def test_low_signal_thin_support_is_suppressed() -> None:
    """One weak, low-impact, thinly supported trigger is suppressed."""
    assessment = assess_trigger_quality([_trigger("t1", "HIGH_COMPLIANCE", compliance=0.5, totalFeedbackCount=1)])

    assert not assessment.should_queue
    assert "Suppressing" in assessment.suppression_reason
    assert assessment.ranked[0].confidence == pytest.approx(0.47)


def test_empty_trigger_set_is_suppressed() -> None:
    """No triggers means nothing to queue."""
    assessment = assess_trigger_quality([])

    assert not assessment.should_queue
    assert assessment.ranked == []
    assert "uppressing" in assessment.suppression_reason


def test_enough_samples_prevent_suppression() -> None:
    """Weak signals with enough evidenced triggers are still queued."""
    assessment = assess_trigger_quality(
        [
            _trigger("t1", "HIGH_COMPLIANCE", compliance=0.5, totalFeedbackCount=2),
            _trigger("t2", "HIGH_COMPLIANCE", compliance=0.5, totalFeedbackCount=2),
        ]
    )

    assert assessment.high_impact_count == 0
    assert assessment.should_queue


def test_assessment_logs_explain_stage() -> None:
    """Assessment emits a proposal_explain stage event."""
    with patch("coachkit.adaptation.explainability.log_stage_event") as mock_log:
        assess_trigger_quality([_trigger("t1", "SORENESS", sorenessCount=2)])

    mock_log.assert_called_once()
    assert mock_log.call_args[0][0] == EngineStage.EXPLAIN
    assert mock_log.call_args[1]["meta"]["queued"] is True


def test_reason_chain_has_four_stages() -> None:
    """Signal, Trigger, Action and Expected effect, in that order."""
    assessment = assess_trigger_quality(
        [
            _trigger("t1", "TOO_HARD", tooHardCount=1),
            _trigger("t2", "SORENESS", sorenessCount=2),
            _trigger("t3", "MISSED_KEY", missedKeyCount=1),
        ]
    )

    chain = build_reason_chain(assessment.ranked, "Why: SORENESS. Changed: week volume (W2 -10%).")

    assert chain == [
        "Signal: SORENESS (81%), MISSED_KEY (62%)",
        "Trigger: SORENESS, MISSED_KEY, TOO_HARD",
        "Action: Why: SORENESS. Changed: week volume (W2 -10%).",
        "Expected effect: Reduce acute stress and improve recovery readiness next week.",
    ]


def test_reason_chain_without_triggers() -> None:
    """An empty ranking still renders all four stages."""
    chain = build_reason_chain([], "Why: coach review. Changed: no material edits.")

    assert chain[0] == "Signal: recent athlete feedback/activity"
    assert chain[1] == "Trigger: none"
    assert chain[3] == "Expected effect: Adjust next block to improve adherence and training quality."


def test_reason_chain_for_progression() -> None:
    """High compliance alone expects a small progression."""
    ranked = [score_trigger(_trigger("t1", "HIGH_COMPLIANCE", compliance=0.95, totalFeedbackCount=8))]

    chain = build_reason_chain(ranked, "Why: HIGH_COMPLIANCE. Changed: 1 session update.")

    assert chain[3] == "Expected effect: Apply small, safe progression while preserving durability."
