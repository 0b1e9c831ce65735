"""
Tests for the drift detector

Verifies the alignment verdicts, drift-type classification, domain
enrichment and the batch summary.
"""

import pytest

from tier_gauge_core.domain.value_objects import DriftAnalysis
from tier_gauge_core.scoring.drift_detector import (
    analyze,
    analyze_domain_drift,
    classify_drift_type,
    domain_confidence_adjustment,
    fragmentation_score,
    has_context_loss,
    is_speculative,
    summarize_batch_drift,
)


class TestAnalyze:
    """Verdicts of analyze()"""

    def test_aligned_output(self):
        result = analyze("Check: missing time and location details.", ["time", "location"])
        assert result.status == "Aligned"
        assert result.aligned is True
        assert result.drift_detected is False
        assert result.severity == "none"
        assert result.confidence == pytest.approx(1.0)
        assert result.drift_type is None

    def test_partial_output(self):
        result = analyze(
            "Please confirm the time of your visit.",
            ["time", "location"],
            ["safety"],
        )
        assert result.status == "Partial"
        assert result.aligned is True
        assert result.drift_detected is True
        assert result.severity == "mild"
        assert result.confidence == pytest.approx(0.3)
        assert result.missing_terms == ["location"]
        assert result.drift_type == "semantic_loss"

    def test_severe_drift(self):
        result = analyze("maybe", ["time", "location"], ["appointment"])
        assert result.status == "Drift"
        assert result.aligned is False
        assert result.severity == "severe"
        assert result.confidence == 0.0
        assert result.drift_type == "semantic_failure"
        assert "maybe" in result.hallucinations

    def test_non_text_output_gives_error_verdict(self):
        result = analyze(None, ["time"], ["appointment"])
        assert result.status == "Error"
        assert result.severity == "severe"
        assert result.confidence == 0.0
        assert result.missing_anchors == ["appointment"]

    def test_configurable_thresholds(self):
        result = analyze(
            "Please confirm the time of your visit.",
            ["time", "location"],
            ["safety"],
            aligned_confidence=0.25,
        )
        assert result.status == "Aligned"

    def test_idempotent(self):
        output = "Go north to the red marker, then turn left."
        first = analyze(output, ["north", "left"], ["spatial"])
        second = analyze(output, ["north", "left"], ["spatial"])
        assert first == second


class TestDetectors:
    """Individual detectors"""

    def test_empty_output_fully_fragmented(self):
        assert fragmentation_score("   ") == 1.0

    def test_trailing_ellipsis_is_fragmented(self):
        assert fragmentation_score("The appointment is booked for...") >= 0.3

    def test_intact_sentence(self):
        assert fragmentation_score("The appointment is booked for Monday.") == 0.0

    def test_speculative(self):
        assert is_speculative("It could be a network issue")
        assert not is_speculative("Check: network cable")

    def test_context_loss(self):
        assert has_context_loss("I'm not sure what you mean")
        assert not has_context_loss("Check: time and location")


class TestClassifyDriftType:
    """Priority order of classify_drift_type()"""

    def test_hallucination_subtype_first(self):
        assert classify_drift_type(["x"], ["insurance verification"], 0.9, True) == "appointment_hallucination"

    def test_fragmentation_before_speculation(self):
        assert classify_drift_type([], [], 0.6, True) == "fragmentation"

    def test_speculative(self):
        assert classify_drift_type(["x"], [], 0.0, True) == "speculative_inquiry"

    def test_generic(self):
        assert classify_drift_type([], [], 0.0, False) == "general_drift"


class TestDomainDrift:
    """analyze_domain_drift() enrichment"""

    def test_appointment_domain(self):
        result = analyze_domain_drift(
            "Check: missing time and location details.",
            ["time", "location"],
            [],
            "appointment-booking",
        )
        assert result.status == "Domain Aligned"
        assert result.domain == "appointment-booking"
        assert result.domain_patterns == ["missing"]
        assert result.domain_metrics["temporal_accuracy"] == 1.0
        assert "slot_filling" in result.principle_adherence
        assert result.confidence == pytest.approx(0.85)

    def test_unknown_domain_keeps_base_confidence(self):
        result = analyze_domain_drift("Check: time.", ["time"], [], "unknown")
        base = analyze("Check: time.", ["time"], [])
        assert result.confidence == pytest.approx(base.confidence)
        assert result.domain_metrics == {}

    def test_adjustment_is_clamped(self):
        assert domain_confidence_adjustment(["a"] * 5, {}) == pytest.approx(-0.3)
        assert domain_confidence_adjustment([], {str(i): 1.0 for i in range(6)}) == pytest.approx(0.2)


class TestSummarizeBatchDrift:
    """summarize_batch_drift()"""

    def _analysis(self, aligned, drift_type=None):
        return DriftAnalysis(
            status="Aligned" if aligned else "Drift",
            aligned=aligned,
            drift_detected=not aligned,
            severity="none" if aligned else "severe",
            confidence=1.0 if aligned else 0.0,
            drift_type=drift_type,
        )

    def test_empty(self):
        summary = summarize_batch_drift([])
        assert summary["overall_drift_rate"] == 0.0
        assert summary["recommendations"] == ["Drift analysis within acceptable parameters"]

    def test_high_drift_recommendations(self):
        records = [
            (self._analysis(False, "semantic_failure"), "appointment-booking", "MCD"),
            (self._analysis(True), "appointment-booking", "Non-MCD"),
        ]
        summary = summarize_batch_drift(records)
        assert summary["overall_drift_rate"] == pytest.approx(0.5)
        assert summary["domain_drift_rates"] == {"appointment-booking": 0.5}
        assert summary["common_drift_types"] == ["semantic_failure"]
        assert any("High drift rate" in r for r in summary["recommendations"])
        assert any("MCD variants not outperforming" in r for r in summary["recommendations"])
