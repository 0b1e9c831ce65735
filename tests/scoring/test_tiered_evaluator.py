"""
Tests for the tiered evaluator, MCD compliance heuristic and domain inference
"""

import pytest

from tier_gauge_core.domain.entities import SuccessCriteria, TrialSpecification
from tier_gauge_core.harness_config import ScoringConfig
from tier_gauge_core.scoring.domains import default_criteria, infer_domain, resolve_criteria
from tier_gauge_core.scoring.mcd_compliance import compliance_score, is_mcd_compliant
from tier_gauge_core.scoring.tiered_evaluator import content_quality, evaluate


def _spec(test_id="D1_T1", user_input="Book an appointment for Tuesday", **criteria):
    criteria.setdefault("required_elements", ["time", "location"])
    return TrialSpecification(
        test_id=test_id,
        user_input=user_input,
        success_criteria=SuccessCriteria(**criteria),
    )


class TestEvaluate:
    """Quality tiers assigned by evaluate()"""

    def test_structured_answer_is_excellent(self):
        result = evaluate("Check: Missing appointment time and location details", _spec())
        assert result.tier in ("excellent", "good")
        assert result.success is True
        assert result.mcd_compliant is True
        assert result.required_ratio == 1.0
        assert result.failures == []

    def test_empty_output_is_poor(self):
        result = evaluate("", _spec())
        assert result.tier == "poor"
        assert result.success is False
        assert "Output too brief for meaningful evaluation" in result.failures
        assert "Missing required element: time" in result.failures

    def test_non_text_output_treated_as_empty(self):
        result = evaluate(None, _spec())
        assert result.tier == "poor"

    def test_prohibited_element_blocks_top_tiers(self):
        spec = _spec(prohibited_elements=["happy to help"])
        result = evaluate("I'm happy to help! Check: missing time and location details", spec)
        assert result.tier not in ("excellent", "good")
        assert result.prohibited_count == 1
        assert "Contains prohibited element: happy to help" in result.failures

    def test_prohibited_element_lowers_functional_score(self):
        output = "Check: Missing appointment time and location details"
        clean = evaluate(output, _spec())
        flagged = evaluate(output, _spec(prohibited_elements=["details"]))
        assert flagged.prohibited_count == 1
        assert flagged.functional_score < clean.functional_score
        assert flagged.functional_score == pytest.approx(clean.functional_score - 0.25)

    def test_short_output_is_poor_even_when_complete(self):
        """必須要素がなくても10文字未満は poor"""
        result = evaluate("Check: ok", _spec(required_elements=[]))
        assert result.required_ratio == 1.0
        assert result.tier == "poor"
        assert result.success is False
        assert "Output too brief for meaningful evaluation" in result.failures

    def test_accuracy_is_clamped(self):
        result = evaluate("Check: Missing appointment time and location details", _spec())
        assert 0.0 <= result.accuracy <= 1.0

    def test_domain_is_reported(self):
        result = evaluate("Check: time and location", _spec())
        assert result.domain == "appointment-booking"

    def test_stricter_cutoffs_lower_tier(self):
        strict = ScoringConfig(excellent_functional=1.1, good_functional=1.1)
        result = evaluate("Check: Missing appointment time and location details", _spec(), strict)
        assert result.tier == "acceptable"


class TestContentQuality:
    """content_quality() heuristic"""

    def test_structured_concise(self):
        assert content_quality("Check: time", 100) == pytest.approx(1.0)

    def test_plain_text(self):
        assert content_quality("hello there", 100) == pytest.approx(0.6)

    def test_verbose_penalty(self):
        assert content_quality("word " * 20, 10) == pytest.approx(0.3)


class TestMcdCompliance:
    """Keyword-weighted compliance heuristic"""

    def test_directive_output_is_compliant(self):
        assert is_mcd_compliant("Check: Missing appointment time and location details", _spec())

    def test_chatty_output_is_not_compliant(self):
        output = "I think maybe we could perhaps look at it, happy to help, feel free to ask!"
        assert not is_mcd_compliant(output, _spec())
        assert compliance_score(output, _spec()) < 0

    def test_cutoff_is_configurable(self):
        output = "Check: Missing appointment time and location details"
        score = compliance_score(output, _spec())
        assert is_mcd_compliant(output, _spec(), cutoff=score - 0.5)
        assert not is_mcd_compliant(output, _spec(), cutoff=score)


class TestDomains:
    """Domain inference and default criteria"""

    def test_prefix_wins(self):
        spec = _spec(test_id="D2_T1", user_input="Book an appointment")
        assert infer_domain(spec) == "spatial-navigation"

    def test_keyword_fallback(self):
        spec = _spec(test_id="T1", user_input="There is an error in the service")
        assert infer_domain(spec) == "failure-diagnostics"

    def test_unknown(self):
        assert infer_domain(_spec(test_id="T1", user_input="hello")) == "unknown"

    def test_default_criteria_scaled_by_multiplier(self):
        criteria = default_criteria("appointment-booking", "Q1")
        assert criteria["max_token_budget"] == 96
        assert criteria["max_latency_ms"] == 400
        assert criteria["min_accuracy"] == 0.75

    def test_explicit_criteria_override_defaults(self):
        spec = _spec(max_token_budget=40, min_accuracy=0.9)
        resolved = resolve_criteria(spec, "appointment-booking")
        assert resolved["max_token_budget"] == 40
        assert resolved["min_accuracy"] == 0.9
        assert resolved["max_latency_ms"] == 800
