"""Tests for domain entities and value objects"""

import pytest

from tier_gauge_core.domain.entities import (
    ComparativeWalkthroughResult,
    ExpectedProfile,
    HealthCheckResult,
    ProgressiveExecutionState,
    ScenarioResult,
    SuccessCriteria,
    TrialResult,
    TrialSpecification,
    VariantResult,
    WalkthroughResult,
)
from tier_gauge_core.domain.value_objects import ChatMessage, TokenBreakdown


def _trial(test_id="D1_T1", success=True):
    return TrialResult(
        test_id=test_id,
        user_input="book",
        output="ok",
        success=success,
        tier="good" if success else "poor",
        accuracy=0.8 if success else 0.0,
        mcd_compliant=success,
        latency_ms=100,
        token_breakdown=TokenBreakdown(input=5, output=10),
        timestamp="ts",
    )


class TestTrialSpecification:
    def test_drift_terms_prefer_expected_terms(self):
        spec = TrialSpecification(
            test_id="D1_T1",
            user_input="x",
            success_criteria=SuccessCriteria(required_elements=["time"]),
            expected_terms=["date"],
        )
        assert spec.drift_terms == ["date"]

    def test_drift_terms_fall_back_to_required_elements(self):
        spec = TrialSpecification(
            test_id="D1_T1",
            user_input="x",
            success_criteria=SuccessCriteria(required_elements=["time", "location"]),
        )
        assert spec.drift_terms == ["time", "location"]

    def test_result_defaults_to_none(self):
        assert TrialSpecification(test_id="t", user_input="x").result is None


class TestExpectedProfile:
    def test_expected_successes(self):
        assert ExpectedProfile(success_rate="4/5").expected_successes == 4

    def test_malformed_success_rate(self):
        assert ExpectedProfile(success_rate="n/a").expected_successes == 0


class TestVariantResult:
    def test_success_rate_string(self):
        result = VariantResult(
            variant_id="W1A1", variant_type="MCD", name="n", approach="mcd",
            success_count=4, total_trials=5, mcd_alignment_rate=0.8,
        )
        assert result.success_rate == "4/5"
        assert result.success_ratio == pytest.approx(0.8)
        assert result.mcd_alignment_score == 80

    def test_error_result_reports_zero_of_zero(self):
        result = VariantResult(
            variant_id="W1A1", variant_type="MCD", name="n", approach="mcd",
            total_trials=3, error="RuntimeError: boom",
        )
        assert result.success_rate == "0/0"
        assert result.success_ratio == 0.0


class TestWalkthroughResults:
    def test_iter_trials_walks_all_scenarios(self):
        variant = VariantResult(
            variant_id="W1A1", variant_type="MCD", name="n", approach="mcd",
            trials=[_trial("a"), _trial("b")],
        )
        result = WalkthroughResult(
            walkthrough_id="W1",
            domain="appointment-booking",
            tier="Q1",
            scenario_results=[
                ScenarioResult(step=1, context="c", variants=[variant]),
                ScenarioResult(step=2, context="c", variants=[variant]),
            ],
        )
        assert [t.test_id for t in result.iter_trials()] == ["a", "b", "a", "b"]

    def test_comparative_iter_trials(self):
        variant = VariantResult(
            variant_id="W1A2", variant_type="Non-MCD", name="n", approach="conversational",
            trials=[_trial("c", success=False)],
        )
        result = ComparativeWalkthroughResult(
            walkthrough_id="W1", domain="d", tier="Q4",
            results_by_approach={"mcd": [], "conversational": [variant]},
        )
        assert [t.test_id for t in result.iter_trials()] == ["c"]
        assert result.advantage.validated is False


class TestHealthCheckResult:
    def test_success(self):
        result = HealthCheckResult(model_name="m1", success=True, latency_ms=150)
        assert result.success is True
        assert result.error is None

    def test_failure(self):
        result = HealthCheckResult(model_name="m1", success=False, latency_ms=None, error="timeout")
        assert result.success is False
        assert result.error == "timeout"


class TestProgressiveExecutionState:
    def test_defaults_are_idle(self):
        state = ProgressiveExecutionState()
        assert state.active is False
        assert state.current_tier is None
        assert state.completed_tiers == []
        assert state.blocked is False


class TestTokenBreakdown:
    def test_total(self):
        assert TokenBreakdown(input=1, process=2, output=3).total == 6

    def test_negative_rejected(self):
        with pytest.raises(ValueError, match="output must be non-negative"):
            TokenBreakdown(output=-1)

    def test_frozen(self):
        breakdown = TokenBreakdown()
        with pytest.raises(AttributeError):
            breakdown.input = 5


class TestChatMessage:
    def test_to_dict(self):
        assert ChatMessage("user", "hi").to_dict() == {"role": "user", "content": "hi"}
