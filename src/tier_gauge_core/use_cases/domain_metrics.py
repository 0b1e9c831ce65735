"""
Domain Metrics

Walkthrough-level metrics and recommendations derived from scenario results.
Every percentage surfaced here is clamped to [0, 100].
"""

import logging
import math
import statistics

from tier_gauge_core.domain.constants import (
    TIER_LATENCY_EXPECTATIONS,
    TIER_MAX_LATENCY_MS,
    TIER_OPTIMIZATION_TARGETS,
    VARIANT_TYPE_MCD,
)
from tier_gauge_core.domain.entities import DomainMetrics, ScenarioResult

logger = logging.getLogger(__name__)

SUCCESS_TARGET = 0.8


def validate_percentage(value, label: str = "metric") -> float:
    """
    Clamp a percentage to [0, 100] and round to one decimal

    Non-numeric and NaN values become 0.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        logger.warning("Invalid %s value: %s, defaulting to 0", label, value)
        return 0.0
    clamped = max(0.0, min(100.0, float(value)))
    if clamped != value:
        logger.warning("%s value %s%% clamped to %s%%", label, value, clamped)
    return round(clamped, 1)


def _latencies(scenario_results: list[ScenarioResult]) -> list[int]:
    return [
        trial.latency_ms
        for scenario in scenario_results
        for variant in scenario.variants
        for trial in variant.trials
        if trial.latency_ms > 0
    ]


def resource_efficiency(avg_latency: float, tier: str) -> float:
    """
    Efficiency score for an average latency at a tier

    Linear between the tier breakpoints (100 / 85 / 60 / 20) and decaying
    exponentially beyond the poor breakpoint.
    """
    excellent, good, acceptable, poor = TIER_LATENCY_EXPECTATIONS.get(tier, TIER_LATENCY_EXPECTATIONS["Q4"])
    if avg_latency <= excellent:
        return 100
    if avg_latency <= good:
        ratio = (avg_latency - excellent) / (good - excellent)
        return round(100 - ratio * 15)
    if avg_latency <= acceptable:
        ratio = (avg_latency - good) / (acceptable - good)
        return round(85 - ratio * 25)
    if avg_latency <= poor:
        ratio = (avg_latency - acceptable) / (poor - acceptable)
        return round(60 - ratio * 40)
    excess = (avg_latency - poor) / poor
    return max(0, round(20 * math.exp(-excess * 0.5)))


def _consistency_bonus(latencies: list[int]) -> float:
    if len(latencies) < 2:
        return 10.0
    coefficient = statistics.pstdev(latencies) / statistics.fmean(latencies)
    return max(0.0, 10 - coefficient * 10)


def domain_metrics(scenario_results: list[ScenarioResult], tier: str) -> DomainMetrics:
    """
    Aggregate the trials of a walkthrough run

    A trial counts as successful when it succeeded or its quality tier is
    not poor. MCD alignment is measured over MCD-type variants only.
    """
    total = 0
    successful = 0
    mcd_total = 0
    mcd_aligned = 0
    total_latency = 0
    total_accuracy = 0.0
    fallback = False

    for scenario in scenario_results:
        for variant in scenario.variants:
            for trial in variant.trials:
                total += 1
                total_latency += trial.latency_ms
                total_accuracy += trial.accuracy * 100
                if trial.success or trial.tier != "poor":
                    successful += 1
                if variant.variant_type == VARIANT_TYPE_MCD:
                    mcd_total += 1
                    if trial.mcd_compliant:
                        mcd_aligned += 1
                max_latency = trial.max_latency_ms or TIER_MAX_LATENCY_MS.get(tier, TIER_MAX_LATENCY_MS["Q4"])
                if (
                    trial.failure_reasons
                    or trial.tier == "poor"
                    or trial.latency_ms > max_latency
                    or not trial.success
                ):
                    fallback = True

    success_rate = successful / total if total else 0.0
    avg_latency = total_latency / total if total else 0.0
    avg_accuracy = total_accuracy / total if total else 0.0
    mcd_alignment = mcd_aligned / mcd_total * 100 if mcd_total else 0.0
    user_experience = min(
        100.0,
        success_rate * 100 * 0.6 + avg_accuracy * 0.3 + _consistency_bonus(_latencies(scenario_results)) * 0.1,
    )

    return DomainMetrics(
        overall_success=total > 0 and success_rate >= SUCCESS_TARGET,
        mcd_alignment_score=validate_percentage(mcd_alignment, "MCD alignment"),
        resource_efficiency=validate_percentage(resource_efficiency(avg_latency, tier), "resource efficiency"),
        fallback_triggered=fallback,
        user_experience_score=validate_percentage(user_experience, "user experience"),
        total_trials=total,
        successful_trials=successful,
    )


def performance_consistency(latencies: list[int]) -> float:
    if len(latencies) < 2:
        return 100.0
    mean = statistics.fmean(latencies)
    return max(0.0, 100 - statistics.pstdev(latencies) / mean * 100)


def mcd_advantage(scenario_results: list[ScenarioResult]) -> int:
    """Relative MCD success advantage over non-MCD, in percent"""
    mcd_total = 0
    non_mcd_total = 0
    compared = 0
    for scenario in scenario_results:
        comparison = scenario.mcd_vs_non_mcd
        mcd = comparison.get("mcd_success", 0)
        non_mcd = comparison.get("non_mcd_success", 0)
        if mcd > 0 or non_mcd > 0:
            mcd_total += mcd
            non_mcd_total += non_mcd
            compared += 1
    if compared == 0:
        return 0
    if non_mcd_total == 0:
        return 100 if mcd_total > 0 else 0
    return round((mcd_total - non_mcd_total) / non_mcd_total * 100)


def tier_optimization(avg_latency: float, tier: str) -> float:
    optimal, acceptable = TIER_OPTIMIZATION_TARGETS.get(tier, TIER_OPTIMIZATION_TARGETS["Q4"])
    if avg_latency <= optimal:
        return 100.0
    if avg_latency <= acceptable:
        return 80.0
    return max(0.0, 80 - (avg_latency - acceptable) / acceptable * 50)


def advanced_metrics(scenario_results: list[ScenarioResult], metrics: DomainMetrics, tier: str) -> dict[str, float]:
    """
    Consistency, MCD advantage, tier optimisation, reliability and cost efficiency

    Returns:
        dict keyed by performance_consistency, mcd_advantage, tier_optimization,
        reliability_index and cost_efficiency
    """
    latencies = _latencies(scenario_results)
    avg_latency = sum(latencies) / (len(latencies) or 1)
    consistency = performance_consistency(latencies)
    reliability = metrics.user_experience_score * 0.6 + consistency * 0.4
    speed = max(0.0, 1 - avg_latency / 2000)
    return {
        "performance_consistency": round(consistency, 1),
        "mcd_advantage": mcd_advantage(scenario_results),
        "tier_optimization": tier_optimization(avg_latency, tier),
        "reliability_index": round(reliability, 1),
        "cost_efficiency": round((metrics.user_experience_score / 100 * 0.6 + speed * 0.4) * 100),
    }


def recommendations(metrics: DomainMetrics, tier: str, scenario_results: list[ScenarioResult]) -> list[str]:
    """Human-readable recommendations for a walkthrough run"""
    items = []
    if metrics.total_trials == 0:
        items.append("No trials were executed successfully - check engine and domain configuration")
    elif metrics.successful_trials / metrics.total_trials < SUCCESS_TARGET:
        rate = round(metrics.successful_trials / metrics.total_trials * 100)
        items.append(f"Success rate is {rate}% - target is 80%+")

    if metrics.mcd_alignment_score < 70:
        items.append("MCD alignment score is below 70% - review MCD principle implementation")
    if metrics.resource_efficiency < 60:
        items.append(f"Resource efficiency is {metrics.resource_efficiency}% for {tier} tier - optimize latency")

    if tier == "Q1" and metrics.resource_efficiency < 80:
        items.append("Q1 tier should prioritize speed - reduce response complexity")
    elif tier == "Q8" and metrics.user_experience_score < 80:
        items.append("Q8 tier should provide comprehensive responses - enhance detail level")

    mcd = sum(s.mcd_vs_non_mcd.get("mcd_success", 0) for s in scenario_results)
    non_mcd = sum(s.mcd_vs_non_mcd.get("non_mcd_success", 0) for s in scenario_results)
    if mcd <= non_mcd:
        items.append("MCD approach is not outperforming Non-MCD - review MCD implementation")
    elif non_mcd > 0:
        items.append(f"MCD approach shows {round(mcd / non_mcd * 100)}% better performance than Non-MCD")
    else:
        items.append("MCD approach succeeded while Non-MCD failed completely")

    return items or ["Performance metrics are within acceptable ranges"]
