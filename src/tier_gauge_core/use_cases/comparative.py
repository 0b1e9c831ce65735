"""
Comparative Analysis

Ranks prompting approaches against each other and checks whether the MCD
approach delivers the advantages it is expected to.
"""

import logging
import math
import statistics

from tier_gauge_core.domain.constants import (
    APPROACH_CONVERSATIONAL,
    APPROACH_MCD,
    APPROACHES,
    DEFAULT_BASELINE_METRICS,
    NON_MCD_APPROACHES,
)
from tier_gauge_core.domain.entities import (
    AdvantageValidation,
    ComparativeAnalysis,
    VariantResult,
)
from tier_gauge_core.harness_config import ScoringConfig

logger = logging.getLogger(__name__)

# Assumed metrics of the alternatives when only MCD variants ran
_EMPTY_ALTERNATIVE_METRICS = {
    "success_rate": 0.0,
    "avg_tokens": 100.0,
    "avg_latency": 1000.0,
    "accuracy": 0.0,
}


def variant_efficiency(success_count: int, total_trials: int, avg_latency: float, avg_tokens: float) -> float:
    """Success rate weighted by speed (2s scale) and token economy (100-token scale)"""
    if total_trials == 0:
        return 0.0
    latency_score = max(0.0, 1 - avg_latency / 2000)
    token_score = max(0.0, 1 - avg_tokens / 100)
    return success_count / total_trials * 0.5 + latency_score * 0.3 + token_score * 0.2


def average_success_rate(results: list[VariantResult]) -> float:
    successes = sum(r.success_count for r in results)
    trials = sum(r.total_trials for r in results)
    return successes / trials if trials else 0.0


def average_latency(results: list[VariantResult]) -> float:
    return statistics.fmean(r.avg_latency for r in results) if results else 0.0


def consistency(results: list[VariantResult]) -> float:
    """1 - coefficient of variation of the variants' average latencies"""
    if len(results) < 2:
        return 1.0
    latencies = [r.avg_latency for r in results]
    mean = statistics.fmean(latencies)
    if mean == 0:
        return 1.0
    return max(0.0, 1 - statistics.pstdev(latencies) / mean)


def approach_metrics(results: list[VariantResult]) -> dict[str, float]:
    """Aggregate success rate, tokens, latency and accuracy of a result group"""
    if not results:
        return dict(DEFAULT_BASELINE_METRICS)
    return {
        "success_rate": average_success_rate(results),
        "avg_tokens": statistics.fmean(r.avg_tokens for r in results),
        "avg_latency": average_latency(results),
        "accuracy": statistics.fmean(r.avg_accuracy for r in results),
    }


def rank_approaches(results_by_approach: dict[str, list[VariantResult]]) -> list[str]:
    """
    Order approaches by composite score, best first

    Score = 0.4 success rate + 0.3 efficiency + 0.2 inverse latency + 0.1
    consistency. Approaches without results or with a zero score are omitted.
    """
    scores = {}
    for approach in APPROACHES:
        results = results_by_approach.get(approach) or []
        if not results:
            continue
        efficiency = statistics.fmean(r.efficiency for r in results)
        inverse_latency = max(0.0, 1 - average_latency(results) / 2000)
        scores[approach] = (
            average_success_rate(results) * 0.4
            + efficiency * 0.3
            + inverse_latency * 0.2
            + consistency(results) * 0.1
        )
    ranked = [a for a in APPROACHES if scores.get(a, 0) > 0]
    return sorted(ranked, key=lambda a: scores[a], reverse=True)


def _ratio(value: float, baseline: float) -> float:
    if baseline > 0:
        return value / baseline
    return 10.0 if value > 0 else 0.0


def analyze_approaches(results_by_approach: dict[str, list[VariantResult]]) -> ComparativeAnalysis:
    """
    Ratios of every approach relative to the conversational baseline

    Falls back to a fixed baseline when no conversational results exist.
    """
    conversational = results_by_approach.get(APPROACH_CONVERSATIONAL) or []
    baseline = approach_metrics(conversational)
    analysis = ComparativeAnalysis()

    for approach in APPROACHES:
        results = results_by_approach.get(approach) or []
        if not results:
            continue
        metrics = approach_metrics(results)
        success = _ratio(metrics["success_rate"], baseline["success_rate"])
        tokens = baseline["avg_tokens"] / metrics["avg_tokens"] if metrics["avg_tokens"] > 0 else 1.0
        latency = baseline["avg_latency"] / metrics["avg_latency"] if metrics["avg_latency"] > 0 else 1.0
        accuracy = _ratio(metrics["accuracy"], baseline["accuracy"])

        analysis.success_ratios[approach] = success
        analysis.token_efficiency_ratios[approach] = tokens
        analysis.latency_ratios[approach] = latency
        analysis.accuracy_ratios[approach] = accuracy
        analysis.consistency_scores[approach] = consistency(results)
        analysis.overall_scores[approach] = success * 0.3 + tokens * 0.25 + latency * 0.25 + accuracy * 0.2

    return analysis


def confidence_level(mcd_results: list[VariantResult], other_results: list[VariantResult]) -> float:
    """
    Effect-size approximation scaled by sample size, in [0, 1]

    Effect size is the difference of the mean per-variant success rates.
    """
    if not mcd_results or not other_results:
        return 0.0
    mcd_mean = statistics.fmean(r.success_count / max(1, r.total_trials) for r in mcd_results)
    other_mean = statistics.fmean(r.success_count / max(1, r.total_trials) for r in other_results)
    effect = abs(mcd_mean - other_mean)
    weight = min(1.0, math.sqrt(len(mcd_results) + len(other_results)) / 10)
    return min(1.0, effect * 2 * weight)


def validate_advantage(
    mcd_results: list[VariantResult],
    other_results: list[VariantResult],
    scoring: ScoringConfig | None = None,
) -> AdvantageValidation:
    """
    Check the MCD advantage over the non-MCD approaches

    Each unmet threshold adds a concern and a recommendation; the analysis
    itself never aborts.

    Args:
        mcd_results: Variant results of the MCD approach
        other_results: Variant results of the non-MCD approaches
        scoring: Advantage thresholds and significance cut-off

    Returns:
        AdvantageValidation
    """
    scoring = scoring or ScoringConfig()
    if not mcd_results:
        return AdvantageValidation(
            validated=False,
            concerns=["No MCD results available for comparison"],
            recommendations=["Add MCD variants to domains"],
        )

    mcd = approach_metrics(mcd_results)
    other = approach_metrics(other_results) if other_results else dict(_EMPTY_ALTERNATIVE_METRICS)

    if other["success_rate"] > 0:
        success_advantage = mcd["success_rate"] / other["success_rate"]
    else:
        success_advantage = 10.0 if mcd["success_rate"] > 0 else 1.0
    token_advantage = other["avg_tokens"] / mcd["avg_tokens"] if mcd["avg_tokens"] > 0 else 1.0
    latency_advantage = other["avg_latency"] / mcd["avg_latency"] if mcd["avg_latency"] > 0 else 1.0

    concerns = []
    recommendations = []
    if success_advantage < scoring.success_advantage:
        concerns.append(
            f"MCD success advantage below expected ({success_advantage:.2f}x vs expected {scoring.success_advantage}x+)"
        )
        recommendations.append("Review MCD implementation or adjust evaluation criteria")
    if token_advantage < scoring.token_advantage:
        concerns.append(
            f"Token efficiency advantage below expected ({token_advantage:.2f}x vs expected {scoring.token_advantage}x+)"
        )
        recommendations.append("Verify MCD prompt design for token efficiency")
    if latency_advantage < scoring.latency_advantage:
        concerns.append(
            f"Latency advantage below expected ({latency_advantage:.2f}x vs expected {scoring.latency_advantage}x+)"
        )
        recommendations.append("Optimize MCD processing for better latency")

    confidence = confidence_level(mcd_results, other_results)
    significant = confidence >= scoring.significance_confidence
    return AdvantageValidation(
        validated=not concerns and significant,
        concerns=concerns,
        recommendations=recommendations,
        confidence_level=confidence,
        statistical_significance=significant,
        advantages={
            "success_rate": success_advantage,
            "token_efficiency": token_advantage,
            "latency_advantage": latency_advantage,
            "overall": (success_advantage + token_advantage + latency_advantage) / 3,
        },
    )


def validate_grouped_advantage(
    results_by_approach: dict[str, list[VariantResult]],
    scoring: ScoringConfig | None = None,
) -> AdvantageValidation:
    """validate_advantage over results grouped by approach (hybrid excluded)"""
    others = [r for a in NON_MCD_APPROACHES for r in results_by_approach.get(a) or []]
    return validate_advantage(results_by_approach.get(APPROACH_MCD) or [], others, scoring)


def comparative_summary(
    domain: str,
    results_by_approach: dict[str, list[VariantResult]],
    rankings: list[str],
    duration_ms: float,
) -> str:
    """Multi-line text summary of a comparative run"""
    top = rankings[0] if rankings else "unknown"
    position = f"#{rankings.index(APPROACH_MCD) + 1}" if APPROACH_MCD in rankings else "Not ranked"
    lines = [
        f"{domain} Comparative Analysis ({round(duration_ms)}ms):",
        f"Top Performer: {top}",
        f"Rankings: {' > '.join(rankings)}",
        f"MCD Position: {position}",
    ]
    mcd = results_by_approach.get(APPROACH_MCD) or []
    conversational = results_by_approach.get(APPROACH_CONVERSATIONAL) or []
    if mcd and conversational:
        conversational_rate = average_success_rate(conversational)
        if conversational_rate > 0:
            advantage = f"{average_success_rate(mcd) / conversational_rate:.1f}"
        else:
            advantage = "N/A"
        lines.append(f"MCD vs Conversational: {advantage}x advantage")
    return "\n".join(lines) + "\n"


def comparative_recommendations(
    analysis: ComparativeAnalysis,
    rankings: list[str],
    advantage: AdvantageValidation,
) -> list[str]:
    items = []
    if rankings:
        top = rankings[0]
        items.append(f"{top} approach showed best overall performance")
        if top != APPROACH_MCD:
            items.append(f"Consider adopting {top} techniques in MCD implementation")

    if not advantage.validated:
        items.extend(advantage.recommendations)

    ratios = analysis.token_efficiency_ratios
    if ratios:
        most_efficient = max(ratios, key=ratios.get)
        if most_efficient != APPROACH_MCD:
            items.append(f"{most_efficient} approach shows superior token efficiency")

    return items or ["Comparative analysis completed - all approaches performing within expected ranges"]
