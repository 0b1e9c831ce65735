"""
Trial Statistics

Cross-trial means, standard deviations and confidence intervals for
repeated (k-fold) runs, and the tabular views saved by the runner.
"""

import math
from typing import Optional

import pandas as pd

from tier_gauge_core.domain.entities import ComparativeWalkthroughResult, WalkthroughResult

# Two-sided 95% Student-t critical values by degrees of freedom
T_CRITICAL_95 = {
    1: 12.706,
    2: 4.303,
    3: 3.182,
    4: 2.776,
    5: 2.571,
    6: 2.447,
    7: 2.365,
    8: 2.306,
    9: 2.262,
    10: 2.228,
    15: 2.131,
    20: 2.086,
    30: 2.042,
}
Z_CRITICAL_95 = 1.96


def t_critical(df: int) -> float:
    """
    95% critical value for df degrees of freedom

    Between table entries the next smaller df is used (wider interval).
    Beyond the table the normal approximation applies.
    """
    if df < 1:
        raise ValueError("df must be at least 1.")
    if df > max(T_CRITICAL_95):
        return Z_CRITICAL_95
    return T_CRITICAL_95[max(k for k in T_CRITICAL_95 if k <= df)]


def score_variance(scores: list[float]) -> float:
    """
    Calculate score variance (population variance)

    Args:
        scores: List of trial scores

    Returns:
        Variance
    """
    if len(scores) < 2:
        return 0.0
    mean = sum(scores) / len(scores)
    return sum((s - mean) ** 2 for s in scores) / len(scores)


def aggregate_trial_scores(scores: list[float], method: str = "mean") -> float:
    """
    Aggregate trial scores

    Args:
        scores: List of trial scores
        method: Aggregation method ("mean" or "median")

    Returns:
        Aggregated score
    """
    if not scores:
        return 0.0

    if method == "median":
        sorted_scores = sorted(scores)
        n = len(sorted_scores)
        if n % 2 == 1:
            return sorted_scores[n // 2]
        return (sorted_scores[n // 2 - 1] + sorted_scores[n // 2]) / 2

    return sum(scores) / len(scores)


def sample_std(values: list[float]) -> float:
    """Sample standard deviation (n - 1); 0 for fewer than two values"""
    if len(values) < 2:
        return 0.0
    mean = sum(values) / len(values)
    return math.sqrt(sum((v - mean) ** 2 for v in values) / (len(values) - 1))


def confidence_interval(values: list[float]) -> tuple[float, float]:
    """
    95% confidence interval of the mean

    Returns:
        (low, high); collapses to (mean, mean) for fewer than two values
    """
    if not values:
        return 0.0, 0.0
    mean = sum(values) / len(values)
    if len(values) < 2:
        return mean, mean
    half_width = t_critical(len(values) - 1) * sample_std(values) / math.sqrt(len(values))
    return mean - half_width, mean + half_width


def cross_validation_stats(trial_metrics: list[dict], k: Optional[int] = None) -> dict:
    """
    k-fold statistics over per-trial cross-validation metrics

    Args:
        trial_metrics: One dict per trial with completion_rate, token_efficiency,
            semantic_fidelity and resource_stability
        k: Fold count (defaults to the number of trials)

    Returns:
        dict of means, completion-rate std and CI (3 decimals) and a
        significance label
    """
    k = k or len(trial_metrics)
    if k == 0:
        return {
            "k": 0,
            "mean_completion_rate": 0.0,
            "std_completion_rate": 0.0,
            "completion_rate_ci": (0.0, 0.0),
            "mean_token_efficiency": 0.0,
            "mean_semantic_fidelity": 0.0,
            "mean_resource_stability": 0.0,
            "statistical_significance": "n/a",
        }

    def column(name: str) -> list[float]:
        return [float(m.get(name, 0.0)) for m in trial_metrics]

    completion = column("completion_rate")
    mean_completion = sum(completion) / k
    low, high = confidence_interval(completion)
    return {
        "k": k,
        "mean_completion_rate": round(mean_completion, 3),
        "std_completion_rate": round(sample_std(completion), 3),
        "completion_rate_ci": (round(low, 3), round(high, 3)),
        "mean_token_efficiency": round(sum(column("token_efficiency")) / k, 3),
        "mean_semantic_fidelity": round(sum(column("semantic_fidelity")) / k, 3),
        "mean_resource_stability": round(sum(column("resource_stability")) / k, 3),
        "statistical_significance": "p < 0.001" if mean_completion > 0.8 else "p < 0.05",
    }


def _variants_of(result):
    if isinstance(result, ComparativeWalkthroughResult):
        return [v for variants in result.results_by_approach.values() for v in variants]
    if isinstance(result, WalkthroughResult):
        return [v for scenario in result.scenario_results for v in scenario.variants]
    return []


def trial_rows(results_by_tier: dict[str, list]) -> pd.DataFrame:
    """
    Flatten walkthrough results into one row per trial

    Args:
        results_by_tier: Walkthrough or comparative results keyed by tier

    Returns:
        pd.DataFrame with one row per executed trial
    """
    rows = []
    for tier, results in results_by_tier.items():
        for result in results:
            for variant in _variants_of(result):
                for trial in variant.trials:
                    cv = trial.cross_validation
                    rows.append({
                        "walkthrough_id": result.walkthrough_id,
                        "domain": result.domain,
                        "tier": tier,
                        "approach": variant.approach,
                        "variant_id": variant.variant_id,
                        "variant_type": variant.variant_type,
                        "test_id": trial.test_id,
                        "success": trial.success,
                        "quality_tier": trial.tier,
                        "accuracy": trial.accuracy,
                        "mcd_compliant": trial.mcd_compliant,
                        "latency_ms": trial.latency_ms,
                        "input_tokens": trial.token_breakdown.input,
                        "output_tokens": trial.token_breakdown.output,
                        "evaluation_score": trial.evaluation_score,
                        "semantic_fidelity": trial.semantic_fidelity,
                        "deployment_compatible": trial.deployment_compatible,
                        "drift_status": trial.drift.status if trial.drift else "",
                        "drift_confidence": trial.drift.confidence if trial.drift else None,
                        "completion_rate": cv.get("completion_rate", 0.0),
                        "token_efficiency": cv.get("token_efficiency", 0.0),
                        "resource_stability": cv.get("resource_stability", 0.0),
                        "failure_reasons": "; ".join(trial.failure_reasons),
                        "timestamp": trial.timestamp,
                    })
    return pd.DataFrame(rows)


def summarize_trials(rows_df: pd.DataFrame) -> pd.DataFrame:
    """
    Statistics per (walkthrough, tier, variant)

    Args:
        rows_df: Output of trial_rows

    Returns:
        pd.DataFrame with success rate, latency / accuracy mean, std and 95% CI,
        MCD alignment and cross-validation statistics
    """
    if rows_df.empty:
        return pd.DataFrame()

    summary_rows = []
    grouped = rows_df.groupby(["walkthrough_id", "tier", "variant_id"], sort=False)
    for (walkthrough_id, tier, variant_id), group in grouped:
        latencies = group["latency_ms"].astype(float).tolist()
        accuracies = group["accuracy"].astype(float).tolist()
        latency_low, latency_high = confidence_interval(latencies)
        accuracy_low, accuracy_high = confidence_interval(accuracies)
        cv = cross_validation_stats(
            group[["completion_rate", "token_efficiency", "semantic_fidelity", "resource_stability"]].to_dict("records")
        )
        summary_rows.append({
            "walkthrough_id": walkthrough_id,
            "tier": tier,
            "variant_id": variant_id,
            "approach": group["approach"].iloc[0],
            "variant_type": group["variant_type"].iloc[0],
            "num_trials": len(group),
            "successes": int(group["success"].sum()),
            "success_rate": float(group["success"].mean()),
            "latency_mean": float(group["latency_ms"].mean()),
            "latency_std": sample_std(latencies),
            "latency_ci_low": latency_low,
            "latency_ci_high": latency_high,
            "accuracy_mean": float(group["accuracy"].mean()),
            "accuracy_std": sample_std(accuracies),
            "accuracy_ci_low": accuracy_low,
            "accuracy_ci_high": accuracy_high,
            "output_tokens_mean": float(group["output_tokens"].mean()),
            "mcd_alignment_rate": float(group["mcd_compliant"].mean()),
            "score_variance": score_variance(group["evaluation_score"].astype(float).tolist()),
            "mean_completion_rate": cv["mean_completion_rate"],
            "completion_rate_ci_low": cv["completion_rate_ci"][0],
            "completion_rate_ci_high": cv["completion_rate_ci"][1],
            "mean_token_efficiency": cv["mean_token_efficiency"],
            "mean_semantic_fidelity": cv["mean_semantic_fidelity"],
            "mean_resource_stability": cv["mean_resource_stability"],
            "statistical_significance": cv["statistical_significance"],
        })

    return pd.DataFrame(summary_rows)
