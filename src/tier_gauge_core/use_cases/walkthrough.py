"""
Walkthrough Execution

Runs a domain walkthrough at one tier, either with the variant matching a
single approach per scenario or comparatively across every variant. Both
runs consult the result cache.
"""

import asyncio
import logging
import time
from datetime import datetime

from tier_gauge_core.domain.constants import (
    APPROACH_MCD,
    APPROACHES,
    VARIANT_TYPE_MCD,
)
from tier_gauge_core.domain.entities import (
    ComparativeWalkthroughResult,
    DomainMetrics,
    Scenario,
    ScenarioResult,
    Variant,
    VariantResult,
    Walkthrough,
    WalkthroughResult,
)
from tier_gauge_core.execution_context import ExecutionContext
from tier_gauge_core.harness_config import HarnessConfig
from tier_gauge_core.infrastructure.model_clients.base import CompletionCapability
from tier_gauge_core.infrastructure.result_cache import ResultCache
from tier_gauge_core.scoring.scorer import categorize_approach, normalize_approach
from tier_gauge_core.use_cases import comparative
from tier_gauge_core.use_cases.domain_metrics import advanced_metrics, domain_metrics, recommendations
from tier_gauge_core.use_cases.trial_executor import run_trial

logger = logging.getLogger(__name__)

# Variant id / name fragments selecting the variant of an approach
VARIANT_SELECTION_PATTERNS = {
    "mcd": ["mcd", "structured", "w1a1", "w2b1", "w3c1"],
    "few_shot": ["few-shot", "pattern", "w1a3", "w2b3", "w3c2"],
    "system_role": ["system", "expert", "role", "w1a4", "w2b4", "w3c3"],
    "hybrid": ["hybrid", "combined", "w1a5", "w2b5", "w3c4"],
    "conversational": ["conversational", "natural", "w1a2", "w2b2", "w3c5"],
}


def select_variant_for_approach(scenario: Scenario, approach: str) -> Variant | None:
    """
    Pick the variant of a scenario matching an approach

    Unknown approaches use the MCD patterns. Falls back to the first variant
    when nothing matches.
    """
    key = normalize_approach(approach) or approach
    patterns = VARIANT_SELECTION_PATTERNS.get(key, VARIANT_SELECTION_PATTERNS[APPROACH_MCD])
    for variant in scenario.variants:
        variant_id = variant.variant_id.lower()
        name = variant.name.lower()
        if any(p in variant_id or p in name for p in patterns):
            return variant

    if not scenario.variants:
        return None
    logger.warning("No variant found for %s in step %d, using first variant", approach, scenario.step)
    return scenario.variants[0]


async def execute_variant(
    variant: Variant,
    tier: str,
    engine: CompletionCapability,
    *,
    context: ExecutionContext | None = None,
    config: HarnessConfig | None = None,
) -> VariantResult:
    """
    Run the trials of a variant strictly in sequence and aggregate them

    The stop signal is polled before every trial; trials already run are kept.

    Args:
        variant: Variant to execute
        tier: Capability tier
        engine: Bound completion engine
        context: Execution context (stop signal)
        config: Harness configuration (timeouts, scoring)

    Returns:
        VariantResult
    """
    config = config or HarnessConfig()
    approach = categorize_approach(variant)
    timeout = config.execution.trial_timeout_for(tier)

    trials = []
    for spec in variant.trials:
        if context is not None and context.is_stop_requested():
            logger.info("Stop requested, leaving variant %s after %d trials", variant.variant_id, len(trials))
            break
        executed = await run_trial(
            spec,
            variant,
            engine,
            tier=tier,
            timeout_seconds=timeout,
            scoring=config.scoring,
            approach=approach,
        )
        trials.append(executed.result)
        logger.debug(
            "Trial %s: %s (%dms, %s)",
            spec.test_id, "PASS" if executed.result.success else "FAIL",
            executed.result.latency_ms, executed.result.tier,
        )

    total = len(trials)
    success_count = sum(1 for t in trials if t.success)
    avg_latency = round(sum(t.latency_ms for t in trials) / total) if total else 0
    avg_tokens = round(sum(t.token_breakdown.output for t in trials) / total) if total else 0
    expected = variant.expected_profile

    return VariantResult(
        variant_id=variant.variant_id,
        variant_type=variant.variant_type,
        name=variant.name,
        approach=approach,
        trials=trials,
        success_count=success_count,
        total_trials=total,
        avg_latency=avg_latency,
        avg_tokens=avg_tokens,
        avg_accuracy=sum(t.accuracy for t in trials) / total if total else 0.0,
        mcd_alignment_rate=sum(1 for t in trials if t.mcd_compliant) / total if total else 0.0,
        efficiency=comparative.variant_efficiency(success_count, total, avg_latency, avg_tokens),
        compared_to_expected={
            "latency_diff": avg_latency - expected.avg_latency,
            "token_diff": avg_tokens - expected.avg_tokens,
            "success_rate_diff": success_count - expected.expected_successes,
        },
    )


def error_variant_result(variant: Variant, error: Exception) -> VariantResult:
    """Zero-score result kept in place of a variant that failed to execute"""
    return VariantResult(
        variant_id=variant.variant_id,
        variant_type=variant.variant_type,
        name=variant.name,
        approach=categorize_approach(variant),
        total_trials=len(variant.trials),
        error=f"{type(error).__name__}: {error}",
    )


def mcd_vs_non_mcd(mcd: VariantResult | None, non_mcd: VariantResult | None) -> dict[str, float]:
    return {
        "mcd_success": mcd.success_count if mcd else 0,
        "non_mcd_success": non_mcd.success_count if non_mcd else 0,
        "mcd_avg_latency": mcd.avg_latency if mcd else 0,
        "non_mcd_avg_latency": non_mcd.avg_latency if non_mcd else 0,
        "mcd_avg_tokens": mcd.avg_tokens if mcd else 0,
        "non_mcd_avg_tokens": non_mcd.avg_tokens if non_mcd else 0,
    }


def error_walkthrough_result(walkthrough: Walkthrough | None, domain: str, tier: str, error: Exception) -> WalkthroughResult:
    """Result recorded for a walkthrough that failed as a whole"""
    walkthrough_id = walkthrough.walkthrough_id if walkthrough is not None else f"{domain}-error"
    return WalkthroughResult(
        walkthrough_id=walkthrough_id,
        domain=domain,
        tier=tier,
        domain_metrics=DomainMetrics(fallback_triggered=True),
        recommendations=[f"Execution failed: {error}"],
        timestamp=datetime.now().isoformat(),
        error=str(error),
    )


def _publish(context: ExecutionContext | None, phase: str, completed: int, total: int, **extra) -> None:
    if context is not None:
        context.progress.publish(phase, completed, total, **extra)


async def run_domain_walkthrough(
    walkthrough: Walkthrough,
    tier: str,
    engine: CompletionCapability,
    *,
    approach: str = APPROACH_MCD,
    context: ExecutionContext | None = None,
    config: HarnessConfig | None = None,
) -> WalkthroughResult:
    """
    Run one variant per scenario, selected by approach

    Args:
        walkthrough: Walkthrough to run
        tier: Capability tier
        engine: Bound completion engine
        approach: Approach whose variant is selected in every scenario
        context: Execution context
        config: Harness configuration

    Returns:
        WalkthroughResult with domain metrics and recommendations
    """
    started = time.perf_counter()
    scenario_results = []
    for index, scenario in enumerate(walkthrough.scenarios):
        if context is not None and context.is_stop_requested():
            break
        variants = []
        variant = select_variant_for_approach(scenario, approach)
        if variant is None:
            logger.error("No variant available for %s in step %d", approach, scenario.step)
        else:
            _publish(
                context, "execution", index, len(walkthrough.scenarios),
                walkthrough=walkthrough.walkthrough_id, tier=tier, variant=variant.variant_id,
            )
            variants.append(await execute_variant(variant, tier, engine, context=context, config=config))

        selected = variants[0] if variants else None
        is_mcd = selected is not None and selected.variant_type == VARIANT_TYPE_MCD
        scenario_results.append(
            ScenarioResult(
                step=scenario.step,
                context=scenario.context,
                variants=variants,
                mcd_vs_non_mcd=mcd_vs_non_mcd(selected if is_mcd else None, None if is_mcd else selected),
            )
        )

    metrics = domain_metrics(scenario_results, tier)
    return WalkthroughResult(
        walkthrough_id=walkthrough.walkthrough_id,
        domain=walkthrough.domain,
        tier=tier,
        scenario_results=scenario_results,
        domain_metrics=metrics,
        recommendations=recommendations(metrics, tier, scenario_results),
        execution_time_ms=round((time.perf_counter() - started) * 1000),
        timestamp=datetime.now().isoformat(),
        approach=approach,
        advanced_metrics=advanced_metrics(scenario_results, metrics, tier),
    )


async def run_comparative_evaluation(
    walkthrough: Walkthrough,
    tier: str,
    engine: CompletionCapability,
    *,
    context: ExecutionContext | None = None,
    cache: ResultCache | None = None,
    config: HarnessConfig | None = None,
) -> ComparativeWalkthroughResult:
    """
    Run every variant of every scenario and compare approaches

    Variant results are cached individually. A variant that raises is
    recorded as an error result so success-rate denominators stay intact.
    """
    config = config or HarnessConfig()
    started = time.perf_counter()
    results: dict[str, list[VariantResult]] = {a: [] for a in APPROACHES}
    total = sum(len(s.variants) for s in walkthrough.scenarios)
    completed = 0

    for scenario in walkthrough.scenarios:
        for variant in scenario.variants:
            if context is not None and context.is_stop_requested():
                break
            approach = categorize_approach(variant)
            key = ResultCache.make_key(walkthrough.walkthrough_id, approach, tier, {"variant": variant.variant_id})
            cached = cache.get(key) if cache is not None else None
            if cached is not None:
                logger.info("Using cached variant result for %s (%s)", variant.variant_id, approach)
                results.setdefault(approach, []).append(cached)
                completed += 1
                continue

            _publish(
                context, "execution", completed, total,
                walkthrough=walkthrough.walkthrough_id, tier=tier, variant=variant.variant_id,
            )
            try:
                variant_result = await execute_variant(variant, tier, engine, context=context, config=config)
                if cache is not None and not (context is not None and context.is_stop_requested()):
                    cache.set(key, variant_result, tier, {"approach": approach})
            except Exception as e:
                logger.error("Failed to execute variant %s: %s", variant.variant_id, e)
                variant_result = error_variant_result(variant, e)
            results.setdefault(approach, []).append(variant_result)
            completed += 1

    analysis = comparative.analyze_approaches(results)
    rankings = comparative.rank_approaches(results)
    advantage = comparative.validate_grouped_advantage(results, config.scoring)
    duration_ms = (time.perf_counter() - started) * 1000
    return ComparativeWalkthroughResult(
        walkthrough_id=walkthrough.walkthrough_id,
        domain=walkthrough.domain,
        tier=tier,
        results_by_approach=results,
        analysis=analysis,
        rankings=rankings,
        advantage=advantage,
        recommendations=comparative.comparative_recommendations(analysis, rankings, advantage),
        summary=comparative.comparative_summary(walkthrough.domain, results, rankings, duration_ms),
        execution_time_ms=round(duration_ms),
        timestamp=datetime.now().isoformat(),
    )


async def run_walkthrough(
    walkthrough: Walkthrough,
    tier: str,
    engine: CompletionCapability,
    *,
    comparative_run: bool = False,
    approach: str = APPROACH_MCD,
    context: ExecutionContext | None = None,
    cache: ResultCache | None = None,
    config: HarnessConfig | None = None,
) -> WalkthroughResult | ComparativeWalkthroughResult:
    """
    Cache-aware walkthrough run bounded by the tier's walkthrough timeout

    Any failure, including the timeout, yields an error WalkthroughResult.
    """
    config = config or HarnessConfig()
    key = ResultCache.make_key(
        walkthrough.walkthrough_id, approach, tier, {"comparative": comparative_run, "approach": approach}
    )
    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            logger.info("Using cached result for %s-%s (%s)", walkthrough.domain, tier, approach)
            return cached

    if comparative_run:
        run = run_comparative_evaluation(walkthrough, tier, engine, context=context, cache=cache, config=config)
    else:
        run = run_domain_walkthrough(walkthrough, tier, engine, approach=approach, context=context, config=config)

    try:
        result = await asyncio.wait_for(run, timeout=config.execution.walkthrough_timeout_for(tier))
    except asyncio.TimeoutError:
        message = f"Walkthrough timed out after {config.execution.walkthrough_timeout_for(tier)}s"
        logger.error("%s [%s]: %s", walkthrough.walkthrough_id, tier, message)
        return error_walkthrough_result(walkthrough, walkthrough.domain, tier, TimeoutError(message))
    except Exception as e:
        logger.exception("Walkthrough %s [%s] failed", walkthrough.walkthrough_id, tier)
        return error_walkthrough_result(walkthrough, walkthrough.domain, tier, e)

    stopped = context is not None and context.is_stop_requested()
    if cache is not None and not stopped:
        cache.set(key, result, tier, {"comparative": comparative_run, "approach": approach})
    return result
