"""
Trial Execution

Runs one trial against a completion engine and attaches the scored result
to a copy of the trial specification.
"""

import asyncio
import logging
import re
import time
import tracemalloc
from dataclasses import replace
from datetime import datetime

from tier_gauge_core.domain.constants import STORED_OUTPUT_CHARS, TIER_EVALUATION_SCORES
from tier_gauge_core.domain.entities import TrialResult, TrialSpecification, Variant
from tier_gauge_core.domain.value_objects import (
    BenchmarkComparison,
    ChatMessage,
    CompletionResponse,
    TokenBreakdown,
)
from tier_gauge_core.harness_config import ScoringConfig
from tier_gauge_core.infrastructure.model_clients.base import CompletionCapability
from tier_gauge_core.scoring.domains import infer_domain
from tier_gauge_core.scoring.drift_detector import analyze_domain_drift
from tier_gauge_core.scoring.scorer import categorize_approach, generation_options, score
from tier_gauge_core.scoring.text_scorers import estimate_tokens

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\[.*?\]")


def build_prompt(template: str, user_input: str) -> str:
    """
    Substitute the trial input into a variant template

    Every bracketed placeholder is replaced by the input. A template without
    a placeholder gets the input appended on its own line.
    """
    if not template:
        return user_input
    if _PLACEHOLDER_RE.search(template):
        return _PLACEHOLDER_RE.sub(lambda _: user_input, template)
    return f"{template}\n{user_input}"


def semantic_fidelity(output: str, expected_terms: list[str]) -> float:
    """Share of expected terms present as whole words in the output"""
    if not expected_terms or not output or not output.strip():
        return 0.0
    words = set(re.sub(r"[^\w\s]", " ", output.lower()).split())
    expected = {t.lower() for t in expected_terms}
    return sum(1 for t in expected if t in words) / len(expected_terms)


def deployment_compatible(tier: str, tokens: int, latency_ms: float) -> bool:
    """Whether a trial profile is suitable for constrained deployment"""
    if latency_ms > 1000 and tokens > 150:
        return False
    if tier == "Q8" and latency_ms > 800:
        return False
    if tokens > 140 and latency_ms > 600:
        return False
    return True


def cross_validation_metrics(tokens: int, latency_ms: float, max_tokens: int, aligned: bool) -> dict:
    """
    Per-trial metrics used by cross-validation tables

    Returns:
        dict with completion_rate, token_efficiency and resource_stability in [0, 1]
    """
    completion_rate = 1.0 if tokens > 10 else 0.0
    token_efficiency = min(1.0, max_tokens / tokens) if tokens > 0 else 0.0
    latency_stability = max(0.0, 1 - latency_ms / 2000) if latency_ms > 0 else 1.0
    semantic_stability = 1.0 if aligned else 0.5
    return {
        "completion_rate": completion_rate,
        "token_efficiency": token_efficiency,
        "resource_stability": min(1.0, (latency_stability + semantic_stability) / 2),
    }


def error_trial_result(spec: TrialSpecification, message: str, latency_ms: int = 0, approach: str = "") -> TrialResult:
    """Zero-score result recorded in place of a failed trial"""
    return TrialResult(
        test_id=spec.test_id,
        user_input=spec.user_input,
        output="",
        success=False,
        tier="poor",
        accuracy=0.0,
        mcd_compliant=False,
        latency_ms=latency_ms,
        token_breakdown=TokenBreakdown(),
        timestamp=datetime.now().isoformat(),
        failure_reasons=[f"Execution error: {message}"],
        approach=approach,
        evaluation_score=0.0,
        max_latency_ms=spec.success_criteria.max_latency_ms,
        error=message,
    )


def _benchmark_comparison(spec: TrialSpecification, latency_ms: int, output_tokens: int) -> BenchmarkComparison:
    if spec.benchmark is None:
        return BenchmarkComparison()
    latency_diff = round(latency_ms - spec.benchmark.expected_latency_ms)
    expected_tokens = spec.benchmark.expected_tokens
    if expected_tokens is None:
        expected_tokens = estimate_tokens(spec.benchmark.expected_output)
    token_diff = output_tokens - expected_tokens
    return BenchmarkComparison(
        latency_diff=latency_diff,
        token_diff=token_diff,
        performance_better=latency_diff < 0,
    )


async def run_trial(
    spec: TrialSpecification,
    variant: Variant,
    engine: CompletionCapability,
    *,
    tier: str = "Q4",
    timeout_seconds: float | None = None,
    scoring: ScoringConfig | None = None,
    approach: str | None = None,
) -> TrialSpecification:
    """
    Execute a single trial.

    Failures of any kind (engine errors, timeouts, malformed responses)
    produce a failed result instead of raising.

    Args:
        spec: Trial specification
        variant: Variant supplying the prompt template
        engine: Bound completion engine
        tier: Capability tier the engine represents
        timeout_seconds: Per-trial timeout (None = no timeout)
        scoring: Tuned cut-offs
        approach: Approach identifier (categorized from the variant when omitted)

    Returns:
        A copy of spec with the TrialResult attached
    """
    scoring = scoring or ScoringConfig()
    approach = approach or categorize_approach(variant)
    started = time.perf_counter()

    try:
        prompt = build_prompt(variant.prompt, spec.user_input)
        options = generation_options(spec, approach, variant.variant_type)
        memory_before = tracemalloc.get_traced_memory()[0] if tracemalloc.is_tracing() else None

        call = engine.complete(
            [ChatMessage(role="user", content=prompt)],
            max_tokens=options["max_tokens"],
            temperature=options["temperature"],
        )
        response = await asyncio.wait_for(call, timeout=timeout_seconds)
        if isinstance(response, dict):
            response = CompletionResponse.from_payload(response, getattr(engine, "model_name", ""))
        latency_ms = round((time.perf_counter() - started) * 1000)

        output = response.content if isinstance(response.content, str) else ""
        evaluation = score(output, spec, approach, scoring)

        drift = None
        if spec.drift_terms or spec.semantic_anchors:
            drift = analyze_domain_drift(
                output,
                spec.drift_terms,
                spec.semantic_anchors,
                infer_domain(spec),
                aligned_confidence=scoring.aligned_confidence,
                partial_confidence=scoring.partial_confidence,
            )

        input_tokens = response.prompt_tokens or estimate_tokens(prompt)
        output_tokens = response.completion_tokens or estimate_tokens(output)
        memory_kb = None
        if memory_before is not None:
            memory_kb = max(0, round((tracemalloc.get_traced_memory()[0] - memory_before) / 1024))

        result = TrialResult(
            test_id=spec.test_id,
            user_input=spec.user_input,
            output=output[:STORED_OUTPUT_CHARS],
            success=evaluation.success,
            tier=evaluation.tier,
            accuracy=evaluation.accuracy,
            mcd_compliant=evaluation.mcd_compliant,
            latency_ms=latency_ms,
            token_breakdown=TokenBreakdown(input=input_tokens, process=0, output=output_tokens),
            timestamp=datetime.now().isoformat(),
            failure_reasons=list(evaluation.failures),
            approach=approach,
            evaluation_score=TIER_EVALUATION_SCORES[evaluation.tier],
            benchmark_comparison=_benchmark_comparison(spec, latency_ms, output_tokens),
            drift=drift,
            memory_kb=memory_kb,
            max_latency_ms=spec.success_criteria.max_latency_ms,
            semantic_fidelity=semantic_fidelity(output, spec.drift_terms),
            deployment_compatible=deployment_compatible(tier, output_tokens, latency_ms),
            cross_validation=cross_validation_metrics(
                output_tokens,
                latency_ms,
                options["max_tokens"],
                drift.aligned if drift is not None else evaluation.success,
            ),
        )
    except asyncio.TimeoutError:
        latency_ms = round((time.perf_counter() - started) * 1000)
        message = f"Trial timed out after {timeout_seconds}s"
        logger.warning("%s: %s", spec.test_id, message)
        result = error_trial_result(spec, message, latency_ms, approach)
    except Exception as e:
        latency_ms = round((time.perf_counter() - started) * 1000)
        logger.warning("Trial %s failed: %s", spec.test_id, e)
        result = error_trial_result(spec, str(e), latency_ms, approach)

    return replace(spec, result=result)
