"""
Tiered evaluator

Classifies a response into excellent / good / acceptable / poor, computes a
functional accuracy score, and records the reasons a response fell short.
"""

from __future__ import annotations

import logging
import re

from tier_gauge_core.domain.constants import MIN_OUTPUT_LENGTH
from tier_gauge_core.domain.entities import TrialSpecification
from tier_gauge_core.domain.value_objects import TierEvaluation
from tier_gauge_core.harness_config import ScoringConfig
from tier_gauge_core.scoring.domains import (
    complexity_multiplier,
    infer_domain,
    required_ratio_adjustment,
    resolve_criteria,
)
from tier_gauge_core.scoring.mcd_compliance import is_mcd_compliant
from tier_gauge_core.scoring.text_scorers import contains_required_element, estimate_tokens

logger = logging.getLogger(__name__)

_ACTIONABLE_RE = re.compile(r"\b(check|verify|confirm|complete|provide|specify)\b")
_LABEL_RE = re.compile(r"^.+:", re.MULTILINE)
_BULLET_RE = re.compile(r"^\s*[-•]\s+", re.MULTILINE)


def content_quality(output: str, adjusted_budget: float) -> float:
    """
    Heuristic content quality in [0, 1]

    Starts at 0.5; rewards actionable phrasing (+0.2), structure (+0.2) and
    conciseness (+0.1, budget ratio <= 0.8); penalizes verbosity beyond
    1.5x the adjusted budget (-0.2).
    """
    score = 0.5
    if _ACTIONABLE_RE.search(output.lower()):
        score += 0.2
    if _LABEL_RE.search(output) or _BULLET_RE.search(output):
        score += 0.2

    ratio = estimate_tokens(output) / adjusted_budget if adjusted_budget > 0 else 0.0
    if ratio <= 0.8:
        score += 0.1
    elif ratio > 1.5:
        score -= 0.2
    return max(0.0, min(1.0, score))


def evaluate(
    output,
    spec: TrialSpecification,
    scoring: ScoringConfig | None = None,
) -> TierEvaluation:
    """
    Evaluate an output against a trial's success criteria

    Args:
        output: Response text (non-text is treated as empty)
        spec: Trial specification
        scoring: Tuned cut-offs (defaults when omitted)

    Returns:
        TierEvaluation; success is tier != "poor"
    """
    scoring = scoring or ScoringConfig()
    if not isinstance(output, str):
        output = ""

    failures: list[str] = []
    domain = infer_domain(spec)
    criteria = resolve_criteria(spec, domain)
    min_accuracy = criteria["min_accuracy"]
    output_lower = output.lower()
    output_length = len(output.strip())

    required = spec.success_criteria.required_elements
    found = 0
    for element in required:
        if contains_required_element(output, element):
            found += 1
        else:
            failures.append(f"Missing required element: {element}")
    required_ratio = found / len(required) if required else 1.0

    prohibited_count = 0
    for element in spec.success_criteria.prohibited_elements:
        if element.lower() in output_lower:
            prohibited_count += 1
            failures.append(f"Contains prohibited element: {element}")

    adjusted_budget = criteria["max_token_budget"] * complexity_multiplier(domain)
    token_count = estimate_tokens(output)
    token_efficiency = min(1.0, adjusted_budget / token_count) if token_count > 0 else 1.0

    quality = content_quality(output, adjusted_budget)
    functional_score = (
        required_ratio * 0.5
        + token_efficiency * 0.2
        + quality * 0.2
        + (0.1 if prohibited_count == 0 else 0.0)
    ) - prohibited_count * 0.15

    adjustment = required_ratio_adjustment(domain)
    excellent_floor = max(scoring.excellent_functional, min_accuracy)
    good_floor = max(scoring.good_functional, min_accuracy * 0.85)
    acceptable_floor = max(scoring.acceptable_functional, min_accuracy * 0.70)
    acceptable_ratio = scoring.acceptable_ratio - adjustment

    if (
        functional_score >= excellent_floor
        and required_ratio >= scoring.excellent_ratio - adjustment
        and output_length >= MIN_OUTPUT_LENGTH["excellent"]
        and prohibited_count == 0
    ):
        tier = "excellent"
    elif (
        functional_score >= good_floor
        and required_ratio >= scoring.good_ratio - adjustment
        and output_length >= MIN_OUTPUT_LENGTH["good"]
        and prohibited_count == 0
    ):
        tier = "good"
    elif (
        functional_score >= acceptable_floor
        and required_ratio >= acceptable_ratio
        and output_length >= MIN_OUTPUT_LENGTH["acceptable"]
    ):
        tier = "acceptable"
    else:
        tier = "poor"
        if functional_score < acceptable_floor:
            failures.append(f"Functional score below {round(acceptable_floor * 100)}%")
        if required_ratio < acceptable_ratio:
            failures.append(f"Required elements coverage below {round(acceptable_ratio * 100)}%")
        if output_length < MIN_OUTPUT_LENGTH["acceptable"]:
            failures.append("Output too brief for meaningful evaluation")

    logger.debug(
        "Evaluated %s: tier=%s functional=%.2f required=%.2f",
        spec.test_id, tier, functional_score, required_ratio,
    )
    return TierEvaluation(
        success=tier != "poor",
        tier=tier,
        accuracy=max(0.0, min(1.0, functional_score)),
        mcd_compliant=is_mcd_compliant(output, spec, cutoff=scoring.mcd_compliance_cutoff),
        failures=failures,
        functional_score=functional_score,
        required_ratio=required_ratio,
        prohibited_count=prohibited_count,
        token_efficiency=token_efficiency,
        content_quality=quality,
        domain=domain,
    )
