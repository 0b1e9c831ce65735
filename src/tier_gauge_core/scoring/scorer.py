"""
Approach strategies

Routes a response to the evaluation adjustments of its prompting approach.
Categorization, sampling temperature and post-evaluation bonuses are kept
in dispatch tables so each approach can be swapped or tested on its own.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Callable

from tier_gauge_core.domain.constants import (
    APPROACH_ALIASES,
    APPROACH_CONVERSATIONAL,
    APPROACH_FEW_SHOT,
    APPROACH_HYBRID,
    APPROACH_MCD,
    APPROACH_SYSTEM_ROLE,
    APPROACH_TEMPERATURES,
    VARIANT_TYPE_HYBRID,
    VARIANT_TYPE_MCD,
)
from tier_gauge_core.domain.entities import TrialSpecification, Variant
from tier_gauge_core.domain.value_objects import TierEvaluation
from tier_gauge_core.harness_config import ScoringConfig
from tier_gauge_core.scoring.domains import infer_domain, resolve_criteria
from tier_gauge_core.scoring.text_scorers import estimate_tokens
from tier_gauge_core.scoring.tiered_evaluator import evaluate

logger = logging.getLogger(__name__)

# Name / id fragments identifying a non-MCD approach, checked in order
_APPROACH_PATTERNS: list[tuple[str, list[str], list[str]]] = [
    (APPROACH_FEW_SHOT, ["few-shot", "pattern"], ["a3", "b3", "c2"]),
    (APPROACH_SYSTEM_ROLE, ["system", "expert", "role"], ["a4", "b4", "c3"]),
    (APPROACH_CONVERSATIONAL, ["conversational", "natural"], ["a2", "b2", "c5"]),
]

_PROFESSIONAL_TERMS = [
    "systematic", "verify", "analysis", "assessment", "evaluation",
    "confirm", "validate", "inspect", "examine", "diagnostic",
    "procedure", "protocol", "standard", "specification",
]
_CASUAL_TERMS = ["awesome", "cool", "hey", "wow", "super", "totally"]

_DOMAIN_PATTERNS = [
    re.compile(r"^(check|verify|confirm|missing|required):\s*"),
    re.compile(r"\b(north|south|east|west)\s+\d+m?\b"),
    re.compile(r"^(inspect|examine|test):\s*"),
]


def normalize_approach(tag: str | None) -> str | None:
    if not tag:
        return None
    return APPROACH_ALIASES.get(tag.strip().lower().replace(" ", "-"))


def categorize_approach(variant: Variant) -> str:
    """
    Determine the prompting approach of a variant

    Order: explicit approach tag, variant type (MCD / Hybrid), then name and
    id fragments. Unrecognized variants are treated as conversational.
    """
    explicit = normalize_approach(variant.approach)
    if explicit:
        return explicit
    if variant.variant_type == VARIANT_TYPE_MCD:
        return APPROACH_MCD
    if variant.variant_type == VARIANT_TYPE_HYBRID:
        return APPROACH_HYBRID

    name = variant.name.lower()
    variant_id = variant.variant_id.lower()
    for approach, name_parts, id_parts in _APPROACH_PATTERNS:
        if any(p in name for p in name_parts) or any(p in variant_id for p in id_parts):
            return approach

    logger.warning("Could not categorize variant %s, defaulting to conversational", variant.variant_id)
    return APPROACH_CONVERSATIONAL


def temperature_for(approach: str, variant_type: str = "") -> float:
    if approach in APPROACH_TEMPERATURES:
        return APPROACH_TEMPERATURES[approach]
    return 0.0 if variant_type == VARIANT_TYPE_MCD else 0.7


def generation_options(spec: TrialSpecification, approach: str, variant_type: str = "") -> dict:
    """
    Completion options for one trial

    Simple trials cap max_tokens at 50; complex trials lower the temperature
    (0.0 for MCD, 0.3 otherwise).

    Returns:
        dict with max_tokens and temperature
    """
    budget = resolve_criteria(spec, infer_domain(spec))["max_token_budget"]
    options = {"max_tokens": int(budget), "temperature": temperature_for(approach, variant_type)}
    if spec.difficulty == "simple":
        options["max_tokens"] = min(options["max_tokens"], 50)
    elif spec.difficulty == "complex":
        options["temperature"] = 0.0 if approach == APPROACH_MCD else 0.3
    return options


def has_structured_format(output: str) -> bool:
    return bool(
        re.match(r"^(check|verify|confirm|missing|required|inspect):", output.strip(), re.IGNORECASE)
        or re.search(r"\[(.*?)\]", output)
        or re.search(r"\d+\.\s", output)
        or "→" in output
        or "->" in output
    )


def detects_pattern_following(output: str) -> bool:
    output_lower = output.lower()
    if re.match(r"^[a-z]+:\s", output_lower) or re.search(r"\b(step \d+|check \d+)\b", output_lower):
        return True
    return any(p.search(output_lower) for p in _DOMAIN_PATTERNS)


def has_professional_tone(output: str) -> bool:
    output_lower = output.lower()
    professional = sum(1 for t in _PROFESSIONAL_TERMS if t in output_lower)
    casual = sum(1 for t in _CASUAL_TERMS if t in output_lower)
    return professional >= 2 and casual == 0


def _token_budget(spec: TrialSpecification) -> int:
    return resolve_criteria(spec, infer_domain(spec))["max_token_budget"]


def _adjust_mcd(output: str, spec: TrialSpecification, base: TierEvaluation) -> TierEvaluation:
    bonus = 0.1 if has_structured_format(output) else 0.0
    if estimate_tokens(output) <= _token_budget(spec) * 0.8:
        bonus += 0.1
    # MCD variants are compliant by construction
    return replace(base, accuracy=min(1.0, base.accuracy + bonus), mcd_compliant=True)


def _adjust_few_shot(output: str, spec: TrialSpecification, base: TierEvaluation) -> TierEvaluation:
    bonus = 0.05 if detects_pattern_following(output) else 0.0
    return replace(base, accuracy=min(1.0, base.accuracy + bonus))


def _adjust_system_role(output: str, spec: TrialSpecification, base: TierEvaluation) -> TierEvaluation:
    bonus = 0.05 if has_professional_tone(output) else 0.0
    return replace(base, accuracy=min(1.0, base.accuracy + bonus))


def _adjust_hybrid(output: str, spec: TrialSpecification, base: TierEvaluation) -> TierEvaluation:
    bonus = 0.05 if has_structured_format(output) else 0.0
    if detects_pattern_following(output):
        bonus += 0.05
    return replace(base, accuracy=min(1.0, base.accuracy + bonus))


def _adjust_conversational(output: str, spec: TrialSpecification, base: TierEvaluation) -> TierEvaluation:
    penalty = 0.1 if estimate_tokens(output) > _token_budget(spec) * 1.5 else 0.0
    return replace(base, accuracy=max(0.0, base.accuracy - penalty))


APPROACH_ADJUSTMENTS: dict[str, Callable[[str, TrialSpecification, TierEvaluation], TierEvaluation]] = {
    APPROACH_MCD: _adjust_mcd,
    APPROACH_FEW_SHOT: _adjust_few_shot,
    APPROACH_SYSTEM_ROLE: _adjust_system_role,
    APPROACH_HYBRID: _adjust_hybrid,
    APPROACH_CONVERSATIONAL: _adjust_conversational,
}


def score(
    output,
    spec: TrialSpecification,
    approach: str,
    scoring: ScoringConfig | None = None,
) -> TierEvaluation:
    """
    Evaluate an output and apply the adjustments of its approach

    Args:
        output: Response text
        spec: Trial specification
        approach: Approach identifier (unknown approaches get the base evaluation)
        scoring: Tuned cut-offs

    Returns:
        TierEvaluation
    """
    base = evaluate(output, spec, scoring)
    adjust = APPROACH_ADJUSTMENTS.get(approach)
    if adjust is None:
        return base
    return adjust(output if isinstance(output, str) else "", spec, base)
