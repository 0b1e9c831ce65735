"""
Domain inference and domain-aware defaults
"""

from __future__ import annotations

import logging
import re

from tier_gauge_core.domain.constants import (
    DEFAULT_COMPLEXITY_MULTIPLIER,
    DEFAULT_CRITERIA,
    DEFAULT_REQUIRED_RATIO_ADJUSTMENT,
    DOMAIN_COMPLEXITY_MULTIPLIERS,
    DOMAIN_DEFAULT_CRITERIA,
    DOMAIN_KEYWORDS,
    DOMAIN_PREFIXES,
    DOMAIN_REQUIRED_RATIO_ADJUSTMENTS,
    DOMAIN_UNKNOWN,
)
from tier_gauge_core.domain.entities import TrialSpecification

logger = logging.getLogger(__name__)

_PREFIX_RE = re.compile(r"^D(\d+)")


def domain_from_keywords(user_input: str) -> str | None:
    text = user_input.lower()
    for domain, keywords in DOMAIN_KEYWORDS.items():
        if any(k in text for k in keywords):
            return domain
    return None


def infer_domain(spec: TrialSpecification) -> str:
    """
    Infer the domain of a trial

    The identity prefix (D1_..., D2_...) is authoritative; keyword sniffing of
    the user input is only a fallback. A disagreement is logged, not resolved.

    Returns:
        Domain name, or "unknown"
    """
    keyword_domain = domain_from_keywords(spec.user_input or "")
    match = _PREFIX_RE.match(spec.test_id or "")
    if match:
        prefix_domain = DOMAIN_PREFIXES.get(match.group(1), DOMAIN_UNKNOWN)
        if keyword_domain is not None and keyword_domain != prefix_domain:
            logger.warning(
                "Domain mismatch for %s: prefix says %s, input suggests %s",
                spec.test_id, prefix_domain, keyword_domain,
            )
        return prefix_domain
    return keyword_domain or DOMAIN_UNKNOWN


def complexity_multiplier(domain: str) -> float:
    return DOMAIN_COMPLEXITY_MULTIPLIERS.get(domain, DEFAULT_COMPLEXITY_MULTIPLIER)


def required_ratio_adjustment(domain: str) -> float:
    return DOMAIN_REQUIRED_RATIO_ADJUSTMENTS.get(domain, DEFAULT_REQUIRED_RATIO_ADJUSTMENT)


def default_criteria(domain: str, tier: str = "Q4") -> dict:
    """
    Domain default success criteria

    Returns:
        dict with min_accuracy, max_token_budget (already scaled by the
        domain multiplier) and max_latency_ms for the tier
    """
    base = DOMAIN_DEFAULT_CRITERIA.get(domain, DEFAULT_CRITERIA)
    return {
        "min_accuracy": base["min_accuracy"],
        "max_token_budget": round(base["max_token_budget"] * complexity_multiplier(domain)),
        "max_latency_ms": base["latency"].get(tier, DEFAULT_CRITERIA["latency"]["Q4"]),
    }


def resolve_criteria(spec: TrialSpecification, domain: str, tier: str = "Q4") -> dict:
    """Fill unset success-criteria fields from the domain defaults"""
    defaults = default_criteria(domain, tier)
    criteria = spec.success_criteria
    return {
        "min_accuracy": criteria.min_accuracy if criteria.min_accuracy is not None else defaults["min_accuracy"],
        "max_token_budget": criteria.max_token_budget if criteria.max_token_budget is not None else defaults["max_token_budget"],
        "max_latency_ms": criteria.max_latency_ms if criteria.max_latency_ms is not None else defaults["max_latency_ms"],
    }
