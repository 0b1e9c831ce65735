"""
MCD compliance heuristic

Weighted keyword scan that rewards directive, structured phrasing and
penalizes conversational hedging, plus a brevity bonus scaled by the
domain-adjusted token budget. The keyword tables are plain data so they
can be swapped per deployment.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from tier_gauge_core.domain.entities import TrialSpecification
from tier_gauge_core.scoring.domains import complexity_multiplier, infer_domain
from tier_gauge_core.scoring.text_scorers import estimate_tokens

COMPLIANCE_CUTOFF = 1.0

# Reward weights, counted per occurrence
MCD_INDICATORS: dict[str, int] = {
    "check:": 4, "verify:": 4, "confirm:": 4, "validate:": 4,
    "missing:": 3, "required:": 3, "specify:": 3, "inspect:": 3,
    "need to": 2, "must": 2, "should": 2, "complete": 2,
    "provide": 1, "ensure": 2, "review": 1, "clarify": 2,
    "appointment details": 2, "booking information": 2,
    "location coordinates": 2, "navigation path": 2,
    "error code": 3, "diagnostic result": 3,
    "→": 2, "->": 2, "•": 1, "- ": 1,
    "step 1": 1, "step 2": 1, "step 3": 1,
}

# Penalty weights, counted once per phrase
NON_MCD_INDICATORS: dict[str, int] = {
    "i think": -4, "i believe": -4, "in my opinion": -4,
    "let me": -3, "i would": -3, "i suggest": -3,
    "personally": -3, "i feel": -4,
    "wonderful": -2, "great job": -3, "amazing": -3, "awesome": -3,
    "happy to help": -4, "glad to assist": -3, "pleased to": -2,
    "feel free": -2, "no worries": -3, "sounds good": -2,
    "absolutely": -2, "definitely": -2,
    "maybe": -2, "perhaps": -2, "possibly": -2, "might be": -2,
}

_LABEL_LINE_RE = re.compile(r"^(check|verify|confirm|missing|required|inspect):", re.MULTILINE)
_DASH_LIST_RE = re.compile(r"^\s*-\s+", re.MULTILINE)


@dataclass(frozen=True)
class KeywordTable:
    """Reward and penalty phrases with their weights"""
    rewards: dict[str, int] = field(default_factory=lambda: dict(MCD_INDICATORS))
    penalties: dict[str, int] = field(default_factory=lambda: dict(NON_MCD_INDICATORS))


DEFAULT_TABLE = KeywordTable()


def compliance_score(
    output: str,
    spec: TrialSpecification,
    table: KeywordTable = DEFAULT_TABLE,
) -> float:
    """
    Net MCD score of an output

    Args:
        output: Response text
        spec: Trial the output answers (for domain and token budget)
        table: Keyword weights

    Returns:
        Net score; higher is more compact and directive
    """
    output_lower = output.lower()
    score = 0.0
    for phrase, weight in table.rewards.items():
        score += weight * output_lower.count(phrase)
    for phrase, weight in table.penalties.items():
        if phrase in output_lower:
            score += weight

    if _LABEL_LINE_RE.search(output_lower):
        score += 3
    if _DASH_LIST_RE.search(output):
        score += 1

    domain = infer_domain(spec)
    budget = (spec.success_criteria.max_token_budget or 100) * complexity_multiplier(domain)
    budget_ratio = estimate_tokens(output) / budget
    if budget_ratio <= 0.7:
        score += 2
    elif budget_ratio <= 0.9:
        score += 1
    return score


def is_mcd_compliant(
    output: str,
    spec: TrialSpecification,
    cutoff: float = COMPLIANCE_CUTOFF,
    table: KeywordTable = DEFAULT_TABLE,
) -> bool:
    """Compliant iff the net score exceeds the cutoff"""
    return compliance_score(output, spec, table) > cutoff
