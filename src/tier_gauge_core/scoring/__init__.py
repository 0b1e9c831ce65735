"""
Scoring sub-package

Provides the token estimator, drift detector, tiered evaluator, MCD
compliance heuristic and approach strategies.
"""

from tier_gauge_core.domain.value_objects import DomainDriftAnalysis, DriftAnalysis, TierEvaluation
from tier_gauge_core.scoring.drift_detector import (
    analyze,
    analyze_domain_drift,
    summarize_batch_drift,
)
from tier_gauge_core.scoring.domains import infer_domain, resolve_criteria
from tier_gauge_core.scoring.mcd_compliance import compliance_score, is_mcd_compliant
from tier_gauge_core.scoring.scorer import (
    APPROACH_ADJUSTMENTS,
    categorize_approach,
    generation_options,
    score,
)
from tier_gauge_core.scoring.text_scorers import (
    estimate_tokens,
    match_anchors,
    match_terms,
    normalize_text,
)
from tier_gauge_core.scoring.tiered_evaluator import evaluate

__all__ = [
    # value objects (re-exported from domain)
    "DomainDriftAnalysis",
    "DriftAnalysis",
    "TierEvaluation",
    # drift
    "analyze",
    "analyze_domain_drift",
    "summarize_batch_drift",
    # domains
    "infer_domain",
    "resolve_criteria",
    # evaluation
    "evaluate",
    "compliance_score",
    "is_mcd_compliant",
    # approach strategies
    "APPROACH_ADJUSTMENTS",
    "categorize_approach",
    "generation_options",
    "score",
    # text
    "estimate_tokens",
    "match_anchors",
    "match_terms",
    "normalize_text",
]
