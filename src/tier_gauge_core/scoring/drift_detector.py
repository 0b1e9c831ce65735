"""
Drift detector

Compares a response against its expected terms and semantic anchors,
flags hallucination, fragmentation, speculative phrasing and context loss,
and produces an alignment verdict with a confidence score.

All functions are pure; detection failures are logged and converted into
a severe fallback verdict instead of being raised.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import fields as dataclass_fields

from tier_gauge_core.domain.constants import (
    DOMAIN_APPOINTMENT,
    DOMAIN_DIAGNOSTICS,
    DOMAIN_SPATIAL,
    VARIANT_TYPE_MCD,
)
from tier_gauge_core.domain.value_objects import DomainDriftAnalysis, DriftAnalysis
from tier_gauge_core.scoring.text_scorers import match_anchors, match_terms

logger = logging.getLogger(__name__)

ALIGNED_CONFIDENCE = 0.4
PARTIAL_CONFIDENCE = 0.2

# Invented facts observed in drifting responses, grouped by origin
HALLUCINATION_PATTERNS: dict[str, list[str]] = {
    "medical": ["anxiety", "viral", "stress-related", "flu", "stomach ache"],
    "navigation": ["sector a1", "detour zone", "hazard assessment", "zone marking"],
    "speculative": ["maybe", "could be", "might be", "possibly", "perhaps", "let me guess"],
    "appointment": ["insurance verification", "payment processing", "medical records"],
    "spatial": ["gps coordinates", "satellite view", "traffic conditions"],
    "diagnostics": ["advanced algorithms", "machine learning", "ai analysis"],
}

# Drift type by hallucination keyword, checked in order
HALLUCINATION_TYPES: list[tuple[str, list[str]]] = [
    ("medical_hallucination", ["anxiety", "viral", "flu"]),
    ("spatial_hallucination", ["sector"]),
    ("speculative_drift", ["maybe", "could be", "might"]),
    ("appointment_hallucination", ["insurance", "payment", "records"]),
    ("navigation_hallucination", ["gps", "satellite", "traffic"]),
    ("diagnostic_hallucination", ["algorithms", "machine learning", "ai"]),
]

SPECULATIVE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"is this about",
        r"could be",
        r"maybe it's",
        r"sounds like",
        r"let's figure",
        r"hard to say",
        r"not sure",
        r"might be",
        r"tricky",
    )
]

CONTEXT_LOSS_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"what.*it.*refers",
        r"clarify.*what.*type",
        r"not sure.*what",
        r"make.*it.*next",
        r"what.*appointment",
    )
]

SEVERITY_NOTES = {
    "mild": "Minor deviations within acceptable MCD parameters",
    "moderate": "Noticeable drift but core semantic meaning preserved",
    "severe": "Significant drift affecting task fidelity",
}

# Phrases that indicate domain-specific drift
DOMAIN_DRIFT_PATTERNS: dict[str, list[str]] = {
    DOMAIN_APPOINTMENT: ["forgot", "lost", "missing"],
    DOMAIN_SPATIAL: ["somewhere", "roughly", "around"],
    DOMAIN_DIAGNOSTICS: ["comprehensive", "sophisticated", "advanced"],
}


def detect_hallucinations(output: str) -> list[str]:
    """Return every curated hallucination phrase found in the output"""
    output_lower = output.lower()
    return [
        phrase
        for phrases in HALLUCINATION_PATTERNS.values()
        for phrase in phrases
        if phrase in output_lower
    ]


def fragmentation_score(output: str) -> float:
    """
    Score how truncated or degenerate an output is

    Returns:
        0.0 (intact) to 1.0 (empty or badly fragmented)
    """
    stripped = output.strip()
    if not stripped:
        return 1.0

    score = 0.0
    if output.endswith("...") or output.endswith("…"):
        score += 0.3
    if not re.search(r"[.!?]$", stripped):
        score += 0.2
    if len(stripped) < 25:
        score += 0.4
    words = output.lower().split()
    if len(words) > 3 and len(set(words)) / len(words) < 0.7:
        score += 0.2
    return min(score, 1.0)


def is_speculative(output: str) -> bool:
    return any(p.search(output) for p in SPECULATIVE_PATTERNS)


def has_context_loss(output: str) -> bool:
    return any(p.search(output) for p in CONTEXT_LOSS_PATTERNS)


def classify_drift_type(
    missing_terms: list[str],
    hallucinations: list[str],
    fragmentation: float,
    speculative: bool,
) -> str:
    """First matching category: hallucination subtype > fragmentation > speculative > missing term > generic"""
    for drift_type, keywords in HALLUCINATION_TYPES:
        if any(k in h for h in hallucinations for k in keywords):
            return drift_type
    if fragmentation > 0.5:
        return "fragmentation"
    if speculative:
        return "speculative_inquiry"
    if missing_terms:
        return "semantic_loss"
    return "general_drift"


def drift_notes(missing_terms: list[str], hallucinations: list[str], severity: str) -> str:
    notes = []
    if missing_terms:
        notes.append(f"Missing expected terms: {', '.join(missing_terms[:3])}")
    if hallucinations:
        notes.append(f"Hallucination patterns detected: {', '.join(hallucinations[:2])}")
    if severity in SEVERITY_NOTES:
        notes.append(SEVERITY_NOTES[severity])
    return "; ".join(notes) or "Standard drift analysis completed"


def _error_analysis(message: str, anchors: list[str] | None = None) -> DriftAnalysis:
    return DriftAnalysis(
        status="Error",
        aligned=False,
        drift_detected=True,
        severity="severe",
        confidence=0.0,
        missing_anchors=list(anchors or []),
        preservation_rate=0.0,
        drift_type="semantic_failure",
        notes=f"Drift detection error: {message}",
    )


def analyze(
    output,
    expected_terms,
    semantic_anchors=None,
    *,
    aligned_confidence: float = ALIGNED_CONFIDENCE,
    partial_confidence: float = PARTIAL_CONFIDENCE,
) -> DriftAnalysis:
    """
    Analyze a response for semantic drift

    Args:
        output: Response text
        expected_terms: Terms the response should preserve
        semantic_anchors: Optional concepts the response should preserve
        aligned_confidence: Confidence at or above which the output is aligned
        partial_confidence: Confidence at or above which the output is partially aligned

    Returns:
        DriftAnalysis. Never raises; malformed input yields a severe fallback verdict.
    """
    anchors = list(semantic_anchors or [])
    if not isinstance(output, str):
        logger.warning("Drift detection received non-text output: %s", type(output).__name__)
        return _error_analysis(f"output is not text ({type(output).__name__})", anchors)

    try:
        terms = [t for t in (expected_terms or []) if isinstance(t, str)]
        matched = match_terms(output, terms)
        missing_terms = [t for t in terms if t not in matched]

        preserved, missing_anchors, preservation_rate = match_anchors(output, anchors)
        hallucinations = detect_hallucinations(output)
        fragmentation = fragmentation_score(output)
        speculative = is_speculative(output)
        context_loss = has_context_loss(output)

        term_ratio = len(matched) / len(terms) if terms else 1.0
        penalty = (0.2 if hallucinations else 0.0) + 0.1 * fragmentation
        confidence = max(0.0, min(1.0, term_ratio * 0.6 + preservation_rate * 0.4 - penalty))

        if confidence >= aligned_confidence:
            status, aligned, drift_detected, severity = "Aligned", True, False, "none"
            drift_type = None
            notes = "Output preserved semantic meaning within MCD parameters"
        elif confidence >= partial_confidence:
            status, aligned, drift_detected, severity = "Partial", True, True, "mild"
            drift_type = classify_drift_type(missing_terms, hallucinations, fragmentation, speculative)
            notes = f"Partial alignment: {drift_notes(missing_terms, hallucinations, severity)}"
        else:
            status, aligned, drift_detected, severity = "Drift", False, True, "severe"
            drift_type = "semantic_failure"
            notes = f"Significant drift: {drift_notes(missing_terms, hallucinations, severity)}"

        return DriftAnalysis(
            status=status,
            aligned=aligned,
            drift_detected=drift_detected,
            severity=severity,
            confidence=confidence,
            missing_anchors=missing_anchors,
            preserved_anchors=preserved,
            preservation_rate=preservation_rate,
            hallucinations=hallucinations,
            matched_terms=matched,
            missing_terms=missing_terms,
            fragmentation=fragmentation,
            speculative=speculative,
            context_loss=context_loss,
            drift_type=drift_type,
            notes=notes,
        )
    except Exception as e:
        logger.exception("Drift detection failed")
        return _error_analysis(str(e), anchors)


# --- Domain drift ---


def _ratio_present(output_lower: str, words: list[str]) -> float:
    return sum(1 for w in words if w in output_lower) / len(words)


def _any_present(output_lower: str, words: list[str]) -> float:
    return 1.0 if any(w in output_lower for w in words) else 0.0


def domain_metrics(output: str, domain: str) -> dict[str, float]:
    """Domain-specific quality metrics in [0, 1]"""
    text = output.lower()
    if domain == DOMAIN_APPOINTMENT:
        return {
            "slot_preservation_rate": _ratio_present(text, ["appointment", "date", "time"]),
            "temporal_accuracy": _any_present(text, ["monday", "morning", "time", "date", "when"]),
        }
    if domain == DOMAIN_SPATIAL:
        return {
            "landmark_accuracy": _ratio_present(text, ["marker", "red", "landmark", "reference"]),
            "directional_precision": _any_present(
                text, ["left", "right", "north", "south", "east", "west"]
            ),
        }
    if domain == DOMAIN_DIAGNOSTICS:
        overloaded = sum(
            1 for w in ["comprehensive", "sophisticated", "advanced", "cutting-edge"] if w in text
        )
        return {
            "complexity_appropriateness": max(0.0, 1.0 - overloaded * 0.25),
            "solution_focus": _any_present(text, ["solution", "fix", "resolve", "repair"]),
        }
    return {}


def principle_adherence(output: str, domain: str) -> dict[str, bool]:
    """Whether the output follows the universal and domain-specific MCD principles"""
    text = output.lower()
    adherence = {
        "minimal_capability": "comprehensive" not in text and "detailed analysis" not in text,
        "task_focus": "various" not in text and "multiple approaches" not in text,
        "bounded_scope": len(output) < 300 and "thorough investigation" not in text,
    }
    if domain == DOMAIN_APPOINTMENT:
        adherence["slot_filling"] = "appointment" in text or "schedule" in text
        adherence["context_preservation"] = "what was" not in text and "remind me" not in text
        adherence["confirmation_loop"] = "confirm" in text or "correct" in text
    elif domain == DOMAIN_SPATIAL:
        adherence["landmark_based"] = "marker" in text or "landmark" in text
        adherence["precise_directions"] = any(w in text for w in ("left", "right", "north"))
        adherence["constraint_awareness"] = "ignore" not in text and "skip" not in text
    elif domain == DOMAIN_DIAGNOSTICS:
        adherence["appropriate_complexity"] = "sophisticated" not in text and "advanced" not in text
        adherence["solution_oriented"] = any(w in text for w in ("solution", "fix", "resolve"))
        adherence["over_engineering_avoidance"] = (
            "cutting-edge" not in text and "comprehensive framework" not in text
        )
    return adherence


def domain_confidence_adjustment(patterns: list[str], metrics: dict[str, float]) -> float:
    """-0.1 per drift pattern, +0.05 per strong metric, -0.1 per weak metric; clamped to [-0.3, 0.2]"""
    adjustment = -0.1 * len(patterns)
    for value in metrics.values():
        if value > 0.8:
            adjustment += 0.05
        if value < 0.5:
            adjustment -= 0.1
    return max(-0.3, min(0.2, adjustment))


def analyze_domain_drift(
    output,
    expected_terms,
    semantic_anchors=None,
    domain: str = "",
    *,
    aligned_confidence: float = ALIGNED_CONFIDENCE,
    partial_confidence: float = PARTIAL_CONFIDENCE,
) -> DomainDriftAnalysis:
    """
    Drift analysis enriched with domain patterns, metrics and principle adherence

    The base confidence is shifted by the domain adjustment and the verdict
    is re-derived from the adjusted value.
    """
    base = analyze(
        output,
        expected_terms,
        semantic_anchors,
        aligned_confidence=aligned_confidence,
        partial_confidence=partial_confidence,
    )
    text = output if isinstance(output, str) else ""
    try:
        patterns = [p for p in DOMAIN_DRIFT_PATTERNS.get(domain, []) if p in text.lower()]
        metrics = domain_metrics(text, domain)
        adherence = principle_adherence(text, domain)
    except Exception as e:
        logger.warning("Domain drift analysis failed for %s: %s", domain, e)
        patterns, metrics, adherence = [], {}, {}

    confidence = max(0.0, min(1.0, base.confidence + domain_confidence_adjustment(patterns, metrics)))
    if confidence >= aligned_confidence:
        status, aligned, suffix = "Domain Aligned", True, "compliance maintained"
    elif confidence >= partial_confidence:
        status, aligned, suffix = "Domain Partial", True, "partially maintained"
    else:
        status, aligned, suffix = "Domain Drift", False, "requirements violated"

    values = {f.name: getattr(base, f.name) for f in dataclass_fields(DriftAnalysis)}
    values.update(
        status=status,
        aligned=aligned,
        confidence=confidence,
        notes=f"{base.notes} | Domain: {domain or 'unknown'} {suffix}",
    )
    return DomainDriftAnalysis(
        **values,
        domain=domain,
        domain_patterns=patterns,
        domain_metrics=metrics,
        principle_adherence=adherence,
    )


def summarize_batch_drift(records: list[tuple[DriftAnalysis, str, str]]) -> dict:
    """
    Summarize drift across many trials

    Args:
        records: (analysis, domain, variant_type) per trial

    Returns:
        dict with overall_drift_rate, domain_drift_rates, mcd_effectiveness,
        common_drift_types and recommendations
    """
    total = len(records)
    if total == 0:
        return {
            "overall_drift_rate": 0.0,
            "domain_drift_rates": {},
            "mcd_effectiveness": 0.0,
            "common_drift_types": [],
            "recommendations": ["Drift analysis within acceptable parameters"],
        }

    drift_count = sum(1 for a, _, _ in records if a.drift_detected)
    aligned_count = sum(1 for a, _, _ in records if a.aligned)
    domain_totals = Counter(d for _, d, _ in records)
    domain_drift = Counter(d for a, d, _ in records if a.drift_detected)
    domain_rates = {d: domain_drift[d] / domain_totals[d] for d in domain_drift}
    drift_types = Counter(a.drift_type for a, _, _ in records if a.drift_type)

    recommendations = []
    if drift_count / total > 0.3:
        recommendations.append("High drift rate detected - review MCD principle implementation")
    for domain, rate in domain_rates.items():
        if rate > 0.4:
            recommendations.append(
                f"{domain} domain showing high drift - review domain-specific constraints"
            )

    mcd = [a for a, _, v in records if v == VARIANT_TYPE_MCD]
    non_mcd = [a for a, _, v in records if v != VARIANT_TYPE_MCD]
    if mcd and non_mcd:
        mcd_rate = sum(1 for a in mcd if a.aligned) / len(mcd)
        non_mcd_rate = sum(1 for a in non_mcd if a.aligned) / len(non_mcd)
        if mcd_rate <= non_mcd_rate:
            recommendations.append(
                "MCD variants not outperforming Non-MCD - review MCD implementation effectiveness"
            )

    return {
        "overall_drift_rate": drift_count / total,
        "domain_drift_rates": domain_rates,
        "mcd_effectiveness": aligned_count / total,
        "common_drift_types": [t for t, _ in drift_types.most_common()],
        "recommendations": recommendations or ["Drift analysis within acceptable parameters"],
    }
