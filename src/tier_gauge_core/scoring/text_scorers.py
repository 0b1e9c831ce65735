"""
Text-based scoring functions

Implements the token estimator and the fuzzy matching shared by the
tiered evaluator and the drift detector.
"""

from __future__ import annotations

import math
import re
import unicodedata


def remove_markdown(text: str) -> str:
    """
    Remove markdown formatting

    - Remove code blocks (```...```)
    - Remove inline code (`...`)
    - Remove emphasis markers (** and __)

    Bullets and numbering are kept because they count as structure.

    Args:
        text: Text that may contain markdown

    Returns:
        Text with markdown removed
    """
    # Extract only the code portion from code blocks (```python ... ``` etc.)
    text = re.sub(r"```[\w]*\n?(.*?)```", r"\1", text, flags=re.DOTALL)
    # Remove backticks from inline code
    text = re.sub(r"`([^`]+)`", r"\1", text)
    # Remove bold / underline emphasis
    text = re.sub(r"(\*\*|__)(.+?)\1", r"\2", text)
    return text


def normalize_text(text: str) -> str:
    """
    Normalize text for matching

    - Remove markdown formatting
    - Unicode normalization (NFKC)
    - Convert to lowercase
    - Collapse consecutive whitespace to a single space
    - Strip leading and trailing whitespace

    Args:
        text: Text to normalize

    Returns:
        Normalized text
    """
    text = remove_markdown(text)
    text = unicodedata.normalize("NFKC", text)
    text = text.lower()
    text = re.sub(r"\s+", " ", text)
    return text.strip()


_PUNCTUATION_RE = re.compile(r"[.,!?;:()\[\]{}'\"]")
_NUMBER_RE = re.compile(r"\b\d+\b")
_FORMATTING_RE = re.compile(r"[→←↑↓•-]")


def estimate_tokens(text) -> int:
    """
    Approximate the token count of a text

    words + 0.3 per punctuation mark + 0.4 per number + 0.2 per arrow/bullet,
    rounded up. Non-text and blank input count as zero.

    Args:
        text: Text to measure

    Returns:
        Estimated number of tokens
    """
    if not isinstance(text, str):
        return 0
    cleaned = text.strip()
    if not cleaned:
        return 0

    words = len(cleaned.split())
    punctuation = len(_PUNCTUATION_RE.findall(cleaned))
    numbers = len(_NUMBER_RE.findall(cleaned))
    formatting = len(_FORMATTING_RE.findall(cleaned))
    return math.ceil(words + punctuation * 0.3 + numbers * 0.4 + formatting * 0.2)


# Synonyms accepted for required elements
REQUIRED_ELEMENT_SYNONYMS: dict[str, list[str]] = {
    "appointment": ["booking", "reservation", "schedule"],
    "confirm": ["verify", "check", "validate"],
    "missing": ["absent", "lacking", "not provided"],
    "location": ["address", "place", "venue"],
    "time": ["datetime", "when", "schedule"],
}

# Synonyms accepted for expected drift terms
DRIFT_TERM_SYNONYMS: dict[str, list[str]] = {
    "advantage": ["benefit", "pro", "strength", "positive", "good", "useful", "help"],
    "disadvantage": ["drawback", "con", "weakness", "negative", "bad", "issue", "problem"],
    "fast": ["quick", "rapid", "speed", "efficient", "swift"],
    "slow": ["sluggish", "delayed", "inefficient"],
    "medical": ["clinical", "health", "healthcare", "diagnosis"],
    "treatment": ["therapy", "care", "intervention"],
    "patient": ["person", "individual", "case"],
    "left": ["west", "port", "sinister"],
    "right": ["east", "starboard", "dexter"],
    "forward": ["ahead", "north", "advance"],
    "concise": ["brief", "short", "compact", "minimal"],
    "verbose": ["detailed", "long", "comprehensive", "elaborate"],
    "schedule": ["book", "arrange", "plan", "set up"],
    "marker": ["landmark", "reference", "indicator", "sign"],
    "navigate": ["move", "go", "travel", "proceed"],
    "solution": ["fix", "resolution", "answer", "remedy"],
    "problem": ["issue", "fault", "error", "difficulty"],
}

# Related concepts accepted for semantic anchors
ANCHOR_CONCEPTS: dict[str, list[str]] = {
    "efficiency": ["fast", "quick", "speed", "optimal", "effective"],
    "quality": ["good", "accurate", "correct", "reliable", "precise"],
    "safety": ["safe", "secure", "protected", "cautious"],
    "clinical": ["medical", "healthcare", "diagnosis", "treatment"],
    "spatial": ["direction", "location", "position", "navigation"],
    "appointment": ["booking", "schedule", "meeting", "visit"],
    "context": ["information", "details", "background", "situation"],
    "minimal": ["simple", "basic", "essential", "core"],
    "bounded": ["limited", "constrained", "focused", "specific"],
}


def has_semantic_match(output_lower: str, required_lower: str) -> bool:
    """True if any word of the requirement, or one of its synonyms, occurs in the output"""
    for word in required_lower.split():
        if word in output_lower:
            return True
        if any(s in output_lower for s in REQUIRED_ELEMENT_SYNONYMS.get(word, [])):
            return True
    return False


def contains_required_element(output: str, element: str) -> bool:
    """
    Check a required element against an output

    Matches verbatim, with whitespace removed, or through the synonym table.
    """
    output_lower = normalize_text(output)
    element_lower = element.lower().strip()
    if not element_lower:
        return True
    return (
        element_lower in output_lower
        or re.sub(r"\s+", "", element_lower) in output_lower
        or has_semantic_match(output_lower, element_lower)
    )


def match_terms(output: str, terms: list[str]) -> list[str]:
    """
    Return the expected terms found in the output

    A term matches verbatim, via DRIFT_TERM_SYNONYMS, or (for multi-word or
    hyphenated terms) when any of its parts occurs.
    """
    output_lower = normalize_text(output)
    matched = []
    for term in terms:
        term_lower = term.lower()
        if term_lower in output_lower:
            matched.append(term)
            continue
        if any(s in output_lower for s in DRIFT_TERM_SYNONYMS.get(term_lower, [])):
            matched.append(term)
            continue
        if " " in term_lower or "-" in term_lower:
            parts = [p for p in re.split(r"[\s-]+", term_lower) if p]
            if any(p in output_lower for p in parts):
                matched.append(term)
    return matched


def match_anchors(output: str, anchors: list[str]) -> tuple[list[str], list[str], float]:
    """
    Split anchors into preserved and missing

    Returns:
        (preserved, missing, preservation_rate); the rate is 1.0 without anchors
    """
    output_lower = normalize_text(output)
    preserved = []
    missing = []
    for anchor in anchors:
        anchor_lower = anchor.lower()
        if anchor_lower in output_lower or any(
            c in output_lower for c in ANCHOR_CONCEPTS.get(anchor_lower, [])
        ):
            preserved.append(anchor)
        else:
            missing.append(anchor)
    rate = len(preserved) / len(anchors) if anchors else 1.0
    return preserved, missing, rate
