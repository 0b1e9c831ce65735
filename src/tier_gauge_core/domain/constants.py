"""
Domain Constants

Centrally manages tiers, approaches, domain tables and the tuned scoring
cut-offs shared across the evaluation engine.
"""

# Capability tiers (low / mid / high)
TIERS = ["Q1", "Q4", "Q8"]

# Quality tiers, highest to lowest
QUALITY_TIERS = ["excellent", "good", "acceptable", "poor"]

# Evaluation score by quality tier
TIER_EVALUATION_SCORES = {
    "excellent": 100,
    "good": 85,
    "acceptable": 70,
    "poor": 30,
}

# Approach identifiers
APPROACH_MCD = "mcd"
APPROACH_FEW_SHOT = "few_shot"
APPROACH_SYSTEM_ROLE = "system_role"
APPROACH_HYBRID = "hybrid"
APPROACH_CONVERSATIONAL = "conversational"

APPROACHES = [
    APPROACH_MCD,
    APPROACH_FEW_SHOT,
    APPROACH_SYSTEM_ROLE,
    APPROACH_HYBRID,
    APPROACH_CONVERSATIONAL,
]

# Accepted spellings of approach tags found in walkthrough files
APPROACH_ALIASES = {
    "mcd": APPROACH_MCD,
    "compact": APPROACH_MCD,
    "few-shot": APPROACH_FEW_SHOT,
    "few_shot": APPROACH_FEW_SHOT,
    "fewshot": APPROACH_FEW_SHOT,
    "system-role": APPROACH_SYSTEM_ROLE,
    "system_role": APPROACH_SYSTEM_ROLE,
    "systemrole": APPROACH_SYSTEM_ROLE,
    "hybrid": APPROACH_HYBRID,
    "conversational": APPROACH_CONVERSATIONAL,
}

# Approaches counted as "non-MCD" when validating the MCD advantage
NON_MCD_APPROACHES = [APPROACH_FEW_SHOT, APPROACH_SYSTEM_ROLE, APPROACH_CONVERSATIONAL]

# Variant types
VARIANT_TYPE_MCD = "MCD"
VARIANT_TYPE_NON_MCD = "Non-MCD"
VARIANT_TYPE_HYBRID = "Hybrid"

# Sampling temperature per approach
APPROACH_TEMPERATURES = {
    APPROACH_MCD: 0.0,
    APPROACH_FEW_SHOT: 0.3,
    APPROACH_SYSTEM_ROLE: 0.2,
    APPROACH_HYBRID: 0.1,
    APPROACH_CONVERSATIONAL: 0.7,
}

# Domains
DOMAIN_APPOINTMENT = "appointment-booking"
DOMAIN_SPATIAL = "spatial-navigation"
DOMAIN_DIAGNOSTICS = "failure-diagnostics"
DOMAIN_UNKNOWN = "unknown"

# Identity prefix (D1, D2, ...) -> domain
DOMAIN_PREFIXES = {
    "1": DOMAIN_APPOINTMENT,
    "2": DOMAIN_SPATIAL,
    "3": DOMAIN_DIAGNOSTICS,
}

# Keyword fallback when the identity carries no domain prefix
DOMAIN_KEYWORDS = {
    DOMAIN_APPOINTMENT: ["appointment", "booking"],
    DOMAIN_SPATIAL: ["navigation", "north", "direction"],
    DOMAIN_DIAGNOSTICS: ["diagnostic", "error", "failure"],
}

# Default success criteria per domain (latency keyed by tier)
DOMAIN_DEFAULT_CRITERIA = {
    DOMAIN_APPOINTMENT: {
        "min_accuracy": 0.75,
        "max_token_budget": 80,
        "latency": {"Q1": 400, "Q4": 800, "Q8": 1500},
    },
    DOMAIN_SPATIAL: {
        "min_accuracy": 0.70,
        "max_token_budget": 60,
        "latency": {"Q1": 300, "Q4": 600, "Q8": 1200},
    },
    DOMAIN_DIAGNOSTICS: {
        "min_accuracy": 0.80,
        "max_token_budget": 120,
        "latency": {"Q1": 600, "Q4": 1200, "Q8": 2000},
    },
}
DEFAULT_CRITERIA = {
    "min_accuracy": 0.75,
    "max_token_budget": 100,
    "latency": {"Q1": 500, "Q4": 1000, "Q8": 2000},
}

# Token budget multiplier per domain
DOMAIN_COMPLEXITY_MULTIPLIERS = {
    DOMAIN_APPOINTMENT: 1.2,
    DOMAIN_DIAGNOSTICS: 1.4,
    DOMAIN_SPATIAL: 1.0,
    "system-diagnostics": 1.3,
    "customer-service": 1.1,
}
DEFAULT_COMPLEXITY_MULTIPLIER = 1.1

# Required-element ratio forgiveness per domain
DOMAIN_REQUIRED_RATIO_ADJUSTMENTS = {
    DOMAIN_APPOINTMENT: 0.05,
    DOMAIN_DIAGNOSTICS: 0.10,
    DOMAIN_SPATIAL: 0.0,
}
DEFAULT_REQUIRED_RATIO_ADJUSTMENT = 0.02

# Latency ceiling used for fallback detection when a trial has none
TIER_MAX_LATENCY_MS = {"Q1": 500, "Q4": 1000, "Q8": 2000}

# Resource efficiency breakpoints per tier (excellent, good, acceptable, poor)
TIER_LATENCY_EXPECTATIONS = {
    "Q1": (150, 300, 500, 800),
    "Q4": (300, 600, 1000, 1500),
    "Q8": (600, 1200, 2000, 3000),
}

# Tier optimisation targets (optimal, acceptable)
TIER_OPTIMIZATION_TARGETS = {
    "Q1": (300, 500),
    "Q4": (600, 1000),
    "Q8": (1200, 2000),
}

# Minimum output length (characters) for each quality tier
MIN_OUTPUT_LENGTH = {"excellent": 20, "good": 15, "acceptable": 10}

# Stored output limit
STORED_OUTPUT_CHARS = 500

# Fallback baseline when no conversational results exist
DEFAULT_BASELINE_METRICS = {
    "success_rate": 0.3,
    "avg_tokens": 80.0,
    "avg_latency": 1000.0,
    "accuracy": 0.4,
}
