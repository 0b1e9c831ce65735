"""
Domain Layer

Defines constants, entities, and value objects that form the core of the evaluation engine.
Has no dependencies on external libraries.
"""

from tier_gauge_core.domain.constants import (
    APPROACHES,
    QUALITY_TIERS,
    TIERS,
)
from tier_gauge_core.domain.entities import (
    AdvantageValidation,
    Benchmark,
    ComparativeAnalysis,
    ComparativeWalkthroughResult,
    DomainMetrics,
    ExpectedProfile,
    HealthCheckResult,
    ProgressEvent,
    ProgressiveExecutionState,
    Scenario,
    ScenarioResult,
    SuccessCriteria,
    TrialResult,
    TrialSpecification,
    Variant,
    VariantResult,
    Walkthrough,
    WalkthroughResult,
)
from tier_gauge_core.domain.value_objects import (
    BenchmarkComparison,
    ChatMessage,
    CompletionResponse,
    DomainDriftAnalysis,
    DriftAnalysis,
    TierEvaluation,
    TokenBreakdown,
)

__all__ = [
    # constants
    "APPROACHES",
    "QUALITY_TIERS",
    "TIERS",
    # entities
    "AdvantageValidation",
    "Benchmark",
    "ComparativeAnalysis",
    "ComparativeWalkthroughResult",
    "DomainMetrics",
    "ExpectedProfile",
    "HealthCheckResult",
    "ProgressEvent",
    "ProgressiveExecutionState",
    "Scenario",
    "ScenarioResult",
    "SuccessCriteria",
    "TrialResult",
    "TrialSpecification",
    "Variant",
    "VariantResult",
    "Walkthrough",
    "WalkthroughResult",
    # value objects
    "BenchmarkComparison",
    "ChatMessage",
    "CompletionResponse",
    "DomainDriftAnalysis",
    "DriftAnalysis",
    "TierEvaluation",
    "TokenBreakdown",
]
