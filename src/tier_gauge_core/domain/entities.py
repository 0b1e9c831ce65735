"""
Domain Entities

Defines walkthrough configuration records and the results produced by
executing them.
"""

from dataclasses import dataclass, field

from tier_gauge_core.domain.value_objects import (
    BenchmarkComparison,
    DriftAnalysis,
    TokenBreakdown,
)


# --- Configuration (externally authored, read-only) ---


@dataclass(frozen=True)
class SuccessCriteria:
    """Declarative success criteria of a trial (None = domain default)"""
    required_elements: list[str] = field(default_factory=list)
    prohibited_elements: list[str] = field(default_factory=list)
    task_completion_expected: bool = True
    max_token_budget: int | None = None
    max_latency_ms: int | None = None
    min_accuracy: float | None = None


@dataclass(frozen=True)
class Benchmark:
    """Reference numbers a trial is compared against"""
    expected_output: str = ""
    expected_latency_ms: float = 0.0
    expected_tokens: int | None = None
    notes: str = ""


@dataclass(frozen=True)
class TrialSpecification:
    """A single trial; `result` is attached copy-on-write after execution"""
    test_id: str
    user_input: str
    success_criteria: SuccessCriteria = field(default_factory=SuccessCriteria)
    difficulty: str = "moderate"  # simple / moderate / complex
    category: str = ""
    expected_terms: list[str] | None = None  # falls back to required elements
    semantic_anchors: list[str] = field(default_factory=list)
    benchmark: Benchmark | None = None
    notes: str = ""
    result: "TrialResult | None" = None

    @property
    def drift_terms(self) -> list[str]:
        if self.expected_terms is not None:
            return list(self.expected_terms)
        return list(self.success_criteria.required_elements)


@dataclass(frozen=True)
class ExpectedProfile:
    """Benchmark profile of a variant"""
    avg_latency: float = 0.0
    avg_tokens: float = 0.0
    success_rate: str = "0/0"

    @property
    def expected_successes(self) -> int:
        head = self.success_rate.split("/")[0].strip()
        try:
            return int(head)
        except ValueError:
            return 0


@dataclass(frozen=True)
class Variant:
    """A prompting strategy applied to an ordered list of trials"""
    variant_id: str
    name: str
    prompt: str
    trials: list[TrialSpecification]
    variant_type: str = "Non-MCD"  # MCD / Non-MCD / Hybrid
    approach: str | None = None
    expected_profile: ExpectedProfile = field(default_factory=ExpectedProfile)


@dataclass(frozen=True)
class Scenario:
    """One step of a walkthrough"""
    step: int
    context: str
    variants: list[Variant]


@dataclass(frozen=True)
class Walkthrough:
    """A domain walkthrough made of ordered scenarios"""
    walkthrough_id: str
    domain: str
    scenarios: list[Scenario]
    title: str = ""


# --- Results ---


@dataclass(frozen=True)
class TrialResult:
    """Outcome of one trial execution"""
    test_id: str
    user_input: str
    output: str
    success: bool
    tier: str
    accuracy: float
    mcd_compliant: bool
    latency_ms: int
    token_breakdown: TokenBreakdown
    timestamp: str
    failure_reasons: list[str] = field(default_factory=list)
    approach: str = ""
    evaluation_score: float = 0.0
    benchmark_comparison: BenchmarkComparison = field(default_factory=BenchmarkComparison)
    drift: DriftAnalysis | None = None
    memory_kb: int | None = None
    max_latency_ms: int | None = None
    semantic_fidelity: float = 0.0
    deployment_compatible: bool = True
    cross_validation: dict[str, float] = field(default_factory=dict)
    error: str | None = None


@dataclass
class VariantResult:
    """Aggregated trial results of one variant at one tier"""
    variant_id: str
    variant_type: str
    name: str
    approach: str
    trials: list[TrialResult] = field(default_factory=list)
    success_count: int = 0
    total_trials: int = 0
    avg_latency: float = 0.0
    avg_tokens: float = 0.0
    avg_accuracy: float = 0.0
    mcd_alignment_rate: float = 0.0
    efficiency: float = 0.0
    compared_to_expected: dict[str, float] = field(default_factory=dict)
    error: str | None = None

    @property
    def success_rate(self) -> str:
        if self.error is not None:
            return "0/0"
        return f"{self.success_count}/{self.total_trials}"

    @property
    def success_ratio(self) -> float:
        return self.success_count / self.total_trials if self.total_trials else 0.0

    @property
    def mcd_alignment_score(self) -> int:
        """MCD alignment as a rounded percentage"""
        return round(self.mcd_alignment_rate * 100)


@dataclass
class ScenarioResult:
    """Variant results of one scenario step"""
    step: int
    context: str
    variants: list[VariantResult] = field(default_factory=list)
    mcd_vs_non_mcd: dict[str, float] = field(default_factory=dict)


@dataclass
class DomainMetrics:
    """Walkthrough-level metrics; percentages are clamped to [0, 100]"""
    overall_success: bool = False
    mcd_alignment_score: float = 0.0
    resource_efficiency: float = 0.0
    fallback_triggered: bool = False
    user_experience_score: float = 0.0
    total_trials: int = 0
    successful_trials: int = 0


@dataclass
class WalkthroughResult:
    """Result of one walkthrough at one tier"""
    walkthrough_id: str
    domain: str
    tier: str
    scenario_results: list[ScenarioResult] = field(default_factory=list)
    domain_metrics: DomainMetrics = field(default_factory=DomainMetrics)
    recommendations: list[str] = field(default_factory=list)
    execution_time_ms: int = 0
    timestamp: str = ""
    approach: str = ""
    advanced_metrics: dict[str, float] = field(default_factory=dict)
    error: str | None = None

    def iter_trials(self):
        for scenario in self.scenario_results:
            for variant in scenario.variants:
                yield from variant.trials


@dataclass
class HealthCheckResult:
    """Health check result"""
    model_name: str
    success: bool
    latency_ms: int | None
    error: str | None = None


@dataclass
class ComparativeAnalysis:
    """Per-approach ratios relative to the baseline approach"""
    success_ratios: dict[str, float] = field(default_factory=dict)
    token_efficiency_ratios: dict[str, float] = field(default_factory=dict)
    latency_ratios: dict[str, float] = field(default_factory=dict)
    accuracy_ratios: dict[str, float] = field(default_factory=dict)
    consistency_scores: dict[str, float] = field(default_factory=dict)
    overall_scores: dict[str, float] = field(default_factory=dict)


@dataclass
class AdvantageValidation:
    """Whether the MCD approach outperforms the alternatives"""
    validated: bool
    concerns: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    confidence_level: float = 0.0
    statistical_significance: bool = False
    advantages: dict[str, float] = field(default_factory=dict)


@dataclass
class ComparativeWalkthroughResult:
    """Result of running every variant of a walkthrough at one tier"""
    walkthrough_id: str
    domain: str
    tier: str
    results_by_approach: dict[str, list[VariantResult]] = field(default_factory=dict)
    analysis: ComparativeAnalysis = field(default_factory=ComparativeAnalysis)
    rankings: list[str] = field(default_factory=list)
    advantage: AdvantageValidation = field(default_factory=lambda: AdvantageValidation(validated=False))
    recommendations: list[str] = field(default_factory=list)
    summary: str = ""
    execution_time_ms: int = 0
    timestamp: str = ""

    def iter_trials(self):
        for variants in self.results_by_approach.values():
            for variant in variants:
                yield from variant.trials


# --- Progressive execution ---


@dataclass(frozen=True)
class ProgressEvent:
    """Event emitted on the progress channel"""
    phase: str
    completed: int
    total: int
    context: dict = field(default_factory=dict)


@dataclass
class ProgressiveExecutionState:
    """Mutable state owned by the progressive tier coordinator"""
    active: bool = False
    current_tier: str | None = None
    tier_plan: list[str] = field(default_factory=list)
    completed_tiers: list[str] = field(default_factory=list)
    tier_results: dict[str, list] = field(default_factory=dict)
    blocked: bool = False
