"""
Value Objects

Defines immutable value objects used throughout the evaluation engine.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ChatMessage:
    """A single chat message sent to a completion capability"""
    role: str
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class CompletionResponse:
    """Response returned by a completion capability"""
    content: str
    total_tokens: int = 0
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    model_name: str = ""

    @classmethod
    def from_payload(cls, payload: dict, model_name: str = "") -> "CompletionResponse":
        """
        Build from the wire shape {choices: [{message: {content}}], usage: {...}}

        Missing choices or usage produce an empty response rather than an error.
        """
        choices = payload.get("choices") or []
        content = ""
        if choices:
            message = choices[0].get("message") or {}
            content = message.get("content") or ""
        usage = payload.get("usage") or {}
        return cls(
            content=content,
            total_tokens=usage.get("total_tokens") or 0,
            prompt_tokens=usage.get("prompt_tokens"),
            completion_tokens=usage.get("completion_tokens"),
            model_name=model_name,
        )


@dataclass(frozen=True)
class TokenBreakdown:
    """Token usage of one trial"""
    input: int = 0
    process: int = 0
    output: int = 0

    def __post_init__(self):
        """Post-initialization validation"""
        if self.input < 0:
            raise ValueError("input must be non-negative")
        if self.process < 0:
            raise ValueError("process must be non-negative")
        if self.output < 0:
            raise ValueError("output must be non-negative")

    @property
    def total(self) -> int:
        return self.input + self.process + self.output


@dataclass(frozen=True)
class BenchmarkComparison:
    """Difference between a trial and its benchmark"""
    latency_diff: int = 0
    token_diff: int = 0
    performance_better: bool = False


@dataclass(frozen=True)
class TierEvaluation:
    """Outcome of the tiered evaluator for one output"""
    success: bool
    tier: str
    accuracy: float
    mcd_compliant: bool
    failures: list[str] = field(default_factory=list)
    functional_score: float = 0.0
    required_ratio: float = 1.0
    prohibited_count: int = 0
    token_efficiency: float = 1.0
    content_quality: float = 0.0
    domain: str = ""


@dataclass(frozen=True)
class DriftAnalysis:
    """Alignment verdict of a response against its expected semantics"""
    status: str
    aligned: bool
    drift_detected: bool
    severity: str  # none / mild / moderate / severe
    confidence: float
    missing_anchors: list[str] = field(default_factory=list)
    preserved_anchors: list[str] = field(default_factory=list)
    preservation_rate: float = 1.0
    hallucinations: list[str] = field(default_factory=list)
    matched_terms: list[str] = field(default_factory=list)
    missing_terms: list[str] = field(default_factory=list)
    fragmentation: float = 0.0
    speculative: bool = False
    context_loss: bool = False
    drift_type: str | None = None
    notes: str = ""


@dataclass(frozen=True)
class DomainDriftAnalysis(DriftAnalysis):
    """Drift analysis enriched with domain-specific checks"""
    domain: str = ""
    domain_patterns: list[str] = field(default_factory=list)
    domain_metrics: dict[str, float] = field(default_factory=dict)
    principle_adherence: dict[str, bool] = field(default_factory=dict)
