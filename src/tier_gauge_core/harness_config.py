"""
Evaluation Harness Configuration

Manages loading from environment variables and default values.
The scoring cut-offs were tuned empirically and are exposed here for recalibration.
"""

import os
from dataclasses import dataclass, field, asdict


def _env_bool(key: str, default: bool) -> bool:
    """Convert an environment variable to bool"""
    val = os.environ.get(key)
    if val is None:
        return default
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int) -> int:
    """Convert an environment variable to int"""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"The value '{val}' of environment variable '{key}' cannot be converted to an integer.")


def _env_float(key: str, default: float) -> float:
    """Convert an environment variable to float"""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(f"The value '{val}' of environment variable '{key}' cannot be converted to a number.")


def _env_str(key: str, default: str) -> str:
    """Get an environment variable as a string"""
    return os.environ.get(key, default)


def _env_mapping(key: str, default: dict[str, str]) -> dict[str, str]:
    """Convert an environment variable of the form 'A=x,B=y' to a dict"""
    val = os.environ.get(key)
    if val is None:
        return dict(default)
    result = {}
    for item in val.split(","):
        if not item.strip():
            continue
        name, sep, value = item.partition("=")
        if not sep or not name.strip() or not value.strip():
            raise ValueError(f"The value '{val}' of environment variable '{key}' must be a comma-separated list of NAME=VALUE pairs.")
        result[name.strip()] = value.strip()
    return result


def _env_float_mapping(key: str, default: dict[str, float]) -> dict[str, float]:
    """Convert an environment variable of the form 'Q1=45,Q4=60' to a dict of floats"""
    raw = _env_mapping(key, {k: str(v) for k, v in default.items()})
    try:
        return {k: float(v) for k, v in raw.items()}
    except ValueError:
        raise ValueError(f"The value '{os.environ.get(key)}' of environment variable '{key}' cannot be converted to numbers.")


@dataclass
class TrialConfig:
    """Trial score aggregation"""
    aggregation: str = "mean"  # mean / median


@dataclass
class ExecutionConfig:
    """Batched execution configuration"""
    max_concurrency: int = 2
    batch_pause_seconds: float = 1.0
    trial_timeout_seconds: dict[str, float] = field(
        default_factory=lambda: {"Q1": 45.0, "Q4": 60.0, "Q8": 90.0}
    )
    walkthrough_timeout_seconds: dict[str, float] = field(
        default_factory=lambda: {"Q1": 300.0, "Q4": 180.0, "Q8": 180.0}
    )
    health_check_before_batches: bool = True

    def trial_timeout_for(self, tier: str) -> float:
        return self.trial_timeout_seconds.get(tier, 60.0)

    def walkthrough_timeout_for(self, tier: str) -> float:
        return self.walkthrough_timeout_seconds.get(tier, 180.0)


@dataclass
class CacheConfig:
    """Result cache configuration"""
    enabled: bool = True
    ttl_seconds: float = 1800.0
    max_entries: int = 50


@dataclass
class ScoringConfig:
    """Tuned scoring cut-offs"""
    aligned_confidence: float = 0.4
    partial_confidence: float = 0.2
    excellent_ratio: float = 0.85
    good_ratio: float = 0.70
    acceptable_ratio: float = 0.55
    excellent_functional: float = 0.80
    good_functional: float = 0.65
    acceptable_functional: float = 0.55
    mcd_compliance_cutoff: float = 1.0
    success_advantage: float = 1.5
    token_advantage: float = 1.3
    latency_advantage: float = 1.2
    significance_confidence: float = 0.8


@dataclass
class IsolationConfig:
    """Provider client isolation configuration"""
    timeout_seconds: int = 120
    max_retries: int = 3
    retry_delay_seconds: float = 1.0


@dataclass
class LMStudioConfig:
    """LMStudio (OpenAI-compatible local LLM) configuration"""
    base_url: str = "http://localhost:1234/v1"
    api_key: str = "lm-studio"


@dataclass
class TierModelConfig:
    """Model name per capability tier"""
    models: dict[str, str] = field(
        default_factory=lambda: {
            "Q1": "lmstudio/qwen2.5-0.5b-instruct",
            "Q4": "lmstudio/qwen2.5-3b-instruct",
            "Q8": "lmstudio/qwen2.5-7b-instruct",
        }
    )


@dataclass
class HarnessConfig:
    """Overall evaluation harness configuration"""
    trials: TrialConfig = field(default_factory=TrialConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    isolation: IsolationConfig = field(default_factory=IsolationConfig)
    lmstudio: LMStudioConfig = field(default_factory=LMStudioConfig)
    tier_models: TierModelConfig = field(default_factory=TierModelConfig)

    def to_dict(self) -> dict:
        """Convert to dictionary format"""
        return {"harness_config": asdict(self)}

    @classmethod
    def from_dict(cls, data: dict) -> "HarnessConfig":
        """Create from dictionary (handles presence/absence of harness_config key)"""
        config_data = data.get("harness_config", data)
        return cls(
            trials=TrialConfig(**config_data.get("trials", {})),
            execution=ExecutionConfig(**config_data.get("execution", {})),
            cache=CacheConfig(**config_data.get("cache", {})),
            scoring=ScoringConfig(**config_data.get("scoring", {})),
            isolation=IsolationConfig(**config_data.get("isolation", {})),
            lmstudio=LMStudioConfig(**config_data.get("lmstudio", {})),
            tier_models=TierModelConfig(**config_data.get("tier_models", {})),
        )


def load_config() -> HarnessConfig:
    """
    Load configuration from environment variables

    Uses default values when environment variables are not set.

    Returns:
        HarnessConfig
    """
    trials = TrialConfig(aggregation=_env_str("HARNESS_AGGREGATION", "mean"))
    defaults = ExecutionConfig()
    execution = ExecutionConfig(
        max_concurrency=_env_int("HARNESS_MAX_CONCURRENCY", 2),
        batch_pause_seconds=_env_float("HARNESS_BATCH_PAUSE_SECONDS", 1.0),
        trial_timeout_seconds=_env_float_mapping(
            "HARNESS_TRIAL_TIMEOUTS", defaults.trial_timeout_seconds
        ),
        walkthrough_timeout_seconds=_env_float_mapping(
            "HARNESS_WALKTHROUGH_TIMEOUTS", defaults.walkthrough_timeout_seconds
        ),
        health_check_before_batches=_env_bool("HARNESS_HEALTH_CHECK", True),
    )
    cache = CacheConfig(
        enabled=_env_bool("HARNESS_CACHE_ENABLED", True),
        ttl_seconds=_env_float("HARNESS_CACHE_TTL_SECONDS", 1800.0),
        max_entries=_env_int("HARNESS_CACHE_MAX_ENTRIES", 50),
    )
    scoring = ScoringConfig(
        aligned_confidence=_env_float("HARNESS_DRIFT_ALIGNED_CONFIDENCE", 0.4),
        partial_confidence=_env_float("HARNESS_DRIFT_PARTIAL_CONFIDENCE", 0.2),
        mcd_compliance_cutoff=_env_float("HARNESS_MCD_COMPLIANCE_CUTOFF", 1.0),
        significance_confidence=_env_float("HARNESS_SIGNIFICANCE_CONFIDENCE", 0.8),
    )
    isolation = IsolationConfig(
        timeout_seconds=_env_int("HARNESS_TIMEOUT_SECONDS", 120),
        max_retries=_env_int("HARNESS_MAX_RETRIES", 3),
        retry_delay_seconds=_env_float("HARNESS_RETRY_DELAY_SECONDS", 1.0),
    )
    lmstudio = LMStudioConfig(
        base_url=_env_str("LMSTUDIO_BASE_URL", "http://localhost:1234/v1"),
        api_key=_env_str("LMSTUDIO_API_KEY", "lm-studio"),
    )
    tier_models = TierModelConfig(
        models=_env_mapping("HARNESS_TIER_MODELS", TierModelConfig().models),
    )
    return HarnessConfig(
        trials=trials,
        execution=execution,
        cache=cache,
        scoring=scoring,
        isolation=isolation,
        lmstudio=lmstudio,
        tier_models=tier_models,
    )
