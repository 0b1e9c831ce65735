"""
Use Cases Layer

Aggregates business logic and provides use cases called from the runner.
"""

from tier_gauge_core.use_cases.comparative import (
    analyze_approaches,
    rank_approaches,
    validate_advantage,
)
from tier_gauge_core.use_cases.domain_metrics import (
    advanced_metrics,
    domain_metrics,
    validate_percentage,
)
from tier_gauge_core.use_cases.health_check import (
    health_check_engine,
    run_health_check,
)
from tier_gauge_core.use_cases.progressive import (
    CoordinatorStateError,
    ProgressiveTierCoordinator,
    run_progressive,
)
from tier_gauge_core.use_cases.trial_executor import run_trial
from tier_gauge_core.use_cases.walkthrough import (
    execute_variant,
    run_comparative_evaluation,
    run_domain_walkthrough,
    run_walkthrough,
    select_variant_for_approach,
)

__all__ = [
    # comparative
    "analyze_approaches",
    "rank_approaches",
    "validate_advantage",
    # domain metrics
    "advanced_metrics",
    "domain_metrics",
    "validate_percentage",
    # health_check
    "health_check_engine",
    "run_health_check",
    # progressive
    "CoordinatorStateError",
    "ProgressiveTierCoordinator",
    "run_progressive",
    # trial executor
    "run_trial",
    # walkthrough
    "execute_variant",
    "run_comparative_evaluation",
    "run_domain_walkthrough",
    "run_walkthrough",
    "select_variant_for_approach",
]
