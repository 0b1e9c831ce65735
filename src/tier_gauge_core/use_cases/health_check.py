"""
Health Check

Performs availability checks for the completion engine of every tier.
"""

import time
from typing import Callable

from tier_gauge_core.domain.entities import HealthCheckResult
from tier_gauge_core.infrastructure.model_clients.base import CompletionCapability, bind_capability


async def health_check_engine(
    tier: str,
    engine: CompletionCapability,
) -> HealthCheckResult:
    """
    Execute a health check for a single engine.

    Args:
        tier: Tier the engine serves
        engine: Completion engine

    Returns:
        HealthCheckResult: Health check result
    """
    model_name = getattr(engine, "model_name", "") or tier
    started = time.perf_counter()
    try:
        bind_capability(engine)
        healthy = await engine.health_check()
    except Exception as e:
        return HealthCheckResult(
            model_name=model_name,
            success=False,
            latency_ms=None,
            error=str(e),
        )
    latency_ms = round((time.perf_counter() - started) * 1000)
    return HealthCheckResult(
        model_name=model_name,
        success=healthy,
        latency_ms=latency_ms if healthy else None,
        error=None if healthy else "Engine did not answer the health check",
    )


async def run_health_check(
    tier_models: dict[str, str],
    create_client_fn: Callable[[str], CompletionCapability],
) -> tuple[dict[str, CompletionCapability], list[HealthCheckResult]]:
    """
    Create and check one engine per tier.

    Args:
        tier_models: Model name per tier
        create_client_fn: Function to create a completion engine

    Returns:
        tuple: (engines that passed, keyed by tier; list of all check results)
    """
    print("=== Engine Health Check ===\n")
    engines = {}
    results = []

    for tier, model_name in tier_models.items():
        print(f"  {tier}: {model_name}... ", end="", flush=True)
        try:
            engine = create_client_fn(model_name)
        except Exception as e:
            result = HealthCheckResult(model_name=model_name, success=False, latency_ms=None, error=str(e))
        else:
            result = await health_check_engine(tier, engine)
        results.append(result)

        if result.success:
            print(f"OK ({result.latency_ms}ms)")
            engines[tier] = engine
        else:
            # Display only the first 100 characters of the error message
            error_short = result.error[:100] if result.error else "Unknown error"
            print("FAILED")
            print(f"    Error: {error_short}")

    print()
    return engines, results
