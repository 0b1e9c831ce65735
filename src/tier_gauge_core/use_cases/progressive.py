"""
Progressive Tier Execution

Runs walkthroughs tier by tier in concurrency windows and tracks which
tiers are complete. Data of a tier stays hidden from downstream readers
until that tier has been published.
"""

import asyncio
import copy
import logging
from typing import Callable, Iterable

from tier_gauge_core.domain.constants import APPROACH_MCD
from tier_gauge_core.domain.entities import (
    ComparativeWalkthroughResult,
    ProgressiveExecutionState,
    VariantResult,
    Walkthrough,
    WalkthroughResult,
)
from tier_gauge_core.execution_context import ExecutionContext, ProgressPublisher
from tier_gauge_core.harness_config import HarnessConfig
from tier_gauge_core.infrastructure.model_clients.base import CompletionCapability, bind_capability
from tier_gauge_core.infrastructure.result_cache import ResultCache
from tier_gauge_core.scoring.drift_detector import summarize_batch_drift
from tier_gauge_core.use_cases.walkthrough import (
    error_walkthrough_result,
    run_walkthrough,
)

logger = logging.getLogger(__name__)

PHASE_IDLE = "idle"
PHASE_ACTIVE = "active"
PHASE_PUBLISHING = "publishing"


class CoordinatorStateError(RuntimeError):
    """Raised on an illegal coordinator transition"""


class ProgressiveTierCoordinator:
    """
    State machine of a multi-tier run

    idle -> active(tier) -> publishing(tier) -> active(next tier) -> ... -> idle.
    The state resets once every planned tier is complete or the run is
    cancelled; the completed set of the last run stays readable through
    last_run_completed_tiers and their snapshots through
    published_results.
    """

    def __init__(self, publisher: ProgressPublisher | None = None):
        self.state = ProgressiveExecutionState()
        self.last_run_completed_tiers: list[str] = []
        self.last_run_results: dict[str, list] = {}
        self._publisher = publisher or ProgressPublisher()

    @property
    def phase(self) -> str:
        if not self.state.active:
            return PHASE_IDLE
        if self.state.blocked:
            return PHASE_PUBLISHING
        return PHASE_ACTIVE

    @property
    def completed_tiers(self) -> list[str]:
        return list(self.state.completed_tiers)

    @property
    def published_results(self) -> dict[str, list]:
        """Snapshots of the completed tiers, in completion order"""
        if self.state.active:
            return {tier: self.state.tier_results[tier] for tier in self.state.completed_tiers}
        return dict(self.last_run_results)

    def start(self, tier_plan: list[str]) -> None:
        """
        Begin a run over tier_plan

        Raises:
            CoordinatorStateError: If the plan is empty or a run is active
        """
        if not tier_plan:
            raise CoordinatorStateError("Cannot start a progressive run with an empty tier plan")
        if self.state.active:
            raise CoordinatorStateError("A progressive run is already active")
        self.state = ProgressiveExecutionState(active=True, tier_plan=list(tier_plan))
        self.last_run_completed_tiers = []
        self.last_run_results = {}
        logger.info("Progressive run started: %s", " -> ".join(tier_plan))

    def begin_tier(self, tier: str) -> None:
        self._require_planned(tier)
        self.state.current_tier = tier

    def complete_tier(self, tier: str, results: list) -> bool:
        """
        Publish a finished tier

        The tier is snapshotted and appended to the completed set (a repeat
        is a no-op) while the blocked flag is held. Subscribers are notified
        after the flag is cleared, so they always observe the active phase.
        A subscriber failure is logged by the publisher and does not undo the
        completion.

        Returns:
            True if the tier was recorded as complete
        """
        self._require_planned(tier)
        self.state.blocked = True
        try:
            self.state.tier_results[tier] = copy.deepcopy(results)
            if tier not in self.state.completed_tiers:
                self.state.completed_tiers.append(tier)
            self.state.current_tier = None
        except Exception as e:
            self.state.blocked = False
            logger.error("Snapshotting tier %s failed: %s", tier, e)
            return False
        self.state.blocked = False

        self._publisher.publish(
            "tier_complete",
            len(self.state.completed_tiers),
            len(self.state.tier_plan),
            tier=tier,
        )

        if len(self.state.completed_tiers) >= len(self.state.tier_plan):
            logger.info("All planned tiers complete")
            self.reset()
        return True

    def cancel(self) -> None:
        if self.state.active:
            logger.info("Progressive run cancelled after %s", self.state.completed_tiers or "no tiers")
        self.reset()

    def reset(self) -> None:
        if self.state.active:
            self.last_run_completed_tiers = list(self.state.completed_tiers)
            self.last_run_results = {tier: self.state.tier_results[tier] for tier in self.state.completed_tiers}
        self.state = ProgressiveExecutionState()

    def is_tier_visible(self, tier: str) -> bool:
        return not self.state.active or tier in self.state.completed_tiers

    def filter_visible(self, items: Iterable, tier_of: Callable[[object], str | None]) -> list:
        """
        Drop items of tiers that are not complete yet

        Args:
            items: Items to filter
            tier_of: Returns the tier of an item, or None for items that are
                not partitioned by tier (always visible)

        Returns:
            Visible items, in order
        """
        if not self.state.active:
            return list(items)
        visible = []
        for item in items:
            tier = tier_of(item)
            if tier is None or tier in self.state.completed_tiers:
                visible.append(item)
        return visible

    def _require_planned(self, tier: str) -> None:
        if not self.state.active:
            raise CoordinatorStateError(f"No progressive run is active (tier {tier})")
        if tier not in self.state.tier_plan:
            raise CoordinatorStateError(f"Tier {tier} is not part of the plan {self.state.tier_plan}")


def variant_results(result: WalkthroughResult | ComparativeWalkthroughResult) -> list[VariantResult]:
    if isinstance(result, ComparativeWalkthroughResult):
        return [v for variants in result.results_by_approach.values() for v in variants]
    return [v for scenario in result.scenario_results for v in scenario.variants]


def drift_summary(results: list, domain_of: Callable[[object], str] = lambda r: r.domain) -> dict:
    records = [
        (trial.drift, domain_of(result), variant.variant_type)
        for result in results
        for variant in variant_results(result)
        for trial in variant.trials
        if trial.drift is not None
    ]
    return summarize_batch_drift(records)


async def _check_engine(tier: str, engine, config: HarnessConfig) -> str | None:
    """Bind and optionally health-check an engine; returns an error message or None"""
    try:
        bind_capability(engine)
    except TypeError as e:
        return str(e)
    if config.execution.health_check_before_batches:
        health_check = getattr(engine, "health_check", None)
        if health_check is None:
            return None
        try:
            healthy = await health_check()
        except Exception as e:
            logger.warning("Health check raised for %s: %s", tier, e)
            healthy = False
        if not healthy:
            return f"Engine health check failed for {tier}"
    return None


async def run_progressive(
    walkthroughs: list[Walkthrough],
    tier_plan: list[str],
    engines: dict[str, CompletionCapability],
    *,
    context: ExecutionContext | None = None,
    cache: ResultCache | None = None,
    config: HarnessConfig | None = None,
    approach: str = APPROACH_MCD,
    comparative_run: bool = False,
    coordinator: ProgressiveTierCoordinator | None = None,
) -> dict:
    """
    Execute walkthroughs tier by tier

    Within a tier, walkthroughs run in windows of max_concurrency; a failing
    walkthrough never cancels its siblings. The stop signal is polled before
    every tier and every window.

    Args:
        walkthroughs: Walkthroughs to run at every tier
        tier_plan: Tiers in execution order
        engines: Completion engine per tier
        context: Execution context (stop signal, lease, progress channel)
        cache: Result cache (None disables caching)
        config: Harness configuration
        approach: Approach for single-approach runs
        comparative_run: Run every variant instead of one per scenario
        coordinator: Tier coordinator (a new one publishing to the context by default)

    Returns:
        dict with status (completed / stopped), completed_tiers, results per
        published tier, partial_results of tiers that never completed,
        drift_summary per published tier and error
    """
    config = config or HarnessConfig()
    context = context or ExecutionContext()
    coordinator = coordinator or ProgressiveTierCoordinator(context.progress)
    progress = context.progress
    report = {
        "status": "completed",
        "completed_tiers": [],
        "results": {},
        "partial_results": {},
        "drift_summary": {},
        "error": None,
    }
    window_size = max(1, config.execution.max_concurrency)

    with context.lease("progressive"):
        try:
            progress.publish("validation", 0, len(tier_plan))
            engine_errors = {}
            for tier in tier_plan:
                error = await _check_engine(tier, engines.get(tier), config)
                if error:
                    logger.warning("Tier %s unavailable: %s", tier, error)
                    engine_errors[tier] = error

            coordinator.start(tier_plan)
            total = len(walkthroughs) * len(tier_plan)
            done = 0
            for tier in tier_plan:
                if context.is_stop_requested():
                    break
                coordinator.begin_tier(tier)
                tier_results = []

                if tier in engine_errors:
                    failure = RuntimeError(engine_errors[tier])
                    tier_results.extend(error_walkthrough_result(w, w.domain, tier, failure) for w in walkthroughs)
                    done += len(walkthroughs)
                else:
                    for start in range(0, len(walkthroughs), window_size):
                        if context.is_stop_requested():
                            break
                        if start > 0:
                            await asyncio.sleep(config.execution.batch_pause_seconds)
                        window = walkthroughs[start:start + window_size]
                        outcomes = await asyncio.gather(
                            *(
                                run_walkthrough(
                                    w, tier, engines[tier],
                                    comparative_run=comparative_run, approach=approach,
                                    context=context, cache=cache, config=config,
                                )
                                for w in window
                            ),
                            return_exceptions=True,
                        )
                        for walkthrough, outcome in zip(window, outcomes):
                            if isinstance(outcome, BaseException):
                                logger.error("Walkthrough %s [%s] rejected: %s", walkthrough.walkthrough_id, tier, outcome)
                                outcome = error_walkthrough_result(walkthrough, walkthrough.domain, tier, outcome)
                            tier_results.append(outcome)
                        done += len(window)
                        progress.publish("execution", done, total, tier=tier)

                if context.is_stop_requested():
                    if tier_results:
                        report["partial_results"][tier] = tier_results
                    break
                if not coordinator.complete_tier(tier, tier_results):
                    report["partial_results"][tier] = tier_results

            stopped = context.is_stop_requested()
            coordinator.cancel()
            report["results"] = coordinator.published_results
            if stopped:
                report["status"] = "stopped"
                progress.publish("stopped", done, total)
            else:
                progress.publish("analysis", done, total)
                async with context.exclusive():
                    for tier, tier_results in report["results"].items():
                        report["drift_summary"][tier] = drift_summary(tier_results)
                progress.publish("complete", done, total)
        except Exception as e:
            logger.exception("Progressive run failed")
            report["status"] = "stopped"
            report["error"] = str(e)
            coordinator.cancel()
            report["results"] = coordinator.published_results
            progress.publish("stopped", 0, 0, error=str(e))

    report["completed_tiers"] = list(coordinator.last_run_completed_tiers)
    return report
