"""
tier-gauge-core CLI Runner

Minimal CLI for running walkthroughs across capability tiers.

Usage:
    python -m tier_gauge_core.runner --walkthrough-pack walkthroughs/walkthrough_pack_core_demo.json
    python -m tier_gauge_core.runner --walkthrough-pack walkthroughs/walkthrough_pack_core_demo.json --tiers Q1,Q4 --comparative
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime
from functools import partial
from pathlib import Path

from dotenv import load_dotenv

from tier_gauge_core.domain.constants import APPROACH_MCD, TIERS
from tier_gauge_core.domain.entities import ComparativeWalkthroughResult, Walkthrough
from tier_gauge_core.execution_context import ExecutionContext
from tier_gauge_core.harness_config import HarnessConfig, load_config
from tier_gauge_core.infrastructure.model_clients.factory import create_client
from tier_gauge_core.infrastructure.result_cache import ResultCache
from tier_gauge_core.task_loader import load_walkthrough_pack
from tier_gauge_core.trial_stats import aggregate_trial_scores, summarize_trials, trial_rows
from tier_gauge_core.use_cases.health_check import run_health_check
from tier_gauge_core.use_cases.progressive import run_progressive, variant_results


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="tier-gauge-core: Evaluate prompt variants across model capability tiers",
    )
    parser.add_argument(
        "--walkthrough-pack",
        required=True,
        help="Path to the walkthrough pack JSON file",
    )
    parser.add_argument(
        "--tiers",
        default=None,
        help="Comma-separated tier plan in execution order (default: Q1,Q4,Q8)",
    )
    parser.add_argument(
        "--approach",
        default=APPROACH_MCD,
        help="Approach whose variant is run in each scenario (default: mcd)",
    )
    parser.add_argument(
        "--comparative",
        action="store_true",
        help="Run every variant and compare approaches",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Disable the result cache",
    )
    parser.add_argument(
        "--output-dir",
        default="results",
        help="Directory for output CSV files (default: results)",
    )
    return parser.parse_args(argv)


async def _execute(
    walkthroughs: list[Walkthrough],
    tier_plan: list[str],
    config: HarnessConfig,
    args: argparse.Namespace,
) -> dict | None:
    """Health-check the tier engines and run the progressive evaluation on one event loop"""
    make_client = partial(create_client, config=config)
    tier_models = {tier: config.tier_models.models[tier] for tier in tier_plan}
    engines, _ = await run_health_check(tier_models, make_client)
    if not engines:
        return None

    context = ExecutionContext()
    context.progress.subscribe(_print_progress)
    cache = None
    if config.cache.enabled and not args.no_cache:
        cache = ResultCache(ttl_seconds=config.cache.ttl_seconds, max_entries=config.cache.max_entries)

    return await run_progressive(
        walkthroughs,
        tier_plan,
        engines,
        context=context,
        cache=cache,
        config=config,
        approach=args.approach,
        comparative_run=args.comparative,
    )


def _print_progress(event) -> None:
    if event.phase == "tier_complete":
        print(f"  Tier {event.context.get('tier')} complete ({event.completed}/{event.total})")
    elif event.phase == "execution" and "walkthrough" not in event.context:
        print(f"  [{event.completed}/{event.total}] {event.context.get('tier', '')}")


def _print_tier_summary(tier: str, results: list, config: HarnessConfig) -> None:
    print(f"=== Tier {tier} ===\n")
    print(f"  {'Walkthrough':<16} {'Success':>9} {'Accuracy':>9} {'MCD align':>10} {'UX':>6}")
    print(f"  {'-'*16} {'-'*9} {'-'*9} {'-'*10} {'-'*6}")
    for result in results:
        trials = [t for v in variant_results(result) for t in v.trials]
        successes = sum(1 for t in trials if t.success)
        accuracy = aggregate_trial_scores([t.accuracy for t in trials], config.trials.aggregation)
        if isinstance(result, ComparativeWalkthroughResult):
            ux = "-"
            alignment = "-"
        else:
            ux = f"{result.domain_metrics.user_experience_score:.1f}"
            alignment = f"{result.domain_metrics.mcd_alignment_score:.1f}%"
        print(
            f"  {result.walkthrough_id:<16} "
            f"{f'{successes}/{len(trials)}':>9} "
            f"{accuracy:>9.3f} "
            f"{alignment:>10} "
            f"{ux:>6}"
        )
        if getattr(result, "error", None):
            print(f"    ERROR: {result.error}")
        if isinstance(result, ComparativeWalkthroughResult):
            print(f"    Rankings: {', '.join(result.rankings)}")
            print(f"    MCD advantage validated: {result.advantage.validated}")
    print()


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    args = parse_args(argv)

    # Load config
    config = load_config()

    # Tier plan
    if args.tiers:
        tier_plan = [t.strip() for t in args.tiers.split(",") if t.strip()]
    else:
        tier_plan = list(TIERS)
    unknown = [t for t in tier_plan if t not in config.tier_models.models]
    if unknown:
        print(f"ERROR: No model configured for tiers {unknown} (set HARNESS_TIER_MODELS).")
        sys.exit(1)

    run_id = datetime.now().strftime("%Y%m%d_%H%M%S")
    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    raw_path = output_dir / f"raw_trials_{run_id}.csv"
    summary_path = output_dir / f"summary_{run_id}.csv"

    # Load walkthrough pack
    print(f"\n=== Loading walkthrough pack: {args.walkthrough_pack} ===\n")
    pack = load_walkthrough_pack(args.walkthrough_pack)
    print(f"  Pack: {pack.pack_name}")
    print(f"  Walkthroughs: {len(pack.walkthroughs)}")
    print(f"  Tiers: {tier_plan}")
    print(f"  Mode: {'comparative' if args.comparative else args.approach}")
    print(f"  Run ID: {run_id}")
    print()

    report = asyncio.run(_execute(pack.walkthroughs, tier_plan, config, args))
    if report is None:
        print("ERROR: No tier engines available. Exiting.")
        sys.exit(1)

    print(f"\n=== Run {report['status']} (completed tiers: {report['completed_tiers']}) ===\n")
    if report["error"]:
        print(f"  ERROR: {report['error']}\n")

    for tier in tier_plan:
        if tier in report["results"]:
            _print_tier_summary(tier, report["results"][tier], config)
    if report.get("partial_results"):
        print(f"  Partial tiers not saved: {list(report['partial_results'])}\n")

    if report["drift_summary"]:
        print("=== Drift Summary ===\n")
        for tier, summary in report["drift_summary"].items():
            print(f"  {tier}: drift rate {summary.get('overall_drift_rate', 0.0):.1%}")
            for recommendation in summary.get("recommendations", []):
                print(f"    - {recommendation}")
        print()

    # Save CSV
    rows_df = trial_rows(report["results"])
    rows_df.to_csv(raw_path, index=False)
    summarize_trials(rows_df).to_csv(summary_path, index=False)

    print("=== Output ===\n")
    print(f"  Raw trials: {raw_path}")
    print(f"  Summary:    {summary_path}")
    print()


if __name__ == "__main__":
    main()
