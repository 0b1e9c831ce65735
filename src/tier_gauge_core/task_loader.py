"""
Walkthrough Loader

Loads walkthrough definitions from walkthrough pack JSON files.
"""

import json
from dataclasses import dataclass

from tier_gauge_core.domain.entities import (
    Benchmark,
    ExpectedProfile,
    Scenario,
    SuccessCriteria,
    TrialSpecification,
    Variant,
    Walkthrough,
)


@dataclass
class WalkthroughPack:
    """Walkthrough pack definition"""
    pack_id: str
    pack_name: str
    description: str
    version: str
    walkthroughs: list[Walkthrough]


def _require(data: dict, fields: list[str], file_path: str) -> None:
    for field in fields:
        if field not in data:
            raise KeyError(f"Required field '{field}' is missing: {file_path}")


def _parse_trial(data: dict, file_path: str) -> TrialSpecification:
    """
    Create a TrialSpecification from dictionary data

    Unset success criteria stay None and are resolved from domain defaults
    at evaluation time.
    """
    _require(data, ["test_id", "user_input"], file_path)
    criteria = data.get("success_criteria") or {}
    benchmark = data.get("benchmark")
    return TrialSpecification(
        test_id=data["test_id"],
        user_input=data["user_input"],
        success_criteria=SuccessCriteria(
            required_elements=list(criteria.get("required_elements", [])),
            prohibited_elements=list(criteria.get("prohibited_elements", [])),
            task_completion_expected=criteria.get("task_completion_expected", True),
            max_token_budget=criteria.get("max_token_budget"),
            max_latency_ms=criteria.get("max_latency_ms"),
            min_accuracy=criteria.get("min_accuracy"),
        ),
        difficulty=data.get("difficulty", "moderate"),
        category=data.get("category", ""),
        expected_terms=data.get("expected_terms"),
        semantic_anchors=list(data.get("semantic_anchors", [])),
        benchmark=Benchmark(
            expected_output=benchmark.get("expected_output", ""),
            expected_latency_ms=benchmark.get("expected_latency_ms", 0.0),
            expected_tokens=benchmark.get("expected_tokens"),
            notes=benchmark.get("notes", ""),
        ) if benchmark else None,
        notes=data.get("notes", ""),
    )


def _parse_variant(data: dict, file_path: str) -> Variant:
    _require(data, ["variant_id", "name", "prompt", "trials"], file_path)
    profile = data.get("expected_profile") or {}
    return Variant(
        variant_id=data["variant_id"],
        name=data["name"],
        prompt=data["prompt"],
        trials=[_parse_trial(t, file_path) for t in data["trials"]],
        variant_type=data.get("type", "Non-MCD"),
        approach=data.get("approach"),
        expected_profile=ExpectedProfile(
            avg_latency=profile.get("avg_latency", 0.0),
            avg_tokens=profile.get("avg_tokens", 0.0),
            success_rate=profile.get("success_rate", "0/0"),
        ),
    )


def _parse_walkthrough(data: dict, file_path: str) -> Walkthrough:
    """
    Create a Walkthrough from dictionary data

    Args:
        data: Walkthrough data dictionary
        file_path: Source file (used in error messages)

    Returns:
        Walkthrough: Walkthrough object
    """
    _require(data, ["walkthrough_id", "domain", "scenarios"], file_path)
    scenarios = []
    for scenario in data["scenarios"]:
        _require(scenario, ["step", "variants"], file_path)
        scenarios.append(
            Scenario(
                step=scenario["step"],
                context=scenario.get("context", ""),
                variants=[_parse_variant(v, file_path) for v in scenario["variants"]],
            )
        )
    return Walkthrough(
        walkthrough_id=data["walkthrough_id"],
        domain=data["domain"],
        scenarios=scenarios,
        title=data.get("title", ""),
    )


def load_walkthrough_pack(file_path: str) -> WalkthroughPack:
    """
    Load a walkthrough pack JSON

    Args:
        file_path: Path to the walkthrough pack JSON file

    Returns:
        WalkthroughPack: Walkthrough pack object

    Raises:
        FileNotFoundError: If the file does not exist
        KeyError: If a required field is missing
    """
    with open(file_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    _require(data, ["pack_id", "pack_name", "walkthroughs"], file_path)

    return WalkthroughPack(
        pack_id=data["pack_id"],
        pack_name=data["pack_name"],
        description=data.get("description", ""),
        version=data.get("version", "1.0"),
        walkthroughs=[_parse_walkthrough(w, file_path) for w in data["walkthroughs"]],
    )
