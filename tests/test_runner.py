"""
runner.pyのテスト
"""

import argparse
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tier_gauge_core.domain.entities import (
    DomainMetrics,
    ScenarioResult,
    TrialResult,
    VariantResult,
    WalkthroughResult,
)
from tier_gauge_core.domain.value_objects import TokenBreakdown
from tier_gauge_core.harness_config import HarnessConfig
from tier_gauge_core.runner import _execute, _print_tier_summary, main, parse_args

DEMO_PACK = str(Path(__file__).resolve().parent.parent / "walkthroughs" / "walkthrough_pack_core_demo.json")


def _walkthrough_result(error=None):
    trial = TrialResult(
        test_id="D1_MCD_T1",
        user_input="Book a cardiology appointment",
        output="Missing: time, location",
        success=True,
        tier="good",
        accuracy=0.85,
        mcd_compliant=True,
        latency_ms=120,
        token_breakdown=TokenBreakdown(input=20, output=6),
        timestamp="2026-01-01T00:00:00",
        approach="mcd",
    )
    variant = VariantResult(
        variant_id="W1A1", variant_type="MCD", name="Structured", approach="mcd", trials=[trial],
    )
    return WalkthroughResult(
        walkthrough_id="W1",
        domain="appointment-booking",
        tier="Q1",
        scenario_results=[ScenarioResult(step=1, context="", variants=[variant])],
        domain_metrics=DomainMetrics(mcd_alignment_score=100.0, user_experience_score=81.5),
        error=error,
    )


def _report():
    return {
        "status": "completed",
        "completed_tiers": ["Q1"],
        "results": {"Q1": [_walkthrough_result()]},
        "drift_summary": {"Q1": {"overall_drift_rate": 0.25, "recommendations": ["Review prompts"]}},
        "error": None,
    }


class TestParseArgs:
    """parse_args()のテスト"""

    def test_defaults(self):
        args = parse_args(["--walkthrough-pack", "pack.json"])
        assert args.walkthrough_pack == "pack.json"
        assert args.tiers is None
        assert args.approach == "mcd"
        assert args.comparative is False
        assert args.no_cache is False
        assert args.output_dir == "results"

    def test_all_options(self):
        args = parse_args([
            "--walkthrough-pack", "pack.json",
            "--tiers", "Q1,Q4",
            "--approach", "few-shot",
            "--comparative",
            "--no-cache",
            "--output-dir", "out",
        ])
        assert args.tiers == "Q1,Q4"
        assert args.approach == "few-shot"
        assert args.comparative is True
        assert args.no_cache is True
        assert args.output_dir == "out"

    def test_pack_is_required(self):
        with pytest.raises(SystemExit):
            parse_args([])


class TestPrintTierSummary:
    """_print_tier_summary()のテスト"""

    def test_prints_walkthrough_row(self, capsys):
        _print_tier_summary("Q1", [_walkthrough_result(error="Walkthrough timed out after 1s")], HarnessConfig())
        output = capsys.readouterr().out
        assert "=== Tier Q1 ===" in output
        assert "W1" in output
        assert "1/1" in output
        assert "100.0%" in output
        assert "81.5" in output
        assert "ERROR: Walkthrough timed out after 1s" in output


class TestExecute:
    """_execute()のテスト"""

    @pytest.mark.asyncio
    @patch("tier_gauge_core.runner.run_progressive", new_callable=AsyncMock)
    @patch("tier_gauge_core.runner.run_health_check", new_callable=AsyncMock)
    async def test_no_engines_returns_none(self, mock_health, mock_progressive):
        mock_health.return_value = ({}, [])
        args = argparse.Namespace(no_cache=False, approach="mcd", comparative=False)

        assert await _execute([], ["Q1"], HarnessConfig(), args) is None
        mock_progressive.assert_not_awaited()

    @pytest.mark.asyncio
    @patch("tier_gauge_core.runner.run_progressive", new_callable=AsyncMock)
    @patch("tier_gauge_core.runner.run_health_check", new_callable=AsyncMock)
    async def test_runs_progressive_with_healthy_engines(self, mock_health, mock_progressive):
        engine = MagicMock()
        mock_health.return_value = ({"Q1": engine}, [])
        mock_progressive.return_value = _report()
        args = argparse.Namespace(no_cache=True, approach="conversational", comparative=True)

        report = await _execute([], ["Q1"], HarnessConfig(), args)

        assert report["status"] == "completed"
        tier_models = mock_health.await_args.args[0]
        assert tier_models == {"Q1": HarnessConfig().tier_models.models["Q1"]}
        kwargs = mock_progressive.await_args.kwargs
        assert mock_progressive.await_args.args[2] == {"Q1": engine}
        assert kwargs["cache"] is None
        assert kwargs["approach"] == "conversational"
        assert kwargs["comparative_run"] is True


class TestMain:
    """main()のテスト"""

    @pytest.fixture(autouse=True)
    def _no_dotenv(self, monkeypatch):
        monkeypatch.delenv("HARNESS_TIER_MODELS", raising=False)
        with patch("tier_gauge_core.runner.load_dotenv"):
            yield

    @patch("tier_gauge_core.runner._execute", new_callable=AsyncMock)
    def test_writes_csv_outputs(self, mock_execute, tmp_path, capsys):
        mock_execute.return_value = _report()

        main(["--walkthrough-pack", DEMO_PACK, "--tiers", "Q1", "--output-dir", str(tmp_path)])

        output = capsys.readouterr().out
        assert "Walkthroughs: 3" in output
        assert "=== Run completed" in output
        assert "drift rate 25.0%" in output
        assert "- Review prompts" in output
        raw_files = list(tmp_path.glob("raw_trials_*.csv"))
        summary_files = list(tmp_path.glob("summary_*.csv"))
        assert len(raw_files) == 1
        assert len(summary_files) == 1
        assert "D1_MCD_T1" in raw_files[0].read_text(encoding="utf-8")

    @patch("tier_gauge_core.runner._execute", new_callable=AsyncMock)
    def test_partial_tier_is_not_printed_or_saved(self, mock_execute, tmp_path, capsys):
        """停止で未完了のティアは表示にも CSV にも出ない"""
        partial = _walkthrough_result()
        partial.walkthrough_id = "W9"
        partial.tier = "Q4"
        report = _report()
        report["status"] = "stopped"
        report["partial_results"] = {"Q4": [partial]}
        mock_execute.return_value = report

        main(["--walkthrough-pack", DEMO_PACK, "--tiers", "Q1,Q4", "--output-dir", str(tmp_path)])

        output = capsys.readouterr().out
        assert "=== Tier Q1 ===" in output
        assert "=== Tier Q4 ===" not in output
        assert "Partial tiers not saved: ['Q4']" in output
        raw = next(tmp_path.glob("raw_trials_*.csv")).read_text(encoding="utf-8")
        assert "W1" in raw
        assert "W9" not in raw

    def test_unknown_tier_exits(self, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            main(["--walkthrough-pack", DEMO_PACK, "--tiers", "Q2", "--output-dir", str(tmp_path)])
        assert excinfo.value.code == 1

    @patch("tier_gauge_core.runner._execute", new_callable=AsyncMock)
    def test_no_engines_exits(self, mock_execute, tmp_path):
        mock_execute.return_value = None
        with pytest.raises(SystemExit) as excinfo:
            main(["--walkthrough-pack", DEMO_PACK, "--output-dir", str(tmp_path)])
        assert excinfo.value.code == 1
