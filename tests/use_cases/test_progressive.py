"""
段階的ティア実行のテスト

ProgressiveTierCoordinator の状態遷移と可視性、run_progressive() の
ティア単位実行・停止・エンジン不調時の挙動をテストする。
"""

import threading

import pytest
from unittest.mock import AsyncMock, patch

from tier_gauge_core.domain.entities import (
    Scenario,
    SuccessCriteria,
    TrialSpecification,
    Variant,
    Walkthrough,
    WalkthroughResult,
)
from tier_gauge_core.domain.value_objects import CompletionResponse
from tier_gauge_core.execution_context import ExecutionContext, ExecutionLeaseError, ProgressPublisher
from tier_gauge_core.harness_config import HarnessConfig
from tier_gauge_core.infrastructure.model_clients.base import CompletionCapability
from tier_gauge_core.use_cases.progressive import (
    PHASE_ACTIVE,
    PHASE_IDLE,
    CoordinatorStateError,
    ProgressiveTierCoordinator,
    run_progressive,
)

GOOD_OUTPUT = "Check: Missing appointment time and location details"


class TierEngine(CompletionCapability):
    """Fake engine with a configurable health and per-call hook"""

    def __init__(self, model_name, healthy=True, on_call=None):
        self.model_name = model_name
        self.healthy = healthy
        self.on_call = on_call
        self.calls = 0

    async def complete(self, messages, max_tokens, temperature):
        self.calls += 1
        if self.on_call:
            self.on_call()
        return CompletionResponse(content=GOOD_OUTPUT, prompt_tokens=10, completion_tokens=8)

    async def health_check(self):
        return self.healthy


def _walkthrough(walkthrough_id):
    trials = [
        TrialSpecification(
            test_id=f"D1_{walkthrough_id}_T{i}",
            user_input="Book a cardiology appointment",
            success_criteria=SuccessCriteria(required_elements=["time", "location"]),
        )
        for i in (1, 2)
    ]
    variant = Variant(
        variant_id=f"{walkthrough_id}A1",
        name="Structured Slot Collection",
        prompt="Task: Extract slots. Input: [user_input]",
        trials=trials,
        variant_type="MCD",
    )
    return Walkthrough(
        walkthrough_id=walkthrough_id,
        domain="appointment-booking",
        scenarios=[Scenario(step=1, context="", variants=[variant])],
    )


def _config():
    config = HarnessConfig()
    config.execution.batch_pause_seconds = 0.0
    return config


class TestCoordinator:
    """ProgressiveTierCoordinator のテスト"""

    def test_initial_state_is_idle(self):
        coordinator = ProgressiveTierCoordinator()
        assert coordinator.phase == PHASE_IDLE
        assert coordinator.completed_tiers == []

    def test_start_with_empty_plan_raises(self):
        with pytest.raises(CoordinatorStateError, match="empty tier plan"):
            ProgressiveTierCoordinator().start([])

    def test_start_while_active_raises(self):
        coordinator = ProgressiveTierCoordinator()
        coordinator.start(["Q1", "Q4"])
        with pytest.raises(CoordinatorStateError, match="already active"):
            coordinator.start(["Q1"])

    def test_unplanned_tier_raises(self):
        coordinator = ProgressiveTierCoordinator()
        coordinator.start(["Q1"])
        with pytest.raises(CoordinatorStateError, match="not part of the plan"):
            coordinator.begin_tier("Q8")

    def test_begin_tier_without_run_raises(self):
        with pytest.raises(CoordinatorStateError, match="No progressive run"):
            ProgressiveTierCoordinator().begin_tier("Q1")

    def test_tier_transitions(self):
        """idle -> active -> (publish) -> active -> idle"""
        events = []
        publisher = ProgressPublisher()
        publisher.subscribe(events.append)
        coordinator = ProgressiveTierCoordinator(publisher)

        coordinator.start(["Q1", "Q4"])
        coordinator.begin_tier("Q1")
        assert coordinator.phase == PHASE_ACTIVE
        assert coordinator.state.current_tier == "Q1"

        assert coordinator.complete_tier("Q1", ["r1"]) is True
        assert coordinator.phase == PHASE_ACTIVE
        assert coordinator.completed_tiers == ["Q1"]
        assert coordinator.state.current_tier is None

        coordinator.begin_tier("Q4")
        coordinator.complete_tier("Q4", ["r4"])
        assert coordinator.phase == PHASE_IDLE
        assert coordinator.last_run_completed_tiers == ["Q1", "Q4"]
        assert [(e.phase, e.completed, e.total) for e in events] == [
            ("tier_complete", 1, 2),
            ("tier_complete", 2, 2),
        ]

    def test_repeated_completion_is_noop(self):
        coordinator = ProgressiveTierCoordinator()
        coordinator.start(["Q1", "Q4"])
        coordinator.complete_tier("Q1", [])
        coordinator.complete_tier("Q1", [])
        assert coordinator.completed_tiers == ["Q1"]

    def test_results_are_snapshotted(self):
        coordinator = ProgressiveTierCoordinator()
        coordinator.start(["Q1", "Q4"])
        results = [{"score": 1}]
        coordinator.complete_tier("Q1", results)
        results[0]["score"] = 2
        assert coordinator.state.tier_results["Q1"] == [{"score": 1}]

    def test_filter_visible_hides_incomplete_tiers(self):
        coordinator = ProgressiveTierCoordinator()
        coordinator.start(["A", "B", "C"])
        coordinator.complete_tier("A", [])
        items = [("A", 1), ("B", 2), (None, 3), ("C", 4), ("A", 5)]

        visible = coordinator.filter_visible(items, lambda item: item[0])

        assert visible == [("A", 1), (None, 3), ("A", 5)]
        assert coordinator.is_tier_visible("A") is True
        assert coordinator.is_tier_visible("B") is False

    def test_everything_visible_when_idle(self):
        coordinator = ProgressiveTierCoordinator()
        items = [("A", 1), ("B", 2)]
        assert coordinator.filter_visible(items, lambda item: item[0]) == items
        assert coordinator.is_tier_visible("B") is True

    def test_cancel_keeps_last_completed_set(self):
        coordinator = ProgressiveTierCoordinator()
        coordinator.start(["Q1", "Q4", "Q8"])
        coordinator.complete_tier("Q1", [])
        coordinator.cancel()
        assert coordinator.phase == PHASE_IDLE
        assert coordinator.completed_tiers == []
        assert coordinator.last_run_completed_tiers == ["Q1"]

    def test_publish_failure_clears_blocked_flag(self):
        """購読者の例外はログに残り、blocked フラグは解除される"""
        publisher = ProgressPublisher()
        publisher.subscribe(lambda event: 1 / 0)
        coordinator = ProgressiveTierCoordinator(publisher)
        coordinator.start(["Q1", "Q4"])

        assert coordinator.complete_tier("Q1", []) is True
        assert coordinator.state.blocked is False


class TestRunProgressive:
    """run_progressive() のテスト"""

    @pytest.mark.asyncio
    async def test_all_tiers_complete(self):
        engines = {"Q1": TierEngine("q1"), "Q4": TierEngine("q4")}
        walkthroughs = [_walkthrough("W1"), _walkthrough("W2"), _walkthrough("W3")]
        context = ExecutionContext()
        phases = []
        context.progress.subscribe(lambda event: phases.append(event.phase))

        report = await run_progressive(walkthroughs, ["Q1", "Q4"], engines, context=context, config=_config())

        assert report["status"] == "completed"
        assert report["error"] is None
        assert report["completed_tiers"] == ["Q1", "Q4"]
        assert [r.walkthrough_id for r in report["results"]["Q1"]] == ["W1", "W2", "W3"]
        assert all(isinstance(r, WalkthroughResult) for r in report["results"]["Q4"])
        assert engines["Q1"].calls == 6
        assert "overall_drift_rate" in report["drift_summary"]["Q1"]
        assert phases[0] == "validation"
        assert phases.count("tier_complete") == 2
        assert phases[-2:] == ["analysis", "complete"]
        assert context.is_lease_active() is False

    @pytest.mark.asyncio
    async def test_stop_during_second_tier(self):
        """Q4 実行中に停止すると Q1 のみ完了し、状態は idle に戻る"""
        context = ExecutionContext()
        engines = {"Q1": TierEngine("q1"), "Q4": TierEngine("q4", on_call=context.request_stop)}
        coordinator = ProgressiveTierCoordinator(context.progress)

        report = await run_progressive(
            [_walkthrough("W1")], ["Q1", "Q4"], engines,
            context=context, config=_config(), coordinator=coordinator,
        )

        assert report["status"] == "stopped"
        assert report["completed_tiers"] == ["Q1"]
        assert report["drift_summary"] == {}
        assert coordinator.phase == PHASE_IDLE
        assert engines["Q4"].calls == 1

    @pytest.mark.asyncio
    async def test_stop_before_start_runs_nothing(self):
        context = ExecutionContext()
        context.request_stop()
        engine = TierEngine("q1")

        report = await run_progressive([_walkthrough("W1")], ["Q1"], {"Q1": engine}, context=context, config=_config())

        assert report["status"] == "stopped"
        assert report["completed_tiers"] == []
        assert engine.calls == 0

    @pytest.mark.asyncio
    async def test_unhealthy_tier_records_errors(self):
        """ヘルスチェックに失敗したティアはエラー結果で完了する"""
        engines = {"Q1": TierEngine("q1"), "Q4": TierEngine("q4", healthy=False)}

        report = await run_progressive([_walkthrough("W1")], ["Q1", "Q4"], engines, config=_config())

        assert report["status"] == "completed"
        assert report["completed_tiers"] == ["Q1", "Q4"]
        failed = report["results"]["Q4"][0]
        assert failed.error == "Engine health check failed for Q4"
        assert engines["Q4"].calls == 0

    @pytest.mark.asyncio
    async def test_missing_engine_records_errors(self):
        report = await run_progressive([_walkthrough("W1")], ["Q1"], {}, config=_config())
        assert report["results"]["Q1"][0].error is not None
        assert report["completed_tiers"] == ["Q1"]

    @pytest.mark.asyncio
    async def test_rejected_walkthrough_does_not_cancel_siblings(self):
        """ウィンドウ内の1件が例外でも他のウォークスルーは完了する"""
        real_engine = TierEngine("q1")

        async def fake_run(walkthrough, tier, engine, **kwargs):
            if walkthrough.walkthrough_id == "W2":
                raise RuntimeError("worker crashed")
            return WalkthroughResult(walkthrough_id=walkthrough.walkthrough_id, domain=walkthrough.domain, tier=tier)

        with patch("tier_gauge_core.use_cases.progressive.run_walkthrough", new=AsyncMock(side_effect=fake_run)):
            report = await run_progressive(
                [_walkthrough("W1"), _walkthrough("W2")], ["Q1"], {"Q1": real_engine}, config=_config(),
            )

        results = report["results"]["Q1"]
        assert [r.walkthrough_id for r in results] == ["W1", "W2"]
        assert results[0].error is None
        assert results[1].error == "worker crashed"

    @pytest.mark.asyncio
    async def test_empty_plan_stops_with_error(self):
        report = await run_progressive([_walkthrough("W1")], [], {}, config=_config())
        assert report["status"] == "stopped"
        assert "empty tier plan" in report["error"]
        assert report["completed_tiers"] == []

    @pytest.mark.asyncio
    async def test_lease_already_held(self):
        context = ExecutionContext()
        with context.lease("progressive"):
            with pytest.raises(ExecutionLeaseError):
                await run_progressive([_walkthrough("W1")], ["Q1"], {"Q1": TierEngine("q1")}, context=context)


class TestTierVisibility:
    """公開済みティアだけが結果として見えることのテスト"""

    def test_subscriber_sees_active_phase_on_tier_complete(self):
        """tier_complete 通知の時点で blocked フラグは解除済み"""
        observed = []
        publisher = ProgressPublisher()
        coordinator = ProgressiveTierCoordinator(publisher)
        publisher.subscribe(lambda event: observed.append((coordinator.phase, coordinator.state.blocked)))
        coordinator.start(["Q1", "Q4"])

        coordinator.complete_tier("Q1", [])

        assert observed == [(PHASE_ACTIVE, False)]

    def test_snapshot_failure_clears_flag_before_logging(self):
        """スナップショット失敗時はログ出力より先に blocked を解除する"""
        coordinator = ProgressiveTierCoordinator()
        coordinator.start(["Q1", "Q4"])
        flags = []

        with patch("tier_gauge_core.use_cases.progressive.logger") as mock_logger:
            mock_logger.error.side_effect = lambda *args: flags.append(coordinator.state.blocked)
            assert coordinator.complete_tier("Q1", [threading.Lock()]) is False

        assert flags == [False]
        assert coordinator.completed_tiers == []
        assert coordinator.published_results == {}

    def test_published_results_outlive_reset(self):
        coordinator = ProgressiveTierCoordinator()
        coordinator.start(["Q1", "Q4"])
        coordinator.complete_tier("Q1", ["r1"])
        assert coordinator.published_results == {"Q1": ["r1"]}

        coordinator.complete_tier("Q4", ["r4"])

        assert coordinator.phase == PHASE_IDLE
        assert coordinator.published_results == {"Q1": ["r1"], "Q4": ["r4"]}

    def test_published_results_exclude_incomplete_tiers(self):
        coordinator = ProgressiveTierCoordinator()
        coordinator.start(["Q1", "Q4", "Q8"])
        coordinator.complete_tier("Q1", ["r1"])
        coordinator.cancel()
        assert coordinator.published_results == {"Q1": ["r1"]}

    @pytest.mark.asyncio
    async def test_stopped_tier_is_kept_out_of_results(self):
        """Q4 の途中で停止すると Q4 は partial_results にだけ残る"""
        context = ExecutionContext()
        engines = {"Q1": TierEngine("q1"), "Q4": TierEngine("q4", on_call=context.request_stop)}

        report = await run_progressive(
            [_walkthrough("W1")], ["Q1", "Q4"], engines, context=context, config=_config(),
        )

        assert report["status"] == "stopped"
        assert set(report["results"]) <= set(report["completed_tiers"])
        assert list(report["results"]) == ["Q1"]
        assert [r.walkthrough_id for r in report["partial_results"]["Q4"]] == ["W1"]

    @pytest.mark.asyncio
    async def test_completed_run_has_no_partial_results(self):
        engines = {"Q1": TierEngine("q1"), "Q4": TierEngine("q4")}
        report = await run_progressive([_walkthrough("W1")], ["Q1", "Q4"], engines, config=_config())
        assert report["partial_results"] == {}
        assert list(report["results"]) == ["Q1", "Q4"]
