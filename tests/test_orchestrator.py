"""Tests for the pipeline orchestrator."""

import logging
import time

import pytest

from hookgate import execute_hooks
from hookgate.config import ExecutorOptions
from hookgate.pipeline.context import HookContext
from hookgate.pipeline.errors import ErrorKind, InvalidHookListError, InvalidPayloadError
from hookgate.pipeline.hook import HookDescriptor
from hookgate.pipeline.orchestrator import PipelineOrchestrator, PipelineState
from hookgate.pipeline.task import Outcome, SubprocessTask


class NoAsyncSubprocess:
    """Task whose concurrent path is unavailable, as on loops without subprocess support."""

    def __init__(self, hook: HookDescriptor) -> None:
        self.inner = SubprocessTask(hook.command or "")

    async def execute(self, context: HookContext, timeout: float) -> Outcome:
        raise NotImplementedError("subprocesses are not supported on this event loop")

    def execute_blocking(self, context: HookContext, timeout: float) -> Outcome:
        return self.inner.execute_blocking(context, timeout)


class TestEmptyInput:
    """Test suite for trivial inputs."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("hooks", [None, [], ()])
    async def test_empty_input(self, hooks) -> None:
        """Test no hooks yields a successful empty report."""
        orchestrator = PipelineOrchestrator()

        report = await orchestrator.run(hooks, {"a": 1})

        assert report.success
        assert not report.blocked
        assert report.blocks == []
        assert report.errors == []
        assert report.total_hooks == 0
        assert orchestrator.state is PipelineState.COMPLETED


class TestInputValidation:
    """Test suite for input validation at the entry point."""

    @pytest.mark.asyncio
    async def test_hooks_not_a_list(self) -> None:
        """Test a non-list hook argument is rejected."""
        with pytest.raises(InvalidHookListError):
            await PipelineOrchestrator().run("exit 0")  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_hook_not_a_mapping(self) -> None:
        """Test a non-mapping descriptor is rejected."""
        with pytest.raises(InvalidHookListError):
            await PipelineOrchestrator().run([{"command": "exit 0"}, 42])  # type: ignore[list-item]

    @pytest.mark.asyncio
    async def test_invalid_payload_runs_nothing(self, tmp_path) -> None:
        """Test an unserializable payload is rejected before any hook runs."""
        marker = tmp_path / "ran"

        with pytest.raises(InvalidPayloadError):
            await PipelineOrchestrator().run([{"command": f"touch {marker}"}], {"x": object()})

        assert not marker.exists()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["command", "priority", "family"])
    async def test_non_string_field_runs_nothing(self, tmp_path, field: str) -> None:
        """Test a non-string text field is rejected before any hook runs."""
        marker = tmp_path / "ran"
        bad = {"command": "exit 0", "priority": "high", field: 123}

        with pytest.raises(InvalidHookListError, match=f"Hook {field} must be a string"):
            await PipelineOrchestrator().run([{"command": f"touch {marker}", "priority": "critical"}, bad])

        assert not marker.exists()

    @pytest.mark.asyncio
    async def test_validation_errors_are_value_errors(self) -> None:
        """Test input errors can be caught as ValueError."""
        with pytest.raises(ValueError):
            await PipelineOrchestrator().run(["exit 0"])  # type: ignore[list-item]


class TestRun:
    """Test suite for PipelineOrchestrator.run."""

    @pytest.mark.asyncio
    async def test_all_hooks_reported(self) -> None:
        """Test every hook yields a result when nothing blocks."""
        hooks = [
            {"command": "exit 0", "priority": "critical"},
            {"command": "exit 1", "priority": "high"},
            {"command": "echo hi", "priority": "medium"},
            {"command": "true", "priority": "low"},
            {"command": ":", "priority": "background"},
        ]

        report = await PipelineOrchestrator().run(hooks, {"file": "a.py"})

        assert len(report.results) == len(hooks)
        assert report.total_hooks == 5
        assert not report.success
        assert not report.blocked
        assert len(report.errors) == 1
        for r in report.results:
            assert [r.success, r.blocked, r.failed].count(True) == 1

    @pytest.mark.asyncio
    async def test_tiers_run_in_order(self) -> None:
        """Test results are emitted tier by tier regardless of input order."""
        hooks = [
            {"command": "echo low", "priority": "low"},
            {"command": "echo critical", "priority": "critical"},
            {"command": "echo background", "priority": "background"},
            {"command": "echo high", "priority": "high"},
        ]

        report = await PipelineOrchestrator().run(hooks)

        assert [r.priority for r in report.results] == ["critical", "high", "low", "background"]

    @pytest.mark.asyncio
    async def test_critical_block_stops_lower_tiers(self) -> None:
        """Test a blocking critical hook prevents later tiers from running."""
        hooks = [
            {"command": "exit 0", "priority": "high"},
            {"command": "exit 0", "priority": "medium"},
            {"command": "exit 2", "priority": "critical"},
        ]
        orchestrator = PipelineOrchestrator()

        report = await orchestrator.run(hooks)

        assert report.total_hooks == 1
        assert report.blocked
        assert not report.success
        assert len(report.blocks) == 1
        assert report.blocks[0].priority == "critical"
        assert report.halted_at == "critical"
        assert orchestrator.state is PipelineState.BLOCKED

    @pytest.mark.asyncio
    async def test_same_tier_siblings_finish(self, tmp_path) -> None:
        """Test a block lets same-tier siblings finish but skips later tiers."""
        marker = tmp_path / "medium-ran"
        hooks = [
            {"command": "exit 2", "priority": "high"},
            {"command": "sleep 0.1; exit 0", "priority": "high"},
            {"command": f"touch {marker}", "priority": "medium"},
        ]

        report = await PipelineOrchestrator().run(hooks)

        assert [r.hook for r in report.results] == ["exit 2", "sleep 0.1; exit 0"]
        assert report.results[1].success
        assert not marker.exists()

    @pytest.mark.asyncio
    async def test_hard_block_failure_halts(self) -> None:
        """Test a failing hard-block hook halts without a block result."""
        hooks = [
            {"command": "exit 1", "priority": "critical", "family": "file_hygiene"},
            {"command": "exit 0", "priority": "high"},
        ]

        report = await PipelineOrchestrator().run(hooks)

        assert report.total_hooks == 1
        assert not report.blocked
        assert not report.success
        assert report.halted_at == "critical"

    @pytest.mark.asyncio
    async def test_soft_block_failure_continues(self) -> None:
        """Test failures outside hard-block families do not halt."""
        hooks = [
            {"command": "exit 1", "priority": "critical", "family": "security"},
            {"command": "exit 0", "priority": "high"},
        ]

        report = await PipelineOrchestrator().run(hooks)

        assert report.total_hooks == 2
        assert report.halted_at is None

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        """Test a long-running hook times out at its deadline."""
        report = await PipelineOrchestrator().run([{"command": "sleep 10", "timeout": 100}])

        (result,) = report.results
        assert result.failed
        assert "timed out" in result.error
        assert result.duration >= 100
        assert result.error_kind is ErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_missing_command(self) -> None:
        """Test a descriptor without a command fails without spawning."""
        report = await PipelineOrchestrator().run([{"description": "no command here"}])

        (result,) = report.results
        assert result.failed
        assert result.error == "No command specified"
        assert result.duration == 0

    @pytest.mark.asyncio
    async def test_same_tier_runs_concurrently(self) -> None:
        """Test two same-tier hooks take about the longer of the two."""
        hooks = [
            {"command": "sleep 0.4", "priority": "high"},
            {"command": "sleep 0.4", "priority": "high"},
        ]

        start = time.perf_counter()
        report = await PipelineOrchestrator().run(hooks)
        elapsed = time.perf_counter() - start

        assert report.success
        assert elapsed < 0.75

    @pytest.mark.asyncio
    async def test_payload_reaches_hooks(self) -> None:
        """Test the payload is delivered on stdin."""
        report = await PipelineOrchestrator().run(
            [{"command": "grep -q Write"}],
            {"tool_name": "Write"},
        )

        assert report.success

    @pytest.mark.asyncio
    async def test_unknown_priority_runs_last(self, caplog) -> None:
        """Test hooks with an unknown tier run after background with a warning."""
        hooks = [
            {"command": "echo odd", "priority": "urgent"},
            {"command": "echo bg", "priority": "background"},
        ]

        with caplog.at_level(logging.WARNING, logger="hookgate.pipeline.orchestrator"):
            report = await PipelineOrchestrator().run(hooks)

        assert [r.priority for r in report.results] == ["background", "urgent"]
        assert report.success
        assert "Unknown priority 'urgent'" in caplog.text

    @pytest.mark.asyncio
    async def test_static_execute_and_alias(self) -> None:
        """Test the one-shot entry points."""
        hooks = [{"command": "exit 0"}, {"command": "exit 0"}]

        assert (await PipelineOrchestrator.execute(hooks)).success
        assert (await execute_hooks(hooks, None, ExecutorOptions(verbose=True))).success

    def test_run_sync(self) -> None:
        """Test the blocking wrapper."""
        report = PipelineOrchestrator().run_sync([HookDescriptor(command="exit 2", priority="low")])

        assert report.blocked
        assert report.halted_at == "low"


class TestCallableHooks:
    """Test suite for in-process py: hooks."""

    @pytest.mark.asyncio
    async def test_module_raising_on_import_is_a_hook_error(self, tmp_path, monkeypatch) -> None:
        """Test a py: hook whose module fails to import is reported, not raised."""
        (tmp_path / "hookgate_import_fails.py").write_text("raise RuntimeError(\"boom at import\")\n")
        monkeypatch.syspath_prepend(str(tmp_path))
        hooks = [
            {"command": "py:hookgate_import_fails:check", "priority": "high"},
            {"command": "sleep 0.1; exit 0", "priority": "high"},
            {"command": "exit 0", "priority": "low"},
        ]

        report = await PipelineOrchestrator().run(hooks)

        assert report.total_hooks == 3
        assert len(report.errors) == 1
        assert report.errors[0].error_kind is ErrorKind.SPAWN
        assert "boom at import" in report.errors[0].error
        assert report.results[1].success


class TestOverrides:
    """Test suite for hook selection overrides."""

    @pytest.mark.asyncio
    async def test_force_skip(self) -> None:
        """Test -name removes a hook from the run."""
        hooks = [{"command": "exit 2", "family": "security"}, {"command": "exit 0"}]

        report = await PipelineOrchestrator(ExecutorOptions(overrides="-security")).run(hooks)

        assert report.success
        assert [r.hook for r in report.results] == ["exit 0"]

    @pytest.mark.asyncio
    async def test_bypass_with_force_run(self) -> None:
        """Test bypass skips everything except force-run hooks."""
        hooks = [
            {"command": "exit 0", "priority": "critical"},
            {"command": "echo kept", "priority": "high"},
        ]
        options = ExecutorOptions(bypass=True, overrides="+echo kept")

        report = await PipelineOrchestrator(options).run(hooks)

        assert [r.hook for r in report.results] == ["echo kept"]

    @pytest.mark.asyncio
    async def test_bypass_all(self) -> None:
        """Test bypass without overrides runs nothing."""
        report = await PipelineOrchestrator(ExecutorOptions(bypass=True)).run([{"command": "exit 2"}])

        assert report.success
        assert report.total_hooks == 0


class TestSequentialFallback:
    """Test suite for the sequential fallback path."""

    @pytest.mark.asyncio
    async def test_fallback_produces_same_results(self, caplog) -> None:
        """Test fallback runs the remaining hooks one at a time."""
        hooks = [
            {"command": "exit 0", "priority": "critical"},
            {"command": "exit 1", "priority": "high"},
            {"command": "exit 0", "priority": "high"},
        ]
        orchestrator = PipelineOrchestrator(task_factory=NoAsyncSubprocess)

        with caplog.at_level(logging.WARNING, logger="hookgate.pipeline.orchestrator"):
            report = await orchestrator.run(hooks)

        assert report.total_hooks == 3
        assert len(report.errors) == 1
        assert "falling back to sequential" in caplog.text

    @pytest.mark.asyncio
    async def test_fallback_keeps_halt_rule(self) -> None:
        """Test a block during fallback still halts the pipeline."""
        hooks = [{"command": "exit 2", "priority": "critical"}, {"command": "exit 0", "priority": "low"}]

        report = await PipelineOrchestrator(task_factory=NoAsyncSubprocess).run(hooks)

        assert report.blocked
        assert report.total_hooks == 1

    @pytest.mark.asyncio
    async def test_fallback_timeout(self) -> None:
        """Test the fallback path still enforces deadlines."""
        report = await PipelineOrchestrator(task_factory=NoAsyncSubprocess).run(
            [{"command": "sleep 10", "timeout": 100}]
        )

        (result,) = report.results
        assert result.error_kind is ErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_fallback_disabled(self) -> None:
        """Test the error propagates when fallback is disabled."""
        orchestrator = PipelineOrchestrator(
            ExecutorOptions(fallback_to_sequential=False),
            task_factory=NoAsyncSubprocess,
        )

        with pytest.raises(NotImplementedError):
            await orchestrator.run([{"command": "exit 0"}])
