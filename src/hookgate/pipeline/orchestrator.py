"""Pipeline orchestrator.

Walks the execution plan tier by tier:

    IDLE → RUNNING_TIER(critical) → … → RUNNING_TIER(background) → COMPLETED
                      │
                      └─ decision gate halts → BLOCKED

Tiers are strictly sequential. A halt takes effect at the tier boundary:
siblings in the halting tier finish and are reported, later tiers never
start and are absent from the report.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any

from hookgate.config import ExecutorOptions
from hookgate.pipeline.context import HookContext
from hookgate.pipeline.errors import InvalidHookListError
from hookgate.pipeline.executor import TaskFactory, TierExecutor
from hookgate.pipeline.guards import should_halt
from hookgate.pipeline.hook import HookDescriptor
from hookgate.pipeline.overrides import parse_overrides
from hookgate.pipeline.plan import ExecutionPlan, PlanStage
from hookgate.pipeline.priority import PolicyTables, PriorityClassifier
from hookgate.pipeline.report import AggregateReport, ExecutionResult, merge_results
from hookgate.pipeline.task import resolve_task

logger = logging.getLogger(__name__)


class PipelineState(Enum):
    """Orchestrator lifecycle state."""

    IDLE = "idle"
    RUNNING_TIER = "running_tier"
    BLOCKED = "blocked"
    COMPLETED = "completed"


class PipelineOrchestrator:
    """Runs hooks tier by tier and folds their results into one report.

    Attributes:
        options: Run options
        classifier: Classifier bound to the policy tables
        executor: Tier executor
        state: Current (or final) lifecycle state
        current_tier: Tier being run, or the tier that halted the pipeline
    """

    def __init__(
        self,
        options: ExecutorOptions | None = None,
        tables: PolicyTables | None = None,
        task_factory: TaskFactory | None = None,
    ) -> None:
        self.options = options or ExecutorOptions()
        self.classifier = PriorityClassifier(tables, fallback_timeout=self.options.timeout)
        if task_factory is None:
            task_factory = functools.partial(resolve_task, cwd=self.options.cwd)
        self.executor = TierExecutor(task_factory, verbose=self.options.verbose)
        self.overrides = parse_overrides(self.options.overrides, bypass=self.options.bypass)
        self.state = PipelineState.IDLE
        self.current_tier: str | None = None
        self._progress_level = logging.INFO if self.options.verbose else logging.DEBUG

    async def run(
        self,
        hooks: Sequence[HookDescriptor | Mapping[str, Any]] | None,
        payload: Any = None,
    ) -> AggregateReport:
        """Execute hooks against a payload.

        Args:
            hooks: Descriptors or their dict form; None or empty is a no-op
            payload: JSON-serializable value handed to every hook

        Returns:
            AggregateReport for every hook that reached a terminal state

        Raises:
            InvalidHookListError: If hooks is not a list of descriptors
            InvalidPayloadError: If payload is not JSON-serializable
        """
        self.state = PipelineState.IDLE
        self.current_tier = None

        descriptors = self._coerce_hooks(hooks)
        if not descriptors:
            self.state = PipelineState.COMPLETED
            return merge_results([])

        context = HookContext.from_payload(payload)

        selected, _ = self.overrides.apply(self.classifier.classify(descriptors))
        plan = ExecutionPlan.build(self.classifier, selected)
        plan.log_plan(self._progress_level)

        results: list[ExecutionResult] = []
        halted_at = await self._run_stages(plan.stages, context, results)

        report = merge_results(results, halted_at=halted_at)
        logger.log(
            self._progress_level,
            "Pipeline %s: %d hooks, %d blocked, %d failed (%dms total, efficiency %s)",
            self.state.value,
            report.total_hooks,
            len(report.blocks),
            len(report.errors),
            report.total_duration,
            report.parallel_efficiency,
        )
        return report

    def run_sync(
        self,
        hooks: Sequence[HookDescriptor | Mapping[str, Any]] | None,
        payload: Any = None,
    ) -> AggregateReport:
        """Blocking wrapper around run() for callers without an event loop.

        Synchronous ``py:`` callables that time out cannot be interrupted.
        asyncio.run() waits for their worker threads on shutdown, so such a
        hook can hold this call past its deadline even though the report
        already records the timeout.
        """
        return asyncio.run(self.run(hooks, payload))

    @staticmethod
    async def execute(
        hooks: Sequence[HookDescriptor | Mapping[str, Any]] | None,
        payload: Any = None,
        options: ExecutorOptions | None = None,
        tables: PolicyTables | None = None,
    ) -> AggregateReport:
        """One-shot convenience: build an orchestrator and run it."""
        return await PipelineOrchestrator(options=options, tables=tables).run(hooks, payload)

    async def _run_stages(
        self,
        stages: Sequence[PlanStage],
        context: HookContext,
        results: list[ExecutionResult],
    ) -> str | None:
        """Run stages in order, appending to ``results``.

        Returns:
            Name of the tier that halted the pipeline, or None
        """
        sequential = False

        for stage in stages:
            self.state = PipelineState.RUNNING_TIER
            self.current_tier = stage.tier

            if not stage.known:
                logger.warning(
                    "Unknown priority '%s' for %d hooks, running after background with %d slots",
                    stage.tier,
                    len(stage.hooks),
                    stage.max_parallelism,
                )

            logger.log(
                self._progress_level,
                "Running %s tier: %d hooks (max %d parallel)",
                stage.tier,
                len(stage.hooks),
                1 if sequential else stage.max_parallelism,
            )

            if sequential:
                tier_results = await self._run_stage_sequential(stage, context)
            else:
                try:
                    tier_results = await self.executor.run_tier(stage.hooks, context, stage.max_parallelism)
                except Exception as e:
                    if not self.options.fallback_to_sequential:
                        raise
                    logger.warning(
                        "Parallel execution failed in %s tier (%s: %s), falling back to sequential",
                        stage.tier,
                        type(e).__name__,
                        e,
                    )
                    sequential = True
                    tier_results = await self._run_stage_sequential(stage, context)

            results.extend(tier_results)

            if should_halt(tier_results, stage.hooks):
                self.state = PipelineState.BLOCKED
                logger.warning(
                    "Pipeline halted at %s tier: %s",
                    stage.tier,
                    ", ".join(r.hook for r in tier_results if not r.success),
                )
                return stage.tier

        self.state = PipelineState.COMPLETED
        return None

    async def _run_stage_sequential(self, stage: PlanStage, context: HookContext) -> list[ExecutionResult]:
        return [await self.executor.execute_hook_blocking(hook, context) for hook in stage.hooks]

    @staticmethod
    def _coerce_hooks(hooks: Sequence[HookDescriptor | Mapping[str, Any]] | None) -> list[HookDescriptor]:
        if hooks is None:
            return []
        if not isinstance(hooks, (list, tuple)):
            raise InvalidHookListError(f"Hooks must be a list, got {type(hooks).__name__}")
        return [HookDescriptor.coerce(hook) for hook in hooks]


async def execute_hooks(
    hooks: Sequence[HookDescriptor | Mapping[str, Any]] | None,
    payload: Any = None,
    options: ExecutorOptions | None = None,
    tables: PolicyTables | None = None,
) -> AggregateReport:
    """Run hooks against a payload and return the aggregate report."""
    return await PipelineOrchestrator.execute(hooks, payload, options=options, tables=tables)
