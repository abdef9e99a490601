"""Tier executor with bounded concurrency and per-hook deadlines.

Runs all hooks of one tier concurrently. A semaphore provides the tier's
slots; hooks beyond the cap wait for a free slot. Every hook races its
invocation against its own deadline, and the loser is cancelled.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from hookgate.pipeline.errors import (
    ConfigurationError,
    ExecutionError,
    HookError,
    HookTimeoutError,
    PolicyViolation,
)
from hookgate.pipeline.hook import EXIT_BLOCKED, EXIT_SUCCESS
from hookgate.pipeline.report import ExecutionResult
from hookgate.pipeline.task import Outcome, Task, resolve_task

if TYPE_CHECKING:
    from hookgate.pipeline.context import HookContext
    from hookgate.pipeline.hook import HookDescriptor

logger = logging.getLogger(__name__)

TaskFactory = Callable[["HookDescriptor"], Task]

# Longest stderr tail copied into an execution error message
_ERROR_DETAIL_LIMIT = 500


def _elapsed_ms(start: float) -> int:
    return int(round((time.perf_counter() - start) * 1000))


class TierExecutor:
    """Runs the hooks of a single tier.

    Attributes:
        task_factory: Maps a classified hook to its Task
        verbose: Log per-hook progress at INFO instead of DEBUG
    """

    def __init__(self, task_factory: TaskFactory | None = None, verbose: bool = False) -> None:
        self.task_factory = task_factory or resolve_task
        self.verbose = verbose
        self._progress_level = logging.INFO if verbose else logging.DEBUG

    async def run_tier(
        self,
        hooks: Sequence[HookDescriptor],
        context: HookContext,
        max_parallelism: int,
    ) -> list[ExecutionResult]:
        """Run every hook of a tier and wait for all of them.

        Args:
            hooks: Classified hooks of one tier
            context: Shared read-only payload
            max_parallelism: Maximum hooks running at once (>= 1)

        Returns:
            One result per hook, in input order
        """
        if not hooks:
            return []

        slots = asyncio.Semaphore(max(1, max_parallelism))

        async def run_in_slot(hook: HookDescriptor) -> ExecutionResult:
            async with slots:
                return await self.execute_hook(hook, context)

        tasks = [asyncio.create_task(run_in_slot(hook), name=f"hook:{hook.label}") for hook in hooks]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            # Never leave siblings running when the tier itself fails
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def execute_hook(self, hook: HookDescriptor, context: HookContext) -> ExecutionResult:
        """Run a single hook to a terminal state.

        Hook-level failures are captured in the result. Errors of the
        process-management facility itself (anything that is not an OSError
        or HookError) propagate so the caller can fall back.

        Args:
            hook: Classified hook
            context: Shared read-only payload

        Returns:
            ExecutionResult
        """
        if not hook.command:
            result = ConfigurationError("No command specified").to_result(hook, duration=0)
            self._log_result(result)
            return result

        timeout_ms = hook.timeout or 0
        start = time.perf_counter()
        try:
            task = self.task_factory(hook)
            outcome = await asyncio.wait_for(task.execute(context, timeout_ms / 1000), timeout=timeout_ms / 1000)
            result = self._from_outcome(hook, outcome, _elapsed_ms(start))
        except TimeoutError:
            result = self._timeout_result(hook, start)
        except HookError as e:
            result = e.to_result(hook, _elapsed_ms(start))

        self._log_result(result)
        return result

    async def execute_hook_blocking(self, hook: HookDescriptor, context: HookContext) -> ExecutionResult:
        """Sequential fallback: run one hook via its blocking path in a thread.

        Args:
            hook: Classified hook
            context: Shared read-only payload

        Returns:
            ExecutionResult equivalent to execute_hook's
        """
        if not hook.command:
            result = ConfigurationError("No command specified").to_result(hook, duration=0)
            self._log_result(result)
            return result

        timeout_ms = hook.timeout or 0
        start = time.perf_counter()
        try:
            task = self.task_factory(hook)
            outcome = await asyncio.wait_for(
                asyncio.to_thread(task.execute_blocking, context, timeout_ms / 1000),
                timeout=timeout_ms / 1000,
            )
            result = self._from_outcome(hook, outcome, _elapsed_ms(start))
        except TimeoutError:
            result = self._timeout_result(hook, start)
        except HookError as e:
            result = e.to_result(hook, _elapsed_ms(start))

        self._log_result(result)
        return result

    def _from_outcome(self, hook: HookDescriptor, outcome: Outcome, duration: int) -> ExecutionResult:
        if outcome.exit_code == EXIT_SUCCESS:
            return ExecutionResult(
                hook=hook.label,
                exit_code=outcome.exit_code,
                duration=duration,
                priority=hook.priority or "medium",
                family=hook.family or "unknown",
                stdout=outcome.stdout,
                stderr=outcome.stderr,
            )

        error: HookError
        if outcome.exit_code == EXIT_BLOCKED:
            error = PolicyViolation(
                "Policy violation reported",
                exit_code=outcome.exit_code,
                stdout=outcome.stdout,
                stderr=outcome.stderr,
            )
        else:
            message = f"Hook exited with code {outcome.exit_code}"
            if outcome.stderr:
                message = f"{message}: {outcome.stderr[-_ERROR_DETAIL_LIMIT:]}"
            error = ExecutionError(
                message,
                exit_code=outcome.exit_code,
                stdout=outcome.stdout,
                stderr=outcome.stderr,
            )
        return error.to_result(hook, duration)

    def _timeout_result(self, hook: HookDescriptor, start: float) -> ExecutionResult:
        timeout_ms = hook.timeout or 0
        # Timers may fire a hair early; a timed-out hook always spent its full budget
        duration = max(_elapsed_ms(start), timeout_ms)
        return HookTimeoutError(f"Hook timed out after {timeout_ms}ms").to_result(hook, duration)

    def _log_result(self, result: ExecutionResult) -> None:
        if result.success:
            logger.log(
                self._progress_level,
                "Hook completed: %s (%dms, exit: %s)",
                result.hook,
                result.duration,
                result.exit_code,
            )
        elif result.blocked:
            logger.log(
                self._progress_level,
                "Hook blocked: %s [%s/%s] (%dms)",
                result.hook,
                result.priority,
                result.family,
                result.duration,
            )
        else:
            logger.log(
                self._progress_level,
                "Hook failed: %s - %s (%dms)",
                result.hook,
                result.error,
                result.duration,
            )
