"""Per-hook results and the aggregate report for one scheduler run."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from hookgate.pipeline.errors import ErrorKind

# max_duration of a run with no results: no critical path was measured
NO_CRITICAL_PATH = float("-inf")


@dataclass(frozen=True)
class ExecutionResult:
    """Terminal state of one executed hook.

    Exactly one of success/blocked/failed holds.

    Attributes:
        hook: Label (command or description)
        exit_code: Process exit code, None if the hook never produced one
        blocked: Hook exited with the policy-violation code
        failed: Hook could not be classified as success or blocked
        error: Failure detail when failed
        duration: Wall-clock milliseconds, 0 for hooks that never ran
        priority: Tier the hook ran in
        family: Family the hook belongs to
        stdout: Captured standard output
        stderr: Captured standard error
        error_kind: Category of failure or block
    """

    hook: str
    exit_code: int | None = None
    blocked: bool = False
    failed: bool = False
    error: str | None = None
    duration: int = 0
    priority: str = "medium"
    family: str = "unknown"
    stdout: str = ""
    stderr: str = ""
    error_kind: ErrorKind | None = None

    def __post_init__(self) -> None:
        if self.blocked and self.failed:
            raise ValueError(f"Result for {self.hook} cannot be both blocked and failed")

    @property
    def success(self) -> bool:
        return not self.blocked and not self.failed

    @property
    def message(self) -> str:
        """Best human-readable explanation, preferring the hook's own output."""
        return self.stderr or self.stdout or self.error or ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "hook": self.hook,
            "exit_code": self.exit_code,
            "success": self.success,
            "blocked": self.blocked,
            "failed": self.failed,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "duration": self.duration,
            "priority": self.priority,
            "family": self.family,
            "stdout": self.stdout,
            "stderr": self.stderr,
        }


@dataclass(frozen=True)
class AggregateReport:
    """Verdict and timing statistics for one run.

    Attributes:
        success: No result blocked or failed and the pipeline was not halted
        blocked: At least one result blocked
        blocks: Blocked results
        errors: Failed results
        successful: Successful results
        total_hooks: Number of results (hooks that were never reached are absent)
        total_duration: Sum of all durations (ms)
        max_duration: Longest single duration (ms), -inf when empty
        parallel_efficiency: total_duration / max_duration as a 2dp string
        results: All results in emission order
        halted_at: Tier that stopped the pipeline, if any
    """

    success: bool
    blocked: bool
    blocks: list[ExecutionResult] = field(default_factory=list)
    errors: list[ExecutionResult] = field(default_factory=list)
    successful: list[ExecutionResult] = field(default_factory=list)
    total_hooks: int = 0
    total_duration: int = 0
    max_duration: float = NO_CRITICAL_PATH
    parallel_efficiency: str = "1"
    results: list[ExecutionResult] = field(default_factory=list)
    halted_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "blocked": self.blocked,
            "halted_at": self.halted_at,
            "total_hooks": self.total_hooks,
            "total_duration": self.total_duration,
            "max_duration": None if self.max_duration == NO_CRITICAL_PATH else self.max_duration,
            "parallel_efficiency": self.parallel_efficiency,
            "blocks": [r.to_dict() for r in self.blocks],
            "errors": [r.to_dict() for r in self.errors],
            "successful": [r.to_dict() for r in self.successful],
        }


def _parallel_efficiency(results: Sequence[ExecutionResult], total: int, longest: float) -> str:
    # With fewer than two results (or nothing measurable) no parallelism was possible
    if len(results) < 2 or longest <= 0:
        return "1"
    return f"{total / longest:.2f}"


def merge_results(results: Sequence[ExecutionResult], halted_at: str | None = None) -> AggregateReport:
    """Fold per-hook results into a single report.

    Pure function: the input is not modified.

    Args:
        results: Results from every hook that reached a terminal state
        halted_at: Tier at which the pipeline stopped early, if any

    Returns:
        AggregateReport
    """
    blocks = [r for r in results if r.blocked]
    errors = [r for r in results if r.failed]
    successful = [r for r in results if r.success]

    total_duration = sum(r.duration for r in results)
    max_duration: float = max((r.duration for r in results), default=NO_CRITICAL_PATH)

    return AggregateReport(
        success=not blocks and not errors and halted_at is None,
        blocked=bool(blocks),
        blocks=blocks,
        errors=errors,
        successful=successful,
        total_hooks=len(results),
        total_duration=total_duration,
        max_duration=max_duration,
        parallel_efficiency=_parallel_efficiency(results, total_duration, max_duration),
        results=list(results),
        halted_at=halted_at,
    )


def get_performance_stats(report: AggregateReport) -> dict[str, Any]:
    """Derive read-only performance statistics from a report.

    Args:
        report: Report produced by merge_results

    Returns:
        Dict with totals, average_duration, success_rate and a by_priority
        breakdown ({priority: {count, duration, success}})
    """
    total = report.total_hooks
    by_priority: dict[str, dict[str, int]] = {}

    for result in report.results:
        bucket = by_priority.setdefault(result.priority, {"count": 0, "duration": 0, "success": 0})
        bucket["count"] += 1
        bucket["duration"] += result.duration
        if result.success:
            bucket["success"] += 1

    return {
        "total_hooks": total,
        "total_duration": report.total_duration,
        "max_duration": report.max_duration,
        "parallel_efficiency": report.parallel_efficiency,
        "average_duration": report.total_duration / total if total else 0.0,
        "success_rate": f"{(len(report.successful) / total * 100) if total else 0.0:.1f}%",
        "by_priority": by_priority,
    }
