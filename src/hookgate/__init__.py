"""hookgate - priority-tiered parallel hook execution."""

from hookgate.pipeline import (
    AggregateReport,
    ExecutionResult,
    HookDescriptor,
    PipelineOrchestrator,
    execute_hooks,
    get_performance_stats,
    merge_results,
)

__all__ = [
    "AggregateReport",
    "ExecutionResult",
    "HookDescriptor",
    "PipelineOrchestrator",
    "execute_hooks",
    "get_performance_stats",
    "merge_results",
]
