"""Hook execution scheduler.

Runs independent validation hooks against a shared payload:
- Priority tiers run strictly in order (critical → high → medium → low → background)
- Hooks within a tier run concurrently, bounded by the tier's slot count
- Every hook races its own deadline
- A block or hard-block failure halts the pipeline at the tier boundary

Exit-code contract for hooks:
    0 → success
    2 → blocked (policy violation)
    * → error
"""

from hookgate.pipeline.context import HookContext
from hookgate.pipeline.errors import (
    ErrorKind,
    HookError,
    HookGateError,
    InvalidHookListError,
    InvalidInputError,
    InvalidPayloadError,
)
from hookgate.pipeline.executor import TierExecutor
from hookgate.pipeline.hook import BlockingBehavior, ExecutionStrategy, HookDescriptor
from hookgate.pipeline.orchestrator import PipelineOrchestrator, PipelineState, execute_hooks
from hookgate.pipeline.plan import ExecutionPlan
from hookgate.pipeline.priority import PolicyTables, PriorityClassifier
from hookgate.pipeline.report import AggregateReport, ExecutionResult, get_performance_stats, merge_results
from hookgate.pipeline.task import CallableTask, Outcome, SubprocessTask, Task

__all__ = [
    "AggregateReport",
    "BlockingBehavior",
    "CallableTask",
    "ErrorKind",
    "ExecutionPlan",
    "ExecutionResult",
    "ExecutionStrategy",
    "HookContext",
    "HookDescriptor",
    "HookError",
    "HookGateError",
    "InvalidHookListError",
    "InvalidInputError",
    "InvalidPayloadError",
    "Outcome",
    "PipelineOrchestrator",
    "PipelineState",
    "PolicyTables",
    "PriorityClassifier",
    "SubprocessTask",
    "Task",
    "TierExecutor",
    "execute_hooks",
    "get_performance_stats",
    "merge_results",
]
