"""Decision gate between tiers.

After a tier finishes, these predicates decide whether the next tier may
start. Results are matched to the hooks that produced them by position, as
TierExecutor.run_tier returns them in input order.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from hookgate.pipeline.hook import BlockingBehavior

if TYPE_CHECKING:
    from hookgate.pipeline.hook import HookDescriptor
    from hookgate.pipeline.report import ExecutionResult


def is_blocking_result(result: ExecutionResult) -> bool:
    """Check if a hook reported a policy violation.

    Args:
        result: Result of one hook

    Returns:
        True if the hook exited with the block code
    """
    return result.blocked


def is_hard_block_failure(result: ExecutionResult, hook: HookDescriptor) -> bool:
    """Check if a failed hook belongs to a family whose failures halt the run.

    Args:
        result: Result of one hook
        hook: Classified hook that produced it

    Returns:
        True if the hook failed and its blocking behavior is hard-block
    """
    return result.failed and hook.blocking_behavior is BlockingBehavior.HARD_BLOCK


def should_halt(results: Sequence[ExecutionResult], hooks: Sequence[HookDescriptor]) -> bool:
    """Decide whether the pipeline stops after a tier.

    Args:
        results: Tier results, in the same order as ``hooks``
        hooks: Classified hooks of the tier

    Returns:
        True if any result blocked, or any hard-block hook failed
    """
    if len(results) != len(hooks):
        raise ValueError(f"Got {len(results)} results for {len(hooks)} hooks")

    return any(
        is_blocking_result(result) or is_hard_block_failure(result, hook)
        for result, hook in zip(results, hooks, strict=True)
    )
