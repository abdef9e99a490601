"""Error taxonomy for hook execution.

Hook-level errors (HookError subclasses) never propagate out of the
scheduler: the executor converts them into ExecutionResult records via
``to_result``. Only InvalidInputError is raised to callers, and only from
the orchestrator's entry point before any hook runs.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hookgate.pipeline.hook import HookDescriptor
    from hookgate.pipeline.report import ExecutionResult


class ErrorKind(Enum):
    """Category recorded on failed or blocked results."""

    CONFIGURATION = "configuration"
    SPAWN = "spawn"
    TIMEOUT = "timeout"
    EXECUTION = "execution"
    POLICY_VIOLATION = "policy_violation"


class HookGateError(Exception):
    """Base class for all hookgate errors."""


class HookError(HookGateError):
    """A failure attributable to a single hook."""

    kind: ErrorKind = ErrorKind.EXECUTION

    def __init__(
        self,
        message: str,
        *,
        exit_code: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr

    def to_result(self, hook: HookDescriptor, duration: int) -> ExecutionResult:
        """Convert this error into the hook's terminal result.

        Args:
            hook: Classified hook the error belongs to
            duration: Wall-clock milliseconds spent

        Returns:
            ExecutionResult with failed (or blocked) set
        """
        from hookgate.pipeline.report import ExecutionResult

        blocked = self.kind is ErrorKind.POLICY_VIOLATION
        return ExecutionResult(
            hook=hook.label,
            exit_code=self.exit_code,
            blocked=blocked,
            failed=not blocked,
            error=None if blocked else self.message,
            duration=duration,
            priority=hook.priority or "medium",
            family=hook.family or "unknown",
            stdout=self.stdout,
            stderr=self.stderr,
            error_kind=self.kind,
        )


class ConfigurationError(HookError):
    """Hook descriptor cannot be executed (e.g. missing command)."""

    kind = ErrorKind.CONFIGURATION


class SpawnError(HookError):
    """Hook command could not be started."""

    kind = ErrorKind.SPAWN


class HookTimeoutError(HookError):
    """Hook did not reach a terminal state before its deadline."""

    kind = ErrorKind.TIMEOUT


class ExecutionError(HookError):
    """Hook exited with a nonzero code other than the block code."""

    kind = ErrorKind.EXECUTION


class PolicyViolation(HookError):
    """Hook reported a policy violation (exit code 2).

    Not a malfunction: the hook worked and found a real problem.
    """

    kind = ErrorKind.POLICY_VIOLATION


class InvalidInputError(HookGateError, ValueError):
    """Scheduler input that cannot be defaulted around."""


class InvalidHookListError(InvalidInputError):
    """Hook list is not a list of descriptors."""


class InvalidPayloadError(InvalidInputError):
    """Payload is not JSON-serializable."""
