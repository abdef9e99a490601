"""Hook descriptor and policy table entries.

Defines the HookDescriptor exchanged at the scheduler boundary and the
static TierSpec/FamilySpec records the classifier resolves against.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any

from hookgate.pipeline.errors import InvalidHookListError

# Reserved exit codes shared with hook authors
EXIT_SUCCESS = 0
EXIT_BLOCKED = 2

DEFAULT_PRIORITY = "medium"
DEFAULT_FAMILY = "unknown"


class BlockingBehavior(Enum):
    """How a family's failures affect the rest of the pipeline."""

    HARD_BLOCK = "hard-block"  # Failure halts the pipeline
    SOFT_BLOCK = "soft-block"
    WARNING = "warning"
    NONE = "none"


class ExecutionStrategy(Enum):
    """Scheduling strategy declared for a tier."""

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    ASYNC = "async"


@dataclass(frozen=True)
class TierSpec:
    """Static description of a priority tier.

    Attributes:
        name: Tier name (critical, high, ...)
        level: Ordinal rank, 1 runs first
        timeout: Default hook timeout in milliseconds
        max_parallelism: Concurrent hook slots within the tier
        strategy: Declared execution strategy
        description: Human-readable summary
    """

    name: str
    level: int
    timeout: int
    max_parallelism: int
    strategy: ExecutionStrategy
    description: str = ""


@dataclass(frozen=True)
class FamilySpec:
    """Static description of a hook family.

    Attributes:
        name: Family name (security, testing, ...)
        priority: Tier the family's hooks usually belong to
        blocking_behavior: Policy applied when a hook in this family fails
        description: Human-readable summary
    """

    name: str
    priority: str
    blocking_behavior: BlockingBehavior
    description: str = ""


@dataclass(frozen=True)
class KnownHook:
    """Per-command defaults used when a descriptor omits fields."""

    priority: str | None = None
    family: str | None = None
    timeout: int | None = None
    description: str | None = None


@dataclass(frozen=True)
class HookDescriptor:
    """A single unit of work for the scheduler.

    Only ``command`` is meaningful as raw input; the remaining fields are
    filled in by the PriorityClassifier. ``blocking_behavior`` and
    ``execution_strategy`` are always derived, never taken from input.

    Attributes:
        command: Opaque invocation string
        priority: Tier name
        family: Semantic category used for blocking-policy lookup
        timeout: Deadline in milliseconds
        description: Label used when no command is present
        blocking_behavior: Resolved from family
        execution_strategy: Resolved from priority
    """

    command: str | None = None
    priority: str | None = None
    family: str | None = None
    timeout: int | None = None
    description: str | None = None
    blocking_behavior: BlockingBehavior | None = None
    execution_strategy: ExecutionStrategy | None = None

    @property
    def label(self) -> str:
        """Identifying label for reports."""
        return self.command or self.description or "unknown"

    @property
    def is_classified(self) -> bool:
        """True once every resolvable field has a value."""
        return None not in (self.priority, self.family, self.timeout, self.blocking_behavior)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> HookDescriptor:
        """Build a descriptor from its boundary form.

        Unknown keys are ignored. Derived fields are never read from input.

        Args:
            data: Mapping with command and optional priority/family/timeout/description

        Returns:
            Unclassified HookDescriptor

        Raises:
            InvalidHookListError: If data is not a mapping, a text field is not a
                string, or timeout is not numeric
        """
        if not isinstance(data, Mapping):
            raise InvalidHookListError(f"Hook descriptor must be a mapping, got {type(data).__name__}")

        for key in ("command", "priority", "family"):
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise InvalidHookListError(f"Hook {key} must be a string, got {type(value).__name__}")

        timeout = data.get("timeout")
        if timeout is not None:
            if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
                raise InvalidHookListError(f"Hook timeout must be a number, got {timeout!r}")
            timeout = int(timeout)

        return cls(
            command=data.get("command") or None,
            priority=data.get("priority") or None,
            family=data.get("family") or None,
            timeout=timeout,
            description=data.get("description") or None,
        )

    @classmethod
    def coerce(cls, value: HookDescriptor | Mapping[str, Any]) -> HookDescriptor:
        """Accept either a descriptor or its dict form."""
        if isinstance(value, HookDescriptor):
            return value
        return cls.from_dict(value)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output, dropping unset fields."""
        result: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            result[f.name] = value.value if isinstance(value, Enum) else value
        return result
