"""Hook priority classification.

Resolves each hook's tier, family, timeout and blocking behavior against an
immutable PolicyTables instance. The tables are built once and passed in
explicitly, so concurrent readers never need a lock.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from hookgate.pipeline.hook import (
    DEFAULT_FAMILY,
    DEFAULT_PRIORITY,
    BlockingBehavior,
    ExecutionStrategy,
    FamilySpec,
    HookDescriptor,
    KnownHook,
    TierSpec,
)

logger = logging.getLogger(__name__)

# Global fallback timeout (ms) for hooks whose tier is not in the table
DEFAULT_FALLBACK_TIMEOUT = 30000

# Timeouts below this (ms) tend to fail on process startup alone
MIN_RECOMMENDED_TIMEOUT = 1000

EXECUTION_ORDER: tuple[str, ...] = ("critical", "high", "medium", "low", "background")

_DEFAULT_TIERS = (
    TierSpec(
        "critical",
        1,
        2000,
        1,
        ExecutionStrategy.SEQUENTIAL,
        "Must complete successfully, blocks all subsequent hooks on failure",
    ),
    TierSpec("high", 2, 4000, 3, ExecutionStrategy.PARALLEL, "Important validations, parallel within group"),
    TierSpec("medium", 3, 3000, 5, ExecutionStrategy.PARALLEL, "Standard validations, parallel within group"),
    TierSpec("low", 4, 2000, 10, ExecutionStrategy.PARALLEL, "Nice-to-have validations"),
    TierSpec("background", 5, 5000, 10, ExecutionStrategy.ASYNC, "Non-blocking operations"),
)

_DEFAULT_FAMILIES = (
    FamilySpec("file_hygiene", "critical", BlockingBehavior.HARD_BLOCK, "Prevents file system pollution"),
    FamilySpec(
        "infrastructure_protection",
        "critical",
        BlockingBehavior.HARD_BLOCK,
        "Protects project infrastructure",
    ),
    FamilySpec("security", "high", BlockingBehavior.SOFT_BLOCK, "Security and vulnerability scanning"),
    FamilySpec("validation", "high", BlockingBehavior.SOFT_BLOCK, "Data and context validation"),
    FamilySpec("architecture", "high", BlockingBehavior.SOFT_BLOCK, "Architectural pattern enforcement"),
    FamilySpec("pattern_enforcement", "medium", BlockingBehavior.WARNING, "Development pattern enforcement"),
    FamilySpec("performance", "medium", BlockingBehavior.WARNING, "Performance monitoring and optimization"),
    FamilySpec("testing", "medium", BlockingBehavior.WARNING, "Test-related validations"),
    FamilySpec("data_hygiene", "medium", BlockingBehavior.WARNING, "Database and data structure validation"),
    FamilySpec("code_cleanup", "low", BlockingBehavior.NONE, "Code cleanup and formatting"),
    FamilySpec("documentation", "low", BlockingBehavior.NONE, "Documentation enforcement"),
)


def _freeze(mapping: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class PolicyTables:
    """Immutable tier, family and known-hook tables.

    Attributes:
        tiers: Tier name -> TierSpec, in execution order
        families: Family name -> FamilySpec
        known_hooks: Command -> KnownHook defaults
    """

    tiers: Mapping[str, TierSpec] = field(default_factory=lambda: _freeze({t.name: t for t in _DEFAULT_TIERS}))
    families: Mapping[str, FamilySpec] = field(
        default_factory=lambda: _freeze({f.name: f for f in _DEFAULT_FAMILIES})
    )
    known_hooks: Mapping[str, KnownHook] = field(default_factory=lambda: _freeze({}))

    def __post_init__(self) -> None:
        # Wrap caller-supplied dicts so nothing can mutate them after construction
        for name in ("tiers", "families", "known_hooks"):
            value = getattr(self, name)
            if not isinstance(value, MappingProxyType):
                object.__setattr__(self, name, _freeze(value))

        missing = [tier for tier in EXECUTION_ORDER if tier not in self.tiers]
        if missing:
            raise ValueError(f"Policy tables missing tiers: {', '.join(missing)}")

    @classmethod
    def default(cls) -> PolicyTables:
        """Standard tables."""
        return cls()

    def with_overrides(
        self,
        *,
        tiers: Mapping[str, Mapping[str, Any]] | None = None,
        families: Mapping[str, Mapping[str, Any]] | None = None,
        known_hooks: Mapping[str, KnownHook] | None = None,
    ) -> PolicyTables:
        """Return new tables with partial overrides applied.

        Args:
            tiers: Tier name -> fields to replace (timeout, max_parallelism, ...)
            families: Family name -> fields to replace or define
            known_hooks: Command -> KnownHook entries to add

        Returns:
            New PolicyTables instance

        Raises:
            ValueError: If a tier override names a tier outside the fixed set
        """
        new_tiers = dict(self.tiers)
        for name, changes in (tiers or {}).items():
            if name not in new_tiers:
                raise ValueError(f"Unknown tier '{name}': tiers are fixed ({', '.join(EXECUTION_ORDER)})")
            new_tiers[name] = dataclasses.replace(new_tiers[name], **_coerce_tier_fields(changes))

        new_families = dict(self.families)
        for name, changes in (families or {}).items():
            values = _coerce_family_fields(changes)
            if name in new_families:
                new_families[name] = dataclasses.replace(new_families[name], **values)
            else:
                new_families[name] = FamilySpec(
                    name=name,
                    priority=values.get("priority", DEFAULT_PRIORITY),
                    blocking_behavior=values.get("blocking_behavior", BlockingBehavior.WARNING),
                    description=values.get("description", ""),
                )

        new_known = dict(self.known_hooks)
        new_known.update(known_hooks or {})

        return PolicyTables(tiers=new_tiers, families=new_families, known_hooks=new_known)


def _coerce_tier_fields(changes: Mapping[str, Any]) -> dict[str, Any]:
    values = {k: v for k, v in changes.items() if v is not None}
    if "strategy" in values:
        values["strategy"] = ExecutionStrategy(values["strategy"])
    return values


def _coerce_family_fields(changes: Mapping[str, Any]) -> dict[str, Any]:
    values = {k: v for k, v in changes.items() if v is not None}
    if "blocking_behavior" in values:
        values["blocking_behavior"] = BlockingBehavior(values["blocking_behavior"])
    return values


@dataclass(frozen=True)
class HookValidation:
    """Result of validating a single hook descriptor."""

    valid: bool
    errors: list[str]
    warnings: list[str]


class PriorityClassifier:
    """Assigns tier, family, timeout and blocking behavior to hooks.

    Attributes:
        tables: Policy tables used for every lookup
        fallback_timeout: Timeout (ms) for hooks in an unknown tier
    """

    def __init__(
        self,
        tables: PolicyTables | None = None,
        fallback_timeout: int = DEFAULT_FALLBACK_TIMEOUT,
    ) -> None:
        self.tables = tables or PolicyTables.default()
        self.fallback_timeout = fallback_timeout

    def execution_order(self) -> list[str]:
        """Tier names in execution order."""
        return list(EXECUTION_ORDER)

    def is_known_tier(self, priority: str) -> bool:
        return priority in self.tables.tiers

    def get_timeout(self, priority: str) -> int:
        """Default timeout (ms) for a tier, or the global fallback."""
        tier = self.tables.tiers.get(priority)
        return tier.timeout if tier else self.fallback_timeout

    def get_max_parallelism(self, priority: str) -> int:
        """Slot count for a tier; unknown tiers use the default tier's cap."""
        tier = self.tables.tiers.get(priority) or self.tables.tiers[DEFAULT_PRIORITY]
        return tier.max_parallelism

    def get_execution_strategy(self, priority: str) -> ExecutionStrategy:
        tier = self.tables.tiers.get(priority)
        return tier.strategy if tier else ExecutionStrategy.PARALLEL

    def get_blocking_behavior(self, family: str) -> BlockingBehavior:
        family_spec = self.tables.families.get(family)
        return family_spec.blocking_behavior if family_spec else BlockingBehavior.WARNING

    def should_stop_on_failure(self, hook: HookDescriptor) -> bool:
        """Whether a failure of this (classified) hook halts the pipeline."""
        return hook.blocking_behavior is BlockingBehavior.HARD_BLOCK

    def classify_hook(self, hook: HookDescriptor) -> HookDescriptor:
        """Resolve every derived field of a single hook.

        Precedence per field: explicit value, known-hook entry, table default.

        Args:
            hook: Raw or partially classified descriptor

        Returns:
            New descriptor with priority, family, timeout, blocking_behavior
            and execution_strategy set
        """
        known = self.tables.known_hooks.get(hook.command or "") or KnownHook()

        priority = hook.priority or known.priority or DEFAULT_PRIORITY
        family = hook.family or known.family or DEFAULT_FAMILY
        timeout = hook.timeout if hook.timeout is not None else known.timeout
        if timeout is None:
            timeout = self.get_timeout(priority)

        return dataclasses.replace(
            hook,
            priority=priority,
            family=family,
            timeout=timeout,
            description=hook.description or known.description,
            blocking_behavior=self.get_blocking_behavior(family),
            execution_strategy=self.get_execution_strategy(priority),
        )

    def classify(self, hooks: Iterable[HookDescriptor]) -> list[HookDescriptor]:
        """Classify hooks, preserving input order. Never raises."""
        return [self.classify_hook(hook) for hook in hooks]

    def group_by_priority(self, hooks: Iterable[HookDescriptor]) -> dict[str, list[HookDescriptor]]:
        """Group hooks by tier.

        Every known tier is present (possibly empty), in execution order.
        Unrecognized priorities get their own key, in first-seen order.

        Args:
            hooks: Hooks to group; unclassified hooks fall into 'medium'

        Returns:
            Dict of tier name -> hooks
        """
        groups: dict[str, list[HookDescriptor]] = {tier: [] for tier in EXECUTION_ORDER}
        for hook in hooks:
            priority = hook.priority or DEFAULT_PRIORITY
            groups.setdefault(priority, []).append(hook)
        return groups

    def validate_hook_config(self, hook: HookDescriptor) -> HookValidation:
        """Check a raw descriptor for configuration problems.

        Args:
            hook: Descriptor as supplied by the caller (before classification)

        Returns:
            HookValidation with errors (will not run correctly) and warnings
        """
        errors: list[str] = []
        warnings: list[str] = []

        if not hook.command:
            errors.append("Hook command is required")

        if not hook.priority:
            warnings.append(f"Hook priority not specified, defaulting to {DEFAULT_PRIORITY}")
        elif not self.is_known_tier(hook.priority):
            errors.append(f"Invalid priority: {hook.priority}")

        if not hook.family:
            warnings.append(f"Hook family not specified, defaulting to {DEFAULT_FAMILY}")
        elif hook.family not in self.tables.families:
            warnings.append(f"Unknown family: {hook.family}")

        if hook.timeout is not None and hook.timeout < MIN_RECOMMENDED_TIMEOUT:
            warnings.append("Hook timeout is very low, may cause premature failures")

        return HookValidation(valid=not errors, errors=errors, warnings=warnings)

    def get_hook_statistics(self, hooks: Iterable[HookDescriptor]) -> dict[str, Any]:
        """Summarize a hook set by priority, family and timeout.

        Args:
            hooks: Hooks to summarize (classified or not)

        Returns:
            Dict with total, by_priority, by_family, total_timeout, average_timeout
        """
        classified = self.classify(hooks)
        by_priority: dict[str, int] = {}
        by_family: dict[str, int] = {}
        total_timeout = 0

        for hook in classified:
            by_priority[hook.priority] = by_priority.get(hook.priority, 0) + 1  # type: ignore[index]
            by_family[hook.family] = by_family.get(hook.family, 0) + 1  # type: ignore[index]
            total_timeout += hook.timeout or 0

        total = len(classified)
        return {
            "total": total,
            "by_priority": by_priority,
            "by_family": by_family,
            "total_timeout": total_timeout,
            "average_timeout": round(total_timeout / total) if total else 0,
        }

    def get_performance_targets(self) -> dict[str, dict[str, int]]:
        """Per-tier duration budget and parallelism cap."""
        return {
            name: {"max_duration": tier.timeout, "max_parallelism": tier.max_parallelism}
            for name, tier in self.tables.tiers.items()
        }
