"""Tier-ordered execution plan for a set of hooks.

Groups classified hooks into stages, one per non-empty tier. Known tiers
come first in fixed order; stages for unrecognized priorities follow
background in first-seen order and use the default tier's concurrency cap.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from hookgate.pipeline.hook import BlockingBehavior, ExecutionStrategy

if TYPE_CHECKING:
    from hookgate.pipeline.hook import HookDescriptor
    from hookgate.pipeline.priority import PriorityClassifier

logger = logging.getLogger(__name__)

_BOX_WIDTH = 48


@dataclass(frozen=True)
class PlanStage:
    """One tier's worth of hooks.

    Attributes:
        tier: Tier name
        hooks: Classified hooks, in input order
        max_parallelism: Slot count for the tier
        strategy: Declared execution strategy
        timeout: Tier default timeout (ms)
        known: False for stages built from an unrecognized priority
    """

    tier: str
    hooks: tuple[HookDescriptor, ...]
    max_parallelism: int
    strategy: ExecutionStrategy
    timeout: int
    known: bool = True

    @property
    def stop_on_failure(self) -> bool:
        """Whether a failure in this stage can halt the pipeline."""
        return any(h.blocking_behavior is BlockingBehavior.HARD_BLOCK for h in self.hooks)


@dataclass
class ExecutionPlan:
    """Ordered stages plus the classifier that produced them."""

    classifier: PriorityClassifier
    stages: list[PlanStage] = field(default_factory=list)
    raw_hooks: list[HookDescriptor] = field(default_factory=list)

    @classmethod
    def build(cls, classifier: PriorityClassifier, hooks: Iterable[HookDescriptor]) -> ExecutionPlan:
        """Classify hooks and group them into stages.

        Args:
            classifier: Classifier holding the policy tables
            hooks: Raw or classified descriptors

        Returns:
            ExecutionPlan with only non-empty stages
        """
        raw = list(hooks)
        groups = classifier.group_by_priority(classifier.classify(raw))

        stages: list[PlanStage] = []
        for tier, tier_hooks in groups.items():
            if not tier_hooks:
                continue
            known = classifier.is_known_tier(tier)
            stages.append(
                PlanStage(
                    tier=tier,
                    hooks=tuple(tier_hooks),
                    max_parallelism=classifier.get_max_parallelism(tier),
                    strategy=classifier.get_execution_strategy(tier),
                    timeout=classifier.get_timeout(tier),
                    known=known,
                )
            )
        return cls(classifier=classifier, stages=stages, raw_hooks=raw)

    @property
    def hooks(self) -> list[HookDescriptor]:
        """Classified hooks in execution order."""
        return [hook for stage in self.stages for hook in stage.hooks]

    @property
    def total_hooks(self) -> int:
        return sum(len(stage.hooks) for stage in self.stages)

    @property
    def unknown_tiers(self) -> list[str]:
        return [stage.tier for stage in self.stages if not stage.known]

    def validate(self) -> tuple[list[str], list[str]]:
        """Validate every hook in the plan.

        Returns:
            Tuple of (errors, warnings); both empty when the plan is clean
        """
        errors: list[str] = []
        warnings: list[str] = []

        for hook in self.raw_hooks:
            result = self.classifier.validate_hook_config(hook)
            errors.extend(f"{hook.label}: {msg}" for msg in result.errors)
            warnings.extend(f"{hook.label}: {msg}" for msg in result.warnings)

        for tier in self.unknown_tiers:
            warnings.append(f"Tier '{tier}' is not a known tier, it will run after background")

        return errors, warnings

    def log_plan(self, level: int = logging.DEBUG) -> None:
        if not self.stages:
            logger.log(level, "Execution plan: no hooks")
            return
        logger.log(
            level,
            "Execution plan: %d hooks in %d stages (%s)",
            self.total_hooks,
            len(self.stages),
            " → ".join(f"{s.tier}:{len(s.hooks)}" for s in self.stages),
        )

    def to_ascii(self) -> str:
        """Render stages as boxes joined by arrows.

        Returns:
            ASCII art string
        """
        lines: list[str] = []
        inner = _BOX_WIDTH - 2

        for i, stage in enumerate(self.stages):
            if i > 0:
                lines.append("       │")
                lines.append("       ▼")

            header = f"{stage.tier.upper()} (x{stage.max_parallelism}, {stage.timeout}ms)"
            lines.append(f"┌{'─' * _BOX_WIDTH}┐")
            lines.append(f"│ {header:<{inner}} │")
            for hook in stage.hooks:
                marker = "!" if hook.blocking_behavior is BlockingBehavior.HARD_BLOCK else "-"
                text = f"{marker} {hook.label}"
                if len(text) > inner:
                    text = text[: inner - 1] + "…"
                lines.append(f"│ {text:<{inner}} │")
            lines.append(f"└{'─' * _BOX_WIDTH}┘")

        return "\n".join(lines)

    def to_mermaid(self) -> str:
        """Generate a Mermaid flowchart, one subgraph per stage.

        Returns:
            Mermaid graph definition string
        """
        lines = ["graph TD"]
        previous: str | None = None

        for i, stage in enumerate(self.stages):
            stage_id = f"stage{i}"
            lines.append(f'    subgraph {stage_id}["{stage.tier} (x{stage.max_parallelism})"]')
            for j, hook in enumerate(stage.hooks):
                label = hook.label.replace('"', "'")
                lines.append(f'        {stage_id}_{j}["{label}"]')
            lines.append("    end")
            if previous is not None:
                lines.append(f"    {previous} --> {stage_id}")
            previous = stage_id

        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_hooks": self.total_hooks,
            "stages": [
                {
                    "tier": stage.tier,
                    "known": stage.known,
                    "max_parallelism": stage.max_parallelism,
                    "strategy": stage.strategy.value,
                    "timeout": stage.timeout,
                    "hooks": [hook.to_dict() for hook in stage.hooks],
                }
                for stage in self.stages
            ],
        }

    def optimized_config(self, global_timeout: int, fallback_to_sequential: bool = True) -> dict[str, Any]:
        """Summarize the plan as a tier-by-tier execution configuration.

        Args:
            global_timeout: Fallback timeout (ms)
            fallback_to_sequential: Whether sequential fallback is enabled

        Returns:
            Dict with an ``execution`` block and one ``priorities`` entry per
            non-empty tier
        """
        return {
            "execution": {
                "strategy": "priority-based-parallel",
                "global_timeout": global_timeout,
                "fallback_to_sequential": fallback_to_sequential,
            },
            "priorities": {
                stage.tier: {
                    "hooks": [hook.to_dict() for hook in stage.hooks],
                    "strategy": stage.strategy.value,
                    "timeout": stage.timeout,
                    "stop_on_failure": stage.stop_on_failure,
                    "parallelism": stage.max_parallelism,
                }
                for stage in self.stages
            },
        }
