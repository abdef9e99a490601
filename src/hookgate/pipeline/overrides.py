"""Hook selection overrides.

Lets callers narrow or widen the hook set for a single run:
- +name → Force run (even in bypass mode)
- -name → Force skip
- No prefix → Normal (bypass mode decides)

A name matches a hook's label, family or tier. When several match, the
most specific wins: label, then family, then tier.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hookgate.pipeline.hook import HookDescriptor

logger = logging.getLogger(__name__)


class HookOverride(Enum):
    """Override mode for a hook."""

    NORMAL = "normal"  # Bypass mode decides
    FORCE_RUN = "force_run"  # Run even when bypassed
    FORCE_SKIP = "force_skip"  # Skip this hook entirely


@dataclass
class OverrideSet:
    """Parsed override configuration.

    Attributes:
        overrides: Mapping of name (label, family or tier) to override mode
        raw: Original override string for debugging
        bypass: Skip every hook that is not force-run
    """

    overrides: dict[str, HookOverride] = field(default_factory=dict)
    raw: str = ""
    bypass: bool = False

    def get_override(self, hook: HookDescriptor) -> HookOverride:
        """Get override mode for a classified hook.

        Args:
            hook: Classified hook

        Returns:
            Override mode (NORMAL if no name matches)
        """
        for name in (hook.label, hook.family, hook.priority):
            if name and name in self.overrides:
                override = self.overrides[name]
                if override is not HookOverride.NORMAL:
                    return override
        return HookOverride.NORMAL

    def should_run(self, hook: HookDescriptor) -> bool:
        """Determine if a hook should execute.

        Args:
            hook: Classified hook

        Returns:
            True if the hook should execute
        """
        override = self.get_override(hook)

        if override == HookOverride.FORCE_RUN:
            return True
        elif override == HookOverride.FORCE_SKIP:
            return False
        else:
            return not self.bypass

    def apply(self, hooks: Iterable[HookDescriptor]) -> tuple[list[HookDescriptor], list[HookDescriptor]]:
        """Split hooks into those that run and those that are skipped.

        Args:
            hooks: Classified hooks

        Returns:
            Tuple of (selected, skipped), each in input order
        """
        selected: list[HookDescriptor] = []
        skipped: list[HookDescriptor] = []
        for hook in hooks:
            (selected if self.should_run(hook) else skipped).append(hook)

        if skipped:
            logger.debug(
                "Skipped %d hooks by override%s: %s",
                len(skipped),
                " (bypass)" if self.bypass else "",
                ", ".join(h.label for h in skipped),
            )
        return selected, skipped


def parse_overrides(value: str | None, bypass: bool = False) -> OverrideSet:
    """Parse a comma-separated override list.

    Format: comma-separated list of hook overrides
    - +name → Force run
    - -name → Force skip
    - name → Normal (same as not specifying)

    Args:
        value: Raw override string or None
        bypass: Global bypass flag

    Returns:
        OverrideSet with parsed overrides

    Examples:
        >>> parse_overrides("+security,-import-janitor.js").overrides
        {'security': <HookOverride.FORCE_RUN: 'force_run'>, 'import-janitor.js': <HookOverride.FORCE_SKIP: 'force_skip'>}
    """
    if not value:
        return OverrideSet(bypass=bypass)

    overrides: dict[str, HookOverride] = {}
    value = value.strip()

    for part in value.split(","):
        part = part.strip()
        if not part:
            continue

        if part.startswith("+"):
            name = part[1:].strip()
            if name:
                overrides[name] = HookOverride.FORCE_RUN
        elif part.startswith("-"):
            name = part[1:].strip()
            if name:
                overrides[name] = HookOverride.FORCE_SKIP
        else:
            overrides[part] = HookOverride.NORMAL

    if overrides:
        logger.debug("Parsed hook overrides: %s", overrides)

    return OverrideSet(overrides=overrides, raw=value, bypass=bypass)
