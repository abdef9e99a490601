"""Configuration management for hookgate.

Configuration Discovery Precedence (Highest to Lowest Priority):
===============================================================

1. **HOOKGATE_CONFIG_DIR Environment Variable** (Highest Priority)
   - Set by CLI or manually: `export HOOKGATE_CONFIG_DIR=/path/to/config`
   - Looks for: `${HOOKGATE_CONFIG_DIR}/hookgate.yaml`
   - Use case: Development, testing, custom deployments

2. **Current Working Directory**
   - Looks for: `./hookgate.yaml`
   - Use case: Per-project hook configuration

3. **~/.hookgate Directory** (Fallback)
   - User's home directory default location
   - Looks for: `~/.hookgate/hookgate.yaml`
   - Use case: Default user installations

The first existing `hookgate.yaml` found in this order is used.
If no `hookgate.yaml` is found, default configuration is applied.

Example hookgate.yaml:
---------------------
hookgate:
  timeout: 30000
  priorities:
    high:
      max_parallelism: 4
  families:
    licensing:
      priority: high
      blocking_behavior: soft-block
  known_hooks:
    tools/hooks/security/security-scan.js:
      priority: high
      family: security
  hooks:
    PreToolUse:
      - matcher: "Write|Edit|MultiEdit"
        hooks:
          - command: tools/hooks/security/security-scan.js
"""

import logging
import os
import threading
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from hookgate.pipeline.hook import BlockingBehavior, ExecutionStrategy, HookDescriptor, KnownHook
from hookgate.pipeline.priority import DEFAULT_FALLBACK_TIMEOUT, PolicyTables

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "hookgate.yaml"


class ExecutorOptions(BaseModel):
    """Per-run options for the pipeline orchestrator."""

    verbose: bool = False
    """Log per-hook progress at INFO instead of DEBUG"""

    timeout: int = Field(default=DEFAULT_FALLBACK_TIMEOUT, gt=0)
    """Fallback timeout (ms) for hooks in an unknown tier"""

    fallback_to_sequential: bool = True
    """Re-run remaining hooks one at a time if concurrent execution is unavailable"""

    bypass: bool = False
    """Skip every hook that is not force-run via overrides"""

    overrides: str | None = None
    """Comma-separated +name / -name selection overrides"""

    cwd: Path | None = None
    """Working directory for shell hooks"""


class TierOverride(BaseModel):
    """Partial override of a built-in tier. Unset fields keep their defaults."""

    timeout: int | None = Field(default=None, gt=0)
    max_parallelism: int | None = Field(default=None, ge=1)
    strategy: ExecutionStrategy | None = None
    description: str | None = None


class FamilyOverride(BaseModel):
    """Override of a built-in family, or definition of a new one."""

    priority: str | None = None
    blocking_behavior: BlockingBehavior | None = None
    description: str | None = None


class KnownHookEntry(BaseModel):
    """Per-command defaults applied when a descriptor omits fields."""

    priority: str | None = None
    family: str | None = None
    timeout: int | None = Field(default=None, gt=0)
    description: str | None = None

    def to_known_hook(self) -> KnownHook:
        return KnownHook(
            priority=self.priority,
            family=self.family,
            timeout=self.timeout,
            description=self.description,
        )


class HookEntry(BaseModel):
    """A configured hook, in descriptor boundary form."""

    command: str | None = None
    priority: str | None = None
    family: str | None = None
    timeout: int | None = None
    description: str | None = None

    def to_descriptor(self) -> HookDescriptor:
        return HookDescriptor(
            command=self.command,
            priority=self.priority,
            family=self.family,
            timeout=self.timeout,
            description=self.description,
        )


class HookMatcherGroup(BaseModel):
    """Hooks registered for the tools named by a matcher."""

    matcher: str = ""
    """Pipe-separated tool names, e.g. "Write|Edit|MultiEdit" """

    hooks: list[HookEntry] = Field(default_factory=list)

    def matches(self, tool_matcher: str) -> bool:
        """Check whether any tool in this group's matcher appears in ``tool_matcher``."""
        if not self.matcher:
            return False
        group_tools = {t.strip() for t in self.matcher.split("|") if t.strip()}
        current_tools = {t.strip() for t in tool_matcher.split("|") if t.strip()}
        return bool(group_tools & current_tools)


class HookGateConfig(BaseSettings):
    """Main configuration for hookgate that reads from hookgate.yaml."""

    model_config = SettingsConfigDict(
        env_prefix="HOOKGATE_",
        case_sensitive=False,
        extra="ignore",
    )

    # Core settings
    debug: bool = False
    verbose: bool = False
    timeout: int = Field(default=DEFAULT_FALLBACK_TIMEOUT, gt=0)
    fallback_to_sequential: bool = True
    bypass: bool = False
    overrides: str | None = None

    # Policy table overrides
    priorities: dict[str, TierOverride] = Field(default_factory=dict)
    families: dict[str, FamilyOverride] = Field(default_factory=dict)
    known_hooks: dict[str, KnownHookEntry] = Field(default_factory=dict)

    # Event name (PreToolUse, PostToolUse, ...) -> matcher groups
    hooks: dict[str, list[HookMatcherGroup]] = Field(default_factory=dict)

    # Path the configuration was loaded from
    config_path: Path | None = None

    def options(self, **kwargs: Any) -> ExecutorOptions:
        """Build orchestrator options from this configuration.

        Args:
            **kwargs: Field values that take precedence over the configuration

        Returns:
            ExecutorOptions instance
        """
        values: dict[str, Any] = {
            "verbose": self.verbose,
            "timeout": self.timeout,
            "fallback_to_sequential": self.fallback_to_sequential,
            "bypass": self.bypass,
            "overrides": self.overrides,
        }
        values.update({k: v for k, v in kwargs.items() if v is not None})
        return ExecutorOptions(**values)

    def policy_tables(self) -> PolicyTables:
        """Build the policy tables with configured overrides applied.

        Raises:
            ValueError: If a priority override names an unknown tier
        """
        if not (self.priorities or self.families or self.known_hooks):
            return PolicyTables.default()

        return PolicyTables.default().with_overrides(
            tiers={name: o.model_dump(exclude_none=True) for name, o in self.priorities.items()},
            families={name: o.model_dump(exclude_none=True) for name, o in self.families.items()},
            known_hooks={command: entry.to_known_hook() for command, entry in self.known_hooks.items()},
        )

    def hooks_for(self, event: str, tool_matcher: str | None = None) -> list[HookDescriptor]:
        """Collect the hooks registered for an event.

        Args:
            event: Event name, e.g. "PreToolUse"
            tool_matcher: Pipe-separated tool names; None selects every group

        Returns:
            Unclassified descriptors in configuration order
        """
        descriptors: list[HookDescriptor] = []
        for group in self.hooks.get(event, []):
            if tool_matcher is None or group.matches(tool_matcher):
                descriptors.extend(entry.to_descriptor() for entry in group.hooks)

        logger.debug(f"Selected {len(descriptors)} hooks for {event} (matcher: {tool_matcher})")
        return descriptors

    @classmethod
    def from_yaml(cls, yaml_path: Path, **kwargs: Any) -> "HookGateConfig":
        """Load configuration from a hookgate.yaml file.

        Settings live under the top-level ``hookgate:`` key. Environment
        variables (HOOKGATE_*) and keyword arguments take precedence over
        the file.

        Args:
            yaml_path: Path to the hookgate.yaml file
            **kwargs: Additional keyword arguments

        Returns:
            HookGateConfig instance
        """
        data: dict[str, Any] = {}
        if yaml_path.exists():
            with yaml_path.open() as f:
                raw = yaml.safe_load(f) or {}
            section = raw.get("hookgate", {}) if isinstance(raw, dict) else {}
            if isinstance(section, dict):
                data = section
            else:
                logger.warning(f"Invalid hookgate section in {yaml_path}: {type(section)}")

        # Environment beats file: drop file keys that HOOKGATE_* variables set
        env_keys = {
            key[len("HOOKGATE_") :].lower() for key in os.environ if key.upper().startswith("HOOKGATE_")
        }
        merged = {k: v for k, v in data.items() if k not in env_keys}
        merged.update(kwargs)

        return cls(config_path=yaml_path, **merged)


# Global configuration instance
_config_instance: HookGateConfig | None = None
_config_lock = threading.Lock()


def get_config() -> HookGateConfig:
    """Get the configuration instance."""
    global _config_instance

    if _config_instance is None:
        with _config_lock:
            # Double-check locking pattern
            if _config_instance is None:
                _config_instance = _discover_config()

    return _config_instance


def _discover_config() -> HookGateConfig:
    # Priority 1: Environment variable
    env_config_dir = os.environ.get("HOOKGATE_CONFIG_DIR")
    if env_config_dir:
        config_path = Path(env_config_dir) / CONFIG_FILENAME
        if config_path.exists():
            logger.info(f"Loading hookgate config from: {config_path} (source: ENV:HOOKGATE_CONFIG_DIR)")
            return HookGateConfig.from_yaml(config_path)
        logger.info(f"{CONFIG_FILENAME} not found at {config_path}, using default config")
        return HookGateConfig()

    # Priority 2: Current working directory, then 3: ~/.hookgate
    for candidate in (Path.cwd() / CONFIG_FILENAME, Path.home() / ".hookgate" / CONFIG_FILENAME):
        if candidate.exists():
            logger.info(f"Loading hookgate config from: {candidate}")
            return HookGateConfig.from_yaml(candidate)

    logger.info(f"No {CONFIG_FILENAME} found in any location, using defaults")
    return HookGateConfig()


def set_config_instance(config: HookGateConfig) -> None:
    """Set the global configuration instance (for testing)."""
    global _config_instance
    _config_instance = config


def clear_config_instance() -> None:
    """Clear the global configuration instance (for testing)."""
    global _config_instance
    _config_instance = None
