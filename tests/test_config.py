"""Tests for hookgate configuration."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from hookgate.config import (
    ExecutorOptions,
    HookGateConfig,
    HookMatcherGroup,
    clear_config_instance,
    get_config,
    set_config_instance,
)
from hookgate.pipeline.hook import BlockingBehavior
from hookgate.pipeline.priority import PriorityClassifier

SAMPLE_CONFIG = """\
hookgate:
  verbose: true
  timeout: 20000
  overrides: "-documentation"
  priorities:
    high:
      max_parallelism: 4
  families:
    licensing:
      priority: high
      blocking_behavior: hard-block
  known_hooks:
    tools/hooks/security-scan.js:
      priority: high
      family: security
      timeout: 2500
  hooks:
    PreToolUse:
      - matcher: "Write|Edit|MultiEdit"
        hooks:
          - command: tools/hooks/prevent-improved-files.js
            priority: critical
            family: file_hygiene
          - command: tools/hooks/security-scan.js
      - matcher: "Bash"
        hooks:
          - command: tools/hooks/bash-guard.js
    PostToolUse:
      - matcher: "Write"
        hooks:
          - command: tools/hooks/import-janitor.js
            priority: low
"""


@pytest.fixture(autouse=True)
def _clean_config(monkeypatch):
    for key in ("HOOKGATE_CONFIG_DIR", "HOOKGATE_TIMEOUT", "HOOKGATE_DEBUG", "HOOKGATE_VERBOSE"):
        monkeypatch.delenv(key, raising=False)
    clear_config_instance()
    yield
    clear_config_instance()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "hookgate.yaml"
    path.write_text(SAMPLE_CONFIG)
    return path


class TestExecutorOptions:
    """Test suite for ExecutorOptions."""

    def test_defaults(self) -> None:
        """Test option defaults."""
        options = ExecutorOptions()

        assert options.verbose is False
        assert options.timeout == 30000
        assert options.fallback_to_sequential is True
        assert options.bypass is False
        assert options.overrides is None

    def test_timeout_must_be_positive(self) -> None:
        """Test invalid timeouts are rejected."""
        with pytest.raises(ValidationError):
            ExecutorOptions(timeout=0)


class TestFromYaml:
    """Test suite for HookGateConfig.from_yaml."""

    def test_loads_section(self, config_file: Path) -> None:
        """Test settings are read from the hookgate section."""
        config = HookGateConfig.from_yaml(config_file)

        assert config.verbose is True
        assert config.timeout == 20000
        assert config.config_path == config_file
        assert set(config.hooks) == {"PreToolUse", "PostToolUse"}

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        """Test a missing file yields the default configuration."""
        config = HookGateConfig.from_yaml(tmp_path / "nope.yaml")

        assert config.timeout == 30000
        assert config.hooks == {}

    def test_empty_file(self, tmp_path: Path) -> None:
        """Test an empty file yields the default configuration."""
        path = tmp_path / "hookgate.yaml"
        path.write_text("")

        assert HookGateConfig.from_yaml(path).verbose is False

    def test_env_overrides_file(self, config_file: Path, monkeypatch) -> None:
        """Test HOOKGATE_* variables take precedence over the file."""
        monkeypatch.setenv("HOOKGATE_TIMEOUT", "15000")

        config = HookGateConfig.from_yaml(config_file)

        assert config.timeout == 15000
        assert config.verbose is True

    def test_kwargs_override_file(self, config_file: Path) -> None:
        """Test explicit keyword arguments win."""
        assert HookGateConfig.from_yaml(config_file, timeout=1234).timeout == 1234


class TestDerivedObjects:
    """Test suite for options, policy tables and hook selection."""

    def test_options(self, config_file: Path) -> None:
        """Test options are built from config values."""
        config = HookGateConfig.from_yaml(config_file)

        options = config.options()

        assert options.verbose is True
        assert options.timeout == 20000
        assert options.overrides == "-documentation"
        assert config.options(bypass=True, verbose=None).bypass is True

    def test_policy_tables(self, config_file: Path) -> None:
        """Test tier, family and known-hook overrides reach the classifier."""
        tables = HookGateConfig.from_yaml(config_file).policy_tables()
        classifier = PriorityClassifier(tables)

        assert tables.tiers["high"].max_parallelism == 4
        assert tables.tiers["high"].timeout == 4000
        assert tables.families["licensing"].blocking_behavior is BlockingBehavior.HARD_BLOCK

        config = HookGateConfig.from_yaml(config_file)
        hook = classifier.classify(config.hooks_for("PreToolUse", "Write"))[1]
        assert hook.priority == "high"
        assert hook.family == "security"
        assert hook.timeout == 2500

    def test_default_policy_tables(self) -> None:
        """Test no overrides yields the default tables."""
        assert HookGateConfig().policy_tables().tiers["high"].max_parallelism == 3

    def test_invalid_tier_override(self) -> None:
        """Test tier overrides must name a built-in tier."""
        config = HookGateConfig(priorities={"urgent": {"timeout": 100}})

        with pytest.raises(ValueError, match="Unknown tier"):
            config.policy_tables()

    def test_hooks_for_matcher(self, config_file: Path) -> None:
        """Test hooks are selected by matcher overlap."""
        config = HookGateConfig.from_yaml(config_file)

        assert [h.command for h in config.hooks_for("PreToolUse", "Edit")] == [
            "tools/hooks/prevent-improved-files.js",
            "tools/hooks/security-scan.js",
        ]
        assert [h.command for h in config.hooks_for("PreToolUse", "Bash|Read")] == ["tools/hooks/bash-guard.js"]
        assert config.hooks_for("PreToolUse", "Read") == []
        assert len(config.hooks_for("PreToolUse")) == 3
        assert config.hooks_for("Stop") == []

    def test_matcher_group(self) -> None:
        """Test pipe-separated matcher overlap."""
        group = HookMatcherGroup(matcher="Write | Edit")

        assert group.matches("Edit")
        assert group.matches("MultiEdit|Write")
        assert not group.matches("Read")
        assert not HookMatcherGroup(matcher="").matches("Write")


class TestGetConfig:
    """Test suite for configuration discovery."""

    def test_env_config_dir(self, config_file: Path, monkeypatch) -> None:
        """Test HOOKGATE_CONFIG_DIR has the highest priority."""
        monkeypatch.setenv("HOOKGATE_CONFIG_DIR", str(config_file.parent))

        assert get_config().timeout == 20000

    def test_env_config_dir_without_file(self, tmp_path: Path, monkeypatch) -> None:
        """Test a config dir without hookgate.yaml falls back to defaults."""
        monkeypatch.setenv("HOOKGATE_CONFIG_DIR", str(tmp_path))

        assert get_config().timeout == 30000

    def test_cwd_config(self, config_file: Path, monkeypatch) -> None:
        """Test ./hookgate.yaml is found."""
        monkeypatch.chdir(config_file.parent)

        assert get_config().timeout == 20000

    def test_home_config(self, tmp_path: Path, monkeypatch) -> None:
        """Test ~/.hookgate/hookgate.yaml is the last resort."""
        home = tmp_path / "home"
        (home / ".hookgate").mkdir(parents=True)
        (home / ".hookgate" / "hookgate.yaml").write_text("hookgate:\n  timeout: 9000\n")
        workdir = tmp_path / "work"
        workdir.mkdir()
        monkeypatch.setenv("HOME", str(home))
        monkeypatch.chdir(workdir)

        assert get_config().timeout == 9000

    def test_cached_instance(self) -> None:
        """Test set/clear of the global instance."""
        config = HookGateConfig(timeout=4242)
        set_config_instance(config)

        assert get_config() is config

        clear_config_instance()
        assert get_config() is not config
