"""hookgate CLI for running and inspecting hook pipelines - Tyro implementation."""

import json
import logging
import sys
from builtins import print as builtin_print
from pathlib import Path
from typing import Annotated, Any, Literal

import attrs
import tyro
import yaml
from rich import print
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from hookgate.config import CONFIG_FILENAME, HookGateConfig, get_config
from hookgate.pipeline.errors import HookGateError, InvalidHookListError
from hookgate.pipeline.hook import HookDescriptor
from hookgate.pipeline.orchestrator import PipelineOrchestrator
from hookgate.pipeline.plan import ExecutionPlan
from hookgate.pipeline.priority import PriorityClassifier
from hookgate.pipeline.report import AggregateReport, get_performance_stats

# CLI exit codes
EXIT_OK = 0
EXIT_ERROR = 1
EXIT_BLOCKED = 2


# Subcommand definitions using attrs
@attrs.define
class Run:
    """Run hooks against a JSON payload read from stdin.

    Exit codes:

      0 = all hooks passed
      1 = at least one hook failed
      2 = a hook blocked the operation
    """

    hooks_file: Annotated[Path | None, tyro.conf.arg(aliases=["-f"])] = None
    """YAML/JSON file with a hook list (or {hooks, data}). Defaults to configured hooks."""

    event: Annotated[str, tyro.conf.arg(aliases=["-e"])] = "PreToolUse"
    """Configured event whose hooks to run."""

    matcher: Annotated[str | None, tyro.conf.arg(aliases=["-m"])] = None
    """Pipe-separated tool names, e.g. "Write|Edit". Defaults to every matcher group."""

    json: bool = False
    """Print the report as JSON on stdout."""

    verbose: Annotated[bool, tyro.conf.arg(aliases=["-v"])] = False
    """Log per-hook progress."""


@attrs.define
class Classify:
    """Show hooks grouped by resolved priority."""

    hooks_file: Annotated[Path | None, tyro.conf.arg(aliases=["-f"])] = None
    """YAML/JSON hook list. Defaults to every configured hook."""


PlanOutput = Literal["ascii", "mermaid", "json", "config"]


@attrs.define
class Plan:
    """Visualize the tier-ordered execution plan."""

    hooks_file: Annotated[Path | None, tyro.conf.arg(aliases=["-f"])] = None
    """YAML/JSON hook list. Defaults to every configured hook."""

    output: Annotated[PlanOutput, tyro.conf.arg(aliases=["-o"])] = "ascii"
    """Output format: ascii, mermaid, json, config."""

    validate: Annotated[bool, tyro.conf.arg(aliases=["-v"])] = False
    """Validate hook configuration and report any issues."""


@attrs.define
class Stats:
    """Show hook configuration statistics and performance targets."""

    hooks_file: Annotated[Path | None, tyro.conf.arg(aliases=["-f"])] = None
    """YAML/JSON hook list. Defaults to every configured hook."""


# Type alias for all subcommands
Command = (
    Annotated[Run, tyro.conf.subcommand(name="run")]
    | Annotated[Classify, tyro.conf.subcommand(name="classify")]
    | Annotated[Plan, tyro.conf.subcommand(name="plan")]
    | Annotated[Stats, tyro.conf.subcommand(name="stats")]
)


def setup_logging() -> None:
    """Configure logging with 100-character text width."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)-20s - %(levelname)-8s - %(message).100s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def load_hooks_file(path: Path) -> tuple[list[Any], Any]:
    """Load a hook list from a YAML or JSON file.

    Accepted shapes: a list of descriptors, or a mapping with ``hooks`` and
    an optional ``data`` payload.

    Args:
        path: File to read

    Returns:
        Tuple of (hook descriptors, payload or None)

    Raises:
        InvalidHookListError: If the file does not hold a hook list
    """
    with path.open() as f:
        # YAML is a superset of JSON, one loader covers both
        data = yaml.safe_load(f)

    if isinstance(data, list):
        return data, None
    if isinstance(data, dict) and isinstance(data.get("hooks"), list):
        return data["hooks"], data.get("data")
    raise InvalidHookListError(f"{path} must contain a hook list or a mapping with a 'hooks' list")


def read_payload(stream: Any = None) -> Any:
    """Read the hook payload from stdin.

    Non-JSON input is wrapped as ``{"raw": text}``. An interactive terminal
    or empty input yields no payload.
    """
    stream = stream or sys.stdin
    if stream.isatty():
        return None

    text = stream.read()
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return {"raw": text}


def all_configured_hooks(config: HookGateConfig) -> list[HookDescriptor]:
    """Every hook across all events and matcher groups."""
    return [hook for event in config.hooks for hook in config.hooks_for(event)]


def select_hooks(config: HookGateConfig, hooks_file: Path | None) -> list[Any]:
    if hooks_file is not None:
        hooks, _ = load_hooks_file(hooks_file)
        return hooks
    return all_configured_hooks(config)


def render_report(report: AggregateReport, console: Console) -> None:
    """Print a human-readable run summary."""
    if report.success:
        title = "[bold green]PASSED[/bold green]"
    elif report.blocked:
        title = f"[bold red]BLOCKED[/bold red] [dim](halted at {report.halted_at})[/dim]"
    else:
        title = "[bold yellow]FAILED[/bold yellow]"
    console.print(Panel(title, expand=False))

    if report.results:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Hook", style="cyan")
        table.add_column("Tier")
        table.add_column("Family")
        table.add_column("Result")
        table.add_column("Duration", justify="right")

        for result in report.results:
            if result.success:
                status = "[green]ok[/green]"
            elif result.blocked:
                status = "[red]blocked[/red]"
            else:
                status = f"[yellow]{result.error_kind.value if result.error_kind else 'failed'}[/yellow]"
            table.add_row(result.hook, result.priority, result.family, status, f"{result.duration}ms")
        console.print(table)

    for result in report.blocks + report.errors:
        if result.message:
            console.print(f"[bold]{result.hook}[/bold]: {result.message}")

    stats = get_performance_stats(report)
    console.print(
        f"[dim]{stats['total_hooks']} hooks, {stats['total_duration']}ms total, "
        f"efficiency {stats['parallel_efficiency']}x, success rate {stats['success_rate']}[/dim]"
    )


def handle_run(config: HookGateConfig, cmd: Run) -> int:
    """Handle the run command.

    Returns:
        Process exit code
    """
    payload = None
    if cmd.hooks_file is not None:
        hooks, payload = load_hooks_file(cmd.hooks_file)
    else:
        hooks = config.hooks_for(cmd.event, cmd.matcher)

    if payload is None:
        payload = read_payload()

    orchestrator = PipelineOrchestrator(
        options=config.options(verbose=cmd.verbose or None),
        tables=config.policy_tables(),
    )
    report = orchestrator.run_sync(hooks, payload)

    if cmd.json:
        builtin_print(json.dumps(report.to_dict(), indent=2))
    else:
        render_report(report, Console(stderr=True))

    if report.blocked:
        return EXIT_BLOCKED
    if report.errors:
        return EXIT_ERROR
    return EXIT_OK


def handle_classify(config: HookGateConfig, cmd: Classify) -> None:
    """Handle the classify command."""
    classifier = PriorityClassifier(config.policy_tables(), fallback_timeout=config.timeout)
    hooks = [HookDescriptor.coerce(h) for h in select_hooks(config, cmd.hooks_file)]
    groups = classifier.group_by_priority(classifier.classify(hooks))
    grouped = {tier: [h.to_dict() for h in tier_hooks] for tier, tier_hooks in groups.items()}
    builtin_print(json.dumps(grouped, indent=2))


def handle_plan(config: HookGateConfig, cmd: Plan) -> None:
    """Handle the plan command to visualize the execution plan."""
    classifier = PriorityClassifier(config.policy_tables(), fallback_timeout=config.timeout)
    hooks = [HookDescriptor.coerce(h) for h in select_hooks(config, cmd.hooks_file)]

    if not hooks:
        print("[red]No hooks configured[/red]")
        sys.exit(EXIT_ERROR)

    plan = ExecutionPlan.build(classifier, hooks)

    # Validate if requested
    if cmd.validate:
        errors, warnings = plan.validate()
        for e in errors:
            print(f"  [red]✗[/red] {e}")
        for w in warnings:
            print(f"  [yellow]•[/yellow] {w}")
        if not errors and not warnings:
            print("[green]Plan validation passed - no issues found[/green]")
        print()

    # Output based on format
    if cmd.output == "mermaid":
        builtin_print(plan.to_mermaid())
    elif cmd.output == "json":
        builtin_print(json.dumps(plan.to_dict(), indent=2))
    elif cmd.output == "config":
        optimized = plan.optimized_config(config.timeout, config.fallback_to_sequential)
        builtin_print(json.dumps(optimized, indent=2))
    else:
        # Default: ASCII
        console = Console()
        console.print(Panel("[bold cyan]Hook Execution Plan[/bold cyan]", expand=False))
        console.print("\n[bold]Execution Order:[/bold]")
        console.print(f"  {' → '.join(stage.tier for stage in plan.stages)}")

        console.print("\n[bold]Stages:[/bold]")
        table = Table(show_header=True, header_style="bold")
        table.add_column("Tier", style="cyan")
        table.add_column("Hooks", justify="right")
        table.add_column("Parallel", justify="right", style="green")
        table.add_column("Strategy", style="yellow")
        table.add_column("Timeout", justify="right")
        table.add_column("Stops on Failure", style="magenta")
        for stage in plan.stages:
            table.add_row(
                stage.tier if stage.known else f"{stage.tier} [dim](unknown)[/dim]",
                str(len(stage.hooks)),
                str(stage.max_parallelism),
                stage.strategy.value,
                f"{stage.timeout}ms",
                "yes" if stage.stop_on_failure else "-",
            )
        console.print(table)

        console.print("\n[bold]Plan Visualization:[/bold]")
        console.print(plan.to_ascii())


def handle_stats(config: HookGateConfig, cmd: Stats) -> None:
    """Handle the stats command."""
    classifier = PriorityClassifier(config.policy_tables(), fallback_timeout=config.timeout)
    hooks = [HookDescriptor.coerce(h) for h in select_hooks(config, cmd.hooks_file)]
    stats = classifier.get_hook_statistics(hooks)

    console = Console()
    console.print(Panel("[bold cyan]Hook Statistics[/bold cyan]", expand=False))
    console.print(f"  Total hooks: {stats['total']}")
    console.print(f"  Total timeout: {stats['total_timeout']}ms")
    console.print(f"  Average timeout: {stats['average_timeout']}ms")

    for title, counts in (("By Priority", stats["by_priority"]), ("By Family", stats["by_family"])):
        if counts:
            console.print(f"\n[bold]{title}:[/bold]")
            for name, count in counts.items():
                console.print(f"  {name}: {count}")

    console.print("\n[bold]Performance Targets:[/bold]")
    table = Table(show_header=True, header_style="bold")
    table.add_column("Tier", style="cyan")
    table.add_column("Max Duration", justify="right")
    table.add_column("Max Parallelism", justify="right")
    for tier, target in classifier.get_performance_targets().items():
        table.add_row(tier, f"{target['max_duration']}ms", str(target["max_parallelism"]))
    console.print(table)


def main(
    cmd: Annotated[Command, tyro.conf.arg(name="")],
    *,
    config_dir: Annotated[Path | None, tyro.conf.arg(help="Configuration directory")] = None,
) -> None:
    """hookgate - Priority-tiered parallel hook execution.

    Runs validation hooks in priority tiers with bounded concurrency,
    per-hook timeouts and early termination on blocking failures.
    """
    # Setup logging with 100-character text width
    setup_logging()

    config = HookGateConfig.from_yaml(config_dir / CONFIG_FILENAME) if config_dir else get_config()
    if config.debug:
        logging.getLogger("hookgate").setLevel(logging.DEBUG)

    try:
        # Handle each command type
        if isinstance(cmd, Run):
            sys.exit(handle_run(config, cmd))
        elif isinstance(cmd, Classify):
            handle_classify(config, cmd)
        elif isinstance(cmd, Plan):
            handle_plan(config, cmd)
        elif isinstance(cmd, Stats):
            handle_stats(config, cmd)
    except (HookGateError, ValueError, OSError, yaml.YAMLError) as e:
        print(f"[red]Error: {e}[/red]", file=sys.stderr)
        sys.exit(EXIT_ERROR)


def entry_point() -> None:
    """Entry point for the hookgate command."""
    tyro.cli(main)


if __name__ == "__main__":
    entry_point()
