"""Waveplan CLI entrypoint."""

import sys
from pathlib import Path
from typing import Optional

import click

from .config.loader import ConfigError, create_default_config, load_config_or_default
from .config.models import WaveplanConfig
from .executor.loop import ExecutionLoop, StepOutcome
from .scheduler.graph import format_cycle
from .state.machine import RunStateError, create_escalation
from .state.persistence import (
    AffectedFile,
    EscalationTrigger,
    FileAction,
    TaskExecution,
    load_plan,
)
from .tasks.plan import PlanError, run_plan
from .utils.logging import configure_logging, setup_logging

CONTEXT_SETTINGS = {
    "help_option_names": ["-h", "--help"],
}

PROFILE_CHOICES = ["app", "lp", "hp", "api", "cli"]


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option(
    "--config",
    "-c",
    default=".waveplan/config.yml",
    help="Path to configuration file",
    type=click.Path(exists=False, path_type=Path),
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output",
)
@click.pass_context
def cli(ctx: click.Context, config: Path, verbose: bool) -> None:
    """Waveplan - dependency-aware feature scheduling and task tracking."""
    setup_logging(level="DEBUG" if verbose else "WARNING")

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose


def _load_config(ctx: click.Context) -> WaveplanConfig:
    """Load config (or defaults) and reconfigure logging from it."""
    config_path: Path = ctx.obj["config_path"]
    verbose: bool = ctx.obj["verbose"]

    try:
        config = load_config_or_default(config_path)
    except ConfigError as e:
        click.echo(f"✗ Configuration error: {e}", err=True)
        sys.exit(1)

    configure_logging(config, verbose=verbose, write_files=config_path.exists())
    return config


def _fail(message: str) -> None:
    click.echo(f"✗ {message}", err=True)
    sys.exit(1)


@cli.command()
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite existing configuration",
)
@click.option(
    "--profile",
    type=click.Choice(PROFILE_CHOICES),
    default="app",
    show_default=True,
    help="Project profile type",
)
@click.pass_context
def init(ctx: click.Context, force: bool, profile: str) -> None:
    """Initialize Waveplan configuration."""
    config_path: Path = ctx.obj["config_path"]

    if config_path.exists() and not force:
        click.echo(f"Configuration already exists: {config_path}")
        click.echo("Use --force to overwrite")
        sys.exit(1)

    try:
        create_default_config(config_path, profile_type=profile)
    except OSError as e:
        _fail(f"Failed to create configuration: {e}")

    click.echo(f"✓ Created configuration: {config_path}")
    click.echo("\nNext steps:")
    click.echo("  1. Write the feature catalog (docs/requirements/FEATURE_CATALOG.md)")
    click.echo("  2. Run: waveplan plan")
    click.echo("  3. Run: waveplan run")


@cli.command()
@click.option(
    "--catalog",
    type=click.Path(exists=False, path_type=Path),
    help="Feature catalog override (.md or .yml)",
)
@click.option("--status", "show_status", is_flag=True, help="Show current plan instead of planning")
@click.option("--reset-run", is_flag=True, help="Rebuild the run task list from the new plan")
@click.pass_context
def plan(ctx: click.Context, catalog: Optional[Path], show_status: bool, reset_run: bool) -> None:
    """Generate the wave plan from the feature catalog."""
    config = _load_config(ctx)

    if show_status:
        existing = load_plan(config.state_dir)
        if existing is None:
            click.echo("No plan found. Run 'waveplan plan' to generate.")
            return
        click.echo(f"Plan status: {existing.status.value}")
        click.echo(f"Generated: {existing.generated_at}")
        _print_waves(existing.waves)
        return

    try:
        result = run_plan(config, catalog_path=catalog)
    except PlanError as e:
        _fail(str(e))

    _print_waves(result.plan.waves)

    if result.plan.circular_dependencies:
        click.echo("\nCircular dependencies (needs resolution):")
        for cycle in result.plan.circular_dependencies:
            click.echo(f"  {format_cycle(cycle)}")

    if result.warnings:
        click.echo(f"\n{len(result.warnings)} warning(s):")
        for warning in result.warnings:
            click.echo(f"  ! {warning}")

    click.echo(
        f"\n✓ Plan generated: {result.feature_count} features, "
        f"{len(result.plan.waves)} waves, ~{result.task_count} tasks"
    )

    loop = ExecutionLoop(config)
    if reset_run:
        loop.activate(reset=True)
        click.echo("✓ Run reset from new plan")
    elif loop.is_active:
        click.echo("Existing run kept; use --reset-run to rebuild it from this plan")


def _print_waves(waves) -> None:
    for wave in waves:
        label = f"{wave.phase.value}, layer {wave.layer}" if wave.layer else wave.phase.value
        click.echo(f"\n## Wave {wave.number}: {wave.title} ({label})")
        for feature in wave.features:
            deps = f" [deps: {', '.join(feature.dependencies)}]" if feature.dependencies else ""
            click.echo(
                f"  {feature.id}: {feature.name} "
                f"({feature.priority.value}, {feature.size.value}){deps}"
            )


@cli.command()
@click.option("--task", "task_id", help="Start a specific task")
@click.option("--dry-run", is_flag=True, help="Show the selected task without starting it")
@click.pass_context
def run(ctx: click.Context, task_id: Optional[str], dry_run: bool) -> None:
    """Start the next task (or report what blocks the run)."""
    config = _load_config(ctx)
    loop = ExecutionLoop(config)

    try:
        result = loop.step(task_id=task_id, dry_run=dry_run)
    except (PlanError, RunStateError) as e:
        _fail(str(e))

    task = result.task
    if result.outcome == StepOutcome.COMPLETED:
        click.echo("✓ All tasks completed!")
    elif result.outcome == StepOutcome.NO_PENDING:
        click.echo("No pending tasks available.")
    elif result.outcome == StepOutcome.ESCALATED:
        click.echo(f"Task {task.task_id} is waiting for input:")
        _print_escalation(task)
        click.echo(f"\nResolve with: waveplan resolve {task.task_id} \"<answer>\"")
    elif result.outcome == StepOutcome.IN_PROGRESS:
        click.echo(f"Task {task.task_id} is in progress")
        _print_task(task)
    elif result.outcome == StepOutcome.DRY_RUN:
        click.echo("[DRY RUN] Would start:")
        _print_task(task)
    else:
        click.echo(f"✓ Started {task.task_id}")
        _print_task(task)

    click.echo(f"Progress: {result.progress}%")
    if not dry_run:
        loop.refresh_status()


def _print_task(task: TaskExecution) -> None:
    click.echo(f"  Task: {task.task_id}")
    click.echo(f"  Name: {task.name}")
    click.echo(f"  Feature: {task.feature_id} (wave {task.wave_number})")
    click.echo(f"  Kind: {task.task_kind}")
    if task.references:
        click.echo(f"  References: {', '.join(task.references)}")


def _print_escalation(task: TaskExecution) -> None:
    esc = task.escalation
    if esc is None:
        return
    click.echo(f"  Trigger: [{esc.trigger.value}] {esc.trigger.label}")
    if esc.context:
        click.echo(f"  Context: {esc.context}")
    click.echo(f"  Question: {esc.question}")
    for option in esc.options:
        click.echo(f"    {option.id}) {option.description}")
        if option.impact:
            click.echo(f"       Impact: {option.impact}")
    if esc.recommendation:
        click.echo(f"  Recommendation: {esc.recommendation}")
    if esc.recommendation_reason:
        click.echo(f"  Reason: {esc.recommendation_reason}")


@cli.command()
@click.argument("task_id")
@click.option(
    "--trigger",
    type=click.Choice([t.value for t in EscalationTrigger]),
    required=True,
    help="Escalation trigger (T1-T7)",
)
@click.option("--question", "-q", required=True, help="Question to ask")
@click.option("--context", "context_", default="", help="What the task was doing")
@click.option(
    "--option",
    "options",
    multiple=True,
    help="Option as 'description' or 'description::impact' (repeatable)",
)
@click.option("--recommend", default="", help="Recommended option")
@click.option("--reason", default="", help="Why it is recommended")
@click.pass_context
def escalate(
    ctx: click.Context,
    task_id: str,
    trigger: str,
    question: str,
    context_: str,
    options: tuple[str, ...],
    recommend: str,
    reason: str,
) -> None:
    """Pause an in-progress task on a question."""
    config = _load_config(ctx)
    loop = ExecutionLoop(config)

    parsed = []
    for option in options:
        description, _, impact = option.partition("::")
        parsed.append((description.strip(), impact.strip()))

    escalation = create_escalation(
        trigger,
        question,
        context=context_,
        options=parsed,
        recommendation=recommend,
        recommendation_reason=reason,
    )

    try:
        task = loop.machine.escalate(task_id, escalation)
    except RunStateError as e:
        _fail(str(e))

    click.echo(f"✓ Task {task_id} is waiting for input")
    _print_escalation(task)
    loop.refresh_status()


@cli.command()
@click.argument("task_id")
@click.argument("resolution")
@click.pass_context
def resolve(ctx: click.Context, task_id: str, resolution: str) -> None:
    """Answer a task's escalation and resume it."""
    config = _load_config(ctx)
    loop = ExecutionLoop(config)

    try:
        loop.machine.resolve(task_id, resolution)
    except RunStateError as e:
        _fail(str(e))

    click.echo(f"✓ Escalation resolved: \"{resolution}\"")
    click.echo(f"Task {task_id} resumed")
    loop.refresh_status()


def _parse_file(raw: str) -> AffectedFile:
    path, sep, action = raw.rpartition(":")
    if sep and action in {a.value for a in FileAction}:
        return AffectedFile(path=path, action=FileAction(action))
    return AffectedFile(path=raw)


@cli.command()
@click.argument("task_id")
@click.option(
    "--file",
    "files",
    multiple=True,
    help="Affected file as 'path' or 'path:created|modified|deleted' (repeatable)",
)
@click.option("--score", type=float, default=None, help="Quality score")
@click.pass_context
def complete(ctx: click.Context, task_id: str, files: tuple[str, ...], score: Optional[float]) -> None:
    """Mark an in-progress task as done."""
    config = _load_config(ctx)
    loop = ExecutionLoop(config)

    try:
        loop.machine.complete(task_id, [_parse_file(f) for f in files], score)
    except RunStateError as e:
        _fail(str(e))

    click.echo(f"✓ Task {task_id} completed")
    click.echo(f"Progress: {loop.machine.progress()}% (run {loop.machine.status.value})")
    loop.refresh_status()


@cli.command()
@click.argument("task_id")
@click.pass_context
def fail(ctx: click.Context, task_id: str) -> None:
    """Mark an in-progress or escalated task as failed."""
    config = _load_config(ctx)
    loop = ExecutionLoop(config)

    try:
        loop.machine.fail(task_id)
    except RunStateError as e:
        _fail(str(e))

    click.echo(f"✗ Task {task_id} marked as failed")
    loop.refresh_status()


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show run progress."""
    config = _load_config(ctx)
    loop = ExecutionLoop(config)

    if not loop.is_active:
        existing = load_plan(config.state_dir)
        click.echo("No run in progress")
        if existing is not None:
            click.echo(
                f"Plan {existing.status.value}: {len(existing.features)} features "
                f"in {len(existing.waves)} waves"
            )
        return

    for line in loop.dashboard.summary_lines():
        click.echo(line)
    loop.refresh_status()


if __name__ == "__main__":
    cli()
