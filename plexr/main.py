"""
plexr — CLI entrypoint.

Usage:
    plexr --help
    plexr execute setup.yml
    plexr validate setup.yml
    plexr status setup.yml
    plexr reset setup.yml
"""

from __future__ import annotations

import json
import signal
import sys
from pathlib import Path

import click

from plexr import __version__
from plexr.core.engine import events
from plexr.core.engine.events import ProgressEvent
from plexr.core.observability.logging_config import resolve_level, setup_from_env
from plexr.core.persistence.state_file import default_state_path
from plexr.executors.base import ExecutionContext

_PLAN_ARG = click.Path(dir_okay=False, path_type=Path)


@click.group()
@click.version_option(version=__version__, prog_name="plexr")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, debug: bool) -> None:
    """plexr — run setup plans, step by step, resumably."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug

    # ── Logging setup (once, at process start) ──────────────────
    setup_from_env(resolve_level(debug=debug, verbose=verbose, quiet=quiet))


# ── execute ─────────────────────────────────────────────────────


def _print_event(event: ProgressEvent, verbose: bool) -> None:
    """Render one progress event to the terminal."""
    p = event.payload
    if event.kind == events.STARTED:
        label = f" — {p['description']}" if p.get("description") else ""
        click.secho(f"\n▶ {event.step_id}{label}", fg="cyan", bold=True)
    elif event.kind == events.EXECUTING_FILE:
        click.echo(f"   [{p['index']}/{p['total']}] {p['path']}")
    elif event.kind == events.OUTPUT:
        if verbose:
            for line in p["output"].rstrip().splitlines():
                click.echo(f"      {line}")
    elif event.kind == events.COMPLETED:
        click.secho(f"   ✓ {event.step_id} completed", fg="green")
    elif event.kind == events.SKIPPED:
        if p.get("reason") == events.ALREADY_COMPLETED:
            click.secho(f"   ⏭  {event.step_id} (already completed)", fg="bright_black")
        else:
            click.secho(f"   ⏭  {event.step_id} (skip_if: {p.get('skip_if')})", fg="yellow")
    elif event.kind == events.FAILED:
        click.secho(f"   ✗ {p['path']}: {p['error']}", fg="red")


def _show_dry_run(result) -> None:
    plan = result.plan
    click.secho("\n🔍 DRY RUN — no changes will be made", fg="yellow", bold=True)
    click.secho("\n📋 Steps in execution order:", bold=True)
    for i, step_id in enumerate(result.order, start=1):
        step = plan.get_step(step_id)
        done = step_id not in result.pending
        marker = click.style(" ✓ done", fg="green") if done else ""
        label = f" — {step.description}" if step.description else ""
        click.echo(f"\n{i}. {step_id}{label}{marker}")
        if step.depends_on:
            click.echo(f"   Dependencies: {', '.join(step.depends_on)}")
        if step.skip_if:
            click.echo(f"   Skip if: {step.skip_if}")
        click.echo(f"   Executor: {step.executor}")
        for file in step.files:
            extras = ""
            if file.platform:
                extras += f" (platform: {file.platform})"
            if file.timeout > 0:
                extras += f" (timeout: {file.timeout}s)"
            click.echo(f"     - {file.path}{extras}")
    click.echo()


@cli.command()
@click.argument("plan_file", type=_PLAN_ARG)
@click.option("--auto", "-a", is_flag=True, help="Skip the confirmation prompt.")
@click.option("--dry-run", "-d", is_flag=True, help="Show what would run without running it.")
@click.option("--platform", "-p", default=None, help="Override platform detection.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def execute(
    ctx: click.Context,
    plan_file: Path,
    auto: bool,
    dry_run: bool,
    platform: str | None,
    as_json: bool,
) -> None:
    """Execute a setup plan."""
    from plexr.core.use_cases.execute import execute_plan_file, load_for_execute

    quiet = ctx.obj.get("quiet", False)
    verbose = ctx.obj.get("verbose", False) or ctx.obj.get("debug", False)

    preview = load_for_execute(plan_file)
    if preview.error:
        if as_json:
            click.echo(json.dumps(preview.to_dict(), indent=2))
        else:
            click.secho(f"❌ {preview.error}", fg="red")
        sys.exit(1)

    if dry_run:
        preview.dry_run = True
        if as_json:
            click.echo(json.dumps(preview.to_dict(), indent=2))
        else:
            _show_dry_run(preview)
        return

    plan = preview.plan
    if not as_json and not quiet:
        click.secho(f"\n📋 {plan.name} (v{plan.version})", fg="cyan", bold=True)
        if plan.description:
            click.echo(f"   {plan.description}")
        click.echo(f"   {len(preview.pending)} of {len(preview.order)} steps pending")

    if not preview.pending:
        if as_json:
            click.echo(json.dumps(preview.to_dict(), indent=2))
        else:
            click.secho("✅ Nothing to do — every step is already completed.", fg="green")
        return

    if not auto and not as_json:
        if not click.confirm("\n⚡ Ready to execute. Continue?", default=False):
            click.echo("Execution cancelled.")
            return

    run_ctx = ExecutionContext.background()
    previous = signal.signal(signal.SIGINT, lambda *_: run_ctx.cancel())

    observer = None if as_json else (lambda e: _print_event(e, verbose))
    try:
        result = execute_plan_file(
            plan_file,
            platform=platform,
            observer=observer,
            ctx=run_ctx,
        )
    finally:
        signal.signal(signal.SIGINT, previous)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)

    if not result.ok:
        click.secho(f"\n❌ Execution failed: {result.error}", fg="red", bold=True)
        click.echo(f"   Fix the problem and run again to resume from '{result.failed_step}'.")
        sys.exit(1)

    report = result.report
    click.secho(
        f"\n✅ Execution completed: {len(report.completed)} run, "
        f"{len(report.skipped)} skipped",
        fg="green",
        bold=True,
    )


cli.add_command(execute, name="run")


# ── validate ────────────────────────────────────────────────────


@cli.command()
@click.argument("plan_file", type=_PLAN_ARG)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def validate(plan_file: Path, as_json: bool) -> None:
    """Validate a setup plan without running it."""
    from plexr.core.use_cases.validate import validate_plan_file

    result = validate_plan_file(plan_file)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        plan = result.plan
        click.secho("✅ Plan is valid", fg="green", bold=True)
        click.echo(f"   Plan: {plan.name} (v{plan.version})")
        click.echo(f"   Executors: {len(plan.executors)}")
        click.echo(f"   Steps: {len(plan.steps)}")
        click.echo(f"   Order: {' → '.join(result.order)}")
    else:
        click.secho("❌ Plan errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        sys.exit(1)


# ── status ──────────────────────────────────────────────────────


@cli.command()
@click.argument("plan_file", type=_PLAN_ARG)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def status(plan_file: Path, as_json: bool) -> None:
    """Show the execution status of a setup plan."""
    from plexr.core.use_cases.status import get_status

    result = get_status(plan_file)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    plan = result.plan
    click.secho(f"\n📋 {plan.name} (v{plan.version})", fg="cyan", bold=True)

    if not result.started:
        click.echo("   Not started yet.")
        click.echo()
        return

    state = result.state
    click.echo(f"   Platform: {state.platform}")
    click.echo(f"   Started:  {state.started_at.isoformat()}")
    click.echo(f"   Updated:  {state.updated_at.isoformat()}")
    click.echo(f"   Progress: {len(result.completed)}/{len(result.completed) + len(result.pending)}")

    if result.interrupted_step:
        click.secho(f"   Interrupted in: {result.interrupted_step}", fg="yellow")

    click.echo()
    for step_id in result.completed:
        click.secho(f"     ✓ {step_id}", fg="green")
    for step_id in result.pending:
        click.echo(f"     • {step_id}")

    if state.failed_files:
        click.echo()
        click.secho("   Failed files:", fg="red")
        for path in state.failed_files:
            click.echo(f"     ✗ {path}")

    if state.installed_tools:
        click.echo()
        click.secho("   Installed tools:", bold=True)
        for name, version in sorted(state.installed_tools.items()):
            click.echo(f"     {name} {version}")

    click.echo()


# ── reset ───────────────────────────────────────────────────────


@cli.command()
@click.argument("plan_file", type=_PLAN_ARG)
@click.option("--auto", "-a", is_flag=True, help="Skip the confirmation prompt.")
def reset(plan_file: Path, auto: bool) -> None:
    """Reset the execution state so the plan runs from the start."""
    from plexr.core.use_cases.reset import reset_state

    if not default_state_path(plan_file).is_file():
        click.echo("No execution state found. Nothing to reset.")
        return

    if not auto and not click.confirm("⚠️  This will reset all execution state. Continue?"):
        click.echo("Reset cancelled.")
        return

    result = reset_state(plan_file)
    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    click.secho("✅ Execution state has been reset.", fg="green")


def main() -> None:
    """Entry point for the ``plexr`` console script."""
    cli(obj={})


if __name__ == "__main__":
    main()
