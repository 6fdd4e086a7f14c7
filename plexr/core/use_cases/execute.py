"""
Execute use case — run a plan file to completion (or first failure).

Loads the plan, binds the state file next to it, and drives the
Runner. In dry-run mode it only reports what would run, without
touching the state file or any executor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from plexr.core.config.loader import ConfigError, load_plan, plan_dir
from plexr.core.engine.events import Observer
from plexr.core.engine.graph import build_order
from plexr.core.engine.runner import RunReport, Runner
from plexr.core.errors import FileExecutionError, PlexrError, StateError, StateNotFoundError
from plexr.core.models.plan import Plan
from plexr.core.models.state import ExecutionState
from plexr.core.persistence.state_file import StateStore, default_state_path
from plexr.executors.base import ExecutionContext
from plexr.executors.registry import ExecutorRegistry

logger = logging.getLogger(__name__)


@dataclass
class ExecuteResult:
    """Result of executing a plan file."""

    plan: Plan | None = None
    plan_path: Path | None = None
    report: RunReport | None = None
    state: ExecutionState | None = None
    dry_run: bool = False
    order: list[str] = field(default_factory=list)
    pending: list[str] = field(default_factory=list)
    failed_step: str | None = None
    failed_file: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        result: dict = {
            "plan": self.plan.name if self.plan else None,
            "plan_path": str(self.plan_path) if self.plan_path else None,
            "dry_run": self.dry_run,
            "order": self.order,
            "pending": self.pending,
        }
        if self.report:
            result["report"] = self.report.to_dict()
        if self.state:
            result["state"] = self.state.model_dump(mode="json")
        if self.error:
            result["error"] = self.error
            result["failed_step"] = self.failed_step
            result["failed_file"] = self.failed_file
        return result


def load_for_execute(plan_path: Path) -> ExecuteResult:
    """Load the plan and work out which steps are still pending.

    Used for the dry run and for the confirmation prompt before a
    real run.
    """
    result = ExecuteResult(plan_path=Path(plan_path))

    try:
        plan = load_plan(result.plan_path)
    except (ConfigError, PlexrError) as e:
        result.error = str(e)
        return result

    result.plan = plan
    result.order = build_order(plan.steps)

    store = StateStore(default_state_path(result.plan_path))
    try:
        state = store.load()
    except StateNotFoundError:
        state = None
    except StateError as e:
        logger.warning("State file unreadable, treating every step as pending: %s", e)
        state = None

    result.state = state
    result.pending = [s for s in result.order if state is None or not state.is_completed(s)]
    return result


def execute_plan_file(
    plan_path: Path,
    dry_run: bool = False,
    platform: str | None = None,
    observer: Observer | None = None,
    ctx: ExecutionContext | None = None,
    registry: ExecutorRegistry | None = None,
) -> ExecuteResult:
    """Execute a plan file.

    Args:
        plan_path: Path to the plan YAML file.
        dry_run: Report the pending steps without running anything.
        platform: Override the detected platform.
        observer: Receives progress events.
        ctx: Cancellation scope for the run (e.g. cancelled on SIGINT).
        registry: Executor registry (default: built-ins).

    Returns:
        ExecuteResult with the run report, or an error string.
    """
    result = load_for_execute(plan_path)
    result.dry_run = dry_run
    if result.error or dry_run:
        return result

    store = StateStore(default_state_path(result.plan_path))

    try:
        runner = Runner(
            result.plan,
            store,
            registry=registry,
            observer=observer,
            platform=platform,
            base_dir=plan_dir(result.plan_path),
        )
    except PlexrError as e:
        result.error = str(e)
        return result

    try:
        result.report = runner.execute(ctx)
    except FileExecutionError as e:
        result.error = str(e)
        result.failed_step = e.step_id
        result.failed_file = e.path or None
    except PlexrError as e:
        result.error = str(e)
    finally:
        result.state = runner.state()
        runner.close()

    if result.state is not None:
        result.pending = [s for s in result.order if not result.state.is_completed(s)]
    return result
