"""
Runner — the central orchestration loop.

The runner takes a validated plan, works out the execution order,
and walks it step by step: skipping what is already done, running
each file of the remaining steps through the executor registry,
and persisting progress through the state store after every step.

Flow:
    validate → load/init state → order → per step: skip? → run files → mark completed

Every step start is written to disk before its first file runs and
every completion right after its last one, so an interrupted run
resumes at the step it was interrupted in. The first failing file
aborts the whole run; there are no retries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from plexr.core.config.validation import validate_plan
from plexr.core.engine import events
from plexr.core.engine.events import Observer, ProgressEvent
from plexr.core.engine.graph import build_order
from plexr.core.errors import (
    ExecutionCancelledError,
    ExecutionTimeoutError,
    FileExecutionError,
    PlexrError,
    StateCorruptError,
    StateNotFoundError,
)
from plexr.core.models.execution import ExecutionFile, ExecutionResult
from plexr.core.models.plan import Plan, Step, current_platform
from plexr.core.models.state import ExecutionState
from plexr.core.persistence.state_file import StateStore
from plexr.executors.base import ExecutionContext, Executor
from plexr.executors.registry import ExecutorRegistry

logger = logging.getLogger(__name__)

SKIP_ALWAYS = "true"
SKIP_NEVER = "false"


@dataclass
class RunReport:
    """Result of one ``Runner.execute`` call."""

    plan: str = ""
    order: list[str] = field(default_factory=list)
    completed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    results: list[ExecutionResult] = field(default_factory=list)

    @property
    def files_executed(self) -> int:
        return len(self.results)

    def to_dict(self) -> dict:
        return {
            "plan": self.plan,
            "order": self.order,
            "completed": self.completed,
            "skipped": self.skipped,
            "files_executed": self.files_executed,
            "results": [r.model_dump(mode="json") for r in self.results],
        }


class Runner:
    """Execute a plan's steps in dependency order, resumably.

    Args:
        plan: The plan to run. Re-validated here.
        store: State store bound to the plan's state file.
        registry: Executor registry (default: built-ins only).
        observer: Callable receiving ProgressEvents.
        log: Logger (default: this module's logger).
        platform: Platform recorded in a fresh state and used by the
            default registry's shell executor.
        base_dir: Directory that relative work directories resolve
            against (normally the plan file's directory).

    Raises:
        ValidationError: The plan or an executor configuration is
            invalid.
    """

    def __init__(
        self,
        plan: Plan,
        store: StateStore,
        registry: ExecutorRegistry | None = None,
        observer: Observer | None = None,
        log: logging.Logger | None = None,
        platform: str | None = None,
        base_dir: Path | str | None = None,
    ):
        validate_plan(plan)

        self._plan = plan
        self._store = store
        self._log = log or logger
        self._platform = platform or current_platform()
        self._registry = registry or ExecutorRegistry(log=log, platform=self._platform)
        self._observer = observer
        self._base_dir = Path(base_dir) if base_dir is not None else None

        self._registry.configure(plan.executors)

    @property
    def plan(self) -> Plan:
        return self._plan

    @property
    def registry(self) -> ExecutorRegistry:
        return self._registry

    def register_executor(self, name: str, executor: Executor) -> None:
        """Register a custom executor before running."""
        self._registry.register(name, executor)

    def state(self) -> ExecutionState | None:
        """Read-only snapshot of the current execution state."""
        return self._store.snapshot()

    def close(self) -> None:
        """Release executor resources (database connections)."""
        self._registry.close_all()

    # ── Run ──────────────────────────────────────────────────────

    def execute(self, ctx: ExecutionContext | None = None) -> RunReport:
        """Run every step that is not yet completed.

        Raises:
            ExecutorNotFoundError: A step's executor is not registered.
            FileExecutionError: A file failed (ExecutionTimeoutError
                and ExecutionCancelledError for those outcomes).
            StateError: The state file could not be written.
        """
        ctx = ctx or ExecutionContext.background()
        self._load_or_init_state()

        order = build_order(self._plan.steps)
        report = RunReport(plan=self._plan.name, order=order)
        self._log.info("Executing plan '%s' (%d steps)", self._plan.name, len(order))

        for step_id in order:
            step = self._plan.get_step(step_id)

            if self._store.is_step_completed(step_id):
                self._log.debug("Step %s already completed", step_id)
                report.skipped.append(step_id)
                self._emit(step_id, events.SKIPPED, reason=events.ALREADY_COMPLETED)
                continue

            if self._should_skip(step):
                self._log.info("Skipping step %s (skip_if: %s)", step_id, step.skip_if)
                self._store.mark_step_completed(step_id)
                report.skipped.append(step_id)
                self._emit(
                    step_id,
                    events.SKIPPED,
                    reason=events.SKIP_IF_CONDITION,
                    skip_if=step.skip_if,
                )
                continue

            if ctx.cancelled:
                raise ExecutionCancelledError(step_id, "", "execution cancelled")

            self._run_step(ctx, step, report)

        self._log.info(
            "Plan '%s' finished: %d completed, %d skipped",
            self._plan.name,
            len(report.completed),
            len(report.skipped),
        )
        return report

    def _run_step(self, ctx: ExecutionContext, step: Step, report: RunReport) -> None:
        executor = self._registry.resolve(step.executor)

        self._emit(
            step.id,
            events.STARTED,
            description=step.description,
            executor=step.executor,
            files=len(step.files),
        )
        self._store.set_current_step(step.id)
        self._log.info("Step %s: %s", step.id, step.description or step.executor)

        work_dir = self._work_directory(step)

        for index, file_config in enumerate(step.files, start=1):
            file = ExecutionFile(
                path=file_config.path,
                timeout=file_config.timeout,
                retry=file_config.retry,
                platform=file_config.platform,
                work_directory=work_dir,
                transaction_mode=step.transaction_mode,
            )
            self._emit(
                step.id,
                events.EXECUTING_FILE,
                path=file.path,
                index=index,
                total=len(step.files),
            )

            try:
                result = executor.execute(ctx, file)
            except PlexrError as e:
                self._fail(step, file.path, str(e))
                raise
            except Exception as e:
                self._fail(step, file.path, str(e))
                raise FileExecutionError(step.id, file.path, str(e)) from e

            report.results.append(result)
            if result.output:
                self._emit(step.id, events.OUTPUT, path=file.path, output=result.output)

            if not result.success:
                self._fail(step, file.path, result.error or result.status)
                raise _error_for(step.id, result)

        self._store.mark_step_completed(step.id)
        self._store.clear_failed_files([f.path for f in step.files])
        report.completed.append(step.id)
        self._emit(step.id, events.COMPLETED)

    def _fail(self, step: Step, path: str, error: str) -> None:
        self._log.error("Step %s failed on %s: %s", step.id, path, error)
        self._store.record_failed_file(path)
        self._emit(step.id, events.FAILED, path=path, error=error)

    # ── Helpers ──────────────────────────────────────────────────

    def _load_or_init_state(self) -> None:
        try:
            state = self._store.load()
        except StateNotFoundError:
            state = None
        except StateCorruptError as e:
            self._log.warning("Ignoring unreadable state file, starting fresh: %s", e)
            state = None

        if state is None:
            state = ExecutionState(
                setup_name=self._plan.name,
                setup_version=self._plan.version,
                platform=self._platform,
            )
            self._store.save(state)
            self._log.debug("Initialized state at %s", self._store.path)
            return

        interrupted = state.interrupted_step
        if interrupted:
            self._log.info("Resuming: step %s did not complete last run", interrupted)

    def _should_skip(self, step: Step) -> bool:
        """Evaluate a step's skip_if: a literal, or a step id."""
        condition = step.skip_if
        if not condition or condition == SKIP_NEVER:
            return False
        if condition == SKIP_ALWAYS:
            return True
        return self._store.is_step_completed(condition)

    def _work_directory(self, step: Step) -> str:
        """Step override, else plan default, resolved against base_dir."""
        work_dir = step.work_directory or self._plan.work_directory
        if not work_dir:
            return str(self._base_dir) if self._base_dir is not None else ""

        path = Path(work_dir).expanduser()
        if not path.is_absolute() and self._base_dir is not None:
            path = self._base_dir / path
        return str(path)

    def _emit(self, step_id: str, kind: str, **payload) -> None:
        if self._observer is None:
            return
        try:
            self._observer(ProgressEvent(step_id=step_id, kind=kind, payload=payload))
        except Exception as e:
            self._log.warning("Progress observer failed on %s/%s: %s", step_id, kind, e)


def _error_for(step_id: str, result: ExecutionResult) -> FileExecutionError:
    """Exception matching an unsuccessful result's status."""
    message = result.error or result.status
    if result.status == "timeout":
        return ExecutionTimeoutError(step_id, result.path, message, result)
    if result.status == "cancelled":
        return ExecutionCancelledError(step_id, result.path, message, result)
    return FileExecutionError(step_id, result.path, message, result)
