"""
Status use case — report a plan's execution progress.

Reads the plan and its state file; never writes anything.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from plexr.core.config.loader import ConfigError, load_plan
from plexr.core.engine.graph import build_order
from plexr.core.errors import StateError, StateNotFoundError, ValidationError
from plexr.core.models.plan import Plan
from plexr.core.models.state import ExecutionState
from plexr.core.persistence.state_file import StateStore, default_state_path


@dataclass
class StatusResult:
    """Execution status of one plan."""

    plan: Plan | None = None
    state: ExecutionState | None = None
    state_path: Path | None = None
    completed: list[str] = field(default_factory=list)
    pending: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def started(self) -> bool:
        return self.state is not None

    @property
    def finished(self) -> bool:
        return self.started and not self.pending

    @property
    def interrupted_step(self) -> str | None:
        return self.state.interrupted_step if self.state else None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}

        state = self.state
        return {
            "plan": self.plan.name if self.plan else None,
            "version": self.plan.version if self.plan else None,
            "state_path": str(self.state_path) if self.state_path else None,
            "started": self.started,
            "finished": self.finished,
            "completed": self.completed,
            "pending": self.pending,
            "current_step": state.current_step if state else "",
            "interrupted_step": self.interrupted_step,
            "failed_files": state.failed_files if state else [],
            "installed_tools": state.installed_tools if state else {},
            "platform": state.platform if state else None,
            "started_at": state.started_at.isoformat() if state else None,
            "updated_at": state.updated_at.isoformat() if state else None,
        }


def get_status(plan_path: Path) -> StatusResult:
    """Load a plan and its state and summarize progress.

    Args:
        plan_path: Path to the plan YAML file.

    Returns:
        StatusResult; ``error`` is set when the plan or state cannot
        be read.
    """
    result = StatusResult()
    plan_path = Path(plan_path)

    try:
        plan = load_plan(plan_path)
    except (ConfigError, ValidationError) as e:
        result.error = str(e)
        return result

    result.plan = plan
    result.state_path = default_state_path(plan_path)
    order = build_order(plan.steps)

    store = StateStore(result.state_path)
    try:
        result.state = store.load()
    except StateNotFoundError:
        result.pending = order
        return result
    except StateError as e:
        result.error = str(e)
        return result

    result.completed = [s for s in order if result.state.is_completed(s)]
    result.pending = [s for s in order if not result.state.is_completed(s)]
    return result
