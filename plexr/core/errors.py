"""
Error taxonomy — every failure the core can raise.

Validation errors are raised before any file runs. Execution errors
abort the run at the first failing file. State errors mean resume
can no longer be trusted, so they are never swallowed.

    PlexrError
    ├── ValidationError
    │   ├── CycleError
    │   ├── UndefinedDependencyError
    │   └── ExecutorConfigError
    ├── ExecutorNotFoundError
    ├── ExecutorRegistrationError
    ├── FileExecutionError
    │   ├── ExecutionTimeoutError
    │   └── ExecutionCancelledError
    └── StateError
        ├── StateNotFoundError
        ├── StateNotLoadedError
        └── StatePersistenceError
            └── StateCorruptError
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from plexr.core.models.execution import ExecutionResult


class PlexrError(Exception):
    """Base class for all plexr errors."""


# ── Plan validation ─────────────────────────────────────────────


class ValidationError(PlexrError):
    """The plan is structurally invalid."""


class CycleError(ValidationError):
    """The step dependency graph contains a cycle."""

    def __init__(self, cycle: list[str]):
        self.cycle = list(cycle)
        super().__init__(f"circular dependency detected: {' -> '.join(self.cycle)}")


class UndefinedDependencyError(ValidationError):
    """A step depends on a step id that the plan does not define."""

    def __init__(self, step_id: str, dependency: str):
        self.step_id = step_id
        self.dependency = dependency
        super().__init__(f"step '{step_id}' depends on undefined step '{dependency}'")


class ExecutorConfigError(ValidationError):
    """An executor rejected its configuration at registration time."""


# ── Executors ───────────────────────────────────────────────────


class ExecutorNotFoundError(PlexrError):
    """A step references an executor that is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"executor not found: {name}")


class ExecutorRegistrationError(PlexrError):
    """An executor could not be registered (empty or duplicate name)."""


class FileExecutionError(PlexrError):
    """A file failed to execute; the run is aborted."""

    def __init__(
        self,
        step_id: str,
        path: str,
        message: str,
        result: ExecutionResult | None = None,
    ):
        self.step_id = step_id
        self.path = path
        self.result = result
        where = f" on {path}" if path else ""
        super().__init__(f"step '{step_id}' failed{where}: {message}")


class ExecutionTimeoutError(FileExecutionError):
    """A file exceeded its timeout."""


class ExecutionCancelledError(FileExecutionError):
    """The run was cancelled while a file was executing."""


# ── State ───────────────────────────────────────────────────────


class StateError(PlexrError):
    """Base class for execution state errors."""


class StateNotFoundError(StateError):
    """No state file exists yet — the plan has never run."""


class StateNotLoadedError(StateError):
    """A state mutation was attempted before any load/save."""


class StatePersistenceError(StateError):
    """The state file could not be written or read."""


class StateCorruptError(StatePersistenceError):
    """The state file exists but cannot be parsed."""
