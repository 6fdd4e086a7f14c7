"""
Executor base — the contract between the runner and file executors.

The runner only talks to executors through this interface, and only
through the registry. An executor runs one file and reports the
outcome in an ExecutionResult.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from typing import Any

from plexr.core.models.execution import ExecutionFile, ExecutionResult


class ExecutionContext:
    """Cancellation and deadline scope for a run or a single file.

    A run owns one root context; each file with a timeout gets a
    child from ``with_timeout()``. Cancelling a context cancels all
    of its children. The deadline is on the monotonic clock.
    """

    def __init__(
        self,
        parent: ExecutionContext | None = None,
        deadline: float | None = None,
    ):
        self._parent = parent
        self._event = threading.Event()
        self._deadline = deadline

    @classmethod
    def background(cls) -> ExecutionContext:
        """A root context that is never cancelled unless asked to."""
        return cls()

    def with_timeout(self, seconds: float) -> ExecutionContext:
        """Derive a child context that expires after ``seconds``."""
        deadline = time.monotonic() + seconds
        if self.deadline is not None:
            deadline = min(deadline, self.deadline)
        return ExecutionContext(parent=self, deadline=deadline)

    def cancel(self) -> None:
        self._event.set()

    @property
    def deadline(self) -> float | None:
        """Earliest deadline of this context and its ancestors."""
        deadlines = [d for d in (self._deadline, self._parent_deadline()) if d is not None]
        return min(deadlines) if deadlines else None

    def _parent_deadline(self) -> float | None:
        return self._parent.deadline if self._parent else None

    @property
    def cancelled(self) -> bool:
        """Explicitly cancelled, here or in an ancestor."""
        if self._event.is_set():
            return True
        return self._parent.cancelled if self._parent else False

    @property
    def expired(self) -> bool:
        """The deadline has passed."""
        deadline = self.deadline
        return deadline is not None and time.monotonic() >= deadline

    @property
    def done(self) -> bool:
        return self.cancelled or self.expired

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None when unbounded."""
        deadline = self.deadline
        if deadline is None:
            return None
        return max(0.0, deadline - time.monotonic())


class Executor(ABC):
    """Abstract base class for all executors.

    Executors report file failures in the ExecutionResult instead of
    raising. Registration-time configuration problems are the one
    place they raise (ExecutorConfigError from ``validate``).

    To create a new executor:
        1. Subclass Executor
        2. Implement name, validate, execute
        3. Register it with ExecutorRegistry.register (or
           Runner.register_executor)
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The executor identifier (e.g., 'shell', 'sql')."""

    @abstractmethod
    def validate(self, config: dict[str, Any]) -> None:
        """Check and adopt the plan's configuration for this executor.

        Called once, when the executor is registered from the plan's
        ``executors`` section.

        Raises:
            ExecutorConfigError: The configuration is invalid.
        """

    @abstractmethod
    def execute(self, ctx: ExecutionContext, file: ExecutionFile) -> ExecutionResult:
        """Execute one file and return its result."""

    def clone(self) -> Executor:
        """Fresh instance with the same configuration and no resources."""
        return type(self)()

    def close(self) -> None:
        """Release any resources held by the executor."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
