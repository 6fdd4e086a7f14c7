"""
In-memory executor for exercising the runner without touching disk.

Nothing is spawned and no database is opened: each file path maps
to a canned ExecutionResult (ok unless told otherwise), a raised
exception, or a cancellation when the run context says so. Every
ExecutionFile handed in is kept for later assertions.
"""

from __future__ import annotations

from typing import Any

from plexr.core.models.execution import ExecutionFile, ExecutionResult
from plexr.executors.base import ExecutionContext, Executor


class MockExecutor(Executor):
    """Stands in for shell or sql under any registered name.

    Outcomes are keyed by ExecutionFile.path, so a step with three
    files can have its second one fail while the others pass.
    """

    def __init__(
        self,
        executor_name: str = "mock",
        default_output: str = "ran {path}",
    ):
        self._name = executor_name
        self._default_output = default_output
        self._responses: dict[str, ExecutionResult] = {}
        self._errors: dict[str, Exception] = {}
        self._call_log: list[ExecutionFile] = []
        self.config: dict[str, Any] = {}

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionFile]:
        """ExecutionFiles received, in call order."""
        return self._call_log

    @property
    def call_count(self) -> int:
        """How many files have been executed."""
        return len(self._call_log)

    @property
    def executed_paths(self) -> list[str]:
        return [f.path for f in self._call_log]

    def set_response(self, path: str, result: ExecutionResult) -> None:
        """Return ``result`` whenever ``path`` is executed."""
        self._responses[path] = result

    def set_failure(self, path: str, error: str = "exit status 1") -> None:
        """Make ``path`` come back failed with ``error`` as its message."""
        self._responses[path] = ExecutionResult.failure(
            executor=self._name,
            path=path,
            error=error,
        )

    def set_timeout(self, path: str, seconds: int = 1) -> None:
        """Make ``path`` come back as a timeout after ``seconds``."""
        self._responses[path] = ExecutionResult.timeout(
            executor=self._name,
            path=path,
            seconds=seconds,
        )

    def set_error(self, path: str, error: Exception) -> None:
        """Raise ``error`` from execute for ``path``."""
        self._errors[path] = error

    def validate(self, config: dict[str, Any]) -> None:
        self.config = dict(config)

    def execute(self, ctx: ExecutionContext, file: ExecutionFile) -> ExecutionResult:
        self._call_log.append(file)

        if file.path in self._errors:
            raise self._errors[file.path]

        if file.path in self._responses:
            return self._responses[file.path]

        if ctx.cancelled:
            return ExecutionResult.cancelled(executor=self._name, path=file.path)

        return ExecutionResult.ok(
            executor=self._name,
            path=file.path,
            output=self._default_output.format(path=file.path),
            metadata={"mock": True},
        )

    def reset(self) -> None:
        """Forget recorded files and every per-path outcome."""
        self._call_log.clear()
        self._responses.clear()
        self._errors.clear()
