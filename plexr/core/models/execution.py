"""
ExecutionFile and ExecutionResult models — the executor contract.

The runner hands an ExecutionFile to an executor and gets an
ExecutionResult back. Built-in executors report failures in the
result instead of raising; the runner turns an unsuccessful result
into the matching exception.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class ExecutionFile(BaseModel):
    """A file to execute, with its effective settings."""

    path: str
    timeout: int = 0                # seconds, 0 = unbounded
    retry: int = 0
    platform: str = ""
    work_directory: str = ""
    transaction_mode: str = ""


class ExecutionResult(BaseModel):
    """Outcome of executing one file.

    ``status`` separates ordinary failures from timeouts and
    cancellations so callers can report them differently.
    """

    executor: str
    path: str
    status: Literal["ok", "failed", "timeout", "cancelled"] = "ok"

    output: str = ""
    error: str | None = None
    duration_ms: int = 0

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        """Whether the file executed successfully (or was a no-op)."""
        return self.status == "ok"

    @classmethod
    def ok(
        cls,
        executor: str,
        path: str,
        output: str = "",
        **kwargs: Any,
    ) -> ExecutionResult:
        """Create a success result."""
        return cls(executor=executor, path=path, status="ok", output=output, **kwargs)

    @classmethod
    def failure(
        cls,
        executor: str,
        path: str,
        error: str,
        **kwargs: Any,
    ) -> ExecutionResult:
        """Create a failure result."""
        return cls(executor=executor, path=path, status="failed", error=error, **kwargs)

    @classmethod
    def timeout(
        cls,
        executor: str,
        path: str,
        seconds: int,
        **kwargs: Any,
    ) -> ExecutionResult:
        """Create a timeout result."""
        return cls(
            executor=executor,
            path=path,
            status="timeout",
            error=f"execution timeout after {seconds} seconds",
            **kwargs,
        )

    @classmethod
    def cancelled(
        cls,
        executor: str,
        path: str,
        **kwargs: Any,
    ) -> ExecutionResult:
        """Create a cancellation result."""
        return cls(
            executor=executor,
            path=path,
            status="cancelled",
            error="execution cancelled",
            **kwargs,
        )
