"""
Executor registry — name-keyed lookup of executor implementations.

The registry is the single point of executor management. Built-in
``shell`` and ``sql`` executors are registered up front; the plan's
``executors`` section adds configured instances under its own names;
callers can register custom executors. The runner never constructs
executors itself — it always asks the registry.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from plexr.core.errors import (
    ExecutorConfigError,
    ExecutorNotFoundError,
    ExecutorRegistrationError,
)
from plexr.core.models.plan import ExecutorConfig
from plexr.executors.base import Executor
from plexr.executors.shell import ShellExecutor
from plexr.executors.sql import SQLExecutor

logger = logging.getLogger(__name__)


def builtin_executors(
    log: logging.Logger | None = None,
    platform: str | None = None,
) -> dict[str, Executor]:
    """Fresh instances of the built-in executors, keyed by type."""
    return {
        "shell": ShellExecutor(platform=platform, log=log),
        "sql": SQLExecutor(log=log),
    }


class ExecutorRegistry:
    """Registry and factory for executors.

    Features:
        - Built-in ``shell`` and ``sql`` executors pre-registered
        - Register custom executors by name (no overwrites)
        - Configure instances from a plan's ``executors`` section
        - Resolve executors by name for the runner
    """

    def __init__(
        self,
        log: logging.Logger | None = None,
        platform: str | None = None,
    ):
        self._log = log or logger
        self._prototypes: dict[str, Executor] = builtin_executors(log, platform)
        self._executors: dict[str, Executor] = dict(self._prototypes)
        self._custom: set[str] = set()

    def register(self, name: str, executor: Executor) -> None:
        """Register a custom executor under ``name``.

        Raises:
            ExecutorRegistrationError: Empty or already-taken name.
        """
        if not name:
            raise ExecutorRegistrationError("executor name cannot be empty")
        if name in self._executors:
            raise ExecutorRegistrationError(f"executor {name} already registered")
        self._executors[name] = executor
        self._custom.add(name)
        self._log.debug("Registered executor: %s (%s)", name, executor.__class__.__name__)

    def configure(self, executors: Mapping[str, ExecutorConfig]) -> None:
        """Create and validate executors declared by a plan.

        Each entry clones the built-in prototype for its ``type``,
        validates the entry's options against it, and registers the
        result under the entry's name. Names registered by the caller
        are left alone. Unknown types are skipped: a custom executor
        may still be registered for them before the run.

        Raises:
            ExecutorConfigError: Missing type, or options rejected by
                the executor.
        """
        for name, config in executors.items():
            if not config.type:
                raise ExecutorConfigError(f"executor {name} missing type field")

            if name in self._custom:
                continue

            prototype = self._prototypes.get(config.type)
            if prototype is None:
                self._log.warning(
                    "Executor '%s' has unknown type '%s' — register it before running",
                    name,
                    config.type,
                )
                continue

            executor = prototype.clone()
            try:
                executor.validate(config.options)
            except ExecutorConfigError as e:
                raise ExecutorConfigError(
                    f"invalid configuration for executor {name}: {e}"
                ) from e

            self._executors[name] = executor
            self._log.debug("Configured executor: %s (type=%s)", name, config.type)

    def get(self, name: str) -> Executor | None:
        """Look up an executor by name."""
        return self._executors.get(name)

    def resolve(self, name: str) -> Executor:
        """Look up an executor by name, or raise ExecutorNotFoundError."""
        executor = self._executors.get(name)
        if executor is None:
            raise ExecutorNotFoundError(name)
        return executor

    def list_executors(self) -> list[str]:
        """List all registered executor names."""
        return list(self._executors.keys())

    def close_all(self) -> None:
        """Close every registered executor; failures are logged."""
        for name, executor in self._executors.items():
            try:
                executor.close()
            except Exception as e:
                self._log.warning("Failed to close executor %s: %s", name, e)
