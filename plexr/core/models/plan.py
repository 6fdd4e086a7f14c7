"""
Plan model — the declarative setup plan.

Loaded from a plan YAML file, this is the canonical description of
what to run, in which order, and with which executor. Fields are
typed loosely on purpose: enumerated values (platforms, transaction
modes) are checked by plexr.core.config.validation, which the
runner always re-runs before executing anything.
"""

from __future__ import annotations

import platform as _platform
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Allowed values ("" means unset)
PLATFORMS = ("", "linux", "darwin", "windows")
TRANSACTION_MODES = ("", "none", "each", "all")


def current_platform() -> str:
    """Runtime platform name in plan vocabulary (linux, darwin, windows)."""
    return _platform.system().lower()


class FileConfig(BaseModel):
    """One file executed as part of a step."""

    model_config = ConfigDict(frozen=True)

    path: str = ""
    timeout: int = 0        # seconds, 0 = unbounded
    retry: int = 0          # not applied by any executor
    platform: str = ""      # "" = every platform
    skip_if: str = ""       # not evaluated


class ExecutorConfig(BaseModel):
    """An executor declared in the plan's ``executors`` section.

    ``type`` selects the executor kind. Every other key is an
    executor-specific option, kept as pydantic extras:

        postgres:
          type: sql
          driver: postgres
          host: localhost
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    type: str = ""

    @property
    def options(self) -> dict[str, Any]:
        """Executor-specific options (everything except ``type``)."""
        return dict(self.model_extra or {})


class Step(BaseModel):
    """A single unit of work: one executor, one or more files."""

    model_config = ConfigDict(frozen=True)

    id: str = ""
    description: str = ""
    executor: str = ""
    depends_on: tuple[str, ...] = ()
    skip_if: str = ""
    check_command: str = ""     # parsed, not evaluated
    work_directory: str = ""
    transaction_mode: str = ""
    files: tuple[FileConfig, ...] = ()


class Plan(BaseModel):
    """Root plan — loaded from a plan YAML file.

    Immutable once built. Structural invariants are enforced by
    ``validate_plan``, not by the model itself.
    """

    model_config = ConfigDict(frozen=True)

    name: str = ""
    version: str = ""
    description: str = ""
    work_directory: str = ""
    platforms: dict[str, dict[str, str]] = Field(default_factory=dict)
    executors: dict[str, ExecutorConfig] = Field(default_factory=dict)
    steps: tuple[Step, ...] = ()

    def get_step(self, step_id: str) -> Step | None:
        """Look up a step by id."""
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    @property
    def step_ids(self) -> list[str]:
        """Step ids in declaration order."""
        return [s.id for s in self.steps]
