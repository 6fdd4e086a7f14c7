"""
ExecutionState — the resumable record of a plan run.

Serialized to the sidecar file (.plexr_state.json) next to the plan.
The orchestrator reads it to decide what is already done; the state
store is the only writer.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, Field


def _now() -> datetime:
    """Current UTC time."""
    return datetime.now(UTC)


class ExecutionState(BaseModel):
    """Progress of one plan on this machine."""

    # ── Identity ─────────────────────────────────────────────────
    setup_name: str = ""
    setup_version: str = ""
    platform: str = ""

    # ── Timestamps ───────────────────────────────────────────────
    started_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    # ── Progress ─────────────────────────────────────────────────
    completed_steps: list[str] = Field(default_factory=list)
    current_step: str = ""
    failed_files: list[str] = Field(default_factory=list)

    # ── Tools ────────────────────────────────────────────────────
    installed_tools: dict[str, str] = Field(default_factory=dict)

    def touch(self) -> None:
        """Advance updated_at to now, never backwards or in place."""
        now = _now()
        if now <= self.updated_at:
            now = self.updated_at + timedelta(microseconds=1)
        self.updated_at = now

    def is_completed(self, step_id: str) -> bool:
        return step_id in self.completed_steps

    @property
    def interrupted_step(self) -> str | None:
        """The step that was running when the previous run stopped.

        A current_step that never made it into completed_steps means
        that step was interrupted mid-flight (crash, Ctrl-C, failure).
        """
        if self.current_step and self.current_step not in self.completed_steps:
            return self.current_step
        return None
