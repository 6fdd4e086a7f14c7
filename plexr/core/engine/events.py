"""
Progress events — what the runner tells the outside world.

The runner emits one ProgressEvent per notable moment of a step. A
display or a test collects them through an observer callable. The
runner never depends on what the observer does with them.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

STARTED = "started"
EXECUTING_FILE = "executing_file"
OUTPUT = "output"
COMPLETED = "completed"
SKIPPED = "skipped"
FAILED = "failed"

EVENT_KINDS = (STARTED, EXECUTING_FILE, OUTPUT, COMPLETED, SKIPPED, FAILED)

# Skip reasons carried in the "reason" payload key
ALREADY_COMPLETED = "already_completed"
SKIP_IF_CONDITION = "skip_if_condition"


@dataclass(frozen=True)
class ProgressEvent:
    """One step-level progress notification."""

    step_id: str
    kind: str
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "step_id": self.step_id,
            "kind": self.kind,
            "payload": dict(self.payload),
        }


Observer = Callable[[ProgressEvent], None]


class EventRecorder:
    """Observer that keeps every event it receives."""

    def __init__(self):
        self.events: list[ProgressEvent] = []

    def __call__(self, event: ProgressEvent) -> None:
        self.events.append(event)

    def kinds(self, step_id: str | None = None) -> list[str]:
        """Event kinds in arrival order, optionally for one step."""
        return [e.kind for e in self.events if step_id is None or e.step_id == step_id]

    def of_kind(self, kind: str) -> list[ProgressEvent]:
        return [e for e in self.events if e.kind == kind]
