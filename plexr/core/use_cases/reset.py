"""
Reset use case — forget a plan's execution progress.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from plexr.core.errors import StateError
from plexr.core.persistence.state_file import StateStore, default_state_path


@dataclass
class ResetResult:
    """Result of a state reset."""

    state_path: Path | None = None
    removed: bool = False
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "state_path": str(self.state_path) if self.state_path else None,
            "removed": self.removed,
            "error": self.error,
        }


def reset_state(plan_path: Path) -> ResetResult:
    """Delete the state file that belongs to ``plan_path``.

    The plan file itself is not read, so a broken plan can still be
    reset. A missing state file is not an error.
    """
    result = ResetResult(state_path=default_state_path(Path(plan_path)))
    existed = result.state_path.is_file()

    try:
        StateStore(result.state_path).reset()
    except StateError as e:
        result.error = str(e)
        return result

    result.removed = existed
    return result
