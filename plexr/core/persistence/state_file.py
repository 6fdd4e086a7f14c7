"""
State file persistence — the resumable record of a plan run.

State is stored as JSON in a sidecar file next to the plan
(.plexr_state.json). Writes are atomic (write to temp file, then
rename) so a crash mid-write leaves the previous state intact.

StateStore is the single writer for one state file. Every mutation
is written through immediately: what is on disk is always what the
next run will resume from.
"""

from __future__ import annotations

import json
import logging
import tempfile
import threading
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from plexr.core.errors import (
    StateCorruptError,
    StateNotFoundError,
    StateNotLoadedError,
    StatePersistenceError,
)
from plexr.core.models.state import ExecutionState

logger = logging.getLogger(__name__)

# Sidecar file name, stored alongside the plan file
DEFAULT_STATE_FILE = ".plexr_state.json"


def default_state_path(plan_path: Path) -> Path:
    """Get the state file path for a plan file."""
    return plan_path.resolve().parent / DEFAULT_STATE_FILE


class StateStore:
    """Lock-serialized owner of one plan's execution state.

    Not safe across processes: two processes must never run the same
    plan concurrently.
    """

    def __init__(self, path: Path, log: logging.Logger | None = None):
        self._path = Path(path)
        self._state: ExecutionState | None = None
        self._lock = threading.Lock()
        self._log = log or logger

    @property
    def path(self) -> Path:
        return self._path

    @property
    def loaded(self) -> bool:
        """Whether an in-memory state has been established."""
        return self._state is not None

    # ── Read ─────────────────────────────────────────────────────

    def load(self) -> ExecutionState:
        """Load state from disk and cache it.

        Raises:
            StateNotFoundError: No state file exists.
            StateCorruptError: The file is not valid state JSON.
            StatePersistenceError: The file cannot be read.
        """
        with self._lock:
            if not self._path.is_file():
                raise StateNotFoundError(f"no state file at {self._path}")

            try:
                raw = self._path.read_text(encoding="utf-8")
            except OSError as e:
                raise StatePersistenceError(f"failed to read state file {self._path}: {e}") from e

            try:
                state = ExecutionState.model_validate(json.loads(raw))
            except (json.JSONDecodeError, PydanticValidationError) as e:
                raise StateCorruptError(f"failed to parse state file {self._path}: {e}") from e

            self._state = state
            self._log.debug(
                "Loaded state from %s (%d completed, updated_at=%s)",
                self._path,
                len(state.completed_steps),
                state.updated_at.isoformat(),
            )
            return state

    def is_step_completed(self, step_id: str) -> bool:
        """Check the cached state only; False if nothing is loaded."""
        with self._lock:
            return self._state is not None and self._state.is_completed(step_id)

    def snapshot(self) -> ExecutionState | None:
        """Deep copy of the cached state, for read-only reporting."""
        with self._lock:
            if self._state is None:
                return None
            return self._state.model_copy(deep=True)

    # ── Write ────────────────────────────────────────────────────

    def save(self, state: ExecutionState) -> None:
        """Stamp updated_at, persist, and adopt ``state`` as the cache."""
        with self._lock:
            self._state = state
            self._write()

    def mark_step_completed(self, step_id: str) -> None:
        """Append a step to completed_steps and persist.

        A step that is already completed is a no-op (no write).
        """
        with self._lock:
            state = self._require_state()
            if state.is_completed(step_id):
                return
            state.completed_steps.append(step_id)
            self._write()

    def set_current_step(self, step_id: str) -> None:
        """Record the step about to run and persist (the crash marker)."""
        with self._lock:
            state = self._require_state()
            state.current_step = step_id
            self._write()

    def add_installed_tool(self, name: str, version: str) -> None:
        """Record an installed tool version and persist."""
        with self._lock:
            state = self._require_state()
            state.installed_tools[name] = version
            self._write()

    def record_failed_file(self, path: str) -> None:
        """Add a file to failed_files (once) and persist."""
        with self._lock:
            state = self._require_state()
            if path in state.failed_files:
                return
            state.failed_files.append(path)
            self._write()

    def clear_failed_files(self, paths: list[str]) -> None:
        """Drop the given files from failed_files; persist if changed."""
        with self._lock:
            state = self._require_state()
            remaining = [p for p in state.failed_files if p not in paths]
            if remaining == state.failed_files:
                return
            state.failed_files = remaining
            self._write()

    def reset(self) -> None:
        """Delete the state file and forget the cached state."""
        with self._lock:
            try:
                self._path.unlink(missing_ok=True)
            except OSError as e:
                raise StatePersistenceError(f"failed to remove state file {self._path}: {e}") from e
            self._state = None
            self._log.info("State reset: %s", self._path)

    # ── Internals (lock held) ────────────────────────────────────

    def _require_state(self) -> ExecutionState:
        if self._state is None:
            raise StateNotLoadedError("state not loaded")
        return self._state

    def _write(self) -> None:
        """Atomically write the cached state to disk."""
        state = self._require_state()
        state.touch()

        data = state.model_dump(mode="json")
        content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self._path.parent,
                prefix=".plexr_state_",
                suffix=".tmp",
            )
            tmp = Path(tmp_path)
            try:
                with open(fd, "w", encoding="utf-8") as fh:
                    fh.write(content)
                tmp.replace(self._path)
            except Exception:
                tmp.unlink(missing_ok=True)
                raise
        except OSError as e:
            self._log.error("Failed to save state to %s: %s", self._path, e)
            raise StatePersistenceError(f"failed to write state file {self._path}: {e}") from e

        self._log.debug("State saved to %s", self._path)
