"""
Plan validation — structural invariants checked before any file runs.

The runner calls validate_plan() on every plan it receives, even one
that came through the YAML loader, so an in-memory plan built by a
caller gets exactly the same checks. The first problem found is
raised; nothing is collected.
"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath, PureWindowsPath

from plexr.core.engine.graph import check_dependencies
from plexr.core.errors import ValidationError
from plexr.core.models.plan import PLATFORMS, TRANSACTION_MODES, FileConfig, Plan

logger = logging.getLogger(__name__)


def _check_file_path(step_id: str, path: str) -> None:
    if not path:
        raise ValidationError(f"file path cannot be empty in step '{step_id}'")

    if PurePosixPath(path).is_absolute() or PureWindowsPath(path).is_absolute():
        raise ValidationError(f"file path cannot be absolute in step '{step_id}': {path}")

    segments = path.replace("\\", "/").split("/")
    if ".." in segments:
        raise ValidationError(f"file path cannot contain '..' in step '{step_id}': {path}")


def _check_file(step_id: str, file: FileConfig) -> None:
    _check_file_path(step_id, file.path)

    if file.platform not in PLATFORMS:
        raise ValidationError(f"invalid platform '{file.platform}' in step '{step_id}'")

    if file.timeout < 0:
        raise ValidationError(
            f"timeout cannot be negative in step '{step_id}': {file.path}"
        )


def validate_plan(plan: Plan) -> None:
    """Validate a plan's structural invariants.

    Args:
        plan: The plan to check.

    Raises:
        ValidationError: Missing fields, bad ids, undefined executors,
            bad file entries, or invalid enumerated values.
        UndefinedDependencyError: A depends_on target is undefined.
        CycleError: The dependency graph is cyclic.
    """
    if plan is None:
        raise ValidationError("plan is required")

    if not plan.name:
        raise ValidationError("name is required")

    if not plan.version:
        raise ValidationError("version is required")

    if not plan.steps:
        raise ValidationError("at least one step is required")

    # ── Step ids ─────────────────────────────────────────────────
    seen: set[str] = set()
    for step in plan.steps:
        if not step.id:
            raise ValidationError("step ID is required")
        if step.id in seen:
            raise ValidationError(f"duplicate step id: {step.id}")
        seen.add(step.id)

    # ── Per-step checks ──────────────────────────────────────────
    for step in plan.steps:
        if not step.executor:
            raise ValidationError(f"executor is required for step {step.id}")

        if step.executor not in plan.executors:
            raise ValidationError(
                f"undefined executor '{step.executor}' in step '{step.id}'"
            )

        if not step.files:
            raise ValidationError(f"at least one file is required for step {step.id}")

        for file in step.files:
            _check_file(step.id, file)

        if step.transaction_mode not in TRANSACTION_MODES:
            raise ValidationError(
                f"invalid transaction_mode '{step.transaction_mode}' in step '{step.id}'"
            )

    # ── Dependency graph ─────────────────────────────────────────
    check_dependencies(plan.steps)

    logger.debug("Plan '%s' is valid (%d steps)", plan.name, len(plan.steps))


def plan_warnings(plan: Plan) -> list[str]:
    """Non-fatal issues worth showing to the plan author."""
    warnings: list[str] = []
    step_ids = set(plan.step_ids)

    used = {s.executor for s in plan.steps}
    for name in plan.executors:
        if name not in used:
            warnings.append(f"Executor '{name}' is defined but not used")

    for step in plan.steps:
        if not step.description:
            warnings.append(f"Step '{step.id}' has no description")

        if step.skip_if and step.skip_if not in ("true", "false") and step.skip_if not in step_ids:
            warnings.append(
                f"Step '{step.id}' skip_if '{step.skip_if}' is not a step id; "
                "skip_if is only 'true', 'false', or the id of a step that must be completed "
                "(it is never run as a command)"
            )

        if step.check_command:
            warnings.append(f"Step '{step.id}' check_command is not evaluated")

        for file in step.files:
            if file.retry:
                warnings.append(
                    f"Step '{step.id}' file {file.path} sets retry={file.retry}; "
                    "retries are not performed"
                )
            if file.skip_if:
                warnings.append(
                    f"Step '{step.id}' file {file.path} skip_if is not evaluated"
                )

    return warnings
