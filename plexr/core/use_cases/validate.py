"""
Validate use case — check a plan file and report problems.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from plexr.core.config.loader import ConfigError, load_plan
from plexr.core.config.validation import plan_warnings
from plexr.core.engine.graph import build_order
from plexr.core.errors import ValidationError
from plexr.core.models.plan import Plan


@dataclass
class ValidateResult:
    """Result of plan validation."""

    valid: bool = False
    plan: Plan | None = None
    plan_path: Path | None = None
    order: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "plan_path": str(self.plan_path) if self.plan_path else None,
            "plan_name": self.plan.name if self.plan else None,
            "plan_version": self.plan.version if self.plan else None,
            "step_count": len(self.plan.steps) if self.plan else 0,
            "executor_count": len(self.plan.executors) if self.plan else 0,
            "order": self.order,
            "errors": self.errors,
            "warnings": self.warnings,
        }


def validate_plan_file(plan_path: Path) -> ValidateResult:
    """Load and validate a plan file.

    Args:
        plan_path: Path to the plan YAML file.

    Returns:
        ValidateResult with validation status and any issues.
    """
    result = ValidateResult(plan_path=Path(plan_path))

    try:
        plan = load_plan(result.plan_path)
    except (ConfigError, ValidationError) as e:
        result.errors.append(str(e))
        return result

    result.plan = plan
    result.order = build_order(plan.steps)
    result.warnings = plan_warnings(plan)
    result.valid = True
    return result
