"""
Plan loader — reads a plan YAML file into the Plan model.

This is the entry point for turning plan text into a Plan. It reads
YAML, builds the Pydantic model, and runs the structural checks so
that errors surface before anything touches the machine. The runner
re-validates the Plan it is given regardless.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from plexr.core.config.validation import validate_plan
from plexr.core.errors import ValidationError
from plexr.core.models.plan import Plan

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when a plan file is missing, unreadable, or invalid."""


def parse_plan(raw: str, source: str = "<string>") -> Plan:
    """Build a Plan from YAML text without structural validation.

    Raises:
        ConfigError: Invalid YAML, or not a plan mapping.
    """
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {source}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {source}, got {type(data).__name__}")

    try:
        return Plan.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid plan in {source}: {e}") from e


def load_plan(path: Path, validate: bool = True) -> Plan:
    """Load a plan file.

    Args:
        path: Path to the plan YAML file.
        validate: Also run the structural plan checks.

    Returns:
        The Plan model.

    Raises:
        ConfigError: The file is missing, unreadable, or not valid YAML.
        ValidationError: The plan is structurally invalid.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Plan file not found: {path}")

    logger.debug("Loading plan from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    plan = parse_plan(raw, source=str(path))

    if validate:
        try:
            validate_plan(plan)
        except ValidationError as e:
            logger.debug("Plan %s failed validation: %s", path, e)
            raise

    logger.info("Loaded plan '%s' with %d steps", plan.name, len(plan.steps))
    return plan


def plan_dir(plan_path: Path) -> Path:
    """Directory a plan's relative paths resolve against."""
    return Path(plan_path).resolve().parent
