"""
Domain models — Pydantic types for plans, state, and execution.

All models are re-exported here for convenient access:

    from plexr.core.models import Plan, Step, FileConfig, ExecutionState
"""

from plexr.core.models.execution import ExecutionFile, ExecutionResult
from plexr.core.models.plan import (
    PLATFORMS,
    TRANSACTION_MODES,
    ExecutorConfig,
    FileConfig,
    Plan,
    Step,
    current_platform,
)
from plexr.core.models.state import ExecutionState

__all__ = [
    # plan.py
    "PLATFORMS",
    "TRANSACTION_MODES",
    # execution.py
    "ExecutionFile",
    "ExecutionResult",
    # state.py
    "ExecutionState",
    "ExecutorConfig",
    "FileConfig",
    "Plan",
    "Step",
    "current_platform",
]
