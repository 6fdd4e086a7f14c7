"""Executors — pluggable runners for plan files.

Public re-exports for convenient access.
"""

from plexr.executors.base import ExecutionContext, Executor
from plexr.executors.mock import MockExecutor
from plexr.executors.registry import ExecutorRegistry
from plexr.executors.shell import ShellExecutor
from plexr.executors.sql import SQLExecutor

__all__ = [
    "ExecutionContext",
    "Executor",
    "ExecutorRegistry",
    "MockExecutor",
    "SQLExecutor",
    "ShellExecutor",
]
