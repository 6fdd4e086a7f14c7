"""
Shared test fixtures and configuration.
"""

import textwrap
from pathlib import Path

import pytest

from plexr.core.models.plan import ExecutorConfig, FileConfig, Plan, Step
from plexr.core.persistence.state_file import DEFAULT_STATE_FILE, StateStore


def make_step(step_id: str, *deps: str, executor: str = "mock", **kwargs) -> Step:
    """A step with one file named after it."""
    files = kwargs.pop("files", [FileConfig(path=f"{step_id}.sh")])
    return Step(id=step_id, executor=executor, depends_on=list(deps), files=files, **kwargs)


def make_plan(*steps: Step, executors: dict | None = None, **kwargs) -> Plan:
    """A valid plan over ``steps`` with a ``mock`` executor declared."""
    if executors is None:
        executors = {"mock": ExecutorConfig(type="mock")}
    return Plan(
        name=kwargs.pop("name", "test-plan"),
        version=kwargs.pop("version", "1.0.0"),
        executors=executors,
        steps=list(steps),
        **kwargs,
    )


@pytest.fixture
def state_path(tmp_path: Path) -> Path:
    """State file location inside the test's temp directory."""
    return tmp_path / DEFAULT_STATE_FILE


@pytest.fixture
def store(state_path: Path) -> StateStore:
    return StateStore(state_path)


@pytest.fixture
def write_script(tmp_path: Path):
    """Write a shell script under tmp_path and return its relative path."""

    def _write(name: str, body: str) -> str:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("#!/bin/sh\n" + textwrap.dedent(body))
        return name

    return _write


@pytest.fixture
def write_plan(tmp_path: Path):
    """Write a plan YAML file under tmp_path and return its path."""

    def _write(content: str, name: str = "setup.yml") -> Path:
        path = tmp_path / name
        path.write_text(textwrap.dedent(content))
        return path

    return _write
