"""
Tests for use cases — execute, validate, status, reset.
"""

from pathlib import Path

from plexr.core.use_cases.execute import execute_plan_file, load_for_execute
from plexr.core.use_cases.reset import reset_state
from plexr.core.use_cases.status import get_status
from plexr.core.use_cases.validate import validate_plan_file
from plexr.executors import ExecutorRegistry, MockExecutor

PLAN = """\
name: mocked
version: "2"
executors:
  fake:
    type: fake
steps:
  - id: a
    executor: fake
    files: [{path: a.sh}]
  - id: b
    executor: fake
    depends_on: [a]
    files: [{path: b.sh}]
"""


def _registry(mock: MockExecutor) -> ExecutorRegistry:
    registry = ExecutorRegistry()
    registry.register("fake", mock)
    return registry


class TestExecuteUseCase:
    def test_runs_through_registry(self, write_plan):
        mock = MockExecutor()
        result = execute_plan_file(write_plan(PLAN), registry=_registry(mock))

        assert result.ok
        assert mock.executed_paths == ["a.sh", "b.sh"]
        assert result.report.completed == ["a", "b"]
        assert result.state.completed_steps == ["a", "b"]
        assert result.pending == []

    def test_work_directory_is_plan_dir(self, write_plan, tmp_path: Path):
        mock = MockExecutor()
        execute_plan_file(write_plan(PLAN), registry=_registry(mock))
        assert mock.call_log[0].work_directory == str(tmp_path.resolve())

    def test_dry_run_touches_nothing(self, write_plan, tmp_path: Path):
        mock = MockExecutor()
        result = execute_plan_file(write_plan(PLAN), dry_run=True, registry=_registry(mock))

        assert result.dry_run
        assert result.pending == ["a", "b"]
        assert mock.call_count == 0
        assert not (tmp_path / ".plexr_state.json").exists()

    def test_failure_reported(self, write_plan):
        mock = MockExecutor()
        mock.set_failure("b.sh", error="boom")
        result = execute_plan_file(write_plan(PLAN), registry=_registry(mock))

        assert not result.ok
        assert result.failed_step == "b"
        assert result.failed_file == "b.sh"
        assert result.pending == ["b"]
        assert result.to_dict()["error"] == "step 'b' failed on b.sh: boom"

    def test_unregistered_executor(self, write_plan):
        result = execute_plan_file(write_plan(PLAN))
        assert result.error == "executor not found: fake"

    def test_preview_after_partial_run(self, write_plan):
        mock = MockExecutor()
        mock.set_failure("b.sh")
        plan = write_plan(PLAN)
        execute_plan_file(plan, registry=_registry(mock))

        preview = load_for_execute(plan)
        assert preview.order == ["a", "b"]
        assert preview.pending == ["b"]


class TestValidateUseCase:
    def test_valid(self, write_plan):
        result = validate_plan_file(write_plan(PLAN))
        assert result.valid
        assert result.to_dict()["plan_name"] == "mocked"

    def test_invalid(self, write_plan):
        result = validate_plan_file(write_plan(PLAN.replace("depends_on: [a]", "depends_on: [zzz]")))
        assert not result.valid
        assert result.errors == ["step 'b' depends on undefined step 'zzz'"]


class TestStatusAndReset:
    def test_status_lifecycle(self, write_plan):
        plan = write_plan(PLAN)
        assert get_status(plan).to_dict()["started"] is False

        execute_plan_file(plan, registry=_registry(MockExecutor()))
        status = get_status(plan)
        assert status.finished
        assert status.completed == ["a", "b"]

        reset = reset_state(plan)
        assert reset.removed
        assert not get_status(plan).started

    def test_reset_without_state(self, write_plan):
        result = reset_state(write_plan(PLAN))
        assert result.removed is False
        assert result.error is None

    def test_status_corrupt_state(self, write_plan, tmp_path: Path):
        plan = write_plan(PLAN)
        (tmp_path / ".plexr_state.json").write_text("][")
        assert "failed to parse state file" in get_status(plan).error
