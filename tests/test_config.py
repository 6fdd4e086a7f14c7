"""
Tests for the plan loader.
"""

from pathlib import Path

import pytest

from plexr.core.config.loader import ConfigError, load_plan, parse_plan, plan_dir
from plexr.core.errors import CycleError, ValidationError

PLAN = """\
name: dev-environment
version: "1.0.0"
description: Local development setup
work_directory: .

executors:
  shell:
    type: shell
  postgres:
    type: sql
    driver: postgres
    host: localhost
    database: app
    username: dev
    password: $DB_PASSWORD

steps:
  - id: tools
    description: Install tools
    executor: shell
    files:
      - path: scripts/tools.sh
        timeout: 300
      - path: scripts/brew.sh
        platform: darwin

  - id: schema
    executor: postgres
    depends_on: [tools]
    transaction_mode: all
    files:
      - path: sql/schema.sql
"""


class TestLoadPlan:
    def test_load_full_plan(self, write_plan):
        plan = load_plan(write_plan(PLAN))

        assert plan.name == "dev-environment"
        assert plan.version == "1.0.0"
        assert [s.id for s in plan.steps] == ["tools", "schema"]
        assert plan.steps[0].files[0].timeout == 300
        assert plan.steps[0].files[1].platform == "darwin"
        assert plan.steps[1].depends_on == ("tools",)
        assert plan.executors["postgres"].options["password"] == "$DB_PASSWORD"

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_plan(tmp_path / "nope.yml")

    def test_invalid_yaml(self, write_plan):
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_plan(write_plan("name: [unclosed\n"))

    def test_not_a_mapping(self, write_plan):
        with pytest.raises(ConfigError, match="Expected a YAML mapping"):
            load_plan(write_plan("- just\n- a list\n"))

    def test_wrong_field_type(self, write_plan):
        with pytest.raises(ConfigError, match="Invalid plan"):
            load_plan(write_plan("name: x\nversion: '1'\nsteps: not-a-list\n"))

    def test_structural_validation(self, write_plan):
        with pytest.raises(ValidationError, match="at least one step"):
            load_plan(write_plan("name: x\nversion: '1'\n"))

    def test_cycle_detected_on_load(self, write_plan):
        content = PLAN.replace(
            "    executor: shell\n    files:",
            "    executor: shell\n    depends_on: [schema]\n    files:",
        )
        with pytest.raises(CycleError):
            load_plan(write_plan(content))

    def test_skip_validation(self, write_plan):
        plan = load_plan(write_plan("name: x\n"), validate=False)
        assert plan.steps == ()

    def test_plan_dir(self, tmp_path: Path):
        assert plan_dir(tmp_path / "setup.yml") == tmp_path.resolve()


class TestParsePlan:
    def test_empty_document(self):
        assert parse_plan("").name == ""

    def test_source_in_error(self):
        with pytest.raises(ConfigError, match="inline.yml"):
            parse_plan("[", source="inline.yml")
