"""
Tests for logging configuration.
"""

import logging
from pathlib import Path

import pytest

from plexr.core.observability.logging_config import (
    resolve_level,
    setup_from_env,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    sa_level = logging.getLogger("sqlalchemy").level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("sqlalchemy").setLevel(sa_level)


class TestResolveLevel:
    def test_flag_precedence(self, monkeypatch):
        monkeypatch.setenv("PLEXR_LOG_LEVEL", "INFO")
        assert resolve_level(debug=True, verbose=True, quiet=True) == "DEBUG"
        assert resolve_level(verbose=True, quiet=True) == "INFO"
        assert resolve_level(quiet=True) == "ERROR"

    def test_env_fallback(self, monkeypatch):
        monkeypatch.setenv("PLEXR_LOG_LEVEL", "INFO")
        assert resolve_level() == "INFO"

    def test_default(self, monkeypatch):
        monkeypatch.delenv("PLEXR_LOG_LEVEL", raising=False)
        assert resolve_level() == "WARNING"


class TestSetupLogging:
    def test_console_level(self):
        setup_logging(level="INFO")
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 1

    def test_unknown_level_falls_back_to_warning(self):
        setup_logging(level="LOUD")
        assert logging.getLogger().level == logging.WARNING

    def test_file_output(self, tmp_path: Path):
        log_file = tmp_path / "plexr.log"
        setup_logging(level="WARNING", log_file=str(log_file), log_file_level="DEBUG")

        assert logging.getLogger().level == logging.DEBUG
        logging.getLogger("plexr.test").debug("written to file only")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "written to file only" in log_file.read_text()

    def test_third_party_quieted(self):
        setup_logging(level="INFO")
        assert logging.getLogger("sqlalchemy").level == logging.WARNING

    def test_from_env(self, tmp_path: Path, monkeypatch):
        log_file = tmp_path / "env.log"
        monkeypatch.setenv("PLEXR_LOG_FILE", str(log_file))
        monkeypatch.setenv("PLEXR_LOG_FILE_LEVEL", "INFO")
        setup_from_env("ERROR")
        logging.getLogger("plexr.test").info("from env")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "from env" in log_file.read_text()
