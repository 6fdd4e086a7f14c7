"""
Logging configuration for the plexr CLI.

main.py calls this once per process. Library code only ever does
``logger = logging.getLogger(__name__)`` (or takes an injected
logger), so embedding plexr in another program leaves that
program's logging alone.

Console level, highest precedence first:
    --debug, --verbose, --quiet, PLEXR_LOG_LEVEL, WARNING

PLEXR_LOG_FILE adds a file handler; PLEXR_LOG_FILE_LEVEL sets its
level independently of the console.
"""

from __future__ import annotations

import logging
import os
import sys

ENV_LOG_LEVEL = "PLEXR_LOG_LEVEL"
ENV_LOG_FILE = "PLEXR_LOG_FILE"
ENV_LOG_FILE_LEVEL = "PLEXR_LOG_FILE_LEVEL"

# ── Formats ─────────────────────────────────────────────────────

# (message format, date format) by console verbosity
_CONSOLE_FORMATS = {
    logging.DEBUG: ("%(asctime)s %(levelname)-7s %(name)s:%(lineno)d  %(message)s", "%H:%M:%S"),
    logging.INFO: ("%(asctime)s %(name)s: %(message)s", "%H:%M:%S"),
    logging.WARNING: ("%(levelname)s: %(message)s", None),
}

_FILE_FORMAT = ("%(asctime)s %(levelname)-7s %(name)s:%(lineno)d  %(message)s", "%Y-%m-%d %H:%M:%S")

# Libraries whose INFO output drowns the step progress
_CHATTY_LIBRARIES = ("sqlalchemy", "urllib3")


def resolve_level(debug: bool = False, verbose: bool = False, quiet: bool = False) -> str:
    """Pick the console level from CLI flags, then the environment."""
    for flag, name in ((debug, "DEBUG"), (verbose, "INFO"), (quiet, "ERROR")):
        if flag:
            return name
    return os.environ.get(ENV_LOG_LEVEL, "WARNING")


def _level(name: str | None) -> int:
    """Level name to number; anything unknown means WARNING."""
    if not name:
        return logging.WARNING
    return logging.getLevelNamesMapping().get(name.upper(), logging.WARNING)


def _console_handler(level: int) -> logging.Handler:
    threshold = max(t for t in _CONSOLE_FORMATS if t <= max(level, logging.DEBUG))
    fmt, datefmt = _CONSOLE_FORMATS[threshold]
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(*_FILE_FORMAT))
    return handler


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Install plexr's handlers on the root logger.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR).
        log_file: Also write records to this file.
        log_file_level: Level for the file; defaults to ``level``.
        quiet_third_party: Hold chatty libraries at WARNING unless the
            console is at DEBUG.
    """
    console_level = _level(level)
    handlers = [_console_handler(console_level)]

    if log_file:
        file_level = _level(log_file_level) if log_file_level else console_level
        handlers.append(_file_handler(log_file, file_level))

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(min(h.level for h in handlers))

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _CHATTY_LIBRARIES:
            logging.getLogger(name).setLevel(logging.WARNING)


def setup_from_env(level: str) -> None:
    """setup_logging with file output taken from PLEXR_LOG_FILE*."""
    setup_logging(
        level=level,
        log_file=os.environ.get(ENV_LOG_FILE),
        log_file_level=os.environ.get(ENV_LOG_FILE_LEVEL),
    )
