"""
SQL executor — run SQL script files against PostgreSQL.

One executor instance owns one connection, opened lazily on the
first file and reused afterwards. Files are read, environment
references expanded, split into statements, and executed either
in a single transaction (transaction_mode "all") or one committed
statement at a time (everything else).

A cancelled or expired context cancels the statement in flight
through the driver (psycopg2 cancel, sqlite3 interrupt).

Statement splitting is a plain split on ';'. Semicolons inside
string literals, comments, or dollar-quoted bodies will split the
statement incorrectly.
"""

from __future__ import annotations

import logging
import os
import re
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Connection, Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from plexr.core.errors import ExecutorConfigError
from plexr.core.models.execution import ExecutionFile, ExecutionResult
from plexr.executors.base import ExecutionContext, Executor

logger = logging.getLogger(__name__)

SUPPORTED_DRIVER = "postgres"
DEFAULT_PORT = 5432
DEFAULT_SSLMODE = "disable"
CONNECT_TIMEOUT = 5  # seconds

# How often the watchdog checks for cancellation/timeout
POLL_INTERVAL = 0.1

_ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)")

# Execution options for raw statements: no bind-parameter processing,
# so '%' and ':name' reach the server untouched.
_RAW = {"no_parameters": True}


def expand_env(text: str) -> str:
    """Replace ``$NAME`` / ``${NAME}`` with environment values.

    Unset variables expand to an empty string. ``$1`` and ``$$``
    are left alone.
    """
    return _ENV_REF.sub(lambda m: os.environ.get(m.group(1) or m.group(2), ""), text)


def split_statements(sql: str) -> list[str]:
    """Split SQL text on ';' and drop empty statements."""
    return [stmt.strip() for stmt in sql.split(";") if stmt.strip()]


class SQLConfig(BaseModel):
    """Connection settings from the plan's executor entry."""

    driver: str = ""
    host: str = ""
    port: int = 0
    database: str = ""
    username: str = ""
    password: str = ""
    sslmode: str = ""

    def url(self) -> URL:
        """SQLAlchemy URL; the password may reference env variables."""
        return URL.create(
            drivername="postgresql+psycopg2",
            username=self.username,
            password=expand_env(self.password) or None,
            host=self.host,
            port=self.port or DEFAULT_PORT,
            database=self.database,
            query={"sslmode": self.sslmode or DEFAULT_SSLMODE},
        )


class SQLExecutor(Executor):
    """Execute SQL files over a single PostgreSQL connection.

    Plan options:
        driver (str): Must be ``postgres``.
        host, database, username (str): Required.
        port (int): Default 5432.
        password (str): May contain ``$VAR`` references.
        sslmode (str): Default ``disable``.

    A timeout or cancellation interrupts the running statement and
    stops the file; with transaction_mode "all" nothing is committed.
    """

    def __init__(
        self,
        config: SQLConfig | None = None,
        engine: Engine | None = None,
        log: logging.Logger | None = None,
    ):
        self._config = config
        self._engine = engine
        self._owns_engine = engine is None
        self._conn: Connection | None = None
        self._log = log or logger

    @property
    def name(self) -> str:
        return "sql"

    @property
    def config(self) -> SQLConfig | None:
        return self._config

    @property
    def connected(self) -> bool:
        return self._conn is not None

    # ── Configuration ────────────────────────────────────────────

    def validate(self, config: dict[str, Any]) -> None:
        known = {k: v for k, v in config.items() if k in SQLConfig.model_fields}
        try:
            cfg = SQLConfig.model_validate(known)
        except PydanticValidationError as e:
            raise ExecutorConfigError(f"invalid SQL configuration: {e}") from e

        if not cfg.driver:
            raise ExecutorConfigError("driver is required")
        if cfg.driver != SUPPORTED_DRIVER:
            raise ExecutorConfigError(
                f"unsupported driver: {cfg.driver} (only '{SUPPORTED_DRIVER}' is supported)"
            )
        if not cfg.host:
            raise ExecutorConfigError("host is required")
        if not cfg.database:
            raise ExecutorConfigError("database is required")
        if not cfg.username:
            raise ExecutorConfigError("username is required")

        self._config = cfg.model_copy(
            update={
                "port": cfg.port or DEFAULT_PORT,
                "sslmode": cfg.sslmode or DEFAULT_SSLMODE,
            }
        )

    def clone(self) -> SQLExecutor:
        """Same configuration, no connection."""
        return SQLExecutor(config=self._config, log=self._log)

    # ── Connection ───────────────────────────────────────────────

    def connect(self) -> Connection:
        """Return the executor's connection, opening it on first use."""
        if self._conn is not None:
            return self._conn

        if self._engine is None:
            if self._config is None:
                raise ExecutorConfigError("sql executor is not configured")
            self._engine = create_engine(
                self._config.url(),
                pool_size=1,
                max_overflow=0,
                pool_pre_ping=True,
                connect_args={"connect_timeout": CONNECT_TIMEOUT},
            )
            self._owns_engine = True

        self._conn = self._engine.connect()
        self._log.debug("Connected: %s", self._engine.url.render_as_string(hide_password=True))
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        if self._engine is not None and self._owns_engine:
            self._engine.dispose()
            self._engine = None

    # ── Execution ────────────────────────────────────────────────

    def execute(self, ctx: ExecutionContext, file: ExecutionFile) -> ExecutionResult:
        start = time.monotonic()

        def elapsed_ms() -> int:
            return int((time.monotonic() - start) * 1000)

        path = Path(file.path)
        if not path.is_absolute() and file.work_directory:
            path = Path(file.work_directory) / path

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            return ExecutionResult.failure(
                executor=self.name,
                path=file.path,
                error=f"failed to read SQL file: {e}",
                duration_ms=elapsed_ms(),
            )

        try:
            conn = self.connect()
        except (SQLAlchemyError, ExecutorConfigError) as e:
            return ExecutionResult.failure(
                executor=self.name,
                path=file.path,
                error=f"failed to connect to database: {e}",
                duration_ms=elapsed_ms(),
            )

        statements = split_statements(expand_env(content))
        run_ctx = ctx.with_timeout(file.timeout) if file.timeout > 0 else ctx
        in_transaction = file.transaction_mode == "all"

        # Leftover implicit transaction (e.g. a read by the caller)
        if conn.in_transaction():
            conn.rollback()

        with self._watchdog(conn, run_ctx):
            if in_transaction:
                lines, interrupted, error = self._execute_in_transaction(conn, statements, run_ctx)
            else:
                lines, interrupted, error = self._execute_direct(conn, statements, run_ctx)

        output = "\n".join(lines)
        metadata = {
            "statements": len(statements),
            "executed": len(lines),
            "transaction_mode": file.transaction_mode or "none",
        }

        if interrupted == "cancelled":
            return ExecutionResult.cancelled(
                executor=self.name,
                path=file.path,
                output=output,
                duration_ms=elapsed_ms(),
                metadata=metadata,
            )
        if interrupted == "timeout":
            return ExecutionResult.timeout(
                executor=self.name,
                path=file.path,
                seconds=file.timeout,
                output=output,
                duration_ms=elapsed_ms(),
                metadata=metadata,
            )
        if error:
            return ExecutionResult.failure(
                executor=self.name,
                path=file.path,
                error=error,
                output=output,
                duration_ms=elapsed_ms(),
                metadata=metadata,
            )

        return ExecutionResult.ok(
            executor=self.name,
            path=file.path,
            output=output,
            duration_ms=elapsed_ms(),
            metadata=metadata,
        )

    def _execute_direct(
        self,
        conn: Connection,
        statements: list[str],
        ctx: ExecutionContext,
    ) -> tuple[list[str], str | None, str | None]:
        """Run and commit statements one by one.

        A failing statement is rolled back on its own; statements
        before it stay committed.
        """
        lines: list[str] = []
        for number, stmt in enumerate(statements, start=1):
            interrupted = _interruption(ctx)
            if interrupted:
                return lines, interrupted, None

            try:
                rows = self._run(conn, stmt)
                conn.commit()
            except SQLAlchemyError as e:
                conn.rollback()
                interrupted = _interruption(ctx)
                if interrupted:
                    return lines, interrupted, None
                return lines, None, f"statement {number} failed: {_describe(e)}"

            lines.append(f"Statement {number}: {rows} rows affected")

        return lines, _interruption(ctx), None

    def _execute_in_transaction(
        self,
        conn: Connection,
        statements: list[str],
        ctx: ExecutionContext,
    ) -> tuple[list[str], str | None, str | None]:
        """Run all statements in one transaction, all or nothing."""
        lines: list[str] = []
        try:
            trans = conn.begin()
        except SQLAlchemyError as e:
            return lines, None, f"failed to begin transaction: {_describe(e)}"

        for number, stmt in enumerate(statements, start=1):
            interrupted = _interruption(ctx)
            if interrupted:
                trans.rollback()
                return lines, interrupted, None

            try:
                rows = self._run(conn, stmt)
            except SQLAlchemyError as e:
                trans.rollback()
                interrupted = _interruption(ctx)
                if interrupted:
                    return lines, interrupted, None
                self._log.info("Rolled back after statement %d failed", number)
                return lines, None, f"statement {number} failed: {_describe(e)}"

            lines.append(f"Statement {number}: {rows} rows affected")

        interrupted = _interruption(ctx)
        if interrupted:
            trans.rollback()
            return lines, interrupted, None

        try:
            trans.commit()
        except SQLAlchemyError as e:
            interrupted = _interruption(ctx)
            if interrupted:
                return lines, interrupted, None
            return lines, None, f"failed to commit transaction: {_describe(e)}"

        return lines, None, None

    @contextmanager
    def _watchdog(self, conn: Connection, ctx: ExecutionContext):
        """Cancel the statement in flight once ``ctx`` is done.

        psycopg2 connections have ``cancel()``, sqlite3 connections
        ``interrupt()``; both may be called from another thread. The
        interrupted statement then fails with a DBAPIError, which the
        callers report as a timeout or cancellation.
        """
        dbapi_conn = conn.connection.dbapi_connection
        cancel = getattr(dbapi_conn, "cancel", None) or getattr(dbapi_conn, "interrupt", None)
        if cancel is None:
            yield
            return

        stop = threading.Event()

        def watch() -> None:
            while not stop.wait(POLL_INTERVAL):
                if ctx.done:
                    self._log.debug("Interrupting running statement (%s)", _interruption(ctx))
                    try:
                        cancel()
                    except Exception as e:
                        self._log.warning("Could not cancel running statement: %s", e)
                    return

        thread = threading.Thread(target=watch, name="plexr-sql-watchdog", daemon=True)
        thread.start()
        try:
            yield
        finally:
            stop.set()
            thread.join()

    def _run(self, conn: Connection, stmt: str) -> int:
        self._log.debug("SQL: %s", stmt)
        result = conn.exec_driver_sql(stmt, execution_options=_RAW)
        rows = result.rowcount
        result.close()
        return rows


def _interruption(ctx: ExecutionContext) -> str | None:
    if ctx.cancelled:
        return "cancelled"
    if ctx.expired:
        return "timeout"
    return None


def _describe(exc: SQLAlchemyError) -> str:
    """Driver error message without SQLAlchemy's statement echo."""
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig).strip()
    return str(exc)
