"""
Shell executor — run script files through a shell interpreter.

Each file runs as its own subprocess. Output (stdout, then stderr)
is decoded as UTF-8, undecodable bytes becoming U+FFFD, and
captured into the result. A per-file timeout or a cancelled run
kills the whole process group, so scripts that spawn children do
not outlive the step.
"""

from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
import time
from pathlib import Path
from typing import Any

from plexr.core.errors import ExecutorConfigError
from plexr.core.models.execution import ExecutionFile, ExecutionResult
from plexr.core.models.plan import current_platform
from plexr.executors.base import ExecutionContext, Executor

logger = logging.getLogger(__name__)

# How often a running process is checked for cancellation/timeout
POLL_INTERVAL = 0.1


def default_interpreter(platform: str) -> list[str]:
    """Interpreter command used to run a script on ``platform``."""
    if platform == "windows":
        return ["powershell.exe", "-File"]
    return [shutil.which("bash") or "/bin/sh"]


def _interpreter_for(shell: str) -> list[str]:
    if Path(shell).name.lower() in ("powershell.exe", "powershell", "pwsh", "pwsh.exe"):
        return [shell, "-File"]
    return [shell]


def _merge_output(stdout: str, stderr: str) -> str:
    output = stdout or ""
    if stderr:
        output += "\n" + stderr
    return output


class ShellExecutor(Executor):
    """Execute script files with bash (or sh / PowerShell).

    Plan options:
        shell (str): Interpreter override, e.g. ``/bin/zsh``.
    """

    def __init__(
        self,
        platform: str | None = None,
        interpreter: list[str] | None = None,
        log: logging.Logger | None = None,
    ):
        self._platform = platform or current_platform()
        self._interpreter = list(interpreter) if interpreter else default_interpreter(self._platform)
        self._log = log or logger

    @property
    def name(self) -> str:
        return "shell"

    @property
    def interpreter(self) -> list[str]:
        return list(self._interpreter)

    def validate(self, config: dict[str, Any]) -> None:
        shell = config.get("shell")
        if shell is None:
            return
        if not isinstance(shell, str):
            raise ExecutorConfigError("shell must be a string")
        if shell:
            self._interpreter = _interpreter_for(shell)

    def clone(self) -> ShellExecutor:
        return ShellExecutor(
            platform=self._platform,
            interpreter=self._interpreter,
            log=self._log,
        )

    def execute(self, ctx: ExecutionContext, file: ExecutionFile) -> ExecutionResult:
        start = time.monotonic()

        def elapsed_ms() -> int:
            return int((time.monotonic() - start) * 1000)

        # ── Platform filter ──────────────────────────────────────
        if file.platform and file.platform != self._platform:
            return ExecutionResult.ok(
                executor=self.name,
                path=file.path,
                output=(
                    f"Skipping file {file.path} "
                    f"(platform: {file.platform}, current: {self._platform})"
                ),
                duration_ms=elapsed_ms(),
                metadata={"skipped": True},
            )

        script = Path(file.path)
        if not script.is_absolute() and file.work_directory:
            script = Path(file.work_directory) / script
        script = script.absolute()

        if not script.is_file():
            return ExecutionResult.failure(
                executor=self.name,
                path=file.path,
                error=f"file not found: {file.path}",
                duration_ms=elapsed_ms(),
            )

        if ctx.cancelled:
            return ExecutionResult.cancelled(executor=self.name, path=file.path)

        run_ctx = ctx.with_timeout(file.timeout) if file.timeout > 0 else ctx
        cmd = [*self._interpreter, str(script)]
        cwd = file.work_directory or None

        self._log.debug("Executing: %s (cwd=%s)", " ".join(cmd), cwd)

        try:
            proc = subprocess.Popen(
                cmd,
                cwd=cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                encoding="utf-8",
                errors="replace",
                start_new_session=os.name == "posix",
            )
        except OSError as e:
            return ExecutionResult.failure(
                executor=self.name,
                path=file.path,
                error=f"failed to start {cmd[0]}: {e}",
                duration_ms=elapsed_ms(),
                metadata={"command": cmd},
            )

        stdout, stderr, interrupted = self._wait(proc, run_ctx)
        output = _merge_output(stdout, stderr)
        metadata = {"command": cmd, "return_code": proc.returncode}

        if interrupted == "cancelled":
            self._log.warning("Cancelled: %s", file.path)
            return ExecutionResult.cancelled(
                executor=self.name,
                path=file.path,
                output=output,
                duration_ms=elapsed_ms(),
                metadata=metadata,
            )

        if interrupted == "timeout":
            self._log.warning("Timed out after %ss: %s", file.timeout, file.path)
            return ExecutionResult.timeout(
                executor=self.name,
                path=file.path,
                seconds=file.timeout,
                output=output,
                duration_ms=elapsed_ms(),
                metadata=metadata,
            )

        if proc.returncode != 0:
            return ExecutionResult.failure(
                executor=self.name,
                path=file.path,
                error=f"execution failed: exit status {proc.returncode}",
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

    def _wait(
        self,
        proc: subprocess.Popen,
        ctx: ExecutionContext,
    ) -> tuple[str, str, str | None]:
        """Wait for ``proc``, killing it if ``ctx`` is cancelled or expires.

        Returns:
            (stdout, stderr, interrupted) where interrupted is None,
            "cancelled", or "timeout".
        """
        while True:
            try:
                stdout, stderr = proc.communicate(timeout=POLL_INTERVAL)
                return stdout, stderr, None
            except subprocess.TimeoutExpired:
                pass

            if ctx.cancelled:
                interrupted = "cancelled"
            elif ctx.expired:
                interrupted = "timeout"
            else:
                continue

            self._kill(proc)
            stdout, stderr = proc.communicate()
            return stdout, stderr, interrupted

    def _kill(self, proc: subprocess.Popen) -> None:
        if os.name == "posix":
            try:
                os.killpg(proc.pid, signal.SIGKILL)
                return
            except ProcessLookupError:
                return
            except OSError as e:
                self._log.debug("killpg failed for %s: %s", proc.pid, e)
        proc.kill()
