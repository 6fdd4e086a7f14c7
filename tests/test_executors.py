"""
Tests for the executor contract, registry, mock, and shell executors.
"""

import sys
import threading
import time
from pathlib import Path

import pytest

from plexr.core.errors import (
    ExecutorConfigError,
    ExecutorNotFoundError,
    ExecutorRegistrationError,
)
from plexr.core.models.execution import ExecutionFile, ExecutionResult
from plexr.core.models.plan import ExecutorConfig, current_platform
from plexr.executors import (
    ExecutionContext,
    ExecutorRegistry,
    MockExecutor,
    ShellExecutor,
    SQLExecutor,
)

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell scripts")


# ── Context Tests ────────────────────────────────────────────────────


class TestExecutionContext:
    def test_background_never_done(self):
        ctx = ExecutionContext.background()
        assert not ctx.done
        assert ctx.remaining() is None

    def test_cancel_propagates_to_children(self):
        parent = ExecutionContext.background()
        child = parent.with_timeout(60)
        parent.cancel()
        assert child.cancelled

    def test_child_cancel_does_not_reach_parent(self):
        parent = ExecutionContext.background()
        child = parent.with_timeout(60)
        child.cancel()
        assert not parent.cancelled

    def test_timeout_expires(self):
        ctx = ExecutionContext.background().with_timeout(0)
        assert ctx.expired
        assert ctx.done
        assert ctx.remaining() == 0.0

    def test_child_keeps_earlier_parent_deadline(self):
        parent = ExecutionContext.background().with_timeout(1)
        child = parent.with_timeout(3600)
        assert child.remaining() <= 1


# ── Mock Executor Tests ──────────────────────────────────────────────


class TestMockExecutor:
    def test_default_success(self):
        mock = MockExecutor(executor_name="test-mock")
        result = mock.execute(ExecutionContext.background(), ExecutionFile(path="a.sh"))
        assert result.success
        assert result.executor == "test-mock"
        assert result.output == "ran a.sh"
        assert mock.call_count == 1

    def test_custom_response(self):
        mock = MockExecutor()
        mock.set_response("a.sh", ExecutionResult.ok(executor="mock", path="a.sh", output="custom"))
        result = mock.execute(ExecutionContext.background(), ExecutionFile(path="a.sh"))
        assert result.output == "custom"

    def test_set_failure(self):
        mock = MockExecutor()
        mock.set_failure("bad.sh", error="Intentional failure")
        result = mock.execute(ExecutionContext.background(), ExecutionFile(path="bad.sh"))
        assert not result.success
        assert "Intentional failure" in result.error

    def test_set_error_raises(self):
        mock = MockExecutor()
        mock.set_error("boom.sh", RuntimeError("boom"))
        with pytest.raises(RuntimeError):
            mock.execute(ExecutionContext.background(), ExecutionFile(path="boom.sh"))

    def test_call_log(self):
        mock = MockExecutor()
        for i in range(3):
            mock.execute(ExecutionContext.background(), ExecutionFile(path=f"{i}.sh"))
        assert mock.call_count == 3
        assert mock.executed_paths == ["0.sh", "1.sh", "2.sh"]

    def test_reset(self):
        mock = MockExecutor()
        mock.set_failure("a.sh")
        mock.execute(ExecutionContext.background(), ExecutionFile(path="a.sh"))
        mock.reset()
        assert mock.call_count == 0
        assert mock.execute(ExecutionContext.background(), ExecutionFile(path="a.sh")).success


# ── Registry Tests ───────────────────────────────────────────────────


class TestExecutorRegistry:
    def test_builtins(self):
        registry = ExecutorRegistry()
        assert isinstance(registry.get("shell"), ShellExecutor)
        assert isinstance(registry.get("sql"), SQLExecutor)

    def test_register_and_resolve(self):
        registry = ExecutorRegistry()
        mock = MockExecutor()
        registry.register("mock", mock)
        assert registry.resolve("mock") is mock
        assert "mock" in registry.list_executors()

    def test_register_duplicate(self):
        registry = ExecutorRegistry()
        with pytest.raises(ExecutorRegistrationError):
            registry.register("shell", MockExecutor())

    def test_register_empty_name(self):
        with pytest.raises(ExecutorRegistrationError):
            ExecutorRegistry().register("", MockExecutor())

    def test_resolve_missing(self):
        with pytest.raises(ExecutorNotFoundError, match="executor not found: nope"):
            ExecutorRegistry().resolve("nope")
        assert ExecutorRegistry().get("nope") is None

    def test_configure_clones_prototype(self):
        registry = ExecutorRegistry()
        registry.configure({"bash": ExecutorConfig(type="shell", shell="/bin/bash")})
        bash = registry.resolve("bash")
        assert isinstance(bash, ShellExecutor)
        assert bash is not registry.get("shell")
        assert bash.interpreter == ["/bin/bash"]

    def test_configure_sql_under_builtin_name(self):
        registry = ExecutorRegistry()
        registry.configure({
            "sql": ExecutorConfig(
                type="sql", driver="postgres", host="db", database="app", username="dev"
            ),
        })
        assert registry.resolve("sql").config.host == "db"

    def test_configure_missing_type(self):
        with pytest.raises(ExecutorConfigError, match="missing type"):
            ExecutorRegistry().configure({"x": ExecutorConfig()})

    def test_configure_invalid_options(self):
        with pytest.raises(ExecutorConfigError, match="invalid configuration for executor db"):
            ExecutorRegistry().configure({"db": ExecutorConfig(type="sql", driver="mysql")})

    def test_configure_unknown_type_skipped(self, caplog):
        registry = ExecutorRegistry()
        registry.configure({"k8s": ExecutorConfig(type="kubectl")})
        assert registry.get("k8s") is None
        assert "unknown type" in caplog.text

    def test_configure_keeps_explicit_registration(self):
        registry = ExecutorRegistry()
        mock = MockExecutor()
        registry.register("db", mock)
        registry.configure({"db": ExecutorConfig(type="sql", driver="postgres")})
        assert registry.resolve("db") is mock

    def test_close_all_logs_failures(self, caplog):
        class Broken(MockExecutor):
            def close(self):
                raise RuntimeError("socket gone")

        registry = ExecutorRegistry()
        registry.register("broken", Broken())
        registry.close_all()
        assert "socket gone" in caplog.text


# ── Shell Executor Tests ─────────────────────────────────────────────


def _run(executor: ShellExecutor, path: str, tmp_path: Path, ctx=None, **kwargs):
    file = ExecutionFile(path=path, work_directory=str(tmp_path), **kwargs)
    return executor.execute(ctx or ExecutionContext.background(), file)


@posix_only
class TestShellExecutor:
    def test_name(self):
        assert ShellExecutor().name == "shell"

    def test_success_output(self, tmp_path, write_script):
        path = write_script("hello.sh", "echo hello\n")
        result = _run(ShellExecutor(), path, tmp_path)
        assert result.success
        assert "hello" in result.output

    def test_stderr_appended(self, tmp_path, write_script):
        path = write_script("both.sh", "echo out\necho err >&2\n")
        result = _run(ShellExecutor(), path, tmp_path)
        assert result.output == "out\n\nerr\n"

    def test_undecodable_output_is_replaced(self, tmp_path, write_script):
        path = write_script("bytes.sh", "printf '\\377\\376 ok\\n'\nexit 0\n")
        result = _run(ShellExecutor(), path, tmp_path)
        assert result.success
        assert result.output == "\ufffd\ufffd ok\n"

    def test_nonzero_exit(self, tmp_path, write_script):
        path = write_script("fail.sh", "echo partial\nexit 3\n")
        result = _run(ShellExecutor(), path, tmp_path)
        assert result.status == "failed"
        assert result.error == "execution failed: exit status 3"
        assert "partial" in result.output

    def test_missing_file(self, tmp_path):
        result = _run(ShellExecutor(), "missing.sh", tmp_path)
        assert result.status == "failed"
        assert "file not found" in result.error

    def test_platform_mismatch_is_success(self, tmp_path):
        other = "windows" if current_platform() != "windows" else "linux"
        result = _run(ShellExecutor(), "never-read.sh", tmp_path, platform=other)
        assert result.success
        assert "Skipping file never-read.sh" in result.output
        assert result.metadata["skipped"] is True

    def test_platform_match_runs(self, tmp_path, write_script):
        path = write_script("p.sh", "echo ran\n")
        result = _run(ShellExecutor(platform="linux"), path, tmp_path, platform="linux")
        assert "ran" in result.output

    def test_runs_in_work_directory(self, tmp_path, write_script):
        path = write_script("pwd.sh", "pwd\n")
        result = _run(ShellExecutor(), path, tmp_path)
        assert Path(result.output.strip()).resolve() == tmp_path.resolve()

    def test_timeout_kills_process(self, tmp_path, write_script):
        path = write_script("slow.sh", "sleep 10\n")
        start = time.monotonic()
        result = _run(ShellExecutor(), path, tmp_path, timeout=1)
        assert result.status == "timeout"
        assert result.error == "execution timeout after 1 seconds"
        assert time.monotonic() - start < 5

    def test_cancel_kills_process(self, tmp_path, write_script):
        path = write_script("slow.sh", "sleep 10\n")
        ctx = ExecutionContext.background()
        timer = threading.Timer(0.3, ctx.cancel)
        timer.start()
        try:
            result = _run(ShellExecutor(), path, tmp_path, ctx=ctx)
        finally:
            timer.cancel()
        assert result.status == "cancelled"

    def test_already_cancelled(self, tmp_path, write_script):
        path = write_script("a.sh", "echo no\n")
        ctx = ExecutionContext.background()
        ctx.cancel()
        assert _run(ShellExecutor(), path, tmp_path, ctx=ctx).status == "cancelled"

    def test_shell_option(self):
        executor = ShellExecutor()
        executor.validate({"shell": "/bin/sh"})
        assert executor.interpreter == ["/bin/sh"]

    def test_shell_option_must_be_string(self):
        with pytest.raises(ExecutorConfigError, match="shell must be a string"):
            ShellExecutor().validate({"shell": 42})

    def test_windows_interpreter(self):
        assert ShellExecutor(platform="windows").interpreter == ["powershell.exe", "-File"]
