"""Tests for rwboot.runner: bounded command execution."""

from __future__ import annotations

import logging
import sys

import pytest

import rwboot.runner as mod
from conftest import install_tool
from rwboot.context import ExecutionContext
from rwboot.runner import (
    NOT_FOUND_EXIT_CODE,
    TIMEOUT_EXIT_CODE,
    CommandResult,
    TimeoutBackend,
    TimeoutRunner,
    resolve_backend,
)


def _write_script(path, body: str):
    path.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    path.chmod(0o755)
    return path


# ---------------------------------------------------------------------------
# CommandResult
# ---------------------------------------------------------------------------

class TestCommandResult:

    def test_ok_requires_zero_exit(self):
        assert CommandResult(("x",), 0).ok
        assert not CommandResult(("x",), 1).ok

    def test_timed_out_is_never_ok(self):
        assert not CommandResult(("x",), 0, timed_out=True).ok

    def test_output_joins_streams(self):
        result = CommandResult(("x",), 0, stdout="out", stderr="err")
        assert result.output == "out\nerr"

    def test_output_skips_empty_stream(self):
        assert CommandResult(("x",), 0, stderr="only err").output == "only err"

    def test_command_line(self):
        assert CommandResult(("wrangler", "d1", "create", "x-db"), 0).command_line == "wrangler d1 create x-db"


# ---------------------------------------------------------------------------
# Backend resolution
# ---------------------------------------------------------------------------

class TestResolveBackend:

    def test_auto_prefers_native(self, context, monkeypatch):
        monkeypatch.setattr(mod, "native_timeout_supported", lambda: True)
        assert resolve_backend("auto", context) == (TimeoutBackend.NATIVE, None)

    def test_auto_falls_back_to_utility(self, context, bin_dir, monkeypatch):
        monkeypatch.setattr(mod, "native_timeout_supported", lambda: False)
        utility = install_tool(bin_dir, "gtimeout")
        assert resolve_backend("auto", context) == (TimeoutBackend.UTILITY, str(utility))

    def test_auto_without_utility_is_unbounded(self, context, monkeypatch):
        monkeypatch.setattr(mod, "native_timeout_supported", lambda: False)
        assert resolve_backend("auto", context) == (TimeoutBackend.NONE, None)

    def test_explicit_none(self, context, bin_dir):
        install_tool(bin_dir, "timeout")
        assert resolve_backend("none", context) == (TimeoutBackend.NONE, None)

    def test_utility_preference_skips_native(self, context, bin_dir, monkeypatch):
        monkeypatch.setattr(mod, "native_timeout_supported", lambda: True)
        utility = install_tool(bin_dir, "timeout")
        assert resolve_backend("utility", context) == (TimeoutBackend.UTILITY, str(utility))

    def test_utility_ignored_where_unsupported(self, context, bin_dir, monkeypatch):
        monkeypatch.setattr(mod, "native_timeout_supported", lambda: False)
        monkeypatch.setattr(mod, "utility_timeout_supported", lambda: False)
        install_tool(bin_dir, "timeout")
        assert resolve_backend("auto", context) == (TimeoutBackend.NONE, None)

    def test_native_without_process_groups(self, context, bin_dir, monkeypatch):
        monkeypatch.setattr(mod, "process_groups_supported", lambda: False)
        monkeypatch.setattr(mod, "native_timeout_supported", lambda: True)
        install_tool(bin_dir, "timeout")
        assert resolve_backend("auto", context) == (TimeoutBackend.NATIVE, None)


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

@pytest.mark.skipif(not mod.native_timeout_supported(), reason="process groups unavailable")
class TestNativeRun:

    def test_captures_output_and_exit_code(self, context):
        result = TimeoutRunner("native").run(
            10,
            sys.executable,
            "-c",
            "import sys; print('hello'); sys.stderr.write('warn'); sys.exit(3)",
            context=context,
        )
        assert result.exit_code == 3
        assert result.stdout.strip() == "hello"
        assert result.stderr == "warn"
        assert not result.timed_out
        assert result.enforced

    def test_expired_budget_reports_timeout(self, context):
        result = TimeoutRunner("native").run(
            0.5, sys.executable, "-c", "import time; time.sleep(10)", context=context
        )
        assert result.timed_out
        assert result.exit_code == TIMEOUT_EXIT_CODE
        assert not result.ok

    def test_runs_in_context_cwd(self, context):
        result = TimeoutRunner("native").run(
            10, sys.executable, "-c", "import os; print(os.getcwd())", context=context
        )
        assert result.stdout.strip() == str(context.cwd.resolve())

    def test_explicit_cwd_wins(self, context, tmp_path):
        other = tmp_path / "elsewhere"
        other.mkdir()
        result = TimeoutRunner("native").run(
            10, sys.executable, "-c", "import os; print(os.getcwd())", context=context, cwd=other
        )
        assert result.stdout.strip() == str(other.resolve())

    def test_extra_path_is_visible_to_child(self, context, tmp_path):
        patched = ExecutionContext(cwd=context.cwd, env=context.env, extra_path=(str(tmp_path / "local"),))
        result = TimeoutRunner("native").run(
            10, sys.executable, "-c", "import os; print(os.environ['PATH'])", context=patched
        )
        assert result.stdout.strip().startswith(str(tmp_path / "local"))


class TestRunnerFallbacks:

    def test_missing_command(self, context):
        result = TimeoutRunner().run(5, "rwboot-no-such-tool", "--version", context=context)
        assert result.exit_code == NOT_FOUND_EXIT_CODE
        assert "command not found" in result.stderr

    def test_unbounded_warns_every_call(self, context, bin_dir, monkeypatch, caplog):
        monkeypatch.setattr(mod, "native_timeout_supported", lambda: False)
        _write_script(bin_dir / "hello", "echo hi\n")
        runner = TimeoutRunner()

        with caplog.at_level(logging.WARNING, logger="rwboot"):
            first = runner.run(5, "hello", context=context)
            second = runner.run(5, "hello", context=context)

        assert first.stdout.strip() == "hi"
        assert not first.enforced
        assert second.exit_code == 0
        warnings = [r for r in caplog.records if "running without timeout" in r.getMessage()]
        assert len(warnings) == 2

    def test_utility_receives_duration(self, context, bin_dir, tmp_path, monkeypatch):
        monkeypatch.setattr(mod, "native_timeout_supported", lambda: False)
        record = tmp_path / "duration.txt"
        _write_script(bin_dir / "timeout", f'echo "$1" > "{record}"\nshift\nexec "$@"\n')
        _write_script(bin_dir / "hello", "echo hi\n")

        result = TimeoutRunner().run(2.5, "hello", context=context)

        assert result.ok
        assert result.stdout.strip() == "hi"
        assert record.read_text().strip() == "2.5"

    def test_utility_exit_124_is_timeout(self, context, bin_dir, monkeypatch):
        monkeypatch.setattr(mod, "native_timeout_supported", lambda: False)
        _write_script(bin_dir / "timeout", "exit 124\n")
        _write_script(bin_dir / "slow", "sleep 1\n")

        result = TimeoutRunner().run(1, "slow", context=context)

        assert result.timed_out
        assert result.exit_code == TIMEOUT_EXIT_CODE

    def test_native_without_process_groups_still_enforces(self, context, monkeypatch):
        monkeypatch.setattr(mod, "process_groups_supported", lambda: False)
        monkeypatch.setattr(mod, "native_timeout_supported", lambda: True)

        result = TimeoutRunner().run(0.5, sys.executable, "-c", "import time; time.sleep(10)", context=context)

        assert result.timed_out
        assert result.exit_code == TIMEOUT_EXIT_CODE
        assert result.enforced
