"""Shared test fixtures for rwboot tests."""

from __future__ import annotations

import logging
import stat
from collections.abc import Callable
from pathlib import Path

import pytest
from typer.testing import CliRunner

from rwboot.context import ExecutionContext
from rwboot.runner import TIMEOUT_EXIT_CODE, CommandResult

Handler = Callable[[tuple[str, ...], ExecutionContext], "CommandResult | None"]


class FakeRunner:
    """Scripted stand-in for TimeoutRunner.

    Rules match on an argv prefix; the longest matching prefix wins and later
    rules win ties. Unmatched commands succeed with empty output.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, ...]] = []
        self.durations: list[float] = []
        self.contexts: list[ExecutionContext] = []
        self._rules: list[tuple[tuple[str, ...], Handler]] = []

    def on(
        self,
        *prefix: str,
        exit_code: int = 0,
        stdout: str = "",
        stderr: str = "",
        timed_out: bool = False,
        effect: Callable[[tuple[str, ...], ExecutionContext], None] | None = None,
    ) -> FakeRunner:
        def _handler(argv: tuple[str, ...], context: ExecutionContext) -> CommandResult:
            if effect is not None:
                effect(argv, context)
            return CommandResult(
                argv=argv,
                exit_code=TIMEOUT_EXIT_CODE if timed_out else exit_code,
                stdout=stdout,
                stderr=stderr,
                timed_out=timed_out,
            )

        self._rules.append((tuple(prefix), _handler))
        return self

    def handle(self, *prefix: str, handler: Handler) -> FakeRunner:
        self._rules.append((tuple(prefix), handler))
        return self

    def run(
        self,
        duration: float,
        command: str,
        *args: str,
        context: ExecutionContext,
        cwd: Path | None = None,
    ) -> CommandResult:
        argv = (command, *args)
        self.calls.append(argv)
        self.durations.append(duration)
        self.contexts.append(context)

        best: tuple[int, Handler] | None = None
        for prefix, handler in self._rules:
            if argv[: len(prefix)] == prefix and (best is None or len(prefix) >= best[0]):
                best = (len(prefix), handler)
        if best is None:
            return CommandResult(argv=argv, exit_code=0)
        result = best[1](argv, context)
        return result if result is not None else CommandResult(argv=argv, exit_code=0)

    def called(self, *prefix: str) -> bool:
        return any(call[: len(prefix)] == prefix for call in self.calls)

    def count(self, *prefix: str) -> int:
        return sum(1 for call in self.calls if call[: len(prefix)] == prefix)


def install_tool(directory: Path, name: str) -> Path:
    """Create an executable stub so ``shutil.which`` resolves ``name``."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def make_project(argv: tuple[str, ...], context: ExecutionContext) -> None:
    """Generator side effect: create the project directory named by the last argument."""
    target = context.cwd / argv[-1]
    target.mkdir(parents=True)
    (target / "package.json").write_text('{"name": "%s", "scripts": {"dev": "vite"}}' % argv[-1], encoding="utf-8")
    (target / "src").mkdir()
    (target / "src" / "worker.tsx").write_text("export default {}\n", encoding="utf-8")


@pytest.fixture(autouse=True)
def reset_rwboot_logger():
    """Undo handlers installed by CLI runs so caplog sees every record."""
    logger = logging.getLogger("rwboot")
    yield
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def runner() -> CliRunner:
    """Provide a CLI test runner."""
    return CliRunner()


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def bin_dir(tmp_path: Path) -> Path:
    path = tmp_path / "bin"
    path.mkdir()
    return path


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    path = tmp_path / "projects"
    path.mkdir()
    return path


@pytest.fixture
def context(bin_dir: Path, work_dir: Path) -> ExecutionContext:
    return ExecutionContext(cwd=work_dir, env={"PATH": str(bin_dir), "HOME": str(work_dir)})
