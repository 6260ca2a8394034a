"""Run external commands with a bounded wall-clock budget.

Enforcement degrades in three tiers: the native ``subprocess`` timeout with
process-tree termination, then a POSIX ``timeout``/``gtimeout`` utility found
on the context search path, then unbounded execution with a warning. Hosts
without process groups (Windows) stay on the native tier and stop the tree
with ``taskkill``.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from rwboot.context import ExecutionContext

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124
NOT_EXECUTABLE_EXIT_CODE = 126
NOT_FOUND_EXIT_CODE = 127

_TIMEOUT_UTILITIES = ("timeout", "gtimeout")


class TimeoutBackend(str, Enum):
    NATIVE = "native"
    UTILITY = "utility"
    NONE = "none"


@dataclass(frozen=True)
class CommandResult:
    """Exit status and raw text output of one external command."""

    argv: tuple[str, ...]
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    enforced: bool = True

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out

    @property
    def output(self) -> str:
        """stdout and stderr combined, the way ``2>&1`` would show them."""
        parts = [part for part in (self.stdout, self.stderr) if part]
        return "\n".join(parts)

    @property
    def command_line(self) -> str:
        return " ".join(self.argv)


class CommandRunner(Protocol):
    def run(
        self,
        duration: float,
        command: str,
        *args: str,
        context: ExecutionContext,
        cwd: Path | None = None,
    ) -> CommandResult: ...


def process_groups_supported() -> bool:
    """Return True if child process groups can be terminated on this host."""
    return hasattr(os, "killpg") and hasattr(os, "setsid")


def native_timeout_supported() -> bool:
    """Return True if a timed-out child and its descendants can be stopped."""
    return process_groups_supported() or os.name == "nt"


def utility_timeout_supported() -> bool:
    """Return True if a ``timeout`` found on the search path is the coreutils one.

    Windows ships an unrelated ``timeout.exe`` that only pauses the console.
    """
    return os.name == "posix"


def resolve_backend(preference: str, context: ExecutionContext) -> tuple[TimeoutBackend, str | None]:
    """Pick the strongest enforcement allowed by ``preference``.

    Returns the backend and, for ``UTILITY``, the resolved utility path.
    """
    if preference in ("auto", "native") and native_timeout_supported():
        return TimeoutBackend.NATIVE, None

    if preference in ("auto", "utility") and utility_timeout_supported():
        for name in _TIMEOUT_UTILITIES:
            path = context.which(name)
            if path is not None:
                return TimeoutBackend.UTILITY, path

    return TimeoutBackend.NONE, None


def _kill_tree(proc: subprocess.Popen[str]) -> None:
    if process_groups_supported():
        try:
            os.killpg(proc.pid, signal.SIGKILL)
            return
        except (ProcessLookupError, PermissionError):
            pass
    elif os.name == "nt":
        try:
            subprocess.run(
                ["taskkill", "/F", "/T", "/PID", str(proc.pid)],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
        except OSError as exc:
            logger.debug("taskkill failed for pid %s: %s", proc.pid, exc)
    proc.kill()


class TimeoutRunner:
    """Blocking command runner used for every external invocation."""

    def __init__(self, backend: str = "auto") -> None:
        self.backend = backend

    def run(
        self,
        duration: float,
        command: str,
        *args: str,
        context: ExecutionContext,
        cwd: Path | None = None,
    ) -> CommandResult:
        argv = (command, *args)
        workdir = Path(cwd) if cwd is not None else context.cwd

        executable = context.which(command)
        if executable is None:
            logger.debug("Command not found: %s", command)
            return CommandResult(
                argv=argv,
                exit_code=NOT_FOUND_EXIT_CODE,
                stderr=f"{command}: command not found",
            )

        backend, utility = resolve_backend(self.backend, context)
        logger.debug("Running (%s, %ss): %s", backend.value, duration, " ".join(argv))

        try:
            if backend is TimeoutBackend.NATIVE:
                return self._run_native(argv, executable, duration, workdir, context)
            if backend is TimeoutBackend.UTILITY and utility is not None:
                return self._run_utility(argv, executable, utility, duration, workdir, context)
            return self._run_unbounded(argv, executable, workdir, context)
        except PermissionError as exc:
            return CommandResult(argv=argv, exit_code=NOT_EXECUTABLE_EXIT_CODE, stderr=str(exc))
        except FileNotFoundError as exc:
            return CommandResult(argv=argv, exit_code=NOT_FOUND_EXIT_CODE, stderr=str(exc))

    def _run_native(
        self,
        argv: tuple[str, ...],
        executable: str,
        duration: float,
        workdir: Path,
        context: ExecutionContext,
    ) -> CommandResult:
        proc = subprocess.Popen(
            [executable, *argv[1:]],
            cwd=str(workdir),
            env=context.subprocess_env(),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            start_new_session=process_groups_supported(),
        )
        try:
            stdout, stderr = proc.communicate(timeout=duration)
        except subprocess.TimeoutExpired:
            _kill_tree(proc)
            stdout, stderr = proc.communicate()
            logger.debug("Timed out after %ss: %s", duration, " ".join(argv))
            return CommandResult(
                argv=argv,
                exit_code=TIMEOUT_EXIT_CODE,
                stdout=stdout or "",
                stderr=stderr or "",
                timed_out=True,
            )
        except KeyboardInterrupt:
            _kill_tree(proc)
            proc.wait()
            raise
        return CommandResult(argv=argv, exit_code=proc.returncode, stdout=stdout, stderr=stderr)

    def _run_utility(
        self,
        argv: tuple[str, ...],
        executable: str,
        utility: str,
        duration: float,
        workdir: Path,
        context: ExecutionContext,
    ) -> CommandResult:
        completed = subprocess.run(
            [utility, f"{duration:g}", executable, *argv[1:]],
            cwd=str(workdir),
            env=context.subprocess_env(),
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            errors="replace",
        )
        return CommandResult(
            argv=argv,
            exit_code=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
            timed_out=completed.returncode == TIMEOUT_EXIT_CODE,
        )

    def _run_unbounded(
        self,
        argv: tuple[str, ...],
        executable: str,
        workdir: Path,
        context: ExecutionContext,
    ) -> CommandResult:
        logger.warning("timeout command not available, running without timeout")
        completed = subprocess.run(
            [executable, *argv[1:]],
            cwd=str(workdir),
            env=context.subprocess_env(),
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            errors="replace",
        )
        return CommandResult(
            argv=argv,
            exit_code=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
            enforced=False,
        )
