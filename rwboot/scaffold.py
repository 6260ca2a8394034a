"""Project generation through ``create-rwsdk``."""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path

from rwboot.context import ExecutionContext
from rwboot.errors import InputError, ScaffoldError, Suggestion
from rwboot.runner import CommandResult, CommandRunner

logger = logging.getLogger(__name__)

GENERATOR_PACKAGE = "create-rwsdk"

_INVALID_NAME = re.compile(r"[\\/\x00]")


def validate_project_name(name: str) -> str:
    """Reject names that would escape the parent directory."""
    stripped = (name or "").strip()
    if not stripped or stripped in (".", "..") or _INVALID_NAME.search(stripped):
        raise InputError(
            f"Invalid project name: {name!r}",
            code="E2001",
            suggestion=Suggestion(
                action="choose a plain directory name",
                fix="Use a name without path separators.",
                example="rwboot my-app",
            ),
            details={"name": name},
        )
    return stripped


def _describe(result: CommandResult) -> str:
    if result.timed_out:
        return f"`{result.command_line}` timed out"
    return f"`{result.command_line}` exited with {result.exit_code}"


class ProjectScaffolder:
    """Materializes a fresh project directory; re-running always starts clean."""

    def __init__(self, runner: CommandRunner, *, timeout: float = 300) -> None:
        self.runner = runner
        self.timeout = timeout

    def scaffold(self, name: str, parent_dir: Path, context: ExecutionContext) -> str:
        """Create ``parent_dir / name`` and return a detail line for the report.

        Raises :class:`ScaffoldError` if the directory does not exist after the
        primary and fallback attempts.
        """
        name = validate_project_name(name)
        parent_dir = Path(parent_dir)
        target = parent_dir / name

        if target.exists():
            logger.warning("Directory %s already exists - removing and recreating", target)
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            else:
                target.unlink()

        logger.info("Creating RedwoodSDK project: %s", name)
        workdir = context.with_cwd(parent_dir)
        primary = self.runner.run(
            self.timeout, "npx", "-y", GENERATOR_PACKAGE, name, context=workdir
        )
        if primary.ok and target.is_dir():
            logger.info("Project created successfully")
            return f"created {target}"

        attempts = [_describe(primary)]
        logger.warning("npx command timed out or failed, trying alternative approach...")

        install = self.runner.run(
            self.timeout, "npm", "install", "-g", GENERATOR_PACKAGE, "--silent", context=workdir
        )
        attempts.append(_describe(install))
        generate = self.runner.run(self.timeout, GENERATOR_PACKAGE, name, context=workdir)
        attempts.append(_describe(generate))

        if not generate.ok or not target.is_dir():
            raise ScaffoldError(
                f"Failed to create RedwoodSDK project directory {target}",
                attempts=attempts,
                suggestion=Suggestion(
                    action="create the project manually",
                    fix="Check network access to the npm registry, then retry.",
                    example=f"npx -y {GENERATOR_PACKAGE} {name}",
                ),
            )

        logger.info("Project created successfully (fallback)")
        return f"created {target} via fallback (global {GENERATOR_PACKAGE} install after {attempts[0]})"
