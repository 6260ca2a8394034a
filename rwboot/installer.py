"""Ensure optional tools are installed, with a fallback install method."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from rwboot.context import EnvironmentPatch, ExecutionContext
from rwboot.errors import InputError
from rwboot.probe import CommandProbe, ProbeResult, meets_minimum
from rwboot.runner import CommandResult, CommandRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolRequirement:
    """A tool the bootstrap wants, and how to obtain it."""

    name: str
    install_command: tuple[str, ...]
    minimum_major: int | None = None
    fallback_install_command: tuple[str, ...] | None = None
    fallback_path_entry: str | None = None
    """Search-path entry, relative to the context cwd, exposed by the fallback."""
    upgrade_cleanup_command: tuple[str, ...] | None = None
    version_args: tuple[str, ...] = ("--version",)

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise InputError("Tool requirement name must not be empty", code="E2020")
        if not self.install_command:
            raise InputError(
                f"Tool requirement {self.name!r} needs an install command",
                code="E2021",
            )


@dataclass(frozen=True)
class InstallOutcome:
    """What :meth:`ToolInstaller.ensure` found or did."""

    result: ProbeResult
    method: str | None = None
    """``existing``, ``primary``, ``fallback`` or ``None`` when nothing worked."""
    patch: EnvironmentPatch | None = None
    previous: ProbeResult | None = None
    attempts: list[CommandResult] = field(default_factory=list)

    @property
    def installed(self) -> bool:
        return self.result.is_present


class ToolInstaller:
    """Primary install, then fallback; never raises for a failed install."""

    def __init__(
        self,
        runner: CommandRunner,
        probe: CommandProbe,
        *,
        timeout: float = 300,
    ) -> None:
        self.runner = runner
        self.probe = probe
        self.timeout = timeout

    def _satisfied(self, requirement: ToolRequirement, result: ProbeResult) -> bool:
        return result.is_present and meets_minimum(result.version, requirement.minimum_major)

    def ensure(self, requirement: ToolRequirement, context: ExecutionContext) -> InstallOutcome:
        current = self.probe.probe(requirement.name, context, version_args=requirement.version_args)
        if self._satisfied(requirement, current):
            return InstallOutcome(result=current, method="existing", previous=current)

        attempts: list[CommandResult] = []
        if current.is_present:
            logger.warning(
                "%s v%s found, but v%s+ is required. Upgrading...",
                requirement.name,
                current.version,
                requirement.minimum_major,
            )
            if requirement.upgrade_cleanup_command:
                # Best effort: a legacy package may still own the binary name.
                attempts.append(self._run(requirement.upgrade_cleanup_command, context))
        else:
            logger.info("Installing %s...", requirement.name)

        primary = self._run(requirement.install_command, context)
        attempts.append(primary)
        if primary.ok:
            result = self.probe.probe(requirement.name, context, version_args=requirement.version_args)
            if result.is_present:
                logger.info("%s installed successfully", requirement.name)
                return InstallOutcome(result=result, method="primary", previous=current, attempts=attempts)

        if requirement.fallback_install_command is None:
            logger.warning("Failed to install %s", requirement.name)
            return InstallOutcome(result=ProbeResult.absent(), previous=current, attempts=attempts)

        logger.warning(
            "Failed to install %s with %s; trying fallback",
            requirement.name,
            " ".join(requirement.install_command),
        )
        fallback = self._run(requirement.fallback_install_command, context)
        attempts.append(fallback)
        if not fallback.ok:
            logger.warning("Failed to install %s. Some features may not work.", requirement.name)
            return InstallOutcome(result=ProbeResult.absent(), previous=current, attempts=attempts)

        patch = None
        if requirement.fallback_path_entry:
            patch = EnvironmentPatch((str(context.cwd / requirement.fallback_path_entry),))
        patched = context.apply(patch)
        result = self.probe.probe(requirement.name, patched, version_args=requirement.version_args)
        if not result.is_present:
            logger.warning("%s fallback install finished but the tool is not on the search path", requirement.name)
            return InstallOutcome(result=ProbeResult.absent(), previous=current, attempts=attempts)

        logger.info("%s installed via fallback", requirement.name)
        return InstallOutcome(
            result=result,
            method="fallback",
            patch=patch,
            previous=current,
            attempts=attempts,
        )

    def _run(self, command: tuple[str, ...], context: ExecutionContext) -> CommandResult:
        name, *args = command
        return self.runner.run(self.timeout, name, *args, context=context)
