"""Executable presence and version probing."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum

from rwboot.context import ExecutionContext
from rwboot.runner import CommandRunner

logger = logging.getLogger(__name__)

UNKNOWN_VERSION = "0.0.0"

_VERSION_PATTERN = re.compile(r"\d+\.\d+\.\d+")


class ProbeStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ProbeResult:
    status: ProbeStatus
    version: str | None = None

    @classmethod
    def present(cls, version: str) -> ProbeResult:
        return cls(ProbeStatus.PRESENT, version)

    @classmethod
    def absent(cls) -> ProbeResult:
        return cls(ProbeStatus.ABSENT)

    @classmethod
    def unknown(cls) -> ProbeResult:
        return cls(ProbeStatus.UNKNOWN)

    @property
    def is_present(self) -> bool:
        return self.status is ProbeStatus.PRESENT

    def describe(self) -> str:
        if self.is_present:
            return f"v{self.version}"
        return "not installed" if self.status is ProbeStatus.ABSENT else "unknown"


def extract_version(text: str) -> str:
    """Return the first ``X.Y.Z`` in ``text``, or ``0.0.0`` when there is none."""
    match = _VERSION_PATTERN.search(text or "")
    return match.group(0) if match else UNKNOWN_VERSION


def major_version(version: str | None) -> int:
    if not version:
        return 0
    head = version.strip().lstrip("vV").split(".", 1)[0]
    return int(head) if head.isdigit() else 0


def meets_minimum(version: str | None, minimum_major: int | None) -> bool:
    """Major-version-only comparison; minor and patch levels are ignored."""
    if minimum_major is None:
        return True
    return major_version(version) >= minimum_major


class CommandProbe:
    """Checks whether an executable resolves and what version it reports."""

    def __init__(self, runner: CommandRunner, *, timeout: float = 60) -> None:
        self.runner = runner
        self.timeout = timeout

    def probe(
        self,
        name: str,
        context: ExecutionContext,
        *,
        version_args: tuple[str, ...] = ("--version",),
    ) -> ProbeResult:
        if not context.has(name):
            return ProbeResult.absent()

        result = self.runner.run(self.timeout, name, *version_args, context=context)
        if result.timed_out:
            logger.debug("%s %s timed out", name, " ".join(version_args))
            return ProbeResult.unknown()

        version = extract_version(result.output)
        logger.debug("Probed %s: %s", name, version)
        return ProbeResult.present(version)
