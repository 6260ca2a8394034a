"""rwboot: bootstrap a RedwoodSDK sandbox project with Cloudflare bindings."""

from __future__ import annotations

__version__ = "0.1.0"

from rwboot.auth import AuthProbe, AuthState  # noqa: E402
from rwboot.context import EnvironmentPatch, ExecutionContext  # noqa: E402
from rwboot.environment import Classification, EnvironmentClass, classify  # noqa: E402
from rwboot.installer import ToolInstaller, ToolRequirement  # noqa: E402
from rwboot.orchestrator import SetupOrchestrator, SetupResult, StepOutcome, StepStatus  # noqa: E402
from rwboot.probe import CommandProbe, ProbeResult, ProbeStatus  # noqa: E402
from rwboot.runner import CommandResult, TimeoutRunner  # noqa: E402
from rwboot.scaffold import ProjectScaffolder  # noqa: E402

__all__ = [
    "AuthProbe",
    "AuthState",
    "Classification",
    "CommandProbe",
    "CommandResult",
    "EnvironmentClass",
    "EnvironmentPatch",
    "ExecutionContext",
    "ProbeResult",
    "ProbeStatus",
    "ProjectScaffolder",
    "SetupOrchestrator",
    "SetupResult",
    "StepOutcome",
    "StepStatus",
    "TimeoutRunner",
    "ToolInstaller",
    "ToolRequirement",
    "classify",
]
