"""End-to-end bootstrap sequence.

The steps run strictly in order::

    PrerequisiteCheck -> EnsurePackageManager -> EnsureToolchain -> Scaffold
    -> InstallDependencies -> GenerateEnvConfig -> GenerateTypes
    -> CreateDatabase -> InstallDatabaseClient -> CreateBucket

Only PrerequisiteCheck and Scaffold are fatal; they record a ``failed_fatal``
outcome and re-raise. Every other failure is recorded as ``failed_non_fatal``
and the sequence moves on.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from rwboot.auth import REMOTE_CLI, AuthProbe, AuthState, is_auth_failure
from rwboot.config import SKIP_ENV_VAR, TOKEN_ENV_VAR, BootstrapConfig
from rwboot.context import ExecutionContext
from rwboot.environment import Classification, classify, format_classification
from rwboot.errors import BootstrapError, InputError, MissingRequirement, PrerequisiteError, Suggestion
from rwboot.exit_codes import ExitCode
from rwboot.files import write_project_files
from rwboot.installer import InstallOutcome, ToolInstaller, ToolRequirement
from rwboot.probe import CommandProbe, meets_minimum
from rwboot.runner import CommandResult, CommandRunner, TimeoutRunner
from rwboot.scaffold import ProjectScaffolder, validate_project_name

logger = logging.getLogger(__name__)

TOKEN_URL = "https://dash.cloudflare.com/profile/api-tokens"


class Step(str, Enum):
    PREREQUISITE_CHECK = "PrerequisiteCheck"
    ENSURE_PACKAGE_MANAGER = "EnsurePackageManager"
    ENSURE_TOOLCHAIN = "EnsureToolchain"
    SCAFFOLD = "Scaffold"
    INSTALL_DEPENDENCIES = "InstallDependencies"
    GENERATE_ENV_CONFIG = "GenerateEnvConfig"
    GENERATE_TYPES = "GenerateTypes"
    CREATE_DATABASE = "CreateDatabase"
    INSTALL_DATABASE_CLIENT = "InstallDatabaseClient"
    CREATE_BUCKET = "CreateBucket"


class StepStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED_NON_FATAL = "failed_non_fatal"
    FAILED_FATAL = "failed_fatal"


class FailureCause(str, Enum):
    AUTH = "auth"
    TOOL = "tool"
    REMOTE = "remote"
    DEPENDENCY = "dependency"
    PREREQUISITE = "prerequisite"
    SCAFFOLD = "scaffold"


class StepOutcome(BaseModel):
    name: str
    status: StepStatus
    detail: str = ""
    cause: FailureCause | None = None


class EnvironmentInfo(BaseModel):
    environment_class: str
    signal: str | None = None


class SetupResult(BaseModel):
    project_name: str
    project_dir: str
    package_manager: str | None = None
    environment: EnvironmentInfo | None = None
    steps: list[StepOutcome] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)
    exit_code: int = int(ExitCode.SUCCESS)

    def step(self, name: Step | str) -> StepOutcome | None:
        key = name.value if isinstance(name, Step) else name
        for outcome in self.steps:
            if outcome.name == key:
                return outcome
        return None


def wrangler_requirement(minimum_major: int) -> ToolRequirement:
    return ToolRequirement(
        name=REMOTE_CLI,
        minimum_major=minimum_major,
        install_command=("npm", "install", "-g", "wrangler", "--silent", "--no-audit", "--no-fund"),
        fallback_install_command=("npm", "install", "wrangler", "--silent", "--no-audit", "--no-fund"),
        fallback_path_entry="node_modules/.bin",
        upgrade_cleanup_command=("npm", "uninstall", "-g", "@cloudflare/wrangler"),
    )


PNPM_REQUIREMENT = ToolRequirement(name="pnpm", install_command=("npm", "install", "-g", "pnpm"))

TEST_PACKAGES = ("@types/node", "vitest", "@vitest/ui", "miniflare")
DATABASE_PACKAGES = ("prisma", "@prisma/client", "@prisma/adapter-d1")


class SetupOrchestrator:
    """Sequences probes, installs, scaffolding and provisioning for one run."""

    def __init__(
        self,
        config: BootstrapConfig,
        *,
        runner: CommandRunner | None = None,
        context: ExecutionContext | None = None,
        classification: Classification | None = None,
        marker_exists: Callable[[str], bool] = os.path.exists,
        auth_probe: AuthProbe | None = None,
    ) -> None:
        self.config = config
        self.runner = runner if runner is not None else TimeoutRunner(config.timeout_backend)
        self.context = context if context is not None else ExecutionContext.from_process(config.cwd)
        self.classification = classification
        self.marker_exists = marker_exists
        self.probe = CommandProbe(self.runner, timeout=config.short_timeout)
        self.installer = ToolInstaller(self.runner, self.probe, timeout=config.install_timeout)
        self.scaffolder = ProjectScaffolder(self.runner, timeout=config.install_timeout)
        self.auth_probe = auth_probe or AuthProbe(self.runner, timeout=config.short_timeout)
        self.result: SetupResult | None = None
        self._next_steps: list[str] = []

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _record(
        self,
        step: Step,
        status: StepStatus,
        detail: str = "",
        cause: FailureCause | None = None,
    ) -> StepOutcome:
        if self.result is None:
            raise RuntimeError(f"{step.value} recorded outside of run()")
        outcome = StepOutcome(name=step.value, status=status, detail=detail, cause=cause)
        self.result.steps.append(outcome)
        if status is StepStatus.FAILED_NON_FATAL:
            logger.warning("%s: %s", step.value, detail)
        elif status is StepStatus.SKIPPED:
            logger.info("%s skipped: %s", step.value, detail)
        elif status is StepStatus.SUCCESS:
            logger.info("%s: %s", step.value, detail)
        return outcome

    def _hint(self, *lines: str) -> None:
        for line in lines:
            if line not in self._next_steps:
                self._next_steps.append(line)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(self, project_name: str | None = None, parent_dir: Path | None = None) -> SetupResult:
        """Execute the full sequence and return the report.

        :class:`InputError` (bad name or parent directory) is raised before
        anything runs. :class:`PrerequisiteError` and :class:`ScaffoldError`
        propagate; the partial result stays available on ``self.result``.
        """
        name = validate_project_name(project_name or self.config.project_name)
        origin = self.context.cwd.resolve()
        parent = origin / parent_dir if parent_dir is not None else origin
        if not parent.is_dir():
            raise InputError(
                f"Parent directory does not exist: {parent}",
                code="E2002",
                suggestion=Suggestion(
                    action="choose an existing directory",
                    fix="Create the directory first or pass a different --directory.",
                ),
                details={"directory": str(parent)},
            )

        # The host is judged by where rwboot was started, not where the project goes.
        if self.classification is None:
            self.classification = classify(self.context.env, str(origin), self.marker_exists)
        self.context = self.context.with_cwd(parent)
        logger.info("Detected %s", format_classification(self.classification))
        if self.classification.is_cloud:
            logger.info("Skipping Cloudflare setup in cloud environment")

        self.result = SetupResult(
            project_name=name,
            project_dir=str(parent / name),
            environment=EnvironmentInfo(
                environment_class=self.classification.environment_class.value,
                signal=self.classification.signal,
            ),
        )
        self._next_steps = []

        self.check_prerequisites()
        package_manager = self.ensure_package_manager()
        self.result.package_manager = package_manager
        self.ensure_toolchain()

        project_dir = self.scaffold(name, parent)
        project_ctx = self.context.with_cwd(project_dir)

        self.install_dependencies(package_manager, project_ctx)
        self.generate_env_config(project_dir)
        self.generate_types(project_ctx)

        self.provision(Step.CREATE_DATABASE, project_ctx, ("d1", "create", f"{name}-db"))
        self.install_database_client(package_manager, project_ctx)
        self.provision(Step.CREATE_BUCKET, project_ctx, ("r2", "bucket", "create", f"{name}-storage"))

        self.result.next_steps = list(self._next_steps)
        return self.result

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def check_prerequisites(self) -> None:
        logger.info("Checking prerequisites...")
        ctx = self.context
        minimum = self.config.min_node_major
        missing: list[MissingRequirement] = []

        node = self.probe.probe("node", ctx)
        if not (node.is_present and meets_minimum(node.version, minimum)):
            missing.append(MissingRequirement(
                name=f"Node.js ≥{minimum}",
                found=f"v{node.version}" if node.is_present else "not installed",
                remedy=f"Node.js: https://nodejs.org/ (use LTS version ≥{minimum})",
            ))
        if not ctx.has("git"):
            missing.append(MissingRequirement(name="Git", remedy="Git: https://git-scm.com/downloads"))
        if not ctx.has("pnpm") and not ctx.has("npm"):
            missing.append(MissingRequirement(
                name="npm or pnpm",
                remedy="npm: ships with Node.js, https://nodejs.org/",
            ))

        if missing:
            error = PrerequisiteError(missing)
            self._record(Step.PREREQUISITE_CHECK, StepStatus.FAILED_FATAL, error.message, FailureCause.PREREQUISITE)
            raise error

        self._record(Step.PREREQUISITE_CHECK, StepStatus.SUCCESS, f"Node.js v{node.version}, Git, package manager found")

    def ensure_package_manager(self) -> str:
        outcome = self.installer.ensure(PNPM_REQUIREMENT, self.context)
        self.context = self.context.apply(outcome.patch)
        if outcome.method == "existing":
            self._record(Step.ENSURE_PACKAGE_MANAGER, StepStatus.SUCCESS, "pnpm is already available")
            return "pnpm"
        if outcome.installed:
            self._record(Step.ENSURE_PACKAGE_MANAGER, StepStatus.SUCCESS, f"pnpm {outcome.result.describe()} installed")
            return "pnpm"

        self._record(
            Step.ENSURE_PACKAGE_MANAGER,
            StepStatus.FAILED_NON_FATAL,
            "Failed to install pnpm globally; using npm instead",
            FailureCause.TOOL,
        )
        self._hint("Install pnpm manually: npm install -g pnpm (with sudo if needed)")
        return "npm"

    def ensure_toolchain(self) -> InstallOutcome:
        logger.info("Checking Wrangler installation...")
        outcome = self.installer.ensure(wrangler_requirement(self.config.min_wrangler_major), self.context)
        self.context = self.context.apply(outcome.patch)

        version = outcome.result.describe()
        if outcome.method == "existing":
            self._record(Step.ENSURE_TOOLCHAIN, StepStatus.SUCCESS, f"Wrangler {version} is already installed")
        elif outcome.method == "primary":
            self._record(Step.ENSURE_TOOLCHAIN, StepStatus.SUCCESS, f"Wrangler {version} installed globally")
        elif outcome.method == "fallback":
            entries = ", ".join(outcome.patch.path_entries) if outcome.patch else ""
            self._record(
                Step.ENSURE_TOOLCHAIN,
                StepStatus.SUCCESS,
                f"Wrangler {version} installed locally (search path extended with {entries})",
            )
        else:
            self._record(
                Step.ENSURE_TOOLCHAIN,
                StepStatus.FAILED_NON_FATAL,
                "Failed to install Wrangler; Cloudflare features are unavailable",
                FailureCause.TOOL,
            )
            self._hint("Install Wrangler manually: npm install -g wrangler")
        return outcome

    def scaffold(self, name: str, parent: Path) -> Path:
        try:
            detail = self.scaffolder.scaffold(name, parent, self.context)
        except BootstrapError as exc:
            self._record(Step.SCAFFOLD, StepStatus.FAILED_FATAL, exc.message, FailureCause.SCAFFOLD)
            raise
        self._record(Step.SCAFFOLD, StepStatus.SUCCESS, detail)
        return parent / name

    def _install(self, package_manager: str, ctx: ExecutionContext, *args: str) -> CommandResult:
        timeout = self.config.dependency_timeout
        if package_manager == "pnpm":
            return self.runner.run(timeout, "pnpm", *args, "--silent", context=ctx)
        return self.runner.run(timeout, "npm", *args, "--silent", "--no-audit", "--no-fund", context=ctx)

    def install_dependencies(self, package_manager: str, ctx: ExecutionContext) -> None:
        logger.info("Installing dependencies with %s (this may take a few minutes)...", package_manager)
        result = self._install(package_manager, ctx, "install")
        used = package_manager
        if not result.ok and package_manager == "pnpm":
            logger.warning("pnpm install failed, trying npm...")
            result = self._install("npm", ctx, "install")
            used = "npm after pnpm failed"

        if not result.ok:
            reason = "timed out" if result.timed_out else f"exited with {result.exit_code}"
            self._record(
                Step.INSTALL_DEPENDENCIES,
                StepStatus.FAILED_NON_FATAL,
                f"Failed to install dependencies ({reason})",
                FailureCause.DEPENDENCY,
            )
            self._hint(f"Install dependencies: cd {ctx.cwd.name} && {package_manager} install")
            return

        detail = f"Dependencies installed with {used}"
        add = "add" if package_manager == "pnpm" else "install"
        tooling = self._install(package_manager, ctx, add, "-D", *TEST_PACKAGES)
        if not tooling.ok:
            logger.warning("Testing dependencies could not be installed")
            detail += "; testing dependencies not installed"
            self._hint(f"Install testing dependencies: {package_manager} {add} -D {' '.join(TEST_PACKAGES)}")
        self._record(Step.INSTALL_DEPENDENCIES, StepStatus.SUCCESS, detail)

    def generate_env_config(self, project_dir: Path) -> None:
        logger.info("Creating development configuration...")
        try:
            created = write_project_files(project_dir)
        except OSError as exc:
            self._record(
                Step.GENERATE_ENV_CONFIG,
                StepStatus.FAILED_NON_FATAL,
                f"Could not write development files: {exc}",
                FailureCause.TOOL,
            )
            return
        self._record(Step.GENERATE_ENV_CONFIG, StepStatus.SUCCESS, f"Wrote {', '.join(created)}")

    def remote_skip_reason(self) -> str | None:
        """Why remote steps are skipped for this run, or ``None``."""
        if self.config.skip_cloud:
            return f"{SKIP_ENV_VAR}=true"
        if self.classification is not None and self.classification.is_cloud:
            return f"cloud environment detected ({self.classification.signal})"
        return None

    def _remote_skipped(self, step: Step) -> bool:
        reason = self.remote_skip_reason()
        if reason is None:
            return False
        self._record(step, StepStatus.SKIPPED, reason)
        name = self.result.project_name if self.result else ""
        self._hint(
            f"To enable Cloudflare features later: export {TOKEN_ENV_VAR}=your_token",
            f"wrangler d1 create {name}-db",
            f"wrangler r2 bucket create {name}-storage",
            "wrangler types",
        )
        return True

    def _auth_hints(self) -> None:
        if self.config.token_present():
            self._hint(f"Verify {TOKEN_ENV_VAR} has Workers, D1, and R2 permissions")
        else:
            self._hint(f"Set API token: export {TOKEN_ENV_VAR}=your_token (get one from {TOKEN_URL})")
        self._hint("Or login via browser: wrangler login")

    def _run_remote(self, step: Step, ctx: ExecutionContext, args: tuple[str, ...]) -> None:
        result = self.runner.run(self.config.remote_timeout, REMOTE_CLI, *args, context=ctx)
        command = " ".join((REMOTE_CLI, *args))
        if result.ok:
            self._record(step, StepStatus.SUCCESS, f"{command} completed successfully")
            return
        if is_auth_failure(result.output, self.auth_probe.patterns):
            self._record(step, StepStatus.FAILED_NON_FATAL, f"{command} failed: Authentication required", FailureCause.AUTH)
            self._auth_hints()
        else:
            reason = "timed out" if result.timed_out else "failed or resource already exists"
            self._record(step, StepStatus.FAILED_NON_FATAL, f"{command} {reason}", FailureCause.REMOTE)
        self._hint(command)

    def generate_types(self, ctx: ExecutionContext) -> None:
        if self._remote_skipped(Step.GENERATE_TYPES):
            return
        if not ctx.has(REMOTE_CLI):
            self._record(
                Step.GENERATE_TYPES,
                StepStatus.FAILED_NON_FATAL,
                "Wrangler not available - project will use basic TypeScript types",
                FailureCause.TOOL,
            )
            return
        self._run_remote(Step.GENERATE_TYPES, ctx, ("types",))

    def provision(self, step: Step, ctx: ExecutionContext, args: tuple[str, ...]) -> None:
        """Create one remote resource; auth is re-checked right before acting."""
        if self._remote_skipped(step):
            return

        state = self.auth_probe.check_auth(ctx)
        if state is not AuthState.AUTHENTICATED:
            detail = "auth required"
            if state is AuthState.INDETERMINATE:
                detail = "auth required (authentication state could not be verified)"
            self._record(step, StepStatus.FAILED_NON_FATAL, detail, FailureCause.AUTH)
            self._auth_hints()
            self._hint(" ".join((REMOTE_CLI, *args)))
            return

        self._run_remote(step, ctx, args)

    def install_database_client(self, package_manager: str, ctx: ExecutionContext) -> None:
        if self._remote_skipped(Step.INSTALL_DATABASE_CLIENT):
            return
        add = "add" if package_manager == "pnpm" else "install"
        logger.info("Installing Prisma with D1 adapter...")
        result = self._install(package_manager, ctx, add, *DATABASE_PACKAGES)
        if result.ok:
            self._record(Step.INSTALL_DATABASE_CLIENT, StepStatus.SUCCESS, "Prisma with D1 adapter installed")
            return
        self._record(
            Step.INSTALL_DATABASE_CLIENT,
            StepStatus.FAILED_NON_FATAL,
            "Failed to install Prisma packages",
            FailureCause.DEPENDENCY,
        )
        self._hint(f"Install Prisma: {package_manager} {add} {' '.join(DATABASE_PACKAGES)}")
