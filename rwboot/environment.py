"""Host classification: interactive workstation versus cloud, CI or sandbox.

Signals are evaluated in a fixed order and the first one that fires decides
the result:

    1. CI variables  – runners export ``CI``, ``GITHUB_ACTIONS`` and friends.
    2. Proxy variables – hosted sandboxes route traffic through a proxy.
    3. Container markers – ``/.dockerenv`` or a Kubernetes service host.
    4. Workspace paths – cloud IDEs mount projects under ``/workspace``.

The classifier is a pure function of ``(env, cwd, marker_exists)``; callers
compute it once per run and pass the result along.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath


class EnvironmentClass(str, Enum):
    INTERACTIVE = "interactive"
    CLOUD_OR_CI = "cloud_or_ci"


@dataclass(frozen=True)
class Classification:
    """Result of :func:`classify`."""

    environment_class: EnvironmentClass
    signal: str | None = None
    """Description of the signal that matched, ``None`` for interactive hosts."""

    @property
    def is_cloud(self) -> bool:
        return self.environment_class is EnvironmentClass.CLOUD_OR_CI


# ---------------------------------------------------------------------------
# Signal tables
# ---------------------------------------------------------------------------

_CI_VARIABLES: tuple[tuple[str, str], ...] = (
    # (env-var key, descriptive name)
    ("CI", "CI (generic)"),
    ("GITHUB_ACTIONS", "GitHub Actions"),
    ("GITLAB_CI", "GitLab CI"),
    ("JENKINS_URL", "Jenkins"),
    ("CIRCLECI", "CircleCI"),
    ("TRAVIS", "Travis CI"),
    ("BUILDKITE", "Buildkite"),
    ("TF_BUILD", "Azure Pipelines"),
    ("CODEBUILD_BUILD_ID", "AWS CodeBuild"),
    ("TEAMCITY_VERSION", "TeamCity"),
    ("BITBUCKET_PIPELINE_UUID", "Bitbucket Pipelines"),
    ("DRONE", "Drone CI"),
    ("WOODPECKER_CI", "Woodpecker CI"),
)

_PROXY_VARIABLES: tuple[str, ...] = ("HTTP_PROXY", "HTTPS_PROXY", "http_proxy", "https_proxy")

_CONTAINER_MARKERS: tuple[str, ...] = ("/.dockerenv",)
_CONTAINER_VARIABLES: tuple[str, ...] = ("KUBERNETES_SERVICE_HOST",)

_WORKSPACE_SEGMENT = "workspace"


# ---------------------------------------------------------------------------
# Individual checks (each returns a signal description or None)
# ---------------------------------------------------------------------------

def _is_set(env: Mapping[str, str], key: str) -> bool:
    return bool(env.get(key, "").strip())


def _check_ci(env: Mapping[str, str]) -> str | None:
    for key, name in _CI_VARIABLES:
        if _is_set(env, key):
            return f"{name} ({key} is set)"
    return None


def _check_proxy(env: Mapping[str, str]) -> str | None:
    for key in _PROXY_VARIABLES:
        if _is_set(env, key):
            return f"proxy configured ({key} is set)"
    return None


def _check_container(env: Mapping[str, str], marker_exists: Callable[[str], bool]) -> str | None:
    for marker in _CONTAINER_MARKERS:
        if marker_exists(marker):
            return f"container ({marker} exists)"
    for key in _CONTAINER_VARIABLES:
        if _is_set(env, key):
            return f"container orchestration ({key} is set)"
    return None


def _check_workspace(cwd: str | os.PathLike[str]) -> str | None:
    """Match a path segment beginning with ``workspace`` (``/workspace``, ``/workspaces``)."""
    for part in PurePath(cwd).parts:
        if part.lower().startswith(_WORKSPACE_SEGMENT):
            return f"workspace path ({cwd})"
    return None


# ---------------------------------------------------------------------------
# Assembler
# ---------------------------------------------------------------------------

def classify(
    env: Mapping[str, str] | None = None,
    cwd: str | os.PathLike[str] | None = None,
    marker_exists: Callable[[str], bool] = os.path.exists,
) -> Classification:
    """Classify the host; the first matching signal short-circuits the rest."""
    env = dict(os.environ) if env is None else env
    cwd = os.getcwd() if cwd is None else cwd

    checks: tuple[Callable[[], str | None], ...] = (
        lambda: _check_ci(env),
        lambda: _check_proxy(env),
        lambda: _check_container(env, marker_exists),
        lambda: _check_workspace(cwd),
    )
    for check in checks:
        signal = check()
        if signal is not None:
            return Classification(EnvironmentClass.CLOUD_OR_CI, signal)
    return Classification(EnvironmentClass.INTERACTIVE)


def format_classification(classification: Classification) -> str:
    if classification.is_cloud:
        return f"cloud/CI environment: {classification.signal}"
    return "interactive local environment"
