"""Configuration precedence system for rwboot."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

try:
    import tomllib  # type: ignore[import-not-found]
except ImportError:
    import tomli as tomllib  # type: ignore[import-not-found, no-redef]

from rwboot.errors import InputError, Suggestion

DEFAULT_PROJECT_NAME = "rwsdk-sandbox"
SKIP_ENV_VAR = "SKIP_CLOUDFLARE"
TOKEN_ENV_VAR = "CLOUDFLARE_API_TOKEN"
ENV_PREFIX = "RWBOOT_"

TIMEOUT_BACKENDS = ("auto", "native", "utility", "none")

_INT_KEYS = {
    "short_timeout",
    "remote_timeout",
    "install_timeout",
    "dependency_timeout",
    "min_node_major",
    "min_wrangler_major",
}


def parse_bool(value: Any) -> bool | None:
    """Interpret boolean-ish strings; ``None`` when the value is not one."""
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in ("true", "1", "yes", "on"):
        return True
    if normalized in ("false", "0", "no", "off"):
        return False
    return None


class BootstrapConfig:
    """Resolves configuration through the precedence chain.

    defaults < ``[tool.rwboot]`` in ``pyproject.toml`` < ``RWBOOT_*`` env vars
    < ``SKIP_CLOUDFLARE`` < explicit overrides passed by the CLI.
    """

    def __init__(
        self,
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> None:
        self.cwd = Path(cwd) if cwd is not None else Path.cwd()
        self.env = dict(os.environ if env is None else env)
        self._config: dict[str, Any] = {}
        self._load_defaults()
        self._load_project_config()
        self._load_env_vars()
        self._load_overrides(overrides or {})
        self._validate()

    def _load_defaults(self) -> None:
        self._config = {
            "project_name": DEFAULT_PROJECT_NAME,
            "skip_cloud": False,
            "timeout_backend": "auto",
            "short_timeout": 60,
            "remote_timeout": 120,
            "install_timeout": 300,
            "dependency_timeout": 600,
            "min_node_major": 18,
            "min_wrangler_major": 3,
            "output": "text",
        }

    def _load_project_config(self) -> None:
        """Load from pyproject.toml [tool.rwboot]"""
        path = self.cwd / "pyproject.toml"
        if not path.exists():
            return
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise InputError(
                f"Could not read {path}: {exc}",
                code="E2010",
                suggestion=Suggestion(
                    action="fix pyproject.toml",
                    fix="Correct the TOML syntax or remove the [tool.rwboot] table.",
                ),
                details={"path": str(path)},
            ) from exc
        section = data.get("tool", {}).get("rwboot", {})
        for key, value in section.items():
            self._set(key.replace("-", "_"), value)

    def _load_env_vars(self) -> None:
        """Load from RWBOOT_* environment variables, then SKIP_CLOUDFLARE."""
        for key, value in self.env.items():
            if key.startswith(ENV_PREFIX):
                self._set(key[len(ENV_PREFIX):].lower(), value)

        skip = self.env.get(SKIP_ENV_VAR)
        if skip is not None:
            self._config["skip_cloud"] = skip.strip().lower() == "true"

    def _load_overrides(self, overrides: Mapping[str, Any]) -> None:
        for key, value in overrides.items():
            if value is not None:
                self._set(key, value)

    def _set(self, key: str, value: Any) -> None:
        if key not in self._config:
            return
        if key in _INT_KEYS:
            try:
                self._config[key] = int(value)
            except (TypeError, ValueError) as exc:
                raise InputError(
                    f"Configuration value for {key!r} must be an integer, got {value!r}",
                    code="E2011",
                    details={"key": key, "value": value},
                ) from exc
        elif key == "skip_cloud":
            self._config[key] = bool(parse_bool(value))
        else:
            self._config[key] = str(value) if not isinstance(value, str) else value

    def _validate(self) -> None:
        backend = self._config["timeout_backend"]
        if backend not in TIMEOUT_BACKENDS:
            raise InputError(
                f"Unknown timeout backend: {backend!r}",
                code="E2012",
                suggestion=Suggestion(
                    action="choose a supported backend",
                    fix=f"Use one of: {', '.join(TIMEOUT_BACKENDS)}.",
                    example="RWBOOT_TIMEOUT_BACKEND=auto",
                ),
            )

    def get(self, key: str, default: Any = None) -> Any:
        return self._config.get(key, default)

    @property
    def project_name(self) -> str:
        return self._config["project_name"]

    @property
    def skip_cloud(self) -> bool:
        return self._config["skip_cloud"]

    @property
    def timeout_backend(self) -> str:
        return self._config["timeout_backend"]

    @property
    def short_timeout(self) -> int:
        return self._config["short_timeout"]

    @property
    def remote_timeout(self) -> int:
        return self._config["remote_timeout"]

    @property
    def install_timeout(self) -> int:
        return self._config["install_timeout"]

    @property
    def dependency_timeout(self) -> int:
        return self._config["dependency_timeout"]

    @property
    def min_node_major(self) -> int:
        return self._config["min_node_major"]

    @property
    def min_wrangler_major(self) -> int:
        return self._config["min_wrangler_major"]

    @property
    def output(self) -> str:
        return self._config["output"]

    def token_present(self) -> bool:
        return bool(self.env.get(TOKEN_ENV_VAR, "").strip())
