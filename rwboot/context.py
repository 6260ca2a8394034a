"""Explicit execution context threaded through every external command."""

from __future__ import annotations

import os
import shutil
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType


@dataclass(frozen=True)
class EnvironmentPatch:
    """Changes an install attempt asks later steps to see.

    Currently only search-path entries, prepended in order.
    """

    path_entries: tuple[str, ...] = ()

    def is_empty(self) -> bool:
        return not self.path_entries


@dataclass(frozen=True)
class ExecutionContext:
    """Working directory, environment and extra search-path entries.

    Instances never touch ``os.environ``; ``apply`` and ``with_cwd`` return new
    contexts so a run can be replayed in tests without mutating the process.
    """

    cwd: Path
    env: Mapping[str, str] = field(default_factory=dict)
    extra_path: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "cwd", Path(self.cwd))
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))

    @classmethod
    def from_process(cls, cwd: Path | None = None) -> ExecutionContext:
        return cls(cwd=cwd if cwd is not None else Path.cwd(), env=dict(os.environ))

    def search_path(self) -> str:
        base = self.env.get("PATH", "")
        entries = [*self.extra_path]
        if base:
            entries.append(base)
        return os.pathsep.join(entries)

    def which(self, name: str) -> str | None:
        """Resolve an executable against this context's search path."""
        return shutil.which(name, path=self.search_path())

    def has(self, name: str) -> bool:
        return self.which(name) is not None

    def subprocess_env(self) -> dict[str, str]:
        merged = dict(self.env)
        merged["PATH"] = self.search_path()
        return merged

    def getenv(self, key: str, default: str = "") -> str:
        return self.env.get(key, default)

    def with_cwd(self, cwd: Path) -> ExecutionContext:
        return ExecutionContext(cwd=cwd, env=dict(self.env), extra_path=self.extra_path)

    def apply(self, patch: EnvironmentPatch | None) -> ExecutionContext:
        if patch is None or patch.is_empty():
            return self
        new_entries = tuple(p for p in patch.path_entries if p not in self.extra_path)
        return ExecutionContext(
            cwd=self.cwd,
            env=dict(self.env),
            extra_path=new_entries + self.extra_path,
        )
