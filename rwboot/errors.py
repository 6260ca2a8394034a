"""rwboot error hierarchy and structured error models."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel

from rwboot.exit_codes import ExitCode


def _default_exit_code(category: ErrorCategory) -> ExitCode:
    mapping = {
        ErrorCategory.PREREQUISITE: ExitCode.PREREQUISITE_MISSING,
        ErrorCategory.INPUT: ExitCode.INVALID_INPUT,
        ErrorCategory.SCAFFOLD: ExitCode.SCAFFOLD_FAILED,
        ErrorCategory.INTERNAL: ExitCode.INTERNAL_ERROR,
    }
    return mapping[category]


class ErrorCategory(str, Enum):
    PREREQUISITE = "prerequisite"
    INPUT = "input"
    SCAFFOLD = "scaffold"
    INTERNAL = "internal"


class Suggestion(BaseModel):
    action: str
    fix: str
    example: str | None = None


class MissingRequirement(BaseModel):
    """One missing prerequisite and where to obtain it."""

    name: str
    found: str | None = None
    remedy: str | None = None

    def describe(self) -> str:
        if self.found:
            return f"{self.name} (current: {self.found})"
        return self.name


class BootstrapError(Exception):
    """Base error for failures that abort the whole bootstrap run."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory = ErrorCategory.INTERNAL,
        suggestion: Suggestion | None = None,
        details: dict[str, Any] | None = None,
        exit_code: ExitCode | int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.suggestion = suggestion
        self.details = details or {}
        resolved_exit_code = exit_code if exit_code is not None else _default_exit_code(category)
        self.exit_code = int(resolved_exit_code)

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "category": self.category.value,
            "suggestion": self.suggestion.model_dump() if self.suggestion else None,
            "details": self.details,
        }


class PrerequisiteError(BootstrapError):
    """E1xxx: required runtime, version-control tool or package manager missing."""

    def __init__(
        self,
        missing: list[MissingRequirement],
        code: str = "E1000",
    ) -> None:
        self.missing = list(missing)
        names = ", ".join(item.describe() for item in self.missing)
        remedies = [item.remedy for item in self.missing if item.remedy]
        super().__init__(
            f"Missing required dependencies: {names}",
            code,
            category=ErrorCategory.PREREQUISITE,
            suggestion=Suggestion(
                action="install missing dependencies",
                fix="Install the missing dependencies and run rwboot again.",
                example="; ".join(remedies) or None,
            ),
            details={"missing": [item.model_dump() for item in self.missing]},
        )


class InputError(BootstrapError):
    """E2xxx: invalid project name or option."""

    def __init__(
        self,
        message: str,
        code: str = "E2000",
        suggestion: Suggestion | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            code,
            category=ErrorCategory.INPUT,
            suggestion=suggestion,
            details=details,
        )


class ScaffoldError(BootstrapError):
    """E4xxx: the project directory could not be produced."""

    def __init__(
        self,
        message: str,
        code: str = "E4000",
        attempts: list[str] | None = None,
        suggestion: Suggestion | None = None,
    ) -> None:
        self.attempts = list(attempts or [])
        super().__init__(
            message,
            code,
            category=ErrorCategory.SCAFFOLD,
            suggestion=suggestion,
            details={"attempts": self.attempts},
        )


class InternalError(BootstrapError):
    """E5xxx: unexpected failures inside rwboot itself."""

    def __init__(
        self,
        message: str,
        code: str = "E5000",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            code,
            category=ErrorCategory.INTERNAL,
            details=details,
        )
