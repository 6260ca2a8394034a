"""Output mode resolution for rwboot."""

from __future__ import annotations

import os
from enum import Enum

from rwboot.errors import InputError, Suggestion


class OutputMode(str, Enum):
    TEXT = "text"
    JSON = "json"


OUTPUT_CHOICES = [mode.value for mode in OutputMode]


def parse_output_mode(value: str) -> OutputMode:
    normalized = value.strip().lower()
    for mode in OutputMode:
        if normalized == mode.value:
            return mode
    raise InputError(
        f"Invalid output mode: {value!r}",
        code="E2013",
        suggestion=Suggestion(
            action="choose an output mode",
            fix=f"Use one of: {', '.join(OUTPUT_CHOICES)}.",
            example="RWBOOT_OUTPUT=json",
        ),
        details={"value": value},
    )


def resolve_output_mode(explicit: str | None, configured: str) -> OutputMode:
    """Explicit CLI flag wins over the configured value (``[tool.rwboot]``/``RWBOOT_OUTPUT``)."""
    if explicit is not None:
        return parse_output_mode(explicit)
    return parse_output_mode(configured)


def resolve_no_color(flag: bool = False) -> bool:
    """Return True if color/markup should be disabled."""
    if flag:
        return True
    return bool(os.getenv("NO_COLOR"))
