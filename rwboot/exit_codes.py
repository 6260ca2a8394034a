"""Central exit-code taxonomy for rwboot."""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """Process exit codes used by the bootstrap CLI.

    A run that finished with only non-fatal step failures still exits with
    ``SUCCESS``; the report carries the details.
    """

    SUCCESS = 0
    INVALID_INPUT = 2
    PREREQUISITE_MISSING = 10
    SCAFFOLD_FAILED = 40
    INTERNAL_ERROR = 70
    INTERRUPTED = 130
