"""Remote-platform authentication probing.

``wrangler`` only reports identity as human-readable text, so the state is
derived by matching known phrases. The phrases live in :class:`AuthPatterns`
and can be replaced without touching the orchestration code.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from rwboot.context import ExecutionContext
from rwboot.runner import CommandRunner

logger = logging.getLogger(__name__)

REMOTE_CLI = "wrangler"


class AuthState(str, Enum):
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"
    INDETERMINATE = "indeterminate"


def _compile(phrases: tuple[str, ...]) -> re.Pattern[str]:
    return re.compile("|".join(re.escape(p) for p in phrases))


@dataclass(frozen=True)
class AuthPatterns:
    """Output signatures used to interpret the remote CLI."""

    identity_failure: tuple[str, ...] = (
        "Unable to authenticate",
        "Not logged in",
        "API token",
        "login required",
        "10001",
    )
    identity_success: tuple[str, ...] = (
        "You are logged in",
        "associated with the email",
    )
    api_failure: tuple[str, ...] = (
        "Unable to authenticate",
        "10001",
        "Authentication failed",
        "API token",
    )
    identity_command: tuple[str, ...] = (REMOTE_CLI, "whoami")
    listing_command: tuple[str, ...] = (REMOTE_CLI, "r2", "bucket", "list")

    _identity_failure_re: re.Pattern[str] = field(init=False, repr=False, compare=False)
    _identity_success_re: re.Pattern[str] = field(init=False, repr=False, compare=False)
    _api_failure_re: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_identity_failure_re", _compile(self.identity_failure))
        object.__setattr__(self, "_identity_success_re", _compile(self.identity_success))
        object.__setattr__(self, "_api_failure_re", _compile(self.api_failure))

    def identity_failed(self, output: str) -> bool:
        return bool(self._identity_failure_re.search(output))

    def identity_succeeded(self, output: str) -> bool:
        return bool(self._identity_success_re.search(output))

    def api_failed(self, output: str) -> bool:
        return bool(self._api_failure_re.search(output))


DEFAULT_PATTERNS = AuthPatterns()


def is_auth_failure(output: str, patterns: AuthPatterns = DEFAULT_PATTERNS) -> bool:
    """True if a remote command's output carries an authentication-error signature."""
    return patterns.api_failed(output)


class AuthProbe:
    """Two-stage identity check; the state is re-derived on every call."""

    def __init__(
        self,
        runner: CommandRunner,
        *,
        timeout: float = 60,
        patterns: AuthPatterns = DEFAULT_PATTERNS,
    ) -> None:
        self.runner = runner
        self.timeout = timeout
        self.patterns = patterns

    def check_auth(self, context: ExecutionContext) -> AuthState:
        identity_cmd, *identity_args = self.patterns.identity_command
        if not context.has(identity_cmd):
            logger.debug("%s not available; authentication state unknown", identity_cmd)
            return AuthState.INDETERMINATE

        identity = self.runner.run(self.timeout, identity_cmd, *identity_args, context=context)
        if identity.timed_out:
            return AuthState.INDETERMINATE
        if self.patterns.identity_failed(identity.output) or self.patterns.api_failed(identity.output):
            return AuthState.UNAUTHENTICATED
        if not self.patterns.identity_succeeded(identity.output):
            return AuthState.INDETERMINATE

        # Identity checks pass with some malformed tokens; confirm with a real API call.
        listing_cmd, *listing_args = self.patterns.listing_command
        listing = self.runner.run(self.timeout, listing_cmd, *listing_args, context=context)
        if self.patterns.api_failed(listing.output):
            return AuthState.UNAUTHENTICATED

        return AuthState.AUTHENTICATED
