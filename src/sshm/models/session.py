"""
Session outcome.
"""

from __future__ import annotations

from pydantic import BaseModel

from sshm.exceptions import SubprocessExitError


class SessionResult(BaseModel):
    """How a PTY session ended."""

    alias: str
    exit_code: int
    signal: int | None = None
    secrets_sent: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def raise_for_status(self) -> None:
        """Raise SubprocessExitError for a non-zero exit."""
        if not self.ok:
            raise SubprocessExitError(self.alias, self.exit_code)

    def __str__(self) -> str:
        if self.signal is not None:
            return f"SessionResult({self.alias}, killed by signal {self.signal})"
        return f"SessionResult({self.alias}, exit {self.exit_code})"
