"""
sshm exception hierarchy.

All errors raised by the store, the resolver and the session controller
derive from SSHMError so the CLI can report them with one handler.
"""

from __future__ import annotations


class SSHMError(Exception):
    """Base class for all sshm errors."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self._original_cause = cause

    def __str__(self) -> str:
        return self.message


# =============================================================================
# Lookup errors
# =============================================================================


class NotFoundError(SSHMError):
    """An alias, server or credential is absent."""


class ServerNotFoundError(NotFoundError):
    """No ServerEntry is saved under the alias."""

    def __init__(self, alias: str) -> None:
        self.alias = alias
        super().__init__(f"Server not found: {alias}")


class CredentialNotFoundError(NotFoundError):
    """No credential of the requested kind is stored for the alias."""

    def __init__(self, alias: str, kind: str = "key") -> None:
        self.alias = alias
        self.kind = kind
        super().__init__(f"No {kind} content stored for server: {alias}")


# =============================================================================
# Key material errors
# =============================================================================


class InvalidContentError(SSHMError):
    """Key material is missing the private-key envelope."""

    def __init__(self, alias: str, reason: str = "missing BEGIN/PRIVATE KEY markers") -> None:
        self.alias = alias
        self.reason = reason
        super().__init__(f"Invalid key content for server {alias}: {reason}")


class KeyFileError(SSHMError):
    """A key file or the keys directory could not be written."""

    def __init__(self, path: str, cause: BaseException | None = None) -> None:
        self.path = path
        detail = f": {cause}" if cause else ""
        super().__init__(f"Could not write key file {path}{detail}", cause=cause)


class PermissionFailureError(SSHMError):
    """File mode could not be restricted to the owner.

    Never fatal: the store catches it and reports a warning, since the
    file still works for most ssh builds.
    """

    def __init__(self, path: str, cause: BaseException | None = None) -> None:
        self.path = path
        super().__init__(f"Could not set mode 600 on {path}", cause=cause)


# =============================================================================
# Session errors
# =============================================================================


class SpawnError(SSHMError):
    """The remote-login subprocess could not be started."""

    def __init__(self, command: str, cause: BaseException | None = None) -> None:
        self.command = command
        detail = f": {cause}" if cause else ""
        super().__init__(f"Failed to start {command}{detail}", cause=cause)


class SubprocessExitError(SSHMError):
    """The remote-login subprocess exited with a non-zero status."""

    def __init__(self, alias: str, exit_code: int) -> None:
        self.alias = alias
        self.exit_code = exit_code
        message = f"SSH session for {alias} exited with code {exit_code}"
        if exit_code == 255:
            message += " (connection or authentication failed; check key/auth configuration)"
        else:
            message += " (check key/auth configuration if this was unexpected)"
        super().__init__(message)


__all__ = [
    "SSHMError",
    "NotFoundError",
    "ServerNotFoundError",
    "CredentialNotFoundError",
    "InvalidContentError",
    "KeyFileError",
    "PermissionFailureError",
    "SpawnError",
    "SubprocessExitError",
]
