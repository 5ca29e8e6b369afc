"""
sshm: saved SSH servers with automatic login.

Stores server aliases and their credentials, then runs ssh on a
pseudo-terminal and answers password and host-key prompts on your behalf.

Usage:
    >>> import asyncio
    >>> from sshm import CredentialStore, connect, get_settings
    >>> store = CredentialStore.from_settings(get_settings())
    >>> result = asyncio.run(connect("db1", store=store))
"""

from sshm.config import SSHMSettings, configure_settings, get_settings
from sshm.exceptions import (
    CredentialNotFoundError,
    InvalidContentError,
    KeyFileError,
    NotFoundError,
    PermissionFailureError,
    ServerNotFoundError,
    SpawnError,
    SSHMError,
    SubprocessExitError,
)
from sshm.models import AuthMethod, ServerEntry, SessionResult
from sshm.resolver import CredentialResolver
from sshm.store import CredentialStore
from sshm.terminal import PtySession, connect

__version__ = "1.1.0"

__all__ = [
    # Config
    "SSHMSettings",
    "get_settings",
    "configure_settings",
    # Store
    "CredentialStore",
    "CredentialResolver",
    # Models
    "AuthMethod",
    "ServerEntry",
    "SessionResult",
    # Session
    "PtySession",
    "connect",
    # Errors
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
