"""
sshm data models.
"""

from sshm.models.credential import (
    KEY_ENVELOPE_MARKERS,
    CredentialRecord,
    KeyCredential,
    KeyFileStatus,
    KeyRegenResult,
    PasswordCredential,
    credential_adapter,
    has_key_envelope,
)
from sshm.models.server import DEFAULT_SSH_PORT, AuthMethod, ServerEntry
from sshm.models.session import SessionResult

__all__ = [
    # Servers
    "AuthMethod",
    "ServerEntry",
    "DEFAULT_SSH_PORT",
    # Credentials
    "CredentialRecord",
    "PasswordCredential",
    "KeyCredential",
    "KeyFileStatus",
    "KeyRegenResult",
    "KEY_ENVELOPE_MARKERS",
    "credential_adapter",
    "has_key_envelope",
    # Sessions
    "SessionResult",
]
