"""
Credential resolution for PTY sessions.
"""

from __future__ import annotations

from pydantic import SecretStr

from sshm.logging import get_logger
from sshm.models import AuthMethod
from sshm.store import CredentialStore

logger = get_logger(__name__)


class CredentialResolver:
    """Look up the secret to inject for an alias.

    Only password sessions have anything to inject: key sessions get their
    key via ``-i`` on the ssh command line. Values come back wrapped in
    SecretStr so they do not show up in reprs or log lines.
    """

    def __init__(self, store: CredentialStore) -> None:
        self._store = store

    def resolve(self, alias: str, auth_method: AuthMethod) -> SecretStr | None:
        if auth_method is not AuthMethod.PASSWORD:
            return None

        password = self._store.get_password(alias)
        if not password:
            logger.info("No stored password for %s", alias)
            return None

        logger.debug("Resolved stored password for %s", alias)
        return SecretStr(password)
