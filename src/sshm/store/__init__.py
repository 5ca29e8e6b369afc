"""
Credential storage: server list, secrets, and regenerated key files.
"""

from sshm.store.credentials import CredentialStore
from sshm.store.keys import is_valid_key_file, write_key_file

__all__ = [
    "CredentialStore",
    "is_valid_key_file",
    "write_key_file",
]
