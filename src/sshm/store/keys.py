"""
Key-file helpers.

Key files are a cache of the stored key records: they can always be
rewritten from the credentials document, and they are never read back into
it.
"""

from __future__ import annotations

import os
from pathlib import Path

from sshm.exceptions import KeyFileError, PermissionFailureError
from sshm.logging import get_logger
from sshm.models import KeyFileStatus, has_key_envelope

logger = get_logger(__name__)

KEY_FILE_MODE = 0o600
KEYS_DIR_MODE = 0o700
KEY_FILE_SUFFIX = "_key"


def key_file_name(alias: str) -> str:
    return f"{alias}{KEY_FILE_SUFFIX}"


def ensure_keys_dir(keys_dir: Path) -> bool:
    """Create the keys directory if needed. Returns True if it was created."""
    if keys_dir.is_dir():
        return False
    keys_dir.mkdir(parents=True, exist_ok=True, mode=KEYS_DIR_MODE)
    return True


def restrict_permissions(path: Path, mode: int = KEY_FILE_MODE) -> None:
    """chmod ``path`` to ``mode``, raising PermissionFailureError on failure."""
    try:
        os.chmod(path, mode)
    except OSError as e:
        raise PermissionFailureError(str(path), cause=e) from e


def write_key_file(path: Path, content: str) -> KeyFileStatus:
    """
    Write key material to ``path`` with owner-only permissions.

    The file is created with mode 600 and chmod-ed again in case it already
    existed with a wider mode. A chmod failure is downgraded to a warning in
    the returned status.

    Args:
        path: Destination key file.
        content: Key material; a trailing newline is appended.

    Returns:
        KeyFileStatus describing the written file.

    Raises:
        KeyFileError: The keys directory or the file could not be written.
    """
    try:
        if ensure_keys_dir(path.parent):
            logger.info("Created keys directory %s", path.parent)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, KEY_FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content + "\n")
    except OSError as e:
        raise KeyFileError(str(path), cause=e) from e

    try:
        restrict_permissions(path)
    except PermissionFailureError as e:
        logger.warning("%s; the key file is still usable", e)
        return KeyFileStatus(path=path, permissions_restricted=False, warning=str(e))

    return KeyFileStatus(path=path)


def is_valid_key_file(path: Path) -> bool:
    """Check that ``path`` exists, is non-empty and holds a private key."""
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return False
    return bool(content.strip()) and has_key_envelope(content)


def is_inside(path: Path, directory: Path) -> bool:
    """Check whether ``path`` resolves to somewhere under ``directory``."""
    try:
        path.resolve().relative_to(directory.resolve())
    except ValueError:
        return False
    return True
