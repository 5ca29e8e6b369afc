"""
File-backed credential store.

Two sibling JSON documents live under the config directory:

- ``config.json``: ``{"servers": [...]}``. A bare array is still accepted on
  read (older releases wrote one); writes always use the object form.
- ``credentials.json``: ``{alias: {"type": "password" | "key", "value": ...}}``.
  Older releases wrote bare password strings; those are upgraded in place
  the first time the store is loaded.

Key files under ``keys/`` are regenerated from the key records on demand.

The store is single-process and unlocked: every mutation is a
read-modify-write of the whole document, replaced atomically on disk.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Iterable

from pydantic import ValidationError

from sshm.config import CONFIG_FILENAME, CREDENTIALS_FILENAME, KEYS_DIRNAME, SSHMSettings
from sshm.exceptions import (
    CredentialNotFoundError,
    InvalidContentError,
    KeyFileError,
    NotFoundError,
    PermissionFailureError,
    ServerNotFoundError,
    SSHMError,
)
from sshm.logging import get_logger
from sshm.models import (
    KeyCredential,
    KeyFileStatus,
    KeyRegenResult,
    PasswordCredential,
    ServerEntry,
    credential_adapter,
    has_key_envelope,
)
from sshm.store.keys import (
    KEYS_DIR_MODE,
    is_inside,
    key_file_name,
    restrict_permissions,
    write_key_file,
)

logger = get_logger(__name__)


class CredentialStore:
    """Handle on the on-disk server list, secrets and key files."""

    def __init__(self, config_dir: Path) -> None:
        self._config_dir = Path(config_dir).expanduser()
        self._config_file = self._config_dir / CONFIG_FILENAME
        self._credentials_file = self._config_dir / CREDENTIALS_FILENAME
        self._keys_dir = self._config_dir / KEYS_DIRNAME

    @classmethod
    def from_settings(cls, settings: SSHMSettings) -> CredentialStore:
        return cls(settings.config_dir)

    @property
    def config_dir(self) -> Path:
        return self._config_dir

    @property
    def keys_dir(self) -> Path:
        return self._keys_dir

    def __repr__(self) -> str:
        return f"CredentialStore({str(self._config_dir)!r})"

    # =========================================================================
    # Bootstrap and migration
    # =========================================================================

    def ensure_config(self) -> None:
        """Create the directory and both documents if missing, then migrate."""
        if not self._config_dir.is_dir():
            self._config_dir.mkdir(parents=True, exist_ok=True, mode=KEYS_DIR_MODE)
        if not self._config_file.exists():
            self._write_json(self._config_file, {"servers": []})
        if not self._credentials_file.exists():
            self._write_json(self._credentials_file, {})
        self._migrate_credentials()

    def _migrate_credentials(self) -> int:
        """Upgrade bare-string secrets to tagged password records.

        Returns the number of upgraded entries. Nothing is written when
        there is nothing to upgrade.
        """
        raw = self._read_credentials()
        migrated = 0
        for alias, value in raw.items():
            if isinstance(value, str):
                raw[alias] = PasswordCredential(value=value).model_dump()
                migrated += 1

        if migrated:
            self._write_json(self._credentials_file, raw)
            logger.info("Upgraded %d credential(s) to the tagged format", migrated)
        return migrated

    # =========================================================================
    # Servers
    # =========================================================================

    def list_servers(self) -> list[ServerEntry]:
        """Return the saved servers in file order."""
        self.ensure_config()
        data = self._read_json(self._config_file, default={"servers": []})

        if isinstance(data, list):
            records = data
        elif isinstance(data, dict):
            records = data.get("servers") or []
        else:
            raise SSHMError(f"Unrecognized server list in {self._config_file}")

        servers = []
        for record in records:
            try:
                servers.append(ServerEntry.model_validate(record))
            except ValidationError as e:
                raise SSHMError(
                    f"Invalid server entry in {self._config_file}: {record!r}", cause=e
                ) from e
        return servers

    def save_servers(self, servers: Iterable[ServerEntry]) -> None:
        """Replace the whole server list."""
        self.ensure_config()
        payload = {"servers": [server.to_record() for server in servers]}
        self._write_json(self._config_file, payload)

    def get_server(self, alias: str) -> ServerEntry:
        for server in self.list_servers():
            if server.name == alias:
                return server
        raise ServerNotFoundError(alias)

    def add_server(self, entry: ServerEntry) -> bool:
        """Save ``entry``; an existing entry with the same alias is replaced.

        Returns True if an entry was replaced.
        """
        servers = self.list_servers()
        for index, server in enumerate(servers):
            if server.name == entry.name:
                logger.warning("Overwriting existing server entry %s", entry.name)
                servers[index] = entry
                self.save_servers(servers)
                return True
        servers.append(entry)
        self.save_servers(servers)
        return False

    def remove_server(self, alias: str) -> ServerEntry:
        """Remove a server, its credential and its managed key file."""
        servers = self.list_servers()
        for index, server in enumerate(servers):
            if server.name == alias:
                break
        else:
            raise ServerNotFoundError(alias)

        removed = servers.pop(index)
        self.save_servers(servers)
        self.delete_credential(alias)

        # Only key files we generated are ours to delete.
        if removed.key_path:
            key_path = Path(removed.key_path).expanduser()
            if is_inside(key_path, self._keys_dir) and key_path.exists():
                key_path.unlink()
                logger.info("Deleted key file %s", key_path)
        return removed

    # =========================================================================
    # Secrets
    # =========================================================================

    def set_password(self, alias: str, value: str) -> None:
        self._set_record(alias, PasswordCredential(value=value))

    def get_password(self, alias: str) -> str | None:
        record = self._get_record(alias)
        if isinstance(record, PasswordCredential):
            return record.value
        return None

    def set_key_content(self, alias: str, value: str) -> None:
        self._set_record(alias, KeyCredential(value=value))

    def get_key_content(self, alias: str) -> str | None:
        record = self._get_record(alias)
        if isinstance(record, KeyCredential):
            return record.value
        return None

    def delete_credential(self, alias: str) -> bool:
        """Drop the stored secret. Returns True if one was removed."""
        self.ensure_config()
        raw = self._read_credentials()
        if alias not in raw:
            return False
        del raw[alias]
        self._write_json(self._credentials_file, raw)
        return True

    def _set_record(self, alias: str, record: PasswordCredential | KeyCredential) -> None:
        self.ensure_config()
        raw = self._read_credentials()
        raw[alias] = record.model_dump()
        self._write_json(self._credentials_file, raw)

    def _get_record(self, alias: str) -> PasswordCredential | KeyCredential | None:
        self.ensure_config()
        value = self._read_credentials().get(alias)
        if value is None:
            return None
        try:
            return credential_adapter.validate_python(value)
        except ValidationError as e:
            raise SSHMError(f"Unrecognized credential record for {alias}", cause=e) from e

    # =========================================================================
    # Key files
    # =========================================================================

    def key_file_path(self, alias: str) -> Path:
        return self._keys_dir / key_file_name(alias)

    def write_key_file(self, alias: str, content: str) -> KeyFileStatus:
        """Write ``content`` to the managed key file for ``alias``."""
        self.ensure_config()
        return write_key_file(self.key_file_path(alias), content)

    def regenerate_key_file(self, alias: str) -> Path:
        """
        Rebuild the key file for ``alias`` from its stored key record.

        Raises:
            CredentialNotFoundError: No key content is stored for the alias.
            InvalidContentError: The stored content, or the file written from
                it, lacks the private-key envelope.
            KeyFileError: The keys directory or the key file could not be
                written.
        """
        return self._regenerate(alias).path

    def _regenerate(self, alias: str) -> KeyFileStatus:
        content = self.get_key_content(alias)
        if not content:
            raise CredentialNotFoundError(alias, "key")
        if not has_key_envelope(content):
            raise InvalidContentError(alias)

        status = self.write_key_file(alias, content)

        try:
            written = status.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise InvalidContentError(alias, f"could not re-read {status.path}: {e}") from e
        if not has_key_envelope(written):
            raise InvalidContentError(alias, "generated key file failed validation")

        logger.info("Regenerated key file %s", status.path)
        return status

    def regenerate_all_key_files(self) -> list[KeyRegenResult]:
        """Regenerate key files for every key-based server.

        A failure for one alias, including an unwritable keys directory, is
        recorded and the rest are still processed.
        """
        key_servers = [server for server in self.list_servers() if server.uses_key]
        if not key_servers:
            logger.info("No servers use SSH keys")
            return []

        results: list[KeyRegenResult] = []
        for server in key_servers:
            try:
                status = self._regenerate(server.name)
            except (NotFoundError, InvalidContentError, KeyFileError, OSError) as e:
                logger.warning("Key regeneration failed for %s: %s", server.name, e)
                results.append(KeyRegenResult(alias=server.name, status="failed", detail=str(e)))
                continue

            detail = str(status.path)
            if status.warning:
                detail = f"{detail} ({status.warning})"
            results.append(KeyRegenResult(alias=server.name, status="success", detail=detail))
        return results

    # =========================================================================
    # JSON documents
    # =========================================================================

    def _read_credentials(self) -> dict[str, Any]:
        data = self._read_json(self._credentials_file, default={})
        if not isinstance(data, dict):
            raise SSHMError(f"Unrecognized credentials document in {self._credentials_file}")
        return data

    def _read_json(self, path: Path, default: Any) -> Any:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return default
        if not text.strip():
            return default
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise SSHMError(f"Corrupt JSON in {path}: {e}", cause=e) from e
        return default if data is None else data

    def _write_json(self, path: Path, data: Any) -> None:
        tmp = path.with_name(path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp, path)
        try:
            restrict_permissions(path)
        except PermissionFailureError as e:
            logger.warning("%s", e)
