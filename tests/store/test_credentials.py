"""
Tests for CredentialStore.
"""

from __future__ import annotations

import json
import stat
from unittest.mock import patch

import pytest

from sshm.exceptions import ServerNotFoundError, SSHMError
from sshm.models import AuthMethod, ServerEntry
from sshm.store import CredentialStore


def read_json(path):
    return json.loads(path.read_text())


class TestEnsureConfig:
    """Test bootstrapping the config directory."""

    def test_creates_documents(self, store):
        store.ensure_config()
        assert read_json(store.config_dir / "config.json") == {"servers": []}
        assert read_json(store.config_dir / "credentials.json") == {}

    def test_documents_are_owner_only(self, store):
        store.ensure_config()
        mode = stat.S_IMODE((store.config_dir / "credentials.json").stat().st_mode)
        assert mode == 0o600

    def test_keeps_existing_documents(self, store):
        store.ensure_config()
        store.set_password("db1", "pw")
        store.ensure_config()
        assert store.get_password("db1") == "pw"

    def test_corrupt_json_raises(self, store):
        store.ensure_config()
        (store.config_dir / "credentials.json").write_text("{not json")
        with pytest.raises(SSHMError, match="Corrupt JSON"):
            store.get_password("db1")


class TestMigration:
    """Test the bare-string to tagged-record upgrade."""

    def _write_legacy(self, store, data):
        store.config_dir.mkdir(parents=True, exist_ok=True)
        (store.config_dir / "credentials.json").write_text(json.dumps(data))

    def test_upgrades_bare_strings(self, store):
        self._write_legacy(store, {"db1": "hunter2", "web": {"type": "key", "value": "k"}})
        store.ensure_config()
        assert read_json(store.config_dir / "credentials.json") == {
            "db1": {"type": "password", "value": "hunter2"},
            "web": {"type": "key", "value": "k"},
        }
        assert store.get_password("db1") == "hunter2"

    def test_migration_is_idempotent(self, store):
        self._write_legacy(store, {"db1": "hunter2"})
        store.ensure_config()
        after_first = (store.config_dir / "credentials.json").read_text()

        with patch.object(CredentialStore, "_write_json", wraps=store._write_json) as write:
            assert store._migrate_credentials() == 0
            write.assert_not_called()

        assert (store.config_dir / "credentials.json").read_text() == after_first

    def test_counts_upgraded_entries(self, store):
        self._write_legacy(store, {"a": "1", "b": "2"})
        store.config_dir.joinpath("config.json").write_text('{"servers": []}')
        assert store._migrate_credentials() == 2


class TestServers:
    """Test server list operations."""

    def test_add_and_get(self, store, password_server):
        assert store.add_server(password_server) is False
        assert store.get_server("db1") == password_server

    def test_list_preserves_order(self, store):
        for name in ("b", "a", "c"):
            store.add_server(ServerEntry(name=name, host="h", user="u"))
        assert [s.name for s in store.list_servers()] == ["b", "a", "c"]

    def test_get_missing_raises(self, store):
        with pytest.raises(ServerNotFoundError):
            store.get_server("nope")

    def test_add_replaces_same_alias(self, store, password_server):
        store.add_server(ServerEntry(name="other", host="h", user="u"))
        store.add_server(password_server)
        replacement = password_server.model_copy(update={"host": "10.0.0.6"})

        assert store.add_server(replacement) is True
        servers = store.list_servers()
        assert [s.name for s in servers] == ["other", "db1"]
        assert store.get_server("db1").host == "10.0.0.6"

    def test_accepts_legacy_array(self, store):
        store.config_dir.mkdir(parents=True)
        (store.config_dir / "config.json").write_text(
            json.dumps([{"name": "db1", "host": "h", "user": "u", "port": 22}])
        )
        assert store.get_server("db1").auth_method is AuthMethod.PASSWORD

        # Rewritten in the object form on the next save.
        store.add_server(ServerEntry(name="db2", host="h", user="u"))
        assert "servers" in read_json(store.config_dir / "config.json")

    def test_writes_camel_case(self, store, key_server):
        store.add_server(key_server.model_copy(update={"key_path": "/k"}))
        record = read_json(store.config_dir / "config.json")["servers"][0]
        assert record["authMethod"] == "key"
        assert record["keyPath"] == "/k"

    def test_unknown_keys_survive_save(self, store):
        store.config_dir.mkdir(parents=True)
        (store.config_dir / "config.json").write_text(
            json.dumps({"servers": [{"name": "db1", "host": "h", "user": "u", "port": 22, "tags": ["prod"]}]})
        )

        store.add_server(ServerEntry(name="db2", host="h2", user="u"))

        records = read_json(store.config_dir / "config.json")["servers"]
        assert records[0]["tags"] == ["prod"]
        assert "tags" not in records[1]

    def test_invalid_entry_raises(self, store):
        store.config_dir.mkdir(parents=True)
        (store.config_dir / "config.json").write_text(json.dumps({"servers": [{"name": "x"}]}))
        with pytest.raises(SSHMError, match="Invalid server entry"):
            store.list_servers()


class TestRemoveServer:
    """Test remove_server cleanup."""

    def test_removes_entry_and_credential(self, store, password_server):
        store.add_server(password_server)
        store.set_password("db1", "pw")

        removed = store.remove_server("db1")

        assert removed.name == "db1"
        assert store.list_servers() == []
        assert store.get_password("db1") is None

    def test_deletes_managed_key_file(self, store, key_server, key_content):
        path = store.write_key_file("web", key_content).path
        store.add_server(key_server.model_copy(update={"key_path": str(path)}))

        store.remove_server("web")

        assert not path.exists()

    def test_keeps_external_key_file(self, store, key_server, tmp_path):
        external = tmp_path / "id_ed25519"
        external.write_text("key")
        store.add_server(key_server.model_copy(update={"key_path": str(external)}))

        store.remove_server("web")

        assert external.exists()

    def test_missing_alias_raises(self, store):
        with pytest.raises(ServerNotFoundError):
            store.remove_server("nope")


class TestSecrets:
    """Test password and key content records."""

    def test_password_round_trip(self, store):
        store.set_password("db1", "s3cr3t")
        assert store.get_password("db1") == "s3cr3t"
        assert store.get_key_content("db1") is None

    def test_key_content_round_trip(self, store, key_content):
        store.set_key_content("web", key_content)
        assert store.get_key_content("web") == key_content
        assert store.get_password("web") is None

    def test_overwrite_changes_type(self, store, key_content):
        store.set_password("a", "pw")
        store.set_key_content("a", key_content)
        assert read_json(store.config_dir / "credentials.json")["a"]["type"] == "key"

    def test_delete(self, store):
        store.set_password("db1", "pw")
        assert store.delete_credential("db1") is True
        assert store.delete_credential("db1") is False
        assert store.get_password("db1") is None

    def test_unknown_record_raises(self, store):
        store.ensure_config()
        (store.config_dir / "credentials.json").write_text(json.dumps({"a": {"type": "token"}}))
        with pytest.raises(SSHMError, match="Unrecognized credential"):
            store.get_password("a")
