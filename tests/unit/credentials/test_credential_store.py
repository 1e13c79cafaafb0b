"""Tests for credential storage and secret resolution."""

import stat
from pathlib import Path
from unittest.mock import MagicMock

import orjson
import pytest

from usagebar.credentials.store import CredentialStore, FileCredentialStore, resolve_secret
from usagebar.exceptions import CredentialsStorageError


class ReadOnlyStore(CredentialStore):
    """Store that only implements reads."""

    def get_api_key(self, provider_id: str) -> str | None:
        return None


@pytest.mark.unit
class TestFileCredentialStore:
    """Tests for FileCredentialStore."""

    @pytest.fixture
    def store(self, tmp_path: Path) -> FileCredentialStore:
        return FileCredentialStore(tmp_path / "usagebar" / "credentials.json")

    def test_get_missing_file(self, store: FileCredentialStore) -> None:
        """Test reading before any key was stored returns None."""
        assert store.get_api_key("synthetic") is None

    def test_set_then_get(self, store: FileCredentialStore) -> None:
        """Test a stored key is trimmed and read back per provider."""
        store.set_api_key("synthetic", "  syn-key  ")

        assert store.get_api_key("synthetic") == "syn-key"
        assert store.get_api_key("zai") is None

    def test_file_is_owner_only(self, store: FileCredentialStore) -> None:
        """Test the credentials file is written with mode 0600."""
        store.set_api_key("synthetic", "syn-key")

        mode = stat.S_IMODE(store.file_path.stat().st_mode)
        assert mode == 0o600

    def test_file_layout(self, store: FileCredentialStore) -> None:
        """Test the file holds a versioned providers map."""
        store.set_api_key("zai", "zai-key")

        data = orjson.loads(store.file_path.read_bytes())
        assert data["version"] == 1
        assert data["providers"]["zai"]["api_key"] == "zai-key"
        assert "updated_at" in data["providers"]["zai"]

    def test_empty_key_rejected(self, store: FileCredentialStore) -> None:
        """Test a blank key cannot be stored."""
        with pytest.raises(ValueError):
            store.set_api_key("synthetic", "   ")

    def test_delete(self, store: FileCredentialStore) -> None:
        """Test deleting one provider leaves the others intact."""
        store.set_api_key("synthetic", "syn-key")
        store.set_api_key("zai", "zai-key")

        assert store.delete_api_key("synthetic") is True
        assert store.delete_api_key("synthetic") is False
        assert store.get_api_key("synthetic") is None
        assert store.get_api_key("zai") == "zai-key"

    def test_corrupt_file_reads_as_empty(self, store: FileCredentialStore) -> None:
        """Test an unreadable file behaves as having no keys."""
        store.file_path.parent.mkdir(parents=True)
        store.file_path.write_text("{not valid json")

        assert store.get_api_key("synthetic") is None

    def test_unexpected_layout_reads_as_empty(self, store: FileCredentialStore) -> None:
        """Test a file with the wrong top-level shape behaves as empty."""
        store.file_path.parent.mkdir(parents=True)
        store.file_path.write_bytes(orjson.dumps(["synthetic"]))

        assert store.get_api_key("synthetic") is None

    def test_write_failure(self, tmp_path: Path) -> None:
        """Test a write that cannot create the directory raises CredentialsStorageError."""
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        store = FileCredentialStore(blocker / "credentials.json")

        with pytest.raises(CredentialsStorageError):
            store.set_api_key("synthetic", "syn-key")


@pytest.mark.unit
class TestResolveSecret:
    """Tests for resolve_secret precedence."""

    def test_store_first(self, memory_store) -> None:
        """Test a stored key wins over the environment."""
        memory_store.keys["synthetic"] = "stored"

        secret = resolve_secret(
            memory_store, "synthetic", ("SYNTHETIC_API_KEY",), {"SYNTHETIC_API_KEY": "env"}
        )

        assert secret == "stored"

    def test_environment_in_declared_order(self, memory_store) -> None:
        """Test env vars are consulted in the registry's order."""
        environ = {"GH_TOKEN": "third", "GITHUB_TOKEN": "second"}

        secret = resolve_secret(
            memory_store, "copilot", ("COPILOT_API_TOKEN", "GITHUB_TOKEN", "GH_TOKEN"), environ
        )

        assert secret == "second"

    def test_nothing_found(self, memory_store) -> None:
        """Test None is returned when no source has a secret."""
        assert resolve_secret(memory_store, "zai", ("ZAI_API_KEY",), {}) is None

    def test_store_failure_falls_through_to_environment(self) -> None:
        """Test a failing store read falls back to the environment."""
        store = MagicMock(spec=CredentialStore)
        store.get_api_key.side_effect = RuntimeError("keychain locked")

        secret = resolve_secret(
            store, "synthetic", ("SYNTHETIC_API_KEY",), {"SYNTHETIC_API_KEY": "env"}
        )

        assert secret == "env"

    def test_read_only_store_rejects_writes(self) -> None:
        """Test the base store refuses writes unless overridden."""
        with pytest.raises(NotImplementedError):
            ReadOnlyStore().set_api_key("synthetic", "key")
