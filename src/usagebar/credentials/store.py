"""Credential storage for provider API keys and tokens."""

import os
from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import orjson
from structlog import get_logger

from usagebar.exceptions import CredentialsStorageError


logger = get_logger(__name__)

_FILE_MODE = 0o600


class CredentialStore(ABC):
    """Abstract source of provider secrets keyed by provider id."""

    @abstractmethod
    def get_api_key(self, provider_id: str) -> str | None:
        """Return the stored secret for a provider.

        Implementations return None both when nothing is stored and when the
        backing store cannot be read, so callers move on to the next source.

        Args:
            provider_id: Stable provider id (e.g. "synthetic")

        Returns:
            The secret, or None

        """

    def set_api_key(self, provider_id: str, api_key: str) -> None:
        raise NotImplementedError(f"{type(self).__name__} is read-only")

    def delete_api_key(self, provider_id: str) -> bool:
        raise NotImplementedError(f"{type(self).__name__} is read-only")


class FileCredentialStore(CredentialStore):
    """JSON file storage for provider secrets, readable by the owner only."""

    def __init__(self, file_path: Path) -> None:
        """Initialize storage with file path.

        Args:
            file_path: Path to the JSON credentials file

        """
        self.file_path = file_path

    def _load_all(self) -> dict[str, dict[str, Any]]:
        if not self.file_path.exists():
            return {}

        try:
            data = orjson.loads(self.file_path.read_bytes())
        except orjson.JSONDecodeError:
            logger.exception("credential_store_json_decode_error", path=str(self.file_path))
            return {}
        except OSError:
            logger.exception("credential_store_file_read_error", path=str(self.file_path))
            return {}

        if not isinstance(data, dict):
            logger.warning("credential_store_unexpected_format", path=str(self.file_path))
            return {}
        providers: dict[str, dict[str, Any]] = data.get("providers", {})
        return providers

    def _save_all(self, providers: dict[str, dict[str, Any]]) -> None:
        """Write all entries to disk with owner-only permissions.

        Raises:
            CredentialsStorageError: If the file cannot be written

        """
        data = {"providers": providers, "version": 1}
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.file_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _FILE_MODE)
            with os.fdopen(fd, "wb") as fh:
                fh.write(orjson.dumps(data, option=orjson.OPT_INDENT_2))
            os.chmod(self.file_path, _FILE_MODE)
        except OSError as e:
            raise CredentialsStorageError(
                f"Failed to write credentials to {self.file_path}: {e}"
            ) from e

    def get_api_key(self, provider_id: str) -> str | None:
        entry = self._load_all().get(provider_id)
        if not entry:
            return None
        api_key = entry.get("api_key")
        if not isinstance(api_key, str) or not api_key.strip():
            return None
        return api_key.strip()

    def set_api_key(self, provider_id: str, api_key: str) -> None:
        """Store or replace the secret for a provider.

        Args:
            provider_id: Stable provider id
            api_key: Secret to store

        Raises:
            ValueError: If the secret is empty
            CredentialsStorageError: If the file cannot be written

        """
        if not api_key.strip():
            raise ValueError("API key must not be empty")
        providers = self._load_all()
        providers[provider_id] = {
            "api_key": api_key.strip(),
            "updated_at": datetime.now(UTC).isoformat(),
        }
        self._save_all(providers)
        logger.info("credential_saved", provider=provider_id)

    def delete_api_key(self, provider_id: str) -> bool:
        """Remove the secret for a provider.

        Returns:
            True if deleted, False if nothing was stored

        """
        providers = self._load_all()
        if provider_id not in providers:
            return False
        del providers[provider_id]
        self._save_all(providers)
        logger.info("credential_deleted", provider=provider_id)
        return True


def resolve_secret(
    store: CredentialStore,
    provider_id: str,
    env_names: tuple[str, ...],
    environ: Mapping[str, str],
) -> str | None:
    """Find a secret in the store, then in the environment.

    Args:
        store: Credential store consulted first
        provider_id: Stable provider id used as the store key
        env_names: Environment variables checked in order
        environ: Environment mapping

    Returns:
        The first non-empty secret found, or None

    """
    try:
        secret = store.get_api_key(provider_id)
    except Exception:
        # Store failures fall through to the environment
        logger.warning("credential_store_lookup_failed", provider=provider_id, exc_info=True)
        secret = None
    if secret:
        return secret

    for name in env_names:
        value = environ.get(name, "").strip()
        if value:
            logger.debug("credential_from_environment", provider=provider_id, variable=name)
            return value
    return None
