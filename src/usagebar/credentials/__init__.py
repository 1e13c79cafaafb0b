"""Provider credential storage."""

from .store import CredentialStore, FileCredentialStore, resolve_secret


__all__ = ["CredentialStore", "FileCredentialStore", "resolve_secret"]
