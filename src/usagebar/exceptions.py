"""Consolidated exception hierarchy for usagebar.

All exceptions use proper exception chaining with the `from` keyword.
Fetch failures carry a FetchErrorKind so callers can offer a targeted
remediation ("set API key", "re-authenticate", "wait for next refresh").
"""

from enum import StrEnum
from typing import Any


class FetchErrorKind(StrEnum):
    """Classification of a failed provider fetch."""

    CREDENTIAL_MISSING = "credential_missing"
    AUTHENTICATION_FAILED = "authentication_failed"
    API_ERROR = "api_error"
    TRANSPORT_ERROR = "transport_error"
    PARSE_ERROR = "parse_error"


# ============================================================================
# Base Exceptions
# ============================================================================


class UsageBarError(Exception):
    """Base exception for all usagebar errors."""

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Fetch Errors
# ============================================================================


class FetchError(UsageBarError):
    """Base exception for a provider fetch that did not produce a snapshot."""

    kind: FetchErrorKind = FetchErrorKind.API_ERROR

    def describe(self) -> str:
        """Render the error as the text shown next to a provider."""
        return self.message


class CredentialMissingError(FetchError):
    """No usable credential was found in any source."""

    kind = FetchErrorKind.CREDENTIAL_MISSING

    def __init__(self, provider_id: str, message: str | None = None) -> None:
        super().__init__(
            message or f"No credential found for {provider_id}",
            details={"provider": provider_id},
        )
        self.provider_id = provider_id

    def describe(self) -> str:
        return f"Not configured: {self.message}"


class AuthenticationFailedError(FetchError):
    """A credential was present but rejected upstream."""

    kind = FetchErrorKind.AUTHENTICATION_FAILED

    def __init__(self, message: str = "Credential rejected", *, status_code: int | None = None) -> None:
        super().__init__(message, details={"status_code": status_code})
        self.status_code = status_code

    def describe(self) -> str:
        if self.status_code is not None:
            return f"Authentication failed (HTTP {self.status_code}): {self.message}"
        return f"Authentication failed: {self.message}"


class ApiError(FetchError):
    """Upstream answered with a non-success status."""

    kind = FetchErrorKind.API_ERROR

    def __init__(self, status_code: int, body: str = "") -> None:
        super().__init__(
            f"HTTP {status_code}: {body}" if body else f"HTTP {status_code}",
            details={"status_code": status_code},
        )
        self.status_code = status_code
        self.body = body

    def describe(self) -> str:
        return f"API error {self.message}"


class TransportError(FetchError):
    """Network or local process failure, including timeouts."""

    kind = FetchErrorKind.TRANSPORT_ERROR

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason

    def describe(self) -> str:
        return f"Connection problem: {self.reason}"


class ParseError(FetchError):
    """A success response that could not be turned into a snapshot."""

    kind = FetchErrorKind.PARSE_ERROR

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason

    def describe(self) -> str:
        return f"Unexpected response: {self.reason}"


# ============================================================================
# Configuration & Scheduler Errors
# ============================================================================


class ConfigurationError(UsageBarError):
    """Raised when configuration loading or validation fails."""

    pass


class CredentialsStorageError(UsageBarError):
    """Error occurred while writing the credential store."""

    pass


class SchedulerError(UsageBarError):
    """Base exception for refresh scheduler errors."""

    pass


class UnknownProviderError(SchedulerError):
    """Raised when a refresh is requested for a provider without a fetcher."""

    def __init__(self, provider_id: str) -> None:
        super().__init__(f"No fetcher registered for provider '{provider_id}'")
        self.provider_id = provider_id


__all__ = [
    "FetchErrorKind",
    "UsageBarError",
    # Fetch
    "FetchError",
    "CredentialMissingError",
    "AuthenticationFailedError",
    "ApiError",
    "TransportError",
    "ParseError",
    # Configuration
    "ConfigurationError",
    "CredentialsStorageError",
    # Scheduler
    "SchedulerError",
    "UnknownProviderError",
]
