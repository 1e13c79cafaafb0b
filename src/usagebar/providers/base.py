"""Common fetcher interface and shared HTTP handling."""

import os
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, ClassVar

import httpx
import orjson
from structlog import get_logger

from usagebar.credentials.store import CredentialStore, resolve_secret
from usagebar.exceptions import (
    ApiError,
    AuthenticationFailedError,
    CredentialMissingError,
    FetchError,
    ParseError,
    TransportError,
)
from usagebar.models.usage import ProviderKind, UsageSnapshot
from usagebar.providers.registry import ProviderDescriptor, descriptor


logger = get_logger(__name__)

# Upper bound on response body text carried in ApiError
MAX_ERROR_BODY_CHARS = 500


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class FetchContext:
    """Shared collaborators handed to every fetch."""

    http: httpx.AsyncClient
    credentials: CredentialStore
    environ: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))
    clock: Callable[[], datetime] = _utcnow

    def now(self) -> datetime:
        return self.clock()


class UsageFetcher(ABC):
    """Produces a UsageSnapshot for exactly one provider.

    Implementations make at most one network call or local inspection per
    ``fetch`` and never retry. Failures are raised as FetchError subclasses.
    """

    kind: ClassVar[ProviderKind]

    @property
    def descriptor(self) -> ProviderDescriptor:
        return descriptor(self.kind)

    @abstractmethod
    async def fetch(self, context: FetchContext) -> UsageSnapshot:
        """Fetch current usage.

        Args:
            context: Shared HTTP client, credential store and clock

        Returns:
            Normalized usage snapshot

        Raises:
            FetchError: Classified failure (missing credential, rejected
                credential, API error, transport error, parse error)

        """

    def missing_credential(self, message: str | None = None) -> CredentialMissingError:
        desc = self.descriptor
        if message is None:
            if desc.api_key_env:
                message = f"Set {' or '.join(desc.api_key_env)} or store a key for {desc.display_name}"
            else:
                message = f"No credential found for {desc.display_name}"
        return CredentialMissingError(desc.provider_id, message)


class HttpUsageFetcher(UsageFetcher):
    """Fetcher for providers exposing a JSON quota endpoint."""

    default_base_url: ClassVar[str]
    endpoint: ClassVar[str]
    auth_failure_message: ClassVar[str] = "Credential rejected"

    def __init__(self, base_url: str | None = None) -> None:
        self.base_url = (base_url or self.default_base_url).rstrip("/")

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.endpoint}"

    def resolve_credential(self, context: FetchContext) -> str:
        """Find the secret: credential store first, environment second.

        Raises:
            CredentialMissingError: If neither source has a value

        """
        desc = self.descriptor
        secret = resolve_secret(
            context.credentials, desc.provider_id, desc.api_key_env, context.environ
        )
        if not secret:
            raise self.missing_credential()
        return secret

    def build_headers(self, credential: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {credential}",
            "Accept": "application/json",
        }

    @abstractmethod
    def parse(self, payload: Any, now: datetime) -> UsageSnapshot:
        """Normalize a decoded success response into a snapshot."""

    async def fetch(self, context: FetchContext) -> UsageSnapshot:
        credential = self.resolve_credential(context)
        payload = await request_json(
            context.http,
            self.url,
            headers=self.build_headers(credential),
            provider=self.kind,
            auth_failure_message=self.auth_failure_message,
        )
        return parse_guarded(self.parse, payload, context.now())


def parse_guarded(
    parse: Callable[[Any, datetime], UsageSnapshot], payload: Any, now: datetime
) -> UsageSnapshot:
    """Run a parse function, converting shape errors into ParseError."""
    try:
        return parse(payload, now)
    except FetchError:
        raise
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ParseError(f"unexpected response shape: {type(e).__name__}: {e}") from e


async def request_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    headers: Mapping[str, str],
    provider: ProviderKind,
    auth_failure_message: str = "Credential rejected",
) -> Any:
    """Issue a single GET and decode the JSON body.

    Args:
        client: Shared HTTP client
        url: Endpoint URL
        headers: Request headers, including credentials
        provider: Provider being fetched (for logging)
        auth_failure_message: Message used for 401/403 responses

    Returns:
        Decoded JSON payload

    Raises:
        TransportError: On timeouts and connection failures
        AuthenticationFailedError: On 401/403
        ApiError: On any other non-2xx status
        ParseError: If the success body is not valid JSON

    """
    try:
        response = await client.get(url, headers=dict(headers))
    except httpx.TimeoutException as e:
        logger.warning("provider_request_timeout", provider=provider.value, url=url)
        raise TransportError("timeout") from e
    except httpx.RequestError as e:
        logger.warning(
            "provider_request_failed",
            provider=provider.value,
            url=url,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise TransportError(str(e) or type(e).__name__) from e

    return decode_response(response, provider, auth_failure_message=auth_failure_message)


def decode_response(
    response: httpx.Response,
    provider: ProviderKind,
    *,
    auth_failure_message: str = "Credential rejected",
) -> Any:
    """Classify an HTTP response and decode its JSON body."""
    if response.status_code in (401, 403):
        logger.warning(
            "provider_auth_failed",
            provider=provider.value,
            status=response.status_code,
        )
        raise AuthenticationFailedError(
            auth_failure_message, status_code=response.status_code
        )
    if not response.is_success:
        body = response.text[:MAX_ERROR_BODY_CHARS]
        logger.warning(
            "provider_api_error",
            provider=provider.value,
            status=response.status_code,
            body=body[:200],
        )
        raise ApiError(response.status_code, body)

    try:
        return orjson.loads(response.content)
    except orjson.JSONDecodeError as e:
        raise ParseError(f"invalid JSON: {e}") from e
