"""Shared fixtures for usagebar tests."""

from collections.abc import AsyncIterator, Callable, Mapping
from datetime import UTC, datetime
from typing import Any

import httpx
import pytest

from usagebar.config.gate import SettingsEnablementGate
from usagebar.config.settings import ProviderSettings
from usagebar.credentials.store import CredentialStore
from usagebar.models.usage import ProviderKind
from usagebar.providers.base import FetchContext
from usagebar.state.cache import UsageStateCache


FIXED_NOW = datetime(2025, 9, 20, 12, 0, tzinfo=UTC)


class MemoryCredentialStore(CredentialStore):
    """In-memory credential store."""

    def __init__(self, keys: Mapping[str, str] | None = None) -> None:
        self.keys: dict[str, str] = dict(keys or {})

    def get_api_key(self, provider_id: str) -> str | None:
        return self.keys.get(provider_id)

    def set_api_key(self, provider_id: str, api_key: str) -> None:
        self.keys[provider_id] = api_key

    def delete_api_key(self, provider_id: str) -> bool:
        return self.keys.pop(provider_id, None) is not None


def _unreachable(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"Unexpected request to {request.url}")


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def memory_store() -> MemoryCredentialStore:
    return MemoryCredentialStore()


@pytest.fixture
async def make_context(
    memory_store: MemoryCredentialStore,
) -> AsyncIterator[Callable[..., FetchContext]]:
    """Factory for FetchContext backed by an httpx.MockTransport handler."""
    clients: list[httpx.AsyncClient] = []

    def factory(
        handler: Callable[[httpx.Request], Any] | None = None,
        *,
        environ: Mapping[str, str] | None = None,
        store: CredentialStore | None = None,
    ) -> FetchContext:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler or _unreachable))
        clients.append(client)
        return FetchContext(
            http=client,
            credentials=store if store is not None else memory_store,
            environ=dict(environ or {}),
            clock=lambda: FIXED_NOW,
        )

    yield factory

    for client in clients:
        await client.aclose()


@pytest.fixture
def gate() -> SettingsEnablementGate:
    return SettingsEnablementGate(
        ProviderSettings(enabled=[ProviderKind.SYNTHETIC, ProviderKind.ZAI])
    )


@pytest.fixture
def cache(gate: SettingsEnablementGate) -> UsageStateCache:
    return UsageStateCache(gate, clock=lambda: FIXED_NOW)
