"""Usage engine: wires settings, cache, fetchers, scheduler and events.

Example:
    >>> async with UsageEngine(load_settings()) as engine:
    ...     await engine.refresh_all()
    ...     snapshot = engine.cache.get_snapshot(ProviderKind.CLAUDE)
"""

import os
from collections.abc import Mapping
from datetime import datetime
from types import TracebackType

import httpx
from structlog import get_logger

from usagebar.config.gate import SettingsEnablementGate
from usagebar.config.settings import Settings
from usagebar.credentials.store import CredentialStore, FileCredentialStore
from usagebar.models.usage import ProviderKind, UsageSnapshot
from usagebar.providers import build_fetchers
from usagebar.providers.base import FetchContext, UsageFetcher
from usagebar.refresh.events import EngineEvent, EventDispatcher, ToggleCallback
from usagebar.refresh.scheduler import RefreshScheduler
from usagebar.state.cache import UsageStateCache


logger = get_logger(__name__)


class UsageEngine:
    """Owns the state cache and ties its lifecycle to application start/stop."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        credential_store: CredentialStore | None = None,
        fetchers: Mapping[ProviderKind, UsageFetcher] | None = None,
        http_client: httpx.AsyncClient | None = None,
        environ: Mapping[str, str] | None = None,
        on_toggle: ToggleCallback | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.gate = SettingsEnablementGate(self.settings.providers)
        self.cache = UsageStateCache(self.gate)
        self.credential_store = credential_store or FileCredentialStore(
            self.settings.credentials.store_path
        )

        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=self.settings.refresh.timeout_seconds,
            follow_redirects=True,
        )
        self.context = FetchContext(
            http=self._http_client,
            credentials=self.credential_store,
            environ=dict(environ) if environ is not None else dict(os.environ),
        )

        refresh = self.settings.refresh
        self.scheduler = RefreshScheduler(
            self.cache,
            fetchers if fetchers is not None else build_fetchers(self.settings),
            self.context,
            interval_seconds=refresh.interval_seconds,
            timeout_seconds=refresh.timeout_seconds,
            max_concurrent_fetches=refresh.max_concurrent_fetches,
            refresh_on_start=refresh.refresh_on_start,
        )
        self.events = EventDispatcher(self.scheduler, on_toggle=on_toggle)

    async def __aenter__(self) -> "UsageEngine":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()

    async def start(self) -> None:
        """Start event dispatch and the background refresh cadence."""
        await self.events.start()
        await self.scheduler.start()
        logger.info(
            "usage_engine_started",
            enabled=[kind.value for kind in self.cache.enabled_providers()],
        )

    async def stop(self) -> None:
        """Stop the cadence, cancel in-flight fetches and release resources."""
        await self.events.stop()
        await self.scheduler.stop()
        if self._owns_http_client:
            await self._http_client.aclose()
        logger.info("usage_engine_stopped")

    # Command surface

    async def refresh_provider(self, kind: ProviderKind) -> bool:
        return await self.scheduler.refresh_provider(kind)

    async def refresh_all(self) -> dict[ProviderKind, bool]:
        return await self.scheduler.refresh_all()

    def submit(self, event: EngineEvent) -> None:
        self.events.submit(event)

    # Read surface

    def enabled_providers(self) -> list[ProviderKind]:
        return self.cache.enabled_providers()

    def get_snapshot(self, kind: ProviderKind) -> UsageSnapshot | None:
        return self.cache.get_snapshot(kind)

    def get_error(self, kind: ProviderKind) -> str | None:
        return self.cache.get_error(kind)

    def is_refreshing(self, kind: ProviderKind) -> bool:
        return self.cache.is_refreshing(kind)

    def is_stale(self, kind: ProviderKind, now: datetime | None = None) -> bool:
        return self.cache.is_stale(kind, now)
