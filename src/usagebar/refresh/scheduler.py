"""Refresh scheduler for provider usage.

Runs provider fetches concurrently with per-provider isolation:
- At most one fetch in flight per provider
- Every fetch bounded by a timeout
- One provider's failure never cancels or delays another
- No retries; a failed provider waits for the next tick or a manual refresh
"""

import asyncio
import time
from collections.abc import Coroutine, Mapping
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from structlog import get_logger

from usagebar.exceptions import FetchError, ParseError, TransportError, UnknownProviderError
from usagebar.models.usage import ProviderKind, UsageSnapshot
from usagebar.providers.base import FetchContext, UsageFetcher
from usagebar.refresh.constants import (
    DEFAULT_FETCH_TIMEOUT_SECONDS,
    DEFAULT_MAX_CONCURRENT_FETCHES,
    DEFAULT_REFRESH_INTERVAL_SECONDS,
    REFRESH_JOB_ID,
    REFRESH_JOB_NAME,
)
from usagebar.state.cache import UsageStateCache


logger = get_logger(__name__)


class RefreshScheduler:
    """Executes provider fetches and records their outcome in the cache."""

    def __init__(
        self,
        cache: UsageStateCache,
        fetchers: Mapping[ProviderKind, UsageFetcher],
        context: FetchContext,
        *,
        interval_seconds: int = DEFAULT_REFRESH_INTERVAL_SECONDS,
        timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
        max_concurrent_fetches: int = DEFAULT_MAX_CONCURRENT_FETCHES,
        refresh_on_start: bool = True,
    ) -> None:
        """Initialize the refresh scheduler.

        Args:
            cache: State cache receiving results
            fetchers: Fetcher per provider
            context: Shared collaborators handed to fetchers
            interval_seconds: Seconds between background refreshes
            timeout_seconds: Upper bound for a single fetch
            max_concurrent_fetches: Fetches allowed to run at once
            refresh_on_start: Refresh everything as soon as start() runs
        """
        self.cache = cache
        self.context = context
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds
        self.refresh_on_start = refresh_on_start
        self._fetchers = dict(fetchers)
        self._semaphore = asyncio.Semaphore(max_concurrent_fetches)
        self._scheduler: Any = None  # AsyncIOScheduler from apscheduler
        self._tasks: set[asyncio.Task[Any]] = set()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background refresh cadence."""
        if self._running:
            logger.warning("refresh_scheduler_already_running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.refresh_all,
            "interval",
            seconds=self.interval_seconds,
            id=REFRESH_JOB_ID,
            name=REFRESH_JOB_NAME,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        self._running = True

        logger.info(
            "refresh_scheduler_started",
            interval_seconds=self.interval_seconds,
            timeout_seconds=self.timeout_seconds,
        )

        if self.refresh_on_start:
            self.schedule_refresh(None)

    async def stop(self) -> None:
        """Stop the cadence and cancel every in-flight fetch."""
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if self._running:
            self._running = False
            logger.info("refresh_scheduler_stopped", cancelled_tasks=len(tasks))

    def schedule_refresh(self, kind: ProviderKind | None) -> asyncio.Task[Any]:
        """Start a refresh in the background without waiting for it.

        Args:
            kind: Provider to refresh, or None for every enabled provider

        Returns:
            The task running the refresh
        """
        if kind is None:
            return self._track(self.refresh_all(), name="refresh-all")
        return self._track(self.refresh_provider(kind), name=f"refresh-request-{kind.value}")

    async def refresh_all(self) -> dict[ProviderKind, bool]:
        """Refresh every enabled provider concurrently.

        Returns:
            Mapping of provider to whether a fetch ran (False when one was
            already in flight or the refresh failed unexpectedly)
        """
        kinds = [kind for kind in self.cache.enabled_providers() if kind in self._fetchers]
        if not kinds:
            logger.debug("refresh_all_no_enabled_providers")
            return {}

        outcomes = await asyncio.gather(
            *(self.refresh_provider(kind) for kind in kinds),
            return_exceptions=True,
        )

        results: dict[ProviderKind, bool] = {}
        for kind, outcome in zip(kinds, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, asyncio.CancelledError):
                    logger.error(
                        "provider_refresh_failed",
                        provider=kind.value,
                        error=str(outcome),
                        error_type=type(outcome).__name__,
                    )
                results[kind] = False
            else:
                results[kind] = outcome

        self.cache.prune()
        return results

    async def refresh_provider(self, kind: ProviderKind) -> bool:
        """Refresh one provider unless a refresh is already in flight.

        Args:
            kind: Provider to refresh

        Returns:
            True if a fetch ran, False if one was already in flight

        Raises:
            UnknownProviderError: If no fetcher is registered for the provider
        """
        if kind not in self._fetchers:
            raise UnknownProviderError(kind.value)

        if not self.cache.begin_refresh(kind):
            logger.debug("refresh_skipped_in_flight", provider=kind.value)
            return False

        await self._track(self._run_refresh(kind), name=f"refresh-{kind.value}")
        return True

    def _track(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_refresh(self, kind: ProviderKind) -> None:
        try:
            result = await self._fetch(kind)
        except asyncio.CancelledError:
            self.cache.end_refresh(kind)
            logger.debug("provider_refresh_cancelled", provider=kind.value)
            raise
        self.cache.apply_result(kind, result)

    async def _fetch(self, kind: ProviderKind) -> UsageSnapshot | FetchError:
        """Run one fetch and fold every failure into a FetchError."""
        fetcher = self._fetchers[kind]
        async with self._semaphore:
            started = time.monotonic()
            try:
                snapshot = await asyncio.wait_for(
                    fetcher.fetch(self.context), timeout=self.timeout_seconds
                )
            except FetchError as e:
                logger.info(
                    "provider_fetch_error",
                    provider=kind.value,
                    error_kind=e.kind.value,
                    error=e.message,
                )
                return e
            except TimeoutError:
                logger.warning(
                    "provider_fetch_timeout",
                    provider=kind.value,
                    timeout_seconds=self.timeout_seconds,
                )
                return TransportError("timeout")
            except Exception as e:
                # Fetcher bugs are recorded against that provider only
                logger.exception("provider_fetch_crashed", provider=kind.value)
                return ParseError(f"provider integration bug: {type(e).__name__}: {e}")

        if not isinstance(snapshot, UsageSnapshot):
            logger.error(
                "provider_fetch_invalid_result",
                provider=kind.value,
                result_type=type(snapshot).__name__,
            )
            return ParseError(
                f"provider integration bug: fetcher returned {type(snapshot).__name__}"
            )

        logger.info(
            "provider_fetch_success",
            provider=kind.value,
            duration_ms=round((time.monotonic() - started) * 1000),
        )
        return snapshot
