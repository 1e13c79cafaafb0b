"""Inbound events from the status-bar surface.

OS integrations (tray icons, menu bar items) run on their own threads and
hand events to the engine through ``EventDispatcher.submit``. A single
dispatcher task drains the queue on the engine's event loop.
"""

import asyncio
import contextlib
import threading
from collections.abc import Callable
from dataclasses import dataclass

from structlog import get_logger

from usagebar.models.usage import ProviderKind
from usagebar.refresh.scheduler import RefreshScheduler


logger = get_logger(__name__)


@dataclass(frozen=True)
class RefreshRequested:
    """User asked for fresh data (None means every enabled provider)."""

    provider: ProviderKind | None = None


@dataclass(frozen=True)
class StatusItemClicked:
    """A status item was clicked (None means the merged item)."""

    provider: ProviderKind | None = None


EngineEvent = RefreshRequested | StatusItemClicked
ToggleCallback = Callable[[ProviderKind | None], None]


class EventDispatcher:
    """Routes surface events to the refresh scheduler."""

    def __init__(
        self,
        scheduler: RefreshScheduler,
        on_toggle: ToggleCallback | None = None,
    ) -> None:
        self.scheduler = scheduler
        self.on_toggle = on_toggle
        self._queue: asyncio.Queue[EngineEvent] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_thread_id: int | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.is_running:
            logger.warning("event_dispatcher_already_running")
            return
        self._loop = asyncio.get_running_loop()
        self._loop_thread_id = threading.get_ident()
        self._queue = asyncio.Queue()
        self._task = asyncio.create_task(self._run(), name="event-dispatcher")
        logger.debug("event_dispatcher_started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.debug("event_dispatcher_stopped")

    def submit(self, event: EngineEvent) -> None:
        """Queue an event. Safe to call from any thread.

        Raises:
            RuntimeError: If the dispatcher has not been started
        """
        if self._loop is None or self._queue is None:
            raise RuntimeError("Event dispatcher is not running")
        if threading.get_ident() == self._loop_thread_id:
            self._queue.put_nowait(event)
        else:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event)

    async def join(self) -> None:
        """Wait until every queued event has been handled."""
        if self._queue is not None:
            await self._queue.join()

    async def _run(self) -> None:
        assert self._queue is not None
        while True:
            event = await self._queue.get()
            try:
                self._handle(event)
            except Exception:
                logger.exception("event_handling_failed", event_type=type(event).__name__)
            finally:
                self._queue.task_done()

    def _handle(self, event: EngineEvent) -> None:
        if isinstance(event, RefreshRequested):
            logger.info(
                "refresh_requested",
                provider=event.provider.value if event.provider else None,
            )
            self.scheduler.schedule_refresh(event.provider)
        elif isinstance(event, StatusItemClicked):
            self._handle_click(event.provider)
        else:
            logger.warning("unknown_event_ignored", event_type=type(event).__name__)

    def _handle_click(self, provider: ProviderKind | None) -> None:
        cache = self.scheduler.cache
        kinds = [provider] if provider is not None else cache.enabled_providers()
        # Opening a menu with nothing to show triggers a fetch
        for kind in kinds:
            if cache.get_snapshot(kind) is None and not cache.is_refreshing(kind):
                self.scheduler.schedule_refresh(kind)

        if self.on_toggle is not None:
            self.on_toggle(provider)
