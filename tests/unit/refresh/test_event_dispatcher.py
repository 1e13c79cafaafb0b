"""Tests for the status-bar event dispatcher."""

import asyncio
import threading
from typing import Any

import pytest

from usagebar.models.usage import ProviderKind, UsageSnapshot
from usagebar.refresh.events import EventDispatcher, RefreshRequested, StatusItemClicked
from usagebar.state.cache import UsageStateCache


class RecordingScheduler:
    """Stands in for RefreshScheduler, recording refresh requests."""

    def __init__(self, cache: UsageStateCache) -> None:
        self.cache = cache
        self.requests: list[ProviderKind | None] = []

    def schedule_refresh(self, kind: ProviderKind | None) -> Any:
        self.requests.append(kind)
        return None


@pytest.fixture
def scheduler(cache: UsageStateCache) -> RecordingScheduler:
    return RecordingScheduler(cache)


async def _drain(dispatcher: EventDispatcher) -> None:
    await asyncio.wait_for(dispatcher.join(), timeout=2)


@pytest.mark.unit
class TestEventDispatcher:
    """Tests for EventDispatcher."""

    async def test_submit_before_start_fails(self, scheduler: RecordingScheduler) -> None:
        """Test submitting to a dispatcher that never started raises."""
        dispatcher = EventDispatcher(scheduler)  # type: ignore[arg-type]

        with pytest.raises(RuntimeError):
            dispatcher.submit(RefreshRequested())

    async def test_refresh_request_routed(self, scheduler: RecordingScheduler) -> None:
        """Test refresh requests reach the scheduler in order."""
        dispatcher = EventDispatcher(scheduler)  # type: ignore[arg-type]
        await dispatcher.start()
        try:
            dispatcher.submit(RefreshRequested(ProviderKind.ZAI))
            dispatcher.submit(RefreshRequested())
            await _drain(dispatcher)
        finally:
            await dispatcher.stop()

        assert scheduler.requests == [ProviderKind.ZAI, None]
        assert dispatcher.is_running is False

    async def test_click_without_data_refreshes_then_toggles(
        self, scheduler: RecordingScheduler
    ) -> None:
        """Test clicking an empty provider fetches before opening the menu."""
        toggled: list[ProviderKind | None] = []
        dispatcher = EventDispatcher(scheduler, on_toggle=toggled.append)  # type: ignore[arg-type]
        await dispatcher.start()
        try:
            dispatcher.submit(StatusItemClicked(ProviderKind.SYNTHETIC))
            await _drain(dispatcher)
        finally:
            await dispatcher.stop()

        assert scheduler.requests == [ProviderKind.SYNTHETIC]
        assert toggled == [ProviderKind.SYNTHETIC]

    async def test_click_with_data_only_toggles(
        self, scheduler: RecordingScheduler, cache: UsageStateCache
    ) -> None:
        """Test clicking a provider with data only opens the menu."""
        cache.apply_result(ProviderKind.SYNTHETIC, UsageSnapshot())
        toggled: list[ProviderKind | None] = []
        dispatcher = EventDispatcher(scheduler, on_toggle=toggled.append)  # type: ignore[arg-type]
        await dispatcher.start()
        try:
            dispatcher.submit(StatusItemClicked(ProviderKind.SYNTHETIC))
            await _drain(dispatcher)
        finally:
            await dispatcher.stop()

        assert scheduler.requests == []
        assert toggled == [ProviderKind.SYNTHETIC]

    async def test_merged_click_refreshes_empty_enabled_providers(
        self, scheduler: RecordingScheduler, cache: UsageStateCache
    ) -> None:
        """Test the merged item skips providers with data or a fetch in flight."""
        cache.apply_result(ProviderKind.SYNTHETIC, UsageSnapshot())
        cache.begin_refresh(ProviderKind.ZAI)
        dispatcher = EventDispatcher(scheduler)  # type: ignore[arg-type]
        await dispatcher.start()
        try:
            dispatcher.submit(StatusItemClicked())
            await _drain(dispatcher)
        finally:
            await dispatcher.stop()

        assert scheduler.requests == []

    async def test_submit_from_other_thread(self, scheduler: RecordingScheduler) -> None:
        """Test events submitted from a foreign thread are delivered."""
        dispatcher = EventDispatcher(scheduler)  # type: ignore[arg-type]
        await dispatcher.start()
        try:
            worker = threading.Thread(
                target=dispatcher.submit, args=(RefreshRequested(ProviderKind.ZAI),)
            )
            worker.start()
            await asyncio.to_thread(worker.join)
            await asyncio.sleep(0)
            await _drain(dispatcher)
        finally:
            await dispatcher.stop()

        assert scheduler.requests == [ProviderKind.ZAI]

    async def test_failing_toggle_does_not_stop_dispatch(
        self, scheduler: RecordingScheduler, cache: UsageStateCache
    ) -> None:
        """Test a raising toggle callback leaves the dispatcher serving events."""

        def broken_toggle(provider: ProviderKind | None) -> None:
            raise RuntimeError("ui gone")

        cache.apply_result(ProviderKind.SYNTHETIC, UsageSnapshot())
        dispatcher = EventDispatcher(scheduler, on_toggle=broken_toggle)  # type: ignore[arg-type]
        await dispatcher.start()
        try:
            dispatcher.submit(StatusItemClicked(ProviderKind.SYNTHETIC))
            await _drain(dispatcher)
            assert dispatcher.is_running is True

            dispatcher.submit(RefreshRequested(ProviderKind.ZAI))
            await _drain(dispatcher)
            assert dispatcher.is_running is True
        finally:
            await dispatcher.stop()

        assert scheduler.requests == [ProviderKind.ZAI]

    async def test_unknown_event_ignored(self, scheduler: RecordingScheduler) -> None:
        """Test an unrecognized event is logged and dispatch continues."""
        dispatcher = EventDispatcher(scheduler)  # type: ignore[arg-type]
        await dispatcher.start()
        try:
            dispatcher.submit("not-an-event")  # type: ignore[arg-type]
            dispatcher.submit(RefreshRequested(ProviderKind.ZAI))
            await _drain(dispatcher)
            assert dispatcher.is_running is True
        finally:
            await dispatcher.stop()

        assert scheduler.requests == [ProviderKind.ZAI]
