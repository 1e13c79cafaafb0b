"""Concurrently readable cache of the latest known state per provider.

Every mutation swaps in a new immutable ProviderRuntimeState under a
threading lock, so readers on any thread see either the old record or the
new one, never a mix.
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta

from structlog import get_logger

from usagebar.config.gate import EnablementGate
from usagebar.exceptions import FetchError, FetchErrorKind
from usagebar.models.usage import STALE_AFTER, ProviderKind, UsageSnapshot


logger = get_logger(__name__)

StateListener = Callable[[ProviderKind], None]


@dataclass(frozen=True)
class ProviderRuntimeState:
    """Latest known data and refresh status for one provider."""

    last_snapshot: UsageSnapshot | None = None
    last_error: str | None = None
    last_error_kind: FetchErrorKind | None = None
    is_refreshing: bool = False
    last_attempt_at: datetime | None = None

    @property
    def has_error(self) -> bool:
        return self.last_error is not None


_EMPTY_STATE = ProviderRuntimeState()


class UsageStateCache:
    """Owns one ProviderRuntimeState per provider."""

    def __init__(
        self,
        gate: EnablementGate,
        *,
        stale_after: timedelta = STALE_AFTER,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._gate = gate
        self._stale_after = stale_after
        self._clock = clock or (lambda: datetime.now(UTC))
        self._entries: dict[ProviderKind, ProviderRuntimeState] = {}
        self._lock = threading.Lock()
        self._listeners: list[StateListener] = []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def stale_after(self) -> timedelta:
        return self._stale_after

    def get_state(self, kind: ProviderKind) -> ProviderRuntimeState:
        with self._lock:
            return self._entries.get(kind, _EMPTY_STATE)

    def get_snapshot(self, kind: ProviderKind) -> UsageSnapshot | None:
        return self.get_state(kind).last_snapshot

    def get_error(self, kind: ProviderKind) -> str | None:
        return self.get_state(kind).last_error

    def get_error_kind(self, kind: ProviderKind) -> FetchErrorKind | None:
        return self.get_state(kind).last_error_kind

    def is_refreshing(self, kind: ProviderKind) -> bool:
        return self.get_state(kind).is_refreshing

    def is_stale(self, kind: ProviderKind, now: datetime | None = None) -> bool:
        """Check whether the provider's snapshot is older than the threshold.

        A provider with no snapshot is not considered stale.
        """
        snapshot = self.get_snapshot(kind)
        if snapshot is None:
            return False
        return snapshot.is_stale(now or self._clock(), stale_after=self._stale_after)

    def enabled_providers(self) -> list[ProviderKind]:
        return list(self._gate.enabled_providers())

    def states(self) -> dict[ProviderKind, ProviderRuntimeState]:
        """Return a point-in-time copy of every entry."""
        with self._lock:
            return dict(self._entries)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def begin_refresh(self, kind: ProviderKind) -> bool:
        """Mark a provider as refreshing unless a refresh is already running.

        Returns:
            True if the caller now owns the refresh, False if one is in flight

        """
        with self._lock:
            state = self._entries.get(kind, _EMPTY_STATE)
            if state.is_refreshing:
                return False
            self._entries[kind] = replace(
                state, is_refreshing=True, last_attempt_at=self._clock()
            )
        self._notify(kind)
        return True

    def apply_result(self, kind: ProviderKind, result: UsageSnapshot | FetchError) -> None:
        """Record the outcome of a fetch and clear the refreshing flag.

        A snapshot replaces the previous one and clears any error. An error
        is recorded next to the previous snapshot, which stays available.

        Raises:
            TypeError: If result is neither a snapshot nor a FetchError

        """
        if isinstance(result, UsageSnapshot):
            with self._lock:
                state = self._entries.get(kind, _EMPTY_STATE)
                self._entries[kind] = replace(
                    state,
                    last_snapshot=result,
                    last_error=None,
                    last_error_kind=None,
                    is_refreshing=False,
                )
        elif isinstance(result, FetchError):
            with self._lock:
                state = self._entries.get(kind, _EMPTY_STATE)
                self._entries[kind] = replace(
                    state,
                    last_error=result.describe(),
                    last_error_kind=result.kind,
                    is_refreshing=False,
                )
        else:
            raise TypeError(f"Unsupported fetch result type: {type(result).__name__}")
        self._notify(kind)

    def end_refresh(self, kind: ProviderKind) -> None:
        """Clear the refreshing flag without recording a result."""
        with self._lock:
            state = self._entries.get(kind)
            if state is None or not state.is_refreshing:
                return
            self._entries[kind] = replace(state, is_refreshing=False)
        self._notify(kind)

    def prune(self) -> list[ProviderKind]:
        """Drop entries for disabled providers that are not mid-refresh.

        Returns:
            Providers whose entries were removed

        """
        enabled = set(self._gate.enabled_providers())
        with self._lock:
            removed = [
                kind
                for kind, state in self._entries.items()
                if kind not in enabled and not state.is_refreshing
            ]
            for kind in removed:
                del self._entries[kind]
        if removed:
            logger.debug("provider_states_pruned", providers=[k.value for k in removed])
        return removed

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a callback invoked with the provider kind after each change.

        Returns:
            Function that removes the listener

        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, kind: ProviderKind) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(kind)
            except Exception:
                # A broken listener must not block result recording
                logger.exception("state_listener_failed", provider=kind.value)
