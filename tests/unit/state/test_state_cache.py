"""Tests for the per-provider state cache."""

from datetime import UTC, datetime, timedelta

import pytest

from usagebar.config.gate import SettingsEnablementGate
from usagebar.config.settings import ProviderSettings
from usagebar.exceptions import ApiError, CredentialMissingError, FetchErrorKind, TransportError
from usagebar.models.usage import ProviderKind, UsageSnapshot, UsageWindow
from usagebar.state.cache import UsageStateCache


SYN = ProviderKind.SYNTHETIC
FIXED_NOW = datetime(2025, 9, 20, 12, 0, tzinfo=UTC)


def _snapshot(used: float = 50.0, age: timedelta = timedelta(0)) -> UsageSnapshot:
    return UsageSnapshot(
        primary=UsageWindow(used_percent=used),
        updated_at=FIXED_NOW - age,
    )


@pytest.mark.unit
class TestUsageStateCache:
    """Tests for UsageStateCache."""

    def test_empty_provider(self, cache: UsageStateCache) -> None:
        """Test an unknown provider reads as empty state."""
        assert cache.get_snapshot(SYN) is None
        assert cache.get_error(SYN) is None
        assert cache.is_refreshing(SYN) is False
        assert cache.is_stale(SYN) is False

    def test_begin_refresh_is_exclusive(self, cache: UsageStateCache) -> None:
        """Test only the first begin_refresh wins until the flag clears."""
        assert cache.begin_refresh(SYN) is True
        assert cache.begin_refresh(SYN) is False
        assert cache.is_refreshing(SYN) is True
        assert cache.get_state(SYN).last_attempt_at == FIXED_NOW

    def test_snapshot_clears_error(self, cache: UsageStateCache) -> None:
        """Test a new snapshot replaces a previous error."""
        cache.begin_refresh(SYN)
        cache.apply_result(SYN, TransportError("timeout"))
        cache.begin_refresh(SYN)
        cache.apply_result(SYN, _snapshot())

        state = cache.get_state(SYN)
        assert state.last_snapshot is not None
        assert state.last_error is None
        assert state.last_error_kind is None
        assert state.is_refreshing is False

    def test_error_keeps_previous_snapshot(self, cache: UsageStateCache) -> None:
        """Test an error leaves the last snapshot in place."""
        snapshot = _snapshot()
        cache.begin_refresh(SYN)
        cache.apply_result(SYN, snapshot)
        cache.begin_refresh(SYN)
        cache.apply_result(SYN, ApiError(500, "boom"))

        assert cache.get_snapshot(SYN) == snapshot
        assert cache.get_error(SYN) == "API error HTTP 500: boom"
        assert cache.get_error_kind(SYN) is FetchErrorKind.API_ERROR
        assert cache.is_refreshing(SYN) is False

    def test_missing_credential_recorded(self, cache: UsageStateCache) -> None:
        """Test a missing credential is recorded with its kind."""
        cache.begin_refresh(SYN)
        cache.apply_result(SYN, CredentialMissingError("synthetic", "Set SYNTHETIC_API_KEY"))

        assert cache.get_snapshot(SYN) is None
        assert cache.get_error_kind(SYN) is FetchErrorKind.CREDENTIAL_MISSING
        assert cache.get_error(SYN) == "Not configured: Set SYNTHETIC_API_KEY"
        assert cache.is_refreshing(SYN) is False

    def test_unsupported_result_rejected(self, cache: UsageStateCache) -> None:
        """Test results other than snapshots or fetch errors are refused."""
        with pytest.raises(TypeError):
            cache.apply_result(SYN, {"primary": 1})  # type: ignore[arg-type]

    def test_end_refresh(self, cache: UsageStateCache) -> None:
        """Test end_refresh clears the flag without touching data."""
        cache.begin_refresh(SYN)
        cache.end_refresh(SYN)

        assert cache.is_refreshing(SYN) is False
        assert cache.begin_refresh(SYN) is True

    @pytest.mark.parametrize(("age_minutes", "expected"), [(10, False), (11, True)])
    def test_staleness(self, cache: UsageStateCache, age_minutes: int, expected: bool) -> None:
        """Test staleness is computed on read at the ten minute boundary."""
        cache.apply_result(SYN, _snapshot(age=timedelta(minutes=age_minutes)))

        assert cache.is_stale(SYN) is expected

    def test_staleness_with_explicit_now(self, cache: UsageStateCache) -> None:
        """Test an explicit instant overrides the cache clock."""
        cache.apply_result(SYN, _snapshot())

        assert cache.is_stale(SYN, FIXED_NOW + timedelta(hours=1)) is True

    def test_enabled_providers_follow_gate(self) -> None:
        """Test enablement is read live from the gate."""
        gate = SettingsEnablementGate(ProviderSettings(enabled=[ProviderKind.CODEX]))
        cache = UsageStateCache(gate)

        assert cache.enabled_providers() == [ProviderKind.CODEX]
        gate.update(ProviderSettings(enabled=[ProviderKind.ZAI, ProviderKind.CLAUDE]))
        assert cache.enabled_providers() == [ProviderKind.ZAI, ProviderKind.CLAUDE]

    def test_prune_skips_refreshing_entries(self, gate: SettingsEnablementGate) -> None:
        """Test prune keeps disabled entries that are mid-refresh."""
        cache = UsageStateCache(gate)
        cache.apply_result(ProviderKind.OPENROUTER, _snapshot())
        cache.begin_refresh(ProviderKind.COPILOT)
        cache.apply_result(SYN, _snapshot())

        removed = cache.prune()

        assert removed == [ProviderKind.OPENROUTER]
        assert set(cache.states()) == {ProviderKind.COPILOT, SYN}

    def test_listeners_notified(self, cache: UsageStateCache) -> None:
        """Test listeners receive the kind of each change."""
        seen: list[ProviderKind] = []
        unsubscribe = cache.subscribe(seen.append)

        cache.begin_refresh(SYN)
        cache.apply_result(SYN, _snapshot())
        unsubscribe()
        cache.begin_refresh(SYN)

        assert seen == [SYN, SYN]

    def test_failing_listener_does_not_block_update(self, cache: UsageStateCache) -> None:
        """Test a raising listener does not undo the update."""
        def explode(kind: ProviderKind) -> None:
            raise RuntimeError("listener bug")

        cache.subscribe(explode)
        cache.apply_result(SYN, _snapshot())

        assert cache.get_snapshot(SYN) is not None
