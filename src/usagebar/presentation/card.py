"""Plain-data view models for menu cards and status indicators.

Rendering (icons, colours, layout) belongs to the surface; these records
only carry the text and numbers it needs.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo

from usagebar.config.gate import EnablementGate
from usagebar.exceptions import FetchErrorKind
from usagebar.models.usage import ProviderKind, UsageWindow
from usagebar.providers.registry import descriptor
from usagebar.state.cache import ProviderRuntimeState, UsageStateCache


TERTIARY_LABEL = "Premium"


def clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, value))


def _snapshot_is_stale(
    state: ProviderRuntimeState, cache: UsageStateCache, now: datetime
) -> bool:
    # Judge the same record the card was built from
    snapshot = state.last_snapshot
    if snapshot is None:
        return False
    return snapshot.is_stale(now, stale_after=cache.stale_after)


def format_reset(
    window: UsageWindow,
    now: datetime,
    *,
    show_absolute: bool = False,
    tz: tzinfo | None = None,
) -> str | None:
    """Render when a window resets.

    Args:
        window: Usage window
        now: Current instant
        show_absolute: "Resets at 3:00 PM" instead of "Resets in 2h 30m"
        tz: Time zone for absolute times (local time when None)

    Returns:
        Reset text, or None when the window has no reset information
    """
    remaining = window.time_until_reset(now)
    if window.resets_at is not None and remaining is not None:
        if show_absolute:
            local = window.resets_at.astimezone(tz)
            return f"Resets at {local.strftime('%I:%M %p').lstrip('0')}"
        if remaining.total_seconds() <= 0:
            return "Resets soon"
        total_minutes = int(remaining.total_seconds() // 60)
        hours, minutes = divmod(total_minutes, 60)
        if hours > 0:
            return f"Resets in {hours}h {minutes}m"
        return f"Resets in {minutes}m"

    if window.reset_description:
        return f"Resets {window.reset_description}"
    return None


@dataclass(frozen=True)
class MetricRow:
    title: str
    used_percent: float
    percent_label: str
    reset_text: str | None = None


@dataclass(frozen=True)
class ProviderCard:
    """Everything a menu card shows for one provider."""

    provider: ProviderKind
    provider_name: str
    email: str
    plan: str | None
    metrics: tuple[MetricRow, ...]
    is_refreshing: bool
    is_stale: bool
    error: str | None
    install_hint: str | None
    updated_at: datetime | None

    @classmethod
    def from_cache(
        cls,
        kind: ProviderKind,
        cache: UsageStateCache,
        gate: EnablementGate,
        now: datetime | None = None,
        *,
        tz: tzinfo | None = None,
    ) -> "ProviderCard":
        """Build a card from the provider's current cached state.

        Args:
            kind: Provider to describe
            cache: State cache to read
            gate: Display flags source
            now: Current instant (defaults to the wall clock)
            tz: Time zone for absolute reset times
        """
        now = now or datetime.now(UTC)
        desc = descriptor(kind)
        state = cache.get_state(kind)
        snapshot = state.last_snapshot
        show_used = gate.usage_bars_show_used()
        show_absolute = gate.reset_times_show_absolute()

        metrics: list[MetricRow] = []
        if snapshot is not None:
            titles = {
                "primary": desc.session_label,
                "secondary": desc.weekly_label,
                "tertiary": TERTIARY_LABEL,
                "search": desc.search_label,
            }
            for slot, window in snapshot.windows().items():
                used = clamp_percent(window.used_percent)
                if show_used:
                    label = f"{used:.0f}% used"
                else:
                    label = f"{100.0 - used:.0f}% remaining"
                metrics.append(
                    MetricRow(
                        title=titles[slot],
                        used_percent=used,
                        percent_label=label,
                        reset_text=format_reset(
                            window, now, show_absolute=show_absolute, tz=tz
                        ),
                    )
                )

        identity = snapshot.identity if snapshot is not None else None
        show_hint = state.last_error_kind == FetchErrorKind.CREDENTIAL_MISSING
        return cls(
            provider=kind,
            provider_name=desc.display_name,
            email=(identity.account_email or "") if identity else "",
            plan=identity.plan_name if identity else None,
            metrics=tuple(metrics),
            is_refreshing=state.is_refreshing,
            is_stale=_snapshot_is_stale(state, cache, now),
            error=state.last_error,
            install_hint=desc.install_hint if show_hint else None,
            updated_at=snapshot.updated_at if snapshot is not None else None,
        )


@dataclass(frozen=True)
class StatusIndicator:
    """What a status-bar icon needs to draw itself."""

    provider: ProviderKind
    primary_percent: float | None
    secondary_percent: float | None
    is_refreshing: bool
    is_stale: bool
    has_error: bool

    @classmethod
    def from_cache(
        cls, kind: ProviderKind, cache: UsageStateCache, now: datetime | None = None
    ) -> "StatusIndicator":
        state = cache.get_state(kind)
        snapshot = state.last_snapshot
        primary = snapshot.primary if snapshot is not None else None
        secondary = snapshot.secondary if snapshot is not None else None
        return cls(
            provider=kind,
            primary_percent=clamp_percent(primary.used_percent) if primary else None,
            secondary_percent=clamp_percent(secondary.used_percent) if secondary else None,
            is_refreshing=state.is_refreshing,
            is_stale=_snapshot_is_stale(state, cache, now or datetime.now(UTC)),
            has_error=state.has_error,
        )
