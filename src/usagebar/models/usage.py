"""Uniform usage model shared by every provider integration."""

from datetime import UTC, datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


STALE_AFTER = timedelta(minutes=10)


class ProviderKind(StrEnum):
    """Supported providers. The value is the stable provider id."""

    CLAUDE = "claude"
    CODEX = "codex"
    COPILOT = "copilot"
    SYNTHETIC = "synthetic"
    ZAI = "zai"
    OPENROUTER = "openrouter"


class LoginMethod(StrEnum):
    """How the user authenticated with the provider."""

    API_KEY = "api_key"
    OAUTH = "oauth"
    CLI_SESSION = "cli_session"
    GITHUB_TOKEN = "github_token"


class FetchSource(StrEnum):
    """Where a snapshot's data came from."""

    API = "api"
    CLI = "cli"
    CACHE = "cache"
    LOCAL_FILE = "local_file"


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class UsageWindow(BaseModel):
    """Consumption within one quota period."""

    model_config = ConfigDict(frozen=True)

    used_percent: float = Field(..., description="Share of the quota consumed")
    window_minutes: int | None = Field(
        default=None, description="Length of the quota period in minutes"
    )
    resets_at: datetime | None = Field(default=None, description="Reset instant (UTC)")
    reset_description: str | None = Field(
        default=None, description="Human-readable reset text when no timestamp is known"
    )

    @field_validator("resets_at")
    @classmethod
    def resets_at_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @property
    def remaining_percent(self) -> float:
        return max(0.0, min(100.0, 100.0 - self.used_percent))

    def time_until_reset(self, now: datetime) -> timedelta | None:
        """Time left until the window resets.

        Args:
            now: Current instant

        Returns:
            Non-negative duration, or None when the reset instant is unknown

        """
        if self.resets_at is None:
            return None
        return max(self.resets_at - _as_utc(now), timedelta(0))


class ProviderIdentity(BaseModel):
    """Who the usage belongs to."""

    model_config = ConfigDict(frozen=True)

    provider: ProviderKind
    account_email: str | None = None
    plan_name: str | None = None
    login_method: LoginMethod | None = None


class UsageSnapshot(BaseModel):
    """Latest known usage for one provider at one instant."""

    model_config = ConfigDict(frozen=True)

    primary: UsageWindow | None = None
    secondary: UsageWindow | None = None
    tertiary: UsageWindow | None = None
    search: UsageWindow | None = None
    identity: ProviderIdentity | None = None
    fetch_source: FetchSource = FetchSource.API
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("updated_at")
    @classmethod
    def updated_at_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    def is_stale(self, now: datetime, *, stale_after: timedelta = STALE_AFTER) -> bool:
        """Check whether the snapshot is older than the staleness threshold.

        Exactly at the threshold the snapshot still counts as fresh.
        """
        return _as_utc(now) - self.updated_at > stale_after

    def windows(self) -> dict[str, UsageWindow]:
        """Return the populated windows keyed by slot name."""
        slots = {
            "primary": self.primary,
            "secondary": self.secondary,
            "tertiary": self.tertiary,
            "search": self.search,
        }
        return {name: window for name, window in slots.items() if window is not None}
