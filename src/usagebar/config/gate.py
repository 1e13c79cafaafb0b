"""Enablement gate: which providers the engine should track."""

import threading
from typing import Protocol, runtime_checkable

from structlog import get_logger

from usagebar.config.settings import ProviderSettings
from usagebar.models.usage import ProviderKind


logger = get_logger(__name__)


@runtime_checkable
class EnablementGate(Protocol):
    """Read-only view of provider enablement and display flags."""

    def enabled_providers(self) -> list[ProviderKind]: ...

    def merge_icons(self) -> bool: ...

    def usage_bars_show_used(self) -> bool: ...

    def reset_times_show_absolute(self) -> bool: ...


class SettingsEnablementGate:
    """Enablement gate backed by ProviderSettings.

    The settings object can be swapped at runtime (e.g. after the user edits
    the config file); readers always see one consistent settings instance.
    """

    def __init__(self, settings: ProviderSettings | None = None) -> None:
        self._settings = settings or ProviderSettings()
        self._lock = threading.Lock()

    def enabled_providers(self) -> list[ProviderKind]:
        with self._lock:
            return list(self._settings.enabled)

    def is_enabled(self, kind: ProviderKind) -> bool:
        with self._lock:
            return kind in self._settings.enabled

    def merge_icons(self) -> bool:
        with self._lock:
            return self._settings.merge_icons

    def usage_bars_show_used(self) -> bool:
        with self._lock:
            return self._settings.usage_bars_show_used

    def reset_times_show_absolute(self) -> bool:
        with self._lock:
            return self._settings.reset_times_show_absolute

    def base_url(self, kind: ProviderKind) -> str | None:
        with self._lock:
            return self._settings.base_urls.get(kind)

    def update(self, settings: ProviderSettings) -> None:
        """Replace the provider settings."""
        with self._lock:
            previous = self._settings.enabled
            self._settings = settings
        logger.info(
            "provider_settings_updated",
            enabled=[kind.value for kind in settings.enabled],
            previously_enabled=[kind.value for kind in previous],
        )
