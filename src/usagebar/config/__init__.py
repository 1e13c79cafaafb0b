"""Configuration for usagebar."""

from .gate import EnablementGate, SettingsEnablementGate
from .settings import (
    ConfigurationError,
    CredentialSettings,
    LoggingSettings,
    ProviderSettings,
    RefreshSettings,
    Settings,
    load_settings,
)


__all__ = [
    "ConfigurationError",
    "CredentialSettings",
    "EnablementGate",
    "LoggingSettings",
    "ProviderSettings",
    "RefreshSettings",
    "Settings",
    "SettingsEnablementGate",
    "load_settings",
]
