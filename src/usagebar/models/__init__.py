"""Normalized usage data model."""

from .usage import (
    STALE_AFTER,
    FetchSource,
    LoginMethod,
    ProviderIdentity,
    ProviderKind,
    UsageSnapshot,
    UsageWindow,
)


__all__ = [
    "STALE_AFTER",
    "FetchSource",
    "LoginMethod",
    "ProviderIdentity",
    "ProviderKind",
    "UsageSnapshot",
    "UsageWindow",
]
