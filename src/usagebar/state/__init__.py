"""Per-provider runtime state."""

from .cache import ProviderRuntimeState, UsageStateCache


__all__ = ["ProviderRuntimeState", "UsageStateCache"]
