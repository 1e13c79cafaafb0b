"""Plain-data view models for status-bar surfaces."""

from .card import MetricRow, ProviderCard, StatusIndicator, format_reset


__all__ = ["MetricRow", "ProviderCard", "StatusIndicator", "format_reset"]
