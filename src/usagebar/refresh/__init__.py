"""Refresh scheduling and inbound event dispatch."""

from .events import EngineEvent, EventDispatcher, RefreshRequested, StatusItemClicked
from .scheduler import RefreshScheduler


__all__ = [
    "EngineEvent",
    "EventDispatcher",
    "RefreshRequested",
    "RefreshScheduler",
    "StatusItemClicked",
]
