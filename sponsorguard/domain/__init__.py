"""Domain layer definitions."""

from .compliance import CachedVerdict, CacheSlot, NarrativeAudit, RecordChangedEvent, WorkerState

__all__ = [
    "CachedVerdict",
    "CacheSlot",
    "NarrativeAudit",
    "RecordChangedEvent",
    "WorkerState",
]
