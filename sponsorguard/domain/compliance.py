"""Domain entities held by the in-memory repositories."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime

from sponsorguard.core.schema import AgentComplianceRecord, Verdict, Worker, WorkerAggregate


@dataclass(slots=True)
class WorkerState:
    """Everything stored for one worker, guarded by its own lock."""

    worker: Worker
    records: dict[str, AgentComplianceRecord] = field(default_factory=dict)
    aggregate: WorkerAggregate | None = None
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)


@dataclass(frozen=True, slots=True)
class RecordChangedEvent:
    """Emitted by every agent record upsert."""

    worker_id: str
    agent_type: str
    record: AgentComplianceRecord


@dataclass(frozen=True, slots=True)
class CachedVerdict:
    """Immutable cache payload; overwriting a fingerprint replaces the whole value."""

    fingerprint: str
    agent_type: str
    verdict: Verdict
    source: str
    created_at: float


@dataclass(slots=True)
class CacheSlot:
    value: CachedVerdict
    hit_count: int = 0


@dataclass(frozen=True, slots=True)
class NarrativeAudit:
    id: str
    timestamp: datetime
    agent_type: str
    worker_id: str | None
    source: str
    model: str
    duration_ms: float
    token_estimate: int
    validation_passed: bool
    cost_estimate: float = 0.0
