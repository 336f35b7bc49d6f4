"""Content-addressed narrative cache.

Entries are immutable ``CachedVerdict`` values; a put for an existing
fingerprint replaces the whole slot in one assignment under the lock, so a
reader sees either the old entry or the new one.
"""
from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Protocol

from sponsorguard.core.schema import Verdict
from sponsorguard.domain import CachedVerdict, CacheSlot


class NarrativeCache(Protocol):
    def get(self, fingerprint: str) -> CachedVerdict | None: ...

    def put(self, fingerprint: str, *, agent_type: str, verdict: Verdict, source: str) -> CachedVerdict: ...

    def stats(self) -> dict[str, Any]: ...

    def clear(self) -> None: ...


class InMemoryNarrativeCache:
    """LRU cache with a time-to-live, sized for a single process."""

    def __init__(
        self,
        *,
        ttl_seconds: float = 24 * 60 * 60,
        max_entries: int = 100,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._slots: OrderedDict[str, CacheSlot] = OrderedDict()
        self._lock = threading.Lock()
        self._evictions = 0

    def _expired(self, entry: CachedVerdict, now: float) -> bool:
        return now - entry.created_at > self._ttl

    def get(self, fingerprint: str) -> CachedVerdict | None:
        now = self._clock()
        with self._lock:
            slot = self._slots.get(fingerprint)
            if slot is None:
                return None
            if self._expired(slot.value, now):
                del self._slots[fingerprint]
                self._evictions += 1
                return None
            slot.hit_count += 1
            self._slots.move_to_end(fingerprint)
            return slot.value

    def put(self, fingerprint: str, *, agent_type: str, verdict: Verdict, source: str) -> CachedVerdict:
        entry = CachedVerdict(
            fingerprint=fingerprint,
            agent_type=agent_type,
            verdict=verdict,
            source=source,
            created_at=self._clock(),
        )
        with self._lock:
            self._slots[entry.fingerprint] = CacheSlot(value=entry)
            self._slots.move_to_end(entry.fingerprint)
            while len(self._slots) > self._max_entries:
                self._slots.popitem(last=False)
                self._evictions += 1
        return entry

    def hit_count(self, fingerprint: str) -> int:
        with self._lock:
            slot = self._slots.get(fingerprint)
            return slot.hit_count if slot else 0

    def stats(self) -> dict[str, Any]:
        now = self._clock()
        with self._lock:
            slots = list(self._slots.items())
            evictions = self._evictions
        return {
            "size": len(slots),
            "maxEntries": self._max_entries,
            "ttlSeconds": self._ttl,
            "totalHits": sum(slot.hit_count for _, slot in slots),
            "evictions": evictions,
            "entries": [
                {
                    "fingerprint": key,
                    "agentType": slot.value.agent_type,
                    "source": slot.value.source,
                    "hitCount": slot.hit_count,
                    "ageSeconds": round(now - slot.value.created_at, 3),
                }
                for key, slot in slots
            ],
        }

    def clear(self) -> None:
        with self._lock:
            self._slots.clear()
            self._evictions = 0
