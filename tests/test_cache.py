from __future__ import annotations

import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from sponsorguard.core.schema import Verdict
from sponsorguard.infrastructure import InMemoryNarrativeCache

VERDICT = Verdict(status="COMPLIANT", risk_level="LOW", narrative="fine")


class FakeClock:
    def __init__(self) -> None:
        self.now = 1_000.0

    def __call__(self) -> float:
        return self.now


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = InMemoryNarrativeCache(ttl_seconds=60, clock=clock)
    cache.put("abc", agent_type="salary", verdict=VERDICT, source="AI")

    clock.now += 59
    assert cache.get("abc") is not None
    clock.now += 2
    assert cache.get("abc") is None
    assert cache.stats()["size"] == 0


def test_least_recently_used_entry_is_evicted():
    cache = InMemoryNarrativeCache(max_entries=2, clock=FakeClock())
    cache.put("a", agent_type="salary", verdict=VERDICT, source="AI")
    cache.put("b", agent_type="salary", verdict=VERDICT, source="AI")
    cache.get("a")
    cache.put("c", agent_type="salary", verdict=VERDICT, source="TEMPLATE")

    assert cache.get("b") is None
    assert cache.get("a") is not None
    assert cache.get("c") is not None
    assert cache.stats()["evictions"] == 1


def test_overwrite_replaces_whole_entry_and_resets_hits():
    cache = InMemoryNarrativeCache(clock=FakeClock())
    cache.put("a", agent_type="salary", verdict=VERDICT, source="TEMPLATE")
    cache.get("a")

    cache.put("a", agent_type="salary", verdict=VERDICT, source="AI")

    assert cache.hit_count("a") == 0
    assert cache.get("a").source == "AI"


def test_stats_and_clear():
    cache = InMemoryNarrativeCache(clock=FakeClock())
    cache.put("a", agent_type="salary", verdict=VERDICT, source="AI")
    cache.get("a")
    cache.get("a")

    stats = cache.stats()
    assert stats["size"] == 1
    assert stats["totalHits"] == 2
    assert stats["entries"][0]["agentType"] == "salary"

    cache.clear()
    assert cache.stats()["size"] == 0
