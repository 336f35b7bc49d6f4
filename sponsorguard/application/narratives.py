"""Narrative generation: cache, then AI provider, then template fallback."""
from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter, deque
from datetime import timedelta
from typing import Any, Callable, Mapping

from sponsorguard.core.agents import AgentDefinition, AgentRegistry, build_prompt, get_registry, validate_assessment_input
from sponsorguard.core.hashing import fingerprint
from sponsorguard.core.schema import NarrativeResult, Verdict, WorkerFacts, utcnow
from sponsorguard.core.validation import ProviderError, ValidationError
from sponsorguard.core.verdicts import parse_verdict, template_verdict
from sponsorguard.domain import NarrativeAudit
from sponsorguard.infrastructure import AIProvider, NarrativeCache, get_ai_provider

logger = logging.getLogger(__name__)

AUDIT_SIZE = 1000
SLOW_GENERATION_MS = 10_000

# USD per 1K tokens
MODEL_COSTS: dict[str, float] = {
    "gpt-4-turbo": 0.01,
    "gpt-4-turbo-preview": 0.01,
    "gpt-4": 0.03,
    "gpt-3.5-turbo": 0.0005,
}
DEFAULT_COST_PER_1K = 0.01

TIMEFRAMES: dict[str, timedelta] = {
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
}


def estimate_tokens(text: str) -> int:
    return -(-len(text) // 4)


def estimate_cost(tokens: int, model: str) -> float:
    return tokens / 1000 * MODEL_COSTS.get(model, DEFAULT_COST_PER_1K)


def validate_narrative(verdict: Verdict, facts: WorkerFacts) -> bool:
    """Cheap quality check: the text names the worker and states its verdict."""

    text = verdict.narrative.upper()
    keyword = verdict.status.replace("_", " ")
    return facts.name.strip().upper() in text and (keyword in text or verdict.status in text)


class NarrativeGenerator:
    """Resolve a verdict for one (agent, worker facts, findings) triple.

    Provider failures of any kind end in the template generator, so
    ``generate`` returns a verdict for every input that passes validation.
    """

    def __init__(
        self,
        cache: NarrativeCache,
        *,
        provider: Callable[[], AIProvider] = get_ai_provider,
        registry: AgentRegistry | None = None,
        timeout: float = 12.0,
        audit_size: int = AUDIT_SIZE,
    ) -> None:
        self._cache = cache
        self._provider = provider
        self._registry = registry
        self._timeout = timeout
        self._audit: deque[NarrativeAudit] = deque(maxlen=audit_size)
        self._audit_counter = 0

    @property
    def registry(self) -> AgentRegistry:
        return self._registry or get_registry()

    @property
    def cache(self) -> NarrativeCache:
        return self._cache

    # ------------------------------------------------------------------
    # generation
    # ------------------------------------------------------------------
    async def generate(
        self,
        agent_type: str,
        facts: WorkerFacts,
        assessment_input: Mapping[str, Any] | None,
        *,
        worker_id: str | None = None,
    ) -> NarrativeResult:
        agent = self.registry.get(agent_type)
        findings = validate_assessment_input(agent, assessment_input)
        key = fingerprint(agent.slug, facts, findings)
        started = time.perf_counter()

        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Narrative cache hit", extra={"agent_type": agent.slug, "fingerprint": key[:12]})
            self._record(agent.slug, worker_id, "CACHE", "cache", started, cached.verdict, facts)
            return self._result(cached.verdict, "CACHE")

        provider = self._provider()
        try:
            verdict = await self._complete(provider, agent, facts, findings)
            source = "AI"
        except asyncio.CancelledError:
            # the caller is gone but the cache still gets a complete entry
            self._fallback(agent, facts, findings, key)
            raise
        except (ProviderError, asyncio.TimeoutError) as exc:
            logger.warning(
                "AI narrative unavailable, using template",
                extra={"agent_type": agent.slug, "reason": str(exc) or type(exc).__name__},
            )
            verdict = self._fallback(agent, facts, findings, key)
            source = "TEMPLATE"
        except Exception:
            logger.exception("AI provider raised unexpectedly, using template", extra={"agent_type": agent.slug})
            verdict = self._fallback(agent, facts, findings, key)
            source = "TEMPLATE"
        else:
            self._cache.put(key, agent_type=agent.slug, verdict=verdict, source=source)

        model = provider.model if source == "AI" else "template"
        self._record(agent.slug, worker_id, source, model, started, verdict, facts)
        return self._result(verdict, source)

    async def _complete(
        self,
        provider: AIProvider,
        agent: AgentDefinition,
        facts: WorkerFacts,
        findings: Mapping[str, Any],
    ) -> Verdict:
        prompt = build_prompt(agent, facts, findings, registry=self.registry)
        text = await asyncio.wait_for(
            asyncio.to_thread(provider.complete, prompt, self._timeout),
            timeout=self._timeout,
        )
        return parse_verdict(agent, findings, text)

    def _fallback(
        self,
        agent: AgentDefinition,
        facts: WorkerFacts,
        findings: Mapping[str, Any],
        key: str,
    ) -> Verdict:
        verdict = template_verdict(agent, facts, findings, assessed_on=utcnow().date())
        self._cache.put(key, agent_type=agent.slug, verdict=verdict, source="TEMPLATE")
        return verdict

    @staticmethod
    def _result(verdict: Verdict, source: str) -> NarrativeResult:
        return NarrativeResult(
            status=verdict.status,
            risk_level=verdict.risk_level,
            red_flag=verdict.red_flag,
            narrative=verdict.narrative,
            source=source,
        )

    # ------------------------------------------------------------------
    # audit trail
    # ------------------------------------------------------------------
    def _record(
        self,
        agent_type: str,
        worker_id: str | None,
        source: str,
        model: str,
        started: float,
        verdict: Verdict,
        facts: WorkerFacts,
    ) -> NarrativeAudit:
        duration_ms = (time.perf_counter() - started) * 1000
        tokens = estimate_tokens(verdict.narrative)
        passed = validate_narrative(verdict, facts)
        self._audit_counter += 1
        audit = NarrativeAudit(
            id=f"gen-{self._audit_counter:06d}",
            timestamp=utcnow(),
            agent_type=agent_type,
            worker_id=worker_id,
            source=source,
            model=model,
            duration_ms=round(duration_ms, 3),
            token_estimate=tokens,
            validation_passed=passed,
            cost_estimate=estimate_cost(tokens, model) if source == "AI" else 0.0,
        )
        self._audit.append(audit)
        if not passed or duration_ms > SLOW_GENERATION_MS:
            logger.warning(
                "Narrative generation anomaly",
                extra={"agent_type": agent_type, "source": source, "duration_ms": audit.duration_ms, "validation_passed": passed},
            )
        return audit

    def audit_entries(self) -> list[NarrativeAudit]:
        return list(self._audit)

    def metrics(self, timeframe: str = "day") -> dict[str, Any]:
        window = TIMEFRAMES.get(timeframe)
        if window is None:
            raise ValidationError(
                f"unknown timeframe {timeframe!r}",
                details={"field": "timeframe", "allowed": list(TIMEFRAMES)},
            )
        cutoff = utcnow() - window
        entries = [entry for entry in self._audit if entry.timestamp > cutoff]
        total = len(entries)
        by_source = Counter(entry.source for entry in entries)
        return {
            "timeframe": timeframe,
            "totalGenerations": total,
            "aiGenerations": by_source.get("AI", 0),
            "fallbackGenerations": by_source.get("TEMPLATE", 0),
            "cacheHits": by_source.get("CACHE", 0),
            "averageDurationMs": round(sum(entry.duration_ms for entry in entries) / total, 3) if total else 0.0,
            "validationPassRate": sum(1 for entry in entries if entry.validation_passed) / total if total else 0.0,
            "totalCost": round(sum(entry.cost_estimate for entry in entries), 6),
            "modelUsage": dict(Counter(entry.model for entry in entries)),
        }

    def reset(self) -> None:
        self._audit.clear()
        self._audit_counter = 0
        self._cache.clear()
