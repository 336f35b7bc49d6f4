"""Assessment-to-aggregate orchestration."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Mapping

from sponsorguard.core.agents import AgentRegistry, get_registry, resolve_agent_type
from sponsorguard.core.schema import CurrentUser, NarrativeResult, Verdict, Worker, WorkerAggregate
from sponsorguard.core.settings import Settings
from sponsorguard.core.validation import ComplianceError, ValidationError
from sponsorguard.infrastructure import AIProvider, ComplianceRepository, NarrativeCache, get_ai_provider

from .aggregator import RiskAggregator
from .alerts import AlertNotifier
from .directory import ComplianceDirectory
from .intake import WorkerIntake
from .narratives import NarrativeGenerator
from .remediation import RemediationTracker

logger = logging.getLogger(__name__)

MAX_BATCH_ITEMS = 100


class ComplianceService:
    """Coordinates the compliance use cases for one process."""

    def __init__(
        self,
        repository: ComplianceRepository,
        cache: NarrativeCache,
        *,
        settings: Settings | None = None,
        registry: AgentRegistry | None = None,
        provider: Callable[[], AIProvider] = get_ai_provider,
    ) -> None:
        settings = settings or Settings()
        self._repository = repository
        self._registry = registry
        self._batch_concurrency = settings.batch_concurrency
        self.intake = WorkerIntake(repository)
        self.generator = NarrativeGenerator(cache, provider=provider, registry=registry, timeout=settings.ai_timeout)
        self.aggregator = RiskAggregator(repository, settings.risk_weights)
        self.remediation = RemediationTracker(repository, self.intake, registry)
        self.alerts = AlertNotifier(repository, self.intake, registry)
        self.directory = ComplianceDirectory(repository, registry)

    @property
    def registry(self) -> AgentRegistry:
        return self._registry or get_registry()

    # ------------------------------------------------------------------
    # assessments
    # ------------------------------------------------------------------
    def _target(self, user: CurrentUser, payload: Any) -> tuple[Worker, str]:
        if not isinstance(payload, dict):
            raise ValidationError("assessment payload must be an object")
        worker = self.intake.get(user, payload.get("workerId"))
        return worker, resolve_agent_type(payload.get("agentType"), self.registry)

    async def submit_assessment(self, user: CurrentUser, payload: Any) -> NarrativeResult:
        worker, agent_type = self._target(user, payload)
        result = await self.generator.generate(
            agent_type,
            worker.facts(),
            payload.get("assessmentInput"),
            worker_id=worker.id,
        )
        self.record_verdict(user, worker, agent_type, result.verdict(), findings=payload.get("assessmentInput"))
        return result

    def mark_pending(self, user: CurrentUser, payload: Any) -> WorkerAggregate:
        """Open an assessment without findings; it stays PENDING until submitted."""

        worker, agent_type = self._target(user, payload)
        return self.record_verdict(user, worker, agent_type, None)

    def record_verdict(
        self,
        user: CurrentUser,
        worker: Worker,
        agent_type: str,
        verdict: Verdict | None,
        *,
        findings: Mapping[str, Any] | None = None,
    ) -> WorkerAggregate:
        # each write must diff against the aggregate its own upsert replaced
        with self._repository.worker_lock(worker.id):
            event = self._repository.upsert_record(worker.id, agent_type, verdict)
            aggregate, previous = self.aggregator.recompute(worker.id)
        logger.info(
            "Agent record stored",
            extra={
                "worker_id": worker.id,
                "agent_type": agent_type,
                "status": event.record.status,
                "red_flags": aggregate.total_red_flags,
            },
        )
        if self.aggregator.new_red_flag(aggregate, previous):
            self.alerts.raise_red_flag(user, worker, event.record, findings)
        return aggregate

    async def submit_batch(self, user: CurrentUser, payload: Any) -> dict[str, Any]:
        items = payload.get("items") if isinstance(payload, dict) else None
        if not isinstance(items, list) or not items:
            raise ValidationError("items must be a non-empty list", details={"field": "items"})
        if len(items) > MAX_BATCH_ITEMS:
            raise ValidationError(f"at most {MAX_BATCH_ITEMS} items per batch", details={"field": "items"})

        semaphore = asyncio.Semaphore(self._batch_concurrency)

        async def run(index: int, item: Any) -> dict[str, Any]:
            async with semaphore:
                try:
                    result = await self.submit_assessment(user, item)
                except ComplianceError as exc:
                    return {"index": index, "ok": False, "error": exc.to_dict()}
            return {"index": index, "ok": True, "result": result.model_dump(by_alias=True, mode="json")}

        results = await asyncio.gather(*(run(index, item) for index, item in enumerate(items)))
        failed = sum(1 for result in results if not result["ok"])
        logger.info("Batch assessment finished", extra={"items": len(results), "failed": failed})
        return {"results": results, "succeeded": len(results) - failed, "failed": failed}

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    def get_aggregate(self, user: CurrentUser, worker_id: str) -> WorkerAggregate:
        worker = self.intake.get(user, worker_id)
        return self.aggregator.get(worker.id)

    def worker_detail(self, user: CurrentUser, worker_id: str) -> dict[str, Any]:
        worker = self.intake.get(user, worker_id)
        records = sorted(self._repository.list_records(worker.id), key=lambda record: record.agent_type)
        return {
            "worker": worker.model_dump(by_alias=True, mode="json"),
            "aggregate": self.aggregator.get(worker.id).model_dump(by_alias=True, mode="json"),
            "records": [record.model_dump(by_alias=True, mode="json") for record in records],
        }

    # ------------------------------------------------------------------
    # testing helpers
    # ------------------------------------------------------------------
    def reset(self) -> None:
        self._repository.reset()
        self.generator.reset()
