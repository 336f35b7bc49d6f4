"""Global risk aggregation wired to the per-worker store."""
from __future__ import annotations

import logging

from sponsorguard.core.risk import check_aggregate, compute_aggregate
from sponsorguard.core.schema import AgentComplianceRecord, WorkerAggregate
from sponsorguard.core.settings import RiskWeights
from sponsorguard.core.validation import AggregationInconsistency
from sponsorguard.infrastructure import ComplianceRepository

logger = logging.getLogger(__name__)


class RiskAggregator:
    """Recompute a worker's aggregate from its full record set."""

    def __init__(self, repository: ComplianceRepository, weights: RiskWeights | None = None) -> None:
        self._repository = repository
        self._weights = weights or RiskWeights()

    @property
    def weights(self) -> RiskWeights:
        return self._weights

    def recompute(self, worker_id: str) -> tuple[WorkerAggregate, WorkerAggregate]:
        """Return ``(new, previous)``; ``previous`` is an empty aggregate on first run.

        The stored aggregate is replaced only when the new one passes its
        consistency checks.
        """

        def compute(records: list[AgentComplianceRecord]) -> WorkerAggregate:
            aggregate = compute_aggregate(worker_id, records, self._weights)
            check_aggregate(aggregate)
            return aggregate

        try:
            new, previous = self._repository.recompute_aggregate(worker_id, compute)
        except AggregationInconsistency as exc:
            logger.critical("Aggregate recomputation failed", extra={"worker_id": worker_id, "details": exc.details})
            raise
        return new, previous or WorkerAggregate(worker_id=worker_id)

    def get(self, worker_id: str) -> WorkerAggregate:
        return self._repository.get_aggregate(worker_id) or WorkerAggregate(worker_id=worker_id)

    @staticmethod
    def new_red_flag(new: WorkerAggregate, previous: WorkerAggregate) -> bool:
        return new.total_red_flags > previous.total_red_flags
