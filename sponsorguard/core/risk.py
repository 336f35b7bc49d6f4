"""Cross-agent risk aggregation.

The aggregate of a worker is a pure function of that worker's agent
records.  Nothing here reads or writes state.
"""
from __future__ import annotations

from typing import Iterable

from sponsorguard.core.schema import RISK_SEVERITY, STATUS_SEVERITY, AgentComplianceRecord, WorkerAggregate
from sponsorguard.core.settings import RiskWeights
from sponsorguard.core.validation import AggregationInconsistency

MAX_SCORE = 100


def global_risk_score(serious_breaches: int, breaches: int, standalone_red_flags: int, weights: RiskWeights) -> int:
    """Weighted 0-100 score, non-decreasing in every argument.

    A serious breach's own red flag is priced into ``weights.serious_breach``;
    ``standalone_red_flags`` counts flags raised on BREACH records, so a
    record set without breaches always scores zero.
    """

    raw = (
        weights.serious_breach * serious_breaches
        + weights.breach * breaches
        + weights.red_flag * standalone_red_flags
    )
    return max(0, min(MAX_SCORE, raw))


def compute_aggregate(
    worker_id: str,
    records: Iterable[AgentComplianceRecord],
    weights: RiskWeights | None = None,
) -> WorkerAggregate:
    weights = weights or RiskWeights()

    assessed = 0
    pending = 0
    serious = 0
    breaches = 0
    red_flags = 0
    standalone_flags = 0
    worst_status = "COMPLIANT"
    worst_risk = "LOW"

    for record in records:
        if record.worker_id != worker_id:
            raise AggregationInconsistency(
                "record belongs to another worker",
                details={"worker_id": worker_id, "record_worker_id": record.worker_id},
            )
        assessed += 1
        if record.red_flag:
            red_flags += 1
            if record.status == "BREACH":
                standalone_flags += 1
        if record.status == "PENDING":
            pending += 1
            continue

        if record.status == "SERIOUS_BREACH":
            serious += 1
        elif record.status == "BREACH":
            breaches += 1
        if STATUS_SEVERITY[record.status] > STATUS_SEVERITY[worst_status]:
            worst_status = record.status
        if RISK_SEVERITY[record.risk_level] > RISK_SEVERITY[worst_risk]:
            worst_risk = record.risk_level

    return WorkerAggregate(
        worker_id=worker_id,
        overall_compliance_status=worst_status,
        overall_risk_level=worst_risk,
        total_red_flags=red_flags,
        global_risk_score=global_risk_score(serious, breaches, standalone_flags, weights),
        assessed_agents=assessed,
        pending_agents=pending,
        serious_breach_count=serious,
        breach_count=breaches,
    )


def check_aggregate(aggregate: WorkerAggregate) -> None:
    """Raise :class:`AggregationInconsistency` if ``aggregate`` breaks its invariants."""

    problems: list[str] = []
    if not 0 <= aggregate.global_risk_score <= MAX_SCORE:
        problems.append("score out of range")
    if aggregate.total_red_flags > aggregate.assessed_agents:
        problems.append("more red flags than records")
    if aggregate.serious_breach_count + aggregate.breach_count + aggregate.pending_agents > aggregate.assessed_agents:
        problems.append("status counts exceed records")
    if aggregate.overall_compliance_status == "COMPLIANT" and aggregate.global_risk_score:
        problems.append("compliant aggregate with non-zero score")
    if problems:
        raise AggregationInconsistency(
            "recomputed aggregate is inconsistent",
            details={"worker_id": aggregate.worker_id, "problems": problems},
        )
