"""Read-only directory over workers and their aggregated compliance state."""
from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Mapping

from sponsorguard.core.agents import AgentRegistry, get_registry, resolve_agent_type
from sponsorguard.core.schema import AgentComplianceRecord, CurrentUser, Worker, WorkerAggregate, utcnow
from sponsorguard.core.validation import ValidationError
from sponsorguard.infrastructure import ComplianceRepository

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
TREND_DAYS = 30
TOP_AGENTS = 5

_STATUSES = ("COMPLIANT", "BREACH", "SERIOUS_BREACH")
_RISKS = ("LOW", "MEDIUM", "HIGH")


def _parse_int(raw: Any, field: str, default: int, *, low: int, high: int | None = None) -> int:
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be an integer", details={"field": field}) from exc
    if value < low or (high is not None and value > high):
        bound = f"between {low} and {high}" if high is not None else f"at least {low}"
        raise ValidationError(f"{field} must be {bound}", details={"field": field})
    return value


def _parse_choice(raw: Any, field: str, allowed: tuple[str, ...]) -> str | None:
    if raw is None or raw == "":
        return None
    value = str(raw).strip().upper().replace(" ", "_")
    if value not in allowed:
        raise ValidationError(f"unknown {field} {raw!r}", details={"field": field, "allowed": list(allowed)})
    return value


def _parse_bool(raw: Any, field: str) -> bool | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, bool):
        return raw
    value = str(raw).strip().lower()
    if value in {"true", "1", "yes"}:
        return True
    if value in {"false", "0", "no"}:
        return False
    raise ValidationError(f"{field} must be true or false", details={"field": field})


def _parse_date(raw: Any, field: str) -> date | None:
    if raw is None or raw == "":
        return None
    try:
        return date.fromisoformat(str(raw)[:10])
    except ValueError as exc:
        raise ValidationError(f"{field} must be an ISO date", details={"field": field}) from exc


@dataclass(frozen=True, slots=True)
class DirectoryQuery:
    compliance_status: str | None = None
    risk_level: str | None = None
    agent_type: str | None = None
    has_red_flags: bool | None = None
    start_date: date | None = None
    end_date: date | None = None
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @classmethod
    def from_params(cls, params: Mapping[str, Any], registry: AgentRegistry | None = None) -> "DirectoryQuery":
        agent_raw = params.get("agentType")
        query = cls(
            compliance_status=_parse_choice(params.get("complianceStatus"), "complianceStatus", _STATUSES),
            risk_level=_parse_choice(params.get("riskLevel"), "riskLevel", _RISKS),
            agent_type=resolve_agent_type(agent_raw, registry) if agent_raw else None,
            has_red_flags=_parse_bool(params.get("hasRedFlags"), "hasRedFlags"),
            start_date=_parse_date(params.get("startDate"), "startDate"),
            end_date=_parse_date(params.get("endDate"), "endDate"),
            page=_parse_int(params.get("page"), "page", 1, low=1),
            page_size=_parse_int(params.get("pageSize"), "pageSize", DEFAULT_PAGE_SIZE, low=1, high=MAX_PAGE_SIZE),
        )
        if query.start_date and query.end_date and query.start_date > query.end_date:
            raise ValidationError("startDate must not be after endDate", details={"field": "startDate"})
        return query


@dataclass(frozen=True, slots=True)
class DirectoryRow:
    worker: Worker
    aggregate: WorkerAggregate
    records: tuple[AgentComplianceRecord, ...]

    @property
    def agent_types(self) -> list[str]:
        return sorted(record.agent_type for record in self.records)

    @property
    def last_assessed_at(self) -> datetime | None:
        return max((record.last_assessed_at for record in self.records), default=None)

    def matches(self, query: DirectoryQuery) -> bool:
        aggregate = self.aggregate
        if query.compliance_status and aggregate.overall_compliance_status != query.compliance_status:
            return False
        if query.risk_level and aggregate.overall_risk_level != query.risk_level:
            return False
        if query.agent_type and query.agent_type not in self.agent_types:
            return False
        if query.has_red_flags is not None and (aggregate.total_red_flags > 0) != query.has_red_flags:
            return False
        created = self.worker.created_at.date()
        if query.start_date and created < query.start_date:
            return False
        if query.end_date and created > query.end_date:
            return False
        return True

    def to_dict(self) -> dict[str, Any]:
        last = self.last_assessed_at
        return {
            **self.worker.model_dump(by_alias=True, mode="json"),
            "aggregate": self.aggregate.model_dump(by_alias=True, mode="json"),
            "agentTypes": self.agent_types,
            "lastAssessedAt": last.isoformat() if last else None,
        }

    def to_export_row(self) -> dict[str, Any]:
        aggregate = self.aggregate
        last = self.last_assessed_at
        return {
            "worker_id": self.worker.id,
            "name": self.worker.name,
            "job_title": self.worker.job_title,
            "soc_code": self.worker.soc_code,
            "cos_reference": self.worker.cos_reference,
            "assignment_date": self.worker.assignment_date.isoformat() if self.worker.assignment_date else "",
            "overall_status": aggregate.overall_compliance_status,
            "overall_risk": aggregate.overall_risk_level,
            "global_risk_score": aggregate.global_risk_score,
            "red_flags": aggregate.total_red_flags,
            "assessed_agents": aggregate.assessed_agents,
            "pending_agents": aggregate.pending_agents,
            "agent_types": ", ".join(self.agent_types),
            "last_assessed_at": last.isoformat() if last else "",
        }


def _rate(compliant: int, assessed: int) -> float:
    return round(compliant / assessed * 100, 1) if assessed else 0.0


class ComplianceDirectory:
    """Snapshot reads for dashboards; never mutates compliance state."""

    def __init__(self, repository: ComplianceRepository, registry: AgentRegistry | None = None) -> None:
        self._repository = repository
        self._registry = registry

    @property
    def registry(self) -> AgentRegistry:
        return self._registry or get_registry()

    def rows(self, user: CurrentUser) -> list[DirectoryRow]:
        rows = [
            DirectoryRow(
                worker=worker,
                aggregate=aggregate or WorkerAggregate(worker_id=worker.id),
                records=tuple(records),
            )
            for worker, records, aggregate in self._repository.snapshot(user.tenant_id)
        ]
        rows.sort(key=lambda row: (row.worker.created_at, row.worker.id), reverse=True)
        return rows

    def filtered_rows(self, user: CurrentUser, query: DirectoryQuery) -> tuple[list[DirectoryRow], int]:
        rows = self.rows(user)
        return [row for row in rows if row.matches(query)], len(rows)

    def search(self, user: CurrentUser, params: Mapping[str, Any]) -> dict[str, Any]:
        query = DirectoryQuery.from_params(params, self.registry)
        matching, total = self.filtered_rows(user, query)
        filtered = len(matching)
        total_pages = max(1, math.ceil(filtered / query.page_size))
        start = (query.page - 1) * query.page_size
        page = matching[start : start + query.page_size]
        return {
            "workers": [row.to_dict() for row in page],
            "totalCount": total,
            "filteredCount": filtered,
            "pagination": {
                "page": query.page,
                "pageSize": query.page_size,
                "totalPages": total_pages,
                "hasNext": query.page < total_pages,
                "hasPrevious": query.page > 1,
            },
        }

    def export_rows(self, user: CurrentUser, params: Mapping[str, Any]) -> list[dict[str, Any]]:
        query = DirectoryQuery.from_params(params, self.registry)
        matching, _ = self.filtered_rows(user, query)
        return [row.to_export_row() for row in matching]

    # ------------------------------------------------------------------
    # metrics
    # ------------------------------------------------------------------
    def metrics(self, user: CurrentUser, *, now: datetime | None = None) -> dict[str, Any]:
        now = now or utcnow()
        rows = self.rows(user)
        records = [record for row in rows for record in row.records]
        return {
            "summary": self._summary(rows, records),
            "agentSummaries": self._agent_summaries(records),
            "statusDistribution": {
                status: sum(1 for record in records if record.status == status) for status in (*_STATUSES, "PENDING")
            },
            "riskDistribution": {risk: sum(1 for record in records if record.risk_level == risk) for risk in _RISKS},
            "topAgents": self._top_agents(records),
            "trend": self._trend(records, now),
        }

    def _summary(self, rows: list[DirectoryRow], records: list[AgentComplianceRecord]) -> dict[str, Any]:
        decided = [record for record in records if record.status != "PENDING"]
        compliant = sum(1 for record in decided if record.status == "COMPLIANT")
        last = max((record.last_assessed_at for record in records), default=None)
        return {
            "totalWorkers": len(rows),
            "totalAssessments": len(records),
            "overallComplianceRate": _rate(compliant, len(decided)),
            "totalBreaches": sum(1 for record in records if record.status == "BREACH"),
            "totalSeriousBreaches": sum(1 for record in records if record.status == "SERIOUS_BREACH"),
            "totalRedFlags": sum(row.aggregate.total_red_flags for row in rows),
            "highRiskWorkers": sum(1 for row in rows if row.aggregate.overall_risk_level == "HIGH" and row.records),
            "lastUpdated": last.isoformat() if last else None,
        }

    def _agent_summaries(self, records: Iterable[AgentComplianceRecord]) -> list[dict[str, Any]]:
        by_agent: dict[str, list[AgentComplianceRecord]] = {slug: [] for slug in self.registry.slugs}
        for record in records:
            by_agent.setdefault(record.agent_type, []).append(record)

        summaries = []
        for slug, items in by_agent.items():
            counts = Counter(record.status for record in items)
            decided = len(items) - counts.get("PENDING", 0)
            last = max((record.last_assessed_at for record in items), default=None)
            summaries.append(
                {
                    "agentType": slug,
                    "name": self.registry.agents[slug].name if slug in self.registry else slug,
                    "workersAssessed": len(items),
                    "compliant": counts.get("COMPLIANT", 0),
                    "breach": counts.get("BREACH", 0),
                    "seriousBreach": counts.get("SERIOUS_BREACH", 0),
                    "pending": counts.get("PENDING", 0),
                    "complianceRate": _rate(counts.get("COMPLIANT", 0), decided),
                    "redFlags": sum(1 for record in items if record.red_flag),
                    "highRiskWorkers": sum(1 for record in items if record.risk_level == "HIGH"),
                    "lastAssessmentDate": last.isoformat() if last else None,
                }
            )
        return summaries

    def _top_agents(self, records: list[AgentComplianceRecord]) -> list[dict[str, Any]]:
        assessed = [summary for summary in self._agent_summaries(records) if summary["workersAssessed"]]
        assessed.sort(key=lambda summary: (-summary["complianceRate"], summary["agentType"]))
        return [
            {"agentType": summary["agentType"], "name": summary["name"], "complianceRate": summary["complianceRate"]}
            for summary in assessed[:TOP_AGENTS]
        ]

    @staticmethod
    def _trend(records: list[AgentComplianceRecord], now: datetime) -> list[dict[str, Any]]:
        today = now.date()
        days = [today - timedelta(days=offset) for offset in range(TREND_DAYS - 1, -1, -1)]
        by_day: dict[date, list[AgentComplianceRecord]] = {day: [] for day in days}
        for record in records:
            day = record.last_assessed_at.date()
            if day in by_day:
                by_day[day].append(record)

        trend = []
        for day in days:
            items = by_day[day]
            counts = Counter(record.status for record in items)
            decided = len(items) - counts.get("PENDING", 0)
            trend.append(
                {
                    "date": day.isoformat(),
                    "assessments": len(items),
                    "complianceRate": _rate(counts.get("COMPLIANT", 0), decided),
                    "breaches": counts.get("BREACH", 0),
                    "seriousBreaches": counts.get("SERIOUS_BREACH", 0),
                }
            )
        return trend
