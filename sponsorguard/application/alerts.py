"""Tenant-scoped alerts raised by aggregation or by hand."""
from __future__ import annotations

import logging
from typing import Any, Mapping

from sponsorguard.core.agents import AgentRegistry, format_finding_key, get_registry, resolve_agent_type
from sponsorguard.core.lifecycle import next_alert_status, parse_alert_status
from sponsorguard.core.schema import AgentComplianceRecord, Alert, CurrentUser, Worker
from sponsorguard.core.validation import NotFoundError, ValidationError, require_text
from sponsorguard.core.verdicts import explicit_red_flags
from sponsorguard.infrastructure import ComplianceRepository

from .intake import WorkerIntake

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def parse_limit(raw: Any) -> int:
    if raw is None or raw == "":
        return DEFAULT_LIMIT
    try:
        limit = int(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError("limit must be an integer", details={"field": "limit"}) from exc
    if not 1 <= limit <= MAX_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_LIMIT}", details={"field": "limit"})
    return limit


class AlertNotifier:
    def __init__(
        self,
        repository: ComplianceRepository,
        intake: WorkerIntake,
        registry: AgentRegistry | None = None,
    ) -> None:
        self._repository = repository
        self._intake = intake
        self._registry = registry

    @property
    def registry(self) -> AgentRegistry:
        return self._registry or get_registry()

    def _store(self, user: CurrentUser, agent_type: str, message: str, worker_id: str | None) -> Alert:
        alert = Alert(
            id=self._repository.next_id("alr"),
            tenant_id=user.tenant_id,
            user_id=user.id,
            worker_id=worker_id,
            agent_type=agent_type,
            alert_message=message,
        )
        return self._repository.add_alert(alert)

    def raise_red_flag(
        self,
        user: CurrentUser,
        worker: Worker,
        record: AgentComplianceRecord,
        findings: Mapping[str, Any] | None = None,
    ) -> Alert:
        """Alert for a red flag that has just appeared on ``record``."""

        agent = self.registry.get(record.agent_type)
        flagged = explicit_red_flags(agent, findings or {})
        if record.status == "COMPLIANT" and flagged:
            items = ", ".join(format_finding_key(key) for key in flagged)
            message = f"New red flag for {worker.name}: {agent.name} findings flag {items}."
        else:
            message = (
                f"New red flag for {worker.name}: {agent.name} assessment returned "
                f"{record.status.replace('_', ' ')} ({record.risk_level} risk)."
            )
        alert = self._store(user, agent.slug, message, worker.id)
        logger.info(
            "Red flag alert raised",
            extra={"alert_id": alert.id, "worker_id": worker.id, "agent_type": agent.slug},
        )
        return alert

    def create(self, user: CurrentUser, payload: Any) -> Alert:
        if not isinstance(payload, dict):
            raise ValidationError("alert payload must be an object")
        agent_type = resolve_agent_type(payload.get("agentType"), self.registry)
        message = require_text(payload.get("alertMessage"), "alertMessage")
        worker_id = payload.get("workerId")
        if worker_id is not None:
            worker_id = self._intake.get(user, worker_id).id
        alert = self._store(user, agent_type, message, worker_id)
        logger.info("Alert created", extra={"alert_id": alert.id, "agent_type": agent_type})
        return alert

    def list(self, user: CurrentUser, *, status: str | None = None, limit: Any = None) -> list[Alert]:
        wanted = parse_alert_status(status) if status else None
        count = parse_limit(limit)
        alerts = [
            alert
            for alert in self._repository.list_alerts(user.tenant_id)
            if wanted is None or alert.status == wanted
        ]
        alerts.sort(key=lambda alert: (alert.created_at, alert.id), reverse=True)
        return alerts[:count]

    def update_status(self, user: CurrentUser, alert_id: str, payload: Any) -> Alert:
        if not isinstance(payload, dict) or "status" not in payload:
            raise ValidationError("status is required", details={"field": "status"})
        requested = parse_alert_status(payload["status"])
        alert = self._repository.get_alert(alert_id)
        if alert is None or alert.tenant_id != user.tenant_id:
            raise NotFoundError(f"alert {alert_id!r} not found", details={"id": alert_id})

        def apply(current: Alert) -> Alert:
            return current.model_copy(update={"status": next_alert_status(current.status, requested)})

        updated = self._repository.update_alert(alert_id, apply)
        logger.info("Alert status changed", extra={"alert_id": alert_id, "status": updated.status})
        return updated
