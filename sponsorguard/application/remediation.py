"""Remediation actions raised by operators in response to breaches."""
from __future__ import annotations

import logging
from typing import Any

from sponsorguard.core.agents import AgentRegistry, get_registry, resolve_agent_type
from sponsorguard.core.lifecycle import next_remediation_status, parse_remediation_status
from sponsorguard.core.schema import CurrentUser, RemediationAction, utcnow
from sponsorguard.core.validation import NotFoundError, ValidationError, require_text
from sponsorguard.infrastructure import ComplianceRepository

from .intake import WorkerIntake

logger = logging.getLogger(__name__)

_UPDATABLE = {"status", "actionSummary", "detailedNotes"}


class RemediationTracker:
    def __init__(
        self,
        repository: ComplianceRepository,
        intake: WorkerIntake,
        registry: AgentRegistry | None = None,
    ) -> None:
        self._repository = repository
        self._intake = intake
        self._registry = registry

    def _owned(self, user: CurrentUser, action_id: str) -> RemediationAction:
        action = self._repository.get_remediation_action(action_id)
        if action is None or action.tenant_id != user.tenant_id:
            raise NotFoundError(f"remediation action {action_id!r} not found", details={"id": action_id})
        return action

    def create(self, user: CurrentUser, payload: Any) -> RemediationAction:
        if not isinstance(payload, dict):
            raise ValidationError("remediation payload must be an object")
        worker = self._intake.get(user, payload.get("workerId"))
        agent_type = resolve_agent_type(payload.get("agentType"), self._registry or get_registry())
        summary = require_text(payload.get("actionSummary"), "actionSummary")
        notes = payload.get("detailedNotes") or ""
        if not isinstance(notes, str):
            raise ValidationError("detailedNotes must be a string", details={"field": "detailedNotes"})

        records = {record.agent_type for record in self._repository.list_records(worker.id)}
        if agent_type not in records:
            raise NotFoundError(
                "no compliance record for this worker and agent",
                details={"workerId": worker.id, "agentType": agent_type},
            )

        now = utcnow()
        action = RemediationAction(
            id=self._repository.next_id("act"),
            tenant_id=user.tenant_id,
            user_id=user.id,
            worker_id=worker.id,
            agent_type=agent_type,
            action_summary=summary,
            detailed_notes=notes,
            created_at=now,
            updated_at=now,
        )
        self._repository.add_remediation_action(action)
        logger.info("Remediation action created", extra={"action_id": action.id, "worker_id": worker.id, "agent_type": agent_type})
        return action

    def update(self, user: CurrentUser, action_id: str, payload: Any) -> RemediationAction:
        """Apply a partial update; fields missing from ``payload`` keep their value."""

        if not isinstance(payload, dict) or not _UPDATABLE & payload.keys():
            raise ValidationError(
                "update must include status, actionSummary or detailedNotes",
                details={"allowed": sorted(_UPDATABLE)},
            )
        self._owned(user, action_id)

        changes: dict[str, Any] = {}
        requested = parse_remediation_status(payload["status"]) if "status" in payload else None
        if "actionSummary" in payload:
            changes["action_summary"] = require_text(payload["actionSummary"], "actionSummary")
        if "detailedNotes" in payload:
            notes = payload["detailedNotes"]
            if notes is not None and not isinstance(notes, str):
                raise ValidationError("detailedNotes must be a string", details={"field": "detailedNotes"})
            changes["detailed_notes"] = notes or ""

        def apply(current: RemediationAction) -> RemediationAction:
            update = dict(changes)
            if requested is not None:
                update["status"] = next_remediation_status(current.status, requested)
            update["updated_at"] = utcnow()
            return current.model_copy(update=update)

        action = self._repository.update_remediation_action(action_id, apply)
        logger.info("Remediation action updated", extra={"action_id": action_id, "status": action.status})
        return action

    def delete(self, user: CurrentUser, action_id: str) -> None:
        action = self._owned(user, action_id)
        if action.user_id != user.id:
            raise NotFoundError(f"remediation action {action_id!r} not found", details={"id": action_id})
        if not self._repository.delete_remediation_action(action_id):
            raise NotFoundError(f"remediation action {action_id!r} not found", details={"id": action_id})
        logger.info("Remediation action deleted", extra={"action_id": action_id})

    def get(self, user: CurrentUser, action_id: str) -> RemediationAction:
        return self._owned(user, action_id)

    def list(
        self,
        user: CurrentUser,
        *,
        worker_id: str | None = None,
        agent_type: str | None = None,
        status: str | None = None,
    ) -> list[RemediationAction]:
        slug = resolve_agent_type(agent_type, self._registry or get_registry()) if agent_type else None
        wanted = parse_remediation_status(status) if status else None
        actions = [
            action
            for action in self._repository.list_remediation_actions(user.tenant_id)
            if (worker_id is None or action.worker_id == worker_id)
            and (slug is None or action.agent_type == slug)
            and (wanted is None or action.status == wanted)
        ]
        return sorted(actions, key=lambda action: (action.created_at, action.id), reverse=True)
