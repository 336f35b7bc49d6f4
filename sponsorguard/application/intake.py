"""Worker intake: the HR-facing side of the worker registry."""
from __future__ import annotations

import logging
from datetime import date
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from sponsorguard.core.schema import CurrentUser, Worker, WorkerFacts
from sponsorguard.core.validation import NotFoundError, ValidationError, require_text
from sponsorguard.infrastructure import WorkerRegistry

logger = logging.getLogger(__name__)


def parse_worker_facts(payload: Any) -> WorkerFacts:
    if not isinstance(payload, dict):
        raise ValidationError("worker payload must be an object")
    name = require_text(payload.get("name"), "name")
    job_title = require_text(payload.get("jobTitle", payload.get("job_title")), "jobTitle")
    assignment = payload.get("assignmentDate", payload.get("assignment_date"))
    try:
        return WorkerFacts(
            name=name,
            job_title=job_title,
            soc_code=str(payload.get("socCode", payload.get("soc_code")) or "").strip(),
            cos_reference=str(payload.get("cosReference", payload.get("cos_reference")) or "").strip(),
            assignment_date=date.fromisoformat(assignment) if isinstance(assignment, str) and assignment else None,
        )
    except PydanticValidationError as exc:
        raise ValidationError("invalid worker payload", details={"errors": [error["msg"] for error in exc.errors()]}) from exc
    except ValueError as exc:
        raise ValidationError("assignmentDate must be an ISO date", details={"field": "assignmentDate"}) from exc


class WorkerIntake:
    """Tenant-scoped access to the worker registry."""

    def __init__(self, registry: WorkerRegistry) -> None:
        self._registry = registry

    def register(self, user: CurrentUser, payload: Any) -> Worker:
        facts = parse_worker_facts(payload)
        worker = self._registry.register_worker(user.tenant_id, facts)
        logger.info("Worker registered", extra={"worker_id": worker.id, "tenant_id": user.tenant_id})
        return worker

    def get(self, user: CurrentUser, worker_id: Any) -> Worker:
        """Return the worker or raise :class:`NotFoundError`, also for other tenants' workers."""

        if not isinstance(worker_id, str) or not worker_id.strip():
            raise ValidationError("workerId is required", details={"field": "workerId"})
        worker = self._registry.get_worker(worker_id.strip())
        if worker is None or worker.tenant_id != user.tenant_id:
            raise NotFoundError(f"worker {worker_id!r} not found", details={"workerId": worker_id})
        return worker

    def list(self, user: CurrentUser) -> list[Worker]:
        return self._registry.list_workers(user.tenant_id)
