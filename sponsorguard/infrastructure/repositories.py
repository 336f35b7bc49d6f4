"""Infrastructure layer for compliance persistence.

The protocols are the persistence contract; ``InMemoryComplianceRepository``
implements them for single-process deployments and tests.  Writes for one
worker are serialised by that worker's lock, never by a global lock.
"""
from __future__ import annotations

import threading
from datetime import datetime
from typing import Callable, ContextManager, Protocol

from sponsorguard.core.schema import (
    AgentComplianceRecord,
    Alert,
    RemediationAction,
    Verdict,
    Worker,
    WorkerAggregate,
    WorkerFacts,
    utcnow,
)
from sponsorguard.domain import RecordChangedEvent, WorkerState

AggregateFn = Callable[[list[AgentComplianceRecord]], WorkerAggregate]
ActionUpdate = Callable[[RemediationAction], RemediationAction]
AlertUpdate = Callable[[Alert], Alert]


class WorkerRegistry(Protocol):
    """HR intake collaborator: owns worker identity."""

    def register_worker(self, tenant_id: str, facts: WorkerFacts) -> Worker: ...

    def get_worker(self, worker_id: str) -> Worker | None: ...

    def list_workers(self, tenant_id: str) -> list[Worker]: ...


class ComplianceRepository(Protocol):
    """Persistence contract for agent records, aggregates, actions and alerts."""

    def upsert_record(
        self,
        worker_id: str,
        agent_type: str,
        verdict: Verdict | None,
        *,
        assessed_at: datetime | None = None,
    ) -> RecordChangedEvent:
        """Write the record for (worker, agent); ``verdict=None`` stores a PENDING record."""

    def list_records(self, worker_id: str) -> list[AgentComplianceRecord]: ...

    def worker_lock(self, worker_id: str) -> ContextManager[object]:
        """Re-entrant lock held across one upsert and the aggregate swap that follows it."""

    def recompute_aggregate(
        self, worker_id: str, compute: AggregateFn
    ) -> tuple[WorkerAggregate, WorkerAggregate | None]: ...

    def get_aggregate(self, worker_id: str) -> WorkerAggregate | None: ...

    def snapshot(
        self, tenant_id: str
    ) -> list[tuple[Worker, list[AgentComplianceRecord], WorkerAggregate | None]]: ...

    def add_remediation_action(self, action: RemediationAction) -> RemediationAction: ...

    def get_remediation_action(self, action_id: str) -> RemediationAction | None: ...

    def update_remediation_action(self, action_id: str, update: ActionUpdate) -> RemediationAction: ...

    def delete_remediation_action(self, action_id: str) -> bool: ...

    def list_remediation_actions(self, tenant_id: str) -> list[RemediationAction]: ...

    def add_alert(self, alert: Alert) -> Alert: ...

    def get_alert(self, alert_id: str) -> Alert | None: ...

    def update_alert(self, alert_id: str, update: AlertUpdate) -> Alert: ...

    def list_alerts(self, tenant_id: str) -> list[Alert]: ...

    def next_id(self, prefix: str) -> str: ...

    def reset(self) -> None: ...


class InMemoryComplianceRepository:
    """Simple in-memory repository for single-process deployments and tests."""

    def __init__(self) -> None:
        self._workers: dict[str, WorkerState] = {}
        self._actions: dict[str, RemediationAction] = {}
        self._alerts: dict[str, Alert] = {}
        self._counters: dict[str, int] = {}
        # guards the dictionaries themselves, not per-worker data
        self._registry_lock = threading.Lock()
        self._actions_lock = threading.Lock()
        self._alerts_lock = threading.Lock()

    # ------------------------------------------------------------------
    # internal helpers
    # ------------------------------------------------------------------
    def _state(self, worker_id: str) -> WorkerState:
        state = self._workers.get(worker_id)
        if state is None:
            raise KeyError(worker_id)
        return state

    def next_id(self, prefix: str) -> str:
        with self._registry_lock:
            self._counters[prefix] = self._counters.get(prefix, 0) + 1
            return f"{prefix}-{self._counters[prefix]:05d}"

    # ------------------------------------------------------------------
    # worker registry
    # ------------------------------------------------------------------
    def register_worker(self, tenant_id: str, facts: WorkerFacts) -> Worker:
        worker = Worker(
            id=self.next_id("wrk"),
            tenant_id=tenant_id,
            name=facts.name,
            job_title=facts.job_title,
            soc_code=facts.soc_code,
            cos_reference=facts.cos_reference,
            assignment_date=facts.assignment_date,
        )
        with self._registry_lock:
            self._workers[worker.id] = WorkerState(worker=worker)
        return worker

    def get_worker(self, worker_id: str) -> Worker | None:
        state = self._workers.get(worker_id)
        return state.worker if state else None

    def list_workers(self, tenant_id: str) -> list[Worker]:
        with self._registry_lock:
            states = list(self._workers.values())
        return [state.worker for state in states if state.worker.tenant_id == tenant_id]

    # ------------------------------------------------------------------
    # agent records and aggregates
    # ------------------------------------------------------------------
    def upsert_record(
        self,
        worker_id: str,
        agent_type: str,
        verdict: Verdict | None,
        *,
        assessed_at: datetime | None = None,
    ) -> RecordChangedEvent:
        state = self._state(worker_id)
        if verdict is None:
            record = AgentComplianceRecord(
                worker_id=worker_id,
                agent_type=agent_type,
                status="PENDING",
                risk_level="LOW",
                red_flag=False,
                last_assessed_at=assessed_at or utcnow(),
            )
        else:
            record = AgentComplianceRecord(
                worker_id=worker_id,
                agent_type=agent_type,
                status=verdict.status,
                risk_level=verdict.risk_level,
                red_flag=verdict.red_flag,
                narrative=verdict.narrative,
                last_assessed_at=assessed_at or utcnow(),
            )
        with state.lock:
            state.records[agent_type] = record
        return RecordChangedEvent(worker_id=worker_id, agent_type=agent_type, record=record)

    def worker_lock(self, worker_id: str) -> threading.RLock:
        return self._state(worker_id).lock

    def list_records(self, worker_id: str) -> list[AgentComplianceRecord]:
        state = self._workers.get(worker_id)
        if state is None:
            return []
        with state.lock:
            return list(state.records.values())

    def recompute_aggregate(
        self, worker_id: str, compute: AggregateFn
    ) -> tuple[WorkerAggregate, WorkerAggregate | None]:
        state = self._state(worker_id)
        with state.lock:
            aggregate = compute(list(state.records.values()))
            previous = state.aggregate
            state.aggregate = aggregate
        return aggregate, previous

    def get_aggregate(self, worker_id: str) -> WorkerAggregate | None:
        state = self._workers.get(worker_id)
        return state.aggregate if state else None

    def snapshot(
        self, tenant_id: str
    ) -> list[tuple[Worker, list[AgentComplianceRecord], WorkerAggregate | None]]:
        with self._registry_lock:
            states = [state for state in self._workers.values() if state.worker.tenant_id == tenant_id]
        rows: list[tuple[Worker, list[AgentComplianceRecord], WorkerAggregate | None]] = []
        for state in states:
            with state.lock:
                rows.append((state.worker, list(state.records.values()), state.aggregate))
        return rows

    # ------------------------------------------------------------------
    # remediation actions
    # ------------------------------------------------------------------
    def add_remediation_action(self, action: RemediationAction) -> RemediationAction:
        with self._actions_lock:
            self._actions[action.id] = action
        return action

    def get_remediation_action(self, action_id: str) -> RemediationAction | None:
        return self._actions.get(action_id)

    def update_remediation_action(self, action_id: str, update: ActionUpdate) -> RemediationAction:
        with self._actions_lock:
            current = self._actions[action_id]
            updated = update(current)
            self._actions[action_id] = updated
        return updated

    def delete_remediation_action(self, action_id: str) -> bool:
        with self._actions_lock:
            return self._actions.pop(action_id, None) is not None

    def list_remediation_actions(self, tenant_id: str) -> list[RemediationAction]:
        with self._actions_lock:
            actions = list(self._actions.values())
        return [action for action in actions if action.tenant_id == tenant_id]

    # ------------------------------------------------------------------
    # alerts
    # ------------------------------------------------------------------
    def add_alert(self, alert: Alert) -> Alert:
        with self._alerts_lock:
            self._alerts[alert.id] = alert
        return alert

    def get_alert(self, alert_id: str) -> Alert | None:
        return self._alerts.get(alert_id)

    def update_alert(self, alert_id: str, update: AlertUpdate) -> Alert:
        with self._alerts_lock:
            current = self._alerts[alert_id]
            updated = update(current)
            self._alerts[alert_id] = updated
        return updated

    def list_alerts(self, tenant_id: str) -> list[Alert]:
        with self._alerts_lock:
            alerts = list(self._alerts.values())
        return [alert for alert in alerts if alert.tenant_id == tenant_id]

    def reset(self) -> None:
        with self._registry_lock:
            self._workers.clear()
            self._counters.clear()
        with self._actions_lock:
            self._actions.clear()
        with self._alerts_lock:
            self._alerts.clear()
