from __future__ import annotations

import asyncio
import sys
import threading
import time
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from sponsorguard.application import ComplianceService
from sponsorguard.core.agents import get_registry
from sponsorguard.core.schema import CurrentUser, Verdict, WorkerFacts
from sponsorguard.core.validation import NotFoundError, ProviderError, ValidationError
from sponsorguard.infrastructure import InMemoryComplianceRepository, InMemoryNarrativeCache

USER = CurrentUser(id="user-1", tenant_id="tenant-a")
OTHER_TENANT = CurrentUser(id="user-9", tenant_id="tenant-b")


class FailingProvider:
    model = "gpt-4-turbo"

    def complete(self, prompt: str, timeout: float) -> str:
        raise ProviderError("provider down")


@pytest.fixture()
def service() -> ComplianceService:
    provider = FailingProvider()
    return ComplianceService(InMemoryComplianceRepository(), InMemoryNarrativeCache(), provider=lambda: provider)


@pytest.fixture()
def worker(service):
    return service.intake.register(
        USER,
        {"name": "Jane Doe", "jobTitle": "Software Engineer", "socCode": "2134", "assignmentDate": "2024-03-01"},
    )


def _submit(service, worker_id, agent_type, findings, user=USER):
    payload = {"workerId": worker_id, "agentType": agent_type, "assessmentInput": findings}
    return asyncio.run(service.submit_assessment(user, payload))


def test_scenario_raises_one_alert_for_salary(service, worker):
    salary = _submit(service, worker.id, "salary", {"missing_payslips": True})
    right_to_work = _submit(service, worker.id, "rightToWork", {"visa_expired": False})

    assert salary.status == "SERIOUS_BREACH"
    assert right_to_work.status == "COMPLIANT"

    aggregate = service.get_aggregate(USER, worker.id)
    assert aggregate.overall_compliance_status == "SERIOUS_BREACH"
    assert aggregate.overall_risk_level == "HIGH"
    assert aggregate.total_red_flags == 1
    assert aggregate.global_risk_score == 40

    alerts = service.alerts.list(USER)
    assert len(alerts) == 1
    assert alerts[0].agent_type == "salary"
    assert alerts[0].worker_id == worker.id
    assert alerts[0].status == "Unread"


def test_repeated_red_flag_result_alerts_once(service, worker):
    _submit(service, worker.id, "salary", {"missing_payslips": True})
    _submit(service, worker.id, "salary", {"missing_payslips": True})

    assert len(service.alerts.list(USER)) == 1


def test_cleared_then_reflagged_alerts_again(service, worker):
    _submit(service, worker.id, "salary", {"missing_payslips": True})
    _submit(service, worker.id, "salary", {"missing_payslips": False})
    assert service.get_aggregate(USER, worker.id).total_red_flags == 0

    _submit(service, worker.id, "salary", {"missing_payslips": True})

    assert len(service.alerts.list(USER)) == 2


def test_second_flagged_agent_raises_its_own_alert(service, worker):
    _submit(service, worker.id, "salary", {"missing_payslips": True})
    _submit(service, worker.id, "document", {"passport_expired": True})

    agent_types = sorted(alert.agent_type for alert in service.alerts.list(USER))
    assert agent_types == ["document", "salary"]


def test_aggregate_of_unassessed_worker_is_empty(service, worker):
    aggregate = service.get_aggregate(USER, worker.id)

    assert aggregate.assessed_agents == 0
    assert aggregate.overall_compliance_status == "COMPLIANT"
    assert aggregate.global_risk_score == 0


def test_pending_assessment_is_counted(service, worker):
    aggregate = service.mark_pending(USER, {"workerId": worker.id, "agentType": "qualification"})

    assert aggregate.pending_agents == 1
    assert aggregate.overall_compliance_status == "COMPLIANT"

    _submit(service, worker.id, "qualification", {"certificate_invalid": True})
    aggregate = service.get_aggregate(USER, worker.id)
    assert aggregate.pending_agents == 0
    assert aggregate.overall_compliance_status == "SERIOUS_BREACH"


def test_concurrent_writes_for_different_agents_are_all_reflected(service, worker):
    slugs = get_registry().slugs
    barrier = threading.Barrier(len(slugs))
    errors: list[BaseException] = []

    def write(slug: str) -> None:
        verdict = Verdict(status="BREACH", risk_level="MEDIUM", red_flag=False, narrative=f"{slug} breach")
        barrier.wait()
        try:
            service.record_verdict(USER, worker, slug, verdict)
        except BaseException as exc:  # pragma: no cover - surfaced by the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=write, args=(slug,)) for slug in slugs]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert not errors
    aggregate = service.get_aggregate(USER, worker.id)
    assert aggregate.assessed_agents == len(slugs)
    assert aggregate.breach_count == len(slugs)
    assert aggregate.global_risk_score == 100


class SlowUpsertRepository(InMemoryComplianceRepository):
    """Leaves a gap between storing a record and recomputing the aggregate."""

    def upsert_record(self, worker_id, agent_type, verdict, *, assessed_at=None):
        event = super().upsert_record(worker_id, agent_type, verdict, assessed_at=assessed_at)
        time.sleep(0.05)
        return event


def test_interleaved_flagged_writes_each_raise_an_alert():
    provider = FailingProvider()
    service = ComplianceService(SlowUpsertRepository(), InMemoryNarrativeCache(), provider=lambda: provider)
    worker = service.intake.register(USER, {"name": "Jane Doe", "jobTitle": "Software Engineer"})
    slugs = ["salary", "right-to-work"]
    barrier = threading.Barrier(len(slugs))

    def write(slug: str) -> None:
        verdict = Verdict(status="SERIOUS_BREACH", risk_level="HIGH", red_flag=True, narrative=f"{slug} breach")
        barrier.wait()
        service.record_verdict(USER, worker, slug, verdict)

    threads = [threading.Thread(target=write, args=(slug,)) for slug in slugs]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert service.get_aggregate(USER, worker.id).total_red_flags == 2
    assert sorted(alert.agent_type for alert in service.alerts.list(USER)) == sorted(slugs)


def test_red_flag_on_compliant_verdict_names_the_finding(service, worker):
    result = _submit(service, worker.id, "salary", {"below_general_threshold": True})

    assert (result.status, result.red_flag) == ("COMPLIANT", True)
    alerts = service.alerts.list(USER)
    assert len(alerts) == 1
    assert "Below General Threshold" in alerts[0].alert_message
    assert "COMPLIANT" not in alerts[0].alert_message


def test_other_tenant_cannot_see_or_assess_worker(service, worker):
    with pytest.raises(NotFoundError):
        service.get_aggregate(OTHER_TENANT, worker.id)
    with pytest.raises(NotFoundError):
        _submit(service, worker.id, "salary", {}, user=OTHER_TENANT)


def test_submit_validates_payload(service, worker):
    with pytest.raises(ValidationError):
        _submit(service, worker.id, "not-an-agent", {})
    with pytest.raises(ValidationError):
        _submit(service, worker.id, "salary", ["missing_payslips"])
    with pytest.raises(NotFoundError):
        _submit(service, "wrk-missing", "salary", {})


def test_batch_reports_per_item_results(service, worker):
    payload = {
        "items": [
            {"workerId": worker.id, "agentType": "salary", "assessmentInput": {"missing_payslips": True}},
            {"workerId": worker.id, "agentType": "document", "assessmentInput": {}},
            {"workerId": "wrk-missing", "agentType": "salary", "assessmentInput": {}},
        ]
    }

    outcome = asyncio.run(service.submit_batch(USER, payload))

    assert outcome["succeeded"] == 2
    assert outcome["failed"] == 1
    results = {item["index"]: item for item in outcome["results"]}
    assert results[0]["result"]["status"] == "SERIOUS_BREACH"
    assert results[2]["error"]["code"] == "SG_NOT_FOUND"
    assert service.get_aggregate(USER, worker.id).assessed_agents == 2


def test_worker_detail_lists_records(service, worker):
    _submit(service, worker.id, "salary", {"missing_payslips": True})

    detail = service.worker_detail(USER, worker.id)

    assert detail["worker"]["name"] == "Jane Doe"
    assert detail["aggregate"]["totalRedFlags"] == 1
    assert [record["agentType"] for record in detail["records"]] == ["salary"]


def test_register_worker_requires_name_and_title(service):
    with pytest.raises(ValidationError):
        service.intake.register(USER, {"jobTitle": "Engineer"})
    with pytest.raises(ValidationError):
        service.intake.register(USER, {"name": "A", "jobTitle": "B", "assignmentDate": "03/01/2024"})

    worker = service.intake.register(USER, {"name": " A ", "job_title": "B"})
    assert worker.facts() == WorkerFacts(name="A", job_title="B")
