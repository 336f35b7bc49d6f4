from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from sponsorguard.application import ComplianceService
from sponsorguard.core.schema import CurrentUser, Verdict
from sponsorguard.core.validation import ValidationError
from sponsorguard.infrastructure import DisabledAIProvider, InMemoryComplianceRepository, InMemoryNarrativeCache

USER = CurrentUser(id="user-1", tenant_id="tenant-a")
OTHER_TENANT = CurrentUser(id="user-9", tenant_id="tenant-b")

SERIOUS = Verdict(status="SERIOUS_BREACH", risk_level="HIGH", red_flag=True, narrative="serious")
BREACH = Verdict(status="BREACH", risk_level="MEDIUM", red_flag=False, narrative="breach")
COMPLIANT = Verdict(status="COMPLIANT", risk_level="LOW", red_flag=False, narrative="fine")


@pytest.fixture()
def service() -> ComplianceService:
    provider = DisabledAIProvider()
    service = ComplianceService(InMemoryComplianceRepository(), InMemoryNarrativeCache(), provider=lambda: provider)
    plan = [
        ("Ada", [("salary", SERIOUS), ("right-to-work", COMPLIANT)]),
        ("Ben", [("document", BREACH)]),
        ("Cy", [("salary", COMPLIANT), ("document", COMPLIANT)]),
        ("Di", []),
    ]
    for name, verdicts in plan:
        worker = service.intake.register(USER, {"name": name, "jobTitle": "Engineer"})
        for agent_type, verdict in verdicts:
            service.record_verdict(USER, worker, agent_type, verdict)
    service.intake.register(OTHER_TENANT, {"name": "Eve", "jobTitle": "Chef"})
    return service


def _names(result):
    return sorted(row["name"] for row in result["workers"])


def test_unfiltered_search_counts_only_own_tenant(service):
    result = service.directory.search(USER, {})

    assert result["totalCount"] == 4
    assert result["filteredCount"] == 4
    assert result["pagination"] == {
        "page": 1,
        "pageSize": 20,
        "totalPages": 1,
        "hasNext": False,
        "hasPrevious": False,
    }
    assert _names(result) == ["Ada", "Ben", "Cy", "Di"]


@pytest.mark.parametrize(
    "params,expected",
    [
        ({"complianceStatus": "SERIOUS_BREACH"}, ["Ada"]),
        ({"complianceStatus": "serious breach"}, ["Ada"]),
        ({"complianceStatus": "COMPLIANT"}, ["Cy", "Di"]),
        ({"riskLevel": "MEDIUM"}, ["Ben"]),
        ({"agentType": "salary"}, ["Ada", "Cy"]),
        ({"agentType": "ai-document-compliance"}, ["Ben", "Cy"]),
        ({"hasRedFlags": "true"}, ["Ada"]),
        ({"hasRedFlags": "false"}, ["Ben", "Cy", "Di"]),
        ({"agentType": "salary", "hasRedFlags": "false"}, ["Cy"]),
    ],
)
def test_filters(service, params, expected):
    result = service.directory.search(USER, params)

    assert _names(result) == expected
    assert result["filteredCount"] == len(expected)
    assert result["totalCount"] == 4


def test_created_at_range(service):
    today = datetime.now(timezone.utc).date()

    assert service.directory.search(USER, {"startDate": today.isoformat()})["filteredCount"] == 4
    tomorrow = (today + timedelta(days=1)).isoformat()
    assert service.directory.search(USER, {"startDate": tomorrow})["filteredCount"] == 0


def test_pagination_splits_newest_first(service):
    first = service.directory.search(USER, {"page": "1", "pageSize": "3"})
    second = service.directory.search(USER, {"page": 2, "pageSize": 3})

    assert [row["name"] for row in first["workers"]] == ["Di", "Cy", "Ben"]
    assert [row["name"] for row in second["workers"]] == ["Ada"]
    assert first["pagination"]["totalPages"] == 2
    assert first["pagination"]["hasNext"] is True
    assert second["pagination"]["hasPrevious"] is True


@pytest.mark.parametrize(
    "params",
    [
        {"page": "0"},
        {"pageSize": "101"},
        {"pageSize": "many"},
        {"riskLevel": "EXTREME"},
        {"hasRedFlags": "maybe"},
        {"agentType": "payroll"},
        {"startDate": "2024-02-10", "endDate": "2024-02-01"},
    ],
)
def test_invalid_queries_are_rejected(service, params):
    with pytest.raises(ValidationError):
        service.directory.search(USER, params)


def test_rows_carry_aggregate_and_agent_types(service):
    result = service.directory.search(USER, {"complianceStatus": "SERIOUS_BREACH"})
    [row] = result["workers"]

    assert row["agentTypes"] == ["right-to-work", "salary"]
    assert row["aggregate"]["globalRiskScore"] == 40
    assert row["lastAssessedAt"] is not None


def test_metrics_summary_and_distributions(service):
    metrics = service.directory.metrics(USER)

    summary = metrics["summary"]
    assert summary["totalWorkers"] == 4
    assert summary["totalAssessments"] == 5
    assert summary["overallComplianceRate"] == 60.0
    assert summary["totalBreaches"] == 1
    assert summary["totalSeriousBreaches"] == 1
    assert summary["totalRedFlags"] == 1
    assert summary["highRiskWorkers"] == 1

    assert metrics["statusDistribution"] == {"COMPLIANT": 3, "BREACH": 1, "SERIOUS_BREACH": 1, "PENDING": 0}
    assert metrics["riskDistribution"] == {"LOW": 3, "MEDIUM": 1, "HIGH": 1}
    assert len(metrics["agentSummaries"]) == 15

    salary = next(item for item in metrics["agentSummaries"] if item["agentType"] == "salary")
    assert salary["workersAssessed"] == 2
    assert salary["complianceRate"] == 50.0
    assert salary["redFlags"] == 1

    assert [item["agentType"] for item in metrics["topAgents"]] == ["right-to-work", "document", "salary"]
    assert len(metrics["trend"]) == 30
    assert metrics["trend"][-1]["assessments"] == 5


def test_export_rows_follow_filters(service):
    rows = service.directory.export_rows(USER, {"hasRedFlags": "true"})

    assert len(rows) == 1
    assert rows[0]["name"] == "Ada"
    assert rows[0]["overall_status"] == "SERIOUS_BREACH"
