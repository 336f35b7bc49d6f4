from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field

ComplianceStatus = Literal["COMPLIANT", "BREACH", "SERIOUS_BREACH", "PENDING"]
VerdictStatus = Literal["COMPLIANT", "BREACH", "SERIOUS_BREACH"]
RiskLevel = Literal["LOW", "MEDIUM", "HIGH"]
VerdictSource = Literal["AI", "TEMPLATE", "CACHE"]
RemediationStatus = Literal["Open", "In Progress", "Completed"]
AlertStatus = Literal["Unread", "Read", "Dismissed"]

FindingValue = Union[bool, str, int, float, None]

STATUS_SEVERITY: dict[str, int] = {"COMPLIANT": 0, "BREACH": 1, "SERIOUS_BREACH": 2}
RISK_SEVERITY: dict[str, int] = {"LOW": 0, "MEDIUM": 1, "HIGH": 2}
DEFAULT_RISK_FOR_STATUS: dict[str, str] = {"COMPLIANT": "LOW", "BREACH": "MEDIUM", "SERIOUS_BREACH": "HIGH"}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApiModel(BaseModel):
    """Base for payloads exchanged with dashboards (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class WorkerFacts(ApiModel):
    name: str
    job_title: str = Field(alias="jobTitle")
    soc_code: str = Field(default="", alias="socCode")
    cos_reference: str = Field(default="", alias="cosReference")
    assignment_date: date | None = Field(default=None, alias="assignmentDate")


class Worker(ApiModel):
    id: str
    tenant_id: str = Field(alias="tenantId")
    name: str
    job_title: str = Field(alias="jobTitle")
    soc_code: str = Field(default="", alias="socCode")
    cos_reference: str = Field(default="", alias="cosReference")
    assignment_date: date | None = Field(default=None, alias="assignmentDate")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")

    def facts(self) -> WorkerFacts:
        return WorkerFacts(
            name=self.name,
            job_title=self.job_title,
            soc_code=self.soc_code,
            cos_reference=self.cos_reference,
            assignment_date=self.assignment_date,
        )


class Verdict(ApiModel):
    status: VerdictStatus
    risk_level: RiskLevel = Field(alias="riskLevel")
    red_flag: bool = Field(default=False, alias="redFlag")
    narrative: str


class NarrativeResult(ApiModel):
    status: VerdictStatus
    risk_level: RiskLevel = Field(alias="riskLevel")
    red_flag: bool = Field(alias="redFlag")
    narrative: str
    source: VerdictSource

    def verdict(self) -> Verdict:
        return Verdict(status=self.status, risk_level=self.risk_level, red_flag=self.red_flag, narrative=self.narrative)


class AgentComplianceRecord(ApiModel):
    worker_id: str = Field(alias="workerId")
    agent_type: str = Field(alias="agentType")
    status: ComplianceStatus
    risk_level: RiskLevel = Field(alias="riskLevel")
    red_flag: bool = Field(alias="redFlag")
    narrative: str = ""
    last_assessed_at: datetime = Field(default_factory=utcnow, alias="lastAssessedAt")


class WorkerAggregate(ApiModel):
    worker_id: str = Field(alias="workerId")
    overall_compliance_status: VerdictStatus = Field(default="COMPLIANT", alias="overallComplianceStatus")
    overall_risk_level: RiskLevel = Field(default="LOW", alias="overallRiskLevel")
    total_red_flags: int = Field(default=0, alias="totalRedFlags")
    global_risk_score: int = Field(default=0, alias="globalRiskScore")
    assessed_agents: int = Field(default=0, alias="assessedAgents")
    pending_agents: int = Field(default=0, alias="pendingAgents")
    serious_breach_count: int = Field(default=0, alias="seriousBreachCount")
    breach_count: int = Field(default=0, alias="breachCount")


class RemediationAction(ApiModel):
    id: str
    tenant_id: str = Field(alias="tenantId")
    user_id: str = Field(alias="userId")
    worker_id: str = Field(alias="workerId")
    agent_type: str = Field(alias="agentType")
    action_summary: str = Field(alias="actionSummary")
    detailed_notes: str = Field(default="", alias="detailedNotes")
    status: RemediationStatus = "Open"
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")


class Alert(ApiModel):
    id: str
    tenant_id: str = Field(alias="tenantId")
    user_id: str = Field(alias="userId")
    worker_id: str | None = Field(default=None, alias="workerId")
    agent_type: str = Field(alias="agentType")
    alert_message: str = Field(alias="alertMessage")
    status: AlertStatus = "Unread"
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")


class CurrentUser(ApiModel):
    id: str
    tenant_id: str = Field(alias="tenantId")
