from __future__ import annotations

import itertools
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from sponsorguard.core.risk import MAX_SCORE, check_aggregate, compute_aggregate, global_risk_score
from sponsorguard.core.schema import RISK_SEVERITY, AgentComplianceRecord, WorkerAggregate
from sponsorguard.core.settings import RiskWeights
from sponsorguard.core.validation import AggregationInconsistency, ConfigurationError


def _record(agent: str, status: str, risk: str, red_flag: bool = False, worker: str = "wrk-1") -> AgentComplianceRecord:
    return AgentComplianceRecord(worker_id=worker, agent_type=agent, status=status, risk_level=risk, red_flag=red_flag)


def test_scenario_salary_serious_breach_with_compliant_right_to_work():
    records = [
        _record("salary", "SERIOUS_BREACH", "HIGH", red_flag=True),
        _record("right-to-work", "COMPLIANT", "LOW"),
    ]

    aggregate = compute_aggregate("wrk-1", records)

    assert aggregate.overall_compliance_status == "SERIOUS_BREACH"
    assert aggregate.overall_risk_level == "HIGH"
    assert aggregate.total_red_flags == 1
    assert aggregate.global_risk_score == 40
    assert aggregate.assessed_agents == 2


@pytest.mark.parametrize("size", range(0, 4))
def test_record_sets_without_breaches_are_compliant_with_zero_score(size):
    options = [("COMPLIANT", "LOW"), ("COMPLIANT", "MEDIUM"), ("PENDING", "LOW")]
    for combo in itertools.product(options, repeat=size):
        records = [_record(f"agent-{index}", status, risk) for index, (status, risk) in enumerate(combo)]
        aggregate = compute_aggregate("wrk-1", records)
        assert aggregate.overall_compliance_status == "COMPLIANT"
        assert aggregate.global_risk_score == 0


def test_adding_serious_breach_never_lowers_score_or_risk():
    base_options = [
        ("COMPLIANT", "LOW", False),
        ("BREACH", "MEDIUM", False),
        ("BREACH", "HIGH", True),
        ("SERIOUS_BREACH", "HIGH", True),
        ("PENDING", "LOW", False),
    ]
    for combo in itertools.product(base_options, repeat=3):
        records = [_record(f"agent-{index}", *item) for index, item in enumerate(combo)]
        before = compute_aggregate("wrk-1", records)
        after = compute_aggregate("wrk-1", records + [_record("extra", "SERIOUS_BREACH", "HIGH", True)])
        assert after.global_risk_score >= before.global_risk_score
        assert RISK_SEVERITY[after.overall_risk_level] >= RISK_SEVERITY[before.overall_risk_level]
        assert after.overall_compliance_status == "SERIOUS_BREACH"


def test_recompute_is_deterministic():
    records = [
        _record("salary", "BREACH", "MEDIUM", True),
        _record("document", "SERIOUS_BREACH", "HIGH", True),
        _record("qualification", "PENDING", "LOW"),
    ]

    assert compute_aggregate("wrk-1", records) == compute_aggregate("wrk-1", list(reversed(records)))


def test_pending_records_are_counted_but_not_ranked():
    records = [_record("salary", "PENDING", "HIGH"), _record("document", "COMPLIANT", "LOW")]

    aggregate = compute_aggregate("wrk-1", records)

    assert aggregate.overall_compliance_status == "COMPLIANT"
    assert aggregate.overall_risk_level == "LOW"
    assert aggregate.pending_agents == 1
    assert aggregate.assessed_agents == 2


def test_breach_score_counts_standalone_red_flags():
    records = [_record("salary", "BREACH", "MEDIUM", True), _record("document", "BREACH", "MEDIUM")]

    aggregate = compute_aggregate("wrk-1", records)

    assert aggregate.overall_compliance_status == "BREACH"
    assert aggregate.global_risk_score == 15 * 2 + 10


def test_score_is_clamped():
    records = [_record(f"agent-{index}", "SERIOUS_BREACH", "HIGH", True) for index in range(5)]

    assert compute_aggregate("wrk-1", records).global_risk_score == MAX_SCORE
    assert global_risk_score(100, 100, 100, RiskWeights()) == MAX_SCORE


def test_custom_weights_apply():
    weights = RiskWeights.parse("30, 20, 5")
    records = [_record("salary", "SERIOUS_BREACH", "HIGH", True), _record("document", "BREACH", "MEDIUM", True)]

    assert compute_aggregate("wrk-1", records, weights).global_risk_score == 30 + 20 + 5


@pytest.mark.parametrize("raw", ["1,2", "a,b,c", "-1,2,3"])
def test_invalid_weights_are_configuration_errors(raw):
    with pytest.raises(ConfigurationError):
        RiskWeights.parse(raw)


def test_record_for_another_worker_is_inconsistent():
    with pytest.raises(AggregationInconsistency):
        compute_aggregate("wrk-1", [_record("salary", "COMPLIANT", "LOW", worker="wrk-2")])


def test_check_aggregate_rejects_impossible_state():
    check_aggregate(WorkerAggregate(worker_id="wrk-1"))

    with pytest.raises(AggregationInconsistency) as excinfo:
        check_aggregate(WorkerAggregate(worker_id="wrk-1", total_red_flags=2, assessed_agents=1, global_risk_score=10))

    assert "more red flags than records" in excinfo.value.details["problems"]
