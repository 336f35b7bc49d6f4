from __future__ import annotations

import sys
from datetime import date
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from sponsorguard.core.agents import get_registry, load_registry, resolve_agent_type, validate_assessment_input
from sponsorguard.core.hashing import fingerprint
from sponsorguard.core.schema import WorkerFacts
from sponsorguard.core.validation import ConfigurationError, ValidationError
from sponsorguard.core.verdicts import flagged_findings, template_verdict

EXPECTED_AGENTS = {
    "salary",
    "qualification",
    "right-to-work",
    "skills-experience",
    "document",
    "record-keeping",
    "reporting-duties",
    "third-party-labour",
    "immigration-status-monitoring",
    "migrant-contact-maintenance",
    "migrant-tracking",
    "contracted-hours",
    "genuine-vacancies",
    "paragraph-c7-26",
    "right-to-rent",
}


def test_registry_ships_fifteen_agents_with_prompts():
    registry = get_registry()

    assert set(registry.slugs) == EXPECTED_AGENTS
    for slug in registry.slugs:
        agent = registry.get(slug)
        assert agent.prompt
        assert set(agent.red_flag_keys) <= set(agent.inputs)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("salary", "salary"),
        ("ai-salary-compliance", "salary"),
        ("right_to_work", "right-to-work"),
        ("rightToWork", "right-to-work"),
        ("ai-third-party-labour-compliance", "third-party-labour"),
        ("paragraphC7_26", "paragraph-c7-26"),
        (" Right-To-Rent ", "right-to-rent"),
    ],
)
def test_agent_type_aliases(raw, expected):
    assert resolve_agent_type(raw) == expected


@pytest.mark.parametrize("raw", ["", None, 7, "payroll", "ai-compliance"])
def test_unknown_agent_types_are_rejected(raw):
    with pytest.raises(ValidationError):
        resolve_agent_type(raw)


def test_declared_input_types_are_checked():
    agent = get_registry().get("salary")

    assert validate_assessment_input(agent, {"missing_payslips": "true", "annual_salary": 41000}) == {
        "missing_payslips": "true",
        "annual_salary": 41000,
    }
    assert validate_assessment_input(agent, None) == {}
    with pytest.raises(ValidationError):
        validate_assessment_input(agent, {"missing_payslips": "perhaps"})
    with pytest.raises(ValidationError):
        validate_assessment_input(agent, {"annual_salary": True})


def test_fallback_matches_missing_expired_invalid_tokens():
    findings = {
        "payslips_missing": True,
        "missing_contract": "yes",
        "visa_expired": "1",
        "share_code_invalid": False,
        "mission_statement": True,
        "notes": "expired passport replaced",
    }

    assert flagged_findings(findings) == ["missing_contract", "payslips_missing", "visa_expired"]


def test_template_verdict_is_deterministic_for_a_date():
    agent = get_registry().get("right-to-work")
    facts = WorkerFacts(name="Sam Lee", job_title="Chef")

    first = template_verdict(agent, facts, {"visa_expired": True}, assessed_on=date(2024, 5, 1))
    second = template_verdict(agent, facts, {"visa_expired": True}, assessed_on=date(2024, 5, 1))

    assert first == second
    assert first.narrative.endswith("Compliance Verdict: SERIOUS BREACH\nRisk Level: HIGH")
    assert "Assessment Date: 2024-05-01" in first.narrative


def test_fingerprint_ignores_key_order_and_whitespace():
    facts = WorkerFacts(name="Sam Lee", job_title="Chef")
    spaced = WorkerFacts(name="Sam  Lee ", job_title="Chef")

    assert fingerprint("salary", facts, {"a": 1, "b": "x y"}) == fingerprint("salary", spaced, {"b": "x  y", "a": 1})
    assert fingerprint("salary", facts, {"a": 1}) != fingerprint("document", facts, {"a": 1})
    assert fingerprint("salary", facts, {"a": 1}) != fingerprint("salary", facts, {"a": 2})


def test_registry_file_errors_are_configuration_errors(tmp_path):
    with pytest.raises(ConfigurationError):
        load_registry(tmp_path / "missing.yaml")

    broken = tmp_path / "agents.yaml"
    broken.write_text("agents:\n  salary:\n    inputs:\n      amount: decimal\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_registry(broken)


def test_template_verdict_without_date_ignores_the_clock():
    agent = get_registry().get("right-to-work")
    facts = WorkerFacts(name="Sam Lee", job_title="Chef")

    verdict = template_verdict(agent, facts, {"visa_expired": False})

    assert "Assessment Date" not in verdict.narrative
    assert verdict == template_verdict(agent, facts, {"visa_expired": False})
