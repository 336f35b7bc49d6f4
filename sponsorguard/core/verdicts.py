"""Turning findings and provider text into verdicts.

``template_verdict`` is the deterministic fallback used whenever the AI
provider cannot produce a usable answer.  It performs no I/O and raises
nothing for any mapping of findings.
"""
from __future__ import annotations

import re
from datetime import date
from typing import Any, Mapping

from sponsorguard.core.agents import AgentDefinition, format_finding_key, is_truthy
from sponsorguard.core.schema import DEFAULT_RISK_FOR_STATUS, Verdict, WorkerFacts
from sponsorguard.core.validation import ProviderError

BREACH_TOKENS = frozenset({"missing", "expired", "invalid"})

_VERDICT_LINE = re.compile(r"^\W*(?:final\s+)?(?:compliance\s+)?(?:verdict|status)\s*[:\-]\s*(?P<value>.+)$", re.IGNORECASE)
_RISK_LINE = re.compile(r"^\W*(?:overall\s+)?risk(?:\s+level)?\s*[:\-]\s*\W*(?P<value>LOW|MEDIUM|HIGH)\b", re.IGNORECASE)
_VERDICT_KEYWORDS = (
    (re.compile(r"\bSERIOUS[\s_-]+BREACH\b", re.IGNORECASE), "SERIOUS_BREACH"),
    (re.compile(r"\bNON[\s_-]?COMPLIANT\b", re.IGNORECASE), "BREACH"),
    (re.compile(r"\bBREACH\b", re.IGNORECASE), "BREACH"),
    (re.compile(r"\bCOMPLIANT\b", re.IGNORECASE), "COMPLIANT"),
)
_NEGATION = re.compile(r"\b(?:NOT|NO|NEVER)\b", re.IGNORECASE)


def flagged_findings(findings: Mapping[str, Any]) -> list[str]:
    """Keys naming a missing, expired or invalid item that are set to true."""

    flagged: list[str] = []
    for key, value in findings.items():
        tokens = set(str(key).lower().split("_"))
        if tokens & BREACH_TOKENS and is_truthy(value):
            flagged.append(str(key))
    return sorted(flagged)


def explicit_red_flags(agent: AgentDefinition, findings: Mapping[str, Any]) -> list[str]:
    return sorted(key for key in agent.red_flag_keys if is_truthy(findings.get(key)))


def _classify(text: str) -> set[str]:
    found: set[str] = set()
    for pattern, status in _VERDICT_KEYWORDS:
        if pattern.search(text):
            found.add(status)
            text = pattern.sub(" ", text)
    return found


def parse_verdict(agent: AgentDefinition, findings: Mapping[str, Any], text: str) -> Verdict:
    """Extract the verdict from provider output or raise :class:`ProviderError`."""

    if not text or not text.strip():
        raise ProviderError("provider returned an empty response")

    statuses: set[str] = set()
    risk_level: str | None = None
    for line in text.splitlines():
        verdict_match = _VERDICT_LINE.match(line.strip())
        if verdict_match:
            value = verdict_match.group("value")
            found = _classify(value)
            if found and _NEGATION.search(value):
                raise ProviderError("provider verdict line is negated", details={"line": line.strip()[:200]})
            statuses |= found
            continue
        risk_match = _RISK_LINE.match(line.strip())
        if risk_match and risk_level is None:
            risk_level = risk_match.group("value").upper()

    if not statuses:
        raise ProviderError("provider response has no verdict line")
    if len(statuses) > 1:
        raise ProviderError("provider response is ambiguous", details={"verdicts": sorted(statuses)})

    status = statuses.pop()
    red_flag = status == "SERIOUS_BREACH" or bool(explicit_red_flags(agent, findings))
    return Verdict(
        status=status,
        risk_level=risk_level or DEFAULT_RISK_FOR_STATUS[status],
        red_flag=red_flag,
        narrative=text.strip(),
    )


def template_verdict(
    agent: AgentDefinition,
    facts: WorkerFacts,
    findings: Mapping[str, Any],
    *,
    assessed_on: date | None = None,
) -> Verdict:
    flagged = flagged_findings(findings)
    red_flags = explicit_red_flags(agent, findings)

    if flagged:
        status, risk_level = "SERIOUS_BREACH", "HIGH"
    else:
        status, risk_level = "COMPLIANT", "LOW"
    red_flag = status == "SERIOUS_BREACH" or bool(red_flags)

    lines = [
        f"{agent.name.upper()} ASSESSMENT",
        "",
        f"Worker: {facts.name}",
        f"Job Title: {facts.job_title}",
    ]
    if facts.soc_code:
        lines.append(f"SOC Code: {facts.soc_code}")
    if facts.cos_reference:
        lines.append(f"CoS Reference: {facts.cos_reference}")
    if assessed_on is not None:
        lines.append(f"Assessment Date: {assessed_on.isoformat()}")
    lines.extend(["", "FINDINGS"])
    if findings:
        for key in sorted(findings, key=str):
            lines.append(f"{format_finding_key(str(key))}: {findings[key]}")
    else:
        lines.append("No findings recorded.")

    lines.append("")
    if flagged:
        items = ", ".join(format_finding_key(key) for key in flagged)
        lines.append(
            f"The following items are missing, expired or invalid: {items}. "
            "Immediate remedial action is required to restore compliance with sponsor duties."
        )
    else:
        lines.append("No missing, expired or invalid items were identified in the findings provided.")
    if red_flags:
        lines.append(f"Red flag findings: {', '.join(format_finding_key(key) for key in red_flags)}.")

    lines.extend(
        [
            "",
            "This assessment was produced by the template generator because an AI narrative was not available.",
            "",
            f"Compliance Verdict: {status.replace('_', ' ')}",
            f"Risk Level: {risk_level}",
        ]
    )
    return Verdict(status=status, risk_level=risk_level, red_flag=red_flag, narrative="\n".join(lines))
