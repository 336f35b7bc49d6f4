from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml

from sponsorguard.core.schema import WorkerFacts
from sponsorguard.core.validation import ConfigurationError, ValidationError

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"

_SUPPORTED_TYPES: dict[str, tuple[type, ...]] = {
    "bool": (bool,),
    "str": (str,),
    "int": (int,),
    "float": (int, float),
}
_BOOL_STRINGS = {"true", "false", "yes", "no", "y", "n", "1", "0"}


@dataclass(frozen=True, slots=True)
class AgentDefinition:
    """One compliance rule set: data, not code."""

    slug: str
    name: str
    prompt: str
    inputs: dict[str, str] = field(default_factory=dict)
    red_flag_keys: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class AgentRegistry:
    agents: dict[str, AgentDefinition]
    style: str = ""
    output_contract: str = ""

    def __contains__(self, slug: object) -> bool:
        return slug in self.agents

    def __len__(self) -> int:
        return len(self.agents)

    @property
    def slugs(self) -> list[str]:
        return list(self.agents)

    def get(self, agent_type: str) -> AgentDefinition:
        return self.agents[resolve_agent_type(agent_type, self)]


def _parse_registry(data: Mapping[str, Any]) -> AgentRegistry:
    raw_agents = data.get("agents")
    if not isinstance(raw_agents, dict) or not raw_agents:
        raise ConfigurationError("agent registry must define at least one agent")

    agents: dict[str, AgentDefinition] = {}
    for slug, spec in raw_agents.items():
        if not isinstance(spec, dict):
            raise ConfigurationError(f"agent {slug!r} must be a mapping")
        inputs = {str(key): str(kind) for key, kind in (spec.get("inputs") or {}).items()}
        unknown = {kind for kind in inputs.values() if kind not in _SUPPORTED_TYPES}
        if unknown:
            raise ConfigurationError(f"agent {slug!r} declares unsupported input types", details={"types": sorted(unknown)})
        agents[str(slug)] = AgentDefinition(
            slug=str(slug),
            name=str(spec.get("name") or slug),
            prompt=str(spec.get("prompt") or "").strip(),
            inputs=inputs,
            red_flag_keys=frozenset(str(key) for key in spec.get("red_flag_keys") or []),
        )
    return AgentRegistry(
        agents=agents,
        style=str(data.get("style") or "").strip(),
        output_contract=str(data.get("output_contract") or "").strip(),
    )


def load_registry(path: Path | None = None) -> AgentRegistry:
    path = path or CONFIG_DIR / "agents.yaml"
    if not path.exists():
        raise ConfigurationError("agent registry file not found", details={"path": str(path)})
    with path.open("r", encoding="utf-8") as fp:
        return _parse_registry(yaml.safe_load(fp) or {})


@lru_cache(maxsize=1)
def get_registry() -> AgentRegistry:
    """Return the registry shipped with the package."""

    return load_registry()


def _normalise_slug(raw: str) -> str:
    text = re.sub(r"(?<=[a-z0-9])([A-Z])", r"-\1", raw.strip())
    text = text.lower().replace("_", "-").replace(" ", "-")
    if text.startswith("ai-"):
        text = text[3:]
    if text.endswith("-compliance"):
        text = text[: -len("-compliance")]
    return text


def resolve_agent_type(raw: Any, registry: AgentRegistry | None = None) -> str:
    """Map any accepted spelling of an agent type to its canonical slug."""

    registry = registry or get_registry()
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError("agentType is required", details={"field": "agentType"})
    slug = _normalise_slug(raw)
    if slug not in registry:
        raise ValidationError(
            f"unknown agentType {raw!r}",
            details={"field": "agentType", "allowed": registry.slugs},
        )
    return slug


def is_truthy(value: Any) -> bool:
    if value is True:
        return True
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "y", "1"}
    return False


def validate_assessment_input(agent: AgentDefinition, data: Any) -> dict[str, Any]:
    """Check that ``data`` is a flat mapping of findings and return a copy."""

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("assessmentInput must be an object", details={"field": "assessmentInput"})

    findings: dict[str, Any] = {}
    for key, value in data.items():
        if not isinstance(key, str) or not key.strip():
            raise ValidationError("assessmentInput keys must be non-empty strings")
        if value is not None and not isinstance(value, (bool, str, int, float)):
            raise ValidationError(
                f"assessmentInput.{key} must be a boolean, string or number",
                details={"field": key},
            )
        expected = agent.inputs.get(key)
        if expected and value is not None:
            if expected == "bool" and isinstance(value, str) and value.strip().lower() in _BOOL_STRINGS:
                pass
            elif expected in {"int", "float"} and isinstance(value, bool):
                raise ValidationError(f"assessmentInput.{key} must be a number", details={"field": key})
            elif not isinstance(value, _SUPPORTED_TYPES[expected]):
                raise ValidationError(
                    f"assessmentInput.{key} must be of type {expected}",
                    details={"field": key, "expected": expected},
                )
        findings[key] = value
    return findings


def format_finding_key(key: str) -> str:
    return " ".join(part.capitalize() for part in key.split("_") if part)


def build_prompt(
    agent: AgentDefinition,
    facts: WorkerFacts,
    findings: Mapping[str, Any],
    *,
    registry: AgentRegistry | None = None,
) -> str:
    registry = registry or get_registry()
    lines = [agent.prompt]
    if registry.style:
        lines.extend(["", registry.style])
    lines.extend(["", "WORKER DETAILS:", f"- Worker Name: {facts.name}", f"- Job Title: {facts.job_title}"])
    if facts.soc_code:
        lines.append(f"- SOC Code: {facts.soc_code}")
    if facts.cos_reference:
        lines.append(f"- CoS Reference: {facts.cos_reference}")
    if facts.assignment_date:
        lines.append(f"- Assignment Date: {facts.assignment_date.isoformat()}")

    lines.extend(["", "ASSESSMENT DATA:"])
    if findings:
        for key in sorted(findings):
            lines.append(f"- {format_finding_key(key)}: {findings[key]}")
    else:
        lines.append("- No findings recorded")

    if registry.output_contract:
        lines.extend(["", registry.output_contract])
    return "\n".join(lines)
