from __future__ import annotations

import hashlib
import json
from typing import Any, Mapping

from sponsorguard.core.schema import WorkerFacts


def sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _normalise_value(value: Any) -> Any:
    if isinstance(value, str):
        return " ".join(value.split())
    return value


def fingerprint(agent_type: str, facts: WorkerFacts, findings: Mapping[str, Any]) -> str:
    """Stable cache key over an agent type, worker facts and findings.

    Key order and incidental whitespace do not change the fingerprint.
    """

    payload = {
        "agent_type": agent_type,
        "worker": {key: _normalise_value(value) for key, value in facts.model_dump(mode="json").items()},
        "findings": {str(key).strip(): _normalise_value(value) for key, value in findings.items()},
    }
    return sha256_text(json.dumps(payload, sort_keys=True, ensure_ascii=False, separators=(",", ":")))
