from __future__ import annotations

from sponsorguard.core.validation import StateTransitionError, ValidationError

REMEDIATION_TRANSITIONS: dict[str, frozenset[str]] = {
    "Open": frozenset({"In Progress", "Completed"}),
    "In Progress": frozenset({"Completed"}),
    "Completed": frozenset(),
}

ALERT_TRANSITIONS: dict[str, frozenset[str]] = {
    "Unread": frozenset({"Read", "Dismissed"}),
    "Read": frozenset({"Dismissed"}),
    "Dismissed": frozenset(),
}


def _normalise(value: object, allowed: dict[str, frozenset[str]], label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} status is required", details={"field": "status"})
    lookup = {state.lower().replace("_", " "): state for state in allowed}
    state = lookup.get(value.strip().lower().replace("_", " "))
    if state is None:
        raise ValidationError(
            f"unknown {label} status {value!r}",
            details={"field": "status", "allowed": list(allowed)},
        )
    return state


def parse_remediation_status(value: object) -> str:
    return _normalise(value, REMEDIATION_TRANSITIONS, "remediation")


def parse_alert_status(value: object) -> str:
    return _normalise(value, ALERT_TRANSITIONS, "alert")


def next_remediation_status(current: str, requested: str) -> str:
    """Return the status after an update; re-sending the current status is a no-op."""

    if requested == current or requested in REMEDIATION_TRANSITIONS[current]:
        return requested
    raise StateTransitionError(
        f"remediation action cannot move from {current!r} to {requested!r}",
        details={"from": current, "to": requested, "allowed": sorted(REMEDIATION_TRANSITIONS[current])},
    )


def next_alert_status(current: str, requested: str) -> str:
    if requested in ALERT_TRANSITIONS[current]:
        return requested
    raise StateTransitionError(
        f"alert cannot move from {current!r} to {requested!r}",
        details={"from": current, "to": requested, "allowed": sorted(ALERT_TRANSITIONS[current])},
    )
