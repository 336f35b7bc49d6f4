"""Error taxonomy for the compliance service.

Every error carries a machine-readable ``code`` and structured ``details``
that are safe to log and to return to API clients.  Routes never translate
these by hand; ``create_app`` registers one handler per HTTP status.
"""
from __future__ import annotations

from typing import Any


class ComplianceError(Exception):
    """Base class for typed errors raised by the service layer."""

    code = "SG_INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, *, code: str | None = None, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, "details": self.details}


class ValidationError(ComplianceError):
    """Raised when request input fails validation."""

    code = "SG_VALIDATION_ERROR"
    status_code = 400


class AuthenticationError(ComplianceError):
    code = "SG_AUTH_REQUIRED"
    status_code = 401


class NotFoundError(ComplianceError):
    """Unknown entity, or an entity owned by another tenant."""

    code = "SG_NOT_FOUND"
    status_code = 404


class StateTransitionError(ComplianceError):
    """Raised for a status change the lifecycle does not allow; state is left untouched."""

    code = "SG_INVALID_TRANSITION"
    status_code = 409


class ProviderError(ComplianceError):
    """AI provider failure.  Recovered inside the narrative generator."""

    code = "SG_PROVIDER_ERROR"
    status_code = 502


class AggregationInconsistency(ComplianceError):
    """A recomputed aggregate violated its own invariants (storage-layer bug)."""

    code = "SG_AGGREGATION_INCONSISTENT"
    status_code = 500


class ConfigurationError(ComplianceError):
    code = "SG_CONFIGURATION_ERROR"
    status_code = 500


def require_text(value: Any, field: str) -> str:
    """Return ``value`` stripped, or raise when it is missing or blank."""

    if value is None:
        raise ValidationError(f"{field} is required", details={"field": field})
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={"field": field})
    text = value.strip()
    if not text:
        raise ValidationError(f"{field} must not be empty", details={"field": field})
    return text
