"""Application services."""

from .compliance import ComplianceService
from .service import configure_compliance_service, get_compliance_service, reset_compliance_state

__all__ = [
    "ComplianceService",
    "configure_compliance_service",
    "get_compliance_service",
    "reset_compliance_state",
]
