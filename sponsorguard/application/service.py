"""Process-wide service instance."""
from __future__ import annotations

from sponsorguard.core.settings import Settings
from sponsorguard.infrastructure import InMemoryComplianceRepository, InMemoryNarrativeCache

from .compliance import ComplianceService


def build_service(settings: Settings | None = None) -> ComplianceService:
    settings = settings or Settings()
    repository = InMemoryComplianceRepository()
    cache = InMemoryNarrativeCache(ttl_seconds=settings.cache_ttl, max_entries=settings.cache_max_entries)
    return ComplianceService(repository, cache, settings=settings)


_service = build_service()


def configure_compliance_service(settings: Settings) -> ComplianceService:
    """Rebuild the singleton from start-up settings."""

    global _service
    _service = build_service(settings)
    return _service


def get_compliance_service() -> ComplianceService:
    """Return the singleton compliance service for the process."""

    return _service


def reset_compliance_state() -> None:
    """Reset the in-memory store (used in tests)."""

    _service.reset()
