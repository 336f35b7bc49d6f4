"""Infrastructure layer exports."""

from .ai_provider import AIProvider, DisabledAIProvider, configure_ai_provider, get_ai_provider
from .narrative_cache import InMemoryNarrativeCache, NarrativeCache
from .openai_client import OpenAIChatClient
from .repositories import ComplianceRepository, InMemoryComplianceRepository, WorkerRegistry

__all__ = [
    "AIProvider",
    "ComplianceRepository",
    "DisabledAIProvider",
    "InMemoryComplianceRepository",
    "InMemoryNarrativeCache",
    "NarrativeCache",
    "OpenAIChatClient",
    "WorkerRegistry",
    "configure_ai_provider",
    "get_ai_provider",
]
