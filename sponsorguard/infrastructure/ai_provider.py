"""AI text completion hooks.

The narrative generator only needs ``complete(prompt, timeout) -> text``.
Until a provider is configured at start-up the disabled client is used and
every verdict comes from the template generator.
"""
from __future__ import annotations

from typing import Protocol

from sponsorguard.core.validation import ProviderError


class AIProvider(Protocol):
    """Contract for text completion providers."""

    model: str

    def complete(self, prompt: str, timeout: float) -> str:
        """Return the provider's text for ``prompt`` or raise :class:`ProviderError`."""


class DisabledAIProvider:
    """Fallback provider used when no API key is configured."""

    model = "disabled"

    def complete(self, prompt: str, timeout: float) -> str:
        raise ProviderError("AI provider not configured", code="SG_PROVIDER_DISABLED")


_provider: AIProvider = DisabledAIProvider()


def configure_ai_provider(provider: AIProvider) -> None:
    """Install the provider used by the narrative generator."""

    global _provider
    _provider = provider


def get_ai_provider() -> AIProvider:
    return _provider
