"""Integration with OpenAI-compatible chat completion APIs."""
from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlparse

import httpx

from sponsorguard.core.validation import ProviderError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a UK immigration compliance expert generating assessment reports "
    "for sponsor licence holders."
)


class OpenAIChatClient:
    """Client for the ``/chat/completions`` endpoint."""

    def __init__(
        self,
        api_key: str,
        *,
        api_base: str = "https://api.openai.com/v1",
        model: str = "gpt-4-turbo",
        temperature: float = 0.3,
        max_tokens: int = 1500,
        timeout: float = 12.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        parsed = urlparse(api_base)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("api_base must include scheme and host")
        if not api_key:
            raise ValueError("api_key is required")

        self._api_key = api_key
        self._request_url = f"{api_base.rstrip('/')}/chat/completions"
        self.model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._client = http_client or httpx.Client(timeout=timeout)
        self._owns_client = http_client is None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _build_payload(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
        }

    @staticmethod
    def _extract_text(data: Any) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError("provider response missing message content") from exc
        if not isinstance(content, str) or not content.strip():
            raise ProviderError("provider returned an empty completion")
        return content

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def complete(self, prompt: str, timeout: float) -> str:
        headers = {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}
        try:
            response = self._client.post(
                self._request_url,
                json=self._build_payload(prompt),
                headers=headers,
                timeout=timeout,
            )
        except httpx.TimeoutException as exc:
            raise ProviderError("AI provider timed out", code="SG_PROVIDER_TIMEOUT") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"AI provider request failed: {exc}") from exc

        if response.status_code >= 400:
            details: dict[str, Any] = {"status_code": response.status_code}
            try:
                error = response.json().get("error") or {}
                if isinstance(error, dict):
                    details["error"] = error.get("message") or error.get("type")
            except ValueError:
                details["body"] = response.text[:200]
            code = "SG_PROVIDER_QUOTA" if response.status_code == 429 else "SG_PROVIDER_HTTP_ERROR"
            raise ProviderError("AI provider returned an error status", code=code, details=details)

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError("AI provider returned invalid JSON") from exc

        usage = data.get("usage") if isinstance(data, dict) else None
        if isinstance(usage, dict):
            logger.debug("AI completion usage", extra={"model": self.model, "usage": usage})
        return self._extract_text(data)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
