"""Chat-completion client for OpenAI-compatible LLM endpoints."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import settings

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """LLM endpoint returned an error or an unusable response."""

    def __init__(self, message: str, status_code: int | None = None, response: Any = None):
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.message)


class LLMClient:
    """Single-attempt chat-completion client.

    Usage:
        async with LLMClient.from_settings() as llm:
            text = await llm.complete(system_prompt, user_prompt)
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.openai.com",
        model: str = "gpt-4o-mini",
        temperature: float | None = 0.3,
        max_completion_tokens: int | None = None,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        if not api_key:
            raise LLMError("OpenAI API key not configured (set AGENTCRM_OPENAI_API_KEY)")
        self.model = model
        self.temperature = temperature
        self.max_completion_tokens = max_completion_tokens
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
        )

    @classmethod
    def from_settings(cls, http_client: httpx.AsyncClient | None = None) -> "LLMClient":
        return cls(
            settings.openai_api_key,
            base_url=settings.llm_base_url,
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            max_completion_tokens=settings.llm_max_completion_tokens,
            timeout=settings.llm_timeout_seconds,
            http_client=http_client,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self):
        await self._client.aclose()

    def build_payload(self, system: str, user: str) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        }
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.max_completion_tokens is not None:
            payload["max_completion_tokens"] = self.max_completion_tokens
        return payload

    async def complete(self, system: str, user: str) -> str:
        """Return ``choices[0].message.content`` for one system+user exchange."""
        try:
            response = await self._client.post(
                "/v1/chat/completions", json=self.build_payload(system, user)
            )
        except httpx.HTTPError as e:
            raise LLMError(f"LLM request failed: {e}") from e

        if response.status_code >= 400:
            logger.error("LLM API error %s: %s", response.status_code, response.text[:500])
            raise LLMError(
                f"LLM API failed: {response.status_code}",
                response.status_code,
                response.text[:500],
            )

        try:
            data = response.json()
            return data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMError(f"Unexpected LLM response shape: {e}", response.status_code) from e
