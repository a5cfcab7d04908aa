# tier_router/providers/anthropic.py
"""
Anthropic Messages API adapter.

Differences from the OpenAI-compatible family:
  - auth is an ``x-api-key`` header plus a pinned ``anthropic-version``
  - system messages go in a top-level ``system`` field, not the list
  - message content is sent as a list of text blocks
  - ``max_tokens`` is mandatory
"""

from __future__ import annotations

from typing import Any

from ..constants import ANTHROPIC_VERSION, PROVIDER_ENDPOINTS
from ..models import ModelDescriptor, ProviderInput, ProviderResponse
from .base import JSON_HEADERS, BaseProvider


class AnthropicProvider(BaseProvider):
    """Adapter for api.anthropic.com/v1/messages."""

    name = "anthropic"
    env_key = "ANTHROPIC_API_KEY"

    @staticmethod
    def headers(api_key: str) -> dict[str, str]:
        return {"x-api-key": api_key, "anthropic-version": ANTHROPIC_VERSION, **JSON_HEADERS}

    def build_body(self, model: ModelDescriptor, payload: ProviderInput) -> dict[str, Any]:
        system_parts: list[str] = []
        messages: list[dict[str, Any]] = []
        for msg in self.get_messages(payload):
            if msg["role"] == "system":
                system_parts.append(msg["content"])
                continue
            messages.append(
                {
                    "role": "assistant" if msg["role"] == "assistant" else "user",
                    "content": [{"type": "text", "text": msg["content"]}],
                }
            )

        body: dict[str, Any] = {
            "model": model.id,
            "messages": messages,
            "max_tokens": self.get_max_tokens(payload),
            "temperature": self.get_temperature(payload),
        }
        if system_parts:
            body["system"] = "\n".join(system_parts)
        return body

    async def call(self, model: ModelDescriptor, payload: ProviderInput) -> ProviderResponse:
        headers = self.headers(self.get_api_key())
        return await self._post(PROVIDER_ENDPOINTS["anthropic"], headers, self.build_body(model, payload), model)
