# tier_router/providers/gemini.py
"""
Google Gemini adapter (generateContent REST endpoint).

No bearer token: the API key travels as the ``key`` query parameter.

Message format conversion
-------------------------
Converts the standard OpenAI-style messages list to Gemini's
``contents`` format (role + parts). The assistant role is relabelled
"model"; system messages are lifted into ``systemInstruction``.
"""

from __future__ import annotations

from typing import Any

from ..constants import PROVIDER_ENDPOINTS
from ..models import ModelDescriptor, ProviderInput, ProviderResponse
from .base import JSON_HEADERS, BaseProvider


class GeminiProvider(BaseProvider):
    """Adapter for generativelanguage.googleapis.com."""

    name = "gemini"
    env_key = "GEMINI_API_KEY"

    @staticmethod
    def to_gemini_contents(messages: list[dict[str, str]]) -> tuple[str | None, list[dict[str, Any]]]:
        """Convert OpenAI-style messages to (system_instruction, contents)."""
        system_parts: list[str] = []
        contents: list[dict[str, Any]] = []

        for msg in messages:
            role = msg.get("role", "user")
            text = msg.get("content", "")
            if role == "system":
                system_parts.append(text)
            elif role == "assistant":
                contents.append({"role": "model", "parts": [{"text": text}]})
            else:
                contents.append({"role": "user", "parts": [{"text": text}]})

        system_instruction = "\n".join(system_parts) if system_parts else None
        return system_instruction, contents

    def build_body(self, payload: ProviderInput) -> dict[str, Any]:
        system_instruction, contents = self.to_gemini_contents(self.get_messages(payload))
        body: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": self.get_temperature(payload),
                "maxOutputTokens": self.get_max_tokens(payload),
            },
        }
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        return body

    async def call(self, model: ModelDescriptor, payload: ProviderInput) -> ProviderResponse:
        api_key = self.get_api_key()
        url = f"{PROVIDER_ENDPOINTS['gemini']}/{model.id}:generateContent"
        return await self._post(url, dict(JSON_HEADERS), self.build_body(payload), model, params={"key": api_key})
