# tier_router/providers/huggingface.py
"""
HuggingFace Inference API adapter.

Completions-style: a single ``inputs`` string instead of a message list,
and ``max_new_tokens`` instead of ``max_tokens``.
"""

from __future__ import annotations

from typing import Any

from ..constants import PROVIDER_ENDPOINTS
from ..models import ModelDescriptor, ProviderInput, ProviderResponse
from .base import BaseProvider, bearer_headers


class HuggingFaceProvider(BaseProvider):
    name = "huggingface"
    env_key = "HUGGINGFACE_API_KEY"

    def prompt_text(self, payload: ProviderInput) -> str:
        """Flat prompt; falls back to the last message when only messages are given."""
        if payload.input or payload.prompt:
            return payload.input or payload.prompt or ""
        return self.get_messages(payload)[-1]["content"]

    def build_body(self, payload: ProviderInput) -> dict[str, Any]:
        return {
            "inputs": self.prompt_text(payload),
            "parameters": {
                "temperature": self.get_temperature(payload),
                "max_new_tokens": self.get_max_tokens(payload),
            },
        }

    async def call(self, model: ModelDescriptor, payload: ProviderInput) -> ProviderResponse:
        headers = bearer_headers(self.get_api_key())
        url = f"{PROVIDER_ENDPOINTS['huggingface']}/{model.id}"
        return await self._post(url, headers, self.build_body(payload), model)
