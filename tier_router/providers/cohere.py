# tier_router/providers/cohere.py
"""Cohere v2 chat adapter."""

from __future__ import annotations

from ..constants import PROVIDER_ENDPOINTS
from ..models import ModelDescriptor, ProviderInput, ProviderResponse
from .base import BaseProvider, bearer_headers


class CohereProvider(BaseProvider):
    name = "cohere"
    env_key = "COHERE_API_KEY"

    async def call(self, model: ModelDescriptor, payload: ProviderInput) -> ProviderResponse:
        body = {
            "model": model.id,
            "messages": self.get_messages(payload),
            "temperature": self.get_temperature(payload),
            "max_tokens": self.get_max_tokens(payload),
        }
        return await self._post(PROVIDER_ENDPOINTS["cohere"], bearer_headers(self.get_api_key()), body, model)
