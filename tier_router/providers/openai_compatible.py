# tier_router/providers/openai_compatible.py
"""
Shared adapter for the OpenAI-compatible provider family.

Most providers accept the same request: POST ``{model, messages,
temperature, max_tokens}`` to a chat-completions endpoint with a bearer
token. Instead of one subclass per provider, a single adapter class is
configured per provider with:

  endpoint            where to POST
  header_factory      api key → request headers (default: bearer + JSON)
  model_id_transform  descriptor id → id sent on the wire (default: as-is)

Providers with a genuinely different wire format subclass BaseProvider
directly (see gemini.py, anthropic.py, ...).
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable

import httpx

from ..constants import PROVIDER_ENDPOINTS
from ..models import ModelDescriptor, ProviderInput, ProviderResponse
from .base import BaseProvider, bearer_headers

HeaderFactory = Callable[[str], dict[str, str]]
ModelIdTransform = Callable[[str], str]


class OpenAICompatibleProvider(BaseProvider):
    """One configured instance per OpenAI-compatible provider."""

    def __init__(
        self,
        name: str,
        env_key: str,
        endpoint: str,
        header_factory: HeaderFactory = bearer_headers,
        model_id_transform: ModelIdTransform | None = None,
        client: httpx.AsyncClient | None = None,
        credentials: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(client=client, credentials=credentials)
        self.name = name
        self.env_key = env_key
        self.endpoint = endpoint
        self._header_factory = header_factory
        self._model_id_transform = model_id_transform

    def model_id(self, model: ModelDescriptor) -> str:
        if self._model_id_transform is None:
            return model.id
        return self._model_id_transform(model.id)

    def build_body(self, model: ModelDescriptor, payload: ProviderInput) -> dict[str, Any]:
        return {
            "model": self.model_id(model),
            "messages": self.get_messages(payload),
            "temperature": self.get_temperature(payload),
            "max_tokens": self.get_max_tokens(payload),
        }

    async def call(self, model: ModelDescriptor, payload: ProviderInput) -> ProviderResponse:
        headers = self._header_factory(self.get_api_key())
        return await self._post(self.endpoint, headers, self.build_body(model, payload), model)


# provider name → credential name. Endpoints come from PROVIDER_ENDPOINTS.
OPENAI_COMPATIBLE_KEYS: dict[str, str] = {
    "groq": "GROQ_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "cerebras": "CEREBRAS_API_KEY",
    "perplexity": "PERPLEXITY_API_KEY",
    "github": "GITHUB_TOKEN",
    "openai": "OPENAI_API_KEY",
    "togetherai": "TOGETHER_API_KEY",
}


def make_openai_compatible(
    name: str,
    client: httpx.AsyncClient | None = None,
    credentials: Mapping[str, str] | None = None,
) -> OpenAICompatibleProvider:
    """Build the stock adapter for one of the OPENAI_COMPATIBLE_KEYS providers."""
    return OpenAICompatibleProvider(
        name=name,
        env_key=OPENAI_COMPATIBLE_KEYS[name],
        endpoint=PROVIDER_ENDPOINTS[name],
        client=client,
        credentials=credentials,
    )
