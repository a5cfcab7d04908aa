# tier_router/providers/openrouter.py
"""
OpenRouter adapter.

OpenAI-compatible, plus two attribution headers (HTTP-Referer, X-Title)
next to the bearer token. Registry ids may carry an ``openrouter:``
prefix, which is stripped before the id goes on the wire.
"""

from __future__ import annotations

from collections.abc import Mapping

import httpx

from ..constants import DEFAULT_APP_TITLE, DEFAULT_APP_URL, PROVIDER_ENDPOINTS
from .base import bearer_headers
from .openai_compatible import OpenAICompatibleProvider

_PREFIX = "openrouter:"


def strip_openrouter_prefix(model_id: str) -> str:
    return model_id[len(_PREFIX):] if model_id.startswith(_PREFIX) else model_id


def openrouter_provider(
    app_url: str | None = None,
    app_title: str = DEFAULT_APP_TITLE,
    client: httpx.AsyncClient | None = None,
    credentials: Mapping[str, str] | None = None,
) -> OpenAICompatibleProvider:
    """Configured OpenRouter adapter."""
    referer = app_url or DEFAULT_APP_URL

    def _headers(api_key: str) -> dict[str, str]:
        return {**bearer_headers(api_key), "HTTP-Referer": referer, "X-Title": app_title}

    return OpenAICompatibleProvider(
        name="openrouter",
        env_key="OPENROUTER_API_KEY",
        endpoint=PROVIDER_ENDPOINTS["openrouter"],
        header_factory=_headers,
        model_id_transform=strip_openrouter_prefix,
        client=client,
        credentials=credentials,
    )
