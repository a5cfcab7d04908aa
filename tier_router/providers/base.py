# tier_router/providers/base.py
"""
BaseProvider — abstract contract every provider adapter must implement.

An adapter translates one normalised call (a ModelDescriptor plus a
ProviderInput) into a provider's HTTP request, and the provider's reply
back into a ProviderResponse (decoded JSON body + response headers). The
router never talks to a provider directly; it always goes through an
adapter.

This design means:
  - Provider-specific request shapes and auth schemes are contained inside
    each adapter.
  - Every failure leaves the adapter as a typed error carrying provider
    name, model id, HTTP status and the raw error body.
  - Adding a new provider requires only implementing this interface.

Adapters share one pooled httpx.AsyncClient handed to them by the
ProviderRegistry. Credentials are looked up in a mapping (os.environ by
default) under a fixed naming convention, e.g. GROQ_API_KEY.
"""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

import httpx

from ..constants import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, DEFAULT_WAIT_SECONDS, HTTP_TIMEOUT_SECONDS
from ..exceptions import ConfigurationError, ProviderError, create_provider_error
from ..models import ModelDescriptor, ProviderInput, ProviderResponse

logger = logging.getLogger("tier_router.providers")

JSON_HEADERS: dict[str, str] = {"Content-Type": "application/json"}


def bearer_headers(api_key: str) -> dict[str, str]:
    """Standard bearer-token JSON headers."""
    return {"Authorization": f"Bearer {api_key}", **JSON_HEADERS}


def default_http_client(timeout: float = HTTP_TIMEOUT_SECONDS) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=timeout,
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
    )


def _retry_after(response: httpx.Response) -> int:
    raw = response.headers.get("retry-after")
    if raw and raw.strip().isdigit():
        return int(raw.strip())
    return DEFAULT_WAIT_SECONDS


class BaseProvider(ABC):
    """
    Abstract base class for all provider adapters.

    Attributes
    ----------
    name:
        Unique identifier, e.g. "groq", "anthropic".
    env_key:
        Credential name looked up in the credentials mapping.
    """

    name: str = ""
    env_key: str = ""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        credentials: Mapping[str, str] | None = None,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._credentials = credentials if credentials is not None else os.environ

    # ------------------------------------------------------------------
    # Input normalisation
    # ------------------------------------------------------------------

    def credential(self, key: str) -> str:
        """Return credential *key* or raise ConfigurationError."""
        value = self._credentials.get(key)
        if not value:
            raise ConfigurationError(key)
        return value

    def get_api_key(self) -> str:
        return self.credential(self.env_key)

    @staticmethod
    def get_messages(payload: ProviderInput) -> list[dict[str, str]]:
        """
        The message list to send. A flat ``input``/``prompt`` string becomes
        a single user message when no messages are supplied.
        """
        if payload.messages:
            return [m.model_dump() for m in payload.messages]
        return [{"role": "user", "content": payload.input or payload.prompt or ""}]

    @staticmethod
    def get_temperature(payload: ProviderInput) -> float:
        return payload.temperature if payload.temperature is not None else DEFAULT_TEMPERATURE

    @staticmethod
    def get_max_tokens(payload: ProviderInput) -> int:
        return payload.max_tokens if payload.max_tokens is not None else DEFAULT_MAX_TOKENS

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = default_http_client()
        return self._client

    async def _post(
        self,
        url: str,
        headers: dict[str, str],
        body: Any,
        model: ModelDescriptor,
        params: dict[str, str] | None = None,
    ) -> ProviderResponse:
        """POST *body* as JSON and return the decoded success response."""
        try:
            response = await self.client.post(url, headers=headers, json=body, params=params)
        except httpx.HTTPError as exc:
            raise ProviderError(
                self.name,
                f"{self.name} request failed: {exc.__class__.__name__}: {exc}",
                model_id=model.id,
            ) from exc

        self._raise_for_status(response, model)

        try:
            data = response.json()
        except json.JSONDecodeError as exc:
            raise ProviderError(
                self.name,
                f"{self.name} returned a non-JSON response",
                model_id=model.id,
                status=response.status_code,
                original_error=response.text,
            ) from exc

        return ProviderResponse(data=data, headers=dict(response.headers))

    def _raise_for_status(self, response: httpx.Response, model: ModelDescriptor) -> None:
        if response.is_success:
            return
        body = response.text
        logger.debug("%s returned %s for %s", self.name, response.status_code, model.id)
        raise create_provider_error(
            self.name,
            response.status_code,
            f"{self.name} API error: {response.status_code} - {body}",
            model_id=model.id,
            original_error=body,
            retry_after_seconds=_retry_after(response),
        )

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    @abstractmethod
    async def call(self, model: ModelDescriptor, payload: ProviderInput) -> ProviderResponse:
        """
        Execute one call for *model*.

        Returns
        -------
        ProviderResponse
            Decoded response body plus response headers.

        Raises
        ------
        ConfigurationError
            A required credential is missing.
        ProviderError
            Non-success HTTP status or transport failure. RateLimitError
            when the status or body says quota.
        """

    async def close(self) -> None:
        """Release the HTTP client if this adapter created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def __repr__(self) -> str:  # pragma: no cover
        return f"{self.__class__.__name__}(name={self.name!r}, env_key={self.env_key!r})"
