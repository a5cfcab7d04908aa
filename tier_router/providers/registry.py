# tier_router/providers/registry.py
"""
ProviderRegistry — route → adapter lookup plus the tracked call path.

The registry is the single place that knows which adapter serves which
route. It also owns the one shared httpx.AsyncClient every HTTP adapter
uses, and wraps each call so that:

  - rate-limit headers from a successful response refresh the
    RateLimitCache, and
  - every outcome, success or failure, is appended to the HealthTracker
    before the result (or the exception) reaches the caller.

The "direct" route is not a provider. It dispatches on the descriptor's
company to one of a few first-party integrations.

Cache and health entries are keyed by the descriptor's provider, the
same key the exhaustion evaluator and health queries read with.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Mapping

import httpx

from ..constants import DEFAULT_APP_TITLE, DIRECT_ROUTES, HTTP_TIMEOUT_SECONDS
from ..exceptions import ProviderError
from ..models import ModelDescriptor, ProviderInput, ProviderResponse
from ..state.health import HealthTracker
from ..state.rate_limits import RateLimitCache
from .anthropic import AnthropicProvider
from .base import BaseProvider, default_http_client
from .cloudflare import CloudflareProvider
from .cohere import CohereProvider
from .gemini import GeminiProvider
from .huggingface import HuggingFaceProvider
from .openai_compatible import OPENAI_COMPATIBLE_KEYS, make_openai_compatible
from .openrouter import openrouter_provider
from .puter import HostBinding, PuterProvider

logger = logging.getLogger("tier_router.providers")

# company → route of the first-party adapter used by the "direct" route
DIRECT_COMPANY_ROUTES: dict[str, str] = {
    "openai": "openai",
    "anthropic": "anthropic",
    "gemini": "gemini",
    "google": "gemini",
}


class ProviderRegistry:
    """
    Holds every provider adapter and executes tracked calls.

    Parameters
    ----------
    credentials:
        Secret lookup for the adapters (defaults to os.environ).
    host_binding:
        Host SDK binding for the brokered adapter, or None when the router
        is not running inside the host environment.
    rate_limits / health:
        State services updated by call(). Fresh ones are created if omitted.
    client:
        Shared HTTP client. When omitted the registry creates one and
        closes it in aclose().
    """

    def __init__(
        self,
        credentials: Mapping[str, str] | None = None,
        host_binding: HostBinding | None = None,
        rate_limits: RateLimitCache | None = None,
        health: HealthTracker | None = None,
        client: httpx.AsyncClient | None = None,
        app_url: str | None = None,
        app_title: str = DEFAULT_APP_TITLE,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self._owns_client = client is None
        self._client = client if client is not None else default_http_client(timeout)
        self._credentials = credentials if credentials is not None else os.environ
        self.rate_limits = rate_limits if rate_limits is not None else RateLimitCache()
        self.health = health if health is not None else HealthTracker()
        self.puter = PuterProvider(host_binding)

        shared = {"client": self._client, "credentials": self._credentials}
        self._providers: dict[str, BaseProvider] = {
            name: make_openai_compatible(name, **shared) for name in OPENAI_COMPATIBLE_KEYS
        }
        self._providers.update(
            {
                "openrouter": openrouter_provider(app_url=app_url, app_title=app_title, **shared),
                "anthropic": AnthropicProvider(**shared),
                "gemini": GeminiProvider(**shared),
                "cohere": CohereProvider(**shared),
                "cloudflare": CloudflareProvider(**shared),
                "huggingface": HuggingFaceProvider(**shared),
                "puter": self.puter,
            }
        )

    # ------------------------------------------------------------------
    # Registration / lookup
    # ------------------------------------------------------------------

    def register_adapter(self, route: str, adapter: BaseProvider) -> None:
        """Register (or replace) the adapter serving *route*."""
        self._providers[route] = adapter

    def routes(self) -> list[str]:
        return list(self._providers)

    def get(self, route: str, company: str | None = None) -> BaseProvider:
        """
        Resolve the adapter for *route*.

        Raises
        ------
        ProviderError
            Unknown route, or a direct route whose company has no
            first-party integration.
        """
        if route in DIRECT_ROUTES:
            if not company:
                raise ProviderError("direct", "Company must be specified for direct API calls")
            target = DIRECT_COMPANY_ROUTES.get(company)
            if target is None:
                raise ProviderError("direct", f'Direct API for provider "{company}" not yet implemented')
            return self._providers[target]

        adapter = self._providers.get(route)
        if adapter is None:
            raise ProviderError(route, f'Provider route "{route}" not implemented')
        return adapter

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    async def call(self, model: ModelDescriptor, payload: ProviderInput) -> ProviderResponse:
        """Call *model* through its adapter, updating rate-limit and health state."""
        route = model.route or model.provider
        start = time.perf_counter()
        success = True
        error_message: str | None = None

        try:
            adapter = self.get(route, model.company)
            result = await adapter.call(model, payload)
            self.rate_limits.update(model.provider, model.id, result.headers)
            return result
        except Exception as exc:
            success = False
            error_message = str(exc)
            logger.warning("call to %s via %s failed: %s", model.id, route, exc)
            raise
        finally:
            latency_ms = (time.perf_counter() - start) * 1000
            self.health.record_call(model.provider, model.id, success, latency_ms, error_message)

    async def aclose(self) -> None:
        """Release the shared HTTP client if the registry created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ProviderRegistry":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()
