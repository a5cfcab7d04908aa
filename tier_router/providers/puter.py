# tier_router/providers/puter.py
"""
Puter brokered-execution adapter.

Unlike every other adapter this one makes no HTTP call. It talks to a
host-provided SDK binding that only exists when the router runs inside the
Puter environment. The binding is injected (``None`` when absent) and
probed on every use:

  READY            binding present and a user is signed in
  UNAUTHENTICATED  binding present, nobody signed in
  UNAVAILABLE      no binding, or the binding failed to answer

A call in any state other than READY raises ProviderUnavailableError. That
is an expected condition, not a network failure. The same probe drives
get_credits(), which the exhaustion evaluator uses for credit-backed models.

The binding returns bare strings, so results are wrapped in the
OpenAI-compatible response shape with empty headers.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from ..exceptions import ProviderUnavailableError
from ..models import CreditBalance, ModelDescriptor, ProviderInput, ProviderResponse
from .base import BaseProvider

logger = logging.getLogger("tier_router.providers")

SDK_UNAVAILABLE_MESSAGE = "Puter SDK not available - not running inside Puter environment"
NOT_SIGNED_IN_MESSAGE = "No Puter user signed in"


@runtime_checkable
class HostBinding(Protocol):
    """What the router needs from the host SDK."""

    async def chat(self, prompt: str, *, model: str, temperature: float) -> str: ...

    async def txt2img(self, prompt: str) -> str: ...

    async def is_signed_in(self) -> bool: ...

    async def get_user(self) -> dict[str, Any]: ...


class HostBindingState(str, Enum):
    READY = "ready"
    UNAUTHENTICATED = "unauthenticated"
    UNAVAILABLE = "unavailable"


def wrap_openai_shape(content: str) -> dict[str, Any]:
    return {
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"total_tokens": 0},
    }


class PuterProvider(BaseProvider):
    """Adapter over an injected HostBinding."""

    name = "puter"
    env_key = ""

    def __init__(self, binding: HostBinding | None = None) -> None:
        super().__init__(credentials={})
        self._binding = binding

    @property
    def binding(self) -> HostBinding | None:
        return self._binding

    async def probe(self) -> HostBindingState:
        """Classify the binding. Never raises."""
        if self._binding is None:
            return HostBindingState.UNAVAILABLE
        try:
            signed_in = await self._binding.is_signed_in()
        except Exception:
            logger.warning("host binding failed to report sign-in state", exc_info=True)
            return HostBindingState.UNAVAILABLE
        return HostBindingState.READY if signed_in else HostBindingState.UNAUTHENTICATED

    async def call(self, model: ModelDescriptor, payload: ProviderInput) -> ProviderResponse:
        state = await self.probe()
        if state is not HostBindingState.READY or self._binding is None:
            message = NOT_SIGNED_IN_MESSAGE if state is HostBindingState.UNAUTHENTICATED else SDK_UNAVAILABLE_MESSAGE
            raise ProviderUnavailableError(self.name, message, model_id=model.id)

        prompt = self.get_messages(payload)[-1]["content"]
        if model.capabilities.images:
            result = await self._binding.txt2img(prompt)
        else:
            result = await self._binding.chat(
                prompt,
                model=model.id,
                temperature=self.get_temperature(payload),
            )
        return ProviderResponse(data=wrap_openai_shape(str(result)), headers={})

    async def get_credits(self) -> CreditBalance:
        """Credit balance of the signed-in user. Failures become available=False."""
        state = await self.probe()
        if state is HostBindingState.UNAVAILABLE or self._binding is None:
            return CreditBalance(available=False, error=SDK_UNAVAILABLE_MESSAGE)
        if state is HostBindingState.UNAUTHENTICATED:
            return CreditBalance(available=False, error=NOT_SIGNED_IN_MESSAGE)
        try:
            user = await self._binding.get_user()
        except Exception as exc:
            logger.warning("credit lookup failed: %s", exc)
            return CreditBalance(available=False, error=str(exc) or exc.__class__.__name__)
        return CreditBalance(
            available=True,
            balance=float(user.get("credits") or 0),
            username=user.get("username"),
        )
