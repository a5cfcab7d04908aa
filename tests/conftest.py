# tests/conftest.py
"""
Shared pytest fixtures for tier-router tests.
"""

from __future__ import annotations

import copy
from typing import Any, Callable

import httpx
import pytest

from tests.helpers import SAMPLE_REGISTRY, FakeClock, RecordingTransport
from tier_router.catalog.inference import capability_template
from tier_router.models import CostTier, ModelDescriptor, ModelLimits, ModelRatings, RegistryDocument


@pytest.fixture
def registry_data() -> dict[str, Any]:
    return copy.deepcopy(SAMPLE_REGISTRY)


@pytest.fixture
def registry_document(registry_data) -> RegistryDocument:
    return RegistryDocument.model_validate(registry_data)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_model():
    def _make(
        model_id: str,
        provider: str = "groq",
        cost_tier: str = "remote_free",
        capabilities: tuple[str, ...] = ("chat",),
        ratings: dict[str, int] | None = None,
        company: str | None = None,
        route: str | None = None,
        limits: dict[str, int] | None = None,
        **extra: Any,
    ) -> ModelDescriptor:
        return ModelDescriptor(
            id=model_id,
            provider=provider,
            company=company or provider,
            route=route or provider,
            capabilities=capability_template(capabilities),
            ratings=ModelRatings(**(ratings or {})),
            limits=ModelLimits(**(limits or {})),
            cost_tier=CostTier(cost_tier),
            **extra,
        )

    return _make


@pytest.fixture
def recorder():
    """Factory: recorder(handler) -> (RecordingTransport, httpx.AsyncClient)."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]):
        transport = RecordingTransport(handler)
        client = httpx.AsyncClient(transport=httpx.MockTransport(transport))
        return transport, client

    return _make

