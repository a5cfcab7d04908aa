# tier_router/engine/selector.py
"""
Model selection engine.

Filters the catalog against a request's constraints and ranks what is
left. Ordering, with ties broken in exactly this sequence:

  1. cost tier rank, ascending   (cheaper always wins, whatever the score)
  2. score, descending           (rating for the requested capability)
  3. speed rating, descending

Anything still tied keeps catalog order (sorted() is stable).

Callers who want quality over cost must lower ``max_cost_tier``; a high
score never lifts a model above a cheaper tier.

Like the rest of the engine, the selector does no I/O. It receives the
catalog as an argument so it can be tested in isolation.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from ..constants import DEFAULT_CAPABILITY
from ..models import (
    CostTier,
    ModelDescriptor,
    ScoredDescriptor,
    SuggestionConstraints,
    parse_request,
)


def filter_models(
    catalog: Iterable[ModelDescriptor],
    provider: str | None = None,
    cost_tier: CostTier | str | None = None,
    capability: str | None = None,
) -> list[ModelDescriptor]:
    """Keep descriptors matching every supplied constraint."""
    tier = CostTier(cost_tier) if cost_tier is not None else None
    return [
        m
        for m in catalog
        if (provider is None or m.provider == provider)
        and (tier is None or m.cost_tier is tier)
        and (capability is None or m.capabilities.supports(capability))
    ]


def _sort_key(model: ScoredDescriptor) -> tuple[int, int, int]:
    return (model.cost_rank, -model.score, -model.rating("speed"))


def coerce_constraints(constraints: SuggestionConstraints | dict[str, Any] | None) -> SuggestionConstraints:
    """Accept a SuggestionConstraints, a plain dict or None."""
    if constraints is None:
        return SuggestionConstraints()
    return parse_request(SuggestionConstraints, constraints)


def suggest(
    catalog: Iterable[ModelDescriptor],
    constraints: SuggestionConstraints | dict[str, Any] | None = None,
) -> list[ScoredDescriptor]:
    """
    Rank the catalog for *constraints*.

    Parameters
    ----------
    catalog:
        Descriptors to choose from.
    constraints:
        provider / cost_tier / capability filters plus an optional
        max_cost_tier ceiling (default: no ceiling).

    Returns
    -------
    list[ScoredDescriptor]
        Best first. Empty when nothing matches.
    """
    c = coerce_constraints(constraints)
    capability = c.capability or DEFAULT_CAPABILITY
    ceiling = (c.max_cost_tier or CostTier.PAID).rank

    scored = [
        ScoredDescriptor(**m.model_dump(), score=m.rating(capability))
        for m in filter_models(catalog, c.provider, c.cost_tier, c.capability)
        if m.cost_rank <= ceiling
    ]
    return sorted(scored, key=_sort_key)


def find_model(catalog: Iterable[ModelDescriptor], model_id: str) -> ModelDescriptor | None:
    return next((m for m in catalog if m.id == model_id), None)


def pick(
    catalog: Sequence[ModelDescriptor],
    model_id: str | None = None,
    capability: str | None = None,
    max_cost_tier: CostTier | str | None = None,
) -> ModelDescriptor | None:
    """
    Choose one model.

    An explicit *model_id* short-circuits everything else: that exact
    descriptor is returned (or None), regardless of the other arguments.
    Otherwise the top suggestion for capability / max_cost_tier is returned.
    """
    if model_id:
        return find_model(catalog, model_id)
    ranked = suggest(catalog, {"capability": capability, "max_cost_tier": max_cost_tier})
    return ranked[0] if ranked else None
