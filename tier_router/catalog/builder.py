# tier_router/catalog/builder.py
"""
Catalog construction.

Turns a RegistryDocument (company → bucket → model ids, plus a per-model
detail overlay) into a flat list of ModelDescriptor objects.

Parsing is permissive. A bucket that isn't a list or an id that isn't a
string is skipped. Inside a detail overlay, a field that fails validation
is dropped and the remaining fields still apply; an overlay that isn't a
mapping at all is ignored and the model falls back to inference. The build
itself never fails on a bad entry.

The builder never mutates its inputs. Every call produces a new list.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import Any, NamedTuple

from pydantic import ValidationError as PydanticValidationError

from ..constants import CAPABILITY_KEYS, PROVIDER_BUCKETS
from ..models import (
    CostTier,
    ModelCapabilities,
    ModelDescriptor,
    ModelDetails,
    ModelLimits,
    ModelRatings,
    RatingsOverride,
    RegistryDocument,
)
from .inference import capability_template, infer_capabilities

logger = logging.getLogger("tier_router.catalog")


class ParsedRoute(NamedTuple):
    provider: str
    route: str


_ROUTE_TABLE: dict[str, ParsedRoute] = {
    bucket: ParsedRoute(bucket, bucket) for bucket in PROVIDER_BUCKETS if bucket != "direct_api"
}
_ROUTE_TABLE["direct_api"] = ParsedRoute("direct", "direct")


def parse_route_key(bucket: str) -> ParsedRoute:
    """
    Resolve a registry bucket name to (provider, route).

    Unknown bucket names pass through as their own provider and route, so a
    registry can list a new provider before the router knows about it.
    """
    return _ROUTE_TABLE.get(bucket, ParsedRoute(bucket, bucket))


def rating_from_capabilities(capabilities: ModelCapabilities) -> ModelRatings:
    """1 for every supported capability, 0 otherwise."""
    return ModelRatings(**{k: 1 if capabilities.supports(k) else 0 for k in CAPABILITY_KEYS})


def normalize_cost_tier(model_id: str, details: ModelDetails | None, free_models: set[str]) -> CostTier:
    """
    Overlay tier first, then registry-level free list, then "paid".

    Any value outside the four known tiers degrades to "paid".
    """
    if details is not None and details.cost_tier:
        return CostTier.coerce(details.cost_tier)
    if model_id in free_models:
        return CostTier.REMOTE_FREE
    return CostTier.PAID


def apply_rating_override(ratings: ModelRatings, override: RatingsOverride | None) -> ModelRatings:
    """Return *ratings* with any per-field override patched on top."""
    if override is None:
        return ratings
    updates = override.rating_updates()
    if not updates:
        return ratings
    return ratings.model_copy(update=updates)


def _iter_buckets(company: Mapping[str, Any]) -> Iterator[tuple[str, list[Any]]]:
    """Known buckets in fixed order, then any extra bucket the registry carries."""
    seen: set[str] = set()
    for bucket in (*PROVIDER_BUCKETS, *company.keys()):
        if bucket in seen:
            continue
        seen.add(bucket)
        model_ids = company.get(bucket)
        if isinstance(model_ids, list):
            yield bucket, model_ids


def _parse_details(model_id: str, raw: Any) -> ModelDetails | None:
    if raw is None:
        return None
    try:
        return ModelDetails.model_validate(raw)
    except PydanticValidationError as exc:
        logger.warning("ignoring malformed detail overlay for %s: %s", model_id, exc.errors()[:1])
        return None


def build_descriptor(
    model_id: str,
    company: str,
    bucket: str,
    details: ModelDetails | None,
    free_models: set[str],
    override: RatingsOverride | None = None,
) -> ModelDescriptor:
    """Build one descriptor from its registry coordinates and overlay."""
    parsed = parse_route_key(bucket)
    base = details or ModelDetails()

    if base.capabilities is not None:
        capabilities = capability_template(base.capabilities)
    else:
        capabilities = infer_capabilities(model_id)

    ratings = base.ratings or rating_from_capabilities(capabilities)
    ratings = apply_rating_override(ratings, override)

    notes = base.notes or ""
    if override is not None and override.notes is not None:
        notes = override.notes

    limits = base.limits or base.rate_limits or ModelLimits()

    return ModelDescriptor(
        id=model_id,
        provider=base.provider or parsed.provider,
        company=company,
        route=base.route or parsed.route,
        capabilities=capabilities,
        ratings=ratings,
        limits=limits,
        cost_tier=normalize_cost_tier(model_id, details, free_models),
        uses_puter_credits=bool(base.uses_puter_credits),
        cost_notes=base.cost_notes or "",
        notes=notes,
        display_name=base.display_name,
        types=base.types,
        limit_source=base.rate_limit_source or limits.source,
        last_verified=base.last_updated,
    )


def build_catalog(
    document: RegistryDocument,
    overrides: Mapping[str, RatingsOverride] | None = None,
) -> list[ModelDescriptor]:
    """
    Build the full model list from a registry document.

    Parameters
    ----------
    document:
        Parsed registry (company → bucket → ids, detail overlay, free list).
    overrides:
        Optional ratings-override patches keyed by model id, merged on top
        of the overlay/derived ratings.

    Returns
    -------
    list[ModelDescriptor]
        One descriptor per distinct model id. When the same id appears under
        more than one company or bucket, the first occurrence wins.
    """
    overrides = overrides or {}
    free_models = set(document.free_models)
    parsed_details: dict[str, ModelDetails | None] = {}
    models: list[ModelDescriptor] = []
    seen: set[str] = set()

    for company, buckets in document.model_registry.items():
        for bucket, model_ids in _iter_buckets(buckets):
            for model_id in model_ids:
                if not isinstance(model_id, str) or not model_id:
                    continue
                if model_id in seen:
                    logger.debug("duplicate registry entry %s under %s/%s skipped", model_id, company, bucket)
                    continue
                seen.add(model_id)

                if model_id not in parsed_details:
                    parsed_details[model_id] = _parse_details(model_id, document.model_details.get(model_id))

                models.append(
                    build_descriptor(
                        model_id,
                        company,
                        bucket,
                        parsed_details[model_id],
                        free_models,
                        overrides.get(model_id),
                    )
                )

    return models
