# tier_router/catalog/dashboard.py
"""
Flat, dashboard-friendly view of the catalog.

Each descriptor is flattened into a DashboardModel with one column per
capability flag, rating and limit, which is what table/grid front-ends
want. Filtering, sorting and the canned "preset" slices all operate on
that flat shape.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..constants import CAPABILITY_KEYS
from ..exceptions import ValidationError
from ..models import CostTier, ModelDescriptor

DEFAULT_PRESET_TIERS: tuple[CostTier, ...] = (CostTier.REMOTE_FREE, CostTier.CREDIT_BACKED)
DEFAULT_PRESET_TOP_N = 10


class DashboardModel(BaseModel):
    model_config = {"protected_namespaces": ()}

    model_id: str
    display_name: str
    provider_id: str
    family: str
    modality: list[str] = Field(default_factory=list)

    supports_chat: bool = False
    supports_reasoning: bool = False
    supports_speed: bool = False
    supports_coding: bool = False
    supports_images: bool = False
    supports_audio_speech: bool = False
    supports_audio_music: bool = False
    supports_vision: bool = False
    supports_video: bool = False

    chat_rating: int | None = None
    reasoning_rating: int | None = None
    speed_rating: int | None = None
    coding_rating: int | None = None
    images_rating: int | None = None
    audio_speech_rating: int | None = None
    audio_music_rating: int | None = None
    vision_rating: int | None = None
    video_rating: int | None = None

    requests_per_minute: int | None = None
    requests_per_day: int | None = None
    tokens_per_minute: int | None = None
    tokens_per_day: int | None = None
    tokens_per_month: int | None = None
    neurons_per_day: int | None = None
    audio_seconds_per_hour: int | None = None
    audio_seconds_per_day: int | None = None

    cost_tier: CostTier = CostTier.PAID
    uses_puter_credits: bool = False

    notes: str = ""
    limit_source: str | None = None
    limits_last_verified: str | None = None


class DashboardFilter(BaseModel):
    """Every field optional; unset fields don't filter."""

    provider: list[str] | None = None
    cost_tier: list[CostTier] | None = None
    requires: list[str] = Field(default_factory=list)
    min_ratings: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_query(cls, query: dict[str, Any]) -> "DashboardFilter":
        """
        Build a filter from flat query-style keys.

        Understands ``provider`` / ``cost_tier`` (string, comma-separated
        string or list), ``requires_<capability>`` (truthy flag) and
        ``min_<capability>_rating`` (integer).
        """
        requires = [c for c in CAPABILITY_KEYS if _truthy(query.get(f"requires_{c}"))]
        min_ratings: dict[str, int] = {}
        for capability in CAPABILITY_KEYS:
            key = f"min_{capability}_rating"
            if query.get(key) is None:
                continue
            try:
                min_ratings[capability] = int(query[key])
            except (TypeError, ValueError) as exc:
                raise ValidationError(f"{key} must be an integer", field=key, value=query[key]) from exc
        try:
            return cls(
                provider=_as_list(query.get("provider")),
                cost_tier=_as_list(query.get("cost_tier")),
                requires=requires,
                min_ratings=min_ratings,
            )
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid dashboard filter: {exc.errors()[0]['msg']}", field="cost_tier") from exc


def _as_list(value: Any) -> list[str] | None:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return list(value)


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes"}
    return bool(value)


def to_dashboard_model(model: ModelDescriptor) -> DashboardModel:
    """Flatten one descriptor. Ratings arrive with overrides already merged."""
    caps = model.capabilities
    limits = model.limits
    flat: dict[str, Any] = {
        "model_id": model.id,
        "display_name": model.display_name or model.id,
        "provider_id": model.provider,
        "family": model.company,
        "modality": model.types if model.types is not None else (["chat"] if caps.chat else []),
        "requests_per_minute": limits.rpm,
        "requests_per_day": limits.rpd,
        "tokens_per_minute": limits.tpm,
        "tokens_per_day": limits.tpd,
        "tokens_per_month": limits.tpm_month,
        "neurons_per_day": limits.neurons_per_day,
        "audio_seconds_per_hour": limits.audio_seconds_per_hour,
        "audio_seconds_per_day": limits.audio_seconds_per_day,
        "cost_tier": model.cost_tier,
        "uses_puter_credits": model.uses_puter_credits,
        "notes": model.notes or model.cost_notes,
        "limit_source": model.limit_source,
        "limits_last_verified": model.last_verified,
    }
    for capability in CAPABILITY_KEYS:
        flat[f"supports_{capability}"] = caps.supports(capability)
        flat[f"{capability}_rating"] = model.ratings.get(capability)
    return DashboardModel(**flat)


def filter_dashboard_models(models: Iterable[DashboardModel], query: DashboardFilter) -> list[DashboardModel]:
    result: list[DashboardModel] = []
    for m in models:
        if query.provider and m.provider_id not in query.provider:
            continue
        if query.cost_tier and m.cost_tier not in query.cost_tier:
            continue
        if any(not getattr(m, f"supports_{c}") for c in query.requires):
            continue
        if any(
            (rating := getattr(m, f"{c}_rating")) is None or rating < minimum
            for c, minimum in query.min_ratings.items()
        ):
            continue
        result.append(m)
    return result


def sort_dashboard_models(
    models: Sequence[DashboardModel],
    sort_by: str | None = None,
    sort_order: Literal["asc", "desc"] = "desc",
) -> list[DashboardModel]:
    """
    Stable sort on one column. Missing values sort as lowest.

    Unknown column names raise ValidationError.
    """
    if not sort_by:
        return list(models)
    if sort_by not in DashboardModel.model_fields:
        raise ValidationError(f"Cannot sort by unknown field '{sort_by}'", field="sort_by", value=sort_by)

    def _key(m: DashboardModel) -> tuple[bool, Any]:
        value = getattr(m, sort_by)
        return (value is not None, value)

    return sorted(models, key=_key, reverse=sort_order == "desc")


def build_presets(
    models: Iterable[DashboardModel],
    cost_tiers: Iterable[CostTier | str] | None = None,
    top_n: int = DEFAULT_PRESET_TOP_N,
) -> dict[str, list[DashboardModel]]:
    """Canned slices of the catalog for a dashboard landing page."""
    allowed = {CostTier.coerce(t) for t in (cost_tiers or DEFAULT_PRESET_TIERS)}
    pool = [m for m in models if m.cost_tier in allowed]

    def _top(capability_flag: str, rating_field: str) -> list[DashboardModel]:
        ranked = [m for m in pool if getattr(m, capability_flag) and getattr(m, rating_field) is not None]
        return sort_dashboard_models(ranked, rating_field, "desc")[:top_n]

    return {
        "best_reasoning": _top("supports_reasoning", "reasoning_rating"),
        "fastest_chat": _top("supports_chat", "speed_rating"),
        "best_coding": _top("supports_coding", "coding_rating"),
        "best_vision": _top("supports_vision", "vision_rating"),
        "all_free_models": [m for m in pool if m.cost_tier is CostTier.REMOTE_FREE],
    }
