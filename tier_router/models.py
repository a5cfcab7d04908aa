# tier_router/models.py
"""
Pydantic v2 data models used throughout tier-router.

Registry-facing models (RegistryDocument, ModelDetails) are deliberately
loose: unknown keys are ignored and every field is optional, so a registry
written for a newer version of the router still loads. Models the router
produces itself (ModelDescriptor and friends) are strict.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, ValidatorFunctionWrapHandler, field_validator
from pydantic import ValidationError as PydanticValidationError

from .constants import (
    BOOST_TIERS,
    CAPABILITY_KEYS,
    COST_TIER_ORDER,
    DEFAULT_COST_TIER,
    MAX_RATING,
    MIN_RATING,
)
from .exceptions import ValidationError

_M = TypeVar("_M", bound=BaseModel)


def utcnow_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def parse_request(model_cls: type[_M], data: Any) -> _M:
    """
    Validate *data* into *model_cls*, passing instances through untouched.

    Pydantic errors are re-raised as ValidationError naming the first
    offending field and value.
    """
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data or {})
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or None
        message = f"{field}: {first['msg']}" if field else first["msg"]
        raise ValidationError(message, field=field, value=first.get("input")) from exc


class CostTier(str, Enum):
    LOCAL = "local"
    REMOTE_FREE = "remote_free"
    CREDIT_BACKED = "credit_backed"
    PAID = "paid"

    @property
    def rank(self) -> int:
        return COST_TIER_ORDER.index(self.value)

    @classmethod
    def coerce(cls, value: Any) -> "CostTier":
        """Return the matching tier, falling back to PAID for anything unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls(DEFAULT_COST_TIER)


class BoostTier(str, Enum):
    TURBO = "turbo"
    ULTRA = "ultra"

    @property
    def cost_tier(self) -> CostTier:
        return CostTier(BOOST_TIERS[self.value])

    @property
    def other(self) -> "BoostTier":
        return BoostTier.ULTRA if self is BoostTier.TURBO else BoostTier.TURBO


def boost_tier_to_cost_tier(boost_tier: str | None) -> CostTier | None:
    """Map a boost tier name to its cost tier, or None if the name is unknown."""
    mapped = BOOST_TIERS.get(boost_tier or "")
    return CostTier(mapped) if mapped else None


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class ModelCapabilities(BaseModel):
    """The fixed set of capability flags."""

    chat: bool = False
    reasoning: bool = False
    speed: bool = False
    coding: bool = False
    images: bool = False
    audio_speech: bool = False
    audio_music: bool = False
    vision: bool = False
    video: bool = False

    def supports(self, capability: str) -> bool:
        return bool(getattr(self, capability, False))


def _drop_invalid(
    model: type[BaseModel],
    value: Any,
    handler: ValidatorFunctionWrapHandler,
    info: ValidationInfo,
) -> Any:
    """Validate one field; an invalid value falls back to the field default."""
    try:
        return handler(value)
    except ValueError:
        return model.model_fields[info.field_name].get_default(call_default_factory=True)


class ModelRatings(BaseModel):
    """
    0–5 rating per capability. None means unrated.

    A value that is out of range or not an integer is treated as unrated,
    so one bad entry in a registry overlay leaves the rest intact.
    """

    chat: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)
    reasoning: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)
    speed: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)
    coding: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)
    images: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)
    audio_speech: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)
    audio_music: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)
    vision: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)
    video: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)

    @field_validator("*", mode="wrap")
    @classmethod
    def drop_invalid_rating(cls, v: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo) -> Any:
        return _drop_invalid(cls, v, handler, info)

    def get(self, capability: str) -> int | None:
        return getattr(self, capability, None)


class ModelLimits(BaseModel):
    """Static quota figures from the registry. All nullable."""

    model_config = ConfigDict(extra="ignore")

    rpm: int | None = None
    rpd: int | None = None
    tpm: int | None = None
    tpd: int | None = None
    tpm_month: int | None = None
    neurons_per_day: int | None = None
    audio_seconds_per_hour: int | None = None
    audio_seconds_per_day: int | None = None
    source: str | None = None

    @field_validator("*", mode="wrap")
    @classmethod
    def drop_invalid_limit(cls, v: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo) -> Any:
        return _drop_invalid(cls, v, handler, info)


class ModelDescriptor(BaseModel):
    """One callable model, fully populated. The unit of selection."""

    id: str
    provider: str
    company: str
    route: str
    capabilities: ModelCapabilities = Field(default_factory=ModelCapabilities)
    ratings: ModelRatings = Field(default_factory=ModelRatings)
    limits: ModelLimits = Field(default_factory=ModelLimits)
    cost_tier: CostTier = CostTier.PAID
    uses_puter_credits: bool = False
    cost_notes: str = ""
    notes: str = ""

    # Dashboard metadata carried through from the detail overlay
    display_name: str | None = None
    types: list[str] | None = None
    limit_source: str | None = None
    last_verified: str | None = None

    @property
    def cost_rank(self) -> int:
        return self.cost_tier.rank

    def rating(self, capability: str) -> int:
        return self.ratings.get(capability) or 0


class ScoredDescriptor(ModelDescriptor):
    """A descriptor annotated with its selection score."""

    score: int = 0


class RegistryMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    version: str | None = None
    last_updated: str | None = None
    supported_providers: list[str] = Field(default_factory=list)
    total_models: int | None = None


class ModelDetails(BaseModel):
    """
    Per-model overlay from the registry. Takes precedence over inference.

    cost_tier stays a plain string here; the catalog builder normalises it
    so an unknown value degrades to "paid" instead of failing the load.
    Any other field that fails validation is dropped on its own, and the
    rest of the overlay is kept.
    """

    model_config = ConfigDict(extra="ignore")

    provider: str | None = None
    route: str | None = None
    capabilities: dict[str, bool] | None = None
    ratings: ModelRatings | None = None
    limits: ModelLimits | None = None
    rate_limits: ModelLimits | None = None
    cost_tier: str | None = None
    uses_puter_credits: bool = False
    cost_notes: str | None = None
    notes: str | None = None
    display_name: str | None = None
    types: list[str] | None = None
    rate_limit_source: str | None = None
    last_updated: str | None = None

    @field_validator("capabilities", mode="before")
    @classmethod
    def keep_boolean_flags(cls, v: Any) -> Any:
        if not isinstance(v, dict):
            return v
        return {k: flag for k, flag in v.items() if isinstance(flag, bool)}

    @field_validator("*", mode="wrap")
    @classmethod
    def drop_invalid_field(cls, v: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo) -> Any:
        return _drop_invalid(cls, v, handler, info)


class RegistryDocument(BaseModel):
    """
    The registry as loaded from disk.

    model_registry maps company → bucket → list of model ids. Buckets and
    overlay entries stay loosely typed; the catalog builder decides what to
    keep.
    """

    model_config = ConfigDict(extra="ignore", protected_namespaces=())

    metadata: RegistryMetadata = Field(default_factory=RegistryMetadata)
    model_registry: dict[str, dict[str, Any]] = Field(default_factory=dict)
    model_details: dict[str, Any] = Field(default_factory=dict)
    free_models: list[str] = Field(default_factory=list)

    @field_validator("model_registry", mode="before")
    @classmethod
    def drop_non_mapping_companies(cls, v: Any) -> Any:
        if not isinstance(v, dict):
            return {}
        return {k: bucket for k, bucket in v.items() if isinstance(bucket, dict)}

    @field_validator("model_details", mode="before")
    @classmethod
    def default_details(cls, v: Any) -> Any:
        return v if isinstance(v, dict) else {}

    @field_validator("free_models", mode="before")
    @classmethod
    def default_free_models(cls, v: Any) -> Any:
        if not isinstance(v, list):
            return []
        return [m for m in v if isinstance(m, str)]


class RatingsOverride(BaseModel):
    """User-edited patch for one model's ratings and notes."""

    model_config = ConfigDict(extra="ignore")

    chat: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)
    reasoning: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)
    speed: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)
    coding: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)
    images: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)
    audio_speech: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)
    audio_music: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)
    vision: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)
    video: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)
    notes: str | None = None
    updated_at: str | None = None

    def rating_updates(self) -> dict[str, int]:
        return {k: v for k in CAPABILITY_KEYS if (v := getattr(self, k)) is not None}


# ---------------------------------------------------------------------------
# Selection requests
# ---------------------------------------------------------------------------


def _check_capability(v: str | None) -> str | None:
    if v is not None and v not in CAPABILITY_KEYS:
        raise ValueError(f"capability must be one of {list(CAPABILITY_KEYS)}, got '{v}'")
    return v


class SuggestionConstraints(BaseModel):
    """Filters and ceiling applied by the selector."""

    provider: str | None = None
    cost_tier: CostTier | None = None
    capability: str | None = None
    max_cost_tier: CostTier | None = None

    @field_validator("capability")
    @classmethod
    def validate_capability(cls, v: str | None) -> str | None:
        return _check_capability(v)


class ChatMessage(BaseModel):
    role: str = "user"
    content: str = ""


class ProviderInput(BaseModel):
    """Normalised payload handed to an adapter."""

    model_config = ConfigDict(extra="ignore", protected_namespaces=())

    input: str | None = None
    prompt: str | None = None
    messages: list[ChatMessage] | None = None
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, gt=0)


class RunRequest(ProviderInput):
    """A run request: explicit model id or selection constraints, plus payload."""

    model_id: str | None = None
    capability: str | None = None
    max_cost_tier: CostTier | None = None
    boost_tier: BoostTier | None = None

    @field_validator("capability")
    @classmethod
    def validate_capability(cls, v: str | None) -> str | None:
        return _check_capability(v)


class ProviderResponse(BaseModel):
    """Decoded provider payload plus the response headers it arrived with."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: Any
    headers: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Runtime state
# ---------------------------------------------------------------------------


class RateLimitInfo(BaseModel):
    requests_remaining: int | None = None
    requests_limit: int | None = None
    tokens_remaining: int | None = None
    tokens_limit: int | None = None
    reset_time: str | None = None


class CachedRateLimit(RateLimitInfo):
    updated_at: str = Field(default_factory=utcnow_iso)


class ProviderHealthRecord(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_id: str
    success: bool
    latency_ms: float
    error_message: str | None = None
    timestamp: float = Field(default_factory=time.time)


class HealthState(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DOWN = "down"
    UNKNOWN = "unknown"


class ProviderHealthStatus(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    provider: str
    status: HealthState
    latency_ms: int | None = None
    last_checked: str | None = None
    last_success: str | None = None
    last_error: str | None = None
    error_count_last_hour: int = 0
    success_rate_last_hour: float | None = None
    models_available: int = 0


class CreditBalance(BaseModel):
    """Result of a credit-balance lookup against the host binding."""

    available: bool
    balance: float | None = None
    username: str | None = None
    error: str | None = None


class ModelUsability(BaseModel):
    usable: bool
    reason: str
    credits_required: bool = False
    credits_available: float | None = None
    rate_limits: CachedRateLimit | None = None


class UnusableReason(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_id: str
    provider: str
    reason: str


class TierStatus(BaseModel):
    boost_tier: str
    valid: bool
    cost_tier: CostTier | None = None
    exhausted: bool | None = None
    error: str | None = None
    reason: str | None = None
    total_models: int = 0
    usable_models: int = 0
    unusable_models: int = 0
    usable_model_ids: list[str] = Field(default_factory=list)
    unusable_model_ids: list[str] = Field(default_factory=list)
    unusable_reasons: list[UnusableReason] = Field(default_factory=list)
    message: str | None = None


class AccountStatus(BaseModel):
    account: str = "unknown"
    credits: CreditBalance | None = None
    boost_tier_requested: BoostTier
    boost_tier_status: TierStatus
    other_tier_status: TierStatus
    account_exhausted: bool
    recommendation: str
    timestamp: str = Field(default_factory=utcnow_iso)


# ---------------------------------------------------------------------------
# Router results
# ---------------------------------------------------------------------------


class RunMetadata(BaseModel):
    cost_tier: CostTier
    boost_tier: BoostTier | None = None
    execution_time_ms: int
    timestamp: str = Field(default_factory=utcnow_iso)
    usage: Any = None
    rate_limits: ModelLimits | None = None


class RunResult(BaseModel):
    """Successful run: normalised output plus the raw provider body."""

    model_config = ConfigDict(protected_namespaces=())

    model_id: str
    provider: str
    route: str
    output: str
    raw_provider_response: Any = None
    error: None = None
    metadata: RunMetadata
    boost_tier_exhausted: bool = False
    boost_tier_message: str | None = None


class RunSuggestion(BaseModel):
    next_best_model: str
    next_best_provider: str
    reason: str = "Same capability, different provider"


class RunError(BaseModel):
    """
    Structured failure payload returned by TierRouter.run().

    status_code is what an HTTP layer should answer with: 429 for rate
    limits, 400 when nothing matched, 500 otherwise.
    """

    model_config = ConfigDict(protected_namespaces=())

    error: str
    error_type: str
    status_code: int
    provider: str | None = None
    model_id: str | None = None
    retry_after_seconds: int | None = None
    suggestion: RunSuggestion | None = None
    available_models_count: int | None = None
    execution_time_ms: int = 0
    timestamp: str = Field(default_factory=utcnow_iso)


class PreflightCandidate(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_id: str
    provider: str
    capabilities: ModelCapabilities
    ratings: ModelRatings


class PreflightResult(BaseModel):
    boost_tier: BoostTier
    cost_tier: CostTier | None = None
    boost_tier_exhausted: bool | None = None
    can_run: bool
    candidate_models: list[PreflightCandidate] = Field(default_factory=list)
    suggested_model: str | None = None
    message: str | None = None
    timestamp: str = Field(default_factory=utcnow_iso)


class PreflightTask(BaseModel):
    """One task of a batch preflight."""

    model_config = ConfigDict(extra="ignore", protected_namespaces=())

    model_id: str | None = None
    provider: str | None = None
    capability: str | None = None
    estimated_tokens: int | None = Field(default=None, ge=0)

    @field_validator("capability")
    @classmethod
    def validate_capability(cls, v: str | None) -> str | None:
        return _check_capability(v)


class BatchTaskResult(BaseModel):
    task_index: int
    can_run: bool
    reason: str
    suggested_model: str | None = None
    suggested_provider: str | None = None
    estimated_wait_seconds: int | None = None


class BatchPreflightResult(BaseModel):
    batch_can_run: bool
    tasks_runnable: int
    tasks_blocked: int
    total_estimated_tokens: int
    results: list[BatchTaskResult]
    recommendation: str
    timestamp: str = Field(default_factory=utcnow_iso)


class HealthSummary(BaseModel):
    total_providers: int = 0
    healthy: int = 0
    degraded: int = 0
    down: int = 0
    unknown: int = 0


class HealthReport(BaseModel):
    providers: list[ProviderHealthStatus]
    summary: HealthSummary
    timestamp: str = Field(default_factory=utcnow_iso)
