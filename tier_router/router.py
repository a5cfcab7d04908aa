# tier_router/router.py
"""
TierRouter — the primary class the developer interacts with.

Wires the catalog, selector, provider registry, state services and the
exhaustion evaluator together behind one async API:

  1. Load the registry snapshot and merge rating overrides into a catalog.
  2. Narrow the catalog to a boost tier when one is requested.
  3. Pick a model (explicit id, or best suggestion for the capability).
  4. Call it through the provider registry, which records rate limits and
     health as a side effect.
  5. Normalise the output and, for boost-tier runs, annotate whether the
     tier is now exhausted.

Provider failures during run() come back as a structured RunError rather
than an exception, so an outer HTTP layer can serialise them directly.
Malformed requests still raise ValidationError.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from typing import Any, Literal

import httpx

from .catalog.builder import build_catalog
from .catalog.dashboard import (
    DashboardFilter,
    DashboardModel,
    build_presets,
    filter_dashboard_models,
    sort_dashboard_models,
    to_dashboard_model,
)
from .catalog.ratings import RatingsStore, validate_rating_updates
from .catalog.store import RegistryStore
from .config import RouterConfig
from .constants import (
    DEFAULT_CAPABILITY,
    DEFAULT_TASK_TOKENS,
    SHORT_WAIT_HINT_SECONDS,
    TASK_CAPABILITY_MAP,
    UNKNOWN_REQUEST_HEADROOM,
    UNKNOWN_TOKEN_HEADROOM,
)
from .engine.exhaustion import ExhaustionEvaluator, invalid_boost_tier_message
from .engine.selector import coerce_constraints, filter_models, find_model, pick, suggest
from .exceptions import (
    NotFoundError,
    RateLimitError,
    ValidationError,
    is_rate_limit_error,
)
from .models import (
    AccountStatus,
    BatchPreflightResult,
    BatchTaskResult,
    BoostTier,
    CachedRateLimit,
    CostTier,
    HealthReport,
    HealthState,
    HealthSummary,
    ModelDescriptor,
    PreflightCandidate,
    PreflightResult,
    PreflightTask,
    ProviderHealthStatus,
    RatingsOverride,
    RegistryDocument,
    RunError,
    RunMetadata,
    RunRequest,
    RunResult,
    RunSuggestion,
    ScoredDescriptor,
    SuggestionConstraints,
    parse_request,
)
from .providers.normalizer import extract_content
from .providers.puter import HostBinding
from .providers.registry import ProviderRegistry
from .state.health import HealthTracker
from .state.rate_limits import RateLimitCache

logger = logging.getLogger("tier_router.router")


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _parse_boost_tier(boost_tier: str | BoostTier | None) -> BoostTier | None:
    if boost_tier is None or boost_tier == "":
        return None
    try:
        return BoostTier(boost_tier)
    except ValueError as exc:
        raise ValidationError(invalid_boost_tier_message(str(boost_tier)), field="boost_tier", value=boost_tier) from exc


class TierRouter:
    """
    Cost-tier-aware model router.

    Parameters
    ----------
    config:
        Full router configuration. Use one of the factory class methods
        (from_dict, from_yaml, from_env) for convenient construction.
    credentials:
        Secret lookup handed to the provider adapters (default: os.environ).
    host_binding:
        Host SDK binding for credit-backed execution, if running inside
        the host environment.
    client:
        Shared httpx.AsyncClient. Created (and closed by aclose()) when
        omitted.
    registry_document:
        A pre-built registry, served as-is when ``config.registry_path`` is
        unset.
    """

    def __init__(
        self,
        config: RouterConfig | None = None,
        credentials: Mapping[str, str] | None = None,
        host_binding: HostBinding | None = None,
        client: httpx.AsyncClient | None = None,
        registry_document: RegistryDocument | dict[str, Any] | None = None,
    ) -> None:
        self._config = config or RouterConfig()
        document = (
            RegistryDocument.model_validate(registry_document)
            if isinstance(registry_document, dict)
            else registry_document
        )
        self.registry = RegistryStore(
            path=self._config.registry_path,
            cache_seconds=self._config.registry_cache_seconds,
            document=document,
        )
        self.ratings = RatingsStore(self._config.ratings_path)
        self.rate_limits = RateLimitCache(default_wait_seconds=self._config.default_wait_seconds)
        self.health = HealthTracker(self._config.health)
        self.providers = ProviderRegistry(
            credentials=credentials,
            host_binding=host_binding,
            rate_limits=self.rate_limits,
            health=self.health,
            client=client,
            app_url=self._config.app_url,
            app_title=self._config.app_title,
            timeout=self._config.http_timeout_seconds,
        )
        self.exhaustion = ExhaustionEvaluator(self.rate_limits, self.providers.puter.get_credits)

        self._catalog: list[ModelDescriptor] = []
        self._catalog_source: RegistryDocument | None = None
        self._catalog_dirty = True

    @property
    def config(self) -> RouterConfig:
        return self._config

    # ------------------------------------------------------------------
    # Factory methods
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict[str, Any], **kwargs: Any) -> "TierRouter":
        """Construct from a plain Python dictionary."""
        return cls(RouterConfig.from_dict(data), **kwargs)

    @classmethod
    def from_yaml(cls, path: str, **kwargs: Any) -> "TierRouter":
        """Construct from a YAML config file."""
        return cls(RouterConfig.from_yaml(path), **kwargs)

    @classmethod
    def from_env(cls, **kwargs: Any) -> "TierRouter":
        """Construct from environment variables."""
        return cls(RouterConfig.from_env(), **kwargs)

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def catalog(self) -> list[ModelDescriptor]:
        """
        Current model list, ratings overrides merged in.

        Rebuilt whenever the registry snapshot is replaced or a rating is
        updated; otherwise the previous build is returned.
        """
        document = self.registry.load()
        if self._catalog_dirty or document is not self._catalog_source:
            self._catalog = build_catalog(document, self.ratings.overrides())
            self._catalog_source = document
            self._catalog_dirty = False
            logger.debug("catalog rebuilt: %d models", len(self._catalog))
        return self._catalog

    def _tier_pool(self, boost_tier: BoostTier | None) -> list[ModelDescriptor]:
        models = self.catalog()
        if boost_tier is None:
            return list(models)
        return filter_models(models, cost_tier=boost_tier.cost_tier)

    def list_models(
        self,
        provider: str | None = None,
        cost_tier: CostTier | str | None = None,
        capability: str | None = None,
    ) -> list[ModelDescriptor]:
        """Catalog filtered by provider, cost tier and capability."""
        c = coerce_constraints({"provider": provider, "cost_tier": cost_tier, "capability": capability})
        return filter_models(self.catalog(), c.provider, c.cost_tier, c.capability)

    def get_model(self, model_id: str) -> ModelDescriptor:
        model = find_model(self.catalog(), model_id)
        if model is None:
            raise NotFoundError("Model", model_id)
        return model

    def suggest(
        self,
        constraints: SuggestionConstraints | dict[str, Any] | None = None,
        boost_tier: str | BoostTier | None = None,
    ) -> list[ScoredDescriptor]:
        """
        Ranked suggestions for *constraints*.

        A boost tier narrows the pool to its cost tier and, unless the
        constraints already name one, filters on that cost tier as well.
        """
        tier = _parse_boost_tier(boost_tier)
        c = coerce_constraints(constraints)
        if tier is not None and c.cost_tier is None:
            c = c.model_copy(update={"cost_tier": tier.cost_tier})
        return suggest(self._tier_pool(tier), c)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run(self, request: RunRequest | dict[str, Any]) -> RunResult | RunError:
        """
        Select a model and execute one call against it.

        Parameters
        ----------
        request:
            Explicit ``model_id`` or selection constraints (``capability``,
            ``max_cost_tier``, ``boost_tier``) plus the provider payload.

        Returns
        -------
        RunResult
            On success.
        RunError
            When nothing matched (status 400) or the provider call failed
            (429 for rate limits, 500 otherwise).

        Raises
        ------
        ValidationError
            The request itself is malformed.
        """
        start = time.monotonic()
        req = parse_request(RunRequest, request)
        pool = self._tier_pool(req.boost_tier)

        selected = pick(pool, req.model_id, req.capability, req.max_cost_tier)
        if selected is None:
            return RunError(
                error="No model matched request",
                error_type="no_model_matched",
                status_code=400,
                model_id=req.model_id,
                available_models_count=len(pool),
                execution_time_ms=_elapsed_ms(start),
            )

        try:
            response = await self.providers.call(selected, req)
        except Exception as exc:
            return self._run_error(exc, req, selected, pool, start)

        raw = response.data
        tier_status = None
        if req.boost_tier is not None:
            tier_status = await self.exhaustion.check_tier_exhaustion(req.boost_tier, self.catalog())

        return RunResult(
            model_id=selected.id,
            provider=selected.provider,
            route=selected.route,
            output=extract_content(raw),
            raw_provider_response=raw,
            metadata=RunMetadata(
                cost_tier=selected.cost_tier,
                boost_tier=req.boost_tier,
                execution_time_ms=_elapsed_ms(start),
                usage=raw.get("usage") if isinstance(raw, dict) else None,
                rate_limits=selected.limits,
            ),
            boost_tier_exhausted=bool(tier_status and tier_status.exhausted),
            boost_tier_message=tier_status.message if tier_status else None,
        )

    def _run_error(
        self,
        exc: Exception,
        req: RunRequest,
        selected: ModelDescriptor,
        pool: Sequence[ModelDescriptor],
        start: float,
    ) -> RunError:
        rate_limited = is_rate_limit_error(exc)
        retry_after = None
        suggestion = None

        if rate_limited:
            cached = self.rate_limits.get(selected.provider, selected.id)
            if cached is not None and cached.reset_time:
                retry_after = self.rate_limits.wait_seconds(selected.provider, selected.id)
            elif isinstance(exc, RateLimitError):
                retry_after = exc.retry_after_seconds
            else:
                retry_after = self._config.default_wait_seconds

            alternatives = [
                m
                for m in suggest(
                    pool,
                    {
                        "capability": req.capability or DEFAULT_CAPABILITY,
                        "max_cost_tier": req.max_cost_tier or CostTier.REMOTE_FREE,
                    },
                )
                if m.id != selected.id and m.provider != selected.provider
            ]
            if alternatives:
                suggestion = RunSuggestion(
                    next_best_model=alternatives[0].id,
                    next_best_provider=alternatives[0].provider,
                )

        return RunError(
            error=str(exc),
            error_type="rate_limit_exceeded" if rate_limited else "provider_error",
            status_code=429 if rate_limited else 500,
            provider=selected.provider,
            model_id=selected.id,
            retry_after_seconds=retry_after,
            suggestion=suggestion,
            execution_time_ms=_elapsed_ms(start),
        )

    # ------------------------------------------------------------------
    # Account / preflight
    # ------------------------------------------------------------------

    async def account_status(self, boost_tier: str | BoostTier, include_credits: bool = False) -> AccountStatus:
        return await self.exhaustion.account_status(boost_tier, self.catalog(), include_credits)

    async def preflight(
        self,
        boost_tier: str | BoostTier | None,
        task_type: str | None = None,
        capability: str | None = None,
    ) -> PreflightResult:
        """
        Can a task of this kind run in the boost tier right now?

        Candidates are the tier's usable models, narrowed by capability and
        by the capability implied by *task_type*. The suggested model is
        the fastest candidate.
        """
        tier = _parse_boost_tier(boost_tier)
        if tier is None:
            raise ValidationError('boost_tier is required (must be "turbo" or "ultra")', field="boost_tier")
        if capability is not None:
            parse_request(SuggestionConstraints, {"capability": capability})

        models = self.catalog()
        status = await self.exhaustion.check_tier_exhaustion(tier, models)
        usable = set(status.usable_model_ids)
        candidates = [m for m in models if m.cost_tier is status.cost_tier and m.id in usable]

        if capability:
            candidates = filter_models(candidates, capability=capability)
        required = TASK_CAPABILITY_MAP.get(task_type or "")
        if required:
            candidates = filter_models(candidates, capability=required)

        can_run = bool(candidates)
        fastest = sorted(candidates, key=lambda m: -m.rating("speed"))
        return PreflightResult(
            boost_tier=tier,
            cost_tier=status.cost_tier,
            boost_tier_exhausted=status.exhausted,
            can_run=can_run,
            candidate_models=[
                PreflightCandidate(
                    model_id=m.id,
                    provider=m.provider,
                    capabilities=m.capabilities,
                    ratings=m.ratings,
                )
                for m in candidates
            ],
            suggested_model=fastest[0].id if fastest else None,
            message=(
                f"{len(candidates)} model(s) available for this task in {tier.value} tier."
                if can_run
                else status.message
            ),
        )

    async def preflight_batch(
        self,
        boost_tier: str | BoostTier | None,
        tasks: Sequence[PreflightTask | dict[str, Any]],
    ) -> BatchPreflightResult:
        """
        Check a batch of tasks against cached and static rate limits.

        Tasks are placed in order; each placement consumes one request and
        its estimated tokens from the chosen provider's headroom so later
        tasks in the same batch see the reduced capacity.
        """
        tier = _parse_boost_tier(boost_tier)
        if tier is None:
            raise ValidationError(
                'boost_tier is required and must be "turbo" or "ultra"', field="boost_tier", value=boost_tier
            )
        if not tasks:
            raise ValidationError("tasks must be a non-empty array", field="tasks")
        limit = self._config.max_batch_tasks
        if len(tasks) > limit:
            raise ValidationError(f"Maximum {limit} tasks per batch preflight check", field="tasks", value=len(tasks))

        parsed = [parse_request(PreflightTask, t) for t in tasks]
        cost_tier = tier.cost_tier
        pool = filter_models(self.catalog(), cost_tier=cost_tier)

        simulated: dict[str, tuple[int, int]] = {}
        results: list[BatchTaskResult] = []
        total_tokens = 0

        for index, task in enumerate(parsed):
            total_tokens += task.estimated_tokens or 0
            capability = task.capability or DEFAULT_CAPABILITY

            candidates = pool
            if task.model_id:
                candidates = [m for m in candidates if m.id == task.model_id]
            candidates = filter_models(candidates, provider=task.provider, capability=task.capability)
            ranked = suggest(candidates, {"capability": capability, "max_cost_tier": cost_tier})

            if not ranked:
                reason = f"No {capability} models available in {tier.value} tier"
                if task.provider:
                    reason += f" from {task.provider}"
                results.append(BatchTaskResult(task_index=index, can_run=False, reason=reason))
                continue

            task_tokens = task.estimated_tokens or DEFAULT_TASK_TOKENS
            placed = None
            for candidate in ranked:
                requests_left, tokens_left = self._headroom(candidate)
                used_requests, used_tokens = simulated.get(candidate.provider, (0, 0))
                if requests_left - used_requests > 0 and tokens_left - used_tokens >= task_tokens:
                    simulated[candidate.provider] = (used_requests + 1, used_tokens + task_tokens)
                    placed = candidate
                    break

            if placed is not None:
                results.append(
                    BatchTaskResult(
                        task_index=index,
                        can_run=True,
                        reason="Requested model available" if task.model_id else "Within rate limits",
                        suggested_model=placed.id,
                        suggested_provider=placed.provider,
                    )
                )
                continue

            blocked = ranked[0]
            exhausted_providers = {m.provider for m in ranked}
            alternative = next(
                (
                    m
                    for m in pool
                    if m.provider not in exhausted_providers and m.capabilities.supports(capability)
                ),
                None,
            )
            results.append(
                BatchTaskResult(
                    task_index=index,
                    can_run=False,
                    reason=f"Provider {blocked.provider} rate limited",
                    suggested_model=alternative.id if alternative else None,
                    suggested_provider=alternative.provider if alternative else None,
                    estimated_wait_seconds=self.rate_limits.wait_seconds(blocked.provider, blocked.id),
                )
            )

        runnable = sum(1 for r in results if r.can_run)
        blocked_count = len(results) - runnable
        return BatchPreflightResult(
            batch_can_run=blocked_count == 0,
            tasks_runnable=runnable,
            tasks_blocked=blocked_count,
            total_estimated_tokens=total_tokens,
            results=results,
            recommendation=self._batch_recommendation(results, runnable, blocked_count),
        )

    def _headroom(self, model: ModelDescriptor) -> tuple[int, int]:
        cached = self.rate_limits.get(model.provider, model.id)
        requests = cached.requests_remaining if cached and cached.requests_remaining is not None else None
        tokens = cached.tokens_remaining if cached and cached.tokens_remaining is not None else None
        if requests is None:
            requests = model.limits.rpm if model.limits.rpm is not None else UNKNOWN_REQUEST_HEADROOM
        if tokens is None:
            tokens = model.limits.tpm if model.limits.tpm is not None else UNKNOWN_TOKEN_HEADROOM
        return requests, tokens

    @staticmethod
    def _batch_recommendation(results: Sequence[BatchTaskResult], runnable: int, blocked: int) -> str:
        total = len(results)
        if blocked == 0:
            return f"All {total} tasks can run immediately."
        if runnable == 0:
            return "All tasks blocked. Consider switching boost tier or waiting for rate limits to reset."

        text = f"{runnable} of {total} tasks can run immediately."
        with_alternative = sum(1 for r in results if not r.can_run and r.suggested_provider)
        if with_alternative:
            text += f" {with_alternative} task(s) have alternative providers available."
        waits = [r.estimated_wait_seconds for r in results if r.estimated_wait_seconds]
        if waits and min(waits) < SHORT_WAIT_HINT_SECONDS:
            text += f" Wait {min(waits)}s for rate limits to reset."
        return text

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    def provider_health(self, providers: Sequence[str] | None = None) -> HealthReport:
        """
        Health of every supported provider plus summary counts.

        Defaults to the registry's supported_providers, or to the distinct
        providers in the catalog when the registry lists none.
        """
        models = self.catalog()
        if providers is None:
            providers = self.registry.load().metadata.supported_providers or list(
                dict.fromkeys(m.provider for m in models)
            )
        statuses: list[ProviderHealthStatus] = self.health.get_all_statuses(providers, models)

        counts = {state: 0 for state in HealthState}
        for s in statuses:
            counts[s.status] += 1
        return HealthReport(
            providers=statuses,
            summary=HealthSummary(
                total_providers=len(statuses),
                healthy=counts[HealthState.HEALTHY],
                degraded=counts[HealthState.DEGRADED],
                down=counts[HealthState.DOWN],
                unknown=counts[HealthState.UNKNOWN],
            ),
        )

    def rate_limits_snapshot(self) -> dict[str, CachedRateLimit]:
        return self.rate_limits.get_all()

    # ------------------------------------------------------------------
    # Ratings / dashboard
    # ------------------------------------------------------------------

    def update_rating(self, model_id: str, body: Mapping[str, Any]) -> RatingsOverride:
        """
        Apply a ``<capability>_rating`` / ``notes`` patch to one model.

        Raises
        ------
        NotFoundError
            Unknown model id.
        ValidationError
            A rating outside 0-5, or nothing to update.
        """
        self.get_model(model_id)
        updates = validate_rating_updates(body)
        override = self.ratings.update_model_rating(model_id, updates)
        self._catalog_dirty = True
        logger.info("ratings updated for %s: %s", model_id, updates.rating_updates())
        return override

    def dashboard_models(
        self,
        query: DashboardFilter | dict[str, Any] | None = None,
        sort_by: str | None = None,
        sort_order: Literal["asc", "desc"] = "desc",
    ) -> list[DashboardModel]:
        """Flattened catalog for a dashboard, filtered then sorted."""
        if query is None:
            query = DashboardFilter()
        elif not isinstance(query, DashboardFilter):
            query = DashboardFilter.from_query(query)
        flat = [to_dashboard_model(m) for m in self.catalog()]
        return sort_dashboard_models(filter_dashboard_models(flat, query), sort_by, sort_order)

    def dashboard_model(self, model_id: str) -> DashboardModel:
        return to_dashboard_model(self.get_model(model_id))

    def presets(
        self,
        cost_tiers: Sequence[CostTier | str] | None = None,
        top_n: int = 10,
    ) -> dict[str, list[DashboardModel]]:
        return build_presets([to_dashboard_model(m) for m in self.catalog()], cost_tiers, top_n)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        """Release the shared HTTP client (if the router created it)."""
        await self.providers.aclose()

    async def __aenter__(self) -> "TierRouter":
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.aclose()
