# tests/test_router.py
"""
Integration tests for TierRouter.

Providers are simulated with httpx.MockTransport (and FakeBinding for the
brokered route) so no real API calls are made. Tests cover:
  - Successful runs, and the state they leave behind.
  - Structured RunError for rate limits, provider failures and no match.
  - Boost-tier runs and the exhaustion annotation.
  - Single and batch preflight.
  - Provider health, ratings updates, dashboard views.
"""

from __future__ import annotations

import httpx
import pytest

from tests.helpers import CREDENTIALS, FakeBinding, openai_reply
from tier_router import RunError, RunResult, TierRouter
from tier_router.config import RouterConfig
from tier_router.exceptions import NotFoundError, ValidationError
from tier_router.models import CostTier, HealthState, RateLimitInfo

LLAMA = "llama-3.3-70b-versatile"
OPENROUTER_LLAMA = "openrouter:meta-llama/llama-3.3-70b-instruct:free"
WHISPER = "whisper-large-v3"
MISTRAL = "mistral-small-latest"


def _router(registry_data, client=None, config: RouterConfig | None = None, binding=None) -> TierRouter:
    return TierRouter(
        config=config,
        credentials=CREDENTIALS,
        host_binding=binding,
        client=client or httpx.AsyncClient(transport=httpx.MockTransport(lambda r: openai_reply())),
        registry_document=registry_data,
    )


def _sequence(*responses: httpx.Response):
    """Handler returning *responses* in order, repeating the last one."""
    queue = list(responses)

    def _handler(request: httpx.Request) -> httpx.Response:
        return queue.pop(0) if len(queue) > 1 else queue[0]

    return _handler


# ---------------------------------------------------------------------------
# run()
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestRun:
    async def test_default_request_picks_best_free_chat_model(self, registry_data, recorder):
        headers = {"x-ratelimit-remaining-requests": "29", "x-ratelimit-limit-requests": "30"}
        transport, client = recorder(lambda r: openai_reply("Hi there", headers=headers))
        router = _router(registry_data, client)

        result = await router.run({"input": "hello"})

        assert isinstance(result, RunResult)
        assert result.model_id == LLAMA
        assert result.provider == "groq"
        assert result.output == "Hi there"
        assert result.metadata.cost_tier is CostTier.REMOTE_FREE
        assert result.metadata.usage["total_tokens"] == 5
        assert result.metadata.rate_limits.rpm == 30
        assert result.boost_tier_exhausted is False

        assert transport.last.url.host == "api.groq.com"
        assert transport.last.headers["authorization"] == "Bearer gsk-test"
        assert transport.last_json()["messages"] == [{"role": "user", "content": "hello"}]

    async def test_success_updates_rate_limits_and_health(self, registry_data, recorder):
        _, client = recorder(lambda r: openai_reply(headers={"x-ratelimit-remaining-requests": "29"}))
        router = _router(registry_data, client)

        await router.run({"input": "hello"})

        assert router.rate_limits_snapshot()[f"groq:{LLAMA}"].requests_remaining == 29
        history = router.health.get_history("groq")
        assert len(history) == 1
        assert history[0].success is True

    async def test_explicit_model_ignores_cost_ordering(self, registry_data, recorder):
        transport, client = recorder(lambda r: openai_reply())
        router = _router(registry_data, client)

        result = await router.run({"model_id": "gpt-4o", "input": "hello", "max_cost_tier": "local"})

        assert result.model_id == "gpt-4o"
        assert result.provider == "direct"
        assert transport.last.url.host == "api.openai.com"
        assert transport.last.headers["authorization"] == "Bearer sk-test"

    async def test_capability_selects_matching_model(self, registry_data, recorder):
        _, client = recorder(lambda r: openai_reply())
        router = _router(registry_data, client)

        result = await router.run({"capability": "audio_speech", "input": "hello"})

        assert result.model_id == WHISPER

    async def test_rate_limit_returns_429_with_alternative(self, registry_data, recorder):
        _, client = recorder(
            lambda r: httpx.Response(429, json={"error": "slow down"}, headers={"retry-after": "12"})
        )
        router = _router(registry_data, client)

        error = await router.run({"input": "hello"})

        assert isinstance(error, RunError)
        assert error.status_code == 429
        assert error.error_type == "rate_limit_exceeded"
        assert error.provider == "groq"
        assert error.model_id == LLAMA
        assert error.retry_after_seconds == 12
        assert error.suggestion.next_best_model == OPENROUTER_LLAMA
        assert error.suggestion.next_best_provider == "openrouter"
        assert router.health.get_history("groq")[-1].success is False

    async def test_rate_limit_prefers_cached_reset_time(self, registry_data, recorder):
        _, client = recorder(
            _sequence(
                openai_reply(headers={"x-ratelimit-remaining-requests": "0", "x-ratelimit-reset-requests": "7s"}),
                httpx.Response(429, text="rate limit reached", headers={"retry-after": "50"}),
            )
        )
        router = _router(registry_data, client)

        await router.run({"input": "first"})
        error = await router.run({"input": "second"})

        assert error.status_code == 429
        assert 6 <= error.retry_after_seconds <= 7

    async def test_provider_failure_returns_500(self, registry_data, recorder):
        _, client = recorder(lambda r: httpx.Response(500, text="internal"))
        router = _router(registry_data, client)

        error = await router.run({"input": "hello"})

        assert isinstance(error, RunError)
        assert error.status_code == 500
        assert error.error_type == "provider_error"
        assert error.retry_after_seconds is None
        assert error.suggestion is None
        assert "internal" in error.error

    async def test_missing_credential_is_provider_error(self, registry_data, recorder):
        _, client = recorder(lambda r: openai_reply())
        router = TierRouter(credentials={}, client=client, registry_document=registry_data)

        error = await router.run({"input": "hello"})

        assert error.status_code == 500
        assert "GROQ_API_KEY" in error.error

    async def test_unknown_model_is_400(self, registry_data):
        error = await _router(registry_data).run({"model_id": "nope", "input": "hello"})
        assert isinstance(error, RunError)
        assert error.status_code == 400
        assert error.error_type == "no_model_matched"
        assert error.available_models_count == 6

    async def test_unmatched_capability_is_400(self, registry_data):
        error = await _router(registry_data).run({"capability": "video", "input": "hello"})
        assert error.status_code == 400

    async def test_malformed_request_raises(self, registry_data):
        with pytest.raises(ValidationError) as info:
            await _router(registry_data).run({"boost_tier": "mega", "input": "hello"})
        assert info.value.field == "boost_tier"

        with pytest.raises(ValidationError):
            await _router(registry_data).run({"capability": "telepathy"})


@pytest.mark.asyncio
class TestBoostTierRun:
    async def test_turbo_pool_is_remote_free_only(self, registry_data, recorder):
        _, client = recorder(lambda r: openai_reply())
        router = _router(registry_data, client)

        result = await router.run({"boost_tier": "turbo", "input": "hello"})

        assert result.model_id == LLAMA
        assert result.metadata.boost_tier.value == "turbo"
        assert result.boost_tier_exhausted is False
        assert result.boost_tier_message == "4 of 4 turbo models are still usable."

    async def test_ultra_run_reports_exhaustion_after_last_credit(self, registry_data):
        binding = FakeBinding(credits=0)
        router = _router(registry_data, binding=binding)

        result = await router.run({"boost_tier": "ultra", "input": "hello"})

        assert isinstance(result, RunResult)
        assert result.model_id == "gpt-4o-mini"
        assert result.output == "hello from puter"
        assert binding.chat_calls[0]["model"] == "gpt-4o-mini"
        assert result.boost_tier_exhausted is True
        assert "Switch to the next account" in result.boost_tier_message

    async def test_ultra_without_host_binding_is_provider_error(self, registry_data):
        error = await _router(registry_data).run({"boost_tier": "ultra", "input": "hello"})
        assert isinstance(error, RunError)
        assert error.status_code == 500
        assert error.provider == "puter"


# ---------------------------------------------------------------------------
# Preflight
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestPreflight:
    async def test_task_type_narrows_candidates(self, registry_data):
        result = await _router(registry_data).preflight("turbo", task_type="speech")
        assert result.can_run is True
        assert [c.model_id for c in result.candidate_models] == [WHISPER]
        assert result.suggested_model == WHISPER
        assert result.message == "1 model(s) available for this task in turbo tier."

    async def test_suggests_fastest_candidate(self, registry_data):
        result = await _router(registry_data).preflight("turbo", capability="chat")
        assert result.suggested_model == LLAMA
        assert len(result.candidate_models) == 3

    async def test_rate_limited_models_are_not_candidates(self, registry_data):
        router = _router(registry_data)
        router.rate_limits.store("groq", LLAMA, RateLimitInfo(requests_remaining=0))
        result = await router.preflight("turbo", capability="chat")
        assert LLAMA not in [c.model_id for c in result.candidate_models]
        assert result.suggested_model == OPENROUTER_LLAMA

    async def test_ultra_without_credits_cannot_run(self, registry_data):
        result = await _router(registry_data).preflight("ultra")
        assert result.can_run is False
        assert result.boost_tier_exhausted is True
        assert result.suggested_model is None
        assert result.message.startswith("All eligible ultra models are exhausted")

    async def test_boost_tier_is_required(self, registry_data):
        with pytest.raises(ValidationError):
            await _router(registry_data).preflight(None)
        with pytest.raises(ValidationError):
            await _router(registry_data).preflight("mega")

    async def test_unknown_capability_is_rejected(self, registry_data):
        with pytest.raises(ValidationError):
            await _router(registry_data).preflight("turbo", capability="telepathy")

    async def test_account_status(self, registry_data):
        status = await _router(registry_data, binding=FakeBinding(credits=2)).account_status("ultra")
        assert status.account == "ada"
        assert status.account_exhausted is False
        assert status.boost_tier_status.usable_model_ids == ["gpt-4o-mini"]


@pytest.mark.asyncio
class TestBatchPreflight:
    async def test_second_task_exceeds_token_headroom(self, registry_data):
        tasks = [{"provider": "groq", "estimated_tokens": 4000}, {"provider": "groq", "estimated_tokens": 4000}]
        result = await _router(registry_data).preflight_batch("turbo", tasks)

        assert result.batch_can_run is False
        assert result.tasks_runnable == 1
        assert result.tasks_blocked == 1
        assert result.total_estimated_tokens == 8000

        first, second = result.results
        assert first.can_run is True
        assert first.suggested_model == LLAMA
        assert second.can_run is False
        assert second.reason == "Provider groq rate limited"
        assert second.suggested_model == OPENROUTER_LLAMA
        assert second.estimated_wait_seconds == 60
        assert result.recommendation == (
            "1 of 2 tasks can run immediately. 1 task(s) have alternative providers available. "
            "Wait 60s for rate limits to reset."
        )

    async def test_all_tasks_runnable(self, registry_data):
        result = await _router(registry_data).preflight_batch("turbo", [{}, {"capability": "coding"}])
        assert result.batch_can_run is True
        assert [r.reason for r in result.results] == ["Within rate limits", "Within rate limits"]
        assert result.recommendation == "All 2 tasks can run immediately."

    async def test_requested_model(self, registry_data):
        result = await _router(registry_data).preflight_batch("turbo", [{"model_id": MISTRAL}])
        assert result.results[0].reason == "Requested model available"
        assert result.results[0].suggested_model == MISTRAL

    async def test_exhausted_provider_falls_to_next_ranked_model(self, registry_data):
        router = _router(registry_data)
        router.rate_limits.store("groq", LLAMA, RateLimitInfo(requests_remaining=0))
        result = await router.preflight_batch("turbo", [{}])
        assert result.results[0].can_run is True
        assert result.results[0].suggested_model == OPENROUTER_LLAMA

    async def test_no_candidates(self, registry_data):
        tasks = [{"capability": "video"}, {"capability": "chat", "provider": "cohere"}]
        result = await _router(registry_data).preflight_batch("turbo", tasks)
        assert [r.reason for r in result.results] == [
            "No video models available in turbo tier",
            "No chat models available in turbo tier from cohere",
        ]
        assert result.recommendation.startswith("All tasks blocked")

    async def test_validation(self, registry_data):
        router = _router(registry_data)
        with pytest.raises(ValidationError):
            await router.preflight_batch(None, [{}])
        with pytest.raises(ValidationError):
            await router.preflight_batch("turbo", [])
        with pytest.raises(ValidationError) as info:
            await router.preflight_batch("turbo", [{}] * 21)
        assert info.value.message == "Maximum 20 tasks per batch preflight check"

    async def test_batch_limit_is_configurable(self, registry_data):
        router = _router(registry_data, config=RouterConfig(max_batch_tasks=2))
        with pytest.raises(ValidationError):
            await router.preflight_batch("turbo", [{}] * 3)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestProviderHealth:
    async def test_report_covers_supported_providers(self, registry_data, recorder):
        _, client = recorder(lambda r: openai_reply())
        router = _router(registry_data, client)
        await router.run({"input": "hello"})

        report = router.provider_health()

        by_name = {s.provider: s for s in report.providers}
        assert list(by_name) == ["groq", "openrouter", "puter", "direct"]
        assert by_name["groq"].status is HealthState.HEALTHY
        assert by_name["groq"].models_available == 2
        assert by_name["puter"].status is HealthState.UNKNOWN
        assert report.summary.total_providers == 4
        assert report.summary.healthy == 1
        assert report.summary.unknown == 3

    async def test_falls_back_to_catalog_providers(self, registry_data):
        registry_data["metadata"]["supported_providers"] = []
        report = _router(registry_data).provider_health()
        assert [s.provider for s in report.providers] == ["openrouter", "groq", "direct", "puter", "mistral"]


# ---------------------------------------------------------------------------
# Catalog, ratings, dashboard
# ---------------------------------------------------------------------------


class TestCatalogQueries:
    def test_list_models_filters(self, registry_data):
        router = _router(registry_data)
        assert [m.id for m in router.list_models(provider="groq")] == [LLAMA, WHISPER]
        assert [m.id for m in router.list_models(cost_tier="paid")] == ["gpt-4o"]

    def test_list_models_rejects_unknown_capability(self, registry_data):
        with pytest.raises(ValidationError):
            _router(registry_data).list_models(capability="telepathy")

    def test_get_model(self, registry_data):
        router = _router(registry_data)
        assert router.get_model("gpt-4o").company == "openai"
        with pytest.raises(NotFoundError):
            router.get_model("nope")

    def test_suggest_with_boost_tier(self, registry_data):
        router = _router(registry_data)
        assert [m.id for m in router.suggest(boost_tier="ultra")] == ["gpt-4o-mini"]
        assert router.suggest({"capability": "chat"})[0].id == LLAMA
        with pytest.raises(ValidationError):
            router.suggest(boost_tier="mega")

    def test_catalog_is_reused_until_changed(self, registry_data):
        router = _router(registry_data)
        assert router.catalog() is router.catalog()


class TestRatings:
    def test_update_rating_changes_selection(self, registry_data, tmp_path):
        path = tmp_path / "ratings.json"
        router = _router(registry_data, config=RouterConfig(ratings_path=str(path)))

        override = router.update_rating(LLAMA, {"chat_rating": 1, "notes": "flaky today"})

        assert override.chat == 1
        assert override.updated_at is not None
        assert router.get_model(LLAMA).ratings.chat == 1
        assert router.get_model(LLAMA).notes == "flaky today"
        assert router.suggest({"capability": "chat"})[0].id == OPENROUTER_LLAMA
        assert path.exists()

    def test_ratings_survive_a_new_router(self, registry_data, tmp_path):
        config = RouterConfig(ratings_path=str(tmp_path / "ratings.json"))
        _router(registry_data, config=config).update_rating(MISTRAL, {"coding_rating": 5})
        assert _router(registry_data, config=config).get_model(MISTRAL).ratings.coding == 5

    def test_update_rating_errors(self, registry_data):
        router = _router(registry_data)
        with pytest.raises(NotFoundError):
            router.update_rating("nope", {"chat_rating": 3})
        with pytest.raises(ValidationError) as info:
            router.update_rating(LLAMA, {"chat_rating": 9})
        assert info.value.field == "chat_rating"


class TestDashboard:
    def test_filter_and_sort(self, registry_data):
        router = _router(registry_data)
        rows = router.dashboard_models({"provider": "groq"}, sort_by="speed_rating")
        assert [r.model_id for r in rows] == [LLAMA, WHISPER]

    def test_unknown_sort_field(self, registry_data):
        with pytest.raises(ValidationError):
            _router(registry_data).dashboard_models(sort_by="bogus")

    def test_dashboard_model(self, registry_data):
        row = _router(registry_data).dashboard_model("gpt-4o")
        assert row.provider_id == "direct"
        assert row.family == "openai"
        assert row.cost_tier is CostTier.PAID

    def test_presets(self, registry_data):
        presets = _router(registry_data).presets()
        assert [m.model_id for m in presets["fastest_chat"]] == [LLAMA, "gpt-4o-mini", OPENROUTER_LLAMA, MISTRAL]
        assert [m.model_id for m in presets["all_free_models"]] == [OPENROUTER_LLAMA, LLAMA, WHISPER, MISTRAL]
        assert presets["best_vision"] == []


# ---------------------------------------------------------------------------
# Construction / lifecycle
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_from_dict(self, registry_data):
        router = TierRouter.from_dict({"default_wait_seconds": 5}, registry_document=registry_data)
        assert router.config.default_wait_seconds == 5
        assert router.rate_limits.wait_seconds("groq", LLAMA) == 5

    def test_empty_registry(self):
        router = TierRouter(credentials=CREDENTIALS)
        assert router.catalog() == []


@pytest.mark.asyncio
class TestLifecycle:
    async def test_injected_client_is_left_open(self, registry_data):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: openai_reply()))
        async with _router(registry_data, client) as router:
            await router.run({"input": "hello"})
        assert client.is_closed is False
        await client.aclose()

    async def test_owned_client_is_closed(self, registry_data):
        router = TierRouter(credentials=CREDENTIALS, registry_document=registry_data)
        await router.aclose()
        assert router.providers._client.is_closed is True
