# tests/test_catalog.py
"""
Tests for catalog construction, capability inference and the registry store.

Verifies:
  - Bucket → (provider, route) mapping, including the direct route.
  - Overlay precedence over inference for capabilities, ratings, cost tier.
  - Tolerance of malformed registry entries.
  - Unique ids and first-occurrence-wins for duplicates.
  - Registry snapshot caching and reload failure handling.
"""

from __future__ import annotations

import json

import pytest
import yaml

from tests.helpers import SAMPLE_IDS, SAMPLE_REGISTRY, FakeClock
from tier_router.catalog.builder import build_catalog, parse_route_key, rating_from_capabilities
from tier_router.catalog.inference import capability_template, infer_capabilities
from tier_router.catalog.store import RegistryStore, read_registry_file
from tier_router.exceptions import ConfigurationError
from tier_router.models import CostTier, RatingsOverride, RegistryDocument


class TestParseRouteKey:
    def test_direct_api_maps_to_direct(self):
        parsed = parse_route_key("direct_api")
        assert parsed.provider == "direct"
        assert parsed.route == "direct"

    def test_known_bucket_is_its_own_provider(self):
        assert tuple(parse_route_key("groq")) == ("groq", "groq")

    def test_unknown_bucket_passes_through(self):
        assert tuple(parse_route_key("newprov")) == ("newprov", "newprov")


class TestInferCapabilities:
    def test_whisper_is_speech_and_speed(self):
        caps = infer_capabilities("whisper-large-v3")
        assert caps.audio_speech and caps.speed
        assert not caps.chat

    def test_tts_markers(self):
        assert infer_capabilities("playai-tts").audio_speech
        assert infer_capabilities("some-tts-model").audio_speech

    def test_image_markers(self):
        caps = infer_capabilities("llama-3.2-11b-vision-preview")
        assert caps.vision and caps.images
        assert not caps.chat

    def test_video_markers(self):
        assert infer_capabilities("sora-2").video
        assert infer_capabilities("gen-video-1").video

    def test_default_is_general_chat_model(self):
        caps = infer_capabilities("gpt-4o")
        assert caps.chat and caps.reasoning and caps.speed and caps.coding
        assert not caps.vision

    def test_matching_is_case_insensitive(self):
        assert infer_capabilities("WHISPER-Large").audio_speech

    def test_whisper_checked_before_image_markers(self):
        # "whisper-image" would match both rules; the first rule wins
        caps = infer_capabilities("whisper-image")
        assert caps.audio_speech and not caps.images


class TestBuildCatalog:
    def test_ids_are_unique_and_ordered(self, registry_document):
        catalog = build_catalog(registry_document)
        assert [m.id for m in catalog] == SAMPLE_IDS

    def test_direct_bucket_keeps_company(self, registry_document):
        gpt = next(m for m in build_catalog(registry_document) if m.id == "gpt-4o")
        assert gpt.provider == "direct"
        assert gpt.route == "direct"
        assert gpt.company == "openai"

    def test_overlay_capabilities_win_over_inference(self, registry_document):
        mini = next(m for m in build_catalog(registry_document) if m.id == "gpt-4o-mini")
        assert mini.capabilities.chat and mini.capabilities.coding
        assert not mini.capabilities.reasoning
        assert mini.uses_puter_credits is True
        assert mini.cost_tier is CostTier.CREDIT_BACKED

    def test_ratings_default_from_capabilities(self, registry_document):
        mistral = next(m for m in build_catalog(registry_document) if m.id == "mistral-small-latest")
        assert mistral.ratings.chat == 1
        assert mistral.ratings.vision == 0

    def test_rating_from_capabilities(self):
        ratings = rating_from_capabilities(capability_template(["chat", "vision"]))
        assert ratings.chat == 1 and ratings.vision == 1
        assert ratings.coding == 0

    def test_free_models_list_sets_remote_free(self, registry_document):
        whisper = next(m for m in build_catalog(registry_document) if m.id == "whisper-large-v3")
        assert whisper.cost_tier is CostTier.REMOTE_FREE

    def test_missing_cost_tier_defaults_to_paid(self):
        doc = RegistryDocument.model_validate({"model_registry": {"acme": {"groq": ["acme-1"]}}})
        assert build_catalog(doc)[0].cost_tier is CostTier.PAID

    def test_unknown_cost_tier_falls_back_to_paid(self):
        doc = RegistryDocument.model_validate(
            {
                "model_registry": {"acme": {"groq": ["acme-1"]}},
                "model_details": {"acme-1": {"cost_tier": "premium"}},
            }
        )
        assert build_catalog(doc)[0].cost_tier is CostTier.PAID

    def test_limits_come_from_overlay(self, registry_document):
        llama = next(m for m in build_catalog(registry_document) if m.id == "llama-3.3-70b-versatile")
        assert llama.limits.rpm == 30
        assert llama.limits.tpm == 6000

    def test_duplicate_id_first_occurrence_wins(self):
        doc = RegistryDocument.model_validate(
            {
                "model_registry": {
                    "first": {"groq": ["shared-model"]},
                    "second": {"mistral": ["shared-model"]},
                }
            }
        )
        catalog = build_catalog(doc)
        assert len(catalog) == 1
        assert catalog[0].provider == "groq"
        assert catalog[0].company == "first"

    def test_malformed_entries_are_skipped(self):
        doc = RegistryDocument.model_validate(
            {
                "model_registry": {
                    "acme": {"groq": "not-a-list", "mistral": ["ok-model", 42, None, ""]},
                    "broken": "not-a-mapping",
                },
            }
        )
        assert [m.id for m in build_catalog(doc)] == ["ok-model"]

    def test_bad_overlay_field_keeps_the_rest(self):
        doc = RegistryDocument.model_validate(
            {
                "model_registry": {"acme": {"puter": ["mini-x"]}},
                "model_details": {
                    "mini-x": {
                        "cost_tier": "credit_backed",
                        "uses_puter_credits": True,
                        "capabilities": {"chat": True, "vision": True},
                        "limits": {"rpd": "unlimited", "rpm": 30},
                    }
                },
            }
        )
        model = build_catalog(doc)[0]
        assert model.cost_tier is CostTier.CREDIT_BACKED
        assert model.uses_puter_credits is True
        assert model.capabilities.vision is True
        assert model.limits.rpd is None
        assert model.limits.rpm == 30

    def test_bad_ratings_field_falls_back_to_derived_ratings(self):
        doc = RegistryDocument.model_validate(
            {
                "model_registry": {"acme": {"groq": ["whisper-x"]}},
                "model_details": {"whisper-x": {"ratings": "five stars", "cost_tier": "remote_free"}},
            }
        )
        model = build_catalog(doc)[0]
        assert model.cost_tier is CostTier.REMOTE_FREE
        assert model.capabilities.audio_speech
        assert model.ratings.audio_speech == 1

    def test_non_mapping_overlay_falls_back_to_inference(self):
        doc = RegistryDocument.model_validate(
            {
                "model_registry": {"acme": {"groq": ["whisper-x"]}},
                "model_details": {"whisper-x": "five stars"},
            }
        )
        model = build_catalog(doc)[0]
        assert model.capabilities.audio_speech
        assert model.cost_tier is CostTier.PAID

    def test_out_of_range_overlay_ratings_are_unrated(self):
        doc = RegistryDocument.model_validate(
            {
                "model_registry": {"acme": {"groq": ["llama-x"]}},
                "model_details": {"llama-x": {"ratings": {"chat": 9, "speed": -3, "coding": 4}}},
            }
        )
        model = build_catalog(doc)[0]
        assert model.ratings.chat is None
        assert model.ratings.speed is None
        assert model.ratings.coding == 4
        assert model.rating("chat") == 0

    def test_extra_bucket_becomes_provider(self):
        doc = RegistryDocument.model_validate({"model_registry": {"acme": {"newprov": ["x-1"]}}})
        model = build_catalog(doc)[0]
        assert model.provider == "newprov"
        assert model.route == "newprov"

    def test_overrides_patch_ratings_and_notes(self, registry_document):
        overrides = {"llama-3.3-70b-versatile": RatingsOverride(speed=2, notes="throttled lately")}
        llama = next(m for m in build_catalog(registry_document, overrides) if m.id == "llama-3.3-70b-versatile")
        assert llama.ratings.speed == 2
        assert llama.ratings.chat == 4
        assert llama.notes == "throttled lately"

    def test_build_does_not_mutate_document(self, registry_document):
        before = registry_document.model_dump()
        build_catalog(registry_document, {"gpt-4o": RatingsOverride(chat=1)})
        assert registry_document.model_dump() == before

    def test_empty_document_builds_empty_catalog(self):
        assert build_catalog(RegistryDocument()) == []


class TestRegistryStore:
    def test_reads_json_file(self, tmp_path):
        path = tmp_path / "registry.json"
        path.write_text(json.dumps(SAMPLE_REGISTRY))
        doc = read_registry_file(path)
        assert doc.metadata.version == "1.0"
        assert "meta" in doc.model_registry

    def test_reads_yaml_file(self, tmp_path):
        path = tmp_path / "registry.yaml"
        path.write_text(yaml.safe_dump(SAMPLE_REGISTRY))
        doc = read_registry_file(path)
        assert doc.free_models == SAMPLE_REGISTRY["free_models"]

    def test_missing_file_raises_configuration_error(self, tmp_path):
        with pytest.raises(ConfigurationError) as info:
            read_registry_file(tmp_path / "absent.json")
        assert info.value.config_key == "registry_path"

    def test_non_mapping_file_is_rejected(self, tmp_path):
        path = tmp_path / "registry.json"
        path.write_text("[1, 2, 3]")
        with pytest.raises(ConfigurationError):
            read_registry_file(path)

    def test_snapshot_is_cached_until_stale(self, tmp_path):
        path = tmp_path / "registry.json"
        path.write_text(json.dumps(SAMPLE_REGISTRY))
        clock = FakeClock()
        store = RegistryStore(path, cache_seconds=60, clock=clock)

        first = store.load()
        path.write_text(json.dumps({**SAMPLE_REGISTRY, "free_models": []}))
        clock.advance(30)
        assert store.load() is first

        clock.advance(31)
        fresh = store.load()
        assert fresh is not first
        assert fresh.free_models == []
        assert first.free_models == SAMPLE_REGISTRY["free_models"]

    def test_failed_reload_keeps_previous_snapshot(self, tmp_path):
        path = tmp_path / "registry.json"
        path.write_text(json.dumps(SAMPLE_REGISTRY))
        store = RegistryStore(path)
        first = store.load()

        path.write_text("{ not json")
        assert store.reload() is first

    def test_first_load_failure_raises(self, tmp_path):
        store = RegistryStore(tmp_path / "absent.json")
        with pytest.raises(ConfigurationError):
            store.load()

    def test_in_memory_document_is_served(self, registry_document):
        store = RegistryStore(document=registry_document)
        assert store.load() is registry_document
        assert store.reload() is registry_document

    def test_no_path_and_no_document_is_empty(self):
        assert RegistryStore().load().model_registry == {}
