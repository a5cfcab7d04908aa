# tests/test_cli.py
"""
Smoke tests for the typer CLI, run against a registry file on disk.
"""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from tests.helpers import SAMPLE_REGISTRY
from tier_router.cli import app

runner = CliRunner()


@pytest.fixture
def registry_env(tmp_path, monkeypatch):
    registry = tmp_path / "registry.json"
    registry.write_text(json.dumps(SAMPLE_REGISTRY))
    ratings = tmp_path / "ratings.json"
    monkeypatch.setenv("TIER_ROUTER_REGISTRY_PATH", str(registry))
    monkeypatch.setenv("TIER_ROUTER_RATINGS_PATH", str(ratings))
    return ratings


class TestCli:
    def test_models_lists_catalog(self, registry_env):
        result = runner.invoke(app, ["models", "--provider", "mistral"])
        assert result.exit_code == 0
        assert "Models (1)" in result.output

    def test_validation_error_exits_nonzero(self, registry_env):
        result = runner.invoke(app, ["models", "--capability", "telepathy"])
        assert result.exit_code == 1
        assert "VALIDATION_ERROR" in result.output

    def test_preflight(self, registry_env):
        result = runner.invoke(app, ["preflight", "turbo", "--task-type", "speech"])
        assert result.exit_code == 0
        assert "can run" in result.output
        assert "whisper-large-v3" in result.output

    def test_account_without_host_binding(self, registry_env):
        result = runner.invoke(app, ["account", "ultra"])
        assert result.exit_code == 0
        assert "ultra tier exhausted" in result.output

    def test_rate_persists_override(self, registry_env):
        result = runner.invoke(app, ["rate", "mistral-small-latest", "--coding", "5"])
        assert result.exit_code == 0
        assert json.loads(registry_env.read_text())["mistral-small-latest"]["coding"] == 5

    def test_rate_unknown_model(self, registry_env):
        result = runner.invoke(app, ["rate", "nope", "--chat", "3"])
        assert result.exit_code == 1
        assert "NOT_FOUND" in result.output
