# tier_router/config.py
"""
RouterConfig and related sub-configs.

Supports construction from:
  - Python dict   → RouterConfig.from_dict(data)
  - YAML file     → RouterConfig.from_yaml("router.yaml")
  - Environment   → RouterConfig.from_env()
"""

from __future__ import annotations

import os
import re
from typing import Any

import yaml
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_APP_TITLE,
    DEFAULT_WAIT_SECONDS,
    DEGRADED_LATENCY_MS,
    DEGRADED_SUCCESS_RATE,
    HEALTH_WINDOW_SECONDS,
    HEALTHY_LATENCY_MS,
    HEALTHY_SUCCESS_RATE,
    HTTP_TIMEOUT_SECONDS,
    MAX_BATCH_TASKS,
    MAX_HISTORY_PER_PROVIDER,
    REGISTRY_CACHE_SECONDS,
    STALE_MIN_CALLS,
    STALE_SUCCESS_SECONDS,
)


class HealthConfig(BaseModel):
    """Thresholds for the provider health classification."""

    history_size: int = Field(
        default=MAX_HISTORY_PER_PROVIDER,
        gt=0,
        description="Ring-buffer capacity per provider.",
    )
    window_seconds: int = Field(
        default=HEALTH_WINDOW_SECONDS,
        gt=0,
        description="Only calls newer than this count towards the status.",
    )
    healthy_success_rate: float = Field(default=HEALTHY_SUCCESS_RATE, ge=0.0, le=1.0)
    healthy_latency_ms: float = Field(default=HEALTHY_LATENCY_MS, gt=0)
    degraded_success_rate: float = Field(default=DEGRADED_SUCCESS_RATE, ge=0.0, le=1.0)
    degraded_latency_ms: float = Field(default=DEGRADED_LATENCY_MS, gt=0)
    stale_success_seconds: int = Field(
        default=STALE_SUCCESS_SECONDS,
        gt=0,
        description="A last success older than this forces the provider down...",
    )
    stale_min_calls: int = Field(
        default=STALE_MIN_CALLS,
        gt=0,
        description="...once the window holds at least this many calls.",
    )


class RouterConfig(BaseModel):
    """
    Top-level configuration for tier-router.

    Instantiate directly or use one of the factory class methods:
      RouterConfig.from_dict(data)
      RouterConfig.from_yaml(path)
      RouterConfig.from_env()
    """

    registry_path: str | None = Field(
        default=None,
        description="Registry document (JSON or YAML).",
    )
    ratings_path: str | None = Field(
        default=None,
        description="Ratings-override JSON file. In-memory only when unset.",
    )
    registry_cache_seconds: float = Field(
        default=REGISTRY_CACHE_SECONDS,
        ge=0.0,
        description="How long a parsed registry snapshot is reused.",
    )
    health: HealthConfig = Field(default_factory=HealthConfig)
    default_wait_seconds: int = Field(
        default=DEFAULT_WAIT_SECONDS,
        ge=0,
        description="Retry hint used when no rate-limit reset time is known.",
    )
    app_url: str | None = Field(
        default=None,
        description="Sent as HTTP-Referer to the aggregator provider.",
    )
    app_title: str = Field(default=DEFAULT_APP_TITLE)
    http_timeout_seconds: float = Field(
        default=HTTP_TIMEOUT_SECONDS,
        gt=0,
        description="Timeout handed to the shared HTTP client.",
    )
    max_batch_tasks: int = Field(default=MAX_BATCH_TASKS, gt=0)

    # ------------------------------------------------------------------
    # Factory methods
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict[str, Any], **kwargs: Any) -> "RouterConfig":
        """Build config from a plain Python dictionary."""
        merged = {**data, **kwargs}
        return cls.model_validate(merged)

    @classmethod
    def from_yaml(cls, path: str, **kwargs: Any) -> "RouterConfig":
        """
        Build config from a YAML file.

        Environment variable interpolation is supported:
          registry_path: "${TIER_ROUTER_HOME}/registry.json"
        """
        with open(path) as f:
            raw = f.read()

        def _replace(match: re.Match) -> str:  # type: ignore[type-arg]
            var = match.group(1)
            value = os.environ.get(var)
            if value is None:
                raise EnvironmentError(
                    f"Environment variable '{var}' referenced in '{path}' is not set."
                )
            return value

        raw = re.sub(r"\$\{([^}]+)\}", _replace, raw)
        data = yaml.safe_load(raw) or {}
        return cls.from_dict(data, **kwargs)

    @classmethod
    def from_env(cls, **kwargs: Any) -> "RouterConfig":
        """
        Build config from environment variables.

          TIER_ROUTER_REGISTRY_PATH  → registry_path
          TIER_ROUTER_RATINGS_PATH   → ratings_path
          TIER_ROUTER_CACHE_SECONDS  → registry_cache_seconds
          APP_URL                    → app_url
        """
        data: dict[str, Any] = {}

        registry = os.environ.get("TIER_ROUTER_REGISTRY_PATH")
        if registry:
            data["registry_path"] = registry

        ratings = os.environ.get("TIER_ROUTER_RATINGS_PATH")
        if ratings:
            data["ratings_path"] = ratings

        cache_seconds = os.environ.get("TIER_ROUTER_CACHE_SECONDS")
        if cache_seconds:
            data["registry_cache_seconds"] = float(cache_seconds)

        app_url = os.environ.get("APP_URL")
        if app_url:
            data["app_url"] = app_url

        data.update(kwargs)
        return cls.from_dict(data)
