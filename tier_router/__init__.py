# tier_router/__init__.py
"""
tier-router — Cost-tier-aware model routing across free, credit-backed and paid providers.

Public API surface:
  TierRouter         — main class; list/suggest models, run(), preflight checks
  RouterConfig       — top-level configuration model
  HealthConfig       — provider health thresholds
  RunRequest         — request model passed to run()
  RunResult          — successful run() result
  RunError           — structured run() failure (rate limit hint + suggestion)
  ModelDescriptor    — one callable model from the catalog
  CostTier / BoostTier — cost tiers and their caller-facing aliases
  HostBinding        — protocol for the credit-backed host SDK
  TierRouterError    — base of every error raised by the package
  ValidationError, NotFoundError, ConfigurationError,
  ProviderError, ProviderUnavailableError, RateLimitError
"""

from .config import HealthConfig, RouterConfig
from .exceptions import (
    ConfigurationError,
    NotFoundError,
    ProviderError,
    ProviderUnavailableError,
    RateLimitError,
    TierRouterError,
    ValidationError,
)
from .models import BoostTier, CostTier, ModelDescriptor, RunError, RunRequest, RunResult
from .providers.puter import HostBinding
from .router import TierRouter

__all__ = [
    "TierRouter",
    "RouterConfig",
    "HealthConfig",
    "RunRequest",
    "RunResult",
    "RunError",
    "ModelDescriptor",
    "CostTier",
    "BoostTier",
    "HostBinding",
    "TierRouterError",
    "ValidationError",
    "NotFoundError",
    "ConfigurationError",
    "ProviderError",
    "ProviderUnavailableError",
    "RateLimitError",
]

__version__ = "0.1.0"
