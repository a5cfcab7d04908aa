# tier_router/state/__init__.py
from .health import HealthTracker
from .rate_limits import RateLimitCache, parse_rate_limit_headers

__all__ = ["HealthTracker", "RateLimitCache", "parse_rate_limit_headers"]
