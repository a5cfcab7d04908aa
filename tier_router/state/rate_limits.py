# tier_router/state/rate_limits.py
"""
Per (provider, model) rate-limit cache.

Holds the most recent quota snapshot parsed from a provider's response
headers. Process-lifetime only: nothing is persisted and nothing expires,
an old snapshot is used as-is until the next response replaces it.

Concurrency note
----------------
No locks. Under asyncio every mutation here is synchronous, so two calls
to the same (provider, model) can only interleave at await points and the
last writer wins. The cache is a best-effort snapshot, so that is fine.
"""

from __future__ import annotations

import logging
import math
import re
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Callable

from ..constants import DEFAULT_WAIT_SECONDS, RATE_LIMIT_HEADER_MAP
from ..models import CachedRateLimit, RateLimitInfo

logger = logging.getLogger("tier_router.rate_limits")

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_FULL = re.compile(r"^(?:\d+(?:\.\d+)?(?:ms|h|m|s))+$")
_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}

# Numeric reset values above this are absolute epoch seconds, below it a
# relative number of seconds.
_EPOCH_THRESHOLD = 1_000_000_000
_EPOCH_MS_THRESHOLD = 1_000_000_000_000


def _parse_int(value: str) -> int | None:
    match = _LEADING_INT.match(value)
    return int(match.group(1)) if match else None


def parse_rate_limit_headers(headers: Mapping[str, str] | None) -> RateLimitInfo:
    """
    Pull the conventional x-ratelimit-* fields out of *headers*.

    Header names are matched case-insensitively and unknown headers are
    ignored. Counter values keep their leading integer ("30", "30s" → 30);
    reset values are kept verbatim. Both reset spellings map to reset_time,
    and x-ratelimit-reset wins when both are present.
    """
    info = RateLimitInfo()
    if not headers:
        return info

    lowered = {str(k).lower(): str(v) for k, v in headers.items()}
    for header, field in RATE_LIMIT_HEADER_MAP.items():
        value = lowered.get(header)
        if value is None:
            continue
        if field == "reset_time":
            info.reset_time = value
        else:
            parsed = _parse_int(value)
            if parsed is not None:
                setattr(info, field, parsed)
    return info


def _has_signal(info: RateLimitInfo) -> bool:
    return any(v is not None for v in info.model_dump().values())


def _parse_duration(value: str) -> float | None:
    compact = value.strip().replace(" ", "")
    if not compact or not _DURATION_FULL.match(compact):
        return None
    return sum(float(n) * _DURATION_UNITS[unit] for n, unit in _DURATION_PART.findall(compact))


def _parse_iso(value: str) -> float | None:
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def reset_epoch(reset_time: str, updated_at: str | None) -> float | None:
    """
    Resolve a cached reset value to an absolute epoch timestamp.

    Understands ISO-8601 timestamps, epoch seconds or milliseconds, plain
    relative seconds and Go-style durations ("1m30s", "250ms"). Relative
    values are measured from *updated_at*. Returns None when unparseable.
    """
    value = reset_time.strip()
    try:
        number = float(value)
    except ValueError:
        number = None

    if number is not None:
        if number >= _EPOCH_MS_THRESHOLD:
            return number / 1000.0
        if number >= _EPOCH_THRESHOLD:
            return number
        relative: float | None = number
    else:
        absolute = _parse_iso(value)
        if absolute is not None:
            return absolute
        relative = _parse_duration(value)

    if relative is None:
        return None
    base = _parse_iso(updated_at) if updated_at else None
    if base is None:
        return None
    return base + relative


class RateLimitCache:
    """
    In-process rate-limit snapshots keyed by ``"provider:model_id"``.

    Parameters
    ----------
    default_wait_seconds:
        Retry hint returned by wait_seconds() when no reset time is known.
    clock:
        Wall-clock source (epoch seconds), injectable for tests.
    """

    def __init__(
        self,
        default_wait_seconds: int = DEFAULT_WAIT_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._default_wait = default_wait_seconds
        self._clock = clock
        self._cache: dict[str, CachedRateLimit] = {}

    @staticmethod
    def key(provider: str, model_id: str) -> str:
        return f"{provider}:{model_id}"

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def update(self, provider: str, model_id: str, headers: Mapping[str, str] | None) -> CachedRateLimit | None:
        """
        Refresh the snapshot from response headers.

        A response carrying none of the recognised headers leaves the
        existing snapshot untouched and returns None.
        """
        info = parse_rate_limit_headers(headers)
        if not _has_signal(info):
            return None
        return self.store(provider, model_id, info)

    def store(self, provider: str, model_id: str, info: RateLimitInfo) -> CachedRateLimit:
        """Overwrite the snapshot directly."""
        cached = CachedRateLimit(**info.model_dump(), updated_at=self._now_iso())
        self._cache[self.key(provider, model_id)] = cached
        if self._exhausted(cached):
            logger.info("rate limit exhausted for %s/%s", provider, model_id)
        return cached

    def clear(self, provider: str, model_id: str) -> None:
        self._cache.pop(self.key(provider, model_id), None)

    def clear_all(self) -> None:
        self._cache = {}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, provider: str, model_id: str) -> CachedRateLimit | None:
        return self._cache.get(self.key(provider, model_id))

    def get_all(self) -> dict[str, CachedRateLimit]:
        return dict(self._cache)

    def is_exhausted(self, provider: str, model_id: str) -> bool:
        """True iff a cached remaining-requests or remaining-tokens is <= 0."""
        cached = self.get(provider, model_id)
        return cached is not None and self._exhausted(cached)

    def wait_seconds(self, provider: str, model_id: str) -> int:
        """Whole seconds until the cached reset, floored at 0."""
        cached = self.get(provider, model_id)
        if cached is None or not cached.reset_time:
            return self._default_wait
        target = reset_epoch(cached.reset_time, cached.updated_at)
        if target is None:
            return self._default_wait
        return max(0, math.ceil(target - self._clock()))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _exhausted(cached: RateLimitInfo) -> bool:
        if cached.requests_remaining is not None and cached.requests_remaining <= 0:
            return True
        return cached.tokens_remaining is not None and cached.tokens_remaining <= 0

    def _now_iso(self) -> str:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat()
