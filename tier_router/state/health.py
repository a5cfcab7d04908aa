# tier_router/state/health.py
"""
Provider health tracker.

Keeps a bounded ring buffer (deque with maxlen) of recent call outcomes per
provider and derives a coarse status from the entries inside the window
(one hour by default):

  healthy   success rate >= 0.95 and mean successful latency < 2000 ms
  degraded  success rate >= 0.5  and mean successful latency < 5000 ms
  down      anything else
  unknown   no calls in the window

Missing latency data (no successful call with a non-zero latency) never
blocks healthy/degraded.

Stale-success override: if the most recent success is older than
``stale_success_seconds`` and the window holds at least ``stale_min_calls``
calls, the provider is forced down whatever the ratio says.

All thresholds come from HealthConfig.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Callable

from ..config import HealthConfig
from ..models import HealthState, ModelDescriptor, ProviderHealthRecord, ProviderHealthStatus

logger = logging.getLogger("tier_router.health")


def _iso(ts: float | None) -> str | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


class HealthTracker:
    """In-memory health history for every provider the router has called."""

    def __init__(
        self,
        config: HealthConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or HealthConfig()
        self._clock = clock
        self._history: dict[str, deque[ProviderHealthRecord]] = {}

    @property
    def config(self) -> HealthConfig:
        return self._config

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_call(
        self,
        provider: str,
        model_id: str,
        success: bool,
        latency_ms: float,
        error_message: str | None = None,
    ) -> ProviderHealthRecord:
        """Append one outcome; the oldest entry drops off when the buffer is full."""
        record = ProviderHealthRecord(
            model_id=model_id,
            success=success,
            latency_ms=latency_ms,
            error_message=error_message,
            timestamp=self._clock(),
        )
        buffer = self._history.get(provider)
        if buffer is None:
            buffer = self._history[provider] = deque(maxlen=self._config.history_size)
        buffer.append(record)
        if not success:
            logger.debug("provider %s failed for %s: %s", provider, model_id, error_message)
        return record

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_status(
        self,
        provider: str,
        catalog: Iterable[ModelDescriptor] | None = None,
    ) -> ProviderHealthStatus:
        """
        Derive the current status of *provider*.

        When *catalog* is given, models_available counts the descriptors
        served by this provider.
        """
        cfg = self._config
        models_available = sum(1 for m in catalog if m.provider == provider) if catalog is not None else 0
        history = self._history.get(provider)

        if not history:
            return ProviderHealthStatus(
                provider=provider,
                status=HealthState.UNKNOWN,
                models_available=models_available,
            )

        now = self._clock()
        cutoff = now - cfg.window_seconds
        recent = [r for r in history if r.timestamp > cutoff]
        last_call = history[-1]
        last_success = next((r for r in reversed(history) if r.success), None)

        total = len(recent)
        successes = sum(1 for r in recent if r.success)
        success_rate = successes / total if total else None
        latencies = [r.latency_ms for r in recent if r.success and r.latency_ms]
        avg_latency = round(sum(latencies) / len(latencies)) if latencies else None

        status = HealthState.UNKNOWN
        if total and success_rate is not None:
            if success_rate >= cfg.healthy_success_rate and (
                avg_latency is None or avg_latency < cfg.healthy_latency_ms
            ):
                status = HealthState.HEALTHY
            elif success_rate >= cfg.degraded_success_rate and (
                avg_latency is None or avg_latency < cfg.degraded_latency_ms
            ):
                status = HealthState.DEGRADED
            else:
                status = HealthState.DOWN

            if (
                last_success is not None
                and last_success.timestamp < now - cfg.stale_success_seconds
                and total >= cfg.stale_min_calls
            ):
                status = HealthState.DOWN

        return ProviderHealthStatus(
            provider=provider,
            status=status,
            latency_ms=avg_latency,
            last_checked=_iso(last_call.timestamp),
            last_success=_iso(last_success.timestamp) if last_success else None,
            last_error=last_call.error_message if not last_call.success else None,
            error_count_last_hour=total - successes,
            success_rate_last_hour=success_rate,
            models_available=models_available,
        )

    def get_all_statuses(
        self,
        providers: Iterable[str] | None = None,
        catalog: Iterable[ModelDescriptor] | None = None,
    ) -> list[ProviderHealthStatus]:
        """Status for each of *providers* (default: every provider with history)."""
        names = list(providers) if providers is not None else list(self._history)
        models = list(catalog) if catalog is not None else None
        return [self.get_status(name, models) for name in names]

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def get_history(self, provider: str) -> list[ProviderHealthRecord]:
        return list(self._history.get(provider, ()))

    def clear_history(self, provider: str) -> None:
        self._history.pop(provider, None)

    def clear_all_history(self) -> None:
        self._history = {}
