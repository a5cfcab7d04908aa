# tier_router/exceptions.py
"""
Custom exceptions for tier-router.

All public exceptions inherit from TierRouterError so callers can catch
the whole family with a single except clause if preferred. Each error
knows the HTTP status an outer routing layer should answer with and can
render itself as a JSON-ready dict via to_dict().
"""

from __future__ import annotations

import re
from typing import Any

# "rate" must stand alone or lead into "limit", so words like "generate" don't match.
_RATE_LIMIT_PATTERN = re.compile(r"\brate\b|rate[ _-]?limit|\b429\b|too many requests|quota", re.IGNORECASE)


def _mentions_rate_limit(message: str) -> bool:
    return _RATE_LIMIT_PATTERN.search(message) is not None


class TierRouterError(Exception):
    """Base exception for all router errors."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None) -> None:
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "status_code": self.status_code,
        }


class ValidationError(TierRouterError):
    """Malformed or missing request field."""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None, value: Any = None) -> None:
        self.field = field
        self.value = value
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "field": self.field, "value": self.value}


class NotFoundError(TierRouterError):
    """Unknown id in a lookup-by-id operation."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} not found: {resource_id}")

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
        }


class ConfigurationError(TierRouterError):
    """A required credential or setting is absent. Not retryable."""

    code = "CONFIGURATION_ERROR"

    def __init__(self, config_key: str, message: str | None = None) -> None:
        self.config_key = config_key
        super().__init__(message or f"{config_key} not configured")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "config_key": self.config_key}


class ProviderError(TierRouterError):
    """
    A provider call failed.

    Attributes
    ----------
    provider:
        Route/provider name that produced the failure.
    model_id:
        Model the call was made for, when known.
    status:
        HTTP status returned by the provider, or None for non-HTTP failures.
    original_error:
        Raw error body as returned by the provider.
    """

    status_code = 502
    code = "PROVIDER_ERROR"

    def __init__(
        self,
        provider: str,
        message: str,
        model_id: str | None = None,
        status: int | None = None,
        original_error: str | None = None,
    ) -> None:
        self.provider = provider
        self.model_id = model_id
        self.status = status
        self.original_error = original_error
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "provider": self.provider,
            "model_id": self.model_id,
            "provider_status": self.status,
            "original_error": self.original_error,
        }


class ProviderUnavailableError(ProviderError):
    """
    The host SDK binding for brokered execution is not present in this
    runtime. An expected condition, not a network failure.
    """

    status_code = 503
    code = "PROVIDER_UNAVAILABLE"


class RateLimitError(ProviderError):
    """
    A provider failure classified as quota/rate exhaustion.

    Carries a retry-after hint. The same-capability alternative is
    computed by the router and returned on RunError, not here.
    """

    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"

    def __init__(
        self,
        provider: str,
        message: str,
        retry_after_seconds: int = 60,
        model_id: str | None = None,
        status: int | None = None,
        original_error: str | None = None,
    ) -> None:
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            provider,
            message,
            model_id=model_id,
            status=status,
            original_error=original_error,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "error_type": "rate_limit_exceeded",
            "retry_after_seconds": self.retry_after_seconds,
        }


def is_rate_limit_error(error: BaseException) -> bool:
    """Return True if *error* looks like a rate-limit failure."""
    if isinstance(error, RateLimitError):
        return True
    if isinstance(error, ProviderError) and error.status == 429:
        return True
    return _mentions_rate_limit(str(error))


def create_provider_error(
    provider: str,
    status: int,
    message: str,
    model_id: str | None = None,
    original_error: str | None = None,
    retry_after_seconds: int = 60,
) -> ProviderError:
    """Build the right ProviderError subclass for a non-success response."""
    if status == 429 or _mentions_rate_limit(message):
        return RateLimitError(
            provider,
            message,
            retry_after_seconds=retry_after_seconds,
            model_id=model_id,
            status=status,
            original_error=original_error,
        )
    return ProviderError(
        provider,
        message,
        model_id=model_id,
        status=status,
        original_error=original_error,
    )
