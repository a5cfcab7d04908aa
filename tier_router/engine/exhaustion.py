# tier_router/engine/exhaustion.py
"""
Exhaustion evaluator.

Decides whether a single model is currently usable and, from that, whether
a whole boost tier is exhausted.

Per-model policy, two mutually exclusive branches:

  credit-backed  (uses_puter_credits, or cost tier credit_backed)
      usable iff the credit lookup reports available and balance > 0.
      A lookup that fails or reports unavailable makes the model
      UNUSABLE. Fail-closed: cannot verify ⇒ assume unusable.

  rate-limited   (everything else)
      usable unless the rate-limit cache holds remaining-requests or
      remaining-tokens <= 0 for that exact (provider, model). No cached
      data ⇒ usable. Optimistic: exhaustion is only detected after a real
      call has revealed it.

A tier is exhausted when it has no usable model; an empty tier counts as
exhausted too, with its own reason string. The account is exhausted when
both tiers are. Nothing here remediates: it only reports.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence

from ..exceptions import ValidationError
from ..models import (
    AccountStatus,
    BoostTier,
    CostTier,
    CreditBalance,
    ModelDescriptor,
    ModelUsability,
    TierStatus,
    UnusableReason,
    boost_tier_to_cost_tier,
)
from ..state.rate_limits import RateLimitCache

logger = logging.getLogger("tier_router.exhaustion")

CreditLookup = Callable[[], Awaitable[CreditBalance]]

EMPTY_TIER_REASON = "No models available for this boost tier"


def invalid_boost_tier_message(boost_tier: str) -> str:
    return f"Invalid boost_tier: {boost_tier}. Must be 'turbo' or 'ultra'."


def is_credit_backed(model: ModelDescriptor) -> bool:
    return model.uses_puter_credits or model.cost_tier is CostTier.CREDIT_BACKED


class ExhaustionEvaluator:
    """
    Usability and tier-exhaustion checks.

    Parameters
    ----------
    rate_limits:
        The cache populated by provider calls.
    credit_lookup:
        Async callable returning the current CreditBalance. May raise; a
        raised error is treated like an unavailable lookup.
    """

    def __init__(self, rate_limits: RateLimitCache, credit_lookup: CreditLookup) -> None:
        self._rate_limits = rate_limits
        self._credit_lookup = credit_lookup

    async def fetch_credits(self) -> CreditBalance:
        """Run the credit lookup, converting any failure into available=False."""
        try:
            return await self._credit_lookup()
        except Exception as exc:
            logger.warning("credit lookup raised: %s", exc)
            return CreditBalance(available=False, error=str(exc) or exc.__class__.__name__)

    # ------------------------------------------------------------------
    # Single model
    # ------------------------------------------------------------------

    async def is_model_usable(
        self,
        model: ModelDescriptor,
        credits: CreditBalance | None = None,
    ) -> ModelUsability:
        """
        Usability verdict for one model.

        *credits* may be supplied to reuse one lookup across many models;
        otherwise the lookup runs when the model is credit-backed.
        """
        if is_credit_backed(model):
            if credits is None:
                credits = await self.fetch_credits()
            return self._credit_verdict(credits)

        cached = self._rate_limits.get(model.provider, model.id)
        if cached is not None:
            if cached.requests_remaining is not None and cached.requests_remaining <= 0:
                return ModelUsability(
                    usable=False,
                    reason=f"Rate limit exhausted for {model.provider} - {cached.requests_remaining} requests remaining",
                    rate_limits=cached,
                )
            if cached.tokens_remaining is not None and cached.tokens_remaining <= 0:
                return ModelUsability(
                    usable=False,
                    reason=f"Token quota exhausted for {model.provider} - {cached.tokens_remaining} tokens remaining",
                    rate_limits=cached,
                )
            return ModelUsability(usable=True, reason="No exhaustion detected", rate_limits=cached)

        return ModelUsability(usable=True, reason="No exhaustion detected (no recent rate limit data)")

    @staticmethod
    def _credit_verdict(credits: CreditBalance) -> ModelUsability:
        if not credits.available:
            return ModelUsability(
                usable=False,
                reason=f"Cannot verify Puter credits: {credits.error or 'lookup unavailable'}",
                credits_required=True,
            )
        if credits.balance is not None and credits.balance <= 0:
            return ModelUsability(
                usable=False,
                reason=f"Puter credits exhausted (balance: {credits.balance:g})",
                credits_required=True,
                credits_available=credits.balance,
            )
        return ModelUsability(
            usable=True,
            reason="Puter credits available",
            credits_required=True,
            credits_available=credits.balance,
        )

    # ------------------------------------------------------------------
    # Tiers
    # ------------------------------------------------------------------

    async def check_tier_exhaustion(
        self,
        boost_tier: str | BoostTier,
        catalog: Sequence[ModelDescriptor],
    ) -> TierStatus:
        """Evaluate every model of the boost tier's cost tier."""
        name = boost_tier.value if isinstance(boost_tier, BoostTier) else str(boost_tier)
        cost_tier = boost_tier_to_cost_tier(name)
        if cost_tier is None:
            return TierStatus(boost_tier=name, valid=False, error=invalid_boost_tier_message(name))

        tier_models = [m for m in catalog if m.cost_tier is cost_tier]
        if not tier_models:
            return TierStatus(
                boost_tier=name,
                valid=True,
                cost_tier=cost_tier,
                exhausted=True,
                reason=EMPTY_TIER_REASON,
                message=EMPTY_TIER_REASON,
            )

        credits = await self.fetch_credits() if any(is_credit_backed(m) for m in tier_models) else None

        usable: list[str] = []
        unusable: list[UnusableReason] = []
        for model in tier_models:
            verdict = await self.is_model_usable(model, credits)
            if verdict.usable:
                usable.append(model.id)
            else:
                unusable.append(UnusableReason(model_id=model.id, provider=model.provider, reason=verdict.reason))

        exhausted = not usable
        if exhausted:
            logger.info("boost tier %s exhausted (%d models)", name, len(tier_models))
            message = (
                f"All eligible {name} models are exhausted for this account. "
                "Switch to the next account in your rotation to keep using this tier."
            )
        else:
            message = f"{len(usable)} of {len(tier_models)} {name} models are still usable."

        return TierStatus(
            boost_tier=name,
            valid=True,
            cost_tier=cost_tier,
            exhausted=exhausted,
            total_models=len(tier_models),
            usable_models=len(usable),
            unusable_models=len(unusable),
            usable_model_ids=usable,
            unusable_model_ids=[u.model_id for u in unusable],
            unusable_reasons=unusable,
            message=message,
        )

    async def account_status(
        self,
        boost_tier: str | BoostTier,
        catalog: Sequence[ModelDescriptor],
        include_credits: bool = False,
    ) -> AccountStatus:
        """
        Combined view of both tiers plus (optionally) the credit balance.

        Credits are always looked up for the ultra tier.
        """
        try:
            requested = BoostTier(boost_tier)
        except ValueError as exc:
            raise ValidationError(invalid_boost_tier_message(str(boost_tier)), field="boost_tier", value=boost_tier) from exc

        other = requested.other
        credits = None
        if requested is BoostTier.ULTRA or include_credits:
            credits = await self.fetch_credits()

        tier_status = await self.check_tier_exhaustion(requested, catalog)
        other_status = await self.check_tier_exhaustion(other, catalog)
        account_exhausted = bool(tier_status.exhausted) and bool(other_status.exhausted)

        if account_exhausted:
            recommendation = "All boost tiers exhausted. Switch to the next account in your rotation."
        elif tier_status.exhausted:
            recommendation = (
                f"{requested.value} tier exhausted. Consider using {other.value} tier, or switch accounts."
            )
        else:
            recommendation = f"{requested.value} tier is still usable."

        return AccountStatus(
            account=(credits.username if credits and credits.username else "unknown"),
            credits=credits,
            boost_tier_requested=requested,
            boost_tier_status=tier_status,
            other_tier_status=other_status,
            account_exhausted=account_exhausted,
            recommendation=recommendation,
        )
