"""
Router-driven inference provider.

Asks the model router for a tier, calls that tier's provider and settles
the routing decision in the usage ledger. Unavailable tiers are skipped
along the local -> cloud -> premium chain.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from devswarm.config.settings import ModelTier
from devswarm.errors import ProviderError, ProviderUnavailable
from devswarm.providers.base import InferenceProvider
from devswarm.providers.cache import ModelAvailabilityCache
from devswarm.routing.router import ModelChoice, ModelRouter

if TYPE_CHECKING:
    from devswarm.tasks.models import Task

logger = structlog.get_logger(__name__)

TIER_CHAIN: tuple[ModelTier, ...] = (ModelTier.LOCAL, ModelTier.CLOUD, ModelTier.PREMIUM)


def fallback_order(choice: ModelChoice) -> list[ModelTier]:
    """
    Tiers to try for a choice, in order.

    The chosen tier first, then the more capable tiers, then the cheaper
    ones. A final choice never leaves its tier. A more capable tier is only
    used when ``ModelRouter.escalate`` accepts it.
    """
    if choice.final:
        return [choice.tier]
    index = TIER_CHAIN.index(choice.tier)
    return [choice.tier, *TIER_CHAIN[index + 1 :], *reversed(TIER_CHAIN[:index])]


class RoutedInferenceProvider(InferenceProvider):
    """Routes each prompt to a tier provider through a ``ModelRouter``."""

    name = "routed"

    def __init__(
        self,
        router: ModelRouter,
        providers: dict[ModelTier, InferenceProvider],
        cache: ModelAvailabilityCache | None = None,
        task: Task | None = None,
    ) -> None:
        """
        Initialize the provider.

        Args:
            router: Router making the tier decisions
            providers: Provider per tier; missing tiers count as unavailable
            cache: Availability cache shared by all bound copies
            task: Task whose priority and type drive routing
        """
        self.router = router
        self.providers = providers
        self.cache = cache or ModelAvailabilityCache(router.config.availability_ttl_seconds)
        self.task = task

    def bind(self, task: Task) -> RoutedInferenceProvider:
        return RoutedInferenceProvider(self.router, self.providers, self.cache, task)

    async def _available(self, tier: ModelTier) -> bool:
        provider = self.providers.get(tier)
        if provider is None:
            return False
        cached = self.cache.get(tier.value)
        if cached is not None:
            return cached
        available = await provider.is_available()
        self.cache.set(tier.value, available)
        return available

    async def complete(self, prompt: str, model_hint: str | None = None) -> str:
        # A bound task is routed on its description, not on the prompt template
        routing_text = self.task.description if self.task is not None else None
        choice = self.router.select_model(self.task, prompt, routing_text=routing_text)
        chosen = TIER_CHAIN.index(choice.tier)
        last_error: ProviderError | None = None
        settled = False

        try:
            for tier in fallback_order(choice):
                if not await self._available(tier):
                    logger.debug("tier_unavailable", tier=tier.value)
                    continue
                if TIER_CHAIN.index(tier) > chosen and not self.router.escalate(choice, tier):
                    continue
                try:
                    text = await self.providers[tier].complete(prompt, model_hint)
                except ProviderUnavailable as e:
                    self.cache.set(tier.value, False)
                    last_error = e
                    logger.warning("tier_call_unavailable", tier=tier.value, error=str(e))
                    continue

                cost = (
                    None
                    if tier == ModelTier.PREMIUM
                    else self.router.estimate_cost(tier, len(prompt) + len(text))
                )
                self.router.record_usage(choice, actual_cost=cost, tier=tier)
                settled = True
                if tier != choice.tier:
                    logger.info("tier_fallback_used", chosen=choice.tier.value, used=tier.value)
                return text

            raise ProviderUnavailable(
                f"No tier available for {choice.tier.value} request"
                + (f": {last_error}" if last_error else ""),
                provider=self.name,
            )
        finally:
            if not settled:
                self.router.cancel(choice)

    async def is_available(self) -> bool:
        for tier in TIER_CHAIN:
            if await self._available(tier):
                return True
        return False

    async def aclose(self) -> None:
        for provider in self.providers.values():
            await provider.aclose()
