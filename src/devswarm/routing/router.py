"""
Cost-aware model routing.

Every inference call is routed to the cheapest tier that can plausibly
handle it, subject to a monthly budget and a daily cap on premium calls.

Usage:
    router = ModelRouter(RouterConfig(monthly_budget_usd=20))
    choice = router.select_model(task, prompt)
    ...
    router.record_usage(choice)
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog

from devswarm.config.settings import ModelTier, RouterConfig
from devswarm.routing.complexity import ComplexityEstimate, estimate_complexity
from devswarm.routing.ledger import Reservation, UsageLedger
from devswarm.tasks.models import Task, TaskPriority, utcnow

logger = structlog.get_logger(__name__)

URGENT_PRIORITIES = (TaskPriority.IMMEDIATE, TaskPriority.HIGH)
CONSOLIDATION_TERMS = ("consolidate", "merge")


@dataclass(frozen=True)
class ModelChoice:
    """A routing decision."""

    tier: ModelTier
    estimated_cost: float
    reasoning: str
    complexity: ComplexityEstimate
    suggested_tier: ModelTier
    final: bool = False  # No fallback to a metered tier is allowed
    prompt_chars: int = 0
    choice_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "tier": self.tier.value,
            "suggested_tier": self.suggested_tier.value,
            "estimated_cost": round(self.estimated_cost, 6),
            "complexity": round(self.complexity.score, 3),
            "keywords": list(self.complexity.keywords),
            "reasoning": self.reasoning,
            "final": self.final,
        }


class ModelRouter:
    """
    Routes prompts to model tiers under budget constraints.

    Selection reserves the estimated cost in the ledger under a lock, so
    concurrent callers see each other's pending spend. Each choice must be
    settled with ``record_usage`` or ``cancel``.
    """

    def __init__(
        self,
        config: RouterConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """
        Initialize the router.

        Args:
            config: Router configuration (uses defaults if not provided)
            clock: Source of the current time, used for day/month rollover
        """
        self.config = config or RouterConfig()
        self._clock = clock
        self._ledger = UsageLedger()
        self._lock = threading.Lock()
        self._log = logger.bind(component="model_router")

    # ------------------------------------------------------------------
    # Cost model
    # ------------------------------------------------------------------

    def estimate_cost(self, tier: ModelTier, chars: int) -> float:
        """
        Estimate the cost of a call.

        Args:
            tier: Model tier
            chars: Prompt (and response, when known) length in characters

        Returns:
            Cost in USD
        """
        pricing = self.config.pricing
        if tier == ModelTier.LOCAL:
            return pricing.local_cost_per_call
        if tier == ModelTier.CLOUD:
            tokens = -(-chars // pricing.chars_per_token)
            return tokens / 1000 * pricing.cloud_cost_per_1k_tokens
        return pricing.premium_cost_per_call

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def _suggest(self, estimate: ComplexityEstimate) -> ModelTier:
        if estimate.score < self.config.local_threshold:
            tier = ModelTier.LOCAL
        elif estimate.score < self.config.premium_threshold:
            tier = ModelTier.CLOUD
        else:
            tier = ModelTier.PREMIUM
        if tier == ModelTier.LOCAL and not self.config.prefer_local:
            tier = ModelTier.CLOUD
        return tier

    def _premium_signals(self, task: Task | None, estimate: ComplexityEstimate) -> list[str]:
        signals: list[str] = []
        description = (task.description if task else "").lower()
        if any(term in description for term in CONSOLIDATION_TERMS):
            signals.append("consolidation")
        if estimate.factors.requires_refactoring and estimate.score > self.config.premium_threshold:
            signals.append("complex refactoring")
        if estimate.factors.requires_multiple_files:
            signals.append("multiple files")
        if estimate.factors.requires_architecture:
            signals.append("architecture")
        return signals

    def _decide(
        self, task: Task | None, estimate: ComplexityEstimate, suggested: ModelTier
    ) -> tuple[ModelTier, bool, list[str]]:
        ledger = self._ledger

        if ledger.month_spent + ledger.reserved_cost >= self.config.monthly_budget_usd:
            return ModelTier.LOCAL, True, ["monthly budget exhausted"]

        task_type = task.task_type.lower() if task else ""
        if task_type in self.config.low_stakes_task_types:
            return ModelTier.LOCAL, True, [f"'{task_type}' tasks run locally"]

        tier = suggested
        reasons: list[str] = []

        if task is not None and task.priority in URGENT_PRIORITIES and tier == ModelTier.LOCAL:
            tier = ModelTier.CLOUD
            reasons.append(f"{task.priority.value} priority")

        signals = self._premium_signals(task, estimate)
        if signals:
            tier = ModelTier.PREMIUM
            reasons.append("premium signals: " + ", ".join(signals))

        if tier == ModelTier.PREMIUM:
            used = ledger.premium_calls_today + ledger.reserved_premium_calls
            if used >= self.config.max_premium_calls_per_day:
                tier = ModelTier.CLOUD
                reasons.append("daily premium cap reached")

        return tier, False, reasons

    def select_model(
        self, task: Task | None, prompt: str, routing_text: str | None = None
    ) -> ModelChoice:
        """
        Choose a tier for a prompt and reserve its estimated cost.

        Args:
            task: Task the prompt belongs to (priority, type and description are used)
            prompt: Prompt text, used for the cost estimate
            routing_text: Text scored for complexity instead of the prompt

        Returns:
            The routing decision
        """
        estimate = estimate_complexity(prompt if routing_text is None else routing_text)
        suggested = self._suggest(estimate)

        with self._lock:
            self._roll_over_locked()
            tier, final, reasons = self._decide(task, estimate, suggested)
            cost = self.estimate_cost(tier, len(prompt))
            reasoning = "; ".join(
                [f"complexity {estimate.score:.2f} suggests {suggested.value}", *reasons]
            )
            choice = ModelChoice(
                tier=tier,
                estimated_cost=cost,
                reasoning=reasoning,
                complexity=estimate,
                suggested_tier=suggested,
                final=final,
                prompt_chars=len(prompt),
            )
            self._ledger.reservations[choice.choice_id] = Reservation(tier=tier, cost=cost)

        self._log.debug(
            "model_selected",
            tier=tier.value,
            suggested=suggested.value,
            complexity=round(estimate.score, 3),
            estimated_cost=round(cost, 6),
            task_id=task.task_id if task else None,
        )
        return choice

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def record_usage(
        self,
        choice: ModelChoice,
        actual_cost: float | None = None,
        tier: ModelTier | None = None,
    ) -> None:
        """
        Settle a choice with the call that was actually made.

        Args:
            choice: Choice returned by ``select_model``
            actual_cost: Cost of the call (defaults to the tier's estimate)
            tier: Tier actually used, when a fallback served the call
        """
        used = tier or choice.tier
        if actual_cost is None:
            actual_cost = (
                choice.estimated_cost if used == choice.tier
                else self.estimate_cost(used, choice.prompt_chars)
            )

        with self._lock:
            self._roll_over_locked()
            self._ledger.reservations.pop(choice.choice_id, None)
            self._ledger.record(used, actual_cost)
            month_spent = self._ledger.month_spent

        self._log.info(
            "model_usage_recorded",
            tier=used.value,
            cost=round(actual_cost, 6),
            month_spent=round(month_spent, 6),
        )
        if month_spent >= self.config.monthly_budget_usd:
            self._log.warning(
                "monthly_budget_exhausted",
                month_spent=round(month_spent, 6),
                budget=self.config.monthly_budget_usd,
            )

    def escalate(self, choice: ModelChoice, tier: ModelTier) -> bool:
        """
        Move a choice's reservation to a more capable tier for a fallback call.

        The budget and the daily premium cap are checked again, counting
        every other outstanding reservation.

        Returns:
            True if the choice may use ``tier``
        """
        cost = self.estimate_cost(tier, choice.prompt_chars)
        with self._lock:
            self._roll_over_locked()
            ledger = self._ledger
            own = ledger.reservations.get(choice.choice_id)
            reason = None

            reserved = ledger.reserved_cost - (own.cost if own else 0.0)
            if ledger.month_spent + reserved + cost > self.config.monthly_budget_usd:
                reason = "monthly budget"
            elif tier == ModelTier.PREMIUM:
                premium = ledger.premium_calls_today + ledger.reserved_premium_calls
                if own is not None and own.tier == ModelTier.PREMIUM:
                    premium -= 1
                if premium >= self.config.max_premium_calls_per_day:
                    reason = "daily premium cap"

            if reason is None:
                ledger.reservations[choice.choice_id] = Reservation(tier=tier, cost=cost)

        if reason is not None:
            self._log.info(
                "model_escalation_refused", chosen=choice.tier.value, tier=tier.value, reason=reason
            )
            return False
        return True

    def cancel(self, choice: ModelChoice) -> None:
        """Drop the reservation of a choice that was not used."""
        with self._lock:
            removed = self._ledger.reservations.pop(choice.choice_id, None)
        if removed is not None:
            self._log.debug("model_choice_cancelled", tier=choice.tier.value)

    def _roll_over_locked(self) -> None:
        reset = self._ledger.roll_over(self._clock())
        for window in reset:
            self._log.info("usage_window_reset", window=window)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def configure(
        self,
        monthly_budget: float | None = None,
        max_premium_calls_per_day: int | None = None,
    ) -> None:
        """
        Change the budget limits.

        Raises:
            ValueError: If a limit is negative
        """
        update: dict[str, Any] = {}
        if monthly_budget is not None:
            if monthly_budget < 0:
                raise ValueError("monthly_budget must not be negative")
            update["monthly_budget_usd"] = monthly_budget
        if max_premium_calls_per_day is not None:
            if max_premium_calls_per_day < 0:
                raise ValueError("max_premium_calls_per_day must not be negative")
            update["max_premium_calls_per_day"] = max_premium_calls_per_day

        with self._lock:
            self.config = self.config.model_copy(update=update)
        self._log.info("router_configured", **update)

    def get_statistics(self) -> dict[str, Any]:
        """Ledger counters plus the configured limits."""
        with self._lock:
            self._roll_over_locked()
            stats = self._ledger.to_dict()

        budget = self.config.monthly_budget_usd
        stats.update(
            {
                "monthly_budget": budget,
                "budget_used_percentage": (stats["month_spent"] / budget * 100) if budget else 100.0,
                "premium_calls_limit": self.config.max_premium_calls_per_day,
                "average_cost": (
                    stats["total_cost"] / stats["total_calls"] if stats["total_calls"] else 0.0
                ),
            }
        )
        return stats

    def get_optimization_recommendations(self) -> list[str]:
        """
        Advisory notes on how to reduce spend.

        Returns:
            Human-readable recommendations (possibly empty)
        """
        stats = self.get_statistics()
        recommendations: list[str] = []

        total = stats["total_calls"]
        if total:
            cloud_share = stats["calls_by_tier"][ModelTier.CLOUD.value] / total * 100
            premium_share = stats["calls_by_tier"][ModelTier.PREMIUM.value] / total * 100
            if cloud_share > 30:
                recommendations.append(
                    f"{cloud_share:.0f}% of calls use the cloud tier; "
                    "consider local models for simple tasks"
                )
            if premium_share > 10:
                recommendations.append(
                    f"{premium_share:.0f}% of calls use the premium tier; "
                    "reserve it for complex, multi-file work"
                )
            if stats["average_cost"] > 0.05:
                recommendations.append(
                    f"Average cost per call is ${stats['average_cost']:.3f}; "
                    "shorten prompts or route more work locally"
                )

        if stats["budget_used_percentage"] > 80:
            recommendations.append(
                f"{stats['budget_used_percentage']:.0f}% of the monthly budget is used; "
                "switch to local models where possible"
            )

        return recommendations
