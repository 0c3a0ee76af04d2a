"""
Usage ledger for metered inference.

The ledger is plain state; ``ModelRouter`` owns the lock that guards it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from devswarm.config.settings import ModelTier


@dataclass
class Reservation:
    """Cost held back for a routing decision that has not been used yet."""

    tier: ModelTier
    cost: float


@dataclass
class UsageLedger:
    """Per-tier call counts and spend, with day and month windows."""

    calls_by_tier: dict[ModelTier, int] = field(
        default_factory=lambda: {tier: 0 for tier in ModelTier}
    )
    cost_by_tier: dict[ModelTier, float] = field(
        default_factory=lambda: {tier: 0.0 for tier in ModelTier}
    )
    month_spent: float = 0.0
    premium_calls_today: int = 0
    last_daily_reset: date | None = None
    last_monthly_reset: tuple[int, int] | None = None
    reservations: dict[str, Reservation] = field(default_factory=dict)

    @property
    def total_calls(self) -> int:
        return sum(self.calls_by_tier.values())

    @property
    def total_cost(self) -> float:
        return sum(self.cost_by_tier.values())

    @property
    def reserved_cost(self) -> float:
        return sum(r.cost for r in self.reservations.values())

    @property
    def reserved_premium_calls(self) -> int:
        return sum(1 for r in self.reservations.values() if r.tier == ModelTier.PREMIUM)

    def roll_over(self, now: datetime) -> list[str]:
        """
        Reset the daily and monthly windows if ``now`` is past them.

        Args:
            now: Current time

        Returns:
            Names of the windows that were reset
        """
        reset: list[str] = []

        today = now.date()
        if self.last_daily_reset is None:
            self.last_daily_reset = today
        elif today != self.last_daily_reset:
            self.premium_calls_today = 0
            self.last_daily_reset = today
            reset.append("daily")

        month = (now.year, now.month)
        if self.last_monthly_reset is None:
            self.last_monthly_reset = month
        elif month != self.last_monthly_reset:
            self.month_spent = 0.0
            self.last_monthly_reset = month
            reset.append("monthly")

        return reset

    def record(self, tier: ModelTier, cost: float) -> None:
        """Record one completed call."""
        self.calls_by_tier[tier] += 1
        self.cost_by_tier[tier] += cost
        self.month_spent += cost
        if tier == ModelTier.PREMIUM:
            self.premium_calls_today += 1

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_calls": self.total_calls,
            "total_cost": round(self.total_cost, 6),
            "calls_by_tier": {t.value: n for t, n in self.calls_by_tier.items()},
            "cost_by_tier": {t.value: round(c, 6) for t, c in self.cost_by_tier.items()},
            "month_spent": round(self.month_spent, 6),
            "premium_calls_today": self.premium_calls_today,
            "reserved_cost": round(self.reserved_cost, 6),
            "outstanding_reservations": len(self.reservations),
        }
