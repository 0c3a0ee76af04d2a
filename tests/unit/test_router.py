"""Unit tests for complexity estimation and the model router."""

import threading

import pytest

from devswarm.config.settings import ModelTier, RouterConfig
from devswarm.routing import ModelRouter, estimate_complexity
from devswarm.routing.complexity import count_requirements
from devswarm.tasks.models import Task, TaskPriority


def _router(clock, **config) -> ModelRouter:
    return ModelRouter(RouterConfig(**config), clock=clock)


class TestComplexity:
    """Test prompt complexity estimation."""

    def test_simple_prompt(self):
        estimate = estimate_complexity("Fix a typo in the README")
        assert estimate.score == 0.0
        assert estimate.keywords == ()

    def test_keywords_and_scope(self):
        estimate = estimate_complexity("Refactor the architecture of the entire project")
        assert estimate.keywords == ("refactor", "architecture")
        assert estimate.factors.requires_context
        assert estimate.factors.requires_refactoring
        assert estimate.factors.requires_architecture
        assert estimate.score == pytest.approx(0.75)

    def test_score_is_capped(self):
        prompt = "refactor architecture design multiple files consolidate integrate optimize complex"
        assert estimate_complexity(prompt * 100).score == 1.0

    def test_long_prompt(self):
        assert estimate_complexity("x" * 2500).score == pytest.approx(0.15)
        assert estimate_complexity("x" * 6000).score == pytest.approx(0.3)

    def test_requirements(self):
        prompt = "Do this:\n1. a\n2. b\n- c\n* d\n3) e\n• f\nnot - a bullet"
        assert count_requirements(prompt) == 6
        assert estimate_complexity(prompt).score == pytest.approx(0.3)


class TestTierSelection:
    """Test routing decisions."""

    def test_simple_prompt_is_local(self, clock):
        choice = _router(clock).select_model(None, "rename a variable")
        assert choice.tier == ModelTier.LOCAL
        assert choice.estimated_cost == 0.0
        assert not choice.final

    def test_medium_complexity_is_cloud(self, clock):
        choice = _router(clock).select_model(None, "integrate the payment client and optimize it")
        assert choice.suggested_tier == ModelTier.CLOUD
        assert choice.tier == ModelTier.CLOUD

    def test_prefer_local_disabled(self, clock):
        choice = _router(clock, prefer_local=False).select_model(None, "rename a variable")
        assert choice.tier == ModelTier.CLOUD

    def test_low_stakes_task_type_is_local_and_final(self, clock):
        task = Task(description="Refactor the architecture", task_type="analysis")
        choice = _router(clock).select_model(task, "Refactor the architecture of the project")
        assert choice.tier == ModelTier.LOCAL
        assert choice.final

    def test_urgent_priority_upgrades_local(self, clock):
        task = Task(description="Fix typo", priority=TaskPriority.IMMEDIATE)
        choice = _router(clock).select_model(task, "Fix typo")
        assert choice.tier == ModelTier.CLOUD
        assert "immediate priority" in choice.reasoning

    def test_consolidation_goes_premium(self, clock):
        task = Task(description="Consolidate the auth modules")
        choice = _router(clock).select_model(task, "Consolidate the auth modules")
        assert choice.suggested_tier == ModelTier.LOCAL
        assert choice.tier == ModelTier.PREMIUM
        assert "consolidation" in choice.reasoning

    def test_architecture_goes_premium(self, clock):
        choice = _router(clock).select_model(None, "design a plugin system")
        assert choice.tier == ModelTier.PREMIUM

    def test_exhausted_budget_is_local_and_final(self, clock):
        task = Task(description="Merge services", priority=TaskPriority.HIGH)
        choice = _router(clock, monthly_budget_usd=0).select_model(task, "Merge services")
        assert choice.tier == ModelTier.LOCAL
        assert choice.final
        assert "budget" in choice.reasoning

    def test_premium_cap_counts_reservations(self, clock):
        router = _router(clock, max_premium_calls_per_day=1)

        first = router.select_model(None, "design a cache layer")
        second = router.select_model(None, "design a cache layer")
        assert first.tier == ModelTier.PREMIUM
        assert second.tier == ModelTier.CLOUD
        assert "daily premium cap reached" in second.reasoning

        router.cancel(first)
        router.cancel(second)
        assert router.select_model(None, "design a cache layer").tier == ModelTier.PREMIUM

    def test_reserved_cost_counts_against_budget(self, clock):
        router = _router(clock, monthly_budget_usd=0.01)

        first = router.select_model(None, "design the schema")
        second = router.select_model(None, "design the schema")

        assert first.tier == ModelTier.PREMIUM
        assert second.tier == ModelTier.LOCAL
        assert second.final


class TestLedger:
    """Test usage recording, rollover and statistics."""

    def test_cost_estimates(self, clock):
        router = _router(clock)
        assert router.estimate_cost(ModelTier.LOCAL, 10_000) == 0.0
        assert router.estimate_cost(ModelTier.CLOUD, 4000) == pytest.approx(0.004)
        assert router.estimate_cost(ModelTier.CLOUD, 1) == pytest.approx(0.000004)
        assert router.estimate_cost(ModelTier.PREMIUM, 1) == pytest.approx(0.05)

    def test_record_usage(self, clock):
        router = _router(clock)
        choice = router.select_model(None, "design a queue")
        router.record_usage(choice, actual_cost=0.2)

        stats = router.get_statistics()
        assert stats["calls_by_tier"]["premium"] == 1
        assert stats["month_spent"] == pytest.approx(0.2)
        assert stats["premium_calls_today"] == 1
        assert stats["outstanding_reservations"] == 0
        assert stats["budget_used_percentage"] == pytest.approx(0.4)

    def test_record_usage_on_fallback_tier(self, clock):
        router = _router(clock)
        choice = router.select_model(None, "integrate the payment client and optimize it")
        router.record_usage(choice, tier=ModelTier.LOCAL)

        stats = router.get_statistics()
        assert stats["calls_by_tier"]["local"] == 1
        assert stats["calls_by_tier"]["cloud"] == 0
        assert stats["total_cost"] == 0.0

    def test_daily_and_monthly_rollover(self, clock):
        router = _router(clock)
        router.record_usage(router.select_model(None, "design a queue"), actual_cost=1.0)

        clock.advance(24 * 3600)
        stats = router.get_statistics()
        assert stats["premium_calls_today"] == 0
        assert stats["month_spent"] == pytest.approx(1.0)

        clock.advance(31 * 24 * 3600)
        stats = router.get_statistics()
        assert stats["month_spent"] == 0.0
        assert stats["total_cost"] == pytest.approx(1.0)

    def test_budget_exhausted_after_usage(self, clock):
        router = _router(clock, monthly_budget_usd=1.0)
        router.record_usage(router.select_model(None, "design a queue"), actual_cost=1.0)

        choice = router.select_model(None, "design a queue")
        assert choice.tier == ModelTier.LOCAL
        assert choice.final

    def test_configure(self, clock):
        router = _router(clock)
        router.configure(monthly_budget=0, max_premium_calls_per_day=5)
        assert router.config.monthly_budget_usd == 0
        assert router.config.max_premium_calls_per_day == 5

        with pytest.raises(ValueError):
            router.configure(monthly_budget=-1)
        with pytest.raises(ValueError):
            router.configure(max_premium_calls_per_day=-1)

    def test_recommendations(self, clock):
        router = _router(clock, monthly_budget_usd=1.0)
        assert router.get_optimization_recommendations() == []

        for _ in range(3):
            choice = router.select_model(None, "integrate the payment client and optimize it")
            router.record_usage(choice, actual_cost=0.3)

        recommendations = router.get_optimization_recommendations()
        assert len(recommendations) == 3
        assert "cloud tier" in recommendations[0]
        assert "Average cost" in recommendations[1]
        assert "monthly budget" in recommendations[2]

    def test_concurrent_selection_respects_cap(self, clock):
        router = _router(clock, max_premium_calls_per_day=5)
        choices = []

        def select():
            for _ in range(10):
                choices.append(router.select_model(None, "design a cache"))

        threads = [threading.Thread(target=select) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        premium = [c for c in choices if c.tier == ModelTier.PREMIUM]
        assert len(choices) == 40
        assert len(premium) == 5


class TestEscalation:
    """Test moving a reservation to a more capable tier."""

    def test_escalation_moves_reservation(self, clock):
        router = _router(clock, max_premium_calls_per_day=1)
        choice = router.select_model(None, "rename a variable")

        assert router.escalate(choice, ModelTier.PREMIUM)
        stats = router.get_statistics()
        assert stats["outstanding_reservations"] == 1
        assert stats["reserved_cost"] == pytest.approx(0.05)

        # The escalated reservation holds the only premium slot
        assert router.select_model(None, "design a cache layer").tier == ModelTier.CLOUD

        router.record_usage(choice, tier=ModelTier.PREMIUM)
        assert router.get_statistics()["premium_calls_today"] == 1

    def test_premium_cap_refuses_escalation(self, clock):
        router = _router(clock, max_premium_calls_per_day=0)
        choice = router.select_model(None, "rename a variable")

        assert not router.escalate(choice, ModelTier.PREMIUM)
        assert router.get_statistics()["reserved_cost"] == 0.0
        assert router.escalate(choice, ModelTier.CLOUD)

    def test_budget_refuses_escalation(self, clock):
        router = _router(clock, monthly_budget_usd=0.04)
        choice = router.select_model(None, "rename a variable")

        assert not choice.final
        assert not router.escalate(choice, ModelTier.PREMIUM)

    def test_own_reservation_is_not_counted_twice(self, clock):
        router = _router(clock, max_premium_calls_per_day=1, monthly_budget_usd=0.06)
        choice = router.select_model(None, "design a cache layer")
        assert choice.tier == ModelTier.PREMIUM

        assert router.escalate(choice, ModelTier.PREMIUM)
        assert router.get_statistics()["outstanding_reservations"] == 1
