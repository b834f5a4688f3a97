"""
Unit tests for BudgetGuard.

Covers reservation, rejection codes, compensation and per-day isolation.
"""

import asyncio
from datetime import datetime, timezone

import pytest

from sparkgate.core.types import FailureKind
from sparkgate.guards.budget import BudgetGuard
from sparkgate.storage.memory import InMemoryStorage


class TestBudgetReserve:
    @pytest.mark.asyncio
    async def test_reserve_within_limits(self, budget):
        result = await budget.reserve("agent-1", 500, 5000, 1000)

        assert result.allowed is True
        assert result.daily_spent == 500
        assert result.daily_limit == 1000
        assert result.code is None
        assert await budget.get_daily_spent("agent-1") == 500

    @pytest.mark.asyncio
    async def test_daily_cap_then_release(self, budget):
        """500 fits, 600 more does not, and a released 500 frees the room."""
        first = await budget.reserve("agent-1", 500, 5000, 1000)
        second = await budget.reserve("agent-1", 600, 5000, 1000)

        assert first.allowed is True
        assert second.allowed is False
        assert second.code == FailureKind.BUDGET_EXCEEDED
        assert second.daily_spent == 500
        assert "Would exceed daily budget" in second.reason
        assert await budget.get_daily_spent("agent-1") == 500

        await budget.release("agent-1", 500)
        third = await budget.reserve("agent-1", 600, 5000, 1000)

        assert third.allowed is True
        assert third.daily_spent == 600

    @pytest.mark.asyncio
    async def test_per_transaction_cap(self, budget):
        result = await budget.reserve("agent-1", 6000, 5000, 100_000)

        assert result.allowed is False
        assert result.code == FailureKind.TRANSACTION_TOO_LARGE
        assert "per-transaction limit" in result.reason
        assert await budget.get_daily_spent("agent-1") == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -5, 1.5, "100", True, None])
    async def test_invalid_amount_fails_closed(self, budget, amount):
        result = await budget.reserve("agent-1", amount, 5000, 1000)

        assert result.allowed is False
        assert result.code == FailureKind.INVALID_AMOUNT
        assert await budget.get_daily_spent("agent-1") == 0

    @pytest.mark.asyncio
    async def test_invalid_limits_fail_closed(self, budget):
        result = await budget.reserve("agent-1", 10, 0, 1000)
        assert result.code == FailureKind.INVALID_AMOUNT

        result = await budget.reserve("agent-1", 10, 100, -1)
        assert result.code == FailureKind.INVALID_AMOUNT
        assert result.daily_limit == 0

    @pytest.mark.asyncio
    async def test_callers_are_independent(self, budget):
        await budget.reserve("agent-1", 900, 5000, 1000)
        other = await budget.reserve("agent-2", 900, 5000, 1000)

        assert other.allowed is True
        assert await budget.get_daily_spent("agent-1") == 900
        assert await budget.get_daily_spent("agent-2") == 900


class TestBudgetConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_reservations_respect_cap(self, budget):
        """20 concurrent reservations of 6 against a cap of 100: exactly 16 succeed."""
        results = await asyncio.gather(
            *[budget.reserve("agent-1", 6, 50, 100) for _ in range(20)]
        )

        approved = [r for r in results if r.allowed]
        rejected = [r for r in results if not r.allowed]

        assert len(approved) == 16
        assert all(r.code == FailureKind.BUDGET_EXCEEDED for r in rejected)
        assert await budget.get_daily_spent("agent-1") == 96


class TestBudgetRelease:
    @pytest.mark.asyncio
    async def test_release_invalid_amount_is_ignored(self, budget):
        await budget.reserve("agent-1", 100, 5000, 1000)
        await budget.release("agent-1", 0)
        await budget.release("agent-1", -50)

        assert await budget.get_daily_spent("agent-1") == 100


class TestBudgetDays:
    @pytest.mark.asyncio
    async def test_new_utc_day_starts_at_zero(self):
        storage = InMemoryStorage()
        now = {"value": datetime(2026, 3, 1, 23, 59, tzinfo=timezone.utc)}
        guard = BudgetGuard(storage, clock=lambda: now["value"])

        await guard.reserve("agent-1", 1000, 5000, 1000)
        assert (await guard.reserve("agent-1", 1, 5000, 1000)).allowed is False

        now["value"] = datetime(2026, 3, 2, 0, 1, tzinfo=timezone.utc)
        assert await guard.get_daily_spent("agent-1") == 0
        assert (await guard.reserve("agent-1", 1000, 5000, 1000)).allowed is True

    @pytest.mark.asyncio
    async def test_reset_all(self, budget):
        await budget.reserve("agent-1", 100, 5000, 1000)
        await budget.reserve("agent-2", 100, 5000, 1000)

        assert await budget.reset_all() == 2
        assert await budget.get_daily_spent("agent-1") == 0
