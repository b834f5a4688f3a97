"""
Guards module - Spending controls for agent payments.

Example:
    >>> from sparkgate.guards import BudgetGuard
    >>> from sparkgate.storage import InMemoryStorage
    >>>
    >>> budget = BudgetGuard(InMemoryStorage())
    >>> result = await budget.reserve("agent-1", 500, max_tx_sats=1000, daily_budget_sats=5000)
    >>> if not result.allowed:
    ...     print(result.code, result.reason)
"""

from sparkgate.guards.budget import BudgetGuard

__all__ = ["BudgetGuard"]
