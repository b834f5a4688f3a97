"""
BudgetGuard - Per-caller daily spend limits.

Reserves spend atomically before a wallet operation and compensates
(releases) it when the operation fails downstream.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

from sparkgate.core.logging import get_logger
from sparkgate.core.types import FailureKind, ReserveResult
from sparkgate.storage.base import RESERVE_TOO_LARGE, StorageBackend

COLLECTION = "daily_spend"
COUNTER_TTL_SECONDS = 2 * 24 * 60 * 60  # 2 days


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BudgetGuard:
    """
    Guard that enforces per-transaction and per-day spend caps.

    Counters are namespaced by caller id and UTC calendar day, so limits
    are enforced independently per credential.
    """

    def __init__(
        self,
        storage: StorageBackend,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Initialize BudgetGuard.

        Args:
            storage: Shared storage backend holding the counters
            clock: Returns the current UTC time (injectable for tests)
        """
        self._storage = storage
        self._clock = clock
        self._logger = get_logger("budget")

    def _day_key(self, caller_id: str) -> str:
        today = self._clock().strftime("%Y-%m-%d")
        return f"{caller_id}:{today}"

    async def reserve(
        self,
        caller_id: str,
        amount_sats: int,
        max_tx_sats: int,
        daily_budget_sats: int,
    ) -> ReserveResult:
        """
        Atomically check the caps and reserve `amount_sats`.

        Invalid inputs fail closed before the store is touched. A rejected
        reservation never mutates the counter.
        """
        for name, value in (
            ("amount", amount_sats),
            ("max_tx_sats", max_tx_sats),
            ("daily_budget_sats", daily_budget_sats),
        ):
            if not _is_positive_int(value):
                return ReserveResult(
                    allowed=False,
                    daily_spent=0,
                    daily_limit=daily_budget_sats if _is_positive_int(daily_budget_sats) else 0,
                    reason=f"{name} must be a positive integer, got {value!r}",
                    code=FailureKind.INVALID_AMOUNT,
                )

        allowed, spent, reason_code = await self._storage.reserve_within_limit(
            COLLECTION,
            self._day_key(caller_id),
            amount_sats,
            max_tx_sats,
            daily_budget_sats,
            COUNTER_TTL_SECONDS,
        )

        if allowed:
            self._logger.debug(
                f"Reserved {amount_sats} sats for {caller_id} "
                f"(spent today: {spent}/{daily_budget_sats})"
            )
            return ReserveResult(allowed=True, daily_spent=spent, daily_limit=daily_budget_sats)

        if reason_code == RESERVE_TOO_LARGE:
            self._logger.info(
                f"Rejected {amount_sats} sats for {caller_id}: over per-tx cap {max_tx_sats}"
            )
            return ReserveResult(
                allowed=False,
                daily_spent=spent,
                daily_limit=daily_budget_sats,
                reason=(
                    f"Transaction amount {amount_sats} exceeds per-transaction limit "
                    f"of {max_tx_sats} sats"
                ),
                code=FailureKind.TRANSACTION_TOO_LARGE,
            )

        self._logger.info(
            f"Rejected {amount_sats} sats for {caller_id}: daily budget "
            f"{spent}/{daily_budget_sats} would be exceeded"
        )
        return ReserveResult(
            allowed=False,
            daily_spent=spent,
            daily_limit=daily_budget_sats,
            reason=(
                f"Would exceed daily budget. Spent: {spent}, Requested: {amount_sats}, "
                f"Limit: {daily_budget_sats}"
            ),
            code=FailureKind.BUDGET_EXCEEDED,
        )

    async def release(self, caller_id: str, amount_sats: int) -> None:
        """
        Compensating decrement after a reserved payment failed.

        Not atomic with reserve: a concurrent reservation may briefly see the
        released amount as available again.
        """
        if not _is_positive_int(amount_sats):
            self._logger.warning(f"Ignoring release of invalid amount {amount_sats!r}")
            return
        remaining = await self._storage.atomic_add(
            COLLECTION, self._day_key(caller_id), -amount_sats
        )
        self._logger.debug(f"Released {amount_sats} sats for {caller_id} (now {remaining})")

    async def get_daily_spent(self, caller_id: str) -> int:
        """Get amount reserved today for a caller."""
        return await self._storage.get_counter(COLLECTION, self._day_key(caller_id))

    async def reset_all(self) -> int:
        """Delete every daily counter. Returns how many were removed."""
        count = await self._storage.clear(COLLECTION)
        self._logger.warning(f"Reset {count} daily spend counter(s)")
        return count
