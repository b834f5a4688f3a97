"""
Stale-leaf recovery.

Spark wallets hold funds as "leaves". A leaf whose refresh timelock has
drifted makes swaps and sends fail; transferring the whole balance to the
wallet's own address consolidates the leaves so the operation can be
retried once.
"""

from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

from sparkgate.core.logging import get_logger
from sparkgate.wallet.base import WalletProvider

T = TypeVar("T")

STALE_LEAF_PATTERNS = (
    "refund transaction sequence must be less than or equal to",
    "validating refresh timelock failed",
    "Failed to request leaves swap",
)

logger = get_logger("recovery")


def is_stale_leaf_error(error: BaseException | str | None) -> bool:
    """True if the wallet error was caused by stale leaves."""
    if error is None:
        return False
    message = error if isinstance(error, str) else str(error)
    return any(pattern in message for pattern in STALE_LEAF_PATTERNS)


async def consolidate_leaves(wallet: WalletProvider) -> bool:
    """
    Move the whole balance to our own address.

    Returns:
        False if there was nothing to consolidate
    """
    balance = await wallet.get_balance()
    if balance.balance_sats <= 0:
        logger.info("Skipping leaf consolidation: wallet is empty")
        return False
    address = await wallet.get_address()
    logger.info(f"Consolidating {balance.balance_sats} sats of leaves via self-transfer")
    await wallet.transfer(address, balance.balance_sats)
    return True


async def with_stale_leaf_recovery(
    wallet: WalletProvider,
    operation: Callable[[], Awaitable[T]],
) -> T:
    """
    Run `operation`, consolidating leaves and retrying once on a stale-leaf error.

    Any other error, an empty wallet, or a second failure propagates.
    """
    try:
        return await operation()
    except Exception as e:
        if not is_stale_leaf_error(e):
            raise
        logger.warning(f"Stale leaf error detected, attempting recovery: {e}")
        if not await consolidate_leaves(wallet):
            raise
    return await operation()
