"""
Wallet module - custodial Spark wallet access.

Example:
    >>> from sparkgate.wallet import HttpWalletProvider
    >>>
    >>> wallet = HttpWalletProvider("http://localhost:8787", token="...")
    >>> balance = await wallet.get_balance()
"""

from sparkgate.wallet.base import WalletProvider
from sparkgate.wallet.http import HttpWalletProvider
from sparkgate.wallet.recovery import (
    consolidate_leaves,
    is_stale_leaf_error,
    with_stale_leaf_recovery,
)
from sparkgate.wallet.types import (
    LightningSendRequest,
    PaymentSubmission,
    WalletBalance,
    WalletTransfer,
    parse_payment_submission,
)

__all__ = [
    "WalletProvider",
    "HttpWalletProvider",
    "LightningSendRequest",
    "WalletTransfer",
    "WalletBalance",
    "PaymentSubmission",
    "parse_payment_submission",
    "is_stale_leaf_error",
    "consolidate_leaves",
    "with_stale_leaf_recovery",
]
