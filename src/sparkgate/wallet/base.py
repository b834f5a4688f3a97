"""
Wallet provider interface.

Signing and key management are delegated to the provider; the engine only
sees these operations and the typed results in `sparkgate.wallet.types`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from sparkgate.wallet.types import (
    LightningSendRequest,
    PaymentSubmission,
    WalletBalance,
    WalletTransfer,
)


class WalletProvider(ABC):
    """
    Abstract base class for custodial wallet providers.

    Implementations raise `WalletError` (or any exception carrying the
    provider's message) on failure.
    """

    @abstractmethod
    async def get_balance(self) -> WalletBalance:
        """Return the spendable balance."""
        ...

    @abstractmethod
    async def get_address(self) -> str:
        """Return the wallet's own Spark address."""
        ...

    @abstractmethod
    async def create_lightning_invoice(
        self,
        amount_sats: int,
        memo: str | None = None,
        expiry_seconds: int | None = None,
    ) -> str:
        """Create a BOLT11 invoice and return its encoded form."""
        ...

    @abstractmethod
    async def create_spark_invoice(self, amount_sats: int, memo: str | None = None) -> str:
        """Create a native Spark invoice."""
        ...

    @abstractmethod
    async def get_lightning_send_fee_estimate(self, encoded_invoice: str) -> int:
        """Estimate the routing fee (sats) for paying an invoice."""
        ...

    @abstractmethod
    async def pay_lightning_invoice(self, invoice: str, max_fee_sats: int) -> PaymentSubmission:
        """Submit a payment. The result may or may not already carry a preimage."""
        ...

    @abstractmethod
    async def get_lightning_send_request(self, request_id: str) -> LightningSendRequest | None:
        """Look up a submitted payment; None if the wallet does not know it."""
        ...

    @abstractmethod
    async def transfer(self, receiver_address: str, amount_sats: int) -> WalletTransfer:
        """Send sats to a Spark address."""
        ...

    @abstractmethod
    async def get_transfers(self, limit: int = 20, offset: int = 0) -> list[WalletTransfer]:
        """Return recent transfers, newest first."""
        ...

    async def close(self) -> None:
        """Release connections held by the provider."""
        return None


async def estimate_fee_or_default(wallet: WalletProvider, encoded_invoice: str, default: int) -> int:
    """Wallet fee estimate for an invoice, or `default` if it cannot be estimated."""
    try:
        return await wallet.get_lightning_send_fee_estimate(encoded_invoice)
    except Exception:
        return default
