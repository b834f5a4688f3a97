"""
BOLT11 invoice decoding.

The amount we budget against is always the one embedded in the invoice,
never a caller-supplied figure.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from bolt11 import decode as bolt11_decode
from bolt11.exceptions import Bolt11Exception

from sparkgate.core.exceptions import ValidationError


@dataclass(frozen=True)
class DecodedInvoice:
    """The parts of a BOLT11 invoice the engine cares about."""

    encoded: str
    amount_msat: int | None
    timestamp: int | None = None
    expiry_seconds: int | None = None
    payment_hash: str | None = None

    @property
    def amount_sats(self) -> int | None:
        """Amount in sats, rounded up from msat. None for amountless invoices."""
        if not self.amount_msat:
            return None
        return -(-self.amount_msat // 1000)

    @property
    def expiry_timestamp(self) -> int | None:
        if self.timestamp is None or self.expiry_seconds is None:
            return None
        return self.timestamp + self.expiry_seconds


InvoiceDecoder = Callable[[str], DecodedInvoice]


def decode_invoice(encoded: str) -> DecodedInvoice:
    """
    Decode a BOLT11 invoice.

    Raises:
        ValidationError: If the string is not a valid invoice
    """
    try:
        decoded = bolt11_decode(encoded)
    except (Bolt11Exception, ValueError, TypeError) as e:
        raise ValidationError(f"Failed to decode invoice: {e}") from e

    amount_msat = decoded.amount_msat
    return DecodedInvoice(
        encoded=encoded,
        amount_msat=int(amount_msat) if amount_msat is not None else None,
        timestamp=decoded.date,
        expiry_seconds=decoded.expiry,
        payment_hash=decoded.payment_hash,
    )
