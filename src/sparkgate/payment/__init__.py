"""Payment confirmation and pending-proof persistence."""

from sparkgate.payment.confirmation import (
    ConfirmationOutcome,
    ConfirmationState,
    PaymentConfirmer,
)
from sparkgate.payment.pending import PendingPaymentProof, PendingPaymentStore

__all__ = [
    "ConfirmationOutcome",
    "ConfirmationState",
    "PaymentConfirmer",
    "PendingPaymentProof",
    "PendingPaymentStore",
]
