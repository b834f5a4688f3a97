"""
Typed wallet responses.

The wallet provider's payloads are parsed here, at the boundary, into
`LightningSendRequest | WalletTransfer` so no untyped values reach the
payment engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

# Lightning send request statuses
LIGHTNING_PAYMENT_INITIATED = "LIGHTNING_PAYMENT_INITIATED"
LIGHTNING_PAYMENT_SUCCEEDED = "LIGHTNING_PAYMENT_SUCCEEDED"
LIGHTNING_PAYMENT_FAILED = "LIGHTNING_PAYMENT_FAILED"
TRANSFER_COMPLETED = "TRANSFER_COMPLETED"
PREIMAGE_PROVIDED = "PREIMAGE_PROVIDED"
USER_TRANSFER_VALIDATION_FAILED = "USER_TRANSFER_VALIDATION_FAILED"

SUCCESS_STATUSES = frozenset(
    {LIGHTNING_PAYMENT_SUCCEEDED, TRANSFER_COMPLETED, PREIMAGE_PROVIDED}
)
FAILURE_STATUSES = frozenset({LIGHTNING_PAYMENT_FAILED, USER_TRANSFER_VALIDATION_FAILED})


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


@dataclass
class LightningSendRequest:
    """An outgoing Lightning payment tracked by the wallet."""

    id: str
    status: str
    payment_preimage: str | None = None
    encoded_invoice: str | None = None
    fee_sats: int | None = None

    @property
    def has_proof(self) -> bool:
        return bool(self.payment_preimage)

    @property
    def is_succeeded(self) -> bool:
        """Terminal success: a success status *and* a preimage."""
        return self.status in SUCCESS_STATUSES and self.has_proof

    @property
    def is_failed(self) -> bool:
        return self.status in FAILURE_STATUSES

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> LightningSendRequest:
        return cls(
            id=str(data.get("id", "")),
            status=str(data.get("status", "")),
            payment_preimage=data.get("paymentPreimage") or None,
            encoded_invoice=data.get("encodedInvoice"),
            fee_sats=_optional_int(data.get("feeSats")),
        )


@dataclass
class WalletTransfer:
    """A Spark transfer (incoming or outgoing)."""

    id: str
    status: str
    total_value: int
    transfer_type: str = ""
    sender_identity_public_key: str | None = None
    receiver_identity_public_key: str | None = None

    @property
    def is_incoming_lightning(self) -> bool:
        """Lightning receives show up as preimage swaps or incoming transfers."""
        type_str = self.transfer_type.upper()
        return any(
            marker in type_str for marker in ("LIGHTNING", "PREIMAGE", "RECEIVE", "INCOMING")
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "type": self.transfer_type,
            "totalValue": self.total_value,
            "senderIdentityPublicKey": self.sender_identity_public_key,
            "receiverIdentityPublicKey": self.receiver_identity_public_key,
        }

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> WalletTransfer:
        return cls(
            id=str(data.get("id", "")),
            status=str(data.get("status", "")),
            total_value=int(data.get("totalValue") or 0),
            transfer_type=str(data.get("type") or ""),
            sender_identity_public_key=data.get("senderIdentityPublicKey"),
            receiver_identity_public_key=data.get("receiverIdentityPublicKey"),
        )


PaymentSubmission = Union[LightningSendRequest, WalletTransfer]


def parse_payment_submission(data: dict[str, Any]) -> PaymentSubmission:
    """
    Resolve a pay-invoice response into its variant.

    Spark settles some invoices (those issued by other Spark wallets) as a
    direct transfer instead of a Lightning send.
    """
    if "totalValue" in data and "paymentPreimage" not in data:
        return WalletTransfer.from_api(data)
    return LightningSendRequest.from_api(data)


@dataclass
class WalletBalance:
    """Wallet balance in sats plus any token balances."""

    balance_sats: int
    token_balances: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"balance": str(self.balance_sats), "tokenBalances": dict(self.token_balances)}
