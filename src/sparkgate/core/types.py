"""
Type definitions for SparkGate.

Enums and result containers shared by the budget ledger, wallet operations
and the L402 paywall flow.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class FailureKind(str, Enum):
    """Machine-readable failure codes returned with every failed result."""

    INVALID_AMOUNT = "INVALID_AMOUNT"
    TRANSACTION_TOO_LARGE = "TRANSACTION_TOO_LARGE"
    BUDGET_EXCEEDED = "BUDGET_EXCEEDED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    PAYMENT_PENDING = "PAYMENT_PENDING"  # Deferred success, not an error
    L402_FETCH_ERROR = "L402_FETCH_ERROR"
    L402_PARSE_ERROR = "L402_PARSE_ERROR"
    L402_INVALID_CHALLENGE = "L402_INVALID_CHALLENGE"
    NO_PROOF_AVAILABLE = "NO_PROOF_AVAILABLE"
    L402_RETRY_EXHAUSTED = "L402_RETRY_EXHAUSTED"
    # Facade-level codes
    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    EXPIRED = "EXPIRED"
    WALLET_ERROR = "WALLET_ERROR"


class ActivityAction(str, Enum):
    """Kinds of events written to the activity journal."""

    INVOICE_CREATED = "invoice_created"
    SPARK_INVOICE_CREATED = "spark_invoice_created"
    PAYMENT_SENT = "payment_sent"
    TRANSFER_SENT = "transfer_sent"
    INVOICE_PAID = "invoice_paid"
    INVOICE_EXPIRED = "invoice_expired"
    L402_PAYMENT = "l402_payment"
    ERROR = "error"


@dataclass
class ReserveResult:
    """Outcome of a budget reservation attempt."""

    allowed: bool
    daily_spent: int
    daily_limit: int
    reason: str | None = None
    code: FailureKind | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "daily_spent": self.daily_spent,
            "daily_limit": self.daily_limit,
            "reason": self.reason,
            "code": self.code.value if self.code else None,
        }


@dataclass
class OperationResult:
    """
    Result of a core wallet operation.

    Tagged success/failure with a machine-readable code and a
    human-readable error string.
    """

    success: bool
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    code: FailureKind | None = None

    @classmethod
    def ok(cls, data: dict[str, Any] | None = None) -> OperationResult:
        return cls(success=True, data=data or {})

    @classmethod
    def fail(
        cls,
        code: FailureKind,
        error: str,
        data: dict[str, Any] | None = None,
    ) -> OperationResult:
        return cls(success=False, data=data or {}, error=error, code=code)

    @classmethod
    def pending(cls, data: dict[str, Any]) -> OperationResult:
        """Submitted but unconfirmed: a deferred success, not an error."""
        return cls(success=True, data={"status": "pending", **data}, code=FailureKind.PAYMENT_PENDING)

    @property
    def is_pending(self) -> bool:
        return self.code == FailureKind.PAYMENT_PENDING

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            if self.code:
                return {"success": True, "data": self.data, "code": self.code.value}
            return {"success": True, "data": self.data}
        result: dict[str, Any] = {
            "success": False,
            "error": self.error,
            "code": self.code.value if self.code else None,
        }
        if self.data:
            result["data"] = self.data
        return result


@dataclass
class L402Result:
    """
    Result of an L402 paywall request.

    `status` is the final HTTP status of the resource, or the string
    "pending" when the payment was sent but its preimage is not known yet.
    """

    success: bool
    paid: bool = False
    status: int | str | None = None
    data: Any = None
    cached: bool = False
    pending_id: str | None = None
    preimage: str | None = None
    price_sats: int | None = None
    message: str | None = None
    error: str | None = None
    code: FailureKind | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"

    @classmethod
    def fail(cls, code: FailureKind, error: str, **kwargs: Any) -> L402Result:
        return cls(success=False, error=error, code=code, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        if not self.success:
            result: dict[str, Any] = {
                "success": False,
                "error": self.error,
                "code": self.code.value if self.code else None,
            }
            if self.paid:
                result["paid"] = True
                result["preimage"] = self.preimage
                result["status"] = self.status
                result["data"] = self.data
            return result

        if self.is_pending:
            payload: dict[str, Any] = {
                "status": "pending",
                "pendingId": self.pending_id,
                "message": self.message,
                "priceSats": self.price_sats,
            }
        else:
            payload = {"status": self.status, "paid": self.paid, "data": self.data}
            if self.cached:
                payload["cached"] = True
            if self.paid:
                payload["priceSats"] = self.price_sats
                payload["preimage"] = self.preimage
        return {"success": True, "data": payload}
