"""
Pending payment proofs.

When a paywall payment is submitted but its preimage is not available
within one request, everything needed to finish the flow later is stored
here under an opaque id. Records live for one hour.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from sparkgate.core.exceptions import PendingPaymentError
from sparkgate.core.logging import get_logger
from sparkgate.core.types import FailureKind
from sparkgate.storage.base import StorageBackend

COLLECTION = "pending_l402"
PENDING_TTL_SECONDS = 60 * 60  # 1 hour


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PendingPaymentProof:
    """Continuation state for a paywall payment awaiting its preimage."""

    pending_id: str
    payment_id: str
    macaroon: str
    url: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    price_sats: int | None = None
    amount_sats: int | None = None
    caller_id: str | None = None
    reserved_sats: int | None = None
    confirmed: bool = False
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "pendingId": self.pending_id,
            "paymentId": self.payment_id,
            "macaroon": self.macaroon,
            "url": self.url,
            "method": self.method,
            "headers": self.headers,
            "body": self.body,
            "priceSats": self.price_sats,
            "amountSats": self.amount_sats,
            "callerId": self.caller_id,
            "reservedSats": self.reserved_sats,
            "confirmed": self.confirmed,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PendingPaymentProof:
        return cls(
            pending_id=data["pendingId"],
            payment_id=data["paymentId"],
            macaroon=data["macaroon"],
            url=data["url"],
            method=data.get("method", "GET"),
            headers=data.get("headers") or {},
            body=data.get("body"),
            price_sats=data.get("priceSats"),
            amount_sats=data.get("amountSats"),
            caller_id=data.get("callerId"),
            reserved_sats=data.get("reservedSats"),
            confirmed=bool(data.get("confirmed", False)),
            created_at=datetime.fromisoformat(data["createdAt"]),
        )


class PendingPaymentStore:
    """
    Stores PendingPaymentProof records with a hard one-hour lifetime.

    The store TTL bounds storage; the createdAt check bounds correctness in
    case the backend's expiry lags.
    """

    def __init__(
        self,
        storage: StorageBackend,
        ttl_seconds: int = PENDING_TTL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._storage = storage
        self._ttl = ttl_seconds
        self._clock = clock
        self._logger = get_logger("pending")

    async def create(
        self,
        payment_id: str,
        macaroon: str,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: Any = None,
        price_sats: int | None = None,
        amount_sats: int | None = None,
        caller_id: str | None = None,
        reserved_sats: int | None = None,
    ) -> PendingPaymentProof:
        """Persist a new pending record and return it with its fresh id."""
        proof = PendingPaymentProof(
            pending_id=secrets.token_hex(16),
            payment_id=payment_id,
            macaroon=macaroon,
            url=url,
            method=method,
            headers=dict(headers or {}),
            body=body,
            price_sats=price_sats,
            amount_sats=amount_sats,
            caller_id=caller_id,
            reserved_sats=reserved_sats,
            created_at=self._clock(),
        )
        await self._storage.save(COLLECTION, proof.pending_id, proof.to_dict(), ttl=self._ttl)
        self._logger.info(f"Stored pending payment {proof.pending_id} for {payment_id}")
        return proof

    async def load(self, pending_id: str) -> PendingPaymentProof:
        """
        Fetch a live pending record.

        Raises:
            PendingPaymentError: NOT_FOUND if unknown, EXPIRED (record deleted)
                if older than the lifetime
        """
        data = await self._storage.get(COLLECTION, pending_id)
        if data is None:
            raise PendingPaymentError(
                "Pending L402 not found. It may have expired or already completed.",
                pending_id=pending_id,
                kind=FailureKind.NOT_FOUND,
            )

        proof = PendingPaymentProof.from_dict(data)
        if self._clock() - proof.created_at > timedelta(seconds=self._ttl):
            await self.delete(pending_id)
            raise PendingPaymentError(
                "Pending L402 has expired",
                pending_id=pending_id,
                kind=FailureKind.EXPIRED,
            )
        return proof

    async def mark_confirmed(self, proof: PendingPaymentProof) -> None:
        """Record that the wallet produced a preimage for this payment."""
        proof.confirmed = True
        remaining = self._ttl - (self._clock() - proof.created_at).total_seconds()
        await self._storage.save(
            COLLECTION, proof.pending_id, proof.to_dict(), ttl=max(1, int(remaining))
        )

    async def delete(self, pending_id: str) -> bool:
        return await self._storage.delete(COLLECTION, pending_id)
