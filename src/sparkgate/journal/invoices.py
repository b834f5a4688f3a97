"""
Pending-invoice tracker.

Invoices we issue are remembered until they are paid, expire, or are a day
old. Reconciliation is lazy: it runs opportunistically after wallet
operations and matches incoming transfers by amount.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from sparkgate.core.logging import get_logger
from sparkgate.core.types import ActivityAction
from sparkgate.journal.activity import ActivityJournal
from sparkgate.storage.base import StorageBackend
from sparkgate.wallet.base import WalletProvider

COLLECTION = "journal"
PENDING_NAME = "pending_invoices"
KEY_LENGTH = 30
CLEANUP_CUTOFF = timedelta(hours=24)
MAX_CHECK_PER_REQUEST = 5
TRANSFER_SCAN_LIMIT = 50


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def invoice_key(encoded_invoice: str) -> str:
    """Short form used as hash field and journal reference."""
    return encoded_invoice[:KEY_LENGTH]


@dataclass
class PendingInvoice:
    """An issued invoice waiting to be paid."""

    encoded_invoice: str
    amount_sats: int
    expiry_seconds: int
    memo: str | None = None
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def key(self) -> str:
        return invoice_key(self.encoded_invoice)

    @property
    def expires_at(self) -> datetime:
        return self.created_at + timedelta(seconds=self.expiry_seconds)

    def to_dict(self) -> dict[str, Any]:
        return {
            "encodedInvoice": self.encoded_invoice,
            "amountSats": self.amount_sats,
            "memo": self.memo,
            "createdAt": self.created_at.isoformat(),
            "expirySeconds": self.expiry_seconds,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PendingInvoice:
        return cls(
            encoded_invoice=str(data["encodedInvoice"]),
            amount_sats=int(data["amountSats"]),
            expiry_seconds=int(data["expirySeconds"]),
            memo=data.get("memo"),
            created_at=datetime.fromisoformat(data["createdAt"]),
        )


class PendingInvoiceTracker:
    """Tracks issued invoices and reconciles them against transfer history."""

    def __init__(
        self,
        storage: StorageBackend,
        journal: ActivityJournal,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._storage = storage
        self._journal = journal
        self._clock = clock
        self._logger = get_logger("invoices")

    async def track(
        self,
        encoded_invoice: str,
        amount_sats: int,
        expiry_seconds: int,
        memo: str | None = None,
    ) -> PendingInvoice:
        """Remember an invoice we just issued."""
        pending = PendingInvoice(
            encoded_invoice=encoded_invoice,
            amount_sats=amount_sats,
            expiry_seconds=expiry_seconds,
            memo=memo,
            created_at=self._clock(),
        )
        await self._storage.hash_set(COLLECTION, PENDING_NAME, pending.key, pending.to_dict())
        return pending

    async def list_pending(self) -> list[PendingInvoice]:
        raw = await self._storage.hash_get_all(COLLECTION, PENDING_NAME)
        pending = []
        for value in raw.values():
            try:
                pending.append(PendingInvoice.from_dict(value))
            except (KeyError, TypeError, ValueError):
                continue
        return pending

    async def reconcile(self, wallet: WalletProvider) -> None:
        """
        Expire, clean up and match pending invoices.

        Malformed records are dropped. Expired invoices are journaled as
        `invoice_expired`; records past the 24h cutoff are removed silently.
        At most five survivors are checked against the last 50 transfers, and
        each transfer can satisfy only one invoice. Wallet failures are
        swallowed.
        """
        raw = await self._storage.hash_get_all(COLLECTION, PENDING_NAME)
        if not raw:
            return

        now = self._clock()
        to_check: list[PendingInvoice] = []

        for key, value in raw.items():
            try:
                pending = PendingInvoice.from_dict(value)
            except (KeyError, TypeError, ValueError):
                self._logger.debug(f"Dropping malformed pending invoice {key}")
                await self._storage.hash_delete(COLLECTION, PENDING_NAME, key)
                continue

            if now > pending.expires_at:
                await self._storage.hash_delete(COLLECTION, PENDING_NAME, key)
                await self._journal.record(
                    ActivityAction.INVOICE_EXPIRED,
                    amount_sats=pending.amount_sats,
                    memo=pending.memo,
                    reference=pending.key,
                )
                continue

            if now > pending.created_at + CLEANUP_CUTOFF:
                await self._storage.hash_delete(COLLECTION, PENDING_NAME, key)
                continue

            if len(to_check) < MAX_CHECK_PER_REQUEST:
                to_check.append(pending)

        if not to_check:
            return

        try:
            transfers = await wallet.get_transfers(TRANSFER_SCAN_LIMIT, 0)
        except Exception as e:
            self._logger.debug(f"Skipping invoice reconciliation: {e}")
            return

        matched_ids: set[str] = set()
        for pending in to_check:
            match = next(
                (
                    t
                    for t in transfers
                    if t.id not in matched_ids
                    and t.total_value == pending.amount_sats
                    and t.is_incoming_lightning
                ),
                None,
            )
            if match is None:
                continue
            matched_ids.add(match.id)
            await self._storage.hash_delete(COLLECTION, PENDING_NAME, pending.key)
            await self._journal.record(
                ActivityAction.INVOICE_PAID,
                amount_sats=pending.amount_sats,
                memo=pending.memo,
                reference=pending.key,
            )
            self._logger.info(f"Invoice {pending.key} paid by transfer {match.id}")
