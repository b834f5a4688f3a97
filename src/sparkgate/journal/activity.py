"""
Activity journal.

Bounded, newest-first log of wallet events kept in the shared store
(1000 entries, 7-day TTL refreshed on every write).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sparkgate.core.logging import get_logger
from sparkgate.core.types import ActivityAction
from sparkgate.storage.base import StorageBackend

COLLECTION = "journal"
LOG_NAME = "logs"
MAX_LOG_ENTRIES = 1000
LOG_TTL_SECONDS = 7 * 24 * 60 * 60  # 7 days
MAX_READ_LIMIT = 200


@dataclass(frozen=True)
class ActivityEntry:
    """
    A single journal entry.

    Attributes:
        action: What happened
        success: Whether the operation succeeded
        amount_sats: Amount involved, if any
        memo: Invoice memo, if any
        reference: Short invoice prefix or transfer/payment id
        error: Error message for failed operations
        timestamp: When the event was recorded (UTC)
    """

    action: ActivityAction
    success: bool
    amount_sats: int | None = None
    memo: str | None = None
    reference: str | None = None
    error: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for storage. Unset optional fields are omitted."""
        data: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "action": self.action.value,
            "success": self.success,
        }
        if self.amount_sats is not None:
            data["amountSats"] = self.amount_sats
        if self.memo is not None:
            data["memo"] = self.memo
        if self.reference is not None:
            data["reference"] = self.reference
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActivityEntry:
        ts_str = data.get("timestamp")
        timestamp = datetime.fromisoformat(ts_str) if ts_str else datetime.now(timezone.utc)
        return cls(
            action=ActivityAction(data.get("action", ActivityAction.ERROR.value)),
            success=bool(data.get("success", False)),
            amount_sats=data.get("amountSats"),
            memo=data.get("memo"),
            reference=data.get("reference"),
            error=data.get("error"),
            timestamp=timestamp,
        )


class ActivityJournal:
    """
    Append-only activity log on top of StorageBackend.

    Recording never fails the calling operation: storage errors are logged
    and swallowed.
    """

    def __init__(self, storage: StorageBackend) -> None:
        self._storage = storage
        self._logger = get_logger("journal")

    async def record(
        self,
        action: ActivityAction,
        success: bool = True,
        amount_sats: int | None = None,
        memo: str | None = None,
        reference: str | None = None,
        error: str | None = None,
    ) -> ActivityEntry:
        """Append an entry. Returns the entry even if it could not be stored."""
        entry = ActivityEntry(
            action=action,
            success=success,
            amount_sats=amount_sats,
            memo=memo,
            reference=reference,
            error=error,
        )
        try:
            await self._storage.list_push(
                COLLECTION,
                LOG_NAME,
                entry.to_dict(),
                max_length=MAX_LOG_ENTRIES,
                ttl=LOG_TTL_SECONDS,
            )
        except Exception as e:
            self._logger.warning(f"Failed to record {action.value} activity: {e}")
        return entry

    async def recent(self, limit: int = 50) -> list[ActivityEntry]:
        """Get the most recent entries, newest first (limit capped at 200)."""
        limit = max(1, min(limit, MAX_READ_LIMIT))
        raw = await self._storage.list_range(COLLECTION, LOG_NAME, limit)
        return [ActivityEntry.from_dict(item) for item in raw]
