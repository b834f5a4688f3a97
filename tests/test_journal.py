"""
Unit tests for the activity journal.
"""

from unittest.mock import AsyncMock

import pytest

from sparkgate.core.types import ActivityAction
from sparkgate.journal.activity import MAX_LOG_ENTRIES, ActivityEntry, ActivityJournal


class TestActivityEntry:
    def test_to_dict_omits_unset_fields(self):
        entry = ActivityEntry(action=ActivityAction.PAYMENT_SENT, success=True, amount_sats=100)
        data = entry.to_dict()

        assert data["action"] == "payment_sent"
        assert data["success"] is True
        assert data["amountSats"] == 100
        assert "memo" not in data
        assert "error" not in data
        assert "timestamp" in data

    def test_from_dict(self):
        entry = ActivityEntry.from_dict(
            {
                "timestamp": "2026-01-01T00:00:00+00:00",
                "action": "error",
                "success": False,
                "error": "boom",
                "reference": "lnbc100n1abc",
            }
        )

        assert entry.action == ActivityAction.ERROR
        assert entry.success is False
        assert entry.error == "boom"
        assert entry.reference == "lnbc100n1abc"
        assert entry.timestamp.year == 2026


class TestActivityJournal:
    @pytest.mark.asyncio
    async def test_newest_first(self, journal):
        await journal.record(ActivityAction.INVOICE_CREATED, amount_sats=1)
        await journal.record(ActivityAction.PAYMENT_SENT, amount_sats=2)

        entries = await journal.recent()

        assert [e.action for e in entries] == [
            ActivityAction.PAYMENT_SENT,
            ActivityAction.INVOICE_CREATED,
        ]

    @pytest.mark.asyncio
    async def test_bounded_length(self, storage, journal):
        for i in range(MAX_LOG_ENTRIES + 5):
            await journal.record(ActivityAction.PAYMENT_SENT, amount_sats=i)

        raw = await storage.list_range("journal", "logs", MAX_LOG_ENTRIES + 100)

        assert len(raw) == MAX_LOG_ENTRIES
        assert raw[0]["amountSats"] == MAX_LOG_ENTRIES + 4

    @pytest.mark.asyncio
    async def test_recent_limit_is_clamped(self, journal):
        for i in range(250):
            await journal.record(ActivityAction.PAYMENT_SENT, amount_sats=i)

        assert len(await journal.recent(limit=1000)) == 200
        assert len(await journal.recent(limit=0)) == 1

    @pytest.mark.asyncio
    async def test_storage_failure_does_not_raise(self):
        storage = AsyncMock()
        storage.list_push.side_effect = ConnectionError("redis down")
        journal = ActivityJournal(storage)

        entry = await journal.record(ActivityAction.ERROR, success=False, error="x")

        assert entry.action == ActivityAction.ERROR
