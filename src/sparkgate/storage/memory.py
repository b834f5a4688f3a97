"""
In-Memory Storage Backend.

Keeps all data in process memory. Suitable for development, tests and
single-process deployments; not for multi-instance production.
"""

from __future__ import annotations

import json
import time
from copy import deepcopy
from typing import Any

from sparkgate.storage.base import (
    RESERVE_OK,
    RESERVE_OVER_LIMIT,
    RESERVE_TOO_LARGE,
    StorageBackend,
    register_storage_backend,
)


class InMemoryStorage(StorageBackend):
    """
    In-memory storage backend.

    Values are stored with an optional absolute expiry (time.time() based),
    checked lazily on access. None of the methods await between reading and
    writing, so each call is atomic with respect to other asyncio tasks.
    """

    def __init__(self) -> None:
        # collection -> key -> (value, expires_at | None)
        self._data: dict[str, dict[str, tuple[Any, float | None]]] = {}

    def _ensure_collection(self, collection: str) -> dict[str, tuple[Any, float | None]]:
        """Ensure collection exists and return it."""
        if collection not in self._data:
            self._data[collection] = {}
        return self._data[collection]

    @staticmethod
    def _expiry(ttl: int | None) -> float | None:
        return time.time() + ttl if ttl else None

    def _read(self, collection: str, key: str) -> Any:
        coll = self._ensure_collection(collection)
        entry = coll.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and time.time() >= expires_at:
            del coll[key]
            return None
        return value

    def _write(self, collection: str, key: str, value: Any, expires_at: float | None) -> None:
        self._ensure_collection(collection)[key] = (value, expires_at)

    def _current_expiry(self, collection: str, key: str) -> float | None:
        entry = self._ensure_collection(collection).get(key)
        return entry[1] if entry else None

    async def save(
        self,
        collection: str,
        key: str,
        data: dict[str, Any],
        ttl: int | None = None,
    ) -> None:
        """Save data to memory."""
        self._write(collection, key, deepcopy(data), self._expiry(ttl))

    async def get(self, collection: str, key: str) -> dict[str, Any] | None:
        """Get data from memory."""
        value = self._read(collection, key)
        if not isinstance(value, dict):
            return None
        return deepcopy(value)

    async def delete(self, collection: str, key: str) -> bool:
        """Delete data from memory."""
        if self._read(collection, key) is None:
            return False
        del self._data[collection][key]
        return True

    async def get_counter(self, collection: str, key: str) -> int:
        value = self._read(collection, key)
        return int(value) if isinstance(value, int) else 0

    async def atomic_add(
        self,
        collection: str,
        key: str,
        amount: int,
        ttl: int | None = None,
    ) -> int:
        """Atomically add amount."""
        current = self._read(collection, key)
        new_value = (current if isinstance(current, int) else 0) + amount
        expires_at = self._expiry(ttl) if ttl else self._current_expiry(collection, key)
        self._write(collection, key, new_value, expires_at)
        return new_value

    async def reserve_within_limit(
        self,
        collection: str,
        key: str,
        amount: int,
        max_single: int,
        limit: int,
        ttl: int,
    ) -> tuple[bool, int, int]:
        current = self._read(collection, key)
        current = current if isinstance(current, int) else 0

        if amount > max_single:
            return False, current, RESERVE_TOO_LARGE
        if current + amount > limit:
            return False, current, RESERVE_OVER_LIMIT

        new_total = current + amount
        self._write(collection, key, new_total, self._expiry(ttl))
        return True, new_total, RESERVE_OK

    async def hash_set(
        self,
        collection: str,
        name: str,
        field: str,
        data: dict[str, Any],
        ttl: int | None = None,
    ) -> None:
        current = self._read(collection, name)
        fields = dict(current) if isinstance(current, dict) else {}
        fields[field] = json.dumps(data)
        expires_at = self._expiry(ttl) if ttl else self._current_expiry(collection, name)
        self._write(collection, name, fields, expires_at)

    async def hash_get(self, collection: str, name: str, field: str) -> dict[str, Any] | None:
        fields = self._read(collection, name)
        if not isinstance(fields, dict) or field not in fields:
            return None
        try:
            return json.loads(fields[field])
        except json.JSONDecodeError:
            return None

    async def hash_delete(self, collection: str, name: str, field: str) -> bool:
        fields = self._read(collection, name)
        if not isinstance(fields, dict) or field not in fields:
            return False
        del fields[field]
        return True

    async def hash_get_all(self, collection: str, name: str) -> dict[str, Any]:
        fields = self._read(collection, name)
        if not isinstance(fields, dict):
            return {}
        results: dict[str, Any] = {}
        for field, raw in fields.items():
            try:
                results[field] = json.loads(raw)
            except json.JSONDecodeError:
                results[field] = raw
        return results

    async def list_push(
        self,
        collection: str,
        name: str,
        data: dict[str, Any],
        max_length: int | None = None,
        ttl: int | None = None,
    ) -> None:
        current = self._read(collection, name)
        items = list(current) if isinstance(current, list) else []
        items.insert(0, json.dumps(data))
        if max_length is not None:
            items = items[:max_length]
        expires_at = self._expiry(ttl) if ttl else self._current_expiry(collection, name)
        self._write(collection, name, items, expires_at)

    async def list_range(self, collection: str, name: str, limit: int) -> list[dict[str, Any]]:
        items = self._read(collection, name)
        if not isinstance(items, list):
            return []
        return [json.loads(raw) for raw in items[: max(limit, 0)]]

    async def clear(self, collection: str) -> int:
        """Clear all records from a collection."""
        coll = self._ensure_collection(collection)
        count = len(coll)
        coll.clear()
        return count

    async def health_check(self) -> bool:
        """Always healthy for in-memory."""
        return True


# Register as default backend
register_storage_backend("memory", InMemoryStorage)
