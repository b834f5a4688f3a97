"""
Abstract Storage Backend for SparkGate.

Every piece of cross-request state (budget counters, journal, pending
invoices, pending payments, cached credentials) goes through this
interface. Requests may be served by independent processes, so nothing
here may rely on in-process memory for coordination.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

# Result codes of reserve_within_limit
RESERVE_OK = 0
RESERVE_TOO_LARGE = 1
RESERVE_OVER_LIMIT = 2


class StorageBackend(ABC):
    """
    Abstract base class for storage backends.

    Records are addressed by (collection, key). Documents are JSON-serializable
    dicts; counters are integers.
    """

    # -- documents ---------------------------------------------------------

    @abstractmethod
    async def save(
        self,
        collection: str,
        key: str,
        data: dict[str, Any],
        ttl: int | None = None,
    ) -> None:
        """
        Save a document.

        Args:
            collection: Collection name
            key: Unique key for the record
            data: Data to store (must be JSON-serializable)
            ttl: Optional time-to-live in seconds
        """
        ...

    @abstractmethod
    async def get(self, collection: str, key: str) -> dict[str, Any] | None:
        """Get a document, or None if missing or expired."""
        ...

    @abstractmethod
    async def delete(self, collection: str, key: str) -> bool:
        """Delete a document or counter. Returns True if something was removed."""
        ...

    # -- counters ----------------------------------------------------------

    @abstractmethod
    async def get_counter(self, collection: str, key: str) -> int:
        """Read an integer counter (0 if missing)."""
        ...

    @abstractmethod
    async def atomic_add(
        self,
        collection: str,
        key: str,
        amount: int,
        ttl: int | None = None,
    ) -> int:
        """
        Atomically add amount (may be negative) to an integer counter.

        Returns:
            New counter value
        """
        ...

    @abstractmethod
    async def reserve_within_limit(
        self,
        collection: str,
        key: str,
        amount: int,
        max_single: int,
        limit: int,
        ttl: int,
    ) -> tuple[bool, int, int]:
        """
        Atomically check-and-increment a counter against two caps.

        The check and the increment must be indivisible across concurrent
        callers in every process sharing the store.

        Returns:
            (allowed, counter value, reason code). On rejection the counter
            is unchanged and the value is the current total.
        """
        ...

    # -- hashes ------------------------------------------------------------

    @abstractmethod
    async def hash_set(
        self,
        collection: str,
        name: str,
        field: str,
        data: dict[str, Any],
        ttl: int | None = None,
    ) -> None:
        """Set one field of a hash to a JSON document."""
        ...

    @abstractmethod
    async def hash_get(self, collection: str, name: str, field: str) -> dict[str, Any] | None:
        """Get one field of a hash."""
        ...

    @abstractmethod
    async def hash_delete(self, collection: str, name: str, field: str) -> bool:
        """Delete one field of a hash."""
        ...

    @abstractmethod
    async def hash_get_all(self, collection: str, name: str) -> dict[str, Any]:
        """
        Get every field of a hash.

        Values that are not valid JSON documents are returned as raw strings
        so callers can decide to discard them.
        """
        ...

    # -- lists -------------------------------------------------------------

    @abstractmethod
    async def list_push(
        self,
        collection: str,
        name: str,
        data: dict[str, Any],
        max_length: int | None = None,
        ttl: int | None = None,
    ) -> None:
        """Push a document to the head of a list, trim it and refresh its TTL."""
        ...

    @abstractmethod
    async def list_range(self, collection: str, name: str, limit: int) -> list[dict[str, Any]]:
        """Return up to `limit` documents from the head of a list (newest first)."""
        ...

    # -- maintenance -------------------------------------------------------

    @abstractmethod
    async def clear(self, collection: str) -> int:
        """
        Remove every record of a collection.

        Returns:
            Number of records deleted
        """
        ...

    async def health_check(self) -> bool:
        """
        Check if storage is healthy and connected.

        Returns:
            True if healthy
        """
        return True

    async def close(self) -> None:
        """Release connections held by the backend."""
        return None


# Storage backend registry for dependency injection
_STORAGE_BACKENDS: dict[str, type[StorageBackend]] = {}


def register_storage_backend(name: str, backend_class: type[StorageBackend]) -> None:
    """Register a storage backend by name."""
    _STORAGE_BACKENDS[name] = backend_class


def get_storage_backend(name: str) -> type[StorageBackend] | None:
    """Get a registered storage backend by name."""
    return _STORAGE_BACKENDS.get(name)


def list_storage_backends() -> list[str]:
    """List all registered storage backend names."""
    return list(_STORAGE_BACKENDS.keys())
