"""
Storage backends for SparkGate.

Provides pluggable persistence for budget counters, the activity journal,
pending invoices/payments and cached L402 credentials.

Configuration via environment:
    SPARKGATE_STORAGE_BACKEND=memory  # or 'redis'
    SPARKGATE_REDIS_URL=redis://localhost:6379/0

Example:
    >>> from sparkgate.storage import get_storage, InMemoryStorage, RedisStorage
    >>>
    >>> storage = get_storage()
    >>> storage = RedisStorage(redis_url="redis://localhost:6379")
"""

from __future__ import annotations

import os
from typing import Any

from sparkgate.storage.base import (
    StorageBackend,
    get_storage_backend,
    list_storage_backends,
    register_storage_backend,
)
from sparkgate.storage.memory import InMemoryStorage
from sparkgate.storage.redis import RedisStorage


def get_storage(backend_name: str | None = None, **kwargs: Any) -> StorageBackend:
    """
    Get storage backend from environment or by name.

    Args:
        backend_name: Backend name, or None to read from SPARKGATE_STORAGE_BACKEND env
        **kwargs: Passed to the backend constructor (e.g. redis_url, prefix)

    Returns:
        StorageBackend instance

    Raises:
        ValueError: If backend name is unknown
    """
    if backend_name is None:
        backend_name = os.environ.get("SPARKGATE_STORAGE_BACKEND", "memory")

    backend_class = get_storage_backend(backend_name)

    if backend_class is None:
        available = list_storage_backends()
        raise ValueError(
            f"Unknown storage backend: '{backend_name}'. Available: {', '.join(available)}"
        )

    return backend_class(**kwargs)


__all__ = [
    "StorageBackend",
    "InMemoryStorage",
    "RedisStorage",
    "get_storage",
    "get_storage_backend",
    "list_storage_backends",
    "register_storage_backend",
]
