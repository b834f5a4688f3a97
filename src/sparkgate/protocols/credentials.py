"""Domain-scoped cache of paid L402 credentials."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sparkgate.core.logging import get_logger, redact
from sparkgate.storage.base import StorageBackend

COLLECTION = "l402_tokens"
TOKEN_TTL_SECONDS = 24 * 60 * 60  # 24 hours max cache


@dataclass(frozen=True)
class CachedCredential:
    """A macaroon and the preimage that paid for it."""

    domain: str
    macaroon: str
    preimage: str
    cached_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain": self.domain,
            "macaroon": self.macaroon,
            "preimage": self.preimage,
            "cachedAt": self.cached_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CachedCredential:
        ts_str = data.get("cachedAt")
        return cls(
            domain=data["domain"],
            macaroon=data["macaroon"],
            preimage=data["preimage"],
            cached_at=datetime.fromisoformat(ts_str) if ts_str else datetime.now(timezone.utc),
        )


class CredentialCache:
    """
    One credential per domain, reused until the server rejects it.

    Each domain has its own key, so one domain's TTL is never refreshed by
    writes for another.
    """

    def __init__(self, storage: StorageBackend, ttl_seconds: int = TOKEN_TTL_SECONDS) -> None:
        self._storage = storage
        self._ttl = ttl_seconds
        self._logger = get_logger("credentials")

    async def get(self, domain: str) -> CachedCredential | None:
        data = await self._storage.get(COLLECTION, domain)
        if data is None:
            return None
        try:
            return CachedCredential.from_dict(data)
        except (KeyError, TypeError, ValueError):
            await self._storage.delete(COLLECTION, domain)
            return None

    async def put(self, domain: str, macaroon: str, preimage: str) -> CachedCredential:
        credential = CachedCredential(domain=domain, macaroon=macaroon, preimage=preimage)
        await self._storage.save(COLLECTION, domain, credential.to_dict(), ttl=self._ttl)
        self._logger.debug(f"Cached L402 credential for {domain} ({redact(macaroon)})")
        return credential

    async def evict(self, domain: str) -> None:
        if await self._storage.delete(COLLECTION, domain):
            self._logger.info(f"Evicted L402 credential for {domain}")
