"""
Configuration management for SparkGate.

Handles loading configuration from environment variables and validation.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from typing import Any


def _get_env_var(name: str, default: str | None = None, required: bool = False) -> str | None:
    """Get environment variable with optional default."""
    value = os.environ.get(name, default)
    if required and not value:
        raise ValueError(f"Required environment variable {name} is not set")
    return value


def _get_env_int(name: str, default: int) -> int:
    raw = _get_env_var(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Config:
    """Engine configuration."""

    storage_backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    redis_prefix: str = "spark"

    # Wallet daemon
    wallet_api_url: str | None = None
    wallet_api_token: str | None = None

    # Default per-caller limits (used when the identity carries none)
    default_max_tx_sats: int = 10_000
    default_daily_budget_sats: int = 100_000

    # Timeouts (seconds)
    http_timeout: float = 30.0

    # Payment confirmation polling
    payment_poll_interval: float = 0.5
    payment_poll_attempts: int = 15
    status_poll_attempts: int = 10

    # L402 replay
    replay_retries: int = 3
    cached_replay_retries: int = 2
    replay_retry_delay: float = 0.2
    default_max_fee_sats: int = 10

    # Invoices
    default_invoice_expiry_seconds: int = 3600

    # Environment & Logging
    log_level: str = "INFO"
    log_json: bool = False
    env: str = "development"

    def __post_init__(self) -> None:
        if self.default_max_tx_sats <= 0:
            raise ValueError("default_max_tx_sats must be positive")
        if self.default_daily_budget_sats <= 0:
            raise ValueError("default_daily_budget_sats must be positive")
        if self.payment_poll_attempts < 1 or self.status_poll_attempts < 1:
            raise ValueError("poll attempts must be at least 1")
        if self.replay_retries < 0 or self.cached_replay_retries < 0:
            raise ValueError("replay retries cannot be negative")
        if self.payment_poll_interval < 0 or self.replay_retry_delay < 0:
            raise ValueError("delays cannot be negative")

    @classmethod
    def from_env(cls, **overrides: Any) -> Config:
        """Load configuration from environment variables."""
        values: dict[str, Any] = {
            "storage_backend": _get_env_var("SPARKGATE_STORAGE_BACKEND", default="memory"),
            "redis_url": _get_env_var("SPARKGATE_REDIS_URL", default=cls.redis_url),
            "wallet_api_url": _get_env_var("SPARKGATE_WALLET_URL"),
            "wallet_api_token": _get_env_var("SPARKGATE_WALLET_TOKEN"),
            "default_max_tx_sats": _get_env_int("MAX_TRANSACTION_SATS", cls.default_max_tx_sats),
            "default_daily_budget_sats": _get_env_int(
                "DAILY_BUDGET_SATS", cls.default_daily_budget_sats
            ),
            "log_level": _get_env_var("SPARKGATE_LOG_LEVEL", default="INFO"),
            "log_json": (_get_env_var("SPARKGATE_LOG_JSON") or "").lower() in ("1", "true", "yes"),
            "env": _get_env_var("SPARKGATE_ENV", default="development"),
        }
        values.update(overrides)
        return cls(**values)

    def with_updates(self, **updates: Any) -> Config:
        """Create a new Config with updated values."""
        current = asdict(self)
        current.update(updates)
        return Config(**current)

    def masked_wallet_token(self) -> str:
        """Return wallet token with most characters masked for safe logging."""
        if not self.wallet_api_token:
            return ""
        if len(self.wallet_api_token) <= 8:
            return "****"
        return self.wallet_api_token[:4] + "..." + self.wallet_api_token[-4:]
