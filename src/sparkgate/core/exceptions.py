"""
Exception hierarchy for SparkGate.

All library exceptions inherit from SparkGateError for easy catching.
Errors that map onto a result code carry a `kind` (FailureKind).
"""

from __future__ import annotations

from typing import Any

from sparkgate.core.types import FailureKind


class SparkGateError(Exception):
    """
    Base exception for all SparkGate errors.

    Example:
        >>> try:
        ...     await gate.transfer(identity, address, 500)
        ... except SparkGateError as e:
        ...     print(f"SparkGate error: {e}")
    """

    kind: FailureKind = FailureKind.WALLET_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(SparkGateError):
    """
    Configuration is missing or invalid.

    Raised when:
    - A wallet provider is needed but no wallet URL is configured
    - An unknown storage backend is requested
    """

    pass


class ValidationError(SparkGateError):
    """
    Input validation error.

    Raised when:
    - Required parameters are missing
    - Amounts are not positive integers
    """

    kind = FailureKind.BAD_REQUEST

    def __init__(
        self,
        message: str,
        kind: FailureKind = FailureKind.BAD_REQUEST,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.kind = kind


class WalletError(SparkGateError):
    """
    The wallet provider rejected or failed an operation.

    The message keeps the provider's own wording: stale-leaf detection
    matches on it.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class L402Error(SparkGateError):
    """
    L402 paywall protocol error.

    Stages: "fetch", "parse", "challenge", "decode", "replay".
    """

    def __init__(
        self,
        message: str,
        stage: str,
        kind: FailureKind,
        url: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.stage = stage
        self.kind = kind
        self.url = url

    def __str__(self) -> str:
        if self.url:
            return f"[l402:{self.stage}] {self.message} (URL: {self.url})"
        return f"[l402:{self.stage}] {self.message}"


class PendingPaymentError(SparkGateError):
    """
    A pending L402 payment reference cannot be resumed.

    Raised when the reference is unknown or past its one-hour lifetime.
    """

    def __init__(
        self,
        message: str,
        pending_id: str,
        kind: FailureKind = FailureKind.NOT_FOUND,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.pending_id = pending_id
        self.kind = kind
