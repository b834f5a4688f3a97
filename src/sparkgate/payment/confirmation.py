"""
Payment confirmation state machine.

Drives a submitted Lightning payment to a terminal outcome:

    submitted (resolve) -> polling (resume) -> CONFIRMED | FAILED | TIMED_OUT_PENDING

Polling is bounded per request. TIMED_OUT_PENDING is not a failure: the
payment may still settle, so callers keep the budget reservation and
persist enough state to resume later.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

import httpx

from sparkgate.core.exceptions import WalletError
from sparkgate.core.logging import get_logger
from sparkgate.core.types import FailureKind
from sparkgate.wallet.base import WalletProvider
from sparkgate.wallet.types import LightningSendRequest, PaymentSubmission, WalletTransfer


class ConfirmationState(str, Enum):
    """Terminal states of a payment confirmation."""

    CONFIRMED = "confirmed"
    FAILED = "failed"
    TIMED_OUT_PENDING = "timed_out_pending"


@dataclass
class ConfirmationOutcome:
    """Terminal outcome of a confirmation run."""

    state: ConfirmationState
    request_id: str | None = None
    preimage: str | None = None
    reason: str | None = None
    kind: FailureKind | None = None
    wallet_status: str | None = None

    @property
    def confirmed(self) -> bool:
        return self.state == ConfirmationState.CONFIRMED

    @property
    def failed(self) -> bool:
        return self.state == ConfirmationState.FAILED

    @property
    def pending(self) -> bool:
        return self.state == ConfirmationState.TIMED_OUT_PENDING


class PaymentConfirmer:
    """
    Resolves payment submissions into a proof (preimage) or a failure.

    Example:
        >>> confirmer = PaymentConfirmer(wallet, poll_interval=0.5, max_attempts=15)
        >>> outcome = await confirmer.resolve(await wallet.pay_lightning_invoice(inv, 10))
        >>> if outcome.confirmed:
        ...     print(outcome.preimage)
    """

    def __init__(
        self,
        wallet: WalletProvider,
        poll_interval: float = 0.5,
        max_attempts: int = 15,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._wallet = wallet
        self._poll_interval = poll_interval
        self._max_attempts = max_attempts
        self._sleep = sleep
        self._logger = get_logger("confirmation")

    async def resolve(self, submission: PaymentSubmission) -> ConfirmationOutcome:
        """Take a fresh submission through the state machine."""
        if isinstance(submission, WalletTransfer):
            # Settled as a Spark transfer: there is no send request to poll
            # and no preimage to present.
            return ConfirmationOutcome(
                state=ConfirmationState.FAILED,
                request_id=submission.id or None,
                reason=(
                    "Payment completed but no preimage available. "
                    f"Status: {submission.status or 'unknown'}"
                ),
                kind=FailureKind.NO_PROOF_AVAILABLE,
                wallet_status=submission.status,
            )

        if submission.has_proof:
            return ConfirmationOutcome(
                state=ConfirmationState.CONFIRMED,
                request_id=submission.id or None,
                preimage=submission.payment_preimage,
                wallet_status=submission.status,
            )

        if submission.is_failed:
            return self._failed(submission)

        if not submission.id:
            return ConfirmationOutcome(
                state=ConfirmationState.FAILED,
                reason=(
                    "Payment submitted without a reference to poll. "
                    f"Status: {submission.status or 'unknown'}"
                ),
                kind=FailureKind.NO_PROOF_AVAILABLE,
                wallet_status=submission.status,
            )

        try:
            return await self.resume(submission.id)
        except (WalletError, httpx.HTTPError) as e:
            # The payment already left the wallet; only our view of it failed.
            self._logger.warning(f"Could not poll payment {submission.id}: {e}")
            return ConfirmationOutcome(
                state=ConfirmationState.TIMED_OUT_PENDING,
                request_id=submission.id,
                reason=f"Could not confirm payment: {e}",
                kind=FailureKind.PAYMENT_PENDING,
                wallet_status=submission.status,
            )

    async def resume(self, request_id: str, max_attempts: int | None = None) -> ConfirmationOutcome:
        """
        Poll the wallet for a submitted payment.

        Args:
            request_id: Lightning send request id
            max_attempts: Override for the number of polls

        Returns:
            CONFIRMED with the preimage, FAILED, or TIMED_OUT_PENDING
        """
        attempts = max_attempts if max_attempts is not None else self._max_attempts
        last_status: str | None = None

        for attempt in range(attempts):
            request = await self._wallet.get_lightning_send_request(request_id)
            if request is None:
                return ConfirmationOutcome(
                    state=ConfirmationState.FAILED,
                    request_id=request_id,
                    reason="Payment request not found",
                    kind=FailureKind.PAYMENT_FAILED,
                )

            last_status = request.status
            if request.is_succeeded:
                self._logger.debug(f"Payment {request_id} confirmed after {attempt + 1} poll(s)")
                return ConfirmationOutcome(
                    state=ConfirmationState.CONFIRMED,
                    request_id=request_id,
                    preimage=request.payment_preimage,
                    wallet_status=request.status,
                )

            if request.is_failed:
                return self._failed(request)

            if attempt < attempts - 1:
                await self._sleep(self._poll_interval)

        self._logger.info(
            f"Payment {request_id} still {last_status or 'unresolved'} after {attempts} poll(s)"
        )
        return ConfirmationOutcome(
            state=ConfirmationState.TIMED_OUT_PENDING,
            request_id=request_id,
            reason="Timeout waiting for payment to complete",
            kind=FailureKind.PAYMENT_PENDING,
            wallet_status=last_status,
        )

    @staticmethod
    def _failed(request: LightningSendRequest) -> ConfirmationOutcome:
        return ConfirmationOutcome(
            state=ConfirmationState.FAILED,
            request_id=request.id or None,
            reason=f"Payment failed with status: {request.status}",
            kind=FailureKind.PAYMENT_FAILED,
            wallet_status=request.status,
        )
