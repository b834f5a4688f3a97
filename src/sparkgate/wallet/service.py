"""
WalletService - budget-guarded wallet operations.

Spending operations reserve budget before touching the wallet and release it
when the wallet fails. Every operation is journaled. Permission checks happen in
the SparkGate facade, not here.
"""

from __future__ import annotations

from typing import Any

from sparkgate.core.config import Config
from sparkgate.core.exceptions import ValidationError
from sparkgate.core.logging import get_logger
from sparkgate.core.types import ActivityAction, FailureKind, OperationResult, ReserveResult
from sparkgate.guards.budget import BudgetGuard
from sparkgate.identity.types import CallerIdentity
from sparkgate.journal.activity import ActivityJournal
from sparkgate.journal.invoices import PendingInvoiceTracker, invoice_key
from sparkgate.payment.confirmation import PaymentConfirmer
from sparkgate.protocols.invoice import InvoiceDecoder, decode_invoice
from sparkgate.wallet.base import WalletProvider, estimate_fee_or_default
from sparkgate.wallet.recovery import with_stale_leaf_recovery
from sparkgate.wallet.types import WalletTransfer

MAX_TRANSACTIONS_LIMIT = 100


def _require_positive_int(name: str, value: Any) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ValidationError(f"{name} must be a positive integer")
    return value


class WalletService:
    """
    Wallet operations on behalf of verified callers.

    Read-only operations let wallet errors propagate; spending operations
    return tagged results and compensate the budget on failure.
    """

    def __init__(
        self,
        config: Config,
        wallet: WalletProvider,
        budget: BudgetGuard,
        journal: ActivityJournal,
        invoices: PendingInvoiceTracker,
        confirmer: PaymentConfirmer,
        invoice_decoder: InvoiceDecoder = decode_invoice,
    ) -> None:
        self._config = config
        self._wallet = wallet
        self._budget = budget
        self._journal = journal
        self._invoices = invoices
        self._confirmer = confirmer
        self._decode_invoice = invoice_decoder
        self._logger = get_logger("wallet_service")

    async def get_balance(self) -> OperationResult:
        balance = await self._wallet.get_balance()
        return OperationResult.ok(balance.to_dict())

    async def get_address(self) -> OperationResult:
        address = await self._wallet.get_address()
        return OperationResult.ok({"address": address})

    async def create_invoice(
        self,
        amount_sats: int,
        memo: str | None = None,
        expiry_seconds: int | None = None,
    ) -> OperationResult:
        """Create a Lightning invoice and track it until paid or expired."""
        _require_positive_int("amount_sats", amount_sats)
        if expiry_seconds is None:
            expiry_seconds = self._config.default_invoice_expiry_seconds
        _require_positive_int("expiry_seconds", expiry_seconds)

        encoded = await self._wallet.create_lightning_invoice(
            amount_sats, memo=memo or None, expiry_seconds=expiry_seconds
        )

        await self._journal.record(
            ActivityAction.INVOICE_CREATED,
            amount_sats=amount_sats,
            memo=memo,
            reference=invoice_key(encoded),
        )
        try:
            await self._invoices.track(encoded, amount_sats, expiry_seconds, memo=memo)
        except Exception as e:
            self._logger.warning(f"Failed to track invoice {invoice_key(encoded)}: {e}")

        return OperationResult.ok({"encodedInvoice": encoded})

    async def create_spark_invoice(
        self,
        amount_sats: int,
        memo: str | None = None,
    ) -> OperationResult:
        _require_positive_int("amount_sats", amount_sats)
        invoice = await self._wallet.create_spark_invoice(amount_sats, memo=memo or None)
        await self._journal.record(
            ActivityAction.SPARK_INVOICE_CREATED,
            amount_sats=amount_sats,
            memo=memo,
            reference=invoice_key(invoice),
        )
        return OperationResult.ok({"invoice": invoice})

    async def estimate_fee(self, invoice: str) -> OperationResult:
        if not invoice or not isinstance(invoice, str):
            raise ValidationError("invoice is required")
        fee = await self._wallet.get_lightning_send_fee_estimate(invoice)
        return OperationResult.ok({"feeEstimateSats": fee})

    async def _reserve(
        self, identity: CallerIdentity, amount_sats: int
    ) -> tuple[str, ReserveResult]:
        limits = identity.with_defaults(self._config)
        return limits.caller_id, await self._budget.reserve(
            limits.caller_id, amount_sats, limits.max_tx_sats, limits.daily_budget_sats
        )

    async def pay_invoice(
        self,
        identity: CallerIdentity,
        invoice: str,
        max_fee_sats: int | None = None,
    ) -> OperationResult:
        """
        Pay a BOLT11 invoice within the caller's budget.

        The budget covers the decoded invoice amount plus the estimated fee.
        A payment still unconfirmed after polling is returned as pending with
        its `requestId`; its reservation is kept.
        """
        if not invoice or not isinstance(invoice, str):
            raise ValidationError("invoice is required")
        if max_fee_sats is None:
            max_fee_sats = self._config.default_max_fee_sats
        _require_positive_int("max_fee_sats", max_fee_sats)

        decoded = self._decode_invoice(invoice)
        amount_sats = decoded.amount_sats
        if amount_sats is None:
            return OperationResult.fail(
                FailureKind.INVALID_AMOUNT,
                "Invoice has no amount; amountless invoices are not supported",
            )

        fee_sats = await estimate_fee_or_default(self._wallet, invoice, max_fee_sats)
        total_sats = amount_sats + fee_sats
        caller_id, reserve = await self._reserve(identity, total_sats)
        if not reserve.allowed:
            return OperationResult.fail(reserve.code, reserve.reason)

        reference = invoice_key(invoice)
        try:
            submission = await with_stale_leaf_recovery(
                self._wallet,
                lambda: self._wallet.pay_lightning_invoice(invoice, max_fee_sats),
            )
        except Exception as e:
            await self._budget.release(caller_id, total_sats)
            await self._journal.record(
                ActivityAction.ERROR, success=False, reference=reference, error=str(e)
            )
            return OperationResult.fail(FailureKind.PAYMENT_FAILED, f"Payment failed: {e}")

        if isinstance(submission, WalletTransfer):
            # Settled inside Spark; the transfer itself is the receipt.
            await self._journal.record(
                ActivityAction.PAYMENT_SENT, amount_sats=amount_sats, reference=reference
            )
            return OperationResult.ok({**submission.to_dict(), "amountSats": amount_sats})

        try:
            outcome = await self._confirmer.resolve(submission)
        except Exception as e:
            await self._budget.release(caller_id, total_sats)
            await self._journal.record(
                ActivityAction.ERROR, success=False, reference=reference, error=str(e)
            )
            return OperationResult.fail(
                FailureKind.WALLET_ERROR, f"Payment could not be confirmed: {e}"
            )

        if outcome.failed:
            await self._budget.release(caller_id, total_sats)
            await self._journal.record(
                ActivityAction.ERROR, success=False, reference=reference, error=outcome.reason
            )
            return OperationResult.fail(outcome.kind or FailureKind.PAYMENT_FAILED, outcome.reason)

        await self._journal.record(
            ActivityAction.PAYMENT_SENT, amount_sats=amount_sats, reference=reference
        )

        if outcome.pending:
            return OperationResult.pending(
                {
                    "requestId": outcome.request_id,
                    "walletStatus": outcome.wallet_status,
                    "amountSats": amount_sats,
                }
            )

        return OperationResult.ok(
            {
                "id": outcome.request_id,
                "status": outcome.wallet_status,
                "paymentPreimage": outcome.preimage,
                "amountSats": amount_sats,
                "feeEstimateSats": fee_sats,
            }
        )

    async def get_payment_status(self, request_id: str) -> OperationResult:
        """One poll of a submitted payment."""
        if not request_id:
            raise ValidationError("request_id is required")
        outcome = await self._confirmer.resume(request_id, max_attempts=1)
        if outcome.confirmed:
            return OperationResult.ok(
                {
                    "requestId": request_id,
                    "status": outcome.wallet_status,
                    "paymentPreimage": outcome.preimage,
                }
            )
        if outcome.pending:
            return OperationResult.pending(
                {"requestId": request_id, "walletStatus": outcome.wallet_status}
            )
        return OperationResult.fail(
            outcome.kind or FailureKind.PAYMENT_FAILED,
            outcome.reason,
            data={"requestId": request_id},
        )

    async def transfer(
        self,
        identity: CallerIdentity,
        receiver_address: str,
        amount_sats: int,
    ) -> OperationResult:
        """Send sats to a Spark address within the caller's budget."""
        if not receiver_address or not isinstance(receiver_address, str):
            raise ValidationError("receiver_address is required")

        caller_id, reserve = await self._reserve(identity, amount_sats)
        if not reserve.allowed:
            return OperationResult.fail(reserve.code, reserve.reason)

        try:
            transfer = await with_stale_leaf_recovery(
                self._wallet,
                lambda: self._wallet.transfer(receiver_address, amount_sats),
            )
        except Exception as e:
            await self._budget.release(caller_id, amount_sats)
            await self._journal.record(
                ActivityAction.ERROR, success=False, amount_sats=amount_sats, error=str(e)
            )
            return OperationResult.fail(FailureKind.PAYMENT_FAILED, f"Transfer failed: {e}")

        await self._journal.record(
            ActivityAction.TRANSFER_SENT, amount_sats=amount_sats, reference=transfer.id
        )
        return OperationResult.ok(
            {"id": transfer.id, "status": transfer.status, "totalValue": transfer.total_value}
        )

    async def list_transactions(self, limit: int = 20, offset: int = 0) -> OperationResult:
        limit = max(1, min(limit, MAX_TRANSACTIONS_LIMIT))
        offset = max(0, offset)
        transfers = await self._wallet.get_transfers(limit, offset)
        return OperationResult.ok(
            {"transfers": [t.to_dict() for t in transfers], "offset": offset, "limit": limit}
        )
