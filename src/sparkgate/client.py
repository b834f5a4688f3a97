"""SparkGate - Main entry point."""

from __future__ import annotations

from typing import Any, Awaitable, Callable

import httpx

from sparkgate.core.config import Config
from sparkgate.core.exceptions import ConfigurationError, SparkGateError
from sparkgate.core.logging import configure_logging, get_logger
from sparkgate.core.types import FailureKind, L402Result, OperationResult
from sparkgate.guards.budget import BudgetGuard
from sparkgate.identity.types import CallerIdentity, Role, can_create_invoice, can_manage, can_pay
from sparkgate.journal.activity import ActivityJournal
from sparkgate.journal.invoices import PendingInvoiceTracker
from sparkgate.payment.confirmation import PaymentConfirmer
from sparkgate.payment.pending import PendingPaymentStore
from sparkgate.protocols.credentials import CredentialCache
from sparkgate.protocols.invoice import InvoiceDecoder, decode_invoice
from sparkgate.protocols.l402 import L402Client
from sparkgate.storage import StorageBackend, get_storage
from sparkgate.wallet.base import WalletProvider
from sparkgate.wallet.http import HttpWalletProvider
from sparkgate.wallet.service import WalletService


class SparkGate:
    """
    Spend-guarded access to a custodial Spark wallet for many callers.

    Every operation takes the verified `CallerIdentity` of the caller, checks
    its role, and returns a tagged result instead of raising.

    Example:
        >>> async with SparkGate(config) as gate:
        ...     agent = CallerIdentity("agent-1", role=Role.PAY_ONLY)
        ...     result = await gate.l402_fetch(agent, "https://api.example.com/joke")
        ...     print(result.to_dict())
    """

    def __init__(
        self,
        config: Config | None = None,
        storage: StorageBackend | None = None,
        wallet: WalletProvider | None = None,
        http_client: httpx.AsyncClient | None = None,
        invoice_decoder: InvoiceDecoder = decode_invoice,
    ) -> None:
        """
        Initialize SparkGate.

        Args:
            config: Configuration (defaults to Config.from_env())
            storage: Shared store (built from config if None)
            wallet: Wallet provider (HttpWalletProvider from config if None)
            http_client: Client for paywalled resources (created if None)
            invoice_decoder: BOLT11 decoder
        """
        self._config = config or Config.from_env()

        configure_logging(level=self._config.log_level, json_format=self._config.log_json)
        self._logger = get_logger("client")
        self._logger.info(f"Initializing SparkGate (env: {self._config.env})")

        self._owns_storage = storage is None
        if storage is None:
            storage_kwargs: dict[str, Any] = {}
            if self._config.storage_backend == "redis":
                storage_kwargs = {
                    "redis_url": self._config.redis_url,
                    "prefix": self._config.redis_prefix,
                }
            try:
                storage = get_storage(self._config.storage_backend, **storage_kwargs)
            except ValueError as e:
                raise ConfigurationError(str(e)) from e
        self._storage = storage

        self._owns_wallet = wallet is None
        if wallet is None:
            if not self._config.wallet_api_url:
                raise ConfigurationError(
                    "No wallet provider given and SPARKGATE_WALLET_URL is not set"
                )
            self._logger.debug(
                f"Using wallet daemon at {self._config.wallet_api_url} "
                f"(token: {self._config.masked_wallet_token() or 'none'})"
            )
            wallet = HttpWalletProvider(
                self._config.wallet_api_url,
                token=self._config.wallet_api_token,
                timeout=self._config.http_timeout,
            )
        self._wallet = wallet

        self._budget = BudgetGuard(self._storage)
        self._journal = ActivityJournal(self._storage)
        self._invoices = PendingInvoiceTracker(self._storage, self._journal)
        self._confirmer = PaymentConfirmer(
            self._wallet,
            poll_interval=self._config.payment_poll_interval,
            max_attempts=self._config.payment_poll_attempts,
        )
        self._wallet_service = WalletService(
            self._config,
            self._wallet,
            self._budget,
            self._journal,
            self._invoices,
            self._confirmer,
            invoice_decoder=invoice_decoder,
        )
        self._l402 = L402Client(
            self._config,
            self._wallet,
            self._budget,
            self._journal,
            CredentialCache(self._storage),
            PendingPaymentStore(self._storage),
            self._confirmer,
            http_client=http_client,
            invoice_decoder=invoice_decoder,
        )

    @property
    def config(self) -> Config:
        return self._config

    @property
    def wallet(self) -> WalletService:
        """Get the budget-guarded wallet service."""
        return self._wallet_service

    @property
    def l402(self) -> L402Client:
        return self._l402

    @property
    def budget(self) -> BudgetGuard:
        return self._budget

    @property
    def journal(self) -> ActivityJournal:
        return self._journal

    async def __aenter__(self) -> SparkGate:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the clients this instance created."""
        await self._l402.close()
        if self._owns_wallet:
            await self._wallet.close()
        if self._owns_storage:
            await self._storage.close()

    async def health_check(self) -> bool:
        return await self._storage.health_check()

    # -- plumbing ------------------------------------------------------------

    @staticmethod
    def _denied(action: str) -> str:
        return f"This token does not have permission to {action}"

    async def _reconcile_invoices(self) -> None:
        try:
            await self._invoices.reconcile(self._wallet)
        except Exception as e:
            self._logger.debug(f"Pending invoice reconciliation failed: {e}")

    async def _run(
        self,
        operation: Callable[[], Awaitable[OperationResult]],
        reconcile: bool = True,
    ) -> OperationResult:
        """Run a wallet operation, turning exceptions into tagged results."""
        try:
            result = await operation()
        except SparkGateError as e:
            result = OperationResult.fail(e.kind, e.message)
        except Exception as e:
            self._logger.error(f"Wallet operation failed: {e}")
            result = OperationResult.fail(FailureKind.WALLET_ERROR, str(e))
        if reconcile:
            await self._reconcile_invoices()
        return result

    async def _run_l402(self, operation: Callable[[], Awaitable[L402Result]]) -> L402Result:
        try:
            result = await operation()
        except SparkGateError as e:
            result = L402Result.fail(e.kind, e.message)
        except Exception as e:
            self._logger.error(f"L402 operation failed: {e}")
            result = L402Result.fail(FailureKind.WALLET_ERROR, str(e))
        await self._reconcile_invoices()
        return result

    # -- wallet --------------------------------------------------------------

    async def get_balance(self, identity: CallerIdentity) -> OperationResult:
        return await self._run(self._wallet_service.get_balance)

    async def get_address(self, identity: CallerIdentity) -> OperationResult:
        return await self._run(self._wallet_service.get_address)

    async def create_invoice(
        self,
        identity: CallerIdentity,
        amount_sats: int,
        memo: str | None = None,
        expiry_seconds: int | None = None,
    ) -> OperationResult:
        if not can_create_invoice(identity.role):
            return OperationResult.fail(
                FailureKind.UNAUTHORIZED, self._denied("create invoices")
            )
        return await self._run(
            lambda: self._wallet_service.create_invoice(amount_sats, memo, expiry_seconds)
        )

    async def create_spark_invoice(
        self,
        identity: CallerIdentity,
        amount_sats: int,
        memo: str | None = None,
    ) -> OperationResult:
        if not can_create_invoice(identity.role):
            return OperationResult.fail(
                FailureKind.UNAUTHORIZED, self._denied("create invoices")
            )
        return await self._run(lambda: self._wallet_service.create_spark_invoice(amount_sats, memo))

    async def estimate_fee(self, identity: CallerIdentity, invoice: str) -> OperationResult:
        return await self._run(lambda: self._wallet_service.estimate_fee(invoice))

    async def pay_invoice(
        self,
        identity: CallerIdentity,
        invoice: str,
        max_fee_sats: int | None = None,
    ) -> OperationResult:
        if not can_pay(identity.role):
            return OperationResult.fail(FailureKind.UNAUTHORIZED, self._denied("pay invoices"))
        return await self._run(
            lambda: self._wallet_service.pay_invoice(identity, invoice, max_fee_sats)
        )

    async def get_payment_status(
        self, identity: CallerIdentity, request_id: str
    ) -> OperationResult:
        if not can_pay(identity.role):
            return OperationResult.fail(
                FailureKind.UNAUTHORIZED, self._denied("check payments")
            )
        return await self._run(lambda: self._wallet_service.get_payment_status(request_id))

    async def transfer(
        self,
        identity: CallerIdentity,
        receiver_address: str,
        amount_sats: int,
    ) -> OperationResult:
        if not can_manage(identity.role):
            return OperationResult.fail(
                FailureKind.UNAUTHORIZED, self._denied("send transfers")
            )
        return await self._run(
            lambda: self._wallet_service.transfer(identity, receiver_address, amount_sats)
        )

    async def list_transactions(
        self,
        identity: CallerIdentity,
        limit: int = 20,
        offset: int = 0,
    ) -> OperationResult:
        return await self._run(lambda: self._wallet_service.list_transactions(limit, offset))

    # -- L402 ----------------------------------------------------------------

    async def l402_fetch(
        self,
        identity: CallerIdentity,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: Any = None,
        max_fee_sats: int | None = None,
    ) -> L402Result:
        """Fetch a paywalled resource, paying for it from the caller's budget."""
        if not can_pay(identity.role):
            return L402Result.fail(FailureKind.UNAUTHORIZED, self._denied("make L402 requests"))
        if not url or not isinstance(url, str):
            return L402Result.fail(FailureKind.BAD_REQUEST, "url is required")
        if max_fee_sats is not None and (
            not isinstance(max_fee_sats, int) or isinstance(max_fee_sats, bool) or max_fee_sats <= 0
        ):
            return L402Result.fail(
                FailureKind.BAD_REQUEST, "max_fee_sats must be a positive integer"
            )
        return await self._run_l402(
            lambda: self._l402.fetch(identity, url, method, headers, body, max_fee_sats)
        )

    async def l402_complete(self, identity: CallerIdentity, pending_id: str) -> L402Result:
        """Finish a pending L402 payment."""
        if not can_pay(identity.role):
            return L402Result.fail(
                FailureKind.UNAUTHORIZED, self._denied("check L402 status")
            )
        if not pending_id:
            return L402Result.fail(FailureKind.BAD_REQUEST, "pending_id is required")
        return await self._run_l402(lambda: self._l402.complete(identity, pending_id))

    async def l402_preview(
        self,
        identity: CallerIdentity,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
    ) -> OperationResult:
        """Report the price of a paywalled resource without paying."""
        if not url or not isinstance(url, str):
            return OperationResult.fail(FailureKind.BAD_REQUEST, "url is required")
        return await self._run(
            lambda: self._l402.preview(url, method, headers), reconcile=False
        )

    # -- budget & journal ----------------------------------------------------

    async def recent_activity(self, identity: CallerIdentity, limit: int = 50) -> OperationResult:
        async def operation() -> OperationResult:
            entries = await self._journal.recent(limit)
            return OperationResult.ok({"logs": [entry.to_dict() for entry in entries]})

        return await self._run(operation, reconcile=False)

    async def get_daily_spent(self, identity: CallerIdentity) -> OperationResult:
        limits = identity.with_defaults(self._config)

        async def operation() -> OperationResult:
            spent = await self._budget.get_daily_spent(limits.caller_id)
            return OperationResult.ok(
                {
                    "dailySpent": spent,
                    "dailyLimit": limits.daily_budget_sats,
                    "maxTransaction": limits.max_tx_sats,
                }
            )

        return await self._run(operation, reconcile=False)

    async def reset_budgets(self, identity: CallerIdentity) -> OperationResult:
        """Delete every caller's daily counters (admin only)."""
        if not can_manage(identity.role):
            return OperationResult.fail(FailureKind.UNAUTHORIZED, self._denied("reset budgets"))

        async def operation() -> OperationResult:
            cleared = await self._budget.reset_all()
            self._logger.warning(f"Budgets reset by {identity.label or identity.caller_id}")
            return OperationResult.ok({"cleared": cleared})

        return await self._run(operation, reconcile=False)


__all__ = ["SparkGate", "CallerIdentity", "Role"]
