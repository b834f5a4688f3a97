"""
SparkGate - Spend-guarded payments for a custodial Spark/Lightning wallet.

Many callers, one wallet: per-caller daily budgets enforced atomically in a
shared store, Lightning payments driven to a preimage, and L402 paywalls
paid and replayed with cached credentials.

Quick Start:
    >>> from sparkgate import SparkGate, CallerIdentity, Role
    >>>
    >>> async with SparkGate() as gate:
    ...     agent = CallerIdentity("agent-1", role=Role.PAY_ONLY, daily_budget_sats=5000)
    ...     result = await gate.l402_fetch(agent, "https://api.example.com/joke")
    ...     if result.is_pending:
    ...         result = await gate.l402_complete(agent, result.pending_id)
"""

from sparkgate.client import SparkGate
from sparkgate.core.config import Config
from sparkgate.core.exceptions import (
    ConfigurationError,
    L402Error,
    PendingPaymentError,
    SparkGateError,
    ValidationError,
    WalletError,
)
from sparkgate.core.logging import configure_logging, get_logger
from sparkgate.core.types import (
    ActivityAction,
    FailureKind,
    L402Result,
    OperationResult,
    ReserveResult,
)
from sparkgate.guards.budget import BudgetGuard
from sparkgate.identity import CallerIdentity, Role
from sparkgate.journal import ActivityEntry, ActivityJournal, PendingInvoiceTracker
from sparkgate.payment import ConfirmationState, PaymentConfirmer, PendingPaymentStore
from sparkgate.protocols import L402Client
from sparkgate.storage import InMemoryStorage, RedisStorage, StorageBackend, get_storage
from sparkgate.wallet import HttpWalletProvider, WalletProvider
from sparkgate.wallet.service import WalletService

__version__ = "0.1.0"

__all__ = [
    # Main client
    "SparkGate",
    "Config",
    # Identity
    "CallerIdentity",
    "Role",
    # Components
    "BudgetGuard",
    "ActivityJournal",
    "ActivityEntry",
    "PendingInvoiceTracker",
    "PaymentConfirmer",
    "ConfirmationState",
    "PendingPaymentStore",
    "L402Client",
    "WalletService",
    # Wallet
    "WalletProvider",
    "HttpWalletProvider",
    # Storage
    "StorageBackend",
    "InMemoryStorage",
    "RedisStorage",
    "get_storage",
    # Types
    "FailureKind",
    "ActivityAction",
    "OperationResult",
    "L402Result",
    "ReserveResult",
    # Exceptions
    "SparkGateError",
    "ConfigurationError",
    "ValidationError",
    "WalletError",
    "L402Error",
    "PendingPaymentError",
    # Logging
    "configure_logging",
    "get_logger",
]
