from unittest.mock import AsyncMock

import pytest

from sparkgate.core.config import Config
from sparkgate.core.exceptions import ValidationError
from sparkgate.guards.budget import BudgetGuard
from sparkgate.journal.activity import ActivityJournal
from sparkgate.protocols.invoice import DecodedInvoice
from sparkgate.storage.memory import InMemoryStorage
from sparkgate.wallet.base import WalletProvider
from sparkgate.wallet.types import WalletBalance

# The fake decoder prices every invoice at 100 sats, except the amountless
# and undecodable sentinels. No real BOLT11 signatures needed.
INVOICE_100 = "lnbc100n1testinvoiceaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
INVOICE_AMOUNTLESS = "lnbc1testamountlessbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb"
UNDECODABLE = "not-an-invoice"


def fake_decode(encoded: str) -> DecodedInvoice:
    if encoded == UNDECODABLE:
        raise ValidationError("Failed to decode invoice: bad bech32")
    if encoded == INVOICE_AMOUNTLESS:
        return DecodedInvoice(encoded=encoded, amount_msat=None, timestamp=1_700_000_000)
    return DecodedInvoice(
        encoded=encoded,
        amount_msat=100_000,
        timestamp=1_700_000_000,
        expiry_seconds=600,
        payment_hash="ab" * 32,
    )


@pytest.fixture
def config() -> Config:
    """Config with no waiting between polls and retries."""
    return Config(
        wallet_api_url="http://wallet.test",
        payment_poll_interval=0,
        payment_poll_attempts=3,
        status_poll_attempts=2,
        replay_retry_delay=0,
        replay_retries=2,
        cached_replay_retries=1,
        default_max_fee_sats=10,
        default_max_tx_sats=5_000,
        default_daily_budget_sats=10_000,
    )


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def budget(storage) -> BudgetGuard:
    return BudgetGuard(storage)


@pytest.fixture
def journal(storage) -> ActivityJournal:
    return ActivityJournal(storage)


@pytest.fixture
def wallet() -> AsyncMock:
    """Wallet provider mock with a funded balance and a fixed fee estimate."""
    mock = AsyncMock(spec=WalletProvider)
    mock.get_balance.return_value = WalletBalance(balance_sats=50_000)
    mock.get_address.return_value = "sp1ownaddress"
    mock.get_lightning_send_fee_estimate.return_value = 3
    mock.get_transfers.return_value = []
    return mock
