"""
Unit tests for the SparkGate facade: wiring, permissions and error mapping.
"""

import httpx
import pytest

from conftest import INVOICE_100, fake_decode
from sparkgate import SparkGate
from sparkgate.core.config import Config
from sparkgate.core.exceptions import ConfigurationError, WalletError
from sparkgate.core.types import ActivityAction, FailureKind
from sparkgate.identity.types import CallerIdentity, Role
from sparkgate.wallet.http import HttpWalletProvider
from sparkgate.wallet.types import (
    LIGHTNING_PAYMENT_INITIATED,
    LIGHTNING_PAYMENT_SUCCEEDED,
    LightningSendRequest,
    WalletTransfer,
)

ADMIN = CallerIdentity("admin-1", role=Role.ADMIN, label="ops")
INVOICER = CallerIdentity("shop-1", role=Role.INVOICE)
PAYER = CallerIdentity("agent-1", role=Role.PAY_ONLY, max_tx_sats=2000, daily_budget_sats=3000)
READER = CallerIdentity("viewer-1", role=Role.READ_ONLY)


def free_resource(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"ok": True})


def paywalled_resource(request: httpx.Request) -> httpx.Response:
    return httpx.Response(402, json={"invoice": INVOICE_100, "macaroon": "mac"})


@pytest.fixture
def gate(config, storage, wallet):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(free_resource))
    return SparkGate(
        config,
        storage=storage,
        wallet=wallet,
        http_client=http_client,
        invoice_decoder=fake_decode,
    )


class TestConstruction:
    def test_requires_wallet_url_without_provider(self, storage):
        with pytest.raises(ConfigurationError, match="SPARKGATE_WALLET_URL"):
            SparkGate(Config(), storage=storage)

    def test_unknown_storage_backend(self, wallet):
        with pytest.raises(ConfigurationError, match="Unknown storage backend"):
            SparkGate(Config(storage_backend="sqlite"), wallet=wallet)

    def test_builds_http_wallet_from_config(self, config, storage):
        gate = SparkGate(config, storage=storage)
        assert isinstance(gate._wallet, HttpWalletProvider)

    @pytest.mark.asyncio
    async def test_close_leaves_injected_resources(self, gate, wallet):
        async with gate:
            assert await gate.health_check() is True
        wallet.close.assert_not_awaited()


class TestPermissions:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("identity", [READER, INVOICER])
    async def test_pay_requires_pay_role(self, gate, wallet, identity):
        result = await gate.pay_invoice(identity, INVOICE_100)

        assert result.code == FailureKind.UNAUTHORIZED
        assert result.error == "This token does not have permission to pay invoices"
        wallet.pay_lightning_invoice.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("identity", [READER, PAYER])
    async def test_invoice_requires_invoice_role(self, gate, identity):
        result = await gate.create_invoice(identity, 100)
        assert result.code == FailureKind.UNAUTHORIZED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("identity", [READER, INVOICER, PAYER])
    async def test_transfer_and_reset_are_admin_only(self, gate, identity):
        assert (await gate.transfer(identity, "sp1bob", 10)).code == FailureKind.UNAUTHORIZED
        assert (await gate.reset_budgets(identity)).code == FailureKind.UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_l402_requires_pay_role(self, gate):
        assert (await gate.l402_fetch(READER, "https://x.test/")).code == FailureKind.UNAUTHORIZED
        assert (await gate.l402_complete(INVOICER, "abc")).code == FailureKind.UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_reads_are_open(self, gate):
        assert (await gate.get_balance(READER)).success is True
        assert (await gate.get_address(READER)).success is True
        assert (await gate.list_transactions(READER)).success is True


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_validation_error_is_bad_request(self, gate):
        result = await gate.create_invoice(INVOICER, 0)

        assert result.success is False
        assert result.code == FailureKind.BAD_REQUEST

    @pytest.mark.asyncio
    async def test_unexpected_error_is_wallet_error(self, gate, wallet):
        wallet.get_balance.side_effect = RuntimeError("socket closed")

        result = await gate.get_balance(READER)

        assert result.code == FailureKind.WALLET_ERROR
        assert result.error == "socket closed"

    @pytest.mark.asyncio
    async def test_l402_argument_validation(self, gate):
        assert (await gate.l402_fetch(PAYER, "")).code == FailureKind.BAD_REQUEST
        bad_fee = await gate.l402_fetch(PAYER, "https://x.test/", max_fee_sats=0)
        assert bad_fee.code == FailureKind.BAD_REQUEST
        assert (await gate.l402_complete(PAYER, "")).code == FailureKind.BAD_REQUEST

    @pytest.mark.asyncio
    async def test_unknown_pending_id(self, gate):
        result = await gate.l402_complete(PAYER, "0" * 32)
        assert result.code == FailureKind.NOT_FOUND


class TestOperations:
    @pytest.mark.asyncio
    async def test_pay_and_report_spend(self, gate, wallet):
        wallet.pay_lightning_invoice.return_value = LightningSendRequest(
            id="req-1", status=LIGHTNING_PAYMENT_SUCCEEDED, payment_preimage="pre"
        )

        paid = await gate.pay_invoice(PAYER, INVOICE_100)
        spent = await gate.get_daily_spent(PAYER)

        assert paid.success is True
        assert spent.data == {"dailySpent": 103, "dailyLimit": 3000, "maxTransaction": 2000}

    @pytest.mark.asyncio
    async def test_daily_spent_uses_config_defaults(self, gate, config):
        spent = await gate.get_daily_spent(READER)

        assert spent.data["dailyLimit"] == config.default_daily_budget_sats
        assert spent.data["maxTransaction"] == config.default_max_tx_sats

    @pytest.mark.asyncio
    async def test_free_l402_resource(self, gate):
        result = await gate.l402_fetch(PAYER, "https://free.test/data")

        assert result.success is True
        assert result.to_dict() == {
            "success": True,
            "data": {"status": 200, "paid": False, "data": {"ok": True}},
        }

    @pytest.mark.asyncio
    async def test_preview_free_resource(self, gate):
        result = await gate.l402_preview(READER, "https://free.test/data")
        assert result.data == {"requires_payment": False, "status": 200}

    @pytest.mark.asyncio
    async def test_recent_activity(self, gate, wallet):
        wallet.create_lightning_invoice.return_value = "lnbc1invoice" + "x" * 40
        await gate.create_invoice(INVOICER, 100, memo="tea")

        result = await gate.recent_activity(READER, limit=10)

        assert result.data["logs"][0]["action"] == ActivityAction.INVOICE_CREATED.value
        assert result.data["logs"][0]["memo"] == "tea"

    @pytest.mark.asyncio
    async def test_reconciles_invoices_after_operations(self, gate, wallet):
        wallet.create_lightning_invoice.return_value = "lnbc1invoice" + "x" * 40
        await gate.create_invoice(INVOICER, 100)
        wallet.get_transfers.return_value = [
            WalletTransfer(id="t1", status="done", total_value=100, transfer_type="INCOMING")
        ]

        await gate.get_balance(READER)

        actions = [entry["action"] for entry in (await gate.recent_activity(READER)).data["logs"]]
        assert actions[0] == ActivityAction.INVOICE_PAID.value

    @pytest.mark.asyncio
    async def test_reset_budgets(self, gate, wallet):
        wallet.pay_lightning_invoice.return_value = LightningSendRequest(
            id="req-1", status=LIGHTNING_PAYMENT_SUCCEEDED, payment_preimage="pre"
        )
        await gate.pay_invoice(PAYER, INVOICE_100)

        result = await gate.reset_budgets(ADMIN)

        assert result.data == {"cleared": 1}
        assert (await gate.get_daily_spent(PAYER)).data["dailySpent"] == 0

    @pytest.mark.asyncio
    async def test_wallet_outage_after_l402_payment_parks_it(self, config, storage, wallet):
        gate = SparkGate(
            config,
            storage=storage,
            wallet=wallet,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(paywalled_resource)),
            invoice_decoder=fake_decode,
        )
        wallet.pay_lightning_invoice.return_value = LightningSendRequest(
            id="req-1", status=LIGHTNING_PAYMENT_INITIATED
        )
        wallet.get_lightning_send_request.side_effect = WalletError("daemon 503")

        result = await gate.l402_fetch(PAYER, "https://paid.test/data")

        data = result.to_dict()["data"]
        assert result.success is True
        assert data["status"] == "pending"
        assert data["pendingId"]
        assert (await gate.get_daily_spent(PAYER)).data["dailySpent"] == 103
