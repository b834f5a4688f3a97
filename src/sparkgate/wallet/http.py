"""
HTTP wallet provider.

Talks to a Spark wallet daemon that holds the mnemonic and does all signing.
The daemon exposes a small JSON API; this client maps it onto
`WalletProvider` and parses every response into typed results.
"""

from __future__ import annotations

from typing import Any

import httpx

from sparkgate.core.exceptions import WalletError
from sparkgate.core.logging import get_logger
from sparkgate.wallet.base import WalletProvider
from sparkgate.wallet.types import (
    LightningSendRequest,
    PaymentSubmission,
    WalletBalance,
    WalletTransfer,
    parse_payment_submission,
)


class HttpWalletProvider(WalletProvider):
    """
    Client for a Spark wallet daemon.

    Example:
        >>> wallet = HttpWalletProvider("http://localhost:8787", token="...")
        >>> balance = await wallet.get_balance()
        >>> print(balance.balance_sats)
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the wallet client.

        Args:
            base_url: Wallet daemon base URL
            token: Bearer token for the daemon
            timeout: Request timeout in seconds
            http_client: Pre-built client (not closed by this provider)
        """
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._logger = get_logger("wallet")
        self._http_client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
            self._http_client = httpx.AsyncClient(timeout=self._timeout, headers=headers)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        message = response.text
        try:
            body = response.json()
            if isinstance(body, dict) and body.get("error"):
                message = str(body["error"])
        except ValueError:
            pass
        raise WalletError(
            message or f"Wallet request failed with status {response.status_code}",
            status_code=response.status_code,
        )

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Make GET request to the wallet daemon."""
        client = await self._get_client()
        url = f"{self._base_url}{path}"
        self._logger.debug(f"GET {url}")
        response = await client.get(url, params=params)
        self._raise_for_status(response)
        return response.json()

    async def _post(self, path: str, body: dict[str, Any]) -> Any:
        """Make POST request to the wallet daemon."""
        client = await self._get_client()
        url = f"{self._base_url}{path}"
        self._logger.debug(f"POST {url}")
        response = await client.post(url, json=body)
        self._raise_for_status(response)
        return response.json()

    async def get_balance(self) -> WalletBalance:
        data = await self._get("/balance")
        return WalletBalance(
            balance_sats=int(data.get("balance", 0)),
            token_balances={str(k): str(v) for k, v in (data.get("tokenBalances") or {}).items()},
        )

    async def get_address(self) -> str:
        data = await self._get("/address")
        return str(data["address"])

    async def create_lightning_invoice(
        self,
        amount_sats: int,
        memo: str | None = None,
        expiry_seconds: int | None = None,
    ) -> str:
        body: dict[str, Any] = {"amountSats": amount_sats}
        if memo is not None:
            body["memo"] = memo
        if expiry_seconds is not None:
            body["expirySeconds"] = expiry_seconds
        data = await self._post("/invoices/lightning", body)
        return str(data["encodedInvoice"])

    async def create_spark_invoice(self, amount_sats: int, memo: str | None = None) -> str:
        body: dict[str, Any] = {"amount": amount_sats}
        if memo is not None:
            body["memo"] = memo
        data = await self._post("/invoices/spark", body)
        return str(data["invoice"])

    async def get_lightning_send_fee_estimate(self, encoded_invoice: str) -> int:
        data = await self._get("/lightning/fee-estimate", params={"invoice": encoded_invoice})
        return int(data["feeEstimateSats"])

    async def pay_lightning_invoice(self, invoice: str, max_fee_sats: int) -> PaymentSubmission:
        data = await self._post(
            "/lightning/pay", {"invoice": invoice, "maxFeeSats": max_fee_sats}
        )
        return parse_payment_submission(data)

    async def get_lightning_send_request(self, request_id: str) -> LightningSendRequest | None:
        try:
            data = await self._get(f"/lightning/send-requests/{request_id}")
        except WalletError as e:
            if e.status_code == 404:
                return None
            raise
        if not data:
            return None
        return LightningSendRequest.from_api(data)

    async def transfer(self, receiver_address: str, amount_sats: int) -> WalletTransfer:
        data = await self._post(
            "/transfers",
            {"receiverSparkAddress": receiver_address, "amountSats": amount_sats},
        )
        return WalletTransfer.from_api(data)

    async def get_transfers(self, limit: int = 20, offset: int = 0) -> list[WalletTransfer]:
        data = await self._get("/transfers", params={"limit": limit, "offset": offset})
        return [WalletTransfer.from_api(item) for item in data.get("transfers", [])]
