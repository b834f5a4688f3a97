"""
L402Client - HTTP 402 paywall payments over Lightning.

Flow for a single request:

    Fetch -> DetectChallenge -> ParseChallenge -> DecodeAmount ->
    ReserveBudget -> Pay -> ObtainProof -> ReplayWithAuthorization

Proof may not be available within one request. In that case the payment is
parked as a PendingPaymentProof and `complete()` finishes it later.
Credentials that worked once are cached per domain and tried first.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx
from tenacity import AsyncRetrying, retry_if_result, stop_after_attempt, wait_fixed

from sparkgate.core.config import Config
from sparkgate.core.exceptions import L402Error, PendingPaymentError, ValidationError
from sparkgate.core.logging import get_logger, redact
from sparkgate.core.types import ActivityAction, FailureKind, L402Result, OperationResult
from sparkgate.guards.budget import BudgetGuard
from sparkgate.identity.types import CallerIdentity
from sparkgate.journal.activity import ActivityJournal
from sparkgate.journal.invoices import invoice_key
from sparkgate.payment.confirmation import PaymentConfirmer
from sparkgate.payment.pending import PendingPaymentStore
from sparkgate.protocols.challenge import (
    L402Challenge,
    build_authorization,
    extract_domain,
    is_credential_invalid,
    looks_unverified,
    parse_challenge_body,
    parse_www_authenticate,
)
from sparkgate.protocols.credentials import CredentialCache
from sparkgate.protocols.invoice import DecodedInvoice, InvoiceDecoder, decode_invoice
from sparkgate.wallet.base import WalletProvider, estimate_fee_or_default
from sparkgate.wallet.recovery import with_stale_leaf_recovery

PENDING_MESSAGE = "Payment sent but preimage not yet available. Complete it with the pending id."
STILL_PROCESSING_MESSAGE = "Payment still processing. Try again in a few seconds."


@dataclass
class ResourceResponse:
    """Status and decoded body of a paywalled resource."""

    status: int
    data: Any


def read_body(response: httpx.Response) -> Any:
    """JSON if the server says so (falling back to text), text otherwise."""
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text


class L402Client:
    """
    Pays L402 challenges on behalf of a caller, within the caller's budget.

    Example:
        >>> result = await l402.fetch(identity, "https://api.example.com/joke")
        >>> if result.is_pending:
        ...     result = await l402.complete(identity, result.pending_id)
    """

    def __init__(
        self,
        config: Config,
        wallet: WalletProvider,
        budget: BudgetGuard,
        journal: ActivityJournal,
        credentials: CredentialCache,
        pending: PendingPaymentStore,
        confirmer: PaymentConfirmer,
        http_client: httpx.AsyncClient | None = None,
        invoice_decoder: InvoiceDecoder = decode_invoice,
    ) -> None:
        self._config = config
        self._wallet = wallet
        self._budget = budget
        self._journal = journal
        self._credentials = credentials
        self._pending = pending
        self._confirmer = confirmer
        self._http_client = http_client
        self._owns_client = http_client is None
        self._decode_invoice = invoice_decoder
        self._logger = get_logger("l402")

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._config.http_timeout)
        return self._http_client

    async def close(self) -> None:
        if self._http_client and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    # -- HTTP ----------------------------------------------------------------

    async def _send(
        self,
        url: str,
        method: str,
        headers: dict[str, str],
        body: Any,
        authorization: str | None = None,
    ) -> httpx.Response:
        request_headers = {"Content-Type": "application/json", **headers}
        if authorization:
            request_headers["Authorization"] = authorization
        client = await self._get_http_client()
        return await client.request(
            method,
            url,
            headers=request_headers,
            content=json.dumps(body) if body is not None else None,
        )

    async def _fetch_resource(
        self,
        url: str,
        method: str,
        headers: dict[str, str],
        body: Any,
        authorization: str,
    ) -> ResourceResponse:
        response = await self._send(url, method, headers, body, authorization)
        return ResourceResponse(status=response.status_code, data=read_body(response))

    async def _replay(
        self,
        url: str,
        method: str,
        headers: dict[str, str],
        body: Any,
        authorization: str,
        retries: int,
        stop_on_invalid: bool = False,
    ) -> ResourceResponse:
        """
        Fetch with authorization, retrying while the response looks unverified.

        Returns the last response once retries run out. Transport errors are
        not retried.
        """

        def should_retry(resource: ResourceResponse) -> bool:
            if stop_on_invalid and is_credential_invalid(resource.status, resource.data):
                return False
            return looks_unverified(resource.status, resource.data)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(retries + 1),
            wait=wait_fixed(self._config.replay_retry_delay),
            retry=retry_if_result(should_retry),
            retry_error_callback=lambda state: state.outcome.result(),
            before_sleep=lambda state: self._logger.debug(
                f"Response from {url} looks unverified, retrying "
                f"(attempt {state.attempt_number})"
            ),
        )
        return await retrying(self._fetch_resource, url, method, headers, body, authorization)

    # -- challenge -----------------------------------------------------------

    def _parse_challenge(self, response: httpx.Response, url: str) -> L402Challenge:
        try:
            body = response.json()
            body_parsed = True
        except ValueError:
            body = None
            body_parsed = False

        challenge = parse_challenge_body(body) or parse_www_authenticate(
            response.headers.get("www-authenticate")
        )
        if challenge is not None:
            return challenge
        if not body_parsed:
            raise L402Error(
                "Failed to parse L402 challenge response",
                stage="parse",
                kind=FailureKind.L402_PARSE_ERROR,
                url=url,
            )
        raise L402Error(
            "Invalid L402 response: missing invoice or macaroon",
            stage="challenge",
            kind=FailureKind.L402_INVALID_CHALLENGE,
            url=url,
        )

    def _decode_amount(self, challenge: L402Challenge, url: str) -> DecodedInvoice:
        try:
            invoice = self._decode_invoice(challenge.invoice)
        except ValidationError as e:
            raise L402Error(
                "Failed to decode L402 invoice",
                stage="decode",
                kind=FailureKind.L402_INVALID_CHALLENGE,
                url=url,
            ) from e
        if invoice.amount_sats is None:
            raise L402Error(
                "L402 invoice has no amount; amountless invoices are not supported",
                stage="decode",
                kind=FailureKind.L402_INVALID_CHALLENGE,
                url=url,
            )
        return invoice

    # -- cached credentials --------------------------------------------------

    async def _try_cached(
        self,
        domain: str,
        url: str,
        method: str,
        headers: dict[str, str],
        body: Any,
    ) -> L402Result | None:
        """Serve the request with a cached credential; None means pay fresh."""
        credential = await self._credentials.get(domain)
        if credential is None:
            return None

        try:
            resource = await self._replay(
                url,
                method,
                headers,
                body,
                build_authorization(credential.macaroon, credential.preimage),
                retries=self._config.cached_replay_retries,
                stop_on_invalid=True,
            )
        except httpx.HTTPError as e:
            self._logger.info(f"Cached credential for {domain} failed ({e}), paying fresh")
            await self._credentials.evict(domain)
            return None

        if is_credential_invalid(resource.status, resource.data) or looks_unverified(
            resource.status, resource.data
        ):
            self._logger.info(f"Cached credential for {domain} rejected, paying fresh")
            await self._credentials.evict(domain)
            return None

        return L402Result(
            success=True, paid=False, cached=True, status=resource.status, data=resource.data
        )

    # -- flows ---------------------------------------------------------------

    async def fetch(
        self,
        identity: CallerIdentity,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: Any = None,
        max_fee_sats: int | None = None,
    ) -> L402Result:
        """
        Fetch a resource, paying its L402 challenge if there is one.

        Args:
            identity: Verified caller whose budget pays
            url: Resource URL
            method: HTTP method
            headers: Extra request headers
            body: JSON-serializable request body
            max_fee_sats: Routing fee ceiling (config default if None)

        Returns:
            L402Result; `status == "pending"` with a `pending_id` when the
            payment has not produced a preimage yet
        """
        headers = dict(headers or {})
        max_fee = max_fee_sats if max_fee_sats is not None else self._config.default_max_fee_sats
        domain = extract_domain(url)

        cached = await self._try_cached(domain, url, method, headers, body)
        if cached is not None:
            return cached

        try:
            response = await self._send(url, method, headers, body)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return L402Result.fail(FailureKind.L402_FETCH_ERROR, f"Failed to fetch {url}: {e}")

        if response.status_code != 402:
            return L402Result(
                success=True, paid=False, status=response.status_code, data=read_body(response)
            )

        try:
            challenge = self._parse_challenge(response, url)
            invoice = self._decode_amount(challenge, url)
        except L402Error as e:
            self._logger.warning(str(e))
            return L402Result.fail(e.kind, e.message)

        amount_sats = invoice.amount_sats
        fee_sats = await estimate_fee_or_default(self._wallet, challenge.invoice, max_fee)
        total_sats = amount_sats + fee_sats

        limits = identity.with_defaults(self._config)
        reserve = await self._budget.reserve(
            limits.caller_id, total_sats, limits.max_tx_sats, limits.daily_budget_sats
        )
        if not reserve.allowed:
            return L402Result.fail(reserve.code, reserve.reason)

        self._logger.info(
            f"Paying L402 invoice for {domain}: {amount_sats} sats + {fee_sats} fee "
            f"({identity.caller_id})"
        )
        try:
            submission = await with_stale_leaf_recovery(
                self._wallet,
                lambda: self._wallet.pay_lightning_invoice(challenge.invoice, max_fee),
            )
        except Exception as e:
            await self._abandon(limits.caller_id, total_sats, challenge.invoice, str(e))
            return L402Result.fail(FailureKind.PAYMENT_FAILED, f"L402 payment failed: {e}")

        try:
            outcome = await self._confirmer.resolve(submission)
        except Exception as e:
            await self._abandon(limits.caller_id, total_sats, challenge.invoice, str(e))
            return L402Result.fail(
                FailureKind.WALLET_ERROR, f"L402 payment could not be confirmed: {e}"
            )

        if outcome.pending:
            proof = await self._pending.create(
                payment_id=outcome.request_id,
                macaroon=challenge.macaroon,
                url=url,
                method=method,
                headers=headers,
                body=body,
                price_sats=challenge.price_sats,
                amount_sats=amount_sats,
                caller_id=limits.caller_id,
                reserved_sats=total_sats,
            )
            return L402Result(
                success=True,
                status="pending",
                pending_id=proof.pending_id,
                price_sats=challenge.price_sats,
                message=PENDING_MESSAGE,
            )

        if outcome.failed:
            await self._abandon(limits.caller_id, total_sats, challenge.invoice, outcome.reason)
            return L402Result.fail(outcome.kind or FailureKind.PAYMENT_FAILED, outcome.reason)

        await self._journal_payment(url, amount_sats)
        return await self._finish(
            url=url,
            method=method,
            headers=headers,
            body=body,
            macaroon=challenge.macaroon,
            preimage=outcome.preimage,
            price_sats=challenge.price_sats,
        )

    async def complete(self, identity: CallerIdentity, pending_id: str) -> L402Result:
        """
        Finish a payment that `fetch` returned as pending.

        Unknown ids (including ids owned by another caller) are NOT_FOUND,
        stale ones EXPIRED. A definitive wallet failure releases the budget
        and drops the record; a successful replay consumes it.
        """
        try:
            proof = await self._pending.load(pending_id)
        except PendingPaymentError as e:
            return L402Result.fail(e.kind, e.message)

        if proof.caller_id and proof.caller_id != identity.caller_id:
            return L402Result.fail(
                FailureKind.NOT_FOUND,
                "Pending L402 not found. It may have expired or already completed.",
            )

        outcome = await self._confirmer.resume(
            proof.payment_id, max_attempts=self._config.status_poll_attempts
        )

        if outcome.failed:
            await self._pending.delete(pending_id)
            if proof.caller_id and proof.reserved_sats:
                await self._budget.release(proof.caller_id, proof.reserved_sats)
            await self._journal.record(
                ActivityAction.ERROR,
                success=False,
                reference=proof.payment_id,
                error=outcome.reason,
            )
            return L402Result.fail(
                FailureKind.PAYMENT_FAILED, self._failure_message(outcome.reason)
            )

        if outcome.pending:
            return L402Result(
                success=True,
                status="pending",
                pending_id=pending_id,
                price_sats=proof.price_sats,
                message=STILL_PROCESSING_MESSAGE,
            )

        if not proof.confirmed:
            await self._journal_payment(proof.url, proof.amount_sats)
        result = await self._finish(
            url=proof.url,
            method=proof.method,
            headers=proof.headers,
            body=proof.body,
            macaroon=proof.macaroon,
            preimage=outcome.preimage,
            price_sats=proof.price_sats,
        )
        if result.success:
            await self._pending.delete(pending_id)
            return result

        result.pending_id = pending_id
        if not proof.confirmed:
            await self._pending.mark_confirmed(proof)
        return result

    async def _journal_payment(self, url: str, amount_sats: int | None) -> None:
        await self._journal.record(
            ActivityAction.L402_PAYMENT, amount_sats=amount_sats, reference=url
        )

    async def _abandon(
        self, caller_id: str, reserved_sats: int, invoice: str, error: str | None
    ) -> None:
        """Give back a reservation whose payment did not go through."""
        await self._budget.release(caller_id, reserved_sats)
        await self._journal.record(
            ActivityAction.ERROR, success=False, reference=invoice_key(invoice), error=error
        )

    @staticmethod
    def _failure_message(reason: str | None) -> str:
        if reason == "Payment request not found":
            return "Payment record not found on Spark. The payment may have failed or expired."
        return reason or "Payment failed"

    async def _finish(
        self,
        url: str,
        method: str,
        headers: dict[str, str],
        body: Any,
        macaroon: str,
        preimage: str,
        price_sats: int | None,
    ) -> L402Result:
        """Cache the credential and replay the request with the proof."""
        domain = extract_domain(url)
        try:
            await self._credentials.put(domain, macaroon, preimage)
        except Exception as e:
            self._logger.warning(f"Failed to cache L402 credential for {domain}: {e}")

        self._logger.info(f"Replaying {method} {url} with proof {redact(preimage)}")
        try:
            resource = await self._replay(
                url,
                method,
                headers,
                body,
                build_authorization(macaroon, preimage),
                retries=self._config.replay_retries,
            )
        except httpx.HTTPError as e:
            return L402Result.fail(
                FailureKind.L402_RETRY_EXHAUSTED,
                f"L402 retry failed: {e}",
                paid=True,
                preimage=preimage,
                price_sats=price_sats,
            )

        if looks_unverified(resource.status, resource.data):
            return L402Result.fail(
                FailureKind.L402_RETRY_EXHAUSTED,
                f"Resource still looks unverified after {self._config.replay_retries} retries",
                paid=True,
                status=resource.status,
                data=resource.data,
                preimage=preimage,
                price_sats=price_sats,
            )

        return L402Result(
            success=True,
            paid=True,
            status=resource.status,
            data=resource.data,
            preimage=preimage,
            price_sats=price_sats,
        )

    async def preview(
        self,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
    ) -> OperationResult:
        """Report what a resource would cost, without paying."""
        try:
            response = await self._send(url, method, dict(headers or {}), None)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            return OperationResult.fail(
                FailureKind.L402_FETCH_ERROR, f"Failed to fetch {url}: {e}"
            )

        if response.status_code != 402:
            return OperationResult.ok(
                {"requires_payment": False, "status": response.status_code}
            )

        try:
            challenge = self._parse_challenge(response, url)
            invoice = self._decode_amount(challenge, url)
        except L402Error as e:
            return OperationResult.fail(e.kind, e.message)

        return OperationResult.ok(
            {
                "requires_payment": True,
                "invoice_amount_sats": invoice.amount_sats,
                "price_sats": challenge.price_sats,
                "invoice": challenge.invoice,
                "macaroon": challenge.macaroon,
                "expiry_timestamp": invoice.expiry_timestamp,
            }
        )


__all__ = ["L402Client", "ResourceResponse", "read_body"]
