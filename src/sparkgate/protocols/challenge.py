"""
L402 challenge parsing and response heuristics.

Paywalls are inconsistent about field names and about how they report a
payment they have not verified yet. The predicates here are deliberately
fuzzy and kept separate from the flow so they can be tuned on their own.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

INVOICE_ALIASES = ("invoice", "payment_request", "pr")
MACAROON_ALIASES = ("macaroon", "token")

UNVERIFIED_MESSAGE_MARKERS = ("payment", "verify", "pending", "processing")
INVALID_CREDENTIAL_STATUSES = frozenset({401, 402, 403})
INVALID_CREDENTIAL_ERRORS = frozenset({"invalid_token", "expired_token"})

_AUTH_SCHEMES = ("L402", "LSAT")
_AUTH_PARAM_RE = re.compile(r'(\w+)\s*=\s*"([^"]*)"')


@dataclass(frozen=True)
class L402Challenge:
    """A payable instruction plus the macaroon it unlocks."""

    invoice: str
    macaroon: str
    price_sats: int | None = None


def _first_truthy(obj: dict[str, Any], names: tuple[str, ...]) -> Any:
    for name in names:
        value = obj.get(name)
        if value:
            return value
    return None


def parse_challenge_body(body: Any) -> L402Challenge | None:
    """
    Extract a challenge from a 402 JSON body.

    Returns None when the body is not an object or the invoice or macaroon
    is missing under every recognised alias.
    """
    if not isinstance(body, dict):
        return None

    invoice = _first_truthy(body, INVOICE_ALIASES)
    macaroon = _first_truthy(body, MACAROON_ALIASES)
    if not isinstance(invoice, str) or not isinstance(macaroon, str):
        return None

    price = body.get("price_sats")
    price_sats = int(price) if isinstance(price, (int, float)) and not isinstance(price, bool) else None
    return L402Challenge(invoice=invoice, macaroon=macaroon, price_sats=price_sats)


def parse_www_authenticate(header: str | None) -> L402Challenge | None:
    """Parse `WWW-Authenticate: L402 macaroon="...", invoice="..."`."""
    if not header:
        return None
    scheme, _, params = header.strip().partition(" ")
    if scheme.upper() not in _AUTH_SCHEMES:
        return None
    values = {key.lower(): value for key, value in _AUTH_PARAM_RE.findall(params)}
    invoice = _first_truthy(values, INVOICE_ALIASES)
    macaroon = _first_truthy(values, MACAROON_ALIASES)
    if not invoice or not macaroon:
        return None
    return L402Challenge(invoice=invoice, macaroon=macaroon)


def build_authorization(macaroon: str, preimage: str) -> str:
    return f"L402 {macaroon}:{preimage}"


def extract_domain(url: str) -> str:
    """host[:port] of a URL; the URL itself if it has no host."""
    try:
        netloc = urlsplit(url).netloc
    except ValueError:
        return url
    return netloc.rpartition("@")[2] or url


def _is_empty(data: Any) -> bool:
    if data is None:
        return True
    if isinstance(data, str):
        return data.strip() == ""
    if isinstance(data, dict):
        return bool(data) and all(value is None for value in data.values())
    return False


def looks_unverified(status: int, data: Any) -> bool:
    """
    True if a replayed response suggests the server has not yet verified
    the payment.

    Signals: empty or all-null payload, a non-2xx status, an `error` key,
    a pending/processing status field, or a message mentioning
    payment, verification or processing.
    """
    if _is_empty(data):
        return True
    if status < 200 or status >= 300:
        return True
    if isinstance(data, dict):
        if "error" in data:
            return True
        if data.get("status") in ("pending", "processing"):
            return True
        message = data.get("message")
        if isinstance(message, str):
            lowered = message.lower()
            if any(marker in lowered for marker in UNVERIFIED_MESSAGE_MARKERS):
                return True
    return False


def is_credential_invalid(status: int, data: Any) -> bool:
    """True if a response rejects the presented credential outright."""
    if status in INVALID_CREDENTIAL_STATUSES:
        return True
    if isinstance(data, dict):
        if data.get("error") in INVALID_CREDENTIAL_ERRORS:
            return True
        message = data.get("message")
        if isinstance(message, str) and "expired" in message.lower():
            return True
    return False
