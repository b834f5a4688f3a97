"""
Protocols module - paying for HTTP resources.

Example:
    >>> from sparkgate.protocols import looks_unverified
    >>> looks_unverified(200, {"status": "pending"})
    True
"""

from sparkgate.protocols.challenge import (
    L402Challenge,
    extract_domain,
    is_credential_invalid,
    looks_unverified,
    parse_challenge_body,
    parse_www_authenticate,
)
from sparkgate.protocols.credentials import CachedCredential, CredentialCache
from sparkgate.protocols.invoice import DecodedInvoice, decode_invoice
from sparkgate.protocols.l402 import L402Client

__all__ = [
    "L402Client",
    "L402Challenge",
    "CachedCredential",
    "CredentialCache",
    "DecodedInvoice",
    "decode_invoice",
    "extract_domain",
    "is_credential_invalid",
    "looks_unverified",
    "parse_challenge_body",
    "parse_www_authenticate",
]
