"""
Test suite for L402 challenge parsing and response heuristics.
"""

import pytest

from sparkgate.protocols.challenge import (
    build_authorization,
    extract_domain,
    is_credential_invalid,
    looks_unverified,
    parse_challenge_body,
    parse_www_authenticate,
)


class TestParseChallengeBody:
    def test_canonical_fields(self):
        challenge = parse_challenge_body(
            {"invoice": "lnbc1", "macaroon": "mac", "price_sats": 21}
        )

        assert challenge.invoice == "lnbc1"
        assert challenge.macaroon == "mac"
        assert challenge.price_sats == 21

    @pytest.mark.parametrize(
        "body",
        [
            {"payment_request": "lnbc1", "token": "mac"},
            {"pr": "lnbc1", "macaroon": "mac"},
            {"invoice": "", "pr": "lnbc1", "macaroon": "", "token": "mac"},
        ],
    )
    def test_aliases(self, body):
        challenge = parse_challenge_body(body)

        assert challenge.invoice == "lnbc1"
        assert challenge.macaroon == "mac"
        assert challenge.price_sats is None

    @pytest.mark.parametrize(
        "body",
        [None, "text", ["lnbc1"], {"invoice": "lnbc1"}, {"macaroon": "mac"}, {}],
    )
    def test_incomplete(self, body):
        assert parse_challenge_body(body) is None

    def test_bool_price_is_ignored(self):
        challenge = parse_challenge_body({"invoice": "lnbc1", "macaroon": "m", "price_sats": True})
        assert challenge.price_sats is None


class TestParseWwwAuthenticate:
    def test_l402_header(self):
        challenge = parse_www_authenticate('L402 macaroon="mac", invoice="lnbc1"')

        assert challenge.macaroon == "mac"
        assert challenge.invoice == "lnbc1"

    def test_lsat_header_with_token_alias(self):
        challenge = parse_www_authenticate('LSAT token="mac", invoice="lnbc1"')
        assert challenge.macaroon == "mac"

    @pytest.mark.parametrize(
        "header", [None, "", 'Bearer realm="x"', 'L402 macaroon="mac"']
    )
    def test_unusable(self, header):
        assert parse_www_authenticate(header) is None


class TestHelpers:
    def test_build_authorization(self):
        assert build_authorization("mac", "pre") == "L402 mac:pre"

    @pytest.mark.parametrize(
        "url,domain",
        [
            ("https://api.example.com/joke", "api.example.com"),
            ("http://localhost:8080/x?y=1", "localhost:8080"),
            ("https://user:pw@api.example.com/", "api.example.com"),
            ("not a url", "not a url"),
        ],
    )
    def test_extract_domain(self, url, domain):
        assert extract_domain(url) == domain


class TestLooksUnverified:
    @pytest.mark.parametrize(
        "status,data",
        [
            (200, None),
            (200, ""),
            (200, "   "),
            (200, {"setup": None, "punchline": None}),
            (500, {"joke": "x"}),
            (402, {"invoice": "lnbc1"}),
            (200, {"error": "not paid"}),
            (200, {"status": "processing"}),
            (200, {"message": "Verifying payment"}),
        ],
    )
    def test_unverified(self, status, data):
        assert looks_unverified(status, data) is True

    @pytest.mark.parametrize(
        "status,data",
        [
            (200, {"setup": "Why?", "punchline": "Because."}),
            (200, "plain text resource"),
            (201, {"status": "ok"}),
            (200, {}),
            (200, [1, 2, 3]),
        ],
    )
    def test_verified(self, status, data):
        assert looks_unverified(status, data) is False


class TestIsCredentialInvalid:
    @pytest.mark.parametrize("status", [401, 402, 403])
    def test_rejecting_statuses(self, status):
        assert is_credential_invalid(status, None) is True

    def test_error_codes_and_expired_message(self):
        assert is_credential_invalid(200, {"error": "invalid_token"}) is True
        assert is_credential_invalid(200, {"error": "expired_token"}) is True
        assert is_credential_invalid(200, {"message": "Token EXPIRED"}) is True

    def test_valid(self):
        assert is_credential_invalid(200, {"joke": "x"}) is False
        assert is_credential_invalid(500, {"error": "upstream"}) is False
