"""Unit tests for BOLT11 decoding."""

from types import SimpleNamespace

import pytest
from bolt11 import Bolt11, MilliSatoshi, TagChar, Tags, encode
from bolt11.exceptions import Bolt11Exception

from sparkgate.core.exceptions import ValidationError
from sparkgate.protocols.invoice import DecodedInvoice, decode_invoice

# Node key from the BOLT11 test vectors
NODE_KEY = "e126f68f7eafcc8b74f54d269fe206be715000f94dac067d1c04a8ca3b2db734"
PAYMENT_HASH = "0001020304050607080900010203040506070809000102030405060708090102"


def signed_invoice(amount_msat: int | None = None, payment_secret: str | None = "11" * 32) -> str:
    tags = Tags()
    tags.add(TagChar.payment_hash, PAYMENT_HASH)
    if payment_secret:
        tags.add(TagChar.payment_secret, payment_secret)
    tags.add(TagChar.description, "one joke")
    tags.add(TagChar.expire_time, 600)
    invoice = Bolt11(
        currency="bc",
        date=1_700_000_000,
        tags=tags,
        amount_msat=MilliSatoshi(amount_msat) if amount_msat else None,
    )
    return encode(invoice, NODE_KEY, ignore_exceptions=payment_secret is None)


class TestDecodedInvoice:
    def test_amount_rounds_up_to_sats(self):
        assert DecodedInvoice("ln", amount_msat=100_000).amount_sats == 100
        assert DecodedInvoice("ln", amount_msat=100_001).amount_sats == 101
        assert DecodedInvoice("ln", amount_msat=1).amount_sats == 1

    def test_amountless(self):
        assert DecodedInvoice("ln", amount_msat=None).amount_sats is None
        assert DecodedInvoice("ln", amount_msat=0).amount_sats is None

    def test_expiry_timestamp(self):
        invoice = DecodedInvoice("ln", 1000, timestamp=1_700_000_000, expiry_seconds=600)
        assert invoice.expiry_timestamp == 1_700_000_600
        assert DecodedInvoice("ln", 1000).expiry_timestamp is None


class TestDecodeInvoice:
    def test_maps_library_fields(self, monkeypatch):
        fake = SimpleNamespace(
            amount_msat=250_000, date=1_700_000_000, expiry=3600, payment_hash="ff" * 32
        )
        monkeypatch.setattr("sparkgate.protocols.invoice.bolt11_decode", lambda s: fake)

        invoice = decode_invoice("lnbc2500n1xyz")

        assert invoice.encoded == "lnbc2500n1xyz"
        assert invoice.amount_sats == 250
        assert invoice.timestamp == 1_700_000_000
        assert invoice.expiry_seconds == 3600
        assert invoice.payment_hash == "ff" * 32

    def test_amountless_invoice(self, monkeypatch):
        fake = SimpleNamespace(amount_msat=None, date=1, expiry=3600, payment_hash="00")
        monkeypatch.setattr("sparkgate.protocols.invoice.bolt11_decode", lambda s: fake)

        assert decode_invoice("lnbc1xyz").amount_sats is None

    @pytest.mark.parametrize("error", [Bolt11Exception("bad checksum"), ValueError("bad")])
    def test_decode_errors_become_validation_errors(self, monkeypatch, error):
        def boom(s):
            raise error

        monkeypatch.setattr("sparkgate.protocols.invoice.bolt11_decode", boom)

        with pytest.raises(ValidationError, match="Failed to decode invoice"):
            decode_invoice("garbage")


class TestDecodeSignedInvoice:
    def test_amount_and_expiry(self):
        encoded = signed_invoice(amount_msat=100_500)

        invoice = decode_invoice(encoded)

        assert encoded.startswith("lnbc1005n1")
        assert invoice.amount_msat == 100_500
        assert invoice.amount_sats == 101
        assert invoice.timestamp == 1_700_000_000
        assert invoice.expiry_seconds == 600
        assert invoice.expiry_timestamp == 1_700_000_600
        assert invoice.payment_hash == PAYMENT_HASH

    def test_amountless(self):
        invoice = decode_invoice(signed_invoice())

        assert invoice.amount_msat is None
        assert invoice.amount_sats is None

    def test_missing_payment_secret_is_rejected(self):
        with pytest.raises(ValidationError, match="payment_secret"):
            decode_invoice(signed_invoice(amount_msat=1000, payment_secret=None))

    def test_not_bech32(self):
        with pytest.raises(ValidationError, match="Failed to decode invoice"):
            decode_invoice("lnbc1notaninvoice")
