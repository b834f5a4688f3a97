"""Unit tests for the exception hierarchy."""

import pytest

from sparkgate.core.exceptions import (
    ConfigurationError,
    L402Error,
    PendingPaymentError,
    SparkGateError,
    ValidationError,
    WalletError,
)
from sparkgate.core.types import FailureKind


class TestExceptionHierarchy:
    @pytest.mark.parametrize(
        "error",
        [
            ConfigurationError("x"),
            ValidationError("x"),
            WalletError("x"),
            L402Error("x", stage="parse", kind=FailureKind.L402_PARSE_ERROR),
            PendingPaymentError("x", pending_id="p"),
        ],
    )
    def test_all_inherit_from_base(self, error):
        assert isinstance(error, SparkGateError)

    def test_default_kinds(self):
        assert SparkGateError("x").kind == FailureKind.WALLET_ERROR
        assert ValidationError("x").kind == FailureKind.BAD_REQUEST
        assert PendingPaymentError("x", pending_id="p").kind == FailureKind.NOT_FOUND

    def test_validation_error_kind_override(self):
        error = ValidationError("no amount", kind=FailureKind.INVALID_AMOUNT)
        assert error.kind == FailureKind.INVALID_AMOUNT


class TestExceptionMessages:
    def test_details_in_str(self):
        error = SparkGateError("failed", details={"id": "r1"})

        assert error.message == "failed"
        assert str(error) == "failed | Details: {'id': 'r1'}"

    def test_wallet_error_keeps_status(self):
        error = WalletError("Failed to request leaves swap", status_code=500)

        assert str(error) == "Failed to request leaves swap"
        assert error.status_code == 500

    def test_l402_error_str(self):
        error = L402Error(
            "missing invoice",
            stage="challenge",
            kind=FailureKind.L402_INVALID_CHALLENGE,
            url="https://api.example.com",
        )

        assert str(error) == "[l402:challenge] missing invoice (URL: https://api.example.com)"
        assert error.message == "missing invoice"
