"""Tests for the error taxonomy."""

from __future__ import annotations

from decimal import Decimal

import httpx
import pytest

from tron_gateway.errors import (
    ConfigurationError,
    CryptoError,
    GatewayError,
    InsufficientBalanceError,
    NetworkError,
    NetworkErrorKind,
    NotFoundError,
    TransferNotFoundError,
    ValidationError,
    WalletNotFoundError,
)
from tron_gateway.errors.network_errors import classify_http_status, classify_transport_error

# ---------------------------------------------------------------------------
# GatewayError base class
# ---------------------------------------------------------------------------


class TestGatewayError:
    def test_default_attributes(self) -> None:
        err = GatewayError("something broke")
        assert str(err) == "something broke"
        assert err.message == "something broke"
        assert err.status_code == 500
        assert err.code == "gateway-error"

    def test_custom_attributes(self) -> None:
        err = GatewayError("bad request", status_code=400, code="bad-req")
        assert err.status_code == 400
        assert err.code == "bad-req"


# ---------------------------------------------------------------------------
# Domain kinds
# ---------------------------------------------------------------------------


class TestDomainErrors:
    def test_not_found_kinds(self) -> None:
        wallet = WalletNotFoundError(7)
        transfer = TransferNotFoundError("ref-1")
        assert isinstance(wallet, NotFoundError)
        assert wallet.status_code == 404
        assert wallet.code == "wallet-not-found"
        assert transfer.code == "transfer-not-found"
        assert "ref-1" in transfer.message

    def test_validation_carries_field(self) -> None:
        err = ValidationError("amount", "must be greater than zero")
        assert err.status_code == 400
        assert err.field == "amount"
        assert err.message == "invalid amount: must be greater than zero"

    def test_insufficient_balance(self) -> None:
        err = InsufficientBalanceError(required=Decimal("203"), available=Decimal("100"))
        assert err.status_code == 422
        assert err.required == Decimal("203")
        assert err.available == Decimal("100")
        assert "203" in err.message

    @pytest.mark.parametrize("cls", [CryptoError, ConfigurationError])
    def test_internal_errors_are_500(self, cls: type[GatewayError]) -> None:
        assert cls("x").status_code == 500


# ---------------------------------------------------------------------------
# Network classification
# ---------------------------------------------------------------------------


class TestNetworkError:
    @pytest.mark.parametrize(
        ("status", "kind"),
        [
            (408, NetworkErrorKind.RATE_LIMIT),
            (429, NetworkErrorKind.RATE_LIMIT),
            (400, NetworkErrorKind.PERMANENT),
            (404, NetworkErrorKind.PERMANENT),
            (500, NetworkErrorKind.TEMPORARY),
            (503, NetworkErrorKind.TEMPORARY),
            (302, NetworkErrorKind.NETWORK),
        ],
    )
    def test_classify_http_status(self, status: int, kind: NetworkErrorKind) -> None:
        err = classify_http_status(status)
        assert err.kind is kind
        assert err.http_status == status
        assert err.status_code == 502

    def test_only_permanent_is_not_retryable(self) -> None:
        assert not NetworkError("x", kind=NetworkErrorKind.PERMANENT).retryable
        assert NetworkError("x", kind=NetworkErrorKind.TEMPORARY).retryable
        assert NetworkError("x").retryable

    def test_rate_limit_adds_delay(self) -> None:
        assert NetworkError("x", kind=NetworkErrorKind.RATE_LIMIT).additional_delay > 0
        assert NetworkError("x", kind=NetworkErrorKind.NETWORK).additional_delay == 0

    def test_classify_timeout(self) -> None:
        err = classify_transport_error(httpx.ReadTimeout("slow"))
        assert err.kind is NetworkErrorKind.NETWORK
        assert "timed out" in err.message

    def test_classify_connect_error(self) -> None:
        err = classify_transport_error(httpx.ConnectError("refused"))
        assert err.kind is NetworkErrorKind.NETWORK
        assert "connection failed" in err.message
