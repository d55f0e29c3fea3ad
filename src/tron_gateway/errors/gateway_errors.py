"""GatewayError: base exception class and domain error kinds."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from decimal import Decimal


class GatewayError(Exception):
    """Base error for all gateway operations.

    Attributes:
        message: Human-readable error description.
        status_code: Suggested HTTP status code.
        code: Machine-readable error code string.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 500,
        code: str = "gateway-error",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class NotFoundError(GatewayError):
    """A record looked up by key does not exist."""

    def __init__(self, kind: str, id: object) -> None:  # noqa: A002
        super().__init__(f"{kind} not found: {id}", status_code=404, code=f"{kind}-not-found")
        self.kind = kind
        self.id = id


class WalletNotFoundError(NotFoundError):
    def __init__(self, id: object) -> None:  # noqa: A002
        super().__init__("wallet", id)


class TransferNotFoundError(NotFoundError):
    def __init__(self, id: object) -> None:  # noqa: A002
        super().__init__("transfer", id)


class ValidationError(GatewayError):
    """A request field failed server-side validation."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"invalid {field}: {reason}", status_code=400, code="validation-error")
        self.field = field
        self.reason = reason


class InsufficientBalanceError(GatewayError):
    """Wallet balance does not cover the quoted total."""

    def __init__(self, required: Decimal, available: Decimal) -> None:
        super().__init__(
            f"insufficient balance: required {required}, available {available}",
            status_code=422,
            code="insufficient-balance",
        )
        self.required = required
        self.available = available


class CryptoError(GatewayError):
    """Key generation or signing failed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=500, code="crypto-error")


class ConfigurationError(GatewayError):
    """Settings are missing or inconsistent."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=500, code="configuration-error")
