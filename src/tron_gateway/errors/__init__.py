"""Error taxonomy shared by services and the HTTP layer."""

from tron_gateway.errors.gateway_errors import (
    ConfigurationError,
    CryptoError,
    GatewayError,
    InsufficientBalanceError,
    NotFoundError,
    TransferNotFoundError,
    ValidationError,
    WalletNotFoundError,
)
from tron_gateway.errors.network_errors import NetworkError, NetworkErrorKind

__all__ = [
    "ConfigurationError",
    "CryptoError",
    "GatewayError",
    "InsufficientBalanceError",
    "NetworkError",
    "NetworkErrorKind",
    "NotFoundError",
    "TransferNotFoundError",
    "ValidationError",
    "WalletNotFoundError",
]
