"""Chain access: gateway protocols, retry policy and the TRON implementation."""

from tron_gateway.chain.gateway import (
    GeneratedWallet,
    NetworkGateway,
    NetworkMetrics,
    Signer,
    TokenTransferRecord,
    WalletGenerator,
)
from tron_gateway.chain.retry import RetryPolicy

__all__ = [
    "GeneratedWallet",
    "NetworkGateway",
    "NetworkMetrics",
    "RetryPolicy",
    "Signer",
    "TokenTransferRecord",
    "WalletGenerator",
]
