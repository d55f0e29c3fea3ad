"""TRON network implementation (TronGrid HTTP API, secp256k1 keys)."""

from tron_gateway.chain.tron.client import TronGridClient
from tron_gateway.chain.tron.crypto import TronTransactionSigner, TronWalletGenerator

__all__ = ["TronGridClient", "TronTransactionSigner", "TronWalletGenerator"]
