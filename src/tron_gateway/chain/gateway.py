"""Capability surfaces consumed by the settlement pipeline.

``NetworkGateway`` is everything the services need from the chain; ``Signer``
and ``WalletGenerator`` cover key material. ``TronGridClient`` and the
classes in ``chain.tron.crypto`` are the production implementations; tests
substitute in-memory fakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from decimal import Decimal

UnsignedTransaction = dict[str, Any]
SignedTransaction = dict[str, Any]


@dataclass(frozen=True)
class TokenTransferRecord:
    """One inbound or outbound TRC-20 transfer as reported by the network."""

    tx_hash: str
    from_address: str
    to_address: str
    value: int  # smallest token unit
    decimals: int
    confirmations: int
    block_number: int | None = None
    block_timestamp: int | None = None  # ms


@dataclass(frozen=True)
class NetworkMetrics:
    """Raw inputs for congestion pricing."""

    energy_price: int  # sun per energy unit
    bandwidth_price: int  # sun per byte
    load: float  # 0..1 utilisation of the latest block


@dataclass(frozen=True)
class GeneratedWallet:
    address: str
    hex_address: str
    private_key: str


class NetworkGateway(Protocol):
    async def get_native_balance(self, address: str) -> Decimal: ...

    async def get_token_balance(self, address: str, contract: str | None = None) -> int: ...

    async def estimate_fee(self, from_address: str, to_address: str, amount: int) -> Decimal: ...

    async def build_native_transfer(
        self, from_address: str, to_address: str, amount: Decimal
    ) -> UnsignedTransaction: ...

    async def build_token_transfer(
        self, from_address: str, to_address: str, amount: int, contract: str | None = None
    ) -> UnsignedTransaction: ...

    async def broadcast(self, signed_tx: SignedTransaction) -> str: ...

    async def list_recent_token_transfers(
        self, address: str, contract: str | None = None, limit: int = 50
    ) -> list[TokenTransferRecord]: ...

    async def get_network_metrics(self) -> NetworkMetrics: ...

    async def ping(self) -> bool: ...


class Signer(Protocol):
    def sign(self, unsigned_tx: UnsignedTransaction, private_key: str) -> SignedTransaction: ...


class WalletGenerator(Protocol):
    def generate(self) -> GeneratedWallet: ...
