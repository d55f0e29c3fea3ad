"""Shared fixtures: in-memory SQLite config and fake chain collaborators."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import pytest

from tron_gateway.chain.gateway import GeneratedWallet, NetworkMetrics, TokenTransferRecord
from tron_gateway.chain.tron.address import hex_to_address
from tron_gateway.config.settings import (
    AppConfig,
    DatabaseConfig,
    DatabaseEngine,
    FeeConfig,
    GasSponsorshipConfig,
    MetricsConfig,
    SchedulerConfig,
    TronConfig,
    WebhookConfig,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from tron_gateway.engine.client import GatewayEngine
    from tron_gateway.errors import GatewayError

MASTER_PRIVATE_KEY = "11" * 32


def make_address(n: int) -> str:
    """Deterministic, checksum-valid TRON address for index *n*."""
    return hex_to_address(f"41{n:040x}")


class FakeGateway:
    """In-memory ``NetworkGateway``.

    Set ``fail[operation]`` to an error instance to make that call raise.
    """

    def __init__(self) -> None:
        self.native_balances: dict[str, Decimal] = {}
        self.token_balances: dict[str, int] = {}
        self.fee_trx = Decimal("20")
        self.network = NetworkMetrics(energy_price=420, bandwidth_price=1000, load=0.5)
        self.incoming: dict[str, list[TokenTransferRecord]] = {}
        self.fail: dict[str, GatewayError] = {}
        self.healthy = True
        self.calls: list[str] = []
        self.native_built: list[tuple[str, str, Decimal]] = []
        self.token_built: list[tuple[str, str, int]] = []
        self.broadcasts: list[dict[str, Any]] = []
        self._tx_counter = 0

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        error = self.fail.get(operation)
        if error is not None:
            raise error

    async def get_native_balance(self, address: str) -> Decimal:
        self._enter("get_native_balance")
        return self.native_balances.get(address, Decimal(0))

    async def get_token_balance(self, address: str, contract: str | None = None) -> int:
        self._enter("get_token_balance")
        return self.token_balances.get(address, 0)

    async def estimate_fee(self, from_address: str, to_address: str, amount: int) -> Decimal:
        self._enter("estimate_fee")
        return self.fee_trx

    async def build_native_transfer(
        self, from_address: str, to_address: str, amount: Decimal
    ) -> dict[str, Any]:
        self._enter("build_native_transfer")
        self.native_built.append((from_address, to_address, amount))
        return {"type": "native", "from": from_address, "to": to_address, "amount": str(amount)}

    async def build_token_transfer(
        self, from_address: str, to_address: str, amount: int, contract: str | None = None
    ) -> dict[str, Any]:
        self._enter("build_token_transfer")
        self.token_built.append((from_address, to_address, amount))
        return {"type": "token", "from": from_address, "to": to_address, "amount": amount}

    async def broadcast(self, signed_tx: dict[str, Any]) -> str:
        self._enter("broadcast")
        self._tx_counter += 1
        self.broadcasts.append(signed_tx)
        return f"{self._tx_counter:064x}"

    async def list_recent_token_transfers(
        self, address: str, contract: str | None = None, limit: int = 50
    ) -> list[TokenTransferRecord]:
        self._enter("list_recent_token_transfers")
        # Yield so concurrent scans interleave.
        await asyncio.sleep(0)
        return list(self.incoming.get(address, []))[:limit]

    async def get_network_metrics(self) -> NetworkMetrics:
        self._enter("get_network_metrics")
        return self.network

    async def ping(self) -> bool:
        return self.healthy


class FakeSigner:
    def sign(self, unsigned_tx: dict[str, Any], private_key: str) -> dict[str, Any]:
        return {**unsigned_tx, "signature": [f"signed-by-{private_key[:8]}"]}


class FakeWalletGenerator:
    def __init__(self, start: int = 1000) -> None:
        self._next = start

    def generate(self) -> GeneratedWallet:
        self._next += 1
        address = make_address(self._next)
        return GeneratedWallet(
            address=address,
            hex_address=f"41{self._next:040x}",
            private_key=f"{self._next:064x}",
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def address_factory() -> Callable[[int], str]:
    return make_address


@pytest.fixture
def master_address() -> str:
    return make_address(1)


@pytest.fixture
def app_config(master_address: str) -> AppConfig:
    """Test config: in-memory DB, static fees, no scheduler, webhook or settle delay."""
    return AppConfig(
        db=DatabaseConfig(engine=DatabaseEngine.SQLITE, dsn="sqlite+aiosqlite:///:memory:"),
        tron=TronConfig(
            master_wallet_address=master_address,
            master_wallet_private_key=MASTER_PRIVATE_KEY,
        ),
        fees=FeeConfig(dynamic_fees_enabled=False),
        gas_sponsorship=GasSponsorshipConfig(settle_delay_seconds=0),
        scheduler=SchedulerConfig(enabled=False),
        webhook=WebhookConfig(enabled=False),
        metrics=MetricsConfig(enabled=False),
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture
def generator() -> FakeWalletGenerator:
    return FakeWalletGenerator()


@pytest.fixture
async def engine(
    app_config: AppConfig,
    gateway: FakeGateway,
    signer: FakeSigner,
    generator: FakeWalletGenerator,
) -> AsyncIterator[GatewayEngine]:
    """Initialized engine wired to the fakes."""
    from tron_gateway.engine.client import GatewayEngine

    eng = GatewayEngine(app_config, gateway=gateway, signer=signer, generator=generator)
    await eng.initialize()
    yield eng
    await eng.close()
