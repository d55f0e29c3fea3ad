"""V1 wallet endpoints: create, look up, balances, per-wallet history."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from tron_gateway.api.dependencies import get_engine
from tron_gateway.api.v1.schemas import (
    IncomingTransactionResponse,
    TransferResponse,
    WalletBalanceResponse,
    WalletCreateRequest,
    WalletCreateResponse,
    WalletResponse,
)
from tron_gateway.engine.client import GatewayEngine  # noqa: TC001

router = APIRouter(prefix="/wallets", tags=["wallets"])


@router.post("", status_code=201)
async def create_wallet(
    engine: Annotated[GatewayEngine, Depends(get_engine)],
    body: WalletCreateRequest,
) -> dict:
    """Generate a custodial wallet; activation failure does not fail the call."""
    created = await engine.wallets.create_wallet(body.owner_id)
    return WalletCreateResponse(
        **WalletResponse.model_validate(created.wallet).model_dump(),
        activated=created.activated,
        activation_tx_hash=created.activation_tx_hash,
    ).model_dump(mode="json")


@router.get("/{wallet_id}")
async def get_wallet(
    wallet_id: int,
    engine: Annotated[GatewayEngine, Depends(get_engine)],
) -> dict:
    wallet = await engine.wallets.get_wallet(wallet_id)
    return WalletResponse.model_validate(wallet).model_dump(mode="json")


@router.get("/{wallet_id}/balance")
async def get_wallet_balance(
    wallet_id: int,
    engine: Annotated[GatewayEngine, Depends(get_engine)],
) -> dict:
    """USDT and TRX balances, queried from the network."""
    wallet = await engine.wallets.get_wallet(wallet_id)
    usdt, trx = await engine.wallets.get_wallet_balance(wallet_id)
    return WalletBalanceResponse(
        wallet_id=wallet.id,
        address=wallet.address,
        usdt_balance=usdt,
        trx_balance=trx,
    ).model_dump(mode="json")


@router.get("/{wallet_id}/transfers")
async def list_wallet_transfers(
    wallet_id: int,
    engine: Annotated[GatewayEngine, Depends(get_engine)],
) -> list[dict]:
    """Outgoing transfers from the wallet, newest first."""
    await engine.wallets.get_wallet(wallet_id)
    transfers = await engine.transfers.list_for_wallet(wallet_id)
    return [TransferResponse.model_validate(t).model_dump(mode="json") for t in transfers]


@router.get("/{wallet_id}/incoming")
async def list_wallet_incoming(
    wallet_id: int,
    engine: Annotated[GatewayEngine, Depends(get_engine)],
) -> list[dict]:
    """Recorded deposits to the wallet, newest first."""
    await engine.wallets.get_wallet(wallet_id)
    rows = await engine.monitor.list_for_wallet(wallet_id)
    return [IncomingTransactionResponse.model_validate(r).model_dump(mode="json") for r in rows]
