"""V1 transfer endpoints: preview, create, query, cancel."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from tron_gateway.api.dependencies import get_engine
from tron_gateway.api.v1.schemas import (
    FeeQuoteResponse,
    TransferCreateRequest,
    TransferPreviewResponse,
    TransferResponse,
)
from tron_gateway.engine.client import GatewayEngine  # noqa: TC001
from tron_gateway.engine.services.transfer_service import TransferRequest

router = APIRouter(prefix="/transfers", tags=["transfers"])


def _request(body: TransferCreateRequest) -> TransferRequest:
    return TransferRequest(
        from_wallet_id=body.from_wallet_id,
        order_amount=body.order_amount,
        reference_id=body.reference_id,
    )


def _transfer_resp(t: object) -> dict:
    return TransferResponse.model_validate(t).model_dump(mode="json")


@router.post("/preview")
async def preview_transfer(
    engine: Annotated[GatewayEngine, Depends(get_engine)],
    body: TransferCreateRequest,
) -> dict:
    """Full cost breakdown; nothing is stored."""
    preview = await engine.transfers.preview(_request(body))
    q = preview.quote
    return TransferPreviewResponse(
        from_wallet_id=preview.from_wallet_id,
        reference_id=preview.reference_id,
        quote=FeeQuoteResponse(
            order_amount=q.order_amount,
            gas_cost=q.gas_cost,
            percentage_commission=q.percentage_commission,
            final_commission=q.final_commission,
            total_amount=q.total_amount,
            fee_source=q.fee_source.value,
        ),
        master_wallet_receives=preview.master_wallet_receives,
        trx_to_usdt_rate=preview.trx_to_usdt_rate,
        breakdown=preview.breakdown,
    ).model_dump(mode="json")


@router.post("", status_code=201)
async def create_transfer(
    engine: Annotated[GatewayEngine, Depends(get_engine)],
    body: TransferCreateRequest,
) -> dict:
    """Queue a transfer to the master wallet as PENDING."""
    transfer = await engine.transfers.create(_request(body))
    return _transfer_resp(transfer)


@router.get("/reference/{reference_id}")
async def get_transfer_by_reference(
    reference_id: str,
    engine: Annotated[GatewayEngine, Depends(get_engine)],
) -> dict:
    return _transfer_resp(await engine.transfers.get_by_reference(reference_id))


@router.get("/tx/{tx_hash}")
async def get_transfer_by_tx_hash(
    tx_hash: str,
    engine: Annotated[GatewayEngine, Depends(get_engine)],
) -> dict:
    return _transfer_resp(await engine.transfers.get_by_tx_hash(tx_hash))


@router.get("/{transfer_id}")
async def get_transfer(
    transfer_id: int,
    engine: Annotated[GatewayEngine, Depends(get_engine)],
) -> dict:
    return _transfer_resp(await engine.transfers.get_by_id(transfer_id))


@router.post("/{transfer_id}/cancel")
async def cancel_transfer(
    transfer_id: int,
    engine: Annotated[GatewayEngine, Depends(get_engine)],
) -> dict:
    """Cancel a PENDING transfer (400 once it has left PENDING)."""
    return _transfer_resp(await engine.transfers.cancel(transfer_id))
