"""V1 token registry and fee statistics endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from tron_gateway.api.dependencies import get_engine
from tron_gateway.api.v1.schemas import FeeStatsResponse, TokenResponse
from tron_gateway.engine.client import GatewayEngine  # noqa: TC001

router = APIRouter(tags=["tokens"])


@router.get("/tokens")
async def list_tokens(
    engine: Annotated[GatewayEngine, Depends(get_engine)],
    include_disabled: bool = False,
) -> list[dict]:
    tokens = engine.tokens.supported_tokens(include_disabled=include_disabled)
    return [TokenResponse.model_validate(t).model_dump(mode="json") for t in tokens]


@router.get("/fees/stats")
async def fee_stats(
    engine: Annotated[GatewayEngine, Depends(get_engine)],
) -> dict:
    """Fee configuration and the cached network state."""
    return FeeStatsResponse(stats=engine.transfers.fee_stats()).model_dump(mode="json")
