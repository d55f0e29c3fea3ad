"""V1 REST API routes, mounted under ``/api/v1``."""

from fastapi import APIRouter

from tron_gateway.api.v1.tokens import router as tokens_router
from tron_gateway.api.v1.transfers import router as transfers_router
from tron_gateway.api.v1.wallets import router as wallets_router

v1_router = APIRouter(prefix="/api/v1")

v1_router.include_router(wallets_router)
v1_router.include_router(transfers_router)
v1_router.include_router(tokens_router)

__all__ = ["v1_router"]
