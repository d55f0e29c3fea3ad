"""FastAPI dependency helpers.

Usage in a route::

    @router.get("/wallets/{wallet_id}")
    async def get_wallet(
        wallet_id: int,
        engine: Annotated[GatewayEngine, Depends(get_engine)],
    ) -> ...:
        ...
"""

from __future__ import annotations

from fastapi import Request

from tron_gateway.engine.client import GatewayEngine  # noqa: TC001
from tron_gateway.errors import GatewayError


def get_engine(request: Request) -> GatewayEngine:
    """Retrieve the engine stored on ``app.state`` during lifespan startup.

    Raises:
        GatewayError: 503 if the engine is missing or already closed.
    """
    engine: GatewayEngine | None = getattr(request.app.state, "engine", None)
    if engine is None or not engine.is_initialized:
        raise GatewayError("engine not available", status_code=503, code="engine-unavailable")
    return engine
