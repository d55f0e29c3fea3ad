"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest
from starlette.responses import Response

from tron_gateway import __version__
from tron_gateway.api.middleware.cors import setup_cors
from tron_gateway.api.v1 import v1_router
from tron_gateway.config.settings import AppConfig, load_config
from tron_gateway.engine.client import GatewayEngine
from tron_gateway.errors import GatewayError
from tron_gateway.metrics.collector import GatewayMetrics
from tron_gateway.metrics.middleware import PrometheusMiddleware

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialise the engine (and scheduler) on startup, close it on exit.

    An engine handed to :func:`create_app` is used as-is and left open on
    shutdown; its owner closes it.
    """
    config: AppConfig = app.state.config
    provided: GatewayEngine | None = app.state.provided_engine
    engine = provided or GatewayEngine(config, metrics=app.state.metrics)

    try:
        await engine.initialize()
        app.state.engine = engine
        if config.scheduler.enabled:
            await engine.start_scheduler()
        logger.info("Gateway engine ready")
        yield
    finally:
        app.state.engine = None
        if provided is None:
            await engine.close()
            logger.info("Gateway engine shut down")


def create_app(config: AppConfig | None = None, *, engine: GatewayEngine | None = None) -> FastAPI:
    """Build and return the FastAPI application.

    Args:
        config: Optional AppConfig. If *None*, :func:`load_config` reads
            environment variables and ``TRONGW_CONFIG_PATH``.
        engine: Optional pre-built engine, used instead of constructing one.
    """
    if config is None:
        config = engine.config if engine is not None else load_config()

    app = FastAPI(
        title="tron-gateway",
        version=__version__,
        description="Custodial TRC-20 payment gateway",
        lifespan=_lifespan,
    )

    app.state.config = config
    app.state.provided_engine = engine
    app.state.engine = None
    app.state.metrics = GatewayMetrics() if config.metrics.enabled else None

    # -- Middleware --
    if config.server.cors_enabled:
        setup_cors(app)
    if app.state.metrics is not None:
        app.add_middleware(PrometheusMiddleware, registry=app.state.metrics.registry)

    # -- Error handler --
    @app.exception_handler(GatewayError)
    async def _gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": exc.code, "message": exc.message},
        )

    # -- Base routes --
    @app.get("/health", tags=["base"])
    async def health() -> JSONResponse:
        engine_: GatewayEngine | None = app.state.engine
        if engine_ is None:
            return JSONResponse(status_code=503, content={"status": "starting"})
        components = await engine_.health_check()
        healthy = all(v in ("ok", "disabled") for v in components.values())
        return JSONResponse(
            status_code=200 if healthy else 503,
            content={"status": "ok" if healthy else "degraded", "components": components},
        )

    @app.get("/metrics", tags=["base"], include_in_schema=False)
    async def metrics_endpoint() -> Response:
        """Prometheus metrics endpoint."""
        metrics: GatewayMetrics | None = app.state.metrics
        body = generate_latest(metrics.registry) if metrics is not None else b""
        return Response(
            content=body,
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    # -- Mount v1 API --
    app.include_router(v1_router)

    return app
