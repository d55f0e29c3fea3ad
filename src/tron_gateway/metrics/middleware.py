"""Prometheus HTTP request metrics middleware for FastAPI.

Requests are labelled by route template (``/api/v1/wallets/{wallet_id}``)
rather than the concrete URL, so ids do not create new series.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from prometheus_client import CollectorRegistry
    from starlette.requests import Request
    from starlette.responses import Response


def _route_template(request: Request) -> str:
    for route in request.app.routes:
        match, _ = route.matches(request.scope)
        if match is Match.FULL:
            return getattr(route, "path", request.url.path)
    return "unmatched"


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Records request count and latency per method, route and status."""

    def __init__(self, app: object, *, registry: CollectorRegistry) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._requests = Counter(
            "tron_gateway_http_requests_total",
            "HTTP requests handled",
            ("method", "route", "status_code"),
            registry=registry,
        )
        self._latency = Histogram(
            "tron_gateway_http_request_duration_seconds",
            "HTTP request latency in seconds",
            ("method", "route"),
            registry=registry,
        )

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        route = _route_template(request)
        start = time.monotonic()
        response: Response = await call_next(request)
        self._latency.labels(method=request.method, route=route).observe(
            time.monotonic() - start
        )
        self._requests.labels(
            method=request.method, route=route, status_code=str(response.status_code)
        ).inc()
        return response
