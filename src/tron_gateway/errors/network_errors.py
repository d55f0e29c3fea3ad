"""Network errors raised by the TronGrid client and webhook emitter."""

from __future__ import annotations

import enum

import httpx

from tron_gateway.errors.gateway_errors import GatewayError

# Extra wait applied on top of backoff after a rate-limit response
RATE_LIMIT_DELAY = 5.0


class NetworkErrorKind(enum.StrEnum):
    """How a failed network call should be treated by the retry wrapper."""

    TEMPORARY = "temporary"
    NETWORK = "network"
    RATE_LIMIT = "rate_limit"
    PERMANENT = "permanent"


class NetworkError(GatewayError):
    """A call to an external HTTP endpoint failed.

    Attributes:
        kind: Classification driving retry behaviour.
        http_status: Upstream status code, if a response was received.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: NetworkErrorKind = NetworkErrorKind.NETWORK,
        http_status: int | None = None,
    ) -> None:
        super().__init__(message, status_code=502, code=f"network-{kind.value}")
        self.kind = kind
        self.http_status = http_status

    @property
    def retryable(self) -> bool:
        """Everything except PERMANENT is worth another attempt."""
        return self.kind is not NetworkErrorKind.PERMANENT

    @property
    def additional_delay(self) -> float:
        """Seconds to add to the backoff delay before the next attempt."""
        return RATE_LIMIT_DELAY if self.kind is NetworkErrorKind.RATE_LIMIT else 0.0


def classify_http_status(status: int, message: str = "") -> NetworkError:
    """Map a non-2xx HTTP status to a ``NetworkError``.

    408 and 429 are rate limits, remaining 4xx are permanent, and 5xx are
    temporary. Anything else is treated as a generic network failure.
    """
    detail = message or f"HTTP {status}"
    if status in (408, 429):
        kind = NetworkErrorKind.RATE_LIMIT
    elif 400 <= status < 500:
        kind = NetworkErrorKind.PERMANENT
    elif 500 <= status < 600:
        kind = NetworkErrorKind.TEMPORARY
    else:
        kind = NetworkErrorKind.NETWORK
    return NetworkError(detail, kind=kind, http_status=status)


def classify_transport_error(exc: httpx.HTTPError) -> NetworkError:
    """Map an httpx transport exception (timeout, refused connection...) to a ``NetworkError``."""
    if isinstance(exc, httpx.TimeoutException):
        return NetworkError(f"request timed out: {exc}", kind=NetworkErrorKind.NETWORK)
    if isinstance(exc, httpx.HTTPStatusError):
        return classify_http_status(exc.response.status_code, str(exc))
    return NetworkError(f"connection failed: {exc}", kind=NetworkErrorKind.NETWORK)
