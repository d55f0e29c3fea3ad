"""Exponential-backoff retry wrapper for network calls.

Only ``NetworkError`` (and raw httpx transport errors, which are classified
on the way in) are retried. Validation and not-found errors propagate on
the first attempt.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, TypeVar

import httpx

from tron_gateway.config.settings import RetryConfig
from tron_gateway.errors.network_errors import (
    NetworkError,
    NetworkErrorKind,
    classify_transport_error,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """Retry an async operation with capped exponential backoff.

    Usage::

        policy = RetryPolicy(config.retry)
        balance = await policy.call("get_balance", lambda: client.get(...))
    """

    def __init__(self, config: RetryConfig | None = None) -> None:
        self._config = config or RetryConfig()

    @property
    def max_attempts(self) -> int:
        return self._config.max_attempts

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number *attempt* (1-based)."""
        delay = self._config.initial_delay * self._config.backoff_multiplier ** (attempt - 1)
        return min(delay, self._config.max_delay)

    async def call(self, operation: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Run *fn* until it succeeds, fails permanently, or attempts run out.

        Raises:
            NetworkError: The last error seen, once retries are exhausted or
                the error is not retryable.
        """
        last_error: NetworkError | None = None
        for attempt in range(1, self._config.max_attempts + 1):
            try:
                return await fn()
            except NetworkError as exc:
                last_error = exc
            except httpx.HTTPError as exc:
                last_error = classify_transport_error(exc)

            if not last_error.retryable:
                logger.warning("%s failed permanently: %s", operation, last_error.message)
                raise last_error
            if attempt == self._config.max_attempts:
                break

            delay = self.delay_for(attempt)
            if last_error.kind is NetworkErrorKind.RATE_LIMIT:
                delay += self._config.rate_limit_delay
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                operation,
                attempt,
                self._config.max_attempts,
                last_error.message,
                delay,
            )
            await asyncio.sleep(delay)

        logger.error(
            "%s failed after %d attempts: %s",
            operation,
            self._config.max_attempts,
            last_error.message if last_error else "unknown error",
        )
        assert last_error is not None
        raise last_error
