"""Webhook delivery: signed POSTs with bounded retries.

Events are queued by the services and delivered by a single consumer
task, so a slow endpoint never stalls a transfer or a monitor scan.
Delivery is at-least-once: a retried POST may arrive twice.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import TYPE_CHECKING

import httpx

from tron_gateway.chain.retry import RetryPolicy
from tron_gateway.domain.enums import WebhookEventType
from tron_gateway.errors.network_errors import NetworkError, classify_http_status
from tron_gateway.notifications.events import (
    WebhookEvent,
    incoming_transaction_event,
    outgoing_transfer_event,
    wallet_activated_event,
    wallet_created_event,
)
from tron_gateway.utils.crypto import hmac_sha256_hex

if TYPE_CHECKING:
    from tron_gateway.config.settings import RetryConfig, WebhookConfig
    from tron_gateway.engine.models import IncomingTransaction, OutgoingTransfer, Wallet

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Webhook-Signature"
TEST_HEADER = "X-Webhook-Test"
USER_AGENT = "TRON-Gateway-Webhook/1.0"
CHANNEL_BUFFER = 1000


def sign_body(secret: str, body: bytes) -> str:
    """Header value for *body*: ``sha256=<hex hmac>``."""
    return f"sha256={hmac_sha256_hex(secret, body)}"


class WebhookNotifier:
    """Delivers gateway events to the configured webhook URL.

    A disabled notifier (no URL or ``enabled=False``) accepts and drops
    every event.
    """

    def __init__(self, config: WebhookConfig, retry: RetryConfig | None = None) -> None:
        self._config = config
        self._retry = RetryPolicy(retry)
        self._queue: asyncio.Queue[WebhookEvent] = asyncio.Queue(maxsize=CHANNEL_BUFFER)
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self._client: httpx.AsyncClient | None = None

    @property
    def enabled(self) -> bool:
        return self._config.enabled and bool(self._config.url)

    @property
    def url(self) -> str:
        return self._config.url

    @property
    def pending(self) -> int:
        """Events waiting for delivery."""
        return self._queue.qsize()

    async def start(self) -> None:
        """Start the consumer loop."""
        if self._running or not self.enabled:
            return
        self._running = True
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.timeout_seconds,
                headers={"User-Agent": USER_AGENT},
            )
        self._task = asyncio.create_task(self._consumer())

    async def stop(self) -> None:
        """Stop the consumer and close the HTTP client."""
        self._running = False
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        if self._client:
            await self._client.aclose()
            self._client = None

    def enqueue(self, event: WebhookEvent) -> None:
        """Add an event to the delivery queue (non-blocking)."""
        if not self.enabled:
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(
                "Webhook queue full, dropping %s event", event.event_type.value
            )

    # -- typed helpers ---------------------------------------------------

    def notify_incoming_transaction(self, tx: IncomingTransaction, wallet_address: str) -> None:
        self.enqueue(incoming_transaction_event(tx, wallet_address))

    def notify_outgoing_transfer(self, transfer: OutgoingTransfer) -> None:
        self.enqueue(outgoing_transfer_event(transfer))

    def notify_wallet_created(self, wallet: Wallet) -> None:
        self.enqueue(wallet_created_event(wallet))

    def notify_wallet_activated(self, wallet: Wallet, tx_hash: str) -> None:
        self.enqueue(wallet_activated_event(wallet, tx_hash))

    # -- delivery --------------------------------------------------------

    async def deliver(self, event: WebhookEvent) -> None:
        """POST one event, retrying transient failures.

        Raises:
            NetworkError: When every attempt failed or the endpoint rejected it.
        """
        body = json.dumps(event.to_dict(), separators=(",", ":")).encode("utf-8")
        await self._retry.call(
            f"webhook {event.event_type.value}",
            lambda: self._post(body, {}),
        )
        logger.debug("Webhook %s delivered to %s", event.event_type.value, self._config.url)

    async def health_check(self) -> bool:
        """POST a test payload once; True on a 2xx answer."""
        if not self.enabled:
            return False
        event = WebhookEvent(
            event_type=WebhookEventType.OUTGOING_TRANSFER,
            data={"test": True, "message": "webhook health check"},
        )
        body = json.dumps(event.to_dict(), separators=(",", ":")).encode("utf-8")
        try:
            await self._post(body, {TEST_HEADER: "true"})
        except (NetworkError, httpx.HTTPError) as exc:
            logger.warning("Webhook health check failed: %s", exc)
            return False
        return True

    async def _post(self, body: bytes, extra_headers: dict[str, str]) -> None:
        client = self._ensure_client()
        headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT, **extra_headers}
        if self._config.secret_key:
            headers[SIGNATURE_HEADER] = sign_body(self._config.secret_key, body)
        response = await client.post(self._config.url, content=body, headers=headers)
        if response.status_code >= 300:
            raise classify_http_status(
                response.status_code,
                f"webhook returned {response.status_code}",
            )

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.timeout_seconds,
                headers={"User-Agent": USER_AGENT},
            )
        return self._client

    async def _consumer(self) -> None:
        while self._running:
            try:
                event = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except TimeoutError:
                continue
            try:
                await self.deliver(event)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Webhook delivery of %s failed", event.event_type.value)
