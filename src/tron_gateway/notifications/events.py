"""Webhook event envelope and builders.

Every delivery is a JSON object ``{"event_type", "timestamp", "data"}``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from tron_gateway.domain.enums import TransactionStatus, WebhookEventType

if TYPE_CHECKING:
    from tron_gateway.engine.models import IncomingTransaction, OutgoingTransfer, Wallet


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class WebhookEvent:
    """Generic event envelope sent to the webhook URL."""

    event_type: WebhookEventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the wire payload."""
        return {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }


def incoming_transaction_event(tx: IncomingTransaction, wallet_address: str) -> WebhookEvent:
    return WebhookEvent(
        event_type=WebhookEventType.INCOMING_TRANSACTION,
        data={
            "wallet_id": tx.wallet_id,
            "wallet_address": wallet_address,
            "tx_hash": tx.tx_hash,
            "from_address": tx.from_address,
            "amount": str(tx.amount),
            "block_number": tx.block_number,
            "status": tx.status,
        },
    )


def outgoing_transfer_event(transfer: OutgoingTransfer) -> WebhookEvent:
    """Event for a transfer that reached a terminal status."""
    if transfer.status == TransactionStatus.COMPLETED:
        event_type = WebhookEventType.TRANSFER_COMPLETED
    elif transfer.status == TransactionStatus.FAILED:
        event_type = WebhookEventType.TRANSFER_FAILED
    else:
        event_type = WebhookEventType.OUTGOING_TRANSFER
    return WebhookEvent(
        event_type=event_type,
        data={
            "transfer_id": transfer.id,
            "wallet_id": transfer.from_wallet_id,
            "to_address": transfer.to_address,
            "amount": str(transfer.amount),
            "status": transfer.status,
            "tx_hash": transfer.tx_hash,
            "reference_id": transfer.reference_id,
            "error_message": transfer.error_message,
            "completed_at": _iso(transfer.completed_at),
        },
    )


def wallet_created_event(wallet: Wallet) -> WebhookEvent:
    return WebhookEvent(
        event_type=WebhookEventType.WALLET_CREATED,
        data={
            "wallet_id": wallet.id,
            "address": wallet.address,
            "owner_id": wallet.owner_id,
        },
    )


def wallet_activated_event(wallet: Wallet, tx_hash: str) -> WebhookEvent:
    return WebhookEvent(
        event_type=WebhookEventType.WALLET_ACTIVATED,
        data={
            "wallet_id": wallet.id,
            "address": wallet.address,
            "tx_hash": tx_hash,
        },
    )
