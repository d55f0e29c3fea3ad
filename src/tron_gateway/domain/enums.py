"""Domain enumerations."""

from __future__ import annotations

import enum


class TransactionStatus(enum.StrEnum):
    """Lifecycle status shared by outgoing transfers and incoming transactions."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (
            TransactionStatus.COMPLETED,
            TransactionStatus.FAILED,
            TransactionStatus.CANCELLED,
        )


class CongestionLevel(enum.StrEnum):
    """Coarse network load classification."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_load(cls, load: float) -> CongestionLevel:
        """Classify a 0..1 load metric: < 0.3 low, < 0.7 medium, otherwise high."""
        if load < 0.3:
            return cls.LOW
        if load < 0.7:
            return cls.MEDIUM
        return cls.HIGH


class FeeSource(enum.StrEnum):
    """Which pricing tier produced a quote's gas cost."""

    DYNAMIC = "dynamic"
    STATIC = "static"
    FALLBACK = "fallback"


class SponsorshipStatus(enum.StrEnum):
    """Result of a gas top-up attempt."""

    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


class WebhookEventType(enum.StrEnum):
    """Events delivered to the configured webhook URL."""

    INCOMING_TRANSACTION = "incoming_transaction"
    OUTGOING_TRANSFER = "outgoing_transfer"
    TRANSFER_COMPLETED = "transfer_completed"
    TRANSFER_FAILED = "transfer_failed"
    WALLET_CREATED = "wallet_created"
    WALLET_ACTIVATED = "wallet_activated"
