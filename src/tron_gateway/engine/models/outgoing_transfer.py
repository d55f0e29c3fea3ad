"""OutgoingTransfer model: sweeps from custodial wallets to the master wallet."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - SQLAlchemy needs this at runtime for Mapped[datetime]
from decimal import Decimal  # noqa: TC003

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tron_gateway.domain.enums import TransactionStatus
from tron_gateway.engine.models.base import Base, TimestampMixin


class OutgoingTransfer(Base, TimestampMixin):
    """A settlement request and its on-chain outcome.

    ``tx_hash`` is set exactly when ``status`` is COMPLETED; terminal rows
    are never updated again.
    """

    __tablename__ = "outgoing_transfers"
    __table_args__ = (Index("ix_outgoing_transfers_status_created", "status", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    from_wallet_id: Mapped[int] = mapped_column(
        ForeignKey("wallets.id"), nullable=False, index=True
    )
    to_address: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False, comment="Order amount (token units)")
    gas_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    commission: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    fee_source: Mapped[str | None] = mapped_column(String(16), nullable=True)
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=TransactionStatus.PENDING.value,
        comment="PENDING | PROCESSING | COMPLETED | FAILED | CANCELLED",
    )
    tx_hash: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    reference_id: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<OutgoingTransfer id={self.id} status={self.status}>"
