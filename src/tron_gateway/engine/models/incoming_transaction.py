"""IncomingTransaction model: deposits detected on custodial wallets."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - SQLAlchemy needs this at runtime for Mapped[datetime]
from decimal import Decimal  # noqa: TC003

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tron_gateway.domain.enums import TransactionStatus
from tron_gateway.engine.models.base import Base, utcnow


class IncomingTransaction(Base):
    """One inbound token transfer, recorded once per (wallet, tx_hash)."""

    __tablename__ = "incoming_transactions"
    __table_args__ = (
        UniqueConstraint("wallet_id", "tx_hash", name="uq_incoming_wallet_tx"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wallet_id: Mapped[int] = mapped_column(ForeignKey("wallets.id"), nullable=False, index=True)
    tx_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    block_number: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    from_address: Mapped[str] = mapped_column(String(64), nullable=False)
    to_address: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=TransactionStatus.PENDING.value,
        comment="PENDING | PROCESSING | COMPLETED",
    )
    detected_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<IncomingTransaction wallet={self.wallet_id} tx={self.tx_hash[:16]}>"
