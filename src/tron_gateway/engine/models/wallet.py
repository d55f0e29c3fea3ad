"""Wallet model: custodial deposit addresses."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - SQLAlchemy needs this at runtime for Mapped[datetime]

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tron_gateway.engine.models.base import Base, utcnow


class Wallet(Base):
    """A generated keypair whose address receives user deposits.

    Created once and never mutated.
    """

    __tablename__ = "wallets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    address: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, comment="Base58 address (T...)"
    )
    hex_address: Mapped[str] = mapped_column(
        String(64), nullable=False, comment="Hex address (41 + 20 bytes)"
    )
    private_key: Mapped[str] = mapped_column(
        String(128), nullable=False, comment="Hex private key"
    )
    owner_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True, index=True, comment="External owner reference"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Wallet id={self.id} address={self.address}>"
