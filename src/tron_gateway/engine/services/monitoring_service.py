"""Incoming monitor: detect deposits to custodial wallets.

Each scan pulls the latest page of TRC-20 transfers per wallet and records
the ones not seen before. Dedup is by ``(wallet_id, tx_hash)``: checked
before insert and enforced by a unique constraint, so a scan may be re-run
(or run concurrently) without creating duplicates.

Status follows confirmations: ``>= confirmed_threshold`` is COMPLETED,
``>= 1`` is PROCESSING, otherwise PENDING. A recorded transaction only
ever moves forward.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from tron_gateway.domain.enums import TransactionStatus
from tron_gateway.engine.models.base import utcnow
from tron_gateway.engine.models.incoming_transaction import IncomingTransaction
from tron_gateway.engine.models.wallet import Wallet
from tron_gateway.errors.gateway_errors import GatewayError

if TYPE_CHECKING:
    from tron_gateway.chain.gateway import NetworkGateway, TokenTransferRecord
    from tron_gateway.config.settings import MonitoringConfig
    from tron_gateway.datastore.client import Datastore
    from tron_gateway.domain.tokens import TokenInfo
    from tron_gateway.metrics.collector import GatewayMetrics
    from tron_gateway.notifications.webhook import WebhookNotifier

logger = logging.getLogger(__name__)

_RANK = {
    TransactionStatus.PENDING.value: 0,
    TransactionStatus.PROCESSING.value: 1,
    TransactionStatus.COMPLETED.value: 2,
}


@dataclass
class ScanSummary:
    wallets_scanned: int = 0
    wallets_failed: int = 0
    new_transactions: int = 0
    status_updates: int = 0


@dataclass(frozen=True)
class MonitoringStats:
    total_wallets: int
    total_transactions: int
    pending: int
    processing: int
    completed: int

    def to_dict(self) -> dict[str, int]:
        return {
            "total_wallets": self.total_wallets,
            "total_transactions": self.total_transactions,
            "pending": self.pending,
            "processing": self.processing,
            "completed": self.completed,
        }


class IncomingMonitor:
    """Polls every custodial wallet for new inbound token transfers."""

    def __init__(
        self,
        datastore: Datastore,
        gateway: NetworkGateway,
        token: TokenInfo,
        config: MonitoringConfig,
        *,
        page_size: int = 50,
        notifier: WebhookNotifier | None = None,
        metrics: GatewayMetrics | None = None,
    ) -> None:
        self._datastore = datastore
        self._gateway = gateway
        self._token = token
        self._config = config
        self._page_size = page_size
        self._notifier = notifier
        self._metrics = metrics
        self._wallet_locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    def status_for(self, confirmations: int) -> TransactionStatus:
        if confirmations >= self._config.confirmed_threshold:
            return TransactionStatus.COMPLETED
        if confirmations >= 1:
            return TransactionStatus.PROCESSING
        return TransactionStatus.PENDING

    async def scan_all(self) -> ScanSummary:
        """Scan every wallet; one wallet's failure does not stop the rest."""
        summary = ScanSummary()
        async with self._datastore.session() as session:
            result = await session.execute(select(Wallet).order_by(Wallet.id))
            wallets = list(result.scalars().all())

        for wallet in wallets:
            try:
                created, updated = await self.scan_wallet(wallet)
            except (GatewayError, SQLAlchemyError) as exc:
                summary.wallets_failed += 1
                logger.warning("Scan of wallet %d (%s) failed: %s", wallet.id, wallet.address, exc)
                continue
            except Exception:
                summary.wallets_failed += 1
                logger.exception("Scan of wallet %d (%s) failed", wallet.id, wallet.address)
                continue
            summary.wallets_scanned += 1
            summary.new_transactions += len(created)
            summary.status_updates += updated

        if summary.new_transactions:
            logger.info(
                "Incoming scan recorded %d new transactions across %d wallets",
                summary.new_transactions,
                summary.wallets_scanned,
            )
        return summary

    async def scan_wallet(self, wallet: Wallet) -> tuple[list[IncomingTransaction], int]:
        """Record unseen inbound transfers for one wallet.

        Returns:
            The newly inserted rows and the number of existing rows whose
            status moved forward.

        Raises:
            NetworkError: If the transfer listing fails.
        """
        async with self._wallet_locks[wallet.id]:
            records = await self._gateway.list_recent_token_transfers(
                wallet.address, self._token.contract_address, limit=self._page_size
            )
            inbound = {r.tx_hash: r for r in records if r.to_address == wallet.address}
            if not inbound:
                return [], 0

            existing = await self._existing(wallet.id, list(inbound))
            created: list[IncomingTransaction] = []
            updated = 0
            for tx_hash, record in inbound.items():
                if tx_hash in existing:
                    if await self._escalate(wallet.id, record, existing[tx_hash]):
                        updated += 1
                    continue
                row = await self._insert(wallet, record)
                if row is not None:
                    created.append(row)

        if created and self._metrics:
            self._metrics.record_incoming(len(created))
        if self._notifier:
            for row in created:
                self._notifier.notify_incoming_transaction(row, wallet.address)
        return created, updated

    async def _existing(self, wallet_id: int, hashes: list[str]) -> dict[str, str]:
        async with self._datastore.session() as session:
            result = await session.execute(
                select(IncomingTransaction.tx_hash, IncomingTransaction.status).where(
                    IncomingTransaction.wallet_id == wallet_id,
                    IncomingTransaction.tx_hash.in_(hashes),
                )
            )
            return {tx_hash: status for tx_hash, status in result.all()}

    async def _insert(
        self, wallet: Wallet, record: TokenTransferRecord
    ) -> IncomingTransaction | None:
        status = self.status_for(record.confirmations)
        now = utcnow()
        row = IncomingTransaction(
            wallet_id=wallet.id,
            tx_hash=record.tx_hash,
            block_number=record.block_number,
            from_address=record.from_address,
            to_address=record.to_address,
            amount=Decimal(record.value).scaleb(-record.decimals),
            status=status.value,
            detected_at=now,
            confirmed_at=now if status is TransactionStatus.COMPLETED else None,
        )
        async with self._datastore.session() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError:
                # Recorded by a concurrent scan between the check and the insert.
                await session.rollback()
                logger.debug("Incoming %s already recorded", record.tx_hash)
                return None
            await session.refresh(row)
        logger.info(
            "Incoming %s %s to wallet %d (%s, %d confirmations)",
            row.amount,
            self._token.symbol,
            wallet.id,
            status.value,
            record.confirmations,
        )
        return row

    async def _escalate(self, wallet_id: int, record: TokenTransferRecord, current: str) -> bool:
        target = self.status_for(record.confirmations)
        if _RANK[target.value] <= _RANK.get(current, 0):
            return False
        values: dict[str, object] = {"status": target.value}
        if target is TransactionStatus.COMPLETED:
            values["confirmed_at"] = utcnow()
        async with self._datastore.session() as session:
            result = await session.execute(
                update(IncomingTransaction)
                .where(
                    IncomingTransaction.wallet_id == wallet_id,
                    IncomingTransaction.tx_hash == record.tx_hash,
                    IncomingTransaction.status == current,
                )
                .values(**values)
            )
            await session.commit()
        return bool(result.rowcount)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_for_wallet(self, wallet_id: int) -> list[IncomingTransaction]:
        """Recorded deposits for *wallet_id*, newest first."""
        async with self._datastore.session() as session:
            result = await session.execute(
                select(IncomingTransaction)
                .where(IncomingTransaction.wallet_id == wallet_id)
                .order_by(IncomingTransaction.detected_at.desc(), IncomingTransaction.id.desc())
            )
            return list(result.scalars().all())

    async def stats(self) -> MonitoringStats:
        async with self._datastore.session() as session:
            wallets = (await session.execute(select(func.count(Wallet.id)))).scalar_one()
            rows = await session.execute(
                select(IncomingTransaction.status, func.count(IncomingTransaction.id)).group_by(
                    IncomingTransaction.status
                )
            )
            counts = {status: count for status, count in rows.all()}
        return MonitoringStats(
            total_wallets=wallets,
            total_transactions=sum(counts.values()),
            pending=counts.get(TransactionStatus.PENDING.value, 0),
            processing=counts.get(TransactionStatus.PROCESSING.value, 0),
            completed=counts.get(TransactionStatus.COMPLETED.value, 0),
        )
