"""Transfer orchestrator: the settlement state machine.

Lifecycle of an ``OutgoingTransfer``::

    create()        -> PENDING
    drain_pending() -> PROCESSING (claimed before any network call)
                    -> COMPLETED (tx_hash, completed_at)
                    -> FAILED    (error_message, completed_at)
    cancel()        -> CANCELLED (only from PENDING)

Every transition is a conditional ``UPDATE ... WHERE status = ...`` on
the expected source status, so a terminal row is never overwritten and a
transfer cancelled before the drain claims it is never broadcast.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from tron_gateway.domain.enums import SponsorshipStatus, TransactionStatus
from tron_gateway.domain.validation import parse_amount, validate_amount, validate_reference_id
from tron_gateway.engine.models.base import utcnow
from tron_gateway.engine.models.outgoing_transfer import OutgoingTransfer
from tron_gateway.engine.models.wallet import Wallet
from tron_gateway.errors.gateway_errors import (
    ConfigurationError,
    GatewayError,
    InsufficientBalanceError,
    TransferNotFoundError,
    ValidationError,
    WalletNotFoundError,
)

if TYPE_CHECKING:
    from tron_gateway.chain.gateway import NetworkGateway, Signer
    from tron_gateway.config.settings import TransferConfig, TronConfig
    from tron_gateway.datastore.client import Datastore
    from tron_gateway.domain.tokens import TokenInfo
    from tron_gateway.engine.services.fee_service import FeePricingEngine, FeeQuote
    from tron_gateway.engine.services.gas_service import GasSponsorshipCoordinator
    from tron_gateway.engine.services.token_service import TokenService
    from tron_gateway.metrics.collector import GatewayMetrics
    from tron_gateway.notifications.webhook import WebhookNotifier

logger = logging.getLogger(__name__)

_TERMINAL_PURGEABLE = (TransactionStatus.FAILED.value, TransactionStatus.CANCELLED.value)


# ---------------------------------------------------------------------------
# Request / result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TransferRequest:
    from_wallet_id: int
    order_amount: Decimal | str
    reference_id: str | None = None


@dataclass(frozen=True)
class TransferPreview:
    """Cost breakdown for a request. Nothing is persisted."""

    from_wallet_id: int
    quote: FeeQuote
    master_wallet_receives: Decimal
    trx_to_usdt_rate: Decimal
    reference_id: str | None = None

    @property
    def breakdown(self) -> str:
        q = self.quote
        return (
            f"Order: {q.order_amount} + Commission: {q.gas_cost + q.final_commission} "
            f"(Gas: {q.gas_cost} + Service: {q.final_commission}) = Total: {q.total_amount}"
        )


@dataclass
class DrainSummary:
    processed: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class TransferOrchestrator:
    """Creates, previews and settles outgoing transfers to the master wallet.

    ``drain_pending`` processes transfers one at a time, oldest first. A
    lock keeps overlapping drains (scheduler tick plus a manual run) from
    working the same queue twice.
    """

    def __init__(
        self,
        datastore: Datastore,
        gateway: NetworkGateway,
        signer: Signer,
        fees: FeePricingEngine,
        sponsorship: GasSponsorshipCoordinator,
        token: TokenInfo,
        *,
        tron: TronConfig,
        limits: TransferConfig,
        tokens: TokenService | None = None,
        notifier: WebhookNotifier | None = None,
        metrics: GatewayMetrics | None = None,
    ) -> None:
        self._datastore = datastore
        self._gateway = gateway
        self._signer = signer
        self._fees = fees
        self._sponsorship = sponsorship
        self._token = token
        self._tron = tron
        self._limits = limits
        self._tokens = tokens
        self._notifier = notifier
        self._metrics = metrics
        self._drain_lock = asyncio.Lock()

    @property
    def master_address(self) -> str:
        return self._tron.master_wallet_address

    # ------------------------------------------------------------------
    # Preview / create
    # ------------------------------------------------------------------

    async def preview(self, request: TransferRequest) -> TransferPreview:
        """Price *request* without persisting anything.

        Raises:
            ValidationError: If the amount is malformed.
            WalletNotFoundError: If the source wallet does not exist.
        """
        amount = self._validated_amount(request.order_amount)
        wallet = await self._load_wallet(request.from_wallet_id)
        quote = await self._fees.quote(amount, wallet.address, self.master_address or None)
        return TransferPreview(
            from_wallet_id=wallet.id,
            quote=quote,
            master_wallet_receives=amount,
            trx_to_usdt_rate=self._fees.config.trx_to_usdt_rate,
            reference_id=request.reference_id,
        )

    async def create(self, request: TransferRequest) -> OutgoingTransfer:
        """Validate, price and enqueue a transfer as PENDING.

        Nothing is written unless every check passes.

        Raises:
            ValidationError: Bad amount or reference id, or a reused reference id.
            WalletNotFoundError: If the source wallet does not exist.
            ConfigurationError: If no master wallet is configured.
            InsufficientBalanceError: If the wallet cannot cover the quoted total.
            NetworkError: If the balance query fails.
        """
        amount = self._validated_amount(request.order_amount)
        if request.reference_id is not None:
            validate_reference_id(request.reference_id)
            await self._ensure_reference_unused(request.reference_id)
        if not self.master_address:
            msg = "master wallet address is not configured"
            raise ConfigurationError(msg)

        wallet = await self._load_wallet(request.from_wallet_id)
        wei = await self._gateway.get_token_balance(wallet.address, self._token.contract_address)
        available = self._token.from_wei(wei)
        quote = await self._fees.quote(amount, wallet.address, self.master_address)
        logger.info(
            "Quote for wallet %d: gas=%s commission=%s total=%s (%s)",
            wallet.id,
            quote.gas_cost,
            quote.final_commission,
            quote.total_amount,
            quote.fee_source.value,
        )
        if available < quote.total_amount:
            raise InsufficientBalanceError(required=quote.total_amount, available=available)

        transfer = OutgoingTransfer(
            from_wallet_id=wallet.id,
            to_address=self.master_address,
            amount=amount,
            gas_cost=quote.gas_cost,
            commission=quote.final_commission,
            total_amount=quote.total_amount,
            fee_source=quote.fee_source.value,
            status=TransactionStatus.PENDING.value,
            reference_id=request.reference_id,
        )
        async with self._datastore.session() as session:
            session.add(transfer)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise ValidationError("reference_id", "already used by another transfer") from exc
            await session.refresh(transfer)

        logger.info("Transfer %d queued: %s from wallet %d", transfer.id, amount, wallet.id)
        return transfer

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    async def drain_pending(self) -> DrainSummary:
        """Settle every PENDING transfer, oldest first.

        A failing transfer is marked FAILED and the drain moves on; nothing
        is retried within a pass. A transfer cancelled before the drain
        claims it is skipped.
        """
        summary = DrainSummary()
        async with self._drain_lock:
            pending = await self._load_pending()
            if pending:
                logger.info("Processing %d pending transfers", len(pending))
            for transfer in pending:
                summary.processed += 1
                try:
                    status = await self._settle(transfer)
                except SQLAlchemyError:
                    logger.exception("Transfer %d could not be recorded", transfer.id)
                    status = None
                if status is TransactionStatus.COMPLETED:
                    summary.completed += 1
                elif status is TransactionStatus.FAILED:
                    summary.failed += 1
                else:
                    summary.skipped += 1
        if self._metrics:
            self._metrics.set_pending_transfers(await self.count_pending())
        return summary

    async def _claim(self, transfer_id: int) -> bool:
        """Move PENDING -> PROCESSING; False if the transfer already left PENDING."""
        async with self._datastore.session() as session:
            result = await session.execute(
                update(OutgoingTransfer)
                .where(
                    OutgoingTransfer.id == transfer_id,
                    OutgoingTransfer.status == TransactionStatus.PENDING.value,
                )
                .values(status=TransactionStatus.PROCESSING.value)
            )
            await session.commit()
        return bool(result.rowcount)

    async def _settle(self, transfer: OutgoingTransfer) -> TransactionStatus | None:
        if not await self._claim(transfer.id):
            logger.info("Transfer %d left PENDING before settlement, skipping", transfer.id)
            return None
        processing = TransactionStatus.PROCESSING
        try:
            wallet = await self._load_wallet(transfer.from_wallet_id)
            outcome = await self._sponsorship.ensure_gas(wallet.address, transfer.amount)
            if outcome.status is SponsorshipStatus.SENT:
                await asyncio.sleep(self._sponsorship.settle_delay)
            elif outcome.status is SponsorshipStatus.FAILED:
                logger.warning(
                    "Transfer %d proceeds without sponsorship: %s", transfer.id, outcome.reason
                )
            unsigned = await self._gateway.build_token_transfer(
                wallet.address,
                transfer.to_address,
                self._token.to_wei(transfer.amount),
                self._token.contract_address,
            )
            signed = self._signer.sign(unsigned, wallet.private_key)
            tx_hash = await self._gateway.broadcast(signed)
        except GatewayError as exc:
            logger.warning("Transfer %d failed: %s", transfer.id, exc.message)
            return await self._finish(
                transfer.id,
                TransactionStatus.FAILED,
                expected=processing,
                error=exc.message or exc.code,
            )
        except SQLAlchemyError:
            raise
        except Exception as exc:
            logger.exception("Transfer %d failed unexpectedly", transfer.id)
            return await self._finish(
                transfer.id,
                TransactionStatus.FAILED,
                expected=processing,
                error=str(exc) or repr(exc),
            )

        logger.info("Transfer %d broadcast as %s", transfer.id, tx_hash)
        status = await self._finish(
            transfer.id, TransactionStatus.COMPLETED, expected=processing, tx_hash=tx_hash
        )
        if status is TransactionStatus.COMPLETED and self._tokens:
            await self._tokens.invalidate_cache(wallet.address)
        return status

    async def _finish(
        self,
        transfer_id: int,
        status: TransactionStatus,
        *,
        expected: TransactionStatus = TransactionStatus.PENDING,
        tx_hash: str | None = None,
        error: str | None = None,
    ) -> TransactionStatus | None:
        """Move a transfer from *expected* to *status*; None if it was not in *expected*."""
        values: dict[str, Any] = {"status": status.value, "completed_at": utcnow()}
        if tx_hash is not None:
            values["tx_hash"] = tx_hash
        if error is not None:
            values["error_message"] = error
        async with self._datastore.session() as session:
            result = await session.execute(
                update(OutgoingTransfer)
                .where(
                    OutgoingTransfer.id == transfer_id,
                    OutgoingTransfer.status == expected.value,
                )
                .values(**values)
            )
            await session.commit()
            if result.rowcount == 0:
                logger.error(
                    "Transfer %d left %s before it could be marked %s (tx %s)",
                    transfer_id,
                    expected.value,
                    status.value,
                    tx_hash,
                )
                return None
            transfer = await session.get(OutgoingTransfer, transfer_id, populate_existing=True)

        if self._metrics:
            self._metrics.record_transfer(status.value)
        if self._notifier and transfer is not None:
            self._notifier.notify_outgoing_transfer(transfer)
        return status

    # ------------------------------------------------------------------
    # Cancel / housekeeping
    # ------------------------------------------------------------------

    async def cancel(self, transfer_id: int) -> OutgoingTransfer:
        """Cancel a transfer that is still PENDING.

        Raises:
            TransferNotFoundError: If the transfer does not exist.
            ValidationError: If it has already left PENDING.
        """
        current = await self.get_by_id(transfer_id)
        if await self._finish(transfer_id, TransactionStatus.CANCELLED) is None:
            raise ValidationError(
                "status",
                f"transfer {transfer_id} is {current.status}, only PENDING can be cancelled",
            )
        logger.info("Transfer %d cancelled", transfer_id)
        return await self.get_by_id(transfer_id)

    async def count_pending(self) -> int:
        async with self._datastore.session() as session:
            result = await session.execute(
                select(func.count(OutgoingTransfer.id)).where(
                    OutgoingTransfer.status == TransactionStatus.PENDING.value
                )
            )
            return result.scalar_one()

    async def purge_older_than(self, days: int) -> int:
        """Delete FAILED and CANCELLED transfers created more than *days* ago."""
        if days <= 0:
            return 0
        cutoff = utcnow() - timedelta(days=days)
        async with self._datastore.session() as session:
            result = await session.execute(
                delete(OutgoingTransfer).where(
                    OutgoingTransfer.status.in_(_TERMINAL_PURGEABLE),
                    OutgoingTransfer.created_at < cutoff,
                )
            )
            await session.commit()
        if result.rowcount:
            logger.info("Purged %d transfers older than %d days", result.rowcount, days)
        return result.rowcount

    def fee_stats(self) -> dict[str, Any]:
        return self._fees.stats()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_by_id(self, transfer_id: int) -> OutgoingTransfer:
        async with self._datastore.session() as session:
            transfer = await session.get(OutgoingTransfer, transfer_id)
        if transfer is None:
            raise TransferNotFoundError(transfer_id)
        return transfer

    async def get_by_reference(self, reference_id: str) -> OutgoingTransfer:
        return await self._get_one(OutgoingTransfer.reference_id == reference_id, reference_id)

    async def get_by_tx_hash(self, tx_hash: str) -> OutgoingTransfer:
        return await self._get_one(OutgoingTransfer.tx_hash == tx_hash, tx_hash)

    async def list_for_wallet(self, wallet_id: int) -> list[OutgoingTransfer]:
        """All transfers from *wallet_id*, newest first."""
        async with self._datastore.session() as session:
            result = await session.execute(
                select(OutgoingTransfer)
                .where(OutgoingTransfer.from_wallet_id == wallet_id)
                .order_by(OutgoingTransfer.created_at.desc(), OutgoingTransfer.id.desc())
            )
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _validated_amount(self, raw: Decimal | str) -> Decimal:
        return validate_amount(
            parse_amount(raw),
            max_amount=self._limits.max_amount,
            max_fraction_digits=self._limits.max_fraction_digits,
        )

    async def _load_wallet(self, wallet_id: int) -> Wallet:
        async with self._datastore.session() as session:
            wallet = await session.get(Wallet, wallet_id)
        if wallet is None:
            raise WalletNotFoundError(wallet_id)
        return wallet

    async def _load_pending(self) -> list[OutgoingTransfer]:
        async with self._datastore.session() as session:
            result = await session.execute(
                select(OutgoingTransfer)
                .where(OutgoingTransfer.status == TransactionStatus.PENDING.value)
                .order_by(OutgoingTransfer.created_at.asc(), OutgoingTransfer.id.asc())
            )
            return list(result.scalars().all())

    async def _ensure_reference_unused(self, reference_id: str) -> None:
        async with self._datastore.session() as session:
            result = await session.execute(
                select(OutgoingTransfer.id).where(OutgoingTransfer.reference_id == reference_id)
            )
            if result.first() is not None:
                raise ValidationError("reference_id", "already used by another transfer")

    async def _get_one(self, clause: Any, key: str) -> OutgoingTransfer:
        async with self._datastore.session() as session:
            result = await session.execute(select(OutgoingTransfer).where(clause).limit(1))
            transfer = result.scalar_one_or_none()
        if transfer is None:
            raise TransferNotFoundError(key)
        return transfer
