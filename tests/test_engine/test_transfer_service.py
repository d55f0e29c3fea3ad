"""Tests for the transfer orchestrator: create, preview, drain and cancel."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from tron_gateway.domain.enums import TransactionStatus
from tron_gateway.engine.models import OutgoingTransfer
from tron_gateway.engine.models.base import utcnow
from tron_gateway.engine.services.transfer_service import TransferRequest
from tron_gateway.errors import (
    InsufficientBalanceError,
    NetworkError,
    TransferNotFoundError,
    ValidationError,
    WalletNotFoundError,
)


@pytest.fixture
async def funded_wallet(engine, gateway):
    """A wallet holding 100 USDT."""
    created = await engine.wallets.create_wallet("merchant")
    gateway.token_balances[created.wallet.address] = 100_000_000
    return created.wallet


async def _all_transfers(engine) -> list[OutgoingTransfer]:
    from sqlalchemy import select

    async with engine.datastore.session() as session:
        result = await session.execute(select(OutgoingTransfer).order_by(OutgoingTransfer.id))
        return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Create / preview
# ---------------------------------------------------------------------------


class TestCreate:
    async def test_worked_example(self, engine, funded_wallet, master_address) -> None:
        transfer = await engine.transfers.create(
            TransferRequest(funded_wallet.id, "50", reference_id="order-1")
        )
        assert transfer.status == TransactionStatus.PENDING
        assert transfer.amount == Decimal("50")
        assert transfer.gas_cost == Decimal("2")
        assert transfer.commission == Decimal("1")
        assert transfer.total_amount == Decimal("53")
        assert transfer.fee_source == "static"
        assert transfer.to_address == master_address
        assert transfer.tx_hash is None

        with pytest.raises(InsufficientBalanceError) as exc_info:
            await engine.transfers.create(TransferRequest(funded_wallet.id, "200"))
        assert exc_info.value.required == Decimal("203")
        assert exc_info.value.available == Decimal("100")
        assert len(await _all_transfers(engine)) == 1

    async def test_balance_must_cover_total_not_just_order(self, engine, gateway, funded_wallet):
        gateway.token_balances[funded_wallet.address] = 52_000_000
        with pytest.raises(InsufficientBalanceError):
            await engine.transfers.create(TransferRequest(funded_wallet.id, "50"))

    @pytest.mark.parametrize("amount", ["0", "-1", "abc", "1.0000001", "1000000001"])
    async def test_invalid_amount_persists_nothing(self, engine, funded_wallet, amount) -> None:
        with pytest.raises(ValidationError):
            await engine.transfers.create(TransferRequest(funded_wallet.id, amount))
        assert await _all_transfers(engine) == []

    async def test_unknown_wallet(self, engine) -> None:
        with pytest.raises(WalletNotFoundError):
            await engine.transfers.create(TransferRequest(404, "10"))

    async def test_reference_id_unique(self, engine, funded_wallet) -> None:
        await engine.transfers.create(TransferRequest(funded_wallet.id, "10", "ref-1"))
        with pytest.raises(ValidationError, match="already used"):
            await engine.transfers.create(TransferRequest(funded_wallet.id, "10", "ref-1"))
        assert len(await _all_transfers(engine)) == 1

    @pytest.mark.parametrize("reference_id", ["bad ref", "ref\n", "order-1\n", "r/1"])
    async def test_reference_id_format(self, engine, funded_wallet, reference_id) -> None:
        with pytest.raises(ValidationError):
            await engine.transfers.create(TransferRequest(funded_wallet.id, "10", reference_id))
        assert await _all_transfers(engine) == []

    async def test_balance_query_failure_propagates(self, engine, gateway, funded_wallet):
        gateway.fail["get_token_balance"] = NetworkError("down")
        with pytest.raises(NetworkError):
            await engine.transfers.create(TransferRequest(funded_wallet.id, "10"))
        assert await _all_transfers(engine) == []


class TestPreview:
    async def test_preview_persists_nothing(self, engine, funded_wallet) -> None:
        preview = await engine.transfers.preview(TransferRequest(funded_wallet.id, "50", "r"))
        assert preview.quote.total_amount == Decimal("53")
        assert preview.master_wallet_receives == Decimal("50")
        assert preview.trx_to_usdt_rate == Decimal("0.10")
        assert preview.reference_id == "r"
        assert "Total: 53" in preview.breakdown
        assert await _all_transfers(engine) == []

    async def test_preview_matches_create(self, engine, funded_wallet) -> None:
        request = TransferRequest(funded_wallet.id, "37.5")
        quote = (await engine.transfers.preview(request)).quote
        transfer = await engine.transfers.create(request)
        assert transfer.amount == quote.order_amount
        assert transfer.gas_cost == quote.gas_cost
        assert transfer.commission == quote.final_commission
        assert transfer.total_amount == quote.total_amount
        assert transfer.fee_source == quote.fee_source.value

    async def test_preview_ignores_balance(self, engine, gateway, funded_wallet) -> None:
        gateway.token_balances[funded_wallet.address] = 0
        preview = await engine.transfers.preview(TransferRequest(funded_wallet.id, "500"))
        assert preview.quote.total_amount == Decimal("504.5")


# ---------------------------------------------------------------------------
# Drain
# ---------------------------------------------------------------------------


class TestDrain:
    async def test_successful_settlement(self, engine, gateway, funded_wallet, master_address):
        transfer = await engine.transfers.create(TransferRequest(funded_wallet.id, "50"))
        summary = await engine.transfers.drain_pending()
        assert (summary.processed, summary.completed, summary.failed) == (1, 1, 0)

        settled = await engine.transfers.get_by_id(transfer.id)
        assert settled.status == TransactionStatus.COMPLETED
        assert settled.tx_hash
        assert settled.completed_at is not None
        assert gateway.token_built[-1] == (funded_wallet.address, master_address, 50_000_000)
        # Gas top-up precedes the sweep.
        assert gateway.native_built[-1][1] == funded_wallet.address
        assert (await engine.transfers.get_by_tx_hash(settled.tx_hash)).id == transfer.id

    async def test_broadcast_failure_marks_failed(self, engine, gateway, funded_wallet) -> None:
        transfer = await engine.transfers.create(TransferRequest(funded_wallet.id, "10"))
        gateway.fail["build_token_transfer"] = NetworkError("contract reverted")
        summary = await engine.transfers.drain_pending()
        assert summary.failed == 1

        failed = await engine.transfers.get_by_id(transfer.id)
        assert failed.status == TransactionStatus.FAILED
        assert failed.error_message == "contract reverted"
        assert failed.tx_hash is None
        assert failed.completed_at is not None

    async def test_failed_transfers_are_not_retried(self, engine, gateway, funded_wallet) -> None:
        await engine.transfers.create(TransferRequest(funded_wallet.id, "10"))
        gateway.fail["build_token_transfer"] = NetworkError("boom")
        await engine.transfers.drain_pending()
        del gateway.fail["build_token_transfer"]
        summary = await engine.transfers.drain_pending()
        assert summary.processed == 0

    async def test_sponsorship_failure_does_not_block_sweep(
        self, engine, gateway, funded_wallet
    ) -> None:
        transfer = await engine.transfers.create(TransferRequest(funded_wallet.id, "10"))
        gateway.fail["build_native_transfer"] = NetworkError("master empty")
        await engine.transfers.drain_pending()
        assert (await engine.transfers.get_by_id(transfer.id)).status == (
            TransactionStatus.COMPLETED
        )

    async def test_unexpected_error_marks_failed(self, engine, gateway, funded_wallet) -> None:
        transfer = await engine.transfers.create(TransferRequest(funded_wallet.id, "10"))

        class _Exploding:
            def sign(self, unsigned_tx, private_key):
                raise RuntimeError("signer crashed")

        engine.transfers._signer = _Exploding()
        await engine.transfers.drain_pending()
        failed = await engine.transfers.get_by_id(transfer.id)
        assert failed.status == TransactionStatus.FAILED
        assert failed.error_message == "signer crashed"

    async def test_fifo_and_one_failure_does_not_stop_the_rest(
        self, engine, gateway, funded_wallet
    ) -> None:
        gateway.token_balances[funded_wallet.address] = 1_000_000_000
        ids = [
            (await engine.transfers.create(TransferRequest(funded_wallet.id, str(n)))).id
            for n in (11, 12, 13)
        ]
        original = gateway.build_token_transfer

        async def fail_second(from_address, to_address, amount, contract=None):
            if amount == 12_000_000:
                raise NetworkError("second fails")
            return await original(from_address, to_address, amount, contract)

        gateway.build_token_transfer = fail_second
        summary = await engine.transfers.drain_pending()
        assert (summary.processed, summary.completed, summary.failed) == (3, 2, 1)
        assert [a for _, _, a in gateway.token_built] == [11_000_000, 13_000_000]
        statuses = [(await engine.transfers.get_by_id(i)).status for i in ids]
        assert statuses == ["COMPLETED", "FAILED", "COMPLETED"]

    async def test_completed_sweep_invalidates_balance_cache(
        self, engine, gateway, funded_wallet
    ) -> None:
        await engine.tokens.get_token_balance(funded_wallet.address)
        await engine.transfers.create(TransferRequest(funded_wallet.id, "10"))
        await engine.transfers.drain_pending()
        assert (await engine.tokens.cache_stats())["total_entries"] == 0

    async def test_terminal_row_is_never_overwritten(self, engine, funded_wallet) -> None:
        transfer = await engine.transfers.create(TransferRequest(funded_wallet.id, "10"))
        await engine.transfers.cancel(transfer.id)
        assert await engine.transfers._finish(transfer.id, TransactionStatus.COMPLETED) is None
        assert (await engine.transfers.get_by_id(transfer.id)).status == "CANCELLED"


# ---------------------------------------------------------------------------
# Cancel / housekeeping / queries
# ---------------------------------------------------------------------------


class TestCancelAndHousekeeping:
    async def test_cancel_pending(self, engine, funded_wallet) -> None:
        transfer = await engine.transfers.create(TransferRequest(funded_wallet.id, "10"))
        cancelled = await engine.transfers.cancel(transfer.id)
        assert cancelled.status == TransactionStatus.CANCELLED
        assert cancelled.completed_at is not None
        assert (await engine.transfers.drain_pending()).processed == 0

    async def test_cancel_completed_rejected(self, engine, funded_wallet) -> None:
        transfer = await engine.transfers.create(TransferRequest(funded_wallet.id, "10"))
        await engine.transfers.drain_pending()
        with pytest.raises(ValidationError, match="only PENDING"):
            await engine.transfers.cancel(transfer.id)

    async def test_cancel_missing(self, engine) -> None:
        with pytest.raises(TransferNotFoundError):
            await engine.transfers.cancel(12345)

    async def test_count_pending(self, engine, funded_wallet) -> None:
        await engine.transfers.create(TransferRequest(funded_wallet.id, "10"))
        await engine.transfers.create(TransferRequest(funded_wallet.id, "10"))
        assert await engine.transfers.count_pending() == 2

    async def test_purge_only_old_failed_and_cancelled(self, engine, funded_wallet) -> None:
        old_cancelled = await engine.transfers.create(TransferRequest(funded_wallet.id, "1"))
        await engine.transfers.cancel(old_cancelled.id)
        old_pending = await engine.transfers.create(TransferRequest(funded_wallet.id, "1"))
        new_cancelled = await engine.transfers.create(TransferRequest(funded_wallet.id, "1"))
        await engine.transfers.cancel(new_cancelled.id)

        long_ago = utcnow() - timedelta(days=120)
        async with engine.datastore.session() as session:
            await session.execute(
                update(OutgoingTransfer)
                .where(OutgoingTransfer.id.in_([old_cancelled.id, old_pending.id]))
                .values(created_at=long_ago)
            )
            await session.commit()

        assert await engine.transfers.purge_older_than(0) == 0
        assert await engine.transfers.purge_older_than(90) == 1
        remaining = {t.id for t in await _all_transfers(engine)}
        assert remaining == {old_pending.id, new_cancelled.id}

    async def test_lookups(self, engine, funded_wallet) -> None:
        first = await engine.transfers.create(TransferRequest(funded_wallet.id, "1", "ref-a"))
        second = await engine.transfers.create(TransferRequest(funded_wallet.id, "2", "ref-b"))
        assert (await engine.transfers.get_by_reference("ref-b")).id == second.id
        listed = await engine.transfers.list_for_wallet(funded_wallet.id)
        assert [t.id for t in listed] == [second.id, first.id]
        with pytest.raises(TransferNotFoundError):
            await engine.transfers.get_by_reference("missing")
        with pytest.raises(TransferNotFoundError):
            await engine.transfers.get_by_tx_hash("ff" * 32)


class TestDrainConcurrency:
    async def test_cancel_during_settle_delay_is_rejected(
        self, app_config, gateway, signer, generator
    ) -> None:
        from tron_gateway.config.settings import GasSponsorshipConfig
        from tron_gateway.engine.client import GatewayEngine

        config = app_config.model_copy(
            update={"gas_sponsorship": GasSponsorshipConfig(settle_delay_seconds=0.2)}
        )
        eng = GatewayEngine(config, gateway=gateway, signer=signer, generator=generator)
        await eng.initialize()
        try:
            wallet = (await eng.wallets.create_wallet("merchant")).wallet
            gateway.token_balances[wallet.address] = 100_000_000
            transfer = await eng.transfers.create(TransferRequest(wallet.id, "10"))

            drain = asyncio.create_task(eng.transfers.drain_pending())
            await asyncio.sleep(0.05)
            assert (await eng.transfers.get_by_id(transfer.id)).status == "PROCESSING"
            with pytest.raises(ValidationError, match="only PENDING"):
                await eng.transfers.cancel(transfer.id)
            summary = await drain
        finally:
            await eng.close()

        assert summary.completed == 1
        assert len(gateway.token_built) == 1

    async def test_cancelled_before_claim_is_never_broadcast(
        self, engine, gateway, funded_wallet
    ) -> None:
        first = await engine.transfers.create(TransferRequest(funded_wallet.id, "10"))
        second = await engine.transfers.create(TransferRequest(funded_wallet.id, "11"))
        original = gateway.build_token_transfer

        async def cancel_second(from_address, to_address, amount, contract=None):
            await engine.transfers.cancel(second.id)
            return await original(from_address, to_address, amount, contract)

        gateway.build_token_transfer = cancel_second
        summary = await engine.transfers.drain_pending()
        assert (summary.processed, summary.completed, summary.skipped) == (2, 1, 1)
        assert [a for _, _, a in gateway.token_built] == [10_000_000]
        assert (await engine.transfers.get_by_id(first.id)).status == "COMPLETED"
        cancelled = await engine.transfers.get_by_id(second.id)
        assert cancelled.status == "CANCELLED"
        assert cancelled.tx_hash is None

    async def test_recording_error_does_not_stop_the_pass(
        self, engine, gateway, funded_wallet
    ) -> None:
        ids = [
            (await engine.transfers.create(TransferRequest(funded_wallet.id, n))).id
            for n in ("10", "11")
        ]
        original = engine.transfers._finish
        calls = {"n": 0}

        async def flaky_finish(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 1:
                raise OperationalError("UPDATE outgoing_transfers", {}, Exception("disk I/O"))
            return await original(*args, **kwargs)

        engine.transfers._finish = flaky_finish
        summary = await engine.transfers.drain_pending()
        assert (summary.processed, summary.completed, summary.skipped) == (2, 1, 1)
        assert (await engine.transfers.get_by_id(ids[1])).status == "COMPLETED"
