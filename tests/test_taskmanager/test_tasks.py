"""Tests for the scheduled job handlers."""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy import update

from tron_gateway.chain.gateway import TokenTransferRecord
from tron_gateway.config.settings import FeeConfig, MonitoringConfig
from tron_gateway.domain.enums import TransactionStatus
from tron_gateway.engine.models import OutgoingTransfer
from tron_gateway.engine.models.base import utcnow
from tron_gateway.engine.services.transfer_service import TransferRequest
from tron_gateway.errors import NetworkError
from tron_gateway.taskmanager import tasks
from tron_gateway.taskmanager.manager import TaskManager


class TestJobPeriods:
    def test_defaults(self, app_config) -> None:
        periods = tasks.job_periods(app_config)
        assert periods == {
            tasks.PROCESS_PENDING_TRANSFERS: 60.0,
            tasks.CLEANUP: 86400.0,
            tasks.HEALTH_CHECK: 300.0,
            tasks.MONITOR_INCOMING: 30.0,
        }

    def test_optional_jobs(self, app_config) -> None:
        config = app_config.model_copy(
            update={
                "monitoring": MonitoringConfig(enabled=False),
                "fees": FeeConfig(dynamic_fees_enabled=True, update_interval_minutes=10),
            }
        )
        periods = tasks.job_periods(config)
        assert tasks.MONITOR_INCOMING not in periods
        assert periods[tasks.REFRESH_NETWORK_STATE] == 600.0

    async def test_register_jobs(self, engine) -> None:
        tm = TaskManager()
        tasks.register_jobs(tm, engine)
        assert set(tm.jobs) == set(tasks.job_periods(engine.config))
        assert tm.jobs[tasks.CLEANUP].name == tasks.CLEANUP


class TestHandlers:
    async def test_monitor_incoming(self, engine, gateway) -> None:
        wallet = (await engine.wallets.create_wallet()).wallet
        gateway.incoming[wallet.address] = [
            TokenTransferRecord(
                tx_hash="m1",
                from_address="TPayer",
                to_address=wallet.address,
                value=1_000_000,
                decimals=6,
                confirmations=20,
            )
        ]
        await tasks.task_monitor_incoming(engine)
        (row,) = await engine.monitor.list_for_wallet(wallet.id)
        assert row.status == TransactionStatus.COMPLETED

    async def test_process_pending(self, engine, gateway) -> None:
        wallet = (await engine.wallets.create_wallet()).wallet
        gateway.token_balances[wallet.address] = 100_000_000
        transfer = await engine.transfers.create(TransferRequest(wallet.id, "10"))
        await tasks.task_process_pending_transfers(engine)
        done = await engine.transfers.get_by_id(transfer.id)
        assert done.status == TransactionStatus.COMPLETED

    async def test_cleanup_purges_old_terminal_transfers(self, engine, gateway) -> None:
        wallet = (await engine.wallets.create_wallet()).wallet
        gateway.token_balances[wallet.address] = 100_000_000
        transfer = await engine.transfers.create(TransferRequest(wallet.id, "10"))
        await engine.transfers.cancel(transfer.id)
        async with engine.datastore.session() as session:
            await session.execute(
                update(OutgoingTransfer)
                .where(OutgoingTransfer.id == transfer.id)
                .values(created_at=utcnow() - timedelta(days=200))
            )
            await session.commit()
        await tasks.task_cleanup(engine)
        assert await engine.transfers.list_for_wallet(wallet.id) == []

    async def test_health_check_report(self, engine, caplog) -> None:
        wallet = (await engine.wallets.create_wallet()).wallet
        await engine.transfers.create(TransferRequest(wallet.id, "10"))
        report = await tasks.task_health_check(engine)
        assert report["gateway"] is True
        assert report["pending_transfers"] == 1
        assert report["incoming"]["total_wallets"] == 1
        assert "webhook" not in report

    async def test_health_check_warns_on_backlog(self, engine, gateway, caplog) -> None:
        engine.config.scheduler.pending_alert_threshold = 0
        gateway.healthy = False
        wallet = (await engine.wallets.create_wallet()).wallet
        await engine.transfers.create(TransferRequest(wallet.id, "10"))
        with caplog.at_level(logging.WARNING, logger="tron_gateway.taskmanager.tasks"):
            await tasks.task_health_check(engine)
        assert "network gateway unreachable" in caplog.text
        assert "1 pending transfers" in caplog.text


class TestRunOnce:
    async def test_failed_step_does_not_stop_the_rest(self, engine, gateway) -> None:
        async def broken_scan():
            raise NetworkError("down")

        engine.monitor.scan_all = broken_scan
        results = await tasks.run_once(engine)
        assert results == {
            tasks.MONITOR_INCOMING: False,
            tasks.PROCESS_PENDING_TRANSFERS: True,
            tasks.HEALTH_CHECK: True,
        }
