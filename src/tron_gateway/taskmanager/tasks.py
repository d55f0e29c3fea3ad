"""Background job handlers and their registration.

Jobs (periods from ``SchedulerConfig`` / ``FeeConfig``):

- ``monitor_incoming`` (30 s): scan custodial wallets for deposits
- ``process_pending_transfers`` (60 s): drain the PENDING queue
- ``cleanup`` (24 h): drop expired balance-cache entries and old
  FAILED/CANCELLED transfers
- ``health_check`` (5 min): check gateway, webhook and queue depth
- ``refresh_network_state`` (5 min): only when dynamic fees are enabled

Handlers let exceptions propagate; the ``TaskManager`` loop logs them.
"""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING, Any

from tron_gateway.taskmanager.manager import CronJob, TaskManager

if TYPE_CHECKING:
    from tron_gateway.config.settings import AppConfig
    from tron_gateway.engine.client import GatewayEngine

logger = logging.getLogger(__name__)

MONITOR_INCOMING = "monitor_incoming"
PROCESS_PENDING_TRANSFERS = "process_pending_transfers"
CLEANUP = "cleanup"
HEALTH_CHECK = "health_check"
REFRESH_NETWORK_STATE = "refresh_network_state"


def job_periods(config: AppConfig) -> dict[str, float]:
    """Seconds between runs for each job that should be scheduled."""
    sched = config.scheduler
    periods: dict[str, float] = {
        PROCESS_PENDING_TRANSFERS: float(sched.transfer_processing_interval_seconds),
        CLEANUP: sched.cleanup_interval_hours * 3600.0,
        HEALTH_CHECK: sched.health_check_interval_minutes * 60.0,
    }
    if config.monitoring.enabled:
        periods[MONITOR_INCOMING] = float(sched.monitoring_interval_seconds)
    if config.fees.dynamic_fees_enabled:
        periods[REFRESH_NETWORK_STATE] = config.fees.update_interval_minutes * 60.0
    return periods


async def task_monitor_incoming(engine: GatewayEngine) -> None:
    summary = await engine.monitor.scan_all()
    if summary.wallets_failed:
        logger.warning(
            "Incoming scan: %d wallets failed, %d scanned",
            summary.wallets_failed,
            summary.wallets_scanned,
        )


async def task_process_pending_transfers(engine: GatewayEngine) -> None:
    summary = await engine.transfers.drain_pending()
    if summary.processed:
        logger.info(
            "Drained %d transfers: %d completed, %d failed",
            summary.processed,
            summary.completed,
            summary.failed,
        )


async def task_cleanup(engine: GatewayEngine) -> None:
    """Purge expired cache entries and old terminal transfers."""
    removed = await engine.tokens.cleanup_cache()
    purged = await engine.transfers.purge_older_than(engine.config.scheduler.cleanup_retention_days)
    logger.info("Cleanup: %d cache entries, %d transfers removed", removed, purged)


async def task_health_check(engine: GatewayEngine) -> dict[str, Any]:
    """Check collaborators and warn on a backed-up queue."""
    report: dict[str, Any] = {"gateway": await engine.gateway.ping()}
    if not report["gateway"]:
        logger.warning("Health check: network gateway unreachable")

    if engine.notifier.enabled:
        report["webhook"] = await engine.notifier.health_check()
        if not report["webhook"]:
            logger.warning("Health check: webhook endpoint %s failing", engine.notifier.url)

    stats = await engine.monitor.stats()
    report["incoming"] = stats.to_dict()

    pending = await engine.transfers.count_pending()
    report["pending_transfers"] = pending
    if engine.metrics:
        engine.metrics.set_pending_transfers(pending)
    threshold = engine.config.scheduler.pending_alert_threshold
    if pending > threshold:
        logger.warning("Health check: %d pending transfers (threshold %d)", pending, threshold)
    return report


async def task_refresh_network_state(engine: GatewayEngine) -> None:
    await engine.fees.refresh_network_state()


_HANDLERS = {
    MONITOR_INCOMING: task_monitor_incoming,
    PROCESS_PENDING_TRANSFERS: task_process_pending_transfers,
    CLEANUP: task_cleanup,
    HEALTH_CHECK: task_health_check,
    REFRESH_NETWORK_STATE: task_refresh_network_state,
}


def register_jobs(manager: TaskManager, engine: GatewayEngine) -> None:
    """Register every enabled job against *engine*."""
    for name, period in job_periods(engine.config).items():
        manager.register(name, CronJob(handler=partial(_HANDLERS[name], engine), period=period))


async def run_once(engine: GatewayEngine) -> dict[str, bool]:
    """Run scan, drain and health check once, in that order.

    A failing step is logged and does not stop the next one.
    """
    results: dict[str, bool] = {}
    for name in (MONITOR_INCOMING, PROCESS_PENDING_TRANSFERS, HEALTH_CHECK):
        try:
            await _HANDLERS[name](engine)
        except Exception:
            logger.exception("%s failed during run_once", name)
            results[name] = False
        else:
            results[name] = True
    return results
