"""Tests for the TaskManager."""

from __future__ import annotations

import asyncio

import pytest

from tron_gateway.metrics.collector import GatewayMetrics
from tron_gateway.taskmanager.manager import CronJob, TaskManager


async def _noop() -> None:
    pass


class TestCronJob:
    def test_default_name(self) -> None:
        job = CronJob(handler=_noop, period=5.0)
        assert job.name == ""
        assert job.period == 5.0


class TestTaskManager:
    async def test_start_stop(self) -> None:
        tm = TaskManager()
        assert not tm.is_running
        await tm.start()
        assert tm.is_running
        await tm.stop()
        assert not tm.is_running

    async def test_idempotent_start_and_stop(self) -> None:
        tm = TaskManager()
        await tm.start()
        await tm.start()
        assert tm.is_running
        await tm.stop()
        await tm.stop()

    def test_register_rejects_non_positive_period(self) -> None:
        tm = TaskManager()
        with pytest.raises(ValueError, match="positive period"):
            tm.register("bad", CronJob(handler=_noop, period=0))

    async def test_loop_runs_job(self) -> None:
        counter = {"value": 0}

        async def _handler() -> None:
            counter["value"] += 1

        tm = TaskManager()
        tm.register("tick", CronJob(handler=_handler, period=0.02))
        assert "tick" in tm.jobs
        await tm.start()
        await asyncio.sleep(0.15)
        await tm.stop()
        assert counter["value"] >= 1

    async def test_register_while_running(self) -> None:
        counter = {"value": 0}

        async def _handler() -> None:
            counter["value"] += 1

        tm = TaskManager()
        await tm.start()
        tm.register("late", CronJob(handler=_handler, period=0.02))
        await asyncio.sleep(0.15)
        await tm.stop()
        assert counter["value"] >= 1

    async def test_failing_job_keeps_looping(self) -> None:
        counter = {"value": 0}

        async def _handler() -> None:
            counter["value"] += 1
            raise RuntimeError("boom")

        tm = TaskManager()
        tm.register("flaky", CronJob(handler=_handler, period=0.02))
        await tm.start()
        await asyncio.sleep(0.15)
        await tm.stop()
        assert counter["value"] >= 2
        state = tm.status()["flaky"]
        assert state["failures"] == state["runs"]
        assert state["last_error"] == "boom"

    async def test_run_job_reports_outcome(self) -> None:
        async def _fails() -> None:
            raise ValueError

        tm = TaskManager()
        tm.register("ok", CronJob(handler=_noop, period=60))
        tm.register("bad", CronJob(handler=_fails, period=60))
        assert await tm.run_job("ok") is True
        assert await tm.run_job("bad") is False
        status = tm.status()
        assert status["ok"] == {
            "period": 60,
            "runs": 1,
            "failures": 0,
            "last_run": status["ok"]["last_run"],
            "last_error": None,
        }
        assert status["bad"]["last_error"] == "ValueError"

    async def test_run_job_unknown(self) -> None:
        with pytest.raises(KeyError):
            await TaskManager().run_job("missing")

    async def test_cron_metrics(self) -> None:
        metrics = GatewayMetrics()
        tm = TaskManager(metrics=metrics)
        tm.register("timed", CronJob(handler=_noop, period=60))
        await tm.run_job("timed")
        count = metrics.registry.get_sample_value(
            "tron_gateway_cron_histogram_count", {"job_name": "timed"}
        )
        assert count == 1.0
