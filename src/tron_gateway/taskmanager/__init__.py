"""Task manager: the gateway's background loops.

``TaskManager`` runs each ``CronJob`` on its own asyncio task; the job
handlers and their periods live in :mod:`tron_gateway.taskmanager.tasks`.
"""

from __future__ import annotations

from tron_gateway.taskmanager.manager import CronJob, TaskManager

__all__ = ["CronJob", "TaskManager"]
