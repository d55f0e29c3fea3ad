"""Notifications: webhook event payloads and delivery."""

from __future__ import annotations

from tron_gateway.notifications.events import WebhookEvent
from tron_gateway.notifications.webhook import WebhookNotifier

__all__ = ["WebhookEvent", "WebhookNotifier"]
