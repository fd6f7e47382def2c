"""Webhook and organization-admin notifications."""

from ztnet.notifications.base import NotificationDispatcher, WebhookEvent, dispatch_safely

__all__ = [
    "NotificationDispatcher",
    "WebhookEvent",
    "dispatch_safely",
]
