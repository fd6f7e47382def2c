"""Celery task wiring for notifications."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from celery import Celery  # type: ignore[import-untyped]

from ztnet.config import AppSettings, get_settings
from ztnet.db.enums import AdminNotificationType
from ztnet.db.session import SessionLocal
from ztnet.notifications.admin import record_admin_notification
from ztnet.notifications.base import WebhookEvent
from ztnet.notifications.webhooks import deliver_webhook_event

DELIVER_WEBHOOK_TASK_NAME = "ztnet.deliver_webhook"
NOTIFY_ORGANIZATION_ADMINS_TASK_NAME = "ztnet.notify_organization_admins"
celery_app = Celery("ztnet")

logger = logging.getLogger(__name__)


def configure_celery(settings: AppSettings) -> None:
    celery_app.conf.broker_url = settings.redis_url
    celery_app.conf.result_backend = None
    celery_app.conf.task_ignore_result = True
    celery_app.conf.task_serializer = "json"
    celery_app.conf.accept_content = ["json"]


@celery_app.task(name=DELIVER_WEBHOOK_TASK_NAME)  # type: ignore[misc]
def deliver_webhook_task(event_payload: dict[str, Any]) -> None:
    settings = get_settings()
    event = WebhookEvent.from_payload(event_payload)
    with SessionLocal() as db_session:
        results = deliver_webhook_event(
            db_session,
            event=event,
            timeout_seconds=settings.webhook_timeout_seconds,
        )
    logger.info(
        "webhook event processed event_type=%s nwid=%s deliveries=%d",
        event.event_type.value,
        event.nwid,
        len(results),
    )


@celery_app.task(name=NOTIFY_ORGANIZATION_ADMINS_TASK_NAME)  # type: ignore[misc]
def notify_organization_admins_task(
    organization_id: str,
    event_type: str,
    data: dict[str, Any],
) -> None:
    with SessionLocal() as db_session:
        record_admin_notification(
            db_session,
            organization_id=uuid.UUID(organization_id),
            event_type=AdminNotificationType(event_type),
            data=data,
        )


class CeleryNotificationDispatcher:
    """Queues notifications so request handling never waits on delivery."""

    def __init__(self, settings: AppSettings) -> None:
        self._settings = settings

    def send_webhook(self, event: WebhookEvent) -> None:
        # Webhooks are organization resources; personal networks have none.
        if event.organization_id is None:
            return
        configure_celery(self._settings)
        deliver_webhook_task.delay(event.to_payload())

    def notify_organization_admins(
        self,
        organization_id: uuid.UUID,
        event_type: AdminNotificationType,
        data: dict[str, Any],
    ) -> None:
        configure_celery(self._settings)
        notify_organization_admins_task.delay(str(organization_id), event_type.value, data)
