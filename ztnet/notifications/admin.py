"""Organization admin notifications.

Mail transport lives outside this service; a notification is recorded in the
organization's activity log with its intended recipients, which is what a mail
relay consumes.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy.orm import Session

from ztnet.db.enums import AdminNotificationType
from ztnet.db.models import AuditEvent, OrganizationSettings
from ztnet.repositories.audit_events import AuditEventRepository
from ztnet.repositories.organizations import OrganizationRepository

logger = logging.getLogger(__name__)


def notification_enabled(
    settings: OrganizationSettings,
    event_type: AdminNotificationType,
) -> bool:
    if not settings.email_notifications_enabled:
        return False
    flags = {
        AdminNotificationType.NODE_ADDED: settings.node_added_notification,
        AdminNotificationType.NODE_DELETED: settings.node_deleted_notification,
        AdminNotificationType.NODE_PERMANENTLY_DELETED: (
            settings.node_permanently_deleted_notification
        ),
        AdminNotificationType.NETWORK_DELETED: settings.network_deleted_notification,
    }
    return flags[event_type]


def record_admin_notification(
    db_session: Session,
    *,
    organization_id: uuid.UUID,
    event_type: AdminNotificationType,
    data: dict[str, Any],
) -> AuditEvent | None:
    organization_repo = OrganizationRepository(db_session)
    if organization_repo.get_by_id(organization_id) is None:
        logger.info(
            "skipping admin notification for missing organization organization_id=%s",
            organization_id,
        )
        return None

    settings = organization_repo.get_or_create_settings(organization_id)
    if not notification_enabled(settings, event_type):
        return None

    recipients = [
        admin.email
        for admin in organization_repo.list_admins(organization_id)
        if admin.email
    ]
    event = AuditEventRepository(db_session).create_event(
        action=f"notification.admin.{event_type.value}",
        target_type="organization",
        target_id=str(organization_id),
        organization_id=organization_id,
        metadata={"event_type": event_type.value, "recipients": recipients, "data": data},
    )
    db_session.commit()
    logger.info(
        "admin notification recorded organization_id=%s event_type=%s recipients=%d",
        organization_id,
        event_type.value,
        len(recipients),
    )
    return event
