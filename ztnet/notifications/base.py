"""Notification event model, dispatcher interface and failure isolation."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

from ztnet.db.enums import AdminNotificationType, WebhookEventType

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WebhookEvent:
    event_type: WebhookEventType
    nwid: str
    organization_id: uuid.UUID | None = None
    member_id: str | None = None
    actor_user_id: uuid.UUID | None = None
    data: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_payload(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "nwid": self.nwid,
            "organization_id": str(self.organization_id) if self.organization_id else None,
            "member_id": self.member_id,
            "actor_user_id": str(self.actor_user_id) if self.actor_user_id else None,
            "data": dict(self.data),
            "occurred_at": self.occurred_at.isoformat(),
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> WebhookEvent:
        organization_id = payload.get("organization_id")
        actor_user_id = payload.get("actor_user_id")
        occurred_at = payload.get("occurred_at")
        return cls(
            event_type=WebhookEventType(payload["event_type"]),
            nwid=str(payload["nwid"]),
            organization_id=uuid.UUID(organization_id) if organization_id else None,
            member_id=payload.get("member_id"),
            actor_user_id=uuid.UUID(actor_user_id) if actor_user_id else None,
            data=dict(payload.get("data") or {}),
            occurred_at=(
                datetime.fromisoformat(occurred_at) if occurred_at else datetime.now(UTC)
            ),
        )


class NotificationDispatcher(Protocol):
    def send_webhook(self, event: WebhookEvent) -> None:
        """Deliver ``event`` to subscribed organization webhooks."""

    def notify_organization_admins(
        self,
        organization_id: uuid.UUID,
        event_type: AdminNotificationType,
        data: dict[str, Any],
    ) -> None:
        """Tell organization admins about ``event_type`` when they opted in."""


def dispatch_safely(label: str, send: Callable[..., None], *args: Any, **kwargs: Any) -> bool:
    """Run one side effect; a failure is logged and never reaches the caller."""
    try:
        send(*args, **kwargs)
    except Exception:
        logger.exception("notification dispatch failed label=%s", label)
        return False
    return True
