"""Repositories for organization webhooks."""

from __future__ import annotations

import uuid
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from ztnet.db.enums import WebhookEventType
from ztnet.db.models import Webhook


class WebhookRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create(
        self,
        *,
        organization_id: uuid.UUID,
        name: str,
        url: str,
        event_types: Sequence[WebhookEventType],
    ) -> Webhook:
        webhook = Webhook(
            organization_id=organization_id,
            name=name,
            url=url,
            event_types=[event_type.value for event_type in event_types],
            is_enabled=True,
        )
        self._session.add(webhook)
        self._session.flush()
        return webhook

    def list_subscribed(
        self,
        *,
        organization_id: uuid.UUID,
        event_type: WebhookEventType,
    ) -> list[Webhook]:
        statement = (
            select(Webhook)
            .where(Webhook.organization_id == organization_id, Webhook.is_enabled.is_(True))
            .order_by(Webhook.created_at.asc())
        )
        # event_types is a JSON document; filtering in Python keeps SQLite and PostgreSQL alike.
        return [
            row
            for row in self._session.execute(statement).scalars()
            if event_type.value in (row.event_types or [])
        ]
