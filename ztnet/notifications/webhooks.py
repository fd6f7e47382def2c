"""Outbound webhook delivery."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

import httpx
from sqlalchemy.orm import Session

from ztnet.notifications.base import WebhookEvent
from ztnet.repositories.webhooks import WebhookRepository

HTTPClientFactory = Callable[..., httpx.Client]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WebhookDeliveryResult:
    webhook_name: str
    url: str
    delivered: bool
    status_code: int | None = None
    error_message: str | None = None


def deliver_webhook_event(
    db_session: Session,
    *,
    event: WebhookEvent,
    timeout_seconds: float = 5.0,
    http_client_factory: HTTPClientFactory = httpx.Client,
) -> list[WebhookDeliveryResult]:
    """POST the event to every enabled webhook of its organization subscribed to its type.

    One failing endpoint does not prevent delivery to the others.
    """
    if event.organization_id is None:
        return []

    webhooks = WebhookRepository(db_session).list_subscribed(
        organization_id=event.organization_id,
        event_type=event.event_type,
    )
    if not webhooks:
        return []

    payload = event.to_payload()
    results: list[WebhookDeliveryResult] = []
    with http_client_factory(timeout=timeout_seconds) as client:
        for webhook in webhooks:
            try:
                response = client.post(webhook.url, json=payload)
            except httpx.HTTPError as exc:
                logger.warning(
                    "webhook delivery failed webhook=%s event_type=%s error=%s",
                    webhook.name,
                    event.event_type.value,
                    exc,
                )
                results.append(
                    WebhookDeliveryResult(
                        webhook_name=webhook.name,
                        url=webhook.url,
                        delivered=False,
                        error_message=str(exc),
                    )
                )
                continue

            delivered = response.status_code < 400
            if not delivered:
                logger.warning(
                    "webhook rejected webhook=%s event_type=%s status=%s",
                    webhook.name,
                    event.event_type.value,
                    response.status_code,
                )
            results.append(
                WebhookDeliveryResult(
                    webhook_name=webhook.name,
                    url=webhook.url,
                    delivered=delivered,
                    status_code=response.status_code,
                )
            )
    return results
