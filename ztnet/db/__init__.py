"""Database layer exports."""

from ztnet.db.base import Base
from ztnet.db.enums import (
    AdminNotificationType,
    MemberState,
    OrganizationRole,
    WebhookEventType,
    can_transition_member,
    member_state,
)
from ztnet.db.models import (
    AppUser,
    AuditEvent,
    LocalCredential,
    Network,
    NetworkMember,
    NetworkMemberNotation,
    Notation,
    Organization,
    OrganizationSettings,
    Route,
    UserOptions,
    UserOrganizationRole,
    Webhook,
)

__all__ = [
    "AdminNotificationType",
    "AppUser",
    "AuditEvent",
    "Base",
    "LocalCredential",
    "MemberState",
    "Network",
    "NetworkMember",
    "NetworkMemberNotation",
    "Notation",
    "Organization",
    "OrganizationRole",
    "OrganizationSettings",
    "Route",
    "UserOptions",
    "UserOrganizationRole",
    "Webhook",
    "WebhookEventType",
    "can_transition_member",
    "member_state",
]
