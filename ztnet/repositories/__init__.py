"""Repository layer exports."""

from ztnet.repositories.audit_events import AuditEventRepository
from ztnet.repositories.members import NetworkMemberRepository
from ztnet.repositories.networks import NetworkRepository, RouteRepository
from ztnet.repositories.notations import NotationRepository
from ztnet.repositories.organizations import OrganizationRepository
from ztnet.repositories.users import (
    LocalCredentialRepository,
    UserOptionsRepository,
    UserRepository,
)
from ztnet.repositories.webhooks import WebhookRepository

__all__ = [
    "AuditEventRepository",
    "LocalCredentialRepository",
    "NetworkMemberRepository",
    "NetworkRepository",
    "NotationRepository",
    "OrganizationRepository",
    "RouteRepository",
    "UserOptionsRepository",
    "UserRepository",
    "WebhookRepository",
]
