"""Ownership and role checks for personal and organization networks."""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy.orm import Session

from ztnet.db.enums import OrganizationRole
from ztnet.db.models import Network
from ztnet.errors import AccessDeniedError, NetworkNotFoundError, OrganizationNotFoundError
from ztnet.repositories.networks import NetworkRepository
from ztnet.repositories.organizations import OrganizationRepository


@dataclass(frozen=True, slots=True)
class SessionActor:
    user_id: uuid.UUID
    is_admin: bool = False


def require_organization_role(
    db_session: Session,
    *,
    actor: SessionActor,
    organization_id: uuid.UUID,
    minimum_role: OrganizationRole = OrganizationRole.READ_ONLY,
) -> OrganizationRole:
    if OrganizationRepository(db_session).get_by_id(organization_id) is None:
        raise OrganizationNotFoundError(
            "organization not found",
            details={"organization_id": str(organization_id)},
        )
    role = OrganizationRepository(db_session).get_role(
        user_id=actor.user_id,
        organization_id=organization_id,
    )
    if role is None or not role.satisfies(minimum_role):
        raise AccessDeniedError(
            f"organization role {minimum_role.value!r} or higher is required",
            details={
                "organization_id": str(organization_id),
                "required_role": minimum_role.value,
                "current_role": role.value if role is not None else None,
            },
        )
    return role


def resolve_network(
    db_session: Session,
    *,
    actor: SessionActor,
    nwid: str,
    organization_id: uuid.UUID | None = None,
    minimum_role: OrganizationRole = OrganizationRole.READ_ONLY,
) -> Network:
    """Load a network the actor may operate on or raise before any state change.

    Personal networks belong to their author alone. Organization networks need
    the caller to name the organization and hold at least ``minimum_role`` in it.
    """
    network = NetworkRepository(db_session).get_by_id(nwid)
    if network is None:
        raise NetworkNotFoundError("network not found", details={"nwid": nwid})

    if network.organization_id is None:
        if organization_id is not None or network.author_id != actor.user_id:
            raise AccessDeniedError(
                "you do not have access to this network",
                details={"nwid": nwid},
            )
        return network

    if organization_id is None or network.organization_id != organization_id:
        raise AccessDeniedError(
            "network belongs to a different organization",
            details={"nwid": nwid},
        )
    require_organization_role(
        db_session,
        actor=actor,
        organization_id=organization_id,
        minimum_role=minimum_role,
    )
    return network
