"""Member naming policy for newly added or restored members."""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy.orm import Session

from ztnet.db.models import Network, NetworkMember
from ztnet.repositories.members import NetworkMemberRepository
from ztnet.repositories.organizations import OrganizationRepository
from ztnet.repositories.users import UserOptionsRepository


@dataclass(frozen=True, slots=True)
class NamingPolicy:
    rename_globally: bool
    use_member_id_as_name: bool


def resolve_naming_policy(
    db_session: Session,
    *,
    network: Network,
    actor_user_id: uuid.UUID,
) -> NamingPolicy:
    """Organization networks follow organization settings; personal ones the actor's options."""
    options = UserOptionsRepository(db_session).get_for_user(actor_user_id)
    use_member_id_as_name = bool(options and options.add_member_id_as_name)
    if network.organization_id is not None:
        settings = OrganizationRepository(db_session).get_or_create_settings(
            network.organization_id
        )
        return NamingPolicy(
            rename_globally=settings.rename_node_globally,
            use_member_id_as_name=use_member_id_as_name,
        )
    return NamingPolicy(
        rename_globally=bool(options and options.rename_node_globally),
        use_member_id_as_name=use_member_id_as_name,
    )


def list_scope_peers(
    db_session: Session,
    *,
    network: Network,
    member_id: str,
    named_only: bool = False,
) -> list[NetworkMember]:
    """Non-stashed rows with the same identifier in the network's other scope networks."""
    member_repo = NetworkMemberRepository(db_session)
    if network.organization_id is not None:
        return member_repo.list_in_organization_scope(
            member_id=member_id,
            organization_id=network.organization_id,
            exclude_nwid=network.nwid,
            named_only=named_only,
        )
    assert network.author_id is not None
    return member_repo.list_in_personal_scope(
        member_id=member_id,
        author_id=network.author_id,
        exclude_nwid=network.nwid,
        named_only=named_only,
    )


def resolve_member_name(
    db_session: Session,
    *,
    network: Network,
    member_id: str,
    policy: NamingPolicy,
    current_name: str | None = None,
) -> str | None:
    if policy.rename_globally:
        for peer in list_scope_peers(
            db_session,
            network=network,
            member_id=member_id,
            named_only=True,
        ):
            if peer.name:
                return peer.name
    if policy.use_member_id_as_name:
        return member_id
    return current_name
