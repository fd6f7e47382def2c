"""Notation labels attached to network members."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy.orm import Session

from ztnet.access import SessionActor, resolve_network
from ztnet.db.enums import OrganizationRole
from ztnet.db.models import Network, Notation
from ztnet.errors import InputValidationError, MemberNotFoundError, NotationNotFoundError
from ztnet.repositories.audit_events import AuditEventRepository
from ztnet.repositories.members import NetworkMemberRepository
from ztnet.repositories.notations import NotationRepository

logger = logging.getLogger(__name__)


class NotationService:
    def __init__(self, *, db_session: Session, actor: SessionActor) -> None:
        self._db_session = db_session
        self._actor = actor
        self._notations = NotationRepository(db_session)
        self._members = NetworkMemberRepository(db_session)
        self._audit = AuditEventRepository(db_session)

    def add_notation(
        self,
        *,
        nwid: str,
        member_id: str,
        name: str,
        color: str | None = None,
        description: str | None = None,
        organization_id: uuid.UUID | None = None,
    ) -> Notation:
        normalized_name = name.strip()
        if not normalized_name:
            raise InputValidationError("notation name cannot be empty")
        network = self._resolve(nwid, organization_id, OrganizationRole.USER)
        if self._members.get(nwid=nwid, member_id=member_id) is None:
            raise MemberNotFoundError(
                "member not found",
                details={"nwid": nwid, "member_id": member_id},
            )

        notation = self._notations.get_or_create(
            nwid=nwid,
            name=normalized_name,
            color=color,
            description=description,
        )
        self._notations.link(notation=notation, nwid=nwid, member_id=member_id)
        self._write_audit(
            network,
            action="notation.attached",
            target_id=str(notation.id),
            metadata={"member_id": member_id, "name": notation.name},
        )
        self._db_session.commit()
        return notation

    def list_network_notations(
        self,
        *,
        nwid: str,
        organization_id: uuid.UUID | None = None,
    ) -> list[Notation]:
        self._resolve(nwid, organization_id, OrganizationRole.READ_ONLY)
        return self._notations.list_for_network(nwid)

    def list_member_notations(
        self,
        *,
        nwid: str,
        member_id: str,
        organization_id: uuid.UUID | None = None,
    ) -> list[Notation]:
        self._resolve(nwid, organization_id, OrganizationRole.READ_ONLY)
        return self._notations.list_for_member(nwid=nwid, member_id=member_id)

    def remove_member_notation(
        self,
        *,
        nwid: str,
        member_id: str,
        notation_id: int,
        organization_id: uuid.UUID | None = None,
    ) -> bool:
        """Detach a notation; returns True when the notation itself was deleted."""
        network = self._resolve(nwid, organization_id, OrganizationRole.USER)
        link = self._notations.get_link(notation_id=notation_id, nwid=nwid, member_id=member_id)
        if link is None:
            raise NotationNotFoundError(
                "notation is not attached to this member",
                details={"nwid": nwid, "member_id": member_id, "notation_id": notation_id},
            )
        self._notations.unlink(link)

        notation_deleted = False
        if self._notations.count_links(notation_id) == 0:
            notation = self._notations.get_by_id(notation_id)
            if notation is not None:
                self._notations.delete(notation)
                notation_deleted = True
                logger.info(
                    "notation removed after last detach nwid=%s notation_id=%s",
                    nwid,
                    notation_id,
                )

        self._write_audit(
            network,
            action="notation.detached",
            target_id=str(notation_id),
            metadata={"member_id": member_id, "notation_deleted": notation_deleted},
        )
        self._db_session.commit()
        return notation_deleted

    def _resolve(
        self,
        nwid: str,
        organization_id: uuid.UUID | None,
        minimum_role: OrganizationRole,
    ) -> Network:
        return resolve_network(
            self._db_session,
            actor=self._actor,
            nwid=nwid,
            organization_id=organization_id,
            minimum_role=minimum_role,
        )

    def _write_audit(
        self,
        network: Network,
        *,
        action: str,
        target_id: str,
        metadata: dict[str, object],
    ) -> None:
        self._audit.create_event(
            action=action,
            target_type="notation",
            target_id=target_id,
            actor_user_id=self._actor.user_id,
            organization_id=network.organization_id,
            metadata={"nwid": network.nwid, **metadata},
        )
