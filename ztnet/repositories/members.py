"""Repositories for network member rows."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from ztnet.db.models import Network, NetworkMember


class NetworkMemberRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, *, nwid: str, member_id: str) -> NetworkMember | None:
        return self._session.get(NetworkMember, (member_id, nwid))

    def list_for_network(self, nwid: str) -> list[NetworkMember]:
        """Every row for the network, stashed and permanently deleted included."""
        statement = (
            select(NetworkMember)
            .where(NetworkMember.nwid == nwid)
            .order_by(NetworkMember.creation_time.asc(), NetworkMember.id.asc())
        )
        return list(self._session.execute(statement).scalars())

    def list_stashed(self, nwid: str) -> list[NetworkMember]:
        statement = (
            select(NetworkMember)
            .where(
                NetworkMember.nwid == nwid,
                NetworkMember.deleted.is_(True),
                NetworkMember.permanently_deleted.is_(False),
            )
            .order_by(NetworkMember.id.asc())
        )
        return list(self._session.execute(statement).scalars())

    def list_permanently_deleted_ids(self, nwid: str) -> set[str]:
        statement = select(NetworkMember.id).where(
            NetworkMember.nwid == nwid,
            NetworkMember.permanently_deleted.is_(True),
        )
        return set(self._session.execute(statement).scalars())

    def count_for_network(self, nwid: str) -> tuple[int, int]:
        """Return (authorized, total) over non-stashed rows."""
        statement = select(
            func.count(NetworkMember.id).filter(NetworkMember.authorized.is_(True)),
            func.count(NetworkMember.id),
        ).where(NetworkMember.nwid == nwid, NetworkMember.deleted.is_(False))
        authorized, total = self._session.execute(statement).one()
        return int(authorized), int(total)

    def create(
        self,
        *,
        nwid: str,
        member_id: str,
        name: str | None = None,
        authorized: bool = False,
        seen_at: datetime | None = None,
    ) -> NetworkMember:
        now = seen_at or datetime.now(UTC)
        member = NetworkMember(
            id=member_id,
            nwid=nwid,
            address=member_id,
            name=name,
            authorized=authorized,
            deleted=False,
            permanently_deleted=False,
            creation_time=now,
            last_seen=now,
        )
        self._session.add(member)
        self._session.flush()
        return member

    def delete(self, member: NetworkMember) -> None:
        self._session.delete(member)
        self._session.flush()

    def list_in_personal_scope(
        self,
        *,
        member_id: str,
        author_id: uuid.UUID,
        exclude_nwid: str | None = None,
        named_only: bool = False,
    ) -> list[NetworkMember]:
        """Non-stashed rows for the identifier across the author's personal networks."""
        statement = (
            select(NetworkMember)
            .join(Network, Network.nwid == NetworkMember.nwid)
            .where(
                NetworkMember.id == member_id,
                NetworkMember.deleted.is_(False),
                Network.author_id == author_id,
                Network.organization_id.is_(None),
            )
        )
        return self._scope_rows(statement, exclude_nwid=exclude_nwid, named_only=named_only)

    def list_in_organization_scope(
        self,
        *,
        member_id: str,
        organization_id: uuid.UUID,
        exclude_nwid: str | None = None,
        named_only: bool = False,
    ) -> list[NetworkMember]:
        """Non-stashed rows for the identifier across the organization's networks."""
        statement = (
            select(NetworkMember)
            .join(Network, Network.nwid == NetworkMember.nwid)
            .where(
                NetworkMember.id == member_id,
                NetworkMember.deleted.is_(False),
                Network.organization_id == organization_id,
            )
        )
        return self._scope_rows(statement, exclude_nwid=exclude_nwid, named_only=named_only)

    def _scope_rows(
        self,
        statement: Select[tuple[NetworkMember]],
        *,
        exclude_nwid: str | None,
        named_only: bool,
    ) -> list[NetworkMember]:
        if exclude_nwid is not None:
            statement = statement.where(NetworkMember.nwid != exclude_nwid)
        if named_only:
            statement = statement.where(NetworkMember.name.is_not(None))
        statement = statement.order_by(NetworkMember.nwid.asc())
        return list(self._session.execute(statement).scalars())
