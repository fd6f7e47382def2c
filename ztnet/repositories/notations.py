"""Repositories for notation labels and their member links."""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ztnet.db.models import NetworkMemberNotation, Notation


class NotationRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_id(self, notation_id: int) -> Notation | None:
        return self._session.get(Notation, notation_id)

    def get_by_name(self, *, nwid: str, name: str) -> Notation | None:
        statement = select(Notation).where(Notation.nwid == nwid, Notation.name == name)
        return self._session.execute(statement).scalar_one_or_none()

    def get_or_create(
        self,
        *,
        nwid: str,
        name: str,
        color: str | None = None,
        description: str | None = None,
    ) -> Notation:
        notation = self.get_by_name(nwid=nwid, name=name)
        if notation is None:
            notation = Notation(nwid=nwid, name=name, color=color, description=description)
            self._session.add(notation)
            self._session.flush()
        return notation

    def list_for_network(self, nwid: str) -> list[Notation]:
        statement = select(Notation).where(Notation.nwid == nwid).order_by(Notation.name.asc())
        return list(self._session.execute(statement).scalars())

    def list_for_member(self, *, nwid: str, member_id: str) -> list[Notation]:
        statement = (
            select(Notation)
            .join(NetworkMemberNotation, NetworkMemberNotation.notation_id == Notation.id)
            .where(
                NetworkMemberNotation.nwid == nwid,
                NetworkMemberNotation.member_id == member_id,
            )
            .order_by(Notation.name.asc())
        )
        return list(self._session.execute(statement).scalars())

    def get_link(
        self,
        *,
        notation_id: int,
        nwid: str,
        member_id: str,
    ) -> NetworkMemberNotation | None:
        return self._session.get(NetworkMemberNotation, (notation_id, member_id, nwid))

    def link(self, *, notation: Notation, nwid: str, member_id: str) -> NetworkMemberNotation:
        existing = self.get_link(notation_id=notation.id, nwid=nwid, member_id=member_id)
        if existing is not None:
            return existing
        link = NetworkMemberNotation(notation_id=notation.id, nwid=nwid, member_id=member_id)
        self._session.add(link)
        self._session.flush()
        return link

    def unlink(self, link: NetworkMemberNotation) -> None:
        self._session.delete(link)
        self._session.flush()

    def count_links(self, notation_id: int) -> int:
        statement = select(func.count()).where(NetworkMemberNotation.notation_id == notation_id)
        return int(self._session.execute(statement).scalar_one())

    def delete(self, notation: Notation) -> None:
        self._session.delete(notation)
        self._session.flush()
