"""Repositories for network rows and their routes."""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from ztnet.db.models import Network, Route
from ztnet.routing import RouteRecord


class NetworkRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_id(self, nwid: str) -> Network | None:
        return self._session.get(Network, nwid)

    def create(
        self,
        *,
        nwid: str,
        name: str,
        description: str | None = None,
        author_id: uuid.UUID | None = None,
        organization_id: uuid.UUID | None = None,
    ) -> Network:
        if (author_id is None) == (organization_id is None):
            raise ValueError("a network is owned by exactly one author or organization")
        network = Network(
            nwid=nwid,
            name=name,
            description=description,
            author_id=None if organization_id is not None else author_id,
            organization_id=organization_id,
        )
        self._session.add(network)
        self._session.flush()
        return network

    def list_personal(self, author_id: uuid.UUID) -> list[Network]:
        statement = (
            select(Network)
            .where(Network.author_id == author_id, Network.organization_id.is_(None))
            .order_by(Network.created_at.asc(), Network.nwid.asc())
        )
        return list(self._session.execute(statement).scalars())

    def list_for_organization(self, organization_id: uuid.UUID) -> list[Network]:
        statement = (
            select(Network)
            .where(Network.organization_id == organization_id)
            .order_by(Network.created_at.asc(), Network.nwid.asc())
        )
        return list(self._session.execute(statement).scalars())

    def delete(self, network: Network) -> None:
        self._session.delete(network)
        self._session.flush()


class RouteRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_id(self, route_id: uuid.UUID) -> Route | None:
        return self._session.get(Route, route_id)

    def list_for_network(self, nwid: str) -> list[Route]:
        statement = select(Route).where(Route.nwid == nwid).order_by(Route.target.asc())
        return list(self._session.execute(statement).scalars())

    def replace_for_network(self, nwid: str, routes: Sequence[RouteRecord]) -> list[Route]:
        """Replace the stored routes, keeping notes on routes whose key survives."""
        existing = self.list_for_network(nwid)
        notes_by_key = {(row.target, row.via or None): row.notes for row in existing}

        for row in existing:
            self._session.delete(row)
        self._session.flush()

        seen: set[tuple[str, str | None]] = set()
        for record in routes:
            if record.key in seen:
                continue
            seen.add(record.key)
            self._session.add(
                Route(
                    nwid=nwid,
                    target=record.target,
                    via=record.via or None,
                    notes=notes_by_key.get(record.key),
                )
            )
        self._session.flush()
        self._session.expire_all()
        return self.list_for_network(nwid)

    def set_note(self, route: Route, note: str | None) -> Route:
        route.notes = note
        self._session.flush()
        return route

    def find_personal_duplicates(
        self,
        *,
        author_id: uuid.UUID,
        exclude_nwid: str,
        targets: Iterable[str],
    ) -> list[tuple[Network, Route]]:
        target_list = sorted(set(targets))
        if not target_list:
            return []
        statement = (
            select(Network, Route)
            .join(Route, Route.nwid == Network.nwid)
            .where(
                Network.author_id == author_id,
                Network.organization_id.is_(None),
                Network.nwid != exclude_nwid,
                Route.target.in_(target_list),
            )
            .order_by(Network.nwid.asc(), Route.target.asc())
        )
        return [(network, route) for network, route in self._session.execute(statement).tuples()]
