from __future__ import annotations

import uuid
from collections.abc import Generator
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

import pytest
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ztnet.access import SessionActor
from ztnet.config import AppSettings
from ztnet.controller.base import (
    ControllerError,
    ControllerMember,
    ControllerNetwork,
    ControllerNotFoundError,
    MemberUpdate,
    NetworkConfigUpdate,
)
from ztnet.db import models as _models  # noqa: F401
from ztnet.db.base import Base
from ztnet.db.enums import AdminNotificationType, OrganizationRole
from ztnet.db.models import (
    AppUser,
    Network,
    NetworkMember,
    Organization,
    OrganizationSettings,
    UserOptions,
    UserOrganizationRole,
)
from ztnet.notifications.base import WebhookEvent
from ztnet.routing import RouteRecord


@dataclass(slots=True)
class StubController:
    """In-memory controller; ``failures`` maps (operation, nwid, member_id) to an error."""

    provider_name: str = "stub"
    networks: dict[str, ControllerNetwork] = field(default_factory=dict)
    members: dict[tuple[str, str], ControllerMember] = field(default_factory=dict)
    failures: dict[tuple[str, str, str | None], ControllerError] = field(default_factory=dict)
    calls: list[tuple[str, str, str | None]] = field(default_factory=list)
    member_updates: list[tuple[str, str, MemberUpdate]] = field(default_factory=list)
    network_updates: list[tuple[str, NetworkConfigUpdate]] = field(default_factory=list)
    created_count: int = 0

    def add_network(
        self,
        nwid: str,
        *,
        name: str = "net",
        routes: list[RouteRecord] | None = None,
    ) -> ControllerNetwork:
        network = ControllerNetwork(nwid=nwid, name=name, routes=list(routes or []))
        self.networks[nwid] = network
        return network

    def add_member(
        self,
        nwid: str,
        member_id: str,
        *,
        authorized: bool = True,
        name: str | None = None,
        ip_assignments: list[str] | None = None,
        online: bool | None = True,
        last_seen: datetime | None = None,
    ) -> ControllerMember:
        member = ControllerMember(
            member_id=member_id,
            nwid=nwid,
            authorized=authorized,
            ip_assignments=list(ip_assignments or []),
            physical_address="203.0.113.10/9993",
            online=online,
            last_seen=last_seen,
            name=name,
        )
        self.members[(nwid, member_id)] = member
        return member

    def fail(
        self,
        operation: str,
        nwid: str,
        member_id: str | None = None,
        *,
        error: ControllerError,
    ) -> None:
        self.failures[(operation, nwid, member_id)] = error

    def get_network(self, nwid: str) -> ControllerNetwork:
        self._record("get_network", nwid)
        if nwid not in self.networks:
            raise ControllerNotFoundError(f"network not found nwid={nwid}", status_code=404)
        return self.networks[nwid]

    def create_network(self, *, name: str) -> ControllerNetwork:
        self._record("create_network", "")
        self.created_count += 1
        nwid = f"{self.created_count:016x}"
        return self.add_network(nwid, name=name)

    def update_network(self, nwid: str, changes: NetworkConfigUpdate) -> ControllerNetwork:
        self._record("update_network", nwid)
        network = self.get_network(nwid)
        self.network_updates.append((nwid, changes))
        for key in ("name", "private", "mtu", "multicast_limit", "enable_broadcast", "dns"):
            value = getattr(changes, key)
            if value is not None:
                setattr(network, key, value)
        if changes.routes is not None:
            network.routes = list(changes.routes)
        if changes.ip_assignment_pools is not None:
            network.ip_assignment_pools = list(changes.ip_assignment_pools)
        if changes.v4_auto_assign is not None:
            network.v4_auto_assign = changes.v4_auto_assign
        if changes.v6_assign_mode is not None:
            network.v6_assign_mode = changes.v6_assign_mode.merged_over(network.v6_assign_mode)
        return network

    def delete_network(self, nwid: str) -> None:
        self._record("delete_network", nwid)
        self.get_network(nwid)
        del self.networks[nwid]

    def list_network_members(self, nwid: str) -> list[ControllerMember]:
        self._record("list_network_members", nwid)
        self.get_network(nwid)
        return [member for (member_nwid, _), member in self.members.items() if member_nwid == nwid]

    def get_member(self, nwid: str, member_id: str) -> ControllerMember:
        self._record("get_member", nwid, member_id)
        member = self.members.get((nwid, member_id))
        if member is None:
            raise ControllerNotFoundError(
                f"member not found nwid={nwid} member_id={member_id}",
                status_code=404,
            )
        return member

    def update_member(self, nwid: str, member_id: str, changes: MemberUpdate) -> ControllerMember:
        self._record("update_member", nwid, member_id)
        self.member_updates.append((nwid, member_id, changes))
        member = self.get_member(nwid, member_id)
        if changes.authorized is not None:
            member.authorized = changes.authorized
        if changes.ip_assignments is not None:
            member.ip_assignments = list(changes.ip_assignments)
        if changes.name is not None:
            member.name = changes.name
        if changes.description is not None:
            member.description = changes.description
        return member

    def delete_member(self, nwid: str, member_id: str) -> None:
        self._record("delete_member", nwid, member_id)
        self.get_member(nwid, member_id)
        del self.members[(nwid, member_id)]

    def operations(self, name: str) -> list[tuple[str, str, str | None]]:
        return [call for call in self.calls if call[0] == name]

    def _record(self, operation: str, nwid: str, member_id: str | None = None) -> None:
        self.calls.append((operation, nwid, member_id))
        error = self.failures.get((operation, nwid, member_id))
        if error is not None:
            raise error


@dataclass(slots=True)
class RecordingDispatcher:
    webhooks: list[WebhookEvent] = field(default_factory=list)
    admin_notifications: list[tuple[uuid.UUID, AdminNotificationType, dict[str, Any]]] = field(
        default_factory=list
    )
    raise_on_send: bool = False

    def send_webhook(self, event: WebhookEvent) -> None:
        if self.raise_on_send:
            raise RuntimeError("webhook transport down")
        self.webhooks.append(event)

    def notify_organization_admins(
        self,
        organization_id: uuid.UUID,
        event_type: AdminNotificationType,
        data: dict[str, Any],
    ) -> None:
        if self.raise_on_send:
            raise RuntimeError("mail relay down")
        self.admin_notifications.append((organization_id, event_type, data))

    def webhook_types(self) -> list[str]:
        return [event.event_type.value for event in self.webhooks]

    def admin_types(self) -> list[str]:
        return [event_type.value for _, event_type, _ in self.admin_notifications]


@dataclass(slots=True)
class Seeder:
    """Inserts rows directly so each test starts from a known database state."""

    session: Session

    def user(
        self,
        username: str = "operator",
        *,
        email: str | None = None,
        rename_node_globally: bool = False,
        add_member_id_as_name: bool = False,
    ) -> AppUser:
        user = AppUser(username=username, email=email)
        self.session.add(user)
        self.session.flush()
        self.session.add(
            UserOptions(
                user_id=user.id,
                rename_node_globally=rename_node_globally,
                add_member_id_as_name=add_member_id_as_name,
            )
        )
        self.session.commit()
        return user

    def organization(
        self,
        name: str = "Acme",
        *,
        members: dict[uuid.UUID, OrganizationRole] | None = None,
        **settings: bool,
    ) -> Organization:
        organization = Organization(name=name)
        self.session.add(organization)
        self.session.flush()
        self.session.add(OrganizationSettings(organization_id=organization.id, **settings))
        for user_id, role in (members or {}).items():
            self.session.add(
                UserOrganizationRole(user_id=user_id, organization_id=organization.id, role=role)
            )
        self.session.commit()
        return organization

    def network(
        self,
        nwid: str,
        *,
        name: str = "net",
        author: AppUser | None = None,
        organization: Organization | None = None,
    ) -> Network:
        network = Network(
            nwid=nwid,
            name=name,
            author_id=author.id if author is not None else None,
            organization_id=organization.id if organization is not None else None,
        )
        self.session.add(network)
        self.session.commit()
        return network

    def member(
        self,
        nwid: str,
        member_id: str,
        *,
        name: str | None = None,
        authorized: bool = True,
        deleted: bool = False,
        permanently_deleted: bool = False,
    ) -> NetworkMember:
        now = datetime.now(UTC)
        member = NetworkMember(
            id=member_id,
            nwid=nwid,
            address=member_id,
            name=name,
            authorized=authorized,
            deleted=deleted or permanently_deleted,
            permanently_deleted=permanently_deleted,
            creation_time=now,
            last_seen=now,
        )
        self.session.add(member)
        self.session.commit()
        return member


def _make_settings(**overrides: Any) -> AppSettings:
    base = AppSettings(
        app_env="test",
        app_secret_key="test-secret",
        session_cookie_name="ztnet_session",
        session_cookie_max_age_seconds=3600,
        session_cookie_secure=False,
        local_auth_enabled=True,
        local_auth_password_min_length=12,
        local_auth_pbkdf2_iterations=100_000,
        redis_url="memory://",
        zt_provider="central",
        zt_central_base_url="https://api.zerotier.com/api/v1",
        zt_central_api_token="test-central-token",
        zt_controller_base_url="http://127.0.0.1:9993/controller",
        zt_controller_auth_token="test-controller-token",
    )
    return replace(base, **overrides)


@pytest.fixture()
def app_settings() -> AppSettings:
    return _make_settings()


@pytest.fixture()
def db_engine() -> Generator[Engine]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection: Any, _: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(db_engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        bind=db_engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session]:
    with session_factory() as session:
        yield session


@pytest.fixture()
def seed(db_session: Session) -> Seeder:
    return Seeder(db_session)


@pytest.fixture()
def controller() -> StubController:
    return StubController()


@pytest.fixture()
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture()
def owner(seed: Seeder) -> AppUser:
    return seed.user("owner", email="owner@example.net")


@pytest.fixture()
def owner_actor(owner: AppUser) -> SessionActor:
    return SessionActor(user_id=owner.id)
