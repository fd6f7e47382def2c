"""SQLAlchemy ORM models for ZTNET data contracts."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    ForeignKeyConstraint,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ztnet.db.base import Base
from ztnet.db.enums import MemberState, OrganizationRole, member_state

ORGANIZATION_ROLE_ENUM = Enum(
    OrganizationRole,
    name="organization_role",
    values_callable=lambda enum_cls: [role.value for role in enum_cls],
)
JSON_DOCUMENT_TYPE = JSONB().with_variant(JSON(), "sqlite")  # type: ignore[no-untyped-call]


class AppUser(Base):
    __tablename__ = "app_user"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    full_name: Mapped[str | None] = mapped_column(Text)
    email: Mapped[str | None] = mapped_column(Text)
    is_admin: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    local_credential: Mapped[LocalCredential | None] = relationship(
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )
    options: Mapped[UserOptions | None] = relationship(
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )
    networks: Mapped[list[Network]] = relationship(back_populates="author")
    organization_roles: Mapped[list[UserOrganizationRole]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
    )
    audit_events: Mapped[list[AuditEvent]] = relationship(back_populates="actor_user")


class LocalCredential(Base):
    __tablename__ = "local_credential"
    __table_args__ = (
        CheckConstraint(
            "login_username = lower(login_username)",
            name="local_credential_login_username_lower",
        ),
        Index("idx_local_credential_user_id", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("app_user.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    login_username: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    is_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    user: Mapped[AppUser] = relationship(back_populates="local_credential")


class UserOptions(Base):
    __tablename__ = "user_options"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("app_user.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    rename_node_globally: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    add_member_id_as_name: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    user: Mapped[AppUser] = relationship(back_populates="options")


class Organization(Base):
    __tablename__ = "organization"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    user_roles: Mapped[list[UserOrganizationRole]] = relationship(
        back_populates="organization",
        cascade="all, delete-orphan",
    )
    settings: Mapped[OrganizationSettings | None] = relationship(
        back_populates="organization",
        uselist=False,
        cascade="all, delete-orphan",
    )
    networks: Mapped[list[Network]] = relationship(back_populates="organization")
    webhooks: Mapped[list[Webhook]] = relationship(
        back_populates="organization",
        cascade="all, delete-orphan",
    )


class UserOrganizationRole(Base):
    __tablename__ = "user_organization_role"
    __table_args__ = (UniqueConstraint("user_id", "organization_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("app_user.id", ondelete="CASCADE"),
        nullable=False,
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organization.id", ondelete="CASCADE"),
        nullable=False,
    )
    role: Mapped[OrganizationRole] = mapped_column(
        ORGANIZATION_ROLE_ENUM,
        nullable=False,
        default=OrganizationRole.READ_ONLY,
        server_default=text("'read_only'"),
    )

    user: Mapped[AppUser] = relationship(back_populates="organization_roles")
    organization: Mapped[Organization] = relationship(back_populates="user_roles")


class OrganizationSettings(Base):
    __tablename__ = "organization_settings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organization.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    rename_node_globally: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    email_notifications_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )
    node_added_notification: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    node_deleted_notification: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    node_permanently_deleted_notification: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    network_deleted_notification: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    organization: Mapped[Organization] = relationship(back_populates="settings")


class Network(Base):
    __tablename__ = "network"
    __table_args__ = (
        CheckConstraint("length(nwid) = 16", name="network_nwid_len"),
        CheckConstraint(
            "(author_id IS NULL) <> (organization_id IS NULL)",
            name="network_single_owner",
        ),
        Index("idx_network_author_id", "author_id"),
        Index("idx_network_organization_id", "organization_id"),
    )

    nwid: Mapped[str] = mapped_column(String(16), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    author_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("app_user.id", ondelete="CASCADE"),
    )
    organization_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("organization.id", ondelete="CASCADE"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    author: Mapped[AppUser | None] = relationship(back_populates="networks")
    organization: Mapped[Organization | None] = relationship(back_populates="networks")
    members: Mapped[list[NetworkMember]] = relationship(
        back_populates="network",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    routes: Mapped[list[Route]] = relationship(
        back_populates="network",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Route.target",
    )
    notations: Mapped[list[Notation]] = relationship(
        back_populates="network",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class NetworkMember(Base):
    __tablename__ = "network_member"
    __table_args__ = (
        CheckConstraint("length(id) = 10", name="network_member_id_len"),
        Index("idx_network_member_nwid_deleted", "nwid", "deleted"),
    )

    id: Mapped[str] = mapped_column(String(10), primary_key=True)
    nwid: Mapped[str] = mapped_column(
        String(16),
        ForeignKey("network.nwid", ondelete="CASCADE"),
        primary_key=True,
    )
    address: Mapped[str] = mapped_column(String(10), nullable=False)
    name: Mapped[str | None] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    authorized: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    deleted: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    permanently_deleted: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    creation_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    last_seen: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    network: Mapped[Network] = relationship(back_populates="members")
    notation_links: Mapped[list[NetworkMemberNotation]] = relationship(
        back_populates="member",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def state(self) -> MemberState:
        return member_state(deleted=self.deleted, permanently_deleted=self.permanently_deleted)


class Route(Base):
    __tablename__ = "route"
    __table_args__ = (Index("idx_route_nwid", "nwid"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    nwid: Mapped[str] = mapped_column(
        String(16),
        ForeignKey("network.nwid", ondelete="CASCADE"),
        nullable=False,
    )
    target: Mapped[str] = mapped_column(Text, nullable=False)
    via: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)

    network: Mapped[Network] = relationship(back_populates="routes")


class Notation(Base):
    __tablename__ = "notation"
    __table_args__ = (UniqueConstraint("name", "nwid"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    nwid: Mapped[str] = mapped_column(
        String(16),
        ForeignKey("network.nwid", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    color: Mapped[str | None] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    network: Mapped[Network] = relationship(back_populates="notations")
    member_links: Mapped[list[NetworkMemberNotation]] = relationship(
        back_populates="notation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class NetworkMemberNotation(Base):
    __tablename__ = "network_member_notation"
    __table_args__ = (
        ForeignKeyConstraint(
            ["member_id", "nwid"],
            ["network_member.id", "network_member.nwid"],
            ondelete="CASCADE",
        ),
    )

    notation_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("notation.id", ondelete="CASCADE"),
        primary_key=True,
    )
    member_id: Mapped[str] = mapped_column(String(10), primary_key=True)
    nwid: Mapped[str] = mapped_column(String(16), primary_key=True)

    notation: Mapped[Notation] = relationship(back_populates="member_links")
    member: Mapped[NetworkMember] = relationship(back_populates="notation_links")


class Webhook(Base):
    __tablename__ = "webhook"
    __table_args__ = (Index("idx_webhook_organization_id", "organization_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organization.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    event_types: Mapped[list[str]] = mapped_column(JSON_DOCUMENT_TYPE, nullable=False, default=list)
    is_enabled: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    organization: Mapped[Organization] = relationship(back_populates="webhooks")


class AuditEvent(Base):
    __tablename__ = "audit_event"
    __table_args__ = (
        Index("idx_audit_event_created_at", "created_at"),
        Index("idx_audit_event_organization_id", "organization_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    actor_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("app_user.id", ondelete="SET NULL"),
    )
    organization_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("organization.id", ondelete="SET NULL"),
    )
    action: Mapped[str] = mapped_column(Text, nullable=False)
    target_type: Mapped[str] = mapped_column(Text, nullable=False)
    target_id: Mapped[str] = mapped_column(Text, nullable=False)
    event_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSON_DOCUMENT_TYPE,
        nullable=False,
        default=dict,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    actor_user: Mapped[AppUser | None] = relationship(back_populates="audit_events")
