"""initial ztnet schema

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 00:00:01

"""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261017_0001"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def _uuid_column(name: str, dialect_name: str) -> sa.Column[sa.Uuid]:
    kwargs: dict[str, object] = {"nullable": False, "primary_key": True}
    if dialect_name == "postgresql":
        kwargs["server_default"] = sa.text("gen_random_uuid()")
    return sa.Column(name, sa.Uuid(), **kwargs)


def _timestamp_column(name: str) -> sa.Column[sa.DateTime]:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def upgrade() -> None:
    bind = op.get_bind()
    dialect_name = bind.dialect.name

    if dialect_name == "postgresql":
        op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    organization_role_enum = sa.Enum("read_only", "user", "admin", name="organization_role")
    json_type: sa.TypeEngine[object]
    json_object_default: sa.TextClause
    json_array_default: sa.TextClause

    if dialect_name == "postgresql":
        json_type = postgresql.JSONB()
        json_object_default = sa.text("'{}'::jsonb")
        json_array_default = sa.text("'[]'::jsonb")
    else:
        json_type = sa.JSON()
        json_object_default = sa.text("'{}'")
        json_array_default = sa.text("'[]'")

    op.create_table(
        "app_user",
        _uuid_column("id", dialect_name),
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp_column("created_at"),
        _timestamp_column("updated_at"),
        sa.PrimaryKeyConstraint("id", name="pk_app_user"),
        sa.UniqueConstraint("username", name="uq_app_user_username"),
    )

    op.create_table(
        "local_credential",
        _uuid_column("id", dialect_name),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("login_username", sa.Text(), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp_column("created_at"),
        _timestamp_column("updated_at"),
        sa.CheckConstraint(
            "login_username = lower(login_username)",
            name="ck_local_credential_local_credential_login_username_lower",
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["app_user.id"],
            name="fk_local_credential_user_id_app_user",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_local_credential"),
        sa.UniqueConstraint("user_id", name="uq_local_credential_user_id"),
        sa.UniqueConstraint("login_username", name="uq_local_credential_login_username"),
    )
    op.create_index("idx_local_credential_user_id", "local_credential", ["user_id"])

    op.create_table(
        "user_options",
        _uuid_column("id", dialect_name),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column(
            "rename_node_globally", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "add_member_id_as_name", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["app_user.id"],
            name="fk_user_options_user_id_app_user",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_user_options"),
        sa.UniqueConstraint("user_id", name="uq_user_options_user_id"),
    )

    op.create_table(
        "organization",
        _uuid_column("id", dialect_name),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _timestamp_column("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_organization"),
    )

    op.create_table(
        "user_organization_role",
        _uuid_column("id", dialect_name),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        sa.Column(
            "role",
            organization_role_enum,
            nullable=False,
            server_default=sa.text("'read_only'"),
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["app_user.id"],
            name="fk_user_organization_role_user_id_app_user",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["organization_id"],
            ["organization.id"],
            name="fk_user_organization_role_organization_id_organization",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_user_organization_role"),
        sa.UniqueConstraint(
            "user_id",
            "organization_id",
            name="uq_user_organization_role_user_id",
        ),
    )

    op.create_table(
        "organization_settings",
        _uuid_column("id", dialect_name),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        sa.Column(
            "rename_node_globally", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "email_notifications_enabled", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column(
            "node_added_notification", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "node_deleted_notification", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "node_permanently_deleted_notification",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column(
            "network_deleted_notification",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.ForeignKeyConstraint(
            ["organization_id"],
            ["organization.id"],
            name="fk_organization_settings_organization_id_organization",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_organization_settings"),
        sa.UniqueConstraint("organization_id", name="uq_organization_settings_organization_id"),
    )

    op.create_table(
        "network",
        sa.Column("nwid", sa.String(length=16), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("author_id", sa.Uuid(), nullable=True),
        sa.Column("organization_id", sa.Uuid(), nullable=True),
        _timestamp_column("created_at"),
        _timestamp_column("updated_at"),
        sa.CheckConstraint("length(nwid) = 16", name="ck_network_network_nwid_len"),
        sa.CheckConstraint(
            "(author_id IS NULL) <> (organization_id IS NULL)",
            name="ck_network_network_single_owner",
        ),
        sa.ForeignKeyConstraint(
            ["author_id"],
            ["app_user.id"],
            name="fk_network_author_id_app_user",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["organization_id"],
            ["organization.id"],
            name="fk_network_organization_id_organization",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("nwid", name="pk_network"),
    )
    op.create_index("idx_network_author_id", "network", ["author_id"])
    op.create_index("idx_network_organization_id", "network", ["organization_id"])

    op.create_table(
        "network_member",
        sa.Column("id", sa.String(length=10), nullable=False),
        sa.Column("nwid", sa.String(length=16), nullable=False),
        sa.Column("address", sa.String(length=10), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("authorized", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "permanently_deleted", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        _timestamp_column("creation_time"),
        sa.Column("last_seen", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("length(id) = 10", name="ck_network_member_network_member_id_len"),
        sa.ForeignKeyConstraint(
            ["nwid"],
            ["network.nwid"],
            name="fk_network_member_nwid_network",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", "nwid", name="pk_network_member"),
    )
    op.create_index(
        "idx_network_member_nwid_deleted",
        "network_member",
        ["nwid", "deleted"],
    )

    op.create_table(
        "route",
        _uuid_column("id", dialect_name),
        sa.Column("nwid", sa.String(length=16), nullable=False),
        sa.Column("target", sa.Text(), nullable=False),
        sa.Column("via", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["nwid"],
            ["network.nwid"],
            name="fk_route_nwid_network",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_route"),
    )
    op.create_index("idx_route_nwid", "route", ["nwid"])

    op.create_table(
        "notation",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("nwid", sa.String(length=16), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("color", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        _timestamp_column("created_at"),
        sa.ForeignKeyConstraint(
            ["nwid"],
            ["network.nwid"],
            name="fk_notation_nwid_network",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_notation"),
        sa.UniqueConstraint("name", "nwid", name="uq_notation_name"),
    )

    op.create_table(
        "network_member_notation",
        sa.Column("notation_id", sa.Integer(), nullable=False),
        sa.Column("member_id", sa.String(length=10), nullable=False),
        sa.Column("nwid", sa.String(length=16), nullable=False),
        sa.ForeignKeyConstraint(
            ["notation_id"],
            ["notation.id"],
            name="fk_network_member_notation_notation_id_notation",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["member_id", "nwid"],
            ["network_member.id", "network_member.nwid"],
            name="fk_network_member_notation_member_id_network_member",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint(
            "notation_id",
            "member_id",
            "nwid",
            name="pk_network_member_notation",
        ),
    )

    op.create_table(
        "webhook",
        _uuid_column("id", dialect_name),
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("event_types", json_type, nullable=False, server_default=json_array_default),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp_column("created_at"),
        sa.ForeignKeyConstraint(
            ["organization_id"],
            ["organization.id"],
            name="fk_webhook_organization_id_organization",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_webhook"),
    )
    op.create_index("idx_webhook_organization_id", "webhook", ["organization_id"])

    op.create_table(
        "audit_event",
        _uuid_column("id", dialect_name),
        sa.Column("actor_user_id", sa.Uuid(), nullable=True),
        sa.Column("organization_id", sa.Uuid(), nullable=True),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("target_type", sa.Text(), nullable=False),
        sa.Column("target_id", sa.Text(), nullable=False),
        sa.Column("metadata", json_type, nullable=False, server_default=json_object_default),
        _timestamp_column("created_at"),
        sa.ForeignKeyConstraint(
            ["actor_user_id"],
            ["app_user.id"],
            name="fk_audit_event_actor_user_id_app_user",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["organization_id"],
            ["organization.id"],
            name="fk_audit_event_organization_id_organization",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_audit_event"),
    )
    op.create_index("idx_audit_event_created_at", "audit_event", ["created_at"])
    op.create_index("idx_audit_event_organization_id", "audit_event", ["organization_id"])


def downgrade() -> None:
    bind = op.get_bind()
    dialect_name = bind.dialect.name

    op.drop_index("idx_audit_event_organization_id", table_name="audit_event")
    op.drop_index("idx_audit_event_created_at", table_name="audit_event")
    op.drop_table("audit_event")
    op.drop_index("idx_webhook_organization_id", table_name="webhook")
    op.drop_table("webhook")
    op.drop_table("network_member_notation")
    op.drop_table("notation")
    op.drop_index("idx_route_nwid", table_name="route")
    op.drop_table("route")
    op.drop_index("idx_network_member_nwid_deleted", table_name="network_member")
    op.drop_table("network_member")
    op.drop_index("idx_network_organization_id", table_name="network")
    op.drop_index("idx_network_author_id", table_name="network")
    op.drop_table("network")
    op.drop_table("organization_settings")
    op.drop_table("user_organization_role")
    op.drop_table("organization")
    op.drop_table("user_options")
    op.drop_index("idx_local_credential_user_id", table_name="local_credential")
    op.drop_table("local_credential")
    op.drop_table("app_user")

    if dialect_name == "postgresql":
        organization_role_enum = sa.Enum("read_only", "user", "admin", name="organization_role")
        organization_role_enum.drop(bind, checkfirst=True)
