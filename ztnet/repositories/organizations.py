"""Repositories for organizations, role assignments and settings."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from ztnet.db.enums import OrganizationRole
from ztnet.db.models import (
    AppUser,
    Organization,
    OrganizationSettings,
    UserOrganizationRole,
)


class OrganizationRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_id(self, organization_id: uuid.UUID) -> Organization | None:
        return self._session.get(Organization, organization_id)

    def create(self, *, name: str, description: str | None = None) -> Organization:
        organization = Organization(name=name, description=description)
        self._session.add(organization)
        self._session.flush()
        return organization

    def get_role(
        self,
        *,
        user_id: uuid.UUID,
        organization_id: uuid.UUID,
    ) -> OrganizationRole | None:
        statement = select(UserOrganizationRole.role).where(
            UserOrganizationRole.user_id == user_id,
            UserOrganizationRole.organization_id == organization_id,
        )
        return self._session.execute(statement).scalar_one_or_none()

    def set_role(
        self,
        *,
        user_id: uuid.UUID,
        organization_id: uuid.UUID,
        role: OrganizationRole,
    ) -> UserOrganizationRole:
        statement = select(UserOrganizationRole).where(
            UserOrganizationRole.user_id == user_id,
            UserOrganizationRole.organization_id == organization_id,
        )
        row = self._session.execute(statement).scalar_one_or_none()
        if row is None:
            row = UserOrganizationRole(
                user_id=user_id,
                organization_id=organization_id,
                role=role,
            )
            self._session.add(row)
        else:
            row.role = role
        self._session.flush()
        return row

    def list_admins(self, organization_id: uuid.UUID) -> list[AppUser]:
        statement = (
            select(AppUser)
            .join(UserOrganizationRole, UserOrganizationRole.user_id == AppUser.id)
            .where(
                UserOrganizationRole.organization_id == organization_id,
                UserOrganizationRole.role == OrganizationRole.ADMIN,
            )
            .order_by(AppUser.username.asc())
        )
        return list(self._session.execute(statement).scalars())

    def get_settings(self, organization_id: uuid.UUID) -> OrganizationSettings | None:
        statement = select(OrganizationSettings).where(
            OrganizationSettings.organization_id == organization_id
        )
        return self._session.execute(statement).scalar_one_or_none()

    def get_or_create_settings(self, organization_id: uuid.UUID) -> OrganizationSettings:
        settings = self.get_settings(organization_id)
        if settings is None:
            settings = OrganizationSettings(
                organization_id=organization_id,
                rename_node_globally=False,
                email_notifications_enabled=True,
                node_added_notification=False,
                node_deleted_notification=False,
                node_permanently_deleted_notification=False,
                network_deleted_notification=False,
            )
            self._session.add(settings)
            self._session.flush()
        return settings
