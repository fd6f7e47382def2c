"""Repositories for app users, their local credentials and options."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from ztnet.auth import normalize_login_username
from ztnet.db.models import AppUser, LocalCredential, UserOptions


class UserRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_id(self, user_id: uuid.UUID) -> AppUser | None:
        return self._session.get(AppUser, user_id)

    def get_by_username(self, username: str) -> AppUser | None:
        statement = select(AppUser).where(AppUser.username == normalize_login_username(username))
        return self._session.execute(statement).scalar_one_or_none()

    def upsert_local_user(
        self,
        *,
        username: str,
        full_name: str | None = None,
        email: str | None = None,
        is_admin: bool | None = None,
    ) -> AppUser:
        normalized_username = normalize_login_username(username)
        existing = self.get_by_username(normalized_username)
        if existing is None:
            existing = AppUser(
                username=normalized_username,
                full_name=full_name,
                email=email,
                is_admin=bool(is_admin),
            )
            self._session.add(existing)
        else:
            if full_name is not None:
                existing.full_name = full_name
            if email is not None:
                existing.email = email
            if is_admin is not None:
                existing.is_admin = is_admin

        self._session.flush()
        return existing


class LocalCredentialRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_user_id(self, user_id: uuid.UUID) -> LocalCredential | None:
        statement = (
            select(LocalCredential)
            .options(joinedload(LocalCredential.user))
            .where(LocalCredential.user_id == user_id)
        )
        return self._session.execute(statement).scalar_one_or_none()

    def get_by_login_username(self, login_username: str) -> LocalCredential | None:
        statement = (
            select(LocalCredential)
            .options(joinedload(LocalCredential.user))
            .where(LocalCredential.login_username == normalize_login_username(login_username))
        )
        return self._session.execute(statement).scalar_one_or_none()

    def upsert_for_user(
        self,
        *,
        user_id: uuid.UUID,
        login_username: str,
        password_hash: str,
        is_enabled: bool | None = None,
    ) -> LocalCredential:
        normalized = normalize_login_username(login_username)
        row = self.get_by_user_id(user_id)
        if row is None:
            row = LocalCredential(
                user_id=user_id,
                login_username=normalized,
                password_hash=password_hash,
                is_enabled=True if is_enabled is None else is_enabled,
            )
            self._session.add(row)
        else:
            row.login_username = normalized
            row.password_hash = password_hash
            if is_enabled is not None:
                row.is_enabled = is_enabled

        self._session.flush()
        return row

    def touch_last_login(self, row: LocalCredential, *, at: datetime | None = None) -> None:
        row.last_login_at = at or datetime.now(UTC)
        self._session.flush()


class UserOptionsRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_for_user(self, user_id: uuid.UUID) -> UserOptions | None:
        statement = select(UserOptions).where(UserOptions.user_id == user_id)
        return self._session.execute(statement).scalar_one_or_none()

    def get_or_create(self, user_id: uuid.UUID) -> UserOptions:
        options = self.get_for_user(user_id)
        if options is None:
            options = UserOptions(
                user_id=user_id,
                rename_node_globally=False,
                add_member_id_as_name=False,
            )
            self._session.add(options)
            self._session.flush()
        return options

    def update(
        self,
        user_id: uuid.UUID,
        *,
        rename_node_globally: bool | None = None,
        add_member_id_as_name: bool | None = None,
    ) -> UserOptions:
        options = self.get_or_create(user_id)
        if rename_node_globally is not None:
            options.rename_node_globally = rename_node_globally
        if add_member_id_as_name is not None:
            options.add_member_id_as_name = add_member_id_as_name
        self._session.flush()
        return options
