from __future__ import annotations

from collections.abc import Callable, Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from ztnet.auth import hash_password, normalize_login_username
from ztnet.config import AppSettings
from ztnet.db.models import AppUser, LocalCredential, UserOptions
from ztnet.main import create_app

DEFAULT_PASSWORD = "correct horse battery staple"


@pytest.fixture()
def test_app(
    app_settings: AppSettings,
    session_factory: sessionmaker[Session],
    controller,
    dispatcher,
) -> FastAPI:
    app = create_app(settings=app_settings)
    app.state.session_maker = session_factory
    app.state.controller = controller
    app.state.dispatcher = dispatcher
    return app


@pytest.fixture()
def client(test_app: FastAPI) -> Generator[TestClient]:
    with TestClient(test_app) as test_client:
        yield test_client


@pytest.fixture()
def create_local_user(db_session: Session) -> Callable[..., AppUser]:
    def _create(
        username: str,
        *,
        password: str = DEFAULT_PASSWORD,
        is_enabled: bool = True,
    ) -> AppUser:
        normalized_username = normalize_login_username(username)
        user = AppUser(
            username=normalized_username,
            full_name=normalized_username,
            email=f"{normalized_username}@example.net",
        )
        db_session.add(user)
        db_session.flush()
        db_session.add(
            LocalCredential(
                user_id=user.id,
                login_username=normalized_username,
                password_hash=hash_password(password=password, min_length=12, iterations=100_000),
                is_enabled=is_enabled,
            )
        )
        db_session.add(UserOptions(user_id=user.id))
        db_session.commit()
        return user

    return _create


@pytest.fixture()
def signed_in_user(
    client: TestClient,
    create_local_user: Callable[..., AppUser],
) -> AppUser:
    user = create_local_user("operator")
    response = client.post(
        "/api/v1/auth/local/login",
        json={"username": "operator", "password": DEFAULT_PASSWORD},
    )
    assert response.status_code == 200
    return user
