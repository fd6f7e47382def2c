from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.orm import Session

from ztnet.db.models import AppUser, AuditEvent, LocalCredential

PASSWORD = "correct horse battery staple"


def test_local_login_sets_session_and_me_returns_options(
    client: TestClient,
    db_session: Session,
    create_local_user: Callable[..., AppUser],
) -> None:
    user = create_local_user("operator-local", password=PASSWORD)

    response = client.post(
        "/api/v1/auth/local/login",
        json={"username": " Operator-Local ", "password": PASSWORD},
    )

    assert response.status_code == 200
    assert response.json()["data"]["auth"] == {"mode": "local"}

    me = client.get("/api/v1/me")
    assert me.status_code == 200
    body = me.json()["data"]
    assert body["user"]["id"] == str(user.id)
    assert body["options"] == {"rename_node_globally": False, "add_member_id_as_name": False}

    db_session.expire_all()
    credential = db_session.execute(
        select(LocalCredential).where(LocalCredential.user_id == user.id)
    ).scalar_one()
    assert credential.last_login_at is not None


def test_unknown_user_and_wrong_password_share_error_code(
    client: TestClient,
    db_session: Session,
    create_local_user: Callable[..., AppUser],
) -> None:
    create_local_user("known-user", password=PASSWORD)

    unknown_user = client.post(
        "/api/v1/auth/local/login",
        json={"username": "missing-user", "password": "anything"},
    )
    wrong_password = client.post(
        "/api/v1/auth/local/login",
        json={"username": "known-user", "password": "wrong password"},
    )

    assert unknown_user.status_code == 401
    assert wrong_password.status_code == 401
    assert unknown_user.json()["error"]["code"] == "local_invalid_credentials"
    assert wrong_password.json()["error"]["code"] == "local_invalid_credentials"

    failures = db_session.execute(
        select(AuditEvent).where(AuditEvent.action == "auth.local_login.failed")
    ).scalars().all()
    assert [event.event_metadata["code"] for event in failures] == [
        "invalid_credentials",
        "invalid_credentials",
    ]


def test_disabled_credential_is_rejected(
    client: TestClient,
    create_local_user: Callable[..., AppUser],
) -> None:
    create_local_user("locked-out", password=PASSWORD, is_enabled=False)

    response = client.post(
        "/api/v1/auth/local/login",
        json={"username": "locked-out", "password": PASSWORD},
    )

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "local_credential_disabled"


def test_local_login_can_be_disabled(
    client: TestClient,
    test_app: FastAPI,
    create_local_user: Callable[..., AppUser],
) -> None:
    create_local_user("operator", password=PASSWORD)
    test_app.state.settings = replace(test_app.state.settings, local_auth_enabled=False)

    response = client.post(
        "/api/v1/auth/local/login",
        json={"username": "operator", "password": PASSWORD},
    )

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "local_auth_disabled"


def test_me_requires_session(client: TestClient) -> None:
    response = client.get("/api/v1/me")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "unauthenticated"


def test_logout_clears_session(client: TestClient, signed_in_user: AppUser) -> None:
    assert client.get("/api/v1/me").status_code == 200

    response = client.post("/api/v1/auth/logout")

    assert response.status_code == 200
    assert client.get("/api/v1/me").status_code == 401
