"""Common FastAPI dependencies."""

from __future__ import annotations

import uuid
from collections.abc import Generator
from typing import cast

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session, sessionmaker

from ztnet.access import SessionActor
from ztnet.config import AppSettings
from ztnet.controller import ControllerClient, create_controller_client
from ztnet.notifications import NotificationDispatcher


def get_app_settings(request: Request) -> AppSettings:
    return cast(AppSettings, request.app.state.settings)


def get_db_session(request: Request) -> Generator[Session]:
    session_factory = cast(sessionmaker[Session], request.app.state.session_maker)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def get_controller_client(request: Request) -> ControllerClient:
    # Built on first use so the app starts even before controller credentials exist.
    controller = getattr(request.app.state, "controller", None)
    if controller is None:
        controller = create_controller_client(get_app_settings(request))
        request.app.state.controller = controller
    return cast(ControllerClient, controller)


def get_notification_dispatcher(request: Request) -> NotificationDispatcher:
    return cast(NotificationDispatcher, request.app.state.dispatcher)


def get_session_actor(request: Request) -> SessionActor:
    raw_user_id = request.session.get("user_id")
    if not isinstance(raw_user_id, str):
        raise HTTPException(status_code=401, detail="authentication required")

    try:
        user_id = uuid.UUID(raw_user_id)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="invalid session user") from exc

    is_admin = bool(request.session.get("is_admin", False))
    return SessionActor(user_id=user_id, is_admin=is_admin)
