"""User options and organization settings API routes."""

from __future__ import annotations

import uuid
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ztnet.access import require_organization_role
from ztnet.db.enums import OrganizationRole
from ztnet.db.models import OrganizationSettings, UserOptions
from ztnet.dependencies import get_db_session
from ztnet.errors import ZtnetError
from ztnet.repositories.audit_events import AuditEventRepository
from ztnet.repositories.organizations import OrganizationRepository
from ztnet.repositories.users import UserOptionsRepository
from ztnet.routes.responses import (
    domain_error_response,
    require_api_actor,
    serialize_audit_event,
    success_response,
)

router = APIRouter(tags=["options"])
DbSessionDep = Annotated[Session, Depends(get_db_session)]


class UserOptionsPayload(BaseModel):
    rename_node_globally: bool | None = None
    add_member_id_as_name: bool | None = None


class OrganizationSettingsPayload(BaseModel):
    rename_node_globally: bool | None = None
    email_notifications_enabled: bool | None = None
    node_added_notification: bool | None = None
    node_deleted_notification: bool | None = None
    node_permanently_deleted_notification: bool | None = None
    network_deleted_notification: bool | None = None


@router.get("/api/v1/me/options")
def api_get_user_options(
    request: Request,
    db_session: DbSessionDep,
) -> JSONResponse:
    actor, auth_error = require_api_actor(request)
    if auth_error is not None:
        return auth_error
    assert actor is not None

    options = UserOptionsRepository(db_session).get_or_create(actor.user_id)
    db_session.commit()
    return success_response({"options": _serialize_user_options(options)})


@router.patch("/api/v1/me/options")
def api_update_user_options(
    request: Request,
    payload: UserOptionsPayload,
    db_session: DbSessionDep,
) -> JSONResponse:
    actor, auth_error = require_api_actor(request)
    if auth_error is not None:
        return auth_error
    assert actor is not None

    options = UserOptionsRepository(db_session).update(
        actor.user_id,
        rename_node_globally=payload.rename_node_globally,
        add_member_id_as_name=payload.add_member_id_as_name,
    )
    AuditEventRepository(db_session).create_event(
        action="user.options.updated",
        target_type="app_user",
        target_id=str(actor.user_id),
        actor_user_id=actor.user_id,
        metadata=payload.model_dump(exclude_none=True),
    )
    db_session.commit()
    return success_response({"options": _serialize_user_options(options)})


@router.get("/api/v1/org/{organization_id}/settings")
def api_get_organization_settings(
    request: Request,
    organization_id: uuid.UUID,
    db_session: DbSessionDep,
) -> JSONResponse:
    actor, auth_error = require_api_actor(request)
    if auth_error is not None:
        return auth_error
    assert actor is not None

    try:
        require_organization_role(
            db_session,
            actor=actor,
            organization_id=organization_id,
            minimum_role=OrganizationRole.READ_ONLY,
        )
    except ZtnetError as exc:
        return domain_error_response(exc)
    settings = OrganizationRepository(db_session).get_or_create_settings(organization_id)
    db_session.commit()
    return success_response({"settings": _serialize_organization_settings(settings)})


@router.patch("/api/v1/org/{organization_id}/settings")
def api_update_organization_settings(
    request: Request,
    organization_id: uuid.UUID,
    payload: OrganizationSettingsPayload,
    db_session: DbSessionDep,
) -> JSONResponse:
    actor, auth_error = require_api_actor(request)
    if auth_error is not None:
        return auth_error
    assert actor is not None

    try:
        require_organization_role(
            db_session,
            actor=actor,
            organization_id=organization_id,
            minimum_role=OrganizationRole.ADMIN,
        )
    except ZtnetError as exc:
        return domain_error_response(exc)

    settings = OrganizationRepository(db_session).get_or_create_settings(organization_id)
    changes = payload.model_dump(exclude_none=True)
    for field_name, value in changes.items():
        setattr(settings, field_name, value)
    AuditEventRepository(db_session).create_event(
        action="organization.settings.updated",
        target_type="organization",
        target_id=str(organization_id),
        actor_user_id=actor.user_id,
        organization_id=organization_id,
        metadata=changes,
    )
    db_session.commit()
    return success_response({"settings": _serialize_organization_settings(settings)})


@router.get("/api/v1/org/{organization_id}/activity")
def api_organization_activity(
    request: Request,
    organization_id: uuid.UUID,
    db_session: DbSessionDep,
) -> JSONResponse:
    actor, auth_error = require_api_actor(request)
    if auth_error is not None:
        return auth_error
    assert actor is not None

    try:
        require_organization_role(
            db_session,
            actor=actor,
            organization_id=organization_id,
            minimum_role=OrganizationRole.ADMIN,
        )
    except ZtnetError as exc:
        return domain_error_response(exc)
    events = AuditEventRepository(db_session).list_for_organization(organization_id)
    return success_response({"events": [serialize_audit_event(event) for event in events]})


def _serialize_user_options(options: UserOptions) -> dict[str, Any]:
    return {
        "rename_node_globally": options.rename_node_globally,
        "add_member_id_as_name": options.add_member_id_as_name,
    }


def _serialize_organization_settings(settings: OrganizationSettings) -> dict[str, Any]:
    return {
        "rename_node_globally": settings.rename_node_globally,
        "email_notifications_enabled": settings.email_notifications_enabled,
        "node_added_notification": settings.node_added_notification,
        "node_deleted_notification": settings.node_deleted_notification,
        "node_permanently_deleted_notification": settings.node_permanently_deleted_notification,
        "network_deleted_notification": settings.network_deleted_notification,
    }
