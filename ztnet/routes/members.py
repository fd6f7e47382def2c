"""Network member API routes."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from ztnet.access import SessionActor
from ztnet.controller import ControllerClient, MemberUpdate
from ztnet.dependencies import get_controller_client, get_db_session, get_notification_dispatcher
from ztnet.errors import ZtnetError
from ztnet.members import MemberLifecycleService
from ztnet.networks import NetworkService
from ztnet.notifications import NotificationDispatcher
from ztnet.routes.responses import (
    domain_error_response,
    parse_member_id,
    parse_network_id,
    require_api_actor,
    serialize_member_row,
    success_response,
)
from ztnet.routing import normalize_member_id

router = APIRouter(tags=["members"])
DbSessionDep = Annotated[Session, Depends(get_db_session)]
ControllerDep = Annotated[ControllerClient, Depends(get_controller_client)]
DispatcherDep = Annotated[NotificationDispatcher, Depends(get_notification_dispatcher)]


class AddMemberPayload(BaseModel):
    member_id: str

    @field_validator("member_id")
    @classmethod
    def _normalize_member_id(cls, value: str) -> str:
        return normalize_member_id(value)


class UpdateMemberPayload(BaseModel):
    name: str | None = None
    description: str | None = None
    authorized: bool | None = None
    active_bridge: bool | None = None
    no_auto_assign_ips: bool | None = None
    ip_assignments: list[str] | None = None
    tags: list[list[int]] | None = None
    capabilities: list[int] | None = None

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError("name cannot be blank")
        return normalized

    @field_validator("ip_assignments")
    @classmethod
    def _normalize_ips(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        return [item.strip() for item in value]

    def to_member_update(self) -> MemberUpdate:
        return MemberUpdate(
            name=self.name,
            description=self.description,
            authorized=self.authorized,
            active_bridge=self.active_bridge,
            no_auto_assign_ips=self.no_auto_assign_ips,
            ip_assignments=self.ip_assignments,
            tags=self.tags,
            capabilities=self.capabilities,
        )


class UpdateMemberDatabasePayload(BaseModel):
    deleted: bool | None = None
    description: str | None = None


@router.post("/api/v1/networks/{nwid}/members")
def api_add_member(
    request: Request,
    nwid: str,
    payload: AddMemberPayload,
    db_session: DbSessionDep,
    controller: ControllerDep,
    dispatcher: DispatcherDep,
    organization_id: uuid.UUID | None = None,
) -> JSONResponse:
    actor, auth_error = require_api_actor(request)
    if auth_error is not None:
        return auth_error
    assert actor is not None

    try:
        result = _lifecycle(db_session, controller, dispatcher, actor).create(
            nwid=parse_network_id(nwid),
            member_id=payload.member_id,
            organization_id=organization_id,
        )
    except ZtnetError as exc:
        return domain_error_response(exc)
    return success_response(
        {
            "member": serialize_member_row(result.member),
            "created": result.created,
            "restored": result.restored,
        },
        status_code=201 if result.created else 200,
    )


@router.delete("/api/v1/networks/{nwid}/stashed-members")
def api_bulk_delete_stashed_members(
    request: Request,
    nwid: str,
    db_session: DbSessionDep,
    controller: ControllerDep,
    dispatcher: DispatcherDep,
    organization_id: uuid.UUID | None = None,
) -> JSONResponse:
    actor, auth_error = require_api_actor(request)
    if auth_error is not None:
        return auth_error
    assert actor is not None

    try:
        result = _lifecycle(db_session, controller, dispatcher, actor).bulk_delete_stashed(
            nwid=parse_network_id(nwid),
            organization_id=organization_id,
        )
    except ZtnetError as exc:
        return domain_error_response(exc)
    return success_response({"deleted_count": result.deleted_count, "message": result.message})


@router.get("/api/v1/networks/{nwid}/members/{member_id}")
def api_member_detail(
    request: Request,
    nwid: str,
    member_id: str,
    db_session: DbSessionDep,
    controller: ControllerDep,
    dispatcher: DispatcherDep,
    organization_id: uuid.UUID | None = None,
) -> JSONResponse:
    actor, auth_error = require_api_actor(request)
    if auth_error is not None:
        return auth_error
    assert actor is not None

    try:
        member = _lifecycle(db_session, controller, dispatcher, actor).get_member(
            nwid=parse_network_id(nwid),
            member_id=parse_member_id(member_id),
            organization_id=organization_id,
        )
    except ZtnetError as exc:
        return domain_error_response(exc)
    return success_response({"member": member.as_dict()})


@router.patch("/api/v1/networks/{nwid}/members/{member_id}")
def api_update_member(
    request: Request,
    nwid: str,
    member_id: str,
    payload: UpdateMemberPayload,
    db_session: DbSessionDep,
    controller: ControllerDep,
    dispatcher: DispatcherDep,
    organization_id: uuid.UUID | None = None,
) -> JSONResponse:
    actor, auth_error = require_api_actor(request)
    if auth_error is not None:
        return auth_error
    assert actor is not None

    try:
        result = _lifecycle(db_session, controller, dispatcher, actor).update(
            nwid=parse_network_id(nwid),
            member_id=parse_member_id(member_id),
            changes=payload.to_member_update(),
            organization_id=organization_id,
        )
    except ZtnetError as exc:
        return domain_error_response(exc)
    return success_response(
        {
            "member": result.member.as_dict(),
            "renamed_networks": [outcome.as_dict() for outcome in result.rename_outcomes],
        }
    )


@router.patch("/api/v1/networks/{nwid}/members/{member_id}/database")
def api_update_member_database(
    request: Request,
    nwid: str,
    member_id: str,
    payload: UpdateMemberDatabasePayload,
    db_session: DbSessionDep,
    controller: ControllerDep,
    dispatcher: DispatcherDep,
    organization_id: uuid.UUID | None = None,
) -> JSONResponse:
    actor, auth_error = require_api_actor(request)
    if auth_error is not None:
        return auth_error
    assert actor is not None

    try:
        row = _lifecycle(db_session, controller, dispatcher, actor).update_database_only(
            nwid=parse_network_id(nwid),
            member_id=parse_member_id(member_id),
            deleted=payload.deleted,
            description=payload.description,
            organization_id=organization_id,
        )
    except ZtnetError as exc:
        return domain_error_response(exc)
    return success_response({"member": serialize_member_row(row)})


@router.post("/api/v1/networks/{nwid}/members/{member_id}/stash")
def api_stash_member(
    request: Request,
    nwid: str,
    member_id: str,
    db_session: DbSessionDep,
    controller: ControllerDep,
    dispatcher: DispatcherDep,
    organization_id: uuid.UUID | None = None,
) -> JSONResponse:
    actor, auth_error = require_api_actor(request)
    if auth_error is not None:
        return auth_error
    assert actor is not None

    try:
        row = _lifecycle(db_session, controller, dispatcher, actor).stash(
            nwid=parse_network_id(nwid),
            member_id=parse_member_id(member_id),
            organization_id=organization_id,
        )
    except ZtnetError as exc:
        return domain_error_response(exc)
    return success_response({"member": serialize_member_row(row)})


@router.delete("/api/v1/networks/{nwid}/members/{member_id}")
def api_delete_member(
    request: Request,
    nwid: str,
    member_id: str,
    db_session: DbSessionDep,
    controller: ControllerDep,
    dispatcher: DispatcherDep,
    organization_id: uuid.UUID | None = None,
) -> JSONResponse:
    actor, auth_error = require_api_actor(request)
    if auth_error is not None:
        return auth_error
    assert actor is not None

    try:
        remaining_state = _lifecycle(db_session, controller, dispatcher, actor).delete(
            nwid=parse_network_id(nwid),
            member_id=parse_member_id(member_id),
            organization_id=organization_id,
        )
    except ZtnetError as exc:
        return domain_error_response(exc)
    return success_response(
        {
            "deleted": True,
            "row_retained": remaining_state is not None,
            "state": remaining_state.value if remaining_state is not None else None,
        }
    )


@router.get("/api/v1/org/{organization_id}/network/{nwid}/member")
def api_organization_network_members(
    request: Request,
    organization_id: uuid.UUID,
    nwid: str,
    db_session: DbSessionDep,
    controller: ControllerDep,
    dispatcher: DispatcherDep,
) -> JSONResponse:
    actor, auth_error = require_api_actor(request)
    if auth_error is not None:
        return auth_error
    assert actor is not None

    try:
        roster = NetworkService(
            db_session=db_session,
            controller=controller,
            dispatcher=dispatcher,
            actor=actor,
        ).list_active_members(nwid=parse_network_id(nwid), organization_id=organization_id)
    except ZtnetError as exc:
        return domain_error_response(exc)
    return success_response({"members": [member.as_dict() for member in roster.members]})


def _lifecycle(
    db_session: Session,
    controller: ControllerClient,
    dispatcher: NotificationDispatcher,
    actor: SessionActor,
) -> MemberLifecycleService:
    return MemberLifecycleService(
        db_session=db_session,
        controller=controller,
        dispatcher=dispatcher,
        actor=actor,
    )
