"""Notation API routes."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from ztnet.dependencies import get_db_session
from ztnet.errors import ZtnetError
from ztnet.notations import NotationService
from ztnet.routes.responses import (
    domain_error_response,
    parse_member_id,
    parse_network_id,
    require_api_actor,
    serialize_notation,
    success_response,
)

router = APIRouter(tags=["notations"])
DbSessionDep = Annotated[Session, Depends(get_db_session)]


class AddNotationPayload(BaseModel):
    name: str = Field(min_length=1, max_length=64)
    color: str | None = Field(default=None, max_length=32)
    description: str | None = None

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("name cannot be blank")
        return normalized


@router.get("/api/v1/networks/{nwid}/notations")
def api_list_network_notations(
    request: Request,
    nwid: str,
    db_session: DbSessionDep,
    organization_id: uuid.UUID | None = None,
) -> JSONResponse:
    actor, auth_error = require_api_actor(request)
    if auth_error is not None:
        return auth_error
    assert actor is not None

    try:
        notations = NotationService(db_session=db_session, actor=actor).list_network_notations(
            nwid=parse_network_id(nwid),
            organization_id=organization_id,
        )
    except ZtnetError as exc:
        return domain_error_response(exc)
    return success_response({"notations": [serialize_notation(row) for row in notations]})


@router.get("/api/v1/networks/{nwid}/members/{member_id}/notations")
def api_list_member_notations(
    request: Request,
    nwid: str,
    member_id: str,
    db_session: DbSessionDep,
    organization_id: uuid.UUID | None = None,
) -> JSONResponse:
    actor, auth_error = require_api_actor(request)
    if auth_error is not None:
        return auth_error
    assert actor is not None

    try:
        notations = NotationService(db_session=db_session, actor=actor).list_member_notations(
            nwid=parse_network_id(nwid),
            member_id=parse_member_id(member_id),
            organization_id=organization_id,
        )
    except ZtnetError as exc:
        return domain_error_response(exc)
    return success_response({"notations": [serialize_notation(row) for row in notations]})


@router.post("/api/v1/networks/{nwid}/members/{member_id}/notations")
def api_add_member_notation(
    request: Request,
    nwid: str,
    member_id: str,
    payload: AddNotationPayload,
    db_session: DbSessionDep,
    organization_id: uuid.UUID | None = None,
) -> JSONResponse:
    actor, auth_error = require_api_actor(request)
    if auth_error is not None:
        return auth_error
    assert actor is not None

    try:
        notation = NotationService(db_session=db_session, actor=actor).add_notation(
            nwid=parse_network_id(nwid),
            member_id=parse_member_id(member_id),
            name=payload.name,
            color=payload.color,
            description=payload.description,
            organization_id=organization_id,
        )
    except ZtnetError as exc:
        return domain_error_response(exc)
    return success_response({"notation": serialize_notation(notation)}, status_code=201)


@router.delete("/api/v1/networks/{nwid}/members/{member_id}/notations/{notation_id}")
def api_remove_member_notation(
    request: Request,
    nwid: str,
    member_id: str,
    notation_id: int,
    db_session: DbSessionDep,
    organization_id: uuid.UUID | None = None,
) -> JSONResponse:
    actor, auth_error = require_api_actor(request)
    if auth_error is not None:
        return auth_error
    assert actor is not None

    try:
        notation_deleted = NotationService(
            db_session=db_session,
            actor=actor,
        ).remove_member_notation(
            nwid=parse_network_id(nwid),
            member_id=parse_member_id(member_id),
            notation_id=notation_id,
            organization_id=organization_id,
        )
    except ZtnetError as exc:
        return domain_error_response(exc)
    return success_response({"removed": True, "notation_deleted": notation_deleted})
