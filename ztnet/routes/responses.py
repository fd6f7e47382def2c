"""JSON envelopes and serializers shared by the API routers."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from ztnet.access import SessionActor
from ztnet.db.models import AppUser, AuditEvent, Network, NetworkMember, Notation, Route
from ztnet.dependencies import get_session_actor
from ztnet.errors import InputValidationError, ZtnetError
from ztnet.routing import normalize_member_id, normalize_network_id


def success_response(data: dict[str, Any], *, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"data": data})


def error_response(
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "details": details or {},
            }
        },
    )


def domain_error_response(exc: ZtnetError) -> JSONResponse:
    return error_response(
        status_code=exc.status_code,
        code=exc.error_code,
        message=str(exc),
        details=exc.details,
    )


def require_api_actor(request: Request) -> tuple[SessionActor | None, JSONResponse | None]:
    try:
        return get_session_actor(request), None
    except HTTPException as exc:
        return None, error_response(
            status_code=401,
            code="unauthenticated",
            message="Authentication required.",
            details={"detail": str(exc.detail)},
        )


def serialize_user(user: AppUser) -> dict[str, Any]:
    return {
        "id": str(user.id),
        "username": user.username,
        "full_name": user.full_name,
        "email": user.email,
        "is_admin": user.is_admin,
    }


def serialize_network(network: Network) -> dict[str, Any]:
    return {
        "nwid": network.nwid,
        "name": network.name,
        "description": network.description,
        "author_id": str(network.author_id) if network.author_id else None,
        "organization_id": str(network.organization_id) if network.organization_id else None,
        "created_at": iso_datetime(network.created_at),
    }


def serialize_member_row(member: NetworkMember) -> dict[str, Any]:
    return {
        "id": member.id,
        "nwid": member.nwid,
        "name": member.name,
        "description": member.description,
        "authorized": member.authorized,
        "deleted": member.deleted,
        "permanently_deleted": member.permanently_deleted,
        "state": member.state.value,
        "creation_time": iso_datetime(member.creation_time),
        "last_seen": iso_datetime(member.last_seen),
    }


def serialize_route(route: Route) -> dict[str, Any]:
    return {
        "id": str(route.id),
        "target": route.target,
        "via": route.via,
        "notes": route.notes,
    }


def serialize_notation(notation: Notation) -> dict[str, Any]:
    return {
        "id": notation.id,
        "nwid": notation.nwid,
        "name": notation.name,
        "color": notation.color,
        "description": notation.description,
    }


def serialize_audit_event(event: AuditEvent) -> dict[str, Any]:
    return {
        "id": str(event.id),
        "actor_user_id": str(event.actor_user_id) if event.actor_user_id else None,
        "organization_id": str(event.organization_id) if event.organization_id else None,
        "action": event.action,
        "target_type": event.target_type,
        "target_id": event.target_id,
        "metadata": event.event_metadata,
        "created_at": iso_datetime(event.created_at),
    }


def iso_datetime(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC).isoformat()
    return value.astimezone(UTC).isoformat()


def parse_network_id(value: str) -> str:
    try:
        return normalize_network_id(value)
    except ValueError as exc:
        raise InputValidationError(str(exc), details={"nwid": value}) from exc


def parse_member_id(value: str) -> str:
    try:
        return normalize_member_id(value)
    except ValueError as exc:
        raise InputValidationError(str(exc), details={"member_id": value}) from exc
