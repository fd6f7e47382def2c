"""Network API routes."""

from __future__ import annotations

import uuid
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.orm import Session

from ztnet.access import SessionActor
from ztnet.controller import (
    ControllerClient,
    ControllerNetwork,
    DnsConfig,
    NetworkConfigUpdate,
    V6AssignMode,
)
from ztnet.dependencies import get_controller_client, get_db_session, get_notification_dispatcher
from ztnet.errors import ZtnetError
from ztnet.networks import NetworkDetail, NetworkService
from ztnet.notifications import NotificationDispatcher
from ztnet.routes.responses import (
    domain_error_response,
    parse_network_id,
    require_api_actor,
    serialize_network,
    serialize_route,
    success_response,
)
from ztnet.routing import VIA_LAN, IpAssignmentPool, RouteRecord

router = APIRouter(tags=["networks"])
DbSessionDep = Annotated[Session, Depends(get_db_session)]
ControllerDep = Annotated[ControllerClient, Depends(get_controller_client)]
DispatcherDep = Annotated[NotificationDispatcher, Depends(get_notification_dispatcher)]


class CreateNetworkPayload(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    organization_id: uuid.UUID | None = None

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("name cannot be blank")
        return normalized


class UpdateNetworkPayload(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError("name cannot be blank")
        return normalized


class RoutePayload(BaseModel):
    target: str
    via: str | None = None

    @field_validator("target")
    @classmethod
    def _normalize_target(cls, value: str) -> str:
        return value.strip()

    @field_validator("via")
    @classmethod
    def _normalize_via(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if normalized.lower() == VIA_LAN:
            return VIA_LAN
        return normalized or None


class UpdateRoutesPayload(BaseModel):
    routes: list[RoutePayload] | None = None
    route_id: uuid.UUID | None = None
    note: str | None = None


class DnsPayload(BaseModel):
    domain: str
    servers: list[str] = Field(default_factory=list)

    ("domain")
    
    def _normalize_domain(cls, value: str) -> str:
        return value.strip()


class IpAssignmentPoolPayload(BaseModel):
    ip_range_start: str
    ip_range_end: str


class V6AssignModePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    zt: bool | None = None
    rfc4193: bool | None = None
    six_plane: bool | None = Field(default=None, alias="6plane")


class NetworkConfigPayload(BaseModel):
    private: bool | None = None
    mtu: int | None = None
    multicast_limit: int | None = None
    enable_broadcast: bool | None = None
    dns: DnsPayload | None = None
    clear_dns: bool = False
    routes: list[RoutePayload] | None = None
    ip_assignment_pools: list[IpAssignmentPoolPayload] | None = None
    v4_auto_assign: bool | None = None
    v6_assign_mode: V6AssignModePayload | None = None

    def to_update(self) -> NetworkConfigUpdate:
        dns: DnsConfig | None = None
        if self.clear_dns:
            dns = DnsConfig.cleared()
        elif self.dns is not None:
            dns = DnsConfig(domain=self.dns.domain, servers=list(self.dns.servers))
        return NetworkConfigUpdate(
            private=self.private,
            mtu=self.mtu,
            multicast_limit=self.multicast_limit,
            enable_broadcast=self.enable_broadcast,
            dns=dns,
            routes=(
                [RouteRecord(target=item.target, via=item.via) for item in self.routes]
                if self.routes is not None
                else None
            ),
            ip_assignment_pools=(
                [
                    IpAssignmentPool(start=item.ip_range_start, end=item.ip_range_end)
                    for item in self.ip_assignment_pools
                ]
                if self.ip_assignment_pools is not None
                else None
            ),
            v4_auto_assign=self.v4_auto_assign,
            v6_assign_mode=(
                V6AssignMode(
                    zt=self.v6_assign_mode.zt,
                    rfc4193=self.v6_assign_mode.rfc4193,
                    six_plane=self.v6_assign_mode.six_plane,
                )
                if self.v6_assign_mode is not None
                else None
            ),
        )


class EasyIpAssignmentPayload(BaseModel):
    cidr: str = Field(min_length=1)

    ("cidr")
    
    def _normalize_cidr(cls, value: str) -> str:
        return value.strip()


@router.get("/api/v1/networks")
def api_list_networks(
    request: Request,
    db_session: DbSessionDep,
    controller: ControllerDep,
    dispatcher: DispatcherDep,
) -> JSONResponse:
    actor, auth_error = require_api_actor(request)
    if auth_error is not None:
        return auth_error
    assert actor is not None

    summaries = _service(db_session, controller, dispatcher, actor).list_user_networks()
    return success_response({"networks": [summary.as_dict() for summary in summaries]})


@router.get("/api/v1/org/{organization_id}/networks")
def api_list_organization_networks(
    request: Request,
    organization_id: uuid.UUID,
    db_session: DbSessionDep,
    controller: ControllerDep,
    dispatcher: DispatcherDep,
) -> JSONResponse:
    actor, auth_error = require_api_actor(request)
    if auth_error is not None:
        return auth_error
    assert actor is not None

    try:
        summaries = _service(db_session, controller, dispatcher, actor).list_organization_networks(
            organization_id
        )
    except ZtnetError as exc:
        return domain_error_response(exc)
    return success_response({"networks": [summary.as_dict() for summary in summaries]})


@router.post("/api/v1/networks")
def api_create_network(
    request: Request,
    payload: CreateNetworkPayload,
    db_session: DbSessionDep,
    controller: ControllerDep,
    dispatcher: DispatcherDep,
) -> JSONResponse:
    actor, auth_error = require_api_actor(request)
    if auth_error is not None:
        return auth_error
    assert actor is not None

    try:
        network = _service(db_session, controller, dispatcher, actor).create_network(
            name=payload.name,
            description=payload.description,
            organization_id=payload.organization_id,
        )
    except ZtnetError as exc:
        return domain_error_response(exc)
    return success_response({"network": serialize_network(network)}, status_code=201)


@router.get("/api/v1/networks/{nwid}")
def api_network_detail(
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
        detail = _service(db_session, controller, dispatcher, actor).get_network_detail(
            nwid=parse_network_id(nwid),
            organization_id=organization_id,
        )
    except ZtnetError as exc:
        return domain_error_response(exc)
    return success_response(_serialize_detail(detail))


@router.patch("/api/v1/networks/{nwid}")
def api_update_network(
    request: Request,
    nwid: str,
    payload: UpdateNetworkPayload,
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
        network = _service(db_session, controller, dispatcher, actor).update_network(
            nwid=parse_network_id(nwid),
            name=payload.name,
            description=payload.description,
            organization_id=organization_id,
        )
    except ZtnetError as exc:
        return domain_error_response(exc)
    return success_response({"network": serialize_network(network)})


@router.put("/api/v1/networks/{nwid}/routes")
def api_update_routes(
    request: Request,
    nwid: str,
    payload: UpdateRoutesPayload,
    db_session: DbSessionDep,
    controller: ControllerDep,
    dispatcher: DispatcherDep,
    organization_id: uuid.UUID | None = None,
) -> JSONResponse:
    actor, auth_error = require_api_actor(request)
    if auth_error is not None:
        return auth_error
    assert actor is not None

    routes = (
        [RouteRecord(target=item.target, via=item.via) for item in payload.routes]
        if payload.routes is not None
        else None
    )
    try:
        stored = _service(db_session, controller, dispatcher, actor).update_routes(
            nwid=parse_network_id(nwid),
            routes=routes,
            route_id=payload.route_id,
            note=payload.note,
            organization_id=organization_id,
        )
    except ZtnetError as exc:
        return domain_error_response(exc)
    return success_response({"routes": [serialize_route(route) for route in stored]})


@router.patch("/api/v1/networks/{nwid}/config")
def api_update_network_config(
    request: Request,
    nwid: str,
    payload: NetworkConfigPayload,
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
        controller_network = _service(
            db_session, controller, dispatcher, actor
        ).update_network_config(
            nwid=parse_network_id(nwid),
            changes=payload.to_update(),
            organization_id=organization_id,
        )
    except ZtnetError as exc:
        return domain_error_response(exc)
    return success_response({"controller": _serialize_controller_network(controller_network)})


@router.post("/api/v1/networks/{nwid}/ip-assignment/easy")
def api_easy_ip_assignment(
    request: Request,
    nwid: str,
    payload: EasyIpAssignmentPayload,
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
        controller_network = _service(db_session, controller, dispatcher, actor).easy_ip_assignment(
            nwid=parse_network_id(nwid),
            cidr=payload.cidr,
            organization_id=organization_id,
        )
    except ZtnetError as exc:
        return domain_error_response(exc)
    return success_response({"controller": _serialize_controller_network(controller_network)})


@router.delete("/api/v1/networks/{nwid}")
def api_delete_network(
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
        normalized_nwid = parse_network_id(nwid)
        _service(db_session, controller, dispatcher, actor).delete_network(
            nwid=normalized_nwid,
            organization_id=organization_id,
        )
    except ZtnetError as exc:
        return domain_error_response(exc)
    return success_response({"deleted": True, "nwid": normalized_nwid})


def _service(
    db_session: Session,
    controller: ControllerClient,
    dispatcher: NotificationDispatcher,
    actor: SessionActor,
) -> NetworkService:
    return NetworkService(
        db_session=db_session,
        controller=controller,
        dispatcher=dispatcher,
        actor=actor,
    )


def _serialize_detail(detail: NetworkDetail) -> dict[str, Any]:
    return {
        "network": serialize_network(detail.network),
        "controller": _serialize_controller_network(detail.controller_network),
        "members": [member.as_dict() for member in detail.roster.members],
        "zombie_members": [member.as_dict() for member in detail.roster.zombies],
        "routes": [serialize_route(route) for route in detail.routes],
        "duplicate_routes": [entry.as_dict() for entry in detail.duplicate_routes],
        "joined_member_ids": list(detail.joined_member_ids),
    }


def _serialize_controller_network(network: ControllerNetwork) -> dict[str, Any]:
    return {
        "name": network.name,
        "private": network.private,
        "mtu": network.mtu,
        "multicast_limit": network.multicast_limit,
        "enable_broadcast": network.enable_broadcast,
        "dns": network.dns.as_dict() if network.dns is not None else None,
        "routes": [{"target": route.target, "via": route.via} for route in network.routes],
        "ip_assignment_pools": [
            {"ip_range_start": pool.start, "ip_range_end": pool.end}
            for pool in network.ip_assignment_pools
        ],
        "v4_auto_assign": network.v4_auto_assign,
        "v6_assign_mode": network.v6_assign_mode.as_dict(),
    }
