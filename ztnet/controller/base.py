"""Controller client interface and normalized record models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from ztnet.routing import IpAssignmentPool, RouteRecord


@dataclass(slots=True)
class ControllerMember:
    """Flat view of what a controller knows about one member."""

    member_id: str
    nwid: str
    authorized: bool
    ip_assignments: list[str] = field(default_factory=list)
    tags: list[list[int]] = field(default_factory=list)
    capabilities: list[int] = field(default_factory=list)
    active_bridge: bool = False
    no_auto_assign_ips: bool = False
    physical_address: str | None = None
    online: bool | None = None
    last_seen: datetime | None = None
    name: str | None = None
    description: str | None = None


@dataclass(frozen=True, slots=True)
class DnsConfig:
    domain: str
    servers: list[str] = field(default_factory=list)

    @classmethod
    def cleared(cls) -> DnsConfig:
        return cls(domain="", servers=[])

    def as_dict(self) -> dict[str, Any]:
        return {"domain": self.domain, "servers": list(self.servers)}


@dataclass(frozen=True, slots=True)
class V6AssignMode:
    """IPv6 auto-assign flags; ``None`` keeps the controller's current value."""

    zt: bool | None = None
    rfc4193: bool | None = None
    six_plane: bool | None = None

    def merged_over(self, current: V6AssignMode) -> V6AssignMode:
        return V6AssignMode(
            zt=current.zt if self.zt is None else self.zt,
            rfc4193=current.rfc4193 if self.rfc4193 is None else self.rfc4193,
            six_plane=current.six_plane if self.six_plane is None else self.six_plane,
        )

    def as_dict(self) -> dict[str, bool]:
        flags = (("zt", self.zt), ("rfc4193", self.rfc4193), ("6plane", self.six_plane))
        return {key: value for key, value in flags if value is not None}


@dataclass(slots=True)
class ControllerNetwork:
    nwid: str
    name: str
    routes: list[RouteRecord] = field(default_factory=list)
    private: bool = True
    mtu: int | None = None
    multicast_limit: int | None = None
    enable_broadcast: bool | None = None
    dns: DnsConfig | None = None
    ip_assignment_pools: list[IpAssignmentPool] = field(default_factory=list)
    v4_auto_assign: bool | None = None
    v6_assign_mode: V6AssignMode = field(default_factory=V6AssignMode)


@dataclass(frozen=True, slots=True)
class MemberUpdate:
    """Member changes to apply; ``None`` leaves a field untouched."""

    name: str | None = None
    description: str | None = None
    authorized: bool | None = None
    active_bridge: bool | None = None
    no_auto_assign_ips: bool | None = None
    ip_assignments: list[str] | None = None
    tags: list[list[int]] | None = None
    capabilities: list[int] | None = None

    def changed_fields(self) -> dict[str, Any]:
        return {
            key: value
            for key, value in (
                ("name", self.name),
                ("description", self.description),
                ("authorized", self.authorized),
                ("active_bridge", self.active_bridge),
                ("no_auto_assign_ips", self.no_auto_assign_ips),
                ("ip_assignments", self.ip_assignments),
                ("tags", self.tags),
                ("capabilities", self.capabilities),
            )
            if value is not None
        }

    def controller_config(self) -> dict[str, Any]:
        """Controller-enforced fields in the controller's camelCase vocabulary."""
        config: dict[str, Any] = {}
        if self.authorized is not None:
            config["authorized"] = self.authorized
        if self.active_bridge is not None:
            config["activeBridge"] = self.active_bridge
        if self.no_auto_assign_ips is not None:
            config["noAutoAssignIps"] = self.no_auto_assign_ips
        if self.ip_assignments is not None:
            config["ipAssignments"] = list(self.ip_assignments)
        if self.tags is not None:
            config["tags"] = [list(tag) for tag in self.tags]
        if self.capabilities is not None:
            config["capabilities"] = list(self.capabilities)
        return config


DEAUTHORIZE_UPDATE = MemberUpdate(
    authorized=False,
    ip_assignments=[],
    tags=[],
    capabilities=[],
)


@dataclass(frozen=True, slots=True)
class NetworkConfigUpdate:
    """Network changes to apply; ``None`` leaves a setting untouched."""

    name: str | None = None
    routes: list[RouteRecord] | None = None
    private: bool | None = None
    mtu: int | None = None
    multicast_limit: int | None = None
    enable_broadcast: bool | None = None
    dns: DnsConfig | None = None
    ip_assignment_pools: list[IpAssignmentPool] | None = None
    v4_auto_assign: bool | None = None
    v6_assign_mode: V6AssignMode | None = None

    def changed_fields(self) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        for key in ("name", "private", "mtu", "multicast_limit", "enable_broadcast"):
            value = getattr(self, key)
            if value is not None:
                changes[key] = value
        if self.v4_auto_assign is not None:
            changes["v4_auto_assign"] = self.v4_auto_assign
        if self.routes is not None:
            changes["routes"] = [{"target": r.target, "via": r.via} for r in self.routes]
        if self.dns is not None:
            changes["dns"] = self.dns.as_dict()
        if self.ip_assignment_pools is not None:
            changes["ip_assignment_pools"] = [
                {"start": pool.start, "end": pool.end} for pool in self.ip_assignment_pools
            ]
        if self.v6_assign_mode is not None:
            changes["v6_assign_mode"] = self.v6_assign_mode.as_dict()
        return changes

    def controller_config(self) -> dict[str, Any]:
        """Network settings in the controller's camelCase vocabulary."""
        config: dict[str, Any] = {}
        if self.name is not None:
            config["name"] = self.name
        if self.routes is not None:
            config["routes"] = [{"target": r.target, "via": r.via} for r in self.routes]
        if self.private is not None:
            config["private"] = self.private
        if self.mtu is not None:
            config["mtu"] = self.mtu
        if self.multicast_limit is not None:
            config["multicastLimit"] = self.multicast_limit
        if self.enable_broadcast is not None:
            config["enableBroadcast"] = self.enable_broadcast
        if self.dns is not None:
            config["dns"] = self.dns.as_dict()
        if self.ip_assignment_pools is not None:
            config["ipAssignmentPools"] = [
                {"ipRangeStart": pool.start, "ipRangeEnd": pool.end}
                for pool in self.ip_assignment_pools
            ]
        if self.v4_auto_assign is not None:
            config["v4AssignMode"] = {"zt": self.v4_auto_assign}
        if self.v6_assign_mode is not None:
            config["v6AssignMode"] = self.v6_assign_mode.as_dict()
        return config


class ControllerClient(Protocol):
    provider_name: str

    def get_network(self, nwid: str) -> ControllerNetwork:
        """Return the network; raise ControllerNotFoundError when it is unknown."""

    def create_network(self, *, name: str) -> ControllerNetwork:
        """Create a network on the controller and return it."""

    def update_network(
        self,
        nwid: str,
        changes: NetworkConfigUpdate,
    ) -> ControllerNetwork:
        """Apply network-level changes and return the updated network."""

    def delete_network(self, nwid: str) -> None:
        """Delete the network from the controller."""

    def list_network_members(self, nwid: str) -> list[ControllerMember]:
        """Return every member the controller reports for the network."""

    def get_member(self, nwid: str, member_id: str) -> ControllerMember:
        """Return one member; raise ControllerNotFoundError when it is unknown."""

    def update_member(self, nwid: str, member_id: str, changes: MemberUpdate) -> ControllerMember:
        """Apply member changes and return the controller's view afterwards."""

    def delete_member(self, nwid: str, member_id: str) -> None:
        """Remove the member from the controller."""


class ControllerError(Exception):
    """Base controller exception for deterministic failure handling."""

    error_code = "controller_error"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ControllerAuthError(ControllerError):
    error_code = "controller_auth_error"


class ControllerNotFoundError(ControllerError):
    error_code = "controller_not_found"


class ControllerRequestError(ControllerError):
    error_code = "controller_request_error"
