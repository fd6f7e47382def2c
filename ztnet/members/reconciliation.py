"""Merge the controller's member view with the database roster.

The database owns admin-controlled fields (name, description, authorization);
the controller owns what it observes (addresses, online state, tags, bridge
flags). Rows marked permanently deleted are dropped entirely, and any member
the controller still reports under such an identifier is suppressed. Stashed
rows come back separately as zombies.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ztnet.controller.base import ControllerMember
from ztnet.db.enums import MemberState
from ztnet.db.models import NetworkMember


@dataclass(slots=True)
class MergedMember:
    member_id: str
    nwid: str
    name: str | None = None
    description: str | None = None
    authorized: bool = False
    state: MemberState = MemberState.ACTIVE
    creation_time: datetime | None = None
    last_seen: datetime | None = None
    physical_address: str | None = None
    online: bool | None = None
    ip_assignments: list[str] = field(default_factory=list)
    tags: list[list[int]] = field(default_factory=list)
    capabilities: list[int] = field(default_factory=list)
    active_bridge: bool = False
    no_auto_assign_ips: bool = False
    in_database: bool = False
    in_controller: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.member_id,
            "nwid": self.nwid,
            "name": self.name,
            "description": self.description,
            "authorized": self.authorized,
            "state": self.state.value,
            "creation_time": _iso(self.creation_time),
            "last_seen": _iso(self.last_seen),
            "physical_address": self.physical_address,
            "online": self.online,
            "ip_assignments": list(self.ip_assignments),
            "tags": [list(tag) for tag in self.tags],
            "capabilities": list(self.capabilities),
            "active_bridge": self.active_bridge,
            "no_auto_assign_ips": self.no_auto_assign_ips,
            "in_database": self.in_database,
            "in_controller": self.in_controller,
        }


@dataclass(slots=True)
class MemberRoster:
    members: list[MergedMember] = field(default_factory=list)
    zombies: list[MergedMember] = field(default_factory=list)

    def member_ids(self) -> list[str]:
        return [member.member_id for member in self.members]


def reconcile_members(
    database_members: Iterable[NetworkMember],
    controller_members: Iterable[ControllerMember],
) -> MemberRoster:
    active_rows: list[NetworkMember] = []
    zombie_rows: list[NetworkMember] = []
    known_ids: set[str] = set()
    for row in database_members:
        known_ids.add(row.id)
        state = row.state
        if state is MemberState.ACTIVE:
            active_rows.append(row)
        elif state is MemberState.STASHED:
            zombie_rows.append(row)

    reported: dict[str, ControllerMember] = {}
    for controller_member in controller_members:
        reported.setdefault(controller_member.member_id, controller_member)

    roster = MemberRoster()
    for row in active_rows:
        roster.members.append(merge_member(row, reported.get(row.id)))

    # Identifiers with any database row are already placed (or deliberately hidden).
    for member_id, controller_member in reported.items():
        if member_id not in known_ids:
            roster.members.append(merge_member(None, controller_member))

    for row in zombie_rows:
        roster.zombies.append(merge_member(row, reported.get(row.id)))
    return roster


def merge_member(
    row: NetworkMember | None,
    controller_member: ControllerMember | None,
) -> MergedMember:
    if row is None and controller_member is None:
        raise ValueError("a database row or a controller member is required")

    if row is not None:
        merged = MergedMember(
            member_id=row.id,
            nwid=row.nwid,
            name=row.name,
            description=row.description,
            authorized=row.authorized,
            state=row.state,
            creation_time=row.creation_time,
            last_seen=row.last_seen,
            in_database=True,
        )
    else:
        assert controller_member is not None
        merged = MergedMember(
            member_id=controller_member.member_id,
            nwid=controller_member.nwid,
            name=controller_member.name,
            description=controller_member.description,
            authorized=controller_member.authorized,
        )

    if controller_member is not None:
        merged.in_controller = True
        merged.physical_address = controller_member.physical_address
        merged.online = controller_member.online
        merged.ip_assignments = list(controller_member.ip_assignments)
        merged.tags = [list(tag) for tag in controller_member.tags]
        merged.capabilities = list(controller_member.capabilities)
        merged.active_bridge = controller_member.active_bridge
        merged.no_auto_assign_ips = controller_member.no_auto_assign_ips
        if controller_member.last_seen is not None:
            merged.last_seen = controller_member.last_seen
    return merged


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
