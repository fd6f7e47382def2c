"""Network detail assembly and network-level operations."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.orm import Session

from ztnet.access import SessionActor, require_organization_role, resolve_network
from ztnet.controller.base import (
    DEAUTHORIZE_UPDATE,
    ControllerClient,
    ControllerError,
    ControllerMember,
    ControllerNetwork,
    ControllerNotFoundError,
    NetworkConfigUpdate,
)
from ztnet.db.enums import AdminNotificationType, OrganizationRole, WebhookEventType
from ztnet.db.models import Network, Route
from ztnet.errors import (
    ControllerUnavailableError,
    InputValidationError,
    NetworkNotFoundError,
)
from ztnet.members.naming import resolve_member_name, resolve_naming_policy
from ztnet.members.reconciliation import MemberRoster, reconcile_members
from ztnet.notifications.base import NotificationDispatcher, WebhookEvent, dispatch_safely
from ztnet.repositories.audit_events import AuditEventRepository
from ztnet.repositories.members import NetworkMemberRepository
from ztnet.repositories.networks import NetworkRepository, RouteRepository
from ztnet.routing import (
    RouteRecord,
    easy_ipv4_assignment,
    is_valid_cidr,
    is_valid_dns_domain,
    is_valid_ip,
    is_valid_pool,
    is_valid_via,
    merge_routes,
    pool_route,
    route_keys,
)

logger = logging.getLogger(__name__)

MIN_MTU = 1280
MAX_MTU = 10000


@dataclass(frozen=True, slots=True)
class NetworkSummary:
    nwid: str
    name: str
    description: str | None
    organization_id: uuid.UUID | None
    authorized_members: int
    total_members: int

    @property
    def member_display(self) -> str:
        return f"{self.authorized_members} ({self.total_members})"

    def as_dict(self) -> dict[str, Any]:
        return {
            "nwid": self.nwid,
            "name": self.name,
            "description": self.description,
            "organization_id": str(self.organization_id) if self.organization_id else None,
            "member_counts": {
                "authorized": self.authorized_members,
                "total": self.total_members,
                "display": self.member_display,
            },
        }


@dataclass(slots=True)
class DuplicateRouteNetwork:
    nwid: str
    name: str
    routes: list[dict[str, Any]] = field(default_factory=list)
    duplicated_targets: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "nwid": self.nwid,
            "name": self.name,
            "routes": list(self.routes),
            "duplicated_targets": list(self.duplicated_targets),
        }


@dataclass(slots=True)
class NetworkDetail:
    network: Network
    controller_network: ControllerNetwork
    roster: MemberRoster
    routes: list[Route]
    duplicate_routes: list[DuplicateRouteNetwork]
    joined_member_ids: list[str] = field(default_factory=list)


class NetworkService:
    def __init__(
        self,
        *,
        db_session: Session,
        controller: ControllerClient,
        dispatcher: NotificationDispatcher,
        actor: SessionActor,
    ) -> None:
        self._db_session = db_session
        self._controller = controller
        self._dispatcher = dispatcher
        self._actor = actor
        self._networks = NetworkRepository(db_session)
        self._routes = RouteRepository(db_session)
        self._members = NetworkMemberRepository(db_session)
        self._audit = AuditEventRepository(db_session)

    def list_user_networks(self) -> list[NetworkSummary]:
        return [
            self._summarize(network)
            for network in self._networks.list_personal(self._actor.user_id)
        ]

    def list_organization_networks(self, organization_id: uuid.UUID) -> list[NetworkSummary]:
        require_organization_role(
            self._db_session,
            actor=self._actor,
            organization_id=organization_id,
            minimum_role=OrganizationRole.READ_ONLY,
        )
        return [
            self._summarize(network)
            for network in self._networks.list_for_organization(organization_id)
        ]

    def create_network(
        self,
        *,
        name: str,
        description: str | None = None,
        organization_id: uuid.UUID | None = None,
    ) -> Network:
        if organization_id is not None:
            require_organization_role(
                self._db_session,
                actor=self._actor,
                organization_id=organization_id,
                minimum_role=OrganizationRole.USER,
            )
        try:
            controller_network = self._controller.create_network(name=name)
        except ControllerError as exc:
            raise ControllerUnavailableError(
                "controller failed to create the network",
                details={"error_code": exc.error_code},
            ) from exc

        network = self._networks.create(
            nwid=controller_network.nwid,
            name=controller_network.name or name,
            description=description,
            author_id=None if organization_id is not None else self._actor.user_id,
            organization_id=organization_id,
        )
        self._write_audit(network, action="network.created", metadata={"name": network.name})
        self._db_session.commit()
        logger.info("network created nwid=%s organization_id=%s", network.nwid, organization_id)
        return network

    def get_network_detail(
        self,
        *,
        nwid: str,
        organization_id: uuid.UUID | None = None,
    ) -> NetworkDetail:
        network = self._resolve(nwid, organization_id, OrganizationRole.READ_ONLY)
        try:
            controller_network = self._controller.get_network(nwid)
            controller_members = self._controller.list_network_members(nwid)
        except ControllerNotFoundError as exc:
            raise NetworkNotFoundError(
                "network not found on the controller",
                details={"nwid": nwid},
            ) from exc
        except ControllerError as exc:
            raise ControllerUnavailableError(
                "controller failed to load the network",
                details={"nwid": nwid, "error_code": exc.error_code},
            ) from exc

        joined = self._persist_joins(network, controller_members)
        roster = reconcile_members(self._members.list_for_network(nwid), controller_members)
        routes = self._sync_routes(network, controller_network.routes)
        self._db_session.commit()

        for member_id in joined:
            self._send_webhook(
                network,
                WebhookEventType.NETWORK_JOIN,
                data={"member_id": member_id},
            )
            self._notify_admins(
                network,
                AdminNotificationType.NODE_ADDED,
                data={"member_id": member_id, "member_name": member_id},
            )

        duplicates: list[DuplicateRouteNetwork] = []
        if network.organization_id is None and network.author_id is not None:
            duplicates = self._find_duplicate_routes(network, routes)
        return NetworkDetail(
            network=network,
            controller_network=controller_network,
            roster=roster,
            routes=routes,
            duplicate_routes=duplicates,
            joined_member_ids=joined,
        )

    def list_active_members(
        self,
        *,
        nwid: str,
        organization_id: uuid.UUID | None = None,
    ) -> MemberRoster:
        return self.get_network_detail(nwid=nwid, organization_id=organization_id).roster

    def update_network(
        self,
        *,
        nwid: str,
        name: str | None = None,
        description: str | None = None,
        organization_id: uuid.UUID | None = None,
    ) -> Network:
        network = self._resolve(nwid, organization_id, OrganizationRole.USER)
        changes: dict[str, Any] = {}
        if name is not None:
            try:
                self._controller.update_network(nwid, NetworkConfigUpdate(name=name))
            except ControllerError as exc:
                raise ControllerUnavailableError(
                    "controller failed to rename the network",
                    details={"nwid": nwid, "error_code": exc.error_code},
                ) from exc
            network.name = name
            changes["name"] = name
        if description is not None:
            network.description = description
            changes["description"] = description
        self._db_session.flush()

        self._write_audit(network, action="network.updated", metadata={"changes": changes})
        self._db_session.commit()
        self._send_webhook(
            network,
            WebhookEventType.NETWORK_CONFIG_CHANGED,
            data={"changes": changes},
        )
        return network

    def update_routes(
        self,
        *,
        nwid: str,
        routes: list[RouteRecord] | None = None,
        route_id: uuid.UUID | None = None,
        note: str | None = None,
        organization_id: uuid.UUID | None = None,
    ) -> list[Route]:
        """Replace managed routes and/or annotate one stored route."""
        if routes is not None:
            validate_routes(routes)
        network = self._resolve(nwid, organization_id, OrganizationRole.USER)

        if note is not None:
            if route_id is None:
                raise InputValidationError("route_id is required when setting a route note")
            route = self._routes.get_by_id(route_id)
            if route is None or route.nwid != nwid:
                raise InputValidationError(
                    "route not found in this network",
                    details={"route_id": str(route_id)},
                )
            self._routes.set_note(route, note)

        stored = self._routes.list_for_network(nwid)
        if routes is not None:
            try:
                controller_network = self._controller.update_network(
                    nwid,
                    NetworkConfigUpdate(routes=routes),
                )
            except ControllerError as exc:
                raise ControllerUnavailableError(
                    "controller failed to update network routes",
                    details={"nwid": nwid, "error_code": exc.error_code},
                ) from exc
            stored = self._sync_routes(network, controller_network.routes)

        self._write_audit(
            network,
            action="network.routes.updated",
            metadata={
                "routes": [{"target": r.target, "via": r.via} for r in routes or []],
                "route_id": str(route_id) if route_id else None,
                "note": note,
            },
        )
        self._db_session.commit()
        self._send_webhook(
            network,
            WebhookEventType.NETWORK_CONFIG_CHANGED,
            data={"changes": {"routes": [r.target for r in routes or []], "note": note}},
        )
        return stored

    def update_network_config(
        self,
        *,
        nwid: str,
        changes: NetworkConfigUpdate,
        organization_id: uuid.UUID | None = None,
    ) -> ControllerNetwork:
        """Push controller-side settings (privacy, DNS, MTU, multicast, IP assignment).

        IPv6 assign-mode flags are merged over the controller's current flags.
        New IP assignment pools also add a managed route covering each pool
        unless the caller supplies the routes itself.
        """
        validate_network_config(changes)
        network = self._resolve(nwid, organization_id, OrganizationRole.USER)
        try:
            if changes.v6_assign_mode is not None or (
                changes.ip_assignment_pools is not None and changes.routes is None
            ):
                current = self._controller.get_network(nwid)
                if changes.v6_assign_mode is not None:
                    changes = replace(
                        changes,
                        v6_assign_mode=changes.v6_assign_mode.merged_over(current.v6_assign_mode),
                    )
                if changes.ip_assignment_pools is not None and changes.routes is None:
                    changes = replace(
                        changes,
                        routes=merge_routes(
                            current.routes,
                            [pool_route(pool) for pool in changes.ip_assignment_pools],
                        ),
                    )
            controller_network = self._controller.update_network(nwid, changes)
        except ControllerNotFoundError as exc:
            raise NetworkNotFoundError(
                "network not found on the controller",
                details={"nwid": nwid},
            ) from exc
        except ControllerError as exc:
            raise ControllerUnavailableError(
                "controller failed to update the network configuration",
                details={"nwid": nwid, "error_code": exc.error_code},
            ) from exc

        if changes.name is not None:
            network.name = changes.name
        if changes.routes is not None:
            self._sync_routes(network, controller_network.routes)
        changed_fields = changes.changed_fields()
        self._write_audit(
            network,
            action="network.config.updated",
            metadata={"changes": changed_fields},
        )
        self._db_session.commit()
        self._send_webhook(
            network,
            WebhookEventType.NETWORK_CONFIG_CHANGED,
            data={"changes": changed_fields},
        )
        return controller_network

    def easy_ip_assignment(
        self,
        *,
        nwid: str,
        cidr: str,
        organization_id: uuid.UUID | None = None,
    ) -> ControllerNetwork:
        """Replace routes and pools with one IPv4 network and turn on auto-assign."""
        try:
            pool, route = easy_ipv4_assignment(cidr)
        except ValueError as exc:
            raise InputValidationError(str(exc), details={"cidr": cidr}) from exc
        return self.update_network_config(
            nwid=nwid,
            changes=NetworkConfigUpdate(
                routes=[route],
                ip_assignment_pools=[pool],
                v4_auto_assign=True,
            ),
            organization_id=organization_id,
        )

    def delete_network(
        self,
        *,
        nwid: str,
        organization_id: uuid.UUID | None = None,
    ) -> None:
        network = self._resolve(nwid, organization_id, OrganizationRole.USER)
        network_name = network.name
        owner_organization_id = network.organization_id

        try:
            controller_members = self._controller.list_network_members(nwid)
        except ControllerNotFoundError:
            controller_members = []
        except ControllerError as exc:
            raise ControllerUnavailableError(
                "controller failed to list network members",
                details={"nwid": nwid, "error_code": exc.error_code},
            ) from exc

        for controller_member in controller_members:
            try:
                self._controller.update_member(
                    nwid,
                    controller_member.member_id,
                    DEAUTHORIZE_UPDATE,
                )
            except ControllerError as exc:
                logger.warning(
                    "member deauthorization failed before network delete nwid=%s "
                    "member_id=%s error_code=%s",
                    nwid,
                    controller_member.member_id,
                    exc.error_code,
                )

        try:
            self._controller.delete_network(nwid)
        except ControllerNotFoundError:
            logger.info("controller no longer knows network nwid=%s", nwid)
        except ControllerError as exc:
            raise ControllerUnavailableError(
                "controller failed to delete the network",
                details={"nwid": nwid, "error_code": exc.error_code},
            ) from exc

        self._networks.delete(network)
        self._audit.create_event(
            action="network.deleted",
            target_type="network",
            target_id=nwid,
            actor_user_id=self._actor.user_id,
            organization_id=owner_organization_id,
            metadata={"name": network_name},
        )
        self._db_session.commit()

        dispatch_safely(
            f"webhook.{WebhookEventType.NETWORK_DELETED.value}",
            self._dispatcher.send_webhook,
            WebhookEvent(
                event_type=WebhookEventType.NETWORK_DELETED,
                nwid=nwid,
                organization_id=owner_organization_id,
                actor_user_id=self._actor.user_id,
            ),
        )
        if owner_organization_id is not None:
            dispatch_safely(
                f"admin.{AdminNotificationType.NETWORK_DELETED.value}",
                self._dispatcher.notify_organization_admins,
                owner_organization_id,
                AdminNotificationType.NETWORK_DELETED,
                {"nwid": nwid, "network_name": network_name},
            )

    def _persist_joins(
        self,
        network: Network,
        controller_members: list[ControllerMember],
    ) -> list[str]:
        """Insert rows for members the controller reports and the database has never seen."""
        known_ids = {row.id for row in self._members.list_for_network(network.nwid)}
        permanently_deleted = self._members.list_permanently_deleted_ids(network.nwid)
        joined: list[str] = []
        policy = None
        for controller_member in controller_members:
            if controller_member.member_id in permanently_deleted:
                logger.debug(
                    "ignoring permanently deleted member still on controller nwid=%s member_id=%s",
                    network.nwid,
                    controller_member.member_id,
                )
                continue
            if controller_member.member_id in known_ids:
                continue
            if policy is None:
                policy = resolve_naming_policy(
                    self._db_session,
                    network=network,
                    actor_user_id=self._actor.user_id,
                )
            self._members.create(
                nwid=network.nwid,
                member_id=controller_member.member_id,
                name=resolve_member_name(
                    self._db_session,
                    network=network,
                    member_id=controller_member.member_id,
                    policy=policy,
                    current_name=controller_member.name,
                ),
                authorized=controller_member.authorized,
                seen_at=controller_member.last_seen or datetime.now(UTC),
            )
            known_ids.add(controller_member.member_id)
            joined.append(controller_member.member_id)
            self._write_audit(
                network,
                action="member.joined",
                metadata={"member_id": controller_member.member_id},
            )
        return joined

    def _sync_routes(self, network: Network, controller_routes: list[RouteRecord]) -> list[Route]:
        stored = self._routes.list_for_network(network.nwid)
        stored_keys = {(row.target, row.via or None) for row in stored}
        if stored_keys == route_keys(controller_routes):
            return stored
        logger.info(
            "syncing routes from controller nwid=%s stored=%d controller=%d",
            network.nwid,
            len(stored),
            len(controller_routes),
        )
        return self._routes.replace_for_network(network.nwid, controller_routes)

    def _find_duplicate_routes(
        self,
        network: Network,
        routes: list[Route],
    ) -> list[DuplicateRouteNetwork]:
        assert network.author_id is not None
        matches = self._routes.find_personal_duplicates(
            author_id=network.author_id,
            exclude_nwid=network.nwid,
            targets=[route.target for route in routes],
        )
        by_network: dict[str, DuplicateRouteNetwork] = {}
        for other_network, route in matches:
            entry = by_network.setdefault(
                other_network.nwid,
                DuplicateRouteNetwork(nwid=other_network.nwid, name=other_network.name),
            )
            entry.routes.append(
                {
                    "id": str(route.id),
                    "target": route.target,
                    "via": route.via,
                    "notes": route.notes,
                }
            )
        duplicated_targets = sorted(
            {route["target"] for entry in by_network.values() for route in entry.routes}
        )
        for entry in by_network.values():
            entry.duplicated_targets = duplicated_targets
        return list(by_network.values())

    def _summarize(self, network: Network) -> NetworkSummary:
        authorized, total = self._members.count_for_network(network.nwid)
        return NetworkSummary(
            nwid=network.nwid,
            name=network.name,
            description=network.description,
            organization_id=network.organization_id,
            authorized_members=authorized,
            total_members=total,
        )

    def _resolve(
        self,
        nwid: str,
        organization_id: uuid.UUID | None,
        minimum_role: OrganizationRole,
    ) -> Network:
        return resolve_network(
            self._db_session,
            actor=self._actor,
            nwid=nwid,
            organization_id=organization_id,
            minimum_role=minimum_role,
        )

    def _write_audit(
        self,
        network: Network,
        *,
        action: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self._audit.create_event(
            action=action,
            target_type="network",
            target_id=network.nwid,
            actor_user_id=self._actor.user_id,
            organization_id=network.organization_id,
            metadata=metadata,
        )

    def _send_webhook(
        self,
        network: Network,
        event_type: WebhookEventType,
        *,
        data: dict[str, Any] | None = None,
    ) -> None:
        event = WebhookEvent(
            event_type=event_type,
            nwid=network.nwid,
            organization_id=network.organization_id,
            member_id=(data or {}).get("member_id"),
            actor_user_id=self._actor.user_id,
            data=data or {},
        )
        dispatch_safely(f"webhook.{event_type.value}", self._dispatcher.send_webhook, event)

    def _notify_admins(
        self,
        network: Network,
        event_type: AdminNotificationType,
        *,
        data: dict[str, Any],
    ) -> None:
        if network.organization_id is None:
            return
        dispatch_safely(
            f"admin.{event_type.value}",
            self._dispatcher.notify_organization_admins,
            network.organization_id,
            event_type,
            {"nwid": network.nwid, "network_name": network.name, **data},
        )


def validate_routes(routes: list[RouteRecord]) -> None:
    invalid_targets = [route.target for route in routes if not is_valid_cidr(route.target)]
    invalid_vias = [route.via for route in routes if not is_valid_via(route.via)]
    if invalid_targets or invalid_vias:
        raise InputValidationError(
            "routes need a CIDR target and a gateway that is an IP address, 'lan' or empty",
            details={"invalid_targets": invalid_targets, "invalid_via": invalid_vias},
        )


def validate_network_config(changes: NetworkConfigUpdate) -> None:
    if changes.routes is not None:
        validate_routes(changes.routes)
    details: dict[str, Any] = {}
    if changes.mtu is not None and not MIN_MTU <= changes.mtu <= MAX_MTU:
        details["mtu"] = changes.mtu
    if changes.multicast_limit is not None and changes.multicast_limit < 0:
        details["multicast_limit"] = changes.multicast_limit
    if changes.dns is not None:
        cleared = not changes.dns.domain and not changes.dns.servers
        if not cleared:
            if not is_valid_dns_domain(changes.dns.domain):
                details["dns_domain"] = changes.dns.domain
            invalid_servers = [server for server in changes.dns.servers if not is_valid_ip(server)]
            if invalid_servers or not changes.dns.servers:
                details["dns_servers"] = invalid_servers
    if changes.ip_assignment_pools is not None:
        invalid_pools = [
            {"start": pool.start, "end": pool.end}
            for pool in changes.ip_assignment_pools
            if not is_valid_pool(pool)
        ]
        if invalid_pools:
            details["invalid_pools"] = invalid_pools
    if details:
        raise InputValidationError("invalid network configuration", details=details)
