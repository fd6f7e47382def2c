"""Member lifecycle: add, update, stash and delete.

A member moves ACTIVE -> STASHED -> PERMANENTLY_DELETED. Permanently deleted
rows stay in the database so the device is never re-admitted as a new node.
Controller calls run first, the database commit second, and notifications
last; a notification failure never fails the operation.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.orm import Session

from ztnet.access import SessionActor, resolve_network
from ztnet.controller.base import (
    DEAUTHORIZE_UPDATE,
    ControllerAuthError,
    ControllerClient,
    ControllerError,
    ControllerMember,
    ControllerNotFoundError,
    MemberUpdate,
)
from ztnet.db.enums import (
    AdminNotificationType,
    MemberState,
    OrganizationRole,
    WebhookEventType,
    can_transition_member,
)
from ztnet.db.models import Network, NetworkMember
from ztnet.errors import (
    ControllerUnavailableError,
    InputValidationError,
    MemberNotFoundError,
    MemberNotJoinedError,
    MemberPermanentlyDeletedError,
)
from ztnet.members.naming import resolve_member_name, resolve_naming_policy
from ztnet.members.reconciliation import MergedMember, merge_member
from ztnet.members.renaming import RenameOutcome, propagate_member_name
from ztnet.notifications.base import NotificationDispatcher, WebhookEvent, dispatch_safely
from ztnet.repositories.audit_events import AuditEventRepository
from ztnet.repositories.members import NetworkMemberRepository
from ztnet.repositories.notations import NotationRepository
from ztnet.routing import is_valid_ip

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MemberCreateResult:
    member: NetworkMember
    created: bool
    restored: bool


@dataclass(slots=True)
class MemberUpdateResult:
    member: MergedMember
    rename_outcomes: list[RenameOutcome] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class BulkDeleteResult:
    deleted_count: int
    message: str
    member_ids: list[str] = field(default_factory=list)


class MemberLifecycleService:
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
        self._members = NetworkMemberRepository(db_session)
        self._audit = AuditEventRepository(db_session)
        self._notations = NotationRepository(db_session)

    def create(
        self,
        *,
        nwid: str,
        member_id: str,
        organization_id: uuid.UUID | None = None,
    ) -> MemberCreateResult:
        network = self._resolve(nwid, organization_id, OrganizationRole.USER)
        row = self._members.get(nwid=nwid, member_id=member_id)
        if row is not None and row.state is MemberState.PERMANENTLY_DELETED:
            raise MemberPermanentlyDeletedError(
                "member was permanently deleted and cannot be added again",
                details={"nwid": nwid, "member_id": member_id},
            )
        if row is not None and row.state is MemberState.ACTIVE:
            return MemberCreateResult(member=row, created=False, restored=False)

        policy = resolve_naming_policy(
            self._db_session,
            network=network,
            actor_user_id=self._actor.user_id,
        )
        restored = row is not None
        if row is not None:
            row.deleted = False
            row.name = resolve_member_name(
                self._db_session,
                network=network,
                member_id=member_id,
                policy=policy,
                current_name=row.name,
            )
            self._db_session.flush()
        else:
            row = self._members.create(
                nwid=nwid,
                member_id=member_id,
                name=resolve_member_name(
                    self._db_session,
                    network=network,
                    member_id=member_id,
                    policy=policy,
                ),
            )

        self._write_audit(
            network,
            action="member.restored" if restored else "member.created",
            member_id=member_id,
            metadata={"name": row.name},
        )
        self._db_session.commit()
        logger.info(
            "member added nwid=%s member_id=%s restored=%s",
            nwid,
            member_id,
            restored,
        )

        if not restored:
            self._send_webhook(
                network,
                WebhookEventType.NETWORK_JOIN,
                member_id=member_id,
                data={"name": row.name},
            )
        self._notify_admins(
            network,
            AdminNotificationType.NODE_ADDED,
            member_id=member_id,
            member_name=row.name,
        )
        return MemberCreateResult(member=row, created=not restored, restored=restored)

    def update(
        self,
        *,
        nwid: str,
        member_id: str,
        changes: MemberUpdate,
        organization_id: uuid.UUID | None = None,
    ) -> MemberUpdateResult:
        if changes.name is not None and not changes.name.strip():
            raise InputValidationError(
                "member name cannot be blank",
                details={"name": changes.name},
            )
        invalid_ips = [ip for ip in changes.ip_assignments or [] if not is_valid_ip(ip)]
        if invalid_ips:
            raise InputValidationError(
                "ip assignments must be valid IPv4 or IPv6 addresses",
                details={"invalid_ip_assignments": invalid_ips},
            )
        network = self._resolve(nwid, organization_id, OrganizationRole.USER)
        row = self._members.get(nwid=nwid, member_id=member_id)

        rename_outcomes: list[RenameOutcome] = []
        if changes.name:
            policy = resolve_naming_policy(
                self._db_session,
                network=network,
                actor_user_id=self._actor.user_id,
            )
            if policy.rename_globally:
                rename_outcomes = propagate_member_name(
                    self._db_session,
                    controller=self._controller,
                    network=network,
                    member_id=member_id,
                    name=changes.name,
                )

        try:
            controller_member = self._controller.update_member(nwid, member_id, changes)
        except ControllerError as exc:
            self._db_session.commit()
            if not isinstance(exc, ControllerAuthError) and (
                isinstance(exc, ControllerNotFoundError)
                or (exc.status_code is not None and 400 <= exc.status_code < 500)
            ):
                raise MemberNotJoinedError(
                    "member may not have properly joined the network",
                    details={"nwid": nwid, "member_id": member_id, "error_code": exc.error_code},
                ) from exc
            raise ControllerUnavailableError(
                "controller rejected the member update",
                details={"nwid": nwid, "member_id": member_id, "error_code": exc.error_code},
            ) from exc

        if row is not None:
            if changes.name:
                row.name = changes.name
            if changes.description is not None:
                row.description = changes.description
            if changes.authorized is not None:
                row.authorized = changes.authorized
            self._db_session.flush()

        changed_fields = changes.changed_fields()
        self._write_audit(
            network,
            action="member.updated",
            member_id=member_id,
            metadata={
                "changes": changed_fields,
                "renamed_networks": [
                    outcome.nwid for outcome in rename_outcomes if outcome.succeeded
                ],
                "failed_rename_networks": [
                    outcome.nwid for outcome in rename_outcomes if not outcome.succeeded
                ],
            },
        )
        self._db_session.commit()

        self._send_webhook(
            network,
            WebhookEventType.MEMBER_CONFIG_CHANGED,
            member_id=member_id,
            data={"changes": changed_fields},
        )
        if changes.authorized is False:
            self._notify_admins(
                network,
                AdminNotificationType.NODE_DELETED,
                member_id=member_id,
                member_name=row.name if row is not None else None,
            )
        return MemberUpdateResult(
            member=merge_member(row, controller_member),
            rename_outcomes=rename_outcomes,
        )

    def update_database_only(
        self,
        *,
        nwid: str,
        member_id: str,
        deleted: bool | None = None,
        description: str | None = None,
        organization_id: uuid.UUID | None = None,
    ) -> NetworkMember:
        network = self._resolve(nwid, organization_id, OrganizationRole.USER)
        row = self._require_row(nwid, member_id)
        requested_state = _requested_state(deleted)
        if (
            requested_state is not None
            and requested_state is not row.state
            and not can_transition_member(row.state, requested_state)
        ):
            raise MemberPermanentlyDeletedError(
                "a permanently deleted member cannot be restored",
                details={"nwid": nwid, "member_id": member_id},
            )

        changes: dict[str, Any] = {}
        controller_error: ControllerError | None = None
        if requested_state is MemberState.STASHED and row.state is MemberState.ACTIVE:
            controller_error = self._deauthorize(nwid, member_id)
            row.authorized = False
            changes["authorized"] = False
        if deleted is not None:
            row.deleted = deleted
            changes["deleted"] = deleted
        if description is not None:
            row.description = description
            changes["description"] = description
        self._db_session.flush()

        self._write_audit(
            network,
            action="member.database_updated",
            member_id=member_id,
            metadata={"changes": changes, **_controller_error_metadata(controller_error)},
        )
        self._db_session.commit()
        self._send_webhook(
            network,
            WebhookEventType.MEMBER_CONFIG_CHANGED,
            member_id=member_id,
            data={"changes": changes},
        )
        return row

    def stash(
        self,
        *,
        nwid: str,
        member_id: str,
        organization_id: uuid.UUID | None = None,
    ) -> NetworkMember:
        network = self._resolve(nwid, organization_id, OrganizationRole.USER)
        row = self._require_row(nwid, member_id)
        if row.state is not MemberState.ACTIVE:
            return row

        # Deauthorize before hiding; the controller may no longer know the member.
        controller_error = self._deauthorize(nwid, member_id)
        row.deleted = True
        row.authorized = False
        self._db_session.flush()
        metadata = _controller_error_metadata(controller_error)
        self._write_audit(network, action="member.stashed", member_id=member_id, metadata=metadata)
        self._db_session.commit()

        self._send_webhook(
            network,
            WebhookEventType.MEMBER_CONFIG_CHANGED,
            member_id=member_id,
            data={"changes": {"stashed": True}},
        )
        return row

    def delete(
        self,
        *,
        nwid: str,
        member_id: str,
        organization_id: uuid.UUID | None = None,
    ) -> MemberState | None:
        """Delete a member and return the row state left behind (``None`` when removed).

        Active or unknown members are removed from the controller and the
        database. Stashed members only gain the permanent-deletion marker so
        the device is not offered again as a new node.
        """
        network = self._resolve(nwid, organization_id, OrganizationRole.USER)
        row = self._members.get(nwid=nwid, member_id=member_id)
        if row is not None and row.state is MemberState.PERMANENTLY_DELETED:
            return MemberState.PERMANENTLY_DELETED

        if row is not None and row.state is MemberState.STASHED:
            row.permanently_deleted = True
            self._db_session.flush()
            self._write_audit(network, action="member.permanently_deleted", member_id=member_id)
            self._db_session.commit()
            self._notify_admins(
                network,
                AdminNotificationType.NODE_PERMANENTLY_DELETED,
                member_id=member_id,
                member_name=row.name,
            )
            return MemberState.PERMANENTLY_DELETED

        try:
            self._controller.delete_member(nwid, member_id)
        except ControllerNotFoundError as exc:
            if row is None:
                raise MemberNotFoundError(
                    "member not found",
                    details={"nwid": nwid, "member_id": member_id},
                ) from exc
            logger.info(
                "controller no longer knows member; deleting row nwid=%s member_id=%s",
                nwid,
                member_id,
            )
        except ControllerError as exc:
            raise ControllerUnavailableError(
                "controller failed to delete the member",
                details={"nwid": nwid, "member_id": member_id, "error_code": exc.error_code},
            ) from exc

        member_name = row.name if row is not None else None
        removed_notations: list[str] = []
        if row is not None:
            removed_notations = self._delete_row(row)
        self._write_audit(
            network,
            action="member.deleted",
            member_id=member_id,
            metadata={"removed_notations": removed_notations} if removed_notations else None,
        )
        self._db_session.commit()

        self._notify_admins(
            network,
            AdminNotificationType.NODE_PERMANENTLY_DELETED,
            member_id=member_id,
            member_name=member_name,
        )
        self._send_webhook(network, WebhookEventType.MEMBER_DELETED, member_id=member_id)
        return None

    def bulk_delete_stashed(
        self,
        *,
        nwid: str,
        organization_id: uuid.UUID | None = None,
    ) -> BulkDeleteResult:
        network = self._resolve(nwid, organization_id, OrganizationRole.USER)
        stashed = self._members.list_stashed(nwid)
        if not stashed:
            return BulkDeleteResult(deleted_count=0, message="No stashed members found to delete.")

        for row in stashed:
            row.permanently_deleted = True
        self._db_session.flush()
        deleted_count = len(stashed)
        member_ids = [row.id for row in stashed]
        self._write_audit(
            network,
            action="member.bulk_permanently_deleted",
            member_id="bulk",
            metadata={"deleted_count": deleted_count, "member_ids": member_ids},
        )
        self._db_session.commit()
        for row in stashed:
            self._notify_admins(
                network,
                AdminNotificationType.NODE_PERMANENTLY_DELETED,
                member_id=row.id,
                member_name=row.name,
            )
        self._send_webhook(
            network,
            WebhookEventType.MEMBER_DELETED,
            member_id="bulk",
            data={"deleted_count": deleted_count, "member_ids": member_ids},
        )
        return BulkDeleteResult(
            deleted_count=deleted_count,
            member_ids=member_ids,
            message=(
                f"Marked {deleted_count} stashed members as permanently deleted. "
                "They will not reappear as new nodes if they reconnect."
            ),
        )

    def get_member(
        self,
        *,
        nwid: str,
        member_id: str,
        organization_id: uuid.UUID | None = None,
    ) -> MergedMember:
        self._resolve(nwid, organization_id, OrganizationRole.READ_ONLY)
        row = self._members.get(nwid=nwid, member_id=member_id)
        controller_member: ControllerMember | None
        try:
            controller_member = self._controller.get_member(nwid, member_id)
        except ControllerNotFoundError:
            controller_member = None
        except ControllerError as exc:
            raise ControllerUnavailableError(
                "controller failed to load the member",
                details={"nwid": nwid, "member_id": member_id, "error_code": exc.error_code},
            ) from exc

        if row is None and controller_member is None:
            raise MemberNotFoundError(
                "member not found",
                details={"nwid": nwid, "member_id": member_id},
            )
        return merge_member(row, controller_member)

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

    def _delete_row(self, row: NetworkMember) -> list[str]:
        """Remove the row and its notation links; drop labels no other member uses."""
        notations = self._notations.list_for_member(nwid=row.nwid, member_id=row.id)
        for notation in notations:
            link = self._notations.get_link(
                notation_id=notation.id,
                nwid=row.nwid,
                member_id=row.id,
            )
            if link is not None:
                self._notations.unlink(link)
        self._members.delete(row)
        removed: list[str] = []
        for notation in notations:
            if self._notations.count_links(notation.id) == 0:
                self._notations.delete(notation)
                removed.append(notation.name)
        self._db_session.flush()
        return removed

    def _deauthorize(self, nwid: str, member_id: str) -> ControllerError | None:
        try:
            self._controller.update_member(nwid, member_id, DEAUTHORIZE_UPDATE)
        except ControllerError as exc:
            logger.warning(
                "controller deauthorization failed nwid=%s member_id=%s error_code=%s",
                nwid,
                member_id,
                exc.error_code,
            )
            return exc
        return None

    def _require_row(self, nwid: str, member_id: str) -> NetworkMember:
        row = self._members.get(nwid=nwid, member_id=member_id)
        if row is None:
            raise MemberNotFoundError(
                "member not found",
                details={"nwid": nwid, "member_id": member_id},
            )
        return row

    def _write_audit(
        self,
        network: Network,
        *,
        action: str,
        member_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self._audit.create_event(
            action=action,
            target_type="network_member",
            target_id=f"{network.nwid}/{member_id}",
            actor_user_id=self._actor.user_id,
            organization_id=network.organization_id,
            metadata={"nwid": network.nwid, "member_id": member_id, **(metadata or {})},
        )

    def _send_webhook(
        self,
        network: Network,
        event_type: WebhookEventType,
        *,
        member_id: str,
        data: dict[str, Any] | None = None,
    ) -> None:
        event = WebhookEvent(
            event_type=event_type,
            nwid=network.nwid,
            organization_id=network.organization_id,
            member_id=member_id,
            actor_user_id=self._actor.user_id,
            data=data or {},
            occurred_at=datetime.now(UTC),
        )
        dispatch_safely(f"webhook.{event_type.value}", self._dispatcher.send_webhook, event)

    def _notify_admins(
        self,
        network: Network,
        event_type: AdminNotificationType,
        *,
        member_id: str,
        member_name: str | None,
    ) -> None:
        if network.organization_id is None:
            return
        dispatch_safely(
            f"admin.{event_type.value}",
            self._dispatcher.notify_organization_admins,
            network.organization_id,
            event_type,
            {
                "nwid": network.nwid,
                "network_name": network.name,
                "member_id": member_id,
                "member_name": member_name or member_id,
            },
        )


def _requested_state(deleted: bool | None) -> MemberState | None:
    if deleted is None:
        return None
    return MemberState.STASHED if deleted else MemberState.ACTIVE


def _controller_error_metadata(error: ControllerError | None) -> dict[str, Any]:
    if error is None:
        return {}
    return {"controller_error_code": error.error_code, "controller_error": str(error)}
