from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from ztnet.access import SessionActor
from ztnet.controller.base import (
    DEAUTHORIZE_UPDATE,
    ControllerAuthError,
    ControllerRequestError,
    MemberUpdate,
)
from ztnet.db.enums import MemberState, OrganizationRole
from ztnet.db.models import AppUser, AuditEvent, NetworkMember, Notation
from ztnet.errors import (
    AccessDeniedError,
    ControllerUnavailableError,
    InputValidationError,
    MemberNotFoundError,
    MemberNotJoinedError,
    MemberPermanentlyDeletedError,
)
from ztnet.members import MemberLifecycleService
from ztnet.repositories.notations import NotationRepository

NWID = "8056c2e21c000001"
MEMBER_ID = "abc1230000"


@pytest.fixture()
def service(
    db_session: Session,
    controller,
    dispatcher,
    owner_actor: SessionActor,
) -> MemberLifecycleService:
    return MemberLifecycleService(
        db_session=db_session,
        controller=controller,
        dispatcher=dispatcher,
        actor=owner_actor,
    )


@pytest.fixture()
def personal_network(seed, owner: AppUser, controller):
    controller.add_network(NWID)
    return seed.network(NWID, author=owner)


def test_create_adds_active_member_and_announces_join(
    service: MemberLifecycleService,
    personal_network,
    db_session: Session,
    dispatcher,
) -> None:
    result = service.create(nwid=NWID, member_id=MEMBER_ID)

    assert result.created is True
    assert result.restored is False
    assert result.member.state is MemberState.ACTIVE
    assert dispatcher.webhook_types() == ["network_join"]
    # Personal networks have no organization admins to notify.
    assert dispatcher.admin_notifications == []

    audit = db_session.execute(
        select(AuditEvent).where(AuditEvent.action == "member.created")
    ).scalar_one()
    assert audit.target_id == f"{NWID}/{MEMBER_ID}"


def test_create_is_idempotent_for_active_member(
    service: MemberLifecycleService,
    personal_network,
    seed,
    dispatcher,
) -> None:
    seed.member(NWID, MEMBER_ID, name="laptop")

    result = service.create(nwid=NWID, member_id=MEMBER_ID)

    assert result.created is False
    assert result.restored is False
    assert result.member.name == "laptop"
    assert dispatcher.webhooks == []


def test_stash_deauthorizes_and_hides_member(
    service: MemberLifecycleService,
    personal_network,
    seed,
    controller,
) -> None:
    seed.member(NWID, MEMBER_ID, authorized=True)
    controller.add_member(NWID, MEMBER_ID, ip_assignments=["10.147.17.5"])

    row = service.stash(nwid=NWID, member_id=MEMBER_ID)

    assert row.state is MemberState.STASHED
    assert row.authorized is False
    assert controller.member_updates == [(NWID, MEMBER_ID, DEAUTHORIZE_UPDATE)]
    assert controller.members[(NWID, MEMBER_ID)].authorized is False
    assert controller.members[(NWID, MEMBER_ID)].ip_assignments == []


def test_stash_tolerates_member_unknown_to_controller(
    service: MemberLifecycleService,
    personal_network,
    seed,
    db_session: Session,
) -> None:
    seed.member(NWID, MEMBER_ID)

    row = service.stash(nwid=NWID, member_id=MEMBER_ID)

    assert row.state is MemberState.STASHED
    audit = db_session.execute(
        select(AuditEvent).where(AuditEvent.action == "member.stashed")
    ).scalar_one()
    assert audit.event_metadata["controller_error_code"] == "controller_not_found"


def test_stash_requires_a_database_row(
    service: MemberLifecycleService,
    personal_network,
) -> None:
    with pytest.raises(MemberNotFoundError):
        service.stash(nwid=NWID, member_id=MEMBER_ID)


def test_delete_of_stashed_member_keeps_tombstone(
    service: MemberLifecycleService,
    personal_network,
    seed,
    controller,
    db_session: Session,
) -> None:
    seed.member(NWID, MEMBER_ID, deleted=True, authorized=False)

    state = service.delete(nwid=NWID, member_id=MEMBER_ID)

    assert state is MemberState.PERMANENTLY_DELETED
    assert controller.operations("delete_member") == []
    row = db_session.get(NetworkMember, (MEMBER_ID, NWID))
    assert row is not None
    assert row.permanently_deleted is True


def test_delete_of_permanently_deleted_member_is_a_no_op(
    service: MemberLifecycleService,
    personal_network,
    seed,
    controller,
) -> None:
    seed.member(NWID, MEMBER_ID, permanently_deleted=True)

    assert service.delete(nwid=NWID, member_id=MEMBER_ID) is MemberState.PERMANENTLY_DELETED
    assert controller.calls == []


def test_delete_of_active_member_removes_it_everywhere(
    service: MemberLifecycleService,
    personal_network,
    seed,
    controller,
    db_session: Session,
    dispatcher,
) -> None:
    seed.member(NWID, MEMBER_ID)
    controller.add_member(NWID, MEMBER_ID)

    assert service.delete(nwid=NWID, member_id=MEMBER_ID) is None

    assert (NWID, MEMBER_ID) not in controller.members
    assert db_session.get(NetworkMember, (MEMBER_ID, NWID)) is None
    assert dispatcher.webhook_types() == ["member_deleted"]


def test_delete_of_active_row_tolerates_controller_not_found(
    service: MemberLifecycleService,
    personal_network,
    seed,
    db_session: Session,
) -> None:
    seed.member(NWID, MEMBER_ID)

    assert service.delete(nwid=NWID, member_id=MEMBER_ID) is None
    assert db_session.get(NetworkMember, (MEMBER_ID, NWID)) is None


def test_delete_of_unknown_member_raises_not_found(
    service: MemberLifecycleService,
    personal_network,
) -> None:
    with pytest.raises(MemberNotFoundError):
        service.delete(nwid=NWID, member_id=MEMBER_ID)


def test_delete_surfaces_controller_failures(
    service: MemberLifecycleService,
    personal_network,
    seed,
    controller,
    db_session: Session,
) -> None:
    seed.member(NWID, MEMBER_ID)
    controller.add_member(NWID, MEMBER_ID)
    controller.fail(
        "delete_member",
        NWID,
        MEMBER_ID,
        error=ControllerRequestError("boom", status_code=500),
    )

    with pytest.raises(ControllerUnavailableError):
        service.delete(nwid=NWID, member_id=MEMBER_ID)
    assert db_session.get(NetworkMember, (MEMBER_ID, NWID)) is not None


def test_re_adding_stashed_member_restores_it(
    service: MemberLifecycleService,
    personal_network,
    seed,
    dispatcher,
) -> None:
    seed.member(NWID, MEMBER_ID, name="printer", deleted=True, authorized=False)

    result = service.create(nwid=NWID, member_id=MEMBER_ID)

    assert result.created is False
    assert result.restored is True
    assert result.member.state is MemberState.ACTIVE
    assert result.member.name == "printer"
    assert dispatcher.webhook_types() == []


def test_re_adding_permanently_deleted_member_is_rejected(
    service: MemberLifecycleService,
    personal_network,
    seed,
) -> None:
    seed.member(NWID, MEMBER_ID, permanently_deleted=True)

    with pytest.raises(MemberPermanentlyDeletedError) as exc_info:
        service.create(nwid=NWID, member_id=MEMBER_ID)
    assert exc_info.value.status_code == 409


def test_stash_then_delete_then_re_add_never_revives_member(
    service: MemberLifecycleService,
    personal_network,
    seed,
    controller,
) -> None:
    seed.member(NWID, MEMBER_ID)
    controller.add_member(NWID, MEMBER_ID)

    service.stash(nwid=NWID, member_id=MEMBER_ID)
    assert service.delete(nwid=NWID, member_id=MEMBER_ID) is MemberState.PERMANENTLY_DELETED

    with pytest.raises(MemberPermanentlyDeletedError):
        service.create(nwid=NWID, member_id=MEMBER_ID)


def test_bulk_delete_marks_stashed_members_and_is_idempotent(
    service: MemberLifecycleService,
    personal_network,
    seed,
    db_session: Session,
) -> None:
    seed.member(NWID, "aaaaaaaaa1", deleted=True)
    seed.member(NWID, "aaaaaaaaa2", deleted=True)
    seed.member(NWID, "aaaaaaaaa3")

    first = service.bulk_delete_stashed(nwid=NWID)
    assert first.deleted_count == 2
    assert first.member_ids == ["aaaaaaaaa1", "aaaaaaaaa2"]
    assert "permanently deleted" in first.message

    second = service.bulk_delete_stashed(nwid=NWID)
    assert second.deleted_count == 0
    assert second.message == "No stashed members found to delete."

    states = {
        row.id: row.state
        for row in db_session.execute(select(NetworkMember)).scalars()
    }
    assert states == {
        "aaaaaaaaa1": MemberState.PERMANENTLY_DELETED,
        "aaaaaaaaa2": MemberState.PERMANENTLY_DELETED,
        "aaaaaaaaa3": MemberState.ACTIVE,
    }


def test_update_applies_controller_and_database_fields(
    service: MemberLifecycleService,
    personal_network,
    seed,
    controller,
    db_session: Session,
) -> None:
    seed.member(NWID, MEMBER_ID, name="old")
    controller.add_member(NWID, MEMBER_ID)

    result = service.update(
        nwid=NWID,
        member_id=MEMBER_ID,
        changes=MemberUpdate(name="new", ip_assignments=["10.147.17.9"]),
    )

    assert result.member.name == "new"
    assert result.member.ip_assignments == ["10.147.17.9"]
    assert result.rename_outcomes == []
    assert db_session.get(NetworkMember, (MEMBER_ID, NWID)).name == "new"


def test_update_rejects_invalid_ip_before_calling_controller(
    service: MemberLifecycleService,
    personal_network,
    seed,
    controller,
) -> None:
    seed.member(NWID, MEMBER_ID)

    with pytest.raises(InputValidationError):
        service.update(
            nwid=NWID,
            member_id=MEMBER_ID,
            changes=MemberUpdate(ip_assignments=["10.147.17.300"]),
        )
    assert controller.calls == []


def test_update_maps_controller_not_found_to_not_joined(
    service: MemberLifecycleService,
    personal_network,
    seed,
) -> None:
    seed.member(NWID, MEMBER_ID)

    with pytest.raises(MemberNotJoinedError):
        service.update(nwid=NWID, member_id=MEMBER_ID, changes=MemberUpdate(authorized=True))


def test_update_maps_controller_outage_to_unavailable(
    service: MemberLifecycleService,
    personal_network,
    seed,
    controller,
) -> None:
    seed.member(NWID, MEMBER_ID)
    controller.add_member(NWID, MEMBER_ID)
    controller.fail(
        "update_member",
        NWID,
        MEMBER_ID,
        error=ControllerRequestError("upstream down", status_code=503),
    )

    with pytest.raises(ControllerUnavailableError):
        service.update(nwid=NWID, member_id=MEMBER_ID, changes=MemberUpdate(authorized=True))


def test_update_database_only_cannot_restore_permanently_deleted_member(
    service: MemberLifecycleService,
    personal_network,
    seed,
) -> None:
    seed.member(NWID, MEMBER_ID, permanently_deleted=True)

    with pytest.raises(MemberPermanentlyDeletedError):
        service.update_database_only(nwid=NWID, member_id=MEMBER_ID, deleted=False)


def test_update_database_only_changes_description(
    service: MemberLifecycleService,
    personal_network,
    seed,
    controller,
) -> None:
    seed.member(NWID, MEMBER_ID)

    row = service.update_database_only(nwid=NWID, member_id=MEMBER_ID, description="rack 4")

    assert row.description == "rack 4"
    assert controller.calls == []


def test_get_member_merges_controller_only_member(
    service: MemberLifecycleService,
    personal_network,
    controller,
) -> None:
    controller.add_member(NWID, MEMBER_ID, ip_assignments=["10.147.17.2"])

    member = service.get_member(nwid=NWID, member_id=MEMBER_ID)

    assert member.in_controller is True
    assert member.in_database is False
    assert member.ip_assignments == ["10.147.17.2"]


def test_get_member_raises_when_unknown_everywhere(
    service: MemberLifecycleService,
    personal_network,
) -> None:
    with pytest.raises(MemberNotFoundError):
        service.get_member(nwid=NWID, member_id=MEMBER_ID)


def test_other_users_cannot_touch_personal_network(
    db_session: Session,
    controller,
    dispatcher,
    personal_network,
    seed,
) -> None:
    stranger = seed.user("stranger")
    service = MemberLifecycleService(
        db_session=db_session,
        controller=controller,
        dispatcher=dispatcher,
        actor=SessionActor(user_id=stranger.id),
    )

    with pytest.raises(AccessDeniedError):
        service.create(nwid=NWID, member_id=MEMBER_ID)
    assert controller.calls == []


def test_read_only_organization_member_cannot_add_members(
    db_session: Session,
    controller,
    dispatcher,
    seed,
) -> None:
    viewer = seed.user("viewer")
    organization = seed.organization(members={viewer.id: OrganizationRole.READ_ONLY})
    seed.network(NWID, organization=organization)
    service = MemberLifecycleService(
        db_session=db_session,
        controller=controller,
        dispatcher=dispatcher,
        actor=SessionActor(user_id=viewer.id),
    )

    with pytest.raises(AccessDeniedError):
        service.create(nwid=NWID, member_id=MEMBER_ID, organization_id=organization.id)
    with pytest.raises(AccessDeniedError):
        service.create(nwid=NWID, member_id=MEMBER_ID)


def test_organization_member_events_reach_webhooks_and_admins(
    db_session: Session,
    controller,
    dispatcher,
    seed,
    owner: AppUser,
) -> None:
    organization = seed.organization(members={owner.id: OrganizationRole.USER})
    seed.network(NWID, name="office", organization=organization)
    controller.add_network(NWID)
    controller.add_member(NWID, MEMBER_ID)
    service = MemberLifecycleService(
        db_session=db_session,
        controller=controller,
        dispatcher=dispatcher,
        actor=SessionActor(user_id=owner.id),
    )

    service.create(nwid=NWID, member_id=MEMBER_ID, organization_id=organization.id)
    service.update(
        nwid=NWID,
        member_id=MEMBER_ID,
        changes=MemberUpdate(authorized=False),
        organization_id=organization.id,
    )

    assert dispatcher.webhook_types() == ["network_join", "member_config_changed"]
    assert dispatcher.admin_types() == ["node_added", "node_deleted"]
    organization_id, _, data = dispatcher.admin_notifications[0]
    assert organization_id == organization.id
    assert data["network_name"] == "office"
    assert data["member_id"] == MEMBER_ID


def test_notification_failures_do_not_fail_the_operation(
    service: MemberLifecycleService,
    personal_network,
    dispatcher,
    db_session: Session,
) -> None:
    dispatcher.raise_on_send = True

    result = service.create(nwid=NWID, member_id=MEMBER_ID)

    assert result.created is True
    assert db_session.get(NetworkMember, (MEMBER_ID, NWID)) is not None


def test_delete_of_active_member_drops_notations_nobody_else_uses(
    service: MemberLifecycleService,
    personal_network,
    seed,
    controller,
    db_session: Session,
) -> None:
    seed.member(NWID, MEMBER_ID)
    seed.member(NWID, "aaaaaaaaa2")
    controller.add_member(NWID, MEMBER_ID)
    notations = NotationRepository(db_session)
    lab = notations.get_or_create(nwid=NWID, name="lab")
    shared = notations.get_or_create(nwid=NWID, name="shared")
    notations.link(notation=lab, nwid=NWID, member_id=MEMBER_ID)
    notations.link(notation=shared, nwid=NWID, member_id=MEMBER_ID)
    notations.link(notation=shared, nwid=NWID, member_id="aaaaaaaaa2")
    db_session.commit()

    service.delete(nwid=NWID, member_id=MEMBER_ID)

    remaining = db_session.execute(select(Notation.name)).scalars().all()
    assert remaining == ["shared"]
    assert notations.count_links(shared.id) == 1
    audit = db_session.execute(
        select(AuditEvent).where(AuditEvent.action == "member.deleted")
    ).scalar_one()
    assert audit.event_metadata["removed_notations"] == ["lab"]


def test_update_database_only_stash_deauthorizes_on_controller(
    service: MemberLifecycleService,
    personal_network,
    seed,
    controller,
) -> None:
    seed.member(NWID, MEMBER_ID, authorized=True)
    controller.add_member(NWID, MEMBER_ID, ip_assignments=["10.147.17.5"])

    row = service.update_database_only(nwid=NWID, member_id=MEMBER_ID, deleted=True)

    assert row.state is MemberState.STASHED
    assert row.authorized is False
    assert controller.member_updates == [(NWID, MEMBER_ID, DEAUTHORIZE_UPDATE)]
    assert controller.members[(NWID, MEMBER_ID)].authorized is False


def test_update_database_only_stash_tolerates_controller_failure(
    service: MemberLifecycleService,
    personal_network,
    seed,
    controller,
    db_session: Session,
) -> None:
    seed.member(NWID, MEMBER_ID, authorized=True)
    controller.add_member(NWID, MEMBER_ID)
    controller.fail(
        "update_member",
        NWID,
        MEMBER_ID,
        error=ControllerRequestError("upstream down", status_code=503),
    )

    row = service.update_database_only(nwid=NWID, member_id=MEMBER_ID, deleted=True)

    assert row.state is MemberState.STASHED
    assert row.authorized is False
    audit = db_session.execute(
        select(AuditEvent).where(AuditEvent.action == "member.database_updated")
    ).scalar_one()
    assert audit.event_metadata["controller_error_code"] == "controller_request_error"


def test_update_database_only_restore_skips_controller(
    service: MemberLifecycleService,
    personal_network,
    seed,
    controller,
) -> None:
    seed.member(NWID, MEMBER_ID, deleted=True)

    row = service.update_database_only(nwid=NWID, member_id=MEMBER_ID, deleted=False)

    assert row.state is MemberState.ACTIVE
    assert controller.calls == []


@pytest.mark.parametrize("name", ["", "   "])
def test_update_rejects_blank_name_before_calling_controller(
    service: MemberLifecycleService,
    personal_network,
    seed,
    controller,
    db_session: Session,
    name: str,
) -> None:
    seed.member(NWID, MEMBER_ID, name="keep")
    controller.add_member(NWID, MEMBER_ID)

    with pytest.raises(InputValidationError):
        service.update(nwid=NWID, member_id=MEMBER_ID, changes=MemberUpdate(name=name))

    assert controller.member_updates == []
    assert db_session.get(NetworkMember, (MEMBER_ID, NWID)).name == "keep"


@pytest.mark.parametrize("status_code", [401, 403])
def test_update_maps_controller_auth_failure_to_unavailable(
    service: MemberLifecycleService,
    personal_network,
    seed,
    controller,
    status_code: int,
) -> None:
    seed.member(NWID, MEMBER_ID)
    controller.add_member(NWID, MEMBER_ID)
    controller.fail(
        "update_member",
        NWID,
        MEMBER_ID,
        error=ControllerAuthError("denied", status_code=status_code),
    )

    with pytest.raises(ControllerUnavailableError):
        service.update(nwid=NWID, member_id=MEMBER_ID, changes=MemberUpdate(authorized=True))
