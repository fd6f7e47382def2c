"""Propagate a member rename to the same device in sibling networks."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from ztnet.controller.base import ControllerClient, ControllerError, MemberUpdate
from ztnet.db.models import Network
from ztnet.members.naming import list_scope_peers

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RenameOutcome:
    nwid: str
    member_id: str
    succeeded: bool
    error_code: str | None = None
    error_message: str | None = None

    def as_dict(self) -> dict[str, object]:
        return {
            "nwid": self.nwid,
            "member_id": self.member_id,
            "succeeded": self.succeeded,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


def propagate_member_name(
    db_session: Session,
    *,
    controller: ControllerClient,
    network: Network,
    member_id: str,
    name: str,
) -> list[RenameOutcome]:
    """Rename every non-stashed copy of ``member_id`` elsewhere in the network's scope.

    Each sibling network is updated on the controller and then in the database,
    one after another. A controller failure on one network is logged and
    reported in the outcome list; remaining networks are still attempted and
    nothing already renamed is rolled back.
    """
    outcomes: list[RenameOutcome] = []
    for peer in list_scope_peers(db_session, network=network, member_id=member_id):
        try:
            controller.update_member(peer.nwid, member_id, MemberUpdate(name=name))
        except ControllerError as exc:
            logger.warning(
                "global rename failed nwid=%s member_id=%s error_code=%s",
                peer.nwid,
                member_id,
                exc.error_code,
            )
            outcomes.append(
                RenameOutcome(
                    nwid=peer.nwid,
                    member_id=member_id,
                    succeeded=False,
                    error_code=exc.error_code,
                    error_message=str(exc),
                )
            )
            continue

        peer.name = name
        db_session.flush()
        outcomes.append(RenameOutcome(nwid=peer.nwid, member_id=member_id, succeeded=True))
    return outcomes
