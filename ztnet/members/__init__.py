"""Network member reconciliation, lifecycle and naming."""

from ztnet.members.lifecycle import (
    BulkDeleteResult,
    MemberCreateResult,
    MemberLifecycleService,
    MemberUpdateResult,
)
from ztnet.members.reconciliation import MemberRoster, MergedMember, reconcile_members
from ztnet.members.renaming import RenameOutcome

__all__ = [
    "BulkDeleteResult",
    "MemberCreateResult",
    "MemberLifecycleService",
    "MemberRoster",
    "MemberUpdateResult",
    "MergedMember",
    "RenameOutcome",
    "reconcile_members",
]
