"""Domain enums and transition helpers."""

from enum import StrEnum


class MemberState(StrEnum):
    ACTIVE = "active"
    STASHED = "stashed"
    PERMANENTLY_DELETED = "permanently_deleted"


ALLOWED_MEMBER_TRANSITIONS: dict[MemberState, frozenset[MemberState]] = {
    MemberState.ACTIVE: frozenset({MemberState.STASHED}),
    # STASHED -> ACTIVE only through an explicit re-add.
    MemberState.STASHED: frozenset({MemberState.ACTIVE, MemberState.PERMANENTLY_DELETED}),
}


def member_state(*, deleted: bool, permanently_deleted: bool) -> MemberState:
    if permanently_deleted:
        return MemberState.PERMANENTLY_DELETED
    if deleted:
        return MemberState.STASHED
    return MemberState.ACTIVE


def can_transition_member(current_state: MemberState, new_state: MemberState) -> bool:
    return new_state in ALLOWED_MEMBER_TRANSITIONS.get(current_state, frozenset())


class OrganizationRole(StrEnum):
    READ_ONLY = "read_only"
    USER = "user"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _ROLE_RANKS[self]

    def satisfies(self, minimum: "OrganizationRole") -> bool:
        return self.rank >= minimum.rank


_ROLE_RANKS: dict[OrganizationRole, int] = {
    OrganizationRole.READ_ONLY: 0,
    OrganizationRole.USER: 1,
    OrganizationRole.ADMIN: 2,
}


class WebhookEventType(StrEnum):
    NETWORK_JOIN = "network_join"
    MEMBER_CONFIG_CHANGED = "member_config_changed"
    MEMBER_DELETED = "member_deleted"
    NETWORK_CONFIG_CHANGED = "network_config_changed"
    NETWORK_DELETED = "network_deleted"


class AdminNotificationType(StrEnum):
    NODE_ADDED = "node_added"
    NODE_DELETED = "node_deleted"
    NODE_PERMANENTLY_DELETED = "node_permanently_deleted"
    NETWORK_DELETED = "network_deleted"
