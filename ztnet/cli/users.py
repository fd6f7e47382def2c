"""Server CLI for local users, organizations and webhooks."""

from __future__ import annotations

import argparse
import sys
import uuid
from collections.abc import Callable, Sequence
from contextlib import AbstractContextManager

from sqlalchemy.orm import Session

from ztnet.auth import (
    LocalPasswordPolicyError,
    hash_password,
    normalize_login_username,
)
from ztnet.config import get_settings
from ztnet.db.enums import OrganizationRole, WebhookEventType
from ztnet.db.session import session_scope
from ztnet.repositories.audit_events import AuditEventRepository
from ztnet.repositories.organizations import OrganizationRepository
from ztnet.repositories.users import (
    LocalCredentialRepository,
    UserOptionsRepository,
    UserRepository,
)
from ztnet.repositories.webhooks import WebhookRepository

type SessionScopeFactory = Callable[[], AbstractContextManager[Session]]


class CliValidationError(ValueError):
    """Raised when CLI input fails validation."""


def main(
    argv: Sequence[str] | None = None,
    *,
    session_scope_factory: SessionScopeFactory | None = None,
) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    scope_factory = session_scope_factory or session_scope

    commands: dict[str, Callable[..., int]] = {
        "create": _run_create,
        "create-org": _run_create_org,
        "grant-role": _run_grant_role,
        "add-webhook": _run_add_webhook,
    }
    try:
        return commands[args.command](args, scope_factory=scope_factory)
    except CliValidationError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python -m ztnet.cli.users")
    subparsers = parser.add_subparsers(dest="command", required=True)

    create_parser = subparsers.add_parser("create", help="create or update a local account")
    create_parser.add_argument("--username", required=True)
    password_group = create_parser.add_mutually_exclusive_group(required=True)
    password_group.add_argument("--password")
    password_group.add_argument("--password-stdin", action="store_true")
    admin_group = create_parser.add_mutually_exclusive_group()
    admin_group.add_argument("--admin", action="store_true")
    admin_group.add_argument("--no-admin", action="store_true")
    create_parser.add_argument("--full-name")
    create_parser.add_argument("--email")
    create_parser.add_argument("--rename-node-globally", action="store_true")
    create_parser.add_argument("--member-id-as-name", action="store_true")

    org_parser = subparsers.add_parser("create-org", help="create an organization")
    org_parser.add_argument("--name", required=True)
    org_parser.add_argument("--description")
    org_parser.add_argument("--admin-username", required=True)

    role_parser = subparsers.add_parser("grant-role", help="set a user's organization role")
    role_parser.add_argument("--organization-id", required=True)
    role_parser.add_argument("--username", required=True)
    role_parser.add_argument(
        "--role",
        required=True,
        choices=[role.value for role in OrganizationRole],
    )

    webhook_parser = subparsers.add_parser("add-webhook", help="register an organization webhook")
    webhook_parser.add_argument("--organization-id", required=True)
    webhook_parser.add_argument("--name", required=True)
    webhook_parser.add_argument("--url", required=True)
    webhook_parser.add_argument(
        "--event",
        action="append",
        required=True,
        choices=[event.value for event in WebhookEventType],
    )
    return parser


def _run_create(args: argparse.Namespace, *, scope_factory: SessionScopeFactory) -> int:
    normalized_username = _normalize_username(args.username)
    password = _resolve_password(args)
    is_admin = _resolve_admin_flag(args)

    settings = get_settings()
    try:
        password_hash = hash_password(
            password=password,
            min_length=settings.local_auth_password_min_length,
            iterations=settings.local_auth_pbkdf2_iterations,
        )
    except LocalPasswordPolicyError as exc:
        raise CliValidationError(str(exc)) from exc

    with scope_factory() as db_session:
        user = UserRepository(db_session).upsert_local_user(
            username=normalized_username,
            full_name=_normalize_optional_value(args.full_name),
            email=_normalize_optional_value(args.email),
            is_admin=is_admin,
        )
        credential_repo = LocalCredentialRepository(db_session)
        existing_credential = credential_repo.get_by_login_username(normalized_username)
        if existing_credential is not None and existing_credential.user_id != user.id:
            raise CliValidationError("duplicate username")
        credential_repo.upsert_for_user(
            user_id=user.id,
            login_username=normalized_username,
            password_hash=password_hash,
            is_enabled=True,
        )
        UserOptionsRepository(db_session).update(
            user.id,
            rename_node_globally=True if args.rename_node_globally else None,
            add_member_id_as_name=True if args.member_id_as_name else None,
        )
        AuditEventRepository(db_session).create_event(
            action="auth.local_account.provisioned",
            target_type="app_user",
            target_id=str(user.id),
            metadata={"username": normalized_username, "is_admin": user.is_admin},
        )
        summary = (
            f"provisioned local user username={normalized_username} "
            f"user_id={user.id} is_admin={user.is_admin}"
        )

    print(summary)
    return 0


def _run_create_org(args: argparse.Namespace, *, scope_factory: SessionScopeFactory) -> int:
    name = _normalize_optional_value(args.name)
    if name is None:
        raise CliValidationError("organization name is required")

    with scope_factory() as db_session:
        admin = UserRepository(db_session).get_by_username(
            _normalize_username(args.admin_username)
        )
        if admin is None:
            raise CliValidationError(f"unknown username: {args.admin_username}")
        organization_repo = OrganizationRepository(db_session)
        organization = organization_repo.create(
            name=name,
            description=_normalize_optional_value(args.description),
        )
        organization_repo.set_role(
            user_id=admin.id,
            organization_id=organization.id,
            role=OrganizationRole.ADMIN,
        )
        organization_repo.get_or_create_settings(organization.id)
        AuditEventRepository(db_session).create_event(
            action="organization.created",
            target_type="organization",
            target_id=str(organization.id),
            organization_id=organization.id,
            metadata={"name": name, "admin_username": admin.username},
        )
        summary = f"created organization name={name} organization_id={organization.id}"

    print(summary)
    return 0


def _run_grant_role(args: argparse.Namespace, *, scope_factory: SessionScopeFactory) -> int:
    organization_id = _parse_uuid(args.organization_id)
    role = OrganizationRole(args.role)

    with scope_factory() as db_session:
        organization_repo = OrganizationRepository(db_session)
        if organization_repo.get_by_id(organization_id) is None:
            raise CliValidationError(f"unknown organization id: {organization_id}")
        user = UserRepository(db_session).get_by_username(_normalize_username(args.username))
        if user is None:
            raise CliValidationError(f"unknown username: {args.username}")
        organization_repo.set_role(user_id=user.id, organization_id=organization_id, role=role)
        AuditEventRepository(db_session).create_event(
            action="organization.role.granted",
            target_type="organization",
            target_id=str(organization_id),
            organization_id=organization_id,
            metadata={"username": user.username, "role": role.value},
        )
        summary = f"granted role={role.value} username={user.username}"

    print(summary)
    return 0


def _run_add_webhook(args: argparse.Namespace, *, scope_factory: SessionScopeFactory) -> int:
    organization_id = _parse_uuid(args.organization_id)
    url = args.url.strip()
    if not url.startswith(("http://", "https://")):
        raise CliValidationError("webhook url must start with http:// or https://")
    event_types = sorted({WebhookEventType(value) for value in args.event})

    with scope_factory() as db_session:
        if OrganizationRepository(db_session).get_by_id(organization_id) is None:
            raise CliValidationError(f"unknown organization id: {organization_id}")
        webhook = WebhookRepository(db_session).create(
            organization_id=organization_id,
            name=args.name.strip(),
            url=url,
            event_types=event_types,
        )
        summary = f"registered webhook id={webhook.id} events={len(event_types)}"

    print(summary)
    return 0


def _resolve_password(args: argparse.Namespace) -> str:
    if bool(args.password_stdin):
        password = sys.stdin.readline().rstrip("\n")
    else:
        password = args.password or ""
    if not password:
        raise CliValidationError("password is required")
    return password


def _resolve_admin_flag(args: argparse.Namespace) -> bool | None:
    if bool(args.admin):
        return True
    if bool(args.no_admin):
        return False
    return None


def _normalize_username(value: str) -> str:
    try:
        return normalize_login_username(value)
    except ValueError as exc:
        raise CliValidationError(str(exc)) from exc


def _parse_uuid(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value.strip())
    except ValueError as exc:
        raise CliValidationError(f"invalid organization id: {value}") from exc


def _normalize_optional_value(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


if __name__ == "__main__":
    raise SystemExit(main())
