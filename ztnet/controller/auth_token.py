"""Resolve the self-hosted controller auth token from settings or a token file."""

from __future__ import annotations

from pathlib import Path

from ztnet.config import AppSettings


def read_auth_token_file(token_file: str) -> str:
    source = token_file.strip()
    if not source:
        raise ValueError("controller auth token file path cannot be empty")

    try:
        token = Path(source).read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise ValueError(f"cannot read controller auth token file {source}: {exc}") from exc

    if not token:
        raise ValueError(f"controller auth token file {source} is empty")
    return token


def resolve_auth_token(settings: AppSettings) -> str:
    """Prefer the token file (e.g. the controller's authtoken.secret) over the env token."""
    if settings.zt_controller_auth_token_file.strip():
        return read_auth_token_file(settings.zt_controller_auth_token_file)

    token = settings.zt_controller_auth_token.strip()
    if token:
        return token
    raise ValueError(
        "a controller auth token is required for the self-hosted controller: set "
        "ZT_CONTROLLER_AUTH_TOKEN or zerotier.self_hosted_controller.auth_token_file"
    )
