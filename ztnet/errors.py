"""Service-level domain errors.

Every error carries a stable ``error_code`` and the HTTP status the API layer
maps it to. Validation and access errors are raised before any state change.
"""

from __future__ import annotations

from typing import Any


class ZtnetError(Exception):
    """Base exception for deterministic service failures."""

    error_code = "ztnet_error"
    status_code = 500

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class InputValidationError(ZtnetError):
    error_code = "invalid_input"
    status_code = 400


class AccessDeniedError(ZtnetError):
    error_code = "forbidden"
    status_code = 403


class NetworkNotFoundError(ZtnetError):
    error_code = "network_not_found"
    status_code = 404


class MemberNotFoundError(ZtnetError):
    error_code = "member_not_found"
    status_code = 404


class NotationNotFoundError(ZtnetError):
    error_code = "notation_not_found"
    status_code = 404


class OrganizationNotFoundError(ZtnetError):
    error_code = "organization_not_found"
    status_code = 404


class MemberPermanentlyDeletedError(ZtnetError):
    error_code = "member_permanently_deleted"
    status_code = 409


class MemberNotJoinedError(ZtnetError):
    """The controller rejected a member change; the device may never have joined."""

    error_code = "member_not_joined"
    status_code = 409


class ControllerUnavailableError(ZtnetError):
    error_code = "controller_unavailable"
    status_code = 502
