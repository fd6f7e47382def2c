"""ZeroTier controller adapters."""

from ztnet.controller.base import (
    DEAUTHORIZE_UPDATE,
    ControllerAuthError,
    ControllerClient,
    ControllerError,
    ControllerMember,
    ControllerNetwork,
    ControllerNotFoundError,
    ControllerRequestError,
    DnsConfig,
    MemberUpdate,
    NetworkConfigUpdate,
    V6AssignMode,
)
from ztnet.controller.factory import create_controller_client

__all__ = [
    "DEAUTHORIZE_UPDATE",
    "ControllerAuthError",
    "ControllerClient",
    "ControllerError",
    "ControllerMember",
    "ControllerNetwork",
    "ControllerNotFoundError",
    "ControllerRequestError",
    "DnsConfig",
    "MemberUpdate",
    "NetworkConfigUpdate",
    "V6AssignMode",
    "create_controller_client",
]
