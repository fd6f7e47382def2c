"""Network detail, route sync and network-level operations."""

from ztnet.networks.service import (
    DuplicateRouteNetwork,
    NetworkDetail,
    NetworkService,
    NetworkSummary,
    validate_routes,
)

__all__ = [
    "DuplicateRouteNetwork",
    "NetworkDetail",
    "NetworkService",
    "NetworkSummary",
    "validate_routes",
]
