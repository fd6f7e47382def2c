"""Managed route records and address validation."""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass

VIA_LAN = "lan"
_HEX_MEMBER_ID = re.compile(r"^[0-9a-f]{10}$")
_HEX_NETWORK_ID = re.compile(r"^[0-9a-f]{16}$")
_DNS_DOMAIN = re.compile(
    r"^(?=.{1,253}\.?$)"
    r"[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?"
    r"(?:\.[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?)*\.?$",
    re.IGNORECASE,
)


@dataclass(frozen=True, slots=True)
class RouteRecord:
    target: str
    via: str | None = None

    @property
    def key(self) -> tuple[str, str | None]:
        return (self.target, self.via or None)


def is_valid_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value.strip())
    except ValueError:
        return False
    return True


def is_valid_cidr(value: str) -> bool:
    candidate = value.strip()
    if "/" not in candidate:
        return False
    try:
        ipaddress.ip_network(candidate, strict=False)
    except ValueError:
        return False
    return True


def is_valid_via(value: str | None) -> bool:
    return value is None or value == "" or value == VIA_LAN or is_valid_ip(value)


def normalize_member_id(value: str) -> str:
    normalized = value.strip().lower()
    if not _HEX_MEMBER_ID.match(normalized):
        raise ValueError("member id must be a 10-digit hexadecimal ZeroTier address")
    return normalized


def normalize_network_id(value: str) -> str:
    normalized = value.strip().lower()
    if not _HEX_NETWORK_ID.match(normalized):
        raise ValueError("network id must be a 16-digit hexadecimal ZeroTier network id")
    return normalized


def route_keys(routes: list[RouteRecord] | tuple[RouteRecord, ...]) -> set[tuple[str, str | None]]:
    return {route.key for route in routes}


@dataclass(frozen=True, slots=True)
class IpAssignmentPool:
    start: str
    end: str


def is_valid_pool(pool: IpAssignmentPool) -> bool:
    """Both ends must be addresses of the same family with start not after end."""
    try:
        start = ipaddress.ip_address(pool.start.strip())
        end = ipaddress.ip_address(pool.end.strip())
    except ValueError:
        return False
    return start.version == end.version and start <= end


def is_valid_dns_domain(value: str) -> bool:
    return bool(_DNS_DOMAIN.match(value.strip()))


def pool_route(pool: IpAssignmentPool) -> RouteRecord:
    """Smallest network that holds the whole pool, as a managed route."""
    start = ipaddress.ip_address(pool.start.strip())
    end = ipaddress.ip_address(pool.end.strip())
    network = ipaddress.ip_network(f"{start}/{start.max_prefixlen}")
    while end not in network:
        network = network.supernet()
    return RouteRecord(target=str(network))


def merge_routes(current: list[RouteRecord], extra: list[RouteRecord]) -> list[RouteRecord]:
    """Combine route lists keyed by target address; a later route replaces an earlier one."""
    merged: dict[str, RouteRecord] = {}
    for route in [*current, *extra]:
        merged[route.target.split("/", 1)[0]] = route
    return list(merged.values())


def easy_ipv4_assignment(cidr: str) -> tuple[IpAssignmentPool, RouteRecord]:
    """Pool spanning every usable host of an IPv4 network plus its managed route."""
    network = ipaddress.ip_network(cidr.strip(), strict=False)
    if network.version != 4 or network.prefixlen > 30:
        raise ValueError("easy assignment needs an IPv4 network of /30 or larger")
    pool = IpAssignmentPool(
        start=str(network.network_address + 1),
        end=str(network.broadcast_address - 1),
    )
    return pool, RouteRecord(target=str(network))
