"""Shared httpx plumbing for controller adapters."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import httpx

from ztnet.controller.base import (
    ControllerAuthError,
    ControllerMember,
    ControllerNetwork,
    ControllerNotFoundError,
    ControllerRequestError,
    DnsConfig,
    V6AssignMode,
)
from ztnet.routing import IpAssignmentPool, RouteRecord

HTTPClientFactory = Callable[..., httpx.Client]

logger = logging.getLogger(__name__)


class ControllerHTTPClient:
    """Base adapter; opens one short-lived httpx client per request."""

    provider_name = "controller"
    display_name = "controller"

    def __init__(
        self,
        *,
        base_url: str,
        headers: dict[str, str],
        timeout_seconds: float = 10.0,
        http_client_factory: HTTPClientFactory = httpx.Client,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = headers
        self._timeout_seconds = timeout_seconds
        self._http_client_factory = http_client_factory

    def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | list[Any] | None = None,
    ) -> httpx.Response:
        with self._http_client_factory(
            base_url=self._base_url,
            headers=self._headers,
            timeout=self._timeout_seconds,
        ) as client:
            try:
                return client.request(method, path, json=json_body)
            except httpx.HTTPError as exc:
                logger.warning(
                    "%s request failed method=%s path=%s",
                    self.display_name,
                    method,
                    path,
                )
                raise ControllerRequestError(f"{self.display_name} request failed: {exc}") from exc

    def _raise_for_status(
        self,
        response: httpx.Response,
        *,
        default_message: str,
        not_found_message: str | None = None,
    ) -> None:
        if response.status_code < 400:
            return

        status_code = response.status_code
        if status_code in {401, 403}:
            raise ControllerAuthError(
                f"{self.display_name} authentication failed with status={status_code}",
                status_code=status_code,
            )
        if status_code == 404 and not_found_message is not None:
            raise ControllerNotFoundError(not_found_message, status_code=status_code)

        response_text = response.text.strip()
        detail = f"{default_message}; status={status_code}"
        if response_text:
            detail = f"{detail}; body={response_text[:240]}"
        raise ControllerRequestError(detail, status_code=status_code)

    def _parse_json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise ControllerRequestError(
                f"{self.display_name} response was not valid JSON (status={response.status_code})",
                status_code=response.status_code,
            ) from exc

    def _parse_json_object(self, response: httpx.Response) -> dict[str, Any]:
        data = self._parse_json(response)
        if not isinstance(data, dict):
            raise ControllerRequestError(
                f"{self.display_name} response payload must be an object "
                f"(status={response.status_code})",
                status_code=response.status_code,
            )
        return data


def member_from_config(
    config: dict[str, Any],
    *,
    nwid: str,
    member_id: str,
) -> ControllerMember:
    """Build a member from a controller ``config`` object (camelCase keys)."""
    authorized = config.get("authorized")
    active_bridge = config.get("activeBridge")
    no_auto_assign = config.get("noAutoAssignIps")
    return ControllerMember(
        member_id=_first_text(config, ("id", "address", "nodeId")) or member_id,
        nwid=_first_text(config, ("nwid", "networkId")) or nwid,
        authorized=authorized if isinstance(authorized, bool) else False,
        ip_assignments=_string_list(config.get("ipAssignments")),
        tags=_tag_list(config.get("tags")),
        capabilities=[item for item in config.get("capabilities") or [] if isinstance(item, int)],
        active_bridge=active_bridge if isinstance(active_bridge, bool) else False,
        no_auto_assign_ips=no_auto_assign if isinstance(no_auto_assign, bool) else False,
    )


def routes_from_payload(payload: Any) -> list[RouteRecord]:
    if not isinstance(payload, list):
        return []
    routes: list[RouteRecord] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        target = item.get("target")
        if not isinstance(target, str) or not target.strip():
            continue
        via = item.get("via")
        routes.append(
            RouteRecord(
                target=target.strip(),
                via=via if isinstance(via, str) and via else None,
            )
        )
    return routes


def network_from_config(config: dict[str, Any], *, nwid: str) -> ControllerNetwork:
    """Build a network from a controller network object (camelCase keys)."""
    private = config.get("private")
    enable_broadcast = config.get("enableBroadcast")
    v4_mode = config.get("v4AssignMode")
    v6_mode = config.get("v6AssignMode")
    return ControllerNetwork(
        nwid=nwid,
        name=str(config.get("name") or ""),
        routes=routes_from_payload(config.get("routes")),
        private=private if isinstance(private, bool) else True,
        mtu=_optional_int(config.get("mtu")),
        multicast_limit=_optional_int(config.get("multicastLimit")),
        enable_broadcast=enable_broadcast if isinstance(enable_broadcast, bool) else None,
        dns=_dns_from_payload(config.get("dns")),
        ip_assignment_pools=_pools_from_payload(config.get("ipAssignmentPools")),
        v4_auto_assign=_optional_bool(v4_mode, "zt"),
        v6_assign_mode=V6AssignMode(
            zt=_optional_bool(v6_mode, "zt"),
            rfc4193=_optional_bool(v6_mode, "rfc4193"),
            six_plane=_optional_bool(v6_mode, "6plane"),
        ),
    )


def datetime_from_millis(value: Any) -> datetime | None:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
        return None
    return datetime.fromtimestamp(value / 1000, tz=UTC)


def _first_text(payload: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip().lower()
    return None


def _string_list(candidates: Any) -> list[str]:
    if not isinstance(candidates, list):
        return []

    normalized: list[str] = []
    seen: set[str] = set()
    for item in candidates:
        if not isinstance(item, str):
            continue
        value = item.strip()
        if not value or value in seen:
            continue
        seen.add(value)
        normalized.append(value)
    return normalized


def _tag_list(candidates: Any) -> list[list[int]]:
    if not isinstance(candidates, list):
        return []
    return [
        [int(part) for part in item]
        for item in candidates
        if isinstance(item, list) and all(isinstance(part, int) for part in item)
    ]


def _optional_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _optional_bool(payload: Any, key: str) -> bool | None:
    if not isinstance(payload, dict):
        return None
    value = payload.get(key)
    return value if isinstance(value, bool) else None


def _dns_from_payload(payload: Any) -> DnsConfig | None:
    if not isinstance(payload, dict):
        return None
    domain = payload.get("domain")
    return DnsConfig(
        domain=domain if isinstance(domain, str) else "",
        servers=_string_list(payload.get("servers")),
    )


def _pools_from_payload(payload: Any) -> list[IpAssignmentPool]:
    if not isinstance(payload, list):
        return []
    return [
        IpAssignmentPool(start=item["ipRangeStart"], end=item["ipRangeEnd"])
        for item in payload
        if isinstance(item, dict)
        and isinstance(item.get("ipRangeStart"), str)
        and isinstance(item.get("ipRangeEnd"), str)
    ]
