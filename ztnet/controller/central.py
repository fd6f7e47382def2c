"""ZeroTier Central controller adapter."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import httpx

from ztnet.controller.base import (
    ControllerMember,
    ControllerNetwork,
    ControllerNotFoundError,
    MemberUpdate,
    NetworkConfigUpdate,
)
from ztnet.controller.http import (
    ControllerHTTPClient,
    HTTPClientFactory,
    datetime_from_millis,
    member_from_config,
    network_from_config,
)

# Central reports lastOnline; anything newer than this counts as online.
ONLINE_WINDOW = timedelta(minutes=5)


class ZeroTierCentralController(ControllerHTTPClient):
    provider_name = "central"
    display_name = "central"

    def __init__(
        self,
        *,
        base_url: str,
        api_token: str,
        timeout_seconds: float = 10.0,
        http_client_factory: HTTPClientFactory = httpx.Client,
    ) -> None:
        super().__init__(
            base_url=base_url,
            headers={"Authorization": f"token {api_token}"},
            timeout_seconds=timeout_seconds,
            http_client_factory=http_client_factory,
        )

    def get_network(self, nwid: str) -> ControllerNetwork:
        response = self._request("GET", f"/network/{nwid}")
        self._raise_for_status(
            response,
            default_message=f"failed to load central network nwid={nwid}",
            not_found_message=f"central network not found nwid={nwid}",
        )
        return _network_from_payload(self._parse_json_object(response), nwid=nwid)

    def create_network(self, *, name: str) -> ControllerNetwork:
        response = self._request(
            "POST",
            "/network",
            json_body={"config": {"name": name, "private": True}},
        )
        self._raise_for_status(response, default_message="failed to create central network")
        return _network_from_payload(self._parse_json_object(response), nwid="")

    def update_network(
        self,
        nwid: str,
        changes: NetworkConfigUpdate,
    ) -> ControllerNetwork:
        # Central nests every network setting under "config".
        response = self._request(
            "POST",
            f"/network/{nwid}",
            json_body={"config": changes.controller_config()},
        )
        self._raise_for_status(
            response,
            default_message=f"failed to update central network nwid={nwid}",
            not_found_message=f"central network not found nwid={nwid}",
        )
        return _network_from_payload(self._parse_json_object(response), nwid=nwid)

    def delete_network(self, nwid: str) -> None:
        response = self._request("DELETE", f"/network/{nwid}")
        self._raise_for_status(
            response,
            default_message=f"failed to delete central network nwid={nwid}",
            not_found_message=f"central network not found nwid={nwid}",
        )

    def list_network_members(self, nwid: str) -> list[ControllerMember]:
        response = self._request("GET", f"/network/{nwid}/member")
        self._raise_for_status(
            response,
            default_message=f"failed to list central members nwid={nwid}",
            not_found_message=f"central network not found nwid={nwid}",
        )
        payload = self._parse_json(response)
        if not isinstance(payload, list):
            return []
        return [
            _member_from_payload(item, nwid=nwid)
            for item in payload
            if isinstance(item, dict)
        ]

    def get_member(self, nwid: str, member_id: str) -> ControllerMember:
        response = self._request("GET", f"/network/{nwid}/member/{member_id}")
        self._raise_for_status(
            response,
            default_message=f"failed to load central member nwid={nwid} member_id={member_id}",
            not_found_message=f"central member not found nwid={nwid} member_id={member_id}",
        )
        return _member_from_payload(
            self._parse_json_object(response),
            nwid=nwid,
            member_id=member_id,
        )

    def update_member(self, nwid: str, member_id: str, changes: MemberUpdate) -> ControllerMember:
        payload: dict[str, Any] = {"config": changes.controller_config()}
        if changes.name is not None:
            payload["name"] = changes.name
        if changes.description is not None:
            payload["description"] = changes.description
        response = self._request(
            "POST",
            f"/network/{nwid}/member/{member_id}",
            json_body=payload,
        )
        self._raise_for_status(
            response,
            default_message=f"failed to update central member nwid={nwid} member_id={member_id}",
            not_found_message=f"central member not found nwid={nwid} member_id={member_id}",
        )
        return _member_from_payload(
            self._parse_json_object(response),
            nwid=nwid,
            member_id=member_id,
        )

    def delete_member(self, nwid: str, member_id: str) -> None:
        response = self._request("DELETE", f"/network/{nwid}/member/{member_id}")
        self._raise_for_status(
            response,
            default_message=f"failed to delete central member nwid={nwid} member_id={member_id}",
            not_found_message=f"central member not found nwid={nwid} member_id={member_id}",
        )


def _network_from_payload(payload: dict[str, Any], *, nwid: str) -> ControllerNetwork:
    config = payload.get("config")
    if not isinstance(config, dict):
        config = {}
    resolved_nwid = payload.get("id") or config.get("id") or nwid
    if not isinstance(resolved_nwid, str) or not resolved_nwid:
        raise ControllerNotFoundError("central response did not include a network id")
    return network_from_config(config, nwid=resolved_nwid.lower())


def _member_from_payload(
    payload: dict[str, Any],
    *,
    nwid: str,
    member_id: str = "",
) -> ControllerMember:
    config = payload.get("config")
    if not isinstance(config, dict):
        config = {}
    resolved_id = payload.get("nodeId") or config.get("id") or member_id
    member = member_from_config(config, nwid=nwid, member_id=str(resolved_id).lower())
    last_seen = datetime_from_millis(payload.get("lastOnline"))
    member.last_seen = last_seen
    member.online = last_seen is not None and datetime.now(UTC) - last_seen <= ONLINE_WINDOW
    physical_address = payload.get("physicalAddress")
    if isinstance(physical_address, str) and physical_address:
        member.physical_address = physical_address
    name = payload.get("name")
    if isinstance(name, str):
        member.name = name
    description = payload.get("description")
    if isinstance(description, str):
        member.description = description
    return member
