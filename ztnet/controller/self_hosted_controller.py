"""Self-hosted ZeroTier controller adapter."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ztnet.controller.base import (
    ControllerMember,
    ControllerNetwork,
    ControllerRequestError,
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

logger = logging.getLogger(__name__)

# Appending this to the controller address asks the controller to pick a free network id.
NETWORK_ID_WILDCARD = "______"


class ZeroTierSelfHostedController(ControllerHTTPClient):
    provider_name = "self_hosted_controller"
    display_name = "self-hosted controller"

    def __init__(
        self,
        *,
        base_url: str,
        auth_token: str,
        timeout_seconds: float = 10.0,
        http_client_factory: HTTPClientFactory = httpx.Client,
    ) -> None:
        super().__init__(
            base_url=base_url,
            headers={"X-ZT1-Auth": auth_token},
            timeout_seconds=timeout_seconds,
            http_client_factory=http_client_factory,
        )
        self._service_root = self._base_url.removesuffix("/controller")

    def get_network(self, nwid: str) -> ControllerNetwork:
        response = self._request("GET", f"/network/{nwid}")
        self._raise_for_status(
            response,
            default_message=f"failed to load self-hosted controller network nwid={nwid}",
            not_found_message=f"self-hosted controller network not found nwid={nwid}",
        )
        return _network_from_payload(self._parse_json_object(response), nwid=nwid)

    def create_network(self, *, name: str) -> ControllerNetwork:
        address = self._controller_address()
        response = self._post_or_put(
            f"/network/{address}{NETWORK_ID_WILDCARD}",
            {"name": name, "private": True},
        )
        self._raise_for_status(
            response,
            default_message="failed to create self-hosted controller network",
        )
        return _network_from_payload(self._parse_json_object(response), nwid="")

    def update_network(
        self,
        nwid: str,
        changes: NetworkConfigUpdate,
    ) -> ControllerNetwork:
        response = self._post_or_put(f"/network/{nwid}", changes.controller_config())
        self._raise_for_status(
            response,
            default_message=f"failed to update self-hosted controller network nwid={nwid}",
            not_found_message=f"self-hosted controller network not found nwid={nwid}",
        )
        return _network_from_payload(self._parse_json_object(response), nwid=nwid)

    def delete_network(self, nwid: str) -> None:
        response = self._request("DELETE", f"/network/{nwid}")
        self._raise_for_status(
            response,
            default_message=f"failed to delete self-hosted controller network nwid={nwid}",
            not_found_message=f"self-hosted controller network not found nwid={nwid}",
        )

    def list_network_members(self, nwid: str) -> list[ControllerMember]:
        response = self._request("GET", f"/network/{nwid}/member")
        self._raise_for_status(
            response,
            default_message=f"failed to list self-hosted controller members nwid={nwid}",
            not_found_message=f"self-hosted controller network not found nwid={nwid}",
        )
        # The listing maps member id to revision number; details need one call per member.
        listing = self._parse_json_object(response)
        return [self.get_member(nwid, member_id.lower()) for member_id in sorted(listing)]

    def get_member(self, nwid: str, member_id: str) -> ControllerMember:
        response = self._request("GET", f"/network/{nwid}/member/{member_id}")
        self._raise_for_status(
            response,
            default_message=(
                f"failed to load self-hosted controller member nwid={nwid} member_id={member_id}"
            ),
            not_found_message=(
                f"self-hosted controller member not found nwid={nwid} member_id={member_id}"
            ),
        )
        member = member_from_config(
            self._parse_json_object(response),
            nwid=nwid,
            member_id=member_id,
        )
        self._apply_peer_state(member)
        return member

    def update_member(self, nwid: str, member_id: str, changes: MemberUpdate) -> ControllerMember:
        # The local controller has no notion of member names; those live in the database only.
        response = self._post_or_put(
            f"/network/{nwid}/member/{member_id}",
            changes.controller_config(),
        )
        self._raise_for_status(
            response,
            default_message=(
                f"failed to update self-hosted controller member nwid={nwid} member_id={member_id}"
            ),
            not_found_message=(
                f"self-hosted controller member not found nwid={nwid} member_id={member_id}"
            ),
        )
        return member_from_config(
            self._parse_json_object(response),
            nwid=nwid,
            member_id=member_id,
        )

    def delete_member(self, nwid: str, member_id: str) -> None:
        response = self._request("DELETE", f"/network/{nwid}/member/{member_id}")
        self._raise_for_status(
            response,
            default_message=(
                f"failed to delete self-hosted controller member nwid={nwid} member_id={member_id}"
            ),
            not_found_message=(
                f"self-hosted controller member not found nwid={nwid} member_id={member_id}"
            ),
        )

    def _post_or_put(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        response = self._request("POST", path, json_body=payload)
        if response.status_code == 405:
            response = self._request("PUT", path, json_body=payload)
        return response

    def _controller_address(self) -> str:
        response = self._request("GET", f"{self._service_root}/status")
        self._raise_for_status(
            response,
            default_message="failed to read self-hosted controller status",
        )
        address = self._parse_json_object(response).get("address")
        if not isinstance(address, str) or not address.strip():
            raise ControllerRequestError("self-hosted controller status did not include an address")
        return address.strip().lower()

    def _apply_peer_state(self, member: ControllerMember) -> None:
        response = self._request("GET", f"{self._service_root}/peer/{member.member_id}")
        if response.status_code == 404:
            member.online = False
            return
        self._raise_for_status(
            response,
            default_message=f"failed to read peer state member_id={member.member_id}",
        )
        peer = self._parse_json_object(response)
        paths = [path for path in peer.get("paths") or [] if isinstance(path, dict)]
        active_paths = [path for path in paths if path.get("active", True)]
        member.online = bool(active_paths)
        if active_paths:
            address = active_paths[0].get("address")
            if isinstance(address, str) and address:
                member.physical_address = address
            member.last_seen = datetime_from_millis(
                max(
                    (path.get("lastReceive") or 0 for path in active_paths),
                    default=0,
                )
            )
        logger.debug(
            "peer state resolved member_id=%s online=%s",
            member.member_id,
            member.online,
        )


def _network_from_payload(payload: dict[str, Any], *, nwid: str) -> ControllerNetwork:
    resolved_nwid = payload.get("id") or payload.get("nwid") or nwid
    if not isinstance(resolved_nwid, str) or not resolved_nwid:
        raise ControllerRequestError("self-hosted controller response did not include a network id")
    return network_from_config(payload, nwid=resolved_nwid.lower())
