from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import pytest

from ztnet.controller.base import (
    DEAUTHORIZE_UPDATE,
    ControllerAuthError,
    ControllerNotFoundError,
    ControllerRequestError,
    DnsConfig,
    MemberUpdate,
    NetworkConfigUpdate,
    V6AssignMode,
)
from ztnet.controller.central import ZeroTierCentralController
from ztnet.controller.self_hosted_controller import ZeroTierSelfHostedController
from ztnet.routing import IpAssignmentPool, RouteRecord

NWID = "8056c2e21c000001"
CENTRAL_BASE_URL = "https://api.zerotier.com/api/v1"
CONTROLLER_BASE_URL = "http://127.0.0.1:9993/controller"


def _mock_client_factory(
    handler: Callable[[httpx.Request], httpx.Response],
) -> Callable[..., httpx.Client]:
    def factory(**kwargs: Any) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(handler), **kwargs)

    return factory


def _central(handler: Callable[[httpx.Request], httpx.Response]) -> ZeroTierCentralController:
    return ZeroTierCentralController(
        base_url=CENTRAL_BASE_URL,
        api_token="token-central",
        http_client_factory=_mock_client_factory(handler),
    )


def _self_hosted(
    handler: Callable[[httpx.Request], httpx.Response],
) -> ZeroTierSelfHostedController:
    return ZeroTierSelfHostedController(
        base_url=CONTROLLER_BASE_URL,
        auth_token="token-controller",
        http_client_factory=_mock_client_factory(handler),
    )


def _millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


@pytest.mark.parametrize(
    ("provider", "expected_header", "expected_value"),
    [
        ("central", "Authorization", "token token-central"),
        ("self_hosted_controller", "X-ZT1-Auth", "token-controller"),
    ],
)
def test_requests_carry_provider_auth_header(
    provider: str,
    expected_header: str,
    expected_value: str,
) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status_code=200, json={"id": NWID, "config": {}, "name": "lab"})

    adapter = _central(handler) if provider == "central" else _self_hosted(handler)
    adapter.get_network(NWID)

    assert seen[0].headers[expected_header] == expected_value


def test_central_network_payload_is_normalized() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == f"/api/v1/network/{NWID}"
        return httpx.Response(
            status_code=200,
            json={
                "id": NWID.upper(),
                "config": {
                    "name": "lab",
                    "private": False,
                    "routes": [
                        {"target": "10.147.17.0/24", "via": None},
                        {"target": "", "via": "10.0.0.1"},
                        "garbage",
                    ],
                },
            },
        )

    network = _central(handler).get_network(NWID)

    assert network.nwid == NWID
    assert network.name == "lab"
    assert network.private is False
    assert network.routes == [RouteRecord(target="10.147.17.0/24")]


def test_central_members_use_last_online_window() -> None:
    now = datetime.now(UTC)

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == f"/api/v1/network/{NWID}/member"
        return httpx.Response(
            status_code=200,
            json=[
                {
                    "nodeId": "aaaaaaaaa1",
                    "name": "laptop",
                    "lastOnline": _millis(now - timedelta(seconds=30)),
                    "physicalAddress": "203.0.113.5/9993",
                    "config": {"authorized": True, "ipAssignments": ["10.147.17.5"]},
                },
                {
                    "nodeId": "aaaaaaaaa2",
                    "lastOnline": _millis(now - timedelta(days=2)),
                    "config": {"authorized": False},
                },
            ],
        )

    members = _central(handler).list_network_members(NWID)

    assert [member.member_id for member in members] == ["aaaaaaaaa1", "aaaaaaaaa2"]
    assert members[0].online is True
    assert members[0].name == "laptop"
    assert members[0].physical_address == "203.0.113.5/9993"
    assert members[0].ip_assignments == ["10.147.17.5"]
    assert members[1].online is False
    assert members[1].authorized is False


def test_central_member_update_sends_config_and_name() -> None:
    bodies: list[dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(
            status_code=200,
            json={"nodeId": "aaaaaaaaa1", "name": "laptop", "config": {"authorized": True}},
        )

    member = _central(handler).update_member(
        NWID,
        "aaaaaaaaa1",
        MemberUpdate(name="laptop", authorized=True, ip_assignments=["10.147.17.9"]),
    )

    assert bodies == [
        {
            "config": {"authorized": True, "ipAssignments": ["10.147.17.9"]},
            "name": "laptop",
        }
    ]
    assert member.name == "laptop"


@pytest.mark.parametrize(
    ("status_code", "expected_error"),
    [
        (401, ControllerAuthError),
        (403, ControllerAuthError),
        (404, ControllerNotFoundError),
        (500, ControllerRequestError),
    ],
)
def test_error_statuses_map_to_controller_errors(
    status_code: int,
    expected_error: type[Exception],
) -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=status_code, text="nope")

    with pytest.raises(expected_error) as exc_info:
        _central(handler).get_member(NWID, "aaaaaaaaa1")

    assert exc_info.value.status_code == status_code  # type: ignore[attr-defined]


def test_transport_failure_becomes_request_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ControllerRequestError, match="connection refused"):
        _self_hosted(handler).delete_member(NWID, "aaaaaaaaa1")


def test_invalid_json_becomes_request_error() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=200, text="<html>")

    with pytest.raises(ControllerRequestError, match="not valid JSON"):
        _central(handler).get_network(NWID)


def test_self_hosted_create_network_uses_controller_address_and_falls_back_to_put() -> None:
    seen: list[tuple[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path))
        if request.url.path == "/status":
            return httpx.Response(status_code=200, json={"address": "8056C2E21C"})
        if request.method == "POST":
            return httpx.Response(status_code=405)
        return httpx.Response(status_code=200, json={"id": NWID, "name": "lab"})

    network = _self_hosted(handler).create_network(name="lab")

    assert network.nwid == NWID
    assert seen == [
        ("GET", "/status"),
        ("POST", "/controller/network/8056c2e21c______"),
        ("PUT", "/controller/network/8056c2e21c______"),
    ]


def test_self_hosted_member_listing_resolves_details_and_peer_state() -> None:
    received_at = datetime(2026, 10, 1, 12, 0, tzinfo=UTC)

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == f"/controller/network/{NWID}/member":
            return httpx.Response(status_code=200, json={"aaaaaaaaa2": 3, "aaaaaaaaa1": 7})
        if path.startswith(f"/controller/network/{NWID}/member/"):
            member_id = path.rsplit("/", 1)[-1]
            return httpx.Response(
                status_code=200,
                json={"id": member_id, "authorized": True, "ipAssignments": ["10.147.17.1"]},
            )
        if path == "/peer/aaaaaaaaa1":
            return httpx.Response(
                status_code=200,
                json={
                    "paths": [
                        {
                            "active": True,
                            "address": "198.51.100.7/9993",
                            "lastReceive": _millis(received_at),
                        }
                    ]
                },
            )
        if path == "/peer/aaaaaaaaa2":
            return httpx.Response(status_code=404)
        raise AssertionError(f"unexpected path {path}")

    members = _self_hosted(handler).list_network_members(NWID)

    assert [member.member_id for member in members] == ["aaaaaaaaa1", "aaaaaaaaa2"]
    assert members[0].online is True
    assert members[0].physical_address == "198.51.100.7/9993"
    assert members[0].last_seen == received_at
    assert members[1].online is False
    assert members[1].last_seen is None


def test_self_hosted_member_update_keeps_names_out_of_controller() -> None:
    bodies: list[dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(status_code=200, json={"id": "aaaaaaaaa1", "authorized": False})

    member = _self_hosted(handler).update_member(NWID, "aaaaaaaaa1", DEAUTHORIZE_UPDATE)

    assert bodies == [
        {"authorized": False, "ipAssignments": [], "tags": [], "capabilities": []}
    ]
    assert member.authorized is False


def test_central_network_settings_are_parsed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            status_code=200,
            json={
                "id": NWID,
                "config": {
                    "name": "lab",
                    "mtu": 2800,
                    "multicastLimit": 32,
                    "enableBroadcast": True,
                    "dns": {"domain": "lab.example.net", "servers": ["10.147.17.1", 7]},
                    "ipAssignmentPools": [
                        {"ipRangeStart": "10.147.17.1", "ipRangeEnd": "10.147.17.254"},
                        {"ipRangeStart": "10.147.18.1"},
                    ],
                    "v4AssignMode": {"zt": True},
                    "v6AssignMode": {"zt": False, "rfc4193": True, "6plane": False},
                },
            },
        )

    network = _central(handler).get_network(NWID)

    assert network.mtu == 2800
    assert network.multicast_limit == 32
    assert network.enable_broadcast is True
    assert network.dns == DnsConfig(domain="lab.example.net", servers=["10.147.17.1"])
    assert network.ip_assignment_pools == [
        IpAssignmentPool(start="10.147.17.1", end="10.147.17.254")
    ]
    assert network.v4_auto_assign is True
    assert network.v6_assign_mode == V6AssignMode(zt=False, rfc4193=True, six_plane=False)


def test_central_network_update_nests_settings_under_config() -> None:
    bodies: list[dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == f"/api/v1/network/{NWID}"
        bodies.append(json.loads(request.content))
        return httpx.Response(status_code=200, json={"id": NWID, "config": {"name": "lab"}})

    _central(handler).update_network(
        NWID,
        NetworkConfigUpdate(
            private=False,
            multicast_limit=64,
            dns=DnsConfig.cleared(),
            ip_assignment_pools=[IpAssignmentPool(start="10.0.0.10", end="10.0.0.20")],
            v6_assign_mode=V6AssignMode(six_plane=True),
        ),
    )

    assert bodies == [
        {
            "config": {
                "private": False,
                "multicastLimit": 64,
                "dns": {"domain": "", "servers": []},
                "ipAssignmentPools": [{"ipRangeStart": "10.0.0.10", "ipRangeEnd": "10.0.0.20"}],
                "v6AssignMode": {"6plane": True},
            }
        }
    ]


def test_self_hosted_network_update_posts_flat_settings() -> None:
    bodies: list[dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == f"/controller/network/{NWID}"
        bodies.append(json.loads(request.content))
        return httpx.Response(
            status_code=200,
            json={"id": NWID, "name": "lab", "mtu": 1400, "v4AssignMode": {"zt": True}},
        )

    network = _self_hosted(handler).update_network(
        NWID,
        NetworkConfigUpdate(
            mtu=1400,
            routes=[RouteRecord(target="10.0.0.0/24")],
            v4_auto_assign=True,
        ),
    )

    assert bodies == [
        {
            "routes": [{"target": "10.0.0.0/24", "via": None}],
            "mtu": 1400,
            "v4AssignMode": {"zt": True},
        }
    ]
    assert network.mtu == 1400
    assert network.v4_auto_assign is True
