"""CenturyLink Cloud API payloads used across tests."""

import asyncio
from typing import Any

import httpx

API_URL = "https://api.clc.test/v2"
ALIAS = "ACME"
SERVER_ID = "CA1ACMEDEMO01"
PUBLIC_IP = "203.0.113.10"


def server_payload(
    server_id: str = SERVER_ID,
    status: str = "active",
    power_state: str | None = "started",
    public_ip: str | None = PUBLIC_IP,
    internal_ip: str | None = "10.0.0.5",
) -> dict[str, Any]:
    """Server JSON as returned by GET /servers/{alias}/{id}."""
    addresses = []
    if internal_ip or public_ip:
        address: dict[str, str] = {}
        if internal_ip:
            address["internal"] = internal_ip
        if public_ip:
            address["public"] = public_ip
        addresses.append(address)
    return {
        "id": server_id,
        "name": "DEMO01",
        "groupId": "g1",
        "locationId": "CA1",
        "status": status,
        "details": {
            "ipAddresses": addresses,
            "powerState": power_state,
            "cpu": 1,
            "memoryMB": 2048,
        },
        "links": [{"rel": "self", "href": f"/v2/servers/{ALIAS}/{server_id}", "id": server_id}],
    }


def login_payload(token: str = "fresh-token") -> dict[str, str]:
    return {
        "userName": "jdoe",
        "accountAlias": ALIAS,
        "locationAlias": "CA1",
        "bearerToken": token,
    }


def status_link(status_id: str) -> dict[str, str]:
    return {"rel": "status", "href": f"/v2/operations/{ALIAS}/status/{status_id}", "id": status_id}


def queued_payload(status_id: str, server: str = SERVER_ID) -> dict[str, Any]:
    return {"server": server, "isQueued": True, "links": [status_link(status_id)]}


def datacenters_payload() -> list[dict[str, str]]:
    return [{"id": "CA1", "name": "CA1 - Canada (Vancouver)"}]


def journaled(journal: list[str], entry: str, payload: Any, status_code: int = 200):
    """respx side effect that records ``entry`` before answering with ``payload``."""

    def handler(request):
        journal.append(entry)
        return httpx.Response(status_code, json=payload)

    return handler


async def wait_until(predicate, timeout: float = 5.0) -> None:
    """Yield to the event loop until ``predicate()`` holds."""

    async def poll():
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout=timeout)
