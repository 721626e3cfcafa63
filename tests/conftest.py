"""Shared fixtures: an in-process fake of the Exoscale metadata server and API."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from cloud_bootstrap.provider.exoscale import EXOSCALE_CLOUD_IDENTIFIER, ExoscaleCloudProvider

USER_DATA_WITH_API = """
[provider.exoscale]
api_key = "EXOtestkey"
api_secret = "test-secret"
api_retry_delay_secs = 1

[host.user.alice.ssh]
authorized_keys = ["ssh-ed25519 AAAAC3Nza alice@laptop"]
"""


class FakeExoscale:
    """Serves metadata under /latest/ and the API under /<zone>/v2/.

    ``resources`` maps an API resource id to a list of responses: each call
    consumes the first entry until only one is left, which then repeats.
    A response is a JSON-able dict or a ``(status, text)`` tuple.
    """

    def __init__(self) -> None:
        self.metadata: dict[str, str] = {
            "meta-data/cloud-identifier": EXOSCALE_CLOUD_IDENTIFIER,
            "meta-data/instance-id": "i-1",
            "meta-data/local-hostname": "web-1",
            "meta-data/availability-zone": "ch-gva-2",
            "user-data": "",
        }
        self.resources: dict[str, list[Any]] = {}
        self.metadata_calls: list[str] = []
        self.api_calls: list[dict[str, str]] = []

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/latest/{path:.+}", self._metadata)
        app.router.add_get("/{zone}/v2/instance-pool/{id}", self._instance_pool)
        return app

    async def _metadata(self, request: web.Request) -> web.Response:
        path = request.match_info["path"]
        self.metadata_calls.append(path)
        if path not in self.metadata:
            return web.Response(status=404, text="not found")
        return web.Response(text=self.metadata[path])

    async def _instance_pool(self, request: web.Request) -> web.Response:
        resource_id = request.match_info["id"]
        self.api_calls.append({
            "zone": request.match_info["zone"],
            "id": resource_id,
            "path": request.path,
            "authorization": request.headers.get("Authorization", ""),
        })
        responses = self.resources.get(resource_id)
        if not responses:
            return web.json_response({"message": "not found"}, status=404)
        response = responses.pop(0) if len(responses) > 1 else responses[0]
        if isinstance(response, tuple):
            status, text = response
            return web.Response(status=status, text=text)
        return web.json_response(response)

    def calls_for(self, resource_id: str) -> int:
        return sum(1 for call in self.api_calls if call["id"] == resource_id)


def instance_payload(instance_id: str, name: str, manager_id: str | None = None, ipv4: str | None = None) -> dict:
    payload: dict[str, Any] = {"id": instance_id, "name": name}
    if manager_id is not None:
        payload["manager"] = {"type": "instance-pool", "id": manager_id}
    if ipv4 is not None:
        payload["public-ip"] = ipv4
    return payload


def pool_payload(size: int, member_ids: list[str]) -> dict:
    return {"size": size, "instances": [{"id": i} for i in member_ids]}


@pytest.fixture
def fake_exoscale() -> FakeExoscale:
    return FakeExoscale()


@pytest.fixture
async def exoscale_server(fake_exoscale: FakeExoscale):
    srv = TestServer(fake_exoscale.app())
    await srv.start_server()
    yield srv
    await srv.close()


@pytest.fixture
def base_url(exoscale_server: TestServer) -> str:
    return f"http://{exoscale_server.host}:{exoscale_server.port}"


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
async def provider(base_url: str, sleep: AsyncMock):
    p = ExoscaleCloudProvider(
        metadata_url=f"{base_url}/latest",
        api_endpoint=f"{base_url}/{{zone}}",
        sleep=sleep,
    )
    yield p
    await p.close()
