"""Shared fixtures: an in-process fake gateway served through httpx.MockTransport."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any

import httpx
import pytest

from quantel_gateway import QuantelGateway

GATEWAY_URL = "http://gateway.test"
ISA_URLS = ["isa-master:2096", "isa-backup:2096"]
SERVER_ID = 1100


def server_record(**overrides: Any) -> dict:
    record = {
        "type": "Server",
        "ident": SERVER_ID,
        "down": False,
        "name": "SQ 1100",
        "numChannels": 4,
        "pools": [11],
        "portNames": ["", "", "", ""],
        "chanPorts": ["", "", "", ""],
    }
    record.update(overrides)
    return record


def connection_details(**overrides: Any) -> dict:
    details = {
        "type": "ConnectionDetails",
        "isaIOR": "IOR:0123",
        "href": "http://isa-master:2096",
        "refs": ["http://isa-master:2096", "http://isa-backup:2096"],
        "robin": 0,
    }
    details.update(overrides)
    return details


def error_body(status: int, message: str, stack: str = "at gateway") -> dict:
    return {"status": status, "message": message, "stack": stack}


class FakeGateway:
    """Routes requests to canned responses and records what was sent.

    A route holds a queue of responses; each is a JSON body (served with
    HTTP 200) or a ``(status_code, body)`` tuple. The last response of a
    queue is repeated once the others have been consumed.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.servers: list[dict] = [server_record()]
        self.routes: dict[tuple[str, str], list[Any]] = {}

    def respond(self, method: str, path: str, *responses: Any) -> None:
        self.routes[(method, path)] = list(responses)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def connect_calls(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "POST" and r.url.path.startswith("/connect/")]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        queue = self.routes.get(key)
        if queue:
            response = queue.pop(0) if len(queue) > 1 else queue[0]
            if isinstance(response, Exception):
                raise response
            if isinstance(response, tuple):
                status_code, body = response
            else:
                status_code, body = 200, response
            return _json_response(status_code, body)
        if request.method == "POST" and request.url.path.startswith("/connect/"):
            return _json_response(200, connection_details())
        if request.method == "GET" and request.url.path.endswith("/server"):
            return _json_response(200, self.servers)
        return _json_response(
            404,
            error_body(404, f"Not found. Request {request.method} {request.url.path}"),
        )


def _json_response(status_code: int, body: Any) -> httpx.Response:
    if isinstance(body, (bytes, str)):
        return httpx.Response(status_code, content=body)
    return httpx.Response(
        status_code,
        content=json.dumps(body).encode("utf-8"),
        headers={"content-type": "application/json"},
    )


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
async def http_client(fake_gateway: FakeGateway) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_gateway.handler)) as client:
        yield client


@pytest.fixture
async def gateway(http_client: httpx.AsyncClient) -> AsyncIterator[QuantelGateway]:
    client = QuantelGateway(http_client=http_client, check_status_interval=0.05)
    yield client
    await client.aclose()


@pytest.fixture
async def ready_gateway(gateway: QuantelGateway) -> QuantelGateway:
    await gateway.init(GATEWAY_URL, ISA_URLS, None, SERVER_ID)
    return gateway
