"""Shared fixtures: a fake API behind httpx.MockTransport and a local socket."""

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from teckboard.client import TeckboardClient, TeckboardClientConfig
from teckboard.realtime import Socket

BASE_URL = "https://board.test/api/v1"
BASE_PATH = "/api/v1/"

Responder = Callable[[httpx.Request], httpx.Response]


class FakeServer:
    """Routes requests to canned responses and records every request."""

    def __init__(self):
        self.routes: dict[tuple[str, str], Responder] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, status: int = 200, body: Any = None) -> None:
        self.routes[(method, BASE_PATH + path)] = lambda request: httpx.Response(status, json=body)

    def route(self, method: str, path: str, responder: Responder) -> None:
        self.routes[(method, BASE_PATH + path)] = responder

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self.routes.get((request.method, request.url.path))
        if responder is None:
            return httpx.Response(404, json={"message": "Not Found"})
        return responder(request)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> Any:
        return json.loads(self.last.content)


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def socket() -> Socket:
    return Socket()


def make_client(server: FakeServer, socket: Socket | None = None, **config: Any) -> TeckboardClient:
    return TeckboardClient(
        TeckboardClientConfig(endpoint=BASE_URL, bearer_token="secret-token", **config),
        transport=httpx.MockTransport(server.handler),
        socket=socket,
    )


@pytest.fixture
def client(server: FakeServer, socket: Socket) -> TeckboardClient:
    return make_client(server, socket)


@pytest.fixture
def board_payload() -> dict[str, Any]:
    return {
        "id": "b1",
        "name": "Old",
        "color_scheme": "dark",
        "owner": True,
        "owner_id": "u1",
        "company_id": "c1",
        "icon": {"type": "emoji", "value": ":rocket:"},
        "roles": [{"id": 1, "name": "admin", "permissions": ["board.edit"]}],
        "settings": {"chat": {"enabled": True}},
        "slug": "old",
        "url": "https://board.test/b/old",
        "created_at": "2021-03-01T10:00:00Z",
        "updated_at": "2021-03-02T10:00:00Z",
    }
