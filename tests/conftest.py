"""
Shared test fixtures.

The LodeStar API is faked with httpx.MockTransport; no real network is used.
"""
from typing import Any, Callable, Optional, Union
from urllib.parse import parse_qs

import httpx
import pytest

from lodestar_mcp.api_client import LodeStarAPIClient
from lodestar_mcp.config import LodeStarConfig
from lodestar_mcp.session_gateway import SessionGateway
from lodestar_mcp.tools import ToolDispatcher

BASE_URL = "https://lodestar.test/Live/Test_Client/"
BASE_PATH = "/Live/Test_Client"

Responder = Union[Callable[[httpx.Request], httpx.Response], Exception]


class FakeLodeStar:
    """Records every request and answers from a per-path route table."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[str, Responder] = {}

    def route(
        self,
        path: str,
        json: Any = None,
        status_code: int = 200,
        text: Optional[str] = None,
        exc: Optional[Exception] = None,
        handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
    ) -> None:
        if exc is not None:
            self._routes[path] = exc
        elif handler is not None:
            self._routes[path] = handler
        elif text is not None:
            self._routes[path] = lambda request: httpx.Response(status_code, text=text)
        else:
            self._routes[path] = lambda request: httpx.Response(status_code, json=json)

    def login_ok(self, token: str) -> None:
        self.route("/Login/login.php", json={"status": 1, "session_id": token})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.startswith(BASE_PATH):
            path = path[len(BASE_PATH):]
        responder = self._routes.get(path)
        if responder is None:
            return httpx.Response(404, text=f"no route for {path}")
        if isinstance(responder, Exception):
            raise responder
        return responder(request)

    # -- inspection helpers ---------------------------------------------------

    def paths(self) -> list[str]:
        return [r.url.path[len(BASE_PATH):] for r in self.requests]

    @staticmethod
    def query(request: httpx.Request) -> dict[str, str]:
        return dict(request.url.params)

    @staticmethod
    def form(request: httpx.Request) -> dict[str, str]:
        return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


@pytest.fixture
def upstream() -> FakeLodeStar:
    return FakeLodeStar()


@pytest.fixture
def config() -> LodeStarConfig:
    return LodeStarConfig(base_url=BASE_URL, timeout_seconds=5.0)


@pytest.fixture
def client(config: LodeStarConfig, upstream: FakeLodeStar) -> LodeStarAPIClient:
    return LodeStarAPIClient(config, transport=httpx.MockTransport(upstream))


@pytest.fixture
def gateway(config: LodeStarConfig, client: LodeStarAPIClient) -> SessionGateway:
    return SessionGateway(config, client=client)


@pytest.fixture
def dispatcher(gateway: SessionGateway) -> ToolDispatcher:
    return ToolDispatcher(gateway)
