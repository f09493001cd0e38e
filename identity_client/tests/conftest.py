"""
Pytest fixtures for identity_client: a frozen clock, JWT factory, and a fake ZET service
built on httpx.MockTransport so no test touches the network.
"""
import asyncio
import json
from collections.abc import Callable

import httpx
import jwt
import pytest

from identity_client.manager import AuthManager

NOW = 1_700_000_000.0

# HS256 test key; signatures are never verified by the client
SIGNING_SECRET = "identity-client-test-secret-0123456789"


def make_token(exp: float | None = None, sub: str = "42") -> str:
    """Access token JWT with the given exp (seconds since epoch); no exp claim when None."""
    payload = {"sub": sub}
    if exp is not None:
        payload["exp"] = int(exp)
    return jwt.encode(payload, SIGNING_SECRET, algorithm="HS256")


class Clock:
    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeZetService:
    """
    Answers requests by the last path segment (login, refreshTokens, logout, register, account).
    Records every request; optional delay makes each call yield to the event loop.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responders: dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.delay = 0.0
        self.gates: dict[str, asyncio.Event] = {}

    def on(self, name: str, status: int = 200, body=None) -> None:
        def responder(request: httpx.Request) -> httpx.Response:
            if body is None:
                return httpx.Response(status)
            return httpx.Response(status, json=body)

        self.responders[name] = responder

    def fail(self, name: str) -> None:
        """Make calls to name raise a transport error."""

        def responder(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        self.responders[name] = responder

    def hold(self, name: str) -> asyncio.Event:
        """Hold responses for name until the returned event is set."""
        gate = asyncio.Event()
        self.gates[name] = gate
        return gate

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        name = request.url.path.rstrip("/").rsplit("/", 1)[-1]
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        responder = self.responders.get(name)
        if responder is None:
            return httpx.Response(404, json={"message": f"no route for {name}"})
        return responder(request)

    def calls(self, name: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.rstrip("/").endswith("/" + name)]

    def bodies(self, name: str) -> list[dict]:
        return [json.loads(r.content) for r in self.calls(name)]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def service():
    return FakeZetService()


@pytest.fixture
def manager(service, clock):
    return AuthManager(service.client(), clock=clock)


@pytest.fixture(name="make_token")
def make_token_fixture():
    return make_token
