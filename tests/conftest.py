"""
Shared test fixtures.

Key fixtures:
- clock: a controllable time source for expiry tests
- make_config: Config factory with a dummy Featurebase key
- featurebase: a FeaturebaseClient wired to an httpx.MockTransport that
  records every request and answers with queued responses
- background: runs an async context manager (an ASGI lifespan, a session
  registry) in its own task for the duration of a test

Testing approach:
    The HTTP app is exercised in-memory through httpx.ASGITransport. The ASGI
    lifespan is not run by ASGITransport, so tests that need the session
    registry start it with ``background``. Entering and leaving an anyio task
    group must happen in the same task, which a pytest-asyncio fixture does
    not guarantee; hence the dedicated task.
"""

import asyncio
import base64
import hashlib
import json
from contextlib import asynccontextmanager

import httpx
import pytest

from config import Config
from featurebase_client import FeaturebaseClient

TEST_SERVER_URL = "http://testserver"


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_config():
    """Factory: ``make_config(ENABLE_OAUTH="false", ...)``."""

    def _make_config(**env) -> Config:
        data = {
            "FEATUREBASE_API_KEY": "fb_test_key",
            "FEATUREBASE_API_URL": "https://featurebase.test",
            "SERVER_URL": TEST_SERVER_URL,
            "MCP_TRANSPORT": "http",
        }
        data.update({key: str(value) for key, value in env.items()})
        return Config(data)

    return _make_config


class RecordingAPI:
    """Mock Featurebase API: records requests, replies from a queue."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responses: list[httpx.Response] = []

    def reply(self, status_code: int = 200, json_body=None, text: str = None) -> None:
        if text is not None:
            self.responses.append(httpx.Response(status_code, text=text))
        else:
            self.responses.append(httpx.Response(status_code, json=json_body))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            return self.responses.pop(0)
        return httpx.Response(200, json={"ok": True})

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self):
        return json.loads(self.last.content) if self.last.content else None


@pytest.fixture
def api():
    return RecordingAPI()


@pytest.fixture
async def featurebase(api):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(api.handler))
    client = FeaturebaseClient(
        api_key="fb_test_key",
        base_url="https://featurebase.test",
        api_version="2026-01-01.nova",
        http_client=http_client,
    )
    yield client
    await client.aclose()


@pytest.fixture
def background():
    """Return a helper that keeps an async context manager open in its own task."""

    @asynccontextmanager
    async def _background(context_manager):
        started = asyncio.Event()
        stop = asyncio.Event()
        entered = {}

        async def hold():
            async with context_manager as value:
                entered["value"] = value
                started.set()
                await stop.wait()

        task = asyncio.create_task(hold())
        waiter = asyncio.create_task(started.wait())
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        if task in done:
            waiter.cancel()
            task.result()
        try:
            yield entered.get("value")
        finally:
            stop.set()
            await task

    return _background


@pytest.fixture
def lifespan(background):
    """Run a FastAPI app's lifespan for the duration of a test."""

    def _lifespan(app):
        return background(app.router.lifespan_context(app))

    return _lifespan


def pkce_pair(verifier: str = "a" * 43) -> tuple[str, str]:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return verifier, base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


@pytest.fixture
def pkce():
    return pkce_pair


def asgi_client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=TEST_SERVER_URL)


@pytest.fixture
async def make_client():
    """Factory for in-memory HTTP clients bound to an ASGI app."""
    clients = []

    def _make_client(app) -> httpx.AsyncClient:
        client = asgi_client(app)
        clients.append(client)
        return client

    yield _make_client
    for client in clients:
        await client.aclose()
