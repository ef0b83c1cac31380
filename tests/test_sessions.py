"""
Tests for the session registry and the protocol endpoint.

Transports and servers are fakes: a FakeTransport answers every request with
a small JSON body (echoing its session id header) and a FakeServer runs until
its transport is terminated. That is enough to observe routing, creation and
removal without the real protocol machinery; test_integration.py covers the
real transport.
"""

import json
import logging
from contextlib import asynccontextmanager

import anyio
import pytest
from mcp.server.streamable_http import MCP_SESSION_ID_HEADER
from starlette.requests import Request
from starlette.responses import JSONResponse

from sessions import SessionRegistry, StreamableHTTPEndpoint, is_initialize_request

INITIALIZE = {
    "jsonrpc": "2.0",
    "id": 1,
    "method": "initialize",
    "params": {"protocolVersion": "2025-03-26", "capabilities": {}, "clientInfo": {"name": "t", "version": "1"}},
}
LIST_TOOLS = {"jsonrpc": "2.0", "id": 2, "method": "tools/list", "params": {}}


class FakeTransport:
    def __init__(self, session_id, reject_status=None):
        self.session_id = session_id
        self.reject_status = reject_status
        self.closed = anyio.Event()
        self.terminated = False
        self.requests = []

    @asynccontextmanager
    async def connect(self):
        yield self, self

    async def handle_request(self, scope, receive, send):
        request = Request(scope, receive)
        body = await request.body()
        self.requests.append((request.method, body))
        if request.method == "DELETE":
            await self.terminate()
        if self.reject_status:
            response = JSONResponse({"error": "rejected"}, status_code=self.reject_status)
            await response(scope, receive, send)
            return
        headers = {MCP_SESSION_ID_HEADER: self.session_id} if self.session_id else None
        response = JSONResponse({"jsonrpc": "2.0", "id": 1, "result": {"handled_by": self.session_id}}, headers=headers)
        await response(scope, receive, send)

    async def terminate(self):
        self.terminated = True
        self.closed.set()


class FakeServer:
    def __init__(self, crash: bool = False):
        self.crash = crash
        self.runs = []

    def create_initialization_options(self):
        return None

    async def run(self, read_stream, write_stream, options, stateless=False):
        self.runs.append(stateless)
        if self.crash:
            raise RuntimeError("boom")
        await read_stream.closed.wait()


class Harness:
    """Registry wired to fakes, with bookkeeping for assertions."""

    def __init__(self, clock, **kwargs):
        self.transports = []
        self.servers = []
        self.crash = kwargs.pop("crash", False)
        self.reject_status = kwargs.pop("reject_status", None)
        self.registry = SessionRegistry(
            server_factory=self.make_server,
            transport_factory=self.make_transport,
            clock=clock,
            **kwargs,
        )

    def make_server(self):
        server = FakeServer(crash=self.crash)
        self.servers.append(server)
        return server

    def make_transport(self, session_id):
        transport = FakeTransport(session_id, reject_status=self.reject_status)
        self.transports.append(transport)
        return transport


async def wait_until(predicate, timeout: float = 2.0):
    with anyio.fail_after(timeout):
        while not predicate():
            await anyio.sleep(0.01)


@pytest.fixture
def harness(clock):
    return Harness(clock)


@pytest.fixture
async def http(harness, background, make_client):
    async with background(harness.registry.run()):
        yield make_client(StreamableHTTPEndpoint(harness.registry))


async def initialize(http) -> str:
    response = await http.post("/mcp", json=INITIALIZE)
    assert response.status_code == 200
    return response.headers[MCP_SESSION_ID_HEADER]


def test_is_initialize_request():
    assert is_initialize_request(INITIALIZE)
    assert is_initialize_request([LIST_TOOLS, INITIALIZE])
    assert not is_initialize_request(LIST_TOOLS)
    assert not is_initialize_request("initialize")


class TestStatefulMode:
    async def test_initialize_creates_session(self, http, harness):
        session_id = await initialize(http)

        assert session_id in harness.registry
        assert len(harness.registry) == 1
        transport = harness.transports[0]
        assert transport.session_id == session_id
        # the initialize body reaches the transport intact
        method, body = transport.requests[0]
        assert method == "POST"
        assert json.loads(body)["method"] == "initialize"

    async def test_sessions_are_isolated(self, http, harness):
        first = await initialize(http)
        second = await initialize(http)
        assert first != second

        response = await http.post("/mcp", json=LIST_TOOLS, headers={MCP_SESSION_ID_HEADER: second})

        assert response.json()["result"]["handled_by"] == second
        first_transport, second_transport = harness.transports
        assert len(first_transport.requests) == 1
        assert len(second_transport.requests) == 2

    async def test_unknown_session_rejected(self, http, harness):
        response = await http.post("/mcp", json=LIST_TOOLS, headers={MCP_SESSION_ID_HEADER: "never-issued"})

        assert response.status_code == 404
        assert response.json()["error"] == {"code": -32001, "message": "Session not found"}
        assert "never-issued" not in harness.registry
        assert harness.transports == []

    async def test_initialize_with_unknown_session_not_rebound(self, http, harness):
        response = await http.post("/mcp", json=INITIALIZE, headers={MCP_SESSION_ID_HEADER: "stale"})

        assert response.status_code == 404
        assert len(harness.registry) == 0

    async def test_get_without_session_rejected(self, http, harness):
        response = await http.get("/mcp")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32000
        assert len(harness.registry) == 0

    async def test_non_initialize_post_without_session_rejected(self, http, harness):
        response = await http.post("/mcp", json=LIST_TOOLS)

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Bad Request: No valid session ID provided"
        assert len(harness.registry) == 0

    async def test_invalid_json_without_session(self, http, harness):
        response = await http.post("/mcp", content=b"{oops", headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32700
        assert len(harness.registry) == 0

    async def test_delete_ends_session(self, http, harness):
        session_id = await initialize(http)

        response = await http.delete("/mcp", headers={MCP_SESSION_ID_HEADER: session_id})

        assert response.status_code == 200
        assert session_id not in harness.registry
        assert harness.transports[0].terminated
        again = await http.post("/mcp", json=LIST_TOOLS, headers={MCP_SESSION_ID_HEADER: session_id})
        assert again.status_code == 404

    async def test_close_logs_session_lifetime(self, http, harness, clock, caplog):
        session_id = await initialize(http)
        clock.advance(90)

        with caplog.at_level(logging.INFO, logger="sessions"):
            await http.delete("/mcp", headers={MCP_SESSION_ID_HEADER: session_id})

        closed = [r.getMessage() for r in caplog.records if "Closed session" in r.getMessage()]
        assert len(closed) == 1
        assert closed[0].endswith("after 90s (0 active)")

    async def test_closed_transport_removes_session(self, http, harness):
        session_id = await initialize(http)

        await harness.transports[0].terminate()

        await wait_until(lambda: session_id not in harness.registry)

    async def test_other_methods_not_allowed(self, http):
        response = await http.put("/mcp", json=LIST_TOOLS)

        assert response.status_code == 405
        assert response.headers["allow"] == "GET, POST, DELETE"


async def test_crashed_server_removes_session(clock, background, make_client):
    harness = Harness(clock, crash=True)
    async with background(harness.registry.run()):
        http = make_client(StreamableHTTPEndpoint(harness.registry))
        session_id = await initialize(http)

        await wait_until(lambda: session_id not in harness.registry)

        response = await http.post("/mcp", json=LIST_TOOLS, headers={MCP_SESSION_ID_HEADER: session_id})
        assert response.status_code == 404


async def test_idle_sessions_evicted(clock, background, make_client):
    harness = Harness(clock, idle_timeout=60)
    async with background(harness.registry.run()):
        http = make_client(StreamableHTTPEndpoint(harness.registry))
        idle = await initialize(http)
        clock.advance(45)
        busy = await initialize(http)
        clock.advance(30)

        assert await harness.registry.evict_idle() == 1

        assert idle not in harness.registry
        assert busy in harness.registry
        assert harness.transports[0].terminated
        assert not harness.transports[1].terminated


async def test_eviction_disabled_by_default(harness, clock, background, make_client):
    async with background(harness.registry.run()):
        http = make_client(StreamableHTTPEndpoint(harness.registry))
        session_id = await initialize(http)
        clock.advance(10_000)

        assert await harness.registry.evict_idle() == 0
        assert session_id in harness.registry


async def test_stateless_mode(clock, background, make_client):
    harness = Harness(clock, stateless=True)
    async with background(harness.registry.run()):
        http = make_client(StreamableHTTPEndpoint(harness.registry))

        first = await http.post("/mcp", json=INITIALIZE)
        second = await http.post("/mcp", json=LIST_TOOLS, headers={MCP_SESSION_ID_HEADER: "ignored"})

        assert first.status_code == 200
        assert second.status_code == 200
        assert MCP_SESSION_ID_HEADER not in first.headers
        assert len(harness.registry) == 0
        # one shared server, one throwaway transport per request
        assert len(harness.servers) == 1
        assert len(harness.transports) == 2
        assert all(t.terminated for t in harness.transports)
        await wait_until(lambda: harness.servers[0].runs == [True, True])


class TestEndpointErrors:
    async def test_registry_not_running_gives_500(self, harness, make_client):
        http = make_client(StreamableHTTPEndpoint(harness.registry))

        response = await http.post("/mcp", json=INITIALIZE)

        assert response.status_code == 500
        assert response.json()["error"] == {"code": -32603, "message": "Internal server error"}

    async def test_no_second_response_after_start(self, make_client):
        class BrokenRegistry:
            async def handle_request(self, scope, receive, send):
                await JSONResponse({"partial": True})(scope, receive, send)
                raise RuntimeError("after response")

        http = make_client(StreamableHTTPEndpoint(BrokenRegistry()))

        response = await http.post("/mcp", json=INITIALIZE)

        assert response.status_code == 200
        assert response.json() == {"partial": True}


@pytest.mark.parametrize("status", [400, 406])
async def test_rejected_initialize_leaves_no_session(clock, background, make_client, status):
    harness = Harness(clock, reject_status=status)
    async with background(harness.registry.run()):
        http = make_client(StreamableHTTPEndpoint(harness.registry))

        for _ in range(3):
            response = await http.post("/mcp", json=INITIALIZE)
            assert response.status_code == status

        assert len(harness.registry) == 0
        assert len(harness.transports) == 3
        assert all(t.terminated for t in harness.transports)
        retry = await http.post(
            "/mcp", json=LIST_TOOLS, headers={MCP_SESSION_ID_HEADER: harness.transports[0].session_id}
        )
        assert retry.status_code == 404
