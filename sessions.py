"""Session/transport registry for the streamable HTTP protocol endpoint.

One process serves many MCP clients. Each client gets its own protocol
session: a streamable HTTP transport plus a protocol server instance running
in a task of the registry's task group. The registry maps the opaque
``mcp-session-id`` header to that pair and nothing else.

Per request:
- known session id      -> forward to that session's transport
- unknown session id    -> 404, never rebound or recreated
- no id + initialize    -> new session, id chosen here, then forwarded; kept
                           only if the transport answers 2xx
- no id + anything else -> 400 "no session", the client must re-initialize

Sessions end when their transport closes (client DELETE, termination,
crash) or, if configured, after an idle timeout.

In stateless mode no ids are issued: each request gets a throwaway transport
bound to one shared server instance.
"""

import json
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Optional
from uuid import uuid4

import anyio
from anyio.abc import TaskGroup
from mcp.server.streamable_http import MCP_SESSION_ID_HEADER, StreamableHTTPServerTransport
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import Receive, Scope, Send

logger = logging.getLogger(__name__)

# JSON-RPC error codes used on the wire
NO_SESSION = -32000
SESSION_NOT_FOUND = -32001
INTERNAL_ERROR = -32603
PARSE_ERROR = -32700

ALLOWED_METHODS = ("GET", "POST", "DELETE")


def jsonrpc_error(code: int, message: str, status_code: int, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        {"jsonrpc": "2.0", "id": None, "error": {"code": code, "message": message}},
        status_code=status_code,
        headers=headers,
    )


def is_initialize_request(payload: Any) -> bool:
    """True for an ``initialize`` request or a batch containing one."""
    if isinstance(payload, list):
        return any(is_initialize_request(item) for item in payload)
    return isinstance(payload, dict) and payload.get("method") == "initialize"


def replay_body(body: bytes, receive: Receive) -> Receive:
    """Receive callable that yields an already-read body once, then defers."""
    sent = False

    async def replay() -> dict:
        nonlocal sent
        if not sent:
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay


def short(session_id: Optional[str]) -> str:
    return f"{session_id[:8]}..." if session_id else "-"


def default_transport_factory(session_id: Optional[str]) -> StreamableHTTPServerTransport:
    return StreamableHTTPServerTransport(mcp_session_id=session_id, is_json_response_enabled=False)


@dataclass
class Session:
    session_id: str
    transport: Any
    server: Any
    created_at: float
    last_active: float
    active_requests: int = 0


class SessionRegistry:
    """Maps session ids to live transports and governs their lifecycle.

    Args:
        server_factory: Returns a protocol server (an object with ``run()`` and
            ``create_initialization_options()``, e.g. a low-level MCP server).
            Called once per session, or once in total in stateless mode.
        stateless: Disable sessions entirely.
        idle_timeout: Seconds of inactivity before a session is evicted.
            0 disables eviction.
        transport_factory: Builds a transport for a session id (None in
            stateless mode).
        session_id_generator: Returns a fresh opaque session id.
        clock: Monotonic time source used for idle tracking.
    """

    def __init__(
        self,
        server_factory: Callable[[], Any],
        stateless: bool = False,
        idle_timeout: float = 0,
        transport_factory: Callable[[Optional[str]], Any] = default_transport_factory,
        session_id_generator: Callable[[], str] = lambda: uuid4().hex,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.server_factory = server_factory
        self.stateless = stateless
        self.idle_timeout = idle_timeout
        self.transport_factory = transport_factory
        self.session_id_generator = session_id_generator
        self.clock = clock
        self._sessions: dict[str, Session] = {}
        self._task_group: Optional[TaskGroup] = None
        self._shared_server = None

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    @asynccontextmanager
    async def run(self) -> AsyncIterator["SessionRegistry"]:
        """Own the task group that session servers run in.

        Enter once per application lifetime (from the ASGI lifespan). Leaving
        the block cancels every session.
        """
        if self._task_group is not None:
            raise RuntimeError("SessionRegistry.run() is already active")

        async with anyio.create_task_group() as tg:
            self._task_group = tg
            if self.idle_timeout > 0 and not self.stateless:
                tg.start_soon(self._evict_idle_loop)
            logger.info(f"[SESSION] Registry started (stateless={self.stateless}, idle_timeout={self.idle_timeout})")
            try:
                yield self
            finally:
                logger.info(f"[SESSION] Registry stopping, dropping {len(self._sessions)} session(s)")
                tg.cancel_scope.cancel()
                self._task_group = None
                self._sessions.clear()

    async def handle_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        if self._task_group is None:
            raise RuntimeError("SessionRegistry is not running; enter 'async with registry.run()' first")

        request = Request(scope, receive)
        if request.method not in ALLOWED_METHODS:
            response = jsonrpc_error(
                NO_SESSION, "Method not allowed", 405, headers={"Allow": ", ".join(ALLOWED_METHODS)}
            )
            await response(scope, receive, send)
            return

        if self.stateless:
            await self._handle_stateless(scope, receive, send)
        else:
            await self._handle_stateful(request, scope, receive, send)

    # ----- stateful mode -----

    async def _handle_stateful(self, request: Request, scope: Scope, receive: Receive, send: Send) -> None:
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)

        if session_id is not None:
            session = self._sessions.get(session_id)
            if session is None:
                logger.info(f"[SESSION] Rejected unknown session {short(session_id)}")
                await jsonrpc_error(SESSION_NOT_FOUND, "Session not found", 404)(scope, receive, send)
                return
            await self._forward(session, scope, receive, send)
            if request.method == "DELETE":
                logger.info(f"[SESSION] Session {short(session_id)} terminated by client")
                self._remove(session)
            return

        if request.method != "POST":
            logger.info(f"[SESSION] {request.method} without session id rejected")
            await jsonrpc_error(NO_SESSION, "Bad Request: No valid session ID provided", 400)(scope, receive, send)
            return

        body = await request.body()
        try:
            payload = json.loads(body)
        except ValueError:
            await jsonrpc_error(PARSE_ERROR, "Parse error: Invalid JSON", 400)(scope, receive, send)
            return
        if not is_initialize_request(payload):
            logger.info("[SESSION] Non-initialize POST without session id rejected")
            await jsonrpc_error(NO_SESSION, "Bad Request: No valid session ID provided", 400)(scope, receive, send)
            return

        session = await self._create_session()
        status_code = None

        async def capture_send(message: dict) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        established = False
        try:
            await self._forward(session, scope, replay_body(body, receive), capture_send)
            established = status_code is not None and 200 <= status_code < 300
        finally:
            if not established:
                logger.info(
                    f"[SESSION] Initialize for {short(session.session_id)} failed (status {status_code or '-'}), dropping it"
                )
                self._remove(session)
                with anyio.CancelScope(shield=True):
                    await session.transport.terminate()

    async def _forward(self, session: Session, scope: Scope, receive: Receive, send: Send) -> None:
        session.last_active = self.clock()
        session.active_requests += 1
        try:
            await session.transport.handle_request(scope, receive, send)
        finally:
            session.active_requests -= 1
            session.last_active = self.clock()

    async def _create_session(self) -> Session:
        session_id = self.session_id_generator()
        while session_id in self._sessions:
            session_id = self.session_id_generator()

        now = self.clock()
        session = Session(
            session_id=session_id,
            transport=self.transport_factory(session_id),
            server=self.server_factory(),
            created_at=now,
            last_active=now,
        )
        self._sessions[session_id] = session
        await self._task_group.start(self._run_session, session)
        logger.info(f"[SESSION] Created session {short(session_id)} ({len(self._sessions)} active)")
        return session

    async def _run_session(self, session: Session, *, task_status=anyio.TASK_STATUS_IGNORED) -> None:
        try:
            async with session.transport.connect() as (read_stream, write_stream):
                task_status.started()
                try:
                    await session.server.run(
                        read_stream,
                        write_stream,
                        session.server.create_initialization_options(),
                        stateless=False,
                    )
                except Exception:
                    logger.exception(f"[SESSION] Session {short(session.session_id)} crashed")
        finally:
            self._remove(session)

    def _remove(self, session: Session) -> None:
        if self._sessions.get(session.session_id) is session:
            del self._sessions[session.session_id]
            lifetime = self.clock() - session.created_at
            logger.info(
                f"[SESSION] Closed session {short(session.session_id)} after {lifetime:.0f}s ({len(self._sessions)} active)"
            )

    # ----- idle eviction -----

    async def _evict_idle_loop(self) -> None:
        interval = max(1.0, min(self.idle_timeout / 2, 60.0))
        while True:
            await anyio.sleep(interval)
            await self.evict_idle()

    async def evict_idle(self) -> int:
        """Terminate sessions idle for longer than ``idle_timeout``."""
        if self.idle_timeout <= 0:
            return 0
        now = self.clock()
        idle = [
            session
            for session in self._sessions.values()
            if session.active_requests == 0 and now - session.last_active > self.idle_timeout
        ]
        for session in idle:
            self._remove(session)
        for session in idle:
            logger.info(f"[SESSION] Evicting idle session {short(session.session_id)}")
            await session.transport.terminate()
        return len(idle)

    # ----- stateless mode -----

    async def _handle_stateless(self, scope: Scope, receive: Receive, send: Send) -> None:
        if self._shared_server is None:
            self._shared_server = self.server_factory()
        server = self._shared_server
        transport = self.transport_factory(None)

        async def run_stateless_server(*, task_status=anyio.TASK_STATUS_IGNORED) -> None:
            async with transport.connect() as (read_stream, write_stream):
                task_status.started()
                try:
                    await server.run(
                        read_stream,
                        write_stream,
                        server.create_initialization_options(),
                        stateless=True,
                    )
                except Exception:
                    logger.exception("[SESSION] Stateless request crashed")

        await self._task_group.start(run_stateless_server)
        try:
            await transport.handle_request(scope, receive, send)
        finally:
            await transport.terminate()


class StreamableHTTPEndpoint:
    """ASGI app for the protocol endpoint.

    Last line of defence: an unexpected error becomes a JSON-RPC 500, unless
    the response has already started, in which case nothing more is written.
    """

    def __init__(self, registry: SessionRegistry):
        self.registry = registry

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        response_started = False

        async def tracking_send(message: dict) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.registry.handle_request(scope, receive, tracking_send)
        except Exception:
            logger.exception("[SESSION] Unhandled error on protocol endpoint")
            if not response_started:
                await jsonrpc_error(INTERNAL_ERROR, "Internal server error", 500)(scope, receive, send)
