"""Featurebase MCP Server.

Exposes the Featurebase API as MCP tools. Two ways to run:
- stdio: one client, speaking MCP over stdin/stdout (default)
- http: many clients over Streamable HTTP at MCP_PATH, each with its own
  session, optionally protected by the built-in OAuth 2.1 server (oauth/)
  and/or a static API key

The HTTP application is built by create_app() so tests (and embedders) get a
fresh credential store and session registry per instance.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import anyio
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from config import Config, load_config
from featurebase_client import FeaturebaseClient
from logging_config import AccessLogMiddleware, create_supabase_client, flush_logs, setup_logging
from oauth.middleware import BearerValidator, MCPOAuthMiddleware
from oauth.provider import OAuthProvider
from oauth.stores import CredentialStore
from sessions import INTERNAL_ERROR, SessionRegistry, StreamableHTTPEndpoint, jsonrpc_error
from tools import SERVER_NAME, build_server

VERSION = "1.0.0"

logger = logging.getLogger(__name__)


def create_featurebase_client(config: Config) -> FeaturebaseClient:
    return FeaturebaseClient(
        api_key=config.featurebase_api_key,
        base_url=config.featurebase_api_url,
        api_version=config.featurebase_api_version,
    )


async def sweep_credentials(store: CredentialStore, interval: float) -> None:
    """Periodically drop expired codes and tokens from the credential store."""
    while True:
        await anyio.sleep(interval)
        codes, tokens = store.purge_expired()
        live = store.stats()
        if codes or tokens:
            logger.info(
                f"[OAUTH] Purged {codes} expired code(s), {tokens} expired token(s); "
                f"{live['clients']} client(s), {live['codes']} code(s), {live['tokens']} token(s) remain"
            )
        else:
            logger.debug(f"[OAUTH] Credential sweep: nothing expired ({live['tokens']} token(s) live)")


def create_app(
    config: Config,
    client: Optional[FeaturebaseClient] = None,
    store: Optional[CredentialStore] = None,
    registry: Optional[SessionRegistry] = None,
) -> FastAPI:
    """Build the HTTP application.

    Args:
        config: Loaded configuration.
        client: Featurebase client; built from config when omitted.
        store: Credential store for the OAuth server (ignored when OAuth is off).
        registry: Session registry for the protocol endpoint; by default one
            serving the Featurebase tools.
    """
    client = client or create_featurebase_client(config)

    if registry is None:
        mcp = build_server(client)
        # The low-level server is stateless between runs; every session runs it
        # against its own transport streams.
        registry = SessionRegistry(
            server_factory=lambda: mcp._mcp_server,
            stateless=config.stateless,
            idle_timeout=config.session_idle_timeout,
        )

    provider = None
    if config.enable_oauth:
        store = store or CredentialStore()
        provider = OAuthProvider(config.server_url, store, resource_path=config.mcp_path)
    else:
        store = None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"[STARTUP] Protocol endpoint: {config.server_url}{config.mcp_path}")
        async with registry.run():
            async with anyio.create_task_group() as tg:
                if store is not None and config.oauth_sweep_interval > 0:
                    tg.start_soon(sweep_credentials, store, config.oauth_sweep_interval)
                try:
                    yield
                finally:
                    tg.cancel_scope.cancel()
        await client.aclose()
        logger.info("[SHUTDOWN] Server stopped")

    app = FastAPI(
        title="Featurebase MCP Server",
        description="MCP server for the Featurebase API with OAuth 2.1",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.registry = registry
    app.state.oauth_provider = provider

    # CORS for browser-based MCP clients; the session header must be readable
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["mcp-session-id", "WWW-Authenticate"],
    )
    app.add_middleware(AccessLogMiddleware)

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception(f"[HTTP] Unhandled error on {request.url.path}")
        return jsonrpc_error(INTERNAL_ERROR, "Internal server error", 500)

    # ============== Protocol endpoint ==============
    validator = BearerValidator(store=store, api_key=config.mcp_api_key)
    endpoint = StreamableHTTPEndpoint(registry)
    app.add_route(
        config.mcp_path,
        MCPOAuthMiddleware(endpoint, validator, provider.resource_metadata_url if provider else None),
        include_in_schema=False,
    )

    # ============== OAuth endpoints (optional) ==============
    if provider is not None:
        from oauth.endpoints import router as oauth_router
        app.include_router(oauth_router)

    # ============== Server Info Endpoints ==============

    @app.get("/health", response_class=PlainTextResponse)
    async def health_check():
        """Liveness probe; never authenticated."""
        return "ok"

    @app.get("/")
    async def root():
        """Root endpoint with server info."""
        response = {
            "name": SERVER_NAME,
            "version": VERSION,
            "transport": "streamable-http",
            "stateless": registry.stateless,
            "endpoints": {"mcp": config.mcp_path, "health": "/health"},
            "oauth_enabled": provider is not None,
            "api_key_enabled": validator.api_key is not None,
        }
        if provider is not None:
            response["oauth"] = {
                "protected_resource": provider.resource_metadata_url,
                "authorization_server": f"{provider.server_url}/.well-known/oauth-authorization-server",
            }
        return response

    logger.info(
        f"[STARTUP] App created - oauth: {provider is not None}, api_key: {validator.api_key is not None}, "
        f"stateless: {registry.stateless}"
    )
    return app


async def serve_stdio(config: Config) -> None:
    client = create_featurebase_client(config)
    try:
        await build_server(client).run_async(transport="stdio")
    finally:
        await client.aclose()


def run(config: Config) -> None:
    """Validate config, set up logging and serve on the configured transport."""
    config.validate()
    setup_logging(
        level=config.log_level,
        fmt=config.log_format,
        supabase_client=create_supabase_client(config.supabase_url, config.supabase_key),
        supabase_table=config.supabase_log_table,
    )
    try:
        if config.transport == "stdio":
            logger.info("[STARTUP] Serving MCP over stdio")
            anyio.run(serve_stdio, config)
            return

        import uvicorn
        logger.info(f"[STARTUP] Serving MCP over HTTP on {config.host}:{config.port}")
        uvicorn.run(create_app(config), host=config.host, port=config.port, log_level=config.log_level.lower())
    finally:
        flush_logs()


# ============== Main Entry Point ==============

if __name__ == "__main__":
    run(load_config())
