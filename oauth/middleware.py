"""Bearer token gate for the MCP protocol endpoint.

Tokens are opaque strings issued by oauth.provider and looked up in the
credential store; an expired token is evicted when it is presented. An
optional static API key is accepted as well, for clients that are configured
with a fixed key instead of running the OAuth flow.

Health checks and the OAuth endpoints are never wrapped by this middleware.
"""

import logging
from typing import Optional

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from oauth.provider import constant_time_equals
from oauth.stores import CredentialStore, TokenRecord

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


class BearerValidator:
    """Decides whether a request may reach the protocol endpoint.

    Args:
        store: Credential store holding OAuth access tokens, or None when
            OAuth is disabled.
        api_key: Optional static key accepted in addition to OAuth tokens.
    """

    def __init__(self, store: Optional[CredentialStore] = None, api_key: Optional[str] = None):
        self.store = store
        self.api_key = api_key or None

    @property
    def enabled(self) -> bool:
        return self.store is not None or self.api_key is not None

    def lookup(self, token: Optional[str]) -> Optional[TokenRecord]:
        if not token or self.store is None:
            return None
        return self.store.get_token(token)

    def validate(self, authorization: Optional[str], query_key: Optional[str] = None) -> bool:
        if not self.enabled:
            return True
        token = extract_bearer(authorization)
        if self.api_key is not None:
            presented = token or query_key
            if presented and constant_time_equals(presented, self.api_key):
                return True
        return self.lookup(token) is not None


class MCPOAuthMiddleware:
    """ASGI middleware that answers 401 unless the validator accepts the request."""

    def __init__(self, app: ASGIApp, validator: BearerValidator, resource_metadata_url: Optional[str] = None):
        self.app = app
        self.validator = validator
        self.resource_metadata_url = resource_metadata_url

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self.validator.enabled:
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        authorization = request.headers.get("authorization")
        if self.validator.validate(authorization, request.query_params.get("key")):
            await self.app(scope, receive, send)
            return

        if extract_bearer(authorization) is None and not request.query_params.get("key"):
            logger.info("[AUTH] Request rejected: no Bearer token")
            response = self.unauthorized_response("Missing or invalid Authorization header")
        else:
            logger.info("[AUTH] Request rejected: invalid or expired token")
            response = self.unauthorized_response("Invalid or expired token")
        await response(scope, receive, send)

    def unauthorized_response(self, error_description: str) -> JSONResponse:
        """Return 401 with WWW-Authenticate header (RFC 9728)."""
        challenge = "Bearer"
        if self.resource_metadata_url:
            challenge = f'Bearer resource_metadata="{self.resource_metadata_url}"'
        return JSONResponse(
            {"error": "unauthorized", "error_description": error_description},
            status_code=401,
            headers={"WWW-Authenticate": challenge},
        )
