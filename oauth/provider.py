"""OAuth 2.1 authorization flow engine.

Implements the provider side of the flow MCP clients expect:

1. Discovery metadata at /.well-known/oauth-authorization-server
2. Dynamic client registration (RFC 7591)
3. Authorization code with PKCE (S256 only)
4. Token endpoint: code exchange and refresh-token rotation

There is no user identity behind the consent page. Whoever can reach the
authorize page and press the button gets a code for the requesting client, so
the consent page itself is the trust boundary. Put it behind something that
authenticates the operator if that matters for your deployment.

The engine does no HTTP itself; oauth.endpoints binds it to routes.
"""

import base64
import hashlib
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlencode, urlsplit, urlunsplit

from oauth.errors import (
    InvalidClient,
    InvalidGrant,
    InvalidRequest,
    UnknownClient,
    UnsupportedGrantType,
)
from oauth.stores import CredentialStore, RegisteredClient, TokenRecord

logger = logging.getLogger(__name__)

GRANT_TYPES = ["authorization_code", "refresh_token"]
RESPONSE_TYPES = ["code"]
AUTH_METHODS = ["none", "client_secret_post"]
CHALLENGE_METHODS = ["S256"]


def pkce_challenge(verifier: str) -> str:
    """S256 code challenge: BASE64URL(SHA256(verifier)) without padding."""
    digest = hashlib.sha256(verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def constant_time_equals(a: str, b: str) -> bool:
    return secrets.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def redact(value: Optional[str]) -> str:
    """Shorten a secret for log lines."""
    if not value:
        return "-"
    return f"{value[:8]}..."


@dataclass(frozen=True)
class AuthorizeRequest:
    """Parameters shared by the consent page and its form submission."""

    client_id: str
    redirect_uri: str
    state: str
    code_challenge: str
    code_challenge_method: str = "S256"

    @classmethod
    def from_params(cls, params) -> "AuthorizeRequest":
        return cls(
            client_id=params.get("client_id") or "",
            redirect_uri=params.get("redirect_uri") or "",
            state=params.get("state") or "",
            code_challenge=params.get("code_challenge") or "",
            code_challenge_method=params.get("code_challenge_method") or "S256",
        )


class OAuthProvider:
    """Authorization server state machine bound to one CredentialStore.

    Args:
        server_url: Public base URL; used as issuer and to build endpoint URLs.
        store: Credential store owned by this provider's application.
        resource_path: Path of the protected protocol endpoint.
    """

    def __init__(self, server_url: str, store: CredentialStore, resource_path: str = "/mcp"):
        self.server_url = server_url.rstrip("/")
        self.store = store
        self.resource_path = resource_path

    # ----- discovery -----

    def metadata(self) -> dict[str, Any]:
        return {
            "issuer": self.server_url,
            "authorization_endpoint": f"{self.server_url}/authorize",
            "token_endpoint": f"{self.server_url}/token",
            "registration_endpoint": f"{self.server_url}/register",
            "response_types_supported": list(RESPONSE_TYPES),
            "grant_types_supported": list(GRANT_TYPES),
            "token_endpoint_auth_methods_supported": list(AUTH_METHODS),
            "code_challenge_methods_supported": list(CHALLENGE_METHODS),
        }

    def protected_resource_metadata(self) -> dict[str, Any]:
        """OAuth 2.0 Protected Resource Metadata (RFC 9728)."""
        return {
            "resource": f"{self.server_url}{self.resource_path}",
            "authorization_servers": [self.server_url],
            "bearer_methods_supported": ["header"],
        }

    @property
    def resource_metadata_url(self) -> str:
        return f"{self.server_url}/.well-known/oauth-protected-resource"

    # ----- registration -----

    def register(self, data: Any) -> dict[str, Any]:
        """Dynamic client registration. ``data`` is the decoded JSON body."""
        if not isinstance(data, dict):
            raise InvalidRequest("Registration body must be a JSON object")

        redirect_uris = data.get("redirect_uris") or []
        if not isinstance(redirect_uris, list) or not all(isinstance(u, str) for u in redirect_uris):
            raise InvalidRequest("redirect_uris must be a list of strings")
        client_name = data.get("client_name")
        if client_name is not None and not isinstance(client_name, str):
            raise InvalidRequest("client_name must be a string")

        confidential = data.get("token_endpoint_auth_method") == "client_secret_post"
        client = self.store.create_client(redirect_uris, client_name, confidential=confidential)
        logger.info(
            f"[OAUTH] Registered client {client.client_id} "
            f"({client.client_name or 'unnamed'}, auth={client.token_endpoint_auth_method})"
        )

        response: dict[str, Any] = {
            "client_id": client.client_id,
            "redirect_uris": list(client.redirect_uris),
            "grant_types": list(GRANT_TYPES),
            "response_types": list(RESPONSE_TYPES),
            "token_endpoint_auth_method": client.token_endpoint_auth_method,
        }
        if client.client_name is not None:
            response["client_name"] = client.client_name
        if client.client_secret:
            response["client_secret"] = client.client_secret
        return response

    # ----- authorization -----

    def check_authorize(self, request: AuthorizeRequest, response_type: str = "code") -> tuple[RegisteredClient, AuthorizeRequest]:
        """Validate authorize parameters without creating any state.

        Returns the client and the request with ``redirect_uri`` resolved.
        Raises UnknownClient or InvalidRequest; both must be shown to the
        user rather than redirected, since the redirect target is untrusted.
        """
        client = self.store.get_client(request.client_id)
        if client is None:
            raise UnknownClient("Unknown client")
        if response_type != "code":
            raise InvalidRequest("Unsupported response_type")
        if not request.code_challenge:
            raise InvalidRequest("code_challenge is required")
        if request.code_challenge_method not in CHALLENGE_METHODS:
            raise InvalidRequest("Unsupported code_challenge_method")

        redirect_uri = request.redirect_uri
        if not redirect_uri:
            if not client.redirect_uris:
                raise InvalidRequest("redirect_uri is required")
            redirect_uri = client.redirect_uris[0]
        elif client.redirect_uris and redirect_uri not in client.redirect_uris:
            raise InvalidRequest("redirect_uri is not registered for this client")

        parts = urlsplit(redirect_uri)
        if not parts.scheme or not parts.netloc:
            raise InvalidRequest("redirect_uri must be an absolute URI")

        return client, AuthorizeRequest(
            client_id=request.client_id,
            redirect_uri=redirect_uri,
            state=request.state,
            code_challenge=request.code_challenge,
            code_challenge_method=request.code_challenge_method,
        )

    def approve(self, request: AuthorizeRequest) -> str:
        """Mint an authorization code and return the redirect location."""
        client, request = self.check_authorize(request)
        auth_code = self.store.create_code(
            client_id=client.client_id,
            redirect_uri=request.redirect_uri,
            code_challenge=request.code_challenge,
            code_challenge_method=request.code_challenge_method,
        )
        logger.info(f"[OAUTH] Issued authorization code for client {client.client_id}")

        params = {"code": auth_code.code}
        if request.state:
            params["state"] = request.state
        return append_query(request.redirect_uri, params)

    # ----- token endpoint -----

    def exchange(self, params) -> dict[str, Any]:
        """Dispatch a token request on ``grant_type``."""
        grant_type = params.get("grant_type")
        if grant_type == "authorization_code":
            record = self._exchange_code(params)
        elif grant_type == "refresh_token":
            record = self._exchange_refresh_token(params)
        else:
            logger.info(f"[TOKEN] Unsupported grant_type: {grant_type}")
            raise UnsupportedGrantType()
        return self._token_response(record)

    def _exchange_code(self, params) -> TokenRecord:
        code = params.get("code") or ""
        code_verifier = params.get("code_verifier") or ""
        client_id = params.get("client_id") or ""

        auth_code = self.store.get_code(code)
        if auth_code is None or auth_code.client_id != client_id:
            logger.info(f"[TOKEN] Rejected code {redact(code)} for client {client_id or '-'}")
            raise InvalidGrant()

        self._authenticate_client(client_id, params)

        redirect_uri = params.get("redirect_uri")
        if redirect_uri and redirect_uri != auth_code.redirect_uri:
            raise InvalidGrant("redirect_uri mismatch")

        if not constant_time_equals(pkce_challenge(code_verifier), auth_code.code_challenge):
            logger.info(f"[TOKEN] PKCE verification failed for client {client_id}")
            raise InvalidGrant("PKCE verification failed")

        self.store.delete_code(code)
        record = self.store.issue_tokens(client_id)
        logger.info(f"[TOKEN] Access token issued for client {client_id}")
        return record

    def _exchange_refresh_token(self, params) -> TokenRecord:
        refresh_token = params.get("refresh_token") or ""
        client_id = params.get("client_id")

        current = self.store.find_by_refresh_token(refresh_token)
        if current is None:
            logger.info(f"[TOKEN] Unknown refresh token {redact(refresh_token)}")
            raise InvalidGrant()
        if client_id and client_id != current.client_id:
            raise InvalidGrant()
        self._authenticate_client(current.client_id, params)

        record = self.store.rotate(refresh_token)
        if record is None:
            raise InvalidGrant()
        logger.info(f"[TOKEN] Rotated tokens for client {record.client_id}")
        return record

    def _authenticate_client(self, client_id: str, params) -> None:
        """client_secret_post check for confidential clients."""
        client = self.store.get_client(client_id)
        if client is None or not client.client_secret:
            return
        presented = params.get("client_secret") or ""
        if not constant_time_equals(presented, client.client_secret):
            logger.info(f"[TOKEN] Client authentication failed for {client_id}")
            raise InvalidClient("Client authentication failed")

    def _token_response(self, record: TokenRecord) -> dict[str, Any]:
        return {
            "access_token": record.access_token,
            "token_type": "Bearer",
            "expires_in": self.store.token_ttl,
            "refresh_token": record.refresh_token,
        }


def append_query(url: str, params: dict[str, str]) -> str:
    """Add query parameters to a URL, keeping any it already has."""
    parts = urlsplit(url)
    query = urlencode(params)
    if parts.query:
        query = f"{parts.query}&{query}"
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))
