"""In-memory credential store for the OAuth provider.

Holds dynamically registered clients, pending authorization codes and issued
access/refresh token pairs. Nothing here is persisted: a restart forgets every
client, code and token.

All methods are synchronous and never await, so each call runs to completion
within one turn of the event loop. Token rotation is a single method for the
same reason.
"""

import secrets
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

AUTH_CODE_TTL_SECONDS = 10 * 60
ACCESS_TOKEN_TTL_SECONDS = 60 * 60
REFRESH_TOKEN_TTL_SECONDS = 30 * 24 * 60 * 60


def generate_token(prefix: str = "") -> str:
    """Return an opaque identifier with 256 bits of randomness."""
    return f"{prefix}{secrets.token_urlsafe(32)}"


@dataclass(frozen=True)
class RegisteredClient:
    client_id: str
    redirect_uris: list[str] = field(default_factory=list)
    client_name: Optional[str] = None
    client_secret: Optional[str] = None

    @property
    def token_endpoint_auth_method(self) -> str:
        return "client_secret_post" if self.client_secret else "none"


@dataclass(frozen=True)
class AuthorizationCode:
    code: str
    client_id: str
    redirect_uri: str
    code_challenge: str
    code_challenge_method: str
    expires_at: float


@dataclass(frozen=True)
class TokenRecord:
    access_token: str
    refresh_token: str
    client_id: str
    expires_at: float
    refresh_expires_at: float


class CredentialStore:
    """Registries for clients, authorization codes and tokens.

    Args:
        clock: Returns the current time in seconds. Tests inject a fake.
        code_ttl: Lifetime of authorization codes in seconds.
        token_ttl: Lifetime of access tokens in seconds.
        refresh_ttl: Lifetime of refresh tokens in seconds. A token record is
            kept until then, so an expired access token can still be refreshed.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        code_ttl: int = AUTH_CODE_TTL_SECONDS,
        token_ttl: int = ACCESS_TOKEN_TTL_SECONDS,
        refresh_ttl: int = REFRESH_TOKEN_TTL_SECONDS,
    ):
        self.clock = clock
        self.code_ttl = code_ttl
        self.token_ttl = token_ttl
        self.refresh_ttl = refresh_ttl
        self._clients: dict[str, RegisteredClient] = {}
        self._codes: dict[str, AuthorizationCode] = {}
        self._tokens: dict[str, TokenRecord] = {}
        # refresh_token -> access_token
        self._refresh_index: dict[str, str] = {}

    # ----- clients -----

    def create_client(
        self,
        redirect_uris: list[str],
        client_name: Optional[str] = None,
        confidential: bool = False,
    ) -> RegisteredClient:
        client = RegisteredClient(
            client_id=generate_token("client_"),
            redirect_uris=list(redirect_uris),
            client_name=client_name,
            client_secret=generate_token("secret_") if confidential else None,
        )
        self._clients[client.client_id] = client
        return client

    def get_client(self, client_id: str) -> Optional[RegisteredClient]:
        if not client_id:
            return None
        return self._clients.get(client_id)

    # ----- authorization codes -----

    def create_code(
        self,
        client_id: str,
        redirect_uri: str,
        code_challenge: str,
        code_challenge_method: str = "S256",
    ) -> AuthorizationCode:
        auth_code = AuthorizationCode(
            code=generate_token(),
            client_id=client_id,
            redirect_uri=redirect_uri,
            code_challenge=code_challenge,
            code_challenge_method=code_challenge_method,
            expires_at=self.clock() + self.code_ttl,
        )
        self._codes[auth_code.code] = auth_code
        return auth_code

    def get_code(self, code: str) -> Optional[AuthorizationCode]:
        """Look up a code, evicting it if it has expired."""
        auth_code = self._codes.get(code)
        if auth_code is None:
            return None
        if self.clock() > auth_code.expires_at:
            del self._codes[code]
            return None
        return auth_code

    def delete_code(self, code: str) -> Optional[AuthorizationCode]:
        return self._codes.pop(code, None)

    # ----- tokens -----

    def issue_tokens(self, client_id: str) -> TokenRecord:
        now = self.clock()
        record = TokenRecord(
            access_token=generate_token("at_"),
            refresh_token=generate_token("rt_"),
            client_id=client_id,
            expires_at=now + self.token_ttl,
            refresh_expires_at=now + self.refresh_ttl,
        )
        self._tokens[record.access_token] = record
        self._refresh_index[record.refresh_token] = record.access_token
        return record

    def get_token(self, access_token: str) -> Optional[TokenRecord]:
        """Look up an access token, evicting it if it has expired."""
        record = self._tokens.get(access_token)
        if record is None:
            return None
        if self.clock() > record.expires_at:
            self._drop_token(record)
            return None
        return record

    def find_by_refresh_token(self, refresh_token: str) -> Optional[TokenRecord]:
        """Resolve a refresh token to its live token record.

        A refresh index entry whose access token record has vanished is
        removed on the way out; a record past its refresh lifetime is evicted.
        """
        access_token = self._refresh_index.get(refresh_token)
        if access_token is None:
            return None
        record = self._tokens.get(access_token)
        if record is None:
            del self._refresh_index[refresh_token]
            return None
        if self.clock() > record.refresh_expires_at:
            self._drop_token(record)
            return None
        return record

    def rotate(self, refresh_token: str) -> Optional[TokenRecord]:
        """Replace the pair behind ``refresh_token`` with a fresh pair.

        The old access token and old refresh token stop working immediately.
        Returns None when the refresh token does not resolve.
        """
        old = self.find_by_refresh_token(refresh_token)
        if old is None:
            return None
        self._drop_token(old)
        return self.issue_tokens(old.client_id)

    def _drop_token(self, record: TokenRecord) -> None:
        self._tokens.pop(record.access_token, None)
        if self._refresh_index.get(record.refresh_token) == record.access_token:
            del self._refresh_index[record.refresh_token]

    # ----- housekeeping -----

    def purge_expired(self) -> tuple[int, int]:
        """Delete expired codes and token records past their refresh lifetime.

        A record whose access token expired but whose refresh token is still
        valid is kept: the lookups above would still honour it. Returns
        (codes, tokens) removed.
        """
        now = self.clock()
        stale_codes = [c for c, a in self._codes.items() if now > a.expires_at]
        for code in stale_codes:
            del self._codes[code]
        stale_tokens = [r for r in self._tokens.values() if now > r.refresh_expires_at]
        for record in stale_tokens:
            self._drop_token(record)
        return len(stale_codes), len(stale_tokens)

    def stats(self) -> dict[str, int]:
        return {
            "clients": len(self._clients),
            "codes": len(self._codes),
            "tokens": len(self._tokens),
        }
