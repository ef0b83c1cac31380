"""OAuth error types.

Each error carries the wire ``error`` code and HTTP status it is rendered with.
The flow engine raises them; the router turns them into responses.
"""

from typing import Optional


class OAuthError(Exception):
    error = "server_error"
    status_code = 400

    def __init__(self, description: Optional[str] = None):
        self.description = description
        super().__init__(description or self.error)

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.description:
            body["error_description"] = self.description
        return body


class InvalidRequest(OAuthError):
    error = "invalid_request"


class InvalidClient(OAuthError):
    error = "invalid_client"
    status_code = 401


class InvalidGrant(OAuthError):
    error = "invalid_grant"


class UnsupportedGrantType(OAuthError):
    error = "unsupported_grant_type"


class UnknownClient(OAuthError):
    """Raised on the authorize endpoints; rendered as HTML, never redirected."""

    error = "unknown_client"
