"""OAuth 2.1 endpoints for the MCP gateway.

This module binds the flow engine (oauth.provider) to HTTP:
- Discovery metadata (/.well-known/*)
- Client registration (/register)
- Authorization flow (GET and POST /authorize)
- Token endpoint (/token)

The provider is looked up on ``app.state.oauth_provider`` so each application
instance carries its own credential store.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from oauth.errors import InvalidRequest, OAuthError, UnknownClient
from oauth.provider import AuthorizeRequest, OAuthProvider
from oauth.templates import render_consent_page, render_error_page

logger = logging.getLogger(__name__)

# Router for OAuth endpoints
router = APIRouter(tags=["oauth"])

NO_STORE = {"Cache-Control": "no-store", "Pragma": "no-cache"}


def get_provider(request: Request) -> OAuthProvider:
    return request.app.state.oauth_provider


def error_response(error: OAuthError, headers: dict = None) -> JSONResponse:
    return JSONResponse(error.to_dict(), status_code=error.status_code, headers=headers)


def authorize_error_page(error: OAuthError) -> HTMLResponse:
    if isinstance(error, UnknownClient):
        html = render_error_page("Unknown client", "This application is not registered with the server.")
    else:
        html = render_error_page("Invalid authorization request", error.description or error.error)
    return HTMLResponse(html, status_code=400)


async def read_json_body(request: Request):
    try:
        return await request.json()
    except ValueError:
        raise InvalidRequest("Body is not valid JSON")


async def read_token_params(request: Request) -> dict:
    """Token requests are form encoded per RFC 6749; JSON is accepted too."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        data = await read_json_body(request)
        if not isinstance(data, dict):
            raise InvalidRequest("Body must be a JSON object")
        return {key: str(value) for key, value in data.items() if value is not None}
    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}


# ============== OAuth 2.1 Discovery Endpoints ==============

@router.get("/.well-known/oauth-authorization-server")
async def oauth_authorization_server(provider: OAuthProvider = Depends(get_provider)):
    """OAuth 2.0 Authorization Server Metadata (RFC 8414)."""
    return provider.metadata()


@router.get("/.well-known/oauth-protected-resource")
async def oauth_protected_resource(provider: OAuthProvider = Depends(get_provider)):
    """OAuth 2.0 Protected Resource Metadata (RFC 9728)."""
    return provider.protected_resource_metadata()


# ============== Client Registration ==============

@router.post("/register")
async def register_client(request: Request, provider: OAuthProvider = Depends(get_provider)):
    """OAuth 2.0 Dynamic Client Registration (RFC 7591)."""
    try:
        data = await read_json_body(request)
        client_info = provider.register(data)
    except OAuthError as e:
        logger.info(f"[OAUTH] Registration rejected: {e.error}")
        return error_response(e)
    return JSONResponse(client_info, status_code=201)


# ============== Authorization Flow ==============

@router.get("/authorize")
async def authorize(request: Request, provider: OAuthProvider = Depends(get_provider)):
    """Show the consent page. Creates no state."""
    params = request.query_params
    try:
        client, auth_request = provider.check_authorize(
            AuthorizeRequest.from_params(params),
            response_type=params.get("response_type") or "code",
        )
    except OAuthError as e:
        logger.info(f"[OAUTH] Authorize rejected for client {params.get('client_id') or '-'}: {e}")
        return authorize_error_page(e)

    return HTMLResponse(render_consent_page(auth_request, client.client_name or client.client_id))


@router.post("/authorize")
async def authorize_submit(request: Request, provider: OAuthProvider = Depends(get_provider)):
    """Handle consent form submission: issue a code and redirect back."""
    form = await request.form()
    try:
        location = provider.approve(AuthorizeRequest.from_params(form))
    except OAuthError as e:
        logger.info(f"[OAUTH] Approval rejected for client {form.get('client_id') or '-'}: {e}")
        return authorize_error_page(e)
    return RedirectResponse(url=location, status_code=302)


# ============== Token Endpoint ==============

@router.post("/token")
async def token(request: Request, provider: OAuthProvider = Depends(get_provider)):
    """OAuth 2.0 Token Endpoint."""
    try:
        params = await read_token_params(request)
        logger.debug(f"[TOKEN] grant_type: {params.get('grant_type')}, client_id: {params.get('client_id')}")
        body = provider.exchange(params)
    except OAuthError as e:
        return error_response(e, headers=NO_STORE)
    return JSONResponse(body, headers=NO_STORE)
