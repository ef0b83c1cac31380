"""HTML templates for the browser side of the OAuth flow.

Values are substituted with str.format(), so every literal brace in the CSS is
doubled. Callers must escape substituted values (see render_consent_page).
Both pages share one stylesheet.
"""

from html import escape

_STYLE = """
        body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;
               background: #FAF9F7;
               min-height: 100vh; display: flex; align-items: center; justify-content: center; margin: 0; }}
        .container {{ background: white; padding: 40px; border-radius: 16px; box-shadow: 0 4px 24px rgba(0,0,0,0.08);
                     width: 100%; max-width: 400px; border: 1px solid #E5E4E0; text-align: center; }}
        h1 {{ margin: 0 0 8px; color: #1A1915; font-size: 24px; font-weight: 600; }}
        p {{ color: #6B6860; margin: 0 0 24px; }}
        button {{ width: 100%; padding: 14px; background: #D97756;
                 color: white; border: none; border-radius: 8px; font-size: 15px; font-weight: 600;
                 cursor: pointer; transition: all 0.2s; }}
        button:hover {{ background: #C4684A; }}
        .info {{ background: #F5F5F0; color: #6B6860; padding: 12px; border-radius: 8px; margin-bottom: 20px; font-size: 14px; }}
        .error {{ background: #FEF2F2; color: #B91C1C; padding: 12px; border-radius: 8px; margin-bottom: 20px; border: 1px solid #FECACA; }}
"""

CONSENT_PAGE = """
<!DOCTYPE html>
<html>
<head>
    <title>Authorize - Featurebase MCP</title>
    <style>""" + _STYLE + """    </style>
</head>
<body>
    <div class="container">
        <h1>Featurebase MCP</h1>
        <p><strong>{client_name}</strong> wants to connect to your Featurebase MCP server.</p>
        <div class="info">Approving grants full access to the tools this server exposes.</div>
        <form method="POST" action="/authorize">
            <input type="hidden" name="client_id" value="{client_id}">
            <input type="hidden" name="redirect_uri" value="{redirect_uri}">
            <input type="hidden" name="state" value="{state}">
            <input type="hidden" name="code_challenge" value="{code_challenge}">
            <input type="hidden" name="code_challenge_method" value="{code_challenge_method}">
            <button type="submit">Authorize</button>
        </form>
    </div>
</body>
</html>
"""

ERROR_PAGE = """
<!DOCTYPE html>
<html>
<head>
    <title>Authorization error - Featurebase MCP</title>
    <style>""" + _STYLE + """    </style>
</head>
<body>
    <div class="container">
        <h1>{title}</h1>
        <div class="error">{message}</div>
        <p>Close this window and start the connection again from your MCP client.</p>
    </div>
</body>
</html>
"""


def render_consent_page(request, client_name: str) -> str:
    """Render the consent form echoing the authorize parameters."""
    return CONSENT_PAGE.format(
        client_name=escape(client_name),
        client_id=escape(request.client_id),
        redirect_uri=escape(request.redirect_uri),
        state=escape(request.state),
        code_challenge=escape(request.code_challenge),
        code_challenge_method=escape(request.code_challenge_method),
    )


def render_error_page(title: str, message: str) -> str:
    return ERROR_PAGE.format(title=escape(title), message=escape(message))
