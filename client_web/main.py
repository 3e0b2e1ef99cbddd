"""
Client Web App (demo confidential client).
State + PKCE; redirect to AS; callback exchanges code for tokens (HTTP Basic client auth);
calls the resource server, refreshing the access token when needed.
Port 3000.
"""
import html
import json
import logging

import httpx
import jwt
from fastapi import FastAPI
from fastapi.responses import HTMLResponse, RedirectResponse

from client_web.config import (
    CLIENT_ID,
    CLIENT_SECRET,
    HTTP_TIMEOUT,
    ISSUER,
    REDIRECT_URI,
    RESOURCE_SERVER_URL,
)
from client_web.flow_store import get_flow, store_flow
from client_web.login import new_login_request
from client_web.token_store import StoredTokens, clear_tokens, get_tokens, store_tokens

logger = logging.getLogger(__name__)

app = FastAPI(title="Client Web", version="1.0.0")


def _page(title: str, body: str, status_code: int = 200) -> HTMLResponse:
    return HTMLResponse(
        f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{html.escape(title)}</title></head>
<body>
  <h1>{html.escape(title)}</h1>
  {body}
  <p><a href="/">Home</a></p>
</body>
</html>""",
        status_code=status_code,
    )


def _error_description(r: httpx.Response) -> str:
    if r.headers.get("content-type", "").startswith("application/json"):
        err = r.json()
        return err.get("error_description") or err.get("error") or "Request failed"
    return r.text or "Request failed"


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "client_web"}


@app.get("/", response_class=HTMLResponse)
def home():
    """Home page: log in, call the API, inspect tokens."""
    tokens = get_tokens()
    status = "Signed in" if tokens else "Not signed in"
    return HTMLResponse(
        f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>OAuth Client</title></head>
<body>
  <h1>OAuth2 + OIDC Client</h1>
  <p>{status}</p>
  <p><a href="/start-login">Log in</a></p>
  <p><a href="/call-api?path=/api/users">Call /api/users</a> (requires read:users)</p>
  <p><a href="/call-api?path=/api/products">Call /api/products</a> (public)</p>
  <p><a href="/tokens">Show tokens</a></p>
  <form method="post" action="/logout"><button type="submit">Log out</button></form>
</body>
</html>"""
    )


@app.get("/start-login")
def start_login(show_code: bool = False):
    """Remember the verifier under a fresh state, then send the browser to AS /authorize."""
    login = new_login_request(show_code=show_code)
    store_flow(login.state, code_verifier=login.code_verifier)
    return RedirectResponse(url=login.authorize_url, status_code=302)


@app.get("/callback", response_class=HTMLResponse)
def callback(
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
):
    """Handle redirect from AS: check state, exchange code for tokens."""
    if error:
        if state:
            get_flow(state)
        return _page("Login error", f"<p>{html.escape(error_description or error)}</p>", status_code=400)

    if not state:
        return _page("Error", "<p>Missing state parameter.</p>", status_code=400)

    flow = get_flow(state)
    if not flow:
        return _page("Error", "<p>Invalid or expired state. Please try logging in again.</p>", status_code=400)

    if not code:
        return _page("Error", "<p>Missing code parameter.</p>", status_code=400)

    try:
        r = httpx.post(
            f"{ISSUER}/token",
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": REDIRECT_URI,
                "code_verifier": flow.code_verifier,
            },
            auth=(CLIENT_ID, CLIENT_SECRET),
            headers={"Accept": "application/json"},
            timeout=HTTP_TIMEOUT,
        )
    except httpx.HTTPError as e:
        logger.warning("Token exchange request failed: %s", e)
        return _page("Token exchange failed", f"<p>{html.escape(str(e))}</p>", status_code=502)

    if r.status_code != 200:
        return _page("Token exchange failed", f"<p>{html.escape(_error_description(r))}</p>", status_code=400)

    tokens = store_tokens(r.json())
    has_id = "Yes" if tokens.id_token else "No"
    return _page(
        "Login success",
        f"""<p>Scope: <code>{html.escape(tokens.scope)}</code></p>
  <p>ID token received: {has_id}</p>
  <p><a href="/call-api?path=/api/users">Call /api/users</a> | <a href="/tokens">Show tokens</a></p>""",
    )


def _refresh_tokens(tokens: StoredTokens) -> StoredTokens | None:
    """Exchange the refresh token for new tokens. Returns the new set, or None on failure."""
    if not tokens.refresh_token:
        return None
    try:
        r = httpx.post(
            f"{ISSUER}/token",
            data={"grant_type": "refresh_token", "refresh_token": tokens.refresh_token},
            auth=(CLIENT_ID, CLIENT_SECRET),
            headers={"Accept": "application/json"},
            timeout=HTTP_TIMEOUT,
        )
    except httpx.HTTPError as e:
        logger.warning("Refresh request failed: %s", e)
        return None
    if r.status_code != 200:
        logger.info("Refresh rejected: %s", _error_description(r))
        return None
    return store_tokens(r.json(), previous=tokens)


def _call_resource(path: str, access_token: str | None) -> httpx.Response:
    headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}
    return httpx.get(f"{RESOURCE_SERVER_URL}{path}", headers=headers, timeout=HTTP_TIMEOUT)


@app.get("/call-api", response_class=HTMLResponse)
def call_api(path: str = "/api/users"):
    """
    Call the resource server with the stored access token.
    Refreshes proactively near expiry, and once more on a 401.
    """
    title = f"Call {path}"
    if not path.startswith("/api/"):
        return _page(title, "<p>Only /api/ paths can be called.</p>", status_code=400)

    tokens = get_tokens()
    if tokens and tokens.access_token_expired_or_soon(buffer_seconds=60):
        tokens = _refresh_tokens(tokens)
        if tokens is None:
            clear_tokens()
            return _page(title, '<p>Token expired and refresh failed. <a href="/start-login">Log in</a> again.</p>')

    try:
        r = _call_resource(path, tokens.access_token if tokens else None)
        if r.status_code == 401 and tokens:
            tokens = _refresh_tokens(tokens)
            if tokens is None:
                clear_tokens()
                return _page(title, '<p>401 Unauthorized; refresh failed. <a href="/start-login">Log in</a> again.</p>')
            r = _call_resource(path, tokens.access_token)
    except httpx.HTTPError as e:
        return _page(title, f"<p>Request failed: {html.escape(str(e))}</p>", status_code=502)

    if r.headers.get("content-type", "").startswith("application/json"):
        body_str = html.escape(json.dumps(r.json(), indent=2))
    else:
        body_str = html.escape(r.text[:500] if r.text else "(no body)")
    return _page(title, f"<p>Status: {r.status_code}</p>\n  <pre>{body_str}</pre>")


def _decode_for_display(token: str | None) -> dict | None:
    """Claims of a JWT without verifying it. Display only; never trust these for decisions."""
    if not token:
        return None
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.DecodeError:
        return None


@app.get("/tokens", response_class=HTMLResponse)
def show_tokens():
    """Decoded claims of the stored tokens."""
    tokens = get_tokens()
    if not tokens:
        return _page("Tokens", '<p>No tokens. <a href="/start-login">Log in</a> first.</p>')
    sections = []
    for label, value in (
        ("Access token", tokens.access_token),
        ("Refresh token", tokens.refresh_token),
        ("ID token", tokens.id_token),
    ):
        claims = _decode_for_display(value)
        if claims is not None:
            sections.append(f"<h2>{label}</h2>\n  <pre>{html.escape(json.dumps(claims, indent=2))}</pre>")
    return _page("Tokens", "\n  ".join(sections))


@app.post("/logout")
def logout():
    """Forget the stored tokens (stateless tokens stay valid until they expire)."""
    clear_tokens()
    return RedirectResponse(url="/", status_code=302)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "client_web.main:app",
        host="127.0.0.1",
        port=3000,
        reload=True,
    )
