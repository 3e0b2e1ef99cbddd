"""
Authorization endpoint and browser flow.
GET /authorize: validate request, show login or consent. POST /login: sign in and resume.
POST /consent: approve (issue code) or deny, redirect to client. POST /logout: drop the session.
"""
import html
import logging

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from auth_server.audit import (
    EVENT_CODE_ISSUED,
    EVENT_CONSENT_ALLOW,
    EVENT_CONSENT_DENY,
    EVENT_LOGIN_FAIL,
    EVENT_LOGIN_OK,
    EVENT_LOGOUT,
    get_client_ip,
    log_audit,
    OUTCOME_FAIL,
    OUTCOME_SUCCESS,
)
from auth_server.config import COOKIE_SECURE, SESSION_COOKIE_NAME
from auth_server.errors import oauth_error
from auth_server.flow import AuthorizationError, FlowState, FlowStep, LOGIN_NOTICE
from auth_server.models import Client
from auth_server.services import AuthServices, get_services

logger = logging.getLogger(__name__)
router = APIRouter()


def e(s) -> str:
    return html.escape(str(s) if s is not None else "")


def _client_label(client: Client | None) -> str:
    if client is None:
        return "the application"
    return client.name or client.client_id


def _render_login(step: FlowStep) -> HTMLResponse:
    error_html = f'<p style="color:red;">{e(step.error)}</p>' if step.error else ""
    body = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Log in</title></head>
<body>
  <h1>Log in</h1>
  <p>Sign in to approve <strong>{e(_client_label(step.client))}</strong>'s access request.</p>
  {error_html}
  <form method="post" action="/login">
    <label>Username: <input type="text" name="username" required autofocus/></label><br/>
    <label>Password: <input type="password" name="password" required/></label><br/>
    <input type="hidden" name="original_query" value="{e(step.original_query)}"/>
    <button type="submit">Continue</button>
  </form>
</body>
</html>"""
    return HTMLResponse(body, status_code=step.status_code)


def _render_consent(step: FlowStep) -> HTMLResponse:
    hidden = "".join(
        f'<input type="hidden" name="{e(k)}" value="{e(v)}"/>' for k, v in step.fields.items()
    )
    scope_list = "".join(f"<li>{e(s)}</li>" for s in step.scopes)
    notice = f'<p style="color:green;">{e(LOGIN_NOTICE)}</p>' if step.just_logged_in else ""
    user_label = step.user.name or step.user.username
    body = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Consent</title></head>
<body>
  <h1>Authorize {e(_client_label(step.client))}</h1>
  {notice}
  <p>Signed in as <strong>{e(user_label)}</strong>.</p>
  <p>This application is requesting the following scopes:</p>
  <ul>{scope_list}</ul>
  <form method="post" action="/consent" style="display:inline;">
    {hidden}
    <input type="hidden" name="decision" value="approve"/>
    <button type="submit">Approve</button>
  </form>
  <form method="post" action="/consent" style="display:inline; margin-left: 0.5em;">
    {hidden}
    <input type="hidden" name="decision" value="deny"/>
    <button type="submit">Deny</button>
  </form>
  <form method="post" action="/logout" style="margin-top: 1em;">
    <input type="hidden" name="original_query" value="{e(step.original_query)}"/>
    <button type="submit">Sign out</button>
  </form>
</body>
</html>"""
    return HTMLResponse(body)


def _render_code(step: FlowStep) -> HTMLResponse:
    state_html = f"<p><strong>state:</strong> {e(step.client_state)}</p>" if step.client_state else ""
    body = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Authorization Code Issued</title></head>
<body>
  <h1>Authorization Code Ready</h1>
  <p>Client: {e(_client_label(step.client))}</p>
  <p>Authorization code: <code id="auth-code">{e(step.code.code)}</code></p>
  {state_html}
  <p>Scopes: {e(" ".join(step.scopes))}</p>
  <p><a href="{e(step.location)}">Continue to client</a></p>
  <p>The code is valid for a short time and can be used exactly once in a token request.</p>
</body>
</html>"""
    return HTMLResponse(body)


@router.get("/authorize", response_class=HTMLResponse)
def authorize_get(request: Request, services: AuthServices = Depends(get_services)):
    """
    OAuth2 authorization endpoint.
    Validates response_type, client_id and redirect_uri (exact match); renders login or consent.
    """
    try:
        step = services.flow.start(request.url.query, request.cookies.get(SESSION_COOKIE_NAME))
    except AuthorizationError as exc:
        logger.info("Rejected authorization request: %s", exc.error)
        raise oauth_error(exc.status_code, exc.error, exc.description)
    if step.state is FlowState.AWAITING_LOGIN:
        return _render_login(step)
    return _render_consent(step)


@router.post("/login")
def login(
    request: Request,
    username: str | None = Form(None),
    password: str | None = Form(None),
    original_query: str | None = Form(None),
    services: AuthServices = Depends(get_services),
):
    """Check credentials; on success set the session cookie and go back to /authorize."""
    step = services.flow.login(username, password, original_query)
    client_id = step.client.client_id if step.client else None
    if step.state is not FlowState.RESUME:
        log_audit(EVENT_LOGIN_FAIL, client_id=client_id, ip=get_client_ip(request), outcome=OUTCOME_FAIL)
        return _render_login(step)

    log_audit(EVENT_LOGIN_OK, client_id=client_id, user_id=step.user.id, ip=get_client_ip(request), outcome=OUTCOME_SUCCESS)
    response = RedirectResponse(url=step.location, status_code=302)
    response.set_cookie(
        SESSION_COOKIE_NAME,
        step.session.sid,
        max_age=services.sessions.ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=COOKIE_SECURE,
    )
    return response


@router.post("/consent")
def consent(
    request: Request,
    decision: str | None = Form(None),
    original_query: str | None = Form(None),
    client_id: str | None = Form(None),
    redirect_uri: str | None = Form(None),
    scope: str | None = Form(None),
    state: str | None = Form(None),
    code_challenge: str | None = Form(None),
    code_challenge_method: str | None = Form(None),
    show_code: str | None = Form(None),
    services: AuthServices = Depends(get_services),
):
    """Approve: issue code and redirect with code (+ state). Deny: redirect with error=access_denied."""
    form = {
        "decision": decision,
        "original_query": original_query,
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "scope": scope,
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": code_challenge_method,
        "show_code": show_code,
    }
    try:
        step = services.flow.consent(form, request.cookies.get(SESSION_COOKIE_NAME))
    except AuthorizationError as exc:
        raise oauth_error(exc.status_code, exc.error, exc.description)

    ip = get_client_ip(request)
    if step.state is FlowState.DENIED:
        log_audit(EVENT_CONSENT_DENY, client_id=client_id, user_id=step.user.id, ip=ip, outcome=OUTCOME_SUCCESS)
    elif step.state is FlowState.CODE_ISSUED:
        log_audit(EVENT_CONSENT_ALLOW, client_id=client_id, user_id=step.user.id, ip=ip, outcome=OUTCOME_SUCCESS)
        log_audit(EVENT_CODE_ISSUED, client_id=client_id, user_id=step.user.id, ip=ip, outcome=OUTCOME_SUCCESS)
        if step.show_code:
            return _render_code(step)
    return RedirectResponse(url=step.location, status_code=302)


@router.post("/logout")
def logout(
    request: Request,
    original_query: str | None = Form(None),
    services: AuthServices = Depends(get_services),
):
    """Destroy the browser session and restart the authorization request."""
    sid = request.cookies.get(SESSION_COOKIE_NAME)
    step = services.flow.logout(sid, original_query)
    response = RedirectResponse(url=step.location, status_code=302)
    if sid:
        log_audit(EVENT_LOGOUT, ip=get_client_ip(request), outcome=OUTCOME_SUCCESS)
        response.delete_cookie(SESSION_COOKIE_NAME, httponly=True, samesite="lax", secure=COOKIE_SECURE)
    return response
