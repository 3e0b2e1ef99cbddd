"""
Token endpoint (POST /token). Grants: client_credentials, authorization_code, refresh_token.
The client is authenticated before any grant runs.
"""
import logging
import time

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import JSONResponse

from auth_server.audit import (
    EVENT_TOKEN_FAIL,
    EVENT_TOKEN_ISSUED,
    EVENT_TOKEN_REFRESHED,
    get_client_ip,
    log_audit,
    OUTCOME_FAIL,
    OUTCOME_SUCCESS,
)
from auth_server.client_auth import authenticated_client
from auth_server.errors import oauth_error
from auth_server.models import Client, User
from auth_server.pkce import verify_pkce
from auth_server.scopes import filter_allowed, format_scope, parse_scope
from auth_server.services import AuthServices, get_services
from auth_server.tokens import InvalidToken, TokenCodec, TokenKind

logger = logging.getLogger(__name__)
router = APIRouter()

GRANT_CLIENT_CREDENTIALS = "client_credentials"
GRANT_AUTHORIZATION_CODE = "authorization_code"
GRANT_REFRESH_TOKEN = "refresh_token"
SUPPORTED_GRANTS = (GRANT_CLIENT_CREDENTIALS, GRANT_AUTHORIZATION_CODE, GRANT_REFRESH_TOKEN)

# One description for every code failure so callers cannot tell which check failed
_INVALID_CODE = "Authorization code is invalid or expired"


def _invalid_grant(description: str):
    return oauth_error(400, "invalid_grant", description)


def _token_response(
    codec: TokenCodec,
    access_token: str,
    scopes: list[str],
    refresh_token: str | None = None,
    id_token: str | None = None,
) -> JSONResponse:
    body = {
        "access_token": access_token,
        "token_type": "Bearer",
        "expires_in": codec.ttl(TokenKind.ACCESS),
        "scope": format_scope(scopes),
    }
    if refresh_token:
        body["refresh_token"] = refresh_token
    if id_token:
        body["id_token"] = id_token
    return JSONResponse(body, headers={"Cache-Control": "no-store", "Pragma": "no-cache"})


def _user_access_token(codec: TokenCodec, user: User, client: Client, scopes: list[str], grant: str) -> str:
    return codec.sign(
        TokenKind.ACCESS,
        {
            "sub": user.id,
            "client": client.client_id,
            "username": user.username,
            "name": user.name,
            "email": user.email,
            "grant": grant,
        },
        scope=scopes,
    )


def _refresh_token(codec: TokenCodec, user: User, client: Client, scopes: list[str], grant: str, auth_time: int) -> str:
    return codec.sign(
        TokenKind.REFRESH,
        {
            "sub": user.id,
            "client": client.client_id,
            "scope": format_scope(scopes),
            "grant": grant,
            "auth_time": auth_time,
        },
    )


def _id_token(codec: TokenCodec, user: User, client: Client, auth_time: int) -> str:
    return codec.sign(
        TokenKind.ID,
        {
            "sub": user.id,
            "name": user.name,
            "preferred_username": user.username,
            "email": user.email,
            "email_verified": bool(user.email),
            "auth_time": auth_time,
        },
        audience=client.client_id,
    )


@router.post("/token")
def token(
    request: Request,
    grant_type: str | None = Form(None),
    code: str | None = Form(None),
    redirect_uri: str | None = Form(None),
    code_verifier: str | None = Form(None),
    refresh_token: str | None = Form(None),
    scope: str | None = Form(None),
    client: Client = Depends(authenticated_client),
    services: AuthServices = Depends(get_services),
):
    """
    client_credentials: access token for the client itself.
    authorization_code: redeem a code (single use, PKCE) for access, refresh and, with openid, ID token.
    refresh_token: new access + rotated refresh token, scope may only narrow.
    """
    if not grant_type:
        raise oauth_error(400, "invalid_request", "grant_type is required")
    if grant_type not in SUPPORTED_GRANTS:
        raise oauth_error(400, "unsupported_grant_type", f"{grant_type} is not supported")
    if not client.allows_grant(grant_type):
        raise oauth_error(400, "unauthorized_client", f"Client is not allowed to use {grant_type}")

    ip = get_client_ip(request)
    try:
        if grant_type == GRANT_CLIENT_CREDENTIALS:
            response = _token_client_credentials(services, client, scope)
        elif grant_type == GRANT_AUTHORIZATION_CODE:
            response = _token_authorization_code(services, client, code, redirect_uri, code_verifier)
        else:
            response = _token_refresh_token(services, client, refresh_token, scope)
    except Exception:
        log_audit(EVENT_TOKEN_FAIL, client_id=client.client_id, ip=ip, outcome=OUTCOME_FAIL, grant=grant_type)
        raise
    event = EVENT_TOKEN_REFRESHED if grant_type == GRANT_REFRESH_TOKEN else EVENT_TOKEN_ISSUED
    log_audit(event, client_id=client.client_id, ip=ip, outcome=OUTCOME_SUCCESS, grant=grant_type)
    return response


def _token_client_credentials(services: AuthServices, client: Client, scope: str | None) -> JSONResponse:
    requested = parse_scope(scope)
    if requested:
        scopes = filter_allowed(requested, client.scopes)
        if not scopes:
            raise oauth_error(400, "invalid_scope", "None of the requested scopes are allowed for this client")
    else:
        scopes = list(client.scopes)

    access_token = services.codec.sign(
        TokenKind.ACCESS,
        {"sub": client.client_id, "client": client.client_id, "grant": GRANT_CLIENT_CREDENTIALS},
        scope=scopes,
    )
    return _token_response(services.codec, access_token, scopes)


def _token_authorization_code(
    services: AuthServices,
    client: Client,
    code: str | None,
    redirect_uri: str | None,
    code_verifier: str | None,
) -> JSONResponse:
    if not code:
        raise oauth_error(400, "invalid_request", "code is required")

    # Removed from the registry here, before any other check
    auth_code = services.codes.consume(code)
    if auth_code is None:
        logger.info("authorization_code grant: unknown or expired code (client_id=%s)", client.client_id)
        raise _invalid_grant(_INVALID_CODE)
    if auth_code.client_id != client.client_id:
        logger.info("authorization_code grant: code issued to %s presented by %s", auth_code.client_id, client.client_id)
        raise _invalid_grant(_INVALID_CODE)
    if auth_code.redirect_uri != redirect_uri:
        logger.info("authorization_code grant: redirect_uri mismatch (client_id=%s)", client.client_id)
        raise _invalid_grant(_INVALID_CODE)
    if not verify_pkce(auth_code.code_challenge, auth_code.code_challenge_method, code_verifier):
        logger.info("authorization_code grant: PKCE verification failed (client_id=%s)", client.client_id)
        raise _invalid_grant(_INVALID_CODE)

    user = services.users.find_user_by_id(auth_code.user_id)
    if user is None:
        logger.info("authorization_code grant: user %s no longer exists", auth_code.user_id)
        raise _invalid_grant(_INVALID_CODE)

    scopes = list(auth_code.scope)
    auth_time = int(auth_code.created_at)
    codec = services.codec
    access_token = _user_access_token(codec, user, client, scopes, GRANT_AUTHORIZATION_CODE)
    refresh = _refresh_token(codec, user, client, scopes, GRANT_AUTHORIZATION_CODE, auth_time)
    id_token = _id_token(codec, user, client, auth_time) if "openid" in scopes else None
    return _token_response(codec, access_token, scopes, refresh_token=refresh, id_token=id_token)


def _token_refresh_token(
    services: AuthServices,
    client: Client,
    refresh_token: str | None,
    scope: str | None,
) -> JSONResponse:
    if not refresh_token:
        raise oauth_error(400, "invalid_request", "refresh_token is required")

    codec = services.codec
    try:
        decoded = codec.verify(refresh_token, TokenKind.REFRESH)
    except InvalidToken as e:
        logger.info("refresh_token grant: token rejected (client_id=%s): %s", client.client_id, e)
        raise _invalid_grant("refresh_token is invalid or expired")

    if decoded.get("client") and decoded["client"] != client.client_id:
        raise _invalid_grant("refresh_token was not issued to this client")

    user = services.users.find_user_by_id(decoded.get("sub"))
    if user is None:
        raise _invalid_grant("User linked to refresh_token no longer exists")

    # An empty scope claim stays empty; only a token without the claim falls back to the client's list
    if "scope" in decoded:
        original_scopes = parse_scope(decoded["scope"])
    else:
        original_scopes = list(client.scopes)
    requested = parse_scope(scope)
    if requested:
        # Narrow only: anything not in the original grant is dropped, possibly leaving nothing
        scopes = filter_allowed(requested, original_scopes)
    else:
        scopes = original_scopes

    auth_time = decoded.get("auth_time") or int(time.time())
    access_token = _user_access_token(codec, user, client, scopes, GRANT_REFRESH_TOKEN)
    # Rotation: the previous refresh token stays valid until its own exp (no server-side store)
    new_refresh = _refresh_token(codec, user, client, scopes, GRANT_REFRESH_TOKEN, auth_time)
    id_token = _id_token(codec, user, client, auth_time) if "openid" in scopes else None

    logger.info("refresh_token grant: new tokens issued for client_id=%s sub=%s", client.client_id, user.id)
    return _token_response(codec, access_token, scopes, refresh_token=new_refresh, id_token=id_token)
