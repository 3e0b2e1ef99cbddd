"""
OIDC UserInfo endpoint (GET /userinfo). Bearer access token with openid scope required; claims by scope.
"""
import logging

from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from auth_server.errors import oauth_error
from auth_server.scopes import parse_scope
from auth_server.services import AuthServices, get_services
from auth_server.tokens import ExpiredToken, InvalidToken, TokenKind

logger = logging.getLogger(__name__)
router = APIRouter()
security = HTTPBearer(auto_error=False)

_BEARER = {"WWW-Authenticate": "Bearer"}


def _decode_access_token(services: AuthServices, credentials: HTTPAuthorizationCredentials | None) -> dict:
    """Decode and validate an access token issued by this server. Returns claims or raises 401."""
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise oauth_error(401, "missing_token", "Missing token", headers=_BEARER)
    try:
        return services.codec.verify(credentials.credentials, TokenKind.ACCESS)
    except ExpiredToken:
        raise oauth_error(401, "token_expired", "Token expired", headers=_BEARER)
    except InvalidToken as e:
        logger.debug("UserInfo token invalid: %s", e)
        raise oauth_error(401, "invalid_token", "Invalid token", headers=_BEARER)


@router.get("/userinfo")
def userinfo(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    services: AuthServices = Depends(get_services),
):
    """
    Return claims for the authenticated user.
    sub always; profile -> name, preferred_username; email -> email, email_verified.
    """
    payload = _decode_access_token(services, credentials)
    scopes = parse_scope(payload.get("scope"))
    if "openid" not in scopes:
        raise oauth_error(403, "insufficient_scope", "openid scope required")

    user = services.users.find_user_by_id(payload.get("sub"))
    if user is None:
        raise oauth_error(404, "not_found", "User not found")

    claims = {"sub": user.id}
    if "profile" in scopes:
        claims["name"] = user.name
        claims["preferred_username"] = user.username
    if "email" in scopes:
        claims["email"] = user.email
        claims["email_verified"] = bool(user.email)
    return claims
