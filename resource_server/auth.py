"""
Bearer-token verification for the resource server.
Verifies access tokens with the shared token codec; no OAuth flow logic here.
"""
import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from auth_server.scopes import parse_scope
from auth_server.tokens import ExpiredToken, InvalidToken, TokenCodec, TokenKind
from resource_server.config import ACCESS_TOKEN_SECRET, API_AUDIENCE, ISSUER, SCOPE_READ_USERS

logger = logging.getLogger(__name__)

_BEARER = {"WWW-Authenticate": "Bearer"}


def build_codec(secret: str | None = ACCESS_TOKEN_SECRET) -> TokenCodec:
    """Verifying codec; only the access-token secret is needed. Raises RuntimeError when it is not configured."""
    return TokenCodec(
        issuer=ISSUER,
        secrets={kind: secret for kind in TokenKind},
        ttls={kind: 0 for kind in TokenKind},
        default_audience=API_AUDIENCE,
    )


# Built at import so a missing secret stops the server from starting
codec = build_codec()


def _unauthorized(error: str, description: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "error_description": description},
        headers=_BEARER,
    )


def extract_bearer(header_value: str | None) -> str | None:
    """Token from 'Bearer <token>' (scheme case-insensitive), else None."""
    if not header_value:
        return None
    scheme, _, token = header_value.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_bearer_token(request: Request) -> str:
    """Extract Bearer token from Authorization header. Raises 401 missing_token if absent or malformed."""
    token = extract_bearer(request.headers.get("Authorization"))
    if token is None:
        raise _unauthorized("missing_token", "Authorization header missing or malformed")
    return token


def verify_access_token(token: str) -> dict:
    """
    Verify signature, iss, aud and exp. Returns decoded claims.
    Expired -> 401 token_expired; anything else wrong -> 401 invalid_token.
    """
    try:
        return codec.verify(token, TokenKind.ACCESS)
    except ExpiredToken:
        raise _unauthorized("token_expired", "Token expired")
    except InvalidToken as e:
        logger.debug("JWT verification failed: %s", e)
        raise _unauthorized("invalid_token", "Token verification failed")


def get_claims(
    request: Request,
    token: Annotated[str, Depends(get_bearer_token)],
) -> dict:
    """Dependency: valid Bearer token -> decoded claims (also kept on request.state.claims)."""
    claims = verify_access_token(token)
    request.state.claims = claims
    return claims


def require_scopes(*required: str):
    """Dependency factory: the access token must carry every one of the given scopes."""

    def _check(claims: Annotated[dict, Depends(get_claims)]) -> dict:
        token_scopes = parse_scope(claims.get("scope"))
        missing = [s for s in required if s not in token_scopes]
        if missing:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": "insufficient_scope",
                    "error_description": f"Missing required scope(s): {', '.join(missing)}",
                    "missing_scopes": missing,
                    "required_scopes": list(required),
                    "token_scopes": token_scopes,
                },
            )
        return claims

    return Depends(_check)


RequireReadUsers = require_scopes(SCOPE_READ_USERS)
