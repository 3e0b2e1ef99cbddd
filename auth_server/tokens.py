"""
Token codec: signs and verifies access, refresh and ID tokens as HS256 JWTs.
Stateless; each token kind has its own secret and lifetime.
"""
import logging
import time
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

import jwt

from auth_server import config
from auth_server.scopes import format_scope

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
KEY_ID = "shared-secret"


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"
    ID = "id"


class InvalidToken(Exception):
    """Signature, issuer, audience or format check failed."""


class ExpiredToken(InvalidToken):
    """Token was valid but its exp has passed."""


@dataclass(frozen=True)
class KindSettings:
    secret: str
    ttl: int


class TokenCodec:
    """Mints and checks the three token kinds. Holds only configuration, no state."""

    def __init__(
        self,
        *,
        issuer: str,
        secrets: dict[TokenKind, str | None],
        ttls: dict[TokenKind, int],
        default_audience: str,
    ):
        self.issuer = issuer
        self.default_audience = default_audience
        self._kinds: dict[TokenKind, KindSettings] = {}
        for kind in TokenKind:
            secret = secrets.get(kind)
            if not secret:
                raise RuntimeError(
                    f"Signing secret for {kind.value} tokens is not configured. "
                    "Set OAUTH_JWT_SECRET (or the per-kind secret) in the environment."
                )
            self._kinds[kind] = KindSettings(secret=secret, ttl=ttls[kind])

    def ttl(self, kind: TokenKind) -> int:
        return self._kinds[kind].ttl

    def sign(
        self,
        kind: TokenKind,
        claims: dict,
        *,
        scope: Iterable[str] | None = None,
        audience: str | None = None,
        expires_in: int | None = None,
    ) -> str:
        """
        Build and sign a token of the given kind.
        Access and refresh tokens require 'sub' and get a unique 'jti'.
        Access tokens carry 'aud' (default audience unless given); ID tokens use audience as the client id.
        """
        settings = self._kinds[kind]
        payload = dict(claims)
        if kind in (TokenKind.ACCESS, TokenKind.REFRESH):
            if not payload.get("sub"):
                raise ValueError(f"{kind.value} token requires a 'sub' claim")
            payload["jti"] = str(uuid.uuid4())
        if scope is not None:
            scope_value = format_scope(scope)
            if scope_value:
                payload["scope"] = scope_value
        if kind is TokenKind.ACCESS:
            payload["aud"] = audience or self.default_audience
        elif kind is TokenKind.ID:
            if not audience:
                raise ValueError("id token requires the client id as audience")
            payload["aud"] = audience
        now = int(time.time())
        payload["iss"] = self.issuer
        payload["iat"] = now
        payload["exp"] = now + (settings.ttl if expires_in is None else expires_in)
        token = jwt.encode(payload, settings.secret, algorithm=ALGORITHM, headers={"kid": KEY_ID, "typ": "JWT"})
        if isinstance(token, bytes):
            token = token.decode("utf-8")
        return token

    def verify(self, token: str, kind: TokenKind, audience: str | None = None) -> dict:
        """
        Verify signature, issuer, expiry and (for access tokens, or when given) audience.
        Raises ExpiredToken or InvalidToken.
        """
        settings = self._kinds[kind]
        options = {"require": ["exp", "iss"]}
        expected_audience = audience
        if kind is TokenKind.ACCESS:
            expected_audience = audience or self.default_audience
        elif kind is TokenKind.ID and audience is None:
            options["verify_aud"] = False
        # Refresh tokens have no aud; with no expected audience PyJWT rejects any token that carries one.
        try:
            return jwt.decode(
                token,
                settings.secret,
                algorithms=[ALGORITHM],
                issuer=self.issuer,
                audience=expected_audience,
                options=options,
            )
        except jwt.ExpiredSignatureError as e:
            raise ExpiredToken(str(e)) from e
        except jwt.InvalidTokenError as e:
            logger.debug("%s token rejected: %s", kind.value, e)
            raise InvalidToken(str(e)) from e


def build_token_codec() -> TokenCodec:
    """Codec configured from environment (auth_server.config)."""
    return TokenCodec(
        issuer=config.ISSUER,
        secrets={
            TokenKind.ACCESS: config.ACCESS_TOKEN_SECRET,
            TokenKind.REFRESH: config.REFRESH_TOKEN_SECRET,
            TokenKind.ID: config.ID_TOKEN_SECRET,
        },
        ttls={
            TokenKind.ACCESS: config.ACCESS_TOKEN_EXPIRES,
            TokenKind.REFRESH: config.REFRESH_TOKEN_EXPIRES,
            TokenKind.ID: config.ID_TOKEN_EXPIRES,
        },
        default_audience=config.API_AUDIENCE,
    )
