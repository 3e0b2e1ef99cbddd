"""
Authorization Server configuration.
No secrets in this file; signing secrets come from env.
"""
import logging
import os
import re

logger = logging.getLogger(__name__)

_TTL_PATTERN = re.compile(r"^(\d+)([smhd]?)$", re.IGNORECASE)
_TTL_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_ttl(value: str | None, default: int) -> int:
    """
    Parse '<number><s|m|h|d>' (bare number = seconds) into seconds.
    Unparsable values fall back to default.
    """
    if value is None or not value.strip():
        return default
    match = _TTL_PATTERN.match(value.strip())
    if not match:
        logger.warning("Invalid TTL value %r; using default of %s seconds", value, default)
        return default
    return int(match.group(1)) * _TTL_UNITS[match.group(2).lower()]


# Issuer URL (public identifier)
ISSUER = os.environ.get("OAUTH_ISSUER", "http://localhost:4000").rstrip("/")

# Signing secrets (HS256). Each token kind falls back to the shared secret.
JWT_SECRET = os.environ.get("OAUTH_JWT_SECRET") or None
ACCESS_TOKEN_SECRET = os.environ.get("OAUTH_ACCESS_TOKEN_SECRET") or JWT_SECRET
REFRESH_TOKEN_SECRET = os.environ.get("OAUTH_REFRESH_TOKEN_SECRET") or JWT_SECRET
ID_TOKEN_SECRET = os.environ.get("OAUTH_ID_TOKEN_SECRET") or ACCESS_TOKEN_SECRET

# Token lifetimes (seconds)
ACCESS_TOKEN_EXPIRES = parse_ttl(os.environ.get("OAUTH_ACCESS_TOKEN_TTL"), 15 * 60)
REFRESH_TOKEN_EXPIRES = parse_ttl(os.environ.get("OAUTH_REFRESH_TOKEN_TTL"), 7 * 86400)
ID_TOKEN_EXPIRES = parse_ttl(os.environ.get("OAUTH_ID_TOKEN_TTL"), 15 * 60)

# Browser session lifetime (sliding) and authorization code lifetime (fixed)
SESSION_TTL_SECONDS = parse_ttl(os.environ.get("OAUTH_SESSION_TTL"), 3600)
CODE_TTL_SECONDS = parse_ttl(os.environ.get("OAUTH_CODE_TTL"), 300)

# Default audience for access tokens (the resource server)
API_AUDIENCE = os.environ.get("OAUTH_ACCESS_TOKEN_AUDIENCE", "resource-server")

# Session cookie
SESSION_COOKIE_NAME = "sid"
COOKIE_SECURE = os.environ.get("OAUTH_COOKIE_SECURE", "").strip().lower() in ("1", "true", "yes")

# Scopes the server knows about (advertised in discovery)
SUPPORTED_SCOPES = ["openid", "profile", "email", "read:users", "read:products"]
