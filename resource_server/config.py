"""
Resource server configuration.
Issuer and audience are public identifiers; the verification secret comes from env.
"""
import os

# Authorization Server that issues the access tokens (iss claim)
ISSUER = os.environ.get("OAUTH_ISSUER", "http://localhost:4000").rstrip("/")

# This API's audience; access tokens must carry it in aud
API_AUDIENCE = os.environ.get("OAUTH_ACCESS_TOKEN_AUDIENCE", "resource-server")

# Shared HS256 secret used by the Authorization Server for access tokens
ACCESS_TOKEN_SECRET = os.environ.get("OAUTH_ACCESS_TOKEN_SECRET") or os.environ.get("OAUTH_JWT_SECRET") or None

# Scope required by protected routes
SCOPE_READ_USERS = "read:users"
