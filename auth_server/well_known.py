"""
Well-known endpoints: JWKS and OpenID Connect discovery.
"""
from fastapi import APIRouter

from auth_server.config import ISSUER, SUPPORTED_SCOPES
from auth_server.tokens import ALGORITHM, KEY_ID

router = APIRouter()


@router.get("/.well-known/jwks.json")
def jwks_json():
    """
    Key set describing the signing key. Tokens are HS256 (shared secret), so the key
    material itself is never published; verifiers are configured with the secret.
    """
    return {"keys": [{"kty": "oct", "kid": KEY_ID, "alg": ALGORITHM, "use": "sig"}]}


@router.get("/.well-known/openid-configuration")
def openid_configuration():
    """OpenID Connect discovery document."""
    return {
        "issuer": ISSUER,
        "authorization_endpoint": f"{ISSUER}/authorize",
        "token_endpoint": f"{ISSUER}/token",
        "userinfo_endpoint": f"{ISSUER}/userinfo",
        "jwks_uri": f"{ISSUER}/.well-known/jwks.json",
        "response_types_supported": ["code"],
        "grant_types_supported": ["authorization_code", "refresh_token", "client_credentials"],
        "subject_types_supported": ["public"],
        "id_token_signing_alg_values_supported": [ALGORITHM],
        "scopes_supported": SUPPORTED_SCOPES,
        "token_endpoint_auth_methods_supported": ["client_secret_basic", "client_secret_post"],
        "claims_supported": [
            "sub",
            "iss",
            "aud",
            "exp",
            "iat",
            "auth_time",
            "name",
            "preferred_username",
            "email",
            "email_verified",
        ],
        "code_challenge_methods_supported": ["S256", "plain"],
    }
