"""
Starting a login: a fresh state and PKCE verifier, and the AS /authorize URL carrying the S256 challenge.
"""
import secrets
from dataclasses import dataclass
from urllib.parse import urlencode

from auth_server.pkce import s256_challenge
from client_web.config import CLIENT_ID, DEFAULT_SCOPE, ISSUER, REDIRECT_URI


@dataclass(frozen=True)
class LoginRequest:
    state: str
    code_verifier: str
    authorize_url: str


def new_login_request(*, scope: str = DEFAULT_SCOPE, show_code: bool = False) -> LoginRequest:
    # 32 random bytes -> 43 url-safe chars, inside the 43..128 verifier range
    state = secrets.token_urlsafe(32)
    code_verifier = secrets.token_urlsafe(32)
    params = {
        "response_type": "code",
        "client_id": CLIENT_ID,
        "redirect_uri": REDIRECT_URI,
        "scope": scope,
        "state": state,
        "code_challenge": s256_challenge(code_verifier),
        "code_challenge_method": "S256",
    }
    if show_code:
        params["show_code"] = "true"
    return LoginRequest(state=state, code_verifier=code_verifier, authorize_url=f"{ISSUER}/authorize?{urlencode(params)}")
