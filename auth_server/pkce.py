"""
PKCE (RFC 7636) verification for the token endpoint. Supports plain and S256.
"""
import hashlib
from base64 import urlsafe_b64encode


def s256_challenge(code_verifier: str) -> str:
    """base64url(SHA256(verifier)) without padding."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def verify_pkce(code_challenge: str | None, method: str | None, code_verifier: str | None) -> bool:
    """
    Check a code_verifier against the challenge stored with the authorization code.
    No stored challenge means the code was issued without PKCE and needs no verifier.
    """
    if not code_challenge:
        return True
    if not code_verifier:
        return False
    if not method or method.lower() == "plain":
        return code_challenge == code_verifier
    if method.upper() == "S256":
        try:
            return s256_challenge(code_verifier) == code_challenge
        except UnicodeEncodeError:
            return False
    return False
