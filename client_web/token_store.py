"""
In-memory store for tokens after a successful login.
Single stored set (no per-user/session); lab use only.
"""
import time
from dataclasses import dataclass


@dataclass
class StoredTokens:
    access_token: str
    expires_in: int
    scope: str
    issued_at: float
    refresh_token: str | None = None
    id_token: str | None = None

    def access_token_expired_or_soon(self, buffer_seconds: int = 60) -> bool:
        """
        True if access token is expired or within buffer_seconds of expiry (for proactive refresh).
        When token lifetime is shorter than buffer_seconds, only return True when actually expired.
        """
        elapsed = time.time() - self.issued_at
        if elapsed >= self.expires_in:
            return True
        if self.expires_in > buffer_seconds and elapsed >= (self.expires_in - buffer_seconds):
            return True
        return False


_tokens: StoredTokens | None = None


def store_tokens(data: dict, previous: StoredTokens | None = None) -> StoredTokens:
    """Save a token endpoint response; fields missing from a refresh response are kept from previous."""
    global _tokens
    _tokens = StoredTokens(
        access_token=data["access_token"],
        expires_in=int(data.get("expires_in") or (previous.expires_in if previous else 0)),
        scope=data.get("scope") or (previous.scope if previous else ""),
        issued_at=time.time(),
        refresh_token=data.get("refresh_token") or (previous.refresh_token if previous else None),
        id_token=data.get("id_token") or (previous.id_token if previous else None),
    )
    return _tokens


def get_tokens() -> StoredTokens | None:
    return _tokens


def clear_tokens() -> None:
    global _tokens
    _tokens = None
