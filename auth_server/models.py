"""
Domain records for the Authorization Server: clients, users, sessions, authorization codes.
Everything lives in memory for the lifetime of the process.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class Client:
    client_id: str
    client_secret: str
    name: str
    # Exact match required; no prefix matching
    redirect_uris: frozenset[str]
    grants: frozenset[str]
    scopes: tuple[str, ...]

    def allows_grant(self, grant_type: str) -> bool:
        return grant_type in self.grants


@dataclass(frozen=True)
class User:
    id: str
    username: str
    password: str
    name: str | None = None
    email: str | None = None


@dataclass
class Session:
    sid: str
    user_id: str
    expires_at: float

    def expired(self, now: float) -> bool:
        return self.expires_at <= now


@dataclass(frozen=True)
class AuthorizationCode:
    code: str
    client_id: str
    redirect_uri: str
    user_id: str
    scope: tuple[str, ...]
    created_at: float
    expires_at: float
    code_challenge: str | None = None
    code_challenge_method: str | None = None

    def expired(self, now: float) -> bool:
        return self.expires_at <= now
