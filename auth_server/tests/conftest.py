"""
Pytest configuration for auth_server.
Signing secret is set before any auth_server module is imported (the token codec needs it).
Each test gets its own registries, with a controllable clock for expiry tests.
"""
import os
import time
from urllib.parse import parse_qs, urlencode, urlparse

os.environ["OAUTH_JWT_SECRET"] = "test-signing-secret-0123456789abcdef"
for _name in (
    "OAUTH_ISSUER",
    "OAUTH_ACCESS_TOKEN_SECRET",
    "OAUTH_REFRESH_TOKEN_SECRET",
    "OAUTH_ID_TOKEN_SECRET",
    "OAUTH_ACCESS_TOKEN_AUDIENCE",
    "OAUTH_LEARNING_CLIENT_SECRET",
    "OAUTH_COOKIE_SECURE",
):
    os.environ.pop(_name, None)

import pytest
from fastapi.testclient import TestClient

from auth_server.clients import ClientRegistry
from auth_server.main import create_app
from auth_server.seed import UserDirectory, load_clients, load_users
from auth_server.services import AuthServices
from auth_server.stores import AuthorizationCodeRegistry, SessionRegistry
from auth_server.tokens import build_token_codec

CLIENT_ID = "learning-client"
CLIENT_SECRET = "learning-client-secret"
REDIRECT_URI = "http://localhost:3000/callback"
FULL_SCOPE = "openid profile email read:users"


class FakeClock:
    def __init__(self, start: float | None = None):
        self.now = time.time() if start is None else start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def authorize_query(**overrides) -> str:
    params = {
        "response_type": "code",
        "client_id": CLIENT_ID,
        "redirect_uri": REDIRECT_URI,
        "scope": FULL_SCOPE,
        "state": "xyz",
    }
    params.update(overrides)
    return urlencode({k: v for k, v in params.items() if v is not None})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def services(clock):
    return AuthServices(
        clients=ClientRegistry(load_clients()),
        users=UserDirectory(load_users()),
        sessions=SessionRegistry(clock=clock),
        codes=AuthorizationCodeRegistry(clock=clock),
        codec=build_token_codec(),
    )


@pytest.fixture
def app(services):
    return create_app(services)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def login(client):
    """Sign in through POST /login; the session cookie stays on the test client."""

    def _login(username="alice", password="password123", query=None):
        r = client.post(
            "/login",
            data={"username": username, "password": password, "original_query": query or authorize_query()},
            follow_redirects=False,
        )
        assert r.status_code == 302, r.text
        return r

    return _login


@pytest.fixture
def get_code(client, login):
    """Sign in and approve consent; returns the authorization code from the redirect."""

    def _get_code(scope=FULL_SCOPE, state="xyz", code_challenge=None, code_challenge_method=None, username="alice"):
        login(username=username)
        form = {
            "decision": "approve",
            "client_id": CLIENT_ID,
            "redirect_uri": REDIRECT_URI,
            "scope": scope,
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": code_challenge_method,
            "original_query": authorize_query(scope=scope, state=state),
        }
        r = client.post("/consent", data={k: v for k, v in form.items() if v is not None}, follow_redirects=False)
        assert r.status_code == 302, r.text
        return parse_qs(urlparse(r.headers["location"]).query)["code"][0]

    return _get_code
