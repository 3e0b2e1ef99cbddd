"""Tests for client_web routes: login start, callback, API calls with refresh, token display."""
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import httpx
import jwt
from fastapi.testclient import TestClient

from client_web.flow_store import get_flow, store_flow
from client_web.main import app
from client_web.token_store import clear_tokens, get_tokens, store_tokens

client = TestClient(app)


class MockTokenResponse:
    status_code = 200
    headers = {"content-type": "application/json"}

    def __init__(self, body):
        self._body = body

    def json(self):
        return self._body


class MockJsonResponse:
    headers = {"content-type": "application/json"}

    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body

    def json(self):
        return self._body


TOKEN_BODY = {
    "access_token": "at",
    "token_type": "Bearer",
    "expires_in": 900,
    "scope": "read:users openid",
    "refresh_token": "rt",
}


def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_home_links():
    r = client.get("/")
    assert r.status_code == 200
    assert "/start-login" in r.text
    assert "/call-api?path=/api/users" in r.text
    assert "/tokens" in r.text


def test_start_login_redirects_to_as():
    r = client.get("/start-login", follow_redirects=False)
    assert r.status_code == 302
    location = r.headers["location"]
    assert "/authorize?" in location
    params = parse_qs(urlparse(location).query)
    assert params["response_type"] == ["code"]
    assert params["client_id"] == ["learning-client"]
    assert params["code_challenge_method"] == ["S256"]
    assert "nonce" not in params
    # state is remembered for the callback
    flow = get_flow(params["state"][0])
    assert flow is not None
    assert flow.code_verifier


def test_callback_missing_state():
    r = client.get("/callback")
    assert r.status_code == 400
    assert "Missing state" in r.text


def test_callback_unknown_state():
    r = client.get("/callback", params={"state": "unknown-state", "code": "somecode"})
    assert r.status_code == 400
    assert "Invalid or expired state" in r.text


def test_callback_valid_state_and_code_uses_basic_auth():
    store_flow("valid-state-123", code_verifier="verifier-abc")
    with patch("client_web.main.httpx.post", return_value=MockTokenResponse(TOKEN_BODY)) as post:
        r = client.get("/callback", params={"state": "valid-state-123", "code": "auth-code-xyz"})
    assert r.status_code == 200
    assert "Login success" in r.text
    kwargs = post.call_args.kwargs
    assert kwargs["auth"] == ("learning-client", "learning-client-secret")
    assert kwargs["data"]["grant_type"] == "authorization_code"
    assert kwargs["data"]["code"] == "auth-code-xyz"
    assert kwargs["data"]["code_verifier"] == "verifier-abc"
    assert get_tokens().access_token == "at"
    assert get_tokens().refresh_token == "rt"
    clear_tokens()


def test_callback_state_is_single_use():
    store_flow("once-state", code_verifier="v")
    with patch("client_web.main.httpx.post", return_value=MockTokenResponse(TOKEN_BODY)):
        assert client.get("/callback", params={"state": "once-state", "code": "c"}).status_code == 200
    r = client.get("/callback", params={"state": "once-state", "code": "c"})
    assert r.status_code == 400
    clear_tokens()


def test_callback_token_error():
    store_flow("state-bad-code", code_verifier="v")
    body = {"error": "invalid_grant", "error_description": "Authorization code is invalid or expired"}
    with patch("client_web.main.httpx.post", return_value=MockJsonResponse(400, body)):
        r = client.get("/callback", params={"state": "state-bad-code", "code": "c"})
    assert r.status_code == 400
    assert "invalid or expired" in r.text
    assert get_tokens() is None


def test_callback_error_from_as():
    store_flow("state-for-error", code_verifier="v")
    r = client.get("/callback", params={"state": "state-for-error", "error": "access_denied"})
    assert r.status_code == 400
    assert "access_denied" in r.text
    assert get_flow("state-for-error") is None


def test_call_api_no_tokens_passes_through_401():
    clear_tokens()
    with patch("client_web.main.httpx.get", return_value=MockJsonResponse(401, {"error": "missing_token"})) as get:
        r = client.get("/call-api", params={"path": "/api/users"})
    assert r.status_code == 200
    assert "401" in r.text
    assert "missing_token" in r.text
    assert "Authorization" not in get.call_args.kwargs["headers"]


def test_call_api_rejects_non_api_path():
    r = client.get("/call-api", params={"path": "http://evil.example/"})
    assert r.status_code == 400


def test_call_api_success():
    store_tokens(dict(TOKEN_BODY))
    with patch("client_web.main.httpx.get", return_value=MockJsonResponse(200, {"users": []})) as get:
        r = client.get("/call-api", params={"path": "/api/users"})
    assert r.status_code == 200
    assert "Status: 200" in r.text
    assert get.call_args.kwargs["headers"]["Authorization"] == "Bearer at"
    clear_tokens()


def test_call_api_401_refresh_then_retry():
    store_tokens(dict(TOKEN_BODY, access_token="stale-at", refresh_token="valid-rt"))
    refreshed = dict(TOKEN_BODY, access_token="new-at", refresh_token="new-rt")
    with patch(
        "client_web.main.httpx.get",
        side_effect=[MockJsonResponse(401, {"error": "token_expired"}), MockJsonResponse(200, {"users": []})],
    ), patch("client_web.main.httpx.post", return_value=MockTokenResponse(refreshed)) as post:
        r = client.get("/call-api", params={"path": "/api/users"})
    assert r.status_code == 200
    assert "Status: 200" in r.text
    assert post.call_args.kwargs["data"] == {"grant_type": "refresh_token", "refresh_token": "valid-rt"}
    assert get_tokens().access_token == "new-at"
    assert get_tokens().refresh_token == "new-rt"
    clear_tokens()


def test_call_api_refresh_failure_clears_tokens():
    store_tokens(dict(TOKEN_BODY))
    with patch("client_web.main.httpx.get", return_value=MockJsonResponse(401, {"error": "token_expired"})), patch(
        "client_web.main.httpx.post", return_value=MockJsonResponse(400, {"error": "invalid_grant"})
    ):
        r = client.get("/call-api", params={"path": "/api/users"})
    assert "refresh failed" in r.text
    assert get_tokens() is None


def test_call_api_transport_error():
    clear_tokens()
    with patch("client_web.main.httpx.get", side_effect=httpx.ConnectError("connection refused")):
        r = client.get("/call-api", params={"path": "/api/products"})
    assert r.status_code == 502


def test_tokens_page_shows_decoded_claims():
    access = jwt.encode({"sub": "user-1", "scope": "read:users"}, "x" * 32, algorithm="HS256")
    store_tokens(dict(TOKEN_BODY, access_token=access, refresh_token=None))
    r = client.get("/tokens")
    assert r.status_code == 200
    assert "user-1" in r.text
    assert "read:users" in r.text
    clear_tokens()


def test_tokens_page_without_tokens():
    clear_tokens()
    r = client.get("/tokens")
    assert "No tokens" in r.text


def test_logout_clears_tokens():
    store_tokens(dict(TOKEN_BODY))
    r = client.post("/logout", follow_redirects=False)
    assert r.status_code == 302
    assert get_tokens() is None
