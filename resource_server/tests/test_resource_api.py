"""
Tests for the resource server: Bearer verification, scope checks, public and protected routes.
"""
import pytest
from fastapi.testclient import TestClient

from auth_server.tokens import TokenCodec, TokenKind
from resource_server import auth as auth_module
from resource_server.auth import build_codec
from resource_server.config import ACCESS_TOKEN_SECRET, API_AUDIENCE, ISSUER
from resource_server.main import app


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def issuer_codec():
    """Codec playing the Authorization Server's part."""
    return TokenCodec(
        issuer=ISSUER,
        secrets={kind: ACCESS_TOKEN_SECRET for kind in TokenKind},
        ttls={kind: 900 for kind in TokenKind},
        default_audience=API_AUDIENCE,
    )


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_products_public(client):
    r = client.get("/api/products")
    assert r.status_code == 200
    assert [p["id"] for p in r.json()["data"]] == ["p1", "p2", "p3"]


def test_products_limit(client):
    assert len(client.get("/api/products", params={"limit": 2}).json()["data"]) == 2
    assert client.get("/api/products", params={"limit": 0}).json()["data"] == []
    assert len(client.get("/api/products", params={"limit": 50}).json()["data"]) == 3


def test_products_bad_limit(client):
    r = client.get("/api/products", params={"limit": "many"})
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_request"


def test_users_missing_token(client):
    r = client.get("/api/users")
    assert r.status_code == 401
    assert r.json()["error"] == "missing_token"
    assert r.headers["www-authenticate"] == "Bearer"


def test_users_malformed_header(client):
    r = client.get("/api/users", headers={"Authorization": "Token abc"})
    assert r.status_code == 401
    assert r.json()["error"] == "missing_token"


def test_users_invalid_token(client):
    r = client.get("/api/users", headers=_bearer("not-a-jwt"))
    assert r.status_code == 401
    assert r.json()["error"] == "invalid_token"


def test_users_expired_token(client, issuer_codec):
    token = issuer_codec.sign(TokenKind.ACCESS, {"sub": "user-1"}, scope=["read:users"], expires_in=-10)
    r = client.get("/api/users", headers=_bearer(token))
    assert r.status_code == 401
    assert r.json()["error"] == "token_expired"


def test_users_wrong_audience(client, issuer_codec):
    token = issuer_codec.sign(TokenKind.ACCESS, {"sub": "user-1"}, scope=["read:users"], audience="other-api")
    r = client.get("/api/users", headers=_bearer(token))
    assert r.status_code == 401
    assert r.json()["error"] == "invalid_token"


def test_users_wrong_secret(client):
    other = TokenCodec(
        issuer=ISSUER,
        secrets={kind: "some-other-secret-0123456789abcdef" for kind in TokenKind},
        ttls={kind: 900 for kind in TokenKind},
        default_audience=API_AUDIENCE,
    )
    token = other.sign(TokenKind.ACCESS, {"sub": "user-1"}, scope=["read:users"])
    r = client.get("/api/users", headers=_bearer(token))
    assert r.status_code == 401
    assert r.json()["error"] == "invalid_token"


def test_users_insufficient_scope(client, issuer_codec):
    token = issuer_codec.sign(TokenKind.ACCESS, {"sub": "user-1"}, scope=["read:products", "openid"])
    r = client.get("/api/users", headers=_bearer(token))
    assert r.status_code == 403
    data = r.json()
    assert data["error"] == "insufficient_scope"
    assert data["missing_scopes"] == ["read:users"]
    assert data["required_scopes"] == ["read:users"]
    assert data["token_scopes"] == ["read:products", "openid"]


def test_users_ok(client, issuer_codec):
    token = issuer_codec.sign(TokenKind.ACCESS, {"sub": "user-1"}, scope=["read:users"])
    r = client.get("/api/users", headers=_bearer(token))
    assert r.status_code == 200
    assert len(r.json()["data"]) == 3


def test_bearer_scheme_case_insensitive(client, issuer_codec):
    token = issuer_codec.sign(TokenKind.ACCESS, {"sub": "user-1"}, scope=["read:users"])
    r = client.get("/api/users", headers={"Authorization": f"bearer {token}"})
    assert r.status_code == 200


def test_user_by_id(client, issuer_codec):
    token = issuer_codec.sign(TokenKind.ACCESS, {"sub": "user-1"}, scope=["read:users"])
    r = client.get("/api/users/2", headers=_bearer(token))
    assert r.status_code == 200
    assert r.json()["data"]["name"] == "Bob Singh"


def test_user_by_id_not_found(client, issuer_codec):
    token = issuer_codec.sign(TokenKind.ACCESS, {"sub": "user-1"}, scope=["read:users"])
    r = client.get("/api/users/99", headers=_bearer(token))
    assert r.status_code == 404
    assert r.json() == {"error": "not_found", "error_description": "User not found", "id": "99"}


def test_unknown_route(client):
    r = client.get("/api/nothing-here")
    assert r.status_code == 404
    assert r.json() == {"error": "not_found", "path": "/api/nothing-here"}


def test_codec_requires_secret():
    with pytest.raises(RuntimeError):
        build_codec(None)
    with pytest.raises(RuntimeError):
        build_codec("")


def test_codec_is_built_at_import():
    assert isinstance(auth_module.codec, TokenCodec)
