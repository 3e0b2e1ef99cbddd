"""
Tests for scope helpers, the client registry and the user directory.
"""
from auth_server.clients import ClientRegistry, safe_compare
from auth_server.scopes import filter_allowed, format_scope, parse_scope, scopes_for_request
from auth_server.seed import UserDirectory, load_clients, load_users


def _client():
    return ClientRegistry(load_clients()).find_client_by_id("learning-client")


def test_parse_scope():
    assert parse_scope("openid  read:users openid") == ["openid", "read:users"]
    assert parse_scope(["a", "b", "a"]) == ["a", "b"]
    assert parse_scope("") == []
    assert parse_scope(None) == []


def test_format_scope():
    assert format_scope(["openid", "profile"]) == "openid profile"
    assert format_scope([]) == ""


def test_filter_allowed_keeps_request_order():
    assert filter_allowed(["email", "admin", "openid"], ["openid", "email"]) == ["email", "openid"]


def test_scopes_for_request():
    client = _client()
    assert scopes_for_request("read:users admin", client) == ["read:users"]
    assert scopes_for_request("admin", client) == list(client.scopes)
    assert scopes_for_request(None, client) == list(client.scopes)


def test_safe_compare():
    assert safe_compare("secret", "secret") is True
    assert safe_compare("secret", "secreT") is False
    assert safe_compare("secret", "secret-longer") is False


def test_client_lookup_and_credentials():
    registry = ClientRegistry(load_clients())
    assert registry.find_client_by_id("learning-client").name == "Local Learning Client"
    assert registry.find_client_by_id("nope") is None
    assert registry.find_client_by_id(None) is None
    assert registry.validate_client_credentials("learning-client", "learning-client-secret") is not None
    assert registry.validate_client_credentials("learning-client", "wrong") is None
    assert registry.validate_client_credentials("learning-client", None) is None
    assert registry.validate_client_credentials("nope", "learning-client-secret") is None


def test_client_secret_from_env(monkeypatch):
    monkeypatch.setenv("OAUTH_LEARNING_CLIENT_SECRET", "from-env")
    registry = ClientRegistry(load_clients())
    assert registry.validate_client_credentials("learning-client", "from-env") is not None


def test_redirect_uri_exact_match():
    client = _client()
    assert ClientRegistry.is_redirect_uri_allowed(client, "http://localhost:3000/callback") is True
    assert ClientRegistry.is_redirect_uri_allowed(client, "http://localhost:3000/callback/") is False
    assert ClientRegistry.is_redirect_uri_allowed(client, "http://localhost:3000/callback?x=1") is False
    assert ClientRegistry.is_redirect_uri_allowed(client, None) is False


def test_client_grants():
    client = _client()
    assert client.allows_grant("authorization_code")
    assert client.allows_grant("refresh_token")
    assert client.allows_grant("client_credentials")
    assert not client.allows_grant("password")


def test_user_directory():
    users = UserDirectory(load_users())
    alice = users.find_user_by_username("Alice")
    assert alice.id == "user-1"
    assert users.find_user_by_id("user-2").name == "Bob Singh"
    assert users.find_user_by_id("user-3") is None
    assert users.find_user_by_username(None) is None
    assert users.verify_password(alice, "password123") is True
    assert users.verify_password(alice, "Password123") is False
